import pytest
from fastapi.testclient import TestClient
from biosimverify.api.main import app

client = TestClient(app)

HASH_HEX = "01" * 32
REGULATOR = {"X-Caller": "ST1REG"}
ADMIN = {"X-Caller": "ST1ADMIN"}


@pytest.fixture(autouse=True)
def fresh_registry():
    app.state.registry.reset()
    yield
    app.state.registry.reset()


def _verify(headers=REGULATOR, biosimilar=HASH_HEX, reference=HASH_HEX, batch_id="BATCH123"):
    return client.post(
        "/verifications",
        headers=headers,
        json={
            "biosimilar_hash": biosimilar,
            "reference_hash": reference,
            "batch_id": batch_id,
            "manufacturer": "PharmaCorp",
        },
    )


def test_health_check():
    """Verify the API is alive."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "online"
    assert response.json()["verification_count"] == 0


def test_verify_and_read_back():
    client.put("/config/authority-contract", headers=REGULATOR, json={"principal": "ST2AUTH"})

    response = _verify(headers={**REGULATOR, "X-Block-Height": "7"})
    assert response.status_code == 200
    assert response.json() == {"ok": True, "value": True}

    record = client.get(f"/verifications/{HASH_HEX}")
    assert record.status_code == 200
    data = record.json()
    assert data["similarity_score"] == 100
    assert data["verifier"] == "ST1REG"
    assert data["timestamp"] == 7
    assert data["reference_hash"] == HASH_HEX
    assert data["batch_id"] == "BATCH123"
    assert data["status"] is True


def test_failed_verification_is_a_result_not_an_error():
    """No authority contract: HTTP 200 with a collapsed failure."""
    response = _verify()
    assert response.status_code == 200
    assert response.json() == {"ok": False, "value": False}
    assert client.get(f"/verifications/{HASH_HEX}").status_code == 404


def test_duplicate_verification_rejected():
    client.put("/config/authority-contract", headers=REGULATOR, json={"principal": "ST2AUTH"})
    _verify()

    response = _verify(batch_id="BATCH456")
    assert response.json() == {"ok": False, "value": False}
    assert client.get(f"/verifications/{HASH_HEX}").json()["batch_id"] == "BATCH123"


def test_malformed_hex_is_422():
    response = _verify(biosimilar="not-hex")
    assert response.status_code == 422


def test_missing_caller_header_is_422():
    response = client.put("/config/threshold", json={"threshold": 95})
    assert response.status_code == 422


def test_status_update_roundtrip():
    client.put("/config/authority-contract", headers=REGULATOR, json={"principal": "ST2AUTH"})
    _verify()

    response = client.patch(f"/verifications/{HASH_HEX}/status", headers=REGULATOR, json={"status": False})
    assert response.json() == {"ok": True, "value": True}
    assert client.get(f"/verifications/{HASH_HEX}").json()["status"] is False


def test_threshold_configuration():
    assert client.put("/config/threshold", headers=ADMIN, json={"threshold": 95}).json()["ok"] is True
    assert client.get("/config/threshold").json() == {"ok": True, "value": 95}

    assert client.put("/config/threshold", headers=ADMIN, json={"threshold": 70}).json()["ok"] is False
    assert client.put("/config/threshold", headers=REGULATOR, json={"threshold": 85}).json()["ok"] is False
    assert client.get("/config/threshold").json()["value"] == 95


def test_regulator_configuration():
    response = client.put("/config/regulator", headers=ADMIN, json={"principal": "ST2REG"})
    assert response.json() == {"ok": True, "value": True}
    assert client.get("/config/regulator").json()["value"] == "ST2REG"
