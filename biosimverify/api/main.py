import os
import logging
import time
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from biosimverify.models.principal import Principal
from biosimverify.registry.config import load_registry_config
from biosimverify.registry.context import CallContext
from biosimverify.registry.engine import VerificationRegistry
from biosimverify.telemetry import emit_registry_call_telemetry, exception_type_name, init_telemetry

# --- 1. AUDIT LOGGING ---
logging.basicConfig(
    filename=os.getenv("BIOSIM_AUDIT_LOG", "audit.log"),
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
audit_logger = logging.getLogger("audit")

tags_metadata = [
    {
        "name": "Verification",
        "description": "Record and query biosimilar verifications (regulator only for writes).",
    },
    {
        "name": "Configuration",
        "description": "Threshold, regulator and authority contract settings.",
    },
    {
        "name": "System",
        "description": "Health checks and operational metadata.",
    },
]

app = FastAPI(
    title="Biosimilar Verification Registry",
    description="""
    **Verification registry** for biosimilar drug batches.

    * **Regulator-gated writes:** only the configured regulator records verifications.
    * **First write wins:** a biosimilar hash is verified at most once.
    * **Uniform results:** every mutation answers `{ok, value}`; failures are results, not errors.
    """,
    version="0.1.0",
    openapi_tags=tags_metadata,
    docs_url="/docs",
    redoc_url="/redoc"
)

init_telemetry()
app.state.registry = VerificationRegistry(load_registry_config())


@app.middleware("http")
async def audit_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    audit_logger.info(
        f"METHOD={request.method} PATH={request.url.path} "
        f"STATUS={response.status_code} CALLER={request.headers.get('x-caller', '-')} "
        f"DURATION={process_time:.4f}s"
    )
    return response


# --- DATA MODELS ---
class VerifyBiosimilarRequest(BaseModel):
    biosimilar_hash: str = Field(..., description="Hex-encoded biosimilar sample hash")
    reference_hash: str = Field(..., description="Hex-encoded reference sample hash")
    batch_id: str
    manufacturer: str


class StatusUpdateRequest(BaseModel):
    status: bool


class ThresholdRequest(BaseModel):
    threshold: int


class PrincipalRequest(BaseModel):
    principal: str


class CallResultResponse(BaseModel):
    ok: bool
    value: Any


class VerificationResponse(BaseModel):
    biosimilar_hash: str
    reference_hash: str
    verified: bool
    timestamp: int
    verifier: str
    similarity_score: int
    batch_id: str
    manufacturer: str
    status: bool


# --- HELPERS ---
def _registry() -> VerificationRegistry:
    return app.state.registry


def _context(caller: str, block_height: int) -> CallContext:
    if block_height < 0:
        raise HTTPException(status_code=422, detail="X-Block-Height must be non-negative")
    return CallContext(caller=Principal(caller), block_height=block_height)


def _parse_hash(value: str, field_name: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"{field_name} is not valid hex")


def _as_response(result) -> dict:
    return {"ok": result.ok, "value": result.value}


# --- ENDPOINTS ---
@app.post("/verifications", response_model=CallResultResponse, tags=["Verification"])
def verify_biosimilar(
    request: VerifyBiosimilarRequest,
    x_caller: str = Header(...),
    x_block_height: int = Header(0),
):
    """
    Submit a biosimilar batch for verification against its reference sample.
    """
    ctx = _context(x_caller, x_block_height)
    biosimilar = _parse_hash(request.biosimilar_hash, "biosimilar_hash")
    reference = _parse_hash(request.reference_hash, "reference_hash")

    try:
        result = _registry().verify_biosimilar(
            ctx, biosimilar, reference, request.batch_id, request.manufacturer
        )
    except Exception as e:
        emit_registry_call_telemetry("verify_biosimilar", "error", exception=e)
        audit_logger.error(f"REGISTRY_ERROR: {exception_type_name(e)}")
        raise HTTPException(status_code=500, detail="Registry failure")

    return _as_response(result)


@app.patch("/verifications/{biosimilar_hash}/status", response_model=CallResultResponse, tags=["Verification"])
def update_verification_status(
    biosimilar_hash: str,
    request: StatusUpdateRequest,
    x_caller: str = Header(...),
    x_block_height: int = Header(0),
):
    ctx = _context(x_caller, x_block_height)
    key_bytes = _parse_hash(biosimilar_hash, "biosimilar_hash")
    return _as_response(_registry().update_verification_status(ctx, key_bytes, request.status))


@app.get("/verifications/{biosimilar_hash}", response_model=VerificationResponse, tags=["Verification"])
def get_verification(biosimilar_hash: str):
    key_bytes = _parse_hash(biosimilar_hash, "biosimilar_hash")
    registry = _registry()
    record = registry.get_verification(key_bytes)
    metadata = registry.get_verification_metadata(key_bytes)

    if record is None or metadata is None:
        raise HTTPException(status_code=404, detail="Verification not found")

    return {
        "biosimilar_hash": key_bytes.hex(),
        "reference_hash": record.reference_hash.hex(),
        "verified": record.verified,
        "timestamp": record.timestamp,
        "verifier": record.verifier,
        "similarity_score": record.similarity_score,
        "batch_id": metadata.batch_id,
        "manufacturer": metadata.manufacturer,
        "status": metadata.status,
    }


@app.get("/config/threshold", response_model=CallResultResponse, tags=["Configuration"])
def get_verification_threshold():
    return _as_response(_registry().get_verification_threshold())


@app.put("/config/threshold", response_model=CallResultResponse, tags=["Configuration"])
def set_verification_threshold(
    request: ThresholdRequest,
    x_caller: str = Header(...),
    x_block_height: int = Header(0),
):
    ctx = _context(x_caller, x_block_height)
    return _as_response(_registry().set_verification_threshold(ctx, request.threshold))


@app.get("/config/regulator", response_model=CallResultResponse, tags=["Configuration"])
def get_regulator():
    return _as_response(_registry().get_regulator())


@app.put("/config/regulator", response_model=CallResultResponse, tags=["Configuration"])
def set_regulator(
    request: PrincipalRequest,
    x_caller: str = Header(...),
    x_block_height: int = Header(0),
):
    ctx = _context(x_caller, x_block_height)
    return _as_response(_registry().set_regulator(ctx, Principal(request.principal)))


@app.put("/config/authority-contract", response_model=CallResultResponse, tags=["Configuration"])
def set_authority_contract(
    request: PrincipalRequest,
    x_caller: str = Header(...),
    x_block_height: int = Header(0),
):
    ctx = _context(x_caller, x_block_height)
    return _as_response(_registry().set_authority_contract(ctx, Principal(request.principal)))


@app.get("/health", tags=["System"])
def health():
    registry = _registry()
    return {
        "status": "online",
        "verification_count": registry.verification_count,
        "authority_contract_set": registry.get_authority_contract().value is not None,
    }
