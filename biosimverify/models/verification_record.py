from dataclasses import dataclass

from biosimverify.models.principal import Principal


@dataclass(frozen=True)
class VerificationRecord:
    """
    Immutable proof that a biosimilar batch passed verification.
    Created once per biosimilar hash and never rewritten.
    """
    reference_hash: bytes
    verified: bool
    timestamp: int              # block height at creation
    verifier: Principal
    similarity_score: int


@dataclass(frozen=True)
class VerificationMetadata:
    """
    Descriptive data stored alongside a VerificationRecord.
    Only `status` changes after creation (via dataclasses.replace).
    """
    batch_id: str
    manufacturer: str
    status: bool
