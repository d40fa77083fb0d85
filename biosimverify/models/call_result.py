from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class CallResult:
    """
    Uniform outcome of every registry operation.
    Callers must inspect `ok`; failures are returned, never raised.
    """
    ok: bool
    value: Any


ACCEPTED = CallResult(ok=True, value=True)
REJECTED = CallResult(ok=False, value=False)


def success(value: Any = True) -> CallResult:
    return CallResult(ok=True, value=value)


class RejectionReason(str, Enum):
    """
    Internal classification of a failed call.
    Used for logging and telemetry only; the returned CallResult is always REJECTED.
    """
    UNAUTHORIZED_CALLER = "UNAUTHORIZED_CALLER"
    INVALID_HASH = "INVALID_HASH"
    INVALID_METADATA = "INVALID_METADATA"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    AUTHORITY_NOT_SET = "AUTHORITY_NOT_SET"
    AUTHORITY_ALREADY_SET = "AUTHORITY_ALREADY_SET"
    SCORE_BELOW_THRESHOLD = "SCORE_BELOW_THRESHOLD"
    THRESHOLD_OUT_OF_RANGE = "THRESHOLD_OUT_OF_RANGE"
    NULL_PRINCIPAL = "NULL_PRINCIPAL"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATUS = "INVALID_STATUS"
