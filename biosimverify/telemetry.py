"""
Registry Telemetry

One event name, `biosimverify.registry_call`, for every registry mutation.
Attributes are categorical only: no hashes, no batch identifiers,
no manufacturer names, no exception messages.
"""
import os
import logging
from typing import Literal, Optional

from azure.monitor.opentelemetry import configure_azure_monitor
from opentelemetry.trace import get_current_span

from biosimverify.models.call_result import RejectionReason

logger = logging.getLogger("biosimverify.telemetry")

REGISTRY_CALL_EVENT = "biosimverify.registry_call"

RegistryOperation = Literal[
    "set_authority_contract",
    "set_verification_threshold",
    "set_regulator",
    "verify_biosimilar",
    "update_verification_status",
]

REGISTRY_OPERATIONS = (
    "set_authority_contract",
    "set_verification_threshold",
    "set_regulator",
    "verify_biosimilar",
    "update_verification_status",
)

CallOutcome = Literal["accepted", "rejected", "error"]


def init_telemetry() -> bool:
    """
    Route registry logs and span events to Application Insights.

    Returns False (and configures nothing) when no connection string is set,
    which is the normal case for local runs and tests.
    """
    connection_string = os.getenv("AZURE_APPINSIGHTS_CONNECTION_STRING")
    if not connection_string:
        logger.debug("Telemetry disabled: AZURE_APPINSIGHTS_CONNECTION_STRING not set")
        return False

    configure_azure_monitor(
        connection_string=connection_string,
        logger_name="biosimverify",
    )
    logger.info("Telemetry enabled")
    return True


def exception_type_name(exception: BaseException) -> str:
    """The only part of an exception allowed into logs or telemetry."""
    return type(exception).__name__


def emit_registry_call_telemetry(
    operation: RegistryOperation,
    outcome: CallOutcome,
    reason: Optional[RejectionReason] = None,
    exception: Optional[BaseException] = None,
):
    """
    Emit one event per registry call.

    `reason` accompanies rejected calls only; `exception` accompanies
    errored calls only. Accepted calls carry neither.
    """
    assert operation in REGISTRY_OPERATIONS, f"unknown registry operation: {operation}"
    assert outcome in ("accepted", "rejected", "error"), f"outcome must be accepted/rejected/error, got {outcome}"
    assert (outcome == "rejected") == (reason is not None), "reason must accompany rejected calls only"
    assert (outcome == "error") == (exception is not None), "exception must accompany errored calls only"

    span = get_current_span()
    if not span:
        return

    attributes = {
        "operation": operation,
        "outcome": outcome,
    }
    if reason is not None:
        attributes["reason"] = RejectionReason(reason).value
    if exception is not None:
        attributes["exception_type"] = exception_type_name(exception)

    span.add_event(name=REGISTRY_CALL_EVENT, attributes=attributes)
