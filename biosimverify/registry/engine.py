import logging
import threading
from dataclasses import replace
from typing import Dict, Optional

from biosimverify.models.call_result import (
    ACCEPTED,
    REJECTED,
    CallResult,
    RejectionReason,
    success,
)
from biosimverify.models.principal import Principal, is_null_principal
from biosimverify.models.verification_record import (
    VerificationMetadata,
    VerificationRecord,
)
from biosimverify.registry.config import RegistryConfig
from biosimverify.registry.context import CallContext
from biosimverify.registry.keys import HashInput, hash_key, normalize_hash
from biosimverify.scoring.similarity import SimilarityScorer, compute_similarity_score
from biosimverify.scoring.thresholds import is_valid_threshold
from biosimverify.telemetry import emit_registry_call_telemetry, exception_type_name

logger = logging.getLogger("biosimverify.registry")

MAX_BATCH_ID_BYTES = 50
MAX_MANUFACTURER_BYTES = 100


def _text_within(value: str, max_bytes: int) -> bool:
    if not isinstance(value, str) or not value:
        return False
    return len(value.encode("utf-8")) <= max_bytes


class VerificationRegistry:
    """
    In-memory verification registry for biosimilar batches.

    Each instance owns its configuration and both stores; nothing is shared
    between instances. Every mutation either applies fully or returns
    REJECTED with the state untouched.

    Mutations are serialized on a per-instance lock held from the first
    precondition check through the last store write, so concurrent callers
    (e.g. the threadpool behind the HTTP API) cannot both pass a
    duplicate or write-once check.
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        scorer: SimilarityScorer = compute_similarity_score,
    ):
        initial = (config or RegistryConfig()).validate()
        self._initial_config = replace(initial)
        self.config = replace(initial)
        self.scorer = scorer
        self._verifications: Dict[str, VerificationRecord] = {}
        self._metadata: Dict[str, VerificationMetadata] = {}
        self._lock = threading.Lock()

    # -----------------------------------------------------
    # Outcome bookkeeping
    # -----------------------------------------------------
    def _emit(self, operation: str, outcome: str, reason: Optional[RejectionReason] = None) -> None:
        # Stores are final here; exporter failures are logged, not raised.
        try:
            emit_registry_call_telemetry(operation, outcome, reason)
        except Exception as e:
            logger.warning(
                "Telemetry emission failed op=%s error=%s",
                operation, exception_type_name(e),
            )

    def _reject(self, operation: str, reason: RejectionReason, ctx: CallContext) -> CallResult:
        logger.info(
            "REJECTED op=%s reason=%s caller=%s",
            operation, reason.value, ctx.caller,
        )
        self._emit(operation, "rejected", reason)
        return REJECTED

    def _accept(self, operation: str, ctx: CallContext, detail: str = "") -> CallResult:
        logger.info("ACCEPTED op=%s caller=%s %s", operation, ctx.caller, detail)
        self._emit(operation, "accepted")
        return ACCEPTED

    # -----------------------------------------------------
    # Configuration
    # -----------------------------------------------------
    def set_authority_contract(self, ctx: CallContext, principal: Principal) -> CallResult:
        """
        Write-once. Any caller may set it; there is no admin check here.
        """
        op = "set_authority_contract"
        with self._lock:
            if not principal or is_null_principal(principal):
                return self._reject(op, RejectionReason.NULL_PRINCIPAL, ctx)
            if self.config.authority_contract is not None:
                return self._reject(op, RejectionReason.AUTHORITY_ALREADY_SET, ctx)

            self.config.authority_contract = Principal(principal)
            return self._accept(op, ctx, f"authority={principal}")

    def set_verification_threshold(self, ctx: CallContext, value: int) -> CallResult:
        op = "set_verification_threshold"
        with self._lock:
            if ctx.caller != self.config.contract_admin:
                return self._reject(op, RejectionReason.UNAUTHORIZED_CALLER, ctx)
            if not is_valid_threshold(value):
                return self._reject(op, RejectionReason.THRESHOLD_OUT_OF_RANGE, ctx)

            self.config.verification_threshold = value
            return self._accept(op, ctx, f"threshold={value}")

    def set_regulator(self, ctx: CallContext, identity: Principal) -> CallResult:
        op = "set_regulator"
        with self._lock:
            if ctx.caller != self.config.contract_admin:
                return self._reject(op, RejectionReason.UNAUTHORIZED_CALLER, ctx)
            if not identity or is_null_principal(identity):
                return self._reject(op, RejectionReason.NULL_PRINCIPAL, ctx)

            self.config.regulator = Principal(identity)
            return self._accept(op, ctx, f"regulator={identity}")

    # -----------------------------------------------------
    # Verification
    # -----------------------------------------------------
    def verify_biosimilar(
        self,
        ctx: CallContext,
        biosimilar_hash: HashInput,
        reference_hash: HashInput,
        batch_id: str,
        manufacturer: str,
    ) -> CallResult:
        """
        Record a biosimilar batch as verified against its reference sample.

        Checks run in a fixed order and the first failure wins:
        caller, hashes, metadata, duplicate, authority contract, score.
        The scorer runs under the registry lock.
        """
        op = "verify_biosimilar"
        biosimilar = normalize_hash(biosimilar_hash)
        reference = normalize_hash(reference_hash)

        with self._lock:
            if ctx.caller != self.config.regulator:
                return self._reject(op, RejectionReason.UNAUTHORIZED_CALLER, ctx)
            if not biosimilar or not reference:
                return self._reject(op, RejectionReason.INVALID_HASH, ctx)
            if not _text_within(batch_id, MAX_BATCH_ID_BYTES) or not _text_within(manufacturer, MAX_MANUFACTURER_BYTES):
                return self._reject(op, RejectionReason.INVALID_METADATA, ctx)

            key = biosimilar.hex()
            if key in self._verifications:
                return self._reject(op, RejectionReason.ALREADY_VERIFIED, ctx)
            if self.config.authority_contract is None:
                return self._reject(op, RejectionReason.AUTHORITY_NOT_SET, ctx)

            score = self.scorer(biosimilar, reference)
            if score < self.config.verification_threshold:
                return self._reject(op, RejectionReason.SCORE_BELOW_THRESHOLD, ctx)

            record = VerificationRecord(
                reference_hash=reference,
                verified=True,
                timestamp=ctx.block_height,
                verifier=ctx.caller,
                similarity_score=score,
            )
            metadata = VerificationMetadata(
                batch_id=batch_id,
                manufacturer=manufacturer,
                status=True,
            )
            # Both entries are built before either store is touched.
            self._verifications[key] = record
            self._metadata[key] = metadata
            return self._accept(op, ctx, f"key={key} score={score} block={ctx.block_height}")

    def update_verification_status(
        self,
        ctx: CallContext,
        biosimilar_hash: HashInput,
        new_status: bool,
    ) -> CallResult:
        """
        Overwrite the status flag only. Non-bool values are a failed call.
        """
        op = "update_verification_status"
        key = hash_key(biosimilar_hash)

        with self._lock:
            if ctx.caller != self.config.regulator:
                return self._reject(op, RejectionReason.UNAUTHORIZED_CALLER, ctx)
            if not isinstance(new_status, bool):
                return self._reject(op, RejectionReason.INVALID_STATUS, ctx)
            current = self._metadata.get(key)
            if current is None:
                return self._reject(op, RejectionReason.NOT_FOUND, ctx)

            self._metadata[key] = replace(current, status=new_status)
            return self._accept(op, ctx, f"key={key} status={new_status}")

    # -----------------------------------------------------
    # Reads (no side effects, no preconditions)
    # -----------------------------------------------------
    def get_verification(self, biosimilar_hash: HashInput) -> Optional[VerificationRecord]:
        return self._verifications.get(hash_key(biosimilar_hash))

    def get_verification_metadata(self, biosimilar_hash: HashInput) -> Optional[VerificationMetadata]:
        return self._metadata.get(hash_key(biosimilar_hash))

    def is_verified(self, biosimilar_hash: HashInput) -> bool:
        """True only while the record exists and its status is still active."""
        metadata = self.get_verification_metadata(biosimilar_hash)
        return metadata is not None and metadata.status

    def get_verification_threshold(self) -> CallResult:
        return success(self.config.verification_threshold)

    def get_regulator(self) -> CallResult:
        return success(self.config.regulator)

    def get_contract_admin(self) -> CallResult:
        return success(self.config.contract_admin)

    def get_authority_contract(self) -> CallResult:
        return success(self.config.authority_contract)

    @property
    def verification_count(self) -> int:
        return len(self._verifications)

    # -----------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------
    def reset(self) -> None:
        """Restore the construction-time configuration and drop every record."""
        with self._lock:
            self.config = replace(self._initial_config)
            self._verifications.clear()
            self._metadata.clear()
        logger.info("Registry reset")
