import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from biosimverify.models.principal import Principal, is_null_principal
from biosimverify.scoring.thresholds import (
    DEFAULT_VERIFICATION_THRESHOLD,
    THRESHOLD_MAX,
    THRESHOLD_MIN,
    is_valid_threshold,
)

DEFAULT_CONTRACT_ADMIN = Principal("ST1ADMIN")
DEFAULT_REGULATOR = Principal("ST1REG")


@dataclass
class RegistryConfig:
    """
    Mutable configuration of a single registry instance.

    contract_admin is fixed for the registry's lifetime.
    authority_contract is write-once (None until set).
    """
    contract_admin: Principal = DEFAULT_CONTRACT_ADMIN
    regulator: Principal = DEFAULT_REGULATOR
    verification_threshold: int = DEFAULT_VERIFICATION_THRESHOLD
    authority_contract: Optional[Principal] = None

    def validate(self) -> "RegistryConfig":
        if not self.contract_admin or is_null_principal(self.contract_admin):
            raise ValueError("Invalid config: contract_admin must be a non-null principal")
        if not self.regulator or is_null_principal(self.regulator):
            raise ValueError("Invalid config: regulator must be a non-null principal")
        if not is_valid_threshold(self.verification_threshold):
            raise ValueError(
                f"Invalid config: verification_threshold must be an integer in "
                f"[{THRESHOLD_MIN}, {THRESHOLD_MAX}], got {self.verification_threshold!r}"
            )
        if self.authority_contract is not None and is_null_principal(self.authority_contract):
            raise ValueError("Invalid config: authority_contract cannot be the null principal")
        return self


def load_registry_config() -> RegistryConfig:
    """
    Build a RegistryConfig from the environment (and .env if present).

    Raises ValueError for values the registry itself would refuse.
    """
    load_dotenv()

    raw_threshold = os.getenv("BIOSIM_VERIFICATION_THRESHOLD", str(DEFAULT_VERIFICATION_THRESHOLD))
    try:
        threshold = int(raw_threshold)
    except ValueError:
        raise ValueError(
            f"Invalid config: BIOSIM_VERIFICATION_THRESHOLD is not an integer: {raw_threshold!r}"
        ) from None

    authority = os.getenv("BIOSIM_AUTHORITY_CONTRACT") or None

    config = RegistryConfig(
        contract_admin=Principal(os.getenv("BIOSIM_CONTRACT_ADMIN", DEFAULT_CONTRACT_ADMIN)),
        regulator=Principal(os.getenv("BIOSIM_REGULATOR", DEFAULT_REGULATOR)),
        verification_threshold=threshold,
        authority_contract=Principal(authority) if authority else None,
    )
    return config.validate()
