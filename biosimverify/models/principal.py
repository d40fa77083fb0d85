from typing import Optional


class Principal(str):
    """
    Opaque caller identity.
    Compared by value only; carries no key material.
    """


# Reserved burn address. Never accepted as a regulator or authority contract.
NULL_PRINCIPAL = Principal("SP000000000000000000002Q6VF78")


def is_null_principal(identity: Optional[str]) -> bool:
    return identity == NULL_PRINCIPAL
