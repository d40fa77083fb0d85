from typing import Iterable, Union

HashInput = Union[bytes, bytearray, memoryview, Iterable[int]]


def normalize_hash(value: HashInput) -> bytes:
    """
    Coerce a hash argument into immutable bytes.

    Accepts bytes-like objects or a sequence of ints in 0..255.
    Strings are refused: a hex digest must be decoded by the caller.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, int):
        raise TypeError("hash must be bytes-like, not int")
    if isinstance(value, str):
        raise TypeError("hash must be bytes, not str (decode hex with bytes.fromhex)")
    try:
        return bytes(value)
    except (TypeError, ValueError) as e:
        raise TypeError(f"hash must be bytes-like or a sequence of ints in 0..255: {e}")


def hash_key(value: HashInput) -> str:
    """Storage key for a biosimilar hash: lowercase hex of its bytes."""
    return normalize_hash(value).hex()
