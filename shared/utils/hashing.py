"""
Stable identity hashing.

Alert and episode identities must be reproducible bit-for-bit across
processes and implementations, so they are built on 64-bit FNV-1a over the
UTF-8 encoding of a "|"-joined component string.
"""

from datetime import datetime

from shared.utils.datetime_utils import to_epoch_ms

FNV64_OFFSET_BASIS = 0xCBF29CE484222325
FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF


def fnv1a_64(data: str | bytes) -> int:
    """
    Compute the 64-bit FNV-1a hash.

    Args:
        data: Text (encoded as UTF-8) or raw bytes

    Returns:
        Unsigned 64-bit hash value
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    value = FNV64_OFFSET_BASIS
    for byte in data:
        value ^= byte
        value = (value * FNV64_PRIME) & _MASK64
    return value


def hash_component(component: object) -> str:
    """
    Render one identity component in its canonical text form.

    Args:
        component: Component value

    Returns:
        Canonical text: booleans as true/false, None as empty,
        datetimes as epoch milliseconds
    """
    if component is None:
        return ""
    if isinstance(component, bool):
        return "true" if component else "false"
    if isinstance(component, datetime):
        return str(to_epoch_ms(component))
    return str(component)


def stable_hash(*components: object) -> str:
    """
    Generate a deterministic identity from ordered components.

    Args:
        *components: Identity components

    Returns:
        16-character lowercase hex digest
    """
    joined = "|".join(hash_component(c) for c in components)
    return f"{fnv1a_64(joined):016x}"
