#!/usr/bin/env python3

"""FNV-1a 64-bit hash used by the ``FNV1a64("...")`` intrinsic."""

FNV1A64_OFFSET_BASIS = 14695981039346656037
FNV1A64_PRIME = 1099511628211
_MASK64 = (1 << 64) - 1


def fnv1a64(text: str | bytes) -> int:
    """
    Compute the 64-bit FNV-1a hash of a string's UTF-8 bytes.

    Args:
        text: String (encoded as UTF-8) or raw bytes

    Returns:
        Unsigned 64-bit hash value
    """
    data = text.encode("utf-8") if isinstance(text, str) else text
    value = FNV1A64_OFFSET_BASIS
    for byte in data:
        value ^= byte
        value = (value * FNV1A64_PRIME) & _MASK64
    return value
