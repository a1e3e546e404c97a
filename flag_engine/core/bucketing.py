"""Stable percentage bucketing for rollout cohorts.

A subject is assigned to one of ``ROLLOUT_BUCKETS`` buckets by a 32-bit
rolling hash (``h * 31 + c`` written as ``(h << 5) - h + c``) over the UTF-16
code units of its identifier. The result must stay bit-identical across
processes and platforms, since it decides who is inside a rollout.
"""

from __future__ import annotations

ROLLOUT_BUCKETS = 100

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    if value & _INT32_SIGN:
        value -= 1 << 32
    return value


def _utf16_code_units(text: str) -> list[int]:
    # Characters outside the BMP become a surrogate pair.
    data = text.encode("utf-16-le", "surrogatepass")
    return [data[i] | (data[i + 1] << 8) for i in range(0, len(data), 2)]


def hash_subject(subject_id: str) -> int:
    """Return the signed 32-bit rolling hash of ``subject_id``."""

    h = 0
    for code in _utf16_code_units(subject_id):
        h = _to_int32((h << 5) - h + code)
    return h


def bucket(subject_id: str) -> int:
    """Map ``subject_id`` to its rollout bucket in ``[0, 100)``."""

    return abs(hash_subject(subject_id)) % ROLLOUT_BUCKETS
