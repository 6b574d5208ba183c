"""
raffle.utils.address
====================

20-byte account identifiers rendered as lower-case ``0x`` hex strings.

- `normalize_address` accepts str/bytes and returns the canonical form.
- `derive_address` builds a deterministic address from a label; used by the
  deploy bootstrap and tests to name contracts and accounts reproducibly.
"""

from __future__ import annotations

import hashlib
from typing import Union

ADDRESS_BYTES = 20


def normalize_address(value: Union[str, bytes, bytearray]) -> str:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        h = value[2:] if value[:2] in ("0x", "0X") else value
        try:
            raw = bytes.fromhex(h)
        except ValueError as exc:
            raise ValueError(f"address is not hex: {value!r}") from exc
    else:
        raise TypeError(f"address must be str or bytes, got {type(value).__name__}")
    if len(raw) != ADDRESS_BYTES:
        raise ValueError(f"address must be {ADDRESS_BYTES} bytes (got {len(raw)})")
    return "0x" + raw.hex()


def is_address(value: object) -> bool:
    try:
        normalize_address(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    return True


def derive_address(label: Union[str, bytes]) -> str:
    data = label.encode("utf-8") if isinstance(label, str) else bytes(label)
    return "0x" + hashlib.sha3_256(data).hexdigest()[: ADDRESS_BYTES * 2]


__all__ = ["ADDRESS_BYTES", "normalize_address", "is_address", "derive_address"]
