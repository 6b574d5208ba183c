"""
Decimal <-> integer conversions for ether-denominated amounts.

All engine arithmetic is on integer wei; human input ("0.1") is converted at
the edges (config, RPC) with exact Decimal math.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from ..constants import ETHER_DECIMALS

Amount = Union[int, str, Decimal]

_SCALE = Decimal(10) ** ETHER_DECIMALS


def parse_ether(value: Amount) -> int:
    """
    Convert an ether amount to wei.

    Integers are taken as wei already; strings and Decimals are ether and may
    carry up to 18 fractional digits.
    """
    if isinstance(value, bool):
        raise TypeError("amount must not be a bool")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"amount must be non-negative (got {value})")
        return value
    try:
        d = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"invalid ether amount: {value!r}") from exc
    if not d.is_finite() or d < 0:
        raise ValueError(f"invalid ether amount: {value!r}")
    wei = d * _SCALE
    if wei != wei.to_integral_value():
        raise ValueError(f"more than {ETHER_DECIMALS} decimals: {value!r}")
    return int(wei)


def format_ether(wei: int) -> str:
    """Render wei as a plain decimal ether string ("0.1", "2", "0.000000000000000001")."""
    d = (Decimal(int(wei)) / _SCALE).normalize()
    return format(d, "f")


__all__ = ["Amount", "parse_ether", "format_ether"]
