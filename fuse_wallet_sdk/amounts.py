"""
Conversion between human-readable token amounts and integer base units
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union


def to_base_units(amount: Union[str, int, Decimal], decimals: int) -> int:
    """Convert a decimal amount such as ``"1.5"`` to base units (``1500000`` for 6 decimals).

    Digits beyond ``decimals`` are truncated. Floats are rejected to keep the
    conversion exact.
    """
    if isinstance(amount, float):
        raise TypeError("Pass amounts as str, int or Decimal, not float")
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"Amount must be a non-negative number: {amount!r}")
    with localcontext() as ctx:
        ctx.prec = 100
        return int(value.scaleb(decimals))


def parse_quantity(value: Union[str, int, None]) -> int:
    """Read a JSON-RPC quantity: ``0x``-prefixed hex, a decimal string or an int. ``None`` is 0."""
    if value is None:
        return 0
    if isinstance(value, str):
        value = value.strip()
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    return int(value)
