"""Exact conversion between human-readable amounts and ledger minor units.

All arithmetic goes through Decimal parsed from strings; floats are rejected.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from .exceptions import InvalidAmount


def parse_amount(value: Union[str, Decimal]) -> Decimal:
    """Parse a positive decimal amount from a string."""
    if isinstance(value, float):
        raise InvalidAmount("Amounts must be given as decimal strings, not floats")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Amount {value!r} is not a decimal number")
    if not amount.is_finite():
        raise InvalidAmount(f"Amount {value!r} is not finite")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {value}")
    return amount


def to_minor_units(value: Union[str, Decimal], decimals: int) -> int:
    """
    Convert a human-readable amount to integer minor units.

    Raises InvalidAmount if the amount carries more fractional digits than
    the ledger supports, instead of silently rounding.
    """
    amount = parse_amount(value)
    # Integer arithmetic on the digit tuple; Decimal ops would round at context precision
    _, digits, exponent = amount.as_tuple()
    coefficient = int("".join(map(str, digits)))
    shift = exponent + decimals
    if shift >= 0:
        return coefficient * 10 ** shift
    minor, remainder = divmod(coefficient, 10 ** -shift)
    if remainder:
        raise InvalidAmount(
            f"Amount {value} has more than {decimals} decimal places"
        )
    return minor


def from_minor_units(value: int, decimals: int) -> str:
    """Format integer minor units as a plain decimal string."""
    amount = Decimal(f"{int(value)}E-{decimals}")
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def rescale_minor_units(value: int, from_decimals: int, to_decimals: int) -> int:
    """Rescale minor units between two precisions without losing digits."""
    if to_decimals >= from_decimals:
        return int(value) * 10 ** (to_decimals - from_decimals)
    divisor = 10 ** (from_decimals - to_decimals)
    quotient, remainder = divmod(int(value), divisor)
    if remainder:
        raise InvalidAmount(
            f"{value} (decimals={from_decimals}) is not representable "
            f"with {to_decimals} decimals"
        )
    return quotient


__all__ = [
    "parse_amount",
    "to_minor_units",
    "from_minor_units",
    "rescale_minor_units",
]
