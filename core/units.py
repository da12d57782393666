"""
Core Module - Units.

============================================================
RESPONSIBILITY
============================================================
Exact conversion between integer minor units (wei, token base
units) and decimal major units (ETH, whole tokens), plus address
canonicalization.

============================================================
DESIGN PRINCIPLES
============================================================
- Never float
- Conversion shifts the decimal exponent, so no context rounding
  can occur regardless of magnitude
- Missing upstream values read as zero

============================================================
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Union

from core.constants import ADDRESS_PATTERN, MAX_TOKEN_DECIMALS, NATIVE_DECIMALS
from core.exceptions import InvalidAddressError


Numeric = Union[str, int, Decimal, None]


def _check_decimals(decimals: int) -> int:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ValueError(f"decimals must be an integer, got {decimals!r}")
    if not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise ValueError(f"decimals out of range [0, {MAX_TOKEN_DECIMALS}]: {decimals}")
    return decimals


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Refusing inexact numeric input: {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a decimal number: {value!r}") from e
    else:
        raise ValueError(f"Unsupported numeric input: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def _shift(value: Decimal, places: int) -> Decimal:
    sign, digits, exponent = value.as_tuple()
    return Decimal((sign, digits, exponent + places))


def to_major_units(minor: Numeric, decimals: int = NATIVE_DECIMALS) -> Decimal:
    """
    Convert an amount in minor units to major units.

    Args:
        minor: Integer amount as string, int or Decimal; None or ""
            reads as zero
        decimals: Token decimals, 0..255

    Returns:
        Exact Decimal, e.g. "1000000000000000000" -> Decimal("1.000000000000000000")

    Raises:
        ValueError: If the input is not a finite number
    """
    decimals = _check_decimals(decimals)
    if minor is None or (isinstance(minor, str) and not minor.strip()):
        return Decimal(0)
    return _shift(_to_decimal(minor), -decimals)


def to_minor_units(major: Numeric, decimals: int = NATIVE_DECIMALS) -> int:
    """
    Convert an amount in major units back to integer minor units.

    Raises:
        ValueError: If the amount has more fractional digits than
            ``decimals`` allows
    """
    decimals = _check_decimals(decimals)
    if major is None or (isinstance(major, str) and not major.strip()):
        return 0
    shifted = _shift(_to_decimal(major), decimals)
    integral = shifted.to_integral_value()
    if integral != shifted:
        raise ValueError(
            f"{major} has more than {decimals} fractional digits"
        )
    return int(integral)


def normalize_address(value: Any) -> str:
    """
    Canonicalize an address to lower-case 0x-prefixed hex.

    Raises:
        InvalidAddressError: If the value is not a 20-byte hex address
    """
    if not isinstance(value, str):
        raise InvalidAddressError(value)
    candidate = value.strip().lower()
    if not ADDRESS_PATTERN.match(candidate):
        raise InvalidAddressError(value)
    return candidate


__all__ = [
    "to_major_units",
    "to_minor_units",
    "normalize_address",
]
