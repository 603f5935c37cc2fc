"""
Size quantities in the store's text format ("10Gi", "512M", "1e9", "1073741824").

Parsed values are integer byte counts; fractional results round up, the way
the store reports a quantity's integer value.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_CEILING
from typing import Union

from coordinator.errors import InvalidQuantity

_BINARY_SUFFIXES = {
    "Ki": 1024,
    "Mi": 1024 ** 2,
    "Gi": 1024 ** 3,
    "Ti": 1024 ** 4,
    "Pi": 1024 ** 5,
    "Ei": 1024 ** 6,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

_QUANTITY_RE = re.compile(r"^([+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+))(.*)$")
_EXPONENT_RE = re.compile(r"^[eE]([+-]?[0-9]+)$")

# Largest first, so formatting picks the biggest exact suffix.
_FORMAT_ORDER = sorted(_BINARY_SUFFIXES.items(), key=lambda item: item[1], reverse=True)

Quantity = Union[int, str]


def parse_quantity(value: Quantity) -> int:
    """Return the integer byte count of a quantity string or int."""
    if isinstance(value, bool):
        raise InvalidQuantity(f"invalid quantity: {value!r}")
    if isinstance(value, int):
        return value

    text = str(value).strip()
    match = _QUANTITY_RE.match(text)
    if not match:
        raise InvalidQuantity(f"invalid quantity: {value!r}")

    number_text, suffix = match.groups()
    try:
        number = Decimal(number_text)
    except InvalidOperation as e:
        raise InvalidQuantity(f"invalid quantity: {value!r}") from e

    if suffix in _BINARY_SUFFIXES:
        scaled = number * _BINARY_SUFFIXES[suffix]
    elif suffix in _DECIMAL_SUFFIXES:
        scaled = number * _DECIMAL_SUFFIXES[suffix]
    else:
        exponent = _EXPONENT_RE.match(suffix)
        if not exponent:
            raise InvalidQuantity(f"invalid quantity suffix {suffix!r} in {value!r}")
        scaled = number.scaleb(int(exponent.group(1)))

    return int(scaled.to_integral_value(rounding=ROUND_CEILING))


def format_quantity(size: int) -> str:
    """Format a byte count with the largest binary suffix that divides it exactly."""
    size = int(size)
    if size == 0:
        return "0"
    for suffix, factor in _FORMAT_ORDER:
        if size % factor == 0:
            return f"{size // factor}{suffix}"
    return str(size)


def sizes_equal_within_delta(left: Quantity, right: Quantity, delta: Quantity) -> bool:
    """True when |left - right| is strictly below delta."""
    left_size = parse_quantity(left)
    right_size = parse_quantity(right)
    allowed = parse_quantity(delta)
    return abs(left_size - right_size) < allowed
