from __future__ import annotations

from typing import Any


# Largest amount accepted anywhere: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class InvalidAmountError(ValidationError):
    """Monetary amount is not an integer number of cents, or is out of range."""


def parse_amount_cents(
    value: Any,
    field: str,
    *,
    allow_zero: bool = True,
    max_value: int = MAX_AMOUNT_CENTS,
) -> int:
    """
    Strictly coerce an amount given in cents.

    Accepts ints and plain digit strings. Rejects bools, floats, decimal
    strings and scientific notation; money never passes through float.

    allow_zero=False makes the amount strictly positive (ledger entries).
    """
    if value is None:
        raise InvalidAmountError(f"{field} is required")

    # bool is a subclass of int
    if isinstance(value, bool):
        raise InvalidAmountError(f"{field} must be an integer number of cents")

    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidAmountError(f"{field} must be an integer number of cents")
        if "e" in stripped.lower():
            raise InvalidAmountError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped or "," in stripped:
            raise InvalidAmountError(f"{field} must be an integer number of cents (no decimals)")
        try:
            amount = int(stripped)
        except ValueError:
            raise InvalidAmountError(f"{field} must be an integer number of cents")
    elif isinstance(value, float):
        raise InvalidAmountError(f"{field} must be an integer number of cents, not a decimal")
    else:
        raise InvalidAmountError(f"{field} must be an integer number of cents")

    if amount < 0:
        raise InvalidAmountError(f"{field} cannot be negative")
    if amount == 0 and not allow_zero:
        raise InvalidAmountError(f"{field} must be greater than zero")
    if amount > max_value:
        raise InvalidAmountError(f"{field} exceeds maximum allowed value ({max_value} cents)")

    return amount


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    """Return a stripped, non-empty string or raise ValidationError."""
    if value is None or not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    stripped = value.strip()
    if not stripped:
        raise ValidationError(f"{field} cannot be empty")
    if len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped


def parse_int(value: Any, field: str) -> int:
    """Coerce an identifier-like integer (query params, header values)."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")
