# Overview: Service-layer helper for counting a drawer by denomination.

"""
Cash Count

WHY: Operators count the drawer note by note. The count arrives as
{denomination: quantity} with denominations in major units ("50", "0.25");
the total goes into opening_amount / closing_amount as integer cents.

Denominations are parsed with Decimal and converted to cents exactly;
a denomination with sub-cent precision is rejected, not rounded.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..validation import InvalidAmountError, ValidationError, MAX_AMOUNT_CENTS


# BRL notes and coins, largest first
DENOMINATIONS = (
    "200", "100", "50", "20", "10", "5", "2", "1",
    "0.50", "0.25", "0.10", "0.05", "0.01",
)

_CENTS = Decimal(100)


def denomination_to_cents(value) -> int:
    """'0.25' -> 25, '200' -> 20000. Floats are refused."""
    if isinstance(value, (bool, float)):
        raise ValidationError(f"Denomination {value!r} must be given as a string or integer")
    try:
        amount = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Denomination {value!r} is not a number")

    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Denomination {value!r} must be positive")

    scaled = amount * _CENTS
    rounded = scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if rounded != scaled:
        raise ValidationError(f"Denomination {value!r} has sub-cent precision")
    return int(rounded)


_KNOWN_CENTS = {denomination_to_cents(d) for d in DENOMINATIONS}


def count_denominations(counts: dict, *, strict: bool = True) -> dict:
    """
    Total a denomination count.

    Args:
        counts: {denomination: quantity}, e.g. {"50": 2, "0.25": 4}
        strict: Only accept the known BRL notes and coins

    Returns:
        {"total": cents, "lines": [{"denomination", "denomination_cents", "quantity", "subtotal"}]}
        with lines ordered largest denomination first.
    """
    if not isinstance(counts, dict) or not counts:
        raise ValidationError("denominations must be a non-empty object")

    by_cents: dict[int, int] = {}
    for raw_denom, raw_qty in counts.items():
        cents = denomination_to_cents(raw_denom)
        if strict and cents not in _KNOWN_CENTS:
            raise ValidationError(f"Unknown denomination {raw_denom!r}")

        if isinstance(raw_qty, bool) or not isinstance(raw_qty, int):
            raise ValidationError(f"Quantity for {raw_denom!r} must be an integer")
        if raw_qty < 0:
            raise ValidationError(f"Quantity for {raw_denom!r} cannot be negative")

        by_cents[cents] = by_cents.get(cents, 0) + raw_qty

    lines = []
    total = 0
    for cents in sorted(by_cents, reverse=True):
        quantity = by_cents[cents]
        subtotal = cents * quantity
        total += subtotal
        lines.append({
            "denomination": str((Decimal(cents) / _CENTS).quantize(Decimal("0.01"))),
            "denomination_cents": cents,
            "quantity": quantity,
            "subtotal": subtotal,
        })

    if total > MAX_AMOUNT_CENTS:
        raise InvalidAmountError(f"Counted total exceeds maximum allowed value ({MAX_AMOUNT_CENTS} cents)")

    return {"total": total, "lines": lines}
