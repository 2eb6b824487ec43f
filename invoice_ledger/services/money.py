# invoice_ledger/services/money.py

import secrets
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from invoice_ledger.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
TOLERANCE = Decimal("0.01")


def to_money(value, field: str = "amount") -> Decimal:
    """
    Coerce a value to a 2-place Decimal.

    Anything unparseable, non-finite or negative is a validation error; it is
    never replaced by zero.
    """
    if value is None:
        raise ValidationError(f"{field} is required.", field=field)
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}.", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number.", field=field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative.", field=field)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def optional_money(value, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    return to_money(value, field)


def same_amount(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) <= TOLERANCE


def is_zero(amount: Decimal) -> bool:
    return abs(amount) < TOLERANCE


def generate_invoice_number() -> str:
    # Uniqueness is enforced by the UNIQUE constraint; this only makes clashes rare
    return f"INV-{int(time.time() * 1000)}-{secrets.randbelow(10000):04d}"
