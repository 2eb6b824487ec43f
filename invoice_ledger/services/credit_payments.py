# invoice_ledger/services/credit_payments.py
"""
Credit payment processor.

A payment pays down an invoice's outstanding credit: the header's running
balance (amount_paid / credit_amount / credit_due_date) is updated and one
immutable row is appended to ``credit_payments``, in the same transaction.
The balance is always re-read under a row lock inside that transaction.
"""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from invoice_ledger.db.schema import credit_payments, invoice_table
from invoice_ledger.errors import (
    CreditDueDateRequired,
    FatalError,
    InvalidAmount,
    InvoiceNotFound,
    PaymentDateRequired,
)
from invoice_ledger.models.invoices import CreditPaymentOut, CreditStatus, InvoiceKind
from invoice_ledger.services.money import CENT, ZERO, is_zero, same_amount

logger = logging.getLogger(__name__)


def credit_status(amount_paid: Decimal, credit_amount: Decimal) -> CreditStatus:
    if is_zero(credit_amount):
        return CreditStatus.SETTLED
    if amount_paid > ZERO:
        return CreditStatus.PARTIALLY_PAID
    return CreditStatus.UNPAID


def _payment_amount(amount) -> Decimal:
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("Valid payment amount (number > 0) is required.")
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Payment amount must be a number, got {amount!r}.")
    if not value.is_finite() or value <= 0:
        raise InvalidAmount("Valid payment amount (number > 0) is required.")
    value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise InvalidAmount("Payment amount must be at least 0.01.")
    return value


def apply_payment(
    conn: Connection,
    kind,
    invoice_id: int,
    amount,
    payment_date: Optional[date],
    new_due_date: Optional[date] = None,
) -> CreditPaymentOut:
    kind = InvoiceKind(kind)
    table = invoice_table(kind.value)

    invoice = conn.execute(
        select(
            table.c.id,
            table.c.total_bill_amount,
            table.c.amount_paid,
            table.c.credit_amount,
            table.c.credit_due_date,
        )
        .where(table.c.id == invoice_id)
        .with_for_update()
    ).mappings().first()
    if invoice is None:
        raise InvoiceNotFound(
            f"{kind.value.capitalize()} invoice {invoice_id} not found.", invoice_id=invoice_id
        )

    credit = invoice["credit_amount"]
    amount = _payment_amount(amount)
    if amount > credit:
        raise InvalidAmount(
            f"Payment amount exceeds remaining credit of {credit:.2f}.",
            code="amount_exceeds_credit",
            remaining_credit=str(credit),
        )
    if payment_date is None:
        raise PaymentDateRequired("Payment date is required.")

    new_amount_paid = invoice["amount_paid"] + amount
    new_credit_amount = credit - amount
    if not same_amount(new_amount_paid + new_credit_amount, invoice["total_bill_amount"]):
        raise FatalError(
            f"Invoice {kind.value}/{invoice_id} is out of balance; refusing payment.",
            code="invoice_out_of_balance",
        )

    if is_zero(new_credit_amount):
        new_credit_amount = ZERO
        due_date = None
    else:
        # A new due date replaces the old one; otherwise the old one stands
        due_date = new_due_date or invoice["credit_due_date"]
        if due_date is None:
            raise CreditDueDateRequired(
                "A credit due date is required while credit remains on the invoice."
            )

    conn.execute(
        update(table)
        .where(table.c.id == invoice_id)
        .values(
            amount_paid=new_amount_paid,
            credit_amount=new_credit_amount,
            credit_due_date=due_date,
            last_payment_date=payment_date,
        )
    )
    result = conn.execute(
        insert(credit_payments).values(
            invoice_id=invoice_id,
            invoice_type=kind.value,
            payment_date=payment_date,
            amount_paid=amount,
        )
    )
    payment_id = result.inserted_primary_key[0]

    logger.info(
        "Credit payment %s of %s applied to %s invoice %s; remaining credit %s",
        payment_id, amount, kind.value, invoice_id, new_credit_amount,
    )
    return CreditPaymentOut(
        payment_id=payment_id,
        invoice_id=invoice_id,
        kind=kind,
        amount_paid=new_amount_paid,
        credit_amount=new_credit_amount,
        credit_due_date=due_date,
        credit_status=credit_status(new_amount_paid, new_credit_amount),
    )
