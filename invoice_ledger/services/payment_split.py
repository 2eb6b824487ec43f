# invoice_ledger/services/payment_split.py

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from invoice_ledger.errors import (
    BankDetailsRequired,
    CreditDueDateRequired,
    InvalidAmount,
    PaymentSplitMismatch,
)
from invoice_ledger.models.invoices import PaymentMethod, PaymentTerms
from invoice_ledger.services.money import ZERO, is_zero, optional_money, same_amount


@dataclass(frozen=True)
class PaymentSplit:
    payment_method: PaymentMethod
    amount_paid: Decimal
    credit_amount: Decimal
    credit_due_date: Optional[date]
    transaction_id: Optional[str]
    bank_name: Optional[str]


def require_bank_details(transaction_id: Optional[str], bank_name: Optional[str]) -> None:
    if not (transaction_id and transaction_id.strip()) or not (bank_name and bank_name.strip()):
        raise BankDetailsRequired("Transaction ID and Bank Name are required for bank transfer.")


def resolve_payment_split(
    total: Decimal,
    terms: PaymentTerms,
    credit_amount: Optional[Decimal] = None,
) -> PaymentSplit:
    """
    Derive (amount_paid, credit_amount) for an invoice total from the payment
    method, and validate the settlement details that go with it.

    cash / bank_transfer -> everything paid; credit -> everything on credit;
    cash_and_credit -> caller's amount_paid, remainder on credit. A due date is
    required whenever credit remains and dropped when none does.
    """
    method = PaymentMethod(terms.payment_method)
    supplied_paid = optional_money(terms.amount_paid, "amount_paid")

    if method in (PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER):
        paid, credit = total, ZERO
        if supplied_paid is not None and not same_amount(supplied_paid, total):
            raise PaymentSplitMismatch(
                f"amount_paid {supplied_paid} does not match total {total} for {method.value} payment."
            )
    elif method is PaymentMethod.CREDIT:
        paid, credit = ZERO, total
        if supplied_paid is not None and not is_zero(supplied_paid):
            raise PaymentSplitMismatch("amount_paid must be 0 for credit payment.")
    else:
        if supplied_paid is None or supplied_paid > total:
            raise InvalidAmount(
                "Invalid amount paid for cash & credit.", code="invalid_amount_paid"
            )
        paid, credit = supplied_paid, total - supplied_paid

    if credit_amount is not None:
        supplied_credit = optional_money(credit_amount, "credit_amount")
        if not same_amount(supplied_credit, credit):
            raise PaymentSplitMismatch(
                f"credit_amount {supplied_credit} does not match computed credit {credit}."
            )

    if not same_amount(paid + credit, total):
        raise PaymentSplitMismatch(
            f"amount_paid + credit_amount ({paid + credit}) must equal total ({total})."
        )

    due_date = None
    if not is_zero(credit):
        if terms.credit_due_date is None:
            raise CreditDueDateRequired(
                "Credit due date is required when part of the bill is on credit."
            )
        due_date = terms.credit_due_date

    transaction_id = bank_name = None
    if method is PaymentMethod.BANK_TRANSFER:
        require_bank_details(terms.transaction_id, terms.bank_name)
        transaction_id, bank_name = terms.transaction_id.strip(), terms.bank_name.strip()

    return PaymentSplit(
        payment_method=method,
        amount_paid=paid,
        credit_amount=credit,
        credit_due_date=due_date,
        transaction_id=transaction_id,
        bank_name=bank_name,
    )
