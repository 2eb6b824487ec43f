# invoice_ledger/api/credit.py

from typing import List

from fastapi import APIRouter, Depends

from invoice_ledger.api.deps import get_database
from invoice_ledger.db.engine import Database
from invoice_ledger.models.invoices import (
    BalanceReport,
    CreditPaymentIn,
    CreditPaymentOut,
    InvoiceKind,
    InvoiceSummaryOut,
    PaymentOut,
)
from invoice_ledger.services import credit_payments, queries

router = APIRouter(prefix="/credit", tags=["credit"])


@router.post("/{kind}/{invoice_id}/payments", response_model=CreditPaymentOut)
def pay_credit(
    kind: InvoiceKind,
    invoice_id: int,
    payload: CreditPaymentIn,
    db: Database = Depends(get_database),
) -> CreditPaymentOut:
    """
    Pay down the outstanding credit of a sale or purchase invoice.
    """
    return db.run_in_transaction(
        credit_payments.apply_payment,
        kind,
        invoice_id,
        payload.amount,
        payload.payment_date,
        payload.new_due_date,
    )


@router.get("/{kind}/{invoice_id}/payments", response_model=List[PaymentOut])
def payment_history(
    kind: InvoiceKind, invoice_id: int, db: Database = Depends(get_database)
) -> List[PaymentOut]:
    return db.run_read(queries.get_payment_history, kind, invoice_id)


@router.get("/{kind}/{invoice_id}/balance", response_model=BalanceReport)
def invoice_balance(
    kind: InvoiceKind, invoice_id: int, db: Database = Depends(get_database)
) -> BalanceReport:
    return db.run_read(queries.check_invoice_balance, kind, invoice_id)


@router.get("/{kind}/outstanding", response_model=List[InvoiceSummaryOut])
def outstanding_credit(
    kind: InvoiceKind, db: Database = Depends(get_database)
) -> List[InvoiceSummaryOut]:
    return db.run_read(queries.list_outstanding_credit, kind)
