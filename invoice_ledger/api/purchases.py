# invoice_ledger/api/purchases.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from invoice_ledger.api.deps import get_database
from invoice_ledger.db.engine import Database
from invoice_ledger.models.invoices import (
    InvoiceCreatedOut,
    InvoiceKind,
    InvoiceOut,
    InvoiceSummaryOut,
    PurchaseInvoiceCreate,
)
from invoice_ledger.services import invoice_factory, queries

router = APIRouter(prefix="/purchase-invoices", tags=["purchase-invoices"])


@router.post("", response_model=InvoiceCreatedOut, status_code=201)
def create_purchase_invoice(
    payload: PurchaseInvoiceCreate,
    db: Database = Depends(get_database),
) -> InvoiceCreatedOut:
    """
    Record a purchase from a vendor. The total is computed from the lines;
    a supplied total_bill_amount is only checked against it.
    """
    return db.run_in_transaction(
        invoice_factory.create_purchase_invoice, payload, issue_date=db.settings.today()
    )


@router.get("", response_model=List[InvoiceSummaryOut])
def list_purchase_invoices(
    vendor_id: Optional[int] = Query(default=None, description="Only this vendor's invoices"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    invoice_number: Optional[str] = Query(default=None, description="Partial invoice number"),
    search: Optional[str] = Query(default=None),
    db: Database = Depends(get_database),
) -> List[InvoiceSummaryOut]:
    return db.run_read(
        queries.list_invoices_by_counterparty,
        InvoiceKind.PURCHASE,
        vendor_id,
        start_date=start_date,
        end_date=end_date,
        invoice_number=invoice_number,
        search=search,
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_purchase_invoice(invoice_id: int, db: Database = Depends(get_database)) -> InvoiceOut:
    return db.run_read(queries.get_invoice, InvoiceKind.PURCHASE, invoice_id)
