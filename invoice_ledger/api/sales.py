# invoice_ledger/api/sales.py

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
    SaleInvoiceCreate,
)
from invoice_ledger.services import invoice_factory, queries

router = APIRouter(prefix="/sale-invoices", tags=["sale-invoices"])


@router.post("", response_model=InvoiceCreatedOut, status_code=201)
def create_sale_invoice(
    payload: SaleInvoiceCreate,
    db: Database = Depends(get_database),
) -> InvoiceCreatedOut:
    """
    Record a sale: decrement stock per line, insert header and items, commit.
    """
    return db.run_in_transaction(
        invoice_factory.create_sale_invoice, payload, issue_date=db.settings.today()
    )


@router.get("", response_model=List[InvoiceSummaryOut])
def list_sale_invoices(
    customer_id: Optional[int] = Query(default=None, description="Only this customer's invoices"),
    start_date: Optional[date] = Query(default=None, description="ISO date (YYYY-MM-DD), inclusive"),
    end_date: Optional[date] = Query(default=None, description="ISO date (YYYY-MM-DD), inclusive"),
    search: Optional[str] = Query(
        default=None, description="Matches invoice number, customer name or payment method"
    ),
    db: Database = Depends(get_database),
) -> List[InvoiceSummaryOut]:
    """
    Sale invoices, newest first. Walk-in sales are included unless a
    customer_id is given.
    """
    return db.run_read(
        queries.list_invoices_by_counterparty,
        InvoiceKind.SALE,
        customer_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_sale_invoice(invoice_id: int, db: Database = Depends(get_database)) -> InvoiceOut:
    return db.run_read(queries.get_invoice, InvoiceKind.SALE, invoice_id)
