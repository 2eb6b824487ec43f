# invoice_ledger/services/queries.py
"""
Read-only reconstruction of invoices, their line items and payment history.
Nothing here writes; every function is safe to retry.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, or_, select, true
from sqlalchemy.engine import Connection

from invoice_ledger.db.schema import (
    credit_payments,
    customers,
    invoice_table,
    products,
    sale_invoice_items,
    stock_entries,
    vendors,
)
from invoice_ledger.errors import InvoiceNotFound
from invoice_ledger.models.invoices import (
    BalanceReport,
    InvoiceKind,
    InvoiceOut,
    InvoiceSummaryOut,
    LineItemOut,
    PaymentOut,
)
from invoice_ledger.services.counterparties import ensure_customer, ensure_vendor
from invoice_ledger.services.credit_payments import credit_status
from invoice_ledger.services.money import ZERO, is_zero, same_amount, to_money


def _header_select(kind: InvoiceKind):
    table = invoice_table(kind.value)
    if kind is InvoiceKind.SALE:
        party, party_id, issue_date = customers, table.c.customer_id, table.c.sale_date
    else:
        party, party_id, issue_date = vendors, table.c.vendor_id, table.c.purchase_date

    stmt = (
        select(
            table.c.id,
            table.c.invoice_number,
            party_id.label("counterparty_id"),
            party.c.name.label("counterparty_name"),
            issue_date.label("issue_date"),
            table.c.payment_method,
            table.c.total_bill_amount,
            table.c.amount_paid,
            table.c.amount_paid_at_issue,
            table.c.credit_amount,
            table.c.credit_due_date,
            table.c.last_payment_date,
            table.c.transaction_id,
            table.c.bank_name,
        )
        .select_from(table.outerjoin(party, party.c.id == party_id))
    )
    return table, stmt, party_id, issue_date


def _summary_fields(kind: InvoiceKind, row) -> dict:
    return dict(
        id=row["id"],
        kind=kind,
        invoice_number=row["invoice_number"],
        counterparty_id=row["counterparty_id"],
        counterparty_name=row["counterparty_name"],
        issue_date=row["issue_date"],
        payment_method=row["payment_method"],
        total_bill_amount=row["total_bill_amount"],
        amount_paid=row["amount_paid"],
        credit_amount=row["credit_amount"],
        credit_due_date=row["credit_due_date"],
        last_payment_date=row["last_payment_date"],
        credit_status=credit_status(row["amount_paid"], row["credit_amount"]),
    )


def _fetch_header(conn: Connection, kind: InvoiceKind, invoice_id: int):
    table, stmt, _, _ = _header_select(kind)
    row = conn.execute(stmt.where(table.c.id == invoice_id)).mappings().first()
    if row is None:
        raise InvoiceNotFound(
            f"{kind.value.capitalize()} invoice {invoice_id} not found.", invoice_id=invoice_id
        )
    return row


def _line_items(conn: Connection, kind: InvoiceKind, invoice_id: int) -> List[LineItemOut]:
    if kind is InvoiceKind.SALE:
        stmt = (
            select(
                sale_invoice_items.c.id,
                sale_invoice_items.c.product_id,
                products.c.name.label("product_name"),
                products.c.barcode,
                sale_invoice_items.c.quantity,
                sale_invoice_items.c.unit_price,
                sale_invoice_items.c.subtotal,
            )
            .select_from(sale_invoice_items.join(products))
            .where(sale_invoice_items.c.sale_invoice_id == invoice_id)
            .order_by(sale_invoice_items.c.id)
        )
        return [LineItemOut(**row) for row in conn.execute(stmt).mappings().all()]

    # Purchase line items are the deliveries booked against the invoice
    stmt = (
        select(
            stock_entries.c.id,
            stock_entries.c.product_id,
            products.c.name.label("product_name"),
            products.c.barcode,
            stock_entries.c.added_stock,
            stock_entries.c.purchase_price,
            stock_entries.c.expiry_date,
        )
        .select_from(stock_entries.join(products))
        .where(stock_entries.c.purchase_invoice_id == invoice_id)
        .order_by(stock_entries.c.id)
    )
    items = []
    for row in conn.execute(stmt).mappings().all():
        items.append(
            LineItemOut(
                id=row["id"],
                product_id=row["product_id"],
                product_name=row["product_name"],
                barcode=row["barcode"],
                quantity=row["added_stock"],
                unit_price=row["purchase_price"],
                subtotal=to_money(row["purchase_price"] * row["added_stock"], "subtotal"),
                expiry_date=row["expiry_date"],
            )
        )
    return items


def _payments(conn: Connection, kind: InvoiceKind, invoice_id: int) -> List[PaymentOut]:
    stmt = (
        select(credit_payments.c.id, credit_payments.c.payment_date, credit_payments.c.amount_paid)
        .where(
            credit_payments.c.invoice_id == invoice_id,
            credit_payments.c.invoice_type == kind.value,
        )
        .order_by(credit_payments.c.payment_date.asc(), credit_payments.c.id.asc())
    )
    return [PaymentOut(**row) for row in conn.execute(stmt).mappings().all()]


def get_invoice(conn: Connection, kind, invoice_id: int) -> InvoiceOut:
    """
    Fully assembled invoice: header, line items and payment history.
    """
    kind = InvoiceKind(kind)
    row = _fetch_header(conn, kind, invoice_id)
    return InvoiceOut(
        **_summary_fields(kind, row),
        transaction_id=row["transaction_id"],
        bank_name=row["bank_name"],
        items=_line_items(conn, kind, invoice_id),
        payments=_payments(conn, kind, invoice_id),
    )


def get_payment_history(conn: Connection, kind, invoice_id: int) -> List[PaymentOut]:
    kind = InvoiceKind(kind)
    _fetch_header(conn, kind, invoice_id)
    return _payments(conn, kind, invoice_id)


def list_invoices_by_counterparty(
    conn: Connection,
    kind,
    counterparty_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    invoice_number: Optional[str] = None,
    search: Optional[str] = None,
) -> List[InvoiceSummaryOut]:
    """
    Invoices newest first.

    ``counterparty_id`` limits the list to one customer (sale) or vendor
    (purchase); without it every invoice is listed, walk-in sales included.
    Dates bound the issue date inclusively. ``invoice_number`` is a partial,
    case-insensitive match on the number; ``search`` matches the number, the
    counterparty name or the payment method.
    """
    kind = InvoiceKind(kind)
    if counterparty_id is not None:
        if kind is InvoiceKind.SALE:
            ensure_customer(conn, counterparty_id)
        else:
            ensure_vendor(conn, counterparty_id)

    table, stmt, party_id, issue_date = _header_select(kind)
    party = customers if kind is InvoiceKind.SALE else vendors

    conditions = []
    if counterparty_id is not None:
        conditions.append(party_id == counterparty_id)
    if start_date is not None:
        conditions.append(issue_date >= start_date)
    if end_date is not None:
        conditions.append(issue_date <= end_date)
    if invoice_number and invoice_number.strip():
        conditions.append(table.c.invoice_number.ilike(f"%{invoice_number.strip()}%"))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                table.c.invoice_number.ilike(pattern),
                party.c.name.ilike(pattern),
                table.c.payment_method.ilike(pattern),
            )
        )

    stmt = stmt.where(and_(true(), *conditions)).order_by(issue_date.desc(), table.c.id.desc())
    rows = conn.execute(stmt).mappings().all()
    return [InvoiceSummaryOut(**_summary_fields(kind, row)) for row in rows]


def list_outstanding_credit(conn: Connection, kind) -> List[InvoiceSummaryOut]:
    """Invoices with credit remaining, earliest due date first."""
    kind = InvoiceKind(kind)
    table, stmt, _, _ = _header_select(kind)
    stmt = stmt.where(table.c.credit_amount > 0).order_by(
        table.c.credit_due_date.asc(), table.c.id.asc()
    )
    rows = conn.execute(stmt).mappings().all()
    return [InvoiceSummaryOut(**_summary_fields(kind, row)) for row in rows]


def check_invoice_balance(conn: Connection, kind, invoice_id: int) -> BalanceReport:
    """
    Evaluate the invoice invariants against the stored header and the
    payment ledger.
    """
    kind = InvoiceKind(kind)
    row = _fetch_header(conn, kind, invoice_id)

    payments_total = conn.execute(
        select(func.coalesce(func.sum(credit_payments.c.amount_paid), 0)).where(
            credit_payments.c.invoice_id == invoice_id,
            credit_payments.c.invoice_type == kind.value,
        )
    ).scalar_one()
    payments_total = to_money(Decimal(str(payments_total)), "payments_total")

    total = row["total_bill_amount"]
    paid = row["amount_paid"]
    credit = row["credit_amount"]

    balanced = credit >= ZERO and same_amount(paid + credit, total)
    due_date_consistent = (row["credit_due_date"] is not None) == (not is_zero(credit))
    ledger_consistent = same_amount(row["amount_paid_at_issue"] + payments_total, total - credit)

    return BalanceReport(
        invoice_id=invoice_id,
        kind=kind,
        total_bill_amount=total,
        amount_paid=paid,
        amount_paid_at_issue=row["amount_paid_at_issue"],
        credit_amount=credit,
        payments_total=payments_total,
        credit_due_date=row["credit_due_date"],
        balanced=balanced,
        due_date_consistent=due_date_consistent,
        ledger_consistent=ledger_consistent,
        ok=balanced and due_date_consistent and ledger_consistent,
    )
