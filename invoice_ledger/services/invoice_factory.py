# invoice_ledger/services/invoice_factory.py
"""
Invoice factory: creates a sale or purchase invoice together with its line
items and the matching stock movements.

Both entry points expect to run inside one unit of work
(``Database.run_in_transaction``). Any error raised here aborts the whole
transaction, so stock is never moved without the invoice that moved it.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import insert
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from invoice_ledger.db.schema import purchase_invoices, sale_invoice_items, sale_invoices
from invoice_ledger.errors import (
    ConflictError,
    DuplicateInvoiceNumber,
    ExpiryDateRequired,
    PriceUnavailable,
    ProductVendorMismatch,
    TotalMismatch,
    ValidationError,
)
from invoice_ledger.models.invoices import (
    InvoiceCreatedOut,
    InvoiceKind,
    PurchaseInvoiceCreate,
    SaleInvoiceCreate,
)
from invoice_ledger.services import stock_ledger
from invoice_ledger.services.counterparties import ensure_customer, ensure_vendor, get_product
from invoice_ledger.services.money import (
    ZERO,
    generate_invoice_number,
    optional_money,
    same_amount,
    to_money,
)
from invoice_ledger.services.payment_split import PaymentSplit, resolve_payment_split

logger = logging.getLogger(__name__)


def _require_items(items) -> None:
    if not items:
        raise ValidationError("Products array is required and cannot be empty.", field="items")


def _check_total(computed: Decimal, supplied) -> None:
    supplied = optional_money(supplied, "total_bill_amount")
    if supplied is not None and not same_amount(computed, supplied):
        raise TotalMismatch(
            f"Supplied total {supplied} does not match line items total {computed}.",
            computed=str(computed),
            supplied=str(supplied),
        )
    if computed <= ZERO:
        raise ValidationError("Total bill amount must be greater than 0.", field="total_bill_amount")


def _insert_header(conn: Connection, table, number: Optional[str], values: Dict) -> Tuple[int, str]:
    """
    Insert an invoice header under a supplied or generated invoice number.

    A clash on a supplied number is the caller's mistake; a clash on a
    generated one is a retryable conflict (the unit of work is replayed and
    draws a new number).
    """
    invoice_number = number.strip() if number and number.strip() else None
    generated = invoice_number is None
    if generated:
        invoice_number = generate_invoice_number()

    try:
        result = conn.execute(insert(table).values(invoice_number=invoice_number, **values))
    except IntegrityError as exc:
        if "invoice_number" not in str(exc.orig).lower():
            raise
        if generated:
            raise ConflictError(
                "Generated invoice number collided; retrying.", code="invoice_number_collision"
            ) from exc
        raise DuplicateInvoiceNumber(
            f"Invoice number {invoice_number} already exists.", invoice_number=invoice_number
        ) from exc
    return result.inserted_primary_key[0], invoice_number


def _created(kind: InvoiceKind, invoice_id: int, number: str, total: Decimal, split: PaymentSplit):
    return InvoiceCreatedOut(
        invoice_id=invoice_id,
        invoice_number=number,
        kind=kind,
        total_bill_amount=total,
        amount_paid=split.amount_paid,
        credit_amount=split.credit_amount,
        credit_due_date=split.credit_due_date,
    )


def create_sale_invoice(
    conn: Connection, request: SaleInvoiceCreate, issue_date: Optional[date] = None
) -> InvoiceCreatedOut:
    _require_items(request.items)

    lines: List[Dict] = []
    for item in request.items:
        product = stock_ledger.reserve_and_decrement(conn, item.product_id, item.quantity)

        # Caller's price wins; otherwise the newest delivery's sell price,
        # then the product default when nothing was ever delivered.
        if item.unit_price is not None:
            unit_price = to_money(item.unit_price, "unit_price")
        else:
            unit_price = stock_ledger.latest_prices(conn, item.product_id).sell_price
        if unit_price is None:
            raise PriceUnavailable(
                f"No sell price available for {product['name']}; supply unit_price.",
                product_id=item.product_id,
            )
        lines.append(
            {
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "subtotal": to_money(unit_price * item.quantity, "subtotal"),
            }
        )

    ensure_customer(conn, request.customer_id)

    total = sum((line["subtotal"] for line in lines), ZERO)
    _check_total(total, request.total_bill_amount)
    split = resolve_payment_split(total, request, credit_amount=request.credit_amount)

    invoice_id, invoice_number = _insert_header(
        conn,
        sale_invoices,
        request.invoice_number,
        {
            "customer_id": request.customer_id,
            "sale_date": request.sale_date or issue_date or date.today(),
            "payment_method": split.payment_method.value,
            "total_bill_amount": total,
            "amount_paid": split.amount_paid,
            "amount_paid_at_issue": split.amount_paid,
            "credit_amount": split.credit_amount,
            "credit_due_date": split.credit_due_date,
            "transaction_id": split.transaction_id,
            "bank_name": split.bank_name,
        },
    )

    conn.execute(
        insert(sale_invoice_items),
        [dict(line, sale_invoice_id=invoice_id) for line in lines],
    )

    logger.info(
        "Sale invoice %s (id=%s) recorded: %s line(s), total %s, credit %s",
        invoice_number, invoice_id, len(lines), total, split.credit_amount,
    )
    return _created(InvoiceKind.SALE, invoice_id, invoice_number, total, split)


def create_purchase_invoice(
    conn: Connection, request: PurchaseInvoiceCreate, issue_date: Optional[date] = None
) -> InvoiceCreatedOut:
    _require_items(request.items)
    ensure_vendor(conn, request.vendor_id)

    # Validate every line before the first write
    total = ZERO
    for index, item in enumerate(request.items):
        product = get_product(conn, item.product_id)
        if product["vendor_id"] is not None and product["vendor_id"] != request.vendor_id:
            raise ProductVendorMismatch(
                f"Product with ID {item.product_id} does not belong to vendor ID {request.vendor_id}.",
                product_id=item.product_id,
                index=index,
            )
        if product["expiry_date_tracking"] and item.expiry_date is None:
            raise ExpiryDateRequired(
                f"Expiry date is required for product ID {item.product_id}.",
                product_id=item.product_id,
                index=index,
            )
        purchase_price = to_money(item.purchase_price, "purchase_price")
        to_money(item.sell_price, "sell_price")
        total += to_money(purchase_price * item.quantity, "subtotal")

    _check_total(total, request.total_bill_amount)
    split = resolve_payment_split(total, request)
    purchase_date = request.purchase_date or issue_date or date.today()

    invoice_id, invoice_number = _insert_header(
        conn,
        purchase_invoices,
        request.invoice_number,
        {
            "vendor_id": request.vendor_id,
            "purchase_date": purchase_date,
            "payment_method": split.payment_method.value,
            "total_bill_amount": total,
            "amount_paid": split.amount_paid,
            "amount_paid_at_issue": split.amount_paid,
            "credit_amount": split.credit_amount,
            "credit_due_date": split.credit_due_date,
            "transaction_id": split.transaction_id,
            "bank_name": split.bank_name,
        },
    )

    for item in request.items:
        stock_ledger.increment(
            conn,
            item.product_id,
            item.quantity,
            item.purchase_price,
            item.sell_price,
            purchase_date,
            item.expiry_date,
            purchase_invoice_id=invoice_id,
            payment_method=split.payment_method,
            vendor_id=request.vendor_id,
        )

    logger.info(
        "Purchase invoice %s (id=%s) recorded: %s line(s), total %s, credit %s",
        invoice_number, invoice_id, len(request.items), total, split.credit_amount,
    )
    return _created(InvoiceKind.PURCHASE, invoice_id, invoice_number, total, split)
