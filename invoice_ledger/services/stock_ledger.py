# invoice_ledger/services/stock_ledger.py
"""
Stock ledger.

On-hand quantity is cached in ``products.stock`` (floored at zero by a CHECK
constraint) and every delivery is recorded as an immutable ``stock_entries``
row. All mutations here run on a connection already inside the caller's unit
of work and lock the product row first, so they roll back with it.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection, RowMapping

from invoice_ledger.db.schema import products, stock_entries
from invoice_ledger.errors import (
    CreditDueDateRequired,
    ExpiryDateRequired,
    InsufficientStock,
    StockEntryNotFound,
    ValidationError,
)
from invoice_ledger.models.invoices import PaymentMethod
from invoice_ledger.models.stock import (
    PriceOut,
    ProductStockOut,
    StockEntryCorrection,
    StockEntryCreate,
    StockEntryOut,
)
from invoice_ledger.services.counterparties import ensure_vendor, get_product
from invoice_ledger.services.money import to_money
from invoice_ledger.services.payment_split import require_bank_details

logger = logging.getLogger(__name__)


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(
            f"Quantity must be a positive whole number, got {quantity!r}.", field="quantity"
        )
    return quantity


def _newest_entry(conn: Connection, product_id: int) -> Optional[RowMapping]:
    return conn.execute(
        select(stock_entries.c.id, stock_entries.c.purchase_price, stock_entries.c.sell_price)
        .where(stock_entries.c.product_id == product_id)
        .order_by(stock_entries.c.purchase_date.desc(), stock_entries.c.id.desc())
        .limit(1)
    ).mappings().first()


def reserve_and_decrement(conn: Connection, product_id: int, quantity: int) -> RowMapping:
    """
    Take ``quantity`` units of a product out of stock.

    Returns the product row as it was before the decrement (name, prices).
    """
    quantity = _check_quantity(quantity)
    product = get_product(conn, product_id, for_update=True)

    if quantity > product["stock"]:
        raise InsufficientStock(
            f"Not enough stock for {product['name']}. "
            f"Available: {product['stock']}, Requested: {quantity}",
            product_id=product_id,
            available=product["stock"],
            requested=quantity,
        )

    # Guarded write; the WHERE clause keeps the floor even without row locks
    result = conn.execute(
        update(products)
        .where(products.c.id == product_id, products.c.stock >= quantity)
        .values(stock=products.c.stock - quantity)
    )
    if result.rowcount != 1:
        raise InsufficientStock(
            f"Not enough stock for {product['name']}.", product_id=product_id
        )

    logger.debug("Stock of product %s decremented by %s", product_id, quantity)
    return product


def increment(
    conn: Connection,
    product_id: int,
    quantity: int,
    purchase_price,
    sell_price,
    purchase_date: date,
    expiry_date: Optional[date] = None,
    *,
    purchase_invoice_id: Optional[int] = None,
    payment_method: Optional[PaymentMethod] = None,
    vendor_id: Optional[int] = None,
    credit_due_date: Optional[date] = None,
    transaction_id: Optional[str] = None,
    bank_name: Optional[str] = None,
) -> int:
    """
    Record one delivery and add it to the product's stock.

    When this is the product's newest delivery by (purchase_date, id), its
    prices become the product's default prices. Returns the new stock entry id.
    """
    quantity = _check_quantity(quantity)
    purchase_price = to_money(purchase_price, "purchase_price")
    sell_price = to_money(sell_price, "sell_price")

    product = get_product(conn, product_id, for_update=True)
    if product["expiry_date_tracking"] and expiry_date is None:
        raise ExpiryDateRequired(
            f"Expiry date is required for product ID {product_id}.", product_id=product_id
        )
    final_expiry_date = expiry_date if product["expiry_date_tracking"] else None

    result = conn.execute(
        insert(stock_entries).values(
            product_id=product_id,
            purchase_invoice_id=purchase_invoice_id,
            added_stock=quantity,
            purchase_price=purchase_price,
            sell_price=sell_price,
            purchase_date=purchase_date,
            expiry_date=final_expiry_date,
            payment_method=PaymentMethod(payment_method).value if payment_method else None,
            credit_due_date=credit_due_date,
            transaction_id=transaction_id,
            bank_name=bank_name,
            vendor_id=vendor_id,
        )
    )
    entry_id = result.inserted_primary_key[0]

    values = {"stock": products.c.stock + quantity}
    # A backdated delivery adds stock but leaves the current prices alone
    if _newest_entry(conn, product_id)["id"] == entry_id:
        values.update(purchase_price=purchase_price, sell_price=sell_price)
    conn.execute(update(products).where(products.c.id == product_id).values(**values))

    logger.debug("Stock of product %s incremented by %s (entry %s)", product_id, quantity, entry_id)
    return entry_id


def get_stock_entry(conn: Connection, entry_id: int, for_update: bool = False) -> StockEntryOut:
    stmt = select(stock_entries).where(stock_entries.c.id == entry_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().first()
    if row is None:
        raise StockEntryNotFound(f"Stock entry {entry_id} not found.", entry_id=entry_id)
    return StockEntryOut.model_validate(dict(row))


def add_stock_entry(conn: Connection, entry: StockEntryCreate) -> StockEntryOut:
    """
    A stand-alone delivery recorded outside a purchase invoice.
    """
    method = PaymentMethod(entry.payment_method)

    credit_due_date = None
    if method in (PaymentMethod.CREDIT, PaymentMethod.CASH_AND_CREDIT):
        if entry.credit_due_date is None:
            raise CreditDueDateRequired(
                "Credit due date is required for credit/cash & credit payments."
            )
        credit_due_date = entry.credit_due_date

    transaction_id = bank_name = None
    if method is PaymentMethod.BANK_TRANSFER:
        require_bank_details(entry.transaction_id, entry.bank_name)
        transaction_id, bank_name = entry.transaction_id, entry.bank_name

    if entry.vendor_id is not None:
        ensure_vendor(conn, entry.vendor_id)

    entry_id = increment(
        conn,
        entry.product_id,
        entry.added_stock,
        entry.purchase_price,
        entry.sell_price,
        entry.purchase_date,
        entry.expiry_date,
        payment_method=method,
        vendor_id=entry.vendor_id,
        credit_due_date=credit_due_date,
        transaction_id=transaction_id,
        bank_name=bank_name,
    )
    logger.info("Stock entry %s added for product %s", entry_id, entry.product_id)
    return get_stock_entry(conn, entry_id)


def correct_stock_entry(
    conn: Connection, entry_id: int, correction: StockEntryCorrection
) -> StockEntryOut:
    """
    Out-of-band price/expiry correction of a delivery. Quantity is not editable
    and product stock is untouched.
    """
    entry = get_stock_entry(conn, entry_id, for_update=True)
    product = get_product(conn, entry.product_id)

    if product["expiry_date_tracking"] and correction.expiry_date is None:
        raise ExpiryDateRequired(
            f"Expiry date is required for product ID {entry.product_id}.",
            product_id=entry.product_id,
        )

    purchase_price = to_money(correction.purchase_price, "purchase_price")
    sell_price = to_money(correction.sell_price, "sell_price")
    conn.execute(
        update(stock_entries)
        .where(stock_entries.c.id == entry_id)
        .values(
            purchase_price=purchase_price,
            sell_price=sell_price,
            expiry_date=correction.expiry_date if product["expiry_date_tracking"] else None,
        )
    )
    if _newest_entry(conn, entry.product_id)["id"] == entry_id:
        conn.execute(
            update(products)
            .where(products.c.id == entry.product_id)
            .values(purchase_price=purchase_price, sell_price=sell_price)
        )
    logger.info("Stock entry %s corrected", entry_id)
    return get_stock_entry(conn, entry_id)


def latest_prices(conn: Connection, product_id: int) -> PriceOut:
    """
    Prices of the most recent delivery, falling back to the product defaults.
    """
    product = get_product(conn, product_id)
    row = _newest_entry(conn, product_id)

    source = row if row is not None else product
    return PriceOut(
        product_id=product_id,
        purchase_price=source["purchase_price"],
        sell_price=source["sell_price"],
    )


def stock_levels(conn: Connection) -> List[ProductStockOut]:
    last_purchase = (
        select(
            stock_entries.c.product_id,
            func.max(stock_entries.c.purchase_date).label("last_purchase_date"),
        )
        .group_by(stock_entries.c.product_id)
        .subquery()
    )
    stmt = (
        select(
            products.c.id,
            products.c.name,
            products.c.barcode,
            products.c.purchase_price,
            products.c.sell_price,
            products.c.expiry_date_tracking,
            products.c.stock,
            last_purchase.c.last_purchase_date,
        )
        .select_from(products.outerjoin(last_purchase, last_purchase.c.product_id == products.c.id))
        .order_by(products.c.name)
    )
    rows = conn.execute(stmt).mappings().all()
    return [ProductStockOut(**row) for row in rows]
