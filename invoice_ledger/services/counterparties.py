# invoice_ledger/services/counterparties.py
"""
Existence checks against the collaborator tables (customers, vendors,
products). Plain CRUD for these lives outside the ledger engine.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection, RowMapping

from invoice_ledger.db.schema import customers, products, vendors
from invoice_ledger.errors import CounterpartyNotFound, ProductNotFound


def ensure_customer(conn: Connection, customer_id: Optional[int]) -> Optional[RowMapping]:
    # None is a walk-in sale and always valid
    if customer_id is None:
        return None
    row = conn.execute(
        select(customers.c.id, customers.c.name).where(customers.c.id == customer_id)
    ).mappings().first()
    if row is None:
        raise CounterpartyNotFound(
            f"Customer with ID {customer_id} does not exist.", customer_id=customer_id
        )
    return row


def ensure_vendor(conn: Connection, vendor_id: int) -> RowMapping:
    row = conn.execute(
        select(vendors.c.id, vendors.c.name).where(vendors.c.id == vendor_id)
    ).mappings().first()
    if row is None:
        raise CounterpartyNotFound(
            f"Vendor with ID {vendor_id} not found.", vendor_id=vendor_id
        )
    return row


def get_product(conn: Connection, product_id: int, for_update: bool = False) -> RowMapping:
    stmt = select(products).where(products.c.id == product_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().first()
    if row is None:
        raise ProductNotFound(
            f"Product with ID {product_id} not found.", product_id=product_id
        )
    return row
