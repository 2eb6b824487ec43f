"""Shared pytest fixtures: a throwaway SQLite ledger per test plus seed helpers."""

from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert, select

from invoice_ledger.config import Settings
from invoice_ledger.db.engine import Database
from invoice_ledger.db.schema import customers, products, vendors
from invoice_ledger.main import create_app
from invoice_ledger.models.invoices import (
    PurchaseInvoiceCreate,
    SaleInvoiceCreate,
)
from invoice_ledger.services import invoice_factory

from tests.helpers import TODAY


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'ledger.sqlite'}",
        pool_size=2,
        max_overflow=2,
        pool_timeout=5,
        retry_delay=0,
        create_schema=True,
    )


@pytest.fixture
def database(settings):
    db = Database(settings)
    db.create_schema()
    yield db
    db.dispose()


class Seeder:
    """Inserts collaborator rows that plain CRUD would normally own."""

    def __init__(self, database: Database):
        self.database = database

    def _insert(self, table, **values) -> int:
        def work(conn):
            return conn.execute(insert(table).values(**values)).inserted_primary_key[0]

        return self.database.run_in_transaction(work)

    def customer(self, name: str = "Acme Traders") -> int:
        return self._insert(customers, name=name, phone="555-0100")

    def vendor(self, name: str = "Wholesale Co") -> int:
        return self._insert(vendors, name=name, phone="555-0200")

    def product(
        self,
        name: str = "Widget",
        stock: int = 0,
        sell_price: Optional[str] = "10.00",
        purchase_price: Optional[str] = "6.00",
        vendor_id: Optional[int] = None,
        expiry_date_tracking: bool = False,
    ) -> int:
        return self._insert(
            products,
            name=name,
            stock=stock,
            sell_price=Decimal(sell_price) if sell_price is not None else None,
            purchase_price=Decimal(purchase_price) if purchase_price is not None else None,
            vendor_id=vendor_id,
            expiry_date_tracking=expiry_date_tracking,
        )

    def stock_of(self, product_id: int) -> int:
        def work(conn):
            return conn.execute(
                select(products.c.stock).where(products.c.id == product_id)
            ).scalar_one()

        return self.database.run_read(work)


@pytest.fixture
def seed(database):
    return Seeder(database)


@pytest.fixture
def make_sale(database):
    """Create a sale invoice through the factory inside a real unit of work."""

    def _make(**fields):
        fields.setdefault("payment_method", "cash")
        request = SaleInvoiceCreate(**fields)
        return database.run_in_transaction(
            invoice_factory.create_sale_invoice, request, issue_date=TODAY
        )

    return _make


@pytest.fixture
def make_purchase(database):
    def _make(**fields):
        fields.setdefault("payment_method", "cash")
        request = PurchaseInvoiceCreate(**fields)
        return database.run_in_transaction(
            invoice_factory.create_purchase_invoice, request, issue_date=TODAY
        )

    return _make


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api_seed(client):
    return Seeder(client.app.state.database)
