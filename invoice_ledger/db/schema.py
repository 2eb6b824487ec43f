# invoice_ledger/db/schema.py

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Boolean, DateTime,
    Numeric, Date, ForeignKey, CheckConstraint, Text, Index, func
)

metadata = MetaData()

MONEY = Numeric(18, 2)

# ---- Collaborator tables (plain CRUD lives elsewhere) ----

customers = Table(
    "customers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("phone", String, nullable=True),
)

vendors = Table(
    "vendors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("phone", String, nullable=True),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("barcode", String, nullable=True, unique=True),
    Column("purchase_price", MONEY, nullable=True),
    Column("sell_price", MONEY, nullable=True),
    Column("stock", Integer, nullable=False, server_default="0"),
    Column("vendor_id", Integer, ForeignKey("vendors.id"), nullable=True),
    Column("expiry_date_tracking", Boolean, nullable=False, server_default="0"),
    CheckConstraint("stock >= 0", name="ck_products_stock_nonneg"),
    CheckConstraint("purchase_price >= 0", name="ck_products_purchase_price_nonneg"),
    CheckConstraint("sell_price >= 0", name="ck_products_sell_price_nonneg"),
)

# ---- Invoice headers ----

sale_invoices = Table(
    "sale_invoices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("invoice_number", Text, unique=True, nullable=False),
    Column("customer_id", Integer, ForeignKey("customers.id"), nullable=True),  # NULL = walk-in
    Column("sale_date", Date, nullable=False),
    Column("payment_method", String(32), nullable=False),
    Column("total_bill_amount", MONEY, nullable=False),
    Column("amount_paid", MONEY, nullable=False),
    Column("amount_paid_at_issue", MONEY, nullable=False),
    Column("credit_amount", MONEY, nullable=False),
    Column("credit_due_date", Date, nullable=True),
    Column("last_payment_date", Date, nullable=True),
    Column("transaction_id", String, nullable=True),
    Column("bank_name", String, nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint("total_bill_amount > 0", name="ck_sale_invoices_total_pos"),
    CheckConstraint("amount_paid >= 0", name="ck_sale_invoices_paid_nonneg"),
    CheckConstraint("amount_paid_at_issue >= 0", name="ck_sale_invoices_paid_at_issue_nonneg"),
    CheckConstraint("credit_amount >= 0", name="ck_sale_invoices_credit_nonneg"),
)

purchase_invoices = Table(
    "purchase_invoices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("invoice_number", Text, unique=True, nullable=False),
    Column("vendor_id", Integer, ForeignKey("vendors.id"), nullable=False),
    Column("purchase_date", Date, nullable=False),
    Column("payment_method", String(32), nullable=False),
    Column("total_bill_amount", MONEY, nullable=False),
    Column("amount_paid", MONEY, nullable=False),
    Column("amount_paid_at_issue", MONEY, nullable=False),
    Column("credit_amount", MONEY, nullable=False),
    Column("credit_due_date", Date, nullable=True),
    Column("last_payment_date", Date, nullable=True),
    Column("transaction_id", String, nullable=True),
    Column("bank_name", String, nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint("total_bill_amount > 0", name="ck_purchase_invoices_total_pos"),
    CheckConstraint("amount_paid >= 0", name="ck_purchase_invoices_paid_nonneg"),
    CheckConstraint("amount_paid_at_issue >= 0", name="ck_purchase_invoices_paid_at_issue_nonneg"),
    CheckConstraint("credit_amount >= 0", name="ck_purchase_invoices_credit_nonneg"),
)

# ---- Line items ----

sale_invoice_items = Table(
    "sale_invoice_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sale_invoice_id", Integer, ForeignKey("sale_invoices.id"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", MONEY, nullable=False),
    Column("subtotal", MONEY, nullable=False),
    CheckConstraint("quantity > 0", name="ck_sale_invoice_items_qty_pos"),
    CheckConstraint("unit_price >= 0", name="ck_sale_invoice_items_price_nonneg"),
    Index("ix_sale_invoice_items_invoice", "sale_invoice_id"),
)

# Deliveries. Rows with purchase_invoice_id set are that invoice's line items.
stock_entries = Table(
    "stock_entries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("purchase_invoice_id", Integer, ForeignKey("purchase_invoices.id"), nullable=True),
    Column("added_stock", Integer, nullable=False),
    Column("purchase_price", MONEY, nullable=False),
    Column("sell_price", MONEY, nullable=False),
    Column("purchase_date", Date, nullable=False),
    Column("expiry_date", Date, nullable=True),
    Column("payment_method", String(32), nullable=True),
    Column("credit_due_date", Date, nullable=True),
    Column("transaction_id", String, nullable=True),
    Column("bank_name", String, nullable=True),
    Column("vendor_id", Integer, ForeignKey("vendors.id"), nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint("added_stock > 0", name="ck_stock_entries_added_pos"),
    CheckConstraint("purchase_price >= 0", name="ck_stock_entries_purchase_price_nonneg"),
    CheckConstraint("sell_price >= 0", name="ck_stock_entries_sell_price_nonneg"),
    Index("ix_stock_entries_product", "product_id"),
    Index("ix_stock_entries_invoice", "purchase_invoice_id"),
)

# ---- Append-only payment ledger, shared by both invoice kinds ----

credit_payments = Table(
    "credit_payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("invoice_id", Integer, nullable=False),
    Column("invoice_type", String(16), nullable=False),
    Column("payment_date", Date, nullable=False),
    Column("amount_paid", MONEY, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint("amount_paid > 0", name="ck_credit_payments_amount_pos"),
    CheckConstraint(
        "invoice_type IN ('sale', 'purchase')", name="ck_credit_payments_invoice_type"
    ),
    Index("ix_credit_payments_invoice", "invoice_type", "invoice_id"),
)


def invoice_table(kind: str) -> Table:
    """Header table for an invoice kind ('sale' or 'purchase')."""
    return sale_invoices if kind == "sale" else purchase_invoices
