# invoice_ledger/models/invoices.py

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class InvoiceKind(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT = "credit"
    CASH_AND_CREDIT = "cash_and_credit"


class CreditStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    SETTLED = "settled"


# ---- Requests ----

class PaymentTerms(BaseModel):
    """Fields that decide how an invoice total splits into paid and credit."""

    payment_method: PaymentMethod
    amount_paid: Optional[Decimal] = Field(default=None, ge=0)
    credit_due_date: Optional[date] = None
    transaction_id: Optional[str] = None
    bank_name: Optional[str] = None


class SaleLineItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    # Omitted -> the product's current sell price
    unit_price: Optional[Decimal] = Field(default=None, ge=0)


class SaleInvoiceCreate(PaymentTerms):
    invoice_number: Optional[str] = None
    customer_id: Optional[int] = None
    sale_date: Optional[date] = None
    items: List[SaleLineItemIn]
    total_bill_amount: Optional[Decimal] = Field(default=None, ge=0)
    credit_amount: Optional[Decimal] = Field(default=None, ge=0)


class PurchaseLineItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    purchase_price: Decimal = Field(ge=0)
    sell_price: Decimal = Field(ge=0)
    expiry_date: Optional[date] = None


class PurchaseInvoiceCreate(PaymentTerms):
    invoice_number: Optional[str] = None
    vendor_id: int
    purchase_date: Optional[date] = None
    items: List[PurchaseLineItemIn]
    # Cross-check only; the stored total is always computed from the items
    total_bill_amount: Optional[Decimal] = Field(default=None, ge=0)


class CreditPaymentIn(BaseModel):
    amount: Decimal
    payment_date: Optional[date] = None
    new_due_date: Optional[date] = None


# ---- Responses ----

class InvoiceCreatedOut(BaseModel):
    invoice_id: int
    invoice_number: str
    kind: InvoiceKind
    total_bill_amount: Decimal
    amount_paid: Decimal
    credit_amount: Decimal
    credit_due_date: Optional[date] = None


class CreditPaymentOut(BaseModel):
    payment_id: int
    invoice_id: int
    kind: InvoiceKind
    amount_paid: Decimal
    credit_amount: Decimal
    credit_due_date: Optional[date] = None
    credit_status: CreditStatus


class LineItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    barcode: Optional[str] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    expiry_date: Optional[date] = None

    class Config:
        from_attributes = True


class PaymentOut(BaseModel):
    id: int
    payment_date: date
    amount_paid: Decimal

    class Config:
        from_attributes = True


class InvoiceSummaryOut(BaseModel):
    id: int
    kind: InvoiceKind
    invoice_number: str
    counterparty_id: Optional[int] = None
    counterparty_name: Optional[str] = None
    issue_date: date
    payment_method: PaymentMethod
    total_bill_amount: Decimal
    amount_paid: Decimal
    credit_amount: Decimal
    credit_due_date: Optional[date] = None
    last_payment_date: Optional[date] = None
    credit_status: CreditStatus


class InvoiceOut(InvoiceSummaryOut):
    transaction_id: Optional[str] = None
    bank_name: Optional[str] = None
    items: List[LineItemOut]
    payments: List[PaymentOut]


class BalanceReport(BaseModel):
    invoice_id: int
    kind: InvoiceKind
    total_bill_amount: Decimal
    amount_paid: Decimal
    amount_paid_at_issue: Decimal
    credit_amount: Decimal
    payments_total: Decimal
    credit_due_date: Optional[date] = None
    balanced: bool
    due_date_consistent: bool
    ledger_consistent: bool
    ok: bool
