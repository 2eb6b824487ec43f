# invoice_ledger/models/stock.py

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from invoice_ledger.models.invoices import PaymentMethod


class StockEntryCreate(BaseModel):
    product_id: int
    added_stock: int = Field(gt=0)
    purchase_price: Decimal = Field(ge=0)
    sell_price: Decimal = Field(ge=0)
    purchase_date: date
    expiry_date: Optional[date] = None
    payment_method: PaymentMethod
    credit_due_date: Optional[date] = None
    transaction_id: Optional[str] = None
    bank_name: Optional[str] = None
    vendor_id: Optional[int] = None


class StockEntryCorrection(BaseModel):
    purchase_price: Decimal = Field(ge=0)
    sell_price: Decimal = Field(ge=0)
    expiry_date: Optional[date] = None


class StockEntryOut(BaseModel):
    id: int
    product_id: int
    purchase_invoice_id: Optional[int] = None
    added_stock: int
    purchase_price: Decimal
    sell_price: Decimal
    purchase_date: date
    expiry_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    vendor_id: Optional[int] = None

    class Config:
        from_attributes = True


class ProductStockOut(BaseModel):
    id: int
    name: str
    barcode: Optional[str] = None
    purchase_price: Optional[Decimal] = None
    sell_price: Optional[Decimal] = None
    expiry_date_tracking: bool
    stock: int
    last_purchase_date: Optional[date] = None


class PriceOut(BaseModel):
    product_id: int
    purchase_price: Optional[Decimal] = None
    sell_price: Optional[Decimal] = None
