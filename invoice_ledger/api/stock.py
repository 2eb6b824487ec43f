# invoice_ledger/api/stock.py

from typing import List

from fastapi import APIRouter, Depends

from invoice_ledger.api.deps import get_database
from invoice_ledger.db.engine import Database
from invoice_ledger.models.stock import (
    PriceOut,
    ProductStockOut,
    StockEntryCorrection,
    StockEntryCreate,
    StockEntryOut,
)
from invoice_ledger.services import stock_ledger

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("", response_model=List[ProductStockOut])
def list_stock(db: Database = Depends(get_database)) -> List[ProductStockOut]:
    """
    On-hand quantity per product with its last delivery date.
    """
    return db.run_read(stock_ledger.stock_levels)


@router.post("/entries", response_model=StockEntryOut, status_code=201)
def add_stock_entry(
    payload: StockEntryCreate, db: Database = Depends(get_database)
) -> StockEntryOut:
    return db.run_in_transaction(stock_ledger.add_stock_entry, payload)


@router.get("/entries/recent/{product_id}", response_model=PriceOut)
def recent_prices(product_id: int, db: Database = Depends(get_database)) -> PriceOut:
    return db.run_read(stock_ledger.latest_prices, product_id)


@router.get("/entries/{entry_id}", response_model=StockEntryOut)
def get_stock_entry(entry_id: int, db: Database = Depends(get_database)) -> StockEntryOut:
    return db.run_read(stock_ledger.get_stock_entry, entry_id)


@router.put("/entries/{entry_id}", response_model=StockEntryOut)
def correct_stock_entry(
    entry_id: int,
    payload: StockEntryCorrection,
    db: Database = Depends(get_database),
) -> StockEntryOut:
    """
    Price/expiry correction of a recorded delivery; quantity cannot change.
    """
    return db.run_in_transaction(stock_ledger.correct_stock_entry, entry_id, payload)
