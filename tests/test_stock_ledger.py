"""Tests for stock movements: decrement floor, deliveries and corrections."""

from datetime import date
from decimal import Decimal

import pytest

from invoice_ledger.errors import (
    BankDetailsRequired,
    CreditDueDateRequired,
    CounterpartyNotFound,
    ExpiryDateRequired,
    InsufficientStock,
    ProductNotFound,
    StockEntryNotFound,
    ValidationError,
)
from invoice_ledger.models.stock import StockEntryCorrection, StockEntryCreate
from invoice_ledger.services import stock_ledger
from invoice_ledger.services.counterparties import get_product


# ---------------------------------------------------------------------------
# reserve_and_decrement
# ---------------------------------------------------------------------------


def test_decrement_reduces_stock(database, seed):
    product_id = seed.product(stock=5)

    product = database.run_in_transaction(stock_ledger.reserve_and_decrement, product_id, 2)

    assert product["name"] == "Widget"
    assert seed.stock_of(product_id) == 3


def test_decrement_to_exactly_zero_is_allowed(database, seed):
    product_id = seed.product(stock=4)

    database.run_in_transaction(stock_ledger.reserve_and_decrement, product_id, 4)

    assert seed.stock_of(product_id) == 0


def test_decrement_beyond_stock_fails_and_keeps_stock(database, seed):
    product_id = seed.product(stock=3)

    with pytest.raises(InsufficientStock) as excinfo:
        database.run_in_transaction(stock_ledger.reserve_and_decrement, product_id, 10)

    assert excinfo.value.context["available"] == 3
    assert seed.stock_of(product_id) == 3


def test_decrement_unknown_product(database):
    with pytest.raises(ProductNotFound):
        database.run_in_transaction(stock_ledger.reserve_and_decrement, 999, 1)


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_decrement_rejects_non_positive_or_fractional_quantity(database, seed, quantity):
    product_id = seed.product(stock=5)

    with pytest.raises(ValidationError):
        database.run_in_transaction(stock_ledger.reserve_and_decrement, product_id, quantity)

    assert seed.stock_of(product_id) == 5


# ---------------------------------------------------------------------------
# increment
# ---------------------------------------------------------------------------


def test_increment_records_entry_and_updates_product(database, seed):
    product_id = seed.product(stock=1)

    entry_id = database.run_in_transaction(
        stock_ledger.increment, product_id, 4, "7.505", "12", date(2024, 3, 1)
    )

    entry = database.run_read(stock_ledger.get_stock_entry, entry_id)
    assert entry.added_stock == 4
    assert entry.purchase_price == Decimal("7.51")
    assert entry.sell_price == Decimal("12.00")
    assert seed.stock_of(product_id) == 5

    prices = database.run_read(stock_ledger.latest_prices, product_id)
    assert prices.sell_price == Decimal("12.00")


def test_increment_requires_expiry_for_tracked_product(database, seed):
    product_id = seed.product(expiry_date_tracking=True)

    with pytest.raises(ExpiryDateRequired):
        database.run_in_transaction(
            stock_ledger.increment, product_id, 1, "1.00", "2.00", date(2024, 3, 1)
        )

    assert seed.stock_of(product_id) == 0


def test_increment_drops_expiry_for_untracked_product(database, seed):
    product_id = seed.product()

    entry_id = database.run_in_transaction(
        stock_ledger.increment, product_id, 1, "1.00", "2.00", date(2024, 3, 1), date(2025, 1, 1)
    )

    assert database.run_read(stock_ledger.get_stock_entry, entry_id).expiry_date is None


def test_increment_rejects_unparseable_price(database, seed):
    product_id = seed.product()

    with pytest.raises(ValidationError):
        database.run_in_transaction(
            stock_ledger.increment, product_id, 1, "abc", "2.00", date(2024, 3, 1)
        )

    assert seed.stock_of(product_id) == 0


def test_backdated_delivery_adds_stock_but_keeps_current_prices(database, seed):
    product_id = seed.product()
    database.run_in_transaction(
        stock_ledger.increment, product_id, 2, "10.00", "14.00", date(2024, 5, 10)
    )

    database.run_in_transaction(
        stock_ledger.increment, product_id, 3, "6.00", "9.00", date(2024, 1, 1)
    )

    product = database.run_read(get_product, product_id)
    assert product["sell_price"] == Decimal("14.00")
    assert product["purchase_price"] == Decimal("10.00")
    assert seed.stock_of(product_id) == 5
    assert database.run_read(stock_ledger.latest_prices, product_id).sell_price == Decimal("14.00")


def test_increment_unknown_product(database):
    with pytest.raises(ProductNotFound):
        database.run_in_transaction(
            stock_ledger.increment, 42, 1, "1.00", "2.00", date(2024, 3, 1)
        )


# ---------------------------------------------------------------------------
# Stand-alone entries and corrections
# ---------------------------------------------------------------------------


def _entry(product_id, **overrides):
    fields = dict(
        product_id=product_id,
        added_stock=10,
        purchase_price="5.00",
        sell_price="8.00",
        purchase_date=date(2024, 4, 1),
        payment_method="cash",
    )
    fields.update(overrides)
    return StockEntryCreate(**fields)


def test_add_stock_entry(database, seed):
    vendor_id = seed.vendor()
    product_id = seed.product(stock=2)

    entry = database.run_in_transaction(
        stock_ledger.add_stock_entry, _entry(product_id, vendor_id=vendor_id)
    )

    assert entry.vendor_id == vendor_id
    assert entry.purchase_invoice_id is None
    assert seed.stock_of(product_id) == 12


def test_add_stock_entry_on_credit_needs_due_date(database, seed):
    product_id = seed.product()

    with pytest.raises(CreditDueDateRequired):
        database.run_in_transaction(
            stock_ledger.add_stock_entry, _entry(product_id, payment_method="credit")
        )


def test_add_stock_entry_bank_transfer_needs_details(database, seed):
    product_id = seed.product()

    with pytest.raises(BankDetailsRequired):
        database.run_in_transaction(
            stock_ledger.add_stock_entry,
            _entry(product_id, payment_method="bank_transfer", transaction_id="TX-1"),
        )


def test_add_stock_entry_unknown_vendor(database, seed):
    product_id = seed.product()

    with pytest.raises(CounterpartyNotFound):
        database.run_in_transaction(
            stock_ledger.add_stock_entry, _entry(product_id, vendor_id=77)
        )

    assert seed.stock_of(product_id) == 0


def test_correct_stock_entry_changes_prices_only(database, seed):
    product_id = seed.product()
    entry = database.run_in_transaction(stock_ledger.add_stock_entry, _entry(product_id))

    corrected = database.run_in_transaction(
        stock_ledger.correct_stock_entry,
        entry.id,
        StockEntryCorrection(purchase_price="4.50", sell_price="9.25"),
    )

    assert corrected.purchase_price == Decimal("4.50")
    assert corrected.sell_price == Decimal("9.25")
    assert corrected.added_stock == 10
    assert seed.stock_of(product_id) == 10


def test_correcting_newest_entry_moves_product_prices(database, seed):
    product_id = seed.product()
    older = database.run_in_transaction(
        stock_ledger.add_stock_entry, _entry(product_id, purchase_date=date(2024, 3, 1))
    )
    newest = database.run_in_transaction(stock_ledger.add_stock_entry, _entry(product_id))
    correction = StockEntryCorrection(purchase_price="4.00", sell_price="7.00")

    database.run_in_transaction(stock_ledger.correct_stock_entry, older.id, correction)
    assert database.run_read(get_product, product_id)["sell_price"] == Decimal("8.00")

    database.run_in_transaction(stock_ledger.correct_stock_entry, newest.id, correction)
    assert database.run_read(get_product, product_id)["sell_price"] == Decimal("7.00")


def test_correct_stock_entry_requires_expiry_for_tracked_product(database, seed):
    product_id = seed.product(expiry_date_tracking=True)
    entry = database.run_in_transaction(
        stock_ledger.add_stock_entry, _entry(product_id, expiry_date=date(2025, 1, 1))
    )

    with pytest.raises(ExpiryDateRequired):
        database.run_in_transaction(
            stock_ledger.correct_stock_entry,
            entry.id,
            StockEntryCorrection(purchase_price="1.00", sell_price="2.00"),
        )


def test_correct_unknown_stock_entry(database):
    with pytest.raises(StockEntryNotFound):
        database.run_in_transaction(
            stock_ledger.correct_stock_entry,
            5,
            StockEntryCorrection(purchase_price="1.00", sell_price="2.00"),
        )


def test_latest_prices_fall_back_to_product_defaults(database, seed):
    product_id = seed.product(sell_price="3.30", purchase_price="2.20")

    prices = database.run_read(stock_ledger.latest_prices, product_id)

    assert prices.sell_price == Decimal("3.30")
    assert prices.purchase_price == Decimal("2.20")


def test_stock_levels_report_last_purchase_date(database, seed):
    widget = seed.product(name="Widget")
    seed.product(name="Gadget", stock=7)
    database.run_in_transaction(stock_ledger.add_stock_entry, _entry(widget))

    levels = {level.name: level for level in database.run_read(stock_ledger.stock_levels)}

    assert levels["Widget"].stock == 10
    assert levels["Widget"].last_purchase_date == date(2024, 4, 1)
    assert levels["Gadget"].stock == 7
    assert levels["Gadget"].last_purchase_date is None
