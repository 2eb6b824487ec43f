# invoice_ledger/errors.py
"""
Error taxonomy for the ledger engine.

Every failure the engine raises on purpose is a ``LedgerError`` carrying an
``ErrorKind`` tag, a machine-readable ``code`` and a ``retryable`` flag, so the
transport layer and the transaction runner can decide between retrying and
surfacing without looking at message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    FATAL = "fatal"


class LedgerError(Exception):
    kind: ErrorKind = ErrorKind.FATAL
    code: str = "ledger_error"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        retryable: Optional[bool] = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


# ---- NotFound ----

class NotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND
    code = "not_found"


class ProductNotFound(NotFoundError):
    code = "product_not_found"


class CounterpartyNotFound(NotFoundError):
    code = "counterparty_not_found"


class InvoiceNotFound(NotFoundError):
    code = "invoice_not_found"


class StockEntryNotFound(NotFoundError):
    code = "stock_entry_not_found"


# ---- Validation ----

class ValidationError(LedgerError):
    kind = ErrorKind.VALIDATION
    code = "validation_error"


class InsufficientStock(ValidationError):
    code = "insufficient_stock"


class ExpiryDateRequired(ValidationError):
    code = "expiry_date_required"


class TotalMismatch(ValidationError):
    code = "total_mismatch"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class PaymentDateRequired(ValidationError):
    code = "payment_date_required"


class CreditDueDateRequired(ValidationError):
    code = "credit_due_date_required"


class PaymentSplitMismatch(ValidationError):
    code = "payment_split_mismatch"


class PriceUnavailable(ValidationError):
    code = "price_unavailable"


class ProductVendorMismatch(ValidationError):
    code = "product_vendor_mismatch"


class DuplicateInvoiceNumber(ValidationError):
    code = "duplicate_invoice_number"


class BankDetailsRequired(ValidationError):
    code = "bank_details_required"


# ---- Infrastructure ----

class ConflictError(LedgerError):
    """Concurrent modification (lock contention, serialization failure)."""

    kind = ErrorKind.CONFLICT
    code = "conflict"
    retryable = True


class TransientError(LedgerError):
    """Connection-level failure; safe to retry when nothing was committed."""

    kind = ErrorKind.TRANSIENT
    code = "transient"
    retryable = True


class FatalError(LedgerError):
    kind = ErrorKind.FATAL
    code = "internal_error"
