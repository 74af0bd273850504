"""Domain exception hierarchy for BizLedger.

All domain-specific exceptions inherit from BizLedgerError. This allows the
business-event handlers that call into the core to catch every core failure
with a single base class while preserving specificity for individual cases.

Nothing here is translated for end users: errors bubble unchanged to the
immediate caller, which owns retry policy and user-facing messages.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class BizLedgerError(Exception):
    """Base exception for all BizLedger errors.

    Includes an error_code and status_code for the outer API layer, plus an
    optional context mapping with the identifiers involved.
    """

    error_code: str = "BIZLEDGER_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Journal Errors
# =============================================================================


class JournalError(BizLedgerError):
    """Base exception for double-entry journal errors."""

    error_code = "JOURNAL_ERROR"
    status_code = 400


class ImbalancedJournalError(JournalError):
    """Raised when a proposed journal's debits and credits differ."""

    error_code = "IMBALANCED_JOURNAL"
    status_code = 422

    def __init__(
        self,
        debit_total: Decimal | str,
        credit_total: Decimal | str,
        *,
        currency: str | None = None,
        journal_id: UUID | None = None,
        reason: str | None = None,
    ) -> None:
        message = reason or (
            f"Ledger imbalance: debits={debit_total}, credits={credit_total}"
        )
        if currency and not reason:
            message += f" ({currency})"
        context: dict[str, Any] = {
            "debit_total": str(debit_total),
            "credit_total": str(credit_total),
        }
        if currency:
            context["currency"] = currency
        if journal_id:
            context["journal_id"] = str(journal_id)
        super().__init__(message, context=context)


class ImmutableLedgerError(JournalError):
    """Raised on any attempt to update or delete a committed ledger entry.

    This always indicates a programming error upstream.
    """

    error_code = "IMMUTABLE_LEDGER"
    status_code = 409

    def __init__(self, operation: str, entry_id: UUID | str | None = None) -> None:
        target = f" {entry_id}" if entry_id else ""
        super().__init__(
            f"Ledger entries are immutable: {operation} rejected for entry{target}",
            context={"operation": operation, "entry_id": str(entry_id) if entry_id else None},
        )


class AlreadyPostedError(JournalError):
    """Raised when a business event has already been posted to the ledger."""

    error_code = "ALREADY_POSTED"
    status_code = 409

    def __init__(self, event_kind: str, event_id: UUID | str) -> None:
        super().__init__(
            f"{event_kind.capitalize()} {event_id} is already posted to the ledger",
            context={"event_kind": event_kind, "event_id": str(event_id)},
        )


class InvalidPostingStateError(JournalError):
    """Raised when a business event is not in a postable state."""

    error_code = "INVALID_POSTING_STATE"

    def __init__(self, event_kind: str, event_id: UUID | str, reason: str) -> None:
        super().__init__(
            f"Cannot post {event_kind} {event_id}: {reason}",
            context={"event_kind": event_kind, "event_id": str(event_id), "reason": reason},
        )


# =============================================================================
# Product Errors
# =============================================================================


class ProductNotFoundError(BizLedgerError):
    """Raised when a COGS line references a product that no longer exists."""

    error_code = "PRODUCT_NOT_FOUND"
    status_code = 404

    def __init__(self, product_id: UUID | str) -> None:
        super().__init__(
            f"Product not found: {product_id}",
            context={"product_id": str(product_id)},
        )


# =============================================================================
# Tax Ledger Errors
# =============================================================================


class TaxLedgerError(BizLedgerError):
    """Base exception for tax-ledger errors."""

    error_code = "TAX_LEDGER_ERROR"
    status_code = 400


class InvalidCompanyReferenceError(TaxLedgerError):
    """Raised when a company identifier is missing or malformed."""

    error_code = "INVALID_COMPANY_REFERENCE"

    def __init__(self, company_id: object) -> None:
        super().__init__(
            f"Invalid company reference: {company_id!r}",
            context={"company_id": repr(company_id)},
        )


class TaxRecordRemittedError(TaxLedgerError):
    """Raised when a remitted tax record would be changed."""

    error_code = "TAX_RECORD_REMITTED"
    status_code = 409

    def __init__(self, tax_type: str, period: str, source: str) -> None:
        super().__init__(
            f"{tax_type} record for {period} ({source}) is already remitted",
            context={"tax_type": tax_type, "period": period, "source": source},
        )


class TaxSettingsMissingError(TaxLedgerError):
    """Raised when a strict caller requires tax settings that do not exist."""

    error_code = "TAX_SETTINGS_MISSING"
    status_code = 404

    def __init__(self, company_id: UUID | str) -> None:
        super().__init__(
            f"Tax settings not found for company {company_id}",
            context={"company_id": str(company_id)},
        )


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(BizLedgerError):
    """Base exception for database-related errors."""

    error_code = "DATABASE_ERROR"
    status_code = 500


class PersistenceError(DatabaseError):
    """Raised when the underlying store rejects or fails a write.

    The transaction that raised it has been rolled back in full.
    """

    error_code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(
            f"Persistence failure during {operation}: {detail}",
            context={"operation": operation},
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(BizLedgerError):
    """Base exception for validation errors."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class InvalidAmountError(ValidationError):
    """Raised when an invalid monetary amount is provided."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str, **details: object) -> None:
        super().__init__(
            f"Invalid amount '{amount}': {reason}",
            context={
                "amount": str(amount),
                "reason": reason,
                **{key: str(value) for key, value in details.items()},
            },
        )


class CurrencyMismatchError(ValidationError):
    """Raised when a tax amount is not in the company's reporting currency."""

    error_code = "CURRENCY_MISMATCH"

    def __init__(self, currency: object, reporting_currency: object, reference_id: object) -> None:
        super().__init__(
            f"Cannot record {currency} tax for {reference_id}: "
            f"the tax ledger is kept in {reporting_currency}",
            context={
                "currency": str(currency),
                "reporting_currency": str(reporting_currency),
                "reference_id": str(reference_id),
            },
        )


class InvalidTaxPeriodError(ValidationError):
    """Raised when a tax period token cannot be parsed."""

    error_code = "INVALID_TAX_PERIOD"

    def __init__(self, token: object) -> None:
        super().__init__(
            f"Invalid tax period {token!r}: expected YYYY-MM or YYYY-Qn",
            context={"period": str(token)},
        )
