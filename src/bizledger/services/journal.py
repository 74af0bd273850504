"""Balance check for proposed journals."""

from collections import defaultdict
from collections.abc import Sequence
from decimal import Decimal

from bizledger.domain.ledger import LedgerEntry
from bizledger.domain.value_objects import Currency, EntryType
from bizledger.exceptions import ImbalancedJournalError
from bizledger.logging_config import get_logger

logger = get_logger(__name__)


class JournalValidator:
    """Checks that a set of journal lines balances before anything is stored.

    Totals are compared per currency as exact decimals. The validator has no
    side effects beyond logging a rejection.
    """

    def validate(self, entries: Sequence[LedgerEntry]) -> None:
        """Raise ``ImbalancedJournalError`` unless debits equal credits.

        Args:
            entries: The proposed lines of one journal

        Raises:
            ImbalancedJournalError: If the set is empty or any currency's
                debit total differs from its credit total
        """
        if not entries:
            self._reject(Decimal("0"), Decimal("0"), reason="Journal has no entries")

        journal_id = entries[0].journal_id
        totals: dict[Currency, list[Decimal]] = defaultdict(
            lambda: [Decimal("0"), Decimal("0")]
        )
        for entry in entries:
            bucket = totals[entry.amount.currency]
            if entry.entry_type == EntryType.DEBIT:
                bucket[0] += entry.amount.amount
            else:
                bucket[1] += entry.amount.amount

        for currency, (debits, credits) in totals.items():
            if debits != credits:
                self._reject(debits, credits, currency=currency.value, journal_id=journal_id)

    def is_balanced(self, entries: Sequence[LedgerEntry]) -> bool:
        try:
            self.validate(entries)
        except ImbalancedJournalError:
            return False
        return True

    def _reject(self, debits: Decimal, credits: Decimal, **details) -> None:
        error = ImbalancedJournalError(debits, credits, **details)
        logger.warning(
            "journal_rejected",
            debit_total=str(debits),
            credit_total=str(credits),
            reason=error.message,
        )
        raise error
