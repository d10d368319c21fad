"""
Ledger replay engine.

Folds applicable journal entries over an immutable base trial balance and
produces the adjusted balances together with an adjustment summary.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set

import structlog

from tb_engine.engine.models import (
    ZERO,
    Account,
    AdjustedTrialBalance,
    AdjustmentSummary,
    JournalEntry,
    JournalEntryStatus,
    RejectedEntry,
)
from tb_engine.exceptions import (
    LedgerError,
    LedgerIntegrityError,
    UnbalancedEntryError,
    UnknownAccountError,
)

logger = structlog.get_logger(__name__)

ON_INVALID_RAISE = "raise"
ON_INVALID_SKIP = "skip"

DEFAULT_APPLICABLE_STATUSES = frozenset({JournalEntryStatus.POSTED})


class LedgerReplayEngine:
    """
    Applies journal entries to a trial balance.

    Entries are selected by status first, then each one is checked and folded
    in as a whole. An invalid entry is either raised or skipped, never
    partially applied.
    """

    TOLERANCE = Decimal("0.01")

    def __init__(
        self,
        applicable_statuses: Optional[Iterable[JournalEntryStatus]] = None,
        on_invalid: str = ON_INVALID_RAISE,
        allow_new_accounts: bool = False,
        tolerance: Optional[Decimal] = None,
    ):
        if on_invalid not in (ON_INVALID_RAISE, ON_INVALID_SKIP):
            raise ValueError(f"on_invalid must be 'raise' or 'skip', got {on_invalid!r}")
        self.applicable_statuses: Set[JournalEntryStatus] = set(
            applicable_statuses if applicable_statuses is not None else DEFAULT_APPLICABLE_STATUSES
        )
        self.on_invalid = on_invalid
        self.allow_new_accounts = allow_new_accounts
        self.tolerance = tolerance if tolerance is not None else self.TOLERANCE

    def apply(
        self,
        base_accounts: Sequence[Account],
        entries: Sequence[JournalEntry],
    ) -> AdjustedTrialBalance:
        """
        Apply applicable entries to the base trial balance.

        Args:
            base_accounts: Imported trial balance (never modified).
            entries: Journal entries in application order.

        Returns:
            AdjustedTrialBalance.

        Raises:
            UnbalancedEntryError: Entry out of balance and on_invalid="raise".
            UnknownAccountError: Unknown account without allow_new_accounts and on_invalid="raise".
            LedgerIntegrityError: Applied net impact does not sum to zero.
        """
        base_accounts = list(base_accounts)
        applicable = [e for e in entries if e.status in self.applicable_statuses]

        known_ids = {a.account_id for a in base_accounts}
        debits: Dict[str, Decimal] = {}
        credits: Dict[str, Decimal] = {}
        names: Dict[str, str] = {}
        applied: List[JournalEntry] = []
        rejected: List[RejectedEntry] = []

        for entry in applicable:
            try:
                self._check_entry(entry, known_ids)
            except LedgerError as e:
                if self.on_invalid == ON_INVALID_RAISE:
                    raise
                logger.warning(
                    "Journal entry skipped",
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    error_code=e.error_code,
                    reason=e.message,
                )
                rejected.append(RejectedEntry(entry=entry, reason=e.message, error_code=e.error_code))
                continue

            for line in entry.lines:
                debits[line.account_id] = debits.get(line.account_id, ZERO) + line.debit
                credits[line.account_id] = credits.get(line.account_id, ZERO) + line.credit
                names.setdefault(line.account_id, line.account_name)
            applied.append(entry)

        adjusted = self._fold(base_accounts, debits, credits, names)
        summary = self._summarize(applied, debits, credits)

        logger.info(
            "Adjustments applied",
            entries=len(entries),
            applicable=len(applicable),
            applied=len(applied),
            rejected=len(rejected),
            accounts=len(adjusted),
        )
        return AdjustedTrialBalance(
            base_accounts=base_accounts,
            adjustments=applied,
            adjusted_balances=adjusted,
            adjustment_summary=summary,
            rejected_entries=rejected,
        )

    def _check_entry(self, entry: JournalEntry, known_ids: Set[str]) -> None:
        if not entry.is_balanced(self.tolerance):
            raise UnbalancedEntryError(entry.id, entry.total_debit, entry.total_credit)

        if not self.allow_new_accounts:
            unknown = [aid for aid in entry.account_ids if aid not in known_ids]
            if unknown:
                raise UnknownAccountError(entry.id, unknown)

    def _fold(
        self,
        base_accounts: List[Account],
        debits: Dict[str, Decimal],
        credits: Dict[str, Decimal],
        names: Dict[str, str],
    ) -> List[Account]:
        adjusted = []
        for account in base_accounts:
            if account.account_id in debits:
                adjusted.append(account.with_amounts(
                    account.debit + debits[account.account_id],
                    account.credit + credits[account.account_id],
                ))
            else:
                adjusted.append(account)

        # Accounts first introduced by an adjustment, in first-touched order
        known_ids = {a.account_id for a in base_accounts}
        for account_id in debits:
            if account_id not in known_ids:
                adjusted.append(Account(
                    account_id=account_id,
                    account_name=names[account_id],
                    debit=debits[account_id],
                    credit=credits[account_id],
                ))
        return adjusted

    def _summarize(
        self,
        applied: List[JournalEntry],
        debits: Dict[str, Decimal],
        credits: Dict[str, Decimal],
    ) -> AdjustmentSummary:
        net_impact = {aid: debits[aid] - credits[aid] for aid in debits}

        net_total = sum(net_impact.values(), ZERO)
        if abs(net_total) > self.tolerance * max(len(applied), 1):
            raise LedgerIntegrityError(net_total)

        return AdjustmentSummary(
            total_entries=len(applied),
            total_adjustments=sum((abs(v) for v in net_impact.values()), ZERO),
            last_adjustment_date=max((e.entry_date for e in applied), default=None),
            net_impact_by_account=net_impact,
        )


def apply_adjustments(
    base_accounts: Sequence[Account],
    entries: Sequence[JournalEntry],
    applicable_statuses: Optional[Iterable[JournalEntryStatus]] = None,
    on_invalid: str = ON_INVALID_RAISE,
    allow_new_accounts: bool = False,
    tolerance: Optional[Decimal] = None,
) -> AdjustedTrialBalance:
    """
    Apply journal entries to a base trial balance.

    Convenience wrapper around LedgerReplayEngine. Only entries whose status is
    in ``applicable_statuses`` (default: posted) are applied.
    """
    engine = LedgerReplayEngine(
        applicable_statuses=applicable_statuses,
        on_invalid=on_invalid,
        allow_new_accounts=allow_new_accounts,
        tolerance=tolerance,
    )
    return engine.apply(base_accounts, entries)
