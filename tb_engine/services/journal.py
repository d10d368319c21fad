"""
Journal entry service.

Validation, numbering, workflow transitions, reversals, immutable line edits,
filtering and reporting for adjusting journal entries. Every operation returns
new entries; nothing is modified in place.
"""
import re
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog

from tb_engine.engine.models import (
    ZERO,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
)
from tb_engine.exceptions import (
    InvalidEntryError,
    InvalidStatusTransitionError,
    LineNotFoundError,
)

logger = structlog.get_logger(__name__)

S = JournalEntryStatus

# Forward-only workflow
ALLOWED_TRANSITIONS: Dict[JournalEntryStatus, Set[JournalEntryStatus]] = {
    S.DRAFT: {S.PENDING_REVIEW, S.PENDING_APPROVAL, S.APPROVED, S.REJECTED},
    S.PENDING_REVIEW: {S.PENDING_APPROVAL, S.APPROVED, S.REJECTED},
    S.PENDING_APPROVAL: {S.APPROVED, S.REJECTED},
    S.APPROVED: {S.POSTED, S.REJECTED},
    S.POSTED: {S.REVERSED},
    S.REJECTED: set(),
    S.REVERSED: set(),
}

# Transitions into these statuses require a valid entry
VALIDATED_STATUSES = {S.APPROVED, S.POSTED}

ENTRY_NUMBER_PREFIXES: Dict[JournalEntryType, str] = {
    JournalEntryType.ADJUSTMENT: "ADJ-",
    JournalEntryType.RECLASSIFICATION: "RECL-",
    JournalEntryType.ACCRUAL: "ACC-",
    JournalEntryType.PREPAYMENT: "PREP-",
    JournalEntryType.DEPRECIATION: "DEP-",
    JournalEntryType.PROVISION: "PROV-",
    JournalEntryType.REVERSAL: "REV-",
    JournalEntryType.YEAR_END: "YE-",
    JournalEntryType.OTHER: "JE-",
}

_TRAILING_NUMBER = re.compile(r"(\d+)$")


@dataclass
class EntryIssue:
    """A validation error or warning on a journal entry."""

    field: str
    code: str
    message: str
    severity: Optional[str] = None


@dataclass
class EntryValidation:
    """Result of validating a journal entry."""

    is_valid: bool
    errors: List[EntryIssue] = field(default_factory=list)
    warnings: List[EntryIssue] = field(default_factory=list)

    @property
    def error_codes(self) -> List[str]:
        return [e.code for e in self.errors]

    @property
    def warning_codes(self) -> List[str]:
        return [w.code for w in self.warnings]


@dataclass
class JournalEntryFilters:
    """Criteria for selecting journal entries; unset criteria match everything."""

    status: Sequence[JournalEntryStatus] = ()
    entry_type: Sequence[JournalEntryType] = ()
    date_range: Optional[Tuple[date, date]] = None
    amount_range: Optional[Tuple[Decimal, Decimal]] = None
    prepared_by: Optional[str] = None
    search_text: Optional[str] = None
    account_ids: Sequence[str] = ()
    tags: Sequence[str] = ()


@dataclass
class LargestAdjustment:
    entry_id: str
    amount: Decimal
    description: str


@dataclass
class AdjustmentReport:
    """Summary, impact analysis and compliance view of a period's entries."""

    period_id: str
    total_entries: int
    total_adjustments: Decimal
    entries_by_type: Dict[str, int]
    entries_by_status: Dict[str, int]
    largest_adjustment: LargestAdjustment
    accounts_affected: int
    total_debit_adjustments: Decimal
    total_credit_adjustments: Decimal
    net_impact: Decimal
    significant_adjustments: List[JournalEntry]
    unbalanced_entries: List[JournalEntry]
    unapproved_entries: List[JournalEntry]
    entries_requiring_review: List[JournalEntry]


class JournalEntryService:
    """
    Operations on journal entries.

    Entries are immutable; each edit or transition returns a new entry.
    """

    TOLERANCE = Decimal("0.01")
    LARGE_AMOUNT = Decimal("1000000")

    # Significant adjustments: above 1% of the largest entry, at least 10,000
    SIGNIFICANT_RATIO = Decimal("0.01")
    SIGNIFICANT_FLOOR = Decimal("10000")

    def __init__(
        self,
        tolerance: Optional[Decimal] = None,
        large_amount: Optional[Decimal] = None,
    ):
        self.tolerance = tolerance if tolerance is not None else self.TOLERANCE
        self.large_amount = large_amount if large_amount is not None else self.LARGE_AMOUNT

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_journal_entry(self, entry: JournalEntry) -> EntryValidation:
        """
        Validate an entry.

        Errors: UNBALANCED_ENTRY, NO_LINES, MISSING_DESCRIPTION, MISSING_ACCOUNT.
        Warnings: ZERO_AMOUNT_LINE (medium), LARGE_AMOUNT (high).
        """
        errors = []
        warnings = []

        if not entry.is_balanced(self.tolerance):
            errors.append(EntryIssue("lines", "UNBALANCED_ENTRY", "Total debits must equal total credits"))

        if not entry.lines:
            errors.append(EntryIssue("lines", "NO_LINES", "Journal entry must have at least one line"))

        if any(not line.account_id.strip() for line in entry.lines):
            errors.append(EntryIssue("lines", "MISSING_ACCOUNT", "Every line must reference an account"))

        if any(line.is_zero for line in entry.lines):
            warnings.append(EntryIssue("lines", "ZERO_AMOUNT_LINE", "Some lines have zero amounts", "medium"))

        if not entry.description or not entry.description.strip():
            errors.append(
                EntryIssue("description", "MISSING_DESCRIPTION", "Journal entry description is required")
            )

        if max(entry.total_debit, entry.total_credit) > self.large_amount:
            warnings.append(EntryIssue("amount", "LARGE_AMOUNT", "Entry amount is unusually large", "high"))

        return EntryValidation(is_valid=not errors, errors=errors, warnings=warnings)

    # -------------------------------------------------------------------------
    # Numbering & workflow
    # -------------------------------------------------------------------------

    def next_entry_number(
        self,
        existing_numbers: Iterable[str],
        entry_type: JournalEntryType,
    ) -> str:
        """
        Next entry number for a type, e.g. ``ADJ-004`` after ``ADJ-003``.

        Numbers continue from the highest existing number with the same prefix.
        """
        prefix = ENTRY_NUMBER_PREFIXES[JournalEntryType(entry_type)]
        used = []
        for number in existing_numbers:
            if not number.startswith(prefix):
                continue
            match = _TRAILING_NUMBER.search(number)
            used.append(int(match.group(1)) if match else 0)
        next_number = max(used) + 1 if used else 1
        return f"{prefix}{next_number:03d}"

    def transition(self, entry: JournalEntry, new_status: JournalEntryStatus) -> JournalEntry:
        """
        Move an entry to a new workflow status.

        Raises:
            InvalidStatusTransitionError: Transition not allowed from the current status,
                or voiding an entry that already has a reversing entry.
            InvalidEntryError: Approving or posting an entry that fails validation.
        """
        new_status = JournalEntryStatus(new_status)
        if new_status not in ALLOWED_TRANSITIONS[entry.status]:
            raise InvalidStatusTransitionError(entry.id, entry.status.value, new_status.value)
        # Already offset by a reversing entry
        if new_status == S.REVERSED and entry.reversed_by:
            raise InvalidStatusTransitionError(entry.id, entry.status.value, new_status.value)

        if new_status in VALIDATED_STATUSES:
            validation = self.validate_journal_entry(entry)
            if not validation.is_valid:
                raise InvalidEntryError(entry.id, [e.message for e in validation.errors])

        logger.info(
            "Journal entry status changed",
            entry_id=entry.id,
            entry_number=entry.entry_number,
            from_status=entry.status.value,
            to_status=new_status.value,
        )
        return replace(entry, status=new_status)

    def create_reversal(
        self,
        entry: JournalEntry,
        reversal_id: str,
        entry_number: str,
        entry_date: Optional[date] = None,
    ) -> Tuple[JournalEntry, JournalEntry]:
        """
        Create the reversing entry for a posted entry.

        Args:
            entry: Posted entry to reverse.
            reversal_id: Id of the new entry.
            entry_number: Number of the new entry (see ``next_entry_number``).
            entry_date: Reversal date; defaults to the original date.

        Returns:
            (original linked to the reversal, new draft reversal entry with
            debits and credits swapped). The original stays posted so both
            entries are replayed and cancel out once the reversal is posted.
        """
        if entry.status != S.POSTED:
            raise InvalidStatusTransitionError(entry.id, entry.status.value, "reversal")
        if entry.reversed_by:
            raise InvalidEntryError(entry.id, [f"Already reversed by {entry.reversed_by}"])

        lines = tuple(
            replace(line, debit=line.credit, credit=line.debit, id=None)
            for line in entry.lines
        )
        reversal = JournalEntry(
            id=reversal_id,
            entry_number=entry_number,
            entry_date=entry_date or entry.entry_date,
            description=f"Reversal of {entry.entry_number}: {entry.description}",
            lines=lines,
            status=S.DRAFT,
            entry_type=JournalEntryType.REVERSAL,
            period_id=entry.period_id,
            reference=entry.entry_number,
            reversal_of=entry.id,
            tags=entry.tags,
        )
        return replace(entry, reversed_by=reversal_id), reversal

    # -------------------------------------------------------------------------
    # Immutable line edits
    # -------------------------------------------------------------------------

    def add_line(self, entry: JournalEntry, line: JournalEntryLine) -> JournalEntry:
        return replace(entry, lines=entry.lines + (line,))

    def update_line(self, entry: JournalEntry, index: int, **changes) -> JournalEntry:
        self._check_index(entry, index)
        lines = list(entry.lines)
        lines[index] = replace(lines[index], **changes)
        return replace(entry, lines=tuple(lines))

    def remove_line(self, entry: JournalEntry, index: int) -> JournalEntry:
        self._check_index(entry, index)
        return replace(entry, lines=entry.lines[:index] + entry.lines[index + 1:])

    def _check_index(self, entry: JournalEntry, index: int) -> None:
        if not 0 <= index < len(entry.lines):
            raise LineNotFoundError(entry.id, index)

    def balance_entry(
        self,
        entry: JournalEntry,
        account_id: str = "",
        account_name: str = "",
    ) -> JournalEntry:
        """
        Balance an entry with a single plug amount.

        The first zero-amount line receives the difference; without one, a
        "Balancing entry" line is appended against the given account.
        """
        difference = entry.difference
        if abs(difference) <= self.tolerance:
            return entry

        debit, credit = (ZERO, difference) if difference > 0 else (-difference, ZERO)

        for index, line in enumerate(entry.lines):
            if line.is_zero:
                return self.update_line(entry, index, debit=debit, credit=credit)

        return self.add_line(entry, JournalEntryLine(
            account_id=account_id,
            account_name=account_name,
            debit=debit,
            credit=credit,
            description="Balancing entry",
        ))

    # -------------------------------------------------------------------------
    # Queries & reporting
    # -------------------------------------------------------------------------

    def filter_entries(
        self,
        entries: Iterable[JournalEntry],
        filters: JournalEntryFilters,
    ) -> List[JournalEntry]:
        """Select entries matching every criterion set on ``filters``."""
        return [e for e in entries if self._matches(e, filters)]

    def _matches(self, entry: JournalEntry, filters: JournalEntryFilters) -> bool:
        if filters.status and entry.status not in filters.status:
            return False
        if filters.entry_type and entry.entry_type not in filters.entry_type:
            return False
        if filters.prepared_by and entry.prepared_by != filters.prepared_by:
            return False
        if filters.date_range:
            start, end = filters.date_range
            if not start <= entry.entry_date <= end:
                return False
        if filters.amount_range:
            low, high = filters.amount_range
            if not low <= entry.total_debit <= high:
                return False
        if filters.search_text:
            needle = filters.search_text.lower()
            haystack = [entry.description, entry.entry_number, entry.reference or ""]
            for line in entry.lines:
                haystack.extend([line.account_name, line.description or ""])
            if not any(needle in text.lower() for text in haystack):
                return False
        if filters.account_ids and not any(
            line.account_id in filters.account_ids for line in entry.lines
        ):
            return False
        if filters.tags and not any(tag in filters.tags for tag in entry.tags):
            return False
        return True

    def build_adjustment_report(
        self,
        entries: Sequence[JournalEntry],
        period_id: str,
    ) -> AdjustmentReport:
        """
        Build the adjustment report for a period.

        Args:
            entries: All entries of the period, any status.
            period_id: Period identifier.

        Returns:
            AdjustmentReport.
        """
        by_type: Dict[str, int] = {}
        by_status: Dict[str, int] = {}
        largest: Optional[JournalEntry] = None

        for entry in entries:
            by_type[entry.entry_type.value] = by_type.get(entry.entry_type.value, 0) + 1
            by_status[entry.status.value] = by_status.get(entry.status.value, 0) + 1
            if entry.total_debit > ZERO and (largest is None or entry.total_debit > largest.total_debit):
                largest = entry

        accounts = {line.account_id for entry in entries for line in entry.lines}
        total_debit = sum((entry.total_debit for entry in entries), ZERO)
        total_credit = sum((entry.total_credit for entry in entries), ZERO)

        largest_amount = largest.total_debit if largest else ZERO
        threshold = max(largest_amount * self.SIGNIFICANT_RATIO, self.SIGNIFICANT_FLOOR)

        report = AdjustmentReport(
            period_id=period_id,
            total_entries=len(entries),
            total_adjustments=total_debit,
            entries_by_type=by_type,
            entries_by_status=by_status,
            largest_adjustment=(
                LargestAdjustment(largest.id, largest.total_debit, largest.description)
                if largest
                else LargestAdjustment("", ZERO, "No entries found")
            ),
            accounts_affected=len(accounts),
            total_debit_adjustments=total_debit,
            total_credit_adjustments=total_credit,
            net_impact=total_debit - total_credit,
            significant_adjustments=[e for e in entries if e.total_debit > threshold],
            unbalanced_entries=[e for e in entries if not e.is_balanced(self.tolerance)],
            unapproved_entries=[e for e in entries if e.status not in (S.APPROVED, S.POSTED)],
            entries_requiring_review=[e for e in entries if e.status == S.PENDING_REVIEW],
        )
        logger.info(
            "Adjustment report generated",
            period_id=period_id,
            entries=report.total_entries,
            significant=len(report.significant_adjustments),
            unbalanced=len(report.unbalanced_entries),
        )
        return report


# Singleton instance
_journal_service: Optional[JournalEntryService] = None


def get_journal_service() -> JournalEntryService:
    """Get journal entry service configured from settings."""
    global _journal_service
    if _journal_service is None:
        from tb_engine.config import get_settings

        settings = get_settings()
        _journal_service = JournalEntryService(
            tolerance=settings.balance_tolerance,
            large_amount=settings.large_entry_amount,
        )
    return _journal_service
