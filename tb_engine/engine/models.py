"""
Domain model for the trial-balance engine.

Implements the immutable records the pipeline passes between stages:
- Account rows of the imported trial balance
- JournalEntry / JournalEntryLine adjustment transactions
- MappedTrialBalance buckets of classified accounts
- AdjustedTrialBalance with its adjustment summary
- ValidationResult findings and PeriodData inputs
- Statement of changes in equity components
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

ZERO = Decimal("0")


class StatementSection(str, Enum):
    """Canonical statement buckets."""
    ASSETS = "assets"
    LIABILITIES = "liabilities"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSES = "expenses"

    @property
    def is_natural_debit(self) -> bool:
        return self in (StatementSection.ASSETS, StatementSection.EXPENSES)

    @property
    def is_balance_sheet(self) -> bool:
        return self in (
            StatementSection.ASSETS,
            StatementSection.LIABILITIES,
            StatementSection.EQUITY,
        )


SECTION_ORDER: Tuple[StatementSection, ...] = tuple(StatementSection)


class JournalEntryStatus(str, Enum):
    """Workflow status of a journal entry."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    POSTED = "posted"
    REJECTED = "rejected"
    REVERSED = "reversed"


class JournalEntryType(str, Enum):
    """Kind of adjusting transaction."""
    ADJUSTMENT = "adjustment"
    RECLASSIFICATION = "reclassification"
    ACCRUAL = "accrual"
    PREPAYMENT = "prepayment"
    DEPRECIATION = "depreciation"
    PROVISION = "provision"
    REVERSAL = "reversal"
    YEAR_END = "year_end"
    OTHER = "other"


class ValidationStatus(str, Enum):
    """Outcome of a validation check."""
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"


# =============================================================================
# Trial Balance
# =============================================================================

@dataclass(frozen=True)
class Account:
    """A single ledger account row of a trial balance."""
    account_id: str
    account_name: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None

    @property
    def balance(self) -> Decimal:
        """Signed balance, debit minus credit."""
        return self.debit - self.credit

    def with_amounts(self, debit: Decimal, credit: Decimal) -> "Account":
        return replace(self, debit=debit, credit=credit)


@dataclass(frozen=True)
class ClassifiedAccount:
    """An account with its (optional) line item assignment."""
    account: Account
    statement: Optional[StatementSection] = None
    line_item: Optional[str] = None

    @property
    def is_mapped(self) -> bool:
        return self.statement is not None and self.line_item is not None


# =============================================================================
# Journal Entries
# =============================================================================

@dataclass(frozen=True)
class JournalEntryLine:
    """One debit or credit line of a journal entry."""
    account_id: str
    account_name: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None
    id: Optional[str] = None
    analysis_code: Optional[str] = None

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit

    @property
    def is_zero(self) -> bool:
        return self.debit == ZERO and self.credit == ZERO


@dataclass(frozen=True)
class JournalEntry:
    """
    A double-entry adjusting transaction.

    Lines are held as a tuple; edits go through the journal service and
    produce new entries.
    """
    id: str
    entry_number: str
    entry_date: date
    description: str
    lines: Tuple[JournalEntryLine, ...] = ()
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    entry_type: JournalEntryType = JournalEntryType.ADJUSTMENT
    period_id: Optional[str] = None
    reference: Optional[str] = None
    prepared_by: Optional[str] = None
    notes: Optional[str] = None
    reversal_of: Optional[str] = None
    reversed_by: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit

    def is_balanced(self, tolerance: Decimal = Decimal("0.01")) -> bool:
        return abs(self.difference) <= tolerance

    @property
    def account_ids(self) -> List[str]:
        """Distinct account ids touched, in line order."""
        return list(dict.fromkeys(line.account_id for line in self.lines))


# =============================================================================
# Pipeline Outputs
# =============================================================================

@dataclass
class MappedTrialBalance:
    """
    Accounts bucketed by statement section and line item.

    A section left as ``None`` means it was never classified; the aggregator
    always fills all five.
    """
    assets: Optional[Dict[str, List[Account]]] = None
    liabilities: Optional[Dict[str, List[Account]]] = None
    equity: Optional[Dict[str, List[Account]]] = None
    revenue: Optional[Dict[str, List[Account]]] = None
    expenses: Optional[Dict[str, List[Account]]] = None
    unmapped: List[Account] = field(default_factory=list)

    def section(self, section: StatementSection) -> Optional[Dict[str, List[Account]]]:
        return getattr(self, section.value)

    def sections(self) -> Iterator[Tuple[StatementSection, Optional[Dict[str, List[Account]]]]]:
        for section in SECTION_ORDER:
            yield section, self.section(section)

    def accounts_in(self, section: StatementSection) -> List[Account]:
        items = self.section(section) or {}
        return [account for accounts in items.values() for account in accounts]

    def mapped_accounts(self) -> List[Account]:
        return [account for section in SECTION_ORDER for account in self.accounts_in(section)]

    @property
    def missing_sections(self) -> List[StatementSection]:
        return [section for section, items in self.sections() if items is None]


@dataclass
class AdjustmentSummary:
    """Aggregate view of the entries applied to a trial balance."""
    total_entries: int = 0
    total_adjustments: Decimal = ZERO
    last_adjustment_date: Optional[date] = None
    net_impact_by_account: Dict[str, Decimal] = field(default_factory=dict)


@dataclass
class RejectedEntry:
    """An entry skipped during replay, with the reason."""
    entry: JournalEntry
    reason: str
    error_code: str


@dataclass
class AdjustedTrialBalance:
    """Base trial balance plus the effect of applied journal entries."""
    base_accounts: List[Account]
    adjustments: List[JournalEntry]
    adjusted_balances: List[Account]
    adjustment_summary: AdjustmentSummary
    rejected_entries: List[RejectedEntry] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Result of a single validation check."""
    check: str
    status: ValidationStatus
    is_valid: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def passed(cls, check: str, message: str, **details) -> "ValidationResult":
        return cls(check, ValidationStatus.PASS, True, message, details)

    @classmethod
    def failed(cls, check: str, message: str, **details) -> "ValidationResult":
        return cls(check, ValidationStatus.FAIL, False, message, details)

    @classmethod
    def warning(cls, check: str, message: str, is_valid: bool = True, **details) -> "ValidationResult":
        return cls(check, ValidationStatus.WARNING, is_valid, message, details)


@dataclass
class PeriodData:
    """One reporting period handed to the validator."""
    period_id: str
    raw_accounts: List[Account]
    mapped_trial_balance: Optional[MappedTrialBalance] = None
    reporting_date: Optional[date] = None
    period_name: Optional[str] = None


# =============================================================================
# Statement of Changes in Equity
# =============================================================================

@dataclass
class EquityComponent:
    """Movements of one equity component over the period (credit positive)."""
    name: str
    opening: Decimal = ZERO
    profit: Decimal = ZERO
    oci: Decimal = ZERO
    issued: Decimal = ZERO
    dividends: Decimal = ZERO
    closing: Decimal = ZERO

    @property
    def movements(self) -> Decimal:
        return self.profit + self.oci + self.issued + self.dividends

    @property
    def expected_closing(self) -> Decimal:
        return self.opening + self.movements


@dataclass
class ChangesInEquity:
    """Statement of changes in equity."""
    share_capital: EquityComponent
    retained_earnings: EquityComponent
    other_reserves: EquityComponent
    treasury_shares: EquityComponent
    profit_for_year: Decimal = ZERO
    dividends_declared: Decimal = ZERO

    @property
    def components(self) -> List[EquityComponent]:
        return [
            self.share_capital,
            self.retained_earnings,
            self.other_reserves,
            self.treasury_shares,
        ]

    @property
    def total(self) -> EquityComponent:
        total = EquityComponent(name="total")
        for component in self.components:
            total.opening += component.opening
            total.profit += component.profit
            total.oci += component.oci
            total.issued += component.issued
            total.dividends += component.dividends
            total.closing += component.closing
        return total
