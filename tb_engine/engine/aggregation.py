"""
Statement aggregation.

Buckets classified accounts into a MappedTrialBalance and computes section
and line totals.

Sign convention: every total is the signed natural balance ``debit - credit``.
Assets and expenses are positive when debit-heavy; liabilities, equity and
revenue are negative when credit-heavy. A balanced trial balance therefore
satisfies ``assets + liabilities + equity ≈ 0`` and profit equals
``-(revenue + expenses)``.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from tb_engine.engine.models import (
    ZERO,
    SECTION_ORDER,
    Account,
    ClassifiedAccount,
    MappedTrialBalance,
    StatementSection,
)

logger = structlog.get_logger(__name__)


def aggregate(classified_accounts: Iterable[ClassifiedAccount]) -> MappedTrialBalance:
    """
    Group classified accounts by statement and line item.

    Line items keep first-seen order; accounts without an assignment go to
    ``unmapped``. All five sections are always present.
    """
    buckets: Dict[StatementSection, Dict[str, List[Account]]] = {
        section: {} for section in SECTION_ORDER
    }
    unmapped: List[Account] = []

    for item in classified_accounts:
        if not item.is_mapped:
            unmapped.append(item.account)
            continue
        section = StatementSection(item.statement)
        buckets[section].setdefault(item.line_item, []).append(item.account)

    mapped = MappedTrialBalance(
        **{section.value: buckets[section] for section in SECTION_ORDER},
        unmapped=unmapped,
    )
    logger.debug(
        "Trial balance aggregated",
        line_items={s.value: len(buckets[s]) for s in SECTION_ORDER},
        unmapped=len(unmapped),
    )
    return mapped


def build_classified_accounts(
    accounts: Iterable[Account],
    mappings: Mapping[str, Tuple[StatementSection, str]],
) -> List[ClassifiedAccount]:
    """
    Attach externally supplied mappings to accounts.

    Args:
        accounts: Accounts in trial balance order.
        mappings: Dict of account_id → (statement, line_item).

    Returns:
        ClassifiedAccounts; accounts without a mapping are left unassigned.
    """
    classified = []
    for account in accounts:
        target = mappings.get(account.account_id)
        if target is None:
            classified.append(ClassifiedAccount(account))
        else:
            statement, line_item = target
            classified.append(ClassifiedAccount(account, StatementSection(statement), line_item))
    return classified


def reclassify(
    mapped: MappedTrialBalance,
    accounts: Iterable[Account],
) -> MappedTrialBalance:
    """
    Re-bucket a new set of balances using an existing mapping.

    Used after ledger replay: adjusted accounts keep the line item their
    account id was mapped to; accounts not seen before are unmapped.
    """
    assignments = {}
    for section, items in mapped.sections():
        for line_item, line_accounts in (items or {}).items():
            for account in line_accounts:
                assignments[account.account_id] = (section, line_item)
    return aggregate(build_classified_accounts(accounts, assignments))


def line_total(accounts: Iterable[Account]) -> Decimal:
    """Signed total (debit - credit) of a line item."""
    return sum((a.balance for a in accounts), ZERO)


def section_total(
    mapped: MappedTrialBalance,
    section: StatementSection,
) -> Optional[Decimal]:
    """Signed total of a section, or None when the section is absent."""
    items = mapped.section(section)
    if items is None:
        return None
    return sum((line_total(accounts) for accounts in items.values()), ZERO)


def section_totals(mapped: MappedTrialBalance) -> Dict[StatementSection, Optional[Decimal]]:
    return {section: section_total(mapped, section) for section in SECTION_ORDER}


def line_totals(mapped: MappedTrialBalance, section: StatementSection) -> Dict[str, Decimal]:
    items = mapped.section(section) or {}
    return {line_item: line_total(accounts) for line_item, accounts in items.items()}


def net_profit(mapped: MappedTrialBalance) -> Decimal:
    """Profit for the period (positive = profit), from the P&L sections."""
    revenue = section_total(mapped, StatementSection.REVENUE) or ZERO
    expenses = section_total(mapped, StatementSection.EXPENSES) or ZERO
    return -(revenue + expenses)


def flatten(mapped: MappedTrialBalance) -> List[ClassifiedAccount]:
    """Undo aggregation: one ClassifiedAccount per bucketed account."""
    flat = []
    for section, items in mapped.sections():
        for line_item, accounts in (items or {}).items():
            flat.extend(ClassifiedAccount(a, section, line_item) for a in accounts)
    flat.extend(ClassifiedAccount(a) for a in mapped.unmapped)
    return flat


def account_balances(mapped: MappedTrialBalance) -> Dict[str, Decimal]:
    """Per-account signed balances recovered from a mapped trial balance."""
    return {item.account.account_id: item.account.balance for item in flatten(mapped)}
