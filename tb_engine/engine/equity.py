"""
Statement of changes in equity.

Builds the equity movement schedule from a mapped (pre-closing) trial balance.
Amounts are presented credit-positive: share capital and reserves are
positive, treasury shares and dividends are negative.

Component assignment for equity accounts:
- Treasury shares: name mentions treasury or own shares
- Dividends: name mentions dividends (a retained earnings movement)
- Share capital: capital line items or share capital style names
- Retained earnings: retained line items or accumulated profit names
- Other reserves: everything else
"""
import re
from decimal import Decimal
from typing import Dict, List, Optional

import structlog

from tb_engine.engine.models import (
    ZERO,
    Account,
    ChangesInEquity,
    EquityComponent,
    MappedTrialBalance,
    StatementSection,
)

logger = structlog.get_logger(__name__)

SHARE_CAPITAL = "share_capital"
RETAINED_EARNINGS = "retained_earnings"
OTHER_RESERVES = "other_reserves"
TREASURY_SHARES = "treasury_shares"
DIVIDENDS = "dividends"

_TREASURY = re.compile(r"\b(treasury|own shares)\b", re.IGNORECASE)
_DIVIDENDS = re.compile(r"\bdividends?\b", re.IGNORECASE)
_SHARE_CAPITAL = re.compile(
    r"\b(share capital|capital stock|common stock|ordinary shares|issued capital|"
    r"share premium|paid.?in capital)\b",
    re.IGNORECASE,
)
_RETAINED = re.compile(r"\b(retained earnings|accumulated profits|accumulated losses)\b", re.IGNORECASE)


def equity_component(account: Account, line_item: str) -> str:
    """Decide which equity component an equity account belongs to."""
    name = account.account_name
    if _TREASURY.search(name):
        return TREASURY_SHARES
    if _DIVIDENDS.search(name):
        return DIVIDENDS
    if "capital" in line_item or _SHARE_CAPITAL.search(name):
        return SHARE_CAPITAL
    if "retained" in line_item or _RETAINED.search(name):
        return RETAINED_EARNINGS
    return OTHER_RESERVES


def _component_balances(mapped: Optional[MappedTrialBalance]) -> Dict[str, Decimal]:
    balances = {
        SHARE_CAPITAL: ZERO,
        RETAINED_EARNINGS: ZERO,
        OTHER_RESERVES: ZERO,
        TREASURY_SHARES: ZERO,
        DIVIDENDS: ZERO,
    }
    if mapped is None:
        return balances
    for line_item, accounts in (mapped.equity or {}).items():
        for account in accounts:
            component = equity_component(account, line_item)
            balances[component] += account.credit - account.debit
    return balances


def profit_for_year(mapped: MappedTrialBalance) -> Decimal:
    """Profit computed account by account (credit - debit) over the P&L sections."""
    accounts: List[Account] = (
        mapped.accounts_in(StatementSection.REVENUE)
        + mapped.accounts_in(StatementSection.EXPENSES)
    )
    return sum((a.credit - a.debit for a in accounts), ZERO)


def _carried_component(name: str, closing: Decimal, previous: Optional[Decimal]) -> EquityComponent:
    """Component whose only movement is the change against the prior period."""
    opening = closing if previous is None else previous
    component = EquityComponent(name=name, opening=opening, closing=closing)
    if name == OTHER_RESERVES:
        component.oci = closing - opening
    else:
        component.issued = closing - opening
    return component


def calculate_changes_in_equity(
    mapped: MappedTrialBalance,
    previous: Optional[MappedTrialBalance] = None,
) -> ChangesInEquity:
    """
    Build the statement of changes in equity for a period.

    Args:
        mapped: Current period mapped trial balance (before closing entries).
        previous: Prior period mapped trial balance, used for opening balances
            of share capital, reserves and treasury shares.

    Returns:
        ChangesInEquity.
    """
    current = _component_balances(mapped)
    prior = _component_balances(previous) if previous is not None else None
    profit = profit_for_year(mapped)
    dividends = current[DIVIDENDS]

    retained = EquityComponent(
        name=RETAINED_EARNINGS,
        opening=current[RETAINED_EARNINGS],
        profit=profit,
        dividends=dividends,
    )
    retained.closing = retained.opening + profit + dividends

    soce = ChangesInEquity(
        share_capital=_carried_component(
            SHARE_CAPITAL, current[SHARE_CAPITAL], prior[SHARE_CAPITAL] if prior else None
        ),
        retained_earnings=retained,
        other_reserves=_carried_component(
            OTHER_RESERVES, current[OTHER_RESERVES], prior[OTHER_RESERVES] if prior else None
        ),
        treasury_shares=_carried_component(
            TREASURY_SHARES, current[TREASURY_SHARES], prior[TREASURY_SHARES] if prior else None
        ),
        profit_for_year=profit,
        dividends_declared=-dividends,
    )
    logger.debug(
        "Changes in equity calculated",
        profit=str(profit),
        closing_equity=str(soce.total.closing),
    )
    return soce


def check_equity_movements(
    soce: ChangesInEquity,
    tolerance: Decimal = Decimal("0.01"),
) -> List[Dict[str, str]]:
    """
    Find components whose closing balance is not opening plus movements.

    Returns:
        One dict per mismatched component (empty when consistent).
    """
    mismatches = []
    for component in soce.components:
        difference = component.closing - component.expected_closing
        if abs(difference) > tolerance:
            mismatches.append({
                "component": component.name,
                "expected": str(component.expected_closing),
                "actual": str(component.closing),
                "difference": str(difference),
            })
    return mismatches
