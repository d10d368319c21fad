"""
Accounting equation validator.

Checks the balance-sheet equation, the internal consistency of the P&L
aggregation and the natural debit/credit side of every mapped account.
All totals use the signed ``debit - credit`` convention, so a balanced
statement of financial position satisfies assets + liabilities + equity = 0.
"""
from decimal import Decimal
from typing import List, Optional

import structlog

from tb_engine.engine.aggregation import section_total
from tb_engine.engine.models import (
    MappedTrialBalance,
    StatementSection,
    ValidationResult,
)

logger = structlog.get_logger(__name__)


class AccountingEquationValidator:
    """
    Validator for the accounting equation.

    Checks:
    1. sfp-balance: Assets + Liabilities + Equity = 0 (signed)
    2. pl-balance: Revenue + Expenses = 0 (signed)
    3. debit-credit-rules: accounts sit on their section's natural side
    """

    # Tolerance for decimal comparison (0.01 = 1 cent)
    TOLERANCE = Decimal("0.01")

    SFP_SECTIONS = (StatementSection.ASSETS, StatementSection.LIABILITIES, StatementSection.EQUITY)
    PL_SECTIONS = (StatementSection.REVENUE, StatementSection.EXPENSES)

    def __init__(self, tolerance: Optional[Decimal] = None):
        """Initialize validator."""
        self.tolerance = tolerance if tolerance is not None else self.TOLERANCE

    def validate_sfp_balance(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        check = "sfp-balance"
        if mapped is None:
            return ValidationResult.warning(
                check, "Mapped trial balance not available. Balance check skipped.", is_valid=False
            )
        if any(mapped.section(s) is None for s in self.SFP_SECTIONS):
            return ValidationResult.warning(
                check,
                "Core SFP sections (Assets, Liabilities, Equity) not found in mapped trial balance.",
                is_valid=False,
            )

        assets = section_total(mapped, StatementSection.ASSETS)
        liabilities = section_total(mapped, StatementSection.LIABILITIES)
        equity = section_total(mapped, StatementSection.EQUITY)
        difference = assets + (equity + liabilities)

        details = {
            "total_assets": str(assets),
            "total_liabilities": str(liabilities),
            "total_equity": str(equity),
            "difference": str(difference),
        }
        if abs(difference) > self.tolerance:
            logger.warning("SFP out of balance", difference=str(difference))
            return ValidationResult.failed(
                check, "The Statement of Financial Position does not balance.", **details
            )
        return ValidationResult.passed(
            check, "The Statement of Financial Position is balanced.", **details
        )

    def validate_pl_balance(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        """
        Check that revenue and expenses net to zero.

        A non-zero net is a fail that reports the profit or loss, so a
        pre-closing trial balance with a result is surfaced for review.
        """
        check = "pl-balance"
        if mapped is None:
            return ValidationResult.warning(
                check, "Mapped trial balance not available. P&L check skipped.", is_valid=False
            )
        if any(mapped.section(s) is None for s in self.PL_SECTIONS):
            return ValidationResult.warning(
                check,
                "Revenue or Expenses section not found in mapped trial balance.",
                is_valid=False,
            )

        revenue = section_total(mapped, StatementSection.REVENUE)
        expenses = section_total(mapped, StatementSection.EXPENSES)
        net = revenue + expenses
        net_profit = -net

        details = {
            "total_revenue": str(revenue),
            "total_expenses": str(expenses),
            "net_profit_loss": str(net_profit),
        }
        if abs(net) > self.tolerance:
            return ValidationResult.failed(
                check, "The Profit and Loss statement is not balanced.", **details
            )
        return ValidationResult.passed(
            check, "The Profit and Loss statement is balanced.", **details
        )

    def validate_debit_credit_rules(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        check = "debit-credit-rules"
        if mapped is None:
            return ValidationResult.warning(
                check, "Mapped trial balance not available. Debit/credit check skipped."
            )

        violations: List[dict] = []
        for section, items in mapped.sections():
            for line_item, accounts in (items or {}).items():
                for account in accounts:
                    balance = account.balance
                    if section.is_natural_debit and balance < -self.tolerance:
                        expected = "debit"
                    elif not section.is_natural_debit and balance > self.tolerance:
                        expected = "credit"
                    else:
                        continue
                    violations.append({
                        "account_id": account.account_id,
                        "account_name": account.account_name,
                        "section": section.value,
                        "line_item": line_item,
                        "balance": str(balance),
                        "expected_balance": expected,
                    })

        if violations:
            return ValidationResult.failed(
                check,
                f"Found {len(violations)} account(s) with incorrect balance types.",
                violations=violations,
            )
        return ValidationResult.passed(
            check, "All account balances conform to standard debit/credit rules."
        )
