"""
Cross-statement reconciliation validator.

Compares the profit and closing equity figures derived from the mapped trial
balance (P&L and SFP aggregation) with the statement of changes in equity.

When no statement is supplied one is calculated from the same mapped trial
balance. Its profit and closing equity are then equal to the P&L and SFP
figures by construction, so profit-reconciliation and
total-equity-reconciliation can only fail against a statement prepared
elsewhere (e.g. an imported or hand-edited SOCE). equity-movements still
checks the roll-forward of each component."""
from decimal import Decimal
from typing import Optional

from tb_engine.engine.aggregation import net_profit, section_total
from tb_engine.engine.equity import calculate_changes_in_equity, check_equity_movements
from tb_engine.engine.models import (
    ChangesInEquity,
    MappedTrialBalance,
    StatementSection,
    ValidationResult,
)


class ReconciliationValidator:
    """Validator for P&L / SFP / SOCE agreement."""

    TOLERANCE = Decimal("0.01")

    def __init__(self, tolerance: Optional[Decimal] = None):
        self.tolerance = tolerance if tolerance is not None else self.TOLERANCE

    def _equity_statement(
        self,
        mapped: MappedTrialBalance,
        soce: Optional[ChangesInEquity],
    ) -> ChangesInEquity:
        return soce if soce is not None else calculate_changes_in_equity(mapped)

    def validate_profit_reconciliation(
        self,
        mapped: Optional[MappedTrialBalance],
        soce: Optional[ChangesInEquity] = None,
    ) -> ValidationResult:
        """P&L profit against the SOCE profit for the year (calculated when soce is None)."""
        check = "profit-reconciliation"
        if mapped is None or mapped.revenue is None or mapped.expenses is None:
            return ValidationResult.warning(
                check, "P&L sections not available. Profit reconciliation skipped."
            )

        pl_profit = net_profit(mapped)
        soce_profit = self._equity_statement(mapped, soce).profit_for_year
        difference = pl_profit - soce_profit
        details = {
            "pl_profit": str(pl_profit),
            "soce_profit": str(soce_profit),
            "difference": str(difference),
        }
        if abs(difference) > self.tolerance:
            return ValidationResult.failed(
                check, "Profit/Loss does not reconcile between the P&L and SOCE.", **details
            )
        return ValidationResult.passed(
            check, "Profit/Loss is consistent between the P&L and SOCE.", **details
        )

    def validate_total_equity_reconciliation(
        self,
        mapped: Optional[MappedTrialBalance],
        soce: Optional[ChangesInEquity] = None,
    ) -> ValidationResult:
        """
        Closing equity on the SFP is the (negated) equity section plus the
        unclosed profit for the year. Against a calculated SOCE (soce is None)
        the two agree by construction.
        """
        check = "total-equity-reconciliation"
        if mapped is None or mapped.equity is None:
            return ValidationResult.warning(
                check, "Equity section not available. Equity reconciliation skipped."
            )

        sfp_equity = -section_total(mapped, StatementSection.EQUITY) + net_profit(mapped)
        soce_equity = self._equity_statement(mapped, soce).total.closing
        difference = sfp_equity - soce_equity
        details = {
            "sfp_total_equity": str(sfp_equity),
            "soce_closing_equity": str(soce_equity),
            "difference": str(difference),
        }
        if abs(difference) > self.tolerance:
            return ValidationResult.failed(
                check,
                "Total equity on the SFP does not reconcile with the closing equity on the SOCE.",
                **details,
            )
        return ValidationResult.passed(
            check, "Total equity is consistent between the SFP and SOCE.", **details
        )

    def validate_equity_movements(
        self,
        mapped: Optional[MappedTrialBalance],
        soce: Optional[ChangesInEquity] = None,
    ) -> ValidationResult:
        check = "equity-movements"
        if mapped is None or mapped.equity is None:
            return ValidationResult.warning(
                check, "Equity section not available. Equity movement check skipped."
            )

        mismatches = check_equity_movements(self._equity_statement(mapped, soce), self.tolerance)
        if mismatches:
            return ValidationResult.failed(
                check,
                f"Found {len(mismatches)} equity component(s) where closing is not opening plus movements.",
                mismatches=mismatches,
            )
        return ValidationResult.passed(
            check, "Equity components roll forward from opening to closing balances."
        )
