"""
Invariant validator battery.

Runs every trial balance check in a fixed order and returns one
ValidationResult per check. Checks are pure and independent; a missing input
section yields a pass or warning explaining why the check was skipped.
"""
from decimal import Decimal
from typing import List, Optional, Sequence

import structlog

from tb_engine.config import Settings, get_settings
from tb_engine.engine.equity import calculate_changes_in_equity
from tb_engine.engine.models import (
    ChangesInEquity,
    PeriodData,
    ValidationResult,
    ValidationStatus,
)
from tb_engine.services.validators.accounting_equation import AccountingEquationValidator
from tb_engine.services.validators.reconciliation import ReconciliationValidator
from tb_engine.services.validators.statement_structure import StatementStructureValidator
from tb_engine.services.validators.trial_balance import TrialBalanceValidator

logger = structlog.get_logger(__name__)


class InvariantValidator:
    """
    Fixed battery of accounting invariant checks.

    Order:
    1. Raw import: trial-balance-sum, duplicate-account-codes,
       missing-account-details, account-code-hierarchy
    2. Structure: required-statements, sfp-balance, pl-balance,
       debit-credit-rules, ifrs-classification, unmapped-accounts
    3. Data quality: negative-cash, suspense-accounts, large-account-movements
    4. Reconciliation: profit-reconciliation, total-equity-reconciliation,
       equity-movements
    5. period-consistency (only when previous periods are given)
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the battery.

        Args:
            settings: Tolerances and thresholds; defaults to the cached settings.
        """
        settings = settings or get_settings()
        tolerance = Decimal(settings.balance_tolerance)
        self.equation = AccountingEquationValidator(tolerance=tolerance)
        self.structure = StatementStructureValidator()
        self.trial_balance = TrialBalanceValidator(
            tolerance=tolerance,
            anomaly_std_devs=settings.anomaly_std_devs,
            anomaly_min_balances=settings.anomaly_min_balances,
        )
        self.reconciliation = ReconciliationValidator(tolerance=tolerance)

    def validate(
        self,
        period: PeriodData,
        previous_periods: Sequence[PeriodData] = (),
        equity_statement: Optional[ChangesInEquity] = None,
    ) -> List[ValidationResult]:
        """
        Run all checks for one period.

        Args:
            period: Period to validate.
            previous_periods: Earlier periods, most recent first.
            equity_statement: Statement of changes in equity to reconcile
                against; computed from the mapped trial balance when omitted.

        Returns:
            Ordered list of ValidationResults.
        """
        raw = list(period.raw_accounts)
        mapped = period.mapped_trial_balance

        if equity_statement is None and mapped is not None:
            previous_mapped = previous_periods[0].mapped_trial_balance if previous_periods else None
            equity_statement = calculate_changes_in_equity(mapped, previous_mapped)

        results = [
            self.trial_balance.validate_trial_balance_sum(raw),
            self.trial_balance.validate_duplicate_account_codes(raw),
            self.trial_balance.validate_missing_account_details(raw),
            self.trial_balance.validate_account_code_hierarchy(raw),
            self.structure.validate_required_statements(mapped),
            self.equation.validate_sfp_balance(mapped),
            self.equation.validate_pl_balance(mapped),
            self.equation.validate_debit_credit_rules(mapped),
            self.structure.validate_ifrs_classification(mapped),
            self.structure.validate_unmapped_accounts(raw, mapped),
            self.trial_balance.validate_negative_cash(mapped),
            self.trial_balance.validate_suspense_accounts(mapped),
            self.trial_balance.validate_large_account_movements(raw),
            self.reconciliation.validate_profit_reconciliation(mapped, equity_statement),
            self.reconciliation.validate_total_equity_reconciliation(mapped, equity_statement),
            self.reconciliation.validate_equity_movements(mapped, equity_statement),
        ]
        if previous_periods:
            results.append(self.trial_balance.validate_period_consistency(period, previous_periods))

        logger.info(
            "Validation complete",
            period_id=period.period_id,
            checks=len(results),
            passed=sum(1 for r in results if r.status == ValidationStatus.PASS),
            warnings=sum(1 for r in results if r.status == ValidationStatus.WARNING),
            failed=sum(1 for r in results if r.status == ValidationStatus.FAIL),
        )
        return results


def summarize(results: Sequence[ValidationResult]) -> dict:
    """Count results by status."""
    return {
        "total": len(results),
        "passed": sum(1 for r in results if r.status == ValidationStatus.PASS),
        "warnings": sum(1 for r in results if r.status == ValidationStatus.WARNING),
        "failed": sum(1 for r in results if r.status == ValidationStatus.FAIL),
        "is_valid": all(r.is_valid for r in results),
    }
