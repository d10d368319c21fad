"""
Raw trial balance validator.

Checks run against the unmodified import (and, for a few of them, the mapped
trial balance): overall balance, account code integrity, statistical outliers,
suspense balances and period-over-period consistency.
"""
import math
import re
from collections import Counter
from decimal import Decimal
from typing import List, Optional, Sequence

import structlog

from tb_engine.engine.aggregation import line_total
from tb_engine.engine.models import (
    ZERO,
    Account,
    MappedTrialBalance,
    PeriodData,
    ValidationResult,
)

logger = structlog.get_logger(__name__)

SUSPENSE_PATTERN = re.compile(
    r"suspense|clearing|unallocated|miscellaneous|misc|temp|temporary", re.IGNORECASE
)
KEY_ACCOUNT_PATTERN = re.compile(r"cash|revenue|income|expense|receivable|payable", re.IGNORECASE)


class TrialBalanceValidator:
    """
    Validator for raw trial balance data.

    Never modifies accounts - only reports findings.
    """

    TOLERANCE = Decimal("0.01")

    # Outlier detection
    ANOMALY_STD_DEVS = 3.0
    ANOMALY_MIN_BALANCES = 10
    MIN_STD_DEV = 1.0

    # Period-over-period variance thresholds
    VARIANCE_MIN_PREVIOUS = Decimal("1000")
    VARIANCE_MIN_CHANGE = Decimal("10000")
    VARIANCE_PERCENT = Decimal("50")

    def __init__(
        self,
        tolerance: Optional[Decimal] = None,
        anomaly_std_devs: Optional[float] = None,
        anomaly_min_balances: Optional[int] = None,
    ):
        self.tolerance = tolerance if tolerance is not None else self.TOLERANCE
        self.anomaly_std_devs = anomaly_std_devs if anomaly_std_devs is not None else self.ANOMALY_STD_DEVS
        self.anomaly_min_balances = (
            anomaly_min_balances if anomaly_min_balances is not None else self.ANOMALY_MIN_BALANCES
        )

    def validate_trial_balance_sum(self, raw_accounts: Sequence[Account]) -> ValidationResult:
        check = "trial-balance-sum"
        if not raw_accounts:
            return ValidationResult.passed(
                check, "Raw trial balance data not available. Sum validation skipped."
            )

        total_debit = sum((a.debit for a in raw_accounts), ZERO)
        total_credit = sum((a.credit for a in raw_accounts), ZERO)
        difference = total_debit - total_credit
        details = {
            "total_debit": str(total_debit),
            "total_credit": str(total_credit),
            "difference": str(difference),
        }
        if abs(difference) > self.tolerance:
            return ValidationResult.failed(
                check, "The raw trial balance does not sum to zero.", **details
            )
        return ValidationResult.passed(
            check, "The raw trial balance is balanced (sums to zero).", **details
        )

    def validate_duplicate_account_codes(self, raw_accounts: Sequence[Account]) -> ValidationResult:
        check = "duplicate-account-codes"
        if not raw_accounts:
            return ValidationResult.passed(
                check, "Raw trial balance data not available. Duplicate code validation skipped."
            )

        counts = Counter(a.account_id for a in raw_accounts)
        duplicates = [code for code, count in counts.items() if count > 1]
        if duplicates:
            return ValidationResult.failed(
                check,
                f"Found {len(duplicates)} duplicate account code(s) in the trial balance.",
                duplicate_codes=duplicates,
            )
        return ValidationResult.passed(check, "No duplicate account codes found in the trial balance.")

    def validate_missing_account_details(self, raw_accounts: Sequence[Account]) -> ValidationResult:
        check = "missing-account-details"
        if not raw_accounts:
            return ValidationResult.passed(
                check, "Raw trial balance data not available. Account detail validation skipped."
            )

        incomplete = [
            {"account_id": a.account_id, "account_name": a.account_name}
            for a in raw_accounts
            if not a.account_id.strip() or not a.account_name.strip()
        ]
        if incomplete:
            return ValidationResult.warning(
                check,
                f"Found {len(incomplete)} account(s) with missing codes or names.",
                is_valid=False,
                accounts=incomplete,
            )
        return ValidationResult.passed(check, "All accounts have complete details (code and name).")

    def validate_account_code_hierarchy(self, raw_accounts: Sequence[Account]) -> ValidationResult:
        """Every code longer than two characters needs a parent code that is a proper prefix."""
        check = "account-code-hierarchy"
        if not raw_accounts:
            return ValidationResult.passed(
                check, "Raw trial balance data not available. Hierarchy validation skipped."
            )

        codes = {a.account_id for a in raw_accounts if a.account_id}
        if not codes:
            return ValidationResult.passed(check, "No account codes available to validate hierarchy.")

        orphaned = []
        for code in dict.fromkeys(a.account_id for a in raw_accounts if a.account_id):
            if len(code) <= 2:
                continue
            if not any(code[:i] in codes for i in range(len(code) - 1, 0, -1)):
                orphaned.append(code)

        if orphaned:
            return ValidationResult.warning(
                check,
                f"Found {len(orphaned)} account(s) that may be orphaned (missing a parent in the hierarchy).",
                is_valid=False,
                orphaned_account_ids=orphaned,
            )
        return ValidationResult.passed(check, "Account code hierarchy appears consistent.")

    def validate_large_account_movements(self, raw_accounts: Sequence[Account]) -> ValidationResult:
        """
        Flag balances above mean + k standard deviations.

        Uses the population standard deviation over non-zero absolute balances.
        Skipped when there are too few balances or their variance is negligible.
        """
        check = "large-account-movements"
        balances = [float(abs(a.balance)) for a in raw_accounts if a.balance != ZERO]

        if len(balances) < self.anomaly_min_balances:
            return ValidationResult.passed(
                check,
                "Not enough non-zero balances for meaningful anomaly detection. "
                f"At least {self.anomaly_min_balances} are needed.",
            )

        mean = sum(balances) / len(balances)
        std_dev = math.sqrt(sum((b - mean) ** 2 for b in balances) / len(balances))
        if std_dev < self.MIN_STD_DEV:
            return ValidationResult.passed(
                check, "Account balances have low variance; anomaly detection not applied."
            )

        threshold = mean + std_dev * self.anomaly_std_devs
        anomalies = [
            {"account_id": a.account_id, "account_name": a.account_name, "balance": str(a.balance)}
            for a in raw_accounts
            if float(abs(a.balance)) > threshold
        ]

        stats = {
            "mean_balance": round(mean, 2),
            "std_deviation": round(std_dev, 2),
            "threshold": round(threshold, 2),
        }
        if anomalies:
            return ValidationResult.warning(
                check,
                f"Found {len(anomalies)} account(s) with unusually large balances.",
                is_valid=False,
                anomalies=anomalies,
                **stats,
            )
        return ValidationResult.passed(
            check, "No accounts with unusually large balances were detected.", **stats
        )

    def validate_negative_cash(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        check = "negative-cash"
        cash_items = {
            label: accounts
            for label, accounts in ((mapped.assets or {}) if mapped else {}).items()
            if "cash" in label.lower()
        }
        if not cash_items:
            return ValidationResult.warning(
                check, "'Cash and Cash Equivalents' not found in asset mappings. Validation skipped."
            )

        balance = sum((line_total(accounts) for accounts in cash_items.values()), ZERO)
        if balance < ZERO:
            return ValidationResult.failed(
                check, "Cash and Cash Equivalents balance is negative.", balance=str(balance)
            )
        return ValidationResult.passed(
            check, "Cash and Cash Equivalents balance is valid.", balance=str(balance)
        )

    def validate_suspense_accounts(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        check = "suspense-accounts"
        if mapped is None:
            return ValidationResult.passed(
                check, "Mapped trial balance not available. Suspense account check skipped."
            )

        accounts = mapped.mapped_accounts() + list(mapped.unmapped)
        suspense = [
            {"account_id": a.account_id, "account_name": a.account_name, "balance": str(a.balance)}
            for a in accounts
            if (SUSPENSE_PATTERN.search(a.account_name) or SUSPENSE_PATTERN.search(a.account_id))
            and abs(a.balance) > self.tolerance
        ]
        if suspense:
            return ValidationResult.warning(
                check,
                "Suspense accounts with non-zero balances detected.",
                suspense_accounts=suspense,
            )
        return ValidationResult.passed(check, "No suspense accounts with balances found.")

    def validate_period_consistency(
        self,
        current: PeriodData,
        previous_periods: Sequence[PeriodData],
    ) -> ValidationResult:
        """Compare the account structure and key balances with the latest previous period."""
        check = "period-consistency"
        if not previous_periods:
            return ValidationResult.passed(check, "No previous periods available for comparison.")

        previous = previous_periods[0]
        current_ids = [a.account_id for a in current.raw_accounts]
        previous_by_id = {a.account_id: a for a in previous.raw_accounts}

        added = [aid for aid in current_ids if aid not in previous_by_id]
        current_set = set(current_ids)
        removed = [aid for aid in previous_by_id if aid not in current_set]

        variances: List[dict] = []
        for account in current.raw_accounts:
            prior = previous_by_id.get(account.account_id)
            if prior is None or abs(prior.balance) <= self.VARIANCE_MIN_PREVIOUS:
                continue
            change = account.balance - prior.balance
            change_percent = abs(change / prior.balance) * 100
            if (
                change_percent > self.VARIANCE_PERCENT
                and abs(change) > self.VARIANCE_MIN_CHANGE
                and KEY_ACCOUNT_PATTERN.search(account.account_name)
            ):
                variances.append({
                    "account_id": account.account_id,
                    "account_name": account.account_name,
                    "change_percent": str(change_percent.quantize(Decimal("0.1"))),
                })

        issues = []
        if added:
            issues.append(f"{len(added)} new accounts added since previous period")
        if removed:
            issues.append(f"{len(removed)} accounts removed since previous period")
        if variances:
            issues.append(f"{len(variances)} key accounts with >50% variance from previous period")

        if issues:
            return ValidationResult.warning(
                check,
                "Period-over-period consistency issues detected.",
                issues=issues,
                added_accounts=added,
                removed_accounts=removed,
                significant_variances=variances,
                previous_period_id=previous.period_id,
            )
        return ValidationResult.passed(
            check,
            "Period-over-period consistency is acceptable.",
            previous_period_id=previous.period_id,
        )
