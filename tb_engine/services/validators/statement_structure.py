"""
Statement structure validator.

Checks that the mapped trial balance has every statement, splits assets and
liabilities into current and non-current line items and covers every raw
account.
"""
import re
from typing import List, Optional, Sequence

from tb_engine.engine.models import (
    Account,
    MappedTrialBalance,
    StatementSection,
    ValidationResult,
)

# Line item label heuristics
CURRENT_PATTERN = re.compile(
    r"(?<!non[-_ ])(?<!non)current|cash|receivable|inventor|prepa|payable|"
    r"short.?term|overdraft|accru|provision",
    re.IGNORECASE,
)
NON_CURRENT_PATTERN = re.compile(
    r"non[-_ ]?current|fixed|long.?term|property|plant|intangible|goodwill|"
    r"mortgage|bond|debenture|deferred.?tax",
    re.IGNORECASE,
)


def is_current_label(label: str) -> bool:
    return bool(CURRENT_PATTERN.search(label)) and not NON_CURRENT_PATTERN.search(label)


def is_non_current_label(label: str) -> bool:
    return bool(NON_CURRENT_PATTERN.search(label))


class StatementStructureValidator:
    """Validator for the shape of the mapped trial balance."""

    def validate_required_statements(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        check = "required-statements"
        if mapped is None:
            return ValidationResult.warning(
                check, "Mapped trial balance not available. Statement check skipped.", is_valid=False
            )

        missing = [section.value for section in mapped.missing_sections]
        if missing:
            return ValidationResult.failed(
                check, "Missing required financial statements.", missing_sections=missing
            )
        return ValidationResult.passed(check, "All required financial statements are present.")

    def validate_ifrs_classification(self, mapped: Optional[MappedTrialBalance]) -> ValidationResult:
        """Assets and liabilities must each have current and non-current line items."""
        check = "ifrs-classification"
        if mapped is None or mapped.assets is None or mapped.liabilities is None:
            return ValidationResult.warning(
                check, "Assets or Liabilities not available. Classification check skipped."
            )

        missing = []
        for section, title in (
            (StatementSection.ASSETS, "assets"),
            (StatementSection.LIABILITIES, "liabilities"),
        ):
            labels = list(mapped.section(section))
            if not any(is_current_label(label) for label in labels):
                missing.append(f"Current {title}")
            if not any(is_non_current_label(label) for label in labels):
                missing.append(f"Non-current {title}")

        if missing:
            return ValidationResult.failed(
                check,
                "Missing required IFRS classifications on the Statement of Financial Position.",
                missing_classifications=missing,
            )
        return ValidationResult.passed(
            check, "Assets and Liabilities are correctly classified as Current and Non-Current."
        )

    def validate_unmapped_accounts(
        self,
        raw_accounts: Sequence[Account],
        mapped: Optional[MappedTrialBalance],
    ) -> ValidationResult:
        check = "unmapped-accounts"
        if mapped is None:
            return ValidationResult.passed(
                check, "Mapped trial balance not available, skipping unmapped account check."
            )

        mapped_ids = {a.account_id for a in mapped.mapped_accounts()}
        missing: List[str] = []
        for account in raw_accounts:
            if account.account_id not in mapped_ids and account.account_id not in missing:
                missing.append(account.account_id)

        if missing:
            return ValidationResult.warning(
                check,
                f"Found {len(missing)} unmapped trial balance accounts.",
                is_valid=False,
                unmapped_account_ids=missing,
            )
        return ValidationResult.passed(check, "All accounts from the trial balance have been mapped.")
