"""
Pydantic schemas for the engine boundary.

Defines the request handed over by external collaborators (raw accounts,
journal entries, custom rules, mapping overrides) and the serialized response
(mapped and adjusted trial balances plus validation results).
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from tb_engine.engine.models import (
    Account,
    AdjustedTrialBalance,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
    MappedTrialBalance,
    PeriodData,
    StatementSection,
    ValidationResult,
    ValidationStatus,
)
from tb_engine.exceptions import ContractError, RuleConfigurationError
from tb_engine.services.classifiers.rules import ClassificationRule, parse_rule


# =============================================================================
# Request
# =============================================================================

class AccountSchema(BaseModel):
    """A raw trial balance account."""

    account_id: str = Field(..., description="Account code, unique within the trial balance")
    account_name: str = Field(..., description="Account name as imported")
    debit: Decimal = Field(Decimal("0"), ge=0, description="Debit balance")
    credit: Decimal = Field(Decimal("0"), ge=0, description="Credit balance")
    description: Optional[str] = Field(None, description="Optional account description")

    def to_domain(self) -> Account:
        return Account(
            account_id=self.account_id,
            account_name=self.account_name,
            debit=self.debit,
            credit=self.credit,
            description=self.description,
        )


class JournalEntryLineSchema(BaseModel):
    """A journal entry line."""

    account_id: str = Field(..., description="Account code")
    account_name: str = Field("", description="Account name (denormalized)")
    debit: Decimal = Field(Decimal("0"), ge=0, description="Debit amount")
    credit: Decimal = Field(Decimal("0"), ge=0, description="Credit amount")
    description: Optional[str] = Field(None, description="Line description")
    id: Optional[str] = Field(None, description="Line identifier")
    analysis_code: Optional[str] = Field(None, description="Analysis / cost centre code")

    def to_domain(self) -> JournalEntryLine:
        return JournalEntryLine(**self.model_dump())


class JournalEntrySchema(BaseModel):
    """An adjusting journal entry."""

    id: str = Field(..., description="Entry identifier")
    entry_number: str = Field(..., description="Entry number, e.g. ADJ-001")
    entry_date: date = Field(..., description="Entry date")
    description: str = Field(..., description="Entry description")
    lines: List[JournalEntryLineSchema] = Field(default_factory=list, description="Entry lines")
    status: JournalEntryStatus = Field(JournalEntryStatus.DRAFT, description="Workflow status")
    entry_type: JournalEntryType = Field(JournalEntryType.ADJUSTMENT, description="Entry type")
    period_id: Optional[str] = Field(None, description="Reporting period")
    reference: Optional[str] = Field(None, description="External reference")
    prepared_by: Optional[str] = Field(None, description="Preparer")
    notes: Optional[str] = Field(None, description="Free-form notes")
    reversal_of: Optional[str] = Field(None, description="Id of the entry this reverses")
    reversed_by: Optional[str] = Field(None, description="Id of the reversing entry")
    tags: List[str] = Field(default_factory=list, description="Tags")

    def to_domain(self) -> JournalEntry:
        data = self.model_dump(exclude={"lines", "tags"})
        return JournalEntry(
            **data,
            lines=tuple(line.to_domain() for line in self.lines),
            tags=tuple(self.tags),
        )


class RuleSchema(BaseModel):
    """A custom classification rule."""

    id: str = Field(..., description="Rule identifier")
    pattern: str = Field(..., description="Pattern text")
    pattern_type: Literal["regex", "literal"] = Field("literal", description="How the pattern is matched")
    statement: StatementSection = Field(..., description="Target statement section")
    line_item: str = Field(..., description="Target line item id")
    priority: int = Field(5, ge=0, le=100, description="Rule priority")
    description: str = Field("", description="Rule description")
    account_codes: List[str] = Field(default_factory=list, description="Optional account code allow-list")

    def to_domain(self) -> ClassificationRule:
        return parse_rule({
            "id": self.id,
            "pattern": {self.pattern_type: self.pattern},
            "statement": self.statement.value,
            "line_item": self.line_item,
            "priority": self.priority,
            "description": self.description,
            "account_codes": self.account_codes,
        })


class MappingTargetSchema(BaseModel):
    """Externally supplied account mapping."""

    statement: StatementSection = Field(..., description="Statement section")
    line_item: str = Field(..., description="Line item id")


class PreviousPeriodSchema(BaseModel):
    """A prior period used for comparisons and equity opening balances."""

    period_id: str = Field(..., description="Period identifier")
    reporting_date: Optional[date] = Field(None, description="Reporting date")
    accounts: List[AccountSchema] = Field(..., description="Raw accounts of the period")


class EngineRequest(BaseModel):
    """Complete input for one engine run."""

    period_id: str = Field(..., description="Period identifier")
    reporting_date: Optional[date] = Field(None, description="Reporting date")
    accounts: List[AccountSchema] = Field(default_factory=list, description="Raw trial balance")
    journal_entries: List[JournalEntrySchema] = Field(default_factory=list, description="Entries in order")
    custom_rules: List[RuleSchema] = Field(default_factory=list, description="Rules added to the defaults")
    mappings: Dict[str, MappingTargetSchema] = Field(
        default_factory=dict, description="Mapping overrides by account id"
    )
    previous_periods: List[PreviousPeriodSchema] = Field(
        default_factory=list, description="Earlier periods, most recent first"
    )
    applicable_statuses: List[JournalEntryStatus] = Field(
        default_factory=lambda: [JournalEntryStatus.POSTED],
        description="Entry statuses applied to the ledger",
    )
    on_invalid: Literal["raise", "skip"] = Field("raise", description="Handling of invalid entries")
    allow_new_accounts: bool = Field(False, description="Materialize accounts first seen in entries")

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "EngineRequest":
        """Validate raw input, converting pydantic errors into ContractError."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ContractError(
                "Engine request failed validation",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def domain_accounts(self) -> List[Account]:
        return [a.to_domain() for a in self.accounts]

    def domain_entries(self) -> List[JournalEntry]:
        return [e.to_domain() for e in self.journal_entries]

    def domain_rules(self) -> List[ClassificationRule]:
        try:
            return [r.to_domain() for r in self.custom_rules]
        except RuleConfigurationError as e:
            raise ContractError(e.message, details=e.details) from e

    def domain_mappings(self) -> Dict[str, tuple]:
        return {aid: (m.statement, m.line_item) for aid, m in self.mappings.items()}

    def domain_previous_periods(self) -> List[PeriodData]:
        return [
            PeriodData(
                period_id=p.period_id,
                raw_accounts=[a.to_domain() for a in p.accounts],
                reporting_date=p.reporting_date,
            )
            for p in self.previous_periods
        ]


# =============================================================================
# Response
# =============================================================================

class AccountResponse(BaseModel):
    """An account with its balance."""

    account_id: str
    account_name: str
    debit: Decimal
    credit: Decimal
    balance: Decimal

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        return cls(
            account_id=account.account_id,
            account_name=account.account_name,
            debit=account.debit,
            credit=account.credit,
            balance=account.balance,
        )


LineItems = Dict[str, List[AccountResponse]]


def _line_items(items: Optional[Dict[str, List[Account]]]) -> Optional[LineItems]:
    if items is None:
        return None
    return {
        label: [AccountResponse.from_domain(a) for a in accounts]
        for label, accounts in items.items()
    }


class MappedTrialBalanceResponse(BaseModel):
    """Accounts by statement section and line item."""

    assets: Optional[LineItems] = None
    liabilities: Optional[LineItems] = None
    equity: Optional[LineItems] = None
    revenue: Optional[LineItems] = None
    expenses: Optional[LineItems] = None
    unmapped: List[AccountResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, mapped: MappedTrialBalance) -> "MappedTrialBalanceResponse":
        return cls(
            **{section.value: _line_items(items) for section, items in mapped.sections()},
            unmapped=[AccountResponse.from_domain(a) for a in mapped.unmapped],
        )


class AdjustmentSummaryResponse(BaseModel):
    total_entries: int
    total_adjustments: Decimal
    last_adjustment_date: Optional[date] = None
    net_impact_by_account: Dict[str, Decimal]


class RejectedEntryResponse(BaseModel):
    entry_id: str
    entry_number: str
    reason: str
    error_code: str


class AdjustedTrialBalanceResponse(BaseModel):
    """Adjusted balances and the entries that produced them."""

    base_accounts: List[AccountResponse]
    applied_entry_ids: List[str]
    adjusted_balances: List[AccountResponse]
    adjustment_summary: AdjustmentSummaryResponse
    rejected_entries: List[RejectedEntryResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, adjusted: AdjustedTrialBalance) -> "AdjustedTrialBalanceResponse":
        summary = adjusted.adjustment_summary
        return cls(
            base_accounts=[AccountResponse.from_domain(a) for a in adjusted.base_accounts],
            applied_entry_ids=[e.id for e in adjusted.adjustments],
            adjusted_balances=[AccountResponse.from_domain(a) for a in adjusted.adjusted_balances],
            adjustment_summary=AdjustmentSummaryResponse(
                total_entries=summary.total_entries,
                total_adjustments=summary.total_adjustments,
                last_adjustment_date=summary.last_adjustment_date,
                net_impact_by_account=summary.net_impact_by_account,
            ),
            rejected_entries=[
                RejectedEntryResponse(
                    entry_id=r.entry.id,
                    entry_number=r.entry.entry_number,
                    reason=r.reason,
                    error_code=r.error_code,
                )
                for r in adjusted.rejected_entries
            ],
        )


class ValidationResultResponse(BaseModel):
    check: str
    status: ValidationStatus
    is_valid: bool
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, result: ValidationResult) -> "ValidationResultResponse":
        return cls(
            check=result.check,
            status=result.status,
            is_valid=result.is_valid,
            message=result.message,
            details=result.details,
        )


class EngineResponse(BaseModel):
    """Complete output of one engine run."""

    period_id: str = Field(..., description="Period identifier")
    reporting_date: Optional[date] = Field(None, description="Reporting date")
    rule_set_version: str = Field(..., description="Version of the rule set used")
    mapped_trial_balance: MappedTrialBalanceResponse
    adjusted_trial_balance: AdjustedTrialBalanceResponse
    validation_results: List[ValidationResultResponse]
    is_valid: bool = Field(..., description="True when every check is valid")
