"""
Orchestrator for the trial-balance engine.

Main entry point that coordinates the pipeline:
Pass 1: Classify (raw accounts → statement line items)
Pass 2: Replay (applicable journal entries → adjusted balances)
Pass 3: Aggregate (adjusted balances → mapped trial balance)
Pass 4: Validate (invariant battery over raw and mapped data)

Each pass consumes the immutable output of the previous one.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from tb_engine.config import Settings, get_settings
from tb_engine.engine.aggregation import aggregate
from tb_engine.engine.ledger import ON_INVALID_RAISE, apply_adjustments
from tb_engine.engine.models import (
    Account,
    AdjustedTrialBalance,
    ClassifiedAccount,
    JournalEntry,
    JournalEntryStatus,
    MappedTrialBalance,
    PeriodData,
    StatementSection,
    ValidationResult,
)
from tb_engine.logging_config import new_run_id
from tb_engine.schemas.engine import (
    AdjustedTrialBalanceResponse,
    EngineRequest,
    EngineResponse,
    MappedTrialBalanceResponse,
    ValidationResultResponse,
)
from tb_engine.services.classifiers.rule_based import AccountClassifier
from tb_engine.services.classifiers.rules import RuleSet, default_rule_set, load_rule_set
from tb_engine.services.validators.battery import InvariantValidator

logger = structlog.get_logger(__name__)


@dataclass
class EngineOptions:
    """Configuration options for one engine run."""
    # Ledger replay
    applicable_statuses: Tuple[JournalEntryStatus, ...] = (JournalEntryStatus.POSTED,)
    on_invalid: str = ON_INVALID_RAISE  # "raise" or "skip"
    allow_new_accounts: bool = False
    # Classification (None = configured auto-map threshold)
    auto_map_threshold: Optional[float] = None
    # Validation
    skip_validation: bool = False


@dataclass
class EngineResult:
    """Outputs of one engine run."""
    period_id: str
    rule_set_version: str
    classified_accounts: List[ClassifiedAccount]
    adjusted_trial_balance: AdjustedTrialBalance
    mapped_trial_balance: MappedTrialBalance
    validation_results: List[ValidationResult] = field(default_factory=list)
    reporting_date: Optional[date] = None

    @property
    def is_valid(self) -> bool:
        return all(r.is_valid for r in self.validation_results)


def resolve_rule_set(settings: Settings, custom_rules: Sequence = ()) -> RuleSet:
    """Configured (or packaged) rule set with custom rules appended."""
    base = load_rule_set(settings.rules_path) if settings.rules_path else default_rule_set()
    return base.extend(custom_rules) if custom_rules else base


def _classify(
    classifier: AccountClassifier,
    accounts: Sequence[Account],
    mappings: Mapping[str, Tuple[StatementSection, str]],
    threshold: float,
) -> List[ClassifiedAccount]:
    """Classify accounts; explicit mappings take precedence over rule matches."""
    classified = classifier.classify_accounts(accounts, threshold=threshold)
    if not mappings:
        return classified
    result = []
    for item in classified:
        target = mappings.get(item.account.account_id)
        if target is None:
            result.append(item)
        else:
            statement, line_item = target
            result.append(ClassifiedAccount(item.account, StatementSection(statement), line_item))
    return result


def _map_balances(
    classifier: AccountClassifier,
    classified: List[ClassifiedAccount],
    balances: Sequence[Account],
    mappings: Mapping[str, Tuple[StatementSection, str]],
    threshold: float,
) -> MappedTrialBalance:
    """Bucket adjusted balances using the assignments made for the raw accounts."""
    assignments = {item.account.account_id: item for item in classified}
    new_accounts = [a for a in balances if a.account_id not in assignments]
    for item in _classify(classifier, new_accounts, mappings, threshold):
        assignments[item.account.account_id] = item

    bucketed = []
    for account in balances:
        assigned = assignments[account.account_id]
        bucketed.append(ClassifiedAccount(account, assigned.statement, assigned.line_item))
    return aggregate(bucketed)


def run_engine(
    period_id: str,
    accounts: Sequence[Account],
    entries: Sequence[JournalEntry] = (),
    rule_set: Optional[RuleSet] = None,
    mappings: Optional[Mapping[str, Tuple[StatementSection, str]]] = None,
    previous_periods: Sequence[PeriodData] = (),
    reporting_date: Optional[date] = None,
    options: Optional[EngineOptions] = None,
    settings: Optional[Settings] = None,
) -> EngineResult:
    """
    Main entry point for the trial-balance engine.

    Orchestrates the complete pipeline:
    1. Classify raw accounts against the rule set
    2. Apply journal entries to the raw trial balance
    3. Aggregate adjusted balances into statement sections
    4. Validate accounting invariants

    Args:
        period_id: Reporting period identifier.
        accounts: Raw (imported) trial balance.
        entries: Journal entries in application order.
        rule_set: Classification rules; defaults to the configured rule set.
        mappings: Explicit account_id → (statement, line_item) overrides.
        previous_periods: Earlier periods, most recent first.
        reporting_date: Reporting date of the period.
        options: Engine options.
        settings: Settings; defaults to the cached environment settings.

    Returns:
        EngineResult.

    Raises:
        LedgerError: Invalid journal entry with on_invalid="raise".
    """
    settings = settings or get_settings()
    options = options or EngineOptions()
    rule_set = rule_set or resolve_rule_set(settings)
    mappings = dict(mappings or {})
    threshold = (
        options.auto_map_threshold
        if options.auto_map_threshold is not None
        else settings.auto_map_threshold
    )
    run_id = new_run_id()

    logger.info(
        "Engine run started",
        run_id=run_id,
        period_id=period_id,
        accounts=len(accounts),
        entries=len(entries),
        rule_set=rule_set.version,
    )

    classifier = AccountClassifier(rule_set)

    # Pass 1: Classify
    classified = _classify(classifier, accounts, mappings, threshold)

    # Pass 2: Replay
    adjusted = apply_adjustments(
        accounts,
        entries,
        applicable_statuses=options.applicable_statuses,
        on_invalid=options.on_invalid,
        allow_new_accounts=options.allow_new_accounts,
        tolerance=settings.balance_tolerance,
    )

    # Pass 3: Aggregate
    mapped = _map_balances(classifier, classified, adjusted.adjusted_balances, mappings, threshold)

    # Pass 4: Validate
    results: List[ValidationResult] = []
    if not options.skip_validation:
        previous = [
            p if p.mapped_trial_balance is not None else PeriodData(
                period_id=p.period_id,
                raw_accounts=p.raw_accounts,
                mapped_trial_balance=aggregate(_classify(classifier, p.raw_accounts, mappings, threshold)),
                reporting_date=p.reporting_date,
                period_name=p.period_name,
            )
            for p in previous_periods
        ]
        period = PeriodData(
            period_id=period_id,
            raw_accounts=list(accounts),
            mapped_trial_balance=mapped,
            reporting_date=reporting_date,
        )
        results = InvariantValidator(settings).validate(period, previous)

    logger.info(
        "Engine run complete",
        period_id=period_id,
        applied_entries=adjusted.adjustment_summary.total_entries,
        rejected_entries=len(adjusted.rejected_entries),
        unmapped=len(mapped.unmapped),
        checks=len(results),
        valid=all(r.is_valid for r in results),
    )

    return EngineResult(
        period_id=period_id,
        rule_set_version=rule_set.version,
        classified_accounts=classified,
        adjusted_trial_balance=adjusted,
        mapped_trial_balance=mapped,
        validation_results=results,
        reporting_date=reporting_date,
    )


def to_response(result: EngineResult) -> EngineResponse:
    """Convert an engine result to its serializable contract."""
    return EngineResponse(
        period_id=result.period_id,
        reporting_date=result.reporting_date,
        rule_set_version=result.rule_set_version,
        mapped_trial_balance=MappedTrialBalanceResponse.from_domain(result.mapped_trial_balance),
        adjusted_trial_balance=AdjustedTrialBalanceResponse.from_domain(result.adjusted_trial_balance),
        validation_results=[ValidationResultResponse.from_domain(r) for r in result.validation_results],
        is_valid=result.is_valid,
    )


def process_request(request: EngineRequest, settings: Optional[Settings] = None) -> EngineResponse:
    """
    Run the engine for a validated request.

    Args:
        request: Engine input contract.
        settings: Settings; defaults to the cached environment settings.

    Returns:
        EngineResponse; serialize with ``model_dump_json()``.
    """
    settings = settings or get_settings()
    result = run_engine(
        period_id=request.period_id,
        accounts=request.domain_accounts(),
        entries=request.domain_entries(),
        rule_set=resolve_rule_set(settings, request.domain_rules()),
        mappings=request.domain_mappings(),
        previous_periods=request.domain_previous_periods(),
        reporting_date=request.reporting_date,
        options=EngineOptions(
            applicable_statuses=tuple(request.applicable_statuses),
            on_invalid=request.on_invalid,
            allow_new_accounts=request.allow_new_accounts,
        ),
        settings=settings,
    )
    return to_response(result)


def run_engine_batch(
    requests: Sequence[EngineRequest],
    max_workers: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> List[EngineResponse]:
    """
    Process independent requests (e.g. periods or projects) in parallel.

    Runs share no state; results keep the order of ``requests``.
    """
    settings = settings or get_settings()
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(lambda r: process_request(r, settings), requests))
