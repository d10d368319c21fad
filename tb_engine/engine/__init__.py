"""
Trial-balance engine pipeline.

Classify → replay journal entries → aggregate → validate. Stages are pure and
operate on immutable inputs, so independent periods can run in parallel.

Pipeline entry points live in ``tb_engine.engine.orchestrator``; only the
domain records are exported here.
"""

from tb_engine.engine.models import (
    Account,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
    MappedTrialBalance,
    StatementSection,
    ValidationResult,
)

__all__ = [
    "Account",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "JournalEntryType",
    "MappedTrialBalance",
    "StatementSection",
    "ValidationResult",
]
