"""
Pytest configuration and fixtures.
"""
from datetime import date
from decimal import Decimal
from typing import Callable, List

import pytest

from tb_engine.engine.models import (
    Account,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
)


def _account(account_id: str, name: str, debit=0, credit=0) -> Account:
    return Account(
        account_id=account_id,
        account_name=name,
        debit=Decimal(str(debit)),
        credit=Decimal(str(credit)),
    )


def _line(account_id: str, debit=0, credit=0, name: str = "") -> JournalEntryLine:
    return JournalEntryLine(
        account_id=account_id,
        account_name=name or f"Account {account_id}",
        debit=Decimal(str(debit)),
        credit=Decimal(str(credit)),
    )


@pytest.fixture
def make_account() -> Callable[..., Account]:
    """Build a trial balance account from plain amounts."""
    return _account


@pytest.fixture
def make_line() -> Callable[..., JournalEntryLine]:
    """Build a journal entry line from plain amounts."""
    return _line


@pytest.fixture
def trial_balance() -> List[Account]:
    """Balanced pre-closing trial balance (profit for the year 11,000)."""
    return [
        _account("1000", "Petty Cash", debit=500),
        _account("1100", "Trade Receivables", debit=12000),
        _account("1300", "Inventories", debit=8000),
        _account("1500", "Property, Plant and Equipment", debit=61000),
        _account("2000", "Trade Payables", credit=9500),
        _account("2500", "Non-current Borrowings - Mortgage", credit=15000),
        _account("3000", "Share Capital", credit=40000),
        _account("3100", "Retained Earnings", credit=6000),
        _account("4000", "Sales Revenue", credit=30000),
        _account("5000", "Cost of Sales", debit=15000),
        _account("6000", "Depreciation and Amortisation", debit=3500),
        _account("6100", "Interest and Finance Costs", debit=500),
    ]


@pytest.fixture
def expected_line_items() -> dict:
    """Line items the default rules assign to the trial_balance accounts."""
    return {
        "1000": ("assets", "cash_and_cash_equivalents"),
        "1100": ("assets", "trade_and_other_receivables"),
        "1300": ("assets", "inventories"),
        "1500": ("assets", "property_plant_equipment"),
        "2000": ("liabilities", "trade_and_other_payables"),
        "2500": ("liabilities", "borrowings_non_current"),
        "3000": ("equity", "issued_capital"),
        "3100": ("equity", "retained_earnings"),
        "4000": ("revenue", "revenue"),
        "5000": ("expenses", "cost_of_sales"),
        "6000": ("expenses", "depreciation_amortisation"),
        "6100": ("expenses", "finance_costs"),
    }


@pytest.fixture
def entry_factory() -> Callable[..., JournalEntry]:
    """Build journal entries with sensible defaults."""
    counter = {"n": 0}

    def _make(
        *lines: JournalEntryLine,
        status: JournalEntryStatus = JournalEntryStatus.POSTED,
        entry_type: JournalEntryType = JournalEntryType.ADJUSTMENT,
        entry_date: date = date(2024, 12, 31),
        description: str = "Year-end adjustment",
        **kwargs,
    ) -> JournalEntry:
        counter["n"] += 1
        n = counter["n"]
        return JournalEntry(
            id=kwargs.pop("id", f"je-{n}"),
            entry_number=kwargs.pop("entry_number", f"ADJ-{n:03d}"),
            entry_date=entry_date,
            description=description,
            lines=tuple(lines),
            status=status,
            entry_type=entry_type,
            **kwargs,
        )

    return _make


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached settings and singleton instances for proper isolation."""
    import tb_engine.services.classifiers.rule_based as rule_based_module
    import tb_engine.services.journal as journal_module
    from tb_engine.config import get_settings

    rule_based_module._classifier_instance = None
    journal_module._journal_service = None
    get_settings.cache_clear()

    yield

    rule_based_module._classifier_instance = None
    journal_module._journal_service = None
    get_settings.cache_clear()
