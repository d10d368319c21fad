"""
Unit tests for the statement of changes in equity.
"""
from decimal import Decimal

from tb_engine.engine.aggregation import aggregate, build_classified_accounts
from tb_engine.engine.equity import (
    DIVIDENDS,
    OTHER_RESERVES,
    RETAINED_EARNINGS,
    SHARE_CAPITAL,
    TREASURY_SHARES,
    calculate_changes_in_equity,
    check_equity_movements,
    equity_component,
    profit_for_year,
)


def _mapped(accounts, mappings):
    return aggregate(build_classified_accounts(accounts, mappings))


class TestEquityComponent:
    """Tests for assigning equity accounts to components."""

    def test_components(self, make_account):
        """Test names and line items select the component."""
        cases = [
            ("Treasury Shares", "other_equity", TREASURY_SHARES),
            ("Final Dividends Paid", "retained_earnings", DIVIDENDS),
            ("Ordinary Shares", "other_equity", SHARE_CAPITAL),
            ("Anything", "issued_capital", SHARE_CAPITAL),
            ("Accumulated Profits", "other_equity", RETAINED_EARNINGS),
            ("Revaluation Reserve", "other_reserves", OTHER_RESERVES),
        ]
        for name, line_item, expected in cases:
            assert equity_component(make_account("3000", name), line_item) == expected


class TestChangesInEquity:
    """Tests for calculate_changes_in_equity."""

    def test_sample_trial_balance(self, trial_balance, expected_line_items):
        """Test profit rolls into retained earnings."""
        mapped = _mapped(trial_balance, expected_line_items)
        soce = calculate_changes_in_equity(mapped)

        assert soce.profit_for_year == Decimal(11000)
        assert profit_for_year(mapped) == Decimal(11000)
        assert soce.retained_earnings.opening == Decimal(6000)
        assert soce.retained_earnings.closing == Decimal(17000)
        assert soce.share_capital.closing == Decimal(40000)
        assert soce.total.closing == Decimal(57000)
        assert check_equity_movements(soce) == []

    def test_dividends(self, make_account):
        """Test declared dividends reduce retained earnings."""
        accounts = [
            make_account("3100", "Retained Earnings", credit=6000),
            make_account("3200", "Dividends Declared", debit=1000),
            make_account("4000", "Sales Revenue", credit=3000),
        ]
        mapped = _mapped(accounts, {
            "3100": ("equity", "retained_earnings"),
            "3200": ("equity", "retained_earnings"),
            "4000": ("revenue", "revenue"),
        })
        soce = calculate_changes_in_equity(mapped)
        assert soce.retained_earnings.dividends == Decimal(-1000)
        assert soce.dividends_declared == Decimal(1000)
        assert soce.retained_earnings.closing == Decimal(8000)

    def test_previous_period_openings(self, make_account):
        """Test prior balances become openings and the change is a movement."""
        previous = _mapped(
            [make_account("3000", "Share Capital", credit=30000)],
            {"3000": ("equity", "issued_capital")},
        )
        current = _mapped(
            [
                make_account("3000", "Share Capital", credit=40000),
                make_account("3300", "Revaluation Reserve", credit=2500),
            ],
            {"3000": ("equity", "issued_capital"), "3300": ("equity", "other_reserves")},
        )
        soce = calculate_changes_in_equity(current, previous)
        assert soce.share_capital.opening == Decimal(30000)
        assert soce.share_capital.issued == Decimal(10000)
        assert soce.other_reserves.opening == Decimal(0)
        assert soce.other_reserves.oci == Decimal(2500)
        assert check_equity_movements(soce) == []

    def test_treasury_shares_negative(self, make_account):
        """Test treasury shares are presented as a deduction."""
        mapped = _mapped(
            [make_account("3400", "Treasury Shares", debit=500)],
            {"3400": ("equity", "other_equity")},
        )
        assert calculate_changes_in_equity(mapped).treasury_shares.closing == Decimal(-500)

    def test_mismatch_detected(self, trial_balance, expected_line_items):
        """Test a closing balance that disagrees with its movements is reported."""
        soce = calculate_changes_in_equity(_mapped(trial_balance, expected_line_items))
        soce.share_capital.closing += Decimal(100)
        mismatches = check_equity_movements(soce)
        assert mismatches == [{
            "component": SHARE_CAPITAL,
            "expected": "40000",
            "actual": "40100",
            "difference": "100",
        }]
