"""
Unit tests for the rule-based account classifier and rule sets.
"""
import re

import pytest

from tb_engine.engine.models import StatementSection
from tb_engine.exceptions import RuleConfigurationError
from tb_engine.services.classifiers.rule_based import (
    AccountClassifier,
    get_account_classifier,
)
from tb_engine.services.classifiers.rules import (
    ClassificationRule,
    LiteralPattern,
    RegexPattern,
    RuleSet,
    create_custom_rule,
    default_rule_set,
    load_rule_set,
)


class TestDefaultRuleSet:
    """Tests for the packaged rule set."""

    def test_loads_all_rules(self):
        """Test the packaged YAML defines every default rule."""
        rules = default_rule_set()
        assert rules.version == "2024.1"
        assert len(rules) == 17
        assert rules.get("cash-bank").line_item == "cash_and_cash_equivalents"

    def test_patterns_are_regex(self):
        """Test default rules use regular expression patterns."""
        assert all(isinstance(rule.pattern, RegexPattern) for rule in default_rule_set())

    def test_priority_order_is_stable(self):
        """Test equal priorities keep definition order."""
        top = [r.id for r in default_rule_set().by_priority() if r.priority == 10]
        assert top == ["cash-bank", "share-capital", "revenue"]

    def test_extend_returns_new_rule_set(self):
        """Test custom rules are appended without touching the original."""
        base = default_rule_set()
        custom = create_custom_rule("Suspense", StatementSection.ASSETS, "other_assets", "Suspense", rule_id="c1")
        extended = base.extend([custom])
        assert len(extended) == len(base) + 1
        assert extended.get("c1") is custom
        assert base.get("c1") is None


class TestRuleConfiguration:
    """Tests for rule parsing and validation."""

    def test_duplicate_ids_rejected(self):
        """Test a rule set cannot contain the same id twice."""
        rule = create_custom_rule("cash", StatementSection.ASSETS, "cash", "Cash", rule_id="dup")
        with pytest.raises(RuleConfigurationError):
            RuleSet(version="x", rules=(rule, rule))

    def test_invalid_regex_rejected(self):
        """Test an invalid expression raises a configuration error."""
        with pytest.raises(RuleConfigurationError):
            RegexPattern("(unclosed")

    def test_priority_range(self):
        """Test priority must be within 0-100."""
        with pytest.raises(RuleConfigurationError):
            create_custom_rule("cash", StatementSection.ASSETS, "cash", "Cash", priority=101)

    def test_load_from_yaml(self, tmp_path):
        """Test loading a rule file."""
        path = tmp_path / "rules.yaml"
        path.write_text(
            "version: '7'\n"
            "rules:\n"
            "  - id: suspense\n"
            "    pattern: {literal: Suspense Account}\n"
            "    statement: assets\n"
            "    line_item: other_current_assets\n"
            "    priority: 6\n"
            "    description: Suspense account\n"
            "    account_codes: [9999]\n",
            encoding="utf-8",
        )
        rules = load_rule_set(path)
        rule = rules.get("suspense")
        assert rules.version == "7"
        assert isinstance(rule.pattern, LiteralPattern)
        assert rule.account_codes == ("9999",)

    def test_missing_file(self, tmp_path):
        """Test a missing rule file raises."""
        with pytest.raises(RuleConfigurationError):
            load_rule_set(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises."""
        path = tmp_path / "broken.yaml"
        path.write_text("rules: [\n", encoding="utf-8")
        with pytest.raises(RuleConfigurationError):
            load_rule_set(path)

    def test_unknown_statement(self, tmp_path):
        """Test rules must target a known statement section."""
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n"
            "  - id: r1\n"
            "    pattern: {regex: cash}\n"
            "    statement: cashflow\n"
            "    line_item: cash\n",
            encoding="utf-8",
        )
        with pytest.raises(RuleConfigurationError):
            load_rule_set(path)

    def test_custom_rule_from_compiled_regex(self):
        """Test a compiled pattern becomes a regex rule."""
        rule = create_custom_rule(re.compile(r"\bescrow\b"), StatementSection.ASSETS, "cash", "Escrow cash")
        assert isinstance(rule.pattern, RegexPattern)
        assert rule.id.startswith("custom_")
        assert rule.priority == 5


class TestAccountClassifier:
    """Tests for AccountClassifier."""

    @pytest.fixture
    def classifier(self) -> AccountClassifier:
        """Get classifier instance."""
        return get_account_classifier()

    def test_petty_cash(self, classifier: AccountClassifier, make_account):
        """Test petty cash maps to cash and cash equivalents."""
        best = classifier.best_match(make_account("1000", "Petty Cash", debit=500))
        assert best is not None
        assert best.line_item_id == "cash_and_cash_equivalents"
        assert best.statement == StatementSection.ASSETS
        assert best.confidence >= 0.6
        assert best.confidence == pytest.approx(0.9)

    def test_account_code_heuristic(self, classifier: AccountClassifier, make_account):
        """Test a leading chart-of-accounts code adds confidence."""
        best = classifier.best_match(make_account("1010", "1010 Bank Account"))
        assert best.line_item_id == "cash_and_cash_equivalents"
        assert best.confidence == pytest.approx(1.0)
        assert "Account code pattern: 1010" in best.reasons

    def test_confidence_capped(self, classifier: AccountClassifier, make_account):
        """Test confidence never exceeds 1.0."""
        for match in classifier.classify(make_account("1100", "1100 Trade Receivables")):
            assert match.confidence <= 1.0

    def test_no_match(self, classifier: AccountClassifier, make_account):
        """Test unrelated names produce no surviving matches."""
        account = make_account("9000", "Zebra Xylophone")
        assert classifier.classify(account) == []
        assert classifier.best_match(account) is None

    def test_matches_sorted_by_confidence(self, classifier: AccountClassifier, make_account):
        """Test the strongest rule wins over a weaker pattern hit."""
        matches = classifier.classify(make_account("5000", "Cost of Sales"))
        assert matches[0].rule_id == "cost-of-sales"
        revenue = next(m for m in matches if m.rule_id == "revenue")
        assert revenue.confidence == pytest.approx(0.7)
        confidences = [m.confidence for m in matches]
        assert confidences == sorted(confidences, reverse=True)

    def test_deterministic(self, classifier: AccountClassifier, make_account):
        """Test repeated classification yields the same ordered matches."""
        account = make_account("2100", "Bank Loan - Short Term")
        first = classifier.classify(account)
        second = AccountClassifier(default_rule_set()).classify(account)
        assert [(m.rule_id, m.confidence) for m in first] == [(m.rule_id, m.confidence) for m in second]

    def test_custom_literal_rule(self, make_account):
        """Test a literal custom rule matches by similarity."""
        rule = create_custom_rule(
            "Suspense Clearing",
            StatementSection.ASSETS,
            "other_current_assets",
            "Suspense clearing",
            priority=10,
            rule_id="suspense",
        )
        classifier = AccountClassifier(default_rule_set().extend([rule]))
        best = classifier.best_match(make_account("9100", "Suspense Clearing"))
        assert best.rule_id == "suspense"
        assert best.confidence == pytest.approx(1.0)

    def test_account_code_allow_list(self, make_account):
        """Test rules with an allow-list skip other accounts."""
        rule = ClassificationRule(
            id="petty-only",
            pattern=RegexPattern("petty"),
            statement=StatementSection.ASSETS,
            line_item="petty_cash_float",
            priority=20,
            description="Petty cash float",
            account_codes=("1005",),
        )
        classifier = AccountClassifier(RuleSet(version="t", rules=(rule,)))
        assert classifier.best_match(make_account("1000", "Petty Cash")) is None
        best = classifier.best_match(make_account("1005", "Petty Cash"))
        assert best.line_item_id == "petty_cash_float"

    def test_empty_rule_set(self, make_account):
        """Test an empty rule set classifies nothing without raising."""
        classifier = AccountClassifier(RuleSet(version="empty"))
        assert classifier.classify(make_account("1000", "Petty Cash")) == []

    def test_auto_map_trial_balance(self, classifier, trial_balance, expected_line_items):
        """Test every sample account auto-maps at the default threshold."""
        mappings = classifier.auto_map_high_confidence_accounts(trial_balance)
        assert mappings == {aid: item for aid, (_, item) in expected_line_items.items()}

    def test_auto_map_threshold(self, classifier, make_account):
        """Test accounts below the threshold stay unmapped."""
        accounts = [make_account("1300", "Inventory")]
        assert classifier.auto_map_high_confidence_accounts(accounts, threshold=0.8) == {}
        assert classifier.auto_map_high_confidence_accounts(accounts, threshold=0.6) == {
            "1300": "inventories"
        }

    def test_classify_accounts(self, classifier, trial_balance, expected_line_items):
        """Test classification carries the statement section."""
        classified = classifier.classify_accounts(trial_balance)
        assert [c.account for c in classified] == trial_balance
        for item in classified:
            statement, line_item = expected_line_items[item.account.account_id]
            assert item.statement.value == statement
            assert item.line_item == line_item

    def test_generate_suggestions_omits_unmatched(self, classifier, make_account):
        """Test accounts without matches are left out of suggestions."""
        suggestions = classifier.generate_suggestions([
            make_account("1000", "Petty Cash"),
            make_account("9000", "Zebra Xylophone"),
        ])
        assert list(suggestions) == ["1000"]


class TestMappingQuality:
    """Tests for validate_mapping_quality."""

    @pytest.fixture
    def classifier(self) -> AccountClassifier:
        """Fresh classifier over the default rules."""
        return AccountClassifier()

    def test_no_accounts(self, classifier):
        """Test zero accounts give a neutral score."""
        quality = classifier.validate_mapping_quality([], {})
        assert quality.score == 1.0
        assert quality.issues == []

    def test_fully_mapped(self, classifier, trial_balance, expected_line_items):
        """Test complete mappings with an unclosed profit lose some balance score."""
        mappings = {aid: item for aid, (_, item) in expected_line_items.items()}
        quality = classifier.validate_mapping_quality(trial_balance, mappings)
        # assets 81,500 vs liabilities + equity 70,500
        assert quality.score == pytest.approx(0.7 + 0.3 * 0.89)
        assert "Review asset, liability, and equity account mappings" in quality.suggestions

    def test_unmapped_account_suggestion(self, classifier, trial_balance, expected_line_items):
        """Test an unmapped account gets an issue and a concrete suggestion."""
        mappings = {aid: item for aid, (_, item) in expected_line_items.items() if aid != "1000"}
        quality = classifier.validate_mapping_quality(trial_balance, mappings)
        assert any("1000" in issue for issue in quality.issues)
        assert (
            'Consider mapping "Petty Cash" to cash_and_cash_equivalents (90% confidence)'
            in quality.suggestions
        )

    def test_suggestions_limited(self, classifier, trial_balance):
        """Test at most three concrete suggestions are produced."""
        quality = classifier.validate_mapping_quality(trial_balance, {})
        assert len(quality.issues) == len(trial_balance)
        assert len(quality.suggestions) == 3
        assert quality.score == pytest.approx(0.3)
