"""
Rule-based account classifier.

Scores every ledger account against the active rule set and assigns the best
surviving match as its IFRS line item.

Confidence per rule:
1. Direct pattern hit → +0.7 (regex) or +similarity*0.6 (literal, > 0.6)
2. Keyword overlap with the rule description → +0.2 per keyword, max 0.5
3. Chart-of-accounts code range heuristic → +0.3
4. Scaled by priority / 10, capped at 1.0, discarded at or below 0.3
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from tb_engine.engine.models import Account, ClassifiedAccount, StatementSection
from tb_engine.services.classifiers.rules import (
    ClassificationRule,
    RuleSet,
    default_rule_set,
)
from tb_engine.services.classifiers.similarity import (
    extract_keywords,
    leading_account_code,
    similarity,
)

logger = structlog.get_logger(__name__)


@dataclass
class AccountMatch:
    """Result of matching one account against one rule."""

    account_id: str
    account_name: str
    rule_id: str
    statement: StatementSection
    line_item_id: str
    confidence: float
    priority: int
    reasons: List[str] = field(default_factory=list)


@dataclass
class MappingQuality:
    """Quality score of a set of account mappings."""

    score: float
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


class AccountClassifier:
    """
    Classifier mapping trial balance accounts to IFRS line items.

    The rule set is passed in explicitly; custom rules are merged with
    ``RuleSet.extend`` before constructing the classifier.
    """

    # Matches at or below this confidence are discarded
    MIN_CONFIDENCE = 0.3

    KEYWORD_SIMILARITY = 0.8
    KEYWORD_WEIGHT = 0.2
    KEYWORD_CAP = 0.5
    CODE_RANGE_WEIGHT = 0.3

    # (low, high) inclusive code range → fragment of the suggested line item id
    CODE_RANGE_HINTS: Tuple[Tuple[int, int, str], ...] = (
        (1000, 1999, "cash"),
        (1100, 1199, "receivables"),
        (1300, 1399, "inventories"),
        (1500, 1799, "property"),
        (2000, 2999, "payables"),
        (2100, 2199, "borrowings"),
        (3000, 3999, "capital"),
        (4000, 4999, "revenue"),
        (5000, 6999, "cost"),
    )

    # Line item fragments used by the balance-consistency part of quality scoring
    ASSET_TAGS = ("cash", "receivables", "inventories", "property", "intangible")
    LIABILITY_TAGS = ("payables", "borrowings", "provisions")
    EQUITY_TAGS = ("capital", "earnings", "reserves")

    BALANCE_TOLERANCE = Decimal("1000")
    BALANCE_DECAY = Decimal("100000")

    def __init__(self, rule_set: Optional[RuleSet] = None):
        """
        Initialize classifier.

        Args:
            rule_set: Active rules; defaults to the packaged rule set.
        """
        self.rule_set = rule_set if rule_set is not None else default_rule_set()
        self._rules = self.rule_set.by_priority()
        self._rule_keywords = {
            rule.id: extract_keywords(rule.description) for rule in self._rules
        }

    def classify(self, account: Account) -> List[AccountMatch]:
        """
        Score an account against every rule.

        Args:
            account: Account to classify.

        Returns:
            Surviving matches, best first.
        """
        keywords = extract_keywords(account.account_name)
        code = leading_account_code(account.account_name)

        matches = []
        for rule in self._rules:
            if not rule.applies_to(account.account_id):
                continue
            match = self._score(account, rule, keywords, code)
            if match is not None:
                matches.append(match)

        # Stable: ties keep priority order, then rule order
        matches.sort(key=lambda m: (-m.confidence, -m.priority))
        return matches

    def _score(
        self,
        account: Account,
        rule: ClassificationRule,
        keywords: List[str],
        code: Optional[int],
    ) -> Optional[AccountMatch]:
        confidence = 0.0
        reasons = []

        hit, reason = rule.pattern.evaluate(account.account_name)
        if hit:
            confidence += hit
            reasons.append(reason)

        rule_keywords = self._rule_keywords[rule.id]
        overlap = [
            kw for kw in keywords
            if any(similarity(kw, rk) > self.KEYWORD_SIMILARITY for rk in rule_keywords)
        ]
        if overlap:
            confidence += min(len(overlap) * self.KEYWORD_WEIGHT, self.KEYWORD_CAP)
            reasons.append(f"Keyword matches: {', '.join(overlap)}")

        if code is not None and self._code_suggests(code, rule.line_item):
            confidence += self.CODE_RANGE_WEIGHT
            reasons.append(f"Account code pattern: {code}")

        if rule.account_codes:
            reasons.append(f"Account code allow-listed by rule {rule.id}")

        confidence *= rule.priority / 10

        if confidence <= self.MIN_CONFIDENCE:
            return None

        return AccountMatch(
            account_id=account.account_id,
            account_name=account.account_name,
            rule_id=rule.id,
            statement=rule.statement,
            line_item_id=rule.line_item,
            confidence=min(confidence, 1.0),
            priority=rule.priority,
            reasons=reasons,
        )

    def _code_suggests(self, code: int, line_item: str) -> bool:
        return any(
            low <= code <= high and fragment in line_item
            for low, high, fragment in self.CODE_RANGE_HINTS
        )

    def best_match(self, account: Account) -> Optional[AccountMatch]:
        """Get the highest-confidence match for an account, if any."""
        matches = self.classify(account)
        return matches[0] if matches else None

    def generate_suggestions(self, accounts: Iterable[Account]) -> Dict[str, List[AccountMatch]]:
        """
        Match every account; accounts without any surviving match are omitted.
        """
        suggestions = {}
        for account in accounts:
            matches = self.classify(account)
            if matches:
                suggestions[account.account_id] = matches
        return suggestions

    def auto_map_high_confidence_accounts(
        self,
        accounts: Iterable[Account],
        threshold: float = 0.8,
    ) -> Dict[str, str]:
        """
        Map accounts whose best match reaches the threshold.

        Returns:
            Dict of account_id → line_item_id.
        """
        mappings = {}
        for account in accounts:
            best = self.best_match(account)
            if best is not None and best.confidence >= threshold:
                mappings[account.account_id] = best.line_item_id
        return mappings

    def classify_accounts(
        self,
        accounts: Iterable[Account],
        threshold: float = 0.8,
    ) -> List[ClassifiedAccount]:
        """
        Assign statement and line item to each account, in input order.

        Accounts whose best match falls below the threshold stay unmapped.
        """
        accounts = list(accounts)
        classified = []
        for account in accounts:
            best = self.best_match(account)
            if best is not None and best.confidence >= threshold:
                classified.append(ClassifiedAccount(account, best.statement, best.line_item_id))
            else:
                classified.append(ClassifiedAccount(account))

        mapped = sum(1 for c in classified if c.is_mapped)
        logger.info(
            "Classification complete",
            accounts=len(accounts),
            mapped=mapped,
            unmapped=len(accounts) - mapped,
            rule_set=self.rule_set.version,
        )
        return classified

    def validate_mapping_quality(
        self,
        accounts: List[Account],
        mappings: Dict[str, str],
        max_suggestions: int = 3,
        suggestion_confidence: float = 0.6,
    ) -> MappingQuality:
        """
        Score mapping completeness and balance-sheet consistency.

        Args:
            accounts: All accounts of the trial balance.
            mappings: Dict of account_id → line_item_id.
            max_suggestions: Maximum concrete mapping suggestions.
            suggestion_confidence: Minimum best-match confidence to suggest.

        Returns:
            MappingQuality with score = 0.7 * completion + 0.3 * balance.
        """
        if not accounts:
            return MappingQuality(score=1.0)

        issues = []
        suggestions = []

        mapped = [a for a in accounts if mappings.get(a.account_id)]
        unmapped = [a for a in accounts if not mappings.get(a.account_id)]
        completion = len(mapped) / len(accounts)

        for account in unmapped:
            issues.append(f"Account {account.account_id} ({account.account_name}) is unmapped")
            if len(suggestions) >= max_suggestions:
                continue
            best = self.best_match(account)
            if best is not None and best.confidence > suggestion_confidence:
                suggestions.append(
                    f'Consider mapping "{account.account_name}" to {best.line_item_id} '
                    f"({best.confidence * 100:.0f}% confidence)"
                )

        asset_total = sum(
            (a.debit - a.credit for a in mapped if self._tagged(mappings[a.account_id], self.ASSET_TAGS)),
            Decimal("0"),
        )
        liability_total = sum(
            (a.credit - a.debit for a in mapped if self._tagged(mappings[a.account_id], self.LIABILITY_TAGS)),
            Decimal("0"),
        )
        equity_total = sum(
            (a.credit - a.debit for a in mapped if self._tagged(mappings[a.account_id], self.EQUITY_TAGS)),
            Decimal("0"),
        )

        difference = abs(asset_total - (liability_total + equity_total))
        if difference < self.BALANCE_TOLERANCE:
            balance_score = 1.0
        else:
            balance_score = max(0.0, float(1 - difference / self.BALANCE_DECAY))

        if balance_score < 0.9:
            issues.append("Balance sheet equation may not balance with current mappings")
            suggestions.append("Review asset, liability, and equity account mappings")

        score = completion * 0.7 + balance_score * 0.3
        logger.debug(
            "Mapping quality scored",
            score=round(score, 4),
            completion=round(completion, 4),
            balance_score=round(balance_score, 4),
        )
        return MappingQuality(score=score, issues=issues, suggestions=suggestions)

    @staticmethod
    def _tagged(line_item: str, tags: Tuple[str, ...]) -> bool:
        return any(tag in line_item for tag in tags)


# Singleton instance
_classifier_instance: Optional[AccountClassifier] = None


def get_account_classifier() -> AccountClassifier:
    """Get classifier for the default rule set."""
    global _classifier_instance
    if _classifier_instance is None:
        _classifier_instance = AccountClassifier()
    return _classifier_instance
