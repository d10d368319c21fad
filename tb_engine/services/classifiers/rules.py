"""
Classification rules and rule sets.

A rule pairs a name pattern with a target (statement, line item). Patterns are
either literal strings compared by fuzzy similarity or regular expressions
searched in the lowercased account name. The default rule set ships as YAML
and is loaded once into an immutable, versioned RuleSet.
"""
import re
import time
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import structlog
import yaml

from tb_engine.engine.models import StatementSection
from tb_engine.exceptions import RuleConfigurationError
from tb_engine.services.classifiers.similarity import similarity

logger = structlog.get_logger(__name__)

DEFAULT_RULES_PATH = Path(__file__).resolve().parents[2] / "data" / "default_rules.yaml"

# Confidence contributions of a direct pattern hit
REGEX_HIT_WEIGHT = 0.7
LITERAL_HIT_WEIGHT = 0.6
LITERAL_MIN_SIMILARITY = 0.6


@dataclass(frozen=True)
class LiteralPattern:
    """Plain text compared against the whole account name."""
    text: str

    kind = "literal"

    def evaluate(self, account_name: str) -> Tuple[float, Optional[str]]:
        score = similarity(account_name, self.text.lower())
        if score > LITERAL_MIN_SIMILARITY:
            return score * LITERAL_HIT_WEIGHT, f"Name similarity: {score * 100:.0f}%"
        return 0.0, None

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class RegexPattern:
    """Case-insensitive regular expression searched in the account name."""
    source: str
    regex: "re.Pattern[str]" = field(init=False, repr=False, compare=False)

    kind = "regex"

    def __post_init__(self):
        try:
            compiled = re.compile(self.source, re.IGNORECASE)
        except re.error as e:
            raise RuleConfigurationError(
                f"Invalid rule pattern: {self.source}",
                details={"pattern": self.source, "error": str(e)},
            ) from e
        object.__setattr__(self, "regex", compiled)

    def evaluate(self, account_name: str) -> Tuple[float, Optional[str]]:
        if self.regex.search(account_name.lower()):
            return REGEX_HIT_WEIGHT, f"Pattern match: {self.source}"
        return 0.0, None

    def __str__(self) -> str:
        return self.source


RulePattern = Union[LiteralPattern, RegexPattern]


@dataclass(frozen=True)
class ClassificationRule:
    """A rule mapping account names to a statement line item."""
    id: str
    pattern: RulePattern
    statement: StatementSection
    line_item: str
    priority: int
    description: str
    account_codes: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.account_codes, tuple):
            object.__setattr__(self, "account_codes", tuple(self.account_codes))
        if not 0 <= self.priority <= 100:
            raise RuleConfigurationError(
                f"Rule {self.id} priority must be between 0 and 100",
                details={"rule_id": self.id, "priority": self.priority},
            )

    def applies_to(self, account_id: str) -> bool:
        """Rules with an account code allow-list only consider listed codes."""
        return not self.account_codes or account_id in self.account_codes


@dataclass(frozen=True)
class RuleSet:
    """Immutable, versioned collection of classification rules."""
    version: str
    rules: Tuple[ClassificationRule, ...] = ()

    def __post_init__(self):
        if not isinstance(self.rules, tuple):
            object.__setattr__(self, "rules", tuple(self.rules))
        seen = set()
        duplicates = []
        for rule in self.rules:
            if rule.id in seen:
                duplicates.append(rule.id)
            seen.add(rule.id)
        if duplicates:
            raise RuleConfigurationError(
                "Duplicate rule ids in rule set",
                details={"version": self.version, "rule_ids": duplicates},
            )

    def __iter__(self) -> Iterator[ClassificationRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def get(self, rule_id: str) -> Optional[ClassificationRule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def by_priority(self) -> List[ClassificationRule]:
        """Rules sorted by priority descending, keeping definition order on ties."""
        return sorted(self.rules, key=lambda r: -r.priority)

    def extend(
        self,
        custom_rules: Iterable[ClassificationRule],
        version: Optional[str] = None,
    ) -> "RuleSet":
        """Return a new rule set with custom rules appended."""
        custom = tuple(custom_rules)
        return RuleSet(
            version=version or f"{self.version}+custom.{len(custom)}",
            rules=self.rules + custom,
        )


def create_custom_rule(
    pattern: Union[str, "re.Pattern[str]", RulePattern],
    statement: StatementSection,
    line_item: str,
    description: str,
    priority: int = 5,
    rule_id: Optional[str] = None,
) -> ClassificationRule:
    """
    Build a user-defined classification rule.

    Args:
        pattern: Literal text, a compiled regex, or a pattern object.
        statement: Target statement section.
        line_item: Target line item id.
        description: Human-readable description (also used for keyword overlap).
        priority: Rule priority (default 5).
        rule_id: Explicit id; defaults to ``custom_<milliseconds>``.

    Returns:
        New ClassificationRule.
    """
    if isinstance(pattern, str):
        pattern = LiteralPattern(pattern)
    elif isinstance(pattern, re.Pattern):
        pattern = RegexPattern(pattern.pattern)

    return ClassificationRule(
        id=rule_id or f"custom_{int(time.time() * 1000)}",
        pattern=pattern,
        statement=StatementSection(statement),
        line_item=line_item,
        priority=priority,
        description=description,
    )


def _parse_pattern(rule_id: str, raw: Any) -> RulePattern:
    if isinstance(raw, dict) and len(raw) == 1:
        kind, value = next(iter(raw.items()))
        if kind == "regex":
            return RegexPattern(str(value))
        if kind == "literal":
            return LiteralPattern(str(value))
    if isinstance(raw, str):
        return LiteralPattern(raw)
    raise RuleConfigurationError(
        f"Rule {rule_id} has an invalid pattern",
        details={"rule_id": rule_id, "pattern": raw},
    )


def parse_rule(raw: Dict[str, Any]) -> ClassificationRule:
    """Build a rule from its mapping form (as found in YAML files)."""
    rule_id = raw.get("id")
    if not rule_id:
        raise RuleConfigurationError("Rule is missing an id", details={"rule": raw})

    missing = [key for key in ("pattern", "statement", "line_item") if key not in raw]
    if missing:
        raise RuleConfigurationError(
            f"Rule {rule_id} is missing fields: {', '.join(missing)}",
            details={"rule_id": rule_id, "missing": missing},
        )

    try:
        statement = StatementSection(raw["statement"])
    except ValueError as e:
        raise RuleConfigurationError(
            f"Rule {rule_id} has unknown statement {raw['statement']!r}",
            details={"rule_id": rule_id},
        ) from e

    return ClassificationRule(
        id=str(rule_id),
        pattern=_parse_pattern(rule_id, raw["pattern"]),
        statement=statement,
        line_item=str(raw["line_item"]),
        priority=int(raw.get("priority", 5)),
        description=str(raw.get("description", "")),
        account_codes=tuple(str(code) for code in raw.get("account_codes", ())),
    )


def load_rule_set(path: Path) -> RuleSet:
    """
    Load a rule set from a YAML file.

    Args:
        path: YAML file with ``version`` and ``rules`` keys.

    Returns:
        Parsed RuleSet.

    Raises:
        RuleConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise RuleConfigurationError(
            f"Rule file not found: {path}", details={"path": str(path)}
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise RuleConfigurationError(
            f"Rule file is not valid YAML: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e

    if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
        raise RuleConfigurationError(
            f"Rule file must define a list of rules: {path}", details={"path": str(path)}
        )

    rule_set = RuleSet(
        version=str(data.get("version", "unversioned")),
        rules=tuple(parse_rule(raw) for raw in data.get("rules", [])),
    )
    logger.info("Loaded classification rules", path=str(path), version=rule_set.version, rules=len(rule_set))
    return rule_set


@lru_cache
def default_rule_set() -> RuleSet:
    """Get the packaged default rule set (cached)."""
    return load_rule_set(DEFAULT_RULES_PATH)
