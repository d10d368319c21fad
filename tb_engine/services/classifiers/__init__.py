"""Classifiers package."""
from tb_engine.services.classifiers.rule_based import (
    AccountClassifier,
    AccountMatch,
    MappingQuality,
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

__all__ = [
    "AccountClassifier",
    "AccountMatch",
    "MappingQuality",
    "get_account_classifier",
    "ClassificationRule",
    "LiteralPattern",
    "RegexPattern",
    "RuleSet",
    "create_custom_rule",
    "default_rule_set",
    "load_rule_set",
]
