from modheader_proxy.rules.engine import HeaderRuleEngine, reduce_rules
from modheader_proxy.rules.exceptions import HeaderRuleError, RuleValidationError
from modheader_proxy.rules.models import (
    HeaderAction,
    HeaderDirection,
    MutationSet,
    RemoveHeaders,
    Rule,
    RuleInput,
    SetHeaders,
)
from modheader_proxy.rules.store import RuleStore

__all__ = [
    "HeaderAction",
    "HeaderDirection",
    "HeaderRuleEngine",
    "HeaderRuleError",
    "MutationSet",
    "RemoveHeaders",
    "Rule",
    "RuleInput",
    "RuleStore",
    "RuleValidationError",
    "SetHeaders",
    "reduce_rules",
]
