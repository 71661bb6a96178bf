"""Reduces header rules to the mutation set a single message should receive."""

import logging
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from modheader_proxy.rules.models import (
    HeaderAction,
    HeaderDirection,
    MutationSet,
    RemoveHeaders,
    Rule,
)
from modheader_proxy.rules.store import RuleStore

logger = logging.getLogger(__name__)

# Failures a single malformed rule can raise while being reduced
_RULE_FAULTS = (TypeError, AttributeError, ValueError, KeyError)


def _require_str(item: object) -> str:
    if not isinstance(item, str):
        raise TypeError(f"expected a string, got {type(item).__name__}")
    return item


def _set_pairs(rule: Rule) -> List[Tuple[str, str]]:
    return [(_require_str(name), _require_str(value)) for name, value in rule.headers.values.items()]


def _remove_targets(rule: Rule) -> List[str]:
    headers = rule.headers
    if isinstance(headers, RemoveHeaders):
        names: Iterable = headers.names
    else:
        # a remove rule holding name/value pairs targets the names
        names = headers.values.keys()
    return [_require_str(name) for name in names]


def _rule_contribution(
    rule: Rule, present_names: frozenset
) -> Tuple[Dict[str, str], Dict[str, str], List[str]]:
    """The (add, modify, remove) entries one rule contributes, evaluated against the original headers."""
    to_add: Dict[str, str] = {}
    to_modify: Dict[str, str] = {}
    to_remove: List[str] = []

    if rule.action == HeaderAction.ADD:
        for name, value in _set_pairs(rule):
            to_add[name] = value
    elif rule.action == HeaderAction.MODIFY:
        for name, value in _set_pairs(rule):
            if name.lower() in present_names:
                to_modify[name] = value
    elif rule.action == HeaderAction.REMOVE:
        to_remove.extend(_remove_targets(rule))
    return to_add, to_modify, to_remove


def reduce_rules(
    rules: Iterable[Rule],
    direction: Union[HeaderDirection, str],
    headers: Mapping[str, str],
) -> MutationSet:
    """
    Reduces an ordered set of rules into the mutations for one message.

    Every rule is evaluated against the original `headers`; no rule sees another
    rule's output. Contributions are merged in rule order, so a later rule's value
    wins when two rules of the same action name the exact same header. `modify`
    entries are kept only when the header is already present, compared
    case-insensitively. Removals accumulate in order and may repeat.

    A rule that fails while being reduced contributes nothing and the rest still apply.

    Args:
        rules: Rules in insertion order.
        direction: The direction of the message being processed.
        headers: The message's current headers. Never modified.

    Returns:
        A fresh MutationSet.
    """
    direction = HeaderDirection(direction)
    present_names = frozenset(name.lower() for name in headers.keys())

    to_add: Dict[str, str] = {}
    to_modify: Dict[str, str] = {}
    to_remove: List[str] = []

    for rule in rules:
        try:
            if not rule.applies_to(direction):
                continue
            rule_add, rule_modify, rule_remove = _rule_contribution(rule, present_names)
        except _RULE_FAULTS as e:
            logger.warning(f"Skipping malformed rule {getattr(rule, 'id', '<unknown>')}: {e}")
            continue
        to_add.update(rule_add)
        to_modify.update(rule_modify)
        to_remove.extend(rule_remove)

    mutation_set = MutationSet(to_add=to_add, to_modify=to_modify, to_remove=tuple(to_remove))
    logger.debug(f"Reduced rules for {direction.value}: {mutation_set.summary()}")
    return mutation_set


class HeaderRuleEngine:
    """Computes mutation sets from the rules currently held by a RuleStore."""

    def __init__(self, store: RuleStore):
        self.store = store

    def reduce(self, direction: Union[HeaderDirection, str], headers: Mapping[str, str]) -> MutationSet:
        # One snapshot per message keeps each reduction internally consistent
        return reduce_rules(self.store.snapshot(), direction, headers)

    def apply_to_request(self, headers: Mapping[str, str]) -> MutationSet:
        """Mutations for an outgoing proxied request with the given headers."""
        return self.reduce(HeaderDirection.REQUEST, headers)

    def apply_to_response(self, headers: Mapping[str, str]) -> MutationSet:
        """Mutations for an upstream response with the given headers."""
        return self.reduce(HeaderDirection.RESPONSE, headers)
