import logging
import threading
import uuid
from datetime import UTC, datetime
from typing import Any, List, Mapping, Optional, Tuple, Union

from modheader_proxy.rules.exceptions import RuleValidationError
from modheader_proxy.rules.models import INVALID_ENABLED_MESSAGE, Rule, RuleInput

logger = logging.getLogger(__name__)

# Fields an update may never overwrite
PINNED_FIELDS = ("id", "createdAt", "created_at", "updatedAt", "updated_at")


class RuleStore:
    """In-memory, ordered collection of header rules.

    Rules are kept in an immutable tuple. Writers build a new tuple and swap it in
    while holding `_write_lock`; readers take whatever tuple is current without
    locking, so every read sees either the whole collection before a write or the
    whole collection after it.
    """

    def __init__(self) -> None:
        self._rules: Tuple[Rule, ...] = ()
        self._write_lock = threading.Lock()

    @staticmethod
    def _generate_id() -> str:
        return str(uuid.uuid4())

    def snapshot(self) -> Tuple[Rule, ...]:
        """
        The current rules in insertion order, without copying.

        This is the read used by `HeaderRuleEngine` for every proxied message. The
        returned rules are the stored objects, so callers must treat them as
        read-only. Use `get` or `list` for copies that are safe to modify.
        """
        return self._rules

    def count(self) -> int:
        return len(self._rules)

    def __len__(self) -> int:
        return self.count()

    def create(self, rule_input: Union[RuleInput, Mapping[str, Any]]) -> Rule:
        """
        Validates and stores a new rule at the end of the collection.

        Args:
            rule_input: A `RuleInput`, or an untyped payload with `action`, `type`
                (or `direction`), `headers` and optionally `enabled`.

        Returns:
            A copy of the stored rule.

        Raises:
            RuleValidationError: If a required field is missing or a value is invalid.
        """
        if not isinstance(rule_input, RuleInput):
            rule_input = RuleInput.from_payload(rule_input)

        rule = Rule(
            id=self._generate_id(),
            action=rule_input.action,
            direction=rule_input.direction,
            headers=rule_input.headers,
            enabled=rule_input.enabled,
            created_at=datetime.now(UTC),
        )
        with self._write_lock:
            self._rules = self._rules + (rule,)

        logger.info(f"Created {rule.action.value} rule {rule.id} for {rule.direction.value} headers.")
        return rule.model_copy(deep=True)

    def get(self, rule_id: str) -> Optional[Rule]:
        """Returns a copy of the rule with `rule_id`, or None if there is none."""
        for rule in self._rules:
            if rule.id == rule_id:
                return rule.model_copy(deep=True)
        return None

    def list(self) -> List[Rule]:
        """Returns copies of all rules in insertion order."""
        return [rule.model_copy(deep=True) for rule in self._rules]

    def update(self, rule_id: str, fields: Mapping[str, Any]) -> Optional[Rule]:
        """
        Merges `fields` onto the rule with `rule_id` and re-validates the result.

        `id`, `createdAt` and `updatedAt` in `fields` are ignored. The rule keeps its
        position in the collection.

        Returns:
            A copy of the updated rule, or None if no rule has `rule_id`.

        Raises:
            RuleValidationError: If the merged rule is invalid or `enabled` is null. The error
                carries `rule_id`. The stored rule is left unchanged.
        """
        updates = {key: value for key, value in fields.items() if key not in PINNED_FIELDS}
        # A direction given under either key replaces the current one
        if "direction" in updates and "type" not in updates:
            updates["type"] = updates.pop("direction")

        with self._write_lock:
            rules = list(self._rules)
            for index, existing in enumerate(rules):
                if existing.id == rule_id:
                    break
            else:
                return None

            # Only create treats a null `enabled` as the default
            if "enabled" in updates and updates["enabled"] is None:
                raise RuleValidationError(INVALID_ENABLED_MESSAGE, rule_id=rule_id)
            try:
                merged_input = RuleInput.from_payload({**existing.to_payload(), **updates})
            except RuleValidationError as e:
                raise RuleValidationError(e.detail, rule_id=rule_id) from e
            updated = Rule(
                id=existing.id,
                action=merged_input.action,
                direction=merged_input.direction,
                headers=merged_input.headers,
                enabled=merged_input.enabled,
                created_at=existing.created_at,
                updated_at=datetime.now(UTC),
            )
            rules[index] = updated
            self._rules = tuple(rules)

        logger.info(f"Updated rule {rule_id} (fields: {sorted(updates)}).")
        return updated.model_copy(deep=True)

    def remove(self, rule_id: str) -> bool:
        """Deletes the rule with `rule_id`. Returns whether a rule was deleted."""
        with self._write_lock:
            remaining = tuple(rule for rule in self._rules if rule.id != rule_id)
            removed = len(remaining) < len(self._rules)
            self._rules = remaining

        if removed:
            logger.info(f"Removed rule {rule_id}.")
        return removed

    def clear(self) -> None:
        """Removes every rule."""
        with self._write_lock:
            cleared = len(self._rules)
            self._rules = ()
        logger.info(f"Cleared {cleared} rule(s).")
