"""Data model for header rules and the mutation sets they reduce to."""

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from modheader_proxy.rules.exceptions import RuleValidationError

MISSING_FIELDS_MESSAGE = "Missing required fields: action, type, headers"
INVALID_ACTION_MESSAGE = "Invalid action. Must be: add, modify, or remove"
INVALID_TYPE_MESSAGE = "Invalid type. Must be: request, response, or both"
INVALID_ENABLED_MESSAGE = "Invalid enabled. Must be a boolean"
INVALID_SET_HEADERS_MESSAGE = "Invalid headers. add and modify rules require an object of header names to string values"
INVALID_REMOVE_HEADERS_MESSAGE = "Invalid headers. remove rules require a list of header names or an object"

# RFC 9110 field-name token
_HEADER_NAME_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
# Visible ASCII; spaces and tabs only between visible characters
_HEADER_VALUE_RE = re.compile(r"(?:[\x21-\x7e]+(?:[ \t]+[\x21-\x7e]+)*)?")


class HeaderAction(str, Enum):
    """What a rule does to the headers it names."""

    ADD = "add"
    MODIFY = "modify"
    REMOVE = "remove"


class HeaderDirection(str, Enum):
    """Which messages a rule applies to."""

    REQUEST = "request"
    RESPONSE = "response"
    BOTH = "both"

    def covers(self, direction: "HeaderDirection") -> bool:
        """True if a rule with this direction applies to a message travelling in `direction`."""
        return self is HeaderDirection.BOTH or self == direction


class SetHeaders(BaseModel):
    """Header name to value pairs carried by add and modify rules."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["set"] = "set"
    values: Dict[str, str] = Field(default_factory=dict)

    def to_wire(self) -> Dict[str, str]:
        return dict(self.values)


class RemoveHeaders(BaseModel):
    """Header names carried by remove rules."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["remove"] = "remove"
    names: Tuple[str, ...] = ()

    def to_wire(self) -> List[str]:
        return list(self.names)


RuleHeaders = Annotated[Union[SetHeaders, RemoveHeaders], Field(discriminator="kind")]


def _is_valid_name(name: Any) -> bool:
    return isinstance(name, str) and _HEADER_NAME_RE.fullmatch(name) is not None


def _is_valid_value(value: Any) -> bool:
    return isinstance(value, str) and _HEADER_VALUE_RE.fullmatch(value) is not None


def build_rule_headers(action: HeaderAction, raw_headers: Any) -> Union[SetHeaders, RemoveHeaders]:
    """
    Builds the header variant that matches `action`.

    Remove rules accept either a list of names or a mapping, in which case only the
    keys are kept. Add and modify rules require a mapping of names to string values.

    Raises:
        RuleValidationError: If `raw_headers` does not have the shape `action` requires.
    """
    if action is HeaderAction.REMOVE:
        if isinstance(raw_headers, Mapping):
            names = list(raw_headers.keys())
        elif isinstance(raw_headers, (list, tuple)):
            names = list(raw_headers)
        else:
            raise RuleValidationError(INVALID_REMOVE_HEADERS_MESSAGE)
        if not all(_is_valid_name(name) for name in names):
            raise RuleValidationError(INVALID_REMOVE_HEADERS_MESSAGE)
        return RemoveHeaders(names=tuple(names))

    if not isinstance(raw_headers, Mapping):
        raise RuleValidationError(INVALID_SET_HEADERS_MESSAGE)
    for name, value in raw_headers.items():
        if not _is_valid_name(name) or not _is_valid_value(value):
            raise RuleValidationError(INVALID_SET_HEADERS_MESSAGE)
    return SetHeaders(values=dict(raw_headers))


class RuleInput(BaseModel):
    """A validated rule definition that has not been given an identity yet.

    Construct it from an untyped payload with `from_payload`; once an instance
    exists its fields are known to be well formed.
    """

    model_config = ConfigDict(frozen=True)

    action: HeaderAction
    direction: HeaderDirection
    headers: RuleHeaders
    enabled: bool = True

    @classmethod
    def from_payload(cls, payload: Any) -> "RuleInput":
        """
        Validates an untyped rule definition, e.g. a decoded JSON body.

        The direction is read from `type`, falling back to `direction`.

        Raises:
            RuleValidationError: With a client-facing message describing the first problem found.
        """
        if not isinstance(payload, Mapping):
            raise RuleValidationError("Rule definition must be a JSON object")

        raw_action = payload.get("action")
        raw_direction = payload.get("type", payload.get("direction"))
        raw_headers = payload.get("headers")
        if not raw_action or not raw_direction or raw_headers is None:
            raise RuleValidationError(MISSING_FIELDS_MESSAGE)

        try:
            action = HeaderAction(raw_action)
        except ValueError:
            raise RuleValidationError(INVALID_ACTION_MESSAGE)
        try:
            direction = HeaderDirection(raw_direction)
        except ValueError:
            raise RuleValidationError(INVALID_TYPE_MESSAGE)

        enabled = payload.get("enabled")
        if enabled is None:
            enabled = True
        elif not isinstance(enabled, bool):
            raise RuleValidationError(INVALID_ENABLED_MESSAGE)

        return cls(
            action=action,
            direction=direction,
            headers=build_rule_headers(action, raw_headers),
            enabled=enabled,
        )


class Rule(BaseModel):
    """A stored header rule.

    Attributes:
        id: Opaque identifier assigned by the store.
        action: add, modify or remove.
        direction: request, response or both. Serialized as `type`.
        headers: Name/value pairs for add and modify, names for remove.
        enabled: Disabled rules never contribute mutations.
        created_at: Set once at creation.
        updated_at: Set by updates, None until the first one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    action: HeaderAction
    direction: HeaderDirection = Field(alias="type")
    headers: RuleHeaders
    enabled: bool = True
    created_at: datetime = Field(alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_serializer("headers")
    def _serialize_headers(self, headers: Union[SetHeaders, RemoveHeaders]) -> Union[Dict[str, str], List[str]]:
        return headers.to_wire()

    def applies_to(self, direction: HeaderDirection) -> bool:
        return self.enabled and self.direction.covers(direction)

    def to_payload(self) -> Dict[str, Any]:
        """The editable fields of this rule in the shape `RuleInput.from_payload` accepts."""
        return {
            "action": self.action.value,
            "type": self.direction.value,
            "headers": self.headers.to_wire(),
            "enabled": self.enabled,
        }

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready representation used by the management API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MutationSet(BaseModel):
    """The header changes one message should receive.

    Apply `to_add` and `to_modify` first, then delete every name in `to_remove`.
    """

    model_config = ConfigDict(frozen=True)

    to_add: Dict[str, str] = Field(default_factory=dict)
    to_modify: Dict[str, str] = Field(default_factory=dict)
    to_remove: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_modify or self.to_remove)

    def summary(self) -> Dict[str, List[str]]:
        """Header names touched by this set, without values."""
        return {
            "added": list(self.to_add),
            "modified": list(self.to_modify),
            "removed": list(self.to_remove),
        }
