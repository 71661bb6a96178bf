"""Management API for creating, updating and deleting header rules."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from modheader_proxy.core.dependencies import get_rule_store
from modheader_proxy.rules.exceptions import RuleValidationError
from modheader_proxy.rules.store import RuleStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rules"])

RULE_NOT_FOUND = "Rule not found"
INVALID_JSON_MESSAGE = "Request body must be valid JSON"

# Request body docs; the handlers parse the JSON themselves
RULE_BODY_OPENAPI: dict[str, Any] = {
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {
                "schema": {"type": "object"},
                "examples": {
                    "add authorization": {
                        "value": {"action": "add", "type": "request", "headers": {"Authorization": "Bearer token123"}},
                    },
                    "remove cookies": {
                        "value": {"action": "remove", "type": "both", "headers": ["Cookie", "Set-Cookie"]},
                    },
                },
            }
        },
    }
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.get("/rules")
async def list_rules(store: RuleStore = Depends(get_rule_store)):
    """Get all header rules in the order they are evaluated."""
    rules = store.list()
    return {"success": True, "count": len(rules), "data": [rule.to_wire() for rule in rules]}


@router.get("/rules/{rule_id}")
async def get_rule(rule_id: str, store: RuleStore = Depends(get_rule_store)):
    """Get a specific rule by ID."""
    rule = store.get(rule_id)
    if rule is None:
        return _error(status.HTTP_404_NOT_FOUND, RULE_NOT_FOUND)
    return {"success": True, "data": rule.to_wire()}


@router.post("/rules", status_code=status.HTTP_201_CREATED, openapi_extra=RULE_BODY_OPENAPI)
async def create_rule(request: Request, store: RuleStore = Depends(get_rule_store)):
    """
    Create a new header rule.

    The body needs `action` (add, modify, remove), `type` (request, response, both)
    and `headers`; `enabled` defaults to true.
    """
    try:
        payload = await request.json()
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_JSON_MESSAGE)
    try:
        rule = store.create(payload)
    except RuleValidationError as e:
        logger.info(f"Rejected rule definition: {e.detail}")
        return _error(status.HTTP_400_BAD_REQUEST, str(e.detail))
    return {"success": True, "data": rule.to_wire()}


@router.put("/rules/{rule_id}", openapi_extra=RULE_BODY_OPENAPI)
async def update_rule(rule_id: str, request: Request, store: RuleStore = Depends(get_rule_store)):
    """Update an existing rule. Only the fields present in the body change."""
    try:
        payload = await request.json()
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_JSON_MESSAGE)
    if not isinstance(payload, dict):
        return _error(status.HTTP_400_BAD_REQUEST, "Rule update must be a JSON object")
    try:
        rule = store.update(rule_id, payload)
    except RuleValidationError as e:
        logger.info(f"Rejected update for rule {rule_id}: {e.detail}")
        return _error(status.HTTP_400_BAD_REQUEST, str(e.detail))
    if rule is None:
        return _error(status.HTTP_404_NOT_FOUND, RULE_NOT_FOUND)
    return {"success": True, "data": rule.to_wire()}


@router.delete("/rules/{rule_id}")
async def delete_rule(rule_id: str, store: RuleStore = Depends(get_rule_store)):
    """Delete a rule."""
    if not store.remove(rule_id):
        return _error(status.HTTP_404_NOT_FOUND, RULE_NOT_FOUND)
    return {"success": True, "message": "Rule deleted successfully"}


@router.delete("/rules")
async def clear_rules(store: RuleStore = Depends(get_rule_store)):
    """Clear all rules."""
    store.clear()
    return {"success": True, "message": "All rules cleared successfully"}
