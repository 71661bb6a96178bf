# Header Rule Exceptions


class HeaderRuleError(Exception):
    """Base exception for all header rule errors."""

    def __init__(self, *args, rule_id: str | None = None, detail: str | None = None):
        super().__init__(*args)
        self.rule_id = rule_id
        # Use the first arg as detail if detail kwarg is not provided and args exist
        self.detail = detail or (args[0] if args else None)


class RuleValidationError(ValueError, HeaderRuleError):
    """Raised when a rule definition is missing required fields or carries invalid values."""

    # ValueError for semantic meaning (bad value), HeaderRuleError for categorization
    def __init__(self, *args, rule_id: str | None = None, detail: str | None = None):
        HeaderRuleError.__init__(self, *args, rule_id=rule_id, detail=detail)
