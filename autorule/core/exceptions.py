"""Domain exception hierarchy."""

from typing import Any


class AutoRuleError(Exception):
    """Base error for all rule engine failures."""

    code = "AUTORULE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RuleNotFoundError(AutoRuleError):
    """Rule does not exist or is not owned by the caller."""

    code = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        super().__init__("Rule not found", {"rule_id": rule_id})
        self.rule_id = rule_id


class RuleInactiveError(AutoRuleError):
    """Rule exists but is switched off."""

    code = "RULE_INACTIVE"

    def __init__(self, rule_id: str):
        super().__init__("Rule is not active", {"rule_id": rule_id})
        self.rule_id = rule_id


class UnsupportedActivationModeError(AutoRuleError):
    """Rule cannot be started the way the caller asked."""

    code = "UNSUPPORTED_ACTIVATION_MODE"

    def __init__(self, rule_id: str, activation_mode: str, requested: str):
        super().__init__(
            f"Rule does not support {requested} invocation",
            {"rule_id": rule_id, "activation_mode": activation_mode},
        )
        self.rule_id = rule_id
        self.activation_mode = activation_mode
        self.requested = requested


class ParameterResolutionError(AutoRuleError):
    """An action parameter references a value that does not exist."""

    code = "UNRESOLVED_REFERENCE"

    def __init__(self, reference: str, reason: str):
        super().__init__(
            f"Unresolved parameter reference '{reference}': {reason}",
            {"reference": reference},
        )
        self.reference = reference


class ActionExecutionError(AutoRuleError):
    """External tool call failed."""

    code = "ACTION_FAILED"

    def __init__(self, message: str, tool_name: str | None = None, status_code: int | None = None):
        super().__init__(message, {"tool_name": tool_name, "status_code": status_code})
        self.tool_name = tool_name
        self.status_code = status_code


class DecisionError(AutoRuleError):
    """Matching or interpretation capability is unavailable or returned garbage."""

    code = "DECISION_FAILED"
