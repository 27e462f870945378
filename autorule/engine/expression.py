"""Reference resolution for action step parameters.

Parameter strings may embed ``{{ expression }}`` references that are
evaluated against the run context with a sandboxed evaluator. Names in
scope:

- ``event``: the trigger payload
- ``steps``: results of earlier steps, by step index
- ``trigger``: the trigger slug

A string that is exactly one reference keeps the referenced value's type;
references inside longer strings are rendered with ``str()``.
"""

import re
from typing import Any

from simpleeval import EvalWithCompoundTypes, InvalidExpression

from autorule.core.exceptions import ParameterResolutionError
from autorule.core.logging import get_logger

logger = get_logger(__name__)

REFERENCE_PATTERN = re.compile(r"\{\{\s*(.+?)\s*\}\}")


class _Unresolved:
    """Placeholder for a step that produced no result."""

    def __repr__(self) -> str:
        return "<unresolved>"


UNRESOLVED = _Unresolved()


class ReferenceResolver:
    """Safe evaluator for parameter references."""

    ALLOWED_FUNCTIONS = {
        "len": len,
        "str": str,
        "int": int,
        "float": float,
        "round": round,
        "lower": lambda s: str(s).lower(),
        "upper": lambda s: str(s).upper(),
    }

    def evaluate(self, expression: str, names: dict[str, Any]) -> Any:
        """Evaluate one reference expression.

        Raises:
            ParameterResolutionError: If the reference does not resolve
        """
        evaluator = EvalWithCompoundTypes(names=names, functions=self.ALLOWED_FUNCTIONS)
        try:
            value = evaluator.eval(expression)
        except (InvalidExpression, KeyError, IndexError, AttributeError, TypeError, SyntaxError) as e:
            raise ParameterResolutionError(expression, str(e) or type(e).__name__) from e

        if value is None or value is UNRESOLVED:
            raise ParameterResolutionError(expression, "value is empty")
        return value

    def resolve(self, value: Any, names: dict[str, Any]) -> Any:
        """Resolve references inside a parameter value, recursively."""
        if isinstance(value, str):
            return self._resolve_string(value, names)
        if isinstance(value, dict):
            return {k: self.resolve(v, names) for k, v in value.items()}
        if isinstance(value, list):
            return [self.resolve(v, names) for v in value]
        return value

    def _resolve_string(self, value: str, names: dict[str, Any]) -> Any:
        whole = REFERENCE_PATTERN.fullmatch(value.strip())
        if whole:
            return self.evaluate(whole.group(1), names)
        return REFERENCE_PATTERN.sub(
            lambda m: str(self.evaluate(m.group(1), names)),
            value,
        )


def build_reference_names(
    payload: dict[str, Any],
    step_values: list[Any],
    trigger_slug: str,
) -> dict[str, Any]:
    """Names visible to reference expressions."""
    return {
        "event": payload,
        "steps": step_values,
        "trigger": trigger_slug,
    }


def resolve_parameters(parameters: dict[str, Any], names: dict[str, Any]) -> dict[str, Any]:
    """Resolve every reference in an action step's parameters.

    Raises:
        ParameterResolutionError: On the first reference that does not resolve
    """
    return ReferenceResolver().resolve(parameters, names)
