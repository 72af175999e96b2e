"""Kubernetes label-selector evaluation.

Selectors may be kubernetes client models (``V1LabelSelector``) or the plain
dicts found in manifests (``matchLabels`` / ``matchExpressions``).
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

OP_IN = "In"
OP_NOT_IN = "NotIn"
OP_EXISTS = "Exists"
OP_DOES_NOT_EXIST = "DoesNotExist"

VALUE_OPERATORS = frozenset({OP_IN, OP_NOT_IN})
PRESENCE_OPERATORS = frozenset({OP_EXISTS, OP_DOES_NOT_EXIST})


class InvalidSelector(ValueError):
    """A selector the API server would reject; it never matches anything."""


def _field(obj: Any, snake: str, camel: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(camel, obj.get(snake))
    return getattr(obj, snake, None)


def match_labels(selector: Any) -> Dict[str, str]:
    return dict(_field(selector, "match_labels", "matchLabels") or {})


def match_expressions(selector: Any) -> List[Tuple[str, str, List[str]]]:
    """Return the selector's expressions as ``(key, operator, values)`` tuples."""
    expressions = []
    for expr in _field(selector, "match_expressions", "matchExpressions") or []:
        expressions.append((
            _field(expr, "key", "key"),
            _field(expr, "operator", "operator"),
            list(_field(expr, "values", "values") or [])
        ))
    return expressions


def validate(selector: Any) -> None:
    """Raise :class:`InvalidSelector` if the selector is malformed."""
    for key, operator, values in match_expressions(selector):
        if not key:
            raise InvalidSelector("match expression without a key")
        if operator in VALUE_OPERATORS:
            if not values:
                raise InvalidSelector(f"operator {operator} on {key} requires values")
        elif operator in PRESENCE_OPERATORS:
            if values:
                raise InvalidSelector(f"operator {operator} on {key} takes no values")
        else:
            raise InvalidSelector(f"unknown operator {operator!r} on {key}")


def _expression_matches(key: str, operator: str, values: List[str], labels: Mapping[str, str]) -> bool:
    present = key in labels
    if operator == OP_IN:
        return present and labels[key] in values
    if operator == OP_NOT_IN:
        return not present or labels[key] not in values
    if operator == OP_EXISTS:
        return present
    return not present


def matches(selector: Optional[Any], labels: Optional[Mapping[str, str]]) -> bool:
    """Evaluate ``selector`` against ``labels``.

    A missing selector matches everything. An empty selector (no labels, no
    expressions) also matches everything. Invalid selectors match nothing.
    """
    if selector is None:
        return True

    labels = labels or {}
    try:
        validate(selector)
    except InvalidSelector:
        return False

    for key, value in match_labels(selector).items():
        if labels.get(key) != value:
            return False

    return all(
        _expression_matches(key, operator, values, labels)
        for key, operator, values in match_expressions(selector)
    )
