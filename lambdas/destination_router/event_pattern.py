# lambdas/destination_router/event_pattern.py
"""
EventBridge event-pattern matching, so routing rules can be checked in-process
with the same pattern dictionaries the CDK stack deploys.
"""
from typing import Any, Dict, List

_MISSING = object()

_NUMERIC_OPS = {
    "=": lambda a, b: a == b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _match_numeric(conditions: List[Any], value: Any) -> bool:
    if not _is_number(value):
        return False
    for op, bound in zip(conditions[::2], conditions[1::2]):
        if op not in _NUMERIC_OPS:
            raise ValueError(f"Unsupported numeric operator in event pattern: {op!r}")
        if not _NUMERIC_OPS[op](value, bound):
            return False
    return True


def _match_rule(rule: Any, value: Any) -> bool:
    """Matches one element of a pattern's value list against a single event value."""
    if not isinstance(rule, dict):
        return value is not _MISSING and rule == value

    if "exists" in rule:
        return (value is not _MISSING) == bool(rule["exists"])
    if value is _MISSING:
        return False
    if "prefix" in rule:
        return isinstance(value, str) and value.startswith(rule["prefix"])
    if "suffix" in rule:
        return isinstance(value, str) and value.endswith(rule["suffix"])
    if "anything-but" in rule:
        excluded = rule["anything-but"]
        if isinstance(excluded, dict):
            return not _match_rule(excluded, value)
        excluded = excluded if isinstance(excluded, list) else [excluded]
        return value not in excluded
    if "numeric" in rule:
        return _match_numeric(rule["numeric"], value)
    raise ValueError(f"Unsupported event pattern rule: {rule!r}")


def _match_field(rules: List[Any], value: Any) -> bool:
    # An array value matches when any of its elements matches.
    if isinstance(value, list):
        return any(_match_rule(rule, item) for rule in rules for item in value)
    return any(_match_rule(rule, value) for rule in rules)


def matches_event_pattern(pattern: Dict[str, Any], event: Any) -> bool:
    """
    Returns True when `event` satisfies every field of `pattern`.

    Leaves of the pattern are lists of allowed values or content-filter
    objects (`prefix`, `suffix`, `exists`, `anything-but`, `numeric`).
    """
    for key, expected in pattern.items():
        value = event.get(key, _MISSING) if isinstance(event, dict) else _MISSING
        if isinstance(expected, dict):
            if value is _MISSING or not matches_event_pattern(expected, value):
                return False
        elif isinstance(expected, list):
            if not _match_field(expected, value):
                return False
        else:
            raise ValueError(f"Pattern values must be lists or objects, got {expected!r} for {key!r}")
    return True
