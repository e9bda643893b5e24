"""
Condition evaluator - pure boolean evaluation of rule conditions over a context.

Conditions fold left to right: the first result seeds the running value, and
condition i's logical_operator (AND when absent) joins the running value with
condition i+1. There is no precedence and no grouping.
"""
import math
import re
from typing import Any, Iterable, Optional

from leaveflow.schemas.automation_rule import (
    ConditionOperator,
    ConditionType,
    LogicalOperator,
    RuleCondition,
    RuleExecutionContext,
)
from leaveflow.utils.enums import enum_value

# condition type -> (context section, accepted key spellings)
_CONTEXT_SOURCES = {
    ConditionType.LEAVE_TYPE.value: ("leave_request", ("leave_type", "leaveType")),
    ConditionType.DURATION.value: ("leave_request", ("duration",)),
    ConditionType.BALANCE.value: ("leave_request", ("user_balance", "userBalance")),
    ConditionType.DATE_RANGE.value: ("leave_request", ("start_date", "startDate")),
    ConditionType.USER_ROLE.value: ("user", ("role",)),
    ConditionType.DEPARTMENT.value: ("user", ("department",)),
}

# Leading decimal literal, the way a lenient float parser reads "12.5 days"
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def to_number(value: Any) -> float:
    """
    Parse a value as a float. Anything that does not start with a number
    becomes NaN, so every ordering comparison against it is False.
    """
    value = enum_value(value)
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, (list, tuple)):
        # a one-element list reads as its element, anything else is not a number
        return to_number(value[0]) if len(value) == 1 else math.nan
    match = _NUMBER_PREFIX.match(str(value))
    if not match:
        return math.nan
    return float(match.group(1))


def strict_equals(left: Any, right: Any) -> bool:
    """Type-strict equality: 1 == 1.0 holds, "1" == 1 and True == 1 do not."""
    left, right = enum_value(left), enum_value(right)
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _as_text(value: Any) -> str:
    value = enum_value(value)
    return "" if value is None else str(value)


def get_context_value(condition_type: str, context: RuleExecutionContext) -> Any:
    """Pull the value a condition of this type inspects. Unknown types read system_state."""
    source = _CONTEXT_SOURCES.get(enum_value(condition_type))
    if source is None:
        return context.system_state.get(enum_value(condition_type))
    section, keys = source
    data = getattr(context, section)
    if not data:
        return None
    for key in keys:
        if key in data:
            return data[key]
    return None


def evaluate_condition(condition: RuleCondition, context: RuleExecutionContext) -> bool:
    """Evaluate one condition against the context"""
    context_value = get_context_value(condition.type, context)
    operator = condition.operator
    value = condition.value

    if operator == ConditionOperator.EQUALS:
        return strict_equals(context_value, value)
    if operator == ConditionOperator.NOT_EQUALS:
        return not strict_equals(context_value, value)
    if operator == ConditionOperator.GREATER_THAN:
        return to_number(context_value) > to_number(value)
    if operator == ConditionOperator.LESS_THAN:
        return to_number(context_value) < to_number(value)
    if operator == ConditionOperator.CONTAINS:
        return _as_text(value).lower() in _as_text(context_value).lower()
    if operator == ConditionOperator.IN_RANGE:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            number = to_number(context_value)
            return to_number(value[0]) <= number <= to_number(value[1])
        return False
    return False


def evaluate_conditions(
    conditions: Optional[Iterable[RuleCondition]],
    context: RuleExecutionContext,
) -> bool:
    """
    Fold a list of conditions into one boolean.

    An empty (or missing) list is vacuously true. Evaluation has no side
    effects, so calling it twice with the same input gives the same answer.
    """
    result = True
    previous: Optional[RuleCondition] = None
    for condition in conditions or ():
        current = evaluate_condition(condition, context)
        if previous is None:
            result = current
        elif (previous.logical_operator or LogicalOperator.AND) == LogicalOperator.OR:
            result = result or current
        else:
            result = result and current
        previous = condition
    return result
