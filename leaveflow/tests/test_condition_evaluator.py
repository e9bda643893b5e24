"""
Tests for rule condition evaluation
"""
import math

import pytest

from leaveflow.schemas.automation_rule import RuleCondition, RuleExecutionContext
from leaveflow.services.condition_evaluator import (
    evaluate_condition,
    evaluate_conditions,
    get_context_value,
    strict_equals,
    to_number,
)


def make_context(leave=None, user=None, system_state=None):
    return RuleExecutionContext(leave_request=leave, user=user, system_state=system_state or {})


def cond(type_, operator, value, logical=None):
    return RuleCondition(type=type_, operator=operator, value=value, logical_operator=logical)


def test_empty_condition_list_is_true():
    ctx = make_context()
    assert evaluate_conditions([], ctx) is True
    assert evaluate_conditions(None, ctx) is True


def test_or_on_previous_condition_joins_next():
    """First condition false, OR'd with a true second condition"""
    conditions = [
        cond("LEAVE_TYPE", "EQUALS", "SICK", logical="OR"),
        cond("DURATION", "LESS_THAN", 3),
    ]
    ctx = make_context(leave={"leave_type": "CASUAL", "duration": 1})
    assert evaluate_conditions(conditions, ctx) is True


def test_missing_logical_operator_defaults_to_and():
    conditions = [
        cond("LEAVE_TYPE", "EQUALS", "SICK"),
        cond("DURATION", "LESS_THAN", 3),
    ]
    ctx = make_context(leave={"leave_type": "CASUAL", "duration": 1})
    assert evaluate_conditions(conditions, ctx) is False


def test_fold_is_left_to_right_without_precedence():
    ctx = make_context(leave={"leave_type": "SICK", "duration": 2}, user={"role": "EMPLOYEE"})
    # (false OR true) AND false
    conditions = [
        cond("LEAVE_TYPE", "EQUALS", "CASUAL", logical="OR"),
        cond("DURATION", "EQUALS", 2, logical="AND"),
        cond("USER_ROLE", "EQUALS", "MANAGER"),
    ]
    assert evaluate_conditions(conditions, ctx) is False

    # (true AND false) OR true
    conditions = [
        cond("LEAVE_TYPE", "EQUALS", "SICK", logical="AND"),
        cond("DURATION", "GREATER_THAN", 5, logical="OR"),
        cond("USER_ROLE", "EQUALS", "EMPLOYEE"),
    ]
    assert evaluate_conditions(conditions, ctx) is True


def test_last_condition_logical_operator_is_ignored():
    ctx = make_context(leave={"leave_type": "SICK"})
    conditions = [cond("LEAVE_TYPE", "EQUALS", "SICK", logical="OR")]
    assert evaluate_conditions(conditions, ctx) is True


def test_logical_operator_accepts_camel_case_key():
    condition = RuleCondition.model_validate(
        {"type": "DURATION", "operator": "LESS_THAN", "value": 3, "logicalOperator": "OR"}
    )
    assert condition.logical_operator.value == "OR"


@pytest.mark.parametrize(
    "duration,expected",
    [(12, False), (5, True), (10, True), (7.5, True), (4.99, False)],
)
def test_in_range_is_inclusive(duration, expected):
    ctx = make_context(leave={"duration": duration})
    assert evaluate_condition(cond("DURATION", "IN_RANGE", [5, 10]), ctx) is expected


@pytest.mark.parametrize("bad_value", [5, [5], [1, 2, 3], "5-10", None])
def test_in_range_requires_two_element_list(bad_value):
    ctx = make_context(leave={"duration": 5})
    assert evaluate_condition(cond("DURATION", "IN_RANGE", bad_value), ctx) is False


def test_non_numeric_comparisons_are_false():
    ctx = make_context(leave={"duration": "abc"})
    assert evaluate_condition(cond("DURATION", "GREATER_THAN", 1), ctx) is False
    assert evaluate_condition(cond("DURATION", "LESS_THAN", 1), ctx) is False

    ctx = make_context(leave={"duration": 3})
    assert evaluate_condition(cond("DURATION", "GREATER_THAN", "many"), ctx) is False
    assert evaluate_condition(cond("DURATION", "LESS_THAN", "many"), ctx) is False


def test_numeric_strings_compare_numerically():
    ctx = make_context(leave={"duration": "12.5 days"})
    assert evaluate_condition(cond("DURATION", "GREATER_THAN", "10"), ctx) is True
    assert evaluate_condition(cond("DURATION", "LESS_THAN", 12), ctx) is False


def test_to_number_parses_leading_number():
    assert to_number("12.5 days") == 12.5
    assert to_number(" 7") == 7.0
    assert to_number(3) == 3.0
    assert math.isnan(to_number("abc"))
    assert math.isnan(to_number(None))
    assert math.isnan(to_number(True))


def test_strict_equality():
    assert strict_equals(1, 1.0) is True
    assert strict_equals("1", 1) is False
    assert strict_equals(True, 1) is False
    assert strict_equals("SICK", "SICK") is True
    assert strict_equals(None, None) is True


def test_equals_is_type_strict():
    ctx = make_context(leave={"duration": 2})
    assert evaluate_condition(cond("DURATION", "EQUALS", 2), ctx) is True
    assert evaluate_condition(cond("DURATION", "EQUALS", "2"), ctx) is False
    assert evaluate_condition(cond("DURATION", "NOT_EQUALS", "2"), ctx) is True


def test_contains_is_case_insensitive():
    ctx = make_context(user={"department": "Engineering"})
    assert evaluate_condition(cond("DEPARTMENT", "CONTAINS", "eng"), ctx) is True
    assert evaluate_condition(cond("DEPARTMENT", "CONTAINS", "sales"), ctx) is False


def test_contains_on_missing_value():
    ctx = make_context(user={})
    assert evaluate_condition(cond("DEPARTMENT", "CONTAINS", "eng"), ctx) is False
    assert evaluate_condition(cond("DEPARTMENT", "CONTAINS", ""), ctx) is True


def test_unknown_type_reads_system_state():
    ctx = make_context(system_state={"pending_requests": 3})
    assert evaluate_condition(cond("pending_requests", "GREATER_THAN", 2), ctx) is True
    assert get_context_value("CUSTOM", ctx) is None


def test_context_sources():
    ctx = make_context(
        leave={"leave_type": "SICK", "duration": 1, "user_balance": 10, "start_date": "2026-03-15"},
        user={"role": "EMPLOYEE", "department": "Engineering"},
    )
    assert get_context_value("LEAVE_TYPE", ctx) == "SICK"
    assert get_context_value("DURATION", ctx) == 1
    assert get_context_value("BALANCE", ctx) == 10
    assert get_context_value("DATE_RANGE", ctx) == "2026-03-15"
    assert get_context_value("USER_ROLE", ctx) == "EMPLOYEE"
    assert get_context_value("DEPARTMENT", ctx) == "Engineering"


def test_date_range_reads_leading_year():
    ctx = make_context(leave={"start_date": "2026-03-15"})
    assert evaluate_condition(cond("DATE_RANGE", "IN_RANGE", [2026, 2026]), ctx) is True
    assert evaluate_condition(cond("DATE_RANGE", "GREATER_THAN", 2030), ctx) is False


def test_missing_leave_request_section():
    ctx = make_context(user={"role": "EMPLOYEE"})
    assert evaluate_condition(cond("LEAVE_TYPE", "EQUALS", "SICK"), ctx) is False
    assert evaluate_condition(cond("LEAVE_TYPE", "NOT_EQUALS", "SICK"), ctx) is True


def test_evaluation_is_repeatable():
    conditions = [
        cond("BALANCE", "GREATER_THAN", 2, logical="OR"),
        cond("USER_ROLE", "EQUALS", "MANAGER"),
    ]
    ctx = make_context(leave={"user_balance": 1}, user={"role": "EMPLOYEE"})
    first = evaluate_conditions(conditions, ctx)
    second = evaluate_conditions(conditions, ctx)
    assert first is second is False
    assert ctx.leave_request == {"user_balance": 1}


def test_context_sources_accept_camel_case_keys():
    ctx = make_context(leave={"leaveType": "SICK", "userBalance": 4, "startDate": "2026-03-15"})
    assert evaluate_condition(cond("LEAVE_TYPE", "EQUALS", "SICK"), ctx) is True
    assert evaluate_condition(cond("BALANCE", "LESS_THAN", 5), ctx) is True
    assert evaluate_condition(cond("DATE_RANGE", "IN_RANGE", [2026, 2026]), ctx) is True


def test_snake_case_key_wins_over_camel_case():
    ctx = make_context(leave={"leave_type": "CASUAL", "leaveType": "SICK"})
    assert get_context_value("LEAVE_TYPE", ctx) == "CASUAL"
