"""
Rule engine - runs the enabled rules of one trigger against one context.

Rules run in ascending priority (stable for ties). A rule that fails, or an
action inside it that fails, is reported in that rule's result and never stops
the remaining rules. Only a failure to fetch rules escapes execute_rules.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from leaveflow.core.errors import ActionExecutionError, AutomationExecutionError
from leaveflow.schemas.automation_rule import (
    AutomationRuleOut,
    RuleExecutionContext,
    RuleExecutionResult,
    RuleStatsOut,
    ScheduledAction,
)
from leaveflow.services.action_executor import ActionExecutor, DryRunActionExecutor
from leaveflow.services.condition_evaluator import evaluate_conditions
from leaveflow.services.rule_repository import RuleRepository
from leaveflow.utils.datetime_utils import after_minutes, now_utc
from leaveflow.utils.enums import enum_value

logger = logging.getLogger(__name__)

VALIDATION_FAILED = "Validation rules not met"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def _first(data: Dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return default


def build_test_context(test_data: Dict[str, Any]) -> RuleExecutionContext:
    """Mock context for trying a rule out, filled with harmless defaults"""
    now = now_utc()
    leave_request = _first(test_data, "leave_request", "leaveRequest") or {
        "id": None,
        "leave_type": _first(test_data, "leave_type", "leaveType", default="SICK"),
        "duration": _first(test_data, "duration", default=1),
        "start_date": now.date().isoformat(),
        "user_balance": _first(test_data, "balance", "user_balance", "userBalance", default=10),
    }
    user = test_data.get("user") or {
        "id": None,
        "role": _first(test_data, "user_role", "userRole", default="EMPLOYEE"),
        "department": _first(test_data, "department", default="Engineering"),
        "manager_id": None,
    }
    return RuleExecutionContext(
        leave_request=leave_request,
        user=user,
        current_date=now,
        system_state=_first(test_data, "system_state", "systemState") or {},
    )


class RuleEngine:
    def __init__(self, repository: RuleRepository, executor: ActionExecutor):
        self.repository = repository
        self.executor = executor

    def execute_rules(self, trigger_type: str, context: RuleExecutionContext) -> List[RuleExecutionResult]:
        """
        Run every enabled rule for trigger_type, lowest priority number first.

        Raises:
            AutomationExecutionError: the rules could not be fetched
        """
        trigger_type = enum_value(trigger_type)
        try:
            rules = self.repository.list_rules(enabled=True)
        except Exception as exc:
            logger.error("Error fetching automation rules for trigger %s: %s", trigger_type, exc, exc_info=True)
            raise AutomationExecutionError() from exc

        matching = [r for r in rules if r.enabled and r.trigger.type.value == trigger_type]
        matching.sort(key=lambda r: r.priority)

        results = []
        for rule in matching:
            try:
                result = self.execute_rule(rule, context)
            except Exception as exc:
                logger.exception("Rule execution failed: rule_id=%s", rule.id)
                result = RuleExecutionResult(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    success=False,
                    errors=[str(exc) or exc.__class__.__name__],
                )
            results.append(result)
            self._record(rule, trigger_type, context, result)

        logger.info(
            "automation trigger processed: trigger=%s rules=%s actions_executed=%s",
            trigger_type, len(results), sum(len(r.actions_executed) for r in results),
        )
        return results

    def _record(
        self,
        rule: AutomationRuleOut,
        trigger_type: str,
        context: RuleExecutionContext,
        result: RuleExecutionResult,
    ) -> None:
        try:
            self.repository.record_execution(rule.id, trigger_type, context, result)
        except Exception:
            logger.exception("Failed to record execution: rule_id=%s", rule.id)

    def execute_rule(
        self,
        rule: AutomationRuleOut,
        context: RuleExecutionContext,
        executor: Optional[ActionExecutor] = None,
    ) -> RuleExecutionResult:
        """
        Evaluate one rule and run its immediate actions.

        A trigger mismatch is a plain non-match (success False, no errors).
        Delayed actions are not run, only scheduled in next_actions.
        """
        executor = executor or self.executor
        started = time.perf_counter()
        result = RuleExecutionResult(rule_id=rule.id, rule_name=rule.name)

        if not evaluate_conditions(rule.trigger.conditions, context):
            result.success = False
            result.execution_time_ms = _elapsed_ms(started)
            return result

        if rule.validation_rules and not evaluate_conditions(rule.validation_rules, context):
            result.success = False
            result.errors.append(VALIDATION_FAILED)
            result.execution_time_ms = _elapsed_ms(started)
            return result

        for action in rule.actions:
            if action.delay_minutes and action.delay_minutes > 0:
                result.next_actions.append(
                    ScheduledAction(
                        action_id=action.id,
                        execute_at=after_minutes(action.delay_minutes),
                    )
                )
                continue
            try:
                executor.execute(action, context)
                result.actions_executed.append(action.type)
            except ActionExecutionError as exc:
                result.errors.append(f"Action {action.type} failed: {exc}")
                logger.error(
                    "Action execution failed: rule_id=%s action_type=%s error=%s",
                    rule.id, action.type, exc,
                )
            except Exception as exc:
                result.errors.append(f"Action {action.type} failed: {str(exc) or type(exc).__name__}")
                logger.exception("Action raised outside the executor contract: rule_id=%s action_type=%s",
                                 rule.id, action.type)

        result.execution_time_ms = _elapsed_ms(started)
        return result

    def test_rule(self, rule: AutomationRuleOut, test_data: Optional[Dict[str, Any]] = None) -> RuleExecutionResult:
        """Dry run of a rule against a mock context. Nothing is changed or recorded."""
        result = self.execute_rule(rule, build_test_context(test_data or {}), executor=DryRunActionExecutor())
        logger.info(
            "Rule test completed: rule_id=%s success=%s actions=%s",
            rule.id, result.success, len(result.actions_executed),
        )
        return result

    def get_rule_stats(self) -> RuleStatsOut:
        return self.repository.get_stats()

    def run_deferred_action(
        self,
        rule_id: str,
        action_id: str,
        context: RuleExecutionContext,
    ) -> RuleExecutionResult:
        """
        Execute one previously deferred action now (called by an external scheduler).

        Raises:
            LookupError: unknown rule or action
        """
        rule = self.repository.get_rule(rule_id)
        if rule is None:
            raise LookupError(f"Automation rule {rule_id} not found")
        action = next((a for a in rule.actions if a.id == action_id), None)
        if action is None:
            raise LookupError(f"Action {action_id} not found in rule {rule_id}")

        started = time.perf_counter()
        result = RuleExecutionResult(rule_id=rule.id, rule_name=rule.name)
        try:
            self.executor.execute(action, context)
            result.actions_executed.append(action.type)
        except ActionExecutionError as exc:
            result.errors.append(f"Action {action.type} failed: {exc}")
            logger.error("Deferred action failed: rule_id=%s action_id=%s error=%s", rule_id, action_id, exc)
        except Exception as exc:
            result.errors.append(f"Action {action.type} failed: {str(exc) or type(exc).__name__}")
            logger.exception("Deferred action raised unexpectedly: rule_id=%s action_id=%s", rule_id, action_id)
        result.execution_time_ms = _elapsed_ms(started)
        return result
