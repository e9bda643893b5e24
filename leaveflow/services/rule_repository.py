"""
Rule repository - storage for automation rules and their execution history.

The engine only talks to RuleRepository, so rules can live in the database
(SqlAlchemyRuleRepository) or in memory (InMemoryRuleRepository, used by tests
and by callers without a database).
"""
import logging
import secrets
import string
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leaveflow.core.config import settings
from leaveflow.models.automation_rule import AutomationRule, RuleExecution
from leaveflow.schemas.automation_rule import (
    AutomationRuleCreate,
    AutomationRuleOut,
    AutomationRuleUpdate,
    RuleExecutionContext,
    RuleExecutionOut,
    RuleExecutionResult,
    RuleStatsOut,
    RuleTrigger,
    TopRuleOut,
)
from leaveflow.utils.datetime_utils import ensure_utc, now_utc
from leaveflow.utils.enums import enum_value

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
TOP_RULES_LIMIT = 5


def generate_rule_id() -> str:
    """rule_<epoch ms>_<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"rule_{int(time.time() * 1000)}_{suffix}"


def _sort_key(rule: AutomationRuleOut):
    return (rule.priority, ensure_utc(rule.created_at))


def _summarize_stats(
    total_rules: int,
    active_rules: int,
    total_executions: int,
    recent: List[Dict[str, Any]],
) -> RuleStatsOut:
    """recent: dicts with rule_id, name, execution_time_ms from the stats window"""
    average = sum(r["execution_time_ms"] for r in recent) / len(recent) if recent else 0.0
    counts: "OrderedDict[str, TopRuleOut]" = OrderedDict()
    for r in recent:
        top = counts.get(r["rule_id"])
        if top is None:
            top = counts[r["rule_id"]] = TopRuleOut(rule_id=r["rule_id"], name=r["name"], executions=0)
        top.executions += 1
    top_rules = sorted(counts.values(), key=lambda t: t.executions, reverse=True)[:TOP_RULES_LIMIT]
    return RuleStatsOut(
        total_rules=total_rules,
        active_rules=active_rules,
        total_executions=total_executions,
        average_execution_time_ms=average,
        top_executed_rules=top_rules,
    )


class RuleRepository(ABC):
    """Persistence contract the rule engine depends on"""

    @abstractmethod
    def create_rule(self, data: AutomationRuleCreate, created_by: str) -> AutomationRuleOut:
        ...

    @abstractmethod
    def get_rule(self, rule_id: str) -> Optional[AutomationRuleOut]:
        """None when the rule does not exist"""

    @abstractmethod
    def list_rules(
        self,
        enabled: Optional[bool] = None,
        trigger_type: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> List[AutomationRuleOut]:
        """Rules matching every given filter, ordered by priority then creation time"""

    @abstractmethod
    def update_rule(self, rule_id: str, data: AutomationRuleUpdate) -> Optional[AutomationRuleOut]:
        """Merge the fields set on data; None when the rule does not exist"""

    @abstractmethod
    def delete_rule(self, rule_id: str) -> bool:
        ...

    @abstractmethod
    def record_execution(
        self,
        rule_id: str,
        trigger_type: str,
        context: RuleExecutionContext,
        result: RuleExecutionResult,
    ) -> None:
        """Bump execution_count, set last_executed and keep an execution record"""

    @abstractmethod
    def list_executions(self, rule_id: str, limit: int = 20) -> List[RuleExecutionOut]:
        ...

    @abstractmethod
    def get_stats(self, window_days: Optional[int] = None) -> RuleStatsOut:
        ...


class SqlAlchemyRuleRepository(RuleRepository):
    """Rules in the automation_rules table, conditions and actions as JSON columns"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_out(row: AutomationRule) -> AutomationRuleOut:
        return AutomationRuleOut(
            id=row.id,
            name=row.name,
            description=row.description or "",
            enabled=row.enabled,
            priority=row.priority,
            trigger=RuleTrigger(type=row.trigger_type, conditions=row.trigger_conditions or []),
            actions=row.actions or [],
            validation_rules=row.validation_rules,
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
            last_executed=row.last_executed,
            execution_count=row.execution_count or 0,
        )

    @staticmethod
    def _dump_list(items) -> Optional[List[Dict[str, Any]]]:
        if items is None:
            return None
        return [item.model_dump(mode="json") for item in items]

    def create_rule(self, data: AutomationRuleCreate, created_by: str) -> AutomationRuleOut:
        now = now_utc()
        row = AutomationRule(
            id=generate_rule_id(),
            name=data.name,
            description=data.description or "",
            enabled=data.enabled,
            priority=data.priority,
            trigger_type=data.trigger.type.value,
            trigger_conditions=self._dump_list(data.trigger.conditions),
            actions=self._dump_list(data.actions),
            validation_rules=self._dump_list(data.validation_rules),
            created_by=str(created_by),
            created_at=now,
            updated_at=now,
            execution_count=0,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("automation rule created: id=%s name=%s trigger=%s", row.id, row.name, row.trigger_type)
        return self._to_out(row)

    def _get_row(self, rule_id: str) -> Optional[AutomationRule]:
        return self.db.query(AutomationRule).filter(AutomationRule.id == rule_id).first()

    def get_rule(self, rule_id: str) -> Optional[AutomationRuleOut]:
        row = self._get_row(rule_id)
        return self._to_out(row) if row else None

    def list_rules(
        self,
        enabled: Optional[bool] = None,
        trigger_type: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> List[AutomationRuleOut]:
        query = self.db.query(AutomationRule)
        if enabled is not None:
            query = query.filter(AutomationRule.enabled == enabled)
        if trigger_type is not None:
            query = query.filter(AutomationRule.trigger_type == enum_value(trigger_type))
        if created_by is not None:
            query = query.filter(AutomationRule.created_by == str(created_by))
        rows = query.order_by(AutomationRule.priority.asc(), AutomationRule.created_at.asc()).all()
        return [self._to_out(row) for row in rows]

    def update_rule(self, rule_id: str, data: AutomationRuleUpdate) -> Optional[AutomationRuleOut]:
        row = self._get_row(rule_id)
        if not row:
            return None
        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "description", "enabled", "priority"):
            if field in changes and changes[field] is not None:
                setattr(row, field, changes[field])
        if data.trigger is not None:
            row.trigger_type = data.trigger.type.value
            row.trigger_conditions = self._dump_list(data.trigger.conditions)
        if data.actions is not None:
            row.actions = self._dump_list(data.actions)
        if "validation_rules" in changes:
            row.validation_rules = self._dump_list(data.validation_rules)
        row.updated_at = now_utc()
        self.db.commit()
        self.db.refresh(row)
        logger.info("automation rule updated: id=%s fields=%s", rule_id, sorted(changes))
        return self._to_out(row)

    def delete_rule(self, rule_id: str) -> bool:
        row = self._get_row(rule_id)
        if not row:
            return False
        self.db.query(RuleExecution).filter(RuleExecution.rule_id == rule_id).delete(synchronize_session=False)
        self.db.delete(row)
        self.db.commit()
        logger.info("automation rule deleted: id=%s", rule_id)
        return True

    def record_execution(
        self,
        rule_id: str,
        trigger_type: str,
        context: RuleExecutionContext,
        result: RuleExecutionResult,
    ) -> None:
        now = now_utc()
        updated = self.db.query(AutomationRule).filter(AutomationRule.id == rule_id).update(
            {
                AutomationRule.execution_count: AutomationRule.execution_count + 1,
                AutomationRule.last_executed: now,
            },
            synchronize_session=False,
        )
        if updated != 1:
            logger.warning("execution not recorded, rule is gone: rule_id=%s", rule_id)
            self.db.rollback()
            return
        self.db.add(
            RuleExecution(
                rule_id=rule_id,
                trigger_type=enum_value(trigger_type),
                trigger_context=context.model_dump(mode="json"),
                result=result.model_dump(mode="json"),
                success=result.success,
                execution_time_ms=result.execution_time_ms,
                actions_executed=list(result.actions_executed),
                errors=list(result.errors) or None,
                created_at=now,
            )
        )
        self.db.commit()

    def list_executions(self, rule_id: str, limit: int = 20) -> List[RuleExecutionOut]:
        rows = (
            self.db.query(RuleExecution)
            .filter(RuleExecution.rule_id == rule_id)
            .order_by(RuleExecution.id.desc())
            .limit(limit)
            .all()
        )
        return [RuleExecutionOut.model_validate(row) for row in rows]

    def get_stats(self, window_days: Optional[int] = None) -> RuleStatsOut:
        window_days = window_days if window_days is not None else settings.RULE_STATS_WINDOW_DAYS
        since = now_utc() - timedelta(days=window_days)
        recent = (
            self.db.query(RuleExecution.rule_id, RuleExecution.execution_time_ms, AutomationRule.name)
            .join(AutomationRule, AutomationRule.id == RuleExecution.rule_id)
            .filter(RuleExecution.created_at >= since)
            .order_by(RuleExecution.id.asc())
            .all()
        )
        return _summarize_stats(
            total_rules=self.db.query(AutomationRule).count(),
            active_rules=self.db.query(AutomationRule).filter(AutomationRule.enabled == True).count(),  # noqa: E712
            total_executions=self.db.query(RuleExecution).count(),
            recent=[
                {"rule_id": rule_id, "execution_time_ms": elapsed or 0.0, "name": name}
                for rule_id, elapsed, name in recent
            ],
        )


class InMemoryRuleRepository(RuleRepository):
    """Process-local rule store. A lock serializes count updates."""

    def __init__(self):
        self._rules: "OrderedDict[str, AutomationRuleOut]" = OrderedDict()
        self._executions: List[RuleExecutionOut] = []
        self._lock = threading.Lock()

    def create_rule(self, data: AutomationRuleCreate, created_by: str) -> AutomationRuleOut:
        now = now_utc()
        rule = AutomationRuleOut(
            id=generate_rule_id(),
            name=data.name,
            description=data.description or "",
            enabled=data.enabled,
            priority=data.priority,
            trigger=data.trigger.model_copy(deep=True),
            actions=[a.model_copy(deep=True) for a in data.actions],
            validation_rules=(
                [c.model_copy(deep=True) for c in data.validation_rules]
                if data.validation_rules is not None else None
            ),
            created_by=str(created_by),
            created_at=now,
            updated_at=now,
            execution_count=0,
        )
        with self._lock:
            self._rules[rule.id] = rule
        return rule.model_copy(deep=True)

    def get_rule(self, rule_id: str) -> Optional[AutomationRuleOut]:
        rule = self._rules.get(rule_id)
        return rule.model_copy(deep=True) if rule else None

    def list_rules(
        self,
        enabled: Optional[bool] = None,
        trigger_type: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> List[AutomationRuleOut]:
        trigger_type = enum_value(trigger_type)
        rules = [
            r for r in self._rules.values()
            if (enabled is None or r.enabled == enabled)
            and (trigger_type is None or r.trigger.type.value == trigger_type)
            and (created_by is None or r.created_by == str(created_by))
        ]
        return [r.model_copy(deep=True) for r in sorted(rules, key=_sort_key)]

    def update_rule(self, rule_id: str, data: AutomationRuleUpdate) -> Optional[AutomationRuleOut]:
        with self._lock:
            current = self._rules.get(rule_id)
            if current is None:
                return None
            changes = {k: getattr(data, k) for k in data.model_fields_set}
            if changes.get("name") is None:
                changes.pop("name", None)
            for key in ("description", "enabled", "priority", "trigger", "actions"):
                if key in changes and changes[key] is None:
                    changes.pop(key)
            changes["updated_at"] = now_utc()
            updated = current.model_copy(update=changes, deep=True)
            self._rules[rule_id] = updated
        return updated.model_copy(deep=True)

    def delete_rule(self, rule_id: str) -> bool:
        with self._lock:
            if self._rules.pop(rule_id, None) is None:
                return False
            self._executions = [e for e in self._executions if e.rule_id != rule_id]
        return True

    def record_execution(
        self,
        rule_id: str,
        trigger_type: str,
        context: RuleExecutionContext,
        result: RuleExecutionResult,
    ) -> None:
        now = now_utc()
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                logger.warning("execution not recorded, rule is gone: rule_id=%s", rule_id)
                return
            rule.execution_count += 1
            rule.last_executed = now
            self._executions.append(
                RuleExecutionOut(
                    id=len(self._executions) + 1,
                    rule_id=rule_id,
                    trigger_type=enum_value(trigger_type),
                    success=result.success,
                    execution_time_ms=result.execution_time_ms,
                    actions_executed=list(result.actions_executed),
                    errors=list(result.errors) or None,
                    result=result.model_dump(mode="json"),
                    created_at=now,
                )
            )

    def list_executions(self, rule_id: str, limit: int = 20) -> List[RuleExecutionOut]:
        matching = [e for e in self._executions if e.rule_id == rule_id]
        return list(reversed(matching))[:limit]

    def get_stats(self, window_days: Optional[int] = None) -> RuleStatsOut:
        window_days = window_days if window_days is not None else settings.RULE_STATS_WINDOW_DAYS
        since = now_utc() - timedelta(days=window_days)
        recent = [
            {
                "rule_id": e.rule_id,
                "execution_time_ms": e.execution_time_ms,
                "name": self._rules[e.rule_id].name,
            }
            for e in self._executions
            if ensure_utc(e.created_at) >= since and e.rule_id in self._rules
        ]
        return _summarize_stats(
            total_rules=len(self._rules),
            active_rules=sum(1 for r in self._rules.values() if r.enabled),
            total_executions=len(self._executions),
            recent=recent,
        )
