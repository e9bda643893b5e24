"""
Automation rule schemas
"""
import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from leaveflow.utils.datetime_utils import now_utc


class ConditionType(str, enum.Enum):
    LEAVE_TYPE = "LEAVE_TYPE"
    DURATION = "DURATION"
    USER_ROLE = "USER_ROLE"
    DEPARTMENT = "DEPARTMENT"
    BALANCE = "BALANCE"
    DATE_RANGE = "DATE_RANGE"
    CUSTOM = "CUSTOM"


class ConditionOperator(str, enum.Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    CONTAINS = "CONTAINS"
    IN_RANGE = "IN_RANGE"


class LogicalOperator(str, enum.Enum):
    AND = "AND"
    OR = "OR"


class ActionType(str, enum.Enum):
    AUTO_APPROVE = "AUTO_APPROVE"
    AUTO_REJECT = "AUTO_REJECT"
    NOTIFY_MANAGER = "NOTIFY_MANAGER"
    ESCALATE = "ESCALATE"
    SEND_EMAIL = "SEND_EMAIL"
    UPDATE_BALANCE = "UPDATE_BALANCE"
    LOG_EVENT = "LOG_EVENT"


class TriggerType(str, enum.Enum):
    LEAVE_REQUEST = "LEAVE_REQUEST"
    APPROVAL_PENDING = "APPROVAL_PENDING"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    SCHEDULE_TRIGGER = "SCHEDULE_TRIGGER"


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class RuleCondition(BaseModel):
    """
    One atomic predicate.

    `type` is open: the recognized kinds are listed in ConditionType, any other
    name is looked up in the context's system_state.
    `logical_operator` joins this condition's running result with the NEXT one.
    """
    id: str = Field(default_factory=lambda: _new_id("cond"))
    type: str = Field(..., min_length=1)
    operator: ConditionOperator
    value: Any = None
    logical_operator: Optional[LogicalOperator] = Field(
        None, validation_alias=AliasChoices("logical_operator", "logicalOperator")
    )

    @field_validator("type", mode="before")
    @classmethod
    def _unwrap_type(cls, v: Any) -> Any:
        if isinstance(v, enum.Enum):
            return v.value
        return v


class RuleAction(BaseModel):
    """
    One side effect. `type` is open so that stored rules with an action the
    executor does not know still load; the executor reports them.
    """
    id: str = Field(default_factory=lambda: _new_id("act"))
    type: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    delay_minutes: Optional[float] = Field(
        None, ge=0, validation_alias=AliasChoices("delay_minutes", "delay")
    )
    conditions: Optional[List[RuleCondition]] = None

    @field_validator("type", mode="before")
    @classmethod
    def _unwrap_type(cls, v: Any) -> Any:
        if isinstance(v, enum.Enum):
            return v.value
        return v


class RuleTrigger(BaseModel):
    type: TriggerType
    conditions: List[RuleCondition] = Field(default_factory=list)


class AutomationRuleCreate(BaseModel):
    """Schema for creating a rule (id, timestamps and counters are server-assigned)"""
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=1000)
    enabled: bool = True
    priority: int = Field(1, ge=1, le=100, description="Lower runs earlier")
    trigger: RuleTrigger
    actions: List[RuleAction] = Field(..., min_length=1)
    validation_rules: Optional[List[RuleCondition]] = Field(
        None, validation_alias=AliasChoices("validation_rules", "validationRules")
    )


class AutomationRuleUpdate(BaseModel):
    """Partial update; unspecified fields keep their stored values"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    enabled: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=1, le=100)
    trigger: Optional[RuleTrigger] = None
    actions: Optional[List[RuleAction]] = None
    validation_rules: Optional[List[RuleCondition]] = Field(
        None, validation_alias=AliasChoices("validation_rules", "validationRules")
    )


class AutomationRuleOut(BaseModel):
    """A stored rule as the engine and API see it"""
    id: str
    name: str
    description: str = ""
    enabled: bool = True
    priority: int = 1
    trigger: RuleTrigger
    actions: List[RuleAction] = Field(default_factory=list)
    validation_rules: Optional[List[RuleCondition]] = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    last_executed: Optional[datetime] = None
    execution_count: int = 0


class RuleExecutionContext(BaseModel):
    """Snapshot handed to the engine for one trigger. Never persisted as-is."""
    leave_request: Optional[Dict[str, Any]] = None
    user: Optional[Dict[str, Any]] = None
    current_date: datetime = Field(default_factory=now_utc)
    system_state: Dict[str, Any] = Field(default_factory=dict)


class ScheduledAction(BaseModel):
    action_id: str
    execute_at: datetime


class RuleExecutionResult(BaseModel):
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    success: bool = True
    actions_executed: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    next_actions: List[ScheduledAction] = Field(default_factory=list)


class RuleExecuteRequest(BaseModel):
    """
    Body for POST /automation-rules/execute

    Context keys are read as snake_case (leave_type, user_balance, start_date);
    the camelCase spellings leaveType, userBalance and startDate are accepted too.
    """
    trigger_type: TriggerType = Field(..., validation_alias=AliasChoices("trigger_type", "triggerType"))
    leave_request: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("leave_request", "leaveRequest")
    )
    user: Optional[Dict[str, Any]] = None
    system_state: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("system_state", "systemState")
    )


class RuleTestRequest(BaseModel):
    """Body for POST /automation-rules/{id}/test"""
    test_data: Dict[str, Any] = Field(default_factory=dict)


class RuleExecutionOut(BaseModel):
    id: int
    rule_id: str
    trigger_type: str
    success: bool
    execution_time_ms: float
    actions_executed: List[str]
    errors: Optional[List[str]] = None
    result: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TopRuleOut(BaseModel):
    rule_id: str
    name: str
    executions: int


class RuleStatsOut(BaseModel):
    total_rules: int
    active_rules: int
    total_executions: int
    average_execution_time_ms: float
    top_executed_rules: List[TopRuleOut]
