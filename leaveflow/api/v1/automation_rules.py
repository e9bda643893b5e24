"""
Automation rule endpoints (HR_ADMIN / IT_ADMIN only)
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from leaveflow.core.deps import get_db, require_roles
from leaveflow.models.employee import Employee, ADMIN_ROLES
from leaveflow.schemas.automation_rule import (
    AutomationRuleCreate,
    AutomationRuleUpdate,
    RuleExecuteRequest,
    RuleExecutionContext,
    RuleTestRequest,
    TriggerType,
)
from leaveflow.schemas.common import ApiResponse
from leaveflow.services.audit_service import log_audit
from leaveflow.services.automation_service import get_rule_engine
from leaveflow.services.rule_repository import SqlAlchemyRuleRepository

router = APIRouter()

require_rule_admin = require_roles(*ADMIN_ROLES)


def _get_rule_or_404(repository: SqlAlchemyRuleRepository, rule_id: str):
    rule = repository.get_rule(rule_id)
    if rule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Automation rule not found",
        )
    return rule


@router.get("", response_model=ApiResponse)
async def list_rules_endpoint(
    enabled: Optional[bool] = Query(None),
    trigger_type: Optional[TriggerType] = Query(None, alias="triggerType"),
    created_by: Optional[str] = Query(None, alias="createdBy"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """List rules ordered by priority, optionally filtered"""
    rules = SqlAlchemyRuleRepository(db).list_rules(
        enabled=enabled,
        trigger_type=trigger_type.value if trigger_type else None,
        created_by=created_by,
    )
    return ApiResponse(data=rules)


@router.post("", response_model=ApiResponse, status_code=201)
async def create_rule_endpoint(
    rule_data: AutomationRuleCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """Create an automation rule"""
    rule = SqlAlchemyRuleRepository(db).create_rule(rule_data, created_by=str(current_user.id))
    log_audit(db, current_user.id, "RULE_CREATE", "automation_rules", rule.id,
              meta={"name": rule.name, "trigger_type": rule.trigger.type.value, "priority": rule.priority})
    return ApiResponse(message="Automation rule created successfully", data=rule)


@router.post("/execute", response_model=ApiResponse)
async def execute_rules_endpoint(
    request: RuleExecuteRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """
    Run the rules of a trigger against a caller-supplied context.
    500 when the rules cannot be loaded.
    """
    context = RuleExecutionContext(
        leave_request=request.leave_request,
        user=request.user,
        system_state=request.system_state,
    )
    results = get_rule_engine(db).execute_rules(request.trigger_type.value, context)
    return ApiResponse(message=f"Executed {len(results)} automation rules", data=results)


@router.get("/stats/overview", response_model=ApiResponse)
async def rule_stats_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """Rule counts, executions and the most executed rules of the stats window"""
    return ApiResponse(data=get_rule_engine(db).get_rule_stats())


@router.get("/{rule_id}", response_model=ApiResponse)
async def get_rule_endpoint(
    rule_id: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    return ApiResponse(data=_get_rule_or_404(SqlAlchemyRuleRepository(db), rule_id))


@router.patch("/{rule_id}", response_model=ApiResponse)
async def update_rule_endpoint(
    rule_id: str,
    rule_data: AutomationRuleUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """Partial update; omitted fields keep their values"""
    repository = SqlAlchemyRuleRepository(db)
    _get_rule_or_404(repository, rule_id)
    rule = repository.update_rule(rule_id, rule_data)
    log_audit(db, current_user.id, "RULE_UPDATE", "automation_rules", rule_id,
              meta={"fields": sorted(rule_data.model_fields_set)})
    return ApiResponse(message="Automation rule updated successfully", data=rule)


@router.delete("/{rule_id}", response_model=ApiResponse)
async def delete_rule_endpoint(
    rule_id: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    repository = SqlAlchemyRuleRepository(db)
    _get_rule_or_404(repository, rule_id)
    repository.delete_rule(rule_id)
    log_audit(db, current_user.id, "RULE_DELETE", "automation_rules", rule_id)
    return ApiResponse(message="Automation rule deleted successfully")


@router.post("/{rule_id}/test", response_model=ApiResponse)
async def test_rule_endpoint(
    rule_id: str,
    request: Optional[RuleTestRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """Dry-run a stored rule against mock data; no side effects"""
    engine = get_rule_engine(db)
    rule = _get_rule_or_404(engine.repository, rule_id)
    result = engine.test_rule(rule, request.test_data if request else {})
    return ApiResponse(message="Rule test completed", data=result)


@router.get("/{rule_id}/executions", response_model=ApiResponse)
async def list_executions_endpoint(
    rule_id: str,
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_rule_admin),
):
    """Most recent executions of a rule"""
    repository = SqlAlchemyRuleRepository(db)
    _get_rule_or_404(repository, rule_id)
    return ApiResponse(data=repository.list_executions(rule_id, limit=limit))
