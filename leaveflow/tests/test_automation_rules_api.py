"""
Tests for automation rule endpoints and the triggers fired by leave transitions
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi import status

from leaveflow.core.config import settings
from leaveflow.models.audit_log import AuditLog
from leaveflow.models.leave import LeaveType
from leaveflow.services import leave_wallet_service as wallet
from leaveflow.tests.conftest import auth_headers, next_monday

RULES_URL = "/api/v1/automation-rules"


def sick_auto_approve_rule(**overrides):
    body = {
        "name": "Auto approve one-day sick leave",
        "description": "Short sick leave needs no manager",
        "priority": 1,
        "trigger": {
            "type": "LEAVE_REQUEST",
            "conditions": [{"type": "LEAVE_TYPE", "operator": "EQUALS", "value": "SICK"}],
        },
        "actions": [{"type": "AUTO_APPROVE"}],
    }
    body.update(overrides)
    return body


def create_rule(client, admin, body):
    r = client.post(RULES_URL, json=body, headers=auth_headers(admin))
    assert r.status_code == status.HTTP_201_CREATED, r.json()
    return r.json()["data"]


def apply(client, employee, leave_type="SICK", days=1):
    monday = next_monday()
    r = client.post(
        "/api/v1/leaves",
        json={
            "leave_type": leave_type,
            "from_date": monday.isoformat(),
            "to_date": (monday + timedelta(days=days - 1)).isoformat(),
        },
        headers=auth_headers(employee),
    )
    assert r.status_code == status.HTTP_201_CREATED, r.json()
    return r.json()["data"]


def test_rule_routes_require_admin(client, employee, manager):
    assert client.get(RULES_URL, headers=auth_headers(employee)).status_code == status.HTTP_403_FORBIDDEN
    r = client.post(RULES_URL, json=sick_auto_approve_rule(), headers=auth_headers(manager))
    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert client.get(RULES_URL).status_code == status.HTTP_401_UNAUTHORIZED


def test_create_rule(client, hr_admin):
    r = client.post(RULES_URL, json=sick_auto_approve_rule(), headers=auth_headers(hr_admin))

    assert r.status_code == status.HTTP_201_CREATED
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Automation rule created successfully"
    rule = body["data"]
    assert rule["id"].startswith("rule_")
    assert rule["execution_count"] == 0
    assert rule["created_by"] == str(hr_admin.id)
    assert rule["enabled"] is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"priority": 0},
        {"priority": 101},
        {"name": ""},
        {"actions": []},
        {"trigger": {"type": "SOMETIMES", "conditions": []}},
        {"description": "x" * 1001},
    ],
)
def test_create_rule_validation(client, hr_admin, overrides):
    r = client.post(RULES_URL, json=sick_auto_approve_rule(**overrides), headers=auth_headers(hr_admin))

    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert r.json()["success"] is False


def test_list_get_update_delete(client, hr_admin):
    later = create_rule(client, hr_admin, sick_auto_approve_rule(name="later", priority=10))
    first = create_rule(client, hr_admin, sick_auto_approve_rule(name="first", priority=2, enabled=False))
    headers = auth_headers(hr_admin)

    listed = client.get(RULES_URL, headers=headers).json()["data"]
    assert [r["id"] for r in listed] == [first["id"], later["id"]]
    enabled = client.get(f"{RULES_URL}?enabled=true", headers=headers).json()["data"]
    assert [r["id"] for r in enabled] == [later["id"]]
    by_trigger = client.get(f"{RULES_URL}?triggerType=LEAVE_APPROVED", headers=headers).json()["data"]
    assert by_trigger == []

    r = client.get(f"{RULES_URL}/{later['id']}", headers=headers)
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["data"]["name"] == "later"

    r = client.patch(f"{RULES_URL}/{later['id']}", json={"priority": 1}, headers=headers)
    assert r.status_code == status.HTTP_200_OK
    patched = r.json()["data"]
    assert patched["priority"] == 1
    assert patched["name"] == "later"
    assert patched["actions"][0]["type"] == "AUTO_APPROVE"

    r = client.delete(f"{RULES_URL}/{later['id']}", headers=headers)
    assert r.status_code == status.HTTP_200_OK
    assert client.get(f"{RULES_URL}/{later['id']}", headers=headers).status_code == status.HTTP_404_NOT_FOUND


def test_unknown_rule_is_404(client, hr_admin):
    headers = auth_headers(hr_admin)
    assert client.get(f"{RULES_URL}/rule_1_abcdefghi", headers=headers).status_code == status.HTTP_404_NOT_FOUND
    assert client.patch(
        f"{RULES_URL}/rule_1_abcdefghi", json={"priority": 2}, headers=headers
    ).status_code == status.HTTP_404_NOT_FOUND
    assert client.delete(f"{RULES_URL}/rule_1_abcdefghi", headers=headers).status_code == status.HTTP_404_NOT_FOUND


def test_matching_rule_auto_approves_on_submit(client, db, hr_admin, employee):
    rule = create_rule(client, hr_admin, sick_auto_approve_rule())

    data = apply(client, employee, "SICK", days=1)

    assert data["leave"]["status"] == "APPROVED"
    assert data["leave"]["approvals"][-1]["automated"] is True
    assert data["leave"]["approvals"][-1]["action_by"] is None
    assert len(data["automation"]) == 1
    result = data["automation"][0]
    assert result["rule_id"] == rule["id"]
    assert result["success"] is True
    assert result["actions_executed"] == ["AUTO_APPROVE"]
    assert result["errors"] == []

    bal = wallet.get_balance_row(db, employee.id, LeaveType.SICK, next_monday().year)
    assert bal.used == Decimal("1")
    assert bal.available == Decimal("11")

    stored = client.get(f"{RULES_URL}/{rule['id']}", headers=auth_headers(hr_admin)).json()["data"]
    assert stored["execution_count"] == 1
    assert stored["last_executed"] is not None
    executions = client.get(f"{RULES_URL}/{rule['id']}/executions", headers=auth_headers(hr_admin)).json()["data"]
    assert len(executions) == 1
    assert executions[0]["trigger_type"] == "LEAVE_REQUEST"


def test_non_matching_rule_leaves_request_pending(client, hr_admin, employee):
    create_rule(client, hr_admin, sick_auto_approve_rule())

    data = apply(client, employee, "CASUAL", days=1)

    assert data["leave"]["status"] == "PENDING"
    assert data["automation"][0]["success"] is False
    assert data["automation"][0]["actions_executed"] == []


def test_disabled_rule_does_not_fire(client, hr_admin, employee):
    create_rule(client, hr_admin, sick_auto_approve_rule(enabled=False))

    data = apply(client, employee, "SICK", days=1)

    assert data["leave"]["status"] == "PENDING"
    assert data["automation"] == []


def test_auto_reject_long_leave(client, db, hr_admin, employee):
    create_rule(
        client, hr_admin,
        sick_auto_approve_rule(
            name="Reject long casual leave",
            trigger={
                "type": "LEAVE_REQUEST",
                "conditions": [{"type": "DURATION", "operator": "GREATER_THAN", "value": 2}],
            },
            actions=[{"type": "AUTO_REJECT", "parameters": {"reason": "Too long for casual leave"}}],
        ),
    )

    data = apply(client, employee, "CASUAL", days=3)

    assert data["leave"]["status"] == "REJECTED"
    assert data["leave"]["rejected_remark"] == "Too long for casual leave"
    bal = wallet.get_balance_row(db, employee.id, LeaveType.CASUAL, next_monday().year)
    assert bal.used == Decimal("0")


def test_approval_pending_rule_notifies_manager(client, hr_admin, employee, manager):
    create_rule(
        client, hr_admin,
        sick_auto_approve_rule(
            name="Tell the manager",
            trigger={"type": "APPROVAL_PENDING", "conditions": []},
            actions=[{"type": "NOTIFY_MANAGER", "parameters": {"template": "pending"}}],
        ),
    )

    data = apply(client, employee, "CASUAL", days=1)

    assert data["leave"]["status"] == "PENDING"
    assert data["automation"][0]["actions_executed"] == ["NOTIFY_MANAGER"]
    notes = client.get("/api/v1/notifications/me", headers=auth_headers(manager)).json()["data"]
    assert len(notes) == 1
    assert notes[0]["type"] == "APPROVAL_PENDING"
    assert notes[0]["meta_json"]["leave_request_id"] == data["leave"]["id"]


def test_approval_pending_not_fired_when_already_decided(client, hr_admin, employee, manager):
    create_rule(client, hr_admin, sick_auto_approve_rule())
    create_rule(
        client, hr_admin,
        sick_auto_approve_rule(
            name="Tell the manager",
            trigger={"type": "APPROVAL_PENDING", "conditions": []},
            actions=[{"type": "NOTIFY_MANAGER"}],
        ),
    )

    data = apply(client, employee, "SICK", days=1)

    assert data["leave"]["status"] == "APPROVED"
    assert len(data["automation"]) == 1
    assert client.get("/api/v1/notifications/me", headers=auth_headers(manager)).json()["data"] == []


def test_failing_action_does_not_undo_submission(client, hr_admin, other_employee):
    # other_employee has no manager, so NOTIFY_MANAGER fails
    create_rule(
        client, hr_admin,
        sick_auto_approve_rule(
            trigger={"type": "LEAVE_REQUEST", "conditions": []},
            actions=[{"type": "NOTIFY_MANAGER"}, {"type": "LOG_EVENT", "parameters": {"message": "filed"}}],
        ),
    )

    data = apply(client, other_employee, "CASUAL", days=1)

    assert data["leave"]["status"] == "PENDING"
    result = data["automation"][0]
    assert result["actions_executed"] == ["LOG_EVENT"]
    assert len(result["errors"]) == 1
    assert result["errors"][0].startswith("Action NOTIFY_MANAGER failed:")


def test_manual_approval_fires_leave_approved(client, hr_admin, employee, manager):
    create_rule(
        client, hr_admin,
        sick_auto_approve_rule(
            name="Copy payroll",
            trigger={"type": "LEAVE_APPROVED", "conditions": []},
            actions=[{"type": "SEND_EMAIL", "parameters": {"recipients": ["payroll@example.com"], "subject": "Approved"}}],
        ),
    )
    leave = apply(client, employee, "CASUAL", days=1)["leave"]

    r = client.post(f"/api/v1/leaves/{leave['id']}/approve", json={}, headers=auth_headers(manager))

    assert r.status_code == status.HTTP_200_OK
    assert r.json()["data"]["automation"][0]["actions_executed"] == ["SEND_EMAIL"]


def test_automation_can_be_switched_off(client, hr_admin, employee, monkeypatch):
    create_rule(client, hr_admin, sick_auto_approve_rule())
    monkeypatch.setattr(settings, "AUTOMATION_ENABLED", False)

    data = apply(client, employee, "SICK", days=1)

    assert data["leave"]["status"] == "PENDING"
    assert data["automation"] == []


def test_execute_endpoint(client, hr_admin):
    rule = create_rule(
        client, hr_admin,
        sick_auto_approve_rule(actions=[{"type": "LOG_EVENT", "parameters": {"message": "hello"}}]),
    )

    r = client.post(
        f"{RULES_URL}/execute",
        json={"trigger_type": "LEAVE_REQUEST", "leave_request": {"leave_type": "SICK", "duration": 1}},
        headers=auth_headers(hr_admin),
    )

    assert r.status_code == status.HTTP_200_OK
    results = r.json()["data"]
    assert [x["rule_id"] for x in results] == [rule["id"]]
    assert results[0]["actions_executed"] == ["LOG_EVENT"]


def test_execute_endpoint_accepts_camel_case_context(client, hr_admin):
    rule = create_rule(
        client, hr_admin,
        sick_auto_approve_rule(actions=[{"type": "LOG_EVENT", "parameters": {"message": "hello"}}]),
    )

    r = client.post(
        f"{RULES_URL}/execute",
        json={"triggerType": "LEAVE_REQUEST", "leaveRequest": {"leaveType": "SICK", "duration": 1}},
        headers=auth_headers(hr_admin),
    )

    assert r.status_code == status.HTTP_200_OK
    results = r.json()["data"]
    assert [x["rule_id"] for x in results] == [rule["id"]]
    assert results[0]["success"] is True
    assert results[0]["actions_executed"] == ["LOG_EVENT"]


def test_execute_endpoint_rejects_unknown_trigger(client, hr_admin):
    r = client.post(f"{RULES_URL}/execute", json={"trigger_type": "NEVER"}, headers=auth_headers(hr_admin))

    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_test_endpoint_is_dry_run(client, hr_admin):
    rule = create_rule(client, hr_admin, sick_auto_approve_rule())
    headers = auth_headers(hr_admin)

    r = client.post(f"{RULES_URL}/{rule['id']}/test", json={"test_data": {"leave_type": "SICK"}}, headers=headers)

    assert r.status_code == status.HTTP_200_OK
    result = r.json()["data"]
    assert result["success"] is True
    assert result["actions_executed"] == ["AUTO_APPROVE"]
    assert client.get(f"{RULES_URL}/{rule['id']}", headers=headers).json()["data"]["execution_count"] == 0

    r = client.post(f"{RULES_URL}/{rule['id']}/test", json={"test_data": {"leave_type": "CASUAL"}}, headers=headers)
    assert r.json()["data"]["success"] is False


def test_stats_overview(client, hr_admin, employee):
    rule = create_rule(client, hr_admin, sick_auto_approve_rule())
    create_rule(client, hr_admin, sick_auto_approve_rule(name="idle", enabled=False))
    apply(client, employee, "SICK", days=1)

    r = client.get(f"{RULES_URL}/stats/overview", headers=auth_headers(hr_admin))

    assert r.status_code == status.HTTP_200_OK
    stats = r.json()["data"]
    assert stats["total_rules"] == 2
    assert stats["active_rules"] == 1
    assert stats["total_executions"] == 1
    assert stats["top_executed_rules"] == [{"rule_id": rule["id"], "name": rule["name"], "executions": 1}]


def test_rule_changes_and_automated_decisions_are_audited(client, db, hr_admin, employee):
    rule = create_rule(client, hr_admin, sick_auto_approve_rule())
    headers = auth_headers(hr_admin)
    client.patch(f"{RULES_URL}/{rule['id']}", json={"name": "renamed"}, headers=headers)
    leave = apply(client, employee, "SICK", days=1)["leave"]
    client.delete(f"{RULES_URL}/{rule['id']}", headers=headers)

    rule_audits = (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == "automation_rules")
        .order_by(AuditLog.id)
        .all()
    )
    assert [a.action for a in rule_audits] == ["RULE_CREATE", "RULE_UPDATE", "RULE_DELETE"]
    assert all(a.actor_id == hr_admin.id for a in rule_audits)
    assert rule_audits[1].meta_json == {"fields": ["name"]}

    auto = (
        db.query(AuditLog)
        .filter(AuditLog.action == "LEAVE_AUTO_APPROVE", AuditLog.entity_id == str(leave["id"]))
        .one()
    )
    assert auto.actor_id is None
