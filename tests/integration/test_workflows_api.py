import uuid
from datetime import timedelta

from boxhub.db import models
from boxhub.services.workflow_engine import process_scheduled_runs

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _base(org):
    return f"/organizations/{org.id}/workflows"


def _trigger(trigger_type, node_id="start", **config):
    return {"id": node_id, "type": "trigger", "data": {"trigger_type": trigger_type, "trigger_config": config}}


def _action(node_id, action_type, **config):
    return {"id": node_id, "type": "action", "data": {"action_type": action_type, "action_config": config}}


def _chain(*nodes):
    """Canvas whose nodes run one after the other."""
    edges = [
        {"id": f"e{i}", "source": a["id"], "target": b["id"]}
        for i, (a, b) in enumerate(zip(nodes, nodes[1:]))
    ]
    return {"nodes": list(nodes), "edges": edges}


def _create(client, org, canvas, name="Automatisation", activate=True):
    r = client.post(_base(org), json={"name": name, "canvas_data": canvas}, headers=auth())
    assert r.status_code == 201, r.text
    workflow = r.json()
    if activate:
        r = client.post(f"{_base(org)}/{workflow['id']}/toggle", headers=auth())
        assert r.status_code == 200, r.text
        workflow = r.json()
    return workflow


def test_crud_duplicate_and_versioning(client, org_owner_context):
    _, org = org_owner_context
    canvas = _chain(_trigger("manual_trigger"), _action("log", "log_event", message="hello"))
    workflow = _create(client, org, canvas, name="Relance", activate=False)
    assert workflow["is_active"] is False
    assert workflow["version"] == 1
    assert workflow["settings"]["retry_count"] == 3

    r = client.put(f"{_base(org)}/{workflow['id']}", json={"canvas_data": canvas, "settings": {"log_level": "debug"}}, headers=auth())
    assert r.status_code == 200
    assert r.json()["version"] == 2
    assert r.json()["settings"]["log_level"] == "debug"
    assert r.json()["settings"]["retry_count"] == 3

    assert client.put(f"{_base(org)}/{workflow['id']}", json={"name": None}, headers=auth()).status_code == 422

    r = client.post(f"{_base(org)}/{workflow['id']}/duplicate", json={}, headers=auth())
    assert r.status_code == 201
    assert r.json()["name"] == "Relance (copie)"
    assert r.json()["is_active"] is False
    assert len(client.get(_base(org), headers=auth()).json()) == 2

    assert client.delete(f"{_base(org)}/{workflow['id']}", headers=auth()).status_code == 204
    assert client.get(f"{_base(org)}/{workflow['id']}", headers=auth()).status_code == 404


def test_workflow_changes_are_audited(client, org_owner_context, db_session):
    _, org = org_owner_context
    workflow = _create(client, org, _chain(_trigger("manual_trigger")))
    client.delete(f"{_base(org)}/{workflow['id']}", headers=auth())
    actions = [
        row.action_type
        for row in db_session.query(models.AuditLog)
        .filter(models.AuditLog.target_type == "workflow")
        .order_by(models.AuditLog.created_at)
    ]
    assert actions == ["workflow_create", "workflow_toggle", "workflow_delete"]


def test_only_managers_edit_workflows(client, coach_context):
    _, org = coach_context
    r = client.post(_base(org), json={"name": "X"}, headers=auth("coach@example.com"))
    assert r.status_code == 403
    assert client.get(_base(org), headers=auth("coach@example.com")).status_code == 200


def test_activation_requires_a_trigger(client, org_owner_context):
    _, org = org_owner_context
    workflow = _create(client, org, _chain(_action("log", "log_event", message="x")), activate=False)
    r = client.post(f"{_base(org)}/{workflow['id']}/toggle", headers=auth())
    assert r.status_code == 400


def test_manual_run_notifies_and_tags_member(client, member_context, db_session):
    _, member, org = member_context
    canvas = _chain(
        _trigger("manual_trigger"),
        _action("notify", "send_in_app_notification", title="Salut {{member.first_name}}", message="Ton coach {{trigger_data.coach}}"),
        _action("tag", "add_member_tag", tag="vip"),
    )
    workflow = _create(client, org, canvas, activate=False)

    r = client.post(f"{_base(org)}/{workflow['id']}/run", json={"member_id": str(member.id)}, headers=auth())
    assert r.status_code == 400

    client.post(f"{_base(org)}/{workflow['id']}/toggle", headers=auth())
    r = client.post(
        f"{_base(org)}/{workflow['id']}/run",
        json={"member_id": str(member.id), "data": {"coach": "Sam"}},
        headers=auth(),
    )
    assert r.status_code == 200, r.text
    result = r.json()
    assert result["status"] == "completed"
    assert result["nodes_executed"] == 3

    db_session.refresh(member)
    assert member.tags == ["vip"]

    run = client.get(f"{_base(org)}/runs/{result['run_id']}", headers=auth()).json()
    assert run["triggered_by"] == "manual"
    assert [n["node_id"] for n in run["node_runs"]] == ["start", "notify", "tag"]
    logs = client.get(f"{_base(org)}/runs/{result['run_id']}/logs", headers=auth()).json()
    assert logs[0]["message"].startswith("Starting workflow")

    portal = f"/me/organizations/{org.id}/notifications"
    notes = client.get(portal, headers=auth("athlete@example.com")).json()
    assert [(n["title"], n["message"]) for n in notes] == [("Salut Jamie", "Ton coach Sam")]
    r = client.post(f"{portal}/{notes[0]['id']}/read", headers=auth("athlete@example.com"))
    assert r.status_code == 200
    assert r.json()["is_read"] is True
    assert client.get(portal, params={"unread_only": True}, headers=auth("athlete@example.com")).json() == []
    assert client.post(f"{portal}/{uuid.uuid4()}/read", headers=auth("athlete@example.com")).status_code == 404

    r = client.post(f"{_base(org)}/{workflow['id']}/run", json={"member_id": str(uuid.uuid4())}, headers=auth())
    assert r.status_code == 404


def test_condition_takes_the_matching_branch(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    member = member_factory(org, status="active")
    canvas = {
        "nodes": [
            _trigger("manual_trigger"),
            {"id": "check", "type": "condition", "data": {"action_config": {"expression": "{{member.status}} == 'active'"}}},
            _action("yes", "add_member_tag", tag="actif"),
            _action("no", "add_member_tag", tag="inactif"),
        ],
        "edges": [
            {"id": "e1", "source": "start", "target": "check"},
            {"id": "e2", "source": "check", "target": "yes", "sourceHandle": "true"},
            {"id": "e3", "source": "check", "target": "no", "sourceHandle": "false"},
        ],
    }
    workflow = _create(client, org, canvas)
    r = client.post(f"{_base(org)}/{workflow['id']}/run", json={"member_id": str(member.id)}, headers=auth())
    assert r.json()["nodes_executed"] == 3
    db_session.refresh(member)
    assert member.tags == ["actif"]


def test_delay_parks_the_run_until_the_scheduler_resumes_it(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    member = member_factory(org)
    canvas = _chain(
        _trigger("manual_trigger"),
        _action("wait", "delay", duration=1, unit="hours"),
        _action("tag", "add_member_tag", tag="relance"),
    )
    workflow = _create(client, org, canvas)
    result = client.post(f"{_base(org)}/{workflow['id']}/run", json={"member_id": str(member.id)}, headers=auth()).json()
    assert result["status"] == "waiting"
    assert result["nodes_executed"] == 2
    db_session.refresh(member)
    assert not member.tags

    # not due yet
    assert process_scheduled_runs(db_session, models.now_utc()) == {"processed": 0, "errors": 0}

    assert process_scheduled_runs(db_session, models.now_utc() + timedelta(hours=2)) == {"processed": 1, "errors": 0}
    db_session.refresh(member)
    assert member.tags == ["relance"]
    run = db_session.get(models.WorkflowRun, uuid.UUID(result["run_id"]))
    assert run.status == "completed"
    stored = db_session.get(models.Workflow, uuid.UUID(workflow["id"]))
    assert (stored.total_executions, stored.successful_executions) == (1, 1)

    scheduled = db_session.query(models.WorkflowScheduledRun).one()
    assert scheduled.status == "completed"


def test_failed_action_fails_the_run_unless_told_to_continue(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    member = member_factory(org)
    strict = _create(client, org, _chain(
        _trigger("manual_trigger"),
        _action("bad", "update_member", field="email", value="x@example.com"),
        _action("tag", "add_member_tag", tag="after"),
    ), name="Strict")
    result = client.post(f"{_base(org)}/{strict['id']}/run", json={"member_id": str(member.id)}, headers=auth()).json()
    assert result["success"] is False
    assert result["status"] == "failed"
    assert "Field not allowed" in result["error"]
    db_session.refresh(member)
    assert not member.tags

    lenient = _create(client, org, _chain(
        _trigger("manual_trigger"),
        _action("bad", "http_request", url="http://internal", continue_on_fail=True),
        _action("tag", "add_member_tag", tag="after"),
    ), name="Lenient")
    result = client.post(f"{_base(org)}/{lenient['id']}/run", json={"member_id": str(member.id)}, headers=auth()).json()
    assert result["status"] == "completed"
    db_session.refresh(member)
    assert member.tags == ["after"]

    stats = client.get(f"{_base(org)}/stats", headers=auth()).json()
    assert stats["total_workflows"] == 2
    assert stats["active_workflows"] == 2
    assert stats["total_runs"] == 2
    assert stats["failed_runs"] == 1
    assert stats["success_rate"] == 50


def test_member_creation_fires_member_created_workflows(client, org_owner_context, db_session):
    _, org = org_owner_context
    _create(client, org, _chain(
        _trigger("member_created"),
        _action("hello", "send_in_app_notification", title="Bienvenue", message="Bienvenue {{member.first_name}} !"),
    ))
    r = client.post(
        f"/organizations/{org.id}/members/",
        json={"first_name": "Lea", "last_name": "Bernard", "email": "lea@example.com"},
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    note = db_session.query(models.MemberNotification).one()
    assert str(note.member_id) == r.json()["id"]
    assert note.message == "Bienvenue Lea !"


def test_personal_record_workflow_filters_by_exercise(client, org_owner_context, member_factory, exercise_factory, db_session):
    _, org = org_owner_context
    member = member_factory(org)
    squat = exercise_factory(None, name="Back Squat")
    deadlift = exercise_factory(None, name="Deadlift")
    _create(client, org, _chain(
        _trigger("personal_record_achieved", exercise_filter="Back Squat"),
        _action("bravo", "send_in_app_notification", title="PR", message="{{trigger_data.exercise_name}} {{trigger_data.improvement}}"),
    ))
    records = f"/organizations/{org.id}/members/{member.id}/records"

    client.post(records, json={"exercise_id": str(squat.id), "record_type": "1RM", "record_value": 120, "record_unit": "kg"}, headers=auth())
    client.post(records, json={"exercise_id": str(squat.id), "record_type": "1RM", "record_value": 125, "record_unit": "kg"}, headers=auth())
    client.post(records, json={"exercise_id": str(deadlift.id), "record_type": "1RM", "record_value": 180, "record_unit": "kg"}, headers=auth())

    messages = sorted(n.message for n in db_session.query(models.MemberNotification).all())
    assert messages == ["Back Squat 120", "Back Squat 125 (was 120)"]


def test_cron_fires_subscription_reminders(client, org_owner_context, member_factory, subscription_factory, db_session):
    _, org = org_owner_context
    due = member_factory(org, first_name="Due")
    later = member_factory(org, first_name="Later")
    subscription_factory(org, due, end_date=models.today_utc() + timedelta(days=7))
    subscription_factory(org, later, end_date=models.today_utc() + timedelta(days=12))
    _create(client, org, _chain(
        _trigger("subscription_expiring_soon", days_before=7),
        _action("tag", "add_member_tag", tag="J-{{subscription.days_remaining}}"),
    ))

    assert client.post("/cron/workflows").status_code == 401
    r = client.post("/cron/workflows", params={"job": "subscriptions"}, headers=CRON_HEADERS)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["results"][str(org.id)]["subscriptions"]["7_days"] == 1
    assert "scheduled" not in body["results"]

    db_session.refresh(due)
    db_session.refresh(later)
    assert due.tags == ["J-7"]
    assert not later.tags


def test_events_endpoint_and_plan_gating(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    member = member_factory(org)
    _create(client, org, _chain(_trigger("member_created"), _action("tag", "add_member_tag", tag="new")))

    r = client.post(f"{_base(org)}/events", json={"trigger_type": "member_created", "member_id": str(member.id)}, headers=auth())
    assert r.status_code == 200
    assert [res["status"] for res in r.json()] == ["completed"]
    assert client.post(f"{_base(org)}/events", json={"trigger_type": "member_created", "member_id": str(uuid.uuid4())}, headers=auth()).status_code == 404

    plan = models.PlatformPlan(tier='basic', name='Basic', price_monthly=4900, features={'workflows': False})
    db_session.add(plan)
    db_session.commit()
    org.platform_plan_id = plan.id
    db_session.commit()

    assert client.get(_base(org), headers=auth()).status_code == 403
    r = client.post(
        f"/organizations/{org.id}/members/",
        json={"first_name": "Sans", "last_name": "Workflow"},
        headers=auth(),
    )
    assert r.status_code == 201
    assert db_session.query(models.WorkflowRun).count() == 1
