import uuid
from datetime import date, timedelta

from boxhub.db import models


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _base(org):
    return f"/organizations/{org.id}/billing"


def test_plan_crud(client, org_owner_context):
    _, org = org_owner_context
    r = client.post(
        f"{_base(org)}/plans",
        json={"name": "Carte 10", "plan_type": "session_card", "price": 150, "session_count": 10, "features": ["open gym"]},
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    plan = r.json()
    assert plan["is_active"] is True
    assert plan["session_count"] == 10

    client.post(f"{_base(org)}/plans", json={"name": "Mensuel", "plan_type": "monthly", "price": 70, "duration_days": 30}, headers=auth())
    names = [p["name"] for p in client.get(f"{_base(org)}/plans", headers=auth()).json()]
    assert names == ["Mensuel", "Carte 10"]

    r = client.put(f"{_base(org)}/plans/{plan['id']}", json={"price": 140}, headers=auth())
    assert r.status_code == 200
    assert r.json()["price"] == 140

    assert client.delete(f"{_base(org)}/plans/{plan['id']}", headers=auth()).status_code == 204
    assert [p["name"] for p in client.get(f"{_base(org)}/plans", headers=auth()).json()] == ["Mensuel"]
    assert len(client.get(f"{_base(org)}/plans?include_inactive=true", headers=auth()).json()) == 2
    assert client.delete(f"{_base(org)}/plans/{uuid.uuid4()}", headers=auth()).status_code == 404


def test_plan_validation(client, org_owner_context):
    _, org = org_owner_context
    r = client.post(f"{_base(org)}/plans", json={"name": "Free", "plan_type": "weekly", "price": 10}, headers=auth())
    assert r.status_code == 422
    r = client.post(f"{_base(org)}/plans", json={"name": "Neg", "plan_type": "monthly", "price": -1}, headers=auth())
    assert r.status_code == 422


def test_plan_and_subscription_updates_reject_explicit_nulls(client, org_owner_context, member_factory, plan_factory, subscription_factory):
    _, org = org_owner_context
    plan = plan_factory(org)
    for field in ("name", "price", "plan_type", "is_active", "features"):
        r = client.put(f"{_base(org)}/plans/{plan.id}", json={field: None}, headers=auth())
        assert r.status_code == 422, field
    # optional limits may still be cleared
    r = client.put(f"{_base(org)}/plans/{plan.id}", json={"max_classes_per_week": None}, headers=auth())
    assert r.status_code == 200

    sub = subscription_factory(org, member_factory(org), plan=plan)
    url = f"{_base(org)}/subscriptions/{sub.id}"
    assert client.put(url, json={"auto_renew": None}, headers=auth()).status_code == 422
    r = client.put(url, json={"notes": None}, headers=auth())
    assert r.status_code == 200
    assert r.json()["notes"] is None


def test_coach_cannot_manage_billing(client, coach_context, plan_factory):
    _, org = coach_context
    plan_factory(org)
    assert client.get(f"{_base(org)}/plans", headers=auth("coach@example.com")).status_code == 200
    r = client.post(f"{_base(org)}/plans", json={"name": "X", "plan_type": "monthly", "price": 1}, headers=auth("coach@example.com"))
    assert r.status_code == 403
    assert client.get(f"{_base(org)}/payments", headers=auth("coach@example.com")).status_code == 403
    assert client.get(f"{_base(org)}/stats", headers=auth("coach@example.com")).status_code == 403


def test_create_subscription_with_discount_creates_pending_payment(client, org_owner_context, member_factory, plan_factory):
    _, org = org_owner_context
    member = member_factory(org)
    plan = plan_factory(org, price=100.0, duration_days=90, plan_type="quarterly")
    start = date(2025, 3, 1)

    r = client.post(
        f"{_base(org)}/subscriptions",
        json={
            "member_id": str(member.id),
            "plan_id": str(plan.id),
            "start_date": start.isoformat(),
            "discount_percent": 15,
            "discount_reason": "Etudiant",
            "payment_method": "sepa",
        },
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    sub = r.json()
    assert sub["status"] == "active"
    assert sub["end_date"] == (start + timedelta(days=90)).isoformat()
    assert sub["price_paid"] == 85.0

    payments = client.get(f"{_base(org)}/payments?member_id={member.id}", headers=auth()).json()
    assert len(payments) == 1
    assert payments[0]["status"] == "pending"
    assert payments[0]["amount"] == 85.0
    assert payments[0]["payment_method"] == "sepa"
    assert payments[0]["subscription_id"] == sub["id"]


def test_session_card_subscription_tracks_sessions(client, org_owner_context, member_factory, plan_factory):
    _, org = org_owner_context
    member = member_factory(org)
    plan = plan_factory(org, name="Carte 10", plan_type="session_card", price=150.0, duration_days=None, session_count=10)
    r = client.post(f"{_base(org)}/subscriptions", json={"member_id": str(member.id), "plan_id": str(plan.id)}, headers=auth())
    assert r.status_code == 201
    body = r.json()
    assert body["end_date"] is None
    assert body["sessions_total"] == 10
    assert body["sessions_remaining"] == 10


def test_subscription_errors(client, org_owner_context, member_factory, plan_factory, organization_factory):
    _, org = org_owner_context
    member = member_factory(org)
    plan = plan_factory(org, is_active=False)
    foreign_member = member_factory(organization_factory("Elsewhere"))

    r = client.post(f"{_base(org)}/subscriptions", json={"member_id": str(member.id), "plan_id": str(plan.id)}, headers=auth())
    assert r.status_code == 400
    r = client.post(f"{_base(org)}/subscriptions", json={"member_id": str(foreign_member.id), "plan_id": str(plan.id)}, headers=auth())
    assert r.status_code == 404
    assert r.json()["detail"] == "Membre introuvable"
    r = client.post(f"{_base(org)}/subscriptions", json={"member_id": str(member.id), "plan_id": str(uuid.uuid4())}, headers=auth())
    assert r.status_code == 404


def test_pause_resume_cancel(client, org_owner_context, member_factory, subscription_factory):
    _, org = org_owner_context
    sub = subscription_factory(org, member_factory(org), auto_renew=True)
    url = f"{_base(org)}/subscriptions/{sub.id}"

    r = client.post(f"{url}/pause", headers=auth())
    assert r.status_code == 200
    assert r.json()["status"] == "paused"
    assert r.json()["paused_at"] is not None

    assert client.post(f"{url}/pause", headers=auth()).status_code == 400

    r = client.post(f"{url}/resume", headers=auth())
    assert r.json()["status"] == "active"
    assert r.json()["paused_at"] is None

    r = client.post(f"{url}/cancel", headers=auth())
    assert r.json()["status"] == "cancelled"
    assert r.json()["auto_renew"] is False

    assert client.post(f"{url}/resume", headers=auth()).status_code == 400
    assert client.post(f"{url}/explode", headers=auth()).status_code == 404


def test_update_and_list_subscriptions(client, org_owner_context, member_factory, subscription_factory):
    _, org = org_owner_context
    alice = member_factory(org, first_name="Alice")
    bob = member_factory(org, first_name="Bob")
    sub = subscription_factory(org, alice)
    subscription_factory(org, bob, status="expired")

    r = client.put(f"{_base(org)}/subscriptions/{sub.id}", json={"end_date": "2030-01-01", "notes": "extended"}, headers=auth())
    assert r.status_code == 200
    assert r.json()["end_date"] == "2030-01-01"

    assert len(client.get(f"{_base(org)}/subscriptions", headers=auth()).json()) == 2
    active = client.get(f"{_base(org)}/subscriptions?status=active", headers=auth()).json()
    assert [s["member_id"] for s in active] == [str(alice.id)]
    assert client.get(f"{_base(org)}/subscriptions/{sub.id}", headers=auth()).json()["notes"] == "extended"
    assert client.get(f"{_base(org)}/subscriptions/{uuid.uuid4()}", headers=auth()).status_code == 404


def test_payment_lifecycle_and_stats(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    member = member_factory(org)

    r = client.post(f"{_base(org)}/payments", json={"member_id": str(member.id), "amount": 60, "payment_method": "cash"}, headers=auth())
    assert r.status_code == 201
    paid_id = r.json()["id"]
    other_id = client.post(f"{_base(org)}/payments", json={"member_id": str(member.id), "amount": 20}, headers=auth()).json()["id"]

    r = client.post(f"{_base(org)}/payments/{paid_id}/mark-paid", headers=auth())
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["paid_at"] is not None

    stats = client.get(f"{_base(org)}/stats", headers=auth()).json()
    assert stats["total_revenue"] == 60
    assert stats["pending_payments"] == 1

    too_much = client.post(f"{_base(org)}/payments/{paid_id}/refund", json={"amount": 100}, headers=auth())
    assert too_much.status_code == 400

    r = client.post(f"{_base(org)}/payments/{paid_id}/refund", json={"amount": 25, "reason": "Blessure"}, headers=auth())
    assert r.status_code == 200
    assert r.json()["status"] == "refunded"
    assert r.json()["refunded_amount"] == 25
    assert r.json()["refund_reason"] == "Blessure"

    assert client.post(f"{_base(org)}/payments/{other_id}/refund", headers=auth()).status_code == 400
    r = client.post(f"{_base(org)}/payments/{other_id}/cancel", headers=auth())
    assert r.json()["status"] == "cancelled"

    stats = client.get(f"{_base(org)}/stats", headers=auth()).json()
    assert stats == {"total": 0, "active": 0, "total_revenue": 0.0, "pending_payments": 0}

    actions = {a for (a,) in db_session.query(models.AuditLog.action_type).filter(models.AuditLog.target_type == "payment")}
    assert actions == {"payment_create", "payment_mark_paid", "payment_refund", "payment_cancel"}
