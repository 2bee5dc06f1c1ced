from boxhub.db import models


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _dash(org):
    return f"/organizations/{org.id}/dashboard"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "service": "boxhub"}


def test_dashboard_headline_numbers(client, org_owner_context, member_factory, subscription_factory, class_factory):
    _, org = org_owner_context
    lea = member_factory(org, first_name="Lea")
    member_factory(org, first_name="Paused", status="suspended")
    member_factory(org, first_name="Gone", status="archived")
    subscription_factory(org, lea, days=10)
    running = class_factory(org, name="Midi", hours_from_now=-0.25, max_participants=4)

    client.post(f"/organizations/{org.id}/planning/classes/{running.id}/bookings", json={"member_id": str(lea.id)}, headers=auth())
    payment_id = client.post(
        f"/organizations/{org.id}/billing/payments",
        json={"member_id": str(lea.id), "amount": 70},
        headers=auth(),
    ).json()["id"]
    client.post(f"/organizations/{org.id}/billing/payments/{payment_id}/mark-paid", headers=auth())

    r = client.get(f"{_dash(org)}/", headers=auth())
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["members"] == {"total": 2, "active": 1, "new_this_month": 2}
    assert body["subscriptions"] == {"active": 1, "expiring_soon": 1, "revenue": 70.0}
    assert [a["member_name"] for a in body["recent_activity"]] == ["Lea Martin"]
    assert body["recent_activity"][0]["class_name"] == "Midi"


def test_revenue_series_is_zero_filled(client, org_owner_context, member_factory):
    _, org = org_owner_context
    member = member_factory(org)
    payment_id = client.post(
        f"/organizations/{org.id}/billing/payments",
        json={"member_id": str(member.id), "amount": 120.5},
        headers=auth(),
    ).json()["id"]
    client.post(f"/organizations/{org.id}/billing/payments/{payment_id}/mark-paid", headers=auth())

    series = client.get(f"{_dash(org)}/revenue?months=3", headers=auth()).json()
    assert len(series) == 3
    assert [p["revenue"] for p in series[:2]] == [0.0, 0.0]
    assert series[-1] == {"month": models.now_utc().strftime("%Y-%m"), "revenue": 120.5}

    assert client.get(f"{_dash(org)}/revenue?months=0", headers=auth()).status_code == 422


def test_attendance_series_counts_check_ins(client, org_owner_context, member_factory, class_factory):
    _, org = org_owner_context
    member = member_factory(org)
    running = class_factory(org, hours_from_now=-0.25)
    booking_id = client.post(
        f"/organizations/{org.id}/planning/classes/{running.id}/bookings",
        json={"member_id": str(member.id)},
        headers=auth(),
    ).json()["id"]
    client.post(f"/organizations/{org.id}/planning/bookings/{booking_id}/check-in", headers=auth())

    series = client.get(f"{_dash(org)}/attendance?days=3", headers=auth()).json()
    assert [p["count"] for p in series] == [0, 0, 1]
    assert series[-1]["date"] == models.now_utc().date().isoformat()


def test_coach_sees_dashboard_but_not_revenue(client, coach_context):
    _, org = coach_context
    coach = auth("coach@example.com")
    assert client.get(f"{_dash(org)}/", headers=coach).status_code == 200
    assert client.get(f"{_dash(org)}/attendance", headers=coach).status_code == 200
    assert client.get(f"{_dash(org)}/revenue", headers=coach).status_code == 403


# Audit trail

def test_organization_audits_are_filterable(client, org_owner_context, member_factory):
    _, org = org_owner_context
    client.post(f"/organizations/{org.id}/members/", json={"first_name": "A", "last_name": "B"}, headers=auth())
    member = member_factory(org)
    client.delete(f"/organizations/{org.id}/members/{member.id}", headers=auth())

    entries = client.get(f"/organizations/{org.id}/audits", headers=auth()).json()
    assert {e["action_type"] for e in entries} >= {"member_create", "member_archive"}
    archived = client.get(f"/organizations/{org.id}/audits?action_type=member_archive", headers=auth()).json()
    assert len(archived) == 1
    assert archived[0]["target_id"] == str(member.id)
    assert archived[0]["organization_id"] == str(org.id)


def test_audit_history_of_one_target_and_summary(client, org_owner_context, member_factory):
    _, org = org_owner_context
    member = member_factory(org)
    client.put(f"/organizations/{org.id}/members/{member.id}", json={"phone": "0600000000"}, headers=auth())
    client.delete(f"/organizations/{org.id}/members/{member.id}", headers=auth())
    client.post(f"/organizations/{org.id}/members/", json={"first_name": "Other", "last_name": "One"}, headers=auth())

    r = client.get(f"/organizations/{org.id}/audits?target_id={member.id}&limit=1", headers=auth())
    assert r.headers["X-Total-Count"] == "2"
    assert [e["action_type"] for e in r.json()] == ["member_archive"]

    summary = client.get(f"/organizations/{org.id}/audits/summary", headers=auth()).json()
    assert summary["member_update"] == 1
    assert summary["member_archive"] == 1
    assert summary["member_create"] == 1


def test_cross_org_audits_need_superadmin(client, org_owner_context, coach_context, monkeypatch):
    _, org = org_owner_context
    assert client.get("/audits", headers=auth()).status_code == 403
    assert client.get(f"/organizations/{org.id}/audits", headers=auth("coach@example.com")).status_code == 403

    monkeypatch.setenv("ADMIN_EMAILS", "root@example.com")
    client.post("/organizations/", json={"name": "Root Box"}, headers=auth("root@example.com"))
    r = client.get("/audits?action_type=organization_create", headers=auth("root@example.com"))
    assert r.status_code == 200
    assert len(r.json()) == 1


# Signed-in account

def test_users_me_lists_memberships_and_profiles(client, member_context, coach_context):
    _, member, org = member_context
    me = client.get("/users/me", headers=auth("athlete@example.com")).json()
    assert me["email"] == "athlete@example.com"
    assert me["memberships"] == []
    assert me["member_profiles"] == [{"organization_id": str(org.id), "member_id": str(member.id), "status": "active"}]
    assert me["features"]["tv"] is True

    coach = client.get("/users/me", headers=auth("coach@example.com")).json()
    assert [(m["organization_name"], m["role"]) for m in coach["memberships"]] == [("CrossFit Test", "coach")]
    assert coach["display_name"] == "Coach Sam"


def test_users_me_rename(client, org_owner_context):
    r = client.patch("/users/me", json={"display_name": "  Sam Owner "}, headers=auth())
    assert r.status_code == 200
    assert r.json()["display_name"] == "Sam Owner"
    assert client.patch("/users/me", json={"display_name": " "}, headers=auth()).status_code == 422
    assert client.patch("/users/me", json={"display_name": "x" * 81}, headers=auth()).status_code == 422
    assert client.get("/users/me").status_code == 401
