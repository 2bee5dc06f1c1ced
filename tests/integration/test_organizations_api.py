import uuid

from boxhub.db import models


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def test_create_org_requires_identity(client):
    r = client.post("/organizations/", json={"name": "NoEmail"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Authentication required"


def test_create_list_get_update_org(client):
    r = client.post(
        "/organizations/",
        json={"name": "CrossFit Lyon", "slug": "cf-lyon", "settings": {"primary_color": "#112233"}},
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    org_id = body["id"]
    assert body["settings"]["primary_color"] == "#112233"
    assert body["settings"]["timezone"] == "Europe/Paris"

    listed = client.get("/organizations/", headers=auth())
    assert [o["id"] for o in listed.json()] == [org_id]

    staff = client.get(f"/organizations/{org_id}/staff", headers=auth())
    assert staff.status_code == 200
    assert staff.json()[0]["role"] == "owner"

    r = client.put(f"/organizations/{org_id}", json={"name": "CrossFit Lyon 7", "settings": {"timezone": "UTC"}}, headers=auth())
    assert r.status_code == 200
    assert r.json()["name"] == "CrossFit Lyon 7"
    assert r.json()["settings"]["primary_color"] == "#112233"
    assert r.json()["settings"]["timezone"] == "UTC"

    r = client.put(f"/organizations/{org_id}", json={"name": None}, headers=auth())
    assert r.status_code == 422
    r = client.put(f"/organizations/{org_id}", json={"phone": None, "settings": None}, headers=auth())
    assert r.status_code == 200
    assert r.json()["settings"]["timezone"] == "UTC"


def test_duplicate_name_and_slug_conflict(client, org_owner_context):
    r = client.post("/organizations/", json={"name": "CrossFit Test"}, headers=auth("other@example.com"))
    assert r.status_code == 409
    r = client.post("/organizations/", json={"name": "Another", "slug": "crossfit-test"}, headers=auth("other@example.com"))
    assert r.status_code == 409


def test_outsider_cannot_read_org(client, org_owner_context):
    _, org = org_owner_context
    r = client.get(f"/organizations/{org.id}", headers=auth("stranger@example.com"))
    assert r.status_code == 403
    assert client.get(f"/organizations/{uuid.uuid4()}", headers=auth()).status_code == 404
    assert client.get("/organizations/", headers=auth("stranger@example.com")).json() == []


def test_superadmin_sees_all_orgs(client, org_owner_context, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "root@example.com")
    _, org = org_owner_context
    listed = client.get("/organizations/", headers=auth("root@example.com"))
    assert str(org.id) in [o["id"] for o in listed.json()]
    r = client.put(f"/organizations/{org.id}", json={"phone": "0102030405"}, headers=auth("root@example.com"))
    assert r.status_code == 200
    assert r.json()["phone"] == "0102030405"


def test_coach_cannot_manage_org(client, coach_context):
    _, org = coach_context
    assert client.get(f"/organizations/{org.id}", headers=auth("coach@example.com")).status_code == 200
    r = client.put(f"/organizations/{org.id}", json={"name": "Hijack"}, headers=auth("coach@example.com"))
    assert r.status_code == 403


def test_staff_lifecycle(client, org_owner_context, db_session):
    _, org = org_owner_context
    r = client.post(
        f"/organizations/{org.id}/staff",
        json={"email": "New.Coach@Example.com", "role": "coach", "display_name": "New Coach"},
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    staff = r.json()
    assert staff["email"] == "new.coach@example.com"
    assert staff["can_write"] is True

    dup = client.post(f"/organizations/{org.id}/staff", json={"email": "new.coach@example.com"}, headers=auth())
    assert dup.status_code == 409

    r = client.put(f"/organizations/{org.id}/staff/{staff['user_id']}", json={"role": "admin"}, headers=auth())
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    bad_role = client.put(f"/organizations/{org.id}/staff/{staff['user_id']}", json={"role": "viewer"}, headers=auth())
    assert bad_role.status_code == 422

    r = client.delete(f"/organizations/{org.id}/staff/{staff['user_id']}", headers=auth())
    assert r.status_code == 204
    assert len(client.get(f"/organizations/{org.id}/staff", headers=auth()).json()) == 1

    actions = [a for (a,) in db_session.query(models.AuditLog.action_type).filter(models.AuditLog.organization_id == org.id)]
    assert "staff_add" in actions
    assert "staff_role_change" in actions
    assert "staff_remove" in actions


def test_last_owner_is_protected(client, org_owner_context):
    owner, org = org_owner_context
    r = client.put(f"/organizations/{org.id}/staff/{owner.id}", json={"role": "coach"}, headers=auth())
    assert r.status_code == 400
    r = client.delete(f"/organizations/{org.id}/staff/{owner.id}", headers=auth())
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot remove the last owner"


def test_delete_org_with_members_conflicts(client, org_owner_context, member_factory):
    _, org = org_owner_context
    member_factory(org)
    r = client.delete(f"/organizations/{org.id}", headers=auth())
    assert r.status_code == 409


def test_delete_empty_org(client):
    org_id = client.post("/organizations/", json={"name": "Short Lived"}, headers=auth()).json()["id"]
    assert client.delete(f"/organizations/{org_id}", headers=auth()).status_code == 204
    assert client.get(f"/organizations/{org_id}", headers=auth()).status_code == 404
