import uuid
from datetime import datetime, timedelta

from boxhub.db import models
from boxhub.utils.dates import as_utc

MEMBER = {"x-auth-request-email": "athlete@example.com", "user-agent": "pytest-browser"}


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _staff(org):
    return f"/organizations/{org.id}/rgpd"


def _portal(org):
    return f"/me/organizations/{org.id}"


def test_member_request_gets_thirty_day_due_date(client, member_context):
    _, member, org = member_context
    r = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_access", "reason": "curieux"}, headers=MEMBER)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "pending"
    assert body["member_id"] == str(member.id)
    created = client.get(f"{_portal(org)}/rgpd/requests", headers=MEMBER).json()
    assert [req["id"] for req in created] == [body["id"]]

    due = datetime.fromisoformat(body["due_date"])
    created_at = datetime.fromisoformat(body["created_at"])
    assert (due - created_at).days in (29, 30)

    duplicate = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_access"}, headers=MEMBER)
    assert duplicate.status_code == 409


def test_member_can_withdraw_pending_request(client, member_context):
    _, _, org = member_context
    request_id = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_rectification"}, headers=MEMBER).json()["id"]
    r = client.post(f"{_portal(org)}/rgpd/requests/{request_id}/cancel", headers=MEMBER)
    assert r.json()["status"] == "cancelled"
    assert client.post(f"{_portal(org)}/rgpd/requests/{request_id}/cancel", headers=MEMBER).status_code == 400
    assert client.post(f"{_portal(org)}/rgpd/requests/{uuid.uuid4()}/cancel", headers=MEMBER).status_code == 404


def test_staff_lists_and_counts_requests(client, member_context, db_session):
    _, member, org = member_context
    client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_export"}, headers=MEMBER)
    urgent = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_access"}, headers=MEMBER).json()
    overdue = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_portability"}, headers=MEMBER).json()
    now = models.now_utc()
    db_session.get(models.RgpdRequest, uuid.UUID(urgent["id"])).due_date = now + timedelta(days=3)
    db_session.get(models.RgpdRequest, uuid.UUID(overdue["id"])).due_date = now - timedelta(days=1)
    db_session.commit()

    assert client.get(f"{_staff(org)}/requests/counts", headers=auth()).json() == {"pending": 3, "urgent": 1, "overdue": 1}
    exports = client.get(f"{_staff(org)}/requests?request_type=data_export", headers=auth()).json()
    assert len(exports) == 1
    assert len(client.get(f"{_staff(org)}/requests?member_id={member.id}", headers=auth()).json()) == 3


def test_approved_export_can_be_downloaded(client, member_context, subscription_factory, user_factory, db_session):
    _, member, org = member_context
    subscription_factory(org, member)
    request_id = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_export"}, headers=MEMBER).json()["id"]

    r = client.post(f"{_staff(org)}/requests/{request_id}/process", json={"action": "approve"}, headers=auth())
    assert r.status_code == 200, r.text
    processed = r.json()
    assert processed["status"] == "completed"
    assert processed["export_file_url"] == f"/api/rgpd/export/{request_id}"
    ttl = as_utc(datetime.fromisoformat(processed["export_expires_at"]))
    assert timedelta(days=6) < ttl - models.now_utc() <= timedelta(days=7)

    again = client.post(f"{_staff(org)}/requests/{request_id}/process", json={"action": "approve"}, headers=auth())
    assert again.status_code == 409

    export = client.get(f"/rgpd/export/{request_id}", headers=MEMBER)
    assert export.status_code == 200
    data = export.json()
    assert data["member"]["email"] == "athlete@example.com"
    assert len(data["subscriptions"]) == 1
    assert set(data) >= {"payments", "class_attendances", "workout_scores", "personal_records", "consents"}

    assert client.get(f"/rgpd/export/{request_id}", headers=auth()).status_code == 200
    user_factory("stranger@example.com")
    assert client.get(f"/rgpd/export/{request_id}", headers=auth("stranger@example.com")).status_code == 403
    assert client.get(f"/rgpd/export/{uuid.uuid4()}", headers=MEMBER).status_code == 404

    db_session.get(models.RgpdRequest, uuid.UUID(request_id)).export_expires_at = models.now_utc() - timedelta(minutes=1)
    db_session.commit()
    assert client.get(f"/rgpd/export/{request_id}", headers=MEMBER).status_code == 410

    db_session.expire_all()
    assert db_session.get(models.Member, member.id).last_data_export_at is not None


def test_export_not_ready_until_processed(client, member_context):
    _, _, org = member_context
    request_id = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_export"}, headers=MEMBER).json()["id"]
    assert client.get(f"/rgpd/export/{request_id}", headers=MEMBER).status_code == 404


def test_rejecting_a_request(client, member_context):
    _, _, org = member_context
    request_id = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_deletion"}, headers=MEMBER).json()["id"]
    r = client.post(
        f"{_staff(org)}/requests/{request_id}/process",
        json={"action": "reject", "rejection_reason": "Obligation comptable"},
        headers=auth(),
    )
    body = r.json()
    assert body["status"] == "rejected"
    assert body["rejection_reason"] == "Obligation comptable"
    assert body["processed_at"] is not None


def test_approved_deletion_anonymizes_member(client, member_context, db_session):
    _, member, org = member_context
    db_session.add(models.MemberNotificationPreference(member_id=member.id, receive_marketing=True))
    db_session.commit()
    request_id = client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_deletion"}, headers=MEMBER).json()["id"]

    r = client.post(f"{_staff(org)}/requests/{request_id}/process", json={"action": "approve"}, headers=auth())
    assert r.json()["status"] == "completed"

    db_session.expire_all()
    anonymized = db_session.get(models.Member, member.id)
    assert anonymized.first_name == "Membre anonymise"
    assert anonymized.email == f"anonymized-{member.id}@deleted.invalid"
    assert anonymized.status == "archived"
    assert anonymized.user_id is None
    assert anonymized.anonymized_at is not None
    assert db_session.query(models.MemberNotificationPreference).count() == 0
    # the account is unlinked, so the portal no longer resolves a member
    assert client.get(f"{_portal(org)}/profile", headers=MEMBER).status_code == 403


def test_staff_anonymize_endpoint(client, org_owner_context, member_factory):
    _, org = org_owner_context
    member = member_factory(org, email="gone@example.com", phone="0600")
    r = client.post(f"{_staff(org)}/members/{member.id}/anonymize", headers=auth())
    assert r.status_code == 200
    assert r.json()["phone"] is None
    assert client.post(f"{_staff(org)}/members/{member.id}/anonymize", headers=auth()).status_code == 409
    assert client.post(f"{_staff(org)}/members/{uuid.uuid4()}/anonymize", headers=auth()).status_code == 404


def test_consents_history_and_stats(client, member_context):
    _, member, org = member_context
    assert client.post(f"{_portal(org)}/consents", json={"consent_type": "newsletter", "granted": True}, headers=MEMBER).status_code == 200
    r = client.post(f"{_portal(org)}/consents", json={"consent_type": "newsletter", "granted": False}, headers=MEMBER)
    assert r.json()["source"] == "web"
    assert r.json()["user_agent"] == "pytest-browser"
    client.post(f"{_portal(org)}/consents", json={"consent_type": "photo_usage", "granted": True}, headers=MEMBER)
    assert client.post(f"{_portal(org)}/consents", json={"consent_type": "dna", "granted": True}, headers=MEMBER).status_code == 422

    current = client.get(f"{_portal(org)}/consents", headers=MEMBER).json()
    assert {c["consent_type"]: c["granted"] for c in current} == {"newsletter": False, "photo_usage": True}

    history = client.get(f"{_staff(org)}/members/{member.id}/consents", headers=auth()).json()
    assert len(history) == 3

    stats = {s["consent_type"]: s for s in client.get(f"{_staff(org)}/consents/stats", headers=auth()).json()}
    assert stats["newsletter"] == {"consent_type": "newsletter", "granted_count": 0, "revoked_count": 1, "total_members": 1}
    assert stats["photo_usage"]["granted_count"] == 1
    assert stats["health_data"]["total_members"] == 0


def test_rgpd_audit_trail(client, member_context):
    _, member, org = member_context
    client.post(f"{_portal(org)}/consents", json={"consent_type": "marketing_email", "granted": True}, headers=MEMBER)
    client.post(f"{_portal(org)}/rgpd/requests", json={"request_type": "data_access"}, headers=MEMBER)

    entries = client.get(f"{_staff(org)}/audit-logs?member_id={member.id}", headers=auth()).json()
    assert {e["action"] for e in entries} == {"consent_granted", "request_created"}
    assert {e["ip_address"] for e in entries} == {"testclient"}


def test_rgpd_staff_routes_need_manage_role(client, coach_context):
    _, org = coach_context
    assert client.get(f"{_staff(org)}/requests", headers=auth("coach@example.com")).status_code == 403
    assert client.get(f"{_staff(org)}/audit-logs", headers=auth("coach@example.com")).status_code == 403
