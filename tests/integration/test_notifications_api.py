import uuid
from datetime import datetime, timedelta, timezone

from boxhub.db import models

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _base(org):
    return f"/organizations/{org.id}/notifications"


def _hours_until_tomorrow_noon():
    now = datetime.now(timezone.utc)
    tomorrow_noon = (now + timedelta(days=1)).replace(hour=12, minute=0, second=0, microsecond=0)
    return (tomorrow_noon - now).total_seconds() / 3600


def test_settings_default_then_update(client, org_owner_context, db_session):
    _, org = org_owner_context
    r = client.get(f"{_base(org)}/settings", headers=auth())
    assert r.status_code == 200
    body = r.json()
    assert body["welcome_email"] is True
    assert body["class_reminder_2h"] is False
    assert body["subscription_expired"] is False
    assert body["from_name"] == "BoxHub"

    r = client.put(f"{_base(org)}/settings", json={"class_reminder_24h": False, "reply_to": "hello@box.fr"}, headers=auth())
    assert r.status_code == 200
    assert r.json()["class_reminder_24h"] is False
    assert r.json()["reply_to"] == "hello@box.fr"
    assert client.get(f"{_base(org)}/settings", headers=auth()).json()["class_reminder_24h"] is False

    audit = db_session.query(models.AuditLog).filter(models.AuditLog.target_type == "notification_settings").one()
    assert audit.metadata_json == {"class_reminder_24h": False, "reply_to": "hello@box.fr"}


def test_settings_reject_explicit_nulls(client, org_owner_context):
    _, org = org_owner_context
    for field in ("welcome_email", "class_reminder_2h", "from_name"):
        r = client.put(f"{_base(org)}/settings", json={field: None}, headers=auth())
        assert r.status_code == 422, field
    r = client.put(f"{_base(org)}/settings", json={"reply_to": None}, headers=auth())
    assert r.status_code == 200
    assert r.json()["reply_to"] is None


def test_coach_cannot_touch_email_settings_or_logs(client, coach_context):
    _, org = coach_context
    headers = auth("coach@example.com")
    assert client.get(f"{_base(org)}/settings", headers=headers).status_code == 200
    assert client.put(f"{_base(org)}/settings", json={"welcome_email": False}, headers=headers).status_code == 403
    assert client.get(f"{_base(org)}/emails", headers=headers).status_code == 403


def test_bulk_email_and_logs(client, org_owner_context, member_factory, db_session, email_service):
    _, org = org_owner_context
    member_factory(org, first_name="Lea", email="lea@example.com")
    member_factory(org, first_name="Noah", email=None)
    opted_out = member_factory(org, first_name="Zoe", email="zoe@example.com")
    member_factory(org, first_name="Old", email="old@example.com", status="inactive")
    db_session.add(models.MemberNotificationPreference(member_id=opted_out.id, email_enabled=False))
    db_session.commit()

    r = client.post(f"{_base(org)}/bulk", json={"subject": "Fermeture", "message": "Box fermee lundi"}, headers=auth())
    assert r.status_code == 200, r.text
    assert r.json() == {"sent": 1, "errors": 0, "skipped": 2}
    assert email_service.send_email.call_args.kwargs["to_email"] == "lea@example.com"

    logs = client.get(f"{_base(org)}/emails", headers=auth()).json()
    assert logs["total"] == 1
    entry = logs["logs"][0]
    assert entry["template_type"] == "custom"
    assert entry["subject"] == "Fermeture"
    assert entry["status"] == "sent"

    detail = client.get(f"{_base(org)}/emails/{entry['id']}", headers=auth())
    assert detail.json()["recipient_email"] == "lea@example.com"
    assert client.get(f"{_base(org)}/emails/{uuid.uuid4()}", headers=auth()).status_code == 404

    assert client.get(f"{_base(org)}/emails?status=failed", headers=auth()).json()["total"] == 0
    assert client.get(f"{_base(org)}/emails?search=lea", headers=auth()).json()["total"] == 1


def test_bulk_marketing_skips_members_without_consent(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    keen = member_factory(org, first_name="Keen", email="keen@example.com")
    member_factory(org, first_name="Quiet", email="quiet@example.com")
    db_session.add(models.MemberNotificationPreference(member_id=keen.id, receive_marketing=True))
    db_session.commit()

    r = client.post(
        f"{_base(org)}/bulk",
        json={"subject": "Promo", "message": "-20%", "marketing": True},
        headers=auth(),
    )
    assert r.json() == {"sent": 1, "errors": 0, "skipped": 1}


def test_bulk_to_selected_members_counts_provider_failures(client, org_owner_context, member_factory, email_service):
    _, org = org_owner_context
    target = member_factory(org, email="target@example.com")
    member_factory(org, email="other@example.com")
    email_service.send_email.return_value = {"success": False, "error": "rate limited"}

    r = client.post(
        f"{_base(org)}/bulk",
        json={"subject": "Hello", "message": "Hi", "member_ids": [str(target.id)]},
        headers=auth(),
    )
    assert r.json() == {"sent": 0, "errors": 1, "skipped": 0}
    failed = client.get(f"{_base(org)}/emails?status=failed", headers=auth()).json()
    assert failed["logs"][0]["error_message"] == "rate limited"


def test_email_stats(client, org_owner_context, email_service):
    _, org = org_owner_context
    client.post(f"/organizations/{org.id}/members/", json={"first_name": "A", "last_name": "B", "email": "a@example.com"}, headers=auth())
    email_service.send_email.return_value = {"success": False, "error": "boom"}
    client.post(f"/organizations/{org.id}/members/", json={"first_name": "C", "last_name": "D", "email": "c@example.com"}, headers=auth())

    stats = client.get(f"{_base(org)}/emails/stats", headers=auth()).json()
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["failed"] == 1
    assert stats["by_template"] == {"welcome": 2}


def test_email_status_webhook(client, org_owner_context):
    _, org = org_owner_context
    client.post(f"/organizations/{org.id}/members/", json={"first_name": "A", "last_name": "B", "email": "a@example.com"}, headers=auth())
    payload = {"provider_message_id": "msg-1", "status": "delivered"}

    assert client.post("/notifications/email-status", json=payload).status_code == 401
    r = client.post("/notifications/email-status", json=payload, headers=CRON_HEADERS)
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"
    assert r.json()["delivered_at"] is not None

    unknown = client.post("/notifications/email-status", json={"provider_message_id": "nope", "status": "bounced"}, headers=CRON_HEADERS)
    assert unknown.status_code == 404


# Scheduler jobs

def test_cron_requires_secret(client, monkeypatch):
    assert client.post("/cron/notifications").status_code == 401
    assert client.post("/cron/notifications", headers={"Authorization": "Bearer wrong"}).status_code == 401
    monkeypatch.delenv("CRON_SECRET")
    assert client.post("/cron/notifications", headers=CRON_HEADERS).status_code == 503


def test_cron_class_reminders(client, org_owner_context, member_factory, class_factory, db_session, email_service):
    _, org = org_owner_context
    tomorrow = class_factory(org, name="Fran Day", hours_from_now=_hours_until_tomorrow_noon())
    later = class_factory(org, hours_from_now=24 * 5)
    booked = member_factory(org, first_name="Lea", email="lea@example.com")
    opted_out = member_factory(org, first_name="Max", email="max@example.com")
    db_session.add(models.MemberNotificationPreference(member_id=opted_out.id, receive_class_reminders=False))
    for gym_class, member in ((tomorrow, booked), (tomorrow, opted_out), (later, booked)):
        db_session.add(models.Booking(organization_id=org.id, class_id=gym_class.id, member_id=member.id))
    db_session.commit()

    r = client.post("/cron/notifications?type=class_reminders", headers=CRON_HEADERS)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["organizations"] == 1
    assert body["results"] == {"class_reminders": {"sent": 1, "errors": 0, "skipped": 1}}
    assert email_service.send_email.call_args.kwargs["subject"].startswith("Rappel : Fran Day demain a ")


def test_cron_subscription_reminders(client, org_owner_context, member_factory, subscription_factory, plan_factory, email_service):
    _, org = org_owner_context
    plan = plan_factory(org, name="Mensuel")
    subscription_factory(org, member_factory(org, first_name="Soon", email="soon@example.com"), plan=plan, days=5, start_date=models.today_utc())
    subscription_factory(org, member_factory(org, first_name="Later", email="later@example.com"), plan=plan, days=20, start_date=models.today_utc())

    body = client.post("/cron/notifications", headers=CRON_HEADERS).json()
    assert body["type"] == "all"
    assert body["results"]["subscription_7d"]["sent"] == 1
    assert body["results"]["subscription_30d"]["sent"] == 2
    subjects = {c.kwargs["subject"] for c in email_service.send_email.call_args_list}
    assert subjects == {"Votre abonnement Mensuel expire bientot"}

    assert client.post("/cron/notifications?type=weekly", headers=CRON_HEADERS).status_code == 422


def test_cron_expires_overdue_subscriptions(client, org_owner_context, member_factory, subscription_factory, db_session):
    _, org = org_owner_context
    today = models.today_utc()
    overdue = subscription_factory(org, member_factory(org), start_date=today - timedelta(days=40), days=30)
    current = subscription_factory(org, member_factory(org), start_date=today, days=30)
    paused = subscription_factory(org, member_factory(org), start_date=today - timedelta(days=40), days=30, status="paused")

    r = client.post("/cron/subscriptions/expire", headers=CRON_HEADERS)
    assert r.json() == {"success": True, "expired": 1}
    db_session.expire_all()
    assert db_session.get(models.Subscription, overdue.id).status == "expired"
    assert db_session.get(models.Subscription, current.id).status == "active"
    assert db_session.get(models.Subscription, paused.id).status == "paused"
