import uuid
from datetime import timedelta

from boxhub.db import models
from boxhub.utils.dates import org_zone

MEMBER = {"x-auth-request-email": "athlete@example.com"}


def _portal(org):
    return f"/me/organizations/{org.id}"


def test_profile_requires_a_linked_member(client, member_context, user_factory, organization_factory):
    _, member, org = member_context
    r = client.get(f"{_portal(org)}/profile", headers=MEMBER)
    assert r.status_code == 200
    assert r.json()["id"] == str(member.id)

    # staff accounts without a member row have no portal
    assert client.get(f"{_portal(org)}/profile", headers={"x-auth-request-email": "owner@example.com"}).status_code == 403
    assert client.get(f"/me/organizations/{uuid.uuid4()}/profile", headers=MEMBER).status_code == 404
    other = organization_factory("Other Box")
    assert client.get(f"{_portal(other)}/profile", headers=MEMBER).status_code == 403
    assert client.get(f"{_portal(org)}/profile").status_code == 401


def test_self_booking_needs_an_active_subscription(client, member_context, class_factory, subscription_factory):
    _, member, org = member_context
    gym_class = class_factory(org, name="WOD 18h", hours_from_now=30)

    r = client.post(f"{_portal(org)}/classes/{gym_class.id}/book", headers=MEMBER)
    assert r.status_code == 400
    assert r.json()["detail"] == "Un abonnement actif est requis pour reserver ce cours"

    subscription_factory(org, member)
    r = client.post(f"{_portal(org)}/classes/{gym_class.id}/book", json={"notes": "premiere fois"}, headers=MEMBER)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "confirmed"
    assert r.json()["notes"] == "premiere fois"

    again = client.post(f"{_portal(org)}/classes/{gym_class.id}/book", headers=MEMBER)
    assert again.status_code == 409


def test_session_card_without_sessions_left(client, member_context, class_factory, subscription_factory):
    _, member, org = member_context
    subscription_factory(org, member, end_date=None, sessions_total=10, sessions_used=10)
    gym_class = class_factory(org)
    r = client.post(f"{_portal(org)}/classes/{gym_class.id}/book", headers=MEMBER)
    assert r.status_code == 400
    assert r.json()["detail"] == "Plus de seance disponible sur votre carte"


def test_planning_shows_own_booking_and_waitlist(client, member_context, class_factory, member_factory, subscription_factory):
    _, member, org = member_context
    subscription_factory(org, member)
    full = class_factory(org, name="Full", hours_from_now=10, max_participants=1)
    class_factory(org, name="Open", hours_from_now=20)
    class_factory(org, name="Far", hours_from_now=24 * 20)
    class_factory(org, name="Cancelled", hours_from_now=30, status="cancelled")

    other = member_factory(org, first_name="Early")
    client.post(
        f"/organizations/{org.id}/planning/classes/{full.id}/bookings",
        json={"member_id": str(other.id)},
        headers={"x-auth-request-email": "owner@example.com"},
    )
    r = client.post(f"{_portal(org)}/classes/{full.id}/book", headers=MEMBER)
    assert r.json()["status"] == "waitlist"
    assert r.json()["waitlist_position"] == 1

    classes = client.get(f"{_portal(org)}/classes", headers=MEMBER).json()
    assert [c["name"] for c in classes] == ["Full", "Open"]
    assert classes[0]["booking_status"] == "waitlist"
    assert classes[0]["waitlist_position"] == 1
    assert classes[1]["booking_id"] is None

    assert [c["name"] for c in client.get(f"{_portal(org)}/classes?days=30", headers=MEMBER).json()] == ["Full", "Open", "Far"]


def test_member_cancellation_deadline(client, member_context, class_factory, subscription_factory):
    _, member, org = member_context
    subscription_factory(org, member)
    soon = class_factory(org, name="Soon", hours_from_now=1)
    later = class_factory(org, name="Later", hours_from_now=5)
    soon_booking = client.post(f"{_portal(org)}/classes/{soon.id}/book", headers=MEMBER).json()
    later_booking = client.post(f"{_portal(org)}/classes/{later.id}/book", headers=MEMBER).json()

    r = client.post(f"{_portal(org)}/bookings/{soon_booking['id']}/cancel", headers=MEMBER)
    assert r.status_code == 400
    assert r.json()["detail"] == "Annulation impossible moins de 2h avant le cours"

    r = client.post(f"{_portal(org)}/bookings/{later_booking['id']}/cancel", json={"reason": "malade"}, headers=MEMBER)
    assert r.status_code == 200
    assert r.json()["booking"]["status"] == "cancelled"
    assert r.json()["promoted_booking"] is None

    history = client.get(f"{_portal(org)}/bookings", headers=MEMBER).json()
    assert [(h["gym_class"]["name"], h["booking"]["status"]) for h in history] == [("Later", "cancelled"), ("Soon", "confirmed")]


def test_member_cannot_cancel_someone_elses_booking(client, member_context, class_factory, member_factory, db_session):
    _, _, org = member_context
    gym_class = class_factory(org)
    other = member_factory(org, first_name="Other")
    booking = models.Booking(organization_id=org.id, class_id=gym_class.id, member_id=other.id)
    db_session.add(booking)
    db_session.commit()
    assert client.post(f"{_portal(org)}/bookings/{booking.id}/cancel", headers=MEMBER).status_code == 404


def test_subscription_and_todays_workout(client, member_context, subscription_factory, workout_factory, plan_factory):
    _, member, org = member_context
    assert client.get(f"{_portal(org)}/subscription", headers=MEMBER).json() is None
    sub = subscription_factory(org, member, plan=plan_factory(org))
    assert client.get(f"{_portal(org)}/subscription", headers=MEMBER).json()["id"] == str(sub.id)

    local_today = models.now_utc().astimezone(org_zone(org)).date()
    assert client.get(f"{_portal(org)}/workout/today", headers=MEMBER).json() is None
    workout_factory(org, name="Draft", day=local_today, published=False)
    assert client.get(f"{_portal(org)}/workout/today", headers=MEMBER).json() is None
    workout_factory(org, name="Murph", day=local_today)
    workout_factory(org, name="Yesterday", day=local_today - timedelta(days=1))
    assert client.get(f"{_portal(org)}/workout/today", headers=MEMBER).json()["name"] == "Murph"


def test_member_records_and_scores(client, member_context, exercise_factory, workout_factory):
    _, member, org = member_context
    deadlift = exercise_factory(None, name="Deadlift")
    r = client.post(
        f"{_portal(org)}/records",
        json={"exercise_id": str(deadlift.id), "record_type": "1RM", "record_value": 140, "record_unit": "kg"},
        headers=MEMBER,
    )
    assert r.status_code == 200, r.text
    assert r.json()["member_id"] == str(member.id)
    assert [rec["record_value"] for rec in client.get(f"{_portal(org)}/records", headers=MEMBER).json()] == [140]

    r = client.post(
        f"{_portal(org)}/records",
        json={"exercise_id": str(uuid.uuid4()), "record_type": "1RM", "record_value": 1, "record_unit": "kg"},
        headers=MEMBER,
    )
    assert r.status_code == 404

    workout = workout_factory(org)
    client.post(
        f"/organizations/{org.id}/workouts/{workout.id}/scores",
        json={"member_id": str(member.id), "score_type": "time", "score_value": 420},
        headers={"x-auth-request-email": "owner@example.com"},
    )
    scores = client.get(f"{_portal(org)}/scores", headers=MEMBER).json()
    assert [s["score_value"] for s in scores] == [420]


def test_notification_preferences(client, member_context):
    _, member, org = member_context
    prefs = client.get(f"{_portal(org)}/preferences", headers=MEMBER).json()
    assert prefs["member_id"] == str(member.id)
    assert prefs["email_enabled"] is True
    assert prefs["receive_marketing"] is False

    r = client.put(f"{_portal(org)}/preferences", json={"receive_marketing": True, "receive_class_reminders": False}, headers=MEMBER)
    assert r.status_code == 200
    assert r.json()["receive_marketing"] is True
    assert r.json()["receive_class_reminders"] is False
    assert r.json()["email_enabled"] is True
    assert client.get(f"{_portal(org)}/preferences", headers=MEMBER).json()["receive_marketing"] is True
    r = client.put(f"{_portal(org)}/preferences", json={"email_enabled": None}, headers=MEMBER)
    assert r.status_code == 422
