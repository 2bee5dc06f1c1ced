import uuid

from boxhub.db import models
from boxhub.utils.dates import as_utc


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _url(org, suffix="recurring"):
    return f"/organizations/{org.id}/planning/{suffix}"


def _payload(**overrides):
    payload = {
        "name": "WOD du soir",
        "start_date": "2030-01-07",
        "end_date": "2030-01-20",
        "time": "18:30",
        "pattern": "weekly",
        "days_of_week": [1, 3],
        "max_participants": 12,
    }
    payload.update(overrides)
    return payload


def test_weekly_series_in_org_timezone(client, org_owner_context, db_session):
    _, org = org_owner_context
    r = client.post(_url(org), json=_payload(), headers=auth())
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["count"] == 4

    classes = (
        db_session.query(models.GymClass)
        .filter(models.GymClass.recurrence_id == uuid.UUID(body["recurrence_id"]))
        .order_by(models.GymClass.start_time)
        .all()
    )
    starts = [as_utc(c.start_time) for c in classes]
    assert [s.day for s in starts] == [7, 9, 14, 16]
    # 18:30 in Paris during winter
    assert {(s.hour, s.minute) for s in starts} == {(17, 30)}
    assert {c.recurrence_type for c in classes} == {"weekly"}
    assert {c.max_participants for c in classes} == {12}


def test_recurring_from_template(client, org_owner_context, db_session):
    _, org = org_owner_context
    template = client.post(
        f"/organizations/{org.id}/planning/templates",
        json={"name": "Haltero", "duration_minutes": 75},
        headers=auth(),
    ).json()
    r = client.post(
        _url(org),
        json=_payload(name=None, template_id=template["id"], pattern="daily", days_of_week=[], end_date="2030-01-09"),
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    assert r.json()["count"] == 3
    names = {c.name for c in db_session.query(models.GymClass)}
    durations = {c.duration_minutes for c in db_session.query(models.GymClass)}
    assert names == {"Haltero"}
    assert durations == {75}


def test_recurring_validation(client, org_owner_context):
    _, org = org_owner_context
    too_many = client.post(_url(org), json=_payload(pattern="daily", end_date="2030-06-30"), headers=auth())
    assert too_many.status_code == 400
    assert "Maximum: 100" in too_many.json()["detail"]

    no_dates = client.post(_url(org), json=_payload(days_of_week=[]), headers=auth())
    assert no_dates.status_code == 400
    assert no_dates.json()["detail"] == "Aucune date correspondante trouvee"

    reversed_range = client.post(_url(org), json=_payload(start_date="2030-02-01"), headers=auth())
    assert reversed_range.status_code == 400

    assert client.post(_url(org), json=_payload(time="25:00"), headers=auth()).status_code == 400
    assert client.post(_url(org), json=_payload(time="7h30"), headers=auth()).status_code == 422


def test_delete_series_skips_booked_classes(client, org_owner_context, member_factory, db_session):
    _, org = org_owner_context
    body = client.post(_url(org), json=_payload(), headers=auth()).json()
    booked_class_id = body["class_ids"][0]
    member = member_factory(org)
    r = client.post(
        f"/organizations/{org.id}/planning/classes/{booked_class_id}/bookings",
        json={"member_id": str(member.id)},
        headers=auth(),
    )
    assert r.status_code == 201

    r = client.post(_url(org, "recurring/delete"), json={"recurrence_id": body["recurrence_id"]}, headers=auth())
    assert r.status_code == 200
    assert r.json() == {"deleted": 3, "skipped": 1}
    assert [str(c.id) for c in db_session.query(models.GymClass)] == [booked_class_id]

    r = client.post(_url(org, "recurring/delete"), json={"class_ids": [booked_class_id]}, headers=auth())
    assert r.status_code == 409

    assert client.post(_url(org, "recurring/delete"), json={}, headers=auth()).status_code == 400
