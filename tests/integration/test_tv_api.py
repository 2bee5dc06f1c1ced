import uuid

from boxhub.db import models
from boxhub.utils.feature_flags import refresh_feature_flag_cache


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _base(org):
    return f"/organizations/{org.id}/tv"


def test_state_is_empty_until_first_write(client, org_owner_context):
    _, org = org_owner_context
    r = client.get(f"{_base(org)}/state", headers=auth())
    assert r.status_code == 200
    assert r.json() is None

    r = client.put(f"{_base(org)}/state", json={"mode": "waiting", "message": "Bienvenue"}, headers=auth())
    assert r.status_code == 200
    assert r.json()["mode"] == "waiting"
    assert client.get(f"{_base(org)}/state", headers=auth()).json()["message"] == "Bienvenue"


def test_state_update_rejects_foreign_workout(client, org_owner_context, organization_factory, workout_factory):
    _, org = org_owner_context
    foreign = workout_factory(organization_factory("Elsewhere"))
    r = client.put(f"{_base(org)}/state", json={"workout_id": str(foreign.id)}, headers=auth())
    assert r.status_code == 404
    r = client.post(f"{_base(org)}/workout", json={"workout_id": str(uuid.uuid4())}, headers=auth())
    assert r.status_code == 404


def test_timer_lifecycle(client, org_owner_context):
    _, org = org_owner_context
    r = client.patch(f"{_base(org)}/timer", json={"current_time": 10}, headers=auth())
    assert r.status_code == 409

    r = client.post(f"{_base(org)}/timer", json={"type": "emom", "duration": 600, "total_rounds": 10}, headers=auth())
    assert r.status_code == 200
    body = r.json()
    assert body["mode"] == "timer"
    assert body["timer_state"]["is_running"] is True
    assert body["timer_state"]["total_rounds"] == 10

    r = client.patch(f"{_base(org)}/timer", json={"current_time": 120, "round": 3, "is_running": False}, headers=auth())
    timer = r.json()["timer_state"]
    assert timer["current_time"] == 120
    assert timer["round"] == 3
    assert timer["is_running"] is False
    assert timer["duration"] == 600

    assert client.post(f"{_base(org)}/timer", json={"type": "sprint"}, headers=auth()).status_code == 422
    assert client.patch(f"{_base(org)}/timer", json={"is_running": None}, headers=auth()).status_code == 422
    assert client.put(f"{_base(org)}/state", json={"mode": None}, headers=auth()).status_code == 422


def test_modes_switch(client, org_owner_context, workout_factory):
    _, org = org_owner_context
    workout = workout_factory(org)

    r = client.post(f"{_base(org)}/workout", json={"workout_id": str(workout.id)}, headers=auth())
    assert r.json()["mode"] == "workout"
    assert r.json()["workout_id"] == str(workout.id)

    r = client.post(f"{_base(org)}/teams", json={"teams": [{"name": "Rouge", "members": ["A", "B"]}]}, headers=auth())
    assert r.json()["mode"] == "teams"
    assert r.json()["teams_data"][0]["name"] == "Rouge"

    r = client.post(f"{_base(org)}/waiting", headers=auth())
    assert r.json()["mode"] == "waiting"
    assert r.json()["message"] is None


def test_public_display_by_slug(client, org_owner_context, workout_factory, member_factory, class_factory):
    _, org = org_owner_context
    workout = workout_factory(org, day=models.today_utc())
    running = class_factory(org, name="Midi", hours_from_now=-0.25, duration=60)
    upcoming = class_factory(org, name="Soir", hours_from_now=5)
    member = member_factory(org)
    client.post(
        f"/organizations/{org.id}/workouts/{workout.id}/scores",
        json={"member_id": str(member.id), "score_type": "time", "score_value": 300},
        headers=auth(),
    )
    client.post(f"{_base(org)}/leaderboard", json={"workout_id": str(workout.id)}, headers=auth())

    r = client.get("/tv/crossfit-test")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["organization"]["name"] == "CrossFit Test"
    assert body["organization"]["primary_color"]
    assert body["current_class"]["id"] == str(running.id)
    assert body["next_class"]["id"] == str(upcoming.id)
    assert body["workout"]["name"] == "Fran"
    assert body["state"]["mode"] == "leaderboard"
    assert [e["rank"] for e in body["leaderboard"]] == [1]

    by_id = client.get(f"/tv/{org.id}")
    assert by_id.json()["organization"]["slug"] == "crossfit-test"


def test_public_display_unknown_or_disabled(client, org_owner_context, monkeypatch):
    assert client.get("/tv/no-such-box").status_code == 404

    monkeypatch.setenv("FEATURE_TV_ENABLED", "false")
    refresh_feature_flag_cache()
    r = client.get("/tv/crossfit-test")
    assert r.status_code == 404
    assert r.json()["detail"] == "TV display is disabled"


def test_front_desk_can_read_but_not_drive(client, front_desk_context):
    _, org = front_desk_context
    headers = auth("desk@example.com")
    assert client.get(f"{_base(org)}/state", headers=headers).status_code == 200
    assert client.post(f"{_base(org)}/waiting", headers=headers).status_code == 403
