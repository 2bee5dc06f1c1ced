import uuid
from datetime import date

from boxhub.db import models

WEBHOOK = "https://discord.com/api/webhooks/123/token"


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _base(org):
    return f"/organizations/{org.id}"


def _fran_payload(**overrides):
    payload = {
        "name": "Fran",
        "date": "2025-03-10",
        "blocks": [
            {"name": "Echauffement", "block_type": "warmup", "exercises": [{"custom_name": "Row", "calories": 20}]},
            {
                "block_type": "wod",
                "wod_type": "for_time",
                "time_cap": 10,
                "exercises": [
                    {"custom_name": "Thrusters", "reps": 21, "weight_male": 43, "weight_female": 29, "weight_unit": "kg"},
                    {"custom_name": "Pull-ups", "reps": 21},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


def test_exercise_library_mixes_global_and_org(client, org_owner_context, exercise_factory, organization_factory):
    _, org = org_owner_context
    exercise_factory(None, name="Deadlift")
    exercise_factory(organization_factory("Other"), name="Secret Move")

    r = client.post(f"{_base(org)}/exercises", json={"name": "Wall Ball", "category": "cardio"}, headers=auth())
    assert r.status_code == 201
    assert r.json()["is_global"] is False

    names = [e["name"] for e in client.get(f"{_base(org)}/exercises", headers=auth()).json()]
    assert names == ["Deadlift", "Wall Ball"]
    found = client.get(f"{_base(org)}/exercises?search=wall", headers=auth()).json()
    assert [e["name"] for e in found] == ["Wall Ball"]


def test_workout_crud_with_blocks(client, org_owner_context):
    _, org = org_owner_context
    r = client.post(f"{_base(org)}/workouts", json=_fran_payload(), headers=auth())
    assert r.status_code == 201, r.text
    workout = r.json()
    assert [b["block_type"] for b in workout["blocks"]] == ["warmup", "wod"]
    assert [b["position"] for b in workout["blocks"]] == [0, 1]
    wod = workout["blocks"][1]
    assert [e["custom_name"] for e in wod["exercises"]] == ["Thrusters", "Pull-ups"]
    assert workout["is_published"] is False

    by_date = client.get(f"{_base(org)}/workouts/by-date/2025-03-10", headers=auth())
    assert by_date.json()["id"] == workout["id"]
    assert client.get(f"{_base(org)}/workouts/by-date/2025-03-11", headers=auth()).status_code == 404

    r = client.put(f"{_base(org)}/workouts/{workout['id']}", json={"description": "Benchmark"}, headers=auth())
    assert r.json()["description"] == "Benchmark"
    for field in ("name", "is_published", "is_template"):
        r = client.put(f"{_base(org)}/workouts/{workout['id']}", json={field: None}, headers=auth())
        assert r.status_code == 422, field

    r = client.post(f"{_base(org)}/workouts/{workout['id']}/publish", headers=auth())
    assert r.json()["is_published"] is True
    r = client.post(f"{_base(org)}/workouts/{workout['id']}/publish?published=false", headers=auth())
    assert r.json()["is_published"] is False

    listed = client.get(f"{_base(org)}/workouts?start_date=2025-03-01&end_date=2025-03-31", headers=auth()).json()
    assert [w["name"] for w in listed] == ["Fran"]

    assert client.delete(f"{_base(org)}/workouts/{workout['id']}", headers=auth()).status_code == 204
    assert client.get(f"{_base(org)}/workouts/{workout['id']}", headers=auth()).status_code == 404


def test_blocks_and_block_exercises(client, org_owner_context, workout_factory):
    _, org = org_owner_context
    workout = workout_factory(org)
    url = f"{_base(org)}/workouts/{workout.id}/blocks"

    r = client.post(url, json={"name": "Force", "block_type": "strength", "rounds": 5}, headers=auth())
    assert r.status_code == 201
    block = r.json()
    assert block["position"] == 1

    r = client.put(f"{url}/{block['id']}", json={"rounds": 3, "notes": "lourd"}, headers=auth())
    assert r.json()["rounds"] == 3
    assert client.put(f"{url}/{block['id']}", json={"position": None}, headers=auth()).status_code == 422
    assert client.put(f"{url}/{block['id']}", json={"block_type": None}, headers=auth()).status_code == 422

    r = client.post(f"{url}/{block['id']}/exercises", json={"custom_name": "Back Squat", "reps": 5}, headers=auth())
    assert r.status_code == 201
    exercise_id = r.json()["id"]
    assert client.delete(f"{url}/{block['id']}/exercises/{exercise_id}", headers=auth()).status_code == 204
    assert client.delete(f"{url}/{block['id']}", headers=auth()).status_code == 204
    assert client.delete(f"{url}/{uuid.uuid4()}", headers=auth()).status_code == 404


def test_duplicate_copies_blocks_unpublished(client, org_owner_context, workout_factory):
    _, org = org_owner_context
    workout = workout_factory(org, day=date(2025, 3, 10))
    r = client.post(f"{_base(org)}/workouts/{workout.id}/duplicate", json={"date": "2025-03-17"}, headers=auth())
    assert r.status_code == 201
    copy = r.json()
    assert copy["name"] == "Fran (copie)"
    assert copy["date"] == "2025-03-17"
    assert copy["is_published"] is False
    assert [e["custom_name"] for e in copy["blocks"][0]["exercises"]] == ["Thrusters", "Pull-ups"]


def test_scores_and_leaderboard(client, org_owner_context, workout_factory, member_factory):
    _, org = org_owner_context
    workout = workout_factory(org)
    fast = member_factory(org, first_name="Fast")
    slow = member_factory(org, first_name="Slow")
    scaled = member_factory(org, first_name="Scaled")
    url = f"{_base(org)}/workouts/{workout.id}"

    for member, seconds, rx in ((slow, 400, True), (fast, 250, True), (scaled, 200, False)):
        r = client.post(f"{url}/scores", json={"member_id": str(member.id), "score_type": "time", "score_value": seconds, "is_rx": rx}, headers=auth())
        assert r.status_code == 201, r.text

    board = client.get(f"{url}/leaderboard", headers=auth()).json()
    assert [e["member_name"] for e in board] == ["Fast Martin", "Slow Martin", "Scaled Martin"]
    assert [e["rank"] for e in board] == [1, 2, 3]

    # recording again replaces the previous score
    client.post(f"{url}/scores", json={"member_id": str(slow.id), "score_type": "time", "score_value": 240}, headers=auth())
    board = client.get(f"{url}/leaderboard", headers=auth()).json()
    assert len(board) == 3
    assert board[0]["member_name"] == "Slow Martin"

    r = client.post(f"{url}/scores", json={"member_id": str(uuid.uuid4()), "score_type": "time", "score_value": 1}, headers=auth())
    assert r.status_code == 404
    r = client.post(
        f"{url}/scores",
        json={"member_id": str(fast.id), "block_id": str(uuid.uuid4()), "score_type": "time", "score_value": 1},
        headers=auth(),
    )
    assert r.status_code == 404


def test_block_leaderboard_is_separate(client, org_owner_context, workout_factory, member_factory):
    _, org = org_owner_context
    workout = workout_factory(org)
    block_id = str(workout.blocks[0].id)
    member = member_factory(org)
    url = f"{_base(org)}/workouts/{workout.id}"
    client.post(f"{url}/scores", json={"member_id": str(member.id), "block_id": block_id, "score_type": "reps", "score_value": 80}, headers=auth())

    assert client.get(f"{url}/leaderboard", headers=auth()).json() == []
    board = client.get(f"{url}/leaderboard?block_id={block_id}", headers=auth()).json()
    assert [e["score_value"] for e in board] == [80]


def test_personal_record_posts_discord_achievement(client, org_owner_context, member_factory, exercise_factory, db_session, discord_post):
    _, org = org_owner_context
    db_session.add(models.DiscordConfig(organization_id=org.id, webhook_url=WEBHOOK))
    db_session.commit()
    member = member_factory(org, first_name="Jamie")
    squat = exercise_factory(None, name="Back Squat")

    r = client.post(
        f"{_base(org)}/members/{member.id}/records",
        json={"exercise_id": str(squat.id), "record_type": "1RM", "record_value": 120, "record_unit": "kg"},
        headers=auth(),
    )
    assert r.status_code == 201, r.text
    assert r.json()["achieved_at"] == models.today_utc().isoformat()

    embed = discord_post.call_args.kwargs["json"]["embeds"][0]
    assert embed["title"] == "Nouveau PR !"
    assert "Back Squat : 120 kg" in embed["description"]
    log = db_session.query(models.DiscordLog).one()
    assert log.message_type == "achievement"
    assert log.status == "sent"

    # a better lift updates the same record
    client.post(
        f"{_base(org)}/members/{member.id}/records",
        json={"exercise_id": str(squat.id), "record_type": "1RM", "record_value": 125, "record_unit": "kg"},
        headers=auth(),
    )
    records = client.get(f"{_base(org)}/members/{member.id}/records", headers=auth()).json()
    assert [r["record_value"] for r in records] == [125]
    assert discord_post.call_count == 2


def test_personal_record_regression_is_not_announced(client, org_owner_context, member_factory, exercise_factory, db_session, discord_post):
    _, org = org_owner_context
    db_session.add(models.DiscordConfig(organization_id=org.id, webhook_url=WEBHOOK))
    db_session.commit()
    member = member_factory(org)
    deadlift = exercise_factory(None, name="Deadlift")
    url = f"{_base(org)}/members/{member.id}/records"
    body = {"exercise_id": str(deadlift.id), "record_type": "1RM", "record_unit": "kg"}

    client.post(url, json={**body, "record_value": 150}, headers=auth())
    assert discord_post.call_count == 1

    r = client.post(url, json={**body, "record_value": 140}, headers=auth())
    assert r.status_code == 201
    assert discord_post.call_count == 1
    assert db_session.query(models.DiscordLog).count() == 1


def test_personal_record_requires_a_unit(client, org_owner_context, member_factory, exercise_factory, db_session, discord_post):
    _, org = org_owner_context
    db_session.add(models.DiscordConfig(organization_id=org.id, webhook_url=WEBHOOK))
    db_session.commit()
    member = member_factory(org)
    pullups = exercise_factory(None, name="Strict Pull-up")
    url = f"{_base(org)}/members/{member.id}/records"
    body = {"exercise_id": str(pullups.id), "record_type": "max_reps", "record_value": 15}

    assert client.post(url, json=body, headers=auth()).status_code == 422
    assert client.post(url, json={**body, "record_unit": None}, headers=auth()).status_code == 422
    assert discord_post.call_count == 0

    r = client.post(url, json={**body, "record_unit": "reps"}, headers=auth())
    assert r.status_code == 201
    description = discord_post.call_args.kwargs["json"]["embeds"][0]["description"]
    assert "Strict Pull-up : 15 reps" in description
    assert "None" not in description


def test_personal_record_without_discord_config(client, org_owner_context, member_factory, exercise_factory, organization_factory, discord_post):
    _, org = org_owner_context
    member = member_factory(org)
    own = exercise_factory(org, name="Clean")
    foreign = exercise_factory(organization_factory("Elsewhere"), name="Snatch")

    r = client.post(
        f"{_base(org)}/members/{member.id}/records",
        json={"exercise_id": str(own.id), "record_type": "1RM", "record_value": 90, "record_unit": "kg"},
        headers=auth(),
    )
    assert r.status_code == 201
    discord_post.assert_not_called()

    r = client.post(
        f"{_base(org)}/members/{member.id}/records",
        json={"exercise_id": str(foreign.id), "record_type": "1RM", "record_value": 90, "record_unit": "kg"},
        headers=auth(),
    )
    assert r.status_code == 404


def test_member_workout_history(client, org_owner_context, workout_factory, member_factory):
    _, org = org_owner_context
    member = member_factory(org)
    monday = workout_factory(org, name="Monday", day=date(2025, 3, 10))
    workout_factory(org, name="Tuesday", day=date(2025, 3, 11))
    client.post(
        f"{_base(org)}/workouts/{monday.id}/scores",
        json={"member_id": str(member.id), "score_type": "time", "score_value": 300},
        headers=auth(),
    )

    history = client.get(f"{_base(org)}/members/{member.id}/workout-history", headers=auth()).json()
    assert [h["workout"]["name"] for h in history] == ["Tuesday", "Monday"]
    assert history[0]["score"] is None
    assert history[1]["score"]["score_value"] == 300


def test_front_desk_cannot_program(client, front_desk_context):
    _, org = front_desk_context
    r = client.post(f"{_base(org)}/workouts", json=_fran_payload(), headers=auth("desk@example.com"))
    assert r.status_code == 403
