import uuid

from boxhub.db import models
from boxhub.utils.feature_flags import refresh_feature_flag_cache


def auth(email="owner@example.com"):
    return {"x-auth-request-email": email}


def _base(org):
    return f"/organizations/{org.id}"


def _roster(member_factory, org, genders):
    return [
        member_factory(org, first_name=f"Athlete{i}", last_name="Test", gender=gender)
        for i, gender in enumerate(genders)
    ]


def test_random_teams_for_a_class_replace_previous_ones(client, org_owner_context, member_factory, class_factory):
    _, org = org_owner_context
    gym_class = class_factory(org)
    members = _roster(member_factory, org, ['male', 'female'] * 3 + ['male'])
    payload = {
        "member_ids": [str(m.id) for m in members],
        "team_count": 3,
        "class_id": str(gym_class.id),
        "team_names": ["Rouge"],
    }

    r = client.post(f"{_base(org)}/teams/random", json=payload, headers=auth())
    assert r.status_code == 201
    teams = r.json()
    assert [t["name"] for t in teams] == ["Rouge", "Equipe 2", "Equipe 3"]
    assert sorted(len(t["members"]) for t in teams) == [2, 2, 3]
    dealt = [entry["member_id"] for t in teams for entry in t["members"]]
    assert sorted(dealt) == sorted(str(m.id) for m in members)

    r = client.post(f"{_base(org)}/teams/random", json={**payload, "team_count": 2}, headers=auth())
    assert r.status_code == 201
    listed = client.get(f"{_base(org)}/teams", params={"class_id": str(gym_class.id)}, headers=auth()).json()
    assert len(listed) == 2


def test_random_teams_rejects_bad_rosters(client, org_owner_context, member_factory, organization_factory):
    _, org = org_owner_context
    members = _roster(member_factory, org, ['male', 'female'])
    ids = [str(m.id) for m in members]

    r = client.post(f"{_base(org)}/teams/random", json={"member_ids": ids, "team_count": 3}, headers=auth())
    assert r.status_code == 400

    r = client.post(f"{_base(org)}/teams/random", json={"member_ids": ids}, headers=auth())
    assert r.status_code == 400

    outsider = member_factory(organization_factory("Elsewhere"))
    r = client.post(f"{_base(org)}/teams/random", json={"member_ids": ids + [str(outsider.id)], "team_count": 2}, headers=auth())
    assert r.status_code == 404


def test_template_drives_names_and_gender_balance(client, org_owner_context, member_factory):
    _, org = org_owner_context
    r = client.post(
        f"{_base(org)}/team-templates",
        json={"name": "Duo", "config": {"team_count": 2, "team_names": ["Rouge", "Bleu"], "balance_by": "gender"}},
        headers=auth(),
    )
    assert r.status_code == 201
    template_id = r.json()["id"]
    assert client.get(f"{_base(org)}/team-templates", headers=auth()).json()[0]["name"] == "Duo"

    members = _roster(member_factory, org, ['male', 'male', 'female', 'female'])
    gender_of = {str(m.id): m.gender for m in members}
    r = client.post(
        f"{_base(org)}/teams/random",
        json={"member_ids": list(gender_of), "template_id": template_id},
        headers=auth(),
    )
    assert r.status_code == 201
    teams = r.json()
    assert [t["name"] for t in teams] == ["Rouge", "Bleu"]
    for team in teams:
        assert sorted(gender_of[e["member_id"]] for e in team["members"]) == ["female", "male"]

    r = client.post(
        f"{_base(org)}/teams/random",
        json={"member_ids": list(gender_of), "template_id": str(uuid.uuid4())},
        headers=auth(),
    )
    assert r.status_code == 404


def test_manual_team_membership_and_stations(client, coach_context, member_factory):
    _, org = coach_context
    member = member_factory(org)
    coach = auth("coach@example.com")

    r = client.post(f"{_base(org)}/teams", json={"name": "Les Lions"}, headers=coach)
    assert r.status_code == 201
    team = r.json()
    assert team["color"] == "#EF4444"

    r = client.post(f"{_base(org)}/teams/{team['id']}/members", json={"member_id": str(member.id)}, headers=coach)
    assert r.status_code == 201
    assert r.json()["member"]["first_name"] == "Alex"
    r = client.post(f"{_base(org)}/teams/{team['id']}/members", json={"member_id": str(member.id)}, headers=coach)
    assert r.status_code == 409

    r = client.put(f"{_base(org)}/teams/{team['id']}/members/{member.id}/station", json={"station": "Rower 2"}, headers=coach)
    assert r.status_code == 200
    assert r.json()["station"] == "Rower 2"

    r = client.put(f"{_base(org)}/teams/{team['id']}", json={"name": None}, headers=coach)
    assert r.status_code == 422

    assert client.delete(f"{_base(org)}/teams/{team['id']}/members/{member.id}", headers=coach).status_code == 204
    assert client.delete(f"{_base(org)}/teams/{team['id']}/members/{member.id}", headers=coach).status_code == 404
    assert client.delete(f"{_base(org)}/teams/{team['id']}", headers=coach).status_code == 204
    assert client.get(f"{_base(org)}/teams/{team['id']}", headers=coach).status_code == 404


def test_front_desk_reads_but_cannot_build_teams(client, front_desk_context):
    _, org = front_desk_context
    desk = auth("desk@example.com")
    assert client.get(f"{_base(org)}/teams", headers=desk).status_code == 200
    assert client.post(f"{_base(org)}/teams", json={"name": "Nope"}, headers=desk).status_code == 403


def test_cardio_stations_bulk_create_and_assign(client, org_owner_context, member_factory):
    _, org = org_owner_context
    r = client.post(f"{_base(org)}/cardio-stations", json={"type": "ski_erg", "name": "Ski"}, headers=auth())
    assert r.status_code == 201
    assert r.json()["position"] == 0

    r = client.post(f"{_base(org)}/cardio-stations/bulk", json={"type": "rower", "count": 2}, headers=auth())
    assert r.status_code == 201
    rowers = r.json()
    assert [s["name"] for s in rowers] == ["Rower 1", "Rower 2"]
    assert [s["position"] for s in rowers] == [1, 2]

    r = client.put(f"{_base(org)}/cardio-stations/{rowers[1]['id']}", json={"is_active": False}, headers=auth())
    assert r.status_code == 200
    active = client.get(f"{_base(org)}/cardio-stations", params={"active_only": True}, headers=auth()).json()
    assert [s["name"] for s in active] == ["Ski", "Rower 1"]

    members = [member_factory(org, first_name=f"M{i}") for i in range(3)]
    r = client.post(
        f"{_base(org)}/cardio-stations/assign",
        json={"member_ids": [str(m.id) for m in members], "station_type": "rower"},
        headers=auth(),
    )
    assert r.status_code == 200
    assert {a["station_name"] for a in r.json()} == {"Rower 1"}
    assert len(r.json()) == 3

    r = client.post(
        f"{_base(org)}/cardio-stations/assign",
        json={"member_ids": [str(members[0].id)], "station_type": "treadmill"},
        headers=auth(),
    )
    assert r.status_code == 400


def test_show_teams_on_tv(client, org_owner_context, member_factory, class_factory):
    _, org = org_owner_context
    gym_class = class_factory(org)
    r = client.post(f"{_base(org)}/teams/show-on-tv", json={"class_id": str(gym_class.id)}, headers=auth())
    assert r.status_code == 404

    members = [member_factory(org, first_name=f"M{i}") for i in range(2)]
    client.post(
        f"{_base(org)}/teams/random",
        json={"member_ids": [str(m.id) for m in members], "team_count": 2, "class_id": str(gym_class.id)},
        headers=auth(),
    )
    r = client.post(f"{_base(org)}/teams/show-on-tv", json={"class_id": str(gym_class.id)}, headers=auth())
    assert r.status_code == 200
    body = r.json()
    assert body["mode"] == "teams"
    assert len(body["teams_data"]) == 2
    assert body["teams_data"][0]["members"][0]["name"].startswith("M")


def test_teams_need_the_feature_on_the_plan(client, org_owner_context, db_session, monkeypatch):
    _, org = org_owner_context
    plan = models.PlatformPlan(tier='basic', name='Basic', price_monthly=4900, features={'teams': False})
    db_session.add(plan)
    db_session.commit()
    org.platform_plan_id = plan.id
    db_session.commit()

    r = client.get(f"{_base(org)}/teams", headers=auth())
    assert r.status_code == 403
    assert "teams" in r.json()["detail"]

    plan.features = {'teams': True}
    db_session.commit()
    assert client.get(f"{_base(org)}/teams", headers=auth()).status_code == 200

    monkeypatch.setenv("FEATURE_TEAMS_ENABLED", "false")
    refresh_feature_flag_cache()
    assert client.get(f"{_base(org)}/cardio-stations", headers=auth()).status_code == 403
