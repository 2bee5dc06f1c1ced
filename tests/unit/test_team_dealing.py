import random
import uuid
from types import SimpleNamespace

from boxhub.services.team_service import deal_round_robin, interleave_by_gender


def _athlete(gender):
    return SimpleNamespace(id=uuid.uuid4(), gender=gender)


def test_round_robin_sends_member_i_to_team_i_mod_n():
    ids = list(range(7))
    teams = deal_round_robin(ids, 3)
    assert teams == [[0, 3, 6], [1, 4], [2, 5]]


def test_round_robin_team_sizes_differ_by_at_most_one():
    sizes = [len(team) for team in deal_round_robin(list(range(11)), 4)]
    assert sorted(sizes) == [2, 3, 3, 3]
    assert sum(sizes) == 11


def test_gender_interleave_alternates_then_appends_the_rest():
    men = [_athlete('male') for _ in range(3)]
    women = [_athlete('female') for _ in range(2)]
    unknown = [_athlete(None)]
    ordered = interleave_by_gender(men + women + unknown, random.Random(4))

    gender_of = {a.id: a.gender for a in men + women + unknown}
    assert [gender_of[i] for i in ordered] == ['male', 'female', None, 'male', 'female', 'male']
    assert set(ordered) == set(gender_of)


def test_gender_balanced_teams_get_one_of_each():
    roster = [_athlete('male') for _ in range(2)] + [_athlete('female') for _ in range(2)]
    gender_of = {a.id: a.gender for a in roster}
    teams = deal_round_robin(interleave_by_gender(roster, random.Random(0)), 2)
    for team in teams:
        assert sorted(gender_of[i] for i in team) == ['female', 'male']


def test_interleave_is_reproducible_with_a_seeded_rng():
    roster = [_athlete('male') for _ in range(4)] + [_athlete('female') for _ in range(4)]
    assert interleave_by_gender(roster, random.Random(7)) == interleave_by_gender(roster, random.Random(7))
