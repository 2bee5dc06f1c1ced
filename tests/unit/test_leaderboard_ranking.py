import uuid
from types import SimpleNamespace

from boxhub.services.workout_service import is_improvement, rank_scores


def _row(name, score_type, value, is_rx=True, secondary=None):
    member = SimpleNamespace(id=uuid.uuid4(), full_name=name)
    score = SimpleNamespace(score_type=score_type, score_value=value, score_secondary=secondary, is_rx=is_rx)
    return score, member


def _names(entries):
    return [e['member_name'] for e in entries]


def test_times_rank_ascending_with_rx_first():
    entries = rank_scores([
        _row('Scaled fast', 'time', 180, is_rx=False),
        _row('Rx slow', 'time', 320),
        _row('Rx fast', 'time', 240),
    ])
    assert _names(entries) == ['Rx fast', 'Rx slow', 'Scaled fast']
    assert [e['rank'] for e in entries] == [1, 2, 3]


def test_reps_and_weight_rank_descending():
    entries = rank_scores([
        _row('Light', 'weight', 80),
        _row('Heavy', 'weight', 120),
        _row('Medium', 'weight', 100),
    ])
    assert _names(entries) == ['Heavy', 'Medium', 'Light']


def test_rounds_reps_ties_broken_by_reps():
    entries = rank_scores([
        _row('Five plus three', 'rounds_reps', 5, secondary=3),
        _row('Six flat', 'rounds_reps', 6, secondary=0),
        _row('Five plus ten', 'rounds_reps', 5, secondary=10),
    ])
    assert _names(entries) == ['Six flat', 'Five plus ten', 'Five plus three']


def test_exact_ties_share_rank_and_skip_next():
    entries = rank_scores([
        _row('A', 'reps', 100),
        _row('B', 'reps', 100),
        _row('C', 'reps', 90),
    ])
    assert [e['rank'] for e in entries] == [1, 1, 3]
    assert entries[2]['member_name'] == 'C'


def test_empty_leaderboard():
    assert rank_scores([]) == []


def test_personal_record_improvement_direction():
    assert is_improvement('1RM', None, 60)
    assert is_improvement('1RM', 100, 105)
    assert not is_improvement('1RM', 100, 100)
    assert not is_improvement('1RM', 100, 95)
    assert is_improvement('best_time', 300, 280)
    assert not is_improvement('best_time', 300, 310)
