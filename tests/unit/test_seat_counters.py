from datetime import timedelta

from sqlalchemy import update

from boxhub.db import models
from boxhub.db.repositories import planning as planning_repo


def _class(db, max_participants=2, **fields):
    org = models.Organization(name="Counter Box", slug="counter-box")
    db.add(org)
    db.commit()
    start = models.now_utc() + timedelta(days=1)
    gym_class = models.GymClass(
        organization_id=org.id,
        name="WOD",
        start_time=start,
        end_time=start + timedelta(hours=1),
        duration_minutes=60,
        max_participants=max_participants,
        **fields,
    )
    db.add(gym_class)
    db.commit()
    db.refresh(gym_class)
    return gym_class


def test_full_class_keeps_seat_even_with_stale_instance(db_session):
    gym_class = _class(db_session, max_participants=2)
    assert gym_class.current_participants == 0

    # another request filled the class behind this session's back
    db_session.execute(
        update(models.GymClass)
        .where(models.GymClass.id == gym_class.id)
        .values(current_participants=2)
        .execution_options(synchronize_session=False)
    )
    assert gym_class.current_participants == 0

    assert planning_repo.try_reserve_seat(db_session, gym_class.id) is False
    db_session.commit()
    db_session.expire_all()
    assert db_session.get(models.GymClass, gym_class.id).current_participants == 2


def test_reserve_until_full(db_session):
    gym_class = _class(db_session, max_participants=2)
    results = [planning_repo.try_reserve_seat(db_session, gym_class.id) for _ in range(3)]
    db_session.commit()
    assert results == [True, True, False]
    db_session.expire_all()
    assert db_session.get(models.GymClass, gym_class.id).current_participants == 2


def test_unlimited_class_always_reserves(db_session):
    gym_class = _class(db_session, max_participants=None)
    assert all(planning_repo.try_reserve_seat(db_session, gym_class.id) for _ in range(5))
    db_session.commit()
    db_session.expire_all()
    assert db_session.get(models.GymClass, gym_class.id).current_participants == 5


def test_counters_never_go_below_zero(db_session):
    gym_class = _class(db_session)
    planning_repo.release_seat(db_session, gym_class.id)
    planning_repo.decrement_waitlist(db_session, gym_class.id)
    db_session.commit()
    db_session.expire_all()
    refreshed = db_session.get(models.GymClass, gym_class.id)
    assert refreshed.current_participants == 0
    assert refreshed.waitlist_count == 0

    assert planning_repo.increment_waitlist(db_session, gym_class.id) == 1
    planning_repo.decrement_waitlist(db_session, gym_class.id)
    planning_repo.decrement_waitlist(db_session, gym_class.id)
    db_session.commit()
    db_session.expire_all()
    assert db_session.get(models.GymClass, gym_class.id).waitlist_count == 0
