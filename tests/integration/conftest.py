from datetime import date, timedelta

import pytest
from sqlalchemy.orm import Session

from boxhub.db import models


@pytest.fixture
def user_factory(db_session: Session):
    def _create(email: str, is_superadmin: bool = False, display_name: str = None):
        user = models.User(email=email, display_name=display_name or email.split('@')[0], is_superadmin=is_superadmin)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def organization_factory(db_session: Session):
    def _create(name: str, slug: str = None, **settings):
        org = models.Organization(
            name=name,
            slug=slug,
            settings={'timezone': 'Europe/Paris', **settings},
        )
        db_session.add(org)
        db_session.commit()
        db_session.refresh(org)
        return org
    return _create


@pytest.fixture
def membership_factory(db_session: Session):
    def _create(org, user, role: str = 'owner'):
        m = models.OrganizationMembership(
            organization_id=org.id,
            user_id=user.id,
            role=role,
            can_read=True,
            can_write=role != 'staff',
        )
        db_session.add(m)
        db_session.commit()
        return m
    return _create


@pytest.fixture
def member_factory(db_session: Session):
    def _create(org, first_name: str = 'Alex', last_name: str = 'Martin', email: str = None, user=None, **fields):
        member = models.Member(
            organization_id=org.id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            user_id=user.id if user is not None else None,
            **fields,
        )
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)
        return member
    return _create


@pytest.fixture
def plan_factory(db_session: Session):
    def _create(org, name: str = 'Illimite', plan_type: str = 'monthly', price: float = 80.0, **fields):
        fields.setdefault('duration_days', 30)
        plan = models.Plan(organization_id=org.id, name=name, plan_type=plan_type, price=price, **fields)
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan
    return _create


@pytest.fixture
def subscription_factory(db_session: Session):
    def _create(org, member, plan=None, days: int = 30, status: str = 'active', **fields):
        start = fields.pop('start_date', date.today())
        sub = models.Subscription(
            organization_id=org.id,
            member_id=member.id,
            plan_id=plan.id if plan is not None else None,
            status=status,
            start_date=start,
            end_date=fields.pop('end_date', start + timedelta(days=days)),
            **fields,
        )
        db_session.add(sub)
        db_session.commit()
        db_session.refresh(sub)
        return sub
    return _create


@pytest.fixture
def class_factory(db_session: Session):
    """Classes start `hours_from_now` hours from now (negative for past classes)."""
    def _create(org, name: str = 'WOD', hours_from_now: float = 24, duration: int = 60, max_participants=12, **fields):
        start = models.now_utc() + timedelta(hours=hours_from_now)
        gym_class = models.GymClass(
            organization_id=org.id,
            name=name,
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            duration_minutes=duration,
            max_participants=max_participants,
            **fields,
        )
        db_session.add(gym_class)
        db_session.commit()
        db_session.refresh(gym_class)
        return gym_class
    return _create


@pytest.fixture
def workout_factory(db_session: Session):
    def _create(org, name: str = 'Fran', day: date = None, published: bool = True, wod_type: str = 'for_time'):
        workout = models.Workout(
            organization_id=org.id,
            name=name,
            date=day,
            is_published=published,
        )
        workout.blocks.append(models.WorkoutBlock(
            name='WOD',
            block_type='wod',
            wod_type=wod_type,
            time_cap=10,
            position=0,
            exercises=[
                models.BlockExercise(custom_name='Thrusters', reps=21, weight_male=43, weight_female=29, weight_unit='kg', position=0),
                models.BlockExercise(custom_name='Pull-ups', reps=21, position=1),
            ],
        ))
        db_session.add(workout)
        db_session.commit()
        db_session.refresh(workout)
        return workout
    return _create


@pytest.fixture
def exercise_factory(db_session: Session):
    def _create(org=None, name: str = 'Back Squat', category: str = 'weightlifting'):
        exercise = models.Exercise(
            organization_id=org.id if org is not None else None,
            name=name,
            category=category,
            is_global=org is None,
        )
        db_session.add(exercise)
        db_session.commit()
        db_session.refresh(exercise)
        return exercise
    return _create


# Permission / context fixtures

@pytest.fixture
def org_owner_context(user_factory, organization_factory, membership_factory):
    user = user_factory("owner@example.com")
    org = organization_factory("CrossFit Test", slug="crossfit-test")
    membership_factory(org, user, role='owner')
    return user, org


@pytest.fixture
def coach_context(org_owner_context, user_factory, membership_factory):
    _, org = org_owner_context
    coach = user_factory("coach@example.com", display_name="Coach Sam")
    membership_factory(org, coach, role='coach')
    return coach, org


@pytest.fixture
def front_desk_context(org_owner_context, user_factory, membership_factory):
    _, org = org_owner_context
    desk = user_factory("desk@example.com")
    membership_factory(org, desk, role='staff')
    return desk, org


@pytest.fixture
def member_context(org_owner_context, user_factory, member_factory):
    """A gym member with a portal account in the owner's organization."""
    _, org = org_owner_context
    user = user_factory("athlete@example.com")
    member = member_factory(org, first_name='Jamie', last_name='Dupont', email='athlete@example.com', user=user)
    return user, member, org
