"""
Billing repository functions: plans, subscriptions and payments.

Status transitions that carry business rules (pause, resume, cancel,
refund) live in `boxhub.services.billing_service`.
"""
from __future__ import annotations

import uuid
from datetime import date
from typing import Optional
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from boxhub.db import schemas, models


# Plans

def list_plans(db: Session, organization_id: uuid.UUID, include_inactive: bool = False):
    query = db.query(models.Plan).filter(models.Plan.organization_id == organization_id)
    if not include_inactive:
        query = query.filter(models.Plan.is_active.is_(True))
    return query.order_by(models.Plan.display_order, models.Plan.price).all()


def get_plan(db: Session, organization_id: uuid.UUID, plan_id: uuid.UUID):
    return (
        db.query(models.Plan)
        .filter(models.Plan.id == plan_id, models.Plan.organization_id == organization_id)
        .first()
    )


def create_plan(db: Session, organization_id: uuid.UUID, plan: schemas.PlanCreate):
    db_plan = models.Plan(organization_id=organization_id, **plan.model_dump())
    db.add(db_plan)
    db.commit()
    db.refresh(db_plan)
    return db_plan


def update_plan(db: Session, organization_id: uuid.UUID, plan_id: uuid.UUID, plan: schemas.PlanUpdate):
    db_plan = get_plan(db, organization_id, plan_id)
    if db_plan:
        for key, value in plan.model_dump(exclude_unset=True).items():
            setattr(db_plan, key, value)
        db.commit()
        db.refresh(db_plan)
    return db_plan


def deactivate_plan(db: Session, organization_id: uuid.UUID, plan_id: uuid.UUID) -> bool:
    db_plan = get_plan(db, organization_id, plan_id)
    if not db_plan:
        return False
    db_plan.is_active = False
    db.commit()
    return True


# Subscriptions

def list_subscriptions(
    db: Session,
    organization_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    member_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(models.Subscription).filter(models.Subscription.organization_id == organization_id)
    if status:
        query = query.filter(models.Subscription.status == status)
    if member_id:
        query = query.filter(models.Subscription.member_id == member_id)
    return query.order_by(models.Subscription.start_date.desc()).offset(skip).limit(limit).all()


def get_subscription(db: Session, organization_id: uuid.UUID, subscription_id: uuid.UUID):
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.id == subscription_id,
            models.Subscription.organization_id == organization_id,
        )
        .first()
    )


def get_active_subscription(db: Session, member_id: uuid.UUID, today: Optional[date] = None):
    """Active subscription whose end date is unset or not yet passed; newest first."""
    today = today or models.today_utc()
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.member_id == member_id,
            models.Subscription.status == 'active',
            or_(models.Subscription.end_date.is_(None), models.Subscription.end_date >= today),
        )
        .order_by(models.Subscription.start_date.desc())
        .first()
    )


def get_member_subscriptions(db: Session, member_id: uuid.UUID):
    return (
        db.query(models.Subscription, models.Plan)
        .outerjoin(models.Plan, models.Plan.id == models.Subscription.plan_id)
        .filter(models.Subscription.member_id == member_id)
        .order_by(models.Subscription.start_date.desc())
        .all()
    )


def update_subscription(db: Session, organization_id: uuid.UUID, subscription_id: uuid.UUID, subscription: schemas.SubscriptionUpdate):
    db_subscription = get_subscription(db, organization_id, subscription_id)
    if db_subscription:
        for key, value in subscription.model_dump(exclude_unset=True).items():
            setattr(db_subscription, key, value)
        db.commit()
        db.refresh(db_subscription)
    return db_subscription


def expire_overdue_subscriptions(db: Session, today: Optional[date] = None) -> int:
    """Flip active subscriptions whose end date has passed to `expired`."""
    today = today or models.today_utc()
    count = (
        db.query(models.Subscription)
        .filter(
            models.Subscription.status == 'active',
            models.Subscription.end_date.isnot(None),
            models.Subscription.end_date < today,
        )
        .update({models.Subscription.status: 'expired'}, synchronize_session=False)
    )
    db.commit()
    return count


def get_expiring_subscriptions(db: Session, organization_id: uuid.UUID, start: date, end: date):
    """Active subscriptions ending in [start, end], with member and plan."""
    return (
        db.query(models.Subscription, models.Member, models.Plan)
        .join(models.Member, models.Member.id == models.Subscription.member_id)
        .outerjoin(models.Plan, models.Plan.id == models.Subscription.plan_id)
        .filter(
            models.Subscription.organization_id == organization_id,
            models.Subscription.status == 'active',
            models.Subscription.end_date.isnot(None),
            models.Subscription.end_date >= start,
            models.Subscription.end_date <= end,
        )
        .order_by(models.Subscription.end_date)
        .all()
    )


def count_subscriptions(db: Session, organization_id: uuid.UUID, status: Optional[str] = None) -> int:
    query = db.query(models.Subscription).filter(models.Subscription.organization_id == organization_id)
    if status:
        query = query.filter(models.Subscription.status == status)
    return query.count()


# Payments

def list_payments(
    db: Session,
    organization_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    member_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(models.Payment).filter(models.Payment.organization_id == organization_id)
    if status:
        query = query.filter(models.Payment.status == status)
    if member_id:
        query = query.filter(models.Payment.member_id == member_id)
    return query.order_by(models.Payment.created_at.desc()).offset(skip).limit(limit).all()


def get_payment(db: Session, organization_id: uuid.UUID, payment_id: uuid.UUID):
    return (
        db.query(models.Payment)
        .filter(models.Payment.id == payment_id, models.Payment.organization_id == organization_id)
        .first()
    )


def create_payment(db: Session, organization_id: uuid.UUID, payment: schemas.PaymentCreate, commit: bool = True):
    data = payment.model_dump()
    db_payment = models.Payment(organization_id=organization_id, **data)
    if db_payment.status == 'paid':
        db_payment.paid_at = models.now_utc()
    db.add(db_payment)
    if commit:
        db.commit()
        db.refresh(db_payment)
    else:
        db.flush()
    return db_payment


def get_member_payments(db: Session, member_id: uuid.UUID):
    return (
        db.query(models.Payment)
        .filter(models.Payment.member_id == member_id)
        .order_by(models.Payment.created_at.desc())
        .all()
    )


def sum_paid_payments(db: Session, organization_id: uuid.UUID, since=None) -> float:
    query = db.query(func.coalesce(func.sum(models.Payment.amount), 0)).filter(
        models.Payment.organization_id == organization_id,
        models.Payment.status == 'paid',
    )
    if since is not None:
        query = query.filter(models.Payment.paid_at >= since)
    return float(query.scalar() or 0)


def get_paid_payments_since(db: Session, organization_id: uuid.UUID, since):
    return (
        db.query(models.Payment)
        .filter(
            models.Payment.organization_id == organization_id,
            models.Payment.status == 'paid',
            models.Payment.paid_at.isnot(None),
            models.Payment.paid_at >= since,
        )
        .all()
    )


def count_payments(db: Session, organization_id: uuid.UUID, status: str) -> int:
    return (
        db.query(models.Payment)
        .filter(models.Payment.organization_id == organization_id, models.Payment.status == status)
        .count()
    )
