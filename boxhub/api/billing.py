"""
Billing API: plans, subscriptions and payments.

Every route here needs the `manage` level except the read-only listings.
"""
import logging
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import billing as billing_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, raise_for_result
from boxhub.audit import log_billing, AuditAction
from boxhub.services import billing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/billing", tags=["billing"])


# === Plans ===

@router.get("/plans", response_model=List[schemas.Plan])
def list_plans(
    org_id: uuid.UUID,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return billing_repo.list_plans(db, org_id, include_inactive=include_inactive)


@router.post("/plans", status_code=status.HTTP_201_CREATED, response_model=schemas.Plan)
def create_plan(
    org_id: uuid.UUID,
    payload: schemas.PlanCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    plan = billing_repo.create_plan(db, org_id, payload)
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="plan", target_id=plan.id, action=AuditAction.PLAN_CREATE,
        metadata={"name": plan.name, "price": float(plan.price)},
    )
    return plan


@router.put("/plans/{plan_id}", response_model=schemas.Plan)
def update_plan(
    org_id: uuid.UUID,
    plan_id: uuid.UUID,
    payload: schemas.PlanUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    plan = billing_repo.update_plan(db, org_id, plan_id, payload)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="plan", target_id=plan.id, action=AuditAction.PLAN_UPDATE,
    )
    return plan


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_plan(
    org_id: uuid.UUID,
    plan_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    if not billing_repo.deactivate_plan(db, org_id, plan_id):
        raise HTTPException(status_code=404, detail="Plan not found")
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="plan", target_id=plan_id, action=AuditAction.PLAN_DEACTIVATE,
    )


# === Subscriptions ===

@router.get("/subscriptions", response_model=List[schemas.Subscription])
def list_subscriptions(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    member_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return billing_repo.list_subscriptions(
        db, org_id, status=status_filter, member_id=member_id, skip=skip, limit=limit
    )


@router.get("/subscriptions/{subscription_id}", response_model=schemas.Subscription)
def get_subscription(
    org_id: uuid.UUID,
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    subscription = billing_repo.get_subscription(db, org_id, subscription_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.post("/subscriptions", status_code=status.HTTP_201_CREATED, response_model=schemas.Subscription)
def create_subscription(
    org_id: uuid.UUID,
    payload: schemas.SubscriptionCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Subscribe a member to a plan; a pending payment is created alongside."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    result = raise_for_result(billing_service.create_subscription(db, org_id, payload))
    subscription = result["subscription"]
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="subscription", target_id=subscription.id, action=AuditAction.SUBSCRIPTION_CREATE,
        metadata={"member_id": str(subscription.member_id), "payment_id": str(result["payment"].id)},
    )
    return subscription


@router.put("/subscriptions/{subscription_id}", response_model=schemas.Subscription)
def update_subscription(
    org_id: uuid.UUID,
    subscription_id: uuid.UUID,
    payload: schemas.SubscriptionUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    subscription = billing_repo.update_subscription(db, org_id, subscription_id, payload)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="subscription", target_id=subscription.id, action=AuditAction.SUBSCRIPTION_UPDATE,
    )
    return subscription


_SUBSCRIPTION_ACTIONS = {
    "pause": AuditAction.SUBSCRIPTION_PAUSE,
    "resume": AuditAction.SUBSCRIPTION_RESUME,
    "cancel": AuditAction.SUBSCRIPTION_CANCEL,
}


@router.post("/subscriptions/{subscription_id}/{action}", response_model=schemas.Subscription)
def change_subscription_status(
    org_id: uuid.UUID,
    subscription_id: uuid.UUID,
    action: str,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """`action` is one of pause, resume, cancel."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    if action not in _SUBSCRIPTION_ACTIONS:
        raise HTTPException(status_code=404, detail="Unknown subscription action")
    result = raise_for_result(billing_service.change_subscription_status(db, org_id, subscription_id, action))
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="subscription", target_id=subscription_id, action=_SUBSCRIPTION_ACTIONS[action],
    )
    return result["subscription"]


# === Payments ===

@router.get("/payments", response_model=List[schemas.Payment])
def list_payments(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    member_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return billing_repo.list_payments(db, org_id, status=status_filter, member_id=member_id, skip=skip, limit=limit)


@router.post("/payments", status_code=status.HTTP_201_CREATED, response_model=schemas.Payment)
def create_payment(
    org_id: uuid.UUID,
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    payment = billing_repo.create_payment(db, org_id, payload)
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="payment", target_id=payment.id, action=AuditAction.PAYMENT_CREATE,
        metadata={"amount": float(payment.amount), "status": payment.status},
    )
    return payment


def _payment_action(db, user, org_id, payment_id, action, audit_action, refund=None):
    result = raise_for_result(billing_service.change_payment_status(db, org_id, payment_id, action, refund=refund))
    payment = result["payment"]
    log_billing(
        db, actor_user_id=user.id, organization_id=org_id,
        target_type="payment", target_id=payment.id, action=audit_action,
        metadata={"amount": float(payment.amount), "refunded_amount": payment.refunded_amount},
    )
    return payment


@router.post("/payments/{payment_id}/mark-paid", response_model=schemas.Payment)
def mark_payment_paid(
    org_id: uuid.UUID,
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return _payment_action(db, user, org_id, payment_id, "mark_paid", AuditAction.PAYMENT_MARK_PAID)


@router.post("/payments/{payment_id}/refund", response_model=schemas.Payment)
def refund_payment(
    org_id: uuid.UUID,
    payment_id: uuid.UUID,
    payload: Optional[schemas.PaymentRefund] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return _payment_action(db, user, org_id, payment_id, "refund", AuditAction.PAYMENT_REFUND, refund=payload)


@router.post("/payments/{payment_id}/cancel", response_model=schemas.Payment)
def cancel_payment(
    org_id: uuid.UUID,
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return _payment_action(db, user, org_id, payment_id, "cancel", AuditAction.PAYMENT_CANCEL)


@router.get("/stats", response_model=schemas.BillingStats)
def billing_stats(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return billing_service.billing_stats(db, org_id)
