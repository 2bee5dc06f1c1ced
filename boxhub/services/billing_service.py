"""
Billing service: subscription lifecycle and payment state changes.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import members as members_repo

logger = logging.getLogger(__name__)

# status -> statuses it may move to
SUBSCRIPTION_TRANSITIONS = {
    'pause': ('active',),
    'resume': ('paused',),
    'cancel': ('active', 'paused'),
}

PAYMENT_TRANSITIONS = {
    'mark_paid': ('pending', 'failed'),
    'refund': ('paid',),
    'cancel': ('pending', 'failed'),
}


def _error(message: str, code: str = 'invalid') -> Dict[str, Any]:
    return {'success': False, 'error': message, 'code': code}


def compute_price(plan_price: float, discount_percent: Optional[float]) -> float:
    if not discount_percent:
        return round(float(plan_price), 2)
    return round(float(plan_price) * (1 - float(discount_percent) / 100), 2)


def create_subscription(db: Session, organization_id: uuid.UUID, payload: schemas.SubscriptionCreate) -> Dict[str, Any]:
    """Create a subscription from a plan plus its pending payment, in one transaction."""
    member = members_repo.get_member(db, organization_id, payload.member_id)
    if not member:
        return _error('Membre introuvable', 'not_found')
    plan = billing_repo.get_plan(db, organization_id, payload.plan_id)
    if not plan:
        return _error('Formule introuvable', 'not_found')
    if not plan.is_active:
        return _error("Cette formule n'est plus proposee")

    start_date = payload.start_date or models.today_utc()
    end_date = start_date + timedelta(days=plan.duration_days) if plan.duration_days else None
    price_paid = payload.price_paid
    if price_paid is None:
        price_paid = compute_price(plan.price, payload.discount_percent)

    try:
        subscription = models.Subscription(
            organization_id=organization_id,
            member_id=member.id,
            plan_id=plan.id,
            status='active',
            start_date=start_date,
            end_date=end_date,
            sessions_total=plan.session_count,
            sessions_used=0,
            price_paid=price_paid,
            discount_percent=payload.discount_percent,
            discount_reason=payload.discount_reason,
            auto_renew=payload.auto_renew,
            notes=payload.notes,
        )
        db.add(subscription)
        db.flush()

        payment = billing_repo.create_payment(
            db,
            organization_id,
            schemas.PaymentCreate(
                member_id=member.id,
                subscription_id=subscription.id,
                amount=price_paid,
                currency=plan.currency,
                status='pending',
                payment_method=payload.payment_method,
                description=f"Abonnement {plan.name}",
                due_date=start_date,
            ),
            commit=False,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Creating subscription for member %s failed: %s", member.id, e, exc_info=True)
        return _error("Erreur lors de la creation de l'abonnement", 'error')

    db.refresh(subscription)
    db.refresh(payment)
    logger.info("Subscription %s created for member %s (plan %s)", subscription.id, member.id, plan.name)
    return {'success': True, 'subscription': subscription, 'payment': payment}


def change_subscription_status(db: Session, organization_id: uuid.UUID, subscription_id: uuid.UUID, action: str) -> Dict[str, Any]:
    """Apply `pause`, `resume` or `cancel` when the current status allows it."""
    subscription = billing_repo.get_subscription(db, organization_id, subscription_id)
    if not subscription:
        return _error('Abonnement introuvable', 'not_found')
    allowed = SUBSCRIPTION_TRANSITIONS[action]
    if subscription.status not in allowed:
        return _error(f"Transition '{action}' impossible depuis le statut '{subscription.status}'")

    now = models.now_utc()
    if action == 'pause':
        subscription.status = 'paused'
        subscription.paused_at = now
    elif action == 'resume':
        subscription.status = 'active'
        subscription.paused_at = None
    else:
        subscription.status = 'cancelled'
        subscription.cancelled_at = now
        subscription.auto_renew = False
    db.commit()
    db.refresh(subscription)
    return {'success': True, 'subscription': subscription}


def change_payment_status(
    db: Session,
    organization_id: uuid.UUID,
    payment_id: uuid.UUID,
    action: str,
    refund: Optional[schemas.PaymentRefund] = None,
) -> Dict[str, Any]:
    payment = billing_repo.get_payment(db, organization_id, payment_id)
    if not payment:
        return _error('Paiement introuvable', 'not_found')
    if payment.status not in PAYMENT_TRANSITIONS[action]:
        return _error(f"Action '{action}' impossible pour un paiement '{payment.status}'")

    now = models.now_utc()
    if action == 'mark_paid':
        payment.status = 'paid'
        payment.paid_at = now
    elif action == 'refund':
        amount = refund.amount if refund and refund.amount is not None else payment.amount
        if amount > payment.amount:
            return _error('Le montant rembourse depasse le montant paye')
        payment.status = 'refunded'
        payment.refunded_amount = amount
        payment.refunded_at = now
        payment.refund_reason = refund.reason if refund else None
    else:
        payment.status = 'cancelled'
    db.commit()
    db.refresh(payment)
    return {'success': True, 'payment': payment}


def billing_stats(db: Session, organization_id: uuid.UUID) -> Dict[str, Any]:
    return {
        'total': billing_repo.count_subscriptions(db, organization_id),
        'active': billing_repo.count_subscriptions(db, organization_id, status='active'),
        'total_revenue': billing_repo.sum_paid_payments(db, organization_id),
        'pending_payments': billing_repo.count_payments(db, organization_id, 'pending'),
    }
