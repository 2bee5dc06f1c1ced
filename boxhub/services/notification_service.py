"""
Notification service: member email dispatch, preferences and reminder batches.

Every email goes through the same path: an `email_logs` row is created as
`pending`, the jinja2 template is rendered, the transactional provider is
called, and the row ends up `sent` (with the provider message id) or
`failed` (with the error). Nothing here raises into callers.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.models.organizations import DEFAULT_PRIMARY_COLOR
from boxhub.db.repositories import notifications as notif_repo
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import billing as billing_repo
from boxhub.utils.dates import as_utc, org_zone, start_of_day
from boxhub.utils.feature_flags import feature_enabled
from boxhub.utils.urls import get_app_base_url, build_member_planning_link, build_member_profile_link

logger = logging.getLogger(__name__)

# Member preference kinds
KIND_BOOKING_CONFIRMATIONS = 'booking_confirmations'
KIND_CLASS_REMINDERS = 'class_reminders'
KIND_SUBSCRIPTION_ALERTS = 'subscription_alerts'
KIND_MARKETING = 'marketing'

_PREFERENCE_FIELDS = {
    KIND_BOOKING_CONFIRMATIONS: 'receive_booking_confirmations',
    KIND_CLASS_REMINDERS: 'receive_class_reminders',
    KIND_SUBSCRIPTION_ALERTS: 'receive_subscription_alerts',
    KIND_MARKETING: 'receive_marketing',
}

# Template name constants (match template file names)
TEMPLATE_WELCOME = 'welcome'
TEMPLATE_BOOKING_CONFIRMATION = 'booking_confirmation'
TEMPLATE_WAITLIST_PROMOTED = 'waitlist_promoted'
TEMPLATE_CLASS_REMINDER = 'class_reminder'
TEMPLATE_CLASS_CANCELLED = 'class_cancelled'
TEMPLATE_SUBSCRIPTION_EXPIRING = 'subscription_expiring'
TEMPLATE_CUSTOM = 'custom_message'


def _skipped(reason: str) -> Dict[str, Any]:
    return {'success': False, 'skipped': True, 'error': reason}


def format_class_time(gym_class: models.GymClass, organization: models.Organization) -> Dict[str, str]:
    """Local date and time strings for a class, in the organization's timezone."""
    local = as_utc(gym_class.start_time).astimezone(org_zone(organization))
    return {'date': local.strftime('%d/%m/%Y'), 'time': local.strftime('%H:%M')}


class NotificationService:
    """Service class for member notifications and email logging."""

    def __init__(self, db: Session, email_service: Optional[Any] = None):
        self.db = db
        # Resolved lazily so tests patching the factory take effect
        if email_service is not None:
            self.email_service = email_service
        else:
            from boxhub.services import transactional_email_service
            self.email_service = transactional_email_service.get_transactional_email_service()

    # === Settings and preferences ===

    def get_settings(self, organization_id: uuid.UUID) -> models.NotificationSettings:
        return notif_repo.get_or_default_notification_settings(self.db, organization_id)

    def org_wants(self, organization_id: uuid.UUID, setting: str) -> bool:
        """Automatic emails need the global switch and the organization's setting."""
        if not feature_enabled("email_notifications"):
            return False
        return bool(getattr(self.get_settings(organization_id), setting))

    def member_wants_notification(self, member_id: uuid.UUID, kind: Optional[str] = None) -> bool:
        """No preference row means yes, except for marketing. `email_enabled=False` blocks everything."""
        prefs = notif_repo.get_member_preferences(self.db, member_id)
        if prefs is None:
            return kind != KIND_MARKETING
        if not prefs.email_enabled:
            return False
        if kind is None:
            return True
        return bool(getattr(prefs, _PREFERENCE_FIELDS[kind]))

    # === Core send path ===

    def send_email(
        self,
        *,
        organization: models.Organization,
        recipient_email: str,
        recipient_name: Optional[str],
        template_type: str,
        template_name: str,
        subject: str,
        context: Dict[str, Any],
        member_id: Optional[uuid.UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Log, render and send one email. Returns a result dict, never raises."""
        email_log = notif_repo.create_email_log(
            self.db,
            organization_id=organization.id,
            member_id=member_id,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            template_type=template_type,
            subject=subject,
            metadata=metadata,
        )

        if self.email_service is None:
            notif_repo.update_email_status(self.db, email_log.id, 'failed', error_message='Email service unavailable')
            return {'success': False, 'error': 'Email service unavailable', 'email_log_id': email_log.id}

        settings = self.get_settings(organization.id)
        full_context = {
            'organization_name': organization.name,
            'organization_logo_url': organization.logo_url,
            'primary_color': organization.get_setting('primary_color', DEFAULT_PRIMARY_COLOR),
            'recipient_name': recipient_name,
            'app_base_url': get_app_base_url(),
            'profile_url': build_member_profile_link(),
            **context,
        }

        try:
            html_content, text_content = self.email_service.render_template(template_name, full_context)
            send_res = asyncio.run(self.email_service.send_email(
                to_email=recipient_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
                from_name=settings.from_name or organization.name,
                reply_to=settings.reply_to or organization.email,
            ))
        except Exception as e:
            logger.error("Email to %s (%s) failed: %s", recipient_email, template_type, e, exc_info=True)
            notif_repo.update_email_status(self.db, email_log.id, 'failed', error_message=str(e))
            return {'success': False, 'error': str(e), 'email_log_id': email_log.id}

        if send_res.get('success'):
            notif_repo.update_email_status(
                self.db, email_log.id, 'sent', provider_message_id=send_res.get('message_id') or None
            )
            return {'success': True, 'email_log_id': email_log.id, 'message_id': send_res.get('message_id')}

        error = send_res.get('error') or 'Unknown email error'
        notif_repo.update_email_status(self.db, email_log.id, 'failed', error_message=error)
        return {'success': False, 'error': error, 'email_log_id': email_log.id}

    def _send_to_member(self, member: models.Member, organization, **kwargs) -> Dict[str, Any]:
        if not member.email:
            return _skipped('Member has no email')
        return self.send_email(
            organization=organization,
            recipient_email=member.email,
            recipient_name=member.full_name,
            member_id=member.id,
            **kwargs,
        )

    def _organization(self, organization_id: uuid.UUID):
        return self.db.query(models.Organization).filter(models.Organization.id == organization_id).first()

    # === Member emails ===

    def notify_welcome(self, member: models.Member) -> Dict[str, Any]:
        if not self.org_wants(member.organization_id, 'welcome_email'):
            return _skipped('Welcome emails disabled for this organization')
        organization = self._organization(member.organization_id)
        return self._send_to_member(
            member,
            organization,
            template_type='welcome',
            template_name=TEMPLATE_WELCOME,
            subject=f"Bienvenue chez {organization.name}",
            context={'member_name': member.full_name, 'login_url': f"{get_app_base_url()}/login"},
            metadata={'organization_name': organization.name},
        )

    def _class_context(self, gym_class, organization, member) -> Dict[str, Any]:
        when = format_class_time(gym_class, organization)
        spots_remaining = None
        if gym_class.max_participants is not None:
            spots_remaining = max(0, gym_class.max_participants - gym_class.current_participants)
        return {
            'member_name': member.full_name,
            'class_name': gym_class.name,
            'class_date': when['date'],
            'class_time': when['time'],
            'location': gym_class.location,
            'spots_remaining': spots_remaining,
            'planning_url': build_member_planning_link(org_slug=organization.slug, class_id=str(gym_class.id)),
        }

    def notify_booking_confirmation(self, member: models.Member, gym_class: models.GymClass) -> Dict[str, Any]:
        if not self.org_wants(member.organization_id, 'booking_confirmation_email'):
            return _skipped('Booking confirmations disabled')
        if not self.member_wants_notification(member.id, KIND_BOOKING_CONFIRMATIONS):
            return _skipped('Member opted out of booking confirmations')
        organization = self._organization(member.organization_id)
        context = self._class_context(gym_class, organization, member)
        return self._send_to_member(
            member,
            organization,
            template_type='booking_confirmation',
            template_name=TEMPLATE_BOOKING_CONFIRMATION,
            subject=f"Reservation confirmee : {gym_class.name}",
            context=context,
            metadata={'class_id': str(gym_class.id), 'class_date': context['class_date'], 'class_time': context['class_time']},
        )

    def notify_waitlist_promoted(self, member: models.Member, gym_class: models.GymClass) -> Dict[str, Any]:
        if not self.org_wants(member.organization_id, 'booking_confirmation_email'):
            return _skipped('Booking confirmations disabled')
        if not self.member_wants_notification(member.id, KIND_BOOKING_CONFIRMATIONS):
            return _skipped('Member opted out of booking confirmations')
        organization = self._organization(member.organization_id)
        context = self._class_context(gym_class, organization, member)
        return self._send_to_member(
            member,
            organization,
            template_type='waitlist_promoted',
            template_name=TEMPLATE_WAITLIST_PROMOTED,
            subject=f"Une place s'est liberee : {gym_class.name}",
            context=context,
            metadata={'class_id': str(gym_class.id)},
        )

    def notify_class_reminder(self, member: models.Member, gym_class: models.GymClass) -> Dict[str, Any]:
        if not self.member_wants_notification(member.id, KIND_CLASS_REMINDERS):
            return _skipped('Member opted out of class reminders')
        organization = self._organization(member.organization_id)
        context = self._class_context(gym_class, organization, member)
        return self._send_to_member(
            member,
            organization,
            template_type='class_reminder',
            template_name=TEMPLATE_CLASS_REMINDER,
            subject=f"Rappel : {gym_class.name} demain a {context['class_time']}",
            context=context,
            metadata={'class_id': str(gym_class.id), 'class_date': context['class_date']},
        )

    def notify_class_cancelled(self, member: models.Member, gym_class: models.GymClass, reason: Optional[str] = None) -> Dict[str, Any]:
        if not self.org_wants(member.organization_id, 'class_cancelled_email'):
            return _skipped('Class cancellation emails disabled')
        if not self.member_wants_notification(member.id):
            return _skipped('Member opted out of emails')
        organization = self._organization(member.organization_id)
        context = self._class_context(gym_class, organization, member)
        context['reason'] = reason
        return self._send_to_member(
            member,
            organization,
            template_type='class_cancelled',
            template_name=TEMPLATE_CLASS_CANCELLED,
            subject=f"Cours annule : {gym_class.name}",
            context=context,
            metadata={'class_id': str(gym_class.id), 'reason': reason},
        )

    def notify_subscription_expiring(
        self,
        member: models.Member,
        subscription: models.Subscription,
        plan_name: str,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        if not self.member_wants_notification(member.id, KIND_SUBSCRIPTION_ALERTS):
            return _skipped('Member opted out of subscription alerts')
        today = today or models.today_utc()
        days_remaining = (subscription.end_date - today).days
        organization = self._organization(member.organization_id)
        return self._send_to_member(
            member,
            organization,
            template_type='subscription_expiring',
            template_name=TEMPLATE_SUBSCRIPTION_EXPIRING,
            subject=f"Votre abonnement {plan_name} expire bientot",
            context={
                'member_name': member.full_name,
                'plan_name': plan_name,
                'expiration_date': subscription.end_date.strftime('%d/%m/%Y'),
                'days_remaining': days_remaining,
            },
            metadata={'subscription_id': str(subscription.id), 'plan_name': plan_name, 'days_remaining': days_remaining},
        )

    def send_custom_message(self, member: models.Member, subject: str, message: str) -> Dict[str, Any]:
        """Manual staff message; only the member's global email switch applies."""
        if not self.member_wants_notification(member.id):
            return _skipped('Member opted out of emails')
        organization = self._organization(member.organization_id)
        return self._send_to_member(
            member,
            organization,
            template_type='custom',
            template_name=TEMPLATE_CUSTOM,
            subject=subject,
            context={'member_name': member.full_name, 'message': message},
            metadata={'custom_content': True},
        )

    # === Batches ===

    def send_bulk(self, organization_id: uuid.UUID, request: schemas.BulkEmailRequest) -> Dict[str, int]:
        """Custom message to a member list, or to every member with a status."""
        if request.member_ids:
            members = members_repo.get_members_by_ids(self.db, organization_id, request.member_ids)
        else:
            members = members_repo.get_all_members(self.db, organization_id, status=request.member_status)

        sent = errors = skipped = 0
        for member in members:
            if request.marketing and not self.member_wants_notification(member.id, KIND_MARKETING):
                skipped += 1
                continue
            try:
                result = self.send_custom_message(member, request.subject, request.message)
            except Exception as e:
                logger.error("Bulk email to member %s failed: %s", member.id, e, exc_info=True)
                errors += 1
                continue
            if result.get('success'):
                sent += 1
            elif result.get('skipped'):
                skipped += 1
            else:
                errors += 1
        logger.info("Bulk email for org %s: sent=%d errors=%d skipped=%d", organization_id, sent, errors, skipped)
        return {'sent': sent, 'errors': errors, 'skipped': skipped}

    def send_tomorrow_class_reminders(self, organization_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, int]:
        """Remind members with a confirmed booking in a class starting tomorrow (UTC day)."""
        if not self.org_wants(organization_id, 'class_reminder_24h'):
            return {'sent': 0, 'errors': 0, 'skipped': 0}

        now = now or models.now_utc()
        tomorrow = start_of_day(now.date() + timedelta(days=1))
        rows = planning_repo.get_confirmed_bookings_between(
            self.db, organization_id, tomorrow, tomorrow + timedelta(days=1)
        )
        return self._tally(
            (self.notify_class_reminder, (member, gym_class), booking.id)
            for booking, gym_class, member in rows
        )

    def send_subscription_expiration_reminders(
        self,
        organization_id: uuid.UUID,
        days_threshold: int = 7,
        today: Optional[date] = None,
    ) -> Dict[str, int]:
        setting = 'subscription_expiring_30d' if days_threshold > 14 else 'subscription_expiring_7d'
        if not self.org_wants(organization_id, setting):
            return {'sent': 0, 'errors': 0, 'skipped': 0}

        today = today or models.today_utc()
        rows = billing_repo.get_expiring_subscriptions(
            self.db, organization_id, today, today + timedelta(days=days_threshold)
        )
        return self._tally(
            (self.notify_subscription_expiring, (member, subscription, plan.name if plan else 'Abonnement', today), subscription.id)
            for subscription, member, plan in rows
        )

    def _tally(self, jobs) -> Dict[str, int]:
        sent = errors = skipped = 0
        for fn, args, ref in jobs:
            try:
                result = fn(*args)
            except Exception as e:
                logger.error("Notification job %s failed: %s", ref, e, exc_info=True)
                errors += 1
                continue
            if result.get('success'):
                sent += 1
            elif result.get('skipped'):
                skipped += 1
            else:
                errors += 1
        return {'sent': sent, 'errors': errors, 'skipped': skipped}


def run_notification_cron(db: Session, job_type: str = 'all', email_service: Optional[Any] = None) -> Dict[str, Any]:
    """Run reminder batches for every active organization and return per-type totals."""
    from boxhub.db.repositories import organizations as orgs_repo

    service = NotificationService(db, email_service=email_service)
    totals: Dict[str, Dict[str, int]] = {}

    def _add(key: str, result: Dict[str, int]) -> None:
        bucket = totals.setdefault(key, {'sent': 0, 'errors': 0, 'skipped': 0})
        for field in bucket:
            bucket[field] += result.get(field, 0)

    organizations: List[models.Organization] = orgs_repo.get_active_organizations(db)
    for org in organizations:
        try:
            if job_type in ('all', 'class_reminders'):
                _add('class_reminders', service.send_tomorrow_class_reminders(org.id))
            if job_type in ('all', 'subscription_7d'):
                _add('subscription_7d', service.send_subscription_expiration_reminders(org.id, 7))
            if job_type in ('all', 'subscription_30d'):
                _add('subscription_30d', service.send_subscription_expiration_reminders(org.id, 30))
        except Exception as e:
            logger.error("Notification cron failed for org %s: %s", org.id, e, exc_info=True)
            _add('organizations_failed', {'errors': 1})
    logger.info("Notification cron (%s) done for %d organizations", job_type, len(organizations))
    return {'type': job_type, 'organizations': len(organizations), 'results': totals}
