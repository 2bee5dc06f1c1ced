"""
RGPD service: consents, data subject requests, exports and anonymization.

Every state change also writes an `rgpd_audit_logs` row in the same
transaction, carrying the caller's IP address and user agent.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.models.rgpd import CONSENT_TYPES, OPEN_REQUEST_STATUSES
from boxhub.db.repositories import rgpd as rgpd_repo
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import notifications as notif_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.utils.dates import as_utc
from boxhub.utils.urls import build_rgpd_export_path

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_DAYS = 30
DEFAULT_EXPORT_TTL_DAYS = 7
URGENT_WINDOW_DAYS = 7
ANONYMIZED_NAME = 'Membre anonymise'


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %d", name, raw, default)
        return default


def get_response_days() -> int:
    return _env_int('RGPD_RESPONSE_DAYS', DEFAULT_RESPONSE_DAYS)


def get_export_ttl_days() -> int:
    return _env_int('RGPD_EXPORT_TTL_DAYS', DEFAULT_EXPORT_TTL_DAYS)


def _iso(value):
    return value.isoformat() if value is not None else None


def _error(message: str, code: str = 'invalid') -> Dict[str, Any]:
    return {'success': False, 'error': message, 'code': code}


class RgpdService:
    """RGPD operations for one organization, on behalf of one actor."""

    def __init__(
        self,
        db: Session,
        organization_id: uuid.UUID,
        actor_user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db = db
        self.organization_id = organization_id
        self.actor_user_id = actor_user_id
        self.ip_address = ip_address
        self.user_agent = user_agent

    def _audit(self, action: str, entity_type: str, *, member_id=None, entity_id=None, details=None):
        return rgpd_repo.add_audit_entry(
            self.db,
            organization_id=self.organization_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            member_id=member_id,
            actor_user_id=self.actor_user_id,
            details=details,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )

    # === Consents ===

    def record_consent(self, member: models.Member, consent: schemas.ConsentCreate, source: str = 'web') -> models.MemberConsent:
        row = rgpd_repo.add_consent(
            self.db,
            organization_id=self.organization_id,
            member_id=member.id,
            consent_type=consent.consent_type,
            granted=consent.granted,
            source=source,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            commit=False,
        )
        self._audit(
            'consent_granted' if consent.granted else 'consent_revoked',
            'consent',
            member_id=member.id,
            entity_id=row.id,
            details={'consent_type': consent.consent_type, 'source': source},
        )
        self.db.commit()
        self.db.refresh(row)
        return row

    def consent_stats(self):
        """Granted/revoked counts per consent type, from each member's latest row."""
        latest = {}
        for row in rgpd_repo.get_organization_consents(self.db, self.organization_id):
            latest.setdefault((row.member_id, row.consent_type), row)
        stats = []
        for consent_type in CONSENT_TYPES:
            rows = [r for (_, ctype), r in latest.items() if ctype == consent_type]
            granted = sum(1 for r in rows if r.granted)
            stats.append({
                'consent_type': consent_type,
                'granted_count': granted,
                'revoked_count': len(rows) - granted,
                'total_members': len(rows),
            })
        return stats

    # === Requests ===

    def create_request(self, member: models.Member, payload: schemas.RgpdRequestCreate, now: Optional[datetime] = None) -> Dict[str, Any]:
        if rgpd_repo.get_open_request(self.db, member.id, payload.request_type):
            return _error('Une demande de ce type est deja en cours', 'conflict')
        now = now or models.now_utc()
        request = rgpd_repo.create_request(
            self.db,
            organization_id=self.organization_id,
            member_id=member.id,
            request_type=payload.request_type,
            reason=payload.reason,
            due_date=now + timedelta(days=get_response_days()),
        )
        self._audit('request_created', 'rgpd_request', member_id=member.id, entity_id=request.id,
                    details={'request_type': payload.request_type})
        self.db.commit()
        logger.info("RGPD %s request %s created for member %s", payload.request_type, request.id, member.id)
        return {'success': True, 'request': request}

    def cancel_request(self, member: models.Member, request_id: uuid.UUID) -> Dict[str, Any]:
        """Members may withdraw their own request while it is still pending."""
        request = rgpd_repo.get_request(self.db, self.organization_id, request_id)
        if not request or request.member_id != member.id:
            return _error('Demande non trouvee', 'not_found')
        if request.status != 'pending':
            return _error('Seule une demande en attente peut etre annulee')
        request.status = 'cancelled'
        self._audit('request_cancelled', 'rgpd_request', member_id=member.id, entity_id=request.id)
        self.db.commit()
        self.db.refresh(request)
        return {'success': True, 'request': request}

    def request_counts(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or models.now_utc()
        urgent_limit = now + timedelta(days=URGENT_WINDOW_DAYS)
        pending = urgent = overdue = 0
        for request in rgpd_repo.get_open_requests(self.db, self.organization_id):
            pending += 1
            due = as_utc(request.due_date)
            if due < now:
                overdue += 1
            elif due <= urgent_limit:
                urgent += 1
        return {'pending': pending, 'urgent': urgent, 'overdue': overdue}

    def process_request(self, request_id: uuid.UUID, payload: schemas.RgpdRequestProcess, now: Optional[datetime] = None) -> Dict[str, Any]:
        request = rgpd_repo.get_request(self.db, self.organization_id, request_id)
        if not request:
            return _error('Demande non trouvee', 'not_found')
        if request.status not in OPEN_REQUEST_STATUSES:
            return _error('Cette demande a deja ete traitee', 'conflict')

        now = now or models.now_utc()
        try:
            if payload.action == 'reject':
                request.status = 'rejected'
                request.rejection_reason = payload.rejection_reason
            else:
                request.status = 'processing'
                self.db.flush()
                if request.request_type == 'data_export':
                    self._complete_export(request, now)
                elif request.request_type == 'data_deletion':
                    member = members_repo.get_member_by_id(self.db, request.member_id)
                    if member is not None:
                        self._anonymize(member, now)
                request.status = 'completed'
            request.processed_by = self.actor_user_id
            request.processed_at = now
            self._audit(
                f"request_{request.status}",
                'rgpd_request',
                member_id=request.member_id,
                entity_id=request.id,
                details={'request_type': request.request_type, 'rejection_reason': payload.rejection_reason},
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Processing RGPD request %s failed: %s", request_id, e, exc_info=True)
            return _error('Erreur lors du traitement de la demande', 'error')

        self.db.refresh(request)
        logger.info("RGPD request %s %s", request.id, request.status)
        return {'success': True, 'request': request}

    def _complete_export(self, request: models.RgpdRequest, now: datetime) -> None:
        member = members_repo.get_member_by_id(self.db, request.member_id)
        request.export_data = self.build_export(member, now) if member is not None else None
        request.export_file_url = build_rgpd_export_path(request.id)
        request.export_expires_at = now + timedelta(days=get_export_ttl_days())
        if member is not None:
            member.last_data_export_at = now
        self._audit('data_exported', 'member', member_id=request.member_id, entity_id=request.member_id)

    # === Export and anonymization ===

    def build_export(self, member: models.Member, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Everything the service stores about a member, as a JSON-ready document."""
        now = now or models.now_utc()
        scores = workouts_repo.get_member_scores(self.db, member.id, limit=10000)
        workout_names = {
            w.id: w.name
            for w in self.db.query(models.Workout).filter(models.Workout.id.in_({s.workout_id for s in scores})).all()
        } if scores else {}

        return {
            'export_date': now.isoformat(),
            'member': {
                'id': str(member.id),
                'member_number': member.member_number,
                'first_name': member.first_name,
                'last_name': member.last_name,
                'email': member.email,
                'phone': member.phone,
                'birth_date': _iso(member.birth_date),
                'gender': member.gender,
                'address': member.address,
                'joined_at': _iso(member.joined_at),
                'created_at': _iso(member.created_at),
            },
            'subscriptions': [
                {
                    'id': str(sub.id),
                    'plan_name': plan.name if plan else 'N/A',
                    'status': sub.status,
                    'start_date': _iso(sub.start_date),
                    'end_date': _iso(sub.end_date),
                    'created_at': _iso(sub.created_at),
                }
                for sub, plan in billing_repo.get_member_subscriptions(self.db, member.id)
            ],
            'payments': [
                {
                    'id': str(p.id),
                    'amount': p.amount,
                    'currency': p.currency or 'EUR',
                    'status': p.status,
                    'description': p.description,
                    'created_at': _iso(p.created_at),
                }
                for p in billing_repo.get_member_payments(self.db, member.id)
            ],
            'class_attendances': [
                {'class_name': gym_class.name, 'date': _iso(gym_class.start_time), 'status': booking.status}
                for booking, gym_class in planning_repo.get_member_attendances(self.db, member.id)
            ],
            'workout_scores': [
                {
                    'workout_name': workout_names.get(s.workout_id, 'N/A'),
                    'score_type': s.score_type,
                    'score_value': s.score_value,
                    'score_secondary': s.score_secondary,
                    'rx': s.is_rx,
                    'date': _iso(s.recorded_at),
                    'notes': s.notes,
                }
                for s in scores
            ],
            'personal_records': [
                {
                    'exercise': r.exercise.name if r.exercise else None,
                    'record_type': r.record_type,
                    'value': r.record_value,
                    'unit': r.record_unit,
                    'date': _iso(r.achieved_at),
                }
                for r in workouts_repo.get_member_personal_records(self.db, member.id)
            ],
            'consents': [
                {'type': c.consent_type, 'granted': c.granted, 'date': _iso(c.created_at)}
                for c in rgpd_repo.get_consent_history(self.db, member.id)
            ],
        }

    def _anonymize(self, member: models.Member, now: datetime) -> None:
        member.first_name = ANONYMIZED_NAME
        member.last_name = ''
        member.email = f"anonymized-{member.id}@deleted.invalid"
        member.phone = None
        member.birth_date = None
        member.address = None
        member.emergency_contact = {}
        member.medical_info = {}
        member.notes = None
        member.avatar_url = None
        member.tags = []
        member.user_id = None
        member.anonymized_at = now
        member.status = 'archived'
        notif_repo.delete_member_preferences(self.db, member.id)
        self._audit('member_anonymized', 'member', member_id=member.id, entity_id=member.id)
        logger.info("Member %s anonymized", member.id)

    def anonymize_member(self, member: models.Member, now: Optional[datetime] = None) -> Dict[str, Any]:
        if member.anonymized_at is not None:
            return _error('Ce membre est deja anonymise', 'conflict')
        try:
            self._anonymize(member, now or models.now_utc())
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Anonymizing member %s failed: %s", member.id, e, exc_info=True)
            return _error("Erreur lors de l'anonymisation", 'error')
        self.db.refresh(member)
        return {'success': True, 'member': member}

    def get_export(self, request_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Export document of a completed request, while its link is valid."""
        request = rgpd_repo.get_request(self.db, self.organization_id, request_id)
        if not request or request.request_type != 'data_export':
            return _error('Export introuvable', 'not_found')
        if request.status != 'completed' or request.export_data is None:
            return _error("L'export n'est pas encore disponible", 'not_found')
        now = now or models.now_utc()
        if request.export_expires_at is not None and as_utc(request.export_expires_at) < now:
            return _error("Le lien d'export a expire", 'gone')
        self._audit('export_downloaded', 'rgpd_request', member_id=request.member_id, entity_id=request.id)
        self.db.commit()
        return {'success': True, 'request': request, 'data': request.export_data}
