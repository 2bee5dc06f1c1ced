"""
Discord webhook integration: config validation, embed builders and delivery.

Every message creates a `discord_logs` row as `pending` before the POST and
is marked `sent` or `failed` afterwards. Delivery failures never raise.
"""

import logging
import re
import uuid
from typing import Optional, Dict, Any, List

import requests
from sqlalchemy.orm import Session

from boxhub.db import models
from boxhub.db.models.discord import DEFAULT_DISCORD_NOTIFICATION_TYPES
from boxhub.db.repositories import discord as discord_repo
from boxhub.utils.dates import as_utc, org_zone
from boxhub.utils.feature_flags import org_feature_enabled

logger = logging.getLogger(__name__)

WEBHOOK_URL_RE = re.compile(
    r'^https://(?:(?:canary|ptb)\.)?(?:discord|discordapp)\.com/api/webhooks/\d+/[\w-]+$'
)
REQUEST_TIMEOUT_SECONDS = 10
BOT_USERNAME = 'BoxHub'

COLORS = {
    'primary': 0x6366F1,
    'success': 0x22C55E,
    'warning': 0xF59E0B,
    'info': 0x3B82F6,
    'amrap': 0xF97316,
    'emom': 0x14B8A6,
    'for_time': 0xEC4899,
}

BLOCK_LABELS = {
    'warmup': 'Warm-up',
    'skill': 'Skill',
    'strength': 'Strength',
    'wod': 'WOD',
    'cooldown': 'Cool-down',
    'accessory': 'Accessory',
    'custom': 'Custom',
}


def is_valid_webhook_url(url: Optional[str]) -> bool:
    return bool(url) and WEBHOOK_URL_RE.match(url) is not None


def _now_iso() -> str:
    return models.now_utc().isoformat()


def post_webhook(webhook_url: str, content: Optional[str] = None, embeds: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """POST a message to a webhook. Returns {'success', 'message_id'|'error'}."""
    if not is_valid_webhook_url(webhook_url):
        return {'success': False, 'error': 'Invalid Discord webhook URL'}
    payload = {'username': BOT_USERNAME, 'content': content, 'embeds': embeds or []}
    try:
        response = requests.post(
            webhook_url,
            params={'wait': 'true'},
            json=payload,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("Discord webhook request failed: %s", e)
        return {'success': False, 'error': str(e)}

    if not response.ok:
        error = f"Discord API error: {response.status_code}"
        try:
            error = response.json().get('message') or error
        except ValueError:
            pass
        logger.warning("Discord webhook rejected message: %s", error)
        return {'success': False, 'error': error}

    try:
        message_id = response.json().get('id')
    except ValueError:
        message_id = None
    return {'success': True, 'message_id': message_id}


# === Embed builders ===

def _exercise_line(exercise: models.BlockExercise) -> str:
    parts = []
    if exercise.reps:
        parts.append(str(exercise.reps))
        if exercise.reps_unit and exercise.reps_unit != 'reps':
            parts.append(exercise.reps_unit)
    parts.append(exercise.display_name or 'Exercise')
    line = ' '.join(parts)
    if exercise.weight_male or exercise.weight_female:
        unit = exercise.weight_unit or ''
        male = f"{exercise.weight_male:g}{unit}" if exercise.weight_male else '-'
        female = f"{exercise.weight_female:g}{unit}" if exercise.weight_female else '-'
        line += f" (H {male} / F {female})"
    return f"- {line}"


def build_wod_embed(workout: models.Workout, organization_name: Optional[str] = None) -> Dict[str, Any]:
    fields = []
    for block in workout.blocks:
        lines = []
        if block.wod_type:
            label = block.wod_type.upper().replace('_', ' ')
            if block.time_cap:
                lines.append(f"**{label}** - {block.time_cap} min")
            elif block.rounds:
                lines.append(f"**{label}** - {block.rounds} rounds")
            else:
                lines.append(f"**{label}**")
        lines.extend(_exercise_line(ex) for ex in block.exercises)
        if block.notes:
            lines.append(f"\n_{block.notes}_")
        if lines:
            fields.append({
                'name': block.name or BLOCK_LABELS.get(block.block_type, block.block_type),
                'value': '\n'.join(lines).strip(),
                'inline': False,
            })

    wod_block = next((b for b in workout.blocks if b.block_type == 'wod'), None)
    color = COLORS.get(wod_block.wod_type, COLORS['primary']) if wod_block and wod_block.wod_type else COLORS['primary']
    embed = {
        'title': workout.name,
        'color': color,
        'footer': {'text': f"{organization_name} - BoxHub" if organization_name else 'BoxHub'},
        'timestamp': _now_iso(),
    }
    if workout.description:
        embed['description'] = workout.description
    if fields:
        embed['fields'] = fields
    return embed


def build_welcome_embed(member: models.Member, organization_name: str) -> Dict[str, Any]:
    return {
        'title': 'Nouveau membre !',
        'description': f"**{member.full_name}** vient de rejoindre {organization_name} !",
        'color': COLORS['success'],
        'footer': {'text': 'BoxHub'},
        'timestamp': _now_iso(),
    }


def build_class_reminder_embed(gym_class: models.GymClass, organization: Optional[models.Organization] = None,
                               coach_name: Optional[str] = None) -> Dict[str, Any]:
    local = as_utc(gym_class.start_time).astimezone(org_zone(organization))
    fields = [{'name': 'Horaire', 'value': local.strftime('%d/%m/%Y %H:%M'), 'inline': True}]
    if coach_name:
        fields.append({'name': 'Coach', 'value': coach_name, 'inline': True})
    if gym_class.max_participants is not None:
        spots = max(0, gym_class.max_participants - gym_class.current_participants)
        fields.append({'name': 'Places restantes', 'value': str(spots), 'inline': True})
    return {
        'title': f"Rappel: {gym_class.name}",
        'description': 'Le cours commence bientot !',
        'color': COLORS['info'],
        'fields': fields,
        'footer': {'text': 'BoxHub'},
        'timestamp': _now_iso(),
    }


def build_achievement_embed(member_name: str, achievement_type: str, details: str) -> Dict[str, Any]:
    title = 'Nouveau PR !' if achievement_type == 'personal_record' else 'Achievement !'
    return {
        'title': title,
        'description': f"**{member_name}** {details}",
        'color': COLORS['warning'],
        'footer': {'text': 'BoxHub'},
        'timestamp': _now_iso(),
    }


def build_announcement_embed(title: str, message: str, organization_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        'title': title,
        'description': message,
        'color': COLORS['primary'],
        'footer': {'text': f"{organization_name} - BoxHub" if organization_name else 'BoxHub'},
        'timestamp': _now_iso(),
    }


class DiscordService:
    """Sends an organization's messages through its configured webhooks."""

    def __init__(self, db: Session, organization: models.Organization):
        self.db = db
        self.organization = organization

    @property
    def config(self) -> Optional[models.DiscordConfig]:
        return discord_repo.get_config(self.db, self.organization.id)

    def update_config(self, values: Dict[str, Any]) -> Dict[str, Any]:
        for field in ('webhook_url', 'wod_channel_webhook'):
            url = values.get(field)
            if url and not is_valid_webhook_url(url):
                return {'success': False, 'error': f"URL de webhook invalide: {field}", 'code': 'invalid'}
        if 'notification_types' in values and values['notification_types'] is not None:
            current = self.config
            merged = dict(current.notification_types if current and current.notification_types else DEFAULT_DISCORD_NOTIFICATION_TYPES)
            merged.update(values['notification_types'])
            values['notification_types'] = merged
        config = discord_repo.upsert_config(self.db, self.organization.id, values)
        return {'success': True, 'config': config}

    def notification_enabled(self, message_type: str) -> bool:
        config = self.config
        if not org_feature_enabled(self.organization, "discord") or config is None or not config.is_active or not config.webhook_url:
            return False
        return bool((config.notification_types or {}).get(message_type, False))

    def _send(
        self,
        message_type: str,
        webhook_url: Optional[str],
        *,
        content: Optional[str] = None,
        embed: Optional[Dict[str, Any]] = None,
        member_id: Optional[uuid.UUID] = None,
        workout_id: Optional[uuid.UUID] = None,
        class_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        if not webhook_url:
            return {'success': False, 'error': 'Aucun webhook configure', 'code': 'invalid'}
        log = discord_repo.create_log(
            self.db,
            organization_id=self.organization.id,
            message_type=message_type,
            webhook_url=webhook_url,
            content=content,
            embed_data=embed,
            member_id=member_id,
            workout_id=workout_id,
            class_id=class_id,
        )
        result = post_webhook(webhook_url, content=content, embeds=[embed] if embed else None)
        if result['success']:
            discord_repo.mark_log_sent(self.db, log, result.get('message_id'))
            return {'success': True, 'log_id': log.id, 'message_id': result.get('message_id')}
        discord_repo.mark_log_failed(self.db, log, result['error'])
        return {'success': False, 'error': result['error'], 'log_id': log.id, 'code': 'upstream'}

    def test_webhook(self, webhook_url: str) -> Dict[str, Any]:
        embed = {
            'title': 'Test de connexion BoxHub',
            'description': 'Ce message confirme que votre webhook Discord est correctement configure !',
            'color': COLORS['success'],
            'footer': {'text': 'BoxHub - Integration Discord'},
            'timestamp': _now_iso(),
        }
        result = post_webhook(webhook_url, embeds=[embed])
        if not result['success']:
            return {**result, 'code': 'upstream'}
        return result

    def send_wod(self, workout: models.Workout) -> Dict[str, Any]:
        """Post the WOD, preferring the dedicated WOD channel webhook."""
        config = self.config
        webhook_url = config and (config.wod_channel_webhook or config.webhook_url)
        result = self._send(
            'wod', webhook_url, embed=build_wod_embed(workout, self.organization.name), workout_id=workout.id
        )
        if result['success']:
            discord_repo.mark_wod_posted(self.db, self.organization.id, workout.id)
        return result

    def send_welcome(self, member: models.Member) -> Dict[str, Any]:
        if not self.notification_enabled('welcome'):
            return {'success': False, 'skipped': True, 'error': 'Welcome messages disabled'}
        return self._send(
            'welcome', self.config.webhook_url,
            embed=build_welcome_embed(member, self.organization.name), member_id=member.id,
        )

    def send_class_reminder(self, gym_class: models.GymClass, coach_name: Optional[str] = None) -> Dict[str, Any]:
        if not self.notification_enabled('class_reminder'):
            return {'success': False, 'skipped': True, 'error': 'Class reminders disabled'}
        return self._send(
            'class_reminder', self.config.webhook_url,
            embed=build_class_reminder_embed(gym_class, self.organization, coach_name), class_id=gym_class.id,
        )

    def send_achievement(self, member: models.Member, achievement_type: str, details: str) -> Dict[str, Any]:
        if not self.notification_enabled('achievement'):
            return {'success': False, 'skipped': True, 'error': 'Achievements disabled'}
        return self._send(
            'achievement', self.config.webhook_url,
            embed=build_achievement_embed(member.full_name, achievement_type, details), member_id=member.id,
        )

    def send_announcement(self, title: str, message: str) -> Dict[str, Any]:
        config = self.config
        return self._send(
            'announcement', config.webhook_url if config else None,
            embed=build_announcement_embed(title, message, self.organization.name),
        )

    def send_custom(self, content: str) -> Dict[str, Any]:
        config = self.config
        return self._send('custom', config.webhook_url if config else None, content=content)

    def send_workflow_message(
        self,
        content: Optional[str] = None,
        embed: Optional[Dict[str, Any]] = None,
        webhook_url: Optional[str] = None,
        member_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """Automation post: an explicit webhook, or the box's default one."""
        if webhook_url and not is_valid_webhook_url(webhook_url):
            return {'success': False, 'error': 'URL de webhook invalide', 'code': 'invalid'}
        if not content and not embed:
            return {'success': False, 'error': 'Message vide', 'code': 'invalid'}
        if not webhook_url:
            config = self.config
            if not org_feature_enabled(self.organization, "discord") or config is None or not config.is_active:
                return {'success': False, 'error': 'Aucun webhook configure', 'code': 'invalid'}
            webhook_url = config.webhook_url
        return self._send('custom', webhook_url, content=content, embed=embed, member_id=member_id)
