"""initial boxhub schema

Revision ID: b0c1d2e3f4a5
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from boxhub.db.models.platform import DEFAULT_PLATFORM_PLANS


# revision identifiers, used by Alembic.
revision: str = 'b0c1d2e3f4a5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)
JSONB = postgresql.JSONB(astext_type=sa.Text())


def _id():
    return sa.Column('id', UUID, primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _org_fk(ondelete='CASCADE', nullable=False):
    return sa.Column(
        'organization_id', UUID, sa.ForeignKey('organizations.id', ondelete=ondelete), nullable=nullable
    )


def _timestamps(updated=True):
    cols = [sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False))
    return cols


def upgrade() -> None:
    """Upgrade schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    # Accounts and tenancy
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('is_superadmin', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # BoxHub's own pricing, seeded with the default tiers
    platform_plans = op.create_table(
        'platform_plans',
        _id(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('tier', sa.String(), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_monthly', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_yearly', sa.Integer(), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('max_members', sa.Integer(), nullable=True),
        sa.Column('max_staff', sa.Integer(), nullable=True),
        sa.Column('max_classes_per_month', sa.Integer(), nullable=True),
        sa.Column('features', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint("tier in ('free_trial','basic','pro','enterprise')", name='ck_platform_plans_tier'),
    )
    op.bulk_insert(platform_plans, [dict(plan) for plan in DEFAULT_PLATFORM_PLANS])

    op.create_table(
        'organizations',
        _id(),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('slug', sa.String(), nullable=True, unique=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.Column('settings', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_by', UUID, sa.ForeignKey('users.id'), nullable=True),
        sa.Column('platform_plan_id', UUID, sa.ForeignKey('platform_plans.id', ondelete='SET NULL'), nullable=True),
        sa.Column('platform_subscription_status', sa.String(), nullable=False, server_default='trialing'),
        sa.Column('trial_ends_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('billing_email', sa.String(), nullable=True),
        sa.Column('owner_user_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'organization_memberships',
        sa.Column('organization_id', UUID, sa.ForeignKey('organizations.id'), primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('can_read', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('can_write', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(updated=False),
        sa.CheckConstraint("role in ('owner','admin','coach','staff')", name='ck_org_memberships_role'),
    )
    op.create_index('idx_org_memberships_user_id', 'organization_memberships', ['user_id'])

    op.create_table(
        'members',
        _id(),
        _org_fk(),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('member_number', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('emergency_contact', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('medical_info', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('tags', JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('joined_at', sa.Date(), nullable=False, server_default=sa.text('CURRENT_DATE')),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('last_data_export_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('anonymized_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status in ('active','inactive','suspended','archived')", name='ck_members_status'),
        sa.CheckConstraint("gender is null or gender in ('male','female','other')", name='ck_members_gender'),
    )
    op.create_index('ix_members_organization_id_status', 'members', ['organization_id', 'status'])
    op.create_index('ix_members_organization_id_last_name', 'members', ['organization_id', 'last_name'])
    op.create_index('ix_members_user_id', 'members', ['user_id'])

    # Billing
    op.create_table(
        'plans',
        _id(),
        _org_fk(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('plan_type', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('duration_days', sa.Integer(), nullable=True),
        sa.Column('session_count', sa.Integer(), nullable=True),
        sa.Column('max_classes_per_week', sa.Integer(), nullable=True),
        sa.Column('max_bookings_per_day', sa.Integer(), nullable=True),
        sa.Column('features', JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint(
            "plan_type in ('monthly','quarterly','biannual','annual','session_card','unlimited')",
            name='ck_plans_plan_type',
        ),
    )
    op.create_index('ix_plans_organization_id', 'plans', ['organization_id'])

    op.create_table(
        'subscriptions',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_id', UUID, sa.ForeignKey('plans.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('start_date', sa.Date(), nullable=False, server_default=sa.text('CURRENT_DATE')),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('paused_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('sessions_total', sa.Integer(), nullable=True),
        sa.Column('sessions_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_paid', sa.Numeric(10, 2), nullable=True),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=True),
        sa.Column('discount_reason', sa.Text(), nullable=True),
        sa.Column('auto_renew', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('renewal_reminder_sent', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status in ('active','paused','expired','cancelled')", name='ck_subscriptions_status'),
    )
    op.create_index('ix_subscriptions_organization_id_status', 'subscriptions', ['organization_id', 'status'])
    op.create_index('ix_subscriptions_member_id', 'subscriptions', ['member_id'])
    op.create_index('ix_subscriptions_end_date', 'subscriptions', ['end_date'])

    op.create_table(
        'payments',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subscription_id', UUID, sa.ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(), nullable=False, server_default='other'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('refunded_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('refunded_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('metadata', JSONB, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status in ('pending','paid','failed','refunded','cancelled')", name='ck_payments_status'),
        sa.CheckConstraint(
            "payment_method in ('card','sepa','cash','check','transfer','other')",
            name='ck_payments_method',
        ),
    )
    op.create_index('ix_payments_organization_id_status', 'payments', ['organization_id', 'status'])
    op.create_index('ix_payments_member_id', 'payments', ['member_id'])

    # Workouts
    op.create_table(
        'exercises',
        _id(),
        _org_fk(nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('name_en', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=False, server_default='other'),
        sa.Column('video_url', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('equipment', JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('is_global', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.CheckConstraint(
            "category in ('weightlifting','gymnastics','cardio','strongman','core','mobility','other')",
            name='ck_exercises_category',
        ),
    )
    op.create_index('ix_exercises_organization_id', 'exercises', ['organization_id'])

    op.create_table(
        'workouts',
        _id(),
        _org_fk(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=True),
        sa.Column('is_template', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_workouts_organization_id_date', 'workouts', ['organization_id', 'date'])

    op.create_table(
        'workout_blocks',
        _id(),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('block_type', sa.String(), nullable=False, server_default='wod'),
        sa.Column('wod_type', sa.String(), nullable=True),
        sa.Column('time_cap', sa.Integer(), nullable=True),
        sa.Column('rounds', sa.Integer(), nullable=True),
        sa.Column('work_time', sa.Integer(), nullable=True),
        sa.Column('rest_time', sa.Integer(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_workout_blocks_workout_id', 'workout_blocks', ['workout_id'])

    op.create_table(
        'block_exercises',
        _id(),
        sa.Column('block_id', UUID, sa.ForeignKey('workout_blocks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('exercise_id', UUID, sa.ForeignKey('exercises.id', ondelete='SET NULL'), nullable=True),
        sa.Column('custom_name', sa.String(), nullable=True),
        sa.Column('reps', sa.Integer(), nullable=True),
        sa.Column('reps_unit', sa.String(), nullable=True),
        sa.Column('weight_male', sa.Float(), nullable=True),
        sa.Column('weight_female', sa.Float(), nullable=True),
        sa.Column('weight_unit', sa.String(), nullable=True),
        sa.Column('distance', sa.Float(), nullable=True),
        sa.Column('distance_unit', sa.String(), nullable=True),
        sa.Column('time_seconds', sa.Integer(), nullable=True),
        sa.Column('calories', sa.Integer(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        'workout_scores',
        _id(),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('block_id', UUID, sa.ForeignKey('workout_blocks.id', ondelete='CASCADE'), nullable=True),
        sa.Column('score_type', sa.String(), nullable=False),
        sa.Column('score_value', sa.Float(), nullable=False),
        sa.Column('score_secondary', sa.Float(), nullable=True),
        sa.Column('is_rx', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "score_type in ('time','reps','rounds_reps','weight','calories','distance','points')",
            name='ck_workout_scores_score_type',
        ),
    )
    op.create_index(
        'ix_workout_scores_workout_member_block', 'workout_scores', ['workout_id', 'member_id', 'block_id'], unique=True
    )

    op.create_table(
        'personal_records',
        _id(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('exercise_id', UUID, sa.ForeignKey('exercises.id', ondelete='CASCADE'), nullable=False),
        sa.Column('record_type', sa.String(), nullable=False),
        sa.Column('record_value', sa.Float(), nullable=False),
        sa.Column('record_unit', sa.String(), nullable=False),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('achieved_at', sa.Date(), nullable=False, server_default=sa.text('CURRENT_DATE')),
        *_timestamps(),
    )
    op.create_index(
        'ix_personal_records_member_exercise_type',
        'personal_records',
        ['member_id', 'exercise_id', 'record_type'],
        unique=True,
    )

    # Planning
    op.create_table(
        'class_templates',
        _id(),
        _org_fk(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('class_type', sa.String(), nullable=False, server_default='group'),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('min_participants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('color', sa.String(), nullable=False, server_default='#3b82f6'),
        sa.Column('default_coach_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('default_location', sa.String(), nullable=True),
        sa.Column('requires_subscription', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('allowed_plan_types', JSONB, nullable=True),
        sa.Column('session_cost', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.CheckConstraint("duration_minutes between 15 and 480", name='ck_class_templates_duration'),
    )
    op.create_index('ix_class_templates_organization_id', 'class_templates', ['organization_id'])

    op.create_table(
        'classes',
        _id(),
        _org_fk(),
        sa.Column('template_id', UUID, sa.ForeignKey('class_templates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('class_type', sa.String(), nullable=False, server_default='group'),
        sa.Column('status', sa.String(), nullable=False, server_default='scheduled'),
        sa.Column('start_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('min_participants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_participants', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('waitlist_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('coach_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('room', sa.String(), nullable=True),
        sa.Column('color', sa.String(), nullable=False, server_default='#3b82f6'),
        sa.Column('recurrence_type', sa.String(), nullable=False, server_default='none'),
        sa.Column('recurrence_id', UUID, nullable=True),
        sa.Column('recurrence_end_date', sa.Date(), nullable=True),
        sa.Column('requires_subscription', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('drop_in_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('session_cost', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('allowed_plan_types', JSONB, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status in ('scheduled','in_progress','completed','cancelled')", name='ck_classes_status'),
        sa.CheckConstraint("current_participants >= 0", name='ck_classes_current_participants'),
        sa.CheckConstraint("waitlist_count >= 0", name='ck_classes_waitlist_count'),
    )
    op.create_index('ix_classes_organization_id_start_time', 'classes', ['organization_id', 'start_time'])
    op.create_index('ix_classes_recurrence_id', 'classes', ['recurrence_id'])

    op.create_table(
        'bookings',
        _id(),
        _org_fk(),
        sa.Column('class_id', UUID, sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subscription_id', UUID, sa.ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='confirmed'),
        sa.Column('waitlist_position', sa.Integer(), nullable=True),
        sa.Column('checked_in_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('checked_in_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_drop_in', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('sessions_deducted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_reason', sa.Text(), nullable=True),
        sa.Column('no_show_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status in ('confirmed','waitlist','cancelled','no_show','attended')",
            name='ck_bookings_status',
        ),
    )
    op.create_index('ix_bookings_class_id_status', 'bookings', ['class_id', 'status'])
    op.create_index('ix_bookings_member_id', 'bookings', ['member_id'])

    # Notifications
    op.create_table(
        'notification_settings',
        sa.Column('organization_id', UUID, sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('welcome_email', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('booking_confirmation_email', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('class_reminder_24h', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('class_reminder_2h', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('class_cancelled_email', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('subscription_expiring_30d', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('subscription_expiring_7d', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('subscription_expired', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('from_name', sa.String(100), nullable=False, server_default='Skali Prog'),
        sa.Column('reply_to', sa.String(320), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'member_notification_preferences',
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('push_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('receive_class_reminders', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('receive_subscription_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('receive_booking_confirmations', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('receive_marketing', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
    )

    op.create_table(
        'email_logs',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='SET NULL'), nullable=True),
        sa.Column('recipient_email', sa.String(320), nullable=False),
        sa.Column('recipient_name', sa.String(200), nullable=True),
        sa.Column('template_type', sa.String(50), nullable=False),
        sa.Column('subject', sa.String(200), nullable=False),
        sa.Column('metadata', JSONB, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider_message_id', sa.String(255), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('bounced_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('idx_email_logs_organization_id_created_at', 'email_logs', ['organization_id', 'created_at'])
    op.create_index('idx_email_logs_member_id', 'email_logs', ['member_id'])
    op.create_index('idx_email_logs_status', 'email_logs', ['status'])
    op.create_index('idx_email_logs_provider_message_id', 'email_logs', ['provider_message_id'])

    # TV display
    op.create_table(
        'tv_states',
        _id(),
        sa.Column(
            'organization_id', UUID, sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True
        ),
        sa.Column('mode', sa.String(), nullable=False, server_default='waiting'),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('timer_state', JSONB, nullable=True),
        sa.Column('teams_data', JSONB, nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("mode in ('waiting','workout','timer','leaderboard','teams')", name='ck_tv_states_mode'),
    )

    # RGPD
    op.create_table(
        'member_consents',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('consent_type', sa.String(), nullable=False),
        sa.Column('granted', sa.Boolean(), nullable=False),
        sa.Column('source', sa.String(), nullable=False, server_default='web'),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        'ix_member_consents_member_id_type_created_at',
        'member_consents',
        ['member_id', 'consent_type', 'created_at'],
    )

    op.create_table(
        'rgpd_requests',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('request_type', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('due_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('processed_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('processed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('export_file_url', sa.Text(), nullable=True),
        sa.Column('export_expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('export_data', JSONB, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status in ('pending','processing','completed','rejected','cancelled')",
            name='ck_rgpd_requests_status',
        ),
    )
    op.create_index('ix_rgpd_requests_organization_id_status', 'rgpd_requests', ['organization_id', 'status'])
    op.create_index('ix_rgpd_requests_member_id', 'rgpd_requests', ['member_id'])

    op.create_table(
        'rgpd_audit_logs',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='SET NULL'), nullable=True),
        sa.Column('actor_user_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', UUID, nullable=True),
        sa.Column('details', JSONB, nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        'ix_rgpd_audit_logs_organization_id_created_at', 'rgpd_audit_logs', ['organization_id', 'created_at']
    )

    # Discord
    op.create_table(
        'discord_configs',
        sa.Column('organization_id', UUID, sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('webhook_url', sa.Text(), nullable=True),
        sa.Column('wod_channel_webhook', sa.Text(), nullable=True),
        sa.Column('auto_post_wod', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('post_wod_time', sa.String(8), nullable=False, server_default='06:00'),
        sa.Column(
            'post_wod_days', JSONB, nullable=False,
            server_default=sa.text('\'["monday","tuesday","wednesday","thursday","friday"]\'::jsonb'),
        ),
        sa.Column(
            'notification_types', JSONB, nullable=False,
            server_default=sa.text(
                '\'{"welcome": true, "class_reminder": false, "subscription_alert": false, '
                '"achievement": true, "announcement": true}\'::jsonb'
            ),
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('last_wod_posted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('last_wod_workout_id', UUID, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'discord_logs',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='SET NULL'), nullable=True),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('class_id', UUID, sa.ForeignKey('classes.id', ondelete='SET NULL'), nullable=True),
        sa.Column('message_type', sa.String(30), nullable=False),
        sa.Column('webhook_url', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('embed_data', JSONB, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('discord_message_id', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.Column('sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('ix_discord_logs_organization_id_created_at', 'discord_logs', ['organization_id', 'created_at'])

    # Staff audit trail
    op.create_table(
        'audit_logs',
        _id(),
        _org_fk(ondelete='SET NULL', nullable=True),
        sa.Column('actor_user_id', UUID, sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action_type', sa.Text(), nullable=False),
        sa.Column('target_type', sa.Text(), nullable=True),
        sa.Column('target_id', UUID, nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('metadata', JSONB, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_audit_logs_organization_id_created_at', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index('ix_audit_logs_target', 'audit_logs', ['target_type', 'target_id'])

    op.create_table(
        'organization_invitations',
        _id(),
        _org_fk(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='owner'),
        sa.Column('token', sa.String(), nullable=False, unique=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('invited_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint("status in ('pending','accepted','expired','revoked')", name='ck_organization_invitations_status'),
        sa.CheckConstraint("role in ('owner','admin','coach','staff')", name='ck_organization_invitations_role'),
    )
    op.create_index('ix_organization_invitations_organization_id', 'organization_invitations', ['organization_id'])

    # Teams and cardio stations
    op.create_table(
        'teams',
        _id(),
        _org_fk(),
        sa.Column('class_id', UUID, sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=True),
        sa.Column('workout_id', UUID, sa.ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('color', sa.String(), nullable=False, server_default='#EF4444'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_teams_organization_id_class_id', 'teams', ['organization_id', 'class_id'])

    op.create_table(
        'team_members',
        _id(),
        sa.Column('team_id', UUID, sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('station', sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('team_id', 'member_id', name='uq_team_members_team_member'),
    )

    op.create_table(
        'cardio_stations',
        _id(),
        _org_fk(),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
    )
    op.create_index('ix_cardio_stations_organization_id_position', 'cardio_stations', ['organization_id', 'position'])

    op.create_table(
        'team_templates',
        _id(),
        _org_fk(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('config', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
    )

    # Workflow automation
    op.create_table(
        'workflows',
        _id(),
        _org_fk(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(), nullable=False, server_default='workflow'),
        sa.Column('color', sa.String(), nullable=False, server_default='#6366f1'),
        sa.Column('tags', JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('canvas_data', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('settings', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('total_executions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('successful_executions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_executions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_executed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('updated_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_workflows_organization_id_is_active', 'workflows', ['organization_id', 'is_active'])

    op.create_table(
        'workflow_runs',
        _id(),
        sa.Column('workflow_id', UUID, sa.ForeignKey('workflows.id', ondelete='CASCADE'), nullable=False),
        _org_fk(),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('triggered_by', sa.String(), nullable=False, server_default='trigger'),
        sa.Column('trigger_node_id', sa.String(), nullable=True),
        sa.Column('trigger_data', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('context', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('executed_by', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint(
            "status in ('pending','running','completed','failed','cancelled','waiting')",
            name='ck_workflow_runs_status',
        ),
    )
    op.create_index('ix_workflow_runs_workflow_id_created_at', 'workflow_runs', ['workflow_id', 'created_at'])

    op.create_table(
        'workflow_node_runs',
        _id(),
        sa.Column('run_id', UUID, sa.ForeignKey('workflow_runs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('node_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('output_data', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        'workflow_logs',
        _id(),
        sa.Column('run_id', UUID, sa.ForeignKey('workflow_runs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('node_id', sa.String(), nullable=True),
        sa.Column('level', sa.String(), nullable=False, server_default='info'),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(updated=False),
    )
    op.create_index('ix_workflow_logs_run_id_created_at', 'workflow_logs', ['run_id', 'created_at'])

    op.create_table(
        'workflow_scheduled_runs',
        _id(),
        sa.Column('run_id', UUID, sa.ForeignKey('workflow_runs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('workflow_id', UUID, sa.ForeignKey('workflows.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduled_for', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('next_node_ids', JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('executed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        'ix_workflow_scheduled_runs_status_scheduled_for', 'workflow_scheduled_runs', ['status', 'scheduled_for']
    )

    op.create_table(
        'member_notifications',
        _id(),
        _org_fk(),
        sa.Column('member_id', UUID, sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('type', sa.String(30), nullable=False, server_default='workflow'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('read_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        'idx_member_notifications_member_id_created_at', 'member_notifications', ['member_id', 'created_at']
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'member_notifications',
        'workflow_scheduled_runs',
        'workflow_logs',
        'workflow_node_runs',
        'workflow_runs',
        'workflows',
        'team_templates',
        'cardio_stations',
        'team_members',
        'teams',
        'organization_invitations',
        'audit_logs',
        'discord_logs',
        'discord_configs',
        'rgpd_audit_logs',
        'rgpd_requests',
        'member_consents',
        'tv_states',
        'email_logs',
        'member_notification_preferences',
        'notification_settings',
        'bookings',
        'classes',
        'class_templates',
        'personal_records',
        'workout_scores',
        'block_exercises',
        'workout_blocks',
        'workouts',
        'exercises',
        'payments',
        'subscriptions',
        'plans',
        'members',
        'organization_memberships',
        'organizations',
        'platform_plans',
        'users',
    ):
        op.drop_table(table)
