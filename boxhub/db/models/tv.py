import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


TV_MODES = ('waiting', 'workout', 'timer', 'leaderboard', 'teams')
TIMER_TYPES = ('countdown', 'countup', 'emom', 'tabata')


class TVState(Base):
    """What the box's display screen shows. One row per organization."""
    __tablename__ = 'tv_states'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True
    )
    mode = Column(String, nullable=False, default='waiting')
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True)
    timer_state = Column(JSONB, nullable=True)
    teams_data = Column(JSONB, nullable=True)
    message = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        CheckConstraint("mode in ('waiting','workout','timer','leaderboard','teams')", name='ck_tv_states_mode'),
    )
