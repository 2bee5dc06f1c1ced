import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


DEFAULT_TEAM_COLORS = (
    '#EF4444',  # red
    '#3B82F6',  # blue
    '#10B981',  # green
    '#F59E0B',  # amber
    '#8B5CF6',  # violet
    '#EC4899',  # pink
    '#06B6D4',  # cyan
    '#F97316',  # orange
)

CARDIO_STATION_TYPES = {
    'rower': 'Rower',
    'assault_bike': 'Assault Bike',
    'echo_bike': 'Echo Bike',
    'ski_erg': 'Ski Erg',
    'bike_erg': 'Bike Erg',
    'treadmill': 'Treadmill',
    'other': 'Autre',
}

TEAM_BALANCE_MODES = ('random', 'gender', 'skill_level', 'manual')


class Team(Base):
    """A team for a class or a workout, shown on the box screen."""
    __tablename__ = 'teams'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey('classes.id', ondelete='CASCADE'), nullable=True)
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default=DEFAULT_TEAM_COLORS[0])
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    members = relationship(
        "TeamMember",
        back_populates="team",
        order_by="TeamMember.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('ix_teams_organization_id_class_id', 'organization_id', 'class_id'),
    )


class TeamMember(Base):
    __tablename__ = 'team_members'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id = Column(UUID(as_uuid=True), ForeignKey('teams.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    # Cardio station name, e.g. "Rower 2"
    station = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    team = relationship("Team", back_populates="members")
    member = relationship("Member")

    __table_args__ = (
        UniqueConstraint('team_id', 'member_id', name='uq_team_members_team_member'),
    )


class CardioStation(Base):
    """A machine of the box (rower, bike, ...) that athletes rotate on."""
    __tablename__ = 'cardio_stations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_cardio_stations_organization_id_position', 'organization_id', 'position'),
    )


class TeamTemplate(Base):
    """Saved team setup: count, names, colors and balancing mode."""
    __tablename__ = 'team_templates'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # {team_count, team_names, team_colors, balance_by}
    config = Column(JSONB, nullable=False, default=dict)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
