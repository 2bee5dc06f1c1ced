import uuid
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc, today_utc


MEMBER_STATUSES = ('active', 'inactive', 'suspended', 'archived')
GENDERS = ('male', 'female', 'other')


class Member(Base):
    __tablename__ = 'members'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    # Set when the member has an account for the member portal
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    member_number = Column(String, nullable=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    emergency_contact = Column(JSONB, nullable=False, default=dict)
    medical_info = Column(JSONB, nullable=False, default=dict)
    tags = Column(JSONB, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default='active')
    joined_at = Column(Date, nullable=False, default=today_utc)
    avatar_url = Column(Text, nullable=True)
    last_data_export_at = Column(DateTime(timezone=True), nullable=True)
    anonymized_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_members_organization_id_status', 'organization_id', 'status'),
        Index('ix_members_organization_id_last_name', 'organization_id', 'last_name'),
        Index('ix_members_user_id', 'user_id'),
        CheckConstraint("status in ('active','inactive','suspended','archived')", name='ck_members_status'),
        CheckConstraint("gender is null or gender in ('male','female','other')", name='ck_members_gender'),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
