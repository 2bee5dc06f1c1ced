"""
Organization repository functions.

Implements CRUD for organizations and their staff memberships.
"""
from __future__ import annotations

import uuid
from typing import Optional
from sqlalchemy.orm import Session

from boxhub.db import schemas, models
from boxhub.db.models.organizations import DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR
from boxhub.api.permissions import membership_flags


DEFAULT_ORGANIZATION_SETTINGS = {
    "primary_color": DEFAULT_PRIMARY_COLOR,
    "secondary_color": DEFAULT_SECONDARY_COLOR,
    "timezone": "Europe/Paris",
}


def create_organization(db: Session, organization: schemas.OrganizationCreate, user_id: uuid.UUID):
    settings = dict(DEFAULT_ORGANIZATION_SETTINGS)
    settings.update(organization.settings or {})
    db_organization = models.Organization(
        name=organization.name,
        slug=organization.slug,
        email=organization.email,
        phone=organization.phone,
        address=organization.address,
        logo_url=organization.logo_url,
        settings=settings,
        created_by=user_id,
    )
    db.add(db_organization)
    db.flush()
    # Creator becomes owner
    perms = membership_flags('owner')
    db.add(models.OrganizationMembership(
        organization_id=db_organization.id,
        user_id=user_id,
        role='owner',
        can_read=perms['can_read'],
        can_write=perms['can_write'],
    ))
    db.commit()
    db.refresh(db_organization)
    return db_organization


def get_organization(db: Session, organization_id: uuid.UUID):
    return db.query(models.Organization).filter(models.Organization.id == organization_id).first()


def get_organization_by_slug(db: Session, slug: str):
    return db.query(models.Organization).filter(models.Organization.slug == slug).first()


def get_organization_by_name(db: Session, name: str):
    return db.query(models.Organization).filter(models.Organization.name == name).first()


def get_organizations(db: Session, user_id: uuid.UUID, skip: int = 0, limit: int = 100):
    return (
        db.query(models.Organization)
        .join(models.OrganizationMembership)
        .filter(models.OrganizationMembership.user_id == user_id)
        .order_by(models.Organization.name)
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_all_organizations(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.Organization).order_by(models.Organization.name).offset(skip).limit(limit).all()


def get_active_organizations(db: Session):
    return db.query(models.Organization).filter(models.Organization.is_active.is_(True)).all()


def update_organization(db: Session, organization_id: uuid.UUID, organization: schemas.OrganizationUpdate):
    db_organization = get_organization(db, organization_id)
    if db_organization:
        update_data = organization.model_dump(exclude_unset=True)
        new_settings = update_data.pop('settings', None)
        for key, value in update_data.items():
            setattr(db_organization, key, value)
        if new_settings is not None:
            # Merge; a new dict so the JSON column is flagged dirty
            merged = dict(db_organization.settings or {})
            merged.update(new_settings)
            db_organization.settings = merged
        db.commit()
        db.refresh(db_organization)
    return db_organization


def count_members(db: Session, organization_id: uuid.UUID) -> int:
    return db.query(models.Member).filter(models.Member.organization_id == organization_id).count()


def delete_organization(db: Session, organization_id: uuid.UUID):
    db_organization = get_organization(db, organization_id)
    if db_organization:
        db.query(models.OrganizationMembership).filter(
            models.OrganizationMembership.organization_id == organization_id
        ).delete(synchronize_session=False)
        db.delete(db_organization)
        db.commit()
        return True
    return False


def create_organization_member(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID, role: str):
    perms = membership_flags(role)
    db_member = models.OrganizationMembership(
        organization_id=organization_id,
        user_id=user_id,
        role=role,
        can_read=perms['can_read'],
        can_write=perms['can_write'],
    )
    db.add(db_member)
    db.commit()
    db.refresh(db_member)
    return db_member


def get_organization_member(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID):
    return (
        db.query(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.organization_id == organization_id,
            models.OrganizationMembership.user_id == user_id,
        )
        .first()
    )


def get_organization_members(db: Session, organization_id: uuid.UUID, skip: int = 0, limit: int = 100):
    """Staff memberships joined with their users."""
    return (
        db.query(models.OrganizationMembership, models.User)
        .join(models.User, models.User.id == models.OrganizationMembership.user_id)
        .filter(models.OrganizationMembership.organization_id == organization_id)
        .order_by(models.User.email)
        .offset(skip)
        .limit(limit)
        .all()
    )


def count_owners(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.organization_id == organization_id,
            models.OrganizationMembership.role == 'owner',
        )
        .count()
    )


def update_organization_member_role(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID, role: str):
    db_member = get_organization_member(db, organization_id, user_id)
    if db_member:
        perms = membership_flags(role)
        db_member.role = role
        db_member.can_read = perms['can_read']
        db_member.can_write = perms['can_write']
        db.commit()
        db.refresh(db_member)
    return db_member


def delete_organization_member(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID):
    db_member = get_organization_member(db, organization_id, user_id)
    if db_member:
        db.delete(db_member)
        db.commit()
        return True
    return False
