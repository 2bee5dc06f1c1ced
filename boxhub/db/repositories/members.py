"""
Member repository functions.

Listing, counting and CRUD for gym members. Deleting a member archives it.
"""
from __future__ import annotations

import math
import uuid
from typing import Iterable, Optional
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from boxhub.db import schemas, models


def _member_query(db: Session, organization_id: uuid.UUID, status: Optional[str] = None, search: Optional[str] = None):
    query = db.query(models.Member).filter(models.Member.organization_id == organization_id)
    if status:
        query = query.filter(models.Member.status == status)
    else:
        query = query.filter(models.Member.status != 'archived')
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(models.Member.first_name).like(pattern),
                func.lower(models.Member.last_name).like(pattern),
                func.lower(models.Member.email).like(pattern),
            )
        )
    return query


def list_members(
    db: Session,
    organization_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
):
    query = _member_query(db, organization_id, status=status, search=search)
    total = query.count()
    rows = (
        query.order_by(models.Member.last_name, models.Member.first_name)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "members": rows,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }


def get_all_members(db: Session, organization_id: uuid.UUID, status: Optional[str] = None):
    return (
        _member_query(db, organization_id, status=status)
        .order_by(models.Member.last_name, models.Member.first_name)
        .all()
    )


def count_members_by_status(db: Session, organization_id: uuid.UUID) -> dict:
    rows = (
        db.query(models.Member.status, func.count(models.Member.id))
        .filter(models.Member.organization_id == organization_id)
        .group_by(models.Member.status)
        .all()
    )
    by_status = {status: count for status, count in rows}
    return {
        "total": sum(count for status, count in by_status.items() if status != 'archived'),
        "active": by_status.get('active', 0),
        "inactive": by_status.get('inactive', 0),
        "suspended": by_status.get('suspended', 0),
    }


def get_member(db: Session, organization_id: uuid.UUID, member_id: uuid.UUID):
    return (
        db.query(models.Member)
        .filter(models.Member.id == member_id, models.Member.organization_id == organization_id)
        .first()
    )


def get_member_by_id(db: Session, member_id: uuid.UUID):
    return db.query(models.Member).filter(models.Member.id == member_id).first()


def get_members_by_ids(db: Session, organization_id: uuid.UUID, member_ids: Iterable[uuid.UUID]):
    ids = list(member_ids)
    if not ids:
        return []
    return (
        db.query(models.Member)
        .filter(models.Member.organization_id == organization_id, models.Member.id.in_(ids))
        .all()
    )


def get_member_by_email(db: Session, organization_id: uuid.UUID, email: str):
    return (
        db.query(models.Member)
        .filter(
            models.Member.organization_id == organization_id,
            func.lower(models.Member.email) == email.strip().lower(),
        )
        .first()
    )


def create_member(db: Session, organization_id: uuid.UUID, member: schemas.MemberCreate, commit: bool = True):
    data = member.model_dump(exclude_none=True)
    db_member = models.Member(organization_id=organization_id, **data)
    db.add(db_member)
    if commit:
        db.commit()
        db.refresh(db_member)
    else:
        db.flush()
    return db_member


def update_member(db: Session, organization_id: uuid.UUID, member_id: uuid.UUID, member: schemas.MemberUpdate):
    db_member = get_member(db, organization_id, member_id)
    if db_member:
        for key, value in member.model_dump(exclude_unset=True).items():
            setattr(db_member, key, value)
        db.commit()
        db.refresh(db_member)
    return db_member


def archive_member(db: Session, organization_id: uuid.UUID, member_id: uuid.UUID):
    db_member = get_member(db, organization_id, member_id)
    if db_member:
        db_member.status = 'archived'
        db.commit()
        db.refresh(db_member)
    return db_member


def count_new_members_since(db: Session, organization_id: uuid.UUID, since) -> int:
    return (
        db.query(models.Member)
        .filter(
            models.Member.organization_id == organization_id,
            models.Member.status != 'archived',
            models.Member.joined_at >= since,
        )
        .count()
    )
