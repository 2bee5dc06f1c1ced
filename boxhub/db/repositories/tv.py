"""
TV display state repository: one row per organization, last write wins.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict
from sqlalchemy.orm import Session

from boxhub.db import models


def get_tv_state(db: Session, organization_id: uuid.UUID):
    return db.query(models.TVState).filter(models.TVState.organization_id == organization_id).first()


def upsert_tv_state(db: Session, organization_id: uuid.UUID, values: Dict[str, Any]):
    state = get_tv_state(db, organization_id)
    if not state:
        state = models.TVState(organization_id=organization_id)
        db.add(state)
    for key, value in values.items():
        setattr(state, key, value)
    state.updated_at = models.now_utc()
    db.commit()
    db.refresh(state)
    return state
