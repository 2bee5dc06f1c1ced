"""
Teams, their members, cardio stations and saved team templates.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from boxhub.db import models


def list_teams(db: Session, organization_id: uuid.UUID, class_id: Optional[uuid.UUID] = None) -> List[models.Team]:
    query = (
        db.query(models.Team)
        .options(selectinload(models.Team.members).selectinload(models.TeamMember.member))
        .filter(models.Team.organization_id == organization_id)
    )
    if class_id is not None:
        query = query.filter(models.Team.class_id == class_id)
    return query.order_by(models.Team.position, models.Team.created_at).all()


def get_team(db: Session, organization_id: uuid.UUID, team_id: uuid.UUID) -> Optional[models.Team]:
    return (
        db.query(models.Team)
        .filter(models.Team.organization_id == organization_id, models.Team.id == team_id)
        .first()
    )


def create_team(db: Session, organization_id: uuid.UUID, values: Dict[str, Any], commit: bool = True) -> models.Team:
    team = models.Team(organization_id=organization_id, **values)
    db.add(team)
    if commit:
        db.commit()
        db.refresh(team)
    else:
        db.flush()
    return team


def update_team(db: Session, team: models.Team, values: Dict[str, Any]) -> models.Team:
    for key, value in values.items():
        setattr(team, key, value)
    db.commit()
    db.refresh(team)
    return team


def delete_team(db: Session, team: models.Team) -> None:
    db.delete(team)
    db.commit()


def delete_teams_for_class(db: Session, organization_id: uuid.UUID, class_id: uuid.UUID, commit: bool = True) -> int:
    teams = (
        db.query(models.Team)
        .filter(models.Team.organization_id == organization_id, models.Team.class_id == class_id)
        .all()
    )
    for team in teams:
        db.delete(team)
    if commit:
        db.commit()
    else:
        db.flush()
    return len(teams)


def get_team_member(db: Session, team_id: uuid.UUID, member_id: uuid.UUID) -> Optional[models.TeamMember]:
    return (
        db.query(models.TeamMember)
        .filter(models.TeamMember.team_id == team_id, models.TeamMember.member_id == member_id)
        .first()
    )


def next_member_position(db: Session, team_id: uuid.UUID) -> int:
    highest = db.query(func.max(models.TeamMember.position)).filter(models.TeamMember.team_id == team_id).scalar()
    return 0 if highest is None else highest + 1


def add_team_member(
    db: Session,
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    *,
    position: int,
    station: Optional[str] = None,
    commit: bool = True,
) -> models.TeamMember:
    entry = models.TeamMember(team_id=team_id, member_id=member_id, position=position, station=station)
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    else:
        db.flush()
    return entry


def remove_team_member(db: Session, entry: models.TeamMember) -> None:
    db.delete(entry)
    db.commit()


def set_station(db: Session, entry: models.TeamMember, station: Optional[str]) -> models.TeamMember:
    entry.station = station
    db.commit()
    db.refresh(entry)
    return entry


# === Cardio stations ===

def list_stations(
    db: Session,
    organization_id: uuid.UUID,
    *,
    active_only: bool = False,
    station_type: Optional[str] = None,
) -> List[models.CardioStation]:
    query = db.query(models.CardioStation).filter(models.CardioStation.organization_id == organization_id)
    if active_only:
        query = query.filter(models.CardioStation.is_active.is_(True))
    if station_type:
        query = query.filter(models.CardioStation.type == station_type)
    return query.order_by(models.CardioStation.position, models.CardioStation.name).all()


def get_station(db: Session, organization_id: uuid.UUID, station_id: uuid.UUID) -> Optional[models.CardioStation]:
    return (
        db.query(models.CardioStation)
        .filter(models.CardioStation.organization_id == organization_id, models.CardioStation.id == station_id)
        .first()
    )


def next_station_position(db: Session, organization_id: uuid.UUID) -> int:
    highest = (
        db.query(func.max(models.CardioStation.position))
        .filter(models.CardioStation.organization_id == organization_id)
        .scalar()
    )
    return 0 if highest is None else highest + 1


def create_stations(db: Session, organization_id: uuid.UUID, rows: List[Dict[str, Any]]) -> List[models.CardioStation]:
    stations = [models.CardioStation(organization_id=organization_id, **row) for row in rows]
    db.add_all(stations)
    db.commit()
    for station in stations:
        db.refresh(station)
    return stations


def update_station(db: Session, station: models.CardioStation, values: Dict[str, Any]) -> models.CardioStation:
    for key, value in values.items():
        setattr(station, key, value)
    db.commit()
    db.refresh(station)
    return station


def delete_station(db: Session, station: models.CardioStation) -> None:
    db.delete(station)
    db.commit()


# === Templates ===

def list_templates(db: Session, organization_id: uuid.UUID) -> List[models.TeamTemplate]:
    return (
        db.query(models.TeamTemplate)
        .filter(models.TeamTemplate.organization_id == organization_id)
        .order_by(models.TeamTemplate.is_default.desc(), models.TeamTemplate.name)
        .all()
    )


def get_template(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID) -> Optional[models.TeamTemplate]:
    return (
        db.query(models.TeamTemplate)
        .filter(models.TeamTemplate.organization_id == organization_id, models.TeamTemplate.id == template_id)
        .first()
    )


def create_template(db: Session, organization_id: uuid.UUID, values: Dict[str, Any]) -> models.TeamTemplate:
    if values.get('is_default'):
        # A single default per organization
        (
            db.query(models.TeamTemplate)
            .filter(models.TeamTemplate.organization_id == organization_id, models.TeamTemplate.is_default.is_(True))
            .update({'is_default': False}, synchronize_session=False)
        )
    template = models.TeamTemplate(organization_id=organization_id, **values)
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, template: models.TeamTemplate) -> None:
    db.delete(template)
    db.commit()
