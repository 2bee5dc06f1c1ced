"""
Teams API: class teams, cardio stations and saved team setups.

Coaches build teams during class, so everything here needs write access,
apart from listings which any staff role can read.
"""
import logging
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models, schemas
from boxhub.db.repositories import teams as teams_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, ensure_feature, raise_for_result
from boxhub.services import team_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}", tags=["teams"])


def _org(db: Session, org_id: uuid.UUID, current_user, level: str) -> models.Organization:
    org = ensure_org_access(db, org_id, current_user, level)
    ensure_feature(org, "teams")
    return org


def _team_or_404(db: Session, org_id: uuid.UUID, team_id: uuid.UUID) -> models.Team:
    team = teams_repo.get_team(db, org_id, team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


# === Teams ===

@router.get("/teams", response_model=List[schemas.Team])
def list_teams(
    org_id: uuid.UUID,
    class_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return teams_repo.list_teams(db, org_id, class_id)


@router.post("/teams", status_code=status.HTTP_201_CREATED, response_model=schemas.Team)
def create_team(
    org_id: uuid.UUID,
    payload: schemas.TeamCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return raise_for_result(team_service.create_team(db, org_id, payload))["team"]


@router.post("/teams/random", status_code=status.HTTP_201_CREATED, response_model=List[schemas.Team])
def create_random_teams(
    org_id: uuid.UUID,
    payload: schemas.RandomTeamsCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Deal the given members into teams; replaces the class's existing teams."""
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return raise_for_result(team_service.generate_random_teams(db, org_id, payload))["teams"]


@router.post("/teams/show-on-tv", response_model=schemas.TVState)
def show_teams_on_tv(
    org_id: uuid.UUID,
    payload: schemas.TeamsOnScreen,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return raise_for_result(team_service.show_on_tv(db, org_id, payload.class_id))["state"]


@router.delete("/teams/by-class/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class_teams(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    teams_repo.delete_teams_for_class(db, org_id, class_id)


@router.get("/teams/{team_id}", response_model=schemas.Team)
def get_team(
    org_id: uuid.UUID,
    team_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return _team_or_404(db, org_id, team_id)


@router.put("/teams/{team_id}", response_model=schemas.Team)
def update_team(
    org_id: uuid.UUID,
    team_id: uuid.UUID,
    payload: schemas.TeamUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    team = _team_or_404(db, org_id, team_id)
    return teams_repo.update_team(db, team, payload.model_dump(exclude_unset=True))


@router.delete("/teams/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    org_id: uuid.UUID,
    team_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    teams_repo.delete_team(db, _team_or_404(db, org_id, team_id))


@router.post("/teams/{team_id}/members", status_code=status.HTTP_201_CREATED, response_model=schemas.TeamMember)
def add_team_member(
    org_id: uuid.UUID,
    team_id: uuid.UUID,
    payload: schemas.TeamMemberAdd,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    team = _team_or_404(db, org_id, team_id)
    return raise_for_result(team_service.add_member(db, org_id, team, payload))["entry"]


@router.delete("/teams/{team_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_team_member(
    org_id: uuid.UUID,
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    team = _team_or_404(db, org_id, team_id)
    entry = teams_repo.get_team_member(db, team.id, member_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Member is not in this team")
    teams_repo.remove_team_member(db, entry)


@router.put("/teams/{team_id}/members/{member_id}/station", response_model=schemas.TeamMember)
def set_member_station(
    org_id: uuid.UUID,
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    payload: schemas.TeamMemberStation,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    team = _team_or_404(db, org_id, team_id)
    entry = teams_repo.get_team_member(db, team.id, member_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Member is not in this team")
    return teams_repo.set_station(db, entry, payload.station)


# === Cardio stations ===

@router.get("/cardio-stations", response_model=List[schemas.CardioStation])
def list_cardio_stations(
    org_id: uuid.UUID,
    active_only: bool = False,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return teams_repo.list_stations(db, org_id, active_only=active_only)


@router.post("/cardio-stations", status_code=status.HTTP_201_CREATED, response_model=schemas.CardioStation)
def create_cardio_station(
    org_id: uuid.UUID,
    payload: schemas.CardioStationCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return team_service.create_station(db, org_id, payload)


@router.post("/cardio-stations/bulk", status_code=status.HTTP_201_CREATED, response_model=List[schemas.CardioStation])
def bulk_create_cardio_stations(
    org_id: uuid.UUID,
    payload: schemas.CardioStationBulkCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return team_service.bulk_create_stations(db, org_id, payload)


@router.post("/cardio-stations/assign", response_model=List[schemas.StationAssignmentEntry])
def assign_cardio_stations(
    org_id: uuid.UUID,
    payload: schemas.CardioAssignment,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return raise_for_result(team_service.assign_cardio_stations(db, org_id, payload))["assignments"]


@router.put("/cardio-stations/{station_id}", response_model=schemas.CardioStation)
def update_cardio_station(
    org_id: uuid.UUID,
    station_id: uuid.UUID,
    payload: schemas.CardioStationUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    station = teams_repo.get_station(db, org_id, station_id)
    if station is None:
        raise HTTPException(status_code=404, detail="Station not found")
    return teams_repo.update_station(db, station, payload.model_dump(exclude_unset=True))


@router.delete("/cardio-stations/{station_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cardio_station(
    org_id: uuid.UUID,
    station_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    station = teams_repo.get_station(db, org_id, station_id)
    if station is None:
        raise HTTPException(status_code=404, detail="Station not found")
    teams_repo.delete_station(db, station)


# === Team templates ===

@router.get("/team-templates", response_model=List[schemas.TeamTemplate])
def list_team_templates(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return teams_repo.list_templates(db, org_id)


@router.post("/team-templates", status_code=status.HTTP_201_CREATED, response_model=schemas.TeamTemplate)
def create_team_template(
    org_id: uuid.UUID,
    payload: schemas.TeamTemplateCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    return teams_repo.create_template(db, org_id, payload.model_dump())


@router.delete("/team-templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team_template(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "write")
    template = teams_repo.get_template(db, org_id, template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    teams_repo.delete_template(db, template)
