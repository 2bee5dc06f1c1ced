"""
Team building for group workouts.

Random teams are dealt round-robin from a shuffled roster. With gender
balancing each gender is shuffled on its own and the groups are interleaved
before dealing. Cardio stations are dealt the same way: shuffled athletes
cycle through the active machines.
"""

import logging
import random
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.models.teams import CARDIO_STATION_TYPES, DEFAULT_TEAM_COLORS
from boxhub.db.repositories import teams as teams_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.services import tv_service

logger = logging.getLogger(__name__)


def _error(message: str, code: str = 'invalid') -> Dict[str, Any]:
    return {'success': False, 'error': message, 'code': code}


def interleave_by_gender(members: List[models.Member], rng: random.Random) -> List[uuid.UUID]:
    groups: Dict[str, List[uuid.UUID]] = {'male': [], 'female': [], 'other': []}
    for member in members:
        key = member.gender if member.gender in ('male', 'female') else 'other'
        groups[key].append(member.id)
    for ids in groups.values():
        rng.shuffle(ids)

    ordered: List[uuid.UUID] = []
    for i in range(max(len(ids) for ids in groups.values())):
        for key in ('male', 'female', 'other'):
            if i < len(groups[key]):
                ordered.append(groups[key][i])
    return ordered


def deal_round_robin(member_ids: List[uuid.UUID], team_count: int) -> List[List[uuid.UUID]]:
    """Member i goes to team i % n, at position i // n."""
    teams: List[List[uuid.UUID]] = [[] for _ in range(team_count)]
    for i, member_id in enumerate(member_ids):
        teams[i % team_count].append(member_id)
    return teams


def _check_links(db: Session, organization_id: uuid.UUID, class_id, workout_id) -> Optional[Dict[str, Any]]:
    if class_id is not None and planning_repo.get_class(db, organization_id, class_id) is None:
        return _error("Cours introuvable", 'not_found')
    if workout_id is not None and workouts_repo.get_workout(db, organization_id, workout_id) is None:
        return _error("WOD introuvable", 'not_found')
    return None


def _load_members(db: Session, organization_id: uuid.UUID, member_ids: List[uuid.UUID]):
    unique_ids = list(dict.fromkeys(member_ids))
    members = (
        db.query(models.Member)
        .filter(models.Member.organization_id == organization_id, models.Member.id.in_(unique_ids))
        .all()
    )
    if len(members) != len(unique_ids):
        return None
    by_id = {member.id: member for member in members}
    return [by_id[member_id] for member_id in unique_ids]


def create_team(db: Session, organization_id: uuid.UUID, payload: schemas.TeamCreate) -> Dict[str, Any]:
    problem = _check_links(db, organization_id, payload.class_id, payload.workout_id)
    if problem:
        return problem
    values = payload.model_dump()
    values['color'] = values['color'] or DEFAULT_TEAM_COLORS[0]
    team = teams_repo.create_team(db, organization_id, values)
    return {'success': True, 'team': team}


def add_member(db: Session, organization_id: uuid.UUID, team: models.Team, payload: schemas.TeamMemberAdd) -> Dict[str, Any]:
    member = db.get(models.Member, payload.member_id)
    if member is None or member.organization_id != organization_id:
        return _error("Membre introuvable", 'not_found')
    if teams_repo.get_team_member(db, team.id, member.id) is not None:
        return _error("Ce membre est deja dans l'equipe", 'conflict')
    entry = teams_repo.add_team_member(
        db, team.id, member.id,
        position=teams_repo.next_member_position(db, team.id),
        station=payload.station,
    )
    return {'success': True, 'entry': entry}


def generate_random_teams(
    db: Session,
    organization_id: uuid.UUID,
    payload: schemas.RandomTeamsCreate,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Replace the class's teams (if any) with freshly dealt ones."""
    rng = rng or random.Random()
    team_count = payload.team_count
    names = payload.team_names
    colors = payload.team_colors
    balance_by = payload.balance_by

    if payload.template_id is not None:
        template = teams_repo.get_template(db, organization_id, payload.template_id)
        if template is None:
            return _error("Modele introuvable", 'not_found')
        config = template.config or {}
        team_count = team_count or config.get('team_count')
        names = names or config.get('team_names') or None
        colors = colors or config.get('team_colors') or None
        if 'balance_by' not in payload.model_fields_set and config.get('balance_by') == 'gender':
            balance_by = 'gender'

    if not team_count:
        return _error("Nombre d'equipes requis")
    problem = _check_links(db, organization_id, payload.class_id, payload.workout_id)
    if problem:
        return problem
    members = _load_members(db, organization_id, payload.member_ids)
    if members is None:
        return _error("Membre introuvable", 'not_found')
    if team_count > len(members):
        return _error(f"Pas assez de membres pour {team_count} equipes")

    if balance_by == 'gender':
        ordered = interleave_by_gender(members, rng)
    else:
        ordered = [member.id for member in members]
        rng.shuffle(ordered)

    names = list(names or [])
    names += [f"Equipe {i + 1}" for i in range(len(names), team_count)]
    colors = list(colors or DEFAULT_TEAM_COLORS[:team_count])

    if payload.class_id is not None:
        removed = teams_repo.delete_teams_for_class(db, organization_id, payload.class_id, commit=False)
        if removed:
            logger.info("Replacing %d teams of class %s", removed, payload.class_id)

    created_ids = set()
    for i, roster in enumerate(deal_round_robin(ordered, team_count)):
        team = teams_repo.create_team(
            db,
            organization_id,
            {
                'name': names[i],
                'color': colors[i % len(colors)],
                'class_id': payload.class_id,
                'workout_id': payload.workout_id,
                'position': i,
            },
            commit=False,
        )
        created_ids.add(team.id)
        for position, member_id in enumerate(roster):
            teams_repo.add_team_member(db, team.id, member_id, position=position, commit=False)
    db.commit()
    teams = [t for t in teams_repo.list_teams(db, organization_id, payload.class_id) if t.id in created_ids]
    logger.info("Dealt %d members into %d teams (balance=%s)", len(ordered), team_count, balance_by)
    return {'success': True, 'teams': teams}


def assign_cardio_stations(
    db: Session,
    organization_id: uuid.UUID,
    payload: schemas.CardioAssignment,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    rng = rng or random.Random()
    stations = teams_repo.list_stations(db, organization_id, active_only=True, station_type=payload.station_type)
    if not stations:
        return _error("Aucune station disponible")
    shuffled = list(payload.member_ids)
    rng.shuffle(shuffled)
    assignments = []
    for i, member_id in enumerate(shuffled):
        station = stations[i % len(stations)]
        assignments.append({'member_id': member_id, 'station_id': station.id, 'station_name': station.name})
    return {'success': True, 'assignments': assignments}


def create_station(db: Session, organization_id: uuid.UUID, payload: schemas.CardioStationCreate) -> models.CardioStation:
    position = payload.position
    if position is None:
        position = teams_repo.next_station_position(db, organization_id)
    return teams_repo.create_stations(
        db, organization_id, [{'type': payload.type, 'name': payload.name, 'position': position}]
    )[0]


def bulk_create_stations(db: Session, organization_id: uuid.UUID, payload: schemas.CardioStationBulkCreate) -> List[models.CardioStation]:
    """`count` machines named "<prefix or type label> 1..n", appended after the existing ones."""
    prefix = payload.name_prefix or CARDIO_STATION_TYPES.get(payload.type, payload.type)
    start = teams_repo.next_station_position(db, organization_id)
    rows = [
        {'type': payload.type, 'name': f"{prefix} {i + 1}", 'position': start + i}
        for i in range(payload.count)
    ]
    return teams_repo.create_stations(db, organization_id, rows)


def teams_for_screen(teams: List[models.Team]) -> List[Dict[str, Any]]:
    return [
        {
            'name': team.name,
            'color': team.color,
            'members': [
                {'id': str(entry.member_id), 'name': entry.member.full_name, 'station': entry.station}
                for entry in team.members
            ],
        }
        for team in teams
    ]


def show_on_tv(db: Session, organization_id: uuid.UUID, class_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
    teams = teams_repo.list_teams(db, organization_id, class_id)
    if not teams:
        return _error("Aucune equipe a afficher", 'not_found')
    state = tv_service.show_teams(db, organization_id, teams_for_screen(teams))
    return {'success': True, 'state': state}
