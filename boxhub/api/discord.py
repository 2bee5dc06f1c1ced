"""
Discord webhook API: configuration and manual posts from staff.
"""
import logging
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models, schemas
from boxhub.db.repositories import discord as discord_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, raise_for_result
from boxhub.audit import log, AuditAction, AuditStatus
from boxhub.services.discord_service import DiscordService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/discord", tags=["discord"])


@router.get("/config", response_model=Optional[schemas.DiscordConfig])
def get_config(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return discord_repo.get_config(db, org_id)


@router.put("/config", response_model=schemas.DiscordConfig)
def update_config(
    org_id: uuid.UUID,
    payload: schemas.DiscordConfigUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Webhook URLs must be Discord webhook URLs; notification types are merged."""
    user, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "manage")
    result = raise_for_result(DiscordService(db, org).update_config(payload.model_dump(exclude_unset=True)))
    log(
        db,
        action=AuditAction.DISCORD_CONFIG_UPDATE,
        status=AuditStatus.SUCCESS,
        target_type="discord_config",
        target_id=org_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"fields": sorted(payload.model_dump(exclude_unset=True).keys())},
    )
    return result["config"]


@router.post("/test")
def test_webhook(
    org_id: uuid.UUID,
    payload: schemas.DiscordWebhookTest,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "manage")
    result = raise_for_result(DiscordService(db, org).test_webhook(payload.webhook_url))
    return {"success": True, "message_id": result.get("message_id")}


@router.post("/wod/{workout_id}")
def post_wod(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "write")
    workout = workouts_repo.get_workout(db, org_id, workout_id)
    if not workout:
        raise HTTPException(status_code=404, detail="Workout not found")
    result = raise_for_result(DiscordService(db, org).send_wod(workout))
    return {"success": True, "log_id": result["log_id"], "message_id": result.get("message_id")}


@router.post("/classes/{class_id}/reminder")
def post_class_reminder(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "write")
    gym_class = planning_repo.get_class(db, org_id, class_id)
    if not gym_class:
        raise HTTPException(status_code=404, detail="Class not found")
    coach_name = None
    if gym_class.coach_id:
        coach = db.query(models.User).filter(models.User.id == gym_class.coach_id).first()
        coach_name = coach.display_name or coach.email if coach else None
    result = DiscordService(db, org).send_class_reminder(gym_class, coach_name=coach_name)
    if result.get("skipped"):
        raise HTTPException(status_code=400, detail=result["error"])
    raise_for_result(result)
    return {"success": True, "log_id": result["log_id"]}


@router.post("/announcement")
def post_announcement(
    org_id: uuid.UUID,
    payload: schemas.DiscordAnnouncement,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "manage")
    result = raise_for_result(DiscordService(db, org).send_announcement(payload.title, payload.message))
    return {"success": True, "log_id": result["log_id"]}


@router.post("/message")
def post_custom_message(
    org_id: uuid.UUID,
    payload: schemas.DiscordCustomMessage,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "manage")
    result = raise_for_result(DiscordService(db, org).send_custom(payload.content))
    return {"success": True, "log_id": result["log_id"]}


@router.get("/logs", response_model=List[schemas.DiscordLog])
def list_logs(
    org_id: uuid.UUID,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return discord_repo.list_logs(db, org_id, limit=min(limit, 200))
