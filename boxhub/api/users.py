"""
Users API endpoints.

The signed-in account: identity, staff memberships, linked member profiles
and display name edits.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.api.deps import get_current_user_context
from boxhub.utils.feature_flags import get_feature_flags

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _user_info(user, current_user) -> dict:
    return {
        "authenticated": True,
        "user_id": str(user.id),
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": bool(user.is_superadmin),
        "memberships": current_user.get("memberships") or [],
        "member_profiles": current_user.get("member_profiles") or [],
        "features": dict(get_feature_flags()),
    }


@router.get("/me")
def get_me(user_context = Depends(get_current_user_context)):
    """Return the authenticated user with staff memberships and member profiles."""
    user, current_user = user_context
    return _user_info(user, current_user)


@router.patch("/me")
def update_me(
    payload: dict,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    display_name = payload.get("display_name")

    if display_name is not None:
        s = str(display_name).strip()
        if len(s) == 0 or len(s) > 80:
            raise HTTPException(status_code=422, detail="display_name must be 1..80 characters")
        user.display_name = s
        db.commit()
        db.refresh(user)
        logger.info("User %s renamed", user.id)

    return _user_info(user, current_user)
