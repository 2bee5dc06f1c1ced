"""
Dashboard API: headline numbers and the revenue/attendance series for charts.
"""
from typing import List
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.api.deps import get_current_user_context, ensure_org_access
from boxhub.services import dashboard_service

router = APIRouter(prefix="/organizations/{org_id}/dashboard", tags=["dashboard"])


@router.get("/", response_model=schemas.DashboardStats)
def get_dashboard(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return dashboard_service.get_dashboard_stats(db, org_id)


@router.get("/revenue", response_model=List[schemas.RevenuePoint])
def revenue(
    org_id: uuid.UUID,
    months: int = Query(default=6, ge=1, le=24),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Paid revenue per month; billing figures need manager access."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return dashboard_service.revenue_by_month(db, org_id, months=months)


@router.get("/attendance", response_model=List[schemas.AttendancePoint])
def attendance(
    org_id: uuid.UUID,
    days: int = Query(default=7, ge=1, le=90),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return dashboard_service.attendance_by_day(db, org_id, days=days)
