"""
FastAPI app assembly: logging, middleware and router wiring.
"""
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from boxhub.api.audits import router as audits_router
from boxhub.api.billing import router as billing_router
from boxhub.api.cron import router as cron_router
from boxhub.api.dashboard import router as dashboard_router
from boxhub.api.discord import router as discord_router
from boxhub.api.member_portal import router as member_portal_router
from boxhub.api.members import router as members_router
from boxhub.api.notifications import router as notifications_router, webhook_router as email_webhook_router
from boxhub.api.orgs import router as orgs_router
from boxhub.api.planning import router as planning_router
from boxhub.api.platform import router as platform_router, invitations_router
from boxhub.api.rgpd import router as rgpd_router, export_router as rgpd_export_router
from boxhub.api.teams import router as teams_router
from boxhub.api.tv import router as tv_router, public_router as tv_public_router
from boxhub.api.users import router as users_router
from boxhub.api.workflows import router as workflows_router
from boxhub.api.workouts import router as workouts_router

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="BoxHub",
    description="Multi-tenant management API for CrossFit boxes: members, billing, planning, workouts and more.",
    version="1.0.0",
)

app.router.redirect_slashes = False


def _cors_origins():
    configured = os.getenv("CORS_ORIGINS")
    if configured:
        return [o.strip() for o in configured.split(",") if o.strip()]
    return [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router)
app.include_router(orgs_router)
app.include_router(members_router)
app.include_router(billing_router)
app.include_router(planning_router)
app.include_router(workouts_router)
app.include_router(notifications_router)
app.include_router(email_webhook_router)
app.include_router(cron_router)
app.include_router(tv_router)
app.include_router(tv_public_router)
app.include_router(rgpd_router)
app.include_router(rgpd_export_router)
app.include_router(discord_router)
app.include_router(member_portal_router)
app.include_router(audits_router)
app.include_router(dashboard_router)
app.include_router(teams_router)
app.include_router(workflows_router)
app.include_router(platform_router)
app.include_router(invitations_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "boxhub"}
