import os

# Must be set before boxhub.db.database is imported so the in-memory engine is used
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.pop("DEV_MODE", None)
os.environ.pop("DATABASE_URL", None)

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

import boxhub.db.database as db_module
from boxhub.db import models
from boxhub.api.main import app
from boxhub.services import transactional_email_service
from boxhub.services.transactional_email_service import TransactionalEmailConfig, TransactionalEmailService
from boxhub.utils.feature_flags import FEATURES, refresh_feature_flag_cache

CRON_SECRET = os.environ["CRON_SECRET"]


@pytest.fixture(scope="session", autouse=True)
def create_schema_once():
    """Create all tables once per test session (in-memory SQLite lives as long as the engine)."""
    models.Base.metadata.create_all(bind=db_module.engine)
    yield
    models.Base.metadata.drop_all(bind=db_module.engine)


@pytest.fixture(autouse=True)
def clean_data():
    """Empty every table after each test without dropping the schema."""
    yield
    connection = db_module.engine.connect()
    trans = connection.begin()
    for table in reversed(models.Base.metadata.sorted_tables):
        connection.execute(table.delete())
    trans.commit()
    connection.close()


@pytest.fixture(autouse=True)
def _reset_runtime_env(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)
    monkeypatch.delenv("BOOKING_CANCELLATION_DEADLINE_HOURS", raising=False)
    for env_var, _ in FEATURES.values():
        monkeypatch.delenv(env_var, raising=False)
    refresh_feature_flag_cache()
    transactional_email_service.reset_transactional_email_service_for_tests()
    yield
    refresh_feature_flag_cache()
    transactional_email_service.reset_transactional_email_service_for_tests()


@pytest.fixture
def db_session():
    db = db_module.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(db_session):
    """Test client whose requests share the test's session."""
    def _override_get_db():
        yield db_session

    app.dependency_overrides[db_module.get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(db_module.get_db, None)


@pytest.fixture(autouse=True)
def email_service(monkeypatch):
    """Replace the provider with a recorder; templates still render for real."""
    renderer = TransactionalEmailService(TransactionalEmailConfig())
    fake = MagicMock()
    fake.render_template.side_effect = renderer.render_template
    fake.send_email = AsyncMock(return_value={"success": True, "provider": "fake", "message_id": "msg-1"})
    monkeypatch.setattr(transactional_email_service, "get_transactional_email_service", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def discord_post(monkeypatch):
    """Patch the outgoing webhook call; every post succeeds with message id 'discord-1'."""
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = {"id": "discord-1"}
    post = MagicMock(return_value=response)
    monkeypatch.setattr("boxhub.services.discord_service.requests.post", post)
    return post
