from unittest.mock import AsyncMock, MagicMock

import pytest

from boxhub.services import transactional_email_service as tes
from boxhub.services.transactional_email_service import (
    EmailProvider,
    TransactionalEmailConfig,
    TransactionalEmailService,
)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for k in [
        "EMAIL_PROVIDER",
        "FROM_EMAIL",
        "FROM_NAME",
        "REPLY_TO_EMAIL",
        "RESEND_API_KEY",
        "SENDGRID_API_KEY",
        "MAILGUN_API_KEY",
        "MAILGUN_DOMAIN",
        "SMTP_HOST",
        "SMTP_USE_TLS",
        "SMTP_START_TLS",
        "EMAIL_TEMPLATE_DIR",
    ]:
        monkeypatch.delenv(k, raising=False)


def test_default_config_is_resend_and_unconfigured():
    config = TransactionalEmailConfig()
    assert config.provider == EmailProvider.RESEND
    assert config.from_name == "BoxHub"
    assert config.is_configured() is False
    assert config.validate() == ["RESEND_API_KEY is required for Resend provider"]


def test_smtp_config_validation(monkeypatch):
    monkeypatch.setenv("EMAIL_PROVIDER", "smtp")
    monkeypatch.setenv("SMTP_USE_TLS", "true")
    config = TransactionalEmailConfig()
    assert config.is_configured() is False
    errors = config.validate()
    assert "SMTP_HOST is required for SMTP provider" in errors
    assert "SMTP_USE_TLS and SMTP_START_TLS cannot both be enabled" in errors


def test_mailgun_needs_key_and_domain(monkeypatch):
    monkeypatch.setenv("EMAIL_PROVIDER", "mailgun")
    monkeypatch.setenv("MAILGUN_API_KEY", "key")
    config = TransactionalEmailConfig()
    assert config.is_configured() is False
    assert config.validate() == ["MAILGUN_DOMAIN is required for Mailgun provider"]


def test_render_welcome_template():
    svc = TransactionalEmailService()
    html, text = svc.render_template("welcome", {
        "organization_name": "CrossFit Test",
        "member_name": "Jamie Dupont",
        "login_url": "https://app.example.com/login",
        "primary_color": "#ff0000",
    })
    assert "Jamie Dupont" in html
    assert "CrossFit Test" in html
    assert "Bienvenue Jamie Dupont !" in text
    assert "https://app.example.com/login" in text


def test_custom_message_splits_lines_and_escapes_html():
    svc = TransactionalEmailService()
    html, text = svc.render_template("custom_message", {
        "organization_name": "Box",
        "member_name": "Sam",
        "message": "Premier paragraphe\n\n<b>Second</b>",
    })
    assert "<p>Premier paragraphe</p>" in html
    assert "&lt;b&gt;Second&lt;/b&gt;" in html
    assert "<b>Second</b>" in text


def test_unknown_template_raises():
    svc = TransactionalEmailService()
    with pytest.raises(RuntimeError, match="Template rendering failed for nope"):
        svc.render_template("nope", {})


def test_html_to_text_strips_tags():
    svc = TransactionalEmailService()
    assert svc._html_to_text("<style>p{}</style><p>Hello &amp; <b>bye</b></p>") == "Hello & bye"


@pytest.mark.asyncio
async def test_send_without_provider_fails_cleanly():
    svc = TransactionalEmailService()
    out = await svc.send_email("u@example.com", "Subject", "<b>Hi</b>")
    assert out["success"] is False
    assert "not configured" in out["error"]


@pytest.mark.asyncio
async def test_resend_provider_success(monkeypatch):
    resend = pytest.importorskip("resend")
    monkeypatch.setenv("EMAIL_PROVIDER", "resend")
    monkeypatch.setenv("RESEND_API_KEY", "rk")
    sent = {}

    def _send(data):
        sent.update(data)
        return {"id": "msg-1"}

    monkeypatch.setattr(resend.Emails, "send", _send)

    svc = TransactionalEmailService()
    out = await svc.send_email("u@example.com", "Subject", "<b>Hi</b>", "Hi", from_name="My Box")
    assert out["success"] is True
    assert out["provider"] == "resend"
    assert out["message_id"] == "msg-1"
    assert sent["from"] == "My Box <noreply@boxhub.com>"
    assert sent["to"] == ["u@example.com"]
    assert sent["text"] == "Hi"


@pytest.mark.asyncio
async def test_mailgun_provider_posts_form(monkeypatch):
    monkeypatch.setenv("EMAIL_PROVIDER", "mailgun")
    monkeypatch.setenv("MAILGUN_API_KEY", "mk")
    monkeypatch.setenv("MAILGUN_DOMAIN", "mg.example.com")
    response = MagicMock(status_code=200)
    response.json.return_value = {"id": "<mg-1>"}
    post = MagicMock(return_value=response)
    monkeypatch.setattr(tes.requests, "post", post)

    svc = TransactionalEmailService()
    out = await svc.send_email("u@example.com", "Subject", "<p>x</p>", reply_to="desk@example.com")

    assert out == {"success": True, "provider": "mailgun", "message_id": "<mg-1>", "provider_response": {"id": "<mg-1>"}}
    args, kwargs = post.call_args
    assert args[0] == "https://api.mailgun.net/v3/mg.example.com/messages"
    assert kwargs["auth"] == ("api", "mk")
    assert kwargs["data"]["h:Reply-To"] == "desk@example.com"


@pytest.mark.asyncio
async def test_smtp_provider_uses_aiosmtplib(monkeypatch):
    monkeypatch.setenv("EMAIL_PROVIDER", "smtp")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    send = AsyncMock()
    monkeypatch.setattr(tes.aiosmtplib, "send", send)

    svc = TransactionalEmailService()
    out = await svc.send_email("u@example.com", "Subject", "<p>x</p>", "x")

    assert out["success"] is True
    assert out["provider"] == "smtp"
    kwargs = send.call_args.kwargs
    assert kwargs["hostname"] == "smtp.example.com"
    assert kwargs["start_tls"] is True
    assert kwargs["use_tls"] is False


@pytest.mark.asyncio
async def test_smtp_failure_is_reported(monkeypatch):
    monkeypatch.setenv("EMAIL_PROVIDER", "smtp")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(tes.aiosmtplib, "send", AsyncMock(side_effect=OSError("refused")))

    out = await TransactionalEmailService().send_email("u@example.com", "S", "<p>x</p>")
    assert out["success"] is False
    assert "refused" in out["error"]


@pytest.mark.asyncio
async def test_test_connection(monkeypatch):
    assert (await TransactionalEmailService().test_connection())["success"] is False

    monkeypatch.setenv("EMAIL_PROVIDER", "smtp")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    result = await TransactionalEmailService().test_connection()
    assert result["success"] is True
    assert result["provider"] == "smtp"

