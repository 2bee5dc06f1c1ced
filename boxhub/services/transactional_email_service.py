"""
Transactional Email Service

Delivers member emails (welcome, booking confirmations, reminders, ...)
through a transactional provider, selected with EMAIL_PROVIDER:

- Resend
- SendGrid
- Mailgun (HTTP API via requests)
- SMTP (aiosmtplib), for self-hosted relays
"""

import os
import re
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List

import aiosmtplib
import requests
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailProvider(Enum):
    """Supported email service providers."""
    RESEND = "resend"
    SENDGRID = "sendgrid"
    MAILGUN = "mailgun"
    SMTP = "smtp"


class TransactionalEmailConfig:
    """Configuration for transactional email services."""

    def __init__(self):
        self.provider = EmailProvider(os.getenv('EMAIL_PROVIDER', 'resend').lower())

        self.from_email = os.getenv('FROM_EMAIL', 'noreply@boxhub.com')
        self.from_name = os.getenv('FROM_NAME', 'BoxHub')
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')

        self.resend_api_key = os.getenv('RESEND_API_KEY', '')
        self.sendgrid_api_key = os.getenv('SENDGRID_API_KEY', '')
        self.mailgun_api_key = os.getenv('MAILGUN_API_KEY', '')
        self.mailgun_domain = os.getenv('MAILGUN_DOMAIN', '')

        self.smtp_host = os.getenv('SMTP_HOST', '')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'false').lower() == 'true'
        self.smtp_start_tls = os.getenv('SMTP_START_TLS', 'true').lower() == 'true'

        self.template_dir = os.getenv('EMAIL_TEMPLATE_DIR', str(DEFAULT_TEMPLATE_DIR))

    def is_configured(self) -> bool:
        """Check if the selected provider is properly configured."""
        if not self.from_email:
            return False
        if self.provider == EmailProvider.RESEND:
            return bool(self.resend_api_key)
        if self.provider == EmailProvider.SENDGRID:
            return bool(self.sendgrid_api_key)
        if self.provider == EmailProvider.MAILGUN:
            return bool(self.mailgun_api_key and self.mailgun_domain)
        if self.provider == EmailProvider.SMTP:
            return bool(self.smtp_host)
        return False

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.from_email:
            errors.append("FROM_EMAIL is required")

        if self.provider == EmailProvider.RESEND and not self.resend_api_key:
            errors.append("RESEND_API_KEY is required for Resend provider")
        elif self.provider == EmailProvider.SENDGRID and not self.sendgrid_api_key:
            errors.append("SENDGRID_API_KEY is required for SendGrid provider")
        elif self.provider == EmailProvider.MAILGUN:
            if not self.mailgun_api_key:
                errors.append("MAILGUN_API_KEY is required for Mailgun provider")
            if not self.mailgun_domain:
                errors.append("MAILGUN_DOMAIN is required for Mailgun provider")
        elif self.provider == EmailProvider.SMTP:
            if not self.smtp_host:
                errors.append("SMTP_HOST is required for SMTP provider")
            if self.smtp_use_tls and self.smtp_start_tls:
                errors.append("SMTP_USE_TLS and SMTP_START_TLS cannot both be enabled")
        return errors


class _ProviderBase:
    name = ""

    def __init__(self, config: TransactionalEmailConfig):
        self.config = config

    def _sender(self, from_name: Optional[str]) -> str:
        return f"{from_name or self.config.from_name} <{self.config.from_email}>"

    def _failure(self, error: str) -> Dict[str, Any]:
        return {'success': False, 'provider': self.name, 'error': error}


class ResendEmailService(_ProviderBase):
    """Email service implementation for Resend."""
    name = "resend"

    def __init__(self, config: TransactionalEmailConfig):
        super().__init__(config)
        import resend
        resend.api_key = self.config.resend_api_key
        self.client = resend

    async def send_email(self, to_email, subject, html_content, text_content=None, from_name=None, reply_to=None) -> Dict[str, Any]:
        try:
            email_data = {
                "from": self._sender(from_name),
                "to": [to_email],
                "subject": subject,
                "html": html_content,
            }
            if text_content:
                email_data["text"] = text_content
            if reply_to or self.config.reply_to_email:
                email_data["reply_to"] = reply_to or self.config.reply_to_email

            result = self.client.Emails.send(email_data)
            return {
                'success': True,
                'provider': self.name,
                'message_id': result['id'],
                'provider_response': result,
            }
        except Exception as e:
            return self._failure(str(e))


class SendGridEmailService(_ProviderBase):
    """Email service implementation for SendGrid."""
    name = "sendgrid"

    def __init__(self, config: TransactionalEmailConfig):
        super().__init__(config)
        from sendgrid import SendGridAPIClient
        self.client = SendGridAPIClient(api_key=self.config.sendgrid_api_key)

    async def send_email(self, to_email, subject, html_content, text_content=None, from_name=None, reply_to=None) -> Dict[str, Any]:
        try:
            from sendgrid.helpers.mail import Mail, From, To, Subject, HtmlContent, PlainTextContent, ReplyTo

            mail = Mail(
                from_email=From(self.config.from_email, from_name or self.config.from_name),
                to_emails=To(to_email),
                subject=Subject(subject),
                html_content=HtmlContent(html_content),
            )
            if text_content:
                mail.plain_text_content = PlainTextContent(text_content)
            if reply_to or self.config.reply_to_email:
                mail.reply_to = ReplyTo(reply_to or self.config.reply_to_email)

            response = self.client.send(mail)
            return {
                'success': True,
                'provider': self.name,
                'message_id': response.headers.get('X-Message-Id', ''),
                'status_code': response.status_code,
            }
        except Exception as e:
            return self._failure(str(e))


class MailgunEmailService(_ProviderBase):
    """Email service implementation for Mailgun."""
    name = "mailgun"

    def __init__(self, config: TransactionalEmailConfig):
        super().__init__(config)
        self.base_url = f"https://api.mailgun.net/v3/{self.config.mailgun_domain}"

    async def send_email(self, to_email, subject, html_content, text_content=None, from_name=None, reply_to=None) -> Dict[str, Any]:
        try:
            data = {
                "from": self._sender(from_name),
                "to": to_email,
                "subject": subject,
                "html": html_content,
            }
            if text_content:
                data["text"] = text_content
            if reply_to or self.config.reply_to_email:
                data["h:Reply-To"] = reply_to or self.config.reply_to_email

            response = requests.post(
                f"{self.base_url}/messages",
                auth=("api", self.config.mailgun_api_key),
                data=data,
                timeout=15,
            )
            if response.status_code == 200:
                result = response.json()
                return {
                    'success': True,
                    'provider': self.name,
                    'message_id': result.get('id', ''),
                    'provider_response': result,
                }
            return self._failure(f"HTTP {response.status_code}: {response.text}")
        except Exception as e:
            return self._failure(str(e))


class SmtpEmailService(_ProviderBase):
    """Email service implementation for a plain SMTP relay."""
    name = "smtp"

    async def send_email(self, to_email, subject, html_content, text_content=None, from_name=None, reply_to=None) -> Dict[str, Any]:
        try:
            message = MIMEMultipart('alternative')
            message['From'] = self._sender(from_name)
            message['To'] = to_email
            message['Subject'] = subject
            message['Message-ID'] = make_msgid(domain=self.config.from_email.split('@')[-1])
            if reply_to or self.config.reply_to_email:
                message['Reply-To'] = reply_to or self.config.reply_to_email
            if text_content:
                message.attach(MIMEText(text_content, 'plain', 'utf-8'))
            message.attach(MIMEText(html_content, 'html', 'utf-8'))

            smtp_kwargs = {
                'hostname': self.config.smtp_host,
                'port': self.config.smtp_port,
                'use_tls': self.config.smtp_use_tls,
                'start_tls': self.config.smtp_start_tls and not self.config.smtp_use_tls,
            }
            if self.config.smtp_username and self.config.smtp_password:
                smtp_kwargs['username'] = self.config.smtp_username
                smtp_kwargs['password'] = self.config.smtp_password
            await aiosmtplib.send(message, **smtp_kwargs)
            return {
                'success': True,
                'provider': self.name,
                'message_id': message['Message-ID'],
            }
        except Exception as e:
            return self._failure(f"SMTP sending failed: {e}")


_PROVIDER_CLASSES = {
    EmailProvider.RESEND: ResendEmailService,
    EmailProvider.SENDGRID: SendGridEmailService,
    EmailProvider.MAILGUN: MailgunEmailService,
    EmailProvider.SMTP: SmtpEmailService,
}


class TransactionalEmailService:
    """Main transactional email service that delegates to provider implementations."""

    def __init__(self, config: Optional[TransactionalEmailConfig] = None):
        self.config = config or TransactionalEmailConfig()
        self.provider_service = None
        self.template_env = None
        self._setup_provider()
        self._setup_templates()

    def _setup_provider(self):
        if not self.config.is_configured():
            logger.warning("Email service not configured (provider=%s)", self.config.provider.value)
            return
        try:
            self.provider_service = _PROVIDER_CLASSES[self.config.provider](self.config)
            logger.info("Initialized %s email service", self.config.provider.value)
        except Exception as e:
            logger.error("Failed to initialize email provider %s: %s", self.config.provider.value, e)

    def _setup_templates(self):
        template_path = Path(self.config.template_dir)
        if not template_path.exists():
            logger.warning("Email template directory not found: %s", template_path)
        self.template_env = Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=select_autoescape(['html']),
        )

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        from_name: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email via the configured transactional email service.

        Returns:
            Dict with 'success', 'provider', 'message_id', and 'error' keys
        """
        if not self.provider_service:
            return {
                'success': False,
                'error': 'Email service not configured or initialization failed'
            }

        try:
            logger.info("Sending email to %s via %s", to_email, self.config.provider.value)
            result = await self.provider_service.send_email(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
                from_name=from_name,
                reply_to=reply_to,
            )
            if result['success']:
                logger.info("Email sent to %s via %s", to_email, result['provider'])
            else:
                logger.error("Email sending failed: %s", result['error'])
            return result
        except Exception as e:
            error_msg = f"Email service error: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return {
                'success': False,
                'error': error_msg
            }

    def render_template(self, template_name: str, context: Dict[str, Any]) -> tuple[str, str]:
        """
        Render email template with context.

        Returns:
            Tuple of (html_content, text_content)
        """
        try:
            html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        except Exception as e:
            raise RuntimeError(f"Template rendering failed for {template_name}: {e}") from e

        try:
            text_content = self.template_env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_content = self._html_to_text(html_content)
        return html_content, text_content

    def _html_to_text(self, html_content: str) -> str:
        """Convert HTML to basic text content."""
        text = re.sub(r'<(style|script)[^>]*>.*?</\1>', '', html_content, flags=re.S | re.I)
        text = re.sub(r'<[^>]+>', '', text)
        text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
        text = text.replace('&quot;', '"').replace('&#39;', "'")
        text = re.sub(r'\s+', ' ', text).strip()
        return text

    async def test_connection(self) -> Dict[str, Any]:
        """Test email service configuration."""
        if not self.config.is_configured():
            return {'success': False, 'error': 'Email service not configured'}

        validation_errors = self.config.validate()
        if validation_errors:
            return {'success': False, 'error': f"Configuration errors: {', '.join(validation_errors)}"}

        if not self.provider_service:
            return {'success': False, 'error': 'Email provider service not initialized'}

        return {
            'success': True,
            'provider': self.config.provider.value,
            'message': f"Email service configured and ready ({self.config.provider.value})"
        }


_email_service = None


def get_transactional_email_service() -> TransactionalEmailService:
    """Get singleton transactional email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = TransactionalEmailService()
    return _email_service


def reset_transactional_email_service_for_tests() -> None:
    global _email_service
    _email_service = None
