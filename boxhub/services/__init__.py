"""Business logic services package with public service helpers."""

from .transactional_email_service import (
    TransactionalEmailConfig,
    TransactionalEmailService,
    get_transactional_email_service,
    reset_transactional_email_service_for_tests,
)

__all__ = [
    "TransactionalEmailConfig",
    "TransactionalEmailService",
    "get_transactional_email_service",
    "reset_transactional_email_service_for_tests",
]
