"""Tests for logging configuration."""

import logging
from uuid import UUID

import structlog

from gestao_contas.config.logging import (
    REDACTED,
    bind_session,
    clear_session,
    configure_logging,
    redact_sensitive,
)
from gestao_contas.context import SessionContext
from gestao_contas.models import ManagementContext


class TestRedaction:
    def test_masks_credentials_and_documents(self):
        event = {
            "event": "login",
            "email": "ana@example.com",
            "password": "secret",
            "access_token": "abc",
            "cpf": "12345678901",
        }

        result = redact_sensitive(None, "info", event)

        assert result["password"] == REDACTED
        assert result["access_token"] == REDACTED
        assert result["cpf"] == REDACTED
        assert result["email"] == "ana@example.com"

    def test_keeps_missing_values(self):
        assert redact_sensitive(None, "info", {"event": "x", "rg": None})["rg"] is None


class TestSessionBinding:
    """Tests for the per-task log context."""

    def test_bind_and_clear(self):
        context = SessionContext(UUID(int=1), ManagementContext.HOUSEHOLD)

        bind_session(context)
        bound = structlog.contextvars.get_contextvars()
        clear_session()

        assert bound["user_id"] == str(UUID(int=1))
        assert bound["management"] == "casa"
        assert "user_id" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    def test_quiets_http_loggers(self):
        try:
            configure_logging(level="DEBUG", format="json")

            assert logging.getLogger("httpx").level == logging.WARNING
            assert logging.getLogger("PIL").level == logging.WARNING
        finally:
            structlog.reset_defaults()
