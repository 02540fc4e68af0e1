"""Tests for configuration, logging setup and the logging audit sink."""

import pytest
from loguru import logger
from pydantic import ValidationError

from neo_permissions.config.logging_config import setup_logging
from neo_permissions.config.settings import PermissionEngineSettings
from neo_permissions.domain.entities.verdict import Verdict
from neo_permissions.domain.value_objects.audit_record import DecisionAuditRecord
from neo_permissions.infrastructure.audit.logging_audit_sink import LoggingAuditSink


class TestPermissionEngineSettings:
    """Environment driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PERMISSION_ENGINE_DEBUG_TRAIL", raising=False)
        settings = PermissionEngineSettings(_env_file=None)

        assert settings.debug_trail is False
        assert settings.max_delegation_hops == 5
        assert settings.db_schema == "admin"
        assert settings.log_level == "INFO"

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("PERMISSION_ENGINE_DEBUG_TRAIL", "true")
        monkeypatch.setenv("PERMISSION_ENGINE_MAX_DELEGATION_HOPS", "3")
        monkeypatch.setenv("PERMISSION_ENGINE_LOG_LEVEL", "debug")

        settings = PermissionEngineSettings(_env_file=None)

        assert settings.debug_trail is True
        assert settings.max_delegation_hops == 3
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("kwargs", [
        {"log_level": "VERBOSE"},
        {"db_schema": "admin;drop"},
        {"max_delegation_hops": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            PermissionEngineSettings(_env_file=None, **kwargs)

    def test_setup_logging_replaces_its_sink(self, engine_settings):
        first = setup_logging(engine_settings)
        second = setup_logging(engine_settings)

        assert first != second
        with pytest.raises(ValueError):
            logger.remove(first)


class TestLoggingAuditSink:
    """Audit records routed through loguru."""

    @pytest.fixture
    def captured(self):
        messages = []
        sink_id = logger.add(messages.append, level="DEBUG", filter=lambda r: r["extra"].get("audit"))
        yield messages
        logger.remove(sink_id)

    @pytest.mark.asyncio
    async def test_records_are_bound(self, captured, t0):
        record = DecisionAuditRecord.from_verdict(Verdict.deny("u1", "doc.read", t0))

        await LoggingAuditSink().record(record)

        assert len(captured) == 1
        extra = captured[0].record["extra"]
        assert extra["user_id"] == "u1"
        assert extra["allowed"] is False
        assert "DENY" in captured[0].record["message"]

    @pytest.mark.asyncio
    async def test_denials_only(self, captured, t0):
        allowed = DecisionAuditRecord(user_id="u1", permission_code="doc.read", allowed=True, evaluated_at=t0)

        await LoggingAuditSink(denials_only=True).record(allowed)

        assert captured == []
