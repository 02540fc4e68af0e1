"""Pytest configuration and fixtures for neo-permissions tests."""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from neo_permissions.config.settings import PermissionEngineSettings
from neo_permissions.domain.entities.role import Role
from neo_permissions.domain.value_objects.audit_record import DecisionAuditRecord
from neo_permissions.application.services.decision_service import PermissionDecisionService
from neo_permissions.application.services.hierarchy_index import RoleHierarchyIndex
from neo_permissions.infrastructure.repositories.memory_grant_store import InMemoryGrantStore


T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class RecordingAuditSink:
    """Audit sink keeping records in memory."""

    def __init__(self):
        self.records: List[DecisionAuditRecord] = []

    async def record(self, record: DecisionAuditRecord) -> None:
        self.records.append(record)


@pytest.fixture
def t0():
    """Fixed evaluation instant."""
    return T0


@pytest.fixture
def hours():
    """Helper building offsets from T0."""
    def _at(value: float) -> datetime:
        return T0 + timedelta(hours=value)
    return _at


@pytest.fixture
def engine_settings():
    """Engine settings independent of the environment."""
    return PermissionEngineSettings(
        debug_trail=False,
        max_delegation_hops=5,
        audit_enabled=True,
        log_level="DEBUG"
    )


@pytest.fixture
def org_roles():
    """admin > director > manager > staff, with auditor directly under admin."""
    return [
        Role(id="admin", code="admin", hierarchy_level=0),
        Role(id="director", code="director", hierarchy_level=1, parent_ids=frozenset({"admin"})),
        Role(id="manager", code="manager", hierarchy_level=2, parent_ids=frozenset({"director"})),
        Role(id="staff", code="staff", hierarchy_level=3, parent_ids=frozenset({"manager"})),
        Role(id="auditor", code="auditor", hierarchy_level=2, parent_ids=frozenset({"admin"})),
    ]


@pytest.fixture
def org_index(org_roles):
    """Hierarchy index over the sample organization."""
    return RoleHierarchyIndex.build(org_roles)


@pytest.fixture
def store(org_roles):
    """In-memory grant store preloaded with the sample roles."""
    return InMemoryGrantStore(roles=org_roles)


@pytest.fixture
def audit_sink():
    """Recording audit sink."""
    return RecordingAuditSink()


@pytest.fixture
def make_engine(store, engine_settings):
    """Factory for decision services over the shared store with a fixed clock."""
    def _make(**kwargs) -> PermissionDecisionService:
        kwargs.setdefault("settings", engine_settings)
        kwargs.setdefault("clock", lambda: T0)
        return PermissionDecisionService(kwargs.pop("grant_store", store), **kwargs)
    return _make
