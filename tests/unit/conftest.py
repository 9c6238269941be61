"""Unit test fixtures — in-process stores, the service and a FastMCP client."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastmcp import Client

from rapport.audit import AuditLogger
from rapport.config import AuditConfig
from rapport.config import ServiceConfig
from rapport.memory import InMemoryConversationHistory
from rapport.memory import InMemoryIntimacyStore
from rapport.memory import InMemoryMemoryStore
from rapport.memory import InMemoryPatternProfileStore
from rapport.observability import reset_latency_metrics
from rapport.service import PersonalizationService


@pytest.fixture()
def audit_config(tmp_path: Path) -> AuditConfig:
    return AuditConfig(file_path=str(tmp_path / "audit.jsonl"))


@pytest.fixture()
def memory_store(clock) -> InMemoryMemoryStore:
    return InMemoryMemoryStore(clock=clock)


@pytest.fixture()
def intimacy_store(clock) -> InMemoryIntimacyStore:
    return InMemoryIntimacyStore(clock=clock)


@pytest.fixture()
def profile_store() -> InMemoryPatternProfileStore:
    return InMemoryPatternProfileStore()


@pytest.fixture()
def history() -> InMemoryConversationHistory:
    return InMemoryConversationHistory()


@pytest.fixture()
def service(
    memory_store, intimacy_store, profile_store, history, audit_config, clock
) -> PersonalizationService:
    return PersonalizationService(
        memory_store,
        intimacy_store,
        profile_store,
        history,
        config=ServiceConfig(refresh_every_user_turns=5),
        audit_logger=AuditLogger(audit_config),
        clock=clock,
    )


@pytest.fixture()
async def mcp_client(audit_config, clock):
    """Yield a FastMCP Client wired to an in-memory Rapport server."""
    from rapport.server import configure
    from rapport.server import mcp
    from rapport.server import shutdown

    await configure(audit_config=audit_config, clock=clock)
    async with Client(mcp) as client:
        yield client
    await shutdown()


@pytest.fixture(autouse=True)
def _reset_latency():
    reset_latency_metrics()
    yield
    reset_latency_metrics()
