"""Pytest configuration and shared fixtures."""

import random
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from adaptive_tutor.db.session import create_all, create_session_factory
from adaptive_tutor.learning_engine.audit import InMemoryAuditSink
from adaptive_tutor.learning_engine.service import AdaptiveTutorService, create_in_memory_service
from adaptive_tutor.learning_engine.types import Arm
from tests.helpers import NOW, TOPICS


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def arms() -> list[Arm]:
    return [Arm(topic_id, 1, name) for topic_id, name in TOPICS["chapter-1"]]


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def service(audit_sink: InMemoryAuditSink) -> AdaptiveTutorService:
    """In-memory service with a fixed clock."""
    return create_in_memory_service(TOPICS, audit_sink=audit_sink, clock=lambda: NOW)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(engine)

    yield create_session_factory(engine)

    await engine.dispose()
