"""Engine startup and wiring of the SQL-backed service."""

import logging
from typing import Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from adaptive_tutor.core.config import settings
from adaptive_tutor.core.logging import setup_logging
from adaptive_tutor.db.session import create_all, create_session_factory
from adaptive_tutor.learning_engine.audit import FanOutAuditSink, LoggingAuditSink
from adaptive_tutor.learning_engine.repo import (
    SqlAlchemyArmStatsStore,
    SqlAlchemyAuditSink,
    SqlAlchemyMasteryStore,
    SqlAlchemyResponseHistoryStore,
)
from adaptive_tutor.learning_engine.service import AdaptiveTutorService
from adaptive_tutor.learning_engine.stores import StaticArmCatalog
from adaptive_tutor.observability.logging import setup_structured_logging

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """JSON stdlib logging always; structlog output as well when LOG_FORMAT=structured."""
    setup_logging()
    if settings.LOG_FORMAT == "structured":
        setup_structured_logging()


async def create_sql_service(
    topics_by_scope: Mapping[str, Sequence[tuple[str, str]]],
    engine: AsyncEngine | None = None,
) -> AdaptiveTutorService:
    """
    Service over the SQLAlchemy stores.

    Audit records go to tutor_decision_log and to the structured audit logger.
    """
    configure_logging()
    # Create tables (in production, use migrations)
    if settings.ENV in ("dev", "test"):
        await create_all(engine)

    session_factory = create_session_factory(engine)
    mastery_store = SqlAlchemyMasteryStore(session_factory)
    service = AdaptiveTutorService(
        catalog=StaticArmCatalog(topics_by_scope, mastery_store),
        stats_store=SqlAlchemyArmStatsStore(session_factory),
        mastery_store=mastery_store,
        history_store=SqlAlchemyResponseHistoryStore(session_factory),
        audit_sink=FanOutAuditSink([SqlAlchemyAuditSink(session_factory), LoggingAuditSink()]),
    )
    logger.info(f"{settings.PROJECT_NAME} started (env={settings.ENV}, scopes={len(topics_by_scope)})")
    return service
