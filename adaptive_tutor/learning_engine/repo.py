"""
SQLAlchemy-backed stores and audit sink.

Each call opens its own session from the factory and commits before
returning, so stores are safe to share between concurrent requests.
"""

import logging
from datetime import UTC, datetime
from typing import Annotated, Sequence

from pydantic import Field, TypeAdapter
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adaptive_tutor.learning_engine.constants import CognitiveDimension
from adaptive_tutor.learning_engine.contracts import DecisionAuditRecord
from adaptive_tutor.learning_engine.types import Arm, ArmStats, MasteryRecord, ResponseOutcome
from adaptive_tutor.models.tutor import ArmStatsRow, DecisionLogRow, MasteryRow, ResponseLogRow

logger = logging.getLogger(__name__)

_audit_record_adapter = TypeAdapter(Annotated[DecisionAuditRecord, Field(discriminator="decision_type")])


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes returned by backends without tz support (SQLite)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _arm_filter(model, user_id: str, arms: Sequence[Arm]):
    return and_(
        model.user_id == user_id,
        or_(*[and_(model.topic_id == arm.topic_id, model.level == arm.level) for arm in arms]),
    )


class SqlAlchemyArmStatsStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_stats(self, user_id: str, arms: Sequence[Arm]) -> dict[Arm, ArmStats]:
        """
        Batch get posteriors for the given arms.

        Returns:
            Dict mapping arm -> ArmStats (only for existing rows)
        """
        if not arms:
            return {}
        by_key = {(arm.topic_id, arm.level): arm for arm in arms}
        async with self.session_factory() as db:
            result = await db.execute(select(ArmStatsRow).where(_arm_filter(ArmStatsRow, user_id, arms)))
            rows = result.scalars().all()

        return {
            by_key[(row.topic_id, row.level)]: ArmStats(
                alpha=row.alpha,
                beta=row.beta,
                times_selected=row.times_selected,
                avg_reward=row.avg_reward,
            )
            for row in rows
        }

    async def put_stats(self, user_id: str, arm: Arm, stats: ArmStats) -> None:
        """Create or update the posterior for a (user, arm) pair."""
        async with self.session_factory() as db:
            row = await db.get(ArmStatsRow, (user_id, arm.topic_id, arm.level))
            if row:
                row.alpha = stats.alpha
                row.beta = stats.beta
                row.times_selected = stats.times_selected
                row.avg_reward = stats.avg_reward
                row.updated_at = datetime.now(UTC)
            else:
                db.add(
                    ArmStatsRow(
                        user_id=user_id,
                        topic_id=arm.topic_id,
                        level=arm.level,
                        alpha=stats.alpha,
                        beta=stats.beta,
                        times_selected=stats.times_selected,
                        avg_reward=stats.avg_reward,
                        updated_at=datetime.now(UTC),
                    )
                )
            await db.commit()


def _mastery_from_row(row: MasteryRow) -> MasteryRecord:
    return MasteryRecord(
        topic_id=row.topic_id,
        level=row.level,
        mastery_score=row.mastery_score,
        questions_attempted=row.questions_attempted,
        questions_correct=row.questions_correct,
        last_practiced_at=_as_utc(row.last_practiced_at),
        topic_name=row.topic_name,
    )


class SqlAlchemyMasteryStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_mastery(self, user_id: str, arms: Sequence[Arm]) -> dict[Arm, MasteryRecord]:
        if not arms:
            return {}
        by_key = {(arm.topic_id, arm.level): arm for arm in arms}
        async with self.session_factory() as db:
            result = await db.execute(select(MasteryRow).where(_arm_filter(MasteryRow, user_id, arms)))
            rows = result.scalars().all()
        return {by_key[(row.topic_id, row.level)]: _mastery_from_row(row) for row in rows}

    async def get_topic_mastery(self, user_id: str, topic_id: str) -> dict[int, MasteryRecord]:
        """All levels recorded for a topic, keyed by level."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(MasteryRow).where(and_(MasteryRow.user_id == user_id, MasteryRow.topic_id == topic_id))
            )
            rows = result.scalars().all()
        return {row.level: _mastery_from_row(row) for row in rows}

    async def put_mastery(self, user_id: str, record: MasteryRecord) -> None:
        async with self.session_factory() as db:
            row = await db.get(MasteryRow, (user_id, record.topic_id, record.level))
            if row is None:
                row = MasteryRow(user_id=user_id, topic_id=record.topic_id, level=record.level)
                db.add(row)
            row.topic_name = record.topic_name
            row.mastery_score = record.mastery_score
            row.questions_attempted = record.questions_attempted
            row.questions_correct = record.questions_correct
            row.last_practiced_at = record.last_practiced_at
            row.updated_at = datetime.now(UTC)
            await db.commit()


def _outcome_from_row(row: ResponseLogRow) -> ResponseOutcome:
    return ResponseOutcome(
        arm=Arm(row.topic_id, row.level, row.topic_name),
        is_correct=row.is_correct,
        confidence_level=row.confidence_level,
        answered_at=_as_utc(row.answered_at),
        dimension=CognitiveDimension(row.dimension) if row.dimension else None,
        reward_total=row.reward_total,
    )


class SqlAlchemyResponseHistoryStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, user_id: str, outcome: ResponseOutcome) -> None:
        async with self.session_factory() as db:
            db.add(
                ResponseLogRow(
                    user_id=user_id,
                    topic_id=outcome.arm.topic_id,
                    topic_name=outcome.arm.topic_name,
                    level=outcome.arm.level,
                    is_correct=outcome.is_correct,
                    confidence_level=outcome.confidence_level,
                    dimension=outcome.dimension.value if outcome.dimension else None,
                    reward_total=outcome.reward_total,
                    answered_at=outcome.answered_at,
                )
            )
            await db.commit()

    async def recent(
        self, user_id: str, limit: int = 50, topic_id: str | None = None
    ) -> list[ResponseOutcome]:
        """Most recent outcomes, oldest first."""
        query = select(ResponseLogRow).where(ResponseLogRow.user_id == user_id)
        if topic_id is not None:
            query = query.where(ResponseLogRow.topic_id == topic_id)
        query = query.order_by(ResponseLogRow.id.desc()).limit(limit)

        async with self.session_factory() as db:
            result = await db.execute(query)
            rows = result.scalars().all()
        return [_outcome_from_row(row) for row in reversed(rows)]

    async def last_dimensions(
        self, user_id: str, arms: Sequence[Arm]
    ) -> dict[Arm, CognitiveDimension]:
        if not arms:
            return {}
        by_key = {(arm.topic_id, arm.level): arm for arm in arms}
        query = (
            select(ResponseLogRow.topic_id, ResponseLogRow.level, ResponseLogRow.dimension)
            .where(_arm_filter(ResponseLogRow, user_id, arms))
            .where(ResponseLogRow.dimension.is_not(None))
            .order_by(ResponseLogRow.id)
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            rows = result.all()

        last: dict[Arm, CognitiveDimension] = {}
        for row in rows:
            last[by_key[(row.topic_id, row.level)]] = CognitiveDimension(row.dimension)
        return last


class SqlAlchemyAuditSink:
    """Persists decision audit records to tutor_decision_log."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def write(self, record: DecisionAuditRecord) -> None:
        async with self.session_factory() as db:
            db.add(
                DecisionLogRow(
                    id=record.id,
                    user_id=record.user_id,
                    session_id=record.session_id,
                    decision_type=record.decision_type.value,
                    created_at=record.created_at,
                    payload=record.model_dump(mode="json"),
                )
            )
            await db.commit()

    async def get_recent_decisions(self, user_id: str, limit: int = 50) -> list[DecisionAuditRecord]:
        """Newest first."""
        query = (
            select(DecisionLogRow.payload)
            .where(DecisionLogRow.user_id == user_id)
            .order_by(DecisionLogRow.created_at.desc())
            .limit(limit)
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            payloads = result.scalars().all()
        return [_audit_record_adapter.validate_python(p) for p in payloads]

    async def get_session_decisions(self, session_id: str) -> list[DecisionAuditRecord]:
        query = (
            select(DecisionLogRow.payload)
            .where(DecisionLogRow.session_id == session_id)
            .order_by(DecisionLogRow.created_at)
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            payloads = result.scalars().all()
        return [_audit_record_adapter.validate_python(p) for p in payloads]
