"""
SQLAlchemy models for the adaptive tutor engine.

Per-arm state is keyed by (user_id, topic_id, level). Response and decision
logs are append-only.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from adaptive_tutor.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ArmStatsRow(Base):
    """
    Per-user per-arm Beta posterior for Thompson Sampling.

    Updated after every scored response with the normalized reward.
    """

    __tablename__ = "tutor_arm_stats"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    topic_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    level: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Beta posterior parameters (initialized to Beta(1,1) = Uniform)
    alpha: Mapped[float] = mapped_column(Float, nullable=False, default=1.0, comment="Beta alpha")
    beta: Mapped[float] = mapped_column(Float, nullable=False, default=1.0, comment="Beta beta")

    times_selected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_reward: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, comment="Running mean of raw reward totals"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class MasteryRow(Base):
    """Mastery score and attempt counters for one (user, topic, level)."""

    __tablename__ = "tutor_mastery"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    topic_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    level: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    mastery_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, comment="0-100")
    questions_attempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (Index("idx_tutor_mastery_user_topic", "user_id", "topic_id"),)


class ResponseLogRow(Base):
    """Append-only history of scored responses."""

    __tablename__ = "tutor_response_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    topic_id: Mapped[str] = mapped_column(String(128), nullable=False)
    topic_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    confidence_level: Mapped[int] = mapped_column(Integer, nullable=False)
    dimension: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reward_total: Mapped[float | None] = mapped_column(Float, nullable=True)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_tutor_response_log_user_id", "user_id", "id"),
        Index("idx_tutor_response_log_user_topic", "user_id", "topic_id"),
    )


class DecisionLogRow(Base):
    """
    Append-only decision audit log.

    One row per arm selection, reward calculation or mastery update. The full
    audit record is kept in `payload`.
    """

    __tablename__ = "tutor_decision_log"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    decision_type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("idx_tutor_decision_log_user_created", "user_id", "created_at"),
        Index("idx_tutor_decision_log_session", "session_id"),
    )
