"""Database models."""

from adaptive_tutor.models.tutor import ArmStatsRow, DecisionLogRow, MasteryRow, ResponseLogRow

__all__ = ["ArmStatsRow", "DecisionLogRow", "MasteryRow", "ResponseLogRow"]
