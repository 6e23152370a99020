"""Engine exceptions and sentinel error codes."""

from typing import Any


class EngineError(Exception):
    """Base class for engine errors with a stable error code."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidParameterError(EngineError, ValueError):
    """A caller passed a value outside its documented domain."""

    code = "INVALID_PARAMETER"


class AuditWriteError(EngineError):
    """Writing a decision audit record failed. Logged, never propagated."""

    code = "AUDIT_WRITE_FAILED"


def require(condition: bool, message: str, **details: Any) -> None:
    """Raise InvalidParameterError unless condition holds."""
    if not condition:
        raise InvalidParameterError(message, details=details or None)
