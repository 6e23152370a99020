"""Structured logging with OpenTelemetry correlation and decision audit logging."""

import logging
import sys
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import format_span_id, format_trace_id

from adaptive_tutor.core.config import settings


# Keys to redact from log fields
REDACTED_KEYS = {
    "password",
    "token",
    "authorization",
    "secret",
    "api_key",
    "apikey",
    "email",
    "question_text",
}


def redact_sensitive_data(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive keys from log data.

    Question text is treated as sensitive because authored content can carry
    learner-supplied material.

    Args:
        data: Dictionary to redact

    Returns:
        Dictionary with sensitive values redacted
    """
    redacted = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(redacted_key in key_lower for redacted_key in REDACTED_KEYS):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive_data(value)
        elif isinstance(value, list):
            redacted[key] = [
                redact_sensitive_data(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value
    return redacted


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add OpenTelemetry trace context to log events."""
    span = trace.get_current_span()
    span_context = span.get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = format_trace_id(span_context.trace_id)
        event_dict["span_id"] = format_span_id(span_context.span_id)
    return event_dict


def setup_structured_logging() -> None:
    """Configure structlog JSON output with OpenTelemetry correlation."""
    log_level = getattr(logging, settings.LOG_LEVEL, logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_trace_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service_name=settings.PROJECT_NAME,
        environment=settings.ENV,
    )


def get_audit_logger() -> structlog.BoundLogger:
    """Get the logger used for decision audit records."""
    return structlog.get_logger("decision_audit")


def audit_log(
    event: str,
    user_id: str | None = None,
    decision_type: str | None = None,
    **fields: Any,
) -> None:
    """
    Log a decision audit event.

    Args:
        event: Event name/type
        user_id: Learner ID (opaque identifier only, no PII)
        decision_type: arm_selection, reward_calculation or mastery_update
        **fields: Additional fields (will be redacted)
    """
    logger = get_audit_logger()

    audit_data: dict[str, Any] = {"audit": True}
    if user_id:
        audit_data["user_id"] = user_id
    if decision_type:
        audit_data["decision_type"] = decision_type

    audit_data.update(redact_sensitive_data(fields))

    logger.info(event, **audit_data)
