"""Structured logging configuration using structlog."""

import logging
import sys
from pathlib import Path

import structlog
from structlog.types import Processor

from nova.config import LogFormat, Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging for the application."""
    settings = settings or get_settings()

    if settings.log_file_path:
        Path(settings.log_file_path).parent.mkdir(parents=True, exist_ok=True)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == LogFormat.CONSOLE or settings.is_development:
        final_processors: list[Processor] = [
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        final_processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=final_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    handlers: list[logging.Handler] = [console_handler]
    if settings.log_file_path:
        file_handler = logging.FileHandler(settings.log_file_path)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(settings.log_level)

    # Connector traffic is logged by the adapters themselves
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance with optional component name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(component=name)
    return logger


def bind_request_context(**values: object) -> None:
    """Bind per-request values (request id, endpoint, user) to every log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


class LogEvents:
    """Standardized log event names for consistency."""

    # Lifecycle
    APP_STARTING = "app_starting"
    APP_STARTED = "app_started"
    APP_SHUTDOWN = "app_shutdown"

    # HTTP surface
    REQUEST_RECEIVED = "request_received"
    REQUEST_REJECTED = "request_rejected"
    USER_AUTHENTICATED = "user_authenticated"
    USER_AUTH_FAILED = "user_auth_failed"

    # LLM gateway
    LLM_REQUEST_STARTED = "llm_request_started"
    LLM_STREAMING_STARTED = "llm_streaming_started"
    LLM_REQUEST_COMPLETED = "llm_request_completed"
    LLM_REQUEST_FAILED = "llm_request_failed"
    LLM_TOOL_CALL = "llm_tool_call"

    # Conversation loop
    LOOP_STATE_CHANGED = "loop_state_changed"
    LOOP_NUDGE_APPLIED = "loop_nudge_applied"
    LOOP_ROUND_LIMIT_REACHED = "loop_round_limit_reached"
    STREAM_COMPLETED = "stream_completed"
    STREAM_SUPERSEDED = "stream_superseded"
    STREAM_FAILED = "stream_failed"

    # Tool routing
    TOOL_DISPATCHED = "tool_dispatched"
    TOOL_RESULT = "tool_result"
    TOOL_ERROR = "tool_error"
    TOOL_UNKNOWN = "tool_unknown"
    TOOL_INVALID_ARGUMENTS = "tool_invalid_arguments"

    # Connectors
    CONNECTOR_REQUEST = "connector_request"
    CONNECTOR_RESPONSE = "connector_response"
    CONNECTOR_ERROR = "connector_error"

    # Credentials
    CREDENTIALS_RESOLVED = "credentials_resolved"
    CREDENTIALS_MISSING = "credentials_missing"
    CREDENTIALS_FALLBACK_SKIPPED = "credentials_fallback_skipped"
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    TOKEN_CACHE_HIT = "token_cache_hit"
    TOKENS_SAVED = "tokens_saved"
    TOKENS_REVOKED = "tokens_revoked"

    # Documents
    DOCUMENT_INDEXED = "document_indexed"
    DOCUMENT_SKIPPED = "document_skipped"
    DOCUMENT_INDEX_FAILED = "document_index_failed"
    DOCUMENT_SEARCH = "document_search"
    DOCUMENT_SEARCH_FALLBACK = "document_search_fallback"
    DOCUMENTS_DELETED = "documents_deleted"

    # Feedback and learning
    FEEDBACK_SUBMITTED = "feedback_submitted"
    FEEDBACK_CRITICAL = "feedback_critical"
    LEARNING_RECORDED = "learning_recorded"
    LEARNINGS_CLEARED = "learnings_cleared"

    # Conversation history
    HISTORY_RETRIEVED = "history_retrieved"
    HISTORY_UPDATED = "history_updated"
