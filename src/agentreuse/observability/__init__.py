"""Observability module for agent-reuse.

Structured logging via structlog: configure_logging, get_logger,
bind_context, unbind_context, clear_context.
"""

from agentreuse.observability.logging import (
    LoggingConfig,
    LogMode,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)

__all__ = [
    "LogMode",
    "LoggingConfig",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
