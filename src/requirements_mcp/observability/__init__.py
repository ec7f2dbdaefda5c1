"""Logging and Logfire observability for the Product Requirements MCP Server."""

import logging
import sys

import logfire

from .config import ObservabilityConfig, get_environment_config
from .decorators import trace_method, trace_resource, trace_tool
from .mcp_logger import (
    REDACTED,
    MCPLogger,
    StructuredFormatter,
    correlation_scope,
    get_correlation_id,
    get_mcp_logger,
    new_correlation_id,
    normalize_correlation_id,
    redact,
    redact_string,
)

logger = logging.getLogger(__name__)

_config: ObservabilityConfig | None = None


def initialize_observability(config: ObservabilityConfig | None = None):
    """Initialize Logfire with configuration."""
    global _config  # noqa: PLW0603
    _config = config or get_environment_config()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=_config.token or None,
        service_name=_config.project_name,
        environment=_config.environment,
        send_to_logfire=_config.send_to_logfire,
        console=None if _config.console_output else False,
    )

    if _config.environment == "production":
        logfire.instrument_system_metrics()


def configure_logging(level: str = "INFO") -> None:
    """
    Send plain logs and structured MCP records to stderr.

    stdout stays clean for the stdio transport.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    structured_handler = logging.StreamHandler(sys.stderr)
    structured_handler.setFormatter(StructuredFormatter())
    mcp_logger = get_mcp_logger().logger
    mcp_logger.handlers = [structured_handler]
    mcp_logger.propagate = False


def get_config() -> ObservabilityConfig:
    """Get current observability configuration."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = get_environment_config()
    return _config


__all__ = [
    "REDACTED",
    "MCPLogger",
    "ObservabilityConfig",
    "StructuredFormatter",
    "configure_logging",
    "correlation_scope",
    "get_config",
    "get_correlation_id",
    "get_mcp_logger",
    "initialize_observability",
    "new_correlation_id",
    "normalize_correlation_id",
    "redact",
    "redact_string",
    "trace_method",
    "trace_resource",
    "trace_tool",
]
