"""
Structured logging setup.
"""
import logging
import sys

import structlog

REDACTED = "***"
SENSITIVE_PARAMS = {"apikey", "api-key", "api_key", "x-api-key"}


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure stdlib logging and structlog once at startup."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def redact_params(params: dict) -> dict:
    """Copy of query params or headers safe to log."""
    return {
        key: (REDACTED if key.lower() in SENSITIVE_PARAMS else value)
        for key, value in params.items()
    }
