"""Service layer logging utilities.

Every service logs through log_operation so that each record carries an
``operation`` and an ``outcome`` attribute plus its context fields. Tests
and log handlers filter on those attributes rather than on message text.

Usage:
    from prepcost.services.logging_utils import error_context, get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(logger, operation="save_run", outcome="applying_lines")

    log_operation(
        logger,
        operation="rollback_delete",
        outcome="failed",
        level=logging.WARNING,
        item_id=45,
        **error_context(e),
    )
"""

import logging
from typing import Any, Dict

LOGGER_PREFIX = "prepcost.services"

# Attributes LogRecord already defines; context keys that collide are prefixed
_RESERVED = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


def get_service_logger(name: str) -> logging.Logger:
    """
    Logger under the prepcost.services prefix.

    Example:
        >>> get_service_logger("prepcost.services.save_orchestrator").name
        'prepcost.services.save_orchestrator'
    """
    return logging.getLogger(f"{LOGGER_PREFIX}.{name.rsplit('.', 1)[-1]}")


def error_context(error: BaseException) -> Dict[str, str]:
    """Context fields describing a caught exception."""
    return {"error": str(error), "error_type": type(error).__name__}


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log one service operation with structured context.

    Args:
        logger: Logger from get_service_logger
        operation: Operation name ("save_run", "deprecate_item", ...)
        outcome: "success", "failed", "violation", or a save state value
        level: Log level (default INFO)
        **context: Ids, counts and error details, attached to the record.
            Keys that clash with LogRecord attributes get a ``ctx_`` prefix.
    """
    extra = {"operation": operation, "outcome": outcome}
    for key, value in context.items():
        extra[f"ctx_{key}" if key in _RESERVED else key] = value
    logger.log(level, f"{operation}: {outcome}", extra=extra)
