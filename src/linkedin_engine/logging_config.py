"""Logging configuration for the LinkedIn engine client."""

import logging
import sys
from typing import Optional

from .errors import EngineError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for console output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
            )
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logging(verbose: bool = False, use_colors: bool = True) -> None:
    """Configure logging for the application.

    Args:
        verbose: Enable DEBUG level logging if True, otherwise INFO level
        use_colors: Use colored output for console if True

    Logging Levels:
        ERROR: Remote failures, failed actions
        WARNING: Rate limiting, retries, browser hand-offs
        INFO: Fetch cycle and dispatch milestones
        DEBUG: Raw requests, cursors, per-action responses
    """
    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # stderr keeps stdout free for the JSON lines the CLI echoes
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if use_colors and sys.stderr.isatty():
        formatter = ColoredFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Name of the logger (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def integration_context(
    integration_id: str, campaign_id: Optional[str] = None
) -> str:
    """Build the log prefix identifying an integration (and campaign)."""
    if campaign_id:
        return f"Integration {integration_id} - Campaign {campaign_id}"
    return f"Integration {integration_id}"


def _format_details(details: dict) -> str:
    return ", ".join(f"{k}={v}" for k, v in details.items())


def log_error_with_details(
    logger: logging.Logger,
    error: Exception,
    context: Optional[dict] = None,
) -> None:
    """Log an error together with the operation it interrupted.

    Engine errors are expected failures of the remote platform and are logged
    without a traceback; anything else keeps its traceback.

    Args:
        logger: Logger instance
        error: Exception to log
        context: Operation context (integration, resource kind, ...)
    """
    context = context or {}
    msg = str(error)
    if context:
        msg = f"{msg} ({_format_details(context)})"

    if isinstance(error, EngineError):
        logger.error(msg, extra={"error_details": error.details, "context": context})
    else:
        logger.error(msg, extra={"context": context}, exc_info=True)


def log_progress(
    logger: logging.Logger,
    stage: str,
    details: Optional[dict] = None,
) -> None:
    """Log a milestone of a fetch cycle or dispatch run."""
    msg = f"Progress: {stage}"
    if details:
        msg = f"{msg} ({_format_details(details)})"
    logger.info(msg)
