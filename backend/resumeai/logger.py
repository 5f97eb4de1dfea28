"""
Logger setup for the ResumeAI service.

Configures loguru once at startup and provides prefixed helpers so log lines
can be grepped by the part of the service that wrote them.
"""

import sys

from loguru import logger

from resumeai.core import LOG_LEVEL

LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}


def setup_logger(level: str = LOG_LEVEL) -> None:
    """
    Replace loguru's default sink with a formatted stderr sink.

    Args:
        level: Minimum level to emit (e.g., "DEBUG", "INFO")
    """
    logger.remove()

    for level_name, color in LEVEL_COLORS.items():
        logger.level(level_name, color=color)

    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>",
        level=level,
        colorize=True,
    )


class ContextLogger:
    """Thin wrapper adding a fixed prefix such as [ai] or [flow]."""

    def __init__(self, prefix: str):
        self.prefix = f"[{prefix}]"

    def debug(self, message: str) -> None:
        logger.debug(f"{self.prefix} {message}")

    def info(self, message: str) -> None:
        logger.info(f"{self.prefix} {message}")

    def success(self, message: str) -> None:
        logger.success(f"{self.prefix} {message}")

    def warning(self, message: str) -> None:
        logger.warning(f"{self.prefix} {message}")

    def error(self, message: str) -> None:
        logger.error(f"{self.prefix} {message}")

    def exception(self, message: str) -> None:
        # opt(depth=1) so the record points at the caller, not this wrapper
        logger.opt(depth=1, exception=True).error(f"{self.prefix} {message}")
