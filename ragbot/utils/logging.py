"""
Category-aware logging utility for ragbot

Logs can be filtered by category (chat, retrieval, completion, system)
and log level (DEBUG, INFO, WARN, ERROR).

Usage:
    from ragbot.utils.logging import get_logger

    logger = get_logger(__name__, category='retrieval')
    logger.info('Collection searched')
"""

import logging
from typing import List, Optional

from ragbot.config import settings


# Log level hierarchy (lower number = more verbose)
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_categories(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    return [cat.strip().lower() for cat in raw.split(",") if cat.strip()]


# If not set, show all categories (default behavior)
_allowed_categories = _parse_categories(settings.log_categories)


class CategoryFilter(logging.Filter):
    """Filter logs by category if LOG_CATEGORIES is set."""

    def __init__(
        self,
        category: Optional[str] = None,
        allowed: Optional[List[str]] = None,
    ):
        """
        Args:
            category: Category name for this logger (e.g. 'chat', 'retrieval')
            allowed: Explicit allow-list; defaults to the LOG_CATEGORIES setting
        """
        super().__init__()
        self.category = category.lower() if category else "system"
        self.allowed = allowed if allowed is not None else _allowed_categories

    def filter(self, record: logging.LogRecord) -> bool:
        if self.allowed is None:
            return True
        return self.category in self.allowed


def get_logger(name: str, category: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with category filtering support.

    Args:
        name: Logger name (typically __name__)
        category: Category for filtering; defaults to 'system'

    Returns:
        Logger instance with category filter applied
    """
    logger = logging.getLogger(name)

    log_level = LOG_LEVELS.get(settings.log_level.upper(), logging.INFO)
    logger.setLevel(log_level)

    # Remove existing category filters to avoid duplicates
    logger.filters = [f for f in logger.filters if not isinstance(f, CategoryFilter)]
    logger.addFilter(CategoryFilter(category))

    return logger
