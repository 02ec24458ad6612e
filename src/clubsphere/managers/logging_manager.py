"""
# Logging Manager

Single entry point for application loggers.

Every module obtains its logger through `get_logger()`, optionally with a prefix
that tags each line with the subsystem that emitted it:

```python
from clubsphere.managers.logging_manager import get_logger

logger = get_logger(prefix="[Enrollment]")
logger.info("User %s joined club %s", user_id, club_id)
# 2024-05-01 12:00:00,000 INFO clubsphere [Enrollment] User 65f... joined club 65a...
```

Handlers are attached once per process to the root `clubsphere` logger. Prefixed
loggers are children of it, so level changes on the root apply everywhere.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "clubsphere"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(prefix)s%(message)s"

_configured = False


class _PrefixFilter(logging.Filter):
    """Inject the logger's prefix into each record."""

    def __init__(self, prefix: str):
        super().__init__()
        self.prefix = f"{prefix} " if prefix else ""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "prefix"):
            record.prefix = self.prefix
        return True


def _configure_root(level: str) -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    # Records from unprefixed loggers still need the attribute for the formatter
    handler.addFilter(_PrefixFilter(""))
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False
    _configured = True


def get_logger(name: Optional[str] = None, prefix: str = "") -> logging.Logger:
    """
    Return a configured logger.

    Args:
        name: Child logger name under `clubsphere`. Derived from the prefix when omitted.
        prefix: Tag written before every message (e.g. `"[DATABASE]"`).

    Returns:
        logging.Logger: The logger, with handlers configured on first use.
    """
    from clubsphere.config import settings

    _configure_root(settings.LOG_LEVEL)

    if name is None and prefix:
        name = prefix.strip("[]").strip().lower().replace(" ", "_")
    full_name = f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME

    logger = logging.getLogger(full_name)
    if prefix and not any(isinstance(f, _PrefixFilter) for f in logger.filters):
        logger.addFilter(_PrefixFilter(prefix))
    return logger
