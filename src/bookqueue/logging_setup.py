"""Logging configuration.

Modules log through ``logging.getLogger(__name__)``; the host application
calls ``configure_logging`` once to render records with rich.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import get_config

console = Console(stderr=True)


def configure_logging(level: Optional[str] = None) -> None:
    """Install a RichHandler on the ``bookqueue`` logger.

    Args:
        level: Log level name. Defaults to ``BOOKQUEUE_LOG_LEVEL``.
    """
    level = (level or get_config().log_level).upper()
    logger = logging.getLogger("bookqueue")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
