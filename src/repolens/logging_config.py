"""Logging setup for repolens.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves. The CLI calls setup_logging() once.

Environment:
- REPOLENS_DEBUG: enable debug logging (default: false)
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "repolens"


def setup_logging(debug: bool | None = None, console: Console | None = None) -> logging.Logger:
    """Attach a RichHandler to the ``repolens`` logger and return it.

    Args:
        debug: Enable DEBUG level. Defaults to the REPOLENS_DEBUG env var.
        console: Rich console to log to (stderr by default).
    """
    if debug is None:
        debug = os.environ.get("REPOLENS_DEBUG", "").lower() in ("true", "1", "yes")

    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=debug,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)

    # LiteLLM and httpx are chatty at INFO.
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger
