"""
scribeflow.logging - Centralized logging configuration.

Provides a simple logging setup with optional verbose mode for debugging.
Modules log through ``logging.getLogger(__name__)`` so everything lands
under the ``scribeflow`` logger.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("scribeflow")


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the scribeflow package.

    Args:
        verbose: If True, enable DEBUG level logging; otherwise WARNING level
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    logger.setLevel(level)
