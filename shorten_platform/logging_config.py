"""Logging configuration for Shorten Platform."""

import logging
import sys


def setup_logging(level: str = "info") -> logging.Logger:
    """Configure the "shorten" logger hierarchy.

    Args:
        level: Logging level name (debug, info, warning, error, critical)

    Returns:
        The root "shorten" logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("shorten")
    logger.setLevel(numeric_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    return logger
