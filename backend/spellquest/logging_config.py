from __future__ import annotations

import logging
import sys

from .settings import settings


def _parse_level(level: str) -> int:
    lvl = (level or "INFO").upper()
    return logging.getLevelNamesMapping().get(lvl, logging.INFO)


def configure_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the ``spellquest`` logger with a console handler.
    Idempotent: safe to call multiple times.
    """
    logger = logging.getLogger("spellquest")
    if getattr(logger, "_configured", False):
        return logger

    numeric_level = _parse_level(level or settings.log_level)
    logger.setLevel(numeric_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s %(levelname)-8s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)

    # Third-party chatter
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger._configured = True  # type: ignore[attr-defined]
    return logger
