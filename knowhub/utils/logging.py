"""
Logging setup for the knowledge hub service.

Every module logs through a ``knowhub.*`` logger:

    from knowhub.utils.logging import get_logger
    logger = get_logger("knowhub.pipeline.search")
    logger.info("[SEARCH] cache miss | key=%s", key)

Provider libraries (chromadb, httpx, sentence_transformers) are
chatty at INFO, so they are capped at WARNING.
"""

from __future__ import annotations

import logging
import sys

_NOISY_LOGGERS = ("chromadb", "httpx", "httpcore", "sentence_transformers", "openai")

_configured = False


def level_for_environment(environment: str) -> int:
    """INFO while developing, WARNING everywhere else."""
    return logging.INFO if environment == "development" else logging.WARNING


def setup_logging(level: int | None = None) -> None:
    """
    Attach the stderr handler to the ``knowhub`` logger once.
    Later calls with an explicit ``level`` only adjust the level.
    """
    global _configured
    root = logging.getLogger("knowhub")
    if _configured:
        if level is not None:
            root.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root.setLevel(logging.INFO if level is None else level)
    root.addHandler(handler)
    root.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, configuring the namespace on first use."""
    setup_logging()
    return logging.getLogger(name)
