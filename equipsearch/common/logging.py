import logging
import sys

from equipsearch.config import settings

ROOT_LOGGER = "equipsearch"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Attach a single stream handler to the package logger.

    Safe to call more than once (e.g. from each app lifespan in tests).
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    if not any(getattr(h, "_equipsearch", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._equipsearch = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
