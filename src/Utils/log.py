import logging

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

_STAGE_LOGGERS = set()


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a configured logger for a pipeline stage."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(level)
    _STAGE_LOGGERS.add(name)
    return logger


def set_level(level: int):
    """Change the level of every stage logger (used by --verbose)."""
    for name in _STAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)
