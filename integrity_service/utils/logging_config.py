"""
Logging setup for the integrity service
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs every report API request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Send all service logs to stdout at the given level.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The service logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("integrity_service")
    logger.info(f"Logging configured at {level.upper()}")
    return logger
