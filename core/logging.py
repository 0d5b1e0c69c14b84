"""
Logging configuration
"""

import logging
import sys
from core.config import settings

# Library loggers that would otherwise flood the import logs
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "aiosqlite": logging.WARNING,
    # "Running job ..." every poll tick
    "apscheduler.executors.default": logging.WARNING,
    "apscheduler.scheduler": logging.INFO,
    "multipart": logging.WARNING,
}


def setup_logging(level: str = None):
    """Configure application logging once, for the API process and the scripts"""
    level_name = (level or settings.LOG_LEVEL).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).info(f"Logging configured at {level_name} level ({settings.ENVIRONMENT})")
