# sperm_analysis/utils/log_util.py
import os
import sys

from loguru import logger

from sperm_analysis.core.config import Config

log_format = "{time:YYYY-MM-DD HH:mm:ss}  | {level} |  {name}:{line} |  {message}"

_configured = False


def _not_error(record):
    """Main log file keeps everything below ERROR; errors go to error.log."""
    return record["level"].no < logger.level("ERROR").no


def setup_logging(level: str = None, log_dir: str = None):
    """
    Install loguru sinks once per process:
    - stderr
    - (optional) LOG_DIR/{date}.log rotated at midnight
    - (optional) LOG_DIR/error.log for ERROR and above
    """
    global _configured
    if _configured:
        return logger

    level = (level or Config.LOG_LEVEL).upper()
    log_dir = log_dir if log_dir is not None else Config.LOG_DIR

    logger.remove()
    logger.add(sys.stderr, level=level, format=log_format)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

        logger.add(
            os.path.join(log_dir, "{time:YYYY-MM-DD}.log"),
            format=log_format,
            level=level,
            rotation="00:00",
            encoding="utf-8",
            enqueue=True,
            compression="zip",
            filter=_not_error,
        )

        logger.add(
            os.path.join(log_dir, "error.log"),
            format=log_format,
            level="ERROR",
            rotation="10 MB",
            retention="10 days",
            compression="zip",
            enqueue=True,
        )

    _configured = True
    return logger
