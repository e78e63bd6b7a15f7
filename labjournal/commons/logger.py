from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FILE_NAME = "labjournal.log"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"
_CONSOLE_FORMAT = "{time:HH:mm:ss} {level: <8} {message}"


def log_dir_for(root: str, when: Optional[datetime] = None) -> Path:
    """Day folder the journal logs into: <root>/YYYY/MM/DD."""
    return Path(root) / (when or datetime.now()).strftime("%Y/%m/%d")


def setup_logging(root: str, level: str = "INFO", retention: str = "14 days", console: bool = True):
    """
    Route loguru to a dated file under ``root`` (rotated at midnight) and,
    unless ``console`` is off, to stdout. Tracebacks never render local
    variables: they carry lab values.
    """
    level = level.upper()
    logdir = log_dir_for(root)
    logdir.mkdir(parents=True, exist_ok=True)
    logger.remove()
    logger.add(
        str(logdir / LOG_FILE_NAME),
        format=_FILE_FORMAT,
        rotation="00:00",
        retention=retention,
        level=level,
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
    if console:
        logger.add(lambda m: print(m, end=""), format=_CONSOLE_FORMAT, level=level)
    return logger
