from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

LOG_NAME = "prontrack"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_log_file: Optional[Path] = None


def configure_logging(log_dir: str | Path, level: str | int = logging.INFO) -> logging.Logger:
    """Attach a rotating file handler to the package logger, once per log file."""
    global _log_file
    logger = logging.getLogger(LOG_NAME)
    logger.setLevel(level)
    log_file = Path(log_dir) / "prontrack.log"
    if _log_file == log_file and logger.handlers:
        return logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=1_500_000, backupCount=5, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    _log_file = log_file
    return logger


def log_path() -> Optional[Path]:
    return _log_file
