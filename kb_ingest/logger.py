"""Logging setup with rotating file + console output."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(log_dir: str = "logs", level: Union[int, str] = logging.INFO,
                 filename: str = "kb_ingest.log") -> logging.Logger:
    """Configure the ``kb_ingest`` logger once; later calls return it unchanged."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger("kb_ingest")
    if logger.handlers:
        return logger

    os.makedirs(log_dir, exist_ok=True)
    logger.setLevel(level)
    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    logger.addHandler(console)

    # 10MB per file, keep 5
    fh = RotatingFileHandler(
        os.path.join(log_dir, filename),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    # httpx logs every request at INFO; crawls would drown the log
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
