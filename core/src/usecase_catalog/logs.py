from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from usecase_catalog.config import CatalogConfig, CatalogPaths

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_file_logging(paths: CatalogPaths, config: CatalogConfig) -> None:
    """Point the root logger's rotating file handler at ``paths.log_path``.

    A handler already writing that file is kept. Rotating handlers for any
    other file are detached and closed.
    """

    log_path = os.path.abspath(paths.log_path)

    # Configure root logger to capture all module logs
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    for handler in list(root.handlers):
        if not isinstance(handler, RotatingFileHandler):
            continue
        if handler.baseFilename == log_path:
            return
        root.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=config.logging.max_size_mb * 1024 * 1024,
        backupCount=config.logging.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
