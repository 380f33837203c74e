"""
Logging configuration for PropertyLocator.

Every entry point (CLI, pipeline, API) goes through `configure_logging` so that
geocoding lookups, skipped facilities and estimates end up in one place.
"""

from __future__ import annotations

# The standard library logger is all we need; handlers are attached once per process.
import logging
# `Path` keeps the log directory handling portable.
from pathlib import Path

LOGGER_NAME = "propertylocator"


def get_logger() -> logging.Logger:
    # Modules share one named logger so handler setup happens in a single place.
    return logging.getLogger(LOGGER_NAME)


def configure_logging(log_dir: Path, level: str = "INFO") -> logging.Logger:
    # The file handler needs the directory to exist before it opens the file.
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "propertylocator.log"

    logger = get_logger()
    # Accept "info" as well as "INFO" from YAML.
    logger.setLevel(level.upper())
    # Keep records away from the root logger so uvicorn/pytest do not print them twice.
    logger.propagate = False

    # Repeated calls (API reload, several CLI commands in one process) must not stack handlers.
    if not logger.handlers:
        fmt = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        stream = logging.StreamHandler()
        stream.setFormatter(fmt)
        stream.setLevel(level.upper())

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(fmt)
        file_handler.setLevel(level.upper())

        logger.addHandler(stream)
        logger.addHandler(file_handler)

    return logger
