"""Process-wide logging for the directory service.

Console output is always on. A size-rotated file under ``LOG_DIR`` is added when the
directory can be created; otherwise the service keeps running with console logs only.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import clean_env

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class LogSettings:
    level: int
    directory: Path
    file_name: str
    max_bytes: int
    backup_count: int

    @classmethod
    def from_env(cls, service_name: str) -> "LogSettings":
        level = logging.getLevelName(clean_env(os.getenv("LOG_LEVEL"), "INFO").upper())
        return cls(
            level=level if isinstance(level, int) else logging.INFO,
            directory=Path(clean_env(os.getenv("LOG_DIR"), "logs")),
            file_name=clean_env(os.getenv("LOG_FILE_NAME"), f"{service_name}.log"),
            max_bytes=_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024),
            backup_count=_env_int("LOG_BACKUP_COUNT", 10),
        )

    @property
    def file_path(self) -> Path:
        return self.directory / self.file_name


def _env_int(key: str, default: int) -> int:
    raw = clean_env(os.getenv(key))
    return int(raw) if raw.isdigit() else default


def _file_handler(settings: LogSettings) -> RotatingFileHandler | None:
    try:
        settings.directory.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            settings.file_path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    except OSError as error:
        logging.getLogger(__name__).warning("File logging disabled for %s: %s", settings.file_path, error)
        return None


def configure_logging(service_name: str) -> LogSettings:
    """Replace root handlers with console (+ rotating file) output and return the settings used."""
    settings = LogSettings.from_env(service_name)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(settings.level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    file_handler = _file_handler(settings)
    if file_handler is not None:
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    return settings
