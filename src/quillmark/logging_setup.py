"""Logging configuration for quillmark entry points.

Library modules only create loggers; handlers are installed here, by the
CLI or by a host application that wants quillmark's output.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from .settings import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_CONFIGURED = False


def configure_logging(level: str | None = None) -> None:
    """Install the stderr (and optional rotating file) handlers once.

    Args:
        level: Level name overriding ``settings.log_level``.
    """
    global _CONFIGURED

    root = logging.getLogger("quillmark")
    root.setLevel((level or settings.log_level).upper())

    if _CONFIGURED:
        return

    formatter = logging.Formatter(_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if settings.log_path is not None:
        settings.log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.log_path,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    _CONFIGURED = True
