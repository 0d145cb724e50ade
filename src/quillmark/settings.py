from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in {"1", "true", "yes", "y", "on"}:
        return True
    if val in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return minimum
    return value


def _env_path(name: str) -> Path | None:
    raw = os.environ.get(name)
    return Path(raw).expanduser() if raw else None


@dataclass(frozen=True)
class Settings:
    """Static settings for the transcoder.

    Everything is read once from the environment; callers that need a
    different value pass an explicit override instead of mutating this.
    """

    log_level: str = os.environ.get("QUILLMARK_LOG_LEVEL", "WARNING")
    # Unset means stderr only.
    log_path: Path | None = _env_path("QUILLMARK_LOG_PATH")
    log_max_bytes: int = _env_int("QUILLMARK_LOG_MAX_BYTES", 1_000_000, minimum=1024)
    log_backup_count: int = _env_int("QUILLMARK_LOG_BACKUP_COUNT", 3, minimum=0)

    # =========================================================================
    # Parsing limits
    # =========================================================================
    # Containers (details, callouts, quotes, list items) and inline
    # directives (spoilers, annotations) nested deeper than this are kept
    # as literal text instead of being parsed.
    # =========================================================================
    max_nesting_depth: int = _env_int("QUILLMARK_MAX_NESTING_DEPTH", 32, minimum=1)

    # Schema strictness: when enabled an unusable attribute value raises
    # SchemaViolation; otherwise the attribute falls back to its default.
    strict_schema: bool = _env_bool("QUILLMARK_STRICT_SCHEMA", False)


settings = Settings()
