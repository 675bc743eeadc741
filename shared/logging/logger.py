import logging
import os
from datetime import datetime
from pathlib import Path

DEFAULT_LOG_DIR = "logs"

_LOGGERS = {}
_LEVEL = logging.DEBUG


def _log_dir() -> Path | None:
    """
    Resolve the per-run log directory.

    AUDIT_LOG_DIR overrides the default; an empty value disables file logs.
    """
    raw = os.getenv("AUDIT_LOG_DIR", DEFAULT_LOG_DIR)
    if not raw:
        return None
    path = Path(raw)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logger(
    name: str,
    *,
    runtime: str = "audit",
) -> logging.Logger:
    """
    Create or retrieve a named milestone logger.

    Parameters:
    - name: logger namespace (e.g. core.audit_app, discord.gateway)
    - runtime: log file prefix (audit | future runtimes)

    These loggers carry human-readable connect/disconnect milestones and
    diagnostics only. Audit records never pass through them.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(_LEVEL)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # ------------------------------
    # Console handler (stderr, stdout is reserved for records)
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    log_dir = _log_dir()
    if log_dir is not None:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        logfile = log_dir / f"{runtime}-{timestamp}.log"

        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger


def set_level(level: str | int) -> None:
    """
    Apply a level to every logger created so far and to future ones.
    """
    global _LEVEL

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    _LEVEL = level
    for logger in _LOGGERS.values():
        logger.setLevel(level)
