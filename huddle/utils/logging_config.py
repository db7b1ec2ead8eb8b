import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict

LOG_FILES = ("app.log", "error.log", "audit.log")
_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _prune_backups(log_dir: Path, base_name: str, backup_count: int) -> None:
    if backup_count < 1:
        return
    candidates = sorted(
        log_dir.glob(f"{base_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for stale in candidates[backup_count:]:
        try:
            stale.unlink()
        except OSError:
            continue


def _env_level(name: str, fallback: str) -> str:
    value = (os.getenv(name) or "").strip().upper()
    return value if value in _LEVELS else fallback


def _rotating(path: Path, level: str, max_bytes: int, backup_count: int) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "filename": str(path),
        "maxBytes": max_bytes,
        "backupCount": backup_count,
        "level": level,
        "encoding": "utf8",
    }


def _logger(*handlers: str, level: str = "INFO") -> Dict[str, Any]:
    return {"handlers": list(handlers), "level": level, "propagate": False}


def setup_logging(log_dir: Path | str = "logs") -> None:
    """
    Configures logging for the service.

    Everything goes to the console and '<log_dir>/app.log'; errors are copied
    to 'error.log'. Meeting decisions and attendance sessions recorded on the
    'audit' logger get their own 'audit.log'.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "3"))
    for name in LOG_FILES:
        _prune_backups(log_dir, name, backup_count)

    app_level = _env_level("HUDDLE_LOG_LEVEL", "DEBUG")

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": "INFO",
            },
            "file_app": _rotating(log_dir / "app.log", "INFO", max_bytes, backup_count),
            "file_error": _rotating(
                log_dir / "error.log", "ERROR", max_bytes, backup_count
            ),
            "file_audit": _rotating(
                log_dir / "audit.log", "INFO", max_bytes, backup_count
            ),
        },
        "loggers": {
            "": {  # Root logger
                "handlers": ["console", "file_app", "file_error"],
                "level": "INFO",
                "propagate": True,
            },
            "uvicorn": _logger("console", "file_app"),
            "uvicorn.access": _logger("console", "file_app"),
            "uvicorn.error": _logger("console", "file_error"),
            "audit": _logger("console", "file_app", "file_audit"),
            "database": _logger("console", "file_app", "file_error", level="WARNING"),
            "huddle": _logger(  # Application logger
                "console", "file_app", "file_error", level=app_level
            ),
        },
    }

    logging.config.dictConfig(logging_config)
    logging.getLogger("huddle").info("Logging configured in %s", log_dir)
