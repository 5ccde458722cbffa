from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .config_schema import LoggingConfig


LOGGER_NAME = "mob_consensus"

# Environment variables for configuration
ENV_LOG_DIR = "MOB_CONSENSUS_LOG_DIR"
ENV_LOG_LEVEL = "MOB_CONSENSUS_LOG_LEVEL"
ENV_LOG_MAX_BYTES = "MOB_CONSENSUS_LOG_MAX_BYTES"
ENV_LOG_BACKUP_COUNT = "MOB_CONSENSUS_LOG_BACKUP_COUNT"
ENV_LOG_DISABLE_FILE = "MOB_CONSENSUS_LOG_DISABLE_FILE"

# Defaults
DEFAULT_LOG_DIR = Path.home() / ".mob-consensus" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
DEFAULT_BACKUP_COUNT = 3

_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"

_logger_initialized = False
_session_start = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _resolve_settings(cfg: Optional["LoggingConfig"]) -> Dict[str, Any]:
    """Merge logging settings from config (already env-overlaid) or env alone."""
    if cfg is not None:
        return {
            "level": cfg.level,
            "dir": Path(cfg.dir).expanduser() if cfg.dir else DEFAULT_LOG_DIR,
            "max_bytes": cfg.max_bytes,
            "backup_count": cfg.backup_count,
            "disable_file": cfg.disable_file,
        }
    return {
        "level": os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL),
        "dir": Path(os.getenv(ENV_LOG_DIR, str(DEFAULT_LOG_DIR))).expanduser(),
        "max_bytes": int(os.getenv(ENV_LOG_MAX_BYTES, DEFAULT_MAX_BYTES)),
        "backup_count": int(os.getenv(ENV_LOG_BACKUP_COUNT, DEFAULT_BACKUP_COUNT)),
        "disable_file": _truthy(os.getenv(ENV_LOG_DISABLE_FILE, "")),
    }


def _install_handlers(logger: logging.Logger, settings: Dict[str, Any]) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = getattr(logging, str(settings["level"]).upper(), logging.INFO)
    logger.setLevel(level)

    if settings["disable_file"]:
        logger.addHandler(logging.NullHandler())
        return

    log_dir: Path = settings["dir"]
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Unwritable log dir: no file log
        logger.addHandler(logging.NullHandler())
        return

    # Session-based filename: mob-consensus_2024-01-15_143022.log
    file_handler = RotatingFileHandler(
        str(log_dir / f"mob-consensus_{_session_start}.log"),
        maxBytes=settings["max_bytes"],
        backupCount=settings["backup_count"],
    )
    file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    file_handler.setLevel(level)
    logger.addHandler(file_handler)


def _get_logger() -> logging.Logger:
    """Get or initialize the mob-consensus logger.

    By default, logs to ~/.mob-consensus/logs/mob-consensus_<session>.log

    Configuration via environment variables (until configure_logging is called):
    - MOB_CONSENSUS_LOG_DIR: Directory for log files
    - MOB_CONSENSUS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - MOB_CONSENSUS_LOG_MAX_BYTES: Max log file size before rotation
    - MOB_CONSENSUS_LOG_BACKUP_COUNT: Number of backup files to keep
    - MOB_CONSENSUS_LOG_DISABLE_FILE: Set to 1 to disable file logging
    """
    global _logger_initialized
    logger = logging.getLogger(LOGGER_NAME)
    if not _logger_initialized:
        _logger_initialized = True
        _install_handlers(logger, _resolve_settings(None))
    return logger


def configure_logging(cfg: Optional["LoggingConfig"] = None, stream: Optional[IO[str]] = None) -> logging.Logger:
    """(Re)initialize handlers from a loaded config.

    The engine never writes to process-global output, so a stream handler is
    only attached when the caller passes one (the CLI passes its stderr).
    """
    global _logger_initialized
    logger = logging.getLogger(LOGGER_NAME)
    settings = _resolve_settings(cfg)
    _install_handlers(logger, settings)
    _logger_initialized = True

    if stream is not None:
        stream_handler = logging.StreamHandler(stream)
        stream_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        stream_handler.setLevel(max(logger.level, logging.WARNING))
        logger.addHandler(stream_handler)
    return logger


def log_action(
    action: str,
    *,
    outcome: str = "ok",
    duration_ms: Optional[float] = None,
    **fields: Any,
) -> None:
    """Emit a structured log line for an action.

    Fields are serialized to JSON for safety. Keep schema lightweight.
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "outcome": outcome,
    }
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 2)
    if fields:
        payload.update(fields)

    _get_logger().info(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))


def _with_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    return f"{message} {json.dumps(fields, separators=(',', ':'), sort_keys=True, default=str)}"


def log_debug(message: str, **fields: Any) -> None:
    """Log a debug message with optional structured fields.

    Only emitted when log level is DEBUG.
    """
    logger = _get_logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(_with_fields(message, fields))


def log_warning(message: str, **fields: Any) -> None:
    """Log a warning message with optional structured fields."""
    _get_logger().warning(_with_fields(message, fields))


@contextmanager
def timeit(action: str, **fields: Any):
    """Time a block and emit a structured log on exit.

    On exception, logs outcome="error" with the exception type and re-raises.

    Yields:
        A dict the block can update with extra fields for the final log line
    """
    start = time.perf_counter()
    result_info: Dict[str, Any] = {}
    try:
        yield result_info
    except Exception as exc:
        duration_ms = (time.perf_counter() - start) * 1000.0
        log_action(
            action,
            outcome="error",
            duration_ms=duration_ms,
            error=type(exc).__name__,
            **fields,
        )
        raise
    duration_ms = (time.perf_counter() - start) * 1000.0
    log_action(action, outcome="ok", duration_ms=duration_ms, **{**fields, **result_info})
