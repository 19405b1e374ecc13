"""Loguru logging configuration.

Application records go to stderr (human-readable, or one JSON object per
line when ``json_logs`` is set). Security events, i.e. denied operations,
tenant violations and throttling, are emitted through ``security_logger``
so that a log directory also gets a dedicated ``security.log`` that
operators can retain longer than the application log.
"""

import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"

APP_LOG_FILE = "voto-popular.log"
SECURITY_LOG_FILE = "security.log"

security_logger = logger.bind(security=True)


def _is_security_event(record: dict) -> bool:
    return bool(record["extra"].get("security", False))


def setup_logging(log_level: str = "INFO", log_dir: str | None = None, *, json_logs: bool = False) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Minimum log level to emit.
        log_dir: Optional directory for log files. When set, the application
            log rotates every 24 hours and is kept 7 days; the security log
            rotates weekly and is kept 90 days.
        json_logs: Serialize stderr records as JSON (for log shippers).
    """
    level = log_level.upper()
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_LOG_FORMAT)

    if not log_dir:
        return

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path / APP_LOG_FILE,
        level=level,
        format=_LOG_FORMAT,
        rotation="24h",
        retention="7 days",
    )
    logger.add(
        log_path / SECURITY_LOG_FILE,
        level="INFO",
        serialize=True,
        filter=_is_security_event,
        rotation="1 week",
        retention="90 days",
    )
