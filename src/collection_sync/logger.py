"""Logging setup for the collection-sync CLI and embedding hosts.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where records go and at which level.
"""

import json
import logging
import os
import sys

from .config_schema import LoggingConfig

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_FILE = "/tmp/collection-sync.log"
_NOISY_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg (and exc)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=DATE_FORMAT
    )


def resolve_level(
    mode: str, debug: bool, config: LoggingConfig | None = None
) -> int:
    """Pick the effective level.

    Precedence: ``debug`` flag, then ``LOG_LEVEL``, then the ``logging.level``
    config value, then WARNING for file mode or INFO for CLI mode.
    Unknown names fall back to INFO.
    """
    if debug:
        return logging.DEBUG
    name = os.getenv("LOG_LEVEL")
    if not name and config is not None:
        name = config.level
    if not name:
        name = "WARNING" if mode == "file" else "INFO"
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    config: LoggingConfig | None = None,
) -> None:
    """
    Configure the root logger.

    Args:
        mode: "cli" logs to stderr, plus a log file when one is given;
              "file" logs only to a file, for hosts that own stderr.
        debug: Force DEBUG level.
        log_file: Log file path; falls back to ``config.file``, and in
                  file mode to ``LOG_FILE`` or ``/tmp/collection-sync.log``.
        debug_format: "text" (default) or "json".
        config: The ``logging`` section of the unified config.

    Environment variables:
        LOG_LEVEL: Overrides the configured level.
        LOG_FILE: Log file path for file mode.
    """
    level = resolve_level(mode, debug, config)
    if log_file is None and config is not None:
        log_file = config.file

    handlers: list[logging.Handler] = []
    if mode == "file":
        path = log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE)
        file_handler = logging.FileHandler(path, mode="a")
        file_handler.setFormatter(_formatter(debug_format, False))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format, False))
        handlers.append(stderr_handler)
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_formatter(debug_format, True))
            handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)

    if level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
