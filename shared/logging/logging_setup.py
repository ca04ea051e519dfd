"""Logging configuration for the knowledge base AI bridge.

Console output is colored per message, the optional file handler always writes
plain text. Timestamps are rendered in the configured TIMEZONE.
"""

from datetime import datetime
from logging import Logger
import logging
import logging.config
import os

from pytz import timezone

LOGGER_NAME = "kb_ai_bridge"

_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
    "blue":    "\033[34m",
    "white":   "\033[37m",
}

_LEVEL_PREFIX: dict[int, str] = {
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
    logging.WARNING: "⚠️ ",
}


def _resolve_level() -> int:
    """Map LOG_LEVEL to a logging level, defaulting to INFO."""
    name = os.getenv("LOG_LEVEL", "info").strip().upper()
    return logging.getLevelName(name) if isinstance(logging.getLevelName(name), int) else logging.INFO


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders asctime in a fixed timezone and prefixes warnings and errors."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record) -> str:
        # work on a copy so the prefix does not leak into other handlers
        record = logging.makeLogRecord(record.__dict__)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + record.getMessage()
        record.args = ()
        return super().format(record)


class ColoredFormatter(TimezoneFormatter):
    """Console formatter with optional per-message ANSI color support.

    Colors are applied only when the record carries a ``color`` attribute,
    which is set by passing ``color=<name>`` to :class:`ColorLogger` methods.
    """

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Thin wrapper around :class:`logging.Logger` that adds an optional
    ``color=`` keyword argument to all log methods.

    Usage::

        logger.info("Embedding stored for %s", doc_id, color="green")
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _with_color(self, kwargs: dict, color: str | None) -> dict:
        if color is None:
            return kwargs
        extra = dict(kwargs.get("extra") or {})
        extra["color"] = color
        return {**kwargs, "extra": extra}

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.debug(msg, *args, **self._with_color(kwargs, color))

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.info(msg, *args, **self._with_color(kwargs, color))

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.warning(msg, *args, **self._with_color(kwargs, color))

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.error(msg, *args, **self._with_color(kwargs, color))

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.critical(msg, *args, **self._with_color(kwargs, color))

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.exception(msg, *args, **self._with_color(kwargs, color))

    def __getattr__(self, name):
        """Delegate all other Logger attributes (e.g. setLevel, handlers) transparently."""
        return getattr(self._logger, name)


def setup_logging(log_to_file: bool | None = None) -> ColorLogger:
    """Configure root logging and return the application logger.

    Args:
        log_to_file (bool | None): Write to LOG_DIR/app.log as well. Defaults to the
                                   LOG_TO_FILE environment variable (true).

    Returns:
        ColorLogger: The application logger.
    """
    level = _resolve_level()
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    if log_to_file is None:
        log_to_file = os.getenv("LOG_TO_FILE", "true").lower() in ("true", "1", "yes")

    formatter_args = {
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
        "tz_name": tz_name,
    }
    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "colored",
            "level": level,
            "stream": "ext://sys.stdout",
        },
    }
    if log_to_file:
        log_dir = os.getenv("LOG_DIR") or os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": level,
            "filename": os.path.join(log_dir, "app.log"),
            "encoding": "utf-8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"()": TimezoneFormatter, **formatter_args},
            "colored": {"()": ColoredFormatter, **formatter_args},
        },
        "handlers": handlers,
        "root": {"handlers": list(handlers), "level": level},
    })

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
