"""
Logger Service Module
Root logging setup for Plinko Lab: colored console, rotating files, round tagging
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

# Try to import colorlog for colored console output (optional)
try:
    import colorlog

    COLORLOG_AVAILABLE = True
except ImportError:
    COLORLOG_AVAILABLE = False

# Round id of the work currently running; asyncio tasks inherit it on creation
_current_round: ContextVar[str] = ContextVar("plinko_round_id", default="-")

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

DEFAULTS: dict[str, Any] = {
    "log_dir": "./logs",
    "log_level": "INFO",
    "console_level": "INFO",
    "file_level": "DEBUG",
    "max_bytes": 5 * 1024 * 1024,  # 5MB
    "backup_count": 3,
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "date_format": "%Y-%m-%d %H:%M:%S",
    "colored_output": True,
    "console_output": True,
    "json_logs": False,
}


def bind_round(round_id: str | None) -> None:
    """Tag subsequent log records in this context with round_id."""
    _current_round.set(round_id or "-")


def current_round() -> str:
    return _current_round.get()


class RoundContextFilter(logging.Filter):
    """Adds a round_id attribute to every record passing through a handler"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "round_id"):
            record.round_id = _current_round.get()
        return True


def _with_round(fmt: str) -> str:
    """Insert the round tag right before the message field."""
    if "%(round_id)" in fmt or "%(message)s" not in fmt:
        return fmt
    return fmt.replace("%(message)s", "[%(round_id)s] %(message)s", 1)


class LoggerService:
    """
    Owns the root logger's handlers:
    - console on stderr (colorlog when installed)
    - plinko.log with rotation, everything from file_level up
    - errors.log with rotation, ERROR and above
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = {**DEFAULTS, **{k: v for k, v in (config or {}).items() if v is not None}}
        self.loggers: dict[str, logging.Logger] = {}
        self.log_dir = self._prepare_log_dir(Path(self.config["log_dir"]))
        self._install_handlers()

    @staticmethod
    def _prepare_log_dir(log_dir: Path) -> Path:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            if not os.access(log_dir, os.W_OK):
                raise PermissionError(f"Log directory not writable: {log_dir}")
            return log_dir
        except OSError:
            # Home directory may be read-only in containers; log next to the process
            fallback = Path("./logs")
            fallback.mkdir(parents=True, exist_ok=True)
            return fallback

    def _install_handlers(self):
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)  # Filtering happens per handler
        root_logger.handlers = []

        handlers = [
            self._file_handler("plinko.log", self._level("file_level")),
            self._file_handler("errors.log", logging.ERROR),
        ]
        if self.config["console_output"]:
            handlers.insert(0, self._console_handler())

        round_filter = RoundContextFilter()
        for handler in handlers:
            handler.addFilter(round_filter)
            root_logger.addHandler(handler)

        # aiohttp is chatty at DEBUG
        logging.getLogger("aiohttp").setLevel(logging.WARNING)

    def _level(self, key: str) -> int:
        name = self.config.get(key) or self.config["log_level"]
        return getattr(logging, str(name).upper())

    def _plain_formatter(self) -> logging.Formatter:
        if self.config["json_logs"]:
            return JsonFormatter()
        return logging.Formatter(
            _with_round(self.config["format"]), datefmt=self.config["date_format"]
        )

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(self._level("console_level"))

        if COLORLOG_AVAILABLE and self.config["colored_output"] and not self.config["json_logs"]:
            handler.setFormatter(
                colorlog.ColoredFormatter(
                    "%(log_color)s" + _with_round(self.config["format"]),
                    datefmt=self.config["date_format"],
                    log_colors=LOG_COLORS,
                )
            )
        else:
            handler.setFormatter(self._plain_formatter())
        return handler

    def _file_handler(self, filename: str, level: int) -> logging.Handler:
        try:
            handler: logging.Handler = RotatingFileHandler(
                self.log_dir / filename,
                maxBytes=self.config["max_bytes"],
                backupCount=self.config["backup_count"],
            )
        except OSError:
            handler = logging.StreamHandler(sys.stderr)

        handler.setLevel(level)
        handler.setFormatter(self._plain_formatter())
        return handler

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create a named logger"""
        return self.loggers.setdefault(name, logging.getLogger(name))

    def cleanup(self):
        """Close and detach the root handlers"""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            handler.close()
            root_logger.removeHandler(handler)
        self.loggers.clear()


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extra= fields included"""

    _STANDARD = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(
            (key, value) for key, value in record.__dict__.items() if key not in self._STANDARD
        )
        return json.dumps(payload, default=str)


class PerformanceLogger:
    """Times a block and logs the duration at DEBUG (used around authority calls)"""

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time: datetime | None = None

    def __enter__(self):
        self.start_time = datetime.now()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = (datetime.now() - self.start_time).total_seconds()
        if exc_type:
            self.logger.debug(
                f"Operation '{self.operation}' failed after {elapsed:.3f}s: {exc_val!r}"
            )
        else:
            self.logger.debug(f"Operation '{self.operation}' completed in {elapsed:.3f}s")


# Global logger service instance
_logger_service: LoggerService | None = None


def setup_logging(config: dict | None = None) -> logging.Logger:
    """
    Configure root logging once and return the root logger

    Settings come from the LOGGING and FILES config sections; config overrides
    them. Later calls are no-ops until cleanup_logging().
    """
    global _logger_service

    if _logger_service is not None:
        return logging.getLogger()

    from config import config as app_config

    logging_section = app_config.section("logging")
    log_config = {
        "log_dir": str(app_config.FILES["log_dir"]),
        "log_level": logging_section["level"],
        "console_level": logging_section["level"],
        "max_bytes": logging_section["max_bytes"],
        "backup_count": logging_section["backup_count"],
        "format": logging_section["format"],
        "date_format": logging_section["date_format"],
        "console_output": logging_section["console_output"],
        "json_logs": logging_section.get("json_logs", False),
    }
    log_config.update(config or {})

    _logger_service = LoggerService(log_config)
    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    """Get a named logger, configuring logging on first use"""
    if _logger_service is None:
        setup_logging()
    return _logger_service.get_logger(name)


def cleanup_logging():
    """Close handlers so the next setup_logging() starts fresh"""
    global _logger_service

    if _logger_service is not None:
        _logger_service.cleanup()
        _logger_service = None
