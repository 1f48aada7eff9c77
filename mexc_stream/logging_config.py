"""Logging configuration for the stream client."""

import json
import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class LogFormat(Enum):
    """Log format types."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format_type: LogFormat = LogFormat.DETAILED
    log_to_console: bool = True
    log_to_file: bool = False
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    file_name: str = "mexc_stream.log"
    max_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    colorize_console: bool = True
    sensitive_fields: List[str] = field(
        default_factory=lambda: ["secret", "token", "listenKey", "signature", "apiKey"]
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "level": self.level,
            "format_type": self.format_type.value,
            "log_to_console": self.log_to_console,
            "log_to_file": self.log_to_file,
            "log_dir": str(self.log_dir),
            "file_name": self.file_name,
        }


LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1m\033[31m",
}
RESET = "\033[0m"


class SensitiveDataFilter(logging.Filter):
    """Redacts credential values such as ``secret=...`` from messages."""

    def __init__(self, sensitive_fields: Optional[List[str]] = None):
        super().__init__()
        fields = sensitive_fields or ["secret", "token"]
        names = "|".join(re.escape(f) for f in fields)
        self._pattern = re.compile(
            rf'((?:{names})["\']?\s*[:=]\s*["\']?)([^"\'\s,}}\]&]+)',
            re.IGNORECASE,
        )

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from the rendered message."""
        message = record.getMessage()
        redacted = self._pattern.sub(r"\1[REDACTED]", message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


class ColoredFormatter(logging.Formatter):
    """Formatter with colored level names for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        """Format with colors."""
        original = record.levelname
        record.levelname = f"{LEVEL_COLORS.get(original, '')}{original}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _create_formatter(config: LoggingConfig, for_console: bool) -> logging.Formatter:
    if config.format_type == LogFormat.JSON:
        return JsonFormatter()

    if config.format_type == LogFormat.SIMPLE:
        fmt = "%(levelname)s: %(message)s"
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

    if for_console and config.colorize_console and sys.stdout.isatty():
        return ColoredFormatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")
    return logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Install handlers on the root logger.

    Args:
        config: Logging configuration (defaults to console, INFO)

    Returns:
        The configured root logger
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.level}")

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if config.log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_create_formatter(config, for_console=True))
        root.addHandler(console)

    if config.log_to_file:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_dir / config.file_name,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_create_formatter(config, for_console=False))
        root.addHandler(file_handler)

    redactor = SensitiveDataFilter(config.sensitive_fields)
    for handler in root.handlers:
        handler.setLevel(level)
        handler.addFilter(redactor)

    return root


def get_status() -> Dict[str, Any]:
    """Describe the root logger setup."""
    root = logging.getLogger()
    return {
        "level": logging.getLevelName(root.level),
        "handlers": [type(h).__name__ for h in root.handlers],
    }
