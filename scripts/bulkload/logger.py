"""
Structured logging without print statements.
Provides consistent, timestamped, level-based output for loading runs.
"""
import sys
from datetime import datetime
from enum import Enum
from typing import Optional, TextIO


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """Parse a level name case-insensitively."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {name}") from None


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.SUCCESS: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
}


class StructuredLogger:
    """
    Logger with `[time] [LEVEL] message (key=value, ...)` lines.
    Warnings and errors go to stderr, everything else to stdout.
    """

    def __init__(
        self,
        min_level: LogLevel = LogLevel.INFO,
        show_timestamp: bool = True,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None
    ):
        self.min_level = min_level
        self.show_timestamp = show_timestamp
        self._stdout = stdout
        self._stderr = stderr

    def _should_log(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.min_level]

    def _format_message(self, level: LogLevel, message: str, details: Optional[dict] = None) -> str:
        """Format log message with consistent structure."""
        parts = []

        if self.show_timestamp:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            parts.append(f"[{timestamp}]")

        parts.append(f"[{level.value}]")
        parts.append(message)

        if details:
            detail_strs = [f"{k}={self._format_value(v)}" for k, v in details.items()]
            parts.append(f"({', '.join(detail_strs)})")

        return " ".join(parts)

    @staticmethod
    def _format_value(value) -> str:
        if isinstance(value, float):
            return f"{value:.3f}"
        if isinstance(value, int) and not isinstance(value, bool):
            return f"{value:,}"
        return str(value)

    def _stream(self, level: LogLevel) -> TextIO:
        # Resolved per call so pytest's capture and redirects are honoured
        if level in (LogLevel.ERROR, LogLevel.WARNING):
            return self._stderr or sys.stderr
        return self._stdout or sys.stdout

    def _write(self, level: LogLevel, message: str, details: Optional[dict] = None):
        if not self._should_log(level):
            return

        stream = self._stream(level)
        stream.write(self._format_message(level, message, details) + "\n")
        stream.flush()

    def debug(self, message: str, **details):
        self._write(LogLevel.DEBUG, message, details or None)

    def info(self, message: str, **details):
        self._write(LogLevel.INFO, message, details or None)

    def success(self, message: str, **details):
        self._write(LogLevel.SUCCESS, message, details or None)

    def warning(self, message: str, **details):
        self._write(LogLevel.WARNING, message, details or None)

    def error(self, message: str, **details):
        self._write(LogLevel.ERROR, message, details or None)

    def section(self, title: str):
        """Log section header."""
        separator = "=" * 60
        self._write(LogLevel.INFO, separator)
        self._write(LogLevel.INFO, title)
        self._write(LogLevel.INFO, separator)

    def block(self, text: str):
        """Write a preformatted multi-line block at INFO level."""
        if not self._should_log(LogLevel.INFO):
            return
        stream = self._stream(LogLevel.INFO)
        stream.write(text.rstrip("\n") + "\n")
        stream.flush()


_default_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Get or create default logger instance."""
    global _default_logger
    if _default_logger is None:
        _default_logger = StructuredLogger()
    return _default_logger


def set_logger(logger: StructuredLogger):
    """Set custom logger instance."""
    global _default_logger
    _default_logger = logger
