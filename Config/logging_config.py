"""
Structured Logging Configuration for the silo ledger

This module provides centralized logging configuration with:
- JSON formatting for production environments
- Colored console output for development
- Size-based log rotation (50MB max)
- Context injection (silo_id, movement_id, component)
- Custom log levels for stock movements
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from Config.environment import get_environment


# Custom log levels for stock movements
LEDGER_LOG_LEVELS = {
    'RECEIVE': 21,
    'DISPATCH': 22,
    'UNMATCHED_OUTBOUND': 26,
    'CAPACITY_EXCEEDED': 27,
    'INSUFFICIENT_STOCK': 28,
}

for level_name, level_num in LEDGER_LOG_LEVELS.items():
    logging.addLevelName(level_num, level_name)

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName',
    'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'context', 'taskName',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production.

    Outputs log records as JSON with consistent structure:
    {
        "timestamp": "2025-11-08T10:30:45.123+00:00",
        "level": "RECEIVE",
        "logger": "inventory",
        "message": "Inbound registered",
        "context": {"silo_id": 3, "component": "inventory"},
        "extra": {...},
        "exc_info": "..."
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'context'):
            log_data['context'] = record.context

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_data['extra'] = extra_fields

        if record.exc_info:
            log_data['exc_info'] = self.formatException(record.exc_info)

        # Decimal quantities and datetimes fall back to str
        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Colored console formatter for development environments.
    Uses ANSI color codes for better readability.
    """

    COLORS = {
        'DEBUG': '\x1b[38;21m',               # Grey
        'INFO': '\x1b[38;21m',                # Grey
        'WARNING': '\x1b[38;5;214m',          # Orange
        'ERROR': '\x1b[31;21m',               # Red
        'CRITICAL': '\x1b[31;1m',             # Bold Red
        'RECEIVE': '\x1b[34;21m',             # Blue
        'DISPATCH': '\x1b[32;21m',            # Green
        'UNMATCHED_OUTBOUND': '\x1b[33;21m',  # Yellow
        'CAPACITY_EXCEEDED': '\x1b[35;21m',   # Magenta
        'INSUFFICIENT_STOCK': '\x1b[35;21m',  # Magenta
    }
    RESET = '\x1b[0m'

    def __init__(self, include_context: bool = True):
        """
        Initialize formatter.

        Args:
            include_context: Whether to include context fields in output
        """
        self.include_context = include_context
        fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)'
        super().__init__(fmt, datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with color codes."""
        levelname = record.levelname
        original_msg = record.msg
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
            record.msg = f"{self.COLORS[levelname]}{record.msg}{self.RESET}"

        try:
            formatted = super().format(record)
        finally:
            record.levelname = levelname
            record.msg = original_msg

        if self.include_context and hasattr(record, 'context') and record.context:
            context_str = ' | '.join(f"{k}={v}" for k, v in record.context.items())
            formatted += f" [{context_str}]"

        return formatted


class LoggingConfig:
    """
    Central logging configuration manager.

    Provides factory methods for creating configured loggers with:
    - Environment-aware formatting (JSON for production, colored for dev)
    - Size-based rotation (50MB default)
    - Consistent log levels and handlers
    """

    DEFAULT_LOG_DIR = 'logs'
    DEFAULT_MAX_BYTES = 50 * 1024 * 1024  # 50MB
    DEFAULT_BACKUP_COUNT = 5

    def __init__(
        self,
        log_dir: Optional[str] = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        console_level: Optional[str] = None,
        file_level: str = 'DEBUG',
        use_json: Optional[bool] = None,
        write_files: bool = True,
    ):
        """
        Initialize logging configuration.

        Args:
            log_dir: Directory for log files (default: 'logs')
            max_bytes: Max size per log file before rotation (default: 50MB)
            backup_count: Number of backup files to keep (default: 5)
            console_level: Console log level (default: LOG_LEVEL env or INFO)
            file_level: File log level (default: DEBUG)
            use_json: Force JSON formatting (default: auto-detect from environment)
            write_files: Attach rotating file handlers (disable for tests / CLI one-shots)
        """
        self.log_dir = Path(log_dir or os.getenv('SILO_LEDGER_LOG_DIR') or self.DEFAULT_LOG_DIR)
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.console_level = console_level or os.getenv('LOG_LEVEL', 'INFO')
        self.file_level = file_level
        self.write_files = write_files

        if use_json is None:
            self.use_json = get_environment() in ['production', 'staging', 'docker']
        else:
            self.use_json = use_json

        if self.write_files:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def get_console_formatter(self) -> logging.Formatter:
        """Get appropriate console formatter based on environment."""
        if self.use_json:
            return JSONFormatter()
        return ColoredConsoleFormatter(include_context=True)

    def get_file_formatter(self) -> logging.Formatter:
        """Get file formatter (always JSON for structured logs)."""
        return JSONFormatter()

    def create_console_handler(self) -> logging.StreamHandler:
        """Create configured console handler."""
        handler = logging.StreamHandler()
        handler.setLevel(logging.getLevelName(self.console_level.upper()))
        handler.setFormatter(self.get_console_formatter())
        return handler

    def create_file_handler(self, log_file: str) -> RotatingFileHandler:
        """
        Create configured rotating file handler.

        Args:
            log_file: Name of the log file (e.g., 'inventory.log')

        Returns:
            Configured RotatingFileHandler
        """
        handler = RotatingFileHandler(
            self.log_dir / log_file,
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
        )
        handler.setLevel(logging.getLevelName(self.file_level.upper()))
        handler.setFormatter(self.get_file_formatter())
        return handler

    def configure_logger(
        self,
        logger_name: str,
        log_file: Optional[str] = None,
    ) -> logging.Logger:
        """
        Configure a logger with console and (optionally) file handlers.

        Args:
            logger_name: Name of the logger
            log_file: Log file name (default: none)

        Returns:
            Configured logger instance
        """
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.DEBUG)  # Capture all levels, handlers filter

        if logger.hasHandlers():
            logger.handlers.clear()

        logger.addHandler(self.create_console_handler())

        if log_file and self.write_files:
            logger.addHandler(self.create_file_handler(log_file))

        logger.propagate = False

        return logger

    def setup_sqlalchemy_logging(self, level: str = 'WARNING') -> None:
        """
        Configure SQLAlchemy logging to reduce noise.

        Args:
            level: Log level for SQLAlchemy (default: WARNING)
        """
        sqlalchemy_logger = logging.getLogger('sqlalchemy.engine')
        sqlalchemy_logger.setLevel(getattr(logging, level.upper()))

        if sqlalchemy_logger.hasHandlers():
            sqlalchemy_logger.handlers.clear()

        handler = logging.StreamHandler()
        handler.setLevel(getattr(logging, level.upper()))
        handler.setFormatter(self.get_console_formatter())
        sqlalchemy_logger.addHandler(handler)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'LoggingConfig':
        """
        Create LoggingConfig from dictionary.

        Args:
            config: Configuration dictionary

        Returns:
            LoggingConfig instance
        """
        return cls(
            log_dir=config.get('log_dir'),
            max_bytes=config.get('max_bytes', cls.DEFAULT_MAX_BYTES),
            backup_count=config.get('backup_count', cls.DEFAULT_BACKUP_COUNT),
            console_level=config.get('console_level'),
            file_level=config.get('file_level', 'DEBUG'),
            use_json=config.get('use_json'),
            write_files=config.get('write_files', True),
        )


_default_config: Optional[LoggingConfig] = None


def get_logging_config() -> LoggingConfig:
    """Get or create default logging configuration."""
    global _default_config
    if _default_config is None:
        _default_config = LoggingConfig()
    return _default_config


def set_logging_config(config: LoggingConfig) -> None:
    """Set default logging configuration."""
    global _default_config
    _default_config = config
