"""
Structured Logger for the silo ledger

Provides:
- Context injection (silo_id, movement_id, component)
- Performance tracking decorators
- Custom movement log levels (RECEIVE, DISPATCH, CAPACITY_EXCEEDED, ...)
- Task-safe context management

Usage:
    # Basic logging
    logger = get_logger('inventory')
    logger.info('Recomputing levels')

    # With context
    logger = get_component_logger('inventory', silo='S1')
    logger.receive('Inbound registered')

    # Performance tracking
    @log_performance('inventory')
    async def get_levels(...):
        ...
"""

import asyncio
import functools
import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

from Config.logging_config import (
    LoggingConfig,
    get_logging_config,
    set_logging_config,
    LEDGER_LOG_LEVELS,
)


# Task-safe context storage
_log_context: ContextVar[Dict[str, Any]] = ContextVar('log_context', default={})


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter with context injection and movement-specific levels.

    Context is merged from three sources, later ones winning:
    the ambient context (set_context / log_context), the adapter's
    default extra, and the per-call ``extra`` argument.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})
        self._component = extra.get('component') if extra else None

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        context = {}
        context.update(_log_context.get())

        if self.extra:
            context.update(self.extra)

        if 'extra' in kwargs:
            context.update(kwargs.pop('extra'))

        if context:
            kwargs['extra'] = {'context': context}

        return msg, kwargs

    # ========================================================================
    # Movement Log Levels
    # ========================================================================

    def receive(self, msg: str, *args, **kwargs) -> None:
        """Log RECEIVE level message."""
        self.log(LEDGER_LOG_LEVELS['RECEIVE'], msg, *args, **kwargs)

    def dispatch(self, msg: str, *args, **kwargs) -> None:
        """Log DISPATCH level message."""
        self.log(LEDGER_LOG_LEVELS['DISPATCH'], msg, *args, **kwargs)

    def unmatched_outbound(self, msg: str, *args, **kwargs) -> None:
        """Log UNMATCHED_OUTBOUND level message."""
        self.log(LEDGER_LOG_LEVELS['UNMATCHED_OUTBOUND'], msg, *args, **kwargs)

    def capacity_exceeded(self, msg: str, *args, **kwargs) -> None:
        """Log CAPACITY_EXCEEDED level message."""
        self.log(LEDGER_LOG_LEVELS['CAPACITY_EXCEEDED'], msg, *args, **kwargs)

    def insufficient_stock(self, msg: str, *args, **kwargs) -> None:
        """Log INSUFFICIENT_STOCK level message."""
        self.log(LEDGER_LOG_LEVELS['INSUFFICIENT_STOCK'], msg, *args, **kwargs)


# ============================================================================
# Logger Factory
# ============================================================================

_loggers: Dict[str, StructuredLogger] = {}


def _cache_key(name: str, context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return name
    return name + ':' + ','.join(f"{k}={context[k]}" for k in sorted(context))


def get_logger(
    name: str,
    context: Optional[Dict[str, Any]] = None,
    config: Optional[LoggingConfig] = None,
) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (e.g., 'inventory', 'ledger', 'store')
        context: Optional default context (silo_id, component, etc.)
        config: Optional custom logging config (uses default if not provided)

    Returns:
        StructuredLogger instance
    """
    key = _cache_key(name, context)

    if key not in _loggers:
        log_config = config or get_logging_config()
        base_logger = log_config.configure_logger(
            logger_name=name,
            log_file=f"{name}.log",
        )
        _loggers[key] = StructuredLogger(base_logger, extra=context)

    return _loggers[key]


def get_component_logger(component: str, **extra_context) -> StructuredLogger:
    """
    Get a logger with component in context.

    Examples:
        >>> logger = get_component_logger('fifo_ledger')
        >>> logger.info('Levels recomputed')
    """
    context = {'component': component}
    context.update(extra_context)
    return get_logger(component, context=context)


# ============================================================================
# Context Management
# ============================================================================

def set_context(**context) -> None:
    """Set ambient logging context for the current task/thread."""
    current = _log_context.get().copy()
    current.update(context)
    _log_context.set(current)


def clear_context() -> None:
    """Clear ambient logging context."""
    _log_context.set({})


def get_context() -> Dict[str, Any]:
    """Get a copy of the ambient logging context."""
    return _log_context.get().copy()


@contextmanager
def log_context(**context):
    """
    Context manager for temporary logging context.

    Examples:
        >>> with log_context(silo_id=3, movement='inbound'):
        ...     logger.info('Validating capacity')
    """
    previous = get_context()
    set_context(**context)
    try:
        yield
    finally:
        _log_context.set(previous)


# ============================================================================
# Performance Tracking Decorators
# ============================================================================

def log_performance(
    logger_name: str,
    level: str = 'DEBUG',
    include_args: bool = False,
) -> Callable:
    """
    Decorator to log function execution time.

    The logger is resolved on first call, so decorating a function does not
    configure handlers at import time.

    Args:
        logger_name: Name of logger to use
        level: Log level (default: DEBUG)
        include_args: Whether to log function arguments
    """
    def decorator(func: Callable) -> Callable:
        log_level = getattr(logging, level.upper(), logging.DEBUG)
        func_name = func.__name__

        def _entry(logger, args, kwargs):
            if include_args:
                logger.log(log_level, f"Calling {func_name}",
                           extra={'args': str(args), 'kwargs': str(kwargs)})
            else:
                logger.log(log_level, f"Calling {func_name}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            start_time = time.perf_counter()
            _entry(logger, args, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception:
                elapsed = time.perf_counter() - start_time
                logger.error(f"{func_name} failed", exc_info=True,
                             extra={'duration_ms': round(elapsed * 1000, 2)})
                raise
            elapsed = time.perf_counter() - start_time
            logger.log(log_level, f"{func_name} completed",
                       extra={'duration_ms': round(elapsed * 1000, 2)})
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            start_time = time.perf_counter()
            _entry(logger, args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception:
                elapsed = time.perf_counter() - start_time
                logger.error(f"{func_name} failed", exc_info=True,
                             extra={'duration_ms': round(elapsed * 1000, 2)})
                raise
            elapsed = time.perf_counter() - start_time
            logger.log(log_level, f"{func_name} completed",
                       extra={'duration_ms': round(elapsed * 1000, 2)})
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# ============================================================================
# Setup
# ============================================================================

def setup_structured_logging(
    log_dir: Optional[str] = None,
    console_level: str = 'INFO',
    use_json: Optional[bool] = None,
    write_files: bool = True,
) -> LoggingConfig:
    """
    Initialize structured logging system.

    Loggers handed out before this call keep their handlers; call it once at
    process start.

    Examples:
        >>> config = setup_structured_logging(log_dir='logs', console_level='DEBUG')
        >>> logger = get_logger('inventory')
    """
    config = LoggingConfig(
        log_dir=log_dir,
        console_level=console_level,
        use_json=use_json,
        write_files=write_files,
    )

    set_logging_config(config)
    _loggers.clear()
    config.setup_sqlalchemy_logging()
    return config


__all__ = [
    'StructuredLogger',
    'get_logger',
    'get_component_logger',
    'set_context',
    'clear_context',
    'get_context',
    'log_context',
    'log_performance',
    'setup_structured_logging',
]
