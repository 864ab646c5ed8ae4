"""Logging and call tracing for the andtask record store.

``configure_logging`` sends the ``andtask`` logger tree to a rotating log
file. ``traced`` wraps each RecordStore operation: it logs the call under
a short correlation ID and feeds its duration and outcome to ``metrics``.
"""
import functools
import inspect
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from andtask.config import config

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".andtask" / "logs"
LOG_FILE_NAME = "andtask.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Call arguments worth echoing into the trace log
TRACED_ARGUMENTS = ("id", "query")

F = TypeVar('F', bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Write the ``andtask`` logger tree to a rotating file.

    Safe to call more than once: a handler for the same file, or a second
    console handler, is never added twice.

    Args:
        log_dir: Directory for ``andtask.log``. Falls back to
            config.log_dir, then ~/.andtask/logs/
        level: Level for the logger and its handlers
        max_bytes: Rotate once the file reaches this size
        backup_count: Rotated files to keep
        console: Also echo records to stderr

    Returns:
        The log directory in use.
    """
    log_path = Path(log_dir or config.log_dir or DEFAULT_LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = (log_path / LOG_FILE_NAME).absolute()

    package_logger = logging.getLogger("andtask")
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = package_logger.handlers
    has_file = any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file
        for h in handlers
    )
    has_console = any(type(h) is logging.StreamHandler for h in handlers)

    new_handlers = []
    if not has_file:
        new_handlers.append(RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        ))
    if console and not has_console:
        new_handlers.append(logging.StreamHandler())

    for handler in new_handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    package_logger.info(f"Logging to {log_file}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one operation name."""
    count: int = 0
    errors: int = 0
    total_ms: float = 0.0
    min_ms: Optional[float] = None
    max_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def add(self, duration_ms: float, error: Optional[str] = None) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        if error is not None:
            self.errors += 1
            self.last_error = error
            self.last_error_at = datetime.now(timezone.utc)

    def snapshot(self) -> Dict[str, Any]:
        successes = self.count - self.errors
        return {
            'count': self.count,
            'success_count': successes,
            'error_count': self.errors,
            'success_rate': successes / self.count if self.count else 0,
            'avg_duration_ms': round(self.total_ms / self.count, 2) if self.count else 0,
            'min_duration_ms': round(self.min_ms or 0.0, 2),
            'max_duration_ms': round(self.max_ms, 2),
            'last_error': self.last_error,
            'last_error_time': self.last_error_at.isoformat() if self.last_error_at else None,
        }


class MetricsCollector:
    """In-memory call statistics, keyed by operation name. Thread-safe."""

    def __init__(self):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()

    def record(self, operation: str, duration_ms: float, error: Optional[str] = None) -> None:
        """Count one call; ``error`` is None when the call succeeded."""
        with self._lock:
            self._stats.setdefault(operation, OperationStats()).add(duration_ms, error)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: stats.snapshot() for name, stats in self._stats.items()}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


metrics = MetricsCollector()


@contextmanager
def operation_span(operation: str, **context):
    """Time a block, log its start and end, and record it in ``metrics``.

    Yields a dict holding ``correlation_id``; anything else the block
    stores in it is appended to the end-of-call log line.
    """
    span: Dict[str, Any] = {'correlation_id': uuid.uuid4().hex[:8]}
    tag = f"[{span['correlation_id']}] {operation}"
    logger.debug(f"{tag} start {' '.join(f'{k}={v!r}' for k, v in context.items())}")

    started = time.perf_counter()
    error = None
    try:
        yield span
    except Exception as e:
        error = str(e)
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.record(operation, elapsed_ms, error)
        outcome = f"failed: {error}" if error is not None else "ok"
        extras = ' '.join(f'{k}={v}' for k, v in span.items() if k != 'correlation_id')
        logger.debug(f"{tag} {outcome} in {elapsed_ms:.2f}ms {extras}".rstrip())


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Run each call of the decorated function inside an operation_span.

    ``id`` and ``query`` arguments are logged whether they were passed
    by position or by keyword. List results log their length.
    """
    def decorator(func: F) -> F:
        op_name = operation_name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                arguments = signature.bind_partial(*args, **kwargs).arguments
            except TypeError:
                arguments = kwargs
            context = {
                name: str(arguments[name])[:50]
                for name in TRACED_ARGUMENTS
                if arguments.get(name) is not None
            }

            with operation_span(op_name, **context) as span:
                result = func(*args, **kwargs)
                if isinstance(result, list):
                    span['result_count'] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator
