"""Logging utilities for citree.

citree logs through loguru. The package logger is disabled on import; call
``enable_logging()`` to attach a stderr sink that shows citree records only.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so
    that enabling citree logging does not print every record twice. If your
    application already removed or replaced handler 0, the removal is a no-op.
"""

from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Literal, Optional

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


class LoggingHandle:
    """Handle owning one loguru sink added by ``enable_logging``.

    Disabling the last live handle disables the citree logger again.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     ConditionalInferenceTree().fit(X, y)
    """

    _active_ids: ClassVar[set] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: Optional[int] = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handle's sink. Safe to call more than once."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Number of handles that have not been disabled."""
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(*, level: LogLevel = "INFO", sink=sys.stderr) -> LoggingHandle:
    """Enable citree logging.

    Args:
        level (LogLevel): Minimum level shown. "INFO" reports fit summaries and
            tuner iterations; "DEBUG" adds the decision taken at every node.
        sink: Any loguru sink. Defaults to stderr.

    Returns:
        LoggingHandle: Handle that removes the sink on ``disable()`` or on
        leaving a ``with`` block.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(sink, level=level, filter=_is_citree_record, format=_FORMAT)
    return LoggingHandle(handler_id)


def _is_citree_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
