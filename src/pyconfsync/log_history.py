"""Bounded in-memory log history for display in an editor window.

:class:`LogHistoryHandler` is an ordinary :class:`logging.Handler`; attach
it to the ``pyconfsync`` logger and subscribe to receive the full text
each time a line is added. A failing subscriber is reported through
:meth:`logging.Handler.handleError` and never reaches the code that logged.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import datetime

from pyconfsync._constants import DEFAULT_LOG_HISTORY_SIZE
from pyconfsync.config import SyncConfig

LogSubscriber = Callable[[str, int], None]


class _TimestampFormatter(logging.Formatter):
    """``[HH:MM:SS.fff] message`` in local time."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"[{stamp}] {message}"


class LogHistoryHandler(logging.Handler):
    def __init__(self, max_entries: int = DEFAULT_LOG_HISTORY_SIZE, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._entries: deque[str] = deque(maxlen=max_entries)
        self._entries_lock = threading.Lock()
        self._subscribers: list[LogSubscriber] = []
        self.setFormatter(_TimestampFormatter())

    def subscribe(self, callback: LogSubscriber) -> Callable[[], None]:
        """Register *callback(text, count)*; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(line)
            text = "\n".join(self._entries)
            count = len(self._entries)
        for callback in list(self._subscribers):
            try:
                callback(text, count)
            except Exception:
                self.handleError(record)

    def entries(self) -> list[str]:
        with self._entries_lock:
            return list(self._entries)

    def text(self) -> str:
        with self._entries_lock:
            return "\n".join(self._entries)

    def clear(self) -> None:
        """Drop all lines, then record that the log was cleared."""
        with self._entries_lock:
            self._entries.clear()
        self.handle(
            logging.LogRecord(
                name=__name__,
                level=logging.INFO,
                pathname=__file__,
                lineno=0,
                msg="Log cleared",
                args=None,
                exc_info=None,
            )
        )


def attach_log_history(config: SyncConfig, logger: logging.Logger | None = None) -> LogHistoryHandler:
    """Attach a history handler sized by ``config.log_history_size``.

    The handler goes on the ``pyconfsync`` logger unless *logger* is given.
    """
    handler = LogHistoryHandler(max_entries=config.log_history_size)
    (logger or logging.getLogger("pyconfsync")).addHandler(handler)
    return handler
