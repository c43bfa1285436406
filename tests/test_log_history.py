from __future__ import annotations

import logging
import re

import pytest

from pyconfsync.config import SyncConfig
from pyconfsync.log_history import LogHistoryHandler, attach_log_history


@pytest.fixture
def history_logger() -> logging.Logger:
    logger = logging.getLogger("pyconfsync.tests.history")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    return logger


def test_lines_are_timestamped_and_bounded(history_logger: logging.Logger) -> None:
    handler = LogHistoryHandler(max_entries=3)
    history_logger.addHandler(handler)

    for index in range(5):
        history_logger.info("entry %d", index)

    entries = handler.entries()
    assert len(entries) == 3
    assert entries[-1].endswith("entry 4")
    assert re.match(r"^\[\d{2}:\d{2}:\d{2}\.\d{3}\] entry 2$", entries[0])


def test_subscriber_receives_text_and_count(history_logger: logging.Logger) -> None:
    handler = LogHistoryHandler()
    history_logger.addHandler(handler)
    seen: list[tuple[str, int]] = []
    unsubscribe = handler.subscribe(lambda text, count: seen.append((text, count)))

    history_logger.info("first")
    history_logger.info("second")
    unsubscribe()
    history_logger.info("third")

    assert [count for _text, count in seen] == [1, 2]
    assert seen[-1][0] == handler.text().rsplit("\n", 1)[0]


def test_failing_subscriber_does_not_reach_caller(
    history_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(logging, "raiseExceptions", False)
    handler = LogHistoryHandler()
    history_logger.addHandler(handler)

    def _broken(_text: str, _count: int) -> None:
        raise RuntimeError("display gone")

    handler.subscribe(_broken)
    history_logger.info("still logged")
    assert handler.entries()[-1].endswith("still logged")


def test_clear_leaves_a_marker(history_logger: logging.Logger) -> None:
    handler = LogHistoryHandler()
    history_logger.addHandler(handler)
    history_logger.info("old")
    handler.clear()
    entries = handler.entries()
    assert len(entries) == 1
    assert entries[0].endswith("Log cleared")


def test_attach_log_history_is_sized_from_config(history_logger: logging.Logger) -> None:
    handler = attach_log_history(SyncConfig(log_history_size=2), history_logger)
    try:
        for index in range(4):
            history_logger.info("entry %d", index)
        assert handler in history_logger.handlers
        assert [line.split("] ", 1)[1] for line in handler.entries()] == ["entry 2", "entry 3"]
    finally:
        history_logger.removeHandler(handler)
