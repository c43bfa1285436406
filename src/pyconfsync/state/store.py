"""Thread-safe in-memory configuration store.

The store holds two views of the same section -> key -> value mapping:

* ``current`` - mutable, reflects in-progress edits
* ``baseline`` - last configuration confirmed received from the peer

The two never share inner dictionaries. Every public method takes the
store lock, so the inbound receive path, outbound sends and caller-driven
edits can run from different tasks or threads without interleaving.
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator, Mapping

Sections = dict[str, dict[str, str]]


def clone_sections(sections: Mapping[str, Mapping[str, str]]) -> Sections:
    """Structural copy of a nested section mapping (new outer and inner dicts)."""
    return {section: dict(entries) for section, entries in sections.items()}


class ConfigStore:
    """Owned store for current and baseline configuration."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._current: Sections = {}
        self._baseline: Sections = {}

    @contextlib.contextmanager
    def locked(self) -> Iterator[Sections]:
        """Hold the store lock and yield the live ``current`` mapping.

        Used for compound read-modify-write sequences (collect edits, then
        serialize) that must not interleave with a receive.
        """
        with self._lock:
            yield self._current

    # ------------------------------------------------------------------
    # Current
    # ------------------------------------------------------------------

    def replace(self, sections: Mapping[str, Mapping[str, str]]) -> None:
        """Clear ``current`` and fill it from *sections* (never a merge)."""
        with self._lock:
            self._current.clear()
            self._current.update(clone_sections(sections))

    def set_value(self, section: str, key: str, value: str) -> None:
        with self._lock:
            self._current.setdefault(section, {})[key] = value

    def snapshot(self) -> Sections:
        """Independent copy of ``current``."""
        with self._lock:
            return clone_sections(self._current)

    def counts(self) -> tuple[int, int]:
        """Return ``(section_count, key_count)`` for ``current``."""
        with self._lock:
            return len(self._current), sum(len(entries) for entries in self._current.values())

    # ------------------------------------------------------------------
    # Baseline
    # ------------------------------------------------------------------

    def commit_baseline(self) -> None:
        """Take a deep copy of ``current`` as the new baseline."""
        with self._lock:
            self._baseline = clone_sections(self._current)

    def baseline_snapshot(self) -> Sections:
        """Independent copy of ``baseline``."""
        with self._lock:
            return clone_sections(self._baseline)

    def baseline_value(self, section: str, key: str) -> str | None:
        with self._lock:
            entries = self._baseline.get(section)
            if entries is None:
                return None
            return entries.get(key)

    def reset(self) -> None:
        """Discard ``current`` and refill it in place from ``baseline``."""
        with self._lock:
            self._current.clear()
            self._current.update(clone_sections(self._baseline))
