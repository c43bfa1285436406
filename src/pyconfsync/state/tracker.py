"""Change detection between current values and the received baseline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ChangedEntry:
    """One value that differs from the baseline.

    ``baseline_value`` is ``None`` when the baseline has no such entry.
    """

    section: str
    key: str
    baseline_value: str | None
    current_value: str


def value_changed(baseline_value: str | None, candidate: str) -> bool:
    """Return ``True`` when *candidate* differs from *baseline_value*.

    A missing baseline entry (``None``) counts as changed.
    """
    return baseline_value is None or baseline_value != candidate


def is_changed(
    baseline: Mapping[str, Mapping[str, str]],
    section: str,
    key: str,
    candidate: str,
) -> bool:
    """Apply :func:`value_changed` to ``baseline[section][key]``."""
    return value_changed(baseline.get(section, {}).get(key), candidate)


def changed_entries(
    current: Mapping[str, Mapping[str, str]],
    baseline: Mapping[str, Mapping[str, str]],
) -> list[ChangedEntry]:
    """List every ``current`` value that :func:`is_changed` flags."""
    result: list[ChangedEntry] = []
    for section, entries in current.items():
        base_entries = baseline.get(section, {})
        for key, value in entries.items():
            if is_changed(baseline, section, key, value):
                result.append(
                    ChangedEntry(
                        section=section,
                        key=key,
                        baseline_value=base_entries.get(key),
                        current_value=value,
                    )
                )
    return result
