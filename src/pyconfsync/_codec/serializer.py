"""Serialization of the store into its two textual forms.

Neither form escapes ``=``, ``[``, ``]`` or line breaks inside values;
such values do not survive a round trip.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from pyconfsync._constants import PERSISTED_HEADER_LINES, PERSISTED_TIMESTAMP_FORMAT, WIRE_ONLY_SECTIONS


def serialize_persisted(
    sections: Mapping[str, Mapping[str, str]],
    *,
    now: datetime | None = None,
) -> str:
    """Grouped, sorted INI text for the on-disk file.

    ``NETWORK`` and ``CONFIG_SYNC`` are omitted. Sections and keys are
    sorted ascending; sections are separated by a blank line.
    """
    stamp = (now or datetime.now()).strftime(PERSISTED_TIMESTAMP_FORMAT)
    lines: list[str] = [*PERSISTED_HEADER_LINES, f"# Last updated: {stamp}", ""]

    for section in sorted(sections):
        if section in WIRE_ONLY_SECTIONS:
            continue
        lines.append(f"[{section}]")
        entries = sections[section]
        for key in sorted(entries):
            lines.append(f"{key}={entries[key]}")
        lines.append("")

    return "\n".join(lines) + "\n"


def serialize_wire(sections: Mapping[str, Mapping[str, str]]) -> str:
    """Flat ``[SECTION]KEY=VALUE`` lines in store order, every section included."""
    return "".join(
        f"[{section}]{key}={value}\n" for section, entries in sections.items() for key, value in entries.items()
    )
