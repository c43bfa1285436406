"""Tolerant parser for both configuration syntaxes.

Two layouts are accepted, even mixed in the same text:

1. Grouped INI layout (the persisted file)::

       [SECTION]
       KEY=VALUE

2. Flat stream layout (what the peer sends)::

       [SECTION]KEY=VALUE

Comment lines (``;`` or ``#``) and blank lines are ignored. A purely
numeric first line is dropped because it is a length header that leaked
into the payload text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from pyconfsync.state.store import Sections

_logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"[\r\n]+")
_NUMERIC_LINE = re.compile(r"\d+", re.ASCII)
_COMMENT_PREFIXES = (";", "#")


@dataclass(slots=True)
class ParseResult:
    """Parsed sections plus the number of key/value items stored.

    ``item_count`` is informational; repeated keys are counted every time.
    """

    sections: Sections = field(default_factory=dict)
    item_count: int = 0


def _split_lines(text: str) -> list[str]:
    return [line for line in _LINE_SPLIT.split(text) if line]


def parse_config(text: str) -> ParseResult:
    """Parse *text* into a fresh section mapping."""
    result = ParseResult()
    sections = result.sections
    lines = _split_lines(text)

    start = 0
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue
        if _NUMERIC_LINE.fullmatch(stripped):
            _logger.debug("Skipping leading numeric line %r", stripped)
            start = index + 1
        break

    current_section: str | None = None
    for raw_line in lines[start:]:
        line = raw_line.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue

        if line.startswith("[") and "]" in line:
            section_end = line.index("]")
            equals_pos = line.find("=", section_end)
            section = line[1:section_end]
            if equals_pos > section_end:
                # Inline record; the current-section pointer is left alone.
                key = line[section_end + 1 : equals_pos]
                value = line[equals_pos + 1 :].strip()
                sections.setdefault(section, {})[key] = value
                result.item_count += 1
            else:
                current_section = section
                sections.setdefault(section, {})
            continue

        if current_section is None or "=" not in line:
            continue

        key, _, value = line.partition("=")
        sections[current_section][key.strip()] = value.strip()
        result.item_count += 1

    _logger.debug("Parsed %d item(s) in %d section(s)", result.item_count, len(sections))
    return result
