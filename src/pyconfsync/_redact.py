"""Helpers for safe debug logging.

Configuration payloads can be large and may carry credentials for the
remote host (``NETWORK`` section). This module shortens payload text and
masks sensitive keys before they are emitted in DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
    }
)


def truncate_for_log(text: str, *, max_string: int = 256) -> str:
    """Return *text* shortened to *max_string* characters with line breaks made visible."""
    flattened = text.replace("\r", "\\r").replace("\n", "\\n")
    if len(flattened) > max_string:
        return f"{flattened[:max_string]}…<truncated {len(text)} chars>"
    return flattened


def redact_sections(sections: Mapping[str, Mapping[str, Any]]) -> dict[str, dict[str, Any]]:
    """Return a copy of *sections* with sensitive values masked."""
    redacted: dict[str, dict[str, Any]] = {}
    for section, entries in sections.items():
        redacted[section] = {
            key: "<redacted>" if key.lower() in _SENSITIVE_KEYS else value for key, value in entries.items()
        }
    return redacted
