from __future__ import annotations

from pyconfsync._redact import redact_sections, truncate_for_log


def test_truncate_for_log_shows_line_breaks_and_truncates() -> None:
    assert truncate_for_log("[S]K=V\r\n") == "[S]K=V\\r\\n"
    shortened = truncate_for_log("x" * 600, max_string=10)
    assert shortened.startswith("x" * 10)
    assert "<truncated 600 chars>" in shortened


def test_redact_sections_masks_sensitive_keys() -> None:
    sections = {"NETWORK": {"IP": "10.0.0.1", "Password": "pw"}, "PWM": {"F": "50"}}
    redacted = redact_sections(sections)
    assert redacted["NETWORK"] == {"IP": "10.0.0.1", "Password": "<redacted>"}
    assert redacted["PWM"] == {"F": "50"}
    assert sections["NETWORK"]["Password"] == "pw"
