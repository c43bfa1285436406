"""Length-prefixed frame encoding.

A frame is an ASCII decimal length terminated by ``\\n`` (a preceding
``\\r`` is tolerated) followed by exactly that many UTF-8 bytes. A zero
length carries no payload and means "request configuration".
"""

from __future__ import annotations

import re

from pyconfsync.exceptions import FrameHeaderError, PayloadEncodingError

_HEADER_DIGITS = re.compile(r"\d+", re.ASCII)


def encode_frame(payload: bytes) -> bytes:
    """Header plus payload, ready to write to the socket."""
    return f"{len(payload)}\n".encode("ascii") + payload


def parse_header(header: str, *, max_payload_bytes: int | None = None) -> int:
    """Return the declared payload length of a header line.

    Raises :class:`FrameHeaderError` for an empty, non-numeric or negative
    header and for a length above *max_payload_bytes*.
    """
    value = header.strip()
    if not value:
        raise FrameHeaderError("Empty length header", header=header)
    if not _HEADER_DIGITS.fullmatch(value):
        raise FrameHeaderError(f"Invalid length header: {header!r}", header=header)
    length = int(value)
    if max_payload_bytes is not None and length > max_payload_bytes:
        raise FrameHeaderError(
            f"Declared length {length} exceeds limit of {max_payload_bytes} bytes",
            header=header,
        )
    return length


def decode_payload(payload: bytes) -> str:
    """Strict UTF-8 decode; invalid bytes reject the whole payload."""
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise PayloadEncodingError(f"Payload is not valid UTF-8: {exc}") from exc
