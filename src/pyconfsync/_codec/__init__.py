"""Text and frame codecs for configuration synchronization."""

from pyconfsync._codec.framing import decode_payload, encode_frame, parse_header
from pyconfsync._codec.parser import ParseResult, parse_config
from pyconfsync._codec.serializer import serialize_persisted, serialize_wire

__all__ = [
    "ParseResult",
    "decode_payload",
    "encode_frame",
    "parse_config",
    "parse_header",
    "serialize_persisted",
    "serialize_wire",
]
