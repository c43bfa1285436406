"""pyconfsync - Async configuration synchronization with a remote control application."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyconfsync")
except PackageNotFoundError:
    __version__ = "0+local"
from pyconfsync._codec.parser import ParseResult, parse_config
from pyconfsync._codec.serializer import serialize_persisted, serialize_wire
from pyconfsync._transport import FrameListener, request_config, send_config, send_frame
from pyconfsync.client import ConfigSyncClient, SerializationForm
from pyconfsync.config import SyncConfig
from pyconfsync.exceptions import (
    ConfSyncConfigError,
    ConfSyncError,
    ConfSyncPersistenceError,
    ConfSyncTransportError,
    FrameEOFError,
    FrameHeaderError,
    PayloadEncodingError,
)
from pyconfsync.log_history import LogHistoryHandler, attach_log_history
from pyconfsync.state.events import (
    ConfigReceivedEvent,
    ConfigRequestEvent,
    ConnectionStatus,
    StatusEvent,
    StoreStats,
    SyncAction,
)
from pyconfsync.state.store import ConfigStore, clone_sections
from pyconfsync.state.tracker import ChangedEntry, changed_entries, is_changed, value_changed

__all__ = [
    "__version__",
    "ChangedEntry",
    "ConfSyncConfigError",
    "ConfSyncError",
    "ConfSyncPersistenceError",
    "ConfSyncTransportError",
    "ConfigReceivedEvent",
    "ConfigRequestEvent",
    "ConfigStore",
    "ConfigSyncClient",
    "ConnectionStatus",
    "FrameEOFError",
    "FrameHeaderError",
    "FrameListener",
    "LogHistoryHandler",
    "ParseResult",
    "PayloadEncodingError",
    "SerializationForm",
    "StatusEvent",
    "StoreStats",
    "SyncAction",
    "SyncConfig",
    "changed_entries",
    "attach_log_history",
    "clone_sections",
    "is_changed",
    "parse_config",
    "request_config",
    "send_config",
    "send_frame",
    "serialize_persisted",
    "serialize_wire",
    "value_changed",
]
