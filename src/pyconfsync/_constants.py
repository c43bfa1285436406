"""Internal constants shared across the library."""

DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 12347
DEFAULT_REMOTE_HOST = "192.168.4.100"
DEFAULT_REMOTE_PORT = 12348

DEFAULT_CONFIG_PATH = "config_received.ini"
DEFAULT_BACKUP_PATH = "config_backup.ini"

#: Fixed timeout (seconds) applied to outbound connect/write/flush.
DEFAULT_IO_TIMEOUT = 5.0
#: Pause (seconds) after an unexpected accept-loop failure.
DEFAULT_RETRY_BACKOFF = 1.0

# The embedded peer refuses longer header lines and larger payloads.
DEFAULT_MAX_HEADER_BYTES = 20
DEFAULT_MAX_PAYLOAD_BYTES = 1024 * 1024

DEFAULT_LOG_HISTORY_SIZE = 1000

# ------------------------------------------------------------------
# Section names with special handling
# ------------------------------------------------------------------

NETWORK_SECTION = "NETWORK"
CONFIG_SYNC_SECTION = "CONFIG_SYNC"

#: Sections that exist only for the wire and never reach the persisted file.
WIRE_ONLY_SECTIONS: frozenset[str] = frozenset({NETWORK_SECTION, CONFIG_SYNC_SECTION})

#: Keys injected into ``CONFIG_SYNC`` before every send so the peer knows
#: which ports both sides actually use.
LOCAL_RECV_PORT_KEY = "WPF_RECV_PORT"
REMOTE_RECV_PORT_KEY = "CPP_RECV_PORT"

PERSISTED_HEADER_LINES: tuple[str, ...] = (
    "# Control application configuration file",
    "# Edited and synchronized by the desktop configuration editor",
)
PERSISTED_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
