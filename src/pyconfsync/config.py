"""Deployment configuration for pyconfsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyconfsync._constants import (
    DEFAULT_BACKUP_PATH,
    DEFAULT_CONFIG_PATH,
    DEFAULT_IO_TIMEOUT,
    DEFAULT_LISTEN_HOST,
    DEFAULT_LISTEN_PORT,
    DEFAULT_LOG_HISTORY_SIZE,
    DEFAULT_MAX_HEADER_BYTES,
    DEFAULT_MAX_PAYLOAD_BYTES,
    DEFAULT_REMOTE_HOST,
    DEFAULT_REMOTE_PORT,
    DEFAULT_RETRY_BACKOFF,
)
from pyconfsync.exceptions import ConfSyncConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Synchronizer configuration.

    Parameters
    ----------
    listen_host : str
        Local interface the inbound listener binds to.
    listen_port : int
        Local inbound port. ``0`` lets the OS pick a free port.
    remote_host : str
        Host of the remote control application.
    remote_port : int
        Port the remote control application listens on.
    config_path : str
        Primary persisted configuration file.
    backup_path : str
        Single-slot backup overwritten with the previous file before each save.
    io_timeout : float
        Seconds allowed for each outbound connect, write and flush.
    retry_backoff : float
        Seconds to pause after an unexpected accept-loop failure.
    max_header_bytes : int
        Longest accepted length-header line, excluding the terminator.
    max_payload_bytes : int
        Largest accepted declared payload length.
    auto_save_on_receive : bool
        Write the persisted file after every received configuration.
    log_history_size : int
        Number of lines kept by :class:`~pyconfsync.log_history.LogHistoryHandler`.
    """

    listen_host: str = DEFAULT_LISTEN_HOST
    listen_port: int = DEFAULT_LISTEN_PORT
    remote_host: str = DEFAULT_REMOTE_HOST
    remote_port: int = DEFAULT_REMOTE_PORT
    config_path: str = DEFAULT_CONFIG_PATH
    backup_path: str = DEFAULT_BACKUP_PATH
    io_timeout: float = DEFAULT_IO_TIMEOUT
    retry_backoff: float = DEFAULT_RETRY_BACKOFF
    max_header_bytes: int = DEFAULT_MAX_HEADER_BYTES
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    auto_save_on_receive: bool = True
    log_history_size: int = DEFAULT_LOG_HISTORY_SIZE

    def __post_init__(self) -> None:
        if not 0 <= self.listen_port <= 65535:
            raise ConfSyncConfigError(f"listen_port out of range: {self.listen_port}")
        if not 0 < self.remote_port <= 65535:
            raise ConfSyncConfigError(f"remote_port out of range: {self.remote_port}")
        if self.io_timeout <= 0:
            raise ConfSyncConfigError(f"io_timeout must be positive, got {self.io_timeout}")
        if self.retry_backoff < 0:
            raise ConfSyncConfigError(f"retry_backoff must not be negative, got {self.retry_backoff}")
        if self.max_header_bytes <= 0 or self.max_payload_bytes <= 0:
            raise ConfSyncConfigError("frame size limits must be positive")
        if self.log_history_size <= 0:
            raise ConfSyncConfigError(f"log_history_size must be positive, got {self.log_history_size}")

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from environment variables.

        Reads optional ``CONFSYNC_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        SyncConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "CONFSYNC_LISTEN_HOST": "listen_host",
            "CONFSYNC_REMOTE_HOST": "remote_host",
            "CONFSYNC_CONFIG_PATH": "config_path",
            "CONFSYNC_BACKUP_PATH": "backup_path",
        }
        _ENV_INT_MAP = {
            "CONFSYNC_LISTEN_PORT": "listen_port",
            "CONFSYNC_REMOTE_PORT": "remote_port",
            "CONFSYNC_MAX_HEADER_BYTES": "max_header_bytes",
            "CONFSYNC_MAX_PAYLOAD_BYTES": "max_payload_bytes",
            "CONFSYNC_LOG_HISTORY_SIZE": "log_history_size",
        }
        _ENV_FLOAT_MAP = {
            "CONFSYNC_IO_TIMEOUT": "io_timeout",
            "CONFSYNC_RETRY_BACKOFF": "retry_backoff",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = int(val)
            except ValueError as exc:
                raise ConfSyncConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise ConfSyncConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "auto_save_on_receive" not in overrides:
            config_kwargs["auto_save_on_receive"] = _env_bool(env.get("CONFSYNC_AUTO_SAVE"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
