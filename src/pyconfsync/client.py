"""High-level async facade for configuration synchronization."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pyconfsync import _storage
from pyconfsync._codec.parser import parse_config
from pyconfsync._codec.serializer import serialize_persisted, serialize_wire
from pyconfsync._constants import CONFIG_SYNC_SECTION, LOCAL_RECV_PORT_KEY, REMOTE_RECV_PORT_KEY
from pyconfsync._redact import redact_sections, truncate_for_log
from pyconfsync._transport import FrameListener, request_config, send_config
from pyconfsync.config import SyncConfig
from pyconfsync.exceptions import ConfSyncPersistenceError, ConfSyncTransportError
from pyconfsync.state.events import (
    ConfigReceivedEvent,
    ConfigRequestEvent,
    ConnectionStatus,
    StatusEvent,
    StoreStats,
    SyncAction,
)
from pyconfsync.state.store import ConfigStore, Sections
from pyconfsync.state.tracker import ChangedEntry, changed_entries, value_changed

_logger = logging.getLogger(__name__)

EditKey = str | tuple[str, str]


class SerializationForm(StrEnum):
    PERSISTED = "persisted"
    WIRE = "wire"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _split_field_id(field_id: EditKey) -> tuple[str, str] | None:
    """Accept ``"SECTION.KEY"`` or ``(section, key)``."""
    if isinstance(field_id, tuple):
        if len(field_id) != 2:
            return None
        return field_id[0], field_id[1]
    parts = field_id.split(".")
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


class ConfigSyncClient:
    """Owns the configuration store and the transport to the remote peer.

    Usage::

        async with ConfigSyncClient(config, on_config_received=render) as client:
            client.load_from_file()
            ...
            await client.synchronize({"PWM.FREQUENCY": "50"})

    Observers receive immutable events; ``on_config_received`` is called
    after the store already holds the new configuration and baseline.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        store: ConfigStore | None = None,
        on_config_received: Callable[[ConfigReceivedEvent], Awaitable[None] | None] | None = None,
        on_config_request: Callable[[ConfigRequestEvent], Awaitable[None] | None] | None = None,
        on_status_change: Callable[[StatusEvent], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._store = store if store is not None else ConfigStore()
        self._on_config_received_cb = on_config_received
        self._on_config_request_cb = on_config_request
        self._on_status_change_cb = on_status_change
        self._clock = clock
        self._last_received_at: datetime | None = None
        self._listener = FrameListener(
            host=config.listen_host,
            port=config.listen_port,
            on_config_received=self._on_config_received,
            on_config_request=self._on_config_request,
            on_status_change=self._forward_status,
            max_header_bytes=config.max_header_bytes,
            max_payload_bytes=config.max_payload_bytes,
            retry_backoff=config.retry_backoff,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ConfigSyncClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start the inbound listener."""
        await self._listener.start()

    async def stop(self) -> None:
        """Stop the inbound listener; an in-flight receive is abandoned."""
        await self._listener.stop()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def listen_port(self) -> int:
        return self._listener.port

    @property
    def is_listening(self) -> bool:
        return self._listener.is_running

    @property
    def last_received_at(self) -> datetime | None:
        return self._last_received_at

    @property
    def has_received(self) -> bool:
        """Whether a configuration was ever received from the peer."""
        return self._last_received_at is not None

    # ------------------------------------------------------------------
    # Store operations
    # ------------------------------------------------------------------

    def parse(self, text: str) -> int:
        """Replace ``current`` with the parsed *text*; returns the item count."""
        result = parse_config(text)
        self._store.replace(result.sections)
        _logger.info("Configuration parsed: %d item(s)", result.item_count)
        return result.item_count

    def apply_received(self, payload: str) -> int:
        """Parse a payload from the peer and take it as the new baseline."""
        with self._store.locked():
            count = self.parse(payload)
            self._store.commit_baseline()
        self._last_received_at = self._clock()
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("New baseline: %s", redact_sections(self._store.baseline_snapshot()))
        return count

    async def process_received(self, payload: str, *, peer: str = "") -> ConfigReceivedEvent:
        """Run the full receive pipeline for *payload*.

        Applies the payload as the new baseline, saves the persisted file
        when ``auto_save_on_receive`` is set, then publishes the event. The
        listener runs the same pipeline for every inbound frame.
        """
        event = ConfigReceivedEvent(payload=payload, peer=peer, observed_at=self._clock())
        await self._on_config_received(event)
        return event

    def reset(self) -> None:
        """Discard edits and restore the last received configuration."""
        self._store.reset()
        _logger.info("Local edits discarded")

    def collect_edits(self, edits: Mapping[EditKey, str]) -> int:
        """Write caller-supplied field values into ``current``.

        Keys are ``"SECTION.KEY"`` field ids or ``(section, key)`` tuples;
        malformed ids are skipped. Returns the number of values written.
        """
        collected = 0
        with self._store.locked():
            for field_id, value in edits.items():
                parts = _split_field_id(field_id)
                if parts is None:
                    _logger.debug("Skipping malformed field id %r", field_id)
                    continue
                section, key = parts
                self._store.set_value(section, key, value)
                collected += 1
        _logger.info("Collected %d edited value(s)", collected)
        return collected

    def serialize(self, form: SerializationForm | str = SerializationForm.WIRE) -> str:
        """Serialize ``current`` in the requested form."""
        form = SerializationForm(form)
        sections = self._store.snapshot()
        if form is SerializationForm.PERSISTED:
            return serialize_persisted(sections)
        return serialize_wire(sections)

    def snapshot(self) -> Sections:
        """Independent copy of the current configuration."""
        return self._store.snapshot()

    def is_changed(self, section: str, key: str, candidate: str) -> bool:
        """Whether *candidate* differs from the baseline value of ``section.key``."""
        return value_changed(self._store.baseline_value(section, key), candidate)

    def changed_entries(self) -> list[ChangedEntry]:
        with self._store.locked():
            current = self._store.snapshot()
            baseline = self._store.baseline_snapshot()
        return changed_entries(current, baseline)

    def stats(self) -> StoreStats:
        section_count, key_count = self._store.counts()
        return StoreStats(
            section_count=section_count,
            key_count=key_count,
            last_received_at=self._last_received_at,
        )

    # ------------------------------------------------------------------
    # Persisted file
    # ------------------------------------------------------------------

    def load_from_file(self) -> bool:
        """Replace ``current`` with the persisted file.

        Returns ``False`` (store untouched) when the file does not exist.
        """
        text = _storage.load_text(self._config.config_path)
        if text is None:
            _logger.info("Configuration file not found: %s", self._config.config_path)
            return False
        self.parse(text)
        _logger.info("Configuration file loaded: %s", self._config.config_path)
        return True

    def save_to_file(self) -> None:
        """Write ``current`` in persisted form, backing up the previous file."""
        text = self.serialize(SerializationForm.PERSISTED)
        _storage.write_text(self._config.config_path, text, backup_path=self._config.backup_path)

    async def _save_quietly(self) -> None:
        try:
            await asyncio.to_thread(self.save_to_file)
        except ConfSyncPersistenceError as exc:
            _logger.error("Saving configuration file failed: %s", exc)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, text: str | None = None, *, host: str | None = None, port: int | None = None) -> int:
        """Send *text* (default: wire form of ``current``) to the peer."""
        host = host or self._config.remote_host
        port = port or self._config.remote_port
        if text is None:
            text = self.serialize(SerializationForm.WIRE)
        _logger.debug("Outgoing payload: %s", truncate_for_log(text))
        self._emit_status(ConnectionStatus.SENDING, f"{host}:{port}")
        try:
            written = await send_config(host, port, text, timeout=self._config.io_timeout)
        except ConfSyncTransportError as exc:
            _logger.error("Sending configuration failed: %s", exc)
            self._emit_status(ConnectionStatus.SEND_FAILED, str(exc))
            raise
        self._emit_status(ConnectionStatus.SENT, f"{host}:{port}")
        return written

    async def request(self, *, host: str | None = None, port: int | None = None) -> int:
        """Ask the peer to send its configuration (zero-length frame)."""
        host = host or self._config.remote_host
        port = port or self._config.remote_port
        self._emit_status(ConnectionStatus.SENDING, f"{host}:{port}")
        try:
            written = await request_config(host, port, timeout=self._config.io_timeout)
        except ConfSyncTransportError as exc:
            _logger.error("Configuration request failed: %s", exc)
            self._emit_status(ConnectionStatus.SEND_FAILED, str(exc))
            raise
        _logger.info("Configuration request sent to %s:%s", host, port)
        self._emit_status(ConnectionStatus.SENT, f"{host}:{port}")
        return written

    async def synchronize(self, edits: Mapping[EditKey, str] | None = None) -> SyncAction:
        """Push local edits to the peer, or request its configuration first.

        Until a configuration has been received there is nothing to edit,
        so a request is sent instead. Otherwise the edits are collected,
        the ports both sides listen on are written to ``CONFIG_SYNC``, the
        wire form is sent, and the persisted file is updated.
        """
        if not self.has_received:
            _logger.info("No configuration received yet; requesting it from the peer")
            await self.request()
            return SyncAction.REQUESTED

        with self._store.locked():
            if edits:
                self.collect_edits(edits)
            self._store.set_value(CONFIG_SYNC_SECTION, LOCAL_RECV_PORT_KEY, str(self.listen_port))
            self._store.set_value(CONFIG_SYNC_SECTION, REMOTE_RECV_PORT_KEY, str(self._config.remote_port))
            text = self.serialize(SerializationForm.WIRE)
        _logger.info("Configuration serialized: %d characters", len(text))

        await self.send(text)
        await self._save_quietly()
        return SyncAction.SENT

    # ------------------------------------------------------------------
    # Listener callbacks
    # ------------------------------------------------------------------

    async def _on_config_received(self, event: ConfigReceivedEvent) -> None:
        _logger.debug("Incoming payload from %s: %s", event.peer, truncate_for_log(event.payload))
        self.apply_received(event.payload)
        if self._config.auto_save_on_receive:
            await self._save_quietly()
        _logger.info("Received configuration applied")
        await self._notify(self._on_config_received_cb, event)

    async def _on_config_request(self, event: ConfigRequestEvent) -> None:
        await self._notify(self._on_config_request_cb, event)

    async def _notify(self, callback: Callable[[Any], Awaitable[None] | None] | None, event: Any) -> None:
        if callback is None:
            return
        result = callback(event)
        if inspect.isawaitable(result):
            await result

    def _emit_status(self, status: ConnectionStatus, detail: str = "") -> None:
        self._forward_status(StatusEvent(status=status, detail=detail))

    def _forward_status(self, event: StatusEvent) -> None:
        if self._on_status_change_cb is None:
            return
        try:
            self._on_status_change_cb(event)
        except Exception:
            _logger.exception("Status observer failed")
