from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path

import pytest

from pyconfsync._codec.parser import parse_config
from pyconfsync._transport import FrameListener, send_config
from pyconfsync.client import ConfigSyncClient, SerializationForm
from pyconfsync.config import SyncConfig
from pyconfsync.exceptions import ConfSyncTransportError
from pyconfsync.state.events import (
    ConfigReceivedEvent,
    ConfigRequestEvent,
    ConnectionStatus,
    StatusEvent,
    SyncAction,
)

_FIXED_NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _config(tmp_path: Path, **overrides: object) -> SyncConfig:
    values: dict[str, object] = {
        "listen_host": "127.0.0.1",
        "listen_port": 0,
        "remote_host": "127.0.0.1",
        "remote_port": 9,
        "config_path": str(tmp_path / "config_received.ini"),
        "backup_path": str(tmp_path / "config_backup.ini"),
        "io_timeout": 2.0,
    }
    values.update(overrides)
    return SyncConfig(**values)  # type: ignore[arg-type]


class _FakePeer:
    """Stands in for the remote control application."""

    def __init__(self) -> None:
        self.payloads: list[str] = []
        self.requests = 0
        self.event = asyncio.Event()
        self.listener = FrameListener(
            host="127.0.0.1",
            port=0,
            on_config_received=self._on_received,
            on_config_request=self._on_request,
        )

    def _on_received(self, event: ConfigReceivedEvent) -> None:
        self.payloads.append(event.payload)
        self.event.set()

    def _on_request(self, _event: ConfigRequestEvent) -> None:
        self.requests += 1
        self.event.set()

    async def wait(self) -> None:
        await asyncio.wait_for(self.event.wait(), 2.0)
        self.event.clear()


def test_parse_replaces_instead_of_merging(tmp_path: Path) -> None:
    client = ConfigSyncClient(_config(tmp_path))
    client.parse("[A]x=1\n")
    client.parse("[B]y=2\n")
    only_b = ConfigSyncClient(_config(tmp_path))
    only_b.parse("[B]y=2\n")
    assert client.snapshot() == only_b.snapshot() == {"B": {"y": "2"}}


def test_apply_received_sets_baseline_and_timestamp(tmp_path: Path) -> None:
    client = ConfigSyncClient(_config(tmp_path), clock=lambda: _FIXED_NOW)
    assert client.has_received is False

    client.apply_received("[S]K=old\n")
    client.collect_edits({"S.K": "new"})

    assert client.is_changed("S", "K", "new") is True
    assert client.is_changed("S", "K", "old") is False
    assert client.is_changed("S", "ABSENT", "old") is True
    assert client.last_received_at == _FIXED_NOW
    assert client.stats().key_count == 1

    client.reset()
    assert client.snapshot() == {"S": {"K": "old"}}
    assert client.changed_entries() == []


def test_collect_edits_accepts_field_ids_and_tuples(tmp_path: Path) -> None:
    client = ConfigSyncClient(_config(tmp_path))
    count = client.collect_edits({"PWM.FREQUENCY": "50", ("LED", "LEVEL"): "3", "bad": "x", "a.b.c": "y"})
    assert count == 2
    assert client.snapshot() == {"PWM": {"FREQUENCY": "50"}, "LED": {"LEVEL": "3"}}


def test_serialize_forms(tmp_path: Path) -> None:
    client = ConfigSyncClient(_config(tmp_path))
    client.parse("[NETWORK]IP=h\n[PWM]F=50\n")
    assert client.serialize(SerializationForm.WIRE) == "[NETWORK]IP=h\n[PWM]F=50\n"
    persisted = client.serialize("persisted")
    assert "[NETWORK]" not in persisted
    assert "[PWM]\nF=50\n" in persisted


def test_save_and_load_round_trip_with_backup(tmp_path: Path) -> None:
    config = _config(tmp_path)
    client = ConfigSyncClient(config)
    client.parse("[PWM]F=50\n")
    client.save_to_file()
    first = Path(config.config_path).read_text(encoding="utf-8")

    client.collect_edits({"PWM.F": "60"})
    client.save_to_file()
    assert Path(config.backup_path).read_text(encoding="utf-8") == first

    reloaded = ConfigSyncClient(config)
    assert reloaded.load_from_file() is True
    assert reloaded.snapshot() == {"PWM": {"F": "60"}}


def test_load_missing_file_leaves_store_untouched(tmp_path: Path) -> None:
    client = ConfigSyncClient(_config(tmp_path))
    client.parse("[S]K=V\n")
    assert client.load_from_file() is False
    assert client.snapshot() == {"S": {"K": "V"}}


@pytest.mark.asyncio
async def test_received_frame_updates_store_and_file(tmp_path: Path) -> None:
    config = _config(tmp_path)
    received: list[ConfigReceivedEvent] = []
    done = asyncio.Event()

    async def _on_received(event: ConfigReceivedEvent) -> None:
        received.append(event)
        done.set()

    async with ConfigSyncClient(config, on_config_received=_on_received) as client:
        assert client.is_listening
        client.collect_edits({"STALE.KEY": "1"})
        await send_config("127.0.0.1", client.listen_port, "[PWM]F=50\n[NETWORK]IP=h\n", timeout=2.0)
        await asyncio.wait_for(done.wait(), 2.0)

        assert client.snapshot() == {"PWM": {"F": "50"}, "NETWORK": {"IP": "h"}}
        assert client.store.baseline_snapshot() == client.snapshot()
        assert client.has_received

    saved = parse_config(Path(config.config_path).read_text(encoding="utf-8")).sections
    assert saved == {"PWM": {"F": "50"}}
    assert [e.payload for e in received] == ["[PWM]F=50\n[NETWORK]IP=h\n"]


@pytest.mark.asyncio
async def test_persistence_failure_does_not_roll_back_receive(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file", encoding="utf-8")
    config = _config(tmp_path, config_path=str(blocker / "config.ini"))
    client = ConfigSyncClient(config)

    event = await client.process_received("[S]K=V\n", peer="test")

    assert event.peer == "test"
    assert client.snapshot() == {"S": {"K": "V"}}
    assert client.store.baseline_snapshot() == {"S": {"K": "V"}}


@pytest.mark.asyncio
async def test_synchronize_requests_before_first_receive(tmp_path: Path) -> None:
    peer = _FakePeer()
    await peer.listener.start()
    try:
        client = ConfigSyncClient(_config(tmp_path, remote_port=peer.listener.port))
        action = await client.synchronize({"S.K": "ignored"})
        await peer.wait()
    finally:
        await peer.listener.stop()

    assert action is SyncAction.REQUESTED
    assert peer.requests == 1
    assert peer.payloads == []


@pytest.mark.asyncio
async def test_synchronize_sends_wire_form_with_sync_ports(tmp_path: Path) -> None:
    peer = _FakePeer()
    await peer.listener.start()
    statuses: list[StatusEvent] = []
    config = _config(tmp_path, remote_port=peer.listener.port)
    try:
        async with ConfigSyncClient(config, on_status_change=statuses.append) as client:
            client.apply_received("[PWM]F=50\n")
            action = await client.synchronize({"PWM.F": "60"})
            await peer.wait()
            listen_port = client.listen_port
    finally:
        await peer.listener.stop()

    assert action is SyncAction.SENT
    sent = parse_config(peer.payloads[0]).sections
    assert sent == {
        "PWM": {"F": "60"},
        "CONFIG_SYNC": {"WPF_RECV_PORT": str(listen_port), "CPP_RECV_PORT": str(config.remote_port)},
    }
    assert ConnectionStatus.SENT in [s.status for s in statuses]
    assert "F=60" in Path(config.config_path).read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_send_failure_propagates_and_reports_status(tmp_path: Path) -> None:
    closed = FrameListener(host="127.0.0.1", port=0, on_config_received=lambda _e: None)
    await closed.start()
    closed_port = closed.port
    await closed.stop()

    statuses: list[StatusEvent] = []
    client = ConfigSyncClient(_config(tmp_path, remote_port=closed_port), on_status_change=statuses.append)
    client.parse("[S]K=V\n")

    with pytest.raises(ConfSyncTransportError):
        await client.send()
    assert statuses[-1].status == ConnectionStatus.SEND_FAILED


@pytest.mark.asyncio
async def test_inbound_request_reaches_observer(tmp_path: Path) -> None:
    seen = asyncio.Event()

    def _on_request(_event: ConfigRequestEvent) -> None:
        seen.set()

    async with ConfigSyncClient(_config(tmp_path), on_config_request=_on_request) as client:
        client.parse("[S]K=V\n")
        await client.request(port=client.listen_port)
        await asyncio.wait_for(seen.wait(), 2.0)
        assert client.snapshot() == {"S": {"K": "V"}}


@pytest.mark.asyncio
async def test_process_received_runs_whole_pipeline(tmp_path: Path) -> None:
    received: list[ConfigReceivedEvent] = []
    config = _config(tmp_path)
    client = ConfigSyncClient(config, on_config_received=received.append, clock=lambda: _FIXED_NOW)
    client.parse("[OLD]X=1\n")

    event = await client.process_received("[S]K=V\n[NETWORK]IP=h\n", peer="10.0.0.2:5000")

    assert client.snapshot() == client.store.baseline_snapshot() == {"S": {"K": "V"}, "NETWORK": {"IP": "h"}}
    assert client.last_received_at == _FIXED_NOW
    assert event.observed_at == _FIXED_NOW
    assert received == [event]
    saved = parse_config(Path(config.config_path).read_text(encoding="utf-8")).sections
    assert saved == {"S": {"K": "V"}}


@pytest.mark.asyncio
async def test_process_received_skips_save_when_auto_save_disabled(tmp_path: Path) -> None:
    config = _config(tmp_path, auto_save_on_receive=False)
    client = ConfigSyncClient(config)

    await client.process_received("[S]K=V\n")

    assert client.has_received
    assert not Path(config.config_path).exists()
