#!/usr/bin/env python3
"""Console front end for pyconfsync.

Stands in for the desktop editor: listens for configuration frames,
prints what arrives, and pushes or requests configuration on demand.

Usage
-----
Optionally set environment variables and run::

    export CONFSYNC_REMOTE_HOST="192.168.4.100"
    python scripts/confsync_cli.py listen
    python scripts/confsync_cli.py request
    python scripts/confsync_cli.py send --file config_received.ini --set PWM.FREQUENCY=50
    python scripts/confsync_cli.py convert config_received.ini --form wire

Commands::

    listen              Receive frames until Ctrl+C, printing each configuration
    request             Send a zero-length frame asking the peer for its configuration
    send                Send the persisted file (plus --set overrides) in wire form
    convert FILE        Print FILE re-serialized in persisted or wire form
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyconfsync import (  # noqa: E402
    ConfigReceivedEvent,
    ConfigSyncClient,
    ConfSyncError,
    SerializationForm,
    StatusEvent,
    SyncConfig,
    attach_log_history,
    parse_config,
    serialize_persisted,
    serialize_wire,
)

_LOG = logging.getLogger("confsync_cli")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronize configuration with the remote control application.")
    parser.add_argument("--listen-port", type=int, default=None, help="Local inbound port.")
    parser.add_argument("--remote-host", default=None, help="Remote application host.")
    parser.add_argument("--remote-port", type=int, default=None, help="Remote application port.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    parser.add_argument("--show-history", action="store_true", help="Print the retained log history on exit.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("listen", help="Receive configuration frames until interrupted.")
    sub.add_parser("request", help="Ask the peer for its configuration.")

    send = sub.add_parser("send", help="Send configuration in wire form.")
    send.add_argument("--file", type=Path, default=None, help="Persisted file to send (default: config path).")
    send.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="SECTION.KEY=VALUE",
        help="Override a value before sending (repeatable).",
    )

    convert = sub.add_parser("convert", help="Re-serialize a configuration file.")
    convert.add_argument("path", type=Path)
    convert.add_argument("--form", choices=[f.value for f in SerializationForm], default=SerializationForm.WIRE.value)
    return parser.parse_args()


def _build_config(args: argparse.Namespace) -> SyncConfig:
    overrides: dict[str, object] = {}
    if args.listen_port is not None:
        overrides["listen_port"] = args.listen_port
    if args.remote_host is not None:
        overrides["remote_host"] = args.remote_host
    if args.remote_port is not None:
        overrides["remote_port"] = args.remote_port
    return SyncConfig.from_env(**overrides)


def _parse_overrides(raw: list[str]) -> dict[str, str]:
    edits: dict[str, str] = {}
    for item in raw:
        field_id, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"--set expects SECTION.KEY=VALUE, got {item!r}")
        edits[field_id.strip()] = value.strip()
    return edits


def _print_status(event: StatusEvent) -> None:
    detail = f" ({event.detail})" if event.detail else ""
    print(f"[status] {event.status.value}{detail}")


async def _listen(config: SyncConfig) -> None:
    client: ConfigSyncClient

    def _on_received(event: ConfigReceivedEvent) -> None:
        stats = client.stats()
        print(f"[recv] from {event.peer}: {stats.section_count} section(s), {stats.key_count} key(s)")
        for section, entries in client.snapshot().items():
            print(f"  [{section}]")
            for key, value in entries.items():
                print(f"    {key}={value}")

    client = ConfigSyncClient(config, on_config_received=_on_received, on_status_change=_print_status)
    async with client:
        client.load_from_file()
        print(f"[listen] waiting on port {client.listen_port} (Ctrl+C to stop)")
        await asyncio.Event().wait()


async def _send(config: SyncConfig, file: Path | None, edits: dict[str, str]) -> None:
    if file is not None:
        config = dataclasses.replace(config, config_path=str(file))
    client = ConfigSyncClient(config, on_status_change=_print_status)
    if not client.load_from_file():
        raise SystemExit(f"Configuration file not found: {config.config_path}")
    if edits:
        client.collect_edits(edits)
    written = await client.send()
    print(f"[send] {written} byte(s) written to {config.remote_host}:{config.remote_port}")


async def _request(config: SyncConfig) -> None:
    client = ConfigSyncClient(config, on_status_change=_print_status)
    await client.request()
    print(f"[request] sent to {config.remote_host}:{config.remote_port}")


def _convert(path: Path, form: str) -> None:
    result = parse_config(path.read_text(encoding="utf-8"))
    if SerializationForm(form) is SerializationForm.PERSISTED:
        sys.stdout.write(serialize_persisted(result.sections))
    else:
        sys.stdout.write(serialize_wire(result.sections))


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "convert":
        _convert(args.path, args.form)
        return 0

    config = _build_config(args)
    history = attach_log_history(config)
    try:
        if args.command == "listen":
            with contextlib.suppress(KeyboardInterrupt):
                asyncio.run(_listen(config))
        elif args.command == "request":
            asyncio.run(_request(config))
        elif args.command == "send":
            asyncio.run(_send(config, args.file, _parse_overrides(args.overrides)))
    except ConfSyncError as exc:
        _LOG.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        if args.show_history:
            print(history.text())
    return 0


if __name__ == "__main__":
    sys.exit(main())
