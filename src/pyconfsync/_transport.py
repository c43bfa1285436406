"""Length-prefixed TCP transport.

Inbound: :class:`FrameListener` accepts connections strictly one at a
time. Each session reads one header and payload, dispatches it, and is
closed before the next connection is accepted.

Outbound: :func:`send_frame` opens a fresh short-lived connection per
call, bounded by a fixed timeout on connect, write and close.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import socket
from collections.abc import Awaitable, Callable

from pyconfsync._codec.framing import decode_payload, encode_frame, parse_header
from pyconfsync._constants import (
    DEFAULT_IO_TIMEOUT,
    DEFAULT_MAX_HEADER_BYTES,
    DEFAULT_MAX_PAYLOAD_BYTES,
    DEFAULT_RETRY_BACKOFF,
)
from pyconfsync.exceptions import (
    ConfSyncTransportError,
    FrameEOFError,
    FrameHeaderError,
    PayloadEncodingError,
)
from pyconfsync.state.events import ConfigReceivedEvent, ConfigRequestEvent, ConnectionStatus, StatusEvent

_logger = logging.getLogger(__name__)

ConfigReceivedCallback = Callable[[ConfigReceivedEvent], Awaitable[None] | None]
ConfigRequestCallback = Callable[[ConfigRequestEvent], Awaitable[None] | None]
StatusCallback = Callable[[StatusEvent], None]


async def read_header_line(reader: asyncio.StreamReader, *, max_bytes: int = DEFAULT_MAX_HEADER_BYTES) -> str:
    """Read byte-by-byte up to ``\\n``; a trailing ``\\r`` is dropped.

    Returns an empty string when the peer closes before sending anything.
    """
    buffer = bytearray()
    while True:
        byte = await reader.read(1)
        if not byte or byte == b"\n":
            break
        buffer += byte
        if len(buffer) > max_bytes + 1:
            raise FrameHeaderError(
                f"Length header exceeds {max_bytes} bytes",
                header=buffer.decode("latin-1"),
            )
    if buffer.endswith(b"\r"):
        del buffer[-1]
    if len(buffer) > max_bytes:
        raise FrameHeaderError(f"Length header exceeds {max_bytes} bytes", header=buffer.decode("latin-1"))
    return buffer.decode("latin-1")


async def read_payload(
    reader: asyncio.StreamReader,
    length: int,
    *,
    host: str = "",
    port: int | None = None,
) -> bytes:
    """Accumulate exactly *length* bytes; a zero-byte read is end of stream."""
    buffer = bytearray()
    while len(buffer) < length:
        chunk = await reader.read(length - len(buffer))
        if not chunk:
            raise FrameEOFError(
                f"Connection closed after {len(buffer)} of {length} bytes",
                expected=length,
                received=len(buffer),
                host=host,
                port=port,
            )
        buffer += chunk
    return bytes(buffer)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def _maybe_await(result: Awaitable[None] | None) -> None:
    if inspect.isawaitable(result):
        await result


class FrameListener:
    """Serial inbound listener for configuration frames."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        on_config_received: ConfigReceivedCallback,
        on_config_request: ConfigRequestCallback | None = None,
        on_status_change: StatusCallback | None = None,
        max_header_bytes: int = DEFAULT_MAX_HEADER_BYTES,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        backlog: int = 5,
    ) -> None:
        self._host = host
        self._port = port
        self._on_config_received = on_config_received
        self._on_config_request = on_config_request
        self._on_status_change = on_status_change
        self._max_header_bytes = max_header_bytes
        self._max_payload_bytes = max_payload_bytes
        self._retry_backoff = retry_backoff
        self._backlog = backlog
        self._sock: socket.socket | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def port(self) -> int:
        """Bound port (differs from the configured one when that was ``0``)."""
        if self._sock is not None:
            return int(self._sock.getsockname()[1])
        return self._port

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind, listen and spawn the accept loop."""
        if self.is_running:
            return
        try:
            sock = socket.create_server((self._host, self._port), backlog=self._backlog)
        except OSError as exc:
            _logger.error("Failed to start listener on %s:%s: %s", self._host, self._port, exc)
            self._emit_status(ConnectionStatus.LISTEN_FAILED, str(exc))
            raise ConfSyncTransportError(
                f"Cannot listen on {self._host}:{self._port}: {exc}",
                host=self._host,
                port=self._port,
            ) from exc
        sock.setblocking(False)
        self._sock = sock
        self._task = asyncio.get_running_loop().create_task(self._accept_loop(), name="pyconfsync-accept")
        _logger.info("Listening for configuration frames on port %s", self.port)
        self._emit_status(ConnectionStatus.LISTENING, f"port {self.port}")

    async def stop(self) -> None:
        """Stop accepting and unwind any in-flight session without error."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            _logger.info("Listener stopped")
            self._emit_status(ConnectionStatus.STOPPED)

    # ------------------------------------------------------------------
    # Accept loop
    # ------------------------------------------------------------------

    async def _accept_loop(self) -> None:
        loop = asyncio.get_running_loop()
        assert self._sock is not None  # noqa: S101
        while True:
            try:
                conn, addr = await loop.sock_accept(self._sock)
                await self._serve_connection(conn, addr)
            except Exception:
                _logger.exception("Unexpected error in accept loop; retrying in %.1fs", self._retry_backoff)
                self._emit_status(ConnectionStatus.RECEIVE_FAILED, "accept loop error")
                await asyncio.sleep(self._retry_backoff)

    async def _serve_connection(self, conn: socket.socket, addr: tuple[str, int]) -> None:
        peer = f"{addr[0]}:{addr[1]}"
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
        except BaseException:
            conn.close()
            raise

        _logger.info("Peer connected: %s", peer)
        self._emit_status(ConnectionStatus.RECEIVING, peer)
        try:
            await self._handle_session(reader, addr)
        except FrameHeaderError as exc:
            _logger.warning("Rejected frame from %s: %s", peer, exc)
            self._emit_status(ConnectionStatus.BAD_HEADER, str(exc))
        except (ConfSyncTransportError, PayloadEncodingError, OSError) as exc:
            _logger.warning("Receive from %s failed: %s", peer, exc)
            self._emit_status(ConnectionStatus.RECEIVE_FAILED, str(exc))
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
            _logger.info("Peer disconnected: %s", peer)

    async def _handle_session(self, reader: asyncio.StreamReader, addr: tuple[str, int]) -> None:
        peer = f"{addr[0]}:{addr[1]}"
        header = await read_header_line(reader, max_bytes=self._max_header_bytes)
        if not header:
            _logger.info("Empty length header from %s", peer)
            return

        length = parse_header(header, max_payload_bytes=self._max_payload_bytes)
        if length == 0:
            _logger.info("Configuration request (0-byte frame) received from %s", peer)
            self._emit_status(ConnectionStatus.REQUEST_RECEIVED, peer)
            if self._on_config_request is not None:
                await _maybe_await(self._on_config_request(ConfigRequestEvent(peer=peer)))
            return

        _logger.info("Length header received: %d bytes", length)
        payload = await read_payload(reader, length, host=addr[0], port=addr[1])
        text = decode_payload(payload)
        _logger.info("Configuration payload received: %d bytes", len(payload))
        await _maybe_await(self._on_config_received(ConfigReceivedEvent(payload=text, peer=peer)))
        self._emit_status(ConnectionStatus.RECEIVED, peer)

    def _emit_status(self, status: ConnectionStatus, detail: str = "") -> None:
        if self._on_status_change is None:
            return
        try:
            self._on_status_change(StatusEvent(status=status, detail=detail))
        except Exception:
            _logger.exception("Status observer failed")


# ----------------------------------------------------------------------
# Outbound
# ----------------------------------------------------------------------


async def send_frame(
    host: str,
    port: int,
    payload: bytes,
    *,
    timeout: float = DEFAULT_IO_TIMEOUT,
) -> int:
    """Open a fresh connection, write one frame, flush and close.

    Returns the number of bytes written. Any failure is raised as
    :class:`ConfSyncTransportError`.
    """
    frame = encode_frame(payload)
    _logger.info("Connecting to %s:%s", host, port)
    try:
        _reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, TimeoutError) as exc:
        raise ConfSyncTransportError(
            f"Connect to {host}:{port} failed: {_describe(exc)}",
            host=host,
            port=port,
        ) from exc
    _logger.debug("Connected to %s:%s", host, port)

    try:
        writer.write(frame)
        await asyncio.wait_for(writer.drain(), timeout)
    except (OSError, TimeoutError) as exc:
        raise ConfSyncTransportError(
            f"Send to {host}:{port} failed: {_describe(exc)}",
            host=host,
            port=port,
        ) from exc
    finally:
        writer.close()
        with contextlib.suppress(OSError, TimeoutError):
            await asyncio.wait_for(writer.wait_closed(), timeout)

    _logger.info(
        "Frame sent to %s:%s: header(%dB) + payload(%dB)",
        host,
        port,
        len(frame) - len(payload),
        len(payload),
    )
    return len(frame)


async def send_config(host: str, port: int, text: str, *, timeout: float = DEFAULT_IO_TIMEOUT) -> int:
    """Send *text* as a UTF-8 configuration payload."""
    return await send_frame(host, port, text.encode("utf-8"), timeout=timeout)


async def request_config(host: str, port: int, *, timeout: float = DEFAULT_IO_TIMEOUT) -> int:
    """Ask the peer for its configuration with a zero-length frame."""
    return await send_frame(host, port, b"", timeout=timeout)
