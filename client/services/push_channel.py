"""
Push subscription for wallet activity.

Speaks the socket.io protocol (Engine.IO v4 framing) over a plain
WebSocket: wait for the Engine.IO open packet, connect the default
namespace, emit ``subscribe`` with the address, then deliver every
``activity`` event to the registered callback. The server drives the
heartbeat (``2`` ping, ``3`` pong).

The channel reconnects itself with exponential backoff. It is a
low-latency hint only; the feed poll stays authoritative, so transport
failures are logged and never raised to callers.
"""

import asyncio
import json
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlsplit, urlunsplit

import websockets
from pydantic import ValidationError

from config import settings
from models import ActivityItem
from utils.logger import get_logger

logger = get_logger("push_channel")

SOCKET_IO_PATH = "/socket.io/"
HANDSHAKE_TIMEOUT_SECONDS = 10.0
DEFAULT_PING_INTERVAL_SECONDS = 25.0
DEFAULT_PING_TIMEOUT_SECONDS = 20.0

# Engine.IO packet types
EIO_OPEN = "0"
EIO_CLOSE = "1"
EIO_PING = "2"
EIO_PONG = "3"
EIO_MESSAGE = "4"

# socket.io packet types (carried inside an Engine.IO message)
SIO_CONNECT = "0"
SIO_DISCONNECT = "1"
SIO_EVENT = "2"
SIO_CONNECT_ERROR = "4"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class TransportError(Exception):
    """The push channel is unavailable or spoke an unexpected protocol."""


def _exception_text(exc: Exception) -> str:
    text = str(exc).strip()
    return text if text else repr(exc)


# ==================== FRAMING ====================


def build_socket_url(origin: str) -> str:
    """Map an http(s)/ws(s) origin to its socket.io WebSocket endpoint."""
    parts = urlsplit(origin.rstrip("/"))
    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme, parts.scheme or "ws")
    path = parts.path.rstrip("/") + SOCKET_IO_PATH
    return urlunsplit((scheme, parts.netloc, path, "EIO=4&transport=websocket", ""))


def encode_event(name: str, *args: Any) -> str:
    return EIO_MESSAGE + SIO_EVENT + json.dumps([name, *args])


def parse_event(frame: str) -> Optional[tuple[str, list]]:
    """Decode a ``42[...]`` frame into ``(event, args)``.

    Returns ``None`` for anything that is not a well-formed event. A
    namespace prefix (``/ns,``) and an ack id are tolerated and dropped.
    """
    if not frame.startswith(EIO_MESSAGE + SIO_EVENT):
        return None
    body = frame[2:]
    if body.startswith("/"):
        _, sep, body = body.partition(",")
        if not sep:
            return None
    body = body.lstrip("0123456789")
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        return None
    return data[0], data[1:]


def activity_items(args: list) -> list[ActivityItem]:
    """Validate the payload of an ``activity`` event; malformed entries are dropped."""
    raw_items: list = []
    for arg in args:
        if isinstance(arg, list):
            raw_items.extend(arg)
        else:
            raw_items.append(arg)

    items: list[ActivityItem] = []
    for raw in raw_items:
        try:
            item = ActivityItem.from_api(raw)
        except ValidationError:
            logger.debug("Dropping malformed push activity")
            continue
        if item is not None:
            items.append(item)
    return items


def _parse_open(frame: str) -> tuple[float, float]:
    if not frame.startswith(EIO_OPEN):
        raise TransportError(f"Expected Engine.IO open packet, got {frame[:16]!r}")
    try:
        config = json.loads(frame[1:] or "{}")
    except ValueError as exc:
        raise TransportError("Malformed Engine.IO open packet") from exc
    interval = config.get("pingInterval", DEFAULT_PING_INTERVAL_SECONDS * 1000) / 1000
    timeout = config.get("pingTimeout", DEFAULT_PING_TIMEOUT_SECONDS * 1000) / 1000
    return float(interval), float(timeout)


# ==================== CHANNEL ====================


class ActivityPushChannel:
    """One push subscription for one address."""

    def __init__(
        self,
        address: str,
        on_activity: Callable,
        origin: Optional[str] = None,
        reconnect_delay: Optional[float] = None,
        max_reconnect_delay: Optional[float] = None,
        connect: Optional[Callable] = None,
    ):
        self.address = address
        self._on_activity = on_activity
        self._url = build_socket_url(origin or settings.push_url)
        self._reconnect_delay = (
            reconnect_delay if reconnect_delay is not None else settings.WS_RECONNECT_BASE_DELAY
        )
        self._max_reconnect_delay = (
            max_reconnect_delay
            if max_reconnect_delay is not None
            else settings.WS_RECONNECT_MAX_DELAY
        )
        self._connect = connect or self._default_connect
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._ws = None
        self.state = ConnectionState.DISCONNECTED
        self._stats = {"events": 0, "reconnects": 0, "errors": 0}

    @property
    def url(self) -> str:
        return self._url

    @staticmethod
    def _default_connect(url: str):
        # Engine.IO runs its own heartbeat.
        return websockets.connect(url, ping_interval=None, open_timeout=HANDSHAKE_TIMEOUT_SECONDS)

    # ==================== LIFECYCLE ====================

    async def start(self):
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._ws_loop())
        logger.info("Started push channel", address=self.address, url=self._url)

    async def stop(self):
        """Close the connection and wait for the loop to finish."""
        self._running = False
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("Error closing push socket", error=_exception_text(e))
        task = self._task
        if task and not task.done():
            task.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._ws = None
        self.state = ConnectionState.CLOSED
        logger.info("Stopped push channel", address=self.address, stats=self._stats)

    # ==================== LOOP ====================

    async def _ws_loop(self):
        current_delay = self._reconnect_delay

        while self._running:
            self.state = (
                ConnectionState.CONNECTING
                if self._stats["reconnects"] == 0
                else ConnectionState.RECONNECTING
            )
            try:
                async with self._connect(self._url) as ws:
                    self._ws = ws
                    ping_interval, ping_timeout = await self._handshake(ws)
                    current_delay = self._reconnect_delay
                    self.state = ConnectionState.CONNECTED
                    logger.info("Push channel subscribed", address=self.address)
                    await self._read_loop(ws, ping_interval + ping_timeout)
                # Server closed the session cleanly; treat it like a drop.
                if self._running:
                    raise TransportError("Push session closed by server")

            except asyncio.CancelledError:
                break

            except Exception as e:
                self._ws = None
                if not self._running:
                    break
                self._stats["reconnects"] += 1
                self._stats["errors"] += 1
                logger.warning(
                    "Push channel lost, will reconnect",
                    address=self.address,
                    error_type=type(e).__name__,
                    error=_exception_text(e),
                    reconnect_delay=current_delay,
                )
                self.state = ConnectionState.RECONNECTING
                await asyncio.sleep(current_delay)
                current_delay = min(current_delay * 2, self._max_reconnect_delay)

        self._ws = None

    async def _handshake(self, ws) -> tuple[float, float]:
        opened = await asyncio.wait_for(ws.recv(), timeout=HANDSHAKE_TIMEOUT_SECONDS)
        ping_interval, ping_timeout = _parse_open(opened)

        await ws.send(EIO_MESSAGE + SIO_CONNECT)
        while True:
            frame = await asyncio.wait_for(ws.recv(), timeout=HANDSHAKE_TIMEOUT_SECONDS)
            if frame == EIO_PING:
                await ws.send(EIO_PONG)
                continue
            if frame.startswith(EIO_MESSAGE + SIO_CONNECT_ERROR):
                raise TransportError(f"Namespace connect refused: {frame[2:]}")
            if frame.startswith(EIO_MESSAGE + SIO_CONNECT):
                break

        await ws.send(encode_event("subscribe", self.address))
        return ping_interval, ping_timeout

    async def _read_loop(self, ws, heartbeat_timeout: float):
        while self._running:
            try:
                frame = await asyncio.wait_for(ws.recv(), timeout=heartbeat_timeout)
            except asyncio.TimeoutError as exc:
                raise TransportError("Heartbeat timed out") from exc

            if isinstance(frame, bytes):
                frame = frame.decode("utf-8", errors="replace")

            if frame == EIO_PING:
                await ws.send(EIO_PONG)
                continue
            if frame == EIO_CLOSE or frame.startswith(EIO_MESSAGE + SIO_DISCONNECT):
                return

            event = parse_event(frame)
            if event is None:
                continue
            name, args = event
            if name != "activity":
                logger.debug("Ignoring push event", event_name=name)
                continue
            for item in activity_items(args):
                self._stats["events"] += 1
                await self._dispatch(item)

    async def _dispatch(self, item: ActivityItem):
        try:
            result = self._on_activity(item)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(
                "Push callback error",
                error_type=type(e).__name__,
                error=_exception_text(e),
            )
