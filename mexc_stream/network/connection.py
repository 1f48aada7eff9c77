"""
Stream connection for MEXC spot push data.

One connection owns one WebSocket session, its subscription table, a
heartbeat task and its reconnect state. After any disconnect it reopens
itself and replays every subscription it holds.
"""

import asyncio
import contextlib
import inspect
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import websockets

from mexc_stream.network.backoff import ReconnectPolicy
from mexc_stream.network.codec import PushCodec, PushDecodeError

logger = logging.getLogger(__name__)

PushCallback = Callable[[Dict[str, Any]], Any]
ConnectFactory = Callable[[str], Awaitable[Any]]

PING_FRAME = json.dumps({"method": "PING"}, separators=(",", ":"))


def subscription_frame(channel: str) -> str:
    """Build the SUBSCRIPTION request for one channel."""
    return json.dumps({"method": "SUBSCRIPTION", "params": [channel]}, separators=(",", ":"))


class ConnectionState(Enum):
    """Stream connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    GAVE_UP = "gave_up"
    CLOSED = "closed"


@dataclass
class ConnectionStats:
    """Stream connection statistics."""
    connected_at: Optional[datetime] = None
    disconnected_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    reconnect_count: int = 0
    messages_received: int = 0
    messages_sent: int = 0
    pings_sent: int = 0
    control_frames: int = 0
    decode_errors: int = 0
    unrouted_messages: int = 0
    callback_errors: int = 0
    heartbeat_failures: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "disconnected_at": self.disconnected_at.isoformat() if self.disconnected_at else None,
            "last_message_at": self.last_message_at.isoformat() if self.last_message_at else None,
            "reconnect_count": self.reconnect_count,
            "messages_received": self.messages_received,
            "messages_sent": self.messages_sent,
            "pings_sent": self.pings_sent,
            "control_frames": self.control_frames,
            "decode_errors": self.decode_errors,
            "unrouted_messages": self.unrouted_messages,
            "callback_errors": self.callback_errors,
            "heartbeat_failures": self.heartbeat_failures,
            "errors": self.errors,
        }


class StreamConnection:
    """A self-healing WebSocket session multiplexing many channels.

    Subscriptions live in an owned table keyed by channel identifier. The
    table survives reconnects and is replayed in full each time the session
    opens. After ``policy.max_attempts`` failed reconnects the connection
    gives up for good; only restarting the owning process recovers it.
    """

    def __init__(
        self,
        endpoint: str,
        codec: PushCodec,
        policy: Optional[ReconnectPolicy] = None,
        heartbeat_interval: float = 15.0,
        connect_factory: Optional[ConnectFactory] = None,
        name: str = "stream",
    ):
        """Initialize stream connection.

        Args:
            endpoint: WebSocket URL
            codec: Decoder for inbound frames
            policy: Reconnect backoff (defaults match the venue client)
            heartbeat_interval: Seconds between PING frames
            connect_factory: Coroutine opening a transport for a URL
            name: Label used in log lines
        """
        self.endpoint = endpoint
        self.codec = codec
        self.policy = policy or ReconnectPolicy()
        self.heartbeat_interval = heartbeat_interval
        self.name = name
        self._connect_factory = connect_factory or websockets.connect

        self._state = ConnectionState.DISCONNECTED
        self._subscriptions: Dict[str, PushCallback] = {}
        self._transport: Any = None
        self._reconnect_attempts = 0
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._task: Optional[asyncio.Task] = None
        self._closing = False
        self._stats = ConnectionStats()

    @property
    def state(self) -> ConnectionState:
        """Get connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        """Reconnects made since the last successful open."""
        return self._reconnect_attempts

    @property
    def size(self) -> int:
        """Number of channels held."""
        return len(self._subscriptions)

    @property
    def channels(self) -> List[str]:
        """Channel identifiers held."""
        return list(self._subscriptions)

    @property
    def stats(self) -> ConnectionStats:
        """Get connection statistics."""
        return self._stats

    def __contains__(self, channel: str) -> bool:
        return channel in self._subscriptions

    def get(self, channel: str) -> Optional[PushCallback]:
        """Get the callback registered for a channel."""
        return self._subscriptions.get(channel)

    def start(self) -> None:
        """Open the session in the background on the running loop."""
        if self._closing:
            raise RuntimeError(f"Connection {self.name} is closed")
        if self._state == ConnectionState.GAVE_UP:
            logger.warning(f"[{self.name}] Not restarting a connection that gave up")
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def subscribe(self, channel: str, callback: PushCallback) -> None:
        """Register a callback for a channel.

        The callback replaces any previous one for the same channel. When the
        session is live the SUBSCRIPTION request goes out now; otherwise it is
        sent with the replay on the next successful open.

        Args:
            channel: Fully formed channel identifier
            callback: Called with the decoded payload of each push
        """
        self._subscriptions[channel] = callback

        if not self.is_connected:
            logger.debug(f"[{self.name}] Deferred {channel} until connected")
            return

        try:
            await self._send(subscription_frame(channel))
            logger.info(f"[{self.name}] Subscribed to {channel}")
        except Exception as e:
            # Replayed after the transport reports its close
            logger.warning(f"[{self.name}] Failed to send subscription for {channel}: {e}")

    async def close(self) -> None:
        """Stop the session for good, keeping the subscription table."""
        self._closing = True
        self._stop_heartbeat()

        transport = self._transport
        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                logger.warning(f"[{self.name}] Error closing transport: {e}")

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None

        self._state = ConnectionState.CLOSED
        logger.info(f"[{self.name}] Connection closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get connection status and statistics."""
        return {
            "name": self.name,
            "state": self._state.value,
            "subscriptions": self.size,
            "reconnect_attempts": self._reconnect_attempts,
            **self._stats.to_dict(),
        }

    async def _run(self) -> None:
        """Connect, read until closed, back off, repeat."""
        while True:
            await self._connect()

            if self._closing:
                return

            if not self.policy.should_reconnect(self._reconnect_attempts):
                self._state = ConnectionState.GAVE_UP
                logger.critical(
                    f"[{self.name}] Max reconnect attempts reached "
                    f"({self.policy.max_attempts}); {self.size} subscriptions are now stale"
                )
                return

            delay = self.policy.calculate_delay(self._reconnect_attempts)
            self._state = ConnectionState.RECONNECT_SCHEDULED
            logger.info(f"[{self.name}] Attempting to reconnect in {delay:.3f}s...")
            await asyncio.sleep(delay)

            self._reconnect_attempts += 1
            self._stats.reconnect_count += 1

    async def _connect(self) -> None:
        """Run one session from open to close."""
        self._state = ConnectionState.CONNECTING

        try:
            self._transport = await self._connect_factory(self.endpoint)
        except Exception as e:
            self._on_error(e)
            self._on_close()
            return

        try:
            await self._on_open()
            async for raw in self._transport:
                await self._on_message(raw)
        except Exception as e:
            self._on_error(e)
        finally:
            self._on_close()

    async def _on_open(self) -> None:
        self._state = ConnectionState.CONNECTED
        self._reconnect_attempts = 0
        self._stats.connected_at = datetime.now()
        logger.info(f"[{self.name}] WebSocket connected to {self.endpoint}")

        await self._resubscribe()
        self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat())

    async def _resubscribe(self) -> None:
        """Send SUBSCRIPTION for every held channel."""
        for channel in list(self._subscriptions):
            await self._send(subscription_frame(channel))
            logger.debug(f"[{self.name}] Resubscribed to {channel}")

        if self._subscriptions:
            logger.info(f"[{self.name}] Replayed {len(self._subscriptions)} subscriptions")

    async def _on_message(self, raw: Any) -> None:
        """Decode one frame and hand its payload to the channel's callback."""
        self._stats.messages_received += 1
        self._stats.last_message_at = datetime.now()

        try:
            envelope = self.codec.decode(raw)
        except PushDecodeError as e:
            self._stats.decode_errors += 1
            logger.warning(f"[{self.name}] Dropped undecodable frame: {e}")
            return

        if envelope is None:
            self._stats.control_frames += 1
            logger.debug(f"[{self.name}] Control frame: {raw!r:.200}")
            return

        callback = self._subscriptions.get(envelope.channel)
        if callback is None:
            self._stats.unrouted_messages += 1
            return

        try:
            result = callback(envelope.payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self._stats.callback_errors += 1
            logger.exception(f"[{self.name}] Callback for {envelope.channel} raised")

    def _on_error(self, error: Exception) -> None:
        self._stats.errors += 1
        logger.error(f"[{self.name}] WebSocket error: {error}")
        self._stop_heartbeat()

    def _on_close(self) -> None:
        transport = self._transport
        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        self._stats.disconnected_at = datetime.now()
        self._stop_heartbeat()

        if transport is not None:
            code = getattr(transport, "close_code", None)
            reason = getattr(transport, "close_reason", None)
            message = f"[{self.name}] Connection closed: code={code}, reason={reason}"
            if self._closing:
                logger.info(message)
            else:
                logger.warning(message)

    async def _heartbeat(self) -> None:
        """Send PING on a fixed interval while connected."""
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not self.is_connected:
                return
            try:
                await self._send(PING_FRAME)
                self._stats.pings_sent += 1
            except Exception as e:
                self._stats.heartbeat_failures += 1
                logger.error(f"[{self.name}] Error sending PING: {e}")

    def _stop_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _send(self, frame: str) -> None:
        await self._transport.send(frame)
        self._stats.messages_sent += 1
