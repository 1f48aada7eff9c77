"""Connection pool multiplexing MEXC spot subscriptions."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from mexc_stream.config.settings import StreamSettings, get_settings
from mexc_stream.network import channels
from mexc_stream.network.backoff import ReconnectPolicy
from mexc_stream.network.codec import ProtobufPushCodec, PushCodec
from mexc_stream.network.connection import ConnectFactory, PushCallback, StreamConnection

logger = logging.getLogger(__name__)


class SpotStreamPool:
    """Routes subscriptions over as many connections as the venue cap needs.

    Handles:
    - Reusing the connection that already holds a channel
    - Filling the newest connection up to the soft cap
    - Opening another connection once the newest one is full

    Connections are never closed to scale down; ``close`` is for teardown.
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        codec: Optional[PushCodec] = None,
        connect_factory: Optional[ConnectFactory] = None,
    ):
        """Initialize stream pool.

        Args:
            settings: Stream settings (uses cached environment settings if None)
            codec: Frame decoder shared by all connections
            connect_factory: Transport opener passed to each connection
        """
        self.settings = settings or get_settings()
        self.codec = codec or ProtobufPushCodec(wrapper_path=self.settings.wrapper_message)
        self._connect_factory = connect_factory
        self._policy = ReconnectPolicy.from_settings(self.settings.reconnect)
        self._connections: List[StreamConnection] = []
        self._created = 0

    @property
    def max_subscriptions(self) -> int:
        """Soft cap of channels per connection."""
        return self.settings.max_subscriptions_per_connection

    @property
    def connections(self) -> List[StreamConnection]:
        """Connections, newest first."""
        return list(self._connections)

    @property
    def connection_count(self) -> int:
        """Get number of connections."""
        return len(self._connections)

    @property
    def total_subscriptions(self) -> int:
        """Channels held across all connections."""
        return sum(c.size for c in self._connections)

    def find_connection(self, channel: str) -> Optional[StreamConnection]:
        """Find the connection already holding a channel."""
        for connection in self._connections:
            if channel in connection:
                return connection
        return None

    def _acquire_connection(self) -> StreamConnection:
        """Newest connection with room, opening a new one if needed."""
        if self._connections and self._connections[0].size < self.max_subscriptions:
            return self._connections[0]

        self._created += 1
        connection = StreamConnection(
            endpoint=self.settings.endpoint,
            codec=self.codec,
            policy=self._policy,
            heartbeat_interval=self.settings.heartbeat_interval,
            connect_factory=self._connect_factory,
            name=f"stream-{self._created}",
        )
        self._connections.insert(0, connection)
        connection.start()
        logger.info(f"Opened {connection.name} ({self.connection_count} connections)")
        return connection

    async def subscribe(self, channel: str, callback: PushCallback) -> StreamConnection:
        """Subscribe a callback to a channel on the right connection.

        Args:
            channel: Fully formed channel identifier
            callback: Called with each decoded payload

        Returns:
            Connection now holding the channel
        """
        connection = self.find_connection(channel)
        if connection is None:
            connection = self._acquire_connection()
        else:
            logger.debug(f"Replacing callback for {channel} on {connection.name}")

        await connection.subscribe(channel, callback)
        return connection

    async def subscribe_account_orders(self, callback: PushCallback) -> StreamConnection:
        """Subscribe to private order updates."""
        return await self.subscribe(channels.account_orders_channel(), callback)

    async def subscribe_account_deals(self, callback: PushCallback) -> StreamConnection:
        """Subscribe to private fills."""
        return await self.subscribe(channels.account_deals_channel(), callback)

    async def subscribe_account(self, callback: PushCallback) -> StreamConnection:
        """Subscribe to private balance updates."""
        return await self.subscribe(channels.account_channel(), callback)

    async def subscribe_limit_depths(
        self,
        symbol: str,
        level: int,
        callback: PushCallback,
    ) -> StreamConnection:
        """Subscribe to partial order book snapshots.

        Args:
            symbol: Market symbol (e.g., BTCUSDT)
            level: Book rows, one of 5, 10, 20
            callback: Called with each depth payload

        Returns:
            Connection holding the channel
        """
        return await self.subscribe(channels.limit_depth_channel(symbol, level), callback)

    async def subscribe_aggre_depths(
        self,
        symbol: str,
        delay: str,
        callback: PushCallback,
    ) -> StreamConnection:
        """Subscribe to aggregated depth updates every ``delay`` (10ms or 100ms)."""
        return await self.subscribe(channels.aggre_depth_channel(symbol, delay), callback)

    async def subscribe_book_ticker(
        self,
        symbol: str,
        delay: str,
        callback: PushCallback,
    ) -> StreamConnection:
        """Subscribe to best bid/offer every ``delay`` (10ms or 100ms)."""
        return await self.subscribe(channels.book_ticker_channel(symbol, delay), callback)

    async def subscribe_book_ticker_batch(
        self,
        symbol: str,
        callback: PushCallback,
    ) -> StreamConnection:
        """Subscribe to batched best bid/offer."""
        return await self.subscribe(channels.book_ticker_batch_channel(symbol), callback)

    async def subscribe_aggre_deals(
        self,
        symbol: str,
        delay: str,
        callback: PushCallback,
    ) -> StreamConnection:
        """Subscribe to aggregated trades every ``delay`` (10ms or 100ms)."""
        return await self.subscribe(channels.aggre_deals_channel(symbol, delay), callback)

    async def subscribe_spot_kline(
        self,
        symbol: str,
        interval: str,
        callback: PushCallback,
    ) -> StreamConnection:
        """Subscribe to candlesticks.

        Args:
            symbol: Market symbol (e.g., BTCUSDT)
            interval: Kline interval (Min1, Min5, ..., Month1)
            callback: Called with each kline payload

        Returns:
            Connection holding the channel
        """
        return await self.subscribe(channels.spot_kline_channel(symbol, interval), callback)

    async def close(self) -> None:
        """Close every connection."""
        await asyncio.gather(*(c.close() for c in self._connections))
        logger.info(f"All {self.connection_count} stream connections closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get pool statistics."""
        return {
            "connections": self.connection_count,
            "total_subscriptions": self.total_subscriptions,
            "max_subscriptions_per_connection": self.max_subscriptions,
            "connected": sum(1 for c in self._connections if c.is_connected),
            "per_connection": [c.get_stats() for c in self._connections],
        }
