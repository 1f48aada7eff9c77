"""Unit tests for SpotStreamPool."""

from unittest.mock import MagicMock

import pytest

from mexc_stream.config.settings import ReconnectSettings, StreamSettings
from mexc_stream.network.channels import spot_kline_channel
from mexc_stream.network.codec import ProtobufPushCodec
from mexc_stream.network.connection import subscription_frame
from mexc_stream.network.pool import SpotStreamPool


def kline(i: int) -> str:
    return spot_kline_channel(f"SYM{i}USDT", "Min1")


class TestSpotStreamPool:
    """Tests for SpotStreamPool routing."""

    @pytest.fixture
    def settings(self):
        """Settings with fast reconnects."""
        return StreamSettings(
            endpoint="wss://example.test/ws",
            reconnect=ReconnectSettings(base_interval=0.001, max_interval=0.002),
        )

    @pytest.fixture
    def pool(self, settings, codec, connector):
        """Create pool over fake transports."""
        return SpotStreamPool(settings, codec=codec, connect_factory=connector)

    def test_initial_state(self, pool):
        """Should start without connections."""
        assert pool.connection_count == 0
        assert pool.total_subscriptions == 0
        assert pool.max_subscriptions == 25

    def test_default_codec(self, settings):
        """Should decode with the protobuf wrapper from settings."""
        settings = settings.model_copy(update={"wrapper_message": "collections.OrderedDict"})
        pool = SpotStreamPool(settings)

        assert isinstance(pool.codec, ProtobufPushCodec)
        assert pool.codec.wrapper_path == settings.wrapper_message

    def test_missing_wrapper_fails_at_construction(self, settings):
        """Should refuse to build a pool that could not decode any frame."""
        settings = settings.model_copy(update={"wrapper_message": "no_such_push_module.Wrapper"})

        with pytest.raises(ModuleNotFoundError):
            SpotStreamPool(settings)

    @pytest.mark.asyncio
    async def test_first_subscribe_opens_connection(self, pool, connector, wait_until):
        """Should create and start a connection on first use."""
        connection = await pool.subscribe(kline(0), MagicMock())
        await wait_until(lambda: connection.is_connected and connector.transports[0].sent)

        assert pool.connection_count == 1
        assert connector.calls == ["wss://example.test/ws"]
        assert connector.transports[0].sent == [subscription_frame(kline(0))]
        await pool.close()

    @pytest.mark.asyncio
    async def test_fills_connection_to_soft_cap(self, pool):
        """Should keep 25 channels on one connection."""
        for i in range(25):
            await pool.subscribe(kline(i), MagicMock())

        assert pool.connection_count == 1
        assert pool.connections[0].size == 25
        await pool.close()

    @pytest.mark.asyncio
    async def test_opens_new_connection_past_soft_cap(self, pool):
        """Should put the 26th channel on a new, newest-first connection."""
        for i in range(26):
            await pool.subscribe(kline(i), MagicMock())

        assert pool.connection_count == 2
        newest, oldest = pool.connections
        assert newest.size == 1
        assert kline(25) in newest
        assert oldest.size == 25
        await pool.close()

    @pytest.mark.asyncio
    async def test_capacity_respected(self, pool):
        """Should never hold more than 25 channels per connection."""
        for i in range(60):
            await pool.subscribe(kline(i), MagicMock())

        assert pool.connection_count == 3
        assert all(c.size <= 25 for c in pool.connections)
        assert pool.total_subscriptions == 60
        await pool.close()

    @pytest.mark.asyncio
    async def test_existing_channel_reuses_holder(self, pool):
        """Should route a repeat channel back to its holder."""
        first = MagicMock()
        for i in range(26):
            await pool.subscribe(kline(i), first if i == 0 else MagicMock())
        holder = pool.find_connection(kline(0))
        replacement = MagicMock()

        connection = await pool.subscribe(kline(0), replacement)

        assert connection is holder
        assert connection is pool.connections[1]
        assert connection.get(kline(0)) is replacement
        assert pool.connection_count == 2
        await pool.close()

    @pytest.mark.asyncio
    async def test_repeat_on_full_connection_creates_nothing(self, pool):
        """Should not open a connection for a channel already held."""
        for i in range(25):
            await pool.subscribe(kline(i), MagicMock())

        for _ in range(3):
            await pool.subscribe(kline(3), MagicMock())

        assert pool.connection_count == 1
        assert pool.total_subscriptions == 25
        await pool.close()

    @pytest.mark.asyncio
    async def test_single_holder_per_channel(self, pool):
        """Should keep each channel on exactly one connection."""
        for i in range(40):
            await pool.subscribe(kline(i), MagicMock())
        for i in range(0, 40, 3):
            await pool.subscribe(kline(i), MagicMock())

        for i in range(40):
            holders = [c for c in pool.connections if kline(i) in c]
            assert len(holders) == 1
        await pool.close()

    @pytest.mark.asyncio
    async def test_custom_soft_cap(self, settings, codec, connector):
        """Should honour a configured cap."""
        settings.max_subscriptions_per_connection = 2
        pool = SpotStreamPool(settings, codec=codec, connect_factory=connector)

        for i in range(5):
            await pool.subscribe(kline(i), MagicMock())

        assert pool.connection_count == 3
        assert [c.size for c in pool.connections] == [1, 2, 2]
        await pool.close()

    @pytest.mark.asyncio
    async def test_routes_kline_push(self, pool, connector, wait_until):
        """Should deliver a kline push to its callback exactly once."""
        callback = MagicMock()
        other = MagicMock()
        connection = await pool.subscribe_spot_kline("BTCUSDT", "Min1", callback)
        await pool.subscribe_book_ticker("BTCUSDT", "10ms", other)
        await wait_until(lambda: connection.is_connected)

        transport = connector.transports[0]
        transport.push(b"spot@public.kline.v3.api.pb@BTCUSDT@Min1|k")
        transport.push(b"spot@public.kline.v3.api.pb@ETHUSDT@Min1|k")
        await wait_until(lambda: connection.stats.messages_received == 2)

        callback.assert_called_once_with({"body": "k"})
        other.assert_not_called()
        await pool.close()

    @pytest.mark.asyncio
    async def test_typed_subscriptions(self, pool):
        """Should build the venue channel for every kind."""
        cb = MagicMock()

        await pool.subscribe_account_orders(cb)
        await pool.subscribe_account_deals(cb)
        await pool.subscribe_account(cb)
        await pool.subscribe_limit_depths("BTCUSDT", 5, cb)
        await pool.subscribe_aggre_depths("BTCUSDT", "10ms", cb)
        await pool.subscribe_book_ticker("BTCUSDT", "100ms", cb)
        await pool.subscribe_book_ticker_batch("BTCUSDT", cb)
        await pool.subscribe_aggre_deals("BTCUSDT", "100ms", cb)
        await pool.subscribe_spot_kline("BTCUSDT", "Hour4", cb)

        assert sorted(pool.connections[0].channels) == sorted([
            "spot@private.orders.v3.api.pb",
            "spot@private.deals.v3.api.pb",
            "spot@private.account.v3.api.pb",
            "spot@public.limit.depth.v3.api.pb@BTCUSDT@5",
            "spot@public.aggre.depth.v3.api.pb@10ms@BTCUSDT",
            "spot@public.aggre.bookTicker.v3.api.pb@100ms@BTCUSDT",
            "spot@public.bookTicker.batch.v3.api.pb@BTCUSDT",
            "spot@public.aggre.deals.v3.api.pb@100ms@BTCUSDT",
            "spot@public.kline.v3.api.pb@BTCUSDT@Hour4",
        ])
        await pool.close()

    @pytest.mark.asyncio
    async def test_invalid_parameters_rejected(self, pool):
        """Should raise before touching any connection."""
        with pytest.raises(ValueError):
            await pool.subscribe_limit_depths("BTCUSDT", 15, MagicMock())
        with pytest.raises(ValueError):
            await pool.subscribe_book_ticker("BTCUSDT", "1s", MagicMock())

        assert pool.connection_count == 0

    @pytest.mark.asyncio
    async def test_close_closes_all(self, pool, wait_until):
        """Should close every connection."""
        for i in range(30):
            await pool.subscribe(kline(i), MagicMock())
        await wait_until(lambda: all(c.is_connected for c in pool.connections))

        await pool.close()

        assert all(c.state.value == "closed" for c in pool.connections)

    @pytest.mark.asyncio
    async def test_get_stats(self, pool, wait_until):
        """Should summarise connections and subscriptions."""
        for i in range(27):
            await pool.subscribe(kline(i), MagicMock())
        await wait_until(lambda: all(c.is_connected for c in pool.connections))

        stats = pool.get_stats()

        assert stats["connections"] == 2
        assert stats["total_subscriptions"] == 27
        assert stats["connected"] == 2
        assert len(stats["per_connection"]) == 2
        await pool.close()
