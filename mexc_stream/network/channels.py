"""Channel identifiers for MEXC spot push streams.

Every subscription on the MEXC spot WebSocket is addressed by a channel
string that doubles as the local routing key for callbacks. The helpers here
build those strings from human-facing parameters and reject malformed input
before it reaches a connection.
"""

from enum import Enum
from typing import Optional


class ChannelKind(Enum):
    """Subscription kinds, valued by their base topic."""

    ACCOUNT_ORDERS = "spot@private.orders.v3.api.pb"
    ACCOUNT_DEALS = "spot@private.deals.v3.api.pb"
    ACCOUNT = "spot@private.account.v3.api.pb"
    LIMIT_DEPTH = "spot@public.limit.depth.v3.api.pb"
    AGGRE_DEPTH = "spot@public.aggre.depth.v3.api.pb"
    BOOK_TICKER = "spot@public.aggre.bookTicker.v3.api.pb"
    BOOK_TICKER_BATCH = "spot@public.bookTicker.batch.v3.api.pb"
    AGGRE_DEALS = "spot@public.aggre.deals.v3.api.pb"
    SPOT_KLINE = "spot@public.kline.v3.api.pb"

    @property
    def is_private(self) -> bool:
        """Whether the kind carries account events."""
        return self.value.startswith("spot@private.")

    @classmethod
    def from_channel(cls, channel: str) -> Optional["ChannelKind"]:
        """Recover the kind from a full channel identifier.

        Args:
            channel: Identifier such as ``spot@public.kline.v3.api.pb@BTCUSDT@Min1``

        Returns:
            Matching kind, or None for unknown topics
        """
        parts = channel.split("@")
        if len(parts) < 2:
            return None
        try:
            return cls(f"spot@{parts[1]}")
        except ValueError:
            return None


DEPTH_LEVELS = (5, 10, 20)
DELAYS = ("10ms", "100ms")
KLINE_INTERVALS = (
    "Min1",
    "Min5",
    "Min15",
    "Min30",
    "Min60",
    "Hour4",
    "Hour8",
    "Day1",
    "Week1",
    "Month1",
)


def _check_token(name: str, value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")
    if "@" in value or any(c.isspace() for c in value):
        raise ValueError(f"Invalid {name}: {value!r}")
    return value


def _check_symbol(symbol: str) -> str:
    return _check_token("symbol", symbol)


def _check_delay(delay: str) -> str:
    if delay not in DELAYS:
        raise ValueError(f"Invalid delay {delay!r}, expected one of {DELAYS}")
    return delay


def account_orders_channel() -> str:
    """Private order updates."""
    return ChannelKind.ACCOUNT_ORDERS.value


def account_deals_channel() -> str:
    """Private fills."""
    return ChannelKind.ACCOUNT_DEALS.value


def account_channel() -> str:
    """Private balance snapshots."""
    return ChannelKind.ACCOUNT.value


def limit_depth_channel(symbol: str, level: int) -> str:
    """Partial order book of ``level`` rows."""
    if type(level) is not int or level not in DEPTH_LEVELS:
        raise ValueError(f"Invalid depth level {level!r}, expected one of {DEPTH_LEVELS}")
    return f"{ChannelKind.LIMIT_DEPTH.value}@{_check_symbol(symbol)}@{level}"


def aggre_depth_channel(symbol: str, delay: str) -> str:
    """Aggregated incremental depth pushed every ``delay``."""
    return f"{ChannelKind.AGGRE_DEPTH.value}@{_check_delay(delay)}@{_check_symbol(symbol)}"


def book_ticker_channel(symbol: str, delay: str) -> str:
    """Best bid/offer pushed every ``delay``."""
    return f"{ChannelKind.BOOK_TICKER.value}@{_check_delay(delay)}@{_check_symbol(symbol)}"


def book_ticker_batch_channel(symbol: str) -> str:
    """Batched best bid/offer."""
    return f"{ChannelKind.BOOK_TICKER_BATCH.value}@{_check_symbol(symbol)}"


def aggre_deals_channel(symbol: str, delay: str) -> str:
    """Aggregated trades pushed every ``delay``."""
    return f"{ChannelKind.AGGRE_DEALS.value}@{_check_delay(delay)}@{_check_symbol(symbol)}"


def spot_kline_channel(symbol: str, interval: str) -> str:
    """Candlesticks for ``interval`` (Min1, Hour4, Day1, ...)."""
    return f"{ChannelKind.SPOT_KLINE.value}@{_check_symbol(symbol)}@{_check_token('interval', interval)}"


def build_channel(kind: ChannelKind, **params) -> str:
    """Build the identifier for any kind from keyword parameters.

    Args:
        kind: Subscription kind
        **params: symbol, level, delay or interval as the kind requires

    Returns:
        Channel identifier

    Raises:
        ValueError: If a parameter is missing or invalid
    """
    try:
        if kind == ChannelKind.ACCOUNT_ORDERS:
            return account_orders_channel()
        if kind == ChannelKind.ACCOUNT_DEALS:
            return account_deals_channel()
        if kind == ChannelKind.ACCOUNT:
            return account_channel()
        if kind == ChannelKind.LIMIT_DEPTH:
            return limit_depth_channel(params["symbol"], params["level"])
        if kind == ChannelKind.AGGRE_DEPTH:
            return aggre_depth_channel(params["symbol"], params["delay"])
        if kind == ChannelKind.BOOK_TICKER:
            return book_ticker_channel(params["symbol"], params["delay"])
        if kind == ChannelKind.BOOK_TICKER_BATCH:
            return book_ticker_batch_channel(params["symbol"])
        if kind == ChannelKind.AGGRE_DEALS:
            return aggre_deals_channel(params["symbol"], params["delay"])
        if kind == ChannelKind.SPOT_KLINE:
            return spot_kline_channel(params["symbol"], params["interval"])
    except KeyError as e:
        raise ValueError(f"Missing parameter {e.args[0]!r} for {kind.name}") from e

    raise ValueError(f"Unsupported channel kind: {kind}")
