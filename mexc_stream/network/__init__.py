"""Network module for MEXC spot push streams."""

from mexc_stream.network.backoff import ReconnectPolicy
from mexc_stream.network.channels import ChannelKind, build_channel
from mexc_stream.network.codec import (
    ProtobufPushCodec,
    PushCodec,
    PushDecodeError,
    PushEnvelope,
    is_probably_json,
)
from mexc_stream.network.connection import ConnectionState, ConnectionStats, StreamConnection
from mexc_stream.network.pool import SpotStreamPool

__all__ = [
    "ReconnectPolicy",
    "ChannelKind",
    "build_channel",
    "ProtobufPushCodec",
    "PushCodec",
    "PushDecodeError",
    "PushEnvelope",
    "is_probably_json",
    "ConnectionState",
    "ConnectionStats",
    "StreamConnection",
    "SpotStreamPool",
]
