"""Decoding of MEXC spot push frames.

Data frames arrive as binary protobuf ``PushDataV3ApiWrapper`` messages;
acknowledgements, pongs and errors arrive as JSON text. The codec tells the
two apart by sniffing the first character and turns data frames into a
``PushEnvelope`` carrying the channel and its payload.
"""

import importlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Union

from google.protobuf import json_format
from google.protobuf.message import DecodeError

from mexc_stream.network.channels import ChannelKind

logger = logging.getLogger(__name__)

DEFAULT_WRAPPER_PATH = "PushDataV3ApiWrapper_pb2.PushDataV3ApiWrapper"

# Wrapper field holding each kind's body, as exposed by MessageToDict
PAYLOAD_FIELDS: Dict[ChannelKind, str] = {
    ChannelKind.SPOT_KLINE: "publicSpotKline",
    ChannelKind.LIMIT_DEPTH: "publicLimitDepths",
    ChannelKind.AGGRE_DEALS: "publicAggreDeals",
    ChannelKind.AGGRE_DEPTH: "publicAggreDepths",
    ChannelKind.BOOK_TICKER: "publicBookTicker",
    ChannelKind.BOOK_TICKER_BATCH: "publicBookTickerBatch",
    ChannelKind.ACCOUNT: "privateAccount",
    ChannelKind.ACCOUNT_DEALS: "privateDeals",
    ChannelKind.ACCOUNT_ORDERS: "privateOrders",
}

Frame = Union[bytes, bytearray, memoryview, str]


class PushDecodeError(Exception):
    """Raised when a binary frame cannot be decoded."""


@dataclass
class PushEnvelope:
    """A decoded data frame."""

    channel: str
    payload: Dict[str, Any] = field(default_factory=dict)
    kind: Optional[ChannelKind] = None
    symbol: Optional[str] = None
    send_time: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "channel": self.channel,
            "kind": self.kind.name if self.kind else None,
            "symbol": self.symbol,
            "send_time": self.send_time,
            "payload": self.payload,
        }


class PushCodec(Protocol):
    """Anything that turns a raw frame into an envelope."""

    def decode(self, raw: Frame) -> Optional[PushEnvelope]:
        """Return the envelope, or None for non-data frames."""
        ...


def is_probably_json(raw: Frame) -> bool:
    """Check whether a frame looks like a textual control message.

    Only the first character is inspected, so a binary frame that happens to
    start with ``{`` or ``[`` is classified as text.
    """
    if isinstance(raw, str):
        return raw.startswith(("{", "["))
    head = bytes(raw[:1])
    return head in (b"{", b"[")


def _load_class(path: str) -> type:
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ValueError(f"Expected 'module.Class', got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class ProtobufPushCodec:
    """Decode push frames with the compiled MEXC protobuf wrapper.

    The wrapper class comes from the venue's published ``.proto`` files
    compiled with ``protoc``. It can be passed directly or imported from a
    dotted path; the import happens at construction so a missing module
    fails before any connection opens.
    """

    def __init__(
        self,
        wrapper_cls: Optional[type] = None,
        wrapper_path: str = DEFAULT_WRAPPER_PATH,
    ):
        """Initialize codec.

        Args:
            wrapper_cls: Compiled wrapper message class
            wrapper_path: Dotted path imported when no class is given

        Raises:
            ImportError: If the module in ``wrapper_path`` cannot be imported
            AttributeError: If the module has no such class
            ValueError: If ``wrapper_path`` is not a dotted path
        """
        self.wrapper_path = wrapper_path
        if wrapper_cls is None:
            wrapper_cls = _load_class(wrapper_path)
            logger.debug(f"Loaded push wrapper class from {wrapper_path}")
        self._wrapper_cls = wrapper_cls

    @property
    def wrapper_cls(self) -> type:
        """Compiled ``PushDataV3ApiWrapper`` message class."""
        return self._wrapper_cls

    def decode(self, raw: Frame) -> Optional[PushEnvelope]:
        """Decode a frame.

        Args:
            raw: Frame as received from the transport

        Returns:
            Envelope for data frames, None for textual control frames

        Raises:
            PushDecodeError: If a binary frame is not a valid wrapper message
        """
        if isinstance(raw, str) or is_probably_json(raw):
            return None

        message = self.wrapper_cls()
        try:
            message.ParseFromString(bytes(raw))
        except DecodeError as e:
            raise PushDecodeError(f"Malformed push frame ({len(raw)} bytes): {e}") from e

        data = json_format.MessageToDict(message)
        channel = data.get("channel")
        if not channel:
            raise PushDecodeError("Push frame has no channel")

        kind = ChannelKind.from_channel(channel)
        payload_field = PAYLOAD_FIELDS.get(kind) if kind else None
        if payload_field not in data:
            payload_field = self._body_field(message)

        send_time = data.get("sendTime")
        return PushEnvelope(
            channel=channel,
            payload=data.get(payload_field, {}) if payload_field else {},
            kind=kind,
            symbol=data.get("symbol"),
            send_time=int(send_time) if send_time is not None else None,
        )

    @staticmethod
    def _body_field(message) -> Optional[str]:
        """JSON name of whichever body the wrapper carries."""
        try:
            name = message.WhichOneof("body")
        except ValueError:
            return None
        if name is None:
            return None
        return message.DESCRIPTOR.fields_by_name[name].json_name
