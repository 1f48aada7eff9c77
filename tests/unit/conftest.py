"""Shared fakes for stream tests."""

import asyncio

import pytest

from mexc_stream.network.codec import PushDecodeError, PushEnvelope, is_probably_json
from mexc_stream.network.channels import ChannelKind


class _Closed:
    def __init__(self, error=None):
        self.error = error


class FakeTransport:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.sent = []
        self.closed = False
        self.fail_sends = False
        self.close_code = None
        self.close_reason = None
        self._inbox = asyncio.Queue()

    async def send(self, frame):
        if self.fail_sends or self.closed:
            raise ConnectionError("send on broken transport")
        self.sent.append(frame)

    def push(self, raw):
        self._inbox.put_nowait(raw)

    def drop(self, error=None):
        """Simulate the venue closing the stream."""
        self.close_code = 1006
        self._inbox.put_nowait(_Closed(error))

    async def close(self):
        self.closed = True
        self.close_code = 1000
        self._inbox.put_nowait(_Closed())

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if isinstance(item, _Closed):
            self.closed = True
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item

    @property
    def subscriptions(self):
        return [f for f in self.sent if '"SUBSCRIPTION"' in f]

    @property
    def pings(self):
        return [f for f in self.sent if f == '{"method":"PING"}']


class FakeConnector:
    """Connect factory handing out FakeTransports.

    ``failures`` makes that many leading calls raise.
    """

    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []
        self.transports = []

    async def __call__(self, url):
        self.calls.append(url)
        if self.failures > 0:
            self.failures -= 1
            raise OSError("connection refused")
        transport = FakeTransport()
        self.transports.append(transport)
        return transport

    @property
    def latest(self):
        return self.transports[-1]


class StubCodec:
    """Decodes ``b"<channel>|<body>"`` frames."""

    def decode(self, raw):
        if isinstance(raw, str) or is_probably_json(raw):
            return None
        if raw == b"garbage":
            raise PushDecodeError("bad frame")
        channel, _, body = raw.decode().partition("|")
        return PushEnvelope(
            channel=channel,
            payload={"body": body},
            kind=ChannelKind.from_channel(channel),
        )


async def _wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def connector():
    """Connect factory that always succeeds."""
    return FakeConnector()


@pytest.fixture
def make_connector():
    """Build connect factories with leading failures."""
    return FakeConnector


@pytest.fixture
def codec():
    """Stub frame codec."""
    return StubCodec()


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop."""
    return _wait_until
