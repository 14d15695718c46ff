from __future__ import annotations

import asyncio

import aiohttp
import orjson
import pytest

from book_heatmap.actions import UpdateBook, UpdateTicker, Warn
from book_heatmap.datafeed.history import parse_timestamp
from book_heatmap.datafeed.kraken_client import KrakenFeed, parse_message
from book_heatmap.errors import FeedError, FeedTimeoutError
from book_heatmap.types import Order

BOOK_SNAPSHOT = {
    "channel": "book",
    "type": "snapshot",
    "data": [
        {
            "symbol": "BTC/USD",
            "bids": [{"price": 45283.5, "qty": 0.1}, {"price": 45283.4, "qty": 1.2}],
            "asks": [{"price": 45285.2, "qty": 0.00100000}],
            "checksum": 3310070434,
            "timestamp": "2023-10-06T17:35:55.440295Z",
        }
    ],
}

TICKER = {
    "channel": "ticker",
    "type": "update",
    "data": [
        {
            "symbol": "BTC/USD",
            "bid": 63000.1,
            "bid_qty": 0.5,
            "ask": 63000.2,
            "ask_qty": 1.25,
            "last": 63000.2,
            "volume": 1234.5,
            "vwap": 62500.0,
            "low": 61000.0,
            "high": 64000.0,
            "change": 1200.0,
            "change_pct": 1.94,
        }
    ],
}


def test_parse_book_snapshot():
    actions = parse_message(orjson.dumps(BOOK_SNAPSHOT))

    assert len(actions) == 1
    assert isinstance(actions[0], UpdateBook)
    booked = actions[0].booked
    assert booked.symbol == "BTC/USD"
    assert booked.timestamp == "2023-10-06T17:35:55.440295Z"
    assert booked.bids == [Order(45283.5, 0.1), Order(45283.4, 1.2)]
    assert booked.asks == [Order(45285.2, 0.001)]


def test_parse_book_without_timestamp_is_stamped():
    message = {"channel": "book", "type": "update", "data": [{"symbol": "BTC/USD", "bids": [], "asks": []}]}
    (action,) = parse_message(orjson.dumps(message))

    assert parse_timestamp(action.booked.timestamp) > 1_600_000_000


def test_parse_ticker():
    (action,) = parse_message(orjson.dumps(TICKER).decode())

    assert isinstance(action, UpdateTicker)
    assert action.ticker.symbol == "BTC/USD"
    assert action.ticker.bid == 63000.1
    assert action.ticker.change_pct == 1.94


@pytest.mark.parametrize(
    "message",
    [
        {"channel": "heartbeat"},
        {"channel": "status", "type": "update", "data": [{"system": "online"}]},
        {"method": "subscribe", "result": {"channel": "book"}, "success": True, "req_id": 1},
    ],
)
def test_control_messages_are_ignored(message):
    assert parse_message(orjson.dumps(message)) == []


def test_failed_method_becomes_warning():
    message = {"method": "subscribe", "error": "Currency pair not supported", "success": False}
    (action,) = parse_message(orjson.dumps(message))

    assert isinstance(action, Warn)
    assert "Currency pair not supported" in action.message


@pytest.mark.parametrize(
    "raw",
    [
        b"{not json",
        b"[1, 2, 3]",
        orjson.dumps({"channel": "book", "data": [{"bids": []}]}),
        orjson.dumps({"channel": "book", "data": [{"symbol": "X", "bids": [{"price": "abc", "qty": 1}]}]}),
    ],
)
def test_malformed_messages_become_warnings(raw):
    (action,) = parse_message(raw)
    assert isinstance(action, Warn)


def test_subscription_payloads():
    feed = KrakenFeed(asyncio.Queue(), depth=25)

    book = feed._subscription("subscribe", "book", "ETH/USD")
    ticker = feed._subscription("subscribe", "ticker", "ETH/USD")
    unsubscribe = feed._subscription("unsubscribe", "book", "ETH/USD")

    assert book == {
        "method": "subscribe",
        "params": {"channel": "book", "symbol": ["ETH/USD"], "depth": 25, "snapshot": True},
        "req_id": 1,
    }
    assert ticker["params"] == {"channel": "ticker", "symbol": ["ETH/USD"]}
    assert ticker["req_id"] == 2
    assert "snapshot" not in unsubscribe["params"]


# =============================================================================
# listen() against a scripted socket
# =============================================================================


class ScriptedSocket:
    """Stands in for aiohttp's ClientWebSocketResponse."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.closed = False
        self.sent: list[bytes] = []

    async def receive(self, timeout=None):
        if not self.messages:
            raise asyncio.TimeoutError()
        return self.messages.pop(0)

    async def send_bytes(self, data):
        self.sent.append(data)

    def exception(self):
        return RuntimeError("boom")

    async def close(self):
        self.closed = True


def _text(payload) -> aiohttp.WSMessage:
    return aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, orjson.dumps(payload).decode(), None)


def test_listen_forwards_actions_then_times_out():
    async def scenario():
        queue: asyncio.Queue = asyncio.Queue()
        feed = KrakenFeed(queue, timeout_seconds=0.01)
        feed._ws = ScriptedSocket([_text(BOOK_SNAPSHOT), _text({"channel": "heartbeat"}), _text(TICKER)])

        with pytest.raises(FeedTimeoutError):
            await feed.listen()

        return [queue.get_nowait() for _ in range(queue.qsize())]

    actions = asyncio.run(scenario())
    assert [type(a) for a in actions] == [UpdateBook, UpdateTicker]


@pytest.mark.parametrize("msg_type", [aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR])
def test_listen_raises_on_closed_socket(msg_type):
    async def scenario():
        feed = KrakenFeed(asyncio.Queue())
        feed._ws = ScriptedSocket([aiohttp.WSMessage(msg_type, None, None)])
        await feed.listen()

    with pytest.raises(FeedError):
        asyncio.run(scenario())


def test_subscribe_sends_book_and_ticker():
    async def scenario():
        feed = KrakenFeed(asyncio.Queue(), depth=10)
        socket = ScriptedSocket([])
        feed._ws = socket
        await feed.subscribe("BTC/USD")
        return [orjson.loads(raw) for raw in socket.sent]

    sent = asyncio.run(scenario())
    assert [m["params"]["channel"] for m in sent] == ["book", "ticker"]
    assert sent[0]["params"]["depth"] == 10


def test_send_without_connection_is_a_feed_error():
    async def scenario():
        await KrakenFeed(asyncio.Queue()).subscribe("BTC/USD")

    with pytest.raises(FeedError):
        asyncio.run(scenario())
