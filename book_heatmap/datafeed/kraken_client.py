"""
Kraken spot WebSocket (API v2) client.

Handles:
1. book + ticker channel subscriptions per symbol
2. Parsing book/ticker messages into UpdateBook / UpdateTicker actions
3. Forwarding actions to the dispatch queue (bounded, so the feed backs off when full)
4. A hard read timeout: silence on the socket is a fatal FeedTimeoutError

Reconnection is not handled here; the caller decides what to do with a FeedError.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import aiohttp
import orjson

from ..actions import Action, UpdateBook, UpdateTicker, Warn
from ..config import KRAKEN_WS_URL
from ..errors import FeedError, FeedTimeoutError
from ..types import Booked, Order, TickerState

logger = logging.getLogger(__name__)


def _orders(levels: list[dict[str, Any]]) -> list[Order]:
    return [Order(float(level['price']), float(level['qty'])) for level in levels]


def _utc_now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_book(entry: dict[str, Any]) -> Booked:
    """
    One element of a book message's data list.

    Expected format: {symbol, bids: [{price, qty}, ...], asks: [...], checksum, timestamp?}
    Snapshots may carry no timestamp; those are stamped with the receive time.
    """
    return Booked(
        symbol=entry['symbol'],
        timestamp=entry.get('timestamp') or _utc_now_rfc3339(),
        bids=_orders(entry.get('bids', [])),
        asks=_orders(entry.get('asks', [])),
    )


def parse_ticker(entry: dict[str, Any]) -> TickerState:
    """
    One element of a ticker message's data list.

    Expected format: {symbol, bid, bid_qty, ask, ask_qty, last, volume, vwap, low, high, change, change_pct}
    """
    def number(key: str) -> float:
        value = entry.get(key)
        return float(value) if value is not None else 0.0

    return TickerState(
        symbol=entry['symbol'],
        bid=number('bid'),
        bid_qty=number('bid_qty'),
        ask=number('ask'),
        ask_qty=number('ask_qty'),
        last=number('last'),
        volume=number('volume'),
        vwap=number('vwap'),
        low=number('low'),
        high=number('high'),
        change=number('change'),
        change_pct=number('change_pct'),
    )


def parse_message(raw: bytes | str) -> list[Action]:
    """
    Turn one WebSocket text frame into zero or more dispatch actions.

    HOT PATH - called for every message.

    Heartbeats, status frames and successful method acks produce nothing.
    Failed method responses produce a Warn. Malformed frames produce a Warn
    rather than raising, so one bad frame does not kill the connection.
    """
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        return [Warn(f"Undecodable feed message: {e}")]

    if not isinstance(message, dict):
        return [Warn(f"Unexpected feed message: {message!r}")]

    if 'method' in message:
        if message.get('success', True):
            return []
        return [Warn(f"Kraken {message['method']} failed: {message.get('error', 'unknown error')}")]

    channel = message.get('channel')
    try:
        if channel == 'book':
            return [UpdateBook(parse_book(entry)) for entry in message.get('data', [])]
        if channel == 'ticker':
            return [UpdateTicker(parse_ticker(entry)) for entry in message.get('data', [])]
    except (KeyError, TypeError, ValueError) as e:
        return [Warn(f"Malformed {channel} message: {e!r}")]

    # heartbeat, status, anything else
    return []


class KrakenFeed:
    """
    Async Kraken WebSocket client feeding the dispatch queue.

    Usage:
        feed = KrakenFeed(queue, timeout_seconds=200.0, depth=100)
        await feed.connect()
        await feed.subscribe("BTC/USD")
        await feed.listen()  # Runs until the socket closes or times out
    """

    def __init__(
        self,
        actions: asyncio.Queue[Action],
        timeout_seconds: float = 200.0,
        depth: int = 100,
        url: str = KRAKEN_WS_URL,
    ) -> None:
        self.actions = actions
        self.timeout_seconds = timeout_seconds
        self.depth = depth
        self.url = url

        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._request_id: int = 0
        self._messages: int = 0

    async def connect(self) -> None:
        """Open the WebSocket connection."""
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=None)
        except aiohttp.ClientError as e:
            await self._session.close()
            self._session = None
            raise FeedError(f"Could not connect to {self.url}: {e}") from e
        logger.info("Connected to %s", self.url)

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _subscription(self, method: str, channel: str, symbol: str) -> dict[str, Any]:
        params: dict[str, Any] = {'channel': channel, 'symbol': [symbol]}
        if channel == 'book':
            params['depth'] = self.depth
            if method == 'subscribe':
                params['snapshot'] = True
        return {'method': method, 'params': params, 'req_id': self._next_request_id()}

    async def _send(self, payload: dict[str, Any]) -> None:
        if self._ws is None or self._ws.closed:
            raise FeedError("Feed is not connected")
        try:
            await self._ws.send_bytes(orjson.dumps(payload))
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise FeedError(f"Could not send {payload['method']}: {e}") from e

    async def subscribe(self, symbol: str) -> None:
        """Subscribe to book and ticker channels for ``symbol`` (e.g. "BTC/USD")."""
        await self._send(self._subscription('subscribe', 'book', symbol))
        await self._send(self._subscription('subscribe', 'ticker', symbol))
        logger.info("Subscribed to %s (depth %d)", symbol, self.depth)

    async def unsubscribe(self, symbol: str) -> None:
        await self._send(self._subscription('unsubscribe', 'book', symbol))
        await self._send(self._subscription('unsubscribe', 'ticker', symbol))
        logger.info("Unsubscribed from %s", symbol)

    async def listen(self) -> None:
        """
        Main read loop. Forwards parsed actions to the dispatch queue.

        Raises:
            FeedTimeoutError: nothing received for timeout_seconds
            FeedError: socket closed or errored
        """
        if self._ws is None:
            raise FeedError("Feed is not connected")

        while True:
            try:
                msg = await self._ws.receive(timeout=self.timeout_seconds)
            except asyncio.TimeoutError as e:
                raise FeedTimeoutError(
                    f"No message from {self.url} in {self.timeout_seconds}s"
                ) from e

            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                self._messages += 1
                for action in parse_message(msg.data):
                    await self.actions.put(action)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise FeedError(f"WebSocket error: {self._ws.exception()!r}")
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                raise FeedError(f"WebSocket closed after {self._messages} messages")

    async def close(self) -> None:
        """Close the socket and session. Safe to call more than once."""
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._ws = None
        self._session = None
