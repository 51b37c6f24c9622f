"""
Live event stream over WebSocket.

The stream delivers JSON frames `{"name": ..., "data": ...}` in order.
Handlers run on the event loop in delivery order. Reconnection is left to
the caller: when the socket drops, `is_connected()` turns False and error
handlers are told why.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

import aiohttp

from .config import ConnectionConfig
from .config.base import SUPPORTED_LOCALES
from .events import StreamEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[StreamEvent], Any]
ErrorHandler = Callable[[Exception], Any]


@runtime_checkable
class EventStream(Protocol):
    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    def is_connected(self) -> bool:
        ...

    def on_event(self, handler: EventHandler) -> Callable[[], None]:
        ...

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        ...

    def set_locale(self, locale: str) -> None:
        ...


class StreamError(Exception):
    """Raised into error handlers when the socket reports a failure."""


class EventStreamClient:
    def __init__(
        self,
        config: ConnectionConfig,
        *,
        session_provider: Callable[[], Awaitable[aiohttp.ClientSession]],
        headers: Callable[[], dict[str, str]] | None = None,
    ) -> None:
        self._config = config
        self._session_provider = session_provider
        self._headers = headers or (lambda: {})
        self._locale = config.locale

        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None
        self._event_handlers: list[EventHandler] = []
        self._error_handlers: list[ErrorHandler] = []

    @property
    def locale(self) -> str:
        return self._locale

    def set_locale(self, locale: str) -> None:
        """Locale used for server-side message texts on the next connect."""
        if locale not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported locale: {locale}")
        self._locale = locale

    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def on_event(self, handler: EventHandler) -> Callable[[], None]:
        self._event_handlers.append(handler)
        return lambda: self._remove(self._event_handlers, handler)

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        self._error_handlers.append(handler)
        return lambda: self._remove(self._error_handlers, handler)

    def clear_handlers(self) -> None:
        self._event_handlers.clear()
        self._error_handlers.clear()

    @staticmethod
    def _remove(handlers: list, handler: Any) -> None:
        if handler in handlers:
            handlers.remove(handler)

    async def connect(self) -> None:
        """Open the socket and start reading. No-op when already connected."""
        if self.is_connected():
            return
        session = await self._session_provider()
        try:
            self._ws = await session.ws_connect(
                self._config.ws_url,
                params={"locale": self._locale},
                headers=self._headers(),
                heartbeat=self._config.heartbeat,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._ws = None
            logger.warning("Event stream connect to %s failed: %s", self._config.ws_url, e)
            self._emit_error(e)
            return
        self._reader = asyncio.get_running_loop().create_task(self._read(self._ws))

    async def disconnect(self) -> None:
        reader, self._reader = self._reader, None
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._dispatch_text(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                self._emit_error(ws.exception() or StreamError("WebSocket error"))
                break
        if self._ws is ws:
            self._ws = None

    def _dispatch_text(self, text: str) -> None:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            self._emit_error(StreamError(f"Malformed event frame: {e.msg}"))
            return
        if not isinstance(payload, dict):
            self._emit_error(StreamError("Event frame is not an object"))
            return
        self.dispatch(StreamEvent.from_dict(payload))

    def dispatch(self, event: StreamEvent) -> None:
        """Deliver `event` to every handler, in registration order."""
        for handler in list(self._event_handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event.name)

    def _emit_error(self, error: Exception) -> None:
        for handler in list(self._error_handlers):
            try:
                handler(error)
            except Exception:
                logger.exception("Error handler failed")


__all__ = ["EventStream", "EventStreamClient", "StreamError", "EventHandler", "ErrorHandler"]
