"""
Event bridge: routes stream events and connectivity changes into session state.

The bridge binds once to every client the connection registry creates, so a
client recreated after a locale or endpoint change gets exactly one set of
handlers. Connectivity is acted on only when it changes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from .events import StreamEvent
from .scheduling import ScheduledAction

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class EventBridge:
    """
    Example:
        ```python
        bridge = EventBridge(session)
        bridge.start()
        await bridge.connect()
        ...
        await bridge.stop()
        ```
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._started = False
        self._connected = False
        self._poll = ScheduledAction("connectivity-poll")
        self._tasks: set[asyncio.Task] = set()
        self.last_error: Exception | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Subscribe to the session's event stream. Safe to call repeatedly."""
        if self._started:
            return
        self._started = True
        self._session.connections.add_binder(self._bind)

    def _bind(self, client: Any) -> None:
        client.events.on_event(self.handle_event)
        client.events.on_error(self.handle_error)

    # ------------------------------------------------------------------
    # Stream events
    # ------------------------------------------------------------------

    def handle_event(self, event: StreamEvent) -> None:
        self._session.lifecycle.ingest(event)
        self._session.runs.ingest(event)

    def handle_error(self, error: Exception) -> None:
        logger.debug("Event stream error: %s", error)
        self.last_error = error

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the stream on the current client and start polling connectivity."""
        self.start()
        client = await self._session.client()
        await client.events.connect()
        self.sync_connected()
        self._schedule_poll()

    async def disconnect(self) -> None:
        self._poll.cancel()
        client = self._session.connections.current
        if client is not None:
            await client.events.disconnect()
        self.sync_connected()

    def sync_connected(self) -> None:
        client = self._session.connections.current
        self.on_connectivity(client is not None and client.events.is_connected())

    def on_connectivity(self, connected: bool) -> None:
        connected = bool(connected)
        if connected == self._connected:
            return
        self._connected = connected
        logger.info("Event stream %s", "connected" if connected else "disconnected")
        if connected:
            self._spawn(self.refresh_all())
        else:
            self._session.devices.clear()
            self._session.lifecycle.stop_tracking()

    async def refresh_all(self) -> None:
        """Refresh devices, app info and the access policy side by side."""
        session = self._session
        await asyncio.gather(
            session.devices.refresh(),
            session.about.refresh(),
            session.policy.refresh(),
            return_exceptions=True,
        )

    def _schedule_poll(self) -> None:
        interval_ms = self._session.settings.lifecycle.poll_interval_ms
        if interval_ms > 0:
            self._poll.schedule(interval_ms / 1000, self._on_poll)

    def _on_poll(self) -> None:
        self.sync_connected()
        self._schedule_poll()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        self._poll.cancel()
        await self.drain()


__all__ = ["EventBridge"]
