"""
Connection identity and client reuse.

A client is reused only while the connection identity (endpoint, locale,
app key) is unchanged. On a mismatch the old client is torn down first:
its stream is disconnected and its handlers dropped, then a new client is
created and every binder runs exactly once against it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .client import NfcClient
from .config import ConnectionConfig
from .logging import redact_app_key

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ConnectionConfig], Any]
Binder = Callable[[Any], None]


@dataclass(frozen=True)
class ConnectionKey:
    base_url: str
    locale: str
    app_key: str | None

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> ConnectionKey:
        return cls(base_url=config.base_url, locale=config.locale, app_key=config.app_key)

    def __repr__(self) -> str:
        return (
            f"ConnectionKey(base_url={self.base_url!r}, locale={self.locale!r}, "
            f"app_key={redact_app_key(self.app_key)!r})"
        )


class ConnectionRegistry:
    """Holds the single live client for a session."""

    def __init__(self, factory: ClientFactory = NfcClient) -> None:
        self._factory = factory
        self._client: Any | None = None
        self._key: ConnectionKey | None = None
        self._binders: list[Binder] = []
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Any | None:
        """The live client, or None before the first `get`."""
        return self._client

    @property
    def key(self) -> ConnectionKey | None:
        return self._key

    def add_binder(self, binder: Binder) -> None:
        """Run `binder(client)` once for the live client and once for every future one."""
        if binder in self._binders:
            return
        self._binders.append(binder)
        if self._client is not None:
            binder(self._client)

    async def get(self, config: ConnectionConfig) -> Any:
        key = ConnectionKey.from_config(config)
        async with self._lock:
            if self._client is not None and self._key == key:
                return self._client
            if self._client is not None:
                logger.info("Connection identity changed (%r -> %r), recreating client", self._key, key)
                await self._teardown()
            self._client = self._factory(config)
            self._key = key
            for binder in self._binders:
                binder(self._client)
            return self._client

    async def invalidate(self) -> None:
        """Tear down the live client; the next `get` creates a fresh one."""
        async with self._lock:
            await self._teardown()

    async def _teardown(self) -> None:
        client, self._client, self._key = self._client, None, None
        if client is not None:
            await client.close()


__all__ = ["ConnectionKey", "ConnectionRegistry", "ClientFactory"]
