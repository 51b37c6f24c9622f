"""
HTTP client for the nfcd job queue service.

One NfcClient is bound to one connection identity (base URL, locale, app key).
It exposes the REST resources the console core needs plus the live event
stream, and owns the aiohttp session they share.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Protocol, runtime_checkable

import aiohttp

from .config import ConnectionConfig
from .errors import ErrorContext, TransportError, error_from_status
from .stream import EventStreamClient

logger = logging.getLogger(__name__)


@runtime_checkable
class JobQueue(Protocol):
    """Remote job queue operations. Every call is a network request that may fail."""

    async def add(self, adapter_id: str, job: Mapping[str, Any]) -> dict[str, Any]:
        ...

    async def get(self, adapter_id: str, job_id: str) -> dict[str, Any]:
        ...

    async def delete(self, adapter_id: str, job_id: str) -> None:
        ...

    async def delete_all(self, adapter_id: str) -> None:
        ...


class _Resource:
    def __init__(self, client: NfcClient) -> None:
        self._client = client


class JobsApi(_Resource):
    async def add(self, adapter_id: str, job: Mapping[str, Any]) -> dict[str, Any]:
        return await self._client.request(
            "POST", f"/adapters/{adapter_id}/jobs", json=dict(job), operation="jobs.add"
        )

    async def get(self, adapter_id: str, job_id: str) -> dict[str, Any]:
        return await self._client.request(
            "GET", f"/adapters/{adapter_id}/jobs/{job_id}", operation="jobs.get"
        )

    async def delete(self, adapter_id: str, job_id: str) -> None:
        await self._client.request(
            "DELETE", f"/adapters/{adapter_id}/jobs/{job_id}", operation="jobs.delete"
        )

    async def delete_all(self, adapter_id: str) -> None:
        await self._client.request("DELETE", f"/adapters/{adapter_id}/jobs", operation="jobs.delete_all")


class AdaptersApi(_Resource):
    async def get_all(self) -> list[dict[str, Any]]:
        result = await self._client.request("GET", "/adapters", operation="adapters.get_all")
        return list(result or [])


class AboutApi(_Resource):
    async def get(self) -> dict[str, Any]:
        return await self._client.request("GET", "/about", operation="about.get")


class LicensesApi(_Resource):
    async def get_access(self) -> dict[str, Any]:
        return await self._client.request("GET", "/licenses/access", operation="licenses.get_access")


class NfcClient:
    """
    Client for one nfcd endpoint.

    Example:
        ```python
        client = NfcClient(ConnectionConfig(base_url="http://127.0.0.1:3011"))
        created = await client.jobs.add("adapter-1", job)
        await client.close()
        ```
    """

    def __init__(
        self,
        config: ConnectionConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None

        self.jobs = JobsApi(self)
        self.adapters = AdaptersApi(self)
        self.about = AboutApi(self)
        self.licenses = LicensesApi(self)
        self.events = EventStreamClient(config, session_provider=self._get_session, headers=self.headers)

    def headers(self) -> dict[str, str]:
        h = {
            "Accept": "application/json",
            "Accept-Language": self.config.locale,
        }
        if self.config.app_key:
            h["X-App-Key"] = self.config.app_key
        return h

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        operation: str | None = None,
    ) -> Any:
        """Send a request and decode the JSON body (None for empty bodies)."""
        url = f"{self.config.base_url}{path}"
        ctx = ErrorContext(operation=operation, url=url)
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                json=json,
                headers=self.headers(),
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            ) as response:
                body = await response.text()
                if response.status >= 400:
                    raise error_from_status(response.status, body.strip() or response.reason or "", context=ctx)
                return _decode(body, ctx)
        except TransportError:
            raise
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} {path} timed out", context=ctx, cause=e) from e
        except aiohttp.ClientError as e:
            raise TransportError(str(e) or type(e).__name__, context=ctx, cause=e) from e

    async def close(self) -> None:
        """Disconnect the stream, drop its handlers and close the HTTP session."""
        await self.events.disconnect()
        self.events.clear_handlers()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def _decode(body: str, ctx: ErrorContext) -> Any:
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise TransportError(f"Invalid JSON from service: {e.msg}", context=ctx, cause=e) from e


__all__ = [
    "JobQueue",
    "JobsApi",
    "AdaptersApi",
    "AboutApi",
    "LicensesApi",
    "NfcClient",
]
