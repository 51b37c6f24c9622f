"""
Session caches refreshed from the service on demand.

Each store keeps its last good value, a `loading` flag and the last error
text. A failed refresh clears the cached value and records the error; it
never raises, so reconnect-triggered refreshes can run side by side.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .errors import BestEffortError, ErrorContext
from .events import correlation_ids
from .logging import StructuredLogger
from .types import AccessPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteStore(Generic[T]):
    """Base for a value fetched from the service."""

    name = "store"

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        logger: StructuredLogger | None = None,
    ) -> None:
        self._fetch = fetch
        self._logger = logger
        self.value: T | None = None
        self.loading: bool = False
        self.error: str = ""
        self.fetched_at: float = 0.0

    def _convert(self, raw: Any) -> T | None:
        return raw

    def _empty(self) -> T | None:
        return None

    async def refresh(self) -> None:
        self.loading = True
        self.error = ""
        try:
            self.value = self._convert(await self._fetch())
            self.fetched_at = time.time()
        except Exception as e:
            self._report_failure(e)
            self.error = str(e) or type(e).__name__
            self.value = self._empty()
        finally:
            self.loading = False

    def clear(self) -> None:
        self.value = self._empty()

    def _report_failure(self, cause: Exception) -> None:
        error = BestEffortError(
            f"Refreshing {self.name} failed",
            context=ErrorContext(operation=f"{self.name}.refresh"),
            cause=cause,
        )
        if self._logger is not None:
            self._logger.log_error(error, level=logging.WARNING)
        else:
            logger.debug("%s: %s", error, cause)


class PolicyStore(RemoteStore[dict]):
    """Access Policy Provider: the host license and the policy derived from it."""

    name = "license"

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        logger: StructuredLogger | None = None,
    ) -> None:
        super().__init__(fetch, logger)
        self._access: AccessPolicy | None = None

    def _convert(self, raw: Any) -> dict | None:
        license_doc = raw if isinstance(raw, dict) else None
        self._access = AccessPolicy.from_license(license_doc)
        return license_doc

    def _empty(self) -> dict | None:
        self._access = None
        return None

    @property
    def license(self) -> dict | None:
        return self.value

    @property
    def access(self) -> AccessPolicy | None:
        return self._access

    @property
    def allowed_scopes(self) -> frozenset[str]:
        return self._access.allowed_scopes if self._access else frozenset()

    @property
    def host_tier(self) -> str:
        tier = (self.value or {}).get("host_tier") or (self.value or {}).get("hostTier")
        return str(tier) if tier else "community"


class DeviceStore(RemoteStore[list]):
    """Adapters (NFC readers) known to the service."""

    name = "adapters"

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        logger: StructuredLogger | None = None,
    ) -> None:
        super().__init__(fetch, logger)
        self.value = []
        self.selected_adapter_id: str = ""

    def _convert(self, raw: Any) -> list:
        adapters = list(raw or [])
        if self.selected_adapter_id and not any(
            _adapter_id(a) == self.selected_adapter_id for a in adapters
        ):
            self.selected_adapter_id = ""
        return adapters

    def _empty(self) -> list:
        return []

    @property
    def adapters(self) -> list:
        return self.value or []

    @property
    def selected_adapter(self) -> dict | None:
        for adapter in self.adapters:
            if _adapter_id(adapter) == self.selected_adapter_id:
                return adapter
        return None

    def select(self, adapter_id: str) -> None:
        self.selected_adapter_id = adapter_id or ""


class AppInfoStore(RemoteStore[dict]):
    """Service name, version and build info."""

    name = "about"

    @property
    def info(self) -> dict | None:
        return self.value


def _adapter_id(adapter: Any) -> str:
    return correlation_ids(adapter)[0]


__all__ = ["RemoteStore", "PolicyStore", "DeviceStore", "AppInfoStore"]
