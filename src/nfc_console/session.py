"""
Session context: owns every session-wide instance.

One Session holds the rate limiter, the stores, the run history, the
lifecycle tracker and the event bridge, plus the connection registry that
hands out the live client. Nothing here is a module-level singleton; two
sessions never share state.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from .bridge import EventBridge
from .client import NfcClient
from .config import Settings
from .connection import ClientFactory, ConnectionRegistry
from .lifecycle import JobLifecycle
from .logging import StructuredLogger, generate_session_id
from .rate_limit import RateLimiter, wall_clock_ms
from .runs import RunHistory
from .stores import AppInfoStore, DeviceStore, PolicyStore
from .submission import submit as _submit
from .types import AccessPolicy, JobDraft, SubmitResult

_UNSET: Any = object()


class RegistryJobQueue:
    """JobQueue that always talks to the registry's current client."""

    def __init__(self, session: Session) -> None:
        self._session = session

    async def _jobs(self):
        return (await self._session.client()).jobs

    async def add(self, adapter_id: str, job: Mapping[str, Any]) -> dict[str, Any]:
        return await (await self._jobs()).add(adapter_id, job)

    async def get(self, adapter_id: str, job_id: str) -> dict[str, Any]:
        return await (await self._jobs()).get(adapter_id, job_id)

    async def delete(self, adapter_id: str, job_id: str) -> None:
        await (await self._jobs()).delete(adapter_id, job_id)

    async def delete_all(self, adapter_id: str) -> None:
        await (await self._jobs()).delete_all(adapter_id)


class Session:
    """
    A console session against one nfcd service.

    Example:
        ```python
        session = Session(Settings.from_env())
        await session.bridge.connect()

        result = await session.submit("adapter-1", "Read tag", draft)
        if isinstance(result, Submitted):
            session.lifecycle.open("adapter-1", result.job_id, "Read tag")

        await session.aclose()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client_factory: ClientFactory = NfcClient,
        clock: Callable[[], int] = wall_clock_ms,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.session_id = generate_session_id()
        self.logger = logger or StructuredLogger(
            "nfc_console",
            level=self.settings.logging.level,
            json_output=self.settings.logging.format == "json",
        )
        self.logger.set_context(session_id=self.session_id)

        self.connections = ConnectionRegistry(client_factory)
        self.jobs = RegistryJobQueue(self)
        self.rate_limiter = RateLimiter(clock)

        self.policy = PolicyStore(self._fetch_license, self.logger)
        self.devices = DeviceStore(self._fetch_adapters, self.logger)
        self.about = AppInfoStore(self._fetch_about, self.logger)
        self.runs = RunHistory()
        self.lifecycle = JobLifecycle(
            self.jobs,
            scopes=lambda: self.policy.allowed_scopes,
            quiet_timeout_ms=self.settings.lifecycle.quiet_timeout_ms,
            logger=self.logger,
            log_transitions=self.settings.logging.log_transitions,
        )
        self.bridge = EventBridge(self)

    async def client(self) -> Any:
        """The live client for the current connection settings."""
        return await self.connections.get(self.settings.connection)

    async def _fetch_license(self) -> Any:
        return await (await self.client()).licenses.get_access()

    async def _fetch_adapters(self) -> Any:
        return await (await self.client()).adapters.get_all()

    async def _fetch_about(self) -> Any:
        return await (await self.client()).about.get()

    async def submit(
        self,
        adapter_id: str,
        job_name: str,
        draft: JobDraft | Mapping[str, Any],
        policy: AccessPolicy | None = _UNSET,
        *,
        expire_after: int | None = None,
        on_warning: Callable[[str], Any] | None = None,
    ) -> SubmitResult:
        """Submit a job. `policy` defaults to the policy from the host license."""
        if policy is _UNSET:
            policy = self.policy.access
        return await _submit(
            self,
            adapter_id,
            job_name,
            draft,
            policy,
            expire_after=expire_after,
            on_warning=on_warning,
        )

    async def aclose(self) -> None:
        """Stop the bridge, stop tracking and close the live client."""
        await self.bridge.stop()
        self.lifecycle.stop_tracking()
        await self.lifecycle.aclose()
        await self.connections.invalidate()

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


__all__ = ["Session", "RegistryJobQueue"]
