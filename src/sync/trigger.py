"""
Fire-and-forget dispatch of per-user syncs.

A trigger starts work and returns at once; nothing waits on it. Outcomes are
only visible in the logs and in the momentum_sync_runs_total metric.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Set

import httpx

from momentum.errors import NoCredential, NoTasks
from momentum.metrics import SYNC_RUNS_TOTAL
from sync.executor import SyncExecutor

logger = logging.getLogger(__name__)


class SyncTrigger(ABC):
    def __init__(self):
        # strong references, otherwise the loop may drop unfinished tasks
        self._running: Set[asyncio.Task] = set()

    @abstractmethod
    def fire(self, uid: str) -> None:
        """Start a sync for uid without waiting for it."""
        raise NotImplementedError

    def _detach(self, coro, name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    @property
    def in_flight(self) -> int:
        return len(self._running)

    async def drain(self) -> None:
        """Wait for everything fired so far. Used at shutdown and in tests, never by the fan-out."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()


class BackgroundSyncTrigger(SyncTrigger):
    """Runs SyncExecutor.sync as a detached task on the current event loop."""

    def __init__(self, executor: SyncExecutor):
        super().__init__()
        self.executor = executor

    def fire(self, uid: str) -> None:
        self._detach(self._run(uid), name=f"sync:{uid}")

    async def _run(self, uid: str) -> None:
        try:
            result = await self.executor.sync(uid)
        except NoCredential:
            logger.info(f"Skipping {uid}: Google Calendar not connected")
            SYNC_RUNS_TOTAL.labels(outcome="no_credential").inc()
        except NoTasks:
            logger.info(f"Skipping {uid}: no tasks to sync")
            SYNC_RUNS_TOTAL.labels(outcome="no_tasks").inc()
        except Exception:
            logger.exception(f"Sync failed for {uid}")
            SYNC_RUNS_TOTAL.labels(outcome="failed").inc()
        else:
            SYNC_RUNS_TOTAL.labels(outcome="partial" if result.errors else "ok").inc()


class HttpSyncTrigger(SyncTrigger):
    """POSTs to /api/sync-calendar so each user's sync runs in its own request."""

    def __init__(
        self,
        base_url: str,
        cron_secret: str,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self.url = f"{base_url.rstrip('/')}/api/sync-calendar"
        self.cron_secret = cron_secret
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    def fire(self, uid: str) -> None:
        self._detach(self._post(uid), name=f"sync-http:{uid}")

    async def _post(self, uid: str) -> None:
        try:
            resp = await self._client.post(
                self.url,
                json={"uid": uid},
                headers={"Authorization": f"Bearer {self.cron_secret}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Sync trigger for {uid} failed: {e}")
            return

        if resp.status_code >= 400:
            logger.warning(
                f"Sync trigger for {uid} returned {resp.status_code}: {resp.text[:200]}"
            )

    async def aclose(self) -> None:
        await super().aclose()
        await self._client.aclose()
