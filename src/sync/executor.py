import asyncio
import logging
from typing import Callable

from momentum.errors import (
    MalformedTask,
    NoCredential,
    NoTasks,
    ProviderConflict,
    ProviderError,
)
from momentum.metrics import (
    EVENTS_ALREADY_SYNCED_TOTAL,
    EVENTS_CREATED_TOTAL,
    TASK_ERRORS_TOTAL,
)
from momentum.models import Credential, SyncResult, TaskSyncError
from storage.task_store import TaskStore
from sync.credential_resolver import CredentialResolver
from sync.event_mapper import EventMapper
from sync.task_filter import eligible

logger = logging.getLogger(__name__)


class SyncExecutor:
    """Mirrors one user's open, time-boxed tasks into their Google Calendar.

    Inserts are keyed by a deterministic event id, so a rerun only creates
    events for tasks that have none yet. A failing task is recorded in the
    result and the run moves on to the next one.
    """

    def __init__(
        self,
        resolver: CredentialResolver,
        task_store: TaskStore,
        calendar_factory: Callable[[Credential], object],
        mapper: EventMapper,
        calendar_id: str = "primary",
    ):
        self.resolver = resolver
        self.task_store = task_store
        self.calendar_factory = calendar_factory
        self.mapper = mapper
        self.calendar_id = calendar_id

    async def sync(self, uid: str) -> SyncResult:
        credential = await self.resolver.resolve(uid)
        if credential is None:
            raise NoCredential(uid)

        task_list = await self.task_store.get_task_list(uid)
        if task_list is None:
            raise NoTasks(uid)

        result = SyncResult(uid=uid)
        for rejected in task_list.rejected:
            result.errors.append(
                TaskSyncError(task_id=rejected.task_id, kind="malformed_task", message=rejected.reason)
            )
            TASK_ERRORS_TOTAL.labels(kind="malformed_task").inc()

        to_sync = eligible(task_list.tasks)
        if not to_sync:
            logger.info(f"No eligible tasks for {uid}")
            return result

        calendar = await asyncio.to_thread(self.calendar_factory, credential)

        for task in to_sync:
            try:
                event_id, event = self.mapper.to_event(task)
            except MalformedTask as e:
                logger.warning(f"Skipping task {task.id} for {uid}: {e.reason}")
                result.errors.append(
                    TaskSyncError(task_id=task.id, kind="malformed_task", message=e.reason)
                )
                TASK_ERRORS_TOTAL.labels(kind="malformed_task").inc()
                continue

            try:
                await asyncio.to_thread(calendar.insert_event, self.calendar_id, event)
            except ProviderConflict:
                result.already_synced += 1
                EVENTS_ALREADY_SYNCED_TOTAL.inc()
                continue
            except ProviderError as e:
                logger.error(f"Error syncing task {task.id}: {e}")
                result.errors.append(
                    TaskSyncError(task_id=task.id, kind="provider_error", message=str(e))
                )
                TASK_ERRORS_TOTAL.labels(kind="provider_error").inc()
                continue
            except Exception as e:
                logger.exception(f"Unexpected error syncing task {task.id}")
                result.errors.append(
                    TaskSyncError(task_id=task.id, kind="provider_error", message=str(e) or type(e).__name__)
                )
                TASK_ERRORS_TOTAL.labels(kind="provider_error").inc()
                continue

            result.created += 1
            EVENTS_CREATED_TOTAL.inc()
            logger.debug(f"Created event {event_id} for {uid}")

        logger.info(
            f"Sync complete for {uid}: {result.created} created, "
            f"{result.already_synced} already synced, {len(result.errors)} errors"
        )
        return result
