import logging
from dataclasses import dataclass
from typing import Optional

from integration.calendar_integration import GoogleCalendarFactory
from integration.google_oauth import GoogleOAuth
from integration.identity import FirebaseIdentityVerifier
from momentum.settings import Settings
from storage.credential_store import CredentialStore, build_fernet
from storage.db import Database
from storage.task_store import TaskStore
from sync.credential_resolver import CredentialResolver
from sync.event_mapper import EventMapper
from sync.executor import SyncExecutor
from sync.fanout import FanOutScheduler
from sync.trigger import BackgroundSyncTrigger, HttpSyncTrigger, SyncTrigger

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a request needs, built once at process start."""

    settings: Settings
    credential_store: CredentialStore
    task_store: TaskStore
    identity: FirebaseIdentityVerifier
    oauth: GoogleOAuth
    executor: SyncExecutor
    trigger: SyncTrigger
    scheduler: FanOutScheduler
    database: Optional[Database] = None

    async def aclose(self) -> None:
        await self.trigger.aclose()
        if self.database is not None:
            await self.database.close()


def build_context(settings: Settings, database: Database) -> AppContext:
    fernet = build_fernet(settings.token_encryption_key)

    credential_store = CredentialStore(database, fernet)
    task_store = TaskStore(database)

    executor = SyncExecutor(
        resolver=CredentialResolver(credential_store),
        task_store=task_store,
        calendar_factory=GoogleCalendarFactory(
            settings.google_client_id, settings.google_client_secret
        ),
        mapper=EventMapper(settings.timezone),
        calendar_id=settings.calendar_id,
    )

    if settings.trigger_mode == "http":
        trigger: SyncTrigger = HttpSyncTrigger(
            settings.sync_base_url,
            settings.cron_secret,
            timeout_s=settings.sync_http_timeout_s,
        )
    else:
        trigger = BackgroundSyncTrigger(executor)

    return AppContext(
        settings=settings,
        credential_store=credential_store,
        task_store=task_store,
        identity=FirebaseIdentityVerifier(settings.firebase_project_id),
        oauth=GoogleOAuth(
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_redirect_uri,
            fernet,
            state_ttl_s=settings.oauth_state_ttl_s,
        ),
        executor=executor,
        trigger=trigger,
        scheduler=FanOutScheduler(credential_store, trigger),
        database=database,
    )


async def open_context(settings: Settings) -> AppContext:
    """Connect the database and assemble the context."""
    database = Database(settings.database_url)
    await database.connect()
    if settings.init_schema:
        await database.init_schema()

    logger.info(
        f"Sync context ready (trigger={settings.trigger_mode}, timezone={settings.timezone})"
    )
    return build_context(settings, database)
