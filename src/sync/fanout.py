import logging

from momentum.metrics import USERS_TRIGGERED_TOTAL
from momentum.models import TriggerSummary
from storage.credential_store import CredentialStore
from sync.trigger import SyncTrigger

logger = logging.getLogger(__name__)


class FanOutScheduler:
    """Finds every user with a connected Google Calendar and triggers one sync each."""

    def __init__(self, store: CredentialStore, trigger: SyncTrigger):
        self.store = store
        self.trigger = trigger

    async def sync_all(self) -> TriggerSummary:
        refs = await self.store.find_connected()

        # several settings documents may belong to the same user
        user_ids = list(dict.fromkeys(ref.user_id for ref in refs))
        if not user_ids:
            logger.info("CRON: No users to sync.")
            return TriggerSummary()

        logger.info(f"CRON: Found {len(user_ids)} users to sync.")

        triggered = []
        for uid in user_ids:
            try:
                self.trigger.fire(uid)
            except Exception:
                logger.exception(f"CRON: Could not trigger sync for {uid}")
                continue
            triggered.append(uid)

        USERS_TRIGGERED_TOTAL.inc(len(triggered))
        return TriggerSummary(user_ids=triggered)
