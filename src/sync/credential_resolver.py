from typing import Optional

from momentum.models import Credential
from storage.credential_store import CredentialStore


class CredentialResolver:
    """Looks up the delegated Google Calendar credential of one user."""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def resolve(self, uid: str) -> Optional[Credential]:
        """None when the user has no integrations document or never connected Google."""
        return await self.store.get_google_calendar(uid)
