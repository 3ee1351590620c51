import logging
from datetime import datetime, timezone
from typing import List, Optional

from cryptography.fernet import Fernet, InvalidToken
from google.oauth2.credentials import Credentials
from pydantic import ValidationError

from momentum.errors import MalformedRecord
from momentum.models import ConnectedSettingsRef, Credential
from storage.db import Database

logger = logging.getLogger(__name__)

INTEGRATIONS_DOC = "integrations"
GOOGLE_CALENDAR_KEY = "googleCalendar"


def build_fernet(key: Optional[str]) -> Fernet:
    if not key:
        # Development only: tokens written with this key are unreadable after a restart.
        logger.warning(
            "GOOGLE_TOKEN_ENCRYPTION_KEY not set. Generating a temporary key."
        )
        key = Fernet.generate_key().decode()
    return Fernet(key.encode() if isinstance(key, str) else key)


class CredentialStore:
    """Per-user settings documents, holding the encrypted Google Calendar tokens."""

    def __init__(self, database: Database, fernet: Fernet):
        self.db = database
        self.fernet = fernet

    def _encrypt(self, data: Optional[str]) -> Optional[str]:
        if not data:
            return None
        return self.fernet.encrypt(data.encode()).decode()

    def _decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return self.fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise MalformedRecord("Stored token cannot be decrypted with the configured key") from e

    async def get(self, user_id: str, doc_name: str) -> Optional[dict]:
        data = await self.db.fetchval(
            "SELECT data FROM user_settings WHERE user_id = $1 AND doc_name = $2",
            user_id,
            doc_name,
        )
        if data is not None and not isinstance(data, dict):
            raise MalformedRecord(f"Settings document {user_id}/{doc_name} is not an object")
        return data

    async def set(self, user_id: str, doc_name: str, record: dict, merge: bool = True) -> None:
        """Write a settings document. With merge, top-level keys of record replace existing ones."""
        await self.db.execute(
            """
            INSERT INTO user_settings (user_id, doc_name, data)
            VALUES ($1, $2, $3::jsonb)
            ON CONFLICT (user_id, doc_name) DO UPDATE SET
                data = CASE WHEN $4::boolean
                            THEN user_settings.data || EXCLUDED.data
                            ELSE EXCLUDED.data END,
                updated_at = NOW()
            """,
            user_id,
            doc_name,
            record,
            merge,
        )

    async def get_google_calendar(self, user_id: str) -> Optional[Credential]:
        """Decrypted Google Calendar credential, or None when the user never connected."""
        doc = await self.get(user_id, INTEGRATIONS_DOC)
        if not doc or not doc.get(GOOGLE_CALENDAR_KEY):
            return None

        raw = doc[GOOGLE_CALENDAR_KEY]
        if not isinstance(raw, dict):
            raise MalformedRecord(f"{GOOGLE_CALENDAR_KEY} of user {user_id} is not an object")

        try:
            return Credential(
                access_token=self._decrypt(raw.get("access_token")) or "",
                refresh_token=self._decrypt(raw.get("refresh_token")),
                expiry=raw.get("expiry_date"),
                email=raw.get("email"),
                created_at=raw.get("created_at"),
            )
        except ValidationError as e:
            raise MalformedRecord(
                f"Invalid {GOOGLE_CALENDAR_KEY} record for user {user_id}: {e}"
            ) from e

    async def save_google_calendar(
        self, user_id: str, credentials: Credentials, email: Optional[str] = None
    ) -> None:
        """Store OAuth tokens (encrypted) under the user's integrations document."""
        refresh_token_enc = self._encrypt(credentials.refresh_token)

        # Re-consent does not always return a refresh token; keep the old one.
        if not refresh_token_enc:
            doc = await self.get(user_id, INTEGRATIONS_DOC) or {}
            previous = doc.get(GOOGLE_CALENDAR_KEY) or {}
            refresh_token_enc = previous.get("refresh_token")

        expiry = credentials.expiry
        if expiry is not None and expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)

        await self.set(
            user_id,
            INTEGRATIONS_DOC,
            {
                GOOGLE_CALENDAR_KEY: {
                    "email": email,
                    "access_token": self._encrypt(credentials.token),
                    "refresh_token": refresh_token_enc,
                    "expiry_date": expiry.isoformat() if expiry else None,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                }
            },
            merge=True,
        )
        logger.info(f"Saved Google credentials for user {user_id}")

    async def delete_google_calendar(self, user_id: str) -> None:
        await self.db.execute(
            "UPDATE user_settings SET data = data - $3::text, updated_at = NOW() "
            "WHERE user_id = $1 AND doc_name = $2",
            user_id,
            INTEGRATIONS_DOC,
            GOOGLE_CALENDAR_KEY,
        )
        logger.info(f"Deleted Google credentials for user {user_id}")

    async def find_connected(self) -> List[ConnectedSettingsRef]:
        """Every settings document with a non-empty Google access token.

        A user can appear more than once; callers deduplicate.
        """
        rows = await self.db.fetch(
            """
            SELECT user_id, doc_name FROM user_settings
            WHERE data -> 'googleCalendar' ->> 'access_token' > ''
            ORDER BY user_id, doc_name
            """
        )
        return [
            ConnectedSettingsRef(user_id=row["user_id"], doc_name=row["doc_name"])
            for row in rows
        ]
