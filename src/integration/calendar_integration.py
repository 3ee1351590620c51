import http.client
import logging
from datetime import timezone

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from momentum.errors import ProviderConflict, ProviderError
from momentum.models import Credential

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]


def to_google_credentials(
    credential: Credential, client_id: str, client_secret: str
) -> Credentials:
    """Rebuild google-auth credentials; they refresh themselves when the access token expires."""
    expiry = credential.expiry
    # google-auth compares against naive UTC
    if expiry and expiry.tzinfo:
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

    return Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id or None,
        client_secret=client_secret or None,
        scopes=CALENDAR_SCOPES,
        expiry=expiry,
    )


class CalendarIntegration:
    """Insert-only access to one user's Google Calendar."""

    def __init__(self, credentials=None, service=None):
        self.credentials = credentials
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = build(
                "calendar", "v3", credentials=self.credentials, cache_discovery=False
            )
        return self._service

    def insert_event(self, calendar_id: str, event: dict) -> dict:
        """
        Insert an event carrying its own id.

        Raises ProviderConflict if that id already exists, ProviderError for
        anything else. Blocking; run it in a worker thread from async code.
        """
        try:
            return (
                self.service.events()
                .insert(calendarId=calendar_id, body=event)
                .execute()
            )
        except HttpError as e:
            status = e.resp.status if e.resp is not None else None
            if status == 409:
                raise ProviderConflict(event.get("id", "")) from e
            raise ProviderError(f"Google Calendar returned {status}: {e.reason}", status=status) from e
        except GoogleAuthError as e:
            # revoked or expired refresh token
            raise ProviderError(f"Google credentials rejected: {e}") from e
        except (OSError, httplib2.HttpLib2Error, http.client.HTTPException) as e:
            # DNS failures surface as httplib2.ServerNotFoundError, not OSError
            raise ProviderError(f"Google Calendar unreachable: {e}") from e


class GoogleCalendarFactory:
    """Builds a CalendarIntegration from a stored credential."""

    def __init__(self, client_id: str, client_secret: str):
        self.client_id = client_id
        self.client_secret = client_secret

    def __call__(self, credential: Credential) -> CalendarIntegration:
        return CalendarIntegration(
            credentials=to_google_credentials(
                credential, self.client_id, self.client_secret
            )
        )
