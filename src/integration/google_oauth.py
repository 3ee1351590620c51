import logging
from typing import Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from momentum.errors import Unauthorized

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/userinfo/v2/me"

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


class GoogleOAuth:
    """Authorization-code flow that connects a Momentum user to Google Calendar.

    The user id travels through Google as the OAuth ``state``, encrypted and
    time-stamped with Fernet so a callback cannot be forged for another user.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        fernet: Fernet,
        state_ttl_s: int = 600,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.fernet = fernet
        self.state_ttl_s = state_ttl_s

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _flow(self) -> Flow:
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": AUTH_URI,
                    "token_uri": TOKEN_URI,
                }
            },
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
            # callback runs on a fresh Flow, so no PKCE verifier survives
            autogenerate_code_verifier=False,
        )

    def sign_state(self, uid: str) -> str:
        return self.fernet.encrypt(uid.encode()).decode()

    def verify_state(self, state: str) -> str:
        try:
            return self.fernet.decrypt(state.encode(), ttl=self.state_ttl_s).decode()
        except InvalidToken as e:
            raise Unauthorized("Invalid or expired OAuth state.") from e

    def authorization_url(self, uid: str) -> str:
        url, _ = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
            state=self.sign_state(uid),
        )
        return url

    def exchange_code(self, code: str) -> Tuple[Credentials, Optional[str]]:
        """Trade the callback code for tokens and look up the account email. Blocking."""
        flow = self._flow()
        flow.fetch_token(code=code)

        email = None
        try:
            session = flow.authorized_session()
            email = session.get(USERINFO_URL).json().get("email")
        except Exception as e:
            # the connection still works without the display email
            logger.error(f"Failed to fetch user email: {e}")

        return flow.credentials, email
