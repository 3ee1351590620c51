import asyncio
import logging
from typing import Optional

import google.auth.transport.requests
from google.oauth2 import id_token

from momentum.errors import Unauthorized

logger = logging.getLogger(__name__)

ISSUER_PREFIX = "https://securetoken.google.com/"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of an 'Authorization: Bearer <token>' header, or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens sent by the Momentum frontend."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        if not project_id:
            logger.warning("FIREBASE_PROJECT_ID not set. Every ID token will be rejected.")
        self._request = google.auth.transport.requests.Request()

    def _verify(self, token: str) -> str:
        # without an audience any Firebase project's tokens would verify
        if not self.project_id:
            raise Unauthorized("Firebase project is not configured.")

        claims = id_token.verify_firebase_token(
            token, self._request, audience=self.project_id
        ) or {}
        if claims.get("iss") != f"{ISSUER_PREFIX}{self.project_id}":
            raise Unauthorized("Token was issued for another project.")

        uid = claims.get("sub") or claims.get("user_id")
        if not uid:
            raise Unauthorized("Token has no subject")
        return uid

    async def verify(self, token: Optional[str]) -> str:
        if not token:
            raise Unauthorized("No token provided.")
        try:
            # fetches Google's public certs; keep it off the event loop
            return await asyncio.to_thread(self._verify, token)
        except Unauthorized:
            raise
        except Exception as e:
            logger.error(f"Error verifying token: {e}")
            raise Unauthorized("Invalid token.") from e
