import asyncio
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response

from api.context import AppContext
from api.dependencies import get_context, get_current_uid
from momentum.errors import MalformedRecord, Unauthorized

router = APIRouter()
logger = logging.getLogger(__name__)


def _redirect(url: str) -> Response:
    return Response(status_code=307, headers={"Location": url})


@router.get("/api/get-auth-url")
async def get_auth_url(
    uid: str = Depends(get_current_uid),
    context: AppContext = Depends(get_context),
) -> dict:
    """Google consent URL for the calling user; the signed uid rides along as state."""
    if not context.oauth.configured:
        raise HTTPException(status_code=500, detail="Google credentials not configured")
    return {"authUrl": context.oauth.authorization_url(uid)}


@router.get("/api/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    context: AppContext = Depends(get_context),
):
    """Handles Google's redirect after the user granted (or refused) access."""
    settings_url = f"{context.settings.frontend_url}/settings"

    if error:
        logger.error(f"OAuth error: {error}")
        return _redirect(f"{settings_url}?google-connected=false&error={quote(error)}")

    if not code:
        raise HTTPException(status_code=400, detail="Missing code.")
    if not state:
        raise HTTPException(status_code=400, detail="Missing user state.")

    try:
        uid = context.oauth.verify_state(state)
    except Unauthorized as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        credentials, email = await asyncio.to_thread(context.oauth.exchange_code, code)
        await context.credential_store.save_google_calendar(
            uid, credentials, email or "Google User"
        )
    except Exception as e:
        logger.error(f"Error in /api/callback: {e}")
        raise HTTPException(status_code=500, detail="Error connecting Google account.")

    return _redirect(f"{settings_url}?google-connected=true")


@router.get("/api/auth/status")
async def google_status(
    uid: str = Depends(get_current_uid),
    context: AppContext = Depends(get_context),
) -> dict:
    """Check if user is connected."""
    try:
        credential = await context.credential_store.get_google_calendar(uid)
    except MalformedRecord as e:
        logger.error(f"Stored credential for {uid} is unusable: {e}")
        return {"connected": False, "error": "Stored credential is invalid; reconnect."}

    return {
        "connected": credential is not None,
        "email": credential.email if credential else None,
    }


@router.post("/api/auth/disconnect")
async def google_disconnect(
    uid: str = Depends(get_current_uid),
    context: AppContext = Depends(get_context),
) -> dict:
    """Delete stored credentials; already-created calendar events are left alone."""
    try:
        await context.credential_store.delete_google_calendar(uid)
    except Exception as e:
        logger.error(f"Error disconnecting: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "disconnected"}
