import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from api.context import AppContext
from integration.identity import bearer_token
from momentum.errors import Unauthorized


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service is starting")
    return context


async def get_current_uid(
    authorization: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
) -> str:
    """Firebase user behind the request's bearer ID token."""
    try:
        return await context.identity.verify(bearer_token(authorization))
    except Unauthorized as e:
        raise HTTPException(status_code=403, detail=f"Unauthorized: {e}")


def has_cron_secret(authorization: Optional[str], secret: str) -> bool:
    if not secret or not authorization:
        return False
    return hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode())
