import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from api.context import AppContext
from api.dependencies import get_context, has_cron_secret
from integration.identity import bearer_token
from momentum.errors import NoCredential, NoTasks, Unauthorized
from momentum.metrics import REQUEST_LATENCY_SECONDS, REQUESTS_TOTAL, SYNC_RUNS_TOTAL

router = APIRouter()
logger = logging.getLogger(__name__)


class SyncRequestIn(BaseModel):
    uid: Optional[str] = None


def _observe(endpoint: str, status: str, start: float) -> None:
    REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)


async def _resolve_target_uid(
    payload: Optional[SyncRequestIn], authorization: Optional[str], context: AppContext
) -> str:
    """
    The scheduler's own trigger authenticates with the cron secret and names
    the user in the body. Anyone else must present a Firebase ID token and
    can only sync themselves.
    """
    requested = payload.uid if payload else None

    if has_cron_secret(authorization, context.settings.cron_secret):
        if not requested:
            raise HTTPException(status_code=400, detail="No user ID provided.")
        return requested

    try:
        uid = await context.identity.verify(bearer_token(authorization))
    except Unauthorized as e:
        raise HTTPException(status_code=403, detail=f"Unauthorized: {e}")

    if requested and requested != uid:
        raise HTTPException(status_code=403, detail="Unauthorized: cannot sync another user.")
    return uid


@router.post("/api/sync-calendar")
async def sync_calendar(
    payload: Optional[SyncRequestIn] = None,
    authorization: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
) -> dict:
    """Syncs one user's tasks to their Google Calendar and waits for the result."""
    start = time.time()
    endpoint = "/api/sync-calendar"

    uid = await _resolve_target_uid(payload, authorization, context)

    try:
        result = await context.executor.sync(uid)
    except NoCredential:
        SYNC_RUNS_TOTAL.labels(outcome="no_credential").inc()
        _observe(endpoint, "not_found", start)
        raise HTTPException(status_code=404, detail="User has not connected Google Calendar.")
    except NoTasks:
        SYNC_RUNS_TOTAL.labels(outcome="no_tasks").inc()
        _observe(endpoint, "no_tasks", start)
        return {
            "message": "No tasks to sync.",
            "uid": uid,
            "created": 0,
            "already_synced": 0,
            "errors": [],
        }
    except Exception as e:
        logger.error(f"Sync failed for {uid}: {e}")
        SYNC_RUNS_TOTAL.labels(outcome="failed").inc()
        _observe(endpoint, "error", start)
        raise HTTPException(status_code=500, detail="Sync failed.")

    outcome = "partial" if result.errors else "ok"
    SYNC_RUNS_TOTAL.labels(outcome=outcome).inc()
    _observe(endpoint, outcome, start)
    return {"message": result.summary, **result.model_dump()}


@router.api_route("/api/sync-all-users", methods=["GET", "POST"])
async def sync_all_users(
    authorization: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
) -> dict:
    """Cron entry point: triggers a sync for every connected user and returns at once."""
    start = time.time()
    endpoint = "/api/sync-all-users"

    if not has_cron_secret(authorization, context.settings.cron_secret):
        _observe(endpoint, "unauthorized", start)
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        summary = await context.scheduler.sync_all()
    except Exception as e:
        logger.exception(f"Cron job failed: {e}")
        _observe(endpoint, "error", start)
        raise HTTPException(status_code=500, detail="Cron job failed")

    _observe(endpoint, "triggered" if summary.triggered else "empty", start)
    return {
        "message": summary.summary,
        "triggered": summary.triggered,
        "user_ids": summary.user_ids,
    }
