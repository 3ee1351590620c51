import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.context import AppContext
from api.dependencies import get_context

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Momentum calendar sync is running."


@router.get("/api/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "Server running fine"


@router.get("/health")
async def health_check(context: AppContext = Depends(get_context)) -> dict:
    """Health check endpoint for container orchestration."""
    health = {
        "status": "healthy",
        "trigger_mode": context.settings.trigger_mode,
        "syncs_in_flight": context.trigger.in_flight,
    }

    if context.database is not None:
        db_health = await context.database.health_check()
        health["database"] = db_health
        if db_health["status"] != "healthy":
            health["status"] = "degraded"

    return health


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus scrape endpoint.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
