import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.context import AppContext, open_context
from api.routers import auth, ops, sync
from momentum.settings import Settings

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None, context: Optional[AppContext] = None
) -> FastAPI:
    """
    Build the API. A ready context (tests) is used as is; otherwise one is
    opened from settings at startup and closed at shutdown.
    """
    if context is not None:
        settings = context.settings
    elif settings is None:
        settings = Settings.from_env()

    app = FastAPI(title="Momentum Calendar Sync")
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ops.router)
    app.include_router(auth.router)
    app.include_router(sync.router)

    owns_context = context is None

    @app.on_event("startup")
    async def startup() -> None:
        if owns_context:
            app.state.context = await open_context(settings)
        logger.info("Momentum calendar sync started")

    @app.on_event("shutdown")
    async def shutdown() -> None:
        if owns_context and app.state.context is not None:
            await app.state.context.aclose()
            app.state.context = None
        logger.info("Momentum calendar sync stopped")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
