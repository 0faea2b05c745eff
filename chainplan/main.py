from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chainplan.core.config import settings
from chainplan.core.db import get_engine, init_db
from chainplan.core.history import get_result_history
from chainplan.core.logging import configure_logging
from chainplan.routes.history import router as history_router
from chainplan.routes.projects import router as projects_router
from chainplan.routes.results import router as results_router
from chainplan.routes.scenarios import router as scenarios_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_auto_create:
        await init_db(get_engine())
    yield
    await get_engine().dispose()


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Chainplan",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Explicit wiring
    app.state.result_history = get_result_history(
        settings.result_history_store, settings.result_history_root
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error", extra={"path": request.url.path, "method": request.method}
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    app.include_router(projects_router)
    app.include_router(scenarios_router)
    app.include_router(results_router)
    app.include_router(history_router)

    logger.info("Planning service ready (env=%s)", settings.app_env)
    return app
