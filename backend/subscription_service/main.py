import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import Database
from .errors import StorageFailure
from .logging_config import setup_logging
from .services.subscriptions_service import SubscriptionService
from .subscriptions import router as subscriptions_router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_file)

    database = Database(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await database.open()
        yield
        await database.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.subscription_service = SubscriptionService(settings)
    app.include_router(subscriptions_router)

    @app.exception_handler(StorageFailure)
    async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Storage failure"})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("application created: %s", settings.app_name)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
