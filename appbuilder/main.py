"""Web-to-App Builder API - app build submissions, payments and downloads."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from appbuilder import __version__
from appbuilder.config import Settings, get_settings
from appbuilder.database import create_engine, create_session_factory, init_models
from appbuilder.errors import AppBuilderError
from appbuilder.routers import apps, health, payments
from appbuilder.services.app_record_store import PackageLocks
from appbuilder.services.build_artifacts import StubBuildGenerator
from appbuilder.services.file_store import FileStore
from appbuilder.services.notification_service import EmailSender, NotificationDispatcher
from appbuilder.services.payment_gateway import RazorpayClient

logger = logging.getLogger(__name__)

NOTIFICATION_DRAIN_SECONDS = 10.0


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.api_log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Creates the database engine and the service handles on startup and
    releases them on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info("Starting Web-to-App Builder API...")

    settings.storage_root.mkdir(parents=True, exist_ok=True)
    engine = create_engine(settings)
    await init_models(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.builder = StubBuildGenerator(app.state.file_store)
    app.state.gateway = RazorpayClient.from_settings(settings)
    app.state.dispatcher = NotificationDispatcher(EmailSender.from_settings(settings))
    app.state.package_locks = PackageLocks()

    yield

    logger.info("Shutting down Web-to-App Builder API...")
    await app.state.dispatcher.drain(timeout=NOTIFICATION_DRAIN_SECONDS)
    await app.state.gateway.close()
    await engine.dispose()


async def app_error_handler(request: Request, exc: AppBuilderError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.__cause__!r})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} raised an unhandled error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal error"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application for ``settings``."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Web-to-App Builder",
        description="App build submissions, payments and downloads",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.state.file_store = FileStore(settings.storage_root, settings.static_url_prefix)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppBuilderError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health.router, tags=["Health"])
    app.include_router(apps.router, prefix="/api", tags=["Apps"])
    app.include_router(payments.router, prefix="/api/payment", tags=["Payments"])
    app.mount(
        settings.static_url_prefix,
        StaticFiles(directory=settings.storage_root, check_dir=False),
        name="uploads",
    )

    return app


configure_logging(get_settings())
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
