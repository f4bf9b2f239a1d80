from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool
from qzonme.config.settings import ConfigManager, get_config_manager
from qzonme.logging.setup import setup_logging, get_logger
from qzonme.core.api.router_cleanup import router as cleanup_router
from qzonme.core.api.router_uploads import router as uploads_router
from qzonme.core.cleanup.job import CleanupJob
from qzonme.core.cleanup.scheduler import CleanupScheduler
from qzonme.core.media.client import CloudinaryMediaClient, RemoteMediaClient
from qzonme.core.media.uploader import UploadOrchestrator, ensure_temp_dir
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
import logging


# Use basic logging before config is loaded
_basic_logger = logging.getLogger(__name__)

# Configure application config and logging at module level
_config_manager = get_config_manager()
try:
    _config_manager.load()
    _basic_logger.info("Configuration loaded successfully")
except Exception as e:
    _basic_logger.error(f"Failed to load configuration: {e}")
    raise

setup_logging(_config_manager.logging_config)

logger = get_logger(__name__)
logger.debug("Loaded main.py")


def build_media_client(config_manager: ConfigManager) -> RemoteMediaClient:
    """Create the media host client from configuration."""
    return CloudinaryMediaClient.from_settings(config_manager.media)


def build_cleanup_scheduler(
        config_manager: ConfigManager,
        client: RemoteMediaClient) -> CleanupScheduler:
    """Create the cleanup scheduler from configuration."""
    cleanup = config_manager.cleanup
    job = CleanupJob(
        client,
        prefix=f"{config_manager.media.folder}/",
        page_size=cleanup.page_size,
    )
    return CleanupScheduler(
        job,
        interval_seconds=cleanup.interval_seconds,
        initial_delay_seconds=cleanup.initial_delay_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.debug("Starting up the application")

    # Re-read the manager: tests may have reset and reloaded it
    config_manager = get_config_manager()
    app.state.config_manager = config_manager

    ensure_temp_dir(config_manager.uploads.temp_dir)

    client = build_media_client(config_manager)
    if config_manager.media.check_connection:
        connected = await run_in_threadpool(client.ping)
        if not connected:
            logger.critical("Failed to connect to media host")
            raise RuntimeError("Failed to connect to media host")

    app.state.media_client = client
    app.state.upload_orchestrator = UploadOrchestrator(client)
    app.state.cleanup_scheduler = None

    if config_manager.cleanup.enabled:
        scheduler = build_cleanup_scheduler(config_manager, client)
        scheduler.start()
        app.state.cleanup_scheduler = scheduler
    else:
        logger.info(
            "Cleanup scheduler disabled (set cleanup.enabled=true to enable)")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.debug("Shutting down the application")

    if app.state.cleanup_scheduler is not None:
        await app.state.cleanup_scheduler.stop()

    logger.info("Application shutdown complete")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    """Root endpoint for sanity check."""
    logger.info("Root endpoint accessed")
    return {"message": "Welcome to the QzonMe API"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError):
    error_details = exc.errors()
    for error in error_details:
        logger.error(f"Validation error: {error}, request: {request}")
    return JSONResponse(
        status_code=422,
        content={
            "message": "Invalid input received. Please check your request and try again."}
    )

# Include routers
app.include_router(cleanup_router, prefix="/api", tags=["cleanup"])
app.include_router(uploads_router, prefix="/api", tags=["uploads"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=_config_manager.api_host,
                port=_config_manager.api_port)
