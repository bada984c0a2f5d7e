import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mask_api.core.config import ServiceConfig
from mask_api.core.temp_store import CleanupTask, TempStore

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, config: ServiceConfig) -> None:
    # Config and store live on app.state so handlers never reach for globals.
    app.state.ready = False
    app.state.config = config
    app.state.temp_store = TempStore(config.temp_dir, max_age_s=config.temp_max_age_s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application is starting up...")
    config = app.state.config
    store = app.state.temp_store
    store.ensure_dir()

    cleanup = CleanupTask(store, interval_s=config.cleanup_interval_s)
    cleanup.start()
    app.state.cleanup_task = cleanup
    app.state.ready = True

    logger.info("Image API running on http://%s:%s", config.host, config.port)
    logger.info("   POST /crop-by-bbox")
    logger.info("   POST /check-white-bg")
    logger.info(
        "   Static /temp-crops (auto-cleanup %dmin)", int(config.temp_max_age_s // 60)
    )
    logger.info("   Swagger UI: /docs")

    try:
        yield
    finally:
        logger.info("Shutting down...")
        app.state.ready = False
        # The cleanup loop must not outlive the application.
        await cleanup.stop()
        logger.info("Backend stopped")
