import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from mask_api.api import TEMP_ROUTE_NAME, register_error_handlers, router
from mask_api.core.config import ServiceConfig
from mask_api.core.lifespan import init_state, lifespan


def create_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    config = config or ServiceConfig.from_env()

    app = FastAPI(
        title="Image Mask API",
        version="1.0.0",
        description="API for image cropping by bounding box and white background detection",
        lifespan=lifespan,
    )
    init_state(app, config)

    register_error_handlers(app)
    app.include_router(router)
    # The directory is created by the lifespan, not at import time.
    app.mount(
        "/temp-crops",
        StaticFiles(directory=str(config.temp_dir), check_dir=False),
        name=TEMP_ROUTE_NAME,
    )
    return app


api = create_app()


def run() -> None:
    config = api.state.config
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(api, host=config.host, port=config.port)


if __name__ == "__main__":
    run()
