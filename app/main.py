import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.responses import error_response
from app.api.router import api_router
from app.config.config import Settings, settings
from app.services.errors import ImageServiceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    image_dir = app.state.settings.image_dir
    logger.info(f"using image dir: {image_dir}")
    if not image_dir.is_dir():
        logger.warning(f"image dir {image_dir} does not exist, /random-image will return 404")

    yield


async def image_service_error_handler(request: Request, exc: ImageServiceError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Bad request")
    return error_response(400, f"{field}: {message}" if field else message)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app = FastAPI(title="random-image", version=os.getenv("GIT_SHA", "dev"), lifespan=lifespan)
    app.state.settings = app_settings or settings

    app.add_exception_handler(ImageServiceError, image_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.include_router(api_router)

    @app.get("/health")
    async def health():
        return {"ok": True, "imageDir": str(app.state.settings.image_dir)}

    return app


app = create_app()
