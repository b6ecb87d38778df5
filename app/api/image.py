import asyncio
import logging

from fastapi import APIRouter, Depends, File, Header, UploadFile

from app.api.deps import get_settings, get_transform_request
from app.api.responses import error_response, image_response
from app.config.config import Settings
from app.services.errors import ImagesNotFoundError, UploadError
from app.services.image_service import render_image
from app.services.image_source import (
    INPUT_EXTENSIONS,
    ImageSource,
    collect_images,
    is_supported_filename,
    pick_random_image,
)
from app.services.params import TransformRequest

logger = logging.getLogger(__name__)

router = APIRouter()


async def _render(source: ImageSource, request: TransformRequest, accept: str):
    try:
        rendered = await asyncio.to_thread(render_image, source, request, accept)
    except ValueError as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error(f"Image render failed for {source.filename}: {e}", exc_info=True)
        return error_response(400, str(e) or "Bad request")
    return image_response(rendered)


@router.get("/random-image")
async def random_image(
    request: TransformRequest = Depends(get_transform_request),
    accept: str = Header(""),
    settings: Settings = Depends(get_settings),
):
    images = await asyncio.to_thread(collect_images, settings.image_dir)
    if not images:
        raise ImagesNotFoundError(f"No images found in IMAGE_DIR: {settings.image_dir}")

    path = pick_random_image(images)
    logger.debug(f"Serving {path} (1 of {len(images)})")
    return await _render(ImageSource.from_path(path), request, accept)


@router.post("/transform-image")
async def transform_image(
    image: UploadFile | None = File(None, description="Image file to transform."),
    request: TransformRequest = Depends(get_transform_request),
    accept: str = Header(""),
    settings: Settings = Depends(get_settings),
):
    if image is None or not image.filename:
        raise UploadError("No image file uploaded (expected multipart field 'image')")

    if not is_supported_filename(image.filename):
        allowed = ", ".join(sorted(INPUT_EXTENSIONS))
        raise UploadError(f"Unsupported file type: {image.filename} (allowed: {allowed})")

    # 多读 1 字节用于判断是否超限
    data = await image.read(settings.max_upload_size + 1)
    if len(data) > settings.max_upload_size:
        raise UploadError(f"Image exceeds the maximum upload size of {settings.max_upload_size} bytes")

    return await _render(ImageSource.from_upload(data, image.filename), request, accept)
