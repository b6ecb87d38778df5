from fastapi import Query, Request

from app.config.config import Settings
from app.services.params import TransformRequest, parse_transform_request


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_transform_request(
    width: str | None = Query(None, description="Target width in pixels (positive integer)."),
    height: str | None = Query(None, description="Target height in pixels (positive integer)."),
    quality: str | None = Query(None, description="Encoder quality, integer between 1 and 100."),
    fit: str | None = Query(None, description="cover, contain, inside or outside (default cover)."),
    without_enlargement: str | None = Query(
        None, alias="withoutEnlargement", description='"true" or "1" to never upscale.'
    ),
    format: str | None = Query(None, description="auto, jpg, jpeg, png, webp, tiff or avif."),
    transforms: str | None = Query(
        None, description='JSON list of operations, e.g. [["rotate", 90], ["blur", 5]].'
    ),
) -> TransformRequest:
    """FastAPI dependency: validate the raw query parameters."""
    return parse_transform_request(
        width=width,
        height=height,
        quality=quality,
        fit=fit,
        without_enlargement=without_enlargement,
        format=format,
        transforms=transforms,
    )
