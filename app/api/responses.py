from fastapi.responses import JSONResponse, Response

from app.services.image_service import RenderedImage

NO_STORE = {"Cache-Control": "no-store"}


def image_response(image: RenderedImage) -> Response:
    # 随机图片每次都不同，任何响应都不能被缓存
    headers = dict(NO_STORE)
    if image.width is not None and image.height is not None:
        headers["X-Image-Width"] = str(image.width)
        headers["X-Image-Height"] = str(image.height)
    return Response(content=image.data, media_type=image.media_type, headers=headers)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})
