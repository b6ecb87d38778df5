from pathlib import PurePath

DEFAULT_MIME_TYPE = "application/octet-stream"

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "avif": "image/avif",
    "gif": "image/gif",
    "heic": "image/heic",
    "heif": "image/heif",
}


def lookup(name: str) -> str:
    """按扩展名或格式名查找 MIME 类型，未知时返回 application/octet-stream"""
    return _MIME_TYPES.get(name.lower().lstrip("."), DEFAULT_MIME_TYPE)


def mime_for_filename(filename: str | None) -> str:
    if not filename:
        return DEFAULT_MIME_TYPE
    return lookup(PurePath(filename).suffix)


def mime_for_format(fmt: str) -> str:
    return lookup("jpeg" if fmt == "jpg" else fmt)
