import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageFile, ImageOps

from app.services.format_negotiator import negotiate_format
from app.services.image_source import ImageSource
from app.services.operations import apply_operation
from app.services.params import TransformRequest
from app.utils.mime import mime_for_format

logger = logging.getLogger(__name__)

# 容错解码：截断/轻微损坏的图片尽量解码而不是直接失败
ImageFile.LOAD_TRUNCATED_IMAGES = True

# 输出格式 -> (Pillow 格式名, 编码器支持的模式, 是否支持 quality)
_ENCODERS: dict[str, tuple[str, tuple[str, ...], bool]] = {
    "jpg": ("JPEG", ("L", "RGB", "CMYK"), True),
    "png": ("PNG", ("1", "L", "LA", "P", "RGB", "RGBA"), False),
    "webp": ("WEBP", ("RGB", "RGBA"), True),
    "tiff": ("TIFF", ("1", "L", "LA", "P", "RGB", "RGBA", "CMYK"), False),
    "avif": ("AVIF", ("RGB", "RGBA"), True),
}


@dataclass(frozen=True)
class RenderedImage:
    data: bytes
    media_type: str
    width: int | None = None
    height: int | None = None


def render_image(source: ImageSource, request: TransformRequest, accept: str = "") -> RenderedImage:
    """
    Run the transform pipeline over ``source``.

    Order: auto-orient (skipped when a ``rotate`` operation is present),
    resize (only when a dimension was requested), custom operations in list
    order, encode. A pass-through request returns the original bytes.
    """
    if request.is_passthrough:
        return RenderedImage(data=source.read_bytes(), media_type=source.mime_type)

    out_format = negotiate_format(request.output_format, accept)

    with source.open() as img:
        img.load()
        img = _normalize_mode(img)

        if not request.has_rotate:
            img = ImageOps.exif_transpose(img)

        if request.has_resize:
            img = resize_image(
                img,
                width=request.width,
                height=request.height,
                fit=request.fit,
                without_enlargement=request.without_enlargement,
            )

        for op in request.operations or ():
            img = apply_operation(img, op)

        data = encode_image(img, out_format, request.quality)
        logger.debug(f"Rendered {source.filename} -> {out_format} {img.width}x{img.height}")
        return RenderedImage(
            data=data,
            media_type=mime_for_format(out_format),
            width=img.width,
            height=img.height,
        )


def _normalize_mode(img: Image.Image) -> Image.Image:
    """调色板、1 位、CMYK、16 位等模式统一转成 L/LA/RGB/RGBA"""
    if img.mode in ("L", "LA", "RGB", "RGBA"):
        return img
    if img.mode in ("PA", "La", "RGBa") or "transparency" in img.info:
        return img.convert("RGBA")
    if img.mode == "1":
        return img.convert("L")
    return img.convert("RGB")


def _target_size(img: Image.Image, width: int | None, height: int | None) -> tuple[int, int]:
    # 只给一个维度时按原图宽高比推算另一个
    if width is None:
        width = max(1, round(img.width * height / img.height))
    if height is None:
        height = max(1, round(img.height * width / img.width))
    return width, height


def resize_image(
    img: Image.Image,
    width: int | None = None,
    height: int | None = None,
    fit: str = "cover",
    without_enlargement: bool = False,
) -> Image.Image:
    """
    Scale ``img`` into a width x height box according to ``fit``.

    cover crops to fill the box, contain letterboxes, inside fits within it
    and outside covers it without cropping. With ``without_enlargement`` the
    box is clamped to the source size so nothing is upsampled.
    """
    size = _target_size(img, width, height)
    if without_enlargement:
        size = (min(size[0], img.width), min(size[1], img.height))

    if fit == "cover":
        return ImageOps.fit(img, size, method=Image.LANCZOS)
    if fit == "contain":
        return ImageOps.pad(img, size, method=Image.LANCZOS, color="black")
    if fit == "inside":
        return ImageOps.contain(img, size, method=Image.LANCZOS)
    if fit == "outside":
        return ImageOps.cover(img, size, method=Image.LANCZOS)
    raise ValueError(f"Unknown fit mode: {fit}")


def encode_image(img: Image.Image, out_format: str, quality: int | None = None) -> bytes:
    pil_format, modes, takes_quality = _ENCODERS[out_format]
    if img.mode not in modes:
        has_alpha = img.mode in ("RGBA", "LA")
        img = img.convert("RGBA" if has_alpha and "RGBA" in modes else "RGB")

    save_kwargs: dict = {}
    if quality is not None and takes_quality:
        save_kwargs["quality"] = quality
    if out_format == "jpg":
        save_kwargs["progressive"] = True

    buf = io.BytesIO()
    img.save(buf, format=pil_format, **save_kwargs)
    return buf.getvalue()
