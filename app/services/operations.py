"""
Named image operations accepted in the ``transforms`` list.

Each handler receives the current image followed by the positional arguments
of the directive and returns a new image. Arguments are checked by pydantic
before the handler runs, so a wrong arity or type never reaches Pillow.

用法::

    image = apply_operation(image, Operation("blur", (5,)))
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated

from PIL import Image, ImageFilter, ImageEnhance, ImageOps
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, validate_call

from app.services.errors import InvalidParameterError

logger = logging.getLogger(__name__)

Handler = Callable[..., Image.Image]

OPERATIONS: dict[str, Handler] = {}

_validated = validate_call(config=ConfigDict(arbitrary_types_allowed=True))

Color = str | tuple[int, int, int] | tuple[int, int, int, int]


@dataclass(frozen=True)
class Operation:
    """One `[name, ...args]` directive from the transforms list."""

    name: str
    arguments: tuple = ()


def _odd(value: int) -> int:
    if value % 2 == 0:
        raise ValueError("size must be an odd number")
    return value


OddSize = Annotated[int, Field(ge=1, le=99), AfterValidator(_odd)]


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RotateOptions(_Options):
    background: Color = "black"


class NegateOptions(_Options):
    alpha: bool = True


class ModulateOptions(_Options):
    brightness: Annotated[float, Field(gt=0)] = 1.0
    saturation: Annotated[float, Field(ge=0)] = 1.0


class Region(_Options):
    left: Annotated[int, Field(ge=0)]
    top: Annotated[int, Field(ge=0)]
    width: Annotated[int, Field(gt=0)]
    height: Annotated[int, Field(gt=0)]


class FlattenOptions(_Options):
    background: Color = "black"


def operation(*names: str):
    """Register a handler under one or more operation names."""

    def register(func: Handler) -> Handler:
        handler = _validated(func)
        for name in names:
            OPERATIONS[name] = handler
        return func

    return register


def is_known_operation(name: str) -> bool:
    return name in OPERATIONS


def apply_operation(img: Image.Image, op: Operation) -> Image.Image:
    handler = OPERATIONS.get(op.name)
    if handler is None:
        raise InvalidParameterError(f"Invalid image operation: {op.name}")
    logger.debug(f"Applying {op.name} with arguments {op.arguments!r}")
    try:
        return handler(img, *op.arguments)
    except ValidationError as e:
        raise InvalidParameterError(
            f"Invalid arguments for {op.name}: {_describe(e)}"
        ) from e


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    return f"{loc}: {first['msg']}" if loc else first["msg"]


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA")


def _color_only(img: Image.Image, func: Callable[[Image.Image], Image.Image]) -> Image.Image:
    """Apply ``func`` to the colour bands and carry the alpha band over untouched."""
    if not _has_alpha(img):
        return func(img)
    alpha = img.getchannel("A")
    result = func(img.convert(img.mode[:-1]))
    if result.mode not in ("RGB", "L"):
        result = result.convert("RGB")
    result.putalpha(alpha)
    return result


@operation("rotate")
def rotate(img: Image.Image, angle: float | None = None, options: RotateOptions | None = None) -> Image.Image:
    # 无角度时按 EXIF 方向旋转
    if angle is None:
        return ImageOps.exif_transpose(img)
    options = options or RotateOptions()
    # Pillow 逆时针旋转，这里约定为顺时针
    return img.rotate(-angle, expand=True, fillcolor=options.background)


@operation("flip")
def flip(img: Image.Image) -> Image.Image:
    return ImageOps.flip(img)


@operation("flop")
def flop(img: Image.Image) -> Image.Image:
    return ImageOps.mirror(img)


@operation("blur")
def blur(img: Image.Image, sigma: Annotated[float, Field(ge=0.3, le=1000)] | None = None) -> Image.Image:
    if sigma is None:
        return img.filter(ImageFilter.BoxBlur(1))
    return img.filter(ImageFilter.GaussianBlur(sigma))


@operation("sharpen")
def sharpen(img: Image.Image, sigma: Annotated[float, Field(ge=0.01, le=10000)] | None = None) -> Image.Image:
    if sigma is None:
        return img.filter(ImageFilter.SHARPEN)
    return img.filter(ImageFilter.UnsharpMask(radius=sigma, percent=150, threshold=3))


@operation("median")
def median(img: Image.Image, size: OddSize = 3) -> Image.Image:
    return img.filter(ImageFilter.MedianFilter(size))


@operation("grayscale", "greyscale")
def grayscale(img: Image.Image, enabled: bool = True) -> Image.Image:
    if not enabled:
        return img
    return img.convert("LA" if _has_alpha(img) else "L")


@operation("negate")
def negate(img: Image.Image, options: NegateOptions | None = None) -> Image.Image:
    options = options or NegateOptions()
    if options.alpha and _has_alpha(img):
        return Image.merge(img.mode, [ImageOps.invert(band) for band in img.split()])
    return _color_only(img, ImageOps.invert)


@operation("normalise", "normalize")
def normalise(img: Image.Image, enabled: bool = True) -> Image.Image:
    if not enabled:
        return img
    return _color_only(img, ImageOps.autocontrast)


@operation("threshold")
def threshold(img: Image.Image, value: Annotated[int, Field(ge=0, le=255)] = 128) -> Image.Image:
    def _threshold(color: Image.Image) -> Image.Image:
        return color.convert("L").point(lambda p: 255 if p >= value else 0)

    return _color_only(img, _threshold)


@operation("gamma")
def adjust_gamma(img: Image.Image, gamma: Annotated[float, Field(ge=1.0, le=3.0)] = 2.2) -> Image.Image:
    table = [round(255 * (i / 255) ** (1 / gamma)) for i in range(256)]
    return _color_only(img, lambda color: color.point(table * len(color.getbands())))


@operation("modulate")
def modulate(img: Image.Image, options: ModulateOptions | None = None) -> Image.Image:
    options = options or ModulateOptions()

    def _modulate(color: Image.Image) -> Image.Image:
        color = ImageEnhance.Brightness(color).enhance(options.brightness)
        if color.mode == "RGB":
            color = ImageEnhance.Color(color).enhance(options.saturation)
        return color

    return _color_only(img, _modulate)


@operation("tint")
def tint(img: Image.Image, color: Color) -> Image.Image:
    def _tint(band: Image.Image) -> Image.Image:
        return ImageOps.colorize(band.convert("L"), black="black", white="white", mid=color)

    return _color_only(img, _tint)


@operation("extract")
def extract(img: Image.Image, region: Region) -> Image.Image:
    right = region.left + region.width
    bottom = region.top + region.height
    if right > img.width or bottom > img.height:
        raise InvalidParameterError(
            f"extract area {region.width}x{region.height}+{region.left}+{region.top} "
            f"is outside the {img.width}x{img.height} image"
        )
    return img.crop((region.left, region.top, right, bottom))


@operation("flatten")
def flatten(img: Image.Image, options: FlattenOptions | None = None) -> Image.Image:
    if not _has_alpha(img):
        return img
    options = options or FlattenOptions()
    rgba = img.convert("RGBA")
    background = Image.new("RGB", img.size, options.background)
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background
