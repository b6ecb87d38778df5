"""
Query parameter validation.

All parameters arrive as raw strings. ``parse_transform_request`` checks them
in a fixed order and raises ``InvalidParameterError`` for the first one that
is malformed, naming the offending field.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from app.services.errors import InvalidParameterError
from app.services.operations import Operation, is_known_operation

FIT_VALUES = ("cover", "contain", "inside", "outside")
OUTPUT_FORMATS = ("auto", "jpg", "jpeg", "png", "webp", "tiff", "avif")

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class TransformRequest:
    width: int | None = None
    height: int | None = None
    quality: int | None = None
    fit: str = "cover"
    without_enlargement: bool = False
    # None 表示未显式指定格式，与 "auto" 区分
    output_format: str | None = None
    # None 表示未传 transforms；[] 是显式的空列表，仍需处理
    operations: tuple[Operation, ...] | None = None

    @property
    def is_passthrough(self) -> bool:
        """无任何处理参数时直接返回原图"""
        return (
            self.width is None
            and self.height is None
            and self.quality is None
            and self.output_format is None
            and self.operations is None
        )

    @property
    def has_resize(self) -> bool:
        return self.width is not None or self.height is not None

    @property
    def has_rotate(self) -> bool:
        return any(op.name == "rotate" for op in self.operations or ())


def _parse_int(value: str) -> int | None:
    value = value.strip()
    if not _INTEGER_RE.fullmatch(value):
        return None
    return int(value)


def parse_positive_int(value: str | None, name: str) -> int | None:
    if value is None:
        return None
    number = _parse_int(value)
    if number is None or number <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer")
    return number


def parse_quality(value: str | None) -> int | None:
    if value is None:
        return None
    number = _parse_int(value)
    if number is None or not 1 <= number <= 100:
        raise InvalidParameterError("quality must be an integer between 1 and 100")
    return number


def parse_flag(value: str | None) -> bool:
    # 只认 "true" / "1"，其余一律为 False，不报错
    return value in ("true", "1")


def parse_fit(value: str | None) -> str:
    if value is None:
        return "cover"
    fit = value.lower()
    if fit not in FIT_VALUES:
        raise InvalidParameterError(f"fit must be one of {', '.join(FIT_VALUES)}")
    return fit


def parse_output_format(value: str | None) -> str | None:
    if not value:
        return None
    fmt = value.lower()
    if fmt not in OUTPUT_FORMATS:
        raise InvalidParameterError(f"format must be one of {', '.join(OUTPUT_FORMATS)}")
    return "jpg" if fmt == "jpeg" else fmt


def parse_operations(value: str | list | None) -> tuple[Operation, ...] | None:
    """Decode the ``transforms`` parameter into an ordered tuple of operations.

    Accepts either an already decoded list or a JSON string such as
    ``[["rotate", 90], ["blur", 5]]``.
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidParameterError(f"Invalid transforms parameter: {e}") from e

    if not isinstance(value, list):
        raise InvalidParameterError("Invalid transforms parameter: transforms must be an array")

    return tuple(_parse_operation(item) for item in value)


def _parse_operation(item: Any) -> Operation:
    if not isinstance(item, list) or not item:
        raise InvalidParameterError("Each transform must be a non-empty array [operation, ...args]")

    name, *args = item
    if not isinstance(name, str):
        raise InvalidParameterError("Transform operation name must be a string")
    if not is_known_operation(name):
        raise InvalidParameterError(f"Invalid image operation: {name}")
    return Operation(name=name, arguments=tuple(args))


def parse_transform_request(
    width: str | None = None,
    height: str | None = None,
    quality: str | None = None,
    fit: str | None = None,
    without_enlargement: str | None = None,
    format: str | None = None,
    transforms: str | list | None = None,
) -> TransformRequest:
    return TransformRequest(
        width=parse_positive_int(width, "width"),
        height=parse_positive_int(height, "height"),
        quality=parse_quality(quality),
        fit=parse_fit(fit),
        without_enlargement=parse_flag(without_enlargement),
        output_format=parse_output_format(format),
        operations=parse_operations(transforms),
    )
