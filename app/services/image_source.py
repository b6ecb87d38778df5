import io
import logging
import random
from dataclasses import dataclass
from pathlib import Path, PurePath

from PIL import Image

from app.utils.mime import mime_for_filename

logger = logging.getLogger(__name__)

INPUT_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".webp", ".tif", ".tiff", ".avif", ".gif", ".heic", ".heif"}
)


def is_supported_filename(filename: str | None) -> bool:
    if not filename:
        return False
    return PurePath(filename).suffix.lower() in INPUT_EXTENSIONS


def collect_images(root: Path) -> list[Path]:
    """递归收集 root 下所有支持的图片文件，目录不存在时返回空列表（每次请求重新扫描）"""
    root = Path(root)
    if not root.is_dir():
        return []
    return [path for path in root.rglob("*") if path.is_file() and path.suffix.lower() in INPUT_EXTENSIONS]


def pick_random_image(images: list[Path]) -> Path:
    return random.choice(images)


@dataclass(frozen=True)
class ImageSource:
    """Either a file on disk or an uploaded buffer."""

    path: Path | None = None
    data: bytes | None = None
    filename: str | None = None

    @classmethod
    def from_path(cls, path: Path) -> "ImageSource":
        return cls(path=Path(path), filename=Path(path).name)

    @classmethod
    def from_upload(cls, data: bytes, filename: str | None = None) -> "ImageSource":
        return cls(data=data, filename=filename)

    @property
    def mime_type(self) -> str:
        return mime_for_filename(self.filename)

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        return self.path.read_bytes()

    def open(self) -> Image.Image:
        if self.data is not None:
            return Image.open(io.BytesIO(self.data))
        logger.debug(f"Opening {self.path}")
        return Image.open(self.path)
