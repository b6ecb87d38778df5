import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.config.config import Settings
from app.main import create_app


def _make_image(
    width: int,
    height: int,
    fmt: str = "PNG",
    mode: str = "RGB",
    color="red",
    orientation: int | None = None,
) -> bytes:
    """生成测试用图片，可选写入 EXIF 方向"""
    img = Image.new(mode, (width, height), color=color)
    buf = io.BytesIO()
    save_kwargs = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        save_kwargs["exif"] = exif.tobytes()
    img.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


@pytest.fixture
def make_image():
    return _make_image


@pytest.fixture
def image_dir(tmp_path):
    root = tmp_path / "images"
    root.mkdir()
    (root / "test.png").write_bytes(_make_image(200, 100))
    return root


@pytest.fixture
def client(image_dir):
    return TestClient(create_app(Settings(image_dir=image_dir)))
