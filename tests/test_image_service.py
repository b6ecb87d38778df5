import io

import pytest
from PIL import Image, features

from app.services.image_service import render_image, resize_image
from app.services.image_source import ImageSource
from app.services.params import parse_transform_request

needs_avif = pytest.mark.skipif(not features.check("avif"), reason="Pillow built without AVIF")


def _render(data: bytes, filename: str = "test.png", accept: str = "", **params):
    request = parse_transform_request(**params)
    return render_image(ImageSource.from_upload(data, filename), request, accept)


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestPassthrough:
    def test_returns_original_bytes(self, make_image):
        """无参数时原样返回"""
        data = make_image(800, 600, "PNG")
        out = _render(data)
        assert out.data == data
        assert out.media_type == "image/png"
        assert out.width is None

    def test_reads_file_from_disk(self, tmp_path, make_image):
        path = tmp_path / "photo.jpeg"
        path.write_bytes(make_image(30, 20, "JPEG"))
        request = parse_transform_request()
        out = render_image(ImageSource.from_path(path), request)
        assert out.data == path.read_bytes()
        assert out.media_type == "image/jpeg"

    def test_unknown_extension_falls_back(self, make_image):
        out = _render(make_image(10, 10), filename="blob")
        assert out.media_type == "application/octet-stream"


class TestResize:
    @pytest.mark.parametrize("width, height", [(50, 50), (100, 20), (30, 90), (400, 300)])
    def test_cover_and_contain_fill_the_box(self, make_image, width, height):
        data = make_image(200, 100)
        for fit in ("cover", "contain"):
            out = _render(data, width=str(width), height=str(height), fit=fit, format="png")
            assert (out.width, out.height) == (width, height)

    @pytest.mark.parametrize("width, height", [(50, 50), (100, 20), (30, 90), (400, 300)])
    def test_inside_stays_within_box(self, make_image, width, height):
        out = _render(make_image(200, 100), width=str(width), height=str(height), fit="inside")
        assert out.width <= width and out.height <= height
        assert out.width == width or out.height == height

    @pytest.mark.parametrize("width, height", [(50, 50), (100, 20), (30, 90), (400, 300)])
    def test_outside_covers_box(self, make_image, width, height):
        out = _render(make_image(200, 100), width=str(width), height=str(height), fit="outside")
        assert out.width >= width and out.height >= height
        assert out.width == width or out.height == height

    def test_width_only_keeps_aspect_ratio(self, make_image):
        out = _render(make_image(2000, 1000), width="500")
        assert (out.width, out.height) == (500, 250)

    def test_height_only_keeps_aspect_ratio(self, make_image):
        out = _render(make_image(2000, 1000), height="250")
        assert (out.width, out.height) == (500, 250)

    def test_upscale_by_default(self, make_image):
        out = _render(make_image(100, 50), width="400", height="400")
        assert (out.width, out.height) == (400, 400)

    @pytest.mark.parametrize("fit", ["cover", "contain", "inside", "outside"])
    def test_without_enlargement_never_upsamples(self, make_image, fit):
        """withoutEnlargement 时小图不放大"""
        out = _render(
            make_image(100, 50), width="400", height="400", fit=fit, without_enlargement="true"
        )
        assert out.width <= 100 and out.height <= 50

    def test_without_enlargement_still_downscales(self, make_image):
        out = _render(make_image(2000, 1000), width="500", without_enlargement="1")
        assert (out.width, out.height) == (500, 250)

    def test_no_resize_without_dimensions(self, make_image):
        """只有 quality / format / transforms 时不缩放"""
        out = _render(make_image(120, 80), quality="50", transforms='[["blur", 1]]')
        assert (out.width, out.height) == (120, 80)

    def test_resize_image_rejects_unknown_fit(self):
        with pytest.raises(ValueError, match="Unknown fit mode"):
            resize_image(Image.new("RGB", (4, 4)), width=2, fit="stretch")


class TestAutoOrientation:
    def test_applied_by_default(self, make_image):
        data = make_image(40, 20, "JPEG", orientation=6)
        out = _render(data, filename="photo.jpg", format="png")
        assert (out.width, out.height) == (20, 40)

    def test_applied_with_other_transforms(self, make_image):
        data = make_image(40, 20, "JPEG", orientation=6)
        out = _render(data, filename="photo.jpg", transforms='[["blur", 5]]')
        assert (out.width, out.height) == (20, 40)

    def test_skipped_when_rotate_requested(self, make_image):
        """显式 rotate 时不再自动旋转，避免转两次"""
        data = make_image(40, 20, "JPEG", orientation=6)
        out = _render(data, filename="photo.jpg", transforms='[["rotate", 90]]')
        assert (out.width, out.height) == (20, 40)

    def test_output_drops_orientation_tag(self, make_image):
        data = make_image(40, 20, "JPEG", orientation=6)
        out = _render(data, filename="photo.jpg", format="jpg")
        assert _open(out.data).getexif().get(0x0112) is None


class TestEncode:
    def test_default_format_is_jpeg(self, make_image):
        out = _render(make_image(100, 100, "PNG"), width="50")
        assert out.media_type == "image/jpeg"
        assert _open(out.data).format == "JPEG"

    @pytest.mark.parametrize(
        "fmt, pil_format, media_type",
        [
            ("jpg", "JPEG", "image/jpeg"),
            ("jpeg", "JPEG", "image/jpeg"),
            ("png", "PNG", "image/png"),
            ("webp", "WEBP", "image/webp"),
            ("tiff", "TIFF", "image/tiff"),
        ],
    )
    def test_format_conversion(self, make_image, fmt, pil_format, media_type):
        out = _render(make_image(100, 100, "PNG"), format=fmt)
        assert out.media_type == media_type
        assert _open(out.data).format == pil_format

    @needs_avif
    def test_avif(self, make_image):
        out = _render(make_image(64, 64, "PNG"), format="avif")
        assert out.media_type == "image/avif"
        assert _open(out.data).format == "AVIF"

    def test_auto_uses_accept_header(self, make_image):
        out = _render(make_image(64, 64), format="auto", accept="image/webp,image/*")
        assert out.media_type == "image/webp"

    def test_jpeg_quality(self, make_image):
        """低 quality 生成更小的文件"""
        data = make_image(500, 500)
        out_high = _render(data, format="jpg", quality="95")
        out_low = _render(data, format="jpg", quality="10")
        assert len(out_low.data) < len(out_high.data)

    def test_rgba_to_jpeg(self, make_image):
        """RGBA 图片转 JPEG 时自动转 RGB"""
        out = _render(make_image(100, 100, "PNG", mode="RGBA"), format="jpg")
        result = _open(out.data)
        assert result.mode == "RGB"
        assert result.format == "JPEG"

    def test_rgba_to_webp_keeps_alpha(self, make_image):
        out = _render(make_image(100, 100, "PNG", mode="RGBA", color=(255, 0, 0, 0)), format="webp")
        assert _open(out.data).mode == "RGBA"

    def test_palette_png(self, make_image):
        out = _render(make_image(40, 40, "PNG", mode="P"), width="20", format="webp")
        assert (out.width, out.height) == (20, 20)

    def test_grayscale_to_webp(self, make_image):
        out = _render(make_image(40, 40), format="webp", transforms='[["grayscale"]]')
        assert _open(out.data).format == "WEBP"

    def test_source_is_not_modified(self, tmp_path, make_image):
        path = tmp_path / "photo.png"
        path.write_bytes(make_image(60, 40))
        before = path.read_bytes()
        request = parse_transform_request(width="10", transforms='[["negate"]]')
        render_image(ImageSource.from_path(path), request)
        assert path.read_bytes() == before


class TestFailures:
    def test_invalid_operation_arguments(self, make_image):
        with pytest.raises(ValueError, match="Invalid arguments for blur"):
            _render(make_image(10, 10), transforms='[["blur", "lots"]]')

    def test_undecodable_input(self):
        with pytest.raises(OSError):
            _render(b"definitely not an image", width="10")
