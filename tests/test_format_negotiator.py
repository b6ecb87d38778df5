import pytest

from app.services.format_negotiator import negotiate_format


class TestNegotiateFormat:
    @pytest.mark.parametrize("fmt", ["jpg", "png", "webp", "tiff", "avif"])
    def test_explicit_format_wins(self, fmt):
        assert negotiate_format(fmt, "image/avif,image/webp") == fmt

    def test_jpeg_normalized(self):
        assert negotiate_format("jpeg", "") == "jpg"

    @pytest.mark.parametrize(
        "accept, expected",
        [
            ("image/avif,image/webp,*/*", "avif"),
            ("IMAGE/AVIF", "avif"),
            ("image/webp,image/*", "webp"),
            ("image/png,*/*;q=0.8", "jpg"),
            ("", "jpg"),
            (None, "jpg"),
        ],
    )
    def test_auto_scans_accept(self, accept, expected):
        assert negotiate_format("auto", accept) == expected

    def test_absent_behaves_like_auto(self):
        assert negotiate_format(None, "image/webp") == "webp"

    def test_quality_values_ignored(self):
        """只做子串匹配，q=0 也算接受"""
        assert negotiate_format("auto", "image/avif;q=0, image/webp") == "avif"
