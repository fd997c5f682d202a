"""Tests for upload validation, compression and enhancement."""

import pytest
from PIL import Image, ImageStat

from conftest import make_data_url, make_image
from dps.errors import ImageLoadError, InputValidationError
from dps.image_processing import (
    ImageProcessor,
    bytes_to_data_url,
    data_url_to_bytes,
    data_url_to_image,
    fit_dimensions,
    validate_upload,
)


@pytest.fixture
def processor():
    return ImageProcessor()


class TestDataUrls:
    def test_round_trip_bytes(self):
        url = bytes_to_data_url(b"\x89PNG", "image/png")
        assert data_url_to_bytes(url) == (b"\x89PNG", "image/png")

    def test_bare_base64_treated_as_jpeg(self):
        assert data_url_to_bytes("AAEC") == (b"\x00\x01\x02", "image/jpeg")

    def test_invalid_payload(self):
        with pytest.raises(ImageLoadError):
            data_url_to_bytes("data:image/jpeg;base64,@@@")

    def test_undecodable_image(self):
        with pytest.raises(ImageLoadError):
            data_url_to_image(bytes_to_data_url(b"not an image"))


class TestValidateUpload:
    def test_accepts_image(self, tmp_path):
        path = tmp_path / "car.png"
        make_image().save(path)
        validate_upload(str(path))

    def test_rejects_non_image(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hi")
        with pytest.raises(InputValidationError, match="notes.txt: Not an image file"):
            validate_upload(str(path))

    def test_rejects_large_file(self, tmp_path):
        path = tmp_path / "huge.jpg"
        path.write_bytes(b"0" * 2048)
        with pytest.raises(InputValidationError, match="File too large"):
            validate_upload(str(path), max_bytes=1024)


class TestFitDimensions:
    @pytest.mark.parametrize(
        "size, expected",
        [
            ((800, 600), (800, 600)),
            ((3840, 2160), (1920, 1080)),
            ((1920, 9000), (1847, 8660)),
        ],
    )
    def test_caps(self, size, expected):
        assert fit_dimensions(*size) == expected

    def test_pixel_cap_respected(self):
        width, height = fit_dimensions(1920, 20000)
        assert width * height <= 16_000_000


class TestProcessor:
    def test_compress_downscales_wide_images(self, processor, tmp_path):
        path = tmp_path / "wide.png"
        make_image(size=(4000, 1000)).save(path)

        url = processor.compress_image(str(path))

        assert url.startswith("data:image/jpeg;base64,")
        assert data_url_to_image(url).size == (1920, 480)

    def test_compress_missing_file(self, processor, tmp_path):
        with pytest.raises(ImageLoadError):
            processor.compress_image(str(tmp_path / "missing.jpg"))

    def test_enhance_brightens_and_keeps_size(self, processor):
        source = make_data_url((100, 100, 100), size=(40, 30))

        enhanced = data_url_to_image(processor.enhance_image(source))

        assert enhanced.size == (40, 30)
        assert ImageStat.Stat(enhanced).mean[0] > 100

    def test_enhance_converts_rgba(self):
        rgba = Image.new("RGBA", (10, 10), (10, 200, 30, 128))
        assert ImageProcessor.enhance(rgba).mode == "RGB"

    def test_avatar_is_bounded(self, processor):
        avatar = data_url_to_image(processor.make_avatar(make_data_url(size=(1000, 500))))
        assert avatar.size == (256, 128)

    def test_thumbnail_cached(self, processor):
        url = make_data_url(size=(400, 300))
        first = processor.get_cached_thumbnail(url, (100, 100))
        assert first.size == (100, 75)
        assert processor.get_cached_thumbnail(url, (100, 100)) is first
