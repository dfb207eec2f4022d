"""
Unit tests for image normalization
Tests pixel budget, even dimensions, EXIF orientation and the shrink loop
"""
import io

import pytest
from PIL import Image

from factories import encode_image, make_noise_png
from roomstage.core.errors import ErrorCode, StagingError
from roomstage.services import image_normalization_service
from roomstage.services.image_normalization_service import (
    MAX_PIXELS,
    ImageBuffer,
    compute_target_size,
    normalize_image,
)


def _decode(buffer: ImageBuffer) -> Image.Image:
    return Image.open(io.BytesIO(buffer.data))


class TestTargetSize:
    """Tests for the target dimension rule"""

    @pytest.mark.unit
    def test_large_photo_scaled_into_pixel_budget(self):
        """Test that a 12MP photo is scaled by sqrt(budget/pixels) and made even"""
        width, height = compute_target_size(4000, 3000)

        assert (width, height) == (3546, 2660)
        assert width * height <= MAX_PIXELS

    @pytest.mark.unit
    def test_small_photo_not_upscaled(self):
        assert compute_target_size(640, 480) == (640, 480)

    @pytest.mark.unit
    def test_odd_dimensions_forced_even(self):
        assert compute_target_size(101, 51) == (100, 50)

    @pytest.mark.unit
    def test_minimum_dimension_is_two(self):
        assert compute_target_size(1, 1) == (2, 2)


class TestNormalizeImage:
    """Tests for normalize_image()"""

    @pytest.mark.unit
    def test_jpeg_becomes_png(self):
        """Test that any input is re-encoded as PNG with dimensions read back"""
        raw = encode_image(Image.new("RGB", (300, 200), (180, 160, 140)), "JPEG")

        result = normalize_image(raw)

        assert result.format == "PNG"
        assert result.data.startswith(b"\x89PNG")
        assert (result.width, result.height) == (300, 200)
        assert _decode(result).size == (300, 200)

    @pytest.mark.unit
    def test_large_jpeg_within_bounds(self):
        """Test that a 4000x3000 phone photo lands within the pixel budget with even sides"""
        raw = encode_image(Image.new("RGB", (4000, 3000), (200, 180, 160)), "JPEG")

        result = normalize_image(raw)

        assert result.width * result.height <= MAX_PIXELS
        assert result.width % 2 == 0
        assert result.height % 2 == 0
        assert abs(result.width / result.height - 4 / 3) < 0.01

    @pytest.mark.unit
    def test_exif_orientation_applied_before_sizing(self):
        """Test that an EXIF 'rotate 90' photo comes out portrait"""
        exif = Image.Exif()
        exif[0x0112] = 6
        raw = encode_image(Image.new("RGB", (200, 100), (10, 120, 200)), "JPEG", exif=exif.tobytes())

        result = normalize_image(raw)

        assert (result.width, result.height) == (100, 200)

    @pytest.mark.unit
    def test_odd_dimensions_output_even(self):
        raw = encode_image(Image.new("RGB", (333, 211), (90, 90, 90)))

        result = normalize_image(raw)

        assert (result.width, result.height) == (332, 210)

    @pytest.mark.unit
    def test_palette_with_transparency_keeps_alpha(self):
        img = Image.new("P", (64, 64), 0)
        img.info["transparency"] = 0
        raw = encode_image(img)

        result = normalize_image(raw)

        assert _decode(result).mode == "RGBA"

    @pytest.mark.unit
    def test_cmyk_converted_to_rgb(self):
        raw = encode_image(Image.new("CMYK", (64, 64), (0, 50, 100, 0)), "JPEG")

        result = normalize_image(raw)

        assert _decode(result).mode == "RGB"

    @pytest.mark.unit
    def test_sixteen_bit_converted_to_rgb(self):
        raw = encode_image(Image.new("I;16", (64, 64), 30000))

        result = normalize_image(raw)

        assert _decode(result).mode == "RGB"

    @pytest.mark.unit
    def test_undecodable_input_raises(self):
        with pytest.raises(StagingError) as exc_info:
            normalize_image(b"definitely not an image")

        assert exc_info.value.code == ErrorCode.IMAGE_NORMALIZATION_FAILED


class TestShrinkLoop:
    """Tests for the byte budget shrink loop"""

    @pytest.mark.unit
    def test_shrink_loop_is_bounded(self, monkeypatch):
        """Test that an image that never fits stops after three 0.85x shrinks"""
        monkeypatch.setattr(image_normalization_service, "MAX_BYTES", 50_000)
        raw = make_noise_png((400, 400))

        result = normalize_image(raw)

        # 400 -> 340 -> 288 -> 244
        assert (result.width, result.height) == (244, 244)
        assert len(result.data) >= 50_000

    @pytest.mark.unit
    def test_each_shrink_attempt_is_smaller(self, monkeypatch):
        """Test that every re-encoding is strictly smaller and retries stop at three"""
        monkeypatch.setattr(image_normalization_service, "MAX_BYTES", 50_000)
        real_encode = image_normalization_service._encode_png
        sizes = []

        def recording_encode(img, size, compress_level):
            data = real_encode(img, size, compress_level)
            sizes.append(len(data))
            return data

        monkeypatch.setattr(image_normalization_service, "_encode_png", recording_encode)

        result = normalize_image(make_noise_png((400, 400)))

        assert len(sizes) == 1 + image_normalization_service.MAX_SHRINK_ATTEMPTS
        assert all(later < earlier for earlier, later in zip(sizes, sizes[1:]))
        assert len(result.data) == sizes[-1]

    @pytest.mark.unit
    def test_shrink_stops_once_under_budget(self, monkeypatch):
        monkeypatch.setattr(image_normalization_service, "MAX_BYTES", 400_000)
        raw = make_noise_png((400, 400))

        result = normalize_image(raw)

        assert (result.width, result.height) == (340, 340)
        assert len(result.data) < 400_000


class TestImageBuffer:
    @pytest.mark.unit
    def test_from_bytes_reads_dimensions(self, room_png):
        buffer = ImageBuffer.from_bytes(room_png)

        assert (buffer.width, buffer.height) == (320, 240)
        assert buffer.pixels == 320 * 240
