"""Tests for the resize engine."""
import io

import pytest
from PIL import Image

from cdn.schemas.file import AudioFile, GenericFile, ImageFile, ResizeRequest, TextFile, VideoFile
from cdn.services.resize import OUTPUT_CONTENT_TYPE, apply_resize, compute_target


class TestComputeTarget:
    def test_size_gives_square_bounded_by_shortest_side(self):
        assert compute_target(200, 300, ResizeRequest(size=100)) == (100, 100)

    def test_size_never_upscales(self):
        assert compute_target(200, 300, ResizeRequest(size=1000)) == (200, 200)

    def test_size_wins_over_everything_else(self):
        request = ResizeRequest(size=50, max_side=10, width=20, height=30)
        assert compute_target(200, 300, request) == (50, 50)

    def test_max_side_on_portrait_clamps_height(self):
        # width is the shorter side, so the bound applies to height
        assert compute_target(200, 400, ResizeRequest(max_side=100)) == (50, 100)

    def test_max_side_on_landscape_clamps_width(self):
        assert compute_target(400, 200, ResizeRequest(max_side=100)) == (100, 50)

    def test_max_side_wins_over_width_and_height(self):
        request = ResizeRequest(max_side=100, width=10, height=10)
        assert compute_target(400, 200, request) == (100, 50)

    def test_width_and_height_clamp_each_axis_independently(self):
        request = ResizeRequest(width=50, height=1000)
        assert compute_target(200, 100, request) == (50, 100)

    def test_width_only_scales_height(self):
        assert compute_target(200, 100, ResizeRequest(width=50)) == (50, 25)

    def test_height_only_scales_width(self):
        assert compute_target(200, 100, ResizeRequest(height=50)) == (100, 50)

    def test_proportional_scaling_truncates(self):
        assert compute_target(300, 200, ResizeRequest(width=100)) == (100, 66)

    def test_no_parameters_means_no_resize(self):
        assert compute_target(200, 100, ResizeRequest()) is None

    def test_deterministic(self):
        request = ResizeRequest(max_side=123, width=7)
        assert compute_target(640, 480, request) == compute_target(640, 480, request)


class TestApplyResize:
    async def test_resizes_image_to_lossless_webp(self, image_bytes):
        data = image_bytes(200, 300)
        out, content_type = await apply_resize(
            data, ImageFile(width=200, height=300), ResizeRequest(size=100)
        )
        assert content_type == OUTPUT_CONTENT_TYPE
        with Image.open(io.BytesIO(out)) as img:
            assert img.format == "WEBP"
            assert img.size == (100, 100)

    async def test_no_request_passes_through(self, image_bytes):
        data = image_bytes(20, 20)
        assert await apply_resize(data, ImageFile(width=20, height=20), None) == (data, None)

    async def test_empty_request_passes_through(self, image_bytes):
        data = image_bytes(20, 20)
        assert await apply_resize(data, ImageFile(width=20, height=20), ResizeRequest()) == (data, None)

    @pytest.mark.parametrize("metadata", [
        GenericFile(),
        TextFile(),
        AudioFile(),
        VideoFile(width=640, height=480),
    ])
    async def test_non_images_are_ignored(self, metadata):
        data = b"not an image"
        assert await apply_resize(data, metadata, ResizeRequest(size=10)) == (data, None)

    async def test_decode_failure_falls_back_to_original(self):
        data = b"\x89PNG\r\n\x1a\n garbage"
        result = await apply_resize(data, ImageFile(width=200, height=300), ResizeRequest(size=100))
        assert result == (data, None)

    async def test_zero_target_falls_back_to_original(self, image_bytes):
        data = image_bytes(1, 100)
        # 1 * (10 / 100) truncates to a zero-pixel width
        result = await apply_resize(data, ImageFile(width=1, height=100), ResizeRequest(height=10))
        assert result == (data, None)
