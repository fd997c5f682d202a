"""Tests for editing controls and preview rendering."""

import pytest
from PIL import ImageChops

from conftest import make_image
from dps.errors import InputValidationError
from dps.project import VideoEditingConfig
from dps.video_editing import FILTER_PRESETS, apply_editing, css_filter, trim_window, update_config


@pytest.fixture
def config():
    return VideoEditingConfig()


class TestUpdateConfig:
    @pytest.mark.parametrize(
        "field, value, expected",
        [
            ("brightness", 300, 150),
            ("contrast", 10, 50),
            ("saturation", -5, 0),
            ("font_size", 200, 96),
            ("playback_speed", 5, 2.0),
            ("playback_speed", 0.1, 0.25),
        ],
    )
    def test_numeric_values_clamped(self, config, field, value, expected):
        assert getattr(update_config(config, **{field: value}), field) == expected

    def test_returns_new_config(self, config):
        updated = update_config(config, filter="cinematic", text_overlay="Mirror finish")
        assert updated.filter == "cinematic"
        assert config.filter == "none"

    @pytest.mark.parametrize(
        "changes",
        [
            {"filter": "vhs"},
            {"text_position": "left"},
            {"text_color": "white"},
            {"volume": 3},
        ],
    )
    def test_invalid_changes_rejected(self, config, changes):
        with pytest.raises(InputValidationError):
            update_config(config, **changes)

    def test_short_hex_colour_accepted(self, config):
        assert update_config(config, text_color="#fc0").text_color == "#fc0"

    def test_trim_handles_keep_minimum_gap(self, config):
        updated = update_config(config, trim_start=99)
        assert (updated.trim_start, updated.trim_end) == (95, 100)
        updated = update_config(updated, trim_end=10)
        assert updated.trim_end == 100

    def test_trim_window_can_shrink(self, config):
        updated = update_config(config, trim_start=20, trim_end=60)
        assert (updated.trim_start, updated.trim_end) == (20, 60)


class TestTrimWindow:
    def test_seconds(self):
        config = VideoEditingConfig(trim_start=10, trim_end=90)
        assert trim_window(config, 8.0) == pytest.approx((0.8, 7.2))

    def test_unknown_duration(self, config):
        assert trim_window(config, 0) == (0.0, 0.0)


class TestCssFilter:
    def test_default(self, config):
        assert css_filter(config) == "brightness(100%) contrast(100%) saturate(100%)"

    def test_preset_chain_precedes_manual_adjustments(self):
        config = VideoEditingConfig(filter="golden", brightness=120)
        assert css_filter(config) == (
            "sepia(0.3) brightness(1.1) saturate(1.4) hue-rotate(-10deg) "
            "brightness(120%) contrast(100%) saturate(100%)"
        )


class TestApplyEditing:
    def test_neutral_config_leaves_frame_unchanged(self, config):
        frame = make_image((90, 120, 150))
        assert ImageChops.difference(apply_editing(frame, config), frame).getbbox() is None

    def test_grayscale(self):
        out = apply_editing(make_image((200, 30, 30)), VideoEditingConfig(filter="grayscale"))
        r, g, b = out.getpixel((5, 5))
        assert r == g == b

    def test_cool_shifts_red_towards_cyan(self):
        out = apply_editing(make_image((255, 0, 0)), VideoEditingConfig(filter="cool"))
        r, g, b = out.getpixel((5, 5))
        assert b > r and g > r

    @pytest.mark.parametrize("name", sorted(FILTER_PRESETS))
    def test_every_preset_renders(self, name):
        frame = make_image((80, 140, 60), size=(32, 32))
        out = apply_editing(frame, VideoEditingConfig(filter=name))
        assert out.size == frame.size and out.mode == "RGB"

    def test_text_overlay_drawn_in_requested_band(self):
        frame = make_image((50, 50, 50), size=(200, 200))
        plain = apply_editing(frame, VideoEditingConfig())
        titled = apply_editing(frame, VideoEditingConfig(text_overlay="wow", text_position="top", font_size=24))

        bbox = ImageChops.difference(plain, titled).getbbox()
        assert bbox is not None
        assert bbox[3] <= 100

    def test_blank_overlay_ignored(self):
        frame = make_image((50, 50, 50))
        plain = apply_editing(frame, VideoEditingConfig())
        blank = apply_editing(frame, VideoEditingConfig(text_overlay="   "))
        assert ImageChops.difference(plain, blank).getbbox() is None
