"""Non-destructive video editing controls and Pillow preview rendering."""
from __future__ import annotations

import re
from dataclasses import fields, replace
from typing import Dict, List, Tuple

from PIL import Image, ImageDraw, ImageEnhance, ImageFont, ImageOps

from .errors import InputValidationError
from .project import VideoEditingConfig

Adjustment = Tuple[str, float]

FILTER_PRESETS: Dict[str, Tuple[Adjustment, ...]] = {
    "none": (),
    "cinematic": (("contrast", 1.2), ("brightness", 0.9), ("saturate", 1.1)),
    "grayscale": (("grayscale", 1.0),),
    "high_gloss": (("contrast", 1.4), ("brightness", 1.1), ("saturate", 1.5)),
    "golden": (("sepia", 0.3), ("brightness", 1.1), ("saturate", 1.4), ("hue_rotate", -10)),
    "cool": (("hue_rotate", 180), ("saturate", 0.8), ("brightness", 1.1)),
}

TEXT_POSITIONS = ("top", "middle", "bottom")
MIN_TRIM_GAP = 5
PERCENT_RANGES = {
    "brightness": (50, 150),
    "contrast": (50, 150),
    "saturation": (0, 200),
}
FONT_SIZE_RANGE = (12, 96)
SPEED_RANGE = (0.25, 2.0)

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")
_SEPIA_MATRIX = (
    0.393, 0.769, 0.189, 0,
    0.349, 0.686, 0.168, 0,
    0.272, 0.534, 0.131, 0,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ----------------------------------------------------------------------
# Config updates
# ----------------------------------------------------------------------
def update_config(config: VideoEditingConfig, **changes) -> VideoEditingConfig:
    """Return a copy of ``config`` with validated and clamped changes applied.

    Numeric controls are clamped to their slider ranges. The trim window
    always stays at least ``MIN_TRIM_GAP`` percent wide: moving one handle
    stops short of the other.
    """
    known = {f.name for f in fields(VideoEditingConfig)}
    unknown = set(changes) - known
    if unknown:
        raise InputValidationError(f"Unknown editing option(s): {', '.join(sorted(unknown))}")

    values = {}
    for name, value in changes.items():
        if name == "filter":
            if value not in FILTER_PRESETS:
                raise InputValidationError(f"Unknown filter: {value}")
        elif name == "text_position":
            if value not in TEXT_POSITIONS:
                raise InputValidationError(f"Unknown text position: {value}")
        elif name == "text_color":
            if not isinstance(value, str) or not _COLOR_RE.match(value):
                raise InputValidationError(f"Invalid color: {value}")
        elif name == "text_overlay":
            value = str(value)
        elif name in PERCENT_RANGES:
            value = int(_clamp(int(value), *PERCENT_RANGES[name]))
        elif name == "font_size":
            value = int(_clamp(int(value), *FONT_SIZE_RANGE))
        elif name == "playback_speed":
            value = float(_clamp(float(value), *SPEED_RANGE))
        elif name in ("text_background", "is_muted"):
            value = bool(value)
        values[name] = value

    trim_start = values.pop("trim_start", None)
    trim_end = values.pop("trim_end", None)
    updated = replace(config, **values)

    if trim_start is not None:
        start = int(_clamp(int(trim_start), 0, 100))
        updated = replace(updated, trim_start=min(start, updated.trim_end - MIN_TRIM_GAP))
    if trim_end is not None:
        end = int(_clamp(int(trim_end), 0, 100))
        updated = replace(updated, trim_end=max(end, updated.trim_start + MIN_TRIM_GAP))
    return updated


def trim_window(config: VideoEditingConfig, duration: float) -> Tuple[float, float]:
    """Convert the percentage trim window into (start, end) seconds."""
    if duration <= 0:
        return 0.0, 0.0
    return duration * config.trim_start / 100.0, duration * config.trim_end / 100.0


def css_filter(config: VideoEditingConfig) -> str:
    """Describe the adjustment chain as a CSS filter string (used in exports)."""
    parts: List[str] = []
    for op, amount in FILTER_PRESETS.get(config.filter, ()):
        if op == "hue_rotate":
            parts.append(f"hue-rotate({amount:g}deg)")
        else:
            parts.append(f"{op}({amount:g})")
    parts.append(
        f"brightness({config.brightness}%) contrast({config.contrast}%) saturate({config.saturation}%)"
    )
    return " ".join(parts)


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------
def _hue_rotate(img: Image.Image, degrees: float) -> Image.Image:
    shift = int(round(degrees / 360.0 * 256)) % 256
    h, s, v = img.convert("HSV").split()
    h = h.point(lambda x: (x + shift) % 256)
    return Image.merge("HSV", (h, s, v)).convert("RGB")


def _sepia(img: Image.Image, amount: float) -> Image.Image:
    toned = img.convert("RGB", _SEPIA_MATRIX)
    return Image.blend(img, toned, _clamp(amount, 0.0, 1.0))


def _apply_adjustment(img: Image.Image, op: str, amount: float) -> Image.Image:
    if op == "brightness":
        return ImageEnhance.Brightness(img).enhance(amount)
    if op == "contrast":
        return ImageEnhance.Contrast(img).enhance(amount)
    if op == "saturate":
        return ImageEnhance.Color(img).enhance(amount)
    if op == "grayscale":
        return ImageOps.grayscale(img).convert("RGB")
    if op == "sepia":
        return _sepia(img, amount)
    if op == "hue_rotate":
        return _hue_rotate(img, amount)
    raise ValueError(f"Unknown adjustment: {op}")


def _draw_text_overlay(img: Image.Image, config: VideoEditingConfig) -> Image.Image:
    text = config.text_overlay.strip().upper()
    if not text:
        return img

    canvas = img.convert("RGBA")
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default(size=config.font_size)

    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    text_w, text_h = right - left, bottom - top
    padding = max(4, config.font_size // 4)
    x = (canvas.width - text_w) // 2
    margin = canvas.height // 10
    if config.text_position == "top":
        y = margin
    elif config.text_position == "middle":
        y = (canvas.height - text_h) // 2
    else:
        y = canvas.height - margin - text_h

    if config.text_background:
        draw.rectangle(
            (x - padding, y - padding, x + text_w + padding, y + text_h + padding),
            fill=(0, 0, 0, 128),
        )
    draw.text((x - left, y - top), text, font=font, fill=config.text_color)
    return Image.alpha_composite(canvas, overlay).convert("RGB")


def apply_editing(frame: Image.Image, config: VideoEditingConfig) -> Image.Image:
    """Render a preview frame: preset chain, manual adjustments, then text."""
    img = frame.convert("RGB")
    for op, amount in FILTER_PRESETS.get(config.filter, ()):
        img = _apply_adjustment(img, op, amount)
    img = _apply_adjustment(img, "brightness", config.brightness / 100.0)
    img = _apply_adjustment(img, "contrast", config.contrast / 100.0)
    img = _apply_adjustment(img, "saturate", config.saturation / 100.0)
    return _draw_text_overlay(img, config)
