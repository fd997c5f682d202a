"""Image processing helpers for the backend."""
from __future__ import annotations

import base64
import binascii
import hashlib
import math
import mimetypes
import os
import threading
from io import BytesIO
from typing import Dict, Tuple, Union

from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from .constants import (
    AVATAR_SIZE,
    JPEG_QUALITY,
    MAX_CANVAS_PIXELS,
    MAX_IMAGE_WIDTH,
    MAX_UPLOAD_BYTES,
)
from .errors import ImageLoadError, InputValidationError

ImageSource = Union[str, bytes]

BRIGHTNESS_FACTOR = 1.1
CONTRAST_FACTOR = 1.15
SATURATION_FACTOR = 1.2
SHARPEN_KERNEL = ImageFilter.Kernel((3, 3), (0, -1, 0, -1, 5, -1, 0, -1, 0), scale=1)


# ----------------------------------------------------------------------
# Data URL helpers
# ----------------------------------------------------------------------
def is_data_url(reference: str) -> bool:
    return reference.startswith("data:")


def data_url_to_bytes(reference: str) -> Tuple[bytes, str]:
    """Decode a ``data:`` URL into its payload and MIME type.

    Bare base64 strings are accepted too and treated as JPEG.
    """
    mime_type = "image/jpeg"
    payload = reference
    if is_data_url(reference):
        header, _, payload = reference.partition(",")
        mime_type = header[5:].split(";")[0] or mime_type
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as exc:
        raise ImageLoadError(f"Invalid image data: {exc}") from exc


def bytes_to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def image_to_data_url(image: Image.Image, quality: int = JPEG_QUALITY) -> str:
    """Encode a PIL image as a JPEG data URL."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return bytes_to_data_url(buffer.getvalue(), "image/jpeg")


def data_url_to_image(reference: str) -> Image.Image:
    data, _ = data_url_to_bytes(reference)
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"Could not decode image: {exc}") from exc
    return image


# ----------------------------------------------------------------------
# Upload validation and compression
# ----------------------------------------------------------------------
def validate_upload(path: str, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    """Reject files that are not images or are too large to process."""
    name = os.path.basename(path)
    mime_type, _ = mimetypes.guess_type(path)
    if not mime_type or not mime_type.startswith("image/"):
        raise InputValidationError(f"{name}: Not an image file")
    try:
        size = os.path.getsize(path)
    except OSError as exc:
        raise InputValidationError(f"{name}: {exc}") from exc
    if size > max_bytes:
        raise InputValidationError(f"{name}: File too large (max {max_bytes // (1024 * 1024)}MB)")


def fit_dimensions(
    width: int,
    height: int,
    max_width: int = MAX_IMAGE_WIDTH,
    max_pixels: int = MAX_CANVAS_PIXELS,
) -> Tuple[int, int]:
    """Scale dimensions down to the width cap, then to the total pixel cap."""
    w, h = float(width), float(height)
    if w > max_width:
        h = h * max_width / w
        w = float(max_width)
    if w * h > max_pixels:
        scale = math.sqrt(max_pixels / (w * h))
        w = math.floor(w * scale)
        h = math.floor(h * scale)
    return max(1, int(w)), max(1, int(h))


class ImageProcessor:
    """Compress uploads, enhance images and cache thumbnails."""

    def __init__(self, max_width: int = MAX_IMAGE_WIDTH, quality: int = JPEG_QUALITY) -> None:
        self.max_width = max_width
        self.quality = quality
        self._thumbnail_cache: Dict[Tuple[str, Tuple[int, int]], Image.Image] = {}
        self._cache_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Image loading helpers
    # ------------------------------------------------------------------
    @staticmethod
    def load_image(source: ImageSource) -> Image.Image:
        """Load an image from a path, raw bytes or a data URL."""
        try:
            if isinstance(source, bytes):
                img = Image.open(BytesIO(source))
            elif is_data_url(source):
                return data_url_to_image(source)
            else:
                img = Image.open(source)
            img.load()
            return img
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageLoadError(f"Could not load image: {exc}") from exc

    def compress_image(self, source: ImageSource) -> str:
        """Downscale an upload and return it as a JPEG data URL."""
        img = self.load_image(source)
        new_size = fit_dimensions(img.width, img.height, self.max_width)
        if new_size != img.size:
            img = img.resize(new_size, Image.Resampling.LANCZOS)
        return image_to_data_url(img, self.quality)

    def make_avatar(self, source: ImageSource) -> str:
        img = self.load_image(source).convert("RGB")
        img.thumbnail(AVATAR_SIZE, Image.Resampling.LANCZOS)
        return image_to_data_url(img, self.quality)

    # ------------------------------------------------------------------
    # Enhancement
    # ------------------------------------------------------------------
    @staticmethod
    def enhance(img: Image.Image) -> Image.Image:
        """Apply the fixed brightness, contrast, saturation and sharpen pass."""
        rgb = img.convert("RGB")
        rgb = ImageEnhance.Brightness(rgb).enhance(BRIGHTNESS_FACTOR)
        lut = [min(255, max(0, int((value - 128) * CONTRAST_FACTOR + 128))) for value in range(256)]
        rgb = rgb.point(lut * 3)
        rgb = ImageEnhance.Color(rgb).enhance(SATURATION_FACTOR)
        return rgb.filter(SHARPEN_KERNEL)

    def enhance_image(self, reference: str) -> str:
        """Enhance a data URL image and return the result as a data URL."""
        enhanced = self.enhance(data_url_to_image(reference))
        return image_to_data_url(enhanced, 95)

    # ------------------------------------------------------------------
    # Thumbnail cache
    # ------------------------------------------------------------------
    def get_cached_thumbnail(self, reference: str, size: Tuple[int, int] = (150, 150)) -> Image.Image:
        cache_key = (hashlib.md5(reference.encode("utf-8")).hexdigest(), size)

        with self._cache_lock:
            thumbnail = self._thumbnail_cache.get(cache_key)
        if thumbnail is not None:
            return thumbnail

        thumbnail = self.load_image(reference).copy()
        thumbnail.thumbnail(size, Image.Resampling.LANCZOS)

        with self._cache_lock:
            self._thumbnail_cache[cache_key] = thumbnail
            if len(self._thumbnail_cache) > 100:
                for key in list(self._thumbnail_cache.keys())[:20]:
                    del self._thumbnail_cache[key]

        return thumbnail
