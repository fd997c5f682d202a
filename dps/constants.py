"""Core constants for the Detailer Pro Studio backend."""

from typing import Dict, Tuple

APP_NAME = "Detailer Pro Studio"
EXPORT_PREFIX = "detailer-pro"
CONTACT_URL = "mailto:hello@detailerpro.ai?subject=Get%20Unlimited"

DATA_DIR_ENV = "DPS_DATA_DIR"
LOG_LEVEL_ENV = "DPS_LOG_LEVEL"
DEFAULT_DATA_DIR_NAME = ".detailer_pro"
MEDIA_DIR = "media"

# Keys of the on-device store, one JSON file per key
STORAGE_SETTINGS = "settings"
STORAGE_PROJECTS = "projects"
STORAGE_USER_NAME = "user_name"
STORAGE_AVATAR = "avatar"
STORAGE_USER_ID = "user_id"
STORAGE_USAGE = "usage"

# Free tier, reset monthly
FREE_PROJECTS_PER_MONTH = 3
FREE_AI_CALLS_PER_MONTH = 15
FREE_GALLERY_SIZE = 10

CHECKLIST_MIN_ITEMS = 3

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_IMAGE_WIDTH = 1920
MAX_CANVAS_PIXELS = 16_000_000
JPEG_QUALITY = 85
AVATAR_SIZE = (256, 256)
SUPPORTED_IMAGE_FORMATS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")
SUPPORTED_VIDEO_FORMATS = (".mp4", ".mov", ".webm", ".m4v")

MAX_AI_PAIRING_IMAGES = 10
ERROR_MESSAGE_LIMIT = 120
QUEUED_BEHIND_STALE_NOTICE = "Finishing the previous request first. Yours will start right after."

TEXT_MODEL = "gemini-2.5-flash"
VIDEO_MODEL = "veo-2.0-generate-001"
VIDEO_RESOLUTION = "720p"
VIDEO_ASPECT_RATIO = "9:16"
VIDEO_POLL_INTERVAL_SECONDS = 10
VIDEO_MAX_POLLS = 60

CAPTION_TONES: Tuple[str, ...] = ("Friendly", "Professional", "Luxury", "Hype", "Short & punchy")
VIDEO_STYLES: Tuple[str, ...] = ("transformation", "cinematic", "satisfying", "pure_promo")
VIDEO_STYLE_LABELS: Dict[str, str] = {
    "transformation": "Transformation Clip",
    "cinematic": "Cinematic B-Roll",
    "satisfying": "Satisfying Glide",
    "pure_promo": "Pure Promo",
}

DEFAULT_SERVICE_ID = "full_detail"
DEFAULT_SERVICE_NAME = "General Detail"
