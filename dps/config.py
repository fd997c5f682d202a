"""Configuration and on-device storage helpers."""
from __future__ import annotations

import json
import logging
import os
import uuid
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from .constants import (
    DATA_DIR_ENV,
    DEFAULT_DATA_DIR_NAME,
    LOG_LEVEL_ENV,
    STORAGE_AVATAR,
    STORAGE_SETTINGS,
    STORAGE_USER_ID,
    STORAGE_USER_NAME,
)
from .project import UserSettings

logger = logging.getLogger(__name__)


def ensure_directory(dir_name: str, auto_create: bool = False) -> Tuple[bool, Optional[str]]:
    """Ensure a directory exists, creating it if requested."""
    if os.path.exists(dir_name):
        return True, None

    if not auto_create:
        return False, f"Directory '{dir_name}' does not exist."

    try:
        os.makedirs(dir_name, exist_ok=True)
        return True, None
    except OSError as exc:  # pragma: no cover - filesystem errors are environment specific
        return False, str(exc)


def load_json_config(filepath: str, default_data: Any = None) -> Any:
    """Load a JSON file, falling back to a copy of the defaults when missing or corrupt."""
    if os.path.exists(filepath):
        try:
            with open(filepath, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", filepath, exc)

    if isinstance(default_data, (dict, list)):
        return default_data.copy()
    return default_data


def save_json_config(filepath: str, data: Any) -> bool:
    """Persist JSON data to disk."""
    try:
        with open(filepath, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as exc:
        logger.error("Could not write %s: %s", filepath, exc)
        return False


class JsonStore:
    """Key-value store keeping one JSON file per key inside a data directory."""

    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir
        exists, error = ensure_directory(data_dir, auto_create=True)
        if not exists:
            logger.error("Data directory unavailable: %s", error)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{key}.json")

    def get(self, key: str, default: Any = None) -> Any:
        return load_json_config(self._path(key), default)

    def set(self, key: str, value: Any) -> bool:
        return save_json_config(self._path(key), value)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def contains(self, key: str) -> bool:
        return os.path.exists(self._path(key))


# ----------------------------------------------------------------------
# Environment
# ----------------------------------------------------------------------
def load_environment(env_file: Optional[str] = None) -> None:
    """Load variables from a ``.env`` file without overriding the environment."""
    load_dotenv(env_file, override=False)


def default_data_dir() -> str:
    configured = os.environ.get(DATA_DIR_ENV)
    if configured:
        return configured
    return os.path.join(os.path.expanduser("~"), DEFAULT_DATA_DIR_NAME)


def get_api_key() -> Optional[str]:
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY") or None


def get_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV, "INFO")


# ----------------------------------------------------------------------
# Persisted user data
# ----------------------------------------------------------------------
def load_settings(store: JsonStore) -> UserSettings:
    raw = store.get(STORAGE_SETTINGS)
    if not isinstance(raw, dict):
        return UserSettings()
    return UserSettings.from_dict(raw)


def save_settings(store: JsonStore, settings: UserSettings) -> bool:
    return store.set(STORAGE_SETTINGS, settings.to_dict())


def load_profile(store: JsonStore) -> Dict[str, str]:
    name = store.get(STORAGE_USER_NAME, "")
    avatar = store.get(STORAGE_AVATAR, "")
    return {
        "display_name": name if isinstance(name, str) else "",
        "avatar": avatar if isinstance(avatar, str) else "",
    }


def _save_optional_text(store: JsonStore, key: str, value: str) -> None:
    if value:
        store.set(key, value)
    else:
        store.remove(key)


def save_display_name(store: JsonStore, name: str) -> None:
    _save_optional_text(store, STORAGE_USER_NAME, name.strip())


def save_avatar(store: JsonStore, avatar: str) -> None:
    _save_optional_text(store, STORAGE_AVATAR, avatar)


def get_or_create_user_id(store: JsonStore) -> str:
    """Return the device-scoped random id, creating it on first use."""
    user_id = store.get(STORAGE_USER_ID)
    if isinstance(user_id, str) and user_id:
        return user_id
    user_id = str(uuid.uuid4())
    store.set(STORAGE_USER_ID, user_id)
    return user_id
