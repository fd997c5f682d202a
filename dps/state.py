"""Application state service shared by the controller and the UI."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict

from . import config
from .config import JsonStore
from .gallery import GalleryStore
from .project import UserSettings
from .usage import UsageLedger, current_month

logger = logging.getLogger(__name__)


@dataclass
class StudioState:
    """Settings, profile, device id, usage ledger and gallery for one device."""

    store: JsonStore
    settings: UserSettings
    profile: Dict[str, str]
    user_id: str
    ledger: UsageLedger
    gallery: GalleryStore

    def update_settings(self, **changes) -> UserSettings:
        """Apply setting changes and persist them immediately."""
        self.settings = replace(self.settings, **changes)
        config.save_settings(self.store, self.settings)
        logger.debug("Settings updated: %s", ", ".join(sorted(changes)))
        return self.settings

    def update_display_name(self, name: str) -> None:
        self.profile["display_name"] = name.strip()
        config.save_display_name(self.store, name)

    def update_avatar(self, avatar: str) -> None:
        self.profile["avatar"] = avatar
        config.save_avatar(self.store, avatar)


def load_studio_state(store: JsonStore, month_provider: Callable[[], str] = current_month) -> StudioState:
    gallery = GalleryStore(store)
    count = gallery.load()
    state = StudioState(
        store=store,
        settings=config.load_settings(store),
        profile=config.load_profile(store),
        user_id=config.get_or_create_user_id(store),
        ledger=UsageLedger(store, month_provider=month_provider),
        gallery=gallery,
    )
    logger.info("Loaded studio state from %s (%d gallery project(s))", store.data_dir, count)
    return state


def save_studio_state(state: StudioState) -> None:
    """Flush settings and gallery on shutdown."""
    config.save_settings(state.store, state.settings)
    state.gallery.save()
