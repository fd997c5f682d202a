"""Project related data models."""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import CAPTION_TONES, DEFAULT_SERVICE_ID


class ProjectStatus(str, Enum):
    DRAFT = "Draft"
    COMPLETED = "Completed"
    NEEDS_PHOTOS = "Needs Photos"


def new_id() -> str:
    return uuid.uuid4().hex


def short_id() -> str:
    return uuid.uuid4().hex[:9]


def display_date(when: Optional[datetime.date] = None) -> str:
    """Format a date as e.g. ``Oct 19, 2026``."""
    when = when or datetime.date.today()
    return f"{when:%b} {when.day}, {when.year}"


@dataclass(frozen=True)
class PhotoPair:
    """Two image references bound into a before/after unit."""

    before: str
    after: str
    id: str = field(default_factory=short_id)

    def swapped(self) -> "PhotoPair":
        return replace(self, before=self.after, after=self.before)


@dataclass
class SocialData:
    captions: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)
    tiktok_script: str = ""
    posting_times: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captions": list(self.captions),
            "hashtags": list(self.hashtags),
            "tiktokScript": self.tiktok_script,
            "postingTimes": list(self.posting_times),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SocialData":
        return cls(
            captions=[str(item) for item in data.get("captions", [])],
            hashtags=[str(item) for item in data.get("hashtags", [])],
            tiktok_script=str(data.get("tiktokScript", "")),
            posting_times=[str(item) for item in data.get("postingTimes", [])],
        )


@dataclass
class VideoCreative:
    hook: str
    script: str
    scene_description: str
    suggested_music_mood: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hook": self.hook,
            "script": self.script,
            "sceneDescription": self.scene_description,
            "suggestedMusicMood": self.suggested_music_mood,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoCreative":
        return cls(
            hook=str(data.get("hook", "")),
            script=str(data.get("script", "")),
            scene_description=str(data.get("sceneDescription", "")),
            suggested_music_mood=str(data.get("suggestedMusicMood", "")),
        )


_EDITING_KEYS = {
    "filter": "filter",
    "text_overlay": "textOverlay",
    "text_position": "textPosition",
    "trim_start": "trimStart",
    "trim_end": "trimEnd",
    "text_color": "textColor",
    "font_size": "fontSize",
    "text_background": "textBackground",
    "brightness": "brightness",
    "contrast": "contrast",
    "saturation": "saturation",
    "playback_speed": "playbackSpeed",
    "is_muted": "isMuted",
}


@dataclass(frozen=True)
class VideoEditingConfig:
    """Non-destructive editing settings applied to a clip on playback/preview."""

    filter: str = "none"
    text_overlay: str = ""
    text_position: str = "bottom"
    trim_start: int = 0
    trim_end: int = 100
    text_color: str = "#ffffff"
    font_size: int = 32
    text_background: bool = True
    brightness: int = 100
    contrast: int = 100
    saturation: int = 100
    playback_speed: float = 1.0
    is_muted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {json_key: getattr(self, attr) for attr, json_key in _EDITING_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoEditingConfig":
        values = {attr: data[json_key] for attr, json_key in _EDITING_KEYS.items() if json_key in data}
        return cls(**values)


@dataclass
class Project:
    """A photo or video job: source image, enhanced image, generated content."""

    service_id: str
    id: str = field(default_factory=new_id)
    original_image: Optional[str] = None
    edited_image: Optional[str] = None
    date: str = field(default_factory=display_date)
    status: ProjectStatus = ProjectStatus.DRAFT
    social_data: Optional[SocialData] = None
    video_creative: Optional[VideoCreative] = None
    generated_video_url: Optional[str] = None
    editing_config: Optional[VideoEditingConfig] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Project id is immutable")
        super().__setattr__(name, value)

    def completed(self, editing_config: Optional[VideoEditingConfig] = None) -> "Project":
        """Return a copy marked Completed; status never moves back to Draft."""
        return replace(
            self,
            status=ProjectStatus.COMPLETED,
            editing_config=editing_config if editing_config is not None else self.editing_config,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "serviceId": self.service_id,
            "originalImage": self.original_image,
            "editedImage": self.edited_image,
            "date": self.date,
            "status": self.status.value,
        }
        if self.social_data is not None:
            data["socialData"] = self.social_data.to_dict()
        if self.video_creative is not None:
            data["videoCreative"] = self.video_creative.to_dict()
        if self.generated_video_url:
            data["generatedVideoUrl"] = self.generated_video_url
        if self.editing_config is not None:
            data["editingConfig"] = self.editing_config.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        social = data.get("socialData")
        creative = data.get("videoCreative")
        editing = data.get("editingConfig")
        return cls(
            id=str(data["id"]),
            service_id=str(data.get("serviceId", "unknown")),
            original_image=data.get("originalImage"),
            edited_image=data.get("editedImage"),
            date=str(data.get("date", "")),
            status=ProjectStatus(data.get("status", ProjectStatus.DRAFT.value)),
            social_data=SocialData.from_dict(social) if social else None,
            video_creative=VideoCreative.from_dict(creative) if creative else None,
            generated_video_url=data.get("generatedVideoUrl"),
            editing_config=VideoEditingConfig.from_dict(editing) if editing else None,
        )

    def __repr__(self) -> str:  # pragma: no cover - utility repr
        return f"<Project '{self.id}' {self.service_id} ({self.status.value})>"


@dataclass(frozen=True)
class UserSettings:
    default_service_id: str = DEFAULT_SERVICE_ID
    caption_tone: str = "Professional"
    auto_save_to_gallery: bool = True
    auto_generate_tiktok: bool = True
    auto_pair_photos: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "defaultServiceId": self.default_service_id,
            "captionTone": self.caption_tone,
            "autoSaveToGallery": self.auto_save_to_gallery,
            "autoGenerateTikTok": self.auto_generate_tiktok,
            "autoPairPhotos": self.auto_pair_photos,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        defaults = cls()
        tone = data.get("captionTone", defaults.caption_tone)
        return cls(
            default_service_id=str(data.get("defaultServiceId", defaults.default_service_id)),
            caption_tone=tone if tone in CAPTION_TONES else defaults.caption_tone,
            auto_save_to_gallery=bool(data.get("autoSaveToGallery", defaults.auto_save_to_gallery)),
            auto_generate_tiktok=bool(data.get("autoGenerateTikTok", defaults.auto_generate_tiktok)),
            auto_pair_photos=bool(data.get("autoPairPhotos", defaults.auto_pair_photos)),
        )
