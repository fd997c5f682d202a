"""Generative collaborator: captions, social packs, creative briefs, pairing and video.

``ContentGenerator`` is the capability interface the controller talks to.
``GeminiGenerator`` calls Google Gemini/Veo through ``google-genai``;
``StubGenerator`` is deterministic and offline. Remote failures surface as
``CollaboratorError``; the static fallback payloads live here as well so that
every call site can substitute them.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from .constants import (
    DEFAULT_SERVICE_NAME,
    TEXT_MODEL,
    VIDEO_ASPECT_RATIO,
    VIDEO_MAX_POLLS,
    VIDEO_MODEL,
    VIDEO_POLL_INTERVAL_SECONDS,
    VIDEO_RESOLUTION,
)
from .errors import CollaboratorError, VideoTimeoutError
from .image_processing import data_url_to_bytes
from .pairing import PairVerdict, detect_pairs
from .project import PhotoPair, SocialData, VideoCreative
from .social_pack import normalise_hashtags

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Optional[int]], None]
SchemaT = TypeVar("SchemaT", bound=BaseModel)

DEFAULT_CAPTION = "A fresh look for a fresh ride! 🧼✨"
EMPTY_CAPTION = "Ready for its next adventure! ✨"
STUB_VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom"


def default_social_pack() -> SocialData:
    return SocialData(
        captions=[
            "Full refresh on this ride! ✨ Pure detailing magic.",
            "Deep clean mode: Activated. 🧼 Results speak for themselves.",
            "That ceramic glow hits different. 🛡️ Ready for the road.",
        ],
        hashtags=["#detailing", "#carcare", "#clean", "#gloss", "#detailingworld"],
        tiktok_script="Visual: Fast cuts of foam cannon. Audio: 'Is it just me or is this satisfying?'",
        posting_times=["9:00 AM", "12:30 PM", "6:00 PM"],
    )


def default_video_creative() -> VideoCreative:
    return VideoCreative(
        hook="From Grime to Prime. ✨",
        script=(
            "Watch as we transform this ride with our signature detail. "
            "Perfection isn't a goal, it's our standard."
        ),
        scene_description=(
            "Cinematic slow motion pan of a luxury car with deep reflections "
            "and professional studio lighting."
        ),
        suggested_music_mood="High-energy, punchy phonk or elegant lo-fi.",
    )


# ----------------------------------------------------------------------
# Response schemas
# ----------------------------------------------------------------------
class SocialPackSchema(BaseModel):
    captions: List[str]
    hashtags: List[str]
    tiktok_script: str
    posting_times: List[str]


class CaptionSchema(BaseModel):
    caption: str = ""


class VideoCreativeSchema(BaseModel):
    hook: str
    script: str
    scene_description: str
    suggested_music_mood: str


class PairAnalysisSchema(BaseModel):
    is_pair: bool = False
    before_index: int = 0
    confidence: str = "low"


# ----------------------------------------------------------------------
# Prompts
# ----------------------------------------------------------------------
def social_pack_prompt(service_name: str, tone: str) -> str:
    return (
        f"Generate a full social media detailing pack for this {service_name or DEFAULT_SERVICE_NAME} job. "
        f"Write in a {tone} tone. Provide 3 different caption options. "
        "Provide 10 trending detailing hashtags. "
        "Provide a short 15-second TikTok script (Visuals vs Audio). "
        "Provide 3 recommended posting times for maximum detailing engagement."
    )


def caption_prompt(service_name: str, tone: str) -> str:
    return (
        f"Generate one new, catchy social media caption for this "
        f"{service_name or 'Professional Detail'} detailing job in a {tone} tone. "
        "Keep it engaging and concise."
    )


def video_creative_prompt(style: str, service_name: str) -> str:
    return (
        f"Generate a creative brief for a {style} detailing video clip for a "
        f"{service_name or 'Professional'} service. Include a punchy hook, a short "
        "script/voiceover, a highly detailed visual scene description for an AI video "
        "generator, and a suggested music mood."
    )


PAIR_PROMPT = (
    "Analyze these two car detailing photos. Determine which one is the \"before\" "
    "(dirty/unpolished/dull) and which is the \"after\" (clean/polished/shiny) photo. "
    "Both photos should be of the same car or similar angle. Set is_pair, before_index "
    "(0 for the first photo, 1 for the second) and confidence (high, medium or low)."
)


def build_video_prompt(
    style: str,
    before_image: Optional[str],
    after_image: Optional[str],
    service_name: Optional[str],
) -> Tuple[str, Optional[str]]:
    """Select the prompt template for a style and the image used as the first frame."""
    if style == "transformation" and before_image and after_image:
        return (
            "A smooth cinematic transformation video showing a dirty, unpolished car gradually "
            "becoming sparkling clean with high-gloss professional detailing. The video should "
            "start with the dirty car and smoothly transition to show the same car after "
            "professional detailing - clean, shiny, with deep reflections and perfect paint "
            "finish. Professional studio lighting, 4k quality, slow motion transition effect.",
            before_image,
        )
    if style == "cinematic" and after_image:
        return (
            "Wide-angle cinematic B-roll of a freshly detailed car. Elegant slow camera gimbal "
            "movement around the car's curves. Dramatic studio lighting with lens flares and "
            "realistic environment reflections.",
            after_image,
        )
    if style == "satisfying" and after_image:
        return (
            "Macro-style extreme close-up of a perfectly detailed car panel. Slow motion camera "
            "panning over deep paint reflections, water beading, or thick foam textures. "
            "Extremely satisfying and focused motion.",
            after_image,
        )
    if service_name and len(service_name) > 10:
        return service_name, None
    return (
        "High-end cinematic promotional footage of a luxury car being professionally detailed "
        f"with {service_name or 'high-gloss coating'}. macro shots, foam cannons, and studio lighting.",
        None,
    )


# ----------------------------------------------------------------------
# Capability interface
# ----------------------------------------------------------------------
class ContentGenerator(ABC):
    """Operations the workflow needs from a generative collaborator."""

    @abstractmethod
    def social_pack(self, image: str, service_name: str, tone: str = "Professional") -> SocialData:
        ...

    @abstractmethod
    def regenerate_caption(self, image: str, service_name: str, tone: str = "Professional") -> str:
        ...

    @abstractmethod
    def video_creative(self, style: str, image: Optional[str], service_name: str) -> VideoCreative:
        ...

    @abstractmethod
    def classify_pair(self, first: str, second: str) -> PairVerdict:
        ...

    @abstractmethod
    def generate_video(
        self,
        style: str,
        before_image: Optional[str] = None,
        after_image: Optional[str] = None,
        service_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        ...

    def detect_pairs(self, images: List[str]) -> List[PhotoPair]:
        return detect_pairs(images, self.classify_pair)


class StubGenerator(ContentGenerator):
    """Offline generator returning the static fallback payloads."""

    def social_pack(self, image: str, service_name: str, tone: str = "Professional") -> SocialData:
        return default_social_pack()

    def regenerate_caption(self, image: str, service_name: str, tone: str = "Professional") -> str:
        return DEFAULT_CAPTION

    def video_creative(self, style: str, image: Optional[str], service_name: str) -> VideoCreative:
        return default_video_creative()

    def classify_pair(self, first: str, second: str) -> PairVerdict:
        return PairVerdict(is_pair=False, before_index=0, confidence="low")

    def generate_video(
        self,
        style: str,
        before_image: Optional[str] = None,
        after_image: Optional[str] = None,
        service_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        if on_progress:
            on_progress("Complete!", 100)
        return STUB_VIDEO_BYTES


class GeminiGenerator(ContentGenerator):
    """Remote generator backed by Gemini for text and Veo for video."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Any = None,
        text_model: str = TEXT_MODEL,
        video_model: str = VIDEO_MODEL,
        poll_interval: float = VIDEO_POLL_INTERVAL_SECONDS,
        max_polls: int = VIDEO_MAX_POLLS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if client is None:
            if not api_key:
                raise CollaboratorError("GEMINI_API_KEY not configured")
            client = genai.Client(api_key=api_key)
        self._client = client
        self.text_model = text_model
        self.video_model = video_model
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _image_part(reference: str) -> types.Part:
        data, mime_type = data_url_to_bytes(reference)
        return types.Part.from_bytes(data=data, mime_type=mime_type)

    def _generate_json(self, contents: List[Any], schema: Type[SchemaT]) -> SchemaT:
        try:
            response = self._client.models.generate_content(
                model=self.text_model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=schema,
                ),
            )
            return schema.model_validate_json(response.text or "{}")
        except ValidationError as exc:
            raise CollaboratorError(f"Malformed response from model: {exc}") from exc
        except CollaboratorError:
            raise
        except Exception as exc:
            raise CollaboratorError(str(exc) or "Gemini API failed") from exc

    # ------------------------------------------------------------------
    # Text generation
    # ------------------------------------------------------------------
    def social_pack(self, image: str, service_name: str, tone: str = "Professional") -> SocialData:
        result = self._generate_json(
            [self._image_part(image), social_pack_prompt(service_name, tone)],
            SocialPackSchema,
        )
        return SocialData(
            captions=result.captions[:3],
            hashtags=normalise_hashtags(result.hashtags),
            tiktok_script=result.tiktok_script,
            posting_times=result.posting_times[:3],
        )

    def regenerate_caption(self, image: str, service_name: str, tone: str = "Professional") -> str:
        result = self._generate_json(
            [self._image_part(image), caption_prompt(service_name, tone)],
            CaptionSchema,
        )
        return result.caption or EMPTY_CAPTION

    def video_creative(self, style: str, image: Optional[str], service_name: str) -> VideoCreative:
        contents: List[Any] = [video_creative_prompt(style, service_name)]
        if image:
            contents.append(self._image_part(image))
        result = self._generate_json(contents, VideoCreativeSchema)
        return VideoCreative(
            hook=result.hook,
            script=result.script,
            scene_description=result.scene_description,
            suggested_music_mood=result.suggested_music_mood,
        )

    def classify_pair(self, first: str, second: str) -> PairVerdict:
        result = self._generate_json(
            [self._image_part(first), self._image_part(second), PAIR_PROMPT],
            PairAnalysisSchema,
        )
        return PairVerdict(
            is_pair=result.is_pair,
            before_index=1 if result.before_index == 1 else 0,
            confidence=result.confidence.lower(),
        )

    # ------------------------------------------------------------------
    # Video generation
    # ------------------------------------------------------------------
    def generate_video(
        self,
        style: str,
        before_image: Optional[str] = None,
        after_image: Optional[str] = None,
        service_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        prompt, seed_image = build_video_prompt(style, before_image, after_image, service_name)
        image = None
        if seed_image:
            data, mime_type = data_url_to_bytes(seed_image)
            image = types.Image(image_bytes=data, mime_type=mime_type)

        if on_progress:
            on_progress("Starting video generation...", 0)

        try:
            operation = self._client.models.generate_videos(
                model=self.video_model,
                prompt=prompt,
                image=image,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution=VIDEO_RESOLUTION,
                    aspect_ratio=VIDEO_ASPECT_RATIO,
                ),
            )

            polls = 0
            while not operation.done and polls < self.max_polls:
                self._sleep(self.poll_interval)
                polls += 1
                operation = self._client.operations.get(operation)
                if on_progress:
                    on_progress("Video generation in progress...", min(95, 20 + polls * 75 // self.max_polls))
        except Exception as exc:
            raise CollaboratorError(str(exc) or "Video generation failed") from exc

        if not operation.done:
            raise VideoTimeoutError("Video generation timed out. Please try again.")

        response = getattr(operation, "response", None)
        videos = getattr(response, "generated_videos", None) if response is not None else None
        if not videos or getattr(videos[0], "video", None) is None:
            raise CollaboratorError("Video generation failed to return a video.")

        try:
            data = self._client.files.download(file=videos[0].video)
        except Exception as exc:
            raise CollaboratorError(f"Failed to fetch generated video: {exc}") from exc

        if on_progress:
            on_progress("Complete!", 100)
        logger.info("Generated %s video (%d bytes)", style, len(data))
        return data


def create_generator(api_key: Optional[str]) -> ContentGenerator:
    """Pick the remote generator when a key is configured, the stub otherwise."""
    if api_key:
        return GeminiGenerator(api_key=api_key)
    logger.warning("No Gemini API key configured; using offline stub generator")
    return StubGenerator()
