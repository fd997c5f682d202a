"""Shared fixtures: temporary store, fixed month clock, sample images, scripted generator."""

from typing import List, Optional

import pytest
from PIL import Image

from dps.config import JsonStore
from dps.controller import WorkflowController
from dps.generator import STUB_VIDEO_BYTES, ContentGenerator
from dps.image_processing import ImageProcessor, image_to_data_url
from dps.pairing import PairVerdict
from dps.project import SocialData, VideoCreative
from dps.state import load_studio_state


class FixedMonth:
    """Month provider that tests can move forward by hand."""

    def __init__(self, month: str = "2099-01"):
        self.month = month

    def __call__(self) -> str:
        return self.month


class FakeGenerator(ContentGenerator):
    """Scripted generator that records calls and can be told to fail."""

    def __init__(self):
        self.calls: List[str] = []
        self.fail: set = set()
        self.social = SocialData(
            captions=["One", "Two", "Three"],
            hashtags=["#detail", "#shine"],
            tiktok_script="Foam, rinse, reveal.",
            posting_times=["8:00 AM", "1:00 PM", "7:00 PM"],
        )
        self.creative = VideoCreative(
            hook="Mirror finish.",
            script="From dull to dazzling.",
            scene_description="Slow pan across a glossy hood at sunset.",
            suggested_music_mood="Lo-fi",
        )
        self.pair_verdict = PairVerdict(is_pair=False)
        self.video_bytes = STUB_VIDEO_BYTES
        self.on_social = None
        self.video_args = None
        self.social_image = None

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} failed: model not found")

    def social_pack(self, image, service_name, tone="Professional"):
        self._record("social_pack")
        self.social_image = image
        if self.on_social:
            self.on_social()
        return self.social

    def regenerate_caption(self, image, service_name, tone="Professional"):
        self._record("regenerate_caption")
        return "Fresh caption"

    def video_creative(self, style, image, service_name):
        self._record("video_creative")
        return self.creative

    def classify_pair(self, first, second):
        self._record("classify_pair")
        return self.pair_verdict

    def generate_video(self, style, before_image=None, after_image=None, service_name=None, on_progress=None):
        self._record("generate_video")
        self.video_args = (style, before_image, after_image, service_name)
        if on_progress:
            on_progress("Complete!", 100)
        return self.video_bytes


def make_image(color=(120, 120, 120), size=(64, 48)) -> Image.Image:
    return Image.new("RGB", size, color)


def make_data_url(color=(120, 120, 120), size=(64, 48)) -> str:
    return image_to_data_url(make_image(color, size))


@pytest.fixture
def month():
    return FixedMonth()


@pytest.fixture
def store(tmp_path):
    return JsonStore(str(tmp_path / "data"))


@pytest.fixture
def studio(store, month):
    return load_studio_state(store, month)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def controller(studio, generator, tmp_path):
    return WorkflowController(studio, generator, ImageProcessor(), str(tmp_path / "media"))


@pytest.fixture
def photo_files(tmp_path):
    """Two JPEG files on disk: a dark 'before' and a bright 'after'."""
    paths = []
    for name, color in (("before.jpg", (40, 40, 40)), ("after.jpg", (200, 200, 200))):
        path = tmp_path / name
        make_image(color).save(path, format="JPEG")
        paths.append(str(path))
    return paths


@pytest.fixture
def sample_urls():
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]
    return [make_data_url(color) for color in colors]


def fill_ledger(studio, ai_calls: Optional[int] = None, projects: Optional[int] = None):
    for _ in range(ai_calls or 0):
        studio.ledger.record_ai_call()
    for _ in range(projects or 0):
        studio.ledger.record_completed_project()


