"""Tests for the generative collaborator, driven by a fake google-genai client."""

import json
from types import SimpleNamespace

import pytest

from conftest import make_data_url
from dps.errors import CollaboratorError, VideoTimeoutError, friendly_error_message
from dps.generator import (
    DEFAULT_CAPTION,
    EMPTY_CAPTION,
    STUB_VIDEO_BYTES,
    GeminiGenerator,
    StubGenerator,
    build_video_prompt,
    create_generator,
    default_social_pack,
)


class FakeModels:
    def __init__(self, text="{}", error=None, operation=None):
        self.text = text
        self.error = error
        self.operation = operation
        self.requests = []

    def generate_content(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)

    def generate_videos(self, model, prompt, image, config):
        self.requests.append({"model": model, "prompt": prompt, "image": image, "config": config})
        if self.error:
            raise self.error
        return self.operation


class FakeOperations:
    def __init__(self, states):
        self.states = list(states)
        self.polled = 0

    def get(self, operation):
        self.polled += 1
        return self.states.pop(0) if self.states else operation


class FakeFiles:
    def __init__(self, data=b"mp4-bytes"):
        self.data = data
        self.downloaded = []

    def download(self, file):
        self.downloaded.append(file)
        return self.data


class FakeClient:
    def __init__(self, models, operations=None, files=None):
        self.models = models
        self.operations = operations or FakeOperations([])
        self.files = files or FakeFiles()


def finished_operation(videos):
    return SimpleNamespace(done=True, response=SimpleNamespace(generated_videos=videos))


@pytest.fixture
def image():
    return make_data_url()


@pytest.fixture
def sleeps():
    return []


def make_generator(client, sleeps, max_polls=5):
    return GeminiGenerator(client=client, poll_interval=10, max_polls=max_polls, sleep=sleeps.append)


class TestTextGeneration:
    def test_social_pack_parsed_and_normalised(self, image, sleeps):
        payload = {
            "captions": ["a", "b", "c", "d"],
            "hashtags": ["Detailing", "#car care!", "detailing", "2fast"],
            "tiktok_script": "Foam then rinse",
            "posting_times": ["9 AM", "1 PM", "6 PM", "10 PM"],
        }
        models = FakeModels(text=json.dumps(payload))
        generator = make_generator(FakeClient(models), sleeps)

        social = generator.social_pack(image, "Full Detail", "Luxury")

        assert social.captions == ["a", "b", "c"]
        assert social.hashtags == ["#detailing", "#carcare", "#fast"]
        assert social.tiktok_script == "Foam then rinse"
        assert social.posting_times == ["9 AM", "1 PM", "6 PM"]
        prompt = models.requests[0]["contents"][1]
        assert "Full Detail" in prompt and "Luxury" in prompt
        assert models.requests[0]["config"].response_mime_type == "application/json"

    def test_malformed_json_raises(self, image, sleeps):
        generator = make_generator(FakeClient(FakeModels(text='{"captions": "nope"')), sleeps)
        with pytest.raises(CollaboratorError, match="Malformed response"):
            generator.social_pack(image, "Full Detail")

    def test_missing_fields_raise(self, image, sleeps):
        generator = make_generator(FakeClient(FakeModels(text='{"captions": []}')), sleeps)
        with pytest.raises(CollaboratorError):
            generator.social_pack(image, "Full Detail")

    def test_remote_error_is_wrapped(self, image, sleeps):
        models = FakeModels(error=RuntimeError("429 RESOURCE_EXHAUSTED: quota exceeded"))
        generator = make_generator(FakeClient(models), sleeps)

        with pytest.raises(CollaboratorError) as excinfo:
            generator.regenerate_caption(image, "Full Detail")

        assert friendly_error_message(str(excinfo.value)) == "API quota reached. Try again later."

    def test_empty_caption_replaced(self, image, sleeps):
        generator = make_generator(FakeClient(FakeModels(text='{"caption": ""}')), sleeps)
        assert generator.regenerate_caption(image, "Full Detail") == EMPTY_CAPTION

    def test_video_creative_without_image(self, sleeps):
        payload = {
            "hook": "Shine",
            "script": "Watch this",
            "scene_description": "Glossy hood",
            "suggested_music_mood": "Phonk",
        }
        models = FakeModels(text=json.dumps(payload))
        generator = make_generator(FakeClient(models), sleeps)

        creative = generator.video_creative("cinematic", None, "Ceramic Coating")

        assert creative.scene_description == "Glossy hood"
        assert len(models.requests[0]["contents"]) == 1

    def test_classify_pair(self, image, sleeps):
        models = FakeModels(text='{"is_pair": true, "before_index": 1, "confidence": "HIGH"}')
        generator = make_generator(FakeClient(models), sleeps)

        verdict = generator.classify_pair(image, image)

        assert verdict.is_pair and verdict.before_index == 1
        assert verdict.accepted

    def test_detect_pairs_uses_classifier(self, sleeps):
        models = FakeModels(text='{"is_pair": false, "before_index": 0, "confidence": "low"}')
        generator = make_generator(FakeClient(models), sleeps)
        images = [make_data_url((i * 40, 0, 0)) for i in range(3)]

        pairs = generator.detect_pairs(images)

        assert [(pair.before, pair.after) for pair in pairs] == [(images[0], images[1])]
        assert len(models.requests) == 3


class TestVideoGeneration:
    def test_polls_until_done_and_downloads(self, image, sleeps):
        video = SimpleNamespace(video="files/abc")
        operations = FakeOperations([SimpleNamespace(done=False), finished_operation([video])])
        models = FakeModels(operation=SimpleNamespace(done=False))
        files = FakeFiles(b"clip")
        generator = make_generator(FakeClient(models, operations, files), sleeps)
        progress = []

        data = generator.generate_video("cinematic", image, image, "Full Detail", on_progress=lambda s, p: progress.append(p))

        assert data == b"clip"
        assert sleeps == [10, 10]
        assert files.downloaded == ["files/abc"]
        assert progress[0] == 0 and progress[-1] == 100
        assert progress == sorted(progress)
        request = models.requests[0]
        assert request["image"] is not None
        assert request["config"].aspect_ratio == "9:16"

    def test_timeout(self, sleeps):
        models = FakeModels(operation=SimpleNamespace(done=False))
        generator = make_generator(FakeClient(models), sleeps, max_polls=3)

        with pytest.raises(VideoTimeoutError):
            generator.generate_video("pure_promo", service_name="Paint Correction")

        assert len(sleeps) == 3

    def test_no_video_returned(self, sleeps):
        models = FakeModels(operation=finished_operation([]))
        generator = make_generator(FakeClient(models), sleeps)

        with pytest.raises(CollaboratorError, match="failed to return a video"):
            generator.generate_video("pure_promo")

        assert sleeps == []

    def test_submission_error_wrapped(self, sleeps):
        models = FakeModels(error=RuntimeError("API key not valid"))
        generator = make_generator(FakeClient(models), sleeps)

        with pytest.raises(CollaboratorError) as excinfo:
            generator.generate_video("pure_promo")

        assert friendly_error_message(str(excinfo.value)) == "Please check your Gemini API key in .env"


class TestVideoPrompt:
    def test_transformation_uses_before_frame(self):
        prompt, seed = build_video_prompt("transformation", "before", "after", "Full Detail")
        assert seed == "before"
        assert "transformation" in prompt

    @pytest.mark.parametrize("style", ["cinematic", "satisfying"])
    def test_after_frame_styles(self, style):
        _, seed = build_video_prompt(style, "before", "after", None)
        assert seed == "after"

    def test_long_service_text_used_verbatim(self):
        text = "Slow pan across a glossy hood at sunset"
        assert build_video_prompt("transformation", None, "after", text) == (text, None)

    def test_promo_template_mentions_service(self):
        prompt, seed = build_video_prompt("pure_promo", None, None, "Wax")
        assert seed is None
        assert "with Wax." in prompt

    def test_promo_template_default(self):
        prompt, _ = build_video_prompt("pure_promo", None, None, None)
        assert "high-gloss coating" in prompt


class TestFactory:
    def test_missing_key_uses_stub(self):
        assert isinstance(create_generator(None), StubGenerator)

    def test_remote_generator_requires_key_or_client(self):
        with pytest.raises(CollaboratorError):
            GeminiGenerator(api_key=None)

    def test_stub_outputs(self, image):
        stub = StubGenerator()
        progress = []
        assert stub.social_pack(image, "Full Detail") == default_social_pack()
        assert stub.regenerate_caption(image, "Full Detail") == DEFAULT_CAPTION
        assert not stub.classify_pair(image, image).accepted
        assert stub.generate_video("cinematic", on_progress=lambda s, p: progress.append(p)) == STUB_VIDEO_BYTES
        assert progress == [100]


class TestFriendlyErrors:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Invalid API_KEY supplied", "Please check your Gemini API key in .env"),
            ("Rate limit exceeded", "API quota reached. Try again later."),
            ("404 model not found", "This feature may be unavailable. Try again later."),
            ("Connection reset", "Connection reset"),
        ],
    )
    def test_mapping(self, raw, expected):
        assert friendly_error_message(raw) == expected

    def test_long_message_truncated(self):
        message = friendly_error_message("x" * 300)
        assert len(message) == 121
        assert message.endswith("…")
