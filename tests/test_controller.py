"""Tests for the workflow controller and its side effects."""

import os

import pytest

from conftest import fill_ledger
from dps.errors import ImageLoadError
from dps.generator import DEFAULT_CAPTION, STUB_VIDEO_BYTES, default_social_pack, default_video_creative
from dps.pairing import PairVerdict
from dps.project import ProjectStatus
from dps.services import get_service
from dps.workflow import Step


def reach_upload(controller, service_id="full_detail"):
    controller.start_photo_job()
    controller.select_service(service_id)
    controller.continue_to_checklist()
    for item in get_service(service_id).checklist[:3]:
        controller.toggle_checklist_item(item)
    return controller.continue_to_upload()


def reach_social_pack(controller, photo_files):
    reach_upload(controller)
    added, _ = controller.add_uploads(photo_files)
    controller.process_uploads()
    controller.confirm_pairs()
    return added


def reach_video_lab(controller, style="cinematic", prompt="Slow pan over a glossy hood"):
    controller.start_video_lab()
    controller.select_video_style(style)
    if prompt:
        controller.set_video_prompt(prompt)
    return controller.state


@pytest.fixture
def manual_pairing(studio):
    studio.update_settings(auto_pair_photos=False)


class TestPhotoJob:
    def test_two_uploads_end_to_end(self, controller, studio, generator, photo_files, manual_pairing):
        state = reach_upload(controller)
        assert state.step is Step.UPLOAD

        added, errors = controller.add_uploads(photo_files)
        assert len(added) == 2 and errors == []

        state = controller.process_uploads()

        assert state.step is Step.BEFORE_AFTER
        project = state.project
        assert project.status is ProjectStatus.DRAFT
        assert project.original_image == added[1]
        assert project.edited_image.startswith("data:image/jpeg;base64,")
        assert project.social_data.captions == ["One", "Two", "Three"]
        assert [(pair.before, pair.after) for pair in state.draft.pairs] == [(added[0], added[1])]
        assert generator.calls == ["social_pack"]
        assert generator.social_image == added[1]
        assert studio.ledger.current_usage().ai_calls == 2

    def test_auto_pairing_counts_one_ai_call(self, controller, studio, generator, photo_files):
        reach_upload(controller)
        controller.add_uploads(photo_files)
        controller.process_uploads()

        assert generator.calls == ["classify_pair", "social_pack"]
        assert studio.ledger.current_usage().ai_calls == 3

    def test_auto_pairing_uses_classifier_verdict(self, controller, generator, photo_files):
        generator.pair_verdict = PairVerdict(is_pair=True, before_index=1, confidence="high")
        reach_upload(controller)
        added, _ = controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert (state.draft.pairs[0].before, state.draft.pairs[0].after) == (added[1], added[0])
        assert state.project.original_image == added[0]

    def test_pairing_outage_falls_back_without_billing(self, controller, studio, generator, photo_files):
        generator.fail.add("classify_pair")
        reach_upload(controller)
        added, _ = controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert state.step is Step.BEFORE_AFTER
        assert [(pair.before, pair.after) for pair in state.draft.pairs] == [(added[0], added[1])]
        assert generator.calls == ["classify_pair", "social_pack"]
        assert studio.ledger.current_usage().ai_calls == 2

    def test_single_upload_uses_it_as_primary(self, controller, generator, photo_files):
        reach_upload(controller)
        added, _ = controller.add_uploads(photo_files[:1])
        state = controller.process_uploads()

        assert state.project.original_image == added[0]
        assert state.draft.pairs == ()
        assert "classify_pair" not in generator.calls

    def test_processing_without_uploads_is_blocked(self, controller, generator):
        reach_upload(controller)
        state = controller.process_uploads()
        assert state.step is Step.UPLOAD
        assert state.notice
        assert generator.calls == []

    def test_social_pack_failure_uses_defaults(self, controller, studio, generator, photo_files, manual_pairing):
        generator.fail.add("social_pack")
        reach_upload(controller)
        controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert state.step is Step.BEFORE_AFTER
        assert state.project.social_data == default_social_pack()
        assert studio.ledger.current_usage().ai_calls == 1

    def test_enhancement_failure_aborts_to_dashboard(self, controller, generator, photo_files, monkeypatch):
        def fail(reference):
            raise ImageLoadError("Could not decode image")

        monkeypatch.setattr(controller.image_processor, "enhance_image", fail)
        reach_upload(controller)
        added, _ = controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert state.step is Step.DASHBOARD
        assert state.notice == "Could not decode image"
        assert state.project is None
        assert state.draft.uploads == tuple(added)
        assert "social_pack" not in generator.calls

    def test_tiktok_script_dropped_when_disabled(self, controller, studio, photo_files, manual_pairing):
        studio.update_settings(auto_generate_tiktok=False)
        reach_upload(controller)
        controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert state.project.social_data.tiktok_script == ""
        assert state.project.social_data.captions == ["One", "Two", "Three"]


class TestQuota:
    def test_exhausted_ai_quota_aborts_processing(self, controller, studio, generator, photo_files, manual_pairing):
        fill_ledger(studio, ai_calls=15)
        reach_upload(controller)
        controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert state.step is Step.DASHBOARD
        assert state.paywall == "ai"
        assert generator.calls == []
        assert studio.ledger.current_usage().ai_calls == 15

    def test_quota_reached_mid_run_skips_social_call(self, controller, studio, generator, photo_files, manual_pairing):
        fill_ledger(studio, ai_calls=14)
        reach_upload(controller)
        controller.add_uploads(photo_files)
        state = controller.process_uploads()

        assert state.paywall == "ai"
        assert generator.calls == []
        assert studio.ledger.current_usage().ai_calls == 15

    def test_project_cap_raises_paywall_on_completion(self, controller, studio, photo_files, manual_pairing):
        fill_ledger(studio, projects=3)
        reach_social_pack(controller, photo_files)

        state = controller.complete_project()

        assert state.step is Step.SOCIAL_PACK
        assert state.paywall == "projects"
        assert state.project.status is ProjectStatus.DRAFT
        assert len(studio.gallery) == 0
        assert studio.ledger.current_usage().projects_completed == 3

    def test_dismissed_paywall_keeps_step(self, controller, studio, photo_files, manual_pairing):
        fill_ledger(studio, projects=3)
        reach_social_pack(controller, photo_files)
        controller.complete_project()

        state = controller.dismiss_paywall()
        assert state.paywall is None
        assert state.step is Step.SOCIAL_PACK


class TestCompletion:
    def test_completion_counts_saves_and_exports(self, controller, studio, photo_files, tmp_path, manual_pairing):
        reach_social_pack(controller, photo_files)

        state = controller.complete_project()

        assert state.step is Step.EXPORT
        assert state.project.status is ProjectStatus.COMPLETED
        assert studio.ledger.current_usage().projects_completed == 1
        assert studio.gallery.items[0].id == state.project.id

        ok, folder, files_ok, files_failed, social_ok = controller.export_assets(str(tmp_path / "out"))
        assert ok and social_ok
        assert files_ok == 2 and files_failed == 0
        assert os.path.isdir(tmp_path / "out" / folder)

    def test_gallery_skipped_when_auto_save_disabled(self, controller, studio, photo_files, manual_pairing):
        studio.update_settings(auto_save_to_gallery=False)
        reach_social_pack(controller, photo_files)
        controller.complete_project()

        assert len(studio.gallery) == 0
        assert studio.ledger.current_usage().projects_completed == 1

    def test_nothing_to_complete(self, controller):
        controller.start_video_lab()
        state = controller.complete_project()
        assert state.notice == "Nothing to export yet."


class TestCaptions:
    def test_edit_caption(self, controller, photo_files, manual_pairing):
        reach_social_pack(controller, photo_files)
        state = controller.update_caption(0, "Edited by hand")
        assert state.project.social_data.captions[0] == "Edited by hand"

    def test_edit_caption_out_of_range_is_ignored(self, controller, photo_files, manual_pairing):
        reach_social_pack(controller, photo_files)
        before = controller.state
        assert controller.update_caption(7, "x") is before

    def test_regenerate_caption(self, controller, studio, photo_files, manual_pairing):
        reach_social_pack(controller, photo_files)
        used = studio.ledger.current_usage().ai_calls

        state = controller.regenerate_caption(1)

        assert state.project.social_data.captions == ["One", "Fresh caption", "Three"]
        assert studio.ledger.current_usage().ai_calls == used + 1

    def test_regenerate_caption_failure_uses_default(self, controller, generator, photo_files, manual_pairing):
        reach_social_pack(controller, photo_files)
        generator.fail.add("regenerate_caption")

        state = controller.regenerate_caption(2)

        assert state.project.social_data.captions[2] == DEFAULT_CAPTION
        assert state.notice == "This feature may be unavailable. Try again later."


class TestStaleResults:
    def test_result_after_home_is_discarded(self, controller, generator, photo_files, manual_pairing):
        reach_upload(controller)
        controller.add_uploads(photo_files)
        generator.on_social = controller.go_home

        state = controller.process_uploads()

        assert state.step is Step.DASHBOARD
        assert state.project is None
        assert controller.state.draft.uploads == ()

    def test_cancel_bumps_epoch(self, controller):
        controller.start_video_lab()
        epoch = controller.epoch
        controller.cancel()
        assert controller.epoch == epoch + 1


class TestVideo:
    def test_quick_clip_from_social_pack(self, controller, generator, photo_files, tmp_path, manual_pairing):
        added = reach_social_pack(controller, photo_files)

        state = controller.generate_video("cinematic")

        assert state.step is Step.VIDEO_EDIT
        assert generator.video_args == ("cinematic", added[0], added[1], "Full Detail")
        path = state.project.generated_video_url
        assert path == str(tmp_path / "media" / f"{state.project.id}.mp4")
        with open(path, "rb") as handle:
            assert handle.read() == STUB_VIDEO_BYTES
        assert controller.video_progress == ("Complete!", 100)

    def test_video_project_keeps_editing_on_completion(self, controller, photo_files, manual_pairing):
        reach_social_pack(controller, photo_files)
        controller.generate_video("satisfying")
        controller.update_editing(filter="golden", text_overlay="Shine on")

        state = controller.complete_project()

        assert state.step is Step.EXPORT
        assert state.project.editing_config.filter == "golden"
        assert state.project.editing_config.text_overlay == "Shine on"

    def test_video_lab_creates_completed_project(self, controller, generator):
        reach_video_lab(controller)

        state = controller.generate_video()

        assert state.step is Step.VIDEO_EDIT
        assert state.project.service_id == "video_lab"
        assert state.project.status is ProjectStatus.COMPLETED
        assert generator.video_args[3] == "Slow pan over a glossy hood"

    def test_empty_prompt_is_rejected(self, controller, generator):
        reach_video_lab(controller, prompt="")

        state = controller.generate_video()

        assert state.step is Step.VIDEO_LAB
        assert state.notice
        assert "generate_video" not in generator.calls

    def test_no_style_selected(self, controller):
        controller.start_video_lab()
        assert controller.begin_video() is False
        assert controller.state.notice == "Pick a video style first."

    def test_video_failure_returns_to_lab(self, controller, studio, generator):
        generator.fail.add("generate_video")
        reach_video_lab(controller)

        state = controller.generate_video()

        assert state.step is Step.VIDEO_LAB
        assert state.notice == "This feature may be unavailable. Try again later."
        assert studio.ledger.current_usage().ai_calls == 0

    def test_video_quota_checked_before_processing(self, controller, studio, generator):
        fill_ledger(studio, ai_calls=15)
        reach_video_lab(controller)

        assert controller.begin_video() is False
        assert controller.state.step is Step.VIDEO_LAB
        assert controller.state.paywall == "ai"
        assert generator.calls == []

    def test_cancel_in_video_lab_clears_style(self, controller):
        reach_video_lab(controller)
        state = controller.cancel()
        assert state.step is Step.VIDEO_LAB
        assert state.draft.video_style is None


class TestCreativeBrief:
    def test_brainstorm_fills_prompt_and_overlay(self, controller, studio, generator):
        reach_video_lab(controller, prompt="")

        state = controller.brainstorm_video_creative()

        assert state.draft.video_prompt == generator.creative.scene_description
        assert state.draft.editing.text_overlay == "Mirror finish."
        assert studio.ledger.current_usage().ai_calls == 1

    def test_brainstorm_failure_uses_default_brief(self, controller, generator):
        generator.fail.add("video_creative")
        reach_video_lab(controller, prompt="")

        state = controller.brainstorm_video_creative()

        assert state.draft.video_creative == default_video_creative()
        assert state.notice

    def test_brainstorm_needs_style(self, controller, generator):
        controller.start_video_lab()
        controller.brainstorm_video_creative()
        assert generator.calls == []


class TestEditingAndUploadedVideo:
    def test_open_uploaded_video(self, controller, tmp_path):
        clip = tmp_path / "clip.mp4"
        clip.write_bytes(STUB_VIDEO_BYTES)
        controller.start_video_lab()

        state = controller.open_uploaded_video(str(clip))

        assert state.step is Step.VIDEO_EDIT
        assert state.project.service_id == "video_lab_upload"
        assert state.project.generated_video_url == str(clip)

    def test_unsupported_video_rejected(self, controller, tmp_path):
        clip = tmp_path / "clip.avi"
        clip.write_bytes(b"x")
        controller.start_video_lab()

        state = controller.open_uploaded_video(str(clip))

        assert state.step is Step.VIDEO_LAB
        assert "Not a supported video file" in state.notice

    def test_invalid_editing_change_shows_notice(self, controller):
        controller.start_video_lab()
        state = controller.update_editing(filter="vhs")
        assert state.draft.editing.filter == "none"
        assert "Unknown filter" in state.notice

    def test_trim_gap_enforced(self, controller):
        controller.start_video_lab()
        controller.update_editing(trim_end=40)
        state = controller.update_editing(trim_start=38)
        assert (state.draft.editing.trim_start, state.draft.editing.trim_end) == (35, 40)


class TestUploads:
    def test_rejects_non_images_and_unreadable_files(self, controller, photo_files, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("hello")
        broken = tmp_path / "broken.jpg"
        broken.write_bytes(b"not really a jpeg")
        reach_upload(controller)

        added, errors = controller.add_uploads([str(notes), photo_files[0], str(broken)])

        assert len(added) == 1
        assert errors == ["notes.txt: Not an image file", "broken.jpg: Could not read image"]
        assert controller.state.draft.uploads == tuple(added)
        assert "notes.txt" in controller.state.notice

    def test_remove_and_clear(self, controller, photo_files):
        reach_upload(controller)
        controller.add_uploads(photo_files)
        assert len(controller.remove_upload(0).draft.uploads) == 1
        assert controller.clear_uploads().draft.uploads == ()

    def test_unknown_service(self, controller):
        controller.start_photo_job()
        state = controller.select_service("car_wash")
        assert state.draft.service_id is None
        assert "Unknown service" in state.notice
