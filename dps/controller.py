"""Workflow controller: runs side effects and feeds their results to the state machine."""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .config import ensure_directory
from .constants import (
    DEFAULT_SERVICE_NAME,
    MEDIA_DIR,
    SUPPORTED_VIDEO_FORMATS,
)
from .errors import (
    ImageLoadError,
    InputValidationError,
    QuotaExceededError,
    StageFailedError,
    friendly_error_message,
)
from .exporter import save_project_output
from .generator import DEFAULT_CAPTION, ContentGenerator, default_social_pack, default_video_creative
from .image_processing import ImageProcessor, validate_upload
from .pairing import positional_pairs
from .pipeline import FailurePolicy, Pipeline, PipelineResult, Stage, StageContext
from .project import Project, ProjectStatus
from .services import get_service, service_name
from .state import StudioState
from .video_editing import update_config
from .workflow import (
    AddUploads,
    Back,
    BeginProcessing,
    BeginVideoGeneration,
    Cancel,
    ClearUploads,
    ClearVideoStyle,
    CompleteProject,
    ConfirmPairs,
    ContinueToChecklist,
    ContinueToUpload,
    CreativeReady,
    DeletePair,
    DismissNotice,
    DismissPaywall,
    Event,
    Home,
    OpenSettings,
    OpenUploadedVideo,
    ProcessingFailed,
    ProcessingSucceeded,
    QuotaBlocked,
    RemoveUpload,
    SelectService,
    SelectVideoStyle,
    SetVideoPrompt,
    ShowNotice,
    StartPhotoJob,
    StartVideoLab,
    Step,
    SwapPair,
    ToggleChecklistItem,
    UpdateEditing,
    UpdateProject,
    VideoFailed,
    VideoReady,
    WorkflowState,
    transition,
)

logger = logging.getLogger(__name__)

VIDEO_LAB_SERVICE_ID = "video_lab"
VIDEO_UPLOAD_SERVICE_ID = "video_lab_upload"


class WorkflowController:
    """Owns the current ``WorkflowState`` and the effects around it.

    Long-running operations (``run_processing``, ``run_video``,
    ``brainstorm_video_creative``, ``regenerate_caption``) are meant to be
    submitted to a worker thread. Each one remembers the epoch it started
    under; leaving the workflow through Home or Cancel bumps the epoch, and a
    result computed under an older epoch is discarded.
    """

    def __init__(
        self,
        studio: StudioState,
        generator: ContentGenerator,
        image_processor: Optional[ImageProcessor] = None,
        media_dir: Optional[str] = None,
    ) -> None:
        self.studio = studio
        self.generator = generator
        self.image_processor = image_processor or ImageProcessor()
        self.media_dir = media_dir or os.path.join(studio.store.data_dir, MEDIA_DIR)
        self.state = WorkflowState()
        self.video_progress: Tuple[str, int] = ("", 0)
        self._epoch = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------
    @property
    def epoch(self) -> int:
        return self._epoch

    def dispatch(self, event: Event) -> WorkflowState:
        with self._lock:
            new_state = transition(self.state, event)
            self._commit(event, new_state)
            return new_state

    def _commit(self, event: Event, new_state: WorkflowState) -> None:
        if new_state.step is not self.state.step:
            logger.debug("%s: %s -> %s", type(event).__name__, self.state.step.value, new_state.step.value)
        self.state = new_state

    def _apply(self, event: Event, epoch: int) -> WorkflowState:
        """Dispatch the result of a long-running operation unless it is stale."""
        with self._lock:
            if epoch != self._epoch:
                logger.warning("Discarding stale %s (epoch %d, now %d)", type(event).__name__, epoch, self._epoch)
                return self.state
            return self.dispatch(event)

    def _leave(self, event: Event) -> WorkflowState:
        with self._lock:
            self._epoch += 1
            return self.dispatch(event)

    def _service_name(self, default: str = DEFAULT_SERVICE_NAME) -> str:
        service = get_service(self.state.draft.service_id)
        return service.name if service else default

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def start_photo_job(self, service_id: Optional[str] = None) -> WorkflowState:
        return self.dispatch(StartPhotoJob(service_id))

    def start_video_lab(self) -> WorkflowState:
        return self.dispatch(StartVideoLab())

    def open_settings(self) -> WorkflowState:
        return self.dispatch(OpenSettings())

    def go_home(self) -> WorkflowState:
        return self._leave(Home())

    def cancel(self) -> WorkflowState:
        return self._leave(Cancel())

    def back(self) -> WorkflowState:
        return self.dispatch(Back())

    def dismiss_paywall(self) -> WorkflowState:
        return self.dispatch(DismissPaywall())

    def dismiss_notice(self) -> WorkflowState:
        return self.dispatch(DismissNotice())

    # ------------------------------------------------------------------
    # Service selection and checklist
    # ------------------------------------------------------------------
    def select_service(self, service_id: str) -> WorkflowState:
        if get_service(service_id) is None:
            return self.dispatch(ShowNotice(f"Unknown service: {service_id}"))
        return self.dispatch(SelectService(service_id))

    def continue_to_checklist(self) -> WorkflowState:
        return self.dispatch(ContinueToChecklist())

    def toggle_checklist_item(self, item: str) -> WorkflowState:
        return self.dispatch(ToggleChecklistItem(item))

    def continue_to_upload(self) -> WorkflowState:
        return self.dispatch(ContinueToUpload())

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    def add_uploads(self, paths: Sequence[str]) -> Tuple[List[str], List[str]]:
        """Validate and compress image files; return (added references, errors)."""
        added: List[str] = []
        errors: List[str] = []
        for path in paths:
            name = os.path.basename(path)
            try:
                validate_upload(path)
                added.append(self.image_processor.compress_image(path))
            except InputValidationError as exc:
                errors.append(str(exc))
            except ImageLoadError:
                errors.append(f"{name}: Could not read image")

        if errors:
            logger.warning("Rejected %d upload(s): %s", len(errors), "; ".join(errors))
        if added:
            self.dispatch(AddUploads(tuple(added)))
        if errors:
            self.dispatch(ShowNotice("\n".join(errors)))
        return added, errors

    def remove_upload(self, index: int) -> WorkflowState:
        return self.dispatch(RemoveUpload(index))

    def clear_uploads(self) -> WorkflowState:
        return self.dispatch(ClearUploads())

    # ------------------------------------------------------------------
    # Photo processing
    # ------------------------------------------------------------------
    def begin_processing(self) -> bool:
        """Enter PROCESSING if the guards allow it."""
        return self.dispatch(BeginProcessing()).step is Step.PROCESSING

    def process_uploads(self) -> WorkflowState:
        if not self.begin_processing():
            return self.state
        return self.run_processing()

    def _processing_pipeline(self, uploads: Tuple[str, ...]) -> Pipeline:
        settings = self.studio.settings
        service = self._service_name()

        if settings.auto_pair_photos and len(uploads) >= 2:
            pairing = Stage(
                "pairs",
                lambda ctx: self.generator.detect_pairs(list(uploads)),
                FailurePolicy.FALLBACK,
                fallback=lambda ctx: positional_pairs(uploads),
            )
        else:
            pairing = Stage("pairs", lambda ctx: positional_pairs(uploads), uses_ai=False)

        def select_primary(ctx: StageContext) -> str:
            pairs = ctx["pairs"]
            return pairs[0].after if pairs else uploads[0]

        stages = [
            pairing,
            Stage("primary", select_primary, uses_ai=False),
            Stage("enhanced", lambda ctx: self.image_processor.enhance_image(ctx["primary"])),
            Stage(
                "social",
                lambda ctx: self.generator.social_pack(ctx["primary"], service, settings.caption_tone),
                FailurePolicy.FALLBACK,
                fallback=lambda ctx: default_social_pack(),
            ),
        ]
        return Pipeline(stages, self.studio.ledger)

    def run_processing(self) -> WorkflowState:
        """Pair, enhance and generate the social pack for the current uploads."""
        epoch = self._epoch
        state = self.state
        if state.step is not Step.PROCESSING:
            return state

        try:
            result: PipelineResult = self._processing_pipeline(state.draft.uploads).run()
        except QuotaExceededError as exc:
            return self._apply(QuotaBlocked(exc.reason), epoch)
        except StageFailedError as exc:
            logger.error("Processing aborted at stage '%s': %s", exc.stage, exc)
            return self._apply(ProcessingFailed(friendly_error_message(str(exc))), epoch)

        social = result["social"]
        if not self.studio.settings.auto_generate_tiktok:
            social = replace(social, tiktok_script="")

        project = Project(
            service_id=state.draft.service_id or self.studio.settings.default_service_id,
            original_image=result["primary"],
            edited_image=result["enhanced"],
            status=ProjectStatus.DRAFT,
            social_data=social,
        )
        logger.info(
            "Processed %d upload(s) into %d pair(s) for project %s",
            len(state.draft.uploads),
            len(result["pairs"]),
            project.id,
        )
        return self._apply(ProcessingSucceeded(project, tuple(result["pairs"])), epoch)

    # ------------------------------------------------------------------
    # Pair review and social pack
    # ------------------------------------------------------------------
    def swap_pair(self, pair_id: str) -> WorkflowState:
        return self.dispatch(SwapPair(pair_id))

    def delete_pair(self, pair_id: str) -> WorkflowState:
        return self.dispatch(DeletePair(pair_id))

    def confirm_pairs(self) -> WorkflowState:
        return self.dispatch(ConfirmPairs())

    def update_caption(self, index: int, text: str) -> WorkflowState:
        project = self.state.project
        if project is None or project.social_data is None:
            return self.state
        captions = list(project.social_data.captions)
        if not 0 <= index < len(captions):
            return self.state
        captions[index] = text
        social = replace(project.social_data, captions=captions)
        return self.dispatch(UpdateProject(replace(project, social_data=social)))

    def regenerate_caption(self, index: int) -> WorkflowState:
        project = self.state.project
        if project is None or not project.original_image or project.social_data is None:
            return self.state
        epoch = self._epoch
        tone = self.studio.settings.caption_tone
        service = service_name(project.service_id, default="Professional Detail")
        pipeline = Pipeline(
            [
                Stage(
                    "caption",
                    lambda ctx: self.generator.regenerate_caption(project.original_image, service, tone),
                    FailurePolicy.FALLBACK,
                    fallback=lambda ctx: DEFAULT_CAPTION,
                )
            ],
            self.studio.ledger,
        )
        try:
            result = pipeline.run()
        except QuotaExceededError as exc:
            return self._apply(QuotaBlocked(exc.reason), epoch)

        with self._lock:
            if epoch != self._epoch:
                logger.warning("Discarding stale caption (epoch %d, now %d)", epoch, self._epoch)
                return self.state
            new_state = self.update_caption(index, result["caption"])
            if result.fallbacks:
                new_state = self.dispatch(ShowNotice(friendly_error_message(result.outcomes[0].error or "")))
            return new_state

    # ------------------------------------------------------------------
    # Video lab
    # ------------------------------------------------------------------
    def select_video_style(self, style: str) -> WorkflowState:
        return self.dispatch(SelectVideoStyle(style))

    def clear_video_style(self) -> WorkflowState:
        return self.dispatch(ClearVideoStyle())

    def set_video_prompt(self, text: str) -> WorkflowState:
        return self.dispatch(SetVideoPrompt(text))

    def brainstorm_video_creative(self) -> WorkflowState:
        """Ask for a creative brief; fills the prompt and the text overlay."""
        state = self.state
        style = state.draft.video_style
        if state.step is not Step.VIDEO_LAB or not style:
            return state
        epoch = self._epoch
        project = state.project
        image = (state.draft.uploads[0] if state.draft.uploads else None) or (
            project and (project.edited_image or project.original_image)
        )
        service = self._service_name(default="Professional Auto Detailing")
        pipeline = Pipeline(
            [
                Stage(
                    "creative",
                    lambda ctx: self.generator.video_creative(style, image or None, service),
                    FailurePolicy.FALLBACK,
                    fallback=lambda ctx: default_video_creative(),
                )
            ],
            self.studio.ledger,
        )
        try:
            result = pipeline.run()
        except QuotaExceededError as exc:
            return self._apply(QuotaBlocked(exc.reason), epoch)

        new_state = self._apply(CreativeReady(result["creative"]), epoch)
        if result.fallbacks and epoch == self._epoch:
            new_state = self.dispatch(ShowNotice(friendly_error_message(result.outcomes[0].error or "")))
        return new_state

    def begin_video(self, style: Optional[str] = None) -> bool:
        """Enter VIDEO_PROCESSING for ``style`` (defaults to the selected style)."""
        style = style or self.state.draft.video_style
        if not style:
            self.dispatch(ShowNotice("Pick a video style first."))
            return False
        if self.state.step in (Step.VIDEO_LAB, Step.SOCIAL_PACK) and not self.studio.ledger.can_make_ai_call():
            self.dispatch(QuotaBlocked("ai"))
            return False
        return self.dispatch(BeginVideoGeneration(style)).step is Step.VIDEO_PROCESSING

    def generate_video(self, style: Optional[str] = None) -> WorkflowState:
        if not self.begin_video(style):
            return self.state
        return self.run_video()

    def _on_video_progress(self, status: str, progress: Optional[int]) -> None:
        self.video_progress = (status, progress if progress is not None else self.video_progress[1])

    def run_video(self) -> WorkflowState:
        """Generate a clip for the current draft and attach it to a project."""
        epoch = self._epoch
        state = self.state
        if state.step is not Step.VIDEO_PROCESSING:
            return state

        draft = state.draft
        project = state.project
        if project is not None:
            first = draft.pairs[0] if draft.pairs else None
            before = first.before if first else project.original_image
            after = first.after if first else project.edited_image
        elif draft.uploads:
            before = draft.uploads[0]
            after = draft.uploads[1] if len(draft.uploads) > 1 else draft.uploads[0]
        else:
            before = after = None
        prompt = draft.video_prompt.strip() or self._service_name(default="Professional Detail")
        style = draft.video_style or "pure_promo"

        self.video_progress = ("Initializing...", 0)
        pipeline = Pipeline(
            [
                Stage(
                    "video",
                    lambda ctx: self.generator.generate_video(
                        style, before, after, prompt, on_progress=self._on_video_progress
                    ),
                )
            ],
            self.studio.ledger,
        )
        try:
            video = pipeline.run()["video"]
        except QuotaExceededError as exc:
            return self._apply(QuotaBlocked(exc.reason), epoch)
        except StageFailedError as exc:
            logger.error("Video generation failed: %s", exc)
            return self._apply(VideoFailed(friendly_error_message(str(exc))), epoch)

        if project is not None:
            updated = replace(project, video_creative=draft.video_creative or project.video_creative)
        else:
            updated = Project(
                service_id=VIDEO_LAB_SERVICE_ID,
                original_image=after,
                status=ProjectStatus.COMPLETED,
                video_creative=draft.video_creative,
                editing_config=draft.editing,
            )

        try:
            updated.generated_video_url = self._save_video(updated.id, video)
        except OSError as exc:
            logger.error("Could not store generated video: %s", exc)
            return self._apply(VideoFailed(friendly_error_message(str(exc))), epoch)

        self.video_progress = ("Complete!", 100)
        return self._apply(VideoReady(updated), epoch)

    def _save_video(self, project_id: str, data: bytes) -> str:
        ok, error = ensure_directory(self.media_dir, auto_create=True)
        if not ok:
            raise OSError(error)
        path = os.path.join(self.media_dir, f"{project_id}.mp4")
        with open(path, "wb") as handle:
            handle.write(data)
        return path

    def open_uploaded_video(self, path: str) -> WorkflowState:
        if not path.lower().endswith(SUPPORTED_VIDEO_FORMATS) or not os.path.isfile(path):
            return self.dispatch(ShowNotice(f"{os.path.basename(path)}: Not a supported video file"))
        project = Project(
            service_id=VIDEO_UPLOAD_SERVICE_ID,
            status=ProjectStatus.DRAFT,
            generated_video_url=path,
            editing_config=self.state.draft.editing,
        )
        return self.dispatch(OpenUploadedVideo(project))

    def update_editing(self, **changes) -> WorkflowState:
        try:
            editing = update_config(self.state.draft.editing, **changes)
        except InputValidationError as exc:
            return self.dispatch(ShowNotice(str(exc)))
        return self.dispatch(UpdateEditing(editing))

    # ------------------------------------------------------------------
    # Completion and export
    # ------------------------------------------------------------------
    def complete_project(self) -> WorkflowState:
        """Mark the current project completed, count it and move to EXPORT.

        When the monthly project cap is reached the paywall is raised and the
        step stays where it is.
        """
        with self._lock:
            project = self.state.project
            if project is None:
                return self.dispatch(ShowNotice("Nothing to export yet."))
            if not self.studio.ledger.can_start_project():
                logger.info("Project completion blocked by monthly limit")
                return self.dispatch(CompleteProject(allowed=False))

            editing = self.state.draft.editing if project.generated_video_url else None
            finished = project.completed(editing_config=editing)
            event = CompleteProject(allowed=True, project=finished)
            new_state = transition(self.state, event)

            self.studio.ledger.record_completed_project()
            if self.studio.settings.auto_save_to_gallery:
                self.studio.gallery.add(finished)
            self._commit(event, new_state)
            logger.info("Completed project %s", finished.id)
            return new_state

    def export_assets(self, output_dir: str) -> Tuple[bool, str, int, int, bool]:
        project = self.state.project
        if project is None:
            return False, "No project selected", 0, 0, False
        return save_project_output(project, output_dir, service_name(project.service_id))
