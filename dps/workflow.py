"""Workflow state machine: immutable state, event types and the transition function.

``transition(state, event)`` is pure. It never performs I/O; the controller
runs side effects and reports their results back as events. Guard failures
(checklist too short, no uploads, empty prompt, exhausted project quota)
leave the step unchanged and set ``notice`` or ``paywall``. An event the
current step does not accept raises ``InvalidTransitionError``.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Tuple, Type

from .constants import CHECKLIST_MIN_ITEMS, VIDEO_STYLES
from .errors import InvalidTransitionError
from .project import PhotoPair, Project, VideoCreative, VideoEditingConfig


class Step(str, Enum):
    DASHBOARD = "DASHBOARD"
    SELECT_SERVICE = "SELECT_SERVICE"
    CHECKLIST = "CHECKLIST"
    UPLOAD = "UPLOAD"
    PROCESSING = "PROCESSING"
    BEFORE_AFTER = "BEFORE_AFTER"
    SOCIAL_PACK = "SOCIAL_PACK"
    VIDEO_LAB = "VIDEO_LAB"
    VIDEO_PROCESSING = "VIDEO_PROCESSING"
    VIDEO_EDIT = "VIDEO_EDIT"
    EXPORT = "EXPORT"
    SETTINGS = "SETTINGS"


BUSY_STEPS = frozenset({Step.PROCESSING, Step.VIDEO_PROCESSING})
DRAFT_STEPS = frozenset({Step.SELECT_SERVICE, Step.CHECKLIST, Step.UPLOAD})
# Where an aborted long-running step lands
SAFE_STEPS = {Step.PROCESSING: Step.DASHBOARD, Step.VIDEO_PROCESSING: Step.VIDEO_LAB}


@dataclass(frozen=True)
class Draft:
    """In-progress choices that a cancel or home action may discard."""

    service_id: Optional[str] = None
    checklist: Tuple[str, ...] = ()
    uploads: Tuple[str, ...] = ()
    pairs: Tuple[PhotoPair, ...] = ()
    video_style: Optional[str] = None
    video_prompt: str = ""
    video_creative: Optional[VideoCreative] = None
    editing: VideoEditingConfig = field(default_factory=VideoEditingConfig)


@dataclass(frozen=True)
class WorkflowState:
    step: Step = Step.DASHBOARD
    draft: Draft = field(default_factory=Draft)
    project: Optional[Project] = None
    paywall: Optional[str] = None
    notice: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self.step in BUSY_STEPS


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------
class Event:
    """Base class for workflow events."""


@dataclass(frozen=True)
class StartPhotoJob(Event):
    service_id: Optional[str] = None


@dataclass(frozen=True)
class StartVideoLab(Event):
    pass


@dataclass(frozen=True)
class OpenSettings(Event):
    pass


@dataclass(frozen=True)
class SelectService(Event):
    service_id: str


@dataclass(frozen=True)
class ContinueToChecklist(Event):
    pass


@dataclass(frozen=True)
class ToggleChecklistItem(Event):
    item: str


@dataclass(frozen=True)
class ContinueToUpload(Event):
    pass


@dataclass(frozen=True)
class AddUploads(Event):
    images: Tuple[str, ...]


@dataclass(frozen=True)
class RemoveUpload(Event):
    index: int


@dataclass(frozen=True)
class ClearUploads(Event):
    pass


@dataclass(frozen=True)
class BeginProcessing(Event):
    pass


@dataclass(frozen=True)
class ProcessingSucceeded(Event):
    project: Project
    pairs: Tuple[PhotoPair, ...]


@dataclass(frozen=True)
class ProcessingFailed(Event):
    message: str


@dataclass(frozen=True)
class QuotaBlocked(Event):
    reason: str


@dataclass(frozen=True)
class SwapPair(Event):
    pair_id: str


@dataclass(frozen=True)
class DeletePair(Event):
    pair_id: str


@dataclass(frozen=True)
class ConfirmPairs(Event):
    pass


@dataclass(frozen=True)
class UpdateProject(Event):
    project: Project


@dataclass(frozen=True)
class CompleteProject(Event):
    allowed: bool
    project: Optional[Project] = None


@dataclass(frozen=True)
class SelectVideoStyle(Event):
    style: str


@dataclass(frozen=True)
class ClearVideoStyle(Event):
    pass


@dataclass(frozen=True)
class SetVideoPrompt(Event):
    text: str


@dataclass(frozen=True)
class CreativeReady(Event):
    creative: VideoCreative


@dataclass(frozen=True)
class UpdateEditing(Event):
    editing: VideoEditingConfig


@dataclass(frozen=True)
class BeginVideoGeneration(Event):
    style: str


@dataclass(frozen=True)
class VideoReady(Event):
    project: Project


@dataclass(frozen=True)
class VideoFailed(Event):
    message: str


@dataclass(frozen=True)
class OpenUploadedVideo(Event):
    project: Project


@dataclass(frozen=True)
class Back(Event):
    pass


@dataclass(frozen=True)
class Cancel(Event):
    pass


@dataclass(frozen=True)
class Home(Event):
    pass


@dataclass(frozen=True)
class ShowNotice(Event):
    message: str


@dataclass(frozen=True)
class DismissNotice(Event):
    pass


@dataclass(frozen=True)
class DismissPaywall(Event):
    pass


# ----------------------------------------------------------------------
# Accepted events per step
# ----------------------------------------------------------------------
EventTypes = FrozenSet[Type[Event]]

ALWAYS: EventTypes = frozenset({Home, Cancel, QuotaBlocked, ShowNotice, DismissNotice, DismissPaywall})
NAVIGATION: EventTypes = frozenset({StartPhotoJob, StartVideoLab, OpenSettings})

ACCEPTED: Dict[Step, EventTypes] = {
    Step.DASHBOARD: NAVIGATION,
    Step.SELECT_SERVICE: NAVIGATION | {SelectService, ContinueToChecklist, Back},
    Step.CHECKLIST: NAVIGATION | {ToggleChecklistItem, ContinueToUpload, Back},
    Step.UPLOAD: NAVIGATION | {AddUploads, RemoveUpload, ClearUploads, BeginProcessing, Back},
    Step.PROCESSING: frozenset({ProcessingSucceeded, ProcessingFailed}),
    Step.BEFORE_AFTER: NAVIGATION | {SwapPair, DeletePair, ConfirmPairs, UpdateProject},
    Step.SOCIAL_PACK: NAVIGATION | {UpdateProject, CompleteProject, BeginVideoGeneration, Back},
    Step.VIDEO_LAB: NAVIGATION
    | {
        SelectVideoStyle,
        ClearVideoStyle,
        SetVideoPrompt,
        CreativeReady,
        UpdateEditing,
        AddUploads,
        ClearUploads,
        BeginVideoGeneration,
        OpenUploadedVideo,
        Back,
    },
    Step.VIDEO_PROCESSING: frozenset({VideoReady, VideoFailed}),
    Step.VIDEO_EDIT: NAVIGATION | {UpdateEditing, UpdateProject, CompleteProject, Back},
    Step.EXPORT: NAVIGATION | {UpdateProject, Back},
    Step.SETTINGS: NAVIGATION | {Back},
}


def accepts(state: WorkflowState, event: Event) -> bool:
    return type(event) in ALWAYS or type(event) in ACCEPTED[state.step]


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------
def _go(state: WorkflowState, step: Step, **changes) -> WorkflowState:
    return replace(state, step=step, notice=None, **changes)


def _update_draft(state: WorkflowState, **changes) -> WorkflowState:
    return replace(state, draft=replace(state.draft, **changes), notice=None)


def _blocked(state: WorkflowState, message: str) -> WorkflowState:
    return replace(state, notice=message)


def _home(state: WorkflowState) -> WorkflowState:
    return WorkflowState(paywall=state.paywall)


def _start_photo_job(state: WorkflowState, event: StartPhotoJob) -> WorkflowState:
    draft = state.draft if event.service_id is None else replace(state.draft, service_id=event.service_id)
    return _go(state, Step.SELECT_SERVICE, draft=draft)


def _start_video_lab(state: WorkflowState, event: StartVideoLab) -> WorkflowState:
    return _go(state, Step.VIDEO_LAB)


def _open_settings(state: WorkflowState, event: OpenSettings) -> WorkflowState:
    return _go(state, Step.SETTINGS)


def _select_service(state: WorkflowState, event: SelectService) -> WorkflowState:
    return _update_draft(state, service_id=event.service_id)


def _continue_to_checklist(state: WorkflowState, event: ContinueToChecklist) -> WorkflowState:
    if not state.draft.service_id:
        return _blocked(state, "Pick a service first.")
    return _go(state, Step.CHECKLIST)


def _toggle_checklist_item(state: WorkflowState, event: ToggleChecklistItem) -> WorkflowState:
    checked = state.draft.checklist
    if event.item in checked:
        checked = tuple(item for item in checked if item != event.item)
    else:
        checked = checked + (event.item,)
    return _update_draft(state, checklist=checked)


def _continue_to_upload(state: WorkflowState, event: ContinueToUpload) -> WorkflowState:
    if len(state.draft.checklist) < CHECKLIST_MIN_ITEMS:
        return _blocked(state, f"Check at least {CHECKLIST_MIN_ITEMS} shots to continue.")
    return _go(state, Step.UPLOAD)


def _add_uploads(state: WorkflowState, event: AddUploads) -> WorkflowState:
    return _update_draft(state, uploads=state.draft.uploads + tuple(event.images))


def _remove_upload(state: WorkflowState, event: RemoveUpload) -> WorkflowState:
    uploads = state.draft.uploads
    if not 0 <= event.index < len(uploads):
        return state
    return _update_draft(state, uploads=uploads[: event.index] + uploads[event.index + 1:])


def _clear_uploads(state: WorkflowState, event: ClearUploads) -> WorkflowState:
    return _update_draft(state, uploads=())


def _begin_processing(state: WorkflowState, event: BeginProcessing) -> WorkflowState:
    if not state.draft.uploads:
        return _blocked(state, "Add at least one photo first.")
    return _go(state, Step.PROCESSING)


def _processing_succeeded(state: WorkflowState, event: ProcessingSucceeded) -> WorkflowState:
    return _go(
        state,
        Step.BEFORE_AFTER,
        project=event.project,
        draft=replace(state.draft, pairs=tuple(event.pairs)),
    )


def _processing_failed(state: WorkflowState, event: ProcessingFailed) -> WorkflowState:
    return replace(state, step=Step.DASHBOARD, notice=event.message)


def _quota_blocked(state: WorkflowState, event: QuotaBlocked) -> WorkflowState:
    step = SAFE_STEPS.get(state.step, state.step)
    return replace(state, step=step, paywall=event.reason)


def _swap_pair(state: WorkflowState, event: SwapPair) -> WorkflowState:
    pairs = tuple(pair.swapped() if pair.id == event.pair_id else pair for pair in state.draft.pairs)
    return _update_draft(state, pairs=pairs)


def _delete_pair(state: WorkflowState, event: DeletePair) -> WorkflowState:
    pairs = tuple(pair for pair in state.draft.pairs if pair.id != event.pair_id)
    return _update_draft(state, pairs=pairs)


def _confirm_pairs(state: WorkflowState, event: ConfirmPairs) -> WorkflowState:
    return _go(state, Step.SOCIAL_PACK)


def _update_project(state: WorkflowState, event: UpdateProject) -> WorkflowState:
    return replace(state, project=event.project, notice=None)


def _complete_project(state: WorkflowState, event: CompleteProject) -> WorkflowState:
    if not event.allowed:
        return replace(state, paywall="projects")
    project = event.project if event.project is not None else state.project
    return _go(state, Step.EXPORT, project=project)


def _select_video_style(state: WorkflowState, event: SelectVideoStyle) -> WorkflowState:
    if event.style not in VIDEO_STYLES:
        return _blocked(state, f"Unknown video style: {event.style}")
    return _update_draft(state, video_style=event.style)


def _clear_video_style(state: WorkflowState, event: ClearVideoStyle) -> WorkflowState:
    return _update_draft(state, video_style=None)


def _set_video_prompt(state: WorkflowState, event: SetVideoPrompt) -> WorkflowState:
    return _update_draft(state, video_prompt=event.text)


def _creative_ready(state: WorkflowState, event: CreativeReady) -> WorkflowState:
    editing = replace(state.draft.editing, text_overlay=event.creative.hook)
    return _update_draft(
        state,
        video_creative=event.creative,
        video_prompt=event.creative.scene_description,
        editing=editing,
    )


def _update_editing(state: WorkflowState, event: UpdateEditing) -> WorkflowState:
    return _update_draft(state, editing=event.editing)


def _begin_video_generation(state: WorkflowState, event: BeginVideoGeneration) -> WorkflowState:
    if event.style not in VIDEO_STYLES:
        return _blocked(state, f"Unknown video style: {event.style}")
    if state.step is Step.VIDEO_LAB and not state.draft.video_prompt.strip():
        return _blocked(state, "Describe the scene before producing a clip.")
    if state.step is Step.SOCIAL_PACK and state.project is None:
        return _blocked(state, "Finish a photo job first.")
    return _go(state, Step.VIDEO_PROCESSING, draft=replace(state.draft, video_style=event.style))


def _video_ready(state: WorkflowState, event: VideoReady) -> WorkflowState:
    return _go(state, Step.VIDEO_EDIT, project=event.project)


def _video_failed(state: WorkflowState, event: VideoFailed) -> WorkflowState:
    return replace(state, step=Step.VIDEO_LAB, notice=event.message)


def _open_uploaded_video(state: WorkflowState, event: OpenUploadedVideo) -> WorkflowState:
    return _go(state, Step.VIDEO_EDIT, project=event.project)


def _back(state: WorkflowState, event: Back) -> WorkflowState:
    step = state.step
    if step is Step.CHECKLIST:
        return _go(state, Step.SELECT_SERVICE)
    if step is Step.UPLOAD:
        return _go(state, Step.CHECKLIST)
    if step is Step.VIDEO_EDIT:
        return _go(state, Step.VIDEO_LAB)
    if step is Step.VIDEO_LAB and state.draft.video_style is not None:
        return _update_draft(state, video_style=None)
    if step in (Step.SELECT_SERVICE, Step.EXPORT, Step.SETTINGS):
        return _home(state)
    return _go(state, Step.DASHBOARD)


def _cancel(state: WorkflowState, event: Cancel) -> WorkflowState:
    if state.step is Step.DASHBOARD:
        return state
    if state.step in DRAFT_STEPS:
        return WorkflowState(paywall=state.paywall)
    if state.step is Step.VIDEO_LAB:
        return _update_draft(state, video_style=None)
    return _go(state, Step.DASHBOARD)


def _home_event(state: WorkflowState, event: Home) -> WorkflowState:
    return _home(state)


def _show_notice(state: WorkflowState, event: ShowNotice) -> WorkflowState:
    return replace(state, notice=event.message)


def _dismiss_notice(state: WorkflowState, event: DismissNotice) -> WorkflowState:
    return replace(state, notice=None)


def _dismiss_paywall(state: WorkflowState, event: DismissPaywall) -> WorkflowState:
    return replace(state, paywall=None)


HANDLERS: Dict[Type[Event], Callable[[WorkflowState, Event], WorkflowState]] = {
    StartPhotoJob: _start_photo_job,
    StartVideoLab: _start_video_lab,
    OpenSettings: _open_settings,
    SelectService: _select_service,
    ContinueToChecklist: _continue_to_checklist,
    ToggleChecklistItem: _toggle_checklist_item,
    ContinueToUpload: _continue_to_upload,
    AddUploads: _add_uploads,
    RemoveUpload: _remove_upload,
    ClearUploads: _clear_uploads,
    BeginProcessing: _begin_processing,
    ProcessingSucceeded: _processing_succeeded,
    ProcessingFailed: _processing_failed,
    QuotaBlocked: _quota_blocked,
    SwapPair: _swap_pair,
    DeletePair: _delete_pair,
    ConfirmPairs: _confirm_pairs,
    UpdateProject: _update_project,
    CompleteProject: _complete_project,
    SelectVideoStyle: _select_video_style,
    ClearVideoStyle: _clear_video_style,
    SetVideoPrompt: _set_video_prompt,
    CreativeReady: _creative_ready,
    UpdateEditing: _update_editing,
    BeginVideoGeneration: _begin_video_generation,
    VideoReady: _video_ready,
    VideoFailed: _video_failed,
    OpenUploadedVideo: _open_uploaded_video,
    Back: _back,
    Cancel: _cancel,
    Home: _home_event,
    ShowNotice: _show_notice,
    DismissNotice: _dismiss_notice,
    DismissPaywall: _dismiss_paywall,
}


def transition(state: WorkflowState, event: Event) -> WorkflowState:
    """Return the state that follows ``event``; ``state`` itself is never modified."""
    if not accepts(state, event):
        raise InvalidTransitionError(f"{type(event).__name__} is not accepted in {state.step.value}")
    return HANDLERS[type(event)](state, event)
