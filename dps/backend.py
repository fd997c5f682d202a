"""Core backend wiring storage, state, generator and workflow controller together."""
from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from PIL import Image

from . import config
from .constants import APP_NAME, MEDIA_DIR, QUEUED_BEHIND_STALE_NOTICE
from .controller import WorkflowController
from .errors import CollaboratorError, ImageLoadError
from .generator import ContentGenerator, StubGenerator, create_generator
from .image_processing import ImageProcessor
from .state import StudioState, load_studio_state, save_studio_state
from .usage import current_month
from .workflow import ShowNotice

logger = logging.getLogger(__name__)


class Backend:
    """Backend logic for Detailer Pro Studio."""

    def __init__(
        self,
        data_dir: Optional[str] = None,
        generator: Optional[ContentGenerator] = None,
        month_provider: Callable[[], str] = current_month,
    ) -> None:
        self.initialization_error: Optional[str] = None
        self.initialization_warning: Optional[str] = None

        self.data_dir = data_dir or config.default_data_dir()
        self.store = config.JsonStore(self.data_dir)
        self.studio: StudioState = load_studio_state(self.store, month_provider)

        if generator is None:
            try:
                generator = create_generator(config.get_api_key())
            except CollaboratorError as exc:
                logger.error("Could not create Gemini client: %s", exc)
                self.initialization_warning = f"AI features are offline: {exc}"
                generator = StubGenerator()
        if isinstance(generator, StubGenerator) and not self.initialization_warning:
            self.initialization_warning = (
                "GEMINI_API_KEY is not set. Add it to your .env file to enable AI generation; "
                "placeholder content will be used until then."
            )
        self.generator = generator

        self.image_processor = ImageProcessor()
        self.controller = WorkflowController(
            self.studio,
            self.generator,
            self.image_processor,
            os.path.join(self.data_dir, MEDIA_DIR),
        )

        # One worker keeps generation calls strictly sequential
        self.executor = ThreadPoolExecutor(max_workers=1)
        self._jobs: List[Tuple[Future, int]] = []
        logger.info("%s backend ready (data dir: %s)", APP_NAME, self.data_dir)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------
    def run_async(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Queue a job on the worker, tagged with the epoch it was started in."""
        if self.stale_jobs():
            self.controller.dispatch(ShowNotice(QUEUED_BEHIND_STALE_NOTICE))
        future = self.executor.submit(func, *args, **kwargs)
        self._jobs.append((future, self.controller.epoch))
        return future

    def _running_jobs(self) -> List[Tuple[Future, int]]:
        self._jobs = [(future, epoch) for future, epoch in self._jobs if not future.done()]
        return self._jobs

    def busy(self) -> bool:
        """Return True while a job started on the current screen is unfinished."""
        epoch = self.controller.epoch
        return any(job_epoch == epoch for _, job_epoch in self._running_jobs())

    def stale_jobs(self) -> int:
        """Count unfinished jobs whose results will be discarded."""
        epoch = self.controller.epoch
        return sum(1 for _, job_epoch in self._running_jobs() if job_epoch != epoch)

    def process_uploads_async(self) -> Optional[Future]:
        if not self.controller.begin_processing():
            return None
        return self.run_async(self.controller.run_processing)

    def generate_video_async(self, style: Optional[str] = None) -> Optional[Future]:
        if not self.controller.begin_video(style):
            return None
        return self.run_async(self.controller.run_video)

    # ------------------------------------------------------------------
    # Settings and profile
    # ------------------------------------------------------------------
    def update_settings(self, **changes: Any) -> None:
        self.studio.update_settings(**changes)

    def update_display_name(self, name: str) -> None:
        self.studio.update_display_name(name)

    def update_avatar_from_file(self, path: str) -> Tuple[bool, Optional[str]]:
        try:
            self.studio.update_avatar(self.image_processor.make_avatar(path))
            return True, None
        except ImageLoadError as exc:
            return False, str(exc)

    def clear_avatar(self) -> None:
        self.studio.update_avatar("")

    def usage_display(self) -> Dict[str, str]:
        return self.studio.ledger.usage_display()

    # ------------------------------------------------------------------
    # Gallery
    # ------------------------------------------------------------------
    def delete_gallery_project(self, project_id: str) -> bool:
        return self.studio.gallery.remove(project_id)

    def get_cached_thumbnail(self, reference: str, size: Tuple[int, int] = (150, 150)) -> Image.Image:
        return self.image_processor.get_cached_thumbnail(reference, size)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------
    def shutdown(self) -> None:
        save_studio_state(self.studio)
        self.executor.shutdown(wait=False)
        logger.info("Backend shut down")


__all__ = ["Backend", "APP_NAME"]
