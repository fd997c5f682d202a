"""Utilities for exporting project assets."""
from __future__ import annotations

import datetime
import json
import logging
import os
import shutil
from typing import Tuple

from .constants import EXPORT_PREFIX
from .errors import StudioError
from .image_processing import data_url_to_bytes
from .project import Project
from .social_pack import captions_text, format_social_pack_text, hashtags_text, social_pack_document
from .video_editing import css_filter

logger = logging.getLogger(__name__)


def _write_text(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)


def _write_image(path: str, reference: str) -> None:
    data, _ = data_url_to_bytes(reference)
    with open(path, "wb") as handle:
        handle.write(data)


def save_project_output(
    project: Project,
    output_dir: str,
    service_name: str = "Unknown",
) -> Tuple[bool, str, int, int, bool]:
    """Write every available asset of ``project`` into a new folder.

    Returns ``(success, folder_or_error, files_ok, files_failed, social_ok)``.
    """
    if not project:
        return False, "No project selected", 0, 0, False

    try:
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        name = f"{EXPORT_PREFIX}-{project.id}"
        folder_name = f"{name}_{timestamp}"
        project_folder = os.path.join(output_dir, folder_name)
        os.makedirs(project_folder, exist_ok=True)
    except OSError as exc:
        logger.error("Export failed: %s", exc)
        return False, str(exc), 0, 0, False

    files_ok = 0
    files_failed = 0

    media = [
        (project.edited_image, f"{name}-enhanced.jpg"),
        (project.original_image, f"{name}-original.jpg"),
    ]
    for reference, filename in media:
        if not reference:
            continue
        try:
            _write_image(os.path.join(project_folder, filename), reference)
            files_ok += 1
        except (OSError, StudioError) as exc:
            logger.warning("Could not export %s: %s", filename, exc)
            files_failed += 1

    if project.generated_video_url:
        try:
            shutil.copyfile(project.generated_video_url, os.path.join(project_folder, f"{name}-video.mp4"))
            files_ok += 1
        except OSError as exc:
            logger.warning("Could not export video: %s", exc)
            files_failed += 1

    if project.editing_config is not None:
        try:
            settings = project.editing_config.to_dict()
            settings["cssFilter"] = css_filter(project.editing_config)
            _write_text(
                os.path.join(project_folder, f"{name}-editing.json"),
                json.dumps(settings, indent=2),
            )
            files_ok += 1
        except OSError as exc:
            logger.warning("Could not export editing settings: %s", exc)
            files_failed += 1

    social_ok = False
    if project.social_data is not None:
        try:
            document = social_pack_document(project, service_name)
            _write_text(
                os.path.join(project_folder, f"{name}-social-pack.json"),
                json.dumps(document, indent=2, ensure_ascii=False),
            )
            _write_text(
                os.path.join(project_folder, f"{name}-social-pack.txt"),
                format_social_pack_text(project, service_name),
            )
            _write_text(os.path.join(project_folder, f"{name}-captions.txt"), captions_text(project.social_data))
            _write_text(os.path.join(project_folder, f"{name}-hashtags.txt"), hashtags_text(project.social_data))
            social_ok = True
        except OSError as exc:
            logger.warning("Could not export social pack: %s", exc)

    logger.info("Exported project %s to %s (%d ok, %d failed)", project.id, project_folder, files_ok, files_failed)
    return True, folder_name, files_ok, files_failed, social_ok
