"""Capped on-device gallery of recent projects."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from .config import JsonStore
from .constants import FREE_GALLERY_SIZE, STORAGE_PROJECTS
from .project import Project

logger = logging.getLogger(__name__)

LOCAL_REFERENCE_PREFIXES = ("data:", "blob:")


def is_local_reference(reference: Any) -> bool:
    """Return True for image references that live on this device."""
    return isinstance(reference, str) and reference.startswith(LOCAL_REFERENCE_PREFIXES)


class GalleryStore:
    """Manage recently finished projects, newest first."""

    def __init__(self, store: JsonStore, cap: int = FREE_GALLERY_SIZE) -> None:
        self.store = store
        self.cap = cap
        self._projects: List[Project] = []

    @property
    def items(self) -> List[Project]:
        """Return a copy of the gallery, newest first."""
        return list(self._projects)

    def __len__(self) -> int:
        return len(self._projects)

    def load(self) -> int:
        """Read the persisted gallery, dropping entries without a local image."""
        raw = self.store.get(STORAGE_PROJECTS, [])
        self._projects = self._parse(raw)[: self.cap]
        return len(self._projects)

    def get(self, project_id: str) -> Optional[Project]:
        for project in self._projects:
            if project.id == project_id:
                return project
        return None

    def add(self, project: Project) -> None:
        """Prepend a project, replacing any entry with the same id, then cap."""
        filtered = [item for item in self._projects if item.id != project.id]
        self._projects = [project] + filtered
        if len(self._projects) > self.cap:
            dropped = self._projects[self.cap:]
            logger.debug("Gallery full, evicting %d project(s)", len(dropped))
            self._projects = self._projects[: self.cap]
        self._persist()

    def remove(self, project_id: str) -> bool:
        before = len(self._projects)
        self._projects = [item for item in self._projects if item.id != project_id]
        if len(self._projects) == before:
            return False
        self._persist()
        return True

    def clear(self) -> None:
        self._projects = []
        self._persist()

    def save(self) -> None:
        self._persist()

    def _persist(self) -> None:
        self.store.set(STORAGE_PROJECTS, [project.to_dict() for project in self._projects])

    @staticmethod
    def _parse(raw: Any) -> List[Project]:
        if not isinstance(raw, list):
            return []
        projects: List[Project] = []
        for entry in raw:
            if not isinstance(entry, dict) or not is_local_reference(entry.get("originalImage")):
                continue
            try:
                projects.append(Project.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable gallery entry: %s", exc)
        return projects
