"""Detailer Pro Studio backend package."""

from .backend import Backend
from .constants import APP_NAME
from .project import Project

__all__ = ["Backend", "Project", "APP_NAME"]
