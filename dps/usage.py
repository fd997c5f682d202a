"""Monthly free-tier usage ledger."""
from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from .config import JsonStore
from .constants import FREE_AI_CALLS_PER_MONTH, FREE_PROJECTS_PER_MONTH, STORAGE_USAGE

logger = logging.getLogger(__name__)


def current_month(today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return f"{today.year}-{today.month:02d}"


@dataclass(frozen=True)
class Usage:
    month: str
    projects_completed: int = 0
    ai_calls: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "projectsCompleted": self.projects_completed,
            "aiCalls": self.ai_calls,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Usage"]:
        """Parse a stored record; return None when it is malformed."""
        if not isinstance(data, dict):
            return None
        month = data.get("month")
        projects = data.get("projectsCompleted")
        ai_calls = data.get("aiCalls")
        if not isinstance(month, str) or not month:
            return None
        for value in (projects, ai_calls):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                return None
        return cls(month=month, projects_completed=projects, ai_calls=ai_calls)


class UsageLedger:
    """Persisted monthly counters of completed projects and AI calls.

    Every read resolves a stale record first: if the stored month differs
    from the current month, the record is replaced with zero counters for
    the new month. Nothing carries over and no history is kept.
    """

    def __init__(
        self,
        store: JsonStore,
        month_provider: Callable[[], str] = current_month,
        project_cap: int = FREE_PROJECTS_PER_MONTH,
        ai_call_cap: int = FREE_AI_CALLS_PER_MONTH,
    ) -> None:
        self.store = store
        self.month_provider = month_provider
        self.project_cap = project_cap
        self.ai_call_cap = ai_call_cap

    def _read(self) -> Usage:
        stored = Usage.from_dict(self.store.get(STORAGE_USAGE))
        if stored is None:
            return Usage(month=self.month_provider())
        return stored

    def _write(self, usage: Usage) -> None:
        self.store.set(STORAGE_USAGE, usage.to_dict())

    def current_usage(self) -> Usage:
        usage = self._read()
        now = self.month_provider()
        if usage.month != now:
            logger.info("Usage month changed from %s to %s, resetting counters", usage.month, now)
            usage = Usage(month=now)
            self._write(usage)
        return usage

    def can_start_project(self) -> bool:
        return self.current_usage().projects_completed < self.project_cap

    def can_make_ai_call(self) -> bool:
        return self.current_usage().ai_calls < self.ai_call_cap

    def record_completed_project(self) -> Usage:
        usage = self.current_usage()
        updated = Usage(usage.month, usage.projects_completed + 1, usage.ai_calls)
        self._write(updated)
        return updated

    def record_ai_call(self) -> Usage:
        usage = self.current_usage()
        updated = Usage(usage.month, usage.projects_completed, usage.ai_calls + 1)
        self._write(updated)
        logger.debug("AI call recorded (%d/%d)", updated.ai_calls, self.ai_call_cap)
        return updated

    def usage_display(self) -> Dict[str, str]:
        usage = self.current_usage()
        return {
            "projects": f"{usage.projects_completed}/{self.project_cap} projects this month",
            "ai": f"{usage.ai_calls}/{self.ai_call_cap} AI generations this month",
        }

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self.current_usage())
