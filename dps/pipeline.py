"""Sequential generation pipeline with per-stage failure policy."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .errors import QuotaExceededError, StageFailedError
from .usage import UsageLedger

logger = logging.getLogger(__name__)

StageContext = Dict[str, Any]


class FailurePolicy(str, Enum):
    ABORT = "abort"
    FALLBACK = "fallback"


@dataclass
class Stage:
    """One named step; its result is stored in the context under ``name``."""

    name: str
    run: Callable[[StageContext], Any]
    policy: FailurePolicy = FailurePolicy.ABORT
    fallback: Optional[Callable[[StageContext], Any]] = None
    uses_ai: bool = True


@dataclass
class StageOutcome:
    name: str
    value: Any
    used_fallback: bool = False
    error: Optional[str] = None


@dataclass
class PipelineResult:
    context: StageContext
    outcomes: List[StageOutcome] = field(default_factory=list)

    def __getitem__(self, name: str) -> Any:
        return self.context[name]

    @property
    def fallbacks(self) -> List[str]:
        return [outcome.name for outcome in self.outcomes if outcome.used_fallback]


class Pipeline:
    """Run stages strictly in order, each awaiting the previous one.

    AI stages consult the usage ledger before running and raise
    ``QuotaExceededError`` instead of calling out when it is exhausted. A
    successful AI stage is recorded exactly once; a substituted fallback is
    not recorded.
    """

    def __init__(self, stages: List[Stage], ledger: UsageLedger) -> None:
        self.stages = stages
        self.ledger = ledger

    def run(self, context: Optional[StageContext] = None) -> PipelineResult:
        result = PipelineResult(context=dict(context or {}))
        for stage in self.stages:
            result.outcomes.append(self._run_stage(stage, result.context))
        return result

    def _run_stage(self, stage: Stage, context: StageContext) -> StageOutcome:
        if stage.uses_ai and not self.ledger.can_make_ai_call():
            logger.warning("Stage '%s' blocked: AI call limit reached", stage.name)
            raise QuotaExceededError("ai")

        try:
            value = stage.run(context)
        except QuotaExceededError:
            raise
        except Exception as exc:
            if stage.policy is FailurePolicy.FALLBACK and stage.fallback is not None:
                logger.warning("Stage '%s' failed, using fallback: %s", stage.name, exc)
                value = stage.fallback(context)
                context[stage.name] = value
                return StageOutcome(stage.name, value, used_fallback=True, error=str(exc))
            logger.error("Stage '%s' failed: %s", stage.name, exc)
            raise StageFailedError(stage.name, exc) from exc

        if stage.uses_ai:
            self.ledger.record_ai_call()
        context[stage.name] = value
        logger.debug("Stage '%s' completed", stage.name)
        return StageOutcome(stage.name, value)
