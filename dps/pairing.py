"""Best-effort before/after photo pairing."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set

from .constants import MAX_AI_PAIRING_IMAGES
from .errors import CollaboratorError
from .project import PhotoPair

logger = logging.getLogger(__name__)

CONFIDENCE_LEVELS = ("high", "medium", "low")


@dataclass(frozen=True)
class PairVerdict:
    """Answer of the pairwise classifier for two images (first, second).

    ``before_index`` is 0 when the first image is the "before" shot and 1
    when the second one is.
    """

    is_pair: bool
    before_index: int = 0
    confidence: str = "low"

    @property
    def accepted(self) -> bool:
        return self.is_pair and self.confidence != "low"


PairClassifier = Callable[[str, str], PairVerdict]


def positional_pairs(images: Sequence[str]) -> List[PhotoPair]:
    """Pair consecutive images (0-1, 2-3, ...); a trailing odd image is dropped."""
    return [PhotoPair(before=images[i], after=images[i + 1]) for i in range(0, len(images) - 1, 2)]


def detect_pairs(
    images: Sequence[str],
    classifier: Optional[PairClassifier] = None,
    max_images: int = MAX_AI_PAIRING_IMAGES,
) -> List[PhotoPair]:
    """Propose before/after pairs for an ordered batch of images.

    The classifier is asked about index pairs (i, j), i < j, scanning the
    smallest i first and then the smallest j. The first accepted verdict for
    an ``i`` is committed and both indices are consumed: this is a greedy
    first-match assignment, not an optimal matching. Only the first
    ``max_images`` images go to the classifier. Unconsumed images are then
    paired positionally; when the classifier accepted nothing, the whole
    batch is paired positionally.

    Raises CollaboratorError when the classifier was asked and never
    answered, so callers can tell a real verdict from an outage.
    """
    if len(images) < 2:
        return []
    if classifier is None:
        return positional_pairs(images)

    pairs: List[PhotoPair] = []
    used: Set[int] = set()
    limit = min(len(images), max_images)
    answered = 0
    last_error: Optional[Exception] = None

    for i in range(limit - 1):
        if i in used:
            continue
        for j in range(i + 1, limit):
            if j in used:
                continue
            try:
                verdict = classifier(images[i], images[j])
            except Exception as exc:
                logger.debug("Pair classification failed for (%d, %d): %s", i, j, exc)
                last_error = exc
                continue
            answered += 1
            if not verdict.accepted:
                continue
            before_idx, after_idx = (i, j) if verdict.before_index == 0 else (j, i)
            pairs.append(PhotoPair(before=images[before_idx], after=images[after_idx]))
            used.update((i, j))
            break

    if last_error is not None and not answered:
        raise CollaboratorError(f"Pair classification failed: {last_error}") from last_error

    if not pairs:
        logger.info("No confident pairs detected, using positional pairing")
        return positional_pairs(images)

    remaining = [images[idx] for idx in range(len(images)) if idx not in used]
    pairs.extend(positional_pairs(remaining))
    return pairs
