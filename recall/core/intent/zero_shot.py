"""Zero-shot intent layer for recall.

The most expensive and lowest-priority layer. It is consulted only when the
cheaper layers are inconclusive or the utterance reads like a general
question, and its answer is accepted only above a confidence floor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .patterns import looks_like_general_question
from .taxonomy import IntentType, best_intent

if TYPE_CHECKING:
    from ...config import ThresholdConfig
    from ..backends.zero_shot import ZeroShotBackend

logger = logging.getLogger(__name__)


# Natural-language hypotheses for the entailment model
CANDIDATE_LABELS: dict[str, IntentType] = {
    "I want to store information or share something that happened": IntentType.MEMORY_STORE,
    "I want to retrieve or ask about stored information": IntentType.MEMORY_RETRIEVE,
    "I want to change or correct information I shared before": IntentType.MEMORY_UPDATE,
    "I want to forget or delete information I shared before": IntentType.MEMORY_DELETE,
    "I want to execute a command or action": IntentType.COMMAND,
    "I have a general question that needs an answer": IntentType.QUESTION,
    "I am greeting or saying goodbye": IntentType.GREETING,
}


def is_ambiguous(
    pattern_max: float,
    semantic_max: float,
    text: str,
    thresholds: "ThresholdConfig",
) -> bool:
    """Decide whether the zero-shot layer should be consulted.

    Evidence is inconclusive when both the pattern score and the semantic
    score sit below their ambiguity thresholds. General-knowledge phrasing
    ("how long does...", "how many are...") always qualifies.

    Args:
        pattern_max: Highest pattern score
        semantic_max: Highest semantic score
        text: The utterance
        thresholds: Threshold configuration

    Returns:
        True if the zero-shot layer should run
    """
    inconclusive = (
        pattern_max < thresholds.pattern_ambiguity
        and semantic_max < thresholds.semantic_ambiguity
    )
    return inconclusive or looks_like_general_question(text)


@dataclass
class ZeroShotVerdict:
    """Zero-shot answer mapped onto the intent taxonomy."""

    intent: IntentType
    confidence: float
    scores: dict[IntentType, float]
    label: str


class ZeroShotLayer:
    """Map zero-shot label probabilities onto intents."""

    def __init__(
        self,
        backend: "ZeroShotBackend",
        labels: dict[str, IntentType] | None = None,
    ) -> None:
        self.backend = backend
        self.labels = labels or CANDIDATE_LABELS

    @property
    def available(self) -> bool:
        return self.backend is not None and self.backend.is_loaded

    async def classify(self, text: str) -> ZeroShotVerdict:
        """Classify ``text`` against the candidate labels.

        Raises:
            ModelUnavailable: If inference fails
        """
        label_scores = await self.backend.classify(text, list(self.labels))

        scores = {intent: 0.0 for intent in IntentType}
        for label, score in label_scores.items():
            intent = self.labels.get(label)
            if intent is not None and score > scores[intent]:
                scores[intent] = score

        intent, confidence = best_intent(scores)
        best_label = next((label for label, i in self.labels.items() if i is intent), "")
        logger.debug("Zero-shot: %s (%.2f) via %r", intent.value, confidence, best_label)
        return ZeroShotVerdict(intent=intent, confidence=confidence, scores=scores, label=best_label)


__all__ = ["CANDIDATE_LABELS", "ZeroShotLayer", "ZeroShotVerdict", "is_ambiguous"]
