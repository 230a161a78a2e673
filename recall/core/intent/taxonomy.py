"""Intent taxonomy and classification results for recall.

This module defines the closed set of intents, the classification methods
that can produce a result, confidence levels, and the seed example record
used by the learned layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentType(str, Enum):
    """Core intent types for user utterance classification."""

    MEMORY_STORE = "memory_store"  # Remember something the user shared
    MEMORY_RETRIEVE = "memory_retrieve"  # Look up something stored earlier
    MEMORY_UPDATE = "memory_update"  # Correct a stored memory
    MEMORY_DELETE = "memory_delete"  # Forget a stored memory
    COMMAND = "command"  # Perform an action
    QUESTION = "question"  # General knowledge question
    GREETING = "greeting"  # Hello / goodbye

    @property
    def is_memory(self) -> bool:
        """Whether this intent reads or writes the memory store."""
        return self.value.startswith("memory_")


class ClassificationMethod(str, Enum):
    """Layer of the pipeline that produced a classification."""

    PATTERN = "pattern"
    SEMANTIC = "semantic"
    ZERO_SHOT = "zero_shot"
    STATISTICAL = "statistical"
    FALLBACK = "fallback"


# Tie-break order used when several intents score equally (higher wins)
INTENT_PRIORITY: dict[IntentType, int] = {
    IntentType.MEMORY_RETRIEVE: 6,
    IntentType.MEMORY_STORE: 5,
    IntentType.MEMORY_UPDATE: 4,
    IntentType.MEMORY_DELETE: 3,
    IntentType.COMMAND: 2,
    IntentType.QUESTION: 1,
    IntentType.GREETING: 0,
}


class IntentConfidence:
    """Confidence levels for intent classification.

    - HIGH (>=0.85): Route without confirmation
    - MEDIUM (>=0.5): Route, callers may confirm
    - LOW (>=0.1): Ask for clarification
    - MINIMUM: Floor used for the unknown-intent default
    """

    HIGH = 0.85
    MEDIUM = 0.5
    LOW = 0.1
    MINIMUM = 0.1

    @classmethod
    def level(cls, confidence: float) -> str:
        """Name the band a confidence falls in: "high", "medium", "low" or "none"."""
        if confidence >= cls.HIGH:
            return "high"
        if confidence >= cls.MEDIUM:
            return "medium"
        if confidence >= cls.LOW:
            return "low"
        return "none"


# Default clarification thresholds per producing method
CLARIFY_THRESHOLD = 0.5
ZERO_SHOT_CLARIFY_THRESHOLD = 0.1


def best_intent(scores: dict[IntentType, float]) -> tuple[IntentType, float]:
    """Pick the highest scoring intent, breaking ties by INTENT_PRIORITY.

    Args:
        scores: Per-intent scores (missing intents count as 0)

    Returns:
        Tuple of (winning intent, its score)
    """
    if not scores:
        return IntentType.QUESTION, 0.0
    winner = max(scores, key=lambda i: (scores[i], INTENT_PRIORITY[i]))
    return winner, scores[winner]


def clamp(value: float) -> float:
    """Clamp a confidence value into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


class EntityType(str, Enum):
    """Entity types extracted from utterances."""

    DATETIME = "datetime"
    PERSON = "person"
    LOCATION = "location"
    EVENT = "event"
    CONTACT = "contact"


class EntitySource(str, Enum):
    """Extraction strategy that produced an entity."""

    MODEL = "model"
    PATTERN = "pattern"
    FALLBACK = "fallback"


@dataclass
class Entity:
    """A typed span extracted from an utterance.

    Attributes:
        value: Surface text as it appeared in the utterance
        type: Entity type
        normalized_value: Canonical form, or None if not normalized
        confidence: Extraction confidence 0.0-1.0
        source: Strategy that produced the entity
    """

    value: str
    type: EntityType
    normalized_value: str | None = None
    confidence: float = 0.5
    source: EntitySource = EntitySource.PATTERN

    def __post_init__(self) -> None:
        self.confidence = clamp(self.confidence)

    @property
    def dedup_key(self) -> tuple[EntityType, str]:
        """Type-scoped identity used when merging extractions."""
        return self.type, (self.normalized_value or self.value).strip().lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for downstream handlers."""
        return {
            "value": self.value,
            "type": self.type.value,
            "normalized_value": self.normalized_value,
            "confidence": self.confidence,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class SeedExample:
    """A curated labelled utterance used by the learned layers.

    Attributes:
        text: Example utterance
        intent: Labelled intent
        confidence_hint: Optional "high", "medium" or "low"
        complexity_hint: Optional "simple" or "ambiguous"
    """

    text: str
    intent: IntentType
    confidence_hint: str | None = None
    complexity_hint: str | None = None


@dataclass
class ClassificationResult:
    """Result of intent classification.

    Attributes:
        intent: The resolved intent (always a member of IntentType)
        confidence: Confidence score 0.0-1.0
        reasoning: Human-readable explanation of the decision
        method: Pipeline layer that produced the result
        possible_intents: Runner-up intents considered by the deciding layer
        scores: Per-intent evidence from the deciding layer
        capture_screen: Whether the command asks for a screenshot
        clarify_threshold: Configured clarification threshold, if any
    """

    intent: IntentType
    confidence: float
    reasoning: str = ""
    method: ClassificationMethod = ClassificationMethod.FALLBACK
    possible_intents: list[IntentType] = field(default_factory=list)
    scores: dict[IntentType, float] = field(default_factory=dict)
    capture_screen: bool = False
    clarify_threshold: float | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.confidence = clamp(self.confidence)

    @property
    def requires_memory_access(self) -> bool:
        """Whether downstream handling needs the memory store."""
        return self.intent.is_memory

    def needs_clarification(self, threshold: float | None = None) -> bool:
        """Check whether the caller should ask the user to clarify.

        Args:
            threshold: Explicit threshold; defaults to the threshold set by
                the parser, else 0.1 for zero-shot results and 0.5 otherwise

        Returns:
            True if confidence is below the threshold
        """
        if threshold is None:
            threshold = self.clarify_threshold
        if threshold is None:
            threshold = (
                ZERO_SHOT_CLARIFY_THRESHOLD
                if self.method == ClassificationMethod.ZERO_SHOT
                else CLARIFY_THRESHOLD
            )
        return self.confidence < threshold

    def clarification_prompt(self) -> str:
        """Build a short clarification question for the user."""
        options = [self.intent, *[i for i in self.possible_intents if i != self.intent]]
        labels = [i.value.replace("_", " ") for i in options[:3]]
        if len(labels) == 1:
            return f"Did you mean to {labels[0]}?"
        return f"Did you mean to {', '.join(labels[:-1])} or {labels[-1]}?"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for downstream handlers."""
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "method": self.method.value,
            "possible_intents": [i.value for i in self.possible_intents],
            "requires_memory_access": self.requires_memory_access,
            "capture_screen": self.capture_screen,
        }

    @classmethod
    def default(cls, reason: str = "No layer produced a confident match") -> "ClassificationResult":
        """Create the lowest-confidence result used when nothing else applies.

        Args:
            reason: Explanation stored in reasoning

        Returns:
            ClassificationResult with QUESTION intent and minimum confidence
        """
        return cls(
            intent=IntentType.QUESTION,
            confidence=IntentConfidence.MINIMUM,
            reasoning=reason,
            method=ClassificationMethod.FALLBACK,
        )


__all__ = [
    "CLARIFY_THRESHOLD",
    "ClassificationMethod",
    "ClassificationResult",
    "Entity",
    "EntitySource",
    "EntityType",
    "INTENT_PRIORITY",
    "IntentConfidence",
    "IntentType",
    "SeedExample",
    "ZERO_SHOT_CLARIFY_THRESHOLD",
    "best_intent",
    "clamp",
]
