"""Surface-feature analysis for recall intent classification.

Cheap keyword and regex tests that describe the shape of an utterance
(question, tense, imperative mood). No model dependency.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .taxonomy import IntentType

QUESTION_WORDS = ("what", "how", "when", "where", "why", "who", "which", "whose")
AUXILIARIES = (
    "do", "does", "did", "is", "are", "am", "was", "were",
    "can", "could", "will", "would", "should", "has", "have",
)

IMPERATIVE_VERBS = frozenset(
    {
        "take", "open", "send", "create", "make", "write", "draft", "set",
        "schedule", "remind", "play", "show", "call", "find", "search", "turn",
        "start", "stop", "close", "launch", "generate", "add", "book", "capture",
        "grab", "configure", "email", "text", "list",
    }
)

DOMAIN_KEYWORDS = frozenset(
    {
        "remember", "recall", "forget", "memory", "memories", "saved", "stored",
        "told", "note", "notes", "my", "appointment", "appointments", "planned",
        "schedule", "scheduled", "calendar", "meeting", "meetings",
    }
)


@dataclass(frozen=True)
class FeatureSet:
    """Boolean surface features of an utterance."""

    is_question: bool = False
    has_past_tense: bool = False
    has_future_tense: bool = False
    is_imperative: bool = False
    has_domain_keywords: bool = False
    is_greeting: bool = False

    def suggest(self) -> tuple[IntentType, float, str] | None:
        """Suggest an intent from the features alone.

        Returns:
            Tuple of (intent, confidence, reason), or None if the features
            say nothing useful
        """
        if self.is_greeting:
            return IntentType.GREETING, 0.8, "greeting phrasing"
        if self.is_imperative and not self.is_question:
            return IntentType.COMMAND, 0.7, "imperative mood"
        if self.is_question and self.has_domain_keywords:
            return IntentType.MEMORY_RETRIEVE, 0.7, "question about personal information"
        if self.is_question:
            return IntentType.QUESTION, 0.5, "question phrasing"
        if self.has_past_tense or self.has_future_tense:
            return IntentType.MEMORY_STORE, 0.6, "statement about past or future events"
        return None


class GrammarAnalyzer:
    """Compute a FeatureSet from shallow phrase detection."""

    PATTERNS = {
        "question": r"\?\s*$|^\s*(" + "|".join(QUESTION_WORDS) + r")\b",
        "inversion": r"^\s*(" + "|".join(AUXILIARIES) + r")\s+(i|you|we|they|he|she|it|there)\b",
        "past": (
            r"\b(was|were|had|did|went|met|saw|told|said|bought|ate|got|made|took)\b"
            r"|\b\w{3,}ed\b"
        ),
        "future": (
            r"\b(will|shall|going\s+to|gonna|tomorrow|tonight|later|upcoming)\b"
            r"|\bnext\s+(week|month|year|monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"
        ),
        "greeting": (
            r"^\s*(hi|hello|hey|howdy|good\s+(morning|afternoon|evening)|bye|goodbye"
            r"|see\s+you|how\s+are\s+you)\b"
        ),
    }

    def __init__(self) -> None:
        self._compiled = {
            name: re.compile(pattern, re.IGNORECASE) for name, pattern in self.PATTERNS.items()
        }

    def analyze(self, text: str) -> FeatureSet:
        """Analyze the surface features of an utterance.

        Args:
            text: Utterance to analyze

        Returns:
            FeatureSet describing the utterance (all False for empty text)
        """
        if not text or not text.strip():
            return FeatureSet()

        words = re.findall(r"[a-z']+", text.lower())
        first = words[0] if words else ""
        if first == "please" and len(words) > 1:
            first = words[1]

        return FeatureSet(
            is_question=bool(
                self._compiled["question"].search(text) or self._compiled["inversion"].search(text)
            ),
            has_past_tense=bool(self._compiled["past"].search(text)),
            has_future_tense=bool(self._compiled["future"].search(text)),
            is_imperative=first in IMPERATIVE_VERBS,
            has_domain_keywords=any(word in DOMAIN_KEYWORDS for word in words),
            is_greeting=bool(self._compiled["greeting"].search(text)),
        )


__all__ = ["FeatureSet", "GrammarAnalyzer"]
