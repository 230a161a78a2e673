"""Entity extraction for recall.

Two independent strategies run side by side and are merged:
- a learned token-classification model (when loaded)
- a declarative regex table per entity type

Entities are normalized per type and deduplicated within each type. When
both strategies come up empty a minimal regex fallback still runs, so
extraction never fails.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Iterable

from ..backends import ModelUnavailable
from .normalize import MONTH_NAME_PATTERN, normalize_entity
from .taxonomy import Entity, EntitySource, EntityType

if TYPE_CHECKING:
    from ..backends.ner import NERBackend

logger = logging.getLogger(__name__)

# Security: Maximum input length to prevent DoS via regex
MAX_INPUT_LENGTH = 10_000

# Confidence assigned per extraction strategy
PATTERN_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5

# Coarse NER tags folded into the entity schema
NER_LABELS: dict[str, EntityType] = {
    "PER": EntityType.PERSON,
    "PERSON": EntityType.PERSON,
    "LOC": EntityType.LOCATION,
    "ORG": EntityType.LOCATION,
    "MISC": EntityType.EVENT,
    "DATE": EntityType.DATETIME,
    "TIME": EntityType.DATETIME,
}

LOCATION_NOUNS = (
    "office", "home", "school", "gym", "hospital", "airport", "restaurant",
    "cafe", "coffee shop", "park", "library", "church", "mall", "supermarket",
    "grocery store", "bank", "downtown", "station", "hotel", "clinic",
    "pharmacy", "university", "campus",
)

EVENT_NOUNS = (
    "meeting", "appointment", "birthday", "party", "dinner", "lunch",
    "breakfast", "conference", "interview", "wedding", "concert", "class",
    "exam", "deadline", "vacation", "trip", "flight", "anniversary",
    "presentation", "workshop", "game", "call",
)

# Capitalized words that start sentences or name dates, never people or places
NAME_STOP_WORDS = frozenset(
    {
        "i", "the", "a", "an", "my", "what", "when", "where", "who", "why", "how",
        "which", "do", "does", "did", "is", "are", "can", "could", "will", "would",
        "please", "remember", "remind", "tell", "take", "send", "call", "meet",
        "meeting", "hi", "hello", "hey", "today", "tomorrow", "yesterday",
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        "january", "february", "march", "april", "may", "june", "july", "august",
        "september", "october", "november", "december", "next", "last", "this",
        *LOCATION_NOUNS,
        *EVENT_NOUNS,
    }
)

_WEEKDAY = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_PROPER = r"[A-Z][a-z]+"

# Entity pattern table: {entity_type: [pattern, ...]}
# A named group "value" marks the entity text; otherwise the whole match is used.
DEFAULT_ENTITY_PATTERNS: dict[str, list[str]] = {
    "datetime": [
        r"\b\d{1,2}(?::\d{2})?\s*(?:[ap]m\b|[ap]\.m\.)",
        r"\b(?:[01]?\d|2[0-3]):[0-5]\d\b",
        r"\b(?:today|tonight|tomorrow|yesterday"
        r"|this\s+(?:morning|afternoon|evening|week|weekend)"
        r"|next\s+(?:week|month|year)|last\s+week)\b",
        rf"\b(?:(?:next|this|last)\s+)?{_WEEKDAY}\b",
        rf"\b{MONTH_NAME_PATTERN}\s+\d{{1,2}}(?:st|nd|rd|th)?\b",
        r"\b\d{1,2}/\d{1,2}(?:/(?:\d{4}|\d{2}))?\b",
    ],
    "person": [
        rf"\b(?:Dr|Mr|Mrs|Ms|Prof)\.?\s+{_PROPER}(?:\s+{_PROPER})?\b",
        rf"(?i:\b(?:with|meet|meeting|call|text|email|ask|tell|see|visit|from)\s+)"
        rf"(?P<value>{_PROPER}(?:\s+{_PROPER})?)\b",
        rf"\b{_PROPER}\s+{_PROPER}\b",
    ],
    "location": [
        r"(?i:\b(?:" + "|".join(n.replace(" ", r"\s+") for n in LOCATION_NOUNS) + r")\b)",
        rf"\b\d{{1,5}}\s+(?:{_PROPER}\s+)+"
        r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Way|Court|Ct)\b\.?",
        rf"\b{_PROPER}(?:\s{_PROPER})?,\s[A-Z]{{2}}\b",
        rf"(?i:\b(?:in|at)\s+)(?P<value>{_PROPER}(?:\s+{_PROPER})?)\b",
    ],
    "event": [
        r"\b(?:" + "|".join(EVENT_NOUNS) + r")s?\b",
    ],
    "contact": [
        r"\b[\w.+-]+@[\w-]+\.[\w.-]*\w\b",
        r"(?<!\d)(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)",
        r"\bhttps?://[^\s]+",
        r"(?<![\w.@])@[A-Za-z0-9_]{2,30}\b",
    ],
}

# Types whose patterns rely on capitalization
CASE_SENSITIVE_TYPES = frozenset({EntityType.PERSON, EntityType.LOCATION})

# Minimal fallback patterns
BASIC_DATETIME = re.compile(
    r"\b(today|tomorrow|yesterday|next week|this week|\d{1,2}:\d{2}|\d{1,2}pm|\d{1,2}am)\b",
    re.IGNORECASE,
)
BASIC_PERSON = re.compile(r"\b[A-Z][a-z]+ [A-Z][a-z]+\b")
BASIC_PERSON_AFTER_WITH = re.compile(r"\b[Ww]ith ([A-Z][a-z]+)\b")


def _plausible_proper_noun(value: str) -> bool:
    words = value.replace(".", "").lower().split()
    return bool(words) and not any(word in NAME_STOP_WORDS for word in words)


def group_ner_tokens(tokens: Iterable[dict[str, Any]], min_score: float = 0.7) -> list[Entity]:
    """Group per-token NER tags into entity spans.

    Tokens scoring below ``min_score`` are skipped. A "B-" tag or a change of
    tag starts a new span. "##" word pieces are appended without a space.
    A span's confidence is the lowest score among its tokens. Pipeline output
    that is already aggregated (``entity_group``) is accepted as-is.

    Args:
        tokens: Raw token dicts from a token-classification pipeline
        min_score: Per-token confidence floor

    Returns:
        Entities with ``source`` set to model (not yet normalized)
    """
    spans: list[tuple[str, str, list[float]]] = []
    current: list[Any] | None = None  # [tag, text, scores]

    def flush() -> None:
        if current is not None:
            spans.append((current[0], current[1], current[2]))

    for token in tokens:
        score = float(token.get("score", 0.0))
        if score < min_score:
            continue

        aggregated = "entity_group" in token
        label = str(token.get("entity_group") or token.get("entity") or "O")
        if label == "O":
            continue
        prefix, _, tag = label.rpartition("-")
        word = str(token.get("word", ""))

        if current is None or aggregated or prefix == "B" or tag != current[0]:
            flush()
            current = [tag, word[2:] if word.startswith("##") else word, [score]]
        else:
            current[1] += word[2:] if word.startswith("##") else f" {word}"
            current[2].append(score)
    flush()

    entities = []
    for tag, text, scores in spans:
        entity_type = NER_LABELS.get(tag.upper())
        text = text.strip()
        if entity_type is None or not text:
            continue
        entities.append(
            Entity(value=text, type=entity_type, confidence=min(scores), source=EntitySource.MODEL)
        )
    return entities


def merge_entities(*groups: Iterable[Entity]) -> list[Entity]:
    """Union entity lists, keeping the first entity per type-scoped key.

    Earlier groups take precedence, so pass model output first.
    """
    merged: list[Entity] = []
    seen: set[tuple[EntityType, str]] = set()
    for group in groups:
        for entity in group:
            key = entity.dedup_key
            if key in seen:
                continue
            seen.add(key)
            merged.append(entity)
    return merged


def normalize_all(entities: Iterable[Entity], now: datetime | date | None = None) -> list[Entity]:
    """Fill ``normalized_value`` on each entity in place and return them."""
    result = []
    for entity in entities:
        entity.normalized_value = normalize_entity(entity.value, entity.type, now)
        result.append(entity)
    return result


def extract_basic(text: str, now: datetime | date | None = None) -> list[Entity]:
    """Minimal regex extraction: common date words and simple names.

    Never raises; used when both main strategies produce nothing.

    Args:
        text: Utterance to scan
        now: Reference point for relative dates

    Returns:
        Normalized, deduplicated entities with source fallback
    """
    if not isinstance(text, str):
        return []

    found: list[Entity] = []
    for match in BASIC_DATETIME.finditer(text):
        found.append(
            Entity(
                value=match.group(0),
                type=EntityType.DATETIME,
                confidence=FALLBACK_CONFIDENCE,
                source=EntitySource.FALLBACK,
            )
        )
    names = [m.group(0) for m in BASIC_PERSON.finditer(text)]
    names += [m.group(1) for m in BASIC_PERSON_AFTER_WITH.finditer(text)]
    for name in names:
        if _plausible_proper_noun(name):
            found.append(
                Entity(
                    value=name,
                    type=EntityType.PERSON,
                    confidence=FALLBACK_CONFIDENCE,
                    source=EntitySource.FALLBACK,
                )
            )
    return merge_entities(normalize_all(found, now))


class EntityExtractor:
    """Extract, normalize and deduplicate entities from an utterance."""

    def __init__(
        self,
        ner: "NERBackend | None" = None,
        patterns: dict[str, list[str]] | None = None,
        min_score: float = 0.7,
        max_input_length: int = MAX_INPUT_LENGTH,
    ) -> None:
        """Initialize the extractor.

        Args:
            ner: Loaded NER backend, or None to use patterns only
            patterns: Entity pattern table; defaults to DEFAULT_ENTITY_PATTERNS
            min_score: Per-token floor for NER tags
            max_input_length: Longer input is truncated

        Raises:
            ValueError: If the pattern table names an unknown entity type or
                a pattern does not compile
        """
        self.ner = ner
        self.min_score = min_score
        self.max_input_length = max_input_length
        self._compiled = self._compile(patterns if patterns is not None else DEFAULT_ENTITY_PATTERNS)

    @staticmethod
    def _compile(table: dict[str, list[str]]) -> dict[EntityType, list[re.Pattern[str]]]:
        compiled: dict[EntityType, list[re.Pattern[str]]] = {}
        for name, sources in table.items():
            try:
                entity_type = EntityType(name)
            except ValueError as e:
                raise ValueError(f"Unknown entity type in pattern table: {name!r}") from e
            flags = 0 if entity_type in CASE_SENSITIVE_TYPES else re.IGNORECASE
            try:
                compiled[entity_type] = [re.compile(source, flags) for source in sources]
            except re.error as e:
                raise ValueError(f"Invalid pattern for {name}: {e}") from e
        return compiled

    @property
    def ner_available(self) -> bool:
        return self.ner is not None and self.ner.is_loaded

    def _prepare(self, text: Any) -> str:
        if not isinstance(text, str) or not text.strip():
            return ""
        if len(text) > self.max_input_length:
            logger.warning(f"Input truncated from {len(text)} to {self.max_input_length} chars")
            text = text[: self.max_input_length]
        return text

    async def extract(self, text: str, now: datetime | date | None = None) -> list[Entity]:
        """Extract entities with the model and patterns in parallel.

        Args:
            text: Utterance to scan
            now: Reference point for relative dates (defaults to today)

        Returns:
            Normalized entities, unique per (type, normalized value)
        """
        text = self._prepare(text)
        if not text:
            return []

        try:
            model_entities, pattern_entities = await asyncio.gather(
                self._extract_model(text),
                asyncio.to_thread(self.extract_patterns, text),
            )
            entities = merge_entities(
                normalize_all(model_entities, now),
                normalize_all(pattern_entities, now),
            )
        except Exception as e:
            logger.warning(f"Entity extraction failed, using basic fallback: {e}")
            entities = []

        if not entities:
            entities = extract_basic(text, now)
        return entities

    def extract_sync(self, text: str, now: datetime | date | None = None) -> list[Entity]:
        """Synchronous extraction using patterns only (skips the model)."""
        text = self._prepare(text)
        if not text:
            return []

        try:
            entities = merge_entities(normalize_all(self.extract_patterns(text), now))
        except Exception as e:
            logger.warning(f"Pattern extraction failed, using basic fallback: {e}")
            entities = []
        return entities or extract_basic(text, now)

    async def _extract_model(self, text: str) -> list[Entity]:
        if not self.ner_available:
            return []
        assert self.ner is not None  # Type narrowing
        try:
            tokens = await self.ner.tag(text)
        except (ModelUnavailable, RuntimeError) as e:
            logger.warning(f"NER unavailable, continuing with patterns: {e}")
            return []
        try:
            return group_ner_tokens(tokens, self.min_score)
        except Exception as e:
            logger.warning(f"Malformed NER output, continuing with patterns: {e}")
            return []

    def extract_patterns(self, text: str) -> list[Entity]:
        """Run the pattern table over ``text``.

        Matches that overlap an earlier match of the same type are skipped,
        so "2:30 pm" is not also reported as "2:30".

        Returns:
            Entities with source pattern (not yet normalized)
        """
        entities: list[Entity] = []
        for entity_type, compiled in self._compiled.items():
            taken: list[tuple[int, int]] = []
            for pattern in compiled:
                for match in pattern.finditer(text):
                    group = "value" if "value" in pattern.groupindex else 0
                    start, end = match.span(group)
                    value = match.group(group)
                    if any(start < t_end and t_start < end for t_start, t_end in taken):
                        continue
                    proper_noun = entity_type == EntityType.PERSON or group == "value"
                    if proper_noun and not _plausible_proper_noun(value):
                        continue
                    taken.append((start, end))
                    entities.append(
                        Entity(
                            value=value.strip(),
                            type=entity_type,
                            confidence=PATTERN_CONFIDENCE,
                            source=EntitySource.PATTERN,
                        )
                    )
        return entities


__all__ = [
    "DEFAULT_ENTITY_PATTERNS",
    "EntityExtractor",
    "NER_LABELS",
    "extract_basic",
    "group_ner_tokens",
    "merge_entities",
    "normalize_all",
]
