"""Lexical pattern matching for recall intent classification.

The first and cheapest layer of the pipeline. Each intent owns a list of
regular expressions; an utterance scores one point per matching expression.
The table is plain data so it can be replaced from configuration or a YAML
file without touching the matcher.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .taxonomy import IntentType, best_intent

logger = logging.getLogger(__name__)


# Pattern definitions: {intent: [pattern, ...]}
DEFAULT_INTENT_PATTERNS: dict[str, list[str]] = {
    "greeting": [
        r"^\s*(hi|hello|hey|howdy|greetings|yo)\b",
        r"^\s*good\s+(morning|afternoon|evening)\b",
        r"^\s*(what'?s\s+up|how\s+are\s+you|how'?s\s+it\s+going)\b",
        r"^\s*(hi|hello|hey|howdy|yo|good\s+(morning|afternoon|evening))(\s+there)?\s*[!.?]*\s*$",
        r"\b(how\s+are\s+you|how'?s\s+it\s+going|what'?s\s+up)(\s+doing)?(\s+today)?\s*[!.?]*\s*$",
        r"^\s*(bye|goodbye|see\s+you(\s+later)?|good\s*night|talk\s+(to\s+you\s+)?later)\b",
    ],
    "memory_store": [
        r"\bmy\s+name\s+is\b",
        r"\bremember\s+(that|this)\b",
        r"\b(save|store|note)\s+(this|that)\b",
        r"\bmy\s+\w+(\s+\w+)?\s+is\b",
        r"\bi'?m\s+(allergic|married|from|a|an)\b|\bi\s+am\s+(allergic|married|from|a|an)\b",
        r"\bi\s+live\b",
        r"\bmy\s+favou?rite\b",
        r"^\s*i\s+have\s+(a|an)\b",
        r"\bi\s+(had|went|met|saw|visited|finished|bought)\b",
    ],
    "memory_retrieve": [
        r"\bwhat('?s|\s+is|\s+are|\s+was)\s+my\b",
        r"\bdo\s+you\s+remember\b",
        r"\bwhat\s+did\s+i\b",
        r"\brecall\b",
        r"\bwho\s+am\s+i\b",
        r"\bwhat\s+do\s+i\s+have\b",
        r"\b(do|did)\s+i\s+have\b",
        r"\b(when|where)\s+(is|was|are)\s+my\b",
        r"\b(do|did|have)\s+i\b.*\b(today|tomorrow|tonight|this\s+week|next\s+week|this\s+weekend)\b",
    ],
    "memory_update": [
        r"\bupdate\s+my\b",
        r"\bchange\s+my\b",
        r"\bis\s+now\b",
        r"\bno\s+longer\b",
        r"\bcorrect\s+that\b",
        r"\bactually,?\s+my\b",
    ],
    "memory_delete": [
        r"\bforget\b",
        r"\bdelete\b",
        r"\bremove\b",
        r"\berase\b",
        r"\b(don'?t|do\s+not)\s+remember\b",
    ],
    "command": [
        r"\b(take|grab|capture)\s+(a\s+|the\s+)?(screenshot|screen\s*shot|screen\s+capture)\b",
        r"\bhelp\s+me\s+respond\b",
        r"\b(draft|create|make|write)\s+(a|an|the)\b",
        r"\bgenerate\b",
        r"\bsend\b",
        r"\bschedule\b",
        r"\bset\s+up\b",
        r"\bconfigure\b",
        r"^\s*(please\s+)?(open|launch|start|close|play|stop|turn\s+(on|off))\b",
        r"\b(remind\s+me\s+to|set\s+(a|an)\s+(reminder|alarm|timer))\b",
    ],
    "question": [
        r"^\s*(what|how|when|where|why|who|which)\b",
        r"\?\s*$",
        r"^\s*(do|does|did|is|are|am|can|could|will|would|should|has|have)\s+(i|you|we|they|he|she|it)\b",
        r"\b(can|could|would)\s+you\s+(tell|explain)\b",
        r"\bexplain\b",
        r"\btell\s+me\b",
    ],
}

# Matches common "how long/much/many (noun) is..." phrasing that rarely concerns memory
GENERAL_QUESTION_PATTERN = re.compile(
    r"^\s*(how|what|when|where|who|why|which)\s+"
    r"(long|much|many|far|old|big|small|tall|wide|deep)(?:\s+\w+){0,3}?\s+"
    r"(is|are|was|were|does|do|did|can|will|would)\b",
    re.IGNORECASE,
)

# Command phrasing that asks for a capture of the current screen
SCREEN_CAPTURE_PATTERN = re.compile(
    r"\b(screen\s*shots?|screen\s*grabs?|screen\s+captures?"
    r"|capture\s+(the\s+|my\s+)?screen)\b",
    re.IGNORECASE,
)


def looks_like_general_question(text: str) -> bool:
    """Check whether text reads like a general-knowledge question."""
    return bool(GENERAL_QUESTION_PATTERN.search(text))


def requests_screen_capture(text: str) -> bool:
    """Check whether a command asks for a screenshot."""
    return bool(SCREEN_CAPTURE_PATTERN.search(text))


class IntentPatternMatcher:
    """Regex-based intent scoring.

    Counts, per intent, how many of its patterns match the text. Ties on the
    maximal score are broken by the fixed intent priority so memory-related
    intents win over generic questions and statements.
    """

    def __init__(self, patterns: dict[str, list[str]] | None = None) -> None:
        """Compile the pattern table.

        Args:
            patterns: Mapping of intent name to regex strings; defaults to
                DEFAULT_INTENT_PATTERNS

        Raises:
            ValueError: If the table names an unknown intent or a pattern
                does not compile
        """
        table = patterns if patterns is not None else DEFAULT_INTENT_PATTERNS
        self._compiled: dict[IntentType, list[re.Pattern[str]]] = {}

        for name, sources in table.items():
            try:
                intent = IntentType(name)
            except ValueError as e:
                raise ValueError(f"Unknown intent in pattern table: {name!r}") from e
            compiled = []
            for source in sources:
                try:
                    compiled.append(re.compile(source, re.IGNORECASE))
                except re.error as e:
                    raise ValueError(f"Invalid pattern for {name}: {source!r} ({e})") from e
            self._compiled[intent] = compiled

    @classmethod
    def from_yaml(cls, path: Path) -> "IntentPatternMatcher":
        """Load a pattern table from a YAML mapping of intent to patterns.

        Args:
            path: YAML file path

        Returns:
            Matcher using the loaded table
        """
        from ruamel.yaml import YAML

        yaml = YAML(typ="safe")
        with Path(path).open() as f:
            data = yaml.load(f) or {}

        table = {str(k): [str(p) for p in v] for k, v in data.items()}
        logger.info("Loaded %d intent pattern groups from %s", len(table), path)
        return cls(table)

    @property
    def intents(self) -> list[IntentType]:
        """Intents covered by the pattern table."""
        return list(self._compiled)

    def patterns_for(self, intent: IntentType) -> list[str]:
        """Regex sources registered for an intent."""
        return [p.pattern for p in self._compiled.get(intent, [])]

    def score(self, text: str) -> dict[IntentType, int]:
        """Count matching patterns per intent.

        Args:
            text: Utterance to score

        Returns:
            Mapping of every intent to its match count (0 when nothing fires)
        """
        scores = {intent: 0 for intent in IntentType}
        if not text or not text.strip():
            return scores

        for intent, compiled in self._compiled.items():
            scores[intent] = sum(1 for pattern in compiled if pattern.search(text))
        return scores

    def matched_patterns(self, text: str, intent: IntentType) -> list[str]:
        """Return the pattern sources for ``intent`` that match ``text``."""
        return [p.pattern for p in self._compiled.get(intent, []) if p.search(text)]

    @staticmethod
    def best(scores: dict[IntentType, int]) -> tuple[IntentType, int]:
        """Pick the top intent with priority tie-break.

        Returns:
            Tuple of (intent, score); score is 0 when nothing matched
        """
        intent, value = best_intent({k: float(v) for k, v in scores.items()})
        return intent, int(value)


__all__ = [
    "DEFAULT_INTENT_PATTERNS",
    "GENERAL_QUESTION_PATTERN",
    "IntentPatternMatcher",
    "SCREEN_CAPTURE_PATTERN",
    "looks_like_general_question",
    "requests_screen_capture",
]
