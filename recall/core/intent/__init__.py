"""Intent classification and entity extraction for recall.

This module routes a user utterance to one of a fixed set of intents
(memory store/retrieve/update/delete, command, question, greeting) and
extracts typed entities (datetime, person, location, event, contact).

The classification pipeline has four layers:
1. Pattern matching (~1ms) - regex scores per intent
2. Semantic similarity (~10ms) - nearest seed examples
3. Zero-shot (~500ms) - only for ambiguous utterances
4. Statistical fallback - Naive Bayes plus surface features

Example usage:
    ```python
    from recall.core.intent import IntentParser, IntentType, classify, extract_entities

    # Degraded mode, no models (patterns, word overlap, Naive Bayes)
    parser = IntentParser()
    result = parser.classify_sync("take a screenshot")
    assert result.intent == IntentType.COMMAND

    # Full pipeline with lazily loaded models
    result = await classify("What do I have tomorrow?")
    if result.needs_clarification():
        print(result.clarification_prompt())

    entities = await extract_entities("Lunch with Maria at 1pm")
    ```
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from .entities import (
    DEFAULT_ENTITY_PATTERNS,
    EntityExtractor,
    extract_basic,
    group_ner_tokens,
    merge_entities,
)
from .grammar import FeatureSet, GrammarAnalyzer
from .normalize import NormalizationFailure, normalize_entity
from .parser import IntentParser, MalformedInput, create_parser
from .patterns import DEFAULT_INTENT_PATTERNS, IntentPatternMatcher, looks_like_general_question
from .seeds import SEED_EXAMPLES, seeds_by_intent
from .semantic import SeedIndex, SemanticMatcher
from .statistical import StatisticalClassifier
from .taxonomy import (
    ClassificationMethod,
    ClassificationResult,
    Entity,
    EntitySource,
    EntityType,
    IntentConfidence,
    IntentType,
    SeedExample,
)
from .zero_shot import ZeroShotLayer, is_ambiguous

if TYPE_CHECKING:
    from ...config import NLUConfig
    from .. import ModelContext


logger = logging.getLogger(__name__)

# Parser and extractor built for the current process-wide model context
_components: tuple["ModelContext", IntentParser, EntityExtractor] | None = None


def _build_components(
    model_context: "ModelContext", config: "NLUConfig"
) -> tuple[IntentParser, EntityExtractor]:
    try:
        parser = IntentParser(model_context, config)
    except ValueError as e:
        logger.warning(f"Invalid intent pattern table, using built-in patterns: {e}")
        parser = IntentParser(model_context, config, matcher=IntentPatternMatcher())

    options = {
        "ner": model_context.ner,
        "min_score": config.thresholds.ner_min_score,
        "max_input_length": config.max_input_length,
    }
    try:
        extractor = EntityExtractor(patterns=config.entity_patterns, **options)
    except ValueError as e:
        logger.warning(f"Invalid entity pattern table, using built-in patterns: {e}")
        extractor = EntityExtractor(**options)
    return parser, extractor


async def _current_components() -> tuple[IntentParser, EntityExtractor]:
    """Return the parser and extractor for the loaded models, building them once."""
    global _components
    from .. import get_registry

    registry = get_registry()
    model_context = await registry.initialize()
    if _components is None or _components[0] is not model_context:
        parser, extractor = _build_components(model_context, registry.config)
        _components = (model_context, parser, extractor)
    return _components[1], _components[2]


async def classify(utterance: str, context: str | None = None) -> ClassificationResult:
    """Classify an utterance using the process-wide models.

    Models are loaded on first use; failures degrade individual layers.

    Args:
        utterance: User utterance
        context: Optional secondary text (e.g. the previous system reply)

    Returns:
        ClassificationResult; never raises
    """
    parser, _ = await _current_components()
    return await parser.classify(utterance, context)


async def extract_entities(
    utterance: str,
    now: datetime | date | None = None,
) -> list[Entity]:
    """Extract entities using the process-wide models.

    Args:
        utterance: User utterance
        now: Reference point for relative dates (defaults to today)

    Returns:
        Normalized entities, unique per (type, normalized value)
    """
    _, extractor = await _current_components()
    return await extractor.extract(utterance, now)


__all__ = [
    # Public API
    "classify",
    "extract_entities",
    # Pipeline
    "IntentParser",
    "MalformedInput",
    "create_parser",
    # Layers
    "IntentPatternMatcher",
    "DEFAULT_INTENT_PATTERNS",
    "looks_like_general_question",
    "GrammarAnalyzer",
    "FeatureSet",
    "SemanticMatcher",
    "SeedIndex",
    "StatisticalClassifier",
    "ZeroShotLayer",
    "is_ambiguous",
    # Taxonomy
    "IntentType",
    "IntentConfidence",
    "ClassificationMethod",
    "ClassificationResult",
    "SeedExample",
    "SEED_EXAMPLES",
    "seeds_by_intent",
    # Entity extraction
    "Entity",
    "EntityType",
    "EntitySource",
    "EntityExtractor",
    "DEFAULT_ENTITY_PATTERNS",
    "extract_basic",
    "group_ner_tokens",
    "merge_entities",
    "normalize_entity",
    "NormalizationFailure",
]
