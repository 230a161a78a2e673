"""Intent classification pipeline for recall.

This module implements the layered hybrid classifier:
1. Pattern check (~1ms) - regex scores, resolves on any match
2. Semantic check (~10ms) - nearest seed examples, resolves above a threshold
3. Zero-shot check (~500ms, conditional) - only for ambiguous utterances
4. Statistical fallback - always answers, with scaled-down confidence

Layers are an ordered list of (run, accept) pairs evaluated by a small
driver, so the priority order and thresholds are data. Classification never
raises: failures produce a low-confidence default result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ...config import NLUConfig
from ..backends import ModelUnavailable
from .grammar import FeatureSet, GrammarAnalyzer
from .patterns import IntentPatternMatcher, requests_screen_capture
from .semantic import SemanticEvidence, SemanticMatcher
from .statistical import StatisticalClassifier
from .taxonomy import (
    ClassificationMethod,
    ClassificationResult,
    IntentType,
    best_intent,
)
from .zero_shot import ZeroShotLayer, is_ambiguous

if TYPE_CHECKING:
    from .. import ModelContext

logger = logging.getLogger(__name__)


class MalformedInput(ValueError):
    """Utterance is empty or not a string."""

    pass


@dataclass
class Evidence:
    """Scores gathered while an utterance moves through the layers.

    Attributes:
        text: Utterance being classified
        context: Optional secondary text (e.g. the previous system reply)
        pattern_scores: Match counts from the pattern layer
        semantic: Similarity evidence from the semantic layer
        features: Surface features, computed by the fallback layer
    """

    text: str
    context: str | None = None
    pattern_scores: dict[IntentType, int] = field(default_factory=dict)
    semantic: SemanticEvidence | None = None
    features: FeatureSet | None = None

    @property
    def pattern_max(self) -> int:
        return max(self.pattern_scores.values(), default=0)

    @property
    def semantic_max(self) -> float:
        return self.semantic.max_score if self.semantic is not None else 0.0


@dataclass(frozen=True)
class Layer:
    """One step of the pipeline.

    Attributes:
        method: Layer identity
        run: Produces a candidate result (or None) from the evidence
        accept: Decides whether the candidate resolves the utterance
        enabled: Decides whether the layer runs at all
    """

    method: ClassificationMethod
    run: Callable[[Evidence], Awaitable[ClassificationResult | None]]
    accept: Callable[[ClassificationResult, Evidence], bool]
    enabled: Callable[[Evidence], bool] = lambda evidence: True


def _ranked(scores: dict[IntentType, float], exclude: IntentType) -> list[IntentType]:
    """Other intents with positive scores, best first."""
    others = [(s, i) for i, s in scores.items() if s > 0 and i != exclude]
    return [i for _, i in sorted(others, key=lambda pair: pair[0], reverse=True)]


class IntentParser:
    """Layered hybrid intent classifier.

    Attributes:
        config: Pipeline configuration (thresholds, enabled layers)
        matcher: Regex pattern layer
        analyzer: Surface-feature analyzer
        semantic: Similarity layer (embeddings or word overlap)
        statistical: Naive Bayes fallback
        zero_shot: Zero-shot layer, or None if unavailable
        layers: Ordered pipeline layers
    """

    def __init__(
        self,
        context: "ModelContext | None" = None,
        config: NLUConfig | None = None,
        matcher: IntentPatternMatcher | None = None,
    ) -> None:
        """Initialize the parser.

        Args:
            context: Loaded models; None runs in degraded mode (patterns,
                word overlap and Naive Bayes only)
            config: Pipeline configuration; defaults to NLUConfig()
            matcher: Pattern matcher; defaults to one built from
                config.intent_patterns
        """
        self.config = config or NLUConfig()
        self.thresholds = self.config.thresholds
        self.matcher = matcher or IntentPatternMatcher(self.config.intent_patterns)
        self.analyzer = GrammarAnalyzer()

        if context is not None:
            self.semantic = SemanticMatcher(context.embedder, context.seed_index)
            self.statistical = context.statistical
            self.zero_shot = ZeroShotLayer(context.zero_shot) if context.zero_shot else None
        else:
            self.semantic = SemanticMatcher()
            self.statistical = StatisticalClassifier()
            self.zero_shot = None

        self.layers: list[Layer] = [
            Layer(ClassificationMethod.PATTERN, self._pattern_layer, self._pattern_fired),
            Layer(ClassificationMethod.SEMANTIC, self._semantic_layer, self._semantic_confident),
            Layer(
                ClassificationMethod.ZERO_SHOT,
                self._zero_shot_layer,
                self._zero_shot_confident,
                enabled=self._zero_shot_wanted,
            ),
            Layer(ClassificationMethod.FALLBACK, self._fallback_layer, lambda result, evidence: True),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def classify(self, text: Any, context: str | None = None) -> ClassificationResult:
        """Classify an utterance through the layered pipeline.

        Args:
            text: User utterance
            context: Optional secondary text used to enrich pattern and
                semantic scoring

        Returns:
            ClassificationResult; never raises
        """
        try:
            evidence = Evidence(text=self._validate(text), context=self._clean_context(context))
        except MalformedInput as e:
            logger.debug(f"Malformed input: {e}")
            return self._finalize(ClassificationResult.default(f"Malformed input: {e}"))

        try:
            result = await self._run_layers(evidence)
        except Exception as e:
            logger.warning(f"Classification failed: {e}")
            return self._finalize(
                ClassificationResult.default(f"Fallback due to parsing error: {e}")
            )

        logger.debug(
            "Classified %r as %s (%.2f) via %s",
            evidence.text[:50],
            result.intent.value,
            result.confidence,
            result.method.value,
        )
        return self._finalize(result, evidence.text)

    def classify_sync(self, text: Any, context: str | None = None) -> ClassificationResult:
        """Synchronous version of classify() - skips model inference.

        Runs the pattern layer, word-overlap similarity and the statistical
        fallback. Useful for testing or when no event loop is running.

        Args:
            text: User utterance
            context: Optional secondary text

        Returns:
            ClassificationResult; never raises
        """
        try:
            evidence = Evidence(text=self._validate(text), context=self._clean_context(context))
        except MalformedInput as e:
            return self._finalize(ClassificationResult.default(f"Malformed input: {e}"))

        try:
            result = self._classify_offline(evidence)
        except Exception as e:
            logger.warning(f"Classification failed: {e}")
            return self._finalize(
                ClassificationResult.default(f"Fallback due to parsing error: {e}")
            )
        return self._finalize(result, evidence.text)

    def _classify_offline(self, evidence: Evidence) -> ClassificationResult:
        candidate = self._pattern_candidate(evidence)
        if self._pattern_fired(candidate, evidence):
            return candidate

        evidence.semantic = self._merge_semantic(
            self.semantic.evaluate_lexical(evidence.text),
            self.semantic.evaluate_lexical(self._combined(evidence)) if evidence.context else None,
        )
        candidate = self._semantic_candidate(evidence)
        if self._semantic_confident(candidate, evidence):
            return candidate

        return self._fallback_candidate(evidence)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    async def _run_layers(self, evidence: Evidence) -> ClassificationResult:
        for layer in self.layers:
            if not layer.enabled(evidence):
                logger.debug("Skipping %s layer", layer.method.value)
                continue
            candidate = await layer.run(evidence)
            if candidate is not None and layer.accept(candidate, evidence):
                return candidate
        return ClassificationResult.default()

    def _finalize(self, result: ClassificationResult, text: str = "") -> ClassificationResult:
        """Attach configured clarification threshold and routing flags."""
        result.clarify_threshold = (
            self.thresholds.zero_shot_clarify_threshold
            if result.method == ClassificationMethod.ZERO_SHOT
            else self.thresholds.clarify_threshold
        )
        result.capture_screen = (
            result.intent == IntentType.COMMAND and requests_screen_capture(text)
        )
        return result

    def _validate(self, text: Any) -> str:
        if not isinstance(text, str):
            raise MalformedInput(f"expected str, got {type(text).__name__}")
        text = text.strip()
        if not text:
            raise MalformedInput("empty utterance")

        # Security: truncate excessively long input
        limit = self.config.max_input_length
        if len(text) > limit:
            logger.warning(f"Input truncated from {len(text)} to {limit} chars")
            text = text[:limit]
        return text

    def _clean_context(self, context: Any) -> str | None:
        if not isinstance(context, str) or not context.strip():
            return None
        return context.strip()[: self.config.max_input_length]

    @staticmethod
    def _combined(evidence: Evidence) -> str:
        return f"{evidence.text} {evidence.context}" if evidence.context else evidence.text

    # ------------------------------------------------------------------
    # Pattern layer
    # ------------------------------------------------------------------

    def _pattern_candidate(self, evidence: Evidence) -> ClassificationResult:
        scored_text = evidence.text
        scores = self.matcher.score(scored_text)
        if max(scores.values(), default=0) == 0 and evidence.context:
            scored_text = self._combined(evidence).lower()
            scores = self.matcher.score(scored_text)
        evidence.pattern_scores = scores

        intent, score = self.matcher.best(scores)
        matched = self.matcher.matched_patterns(scored_text, intent) if score else []
        as_float = {i: float(s) for i, s in scores.items()}
        return ClassificationResult(
            intent=intent,
            confidence=self.thresholds.pattern_confidence if score else 0.0,
            reasoning=f"Pattern match with score: {score}"
            + (f" ({'; '.join(matched[:3])})" if matched else ""),
            method=ClassificationMethod.PATTERN,
            possible_intents=_ranked(as_float, intent),
            scores=as_float,
        )

    async def _pattern_layer(self, evidence: Evidence) -> ClassificationResult | None:
        return self._pattern_candidate(evidence)

    @staticmethod
    def _pattern_fired(candidate: ClassificationResult, evidence: Evidence) -> bool:
        return evidence.pattern_max > 0

    # ------------------------------------------------------------------
    # Semantic layer
    # ------------------------------------------------------------------

    @staticmethod
    def _merge_semantic(
        primary: SemanticEvidence, secondary: SemanticEvidence | None
    ) -> SemanticEvidence:
        if secondary is None:
            return primary
        scores = {
            intent: max(primary.scores.get(intent, 0.0), secondary.scores.get(intent, 0.0))
            for intent in IntentType
        }
        stronger = primary if primary.max_score >= secondary.max_score else secondary
        return SemanticEvidence(scores=scores, neighbors=stronger.neighbors, method=stronger.method)

    def _semantic_candidate(self, evidence: Evidence) -> ClassificationResult:
        semantic = evidence.semantic or SemanticEvidence()
        intent, score = best_intent(semantic.scores)
        confidence = score
        if self.config.confidence_shaping:
            confidence = self.semantic.shape_confidence(score, semantic)
        return ClassificationResult(
            intent=intent,
            confidence=confidence,
            reasoning=f"Semantic similarity: {score:.2f} ({semantic.method})",
            method=ClassificationMethod.SEMANTIC,
            possible_intents=_ranked(semantic.scores, intent),
            scores=dict(semantic.scores),
        )

    async def _semantic_layer(self, evidence: Evidence) -> ClassificationResult | None:
        primary = await self.semantic.evaluate(evidence.text)
        secondary = (
            await self.semantic.evaluate(self._combined(evidence)) if evidence.context else None
        )
        evidence.semantic = self._merge_semantic(primary, secondary)
        return self._semantic_candidate(evidence)

    def _semantic_confident(self, candidate: ClassificationResult, evidence: Evidence) -> bool:
        return evidence.semantic_max > self.thresholds.semantic_confident

    # ------------------------------------------------------------------
    # Zero-shot layer
    # ------------------------------------------------------------------

    def _zero_shot_wanted(self, evidence: Evidence) -> bool:
        if not self.config.zero_shot_enabled or self.zero_shot is None:
            return False
        if not self.zero_shot.available:
            return False
        return is_ambiguous(
            evidence.pattern_max, evidence.semantic_max, evidence.text, self.thresholds
        )

    async def _zero_shot_layer(self, evidence: Evidence) -> ClassificationResult | None:
        assert self.zero_shot is not None  # Type narrowing
        try:
            verdict = await self.zero_shot.classify(evidence.text)
        except (ModelUnavailable, RuntimeError) as e:
            logger.warning(f"Zero-shot layer unavailable: {e}")
            return None
        return ClassificationResult(
            intent=verdict.intent,
            confidence=verdict.confidence,
            reasoning=f"Zero-shot classification: {verdict.label!r} ({verdict.confidence:.2f})",
            method=ClassificationMethod.ZERO_SHOT,
            possible_intents=_ranked(verdict.scores, verdict.intent),
            scores=verdict.scores,
        )

    def _zero_shot_confident(self, candidate: ClassificationResult, evidence: Evidence) -> bool:
        return candidate.confidence > self.thresholds.zero_shot_min_confidence

    # ------------------------------------------------------------------
    # Statistical fallback
    # ------------------------------------------------------------------

    def _fallback_candidate(self, evidence: Evidence) -> ClassificationResult:
        evidence.features = self.analyzer.analyze(evidence.text)

        sources: dict[IntentType, str] = {}
        combined: dict[IntentType, float] = {intent: 0.0 for intent in IntentType}

        def offer(intent: IntentType, score: float, source: str) -> None:
            if score > combined[intent]:
                combined[intent] = score
                sources[intent] = source

        for intent, count in evidence.pattern_scores.items():
            offer(intent, float(min(count, 1)), "pattern")
        if evidence.semantic is not None:
            for intent, score in evidence.semantic.scores.items():
                offer(intent, score, "semantic")
        if self.statistical.has_vocabulary(evidence.text):
            for intent, score in self.statistical.score(evidence.text).items():
                offer(intent, score, "naive bayes")
        suggestion = evidence.features.suggest()
        if suggestion is not None:
            intent, score, reason = suggestion
            offer(intent, score, f"grammar: {reason}")

        intent, best = best_intent(combined)
        if best <= 0.0:
            return ClassificationResult.default("No evidence from any layer")

        source = sources[intent]
        confidence = min(best * self.thresholds.fallback_scale, self.thresholds.fallback_ceiling)
        return ClassificationResult(
            intent=intent,
            confidence=confidence,
            reasoning=f"Fallback from {source} evidence: {best:.2f}",
            method=(
                ClassificationMethod.STATISTICAL
                if source == "naive bayes"
                else ClassificationMethod.FALLBACK
            ),
            possible_intents=_ranked(combined, intent),
            scores=combined,
        )

    async def _fallback_layer(self, evidence: Evidence) -> ClassificationResult | None:
        return self._fallback_candidate(evidence)


def create_parser(
    context: "ModelContext | None" = None,
    config: NLUConfig | None = None,
) -> IntentParser:
    """Factory function to create an IntentParser.

    Args:
        context: Loaded models, or None for degraded mode
        config: Pipeline configuration

    Returns:
        Configured IntentParser instance
    """
    return IntentParser(context=context, config=config)


__all__ = ["Evidence", "IntentParser", "Layer", "MalformedInput", "create_parser"]
