"""Comprehensive tests for recall intent classification.

Tests cover:
- Taxonomy: result clamping, tie-break priority, clarification policy
- Pattern matching: scores, tie-breaks, external tables
- Grammar analysis: surface features and suggestions
- Intent parser: synchronous pipeline, scenarios, failure handling
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from recall.core.intent import (
    ClassificationMethod,
    ClassificationResult,
    GrammarAnalyzer,
    IntentConfidence,
    IntentParser,
    IntentPatternMatcher,
    IntentType,
    looks_like_general_question,
)
from recall.core.intent.patterns import requests_screen_capture
from recall.core.intent.taxonomy import INTENT_PRIORITY, best_intent, clamp

# ============================================================================
# Taxonomy Tests
# ============================================================================


class TestTaxonomy:
    """Tests for result types and tie-break helpers."""

    def test_confidence_clamped_high(self) -> None:
        result = ClassificationResult(intent=IntentType.COMMAND, confidence=1.7)
        assert result.confidence == 1.0

    def test_confidence_clamped_low(self) -> None:
        result = ClassificationResult(intent=IntentType.COMMAND, confidence=-0.2)
        assert result.confidence == 0.0

    def test_clamp(self) -> None:
        assert clamp(0.42) == 0.42
        assert clamp(3) == 1.0

    def test_best_intent_prefers_higher_score(self) -> None:
        intent, score = best_intent({IntentType.QUESTION: 2.0, IntentType.MEMORY_RETRIEVE: 1.0})
        assert intent == IntentType.QUESTION
        assert score == 2.0

    def test_best_intent_tie_breaks_by_priority(self) -> None:
        scores = {
            IntentType.GREETING: 1.0,
            IntentType.QUESTION: 1.0,
            IntentType.COMMAND: 1.0,
            IntentType.MEMORY_STORE: 1.0,
            IntentType.MEMORY_RETRIEVE: 1.0,
        }
        assert best_intent(scores)[0] == IntentType.MEMORY_RETRIEVE

    def test_priority_order(self) -> None:
        ordered = sorted(INTENT_PRIORITY, key=INTENT_PRIORITY.get, reverse=True)
        assert ordered[:2] == [IntentType.MEMORY_RETRIEVE, IntentType.MEMORY_STORE]
        assert ordered.index(IntentType.COMMAND) < ordered.index(IntentType.QUESTION)
        assert ordered[-1] == IntentType.GREETING

    def test_best_intent_empty(self) -> None:
        assert best_intent({}) == (IntentType.QUESTION, 0.0)

    def test_default_result(self) -> None:
        result = ClassificationResult.default()
        assert result.intent == IntentType.QUESTION
        assert result.method == ClassificationMethod.FALLBACK
        assert result.needs_clarification()

    def test_zero_shot_uses_lower_clarification_threshold(self) -> None:
        zero_shot = ClassificationResult(
            intent=IntentType.QUESTION, confidence=0.3, method=ClassificationMethod.ZERO_SHOT
        )
        semantic = ClassificationResult(
            intent=IntentType.QUESTION, confidence=0.3, method=ClassificationMethod.SEMANTIC
        )
        assert not zero_shot.needs_clarification()
        assert semantic.needs_clarification()

    def test_explicit_clarification_threshold(self) -> None:
        result = ClassificationResult(intent=IntentType.COMMAND, confidence=0.6)
        assert result.needs_clarification(threshold=0.8)
        assert not result.needs_clarification(threshold=0.5)

    def test_parser_threshold_overrides_default(self) -> None:
        result = ClassificationResult(
            intent=IntentType.COMMAND, confidence=0.6, clarify_threshold=0.7
        )
        assert result.needs_clarification()
        assert not result.needs_clarification(threshold=0.5)

    @pytest.mark.parametrize(
        "confidence,level",
        [(0.9, "high"), (0.85, "high"), (0.6, "medium"), (0.2, "low"), (0.05, "none")],
    )
    def test_confidence_levels(self, confidence: float, level: str) -> None:
        assert IntentConfidence.level(confidence) == level

    def test_clarification_prompt_lists_alternatives(self) -> None:
        result = ClassificationResult(
            intent=IntentType.MEMORY_RETRIEVE,
            confidence=0.2,
            possible_intents=[IntentType.QUESTION],
        )
        prompt = result.clarification_prompt()
        assert "memory retrieve" in prompt
        assert "question" in prompt

    def test_requires_memory_access(self) -> None:
        assert ClassificationResult(IntentType.MEMORY_STORE, 0.9).requires_memory_access
        assert not ClassificationResult(IntentType.GREETING, 0.9).requires_memory_access

    def test_to_dict(self) -> None:
        result = ClassificationResult(
            intent=IntentType.MEMORY_DELETE,
            confidence=0.9,
            reasoning="Pattern match with score: 1",
            method=ClassificationMethod.PATTERN,
        )
        data = result.to_dict()
        assert data["intent"] == "memory_delete"
        assert data["method"] == "pattern"
        assert data["requires_memory_access"] is True


# ============================================================================
# Pattern Matching Tests
# ============================================================================


class TestPatternMatcher:
    """Tests for regex pattern scoring."""

    @pytest.fixture
    def matcher(self) -> IntentPatternMatcher:
        return IntentPatternMatcher()

    def test_scores_every_intent(self, matcher: IntentPatternMatcher) -> None:
        scores = matcher.score("hello")
        assert set(scores) == set(IntentType)

    def test_empty_text_abstains(self, matcher: IntentPatternMatcher) -> None:
        assert all(score == 0 for score in matcher.score("").values())
        assert all(score == 0 for score in matcher.score("   \n ").values())

    def test_screenshot_is_command(self, matcher: IntentPatternMatcher) -> None:
        scores = matcher.score("Take a screenshot")
        assert scores[IntentType.COMMAND] >= 1
        assert matcher.best(scores)[0] == IntentType.COMMAND

    def test_case_insensitive(self, matcher: IntentPatternMatcher) -> None:
        assert matcher.score("TAKE A SCREENSHOT")[IntentType.COMMAND] >= 1

    def test_greeting(self, matcher: IntentPatternMatcher) -> None:
        assert matcher.best(matcher.score("Hi"))[0] == IntentType.GREETING
        assert matcher.best(matcher.score("good morning!"))[0] == IntentType.GREETING

    def test_retrieve_question_tie(self, matcher: IntentPatternMatcher) -> None:
        """Equal retrieve/question counts resolve to memory_retrieve."""
        scores = matcher.score("do I have anything planned")
        assert scores[IntentType.MEMORY_RETRIEVE] == scores[IntentType.QUESTION] > 0
        assert matcher.best(scores)[0] == IntentType.MEMORY_RETRIEVE

    def test_retrieve_beats_question(self, matcher: IntentPatternMatcher) -> None:
        scores = matcher.score("What do I have tomorrow?")
        assert scores[IntentType.MEMORY_RETRIEVE] > scores[IntentType.QUESTION]

    def test_store(self, matcher: IntentPatternMatcher) -> None:
        assert matcher.best(matcher.score("remember that my locker code is 4512"))[0] == (
            IntentType.MEMORY_STORE
        )

    def test_update(self, matcher: IntentPatternMatcher) -> None:
        scores = matcher.score("update my address, it is now 5 Elm Street")
        assert matcher.best(scores)[0] == IntentType.MEMORY_UPDATE

    def test_delete(self, matcher: IntentPatternMatcher) -> None:
        assert matcher.best(matcher.score("please forget my old number"))[0] == (
            IntentType.MEMORY_DELETE
        )

    def test_no_match(self, matcher: IntentPatternMatcher) -> None:
        assert matcher.best(matcher.score("zebra quantum"))[1] == 0

    def test_matched_patterns(self, matcher: IntentPatternMatcher) -> None:
        matched = matcher.matched_patterns("take a screenshot", IntentType.COMMAND)
        assert len(matched) == 1
        assert "screenshot" in matched[0]

    def test_custom_table(self) -> None:
        matcher = IntentPatternMatcher({"command": [r"\bbeam me up\b"]})
        assert matcher.intents == [IntentType.COMMAND]
        assert matcher.score("Beam me up")[IntentType.COMMAND] == 1
        assert matcher.score("hello")[IntentType.GREETING] == 0

    def test_unknown_intent_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown intent"):
            IntentPatternMatcher({"weather": [r"rain"]})

    def test_invalid_regex_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid pattern"):
            IntentPatternMatcher({"command": [r"(unclosed"]})

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.yaml"
        path.write_text("greeting:\n  - '^\\s*ahoy\\b'\nmemory_delete:\n  - 'scrub'\n")
        matcher = IntentPatternMatcher.from_yaml(path)
        assert matcher.score("Ahoy there")[IntentType.GREETING] == 1
        assert matcher.patterns_for(IntentType.MEMORY_DELETE) == ["scrub"]

    def test_general_question_heuristic(self) -> None:
        assert looks_like_general_question("How long does it take to fly to Tokyo")
        assert looks_like_general_question("how many ounces are in a pound")
        assert looks_like_general_question("How much water does a cactus need")
        assert not looks_like_general_question("what did I say about Tokyo")

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("take a screenshot", True),
            ("grab a screen shot of this", True),
            ("capture my screen", True),
            ("send the screenshots to Sam", True),
            ("send an email to Sam", False),
            ("clean the screen door", False),
        ],
    )
    def test_screen_capture_phrases(self, text: str, expected: bool) -> None:
        assert requests_screen_capture(text) is expected


# ============================================================================
# Grammar Analyzer Tests
# ============================================================================


class TestGrammarAnalyzer:
    """Tests for surface-feature analysis."""

    @pytest.fixture
    def analyzer(self) -> GrammarAnalyzer:
        return GrammarAnalyzer()

    def test_empty(self, analyzer: GrammarAnalyzer) -> None:
        features = analyzer.analyze("")
        assert not any(
            [
                features.is_question,
                features.has_past_tense,
                features.has_future_tense,
                features.is_imperative,
                features.has_domain_keywords,
                features.is_greeting,
            ]
        )
        assert features.suggest() is None

    def test_question_with_domain_keywords(self, analyzer: GrammarAnalyzer) -> None:
        features = analyzer.analyze("What is my wifi password?")
        assert features.is_question
        assert features.has_domain_keywords
        assert features.suggest()[0] == IntentType.MEMORY_RETRIEVE

    def test_inverted_question(self, analyzer: GrammarAnalyzer) -> None:
        assert analyzer.analyze("is it raining").is_question

    def test_imperative(self, analyzer: GrammarAnalyzer) -> None:
        features = analyzer.analyze("Please open the calendar")
        assert features.is_imperative
        assert features.suggest()[0] == IntentType.COMMAND

    def test_past_tense_statement(self, analyzer: GrammarAnalyzer) -> None:
        features = analyzer.analyze("I went to the dentist yesterday")
        assert features.has_past_tense
        assert not features.is_question
        assert features.suggest()[0] == IntentType.MEMORY_STORE

    def test_future_tense(self, analyzer: GrammarAnalyzer) -> None:
        assert analyzer.analyze("I will fly to Denver next week").has_future_tense

    def test_greeting(self, analyzer: GrammarAnalyzer) -> None:
        features = analyzer.analyze("hello there")
        assert features.is_greeting
        assert features.suggest()[0] == IntentType.GREETING


# ============================================================================
# Intent Parser Tests (degraded mode, synchronous)
# ============================================================================


class TestIntentParserSync:
    """Tests for the synchronous pipeline without models."""

    @pytest.fixture
    def parser(self) -> IntentParser:
        return IntentParser()

    def test_take_screenshot(self, parser: IntentParser) -> None:
        result = parser.classify_sync("Take a screenshot")
        assert result.intent == IntentType.COMMAND
        assert result.confidence >= 0.8
        assert result.method == ClassificationMethod.PATTERN
        assert result.capture_screen

    def test_hi(self, parser: IntentParser) -> None:
        result = parser.classify_sync("Hi")
        assert result.intent == IntentType.GREETING
        assert result.confidence >= 0.8

    def test_hello(self, parser: IntentParser) -> None:
        assert parser.classify_sync("hello").intent == IntentType.GREETING

    def test_what_do_i_have_tomorrow(self, parser: IntentParser) -> None:
        result = parser.classify_sync("What do I have tomorrow?")
        assert result.intent == IntentType.MEMORY_RETRIEVE
        assert IntentType.QUESTION in result.possible_intents

    def test_tie_break_to_retrieve(self, parser: IntentParser) -> None:
        result = parser.classify_sync("do I have anything planned")
        assert result.intent == IntentType.MEMORY_RETRIEVE
        assert "score: 1" in result.reasoning

    def test_pattern_confidence_from_config(self) -> None:
        from recall.config import NLUConfig, ThresholdConfig

        parser = IntentParser(config=NLUConfig(thresholds=ThresholdConfig(pattern_confidence=0.95)))
        assert parser.classify_sync("hello").confidence == 0.95

    def test_clarify_threshold_from_config(self) -> None:
        from recall.config import NLUConfig, ThresholdConfig

        strict = IntentParser(config=NLUConfig(thresholds=ThresholdConfig(clarify_threshold=0.95)))
        result = strict.classify_sync("take a screenshot")

        assert result.confidence == pytest.approx(0.9)
        assert result.needs_clarification()
        assert not IntentParser().classify_sync("take a screenshot").needs_clarification()

    def test_capture_screen_only_for_screenshots(self, parser: IntentParser) -> None:
        result = parser.classify_sync("send an email to Sam")
        assert result.intent == IntentType.COMMAND
        assert not result.capture_screen
        assert result.to_dict()["capture_screen"] is False

    def test_context_enriches_patterns(self, parser: IntentParser) -> None:
        result = parser.classify_sync("yes", context="do you remember my birthday")
        assert result.intent == IntentType.MEMORY_RETRIEVE
        assert result.method == ClassificationMethod.PATTERN

    def test_utterance_patterns_win_over_context(self, parser: IntentParser) -> None:
        result = parser.classify_sync("take a screenshot", context="do you remember my birthday")
        assert result.intent == IntentType.COMMAND

    def test_semantic_word_overlap(self, parser: IntentParser) -> None:
        """A seed utterance with no pattern match resolves semantically."""
        result = parser.classify_sync("jot down this meeting")
        assert result.intent == IntentType.MEMORY_STORE
        assert result.method == ClassificationMethod.SEMANTIC
        assert result.confidence == pytest.approx(1.0)

    def test_unknown_input_gets_lowest_confidence(self, parser: IntentParser) -> None:
        result = parser.classify_sync("zebra quantum")
        assert result.intent == IntentType.QUESTION
        assert result.method == ClassificationMethod.FALLBACK
        assert result.needs_clarification()

    def test_fallback_confidence_capped(self, parser: IntentParser) -> None:
        result = parser.classify_sync("the weekend plans with family")
        assert result.method in (ClassificationMethod.FALLBACK, ClassificationMethod.STATISTICAL)
        assert result.confidence <= 0.7

    @pytest.mark.parametrize("text", ["", "   ", None, 42])
    def test_malformed_input(self, parser: IntentParser, text) -> None:
        result = parser.classify_sync(text)
        assert result.intent == IntentType.QUESTION
        assert result.method == ClassificationMethod.FALLBACK
        assert "Malformed" in result.reasoning

    def test_long_input_truncated(self, parser: IntentParser) -> None:
        result = parser.classify_sync("hello " + "x" * 20_000)
        assert result.intent == IntentType.GREETING

    def test_layer_error_returns_default(self, parser: IntentParser) -> None:
        with patch.object(parser.matcher, "score", side_effect=RuntimeError("boom")):
            result = parser.classify_sync("hello")
        assert result.intent == IntentType.QUESTION
        assert "parsing error" in result.reasoning

    def test_idempotent(self, parser: IntentParser) -> None:
        for text in ["What do I have tomorrow?", "zebra quantum", "jot down this meeting"]:
            assert parser.classify_sync(text) == parser.classify_sync(text)

    @pytest.mark.parametrize(
        "text",
        [
            "Take a screenshot",
            "what's my sister's name",
            "I went hiking with Sam",
            "forget it",
            "how far is the moon",
            "asdf qwerty",
            "?",
            "my my my my my",
        ],
    )
    def test_result_always_well_formed(self, parser: IntentParser, text: str) -> None:
        result = parser.classify_sync(text)
        assert isinstance(result.intent, IntentType)
        assert 0.0 <= result.confidence <= 1.0
