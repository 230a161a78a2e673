"""Semantic similarity matching for recall intent classification.

Scores an utterance against the seed corpus by maximum cosine similarity of
sentence embeddings. Seed embeddings are computed once into a SeedIndex.
When no embedder is available, or it fails, the matcher degrades to Jaccard
word overlap over the same corpus so the layer never hard-fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from ..backends import ModelUnavailable
from ..embeddings.base import EmbeddingResult
from .seeds import SEED_EXAMPLES
from .taxonomy import IntentType, SeedExample, clamp

if TYPE_CHECKING:
    from ..embeddings import EmbeddingBackend

logger = logging.getLogger(__name__)

_WORDS = re.compile(r"[a-z0-9']+")


def word_set(text: str) -> set[str]:
    """Lower-cased words longer than two characters."""
    return {w for w in _WORDS.findall(text.lower()) if len(w) > 2}


def jaccard(a: str, b: str) -> float:
    """Word-overlap similarity |A & B| / |A | B| of two texts."""
    words_a, words_b = word_set(a), word_set(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


@dataclass(frozen=True)
class SeedIndex:
    """Pre-computed, unit-length embeddings of the seed corpus.

    Attributes:
        seeds: Seed examples, row-aligned with ``vectors``
        vectors: float32 array of shape (len(seeds), D)
    """

    seeds: tuple[SeedExample, ...]
    vectors: np.ndarray

    def __post_init__(self) -> None:
        if self.vectors.ndim != 2 or self.vectors.shape[0] != len(self.seeds):
            raise ValueError(
                f"Seed vectors shape {self.vectors.shape} does not match {len(self.seeds)} seeds"
            )
        self.vectors.setflags(write=False)

    @property
    def dimension(self) -> int:
        return int(self.vectors.shape[1])

    @classmethod
    async def build(
        cls,
        embedder: "EmbeddingBackend",
        seeds: tuple[SeedExample, ...] = SEED_EXAMPLES,
    ) -> "SeedIndex":
        """Embed every seed example once.

        Args:
            embedder: Loaded embedding backend
            seeds: Corpus to index

        Returns:
            SeedIndex over ``seeds``
        """
        raw = np.asarray(await embedder.embed_texts([s.text for s in seeds]), dtype=np.float32)
        result = EmbeddingResult(vectors=raw, dimension=int(raw.shape[-1]) if raw.ndim else 0)
        logger.info("Indexed %d seed examples (dim=%d)", len(seeds), result.dimension)
        return cls(seeds=tuple(seeds), vectors=result.normalized())


@dataclass
class SemanticEvidence:
    """Per-intent similarity plus the nearest seed examples.

    Attributes:
        scores: Max similarity per intent, clamped to [0, 1]
        neighbors: Up to three (seed, similarity) pairs, best first
        method: "embedding" or "lexical"
    """

    scores: dict[IntentType, float] = field(default_factory=dict)
    neighbors: list[tuple[SeedExample, float]] = field(default_factory=list)
    method: str = "lexical"

    @property
    def max_score(self) -> float:
        return max(self.scores.values(), default=0.0)


class SemanticMatcher:
    """Nearest-neighbour intent scoring over the seed corpus."""

    TOP_K = 3

    def __init__(
        self,
        embedder: "EmbeddingBackend | None" = None,
        index: SeedIndex | None = None,
        seeds: tuple[SeedExample, ...] = SEED_EXAMPLES,
    ) -> None:
        self.embedder = embedder
        self.index = index
        self.seeds = index.seeds if index is not None else tuple(seeds)

    @property
    def uses_embeddings(self) -> bool:
        return self.embedder is not None and self.index is not None

    async def score(self, text: str) -> dict[IntentType, float]:
        """Max similarity per intent for ``text``."""
        return (await self.evaluate(text)).scores

    async def evaluate(self, text: str) -> SemanticEvidence:
        """Score ``text`` with embeddings, degrading to word overlap.

        Args:
            text: Utterance to score

        Returns:
            SemanticEvidence for the utterance
        """
        if not text or not text.strip():
            return SemanticEvidence(scores={intent: 0.0 for intent in IntentType})

        if self.uses_embeddings:
            try:
                return await self._evaluate_embedding(text)
            except (ModelUnavailable, RuntimeError, ValueError) as e:
                logger.warning(f"Embedding similarity failed, using word overlap: {e}")

        return self.evaluate_lexical(text)

    async def _evaluate_embedding(self, text: str) -> SemanticEvidence:
        assert self.embedder is not None and self.index is not None  # Type narrowing

        raw = await self.embedder.embed_texts([text])
        result = EmbeddingResult(
            vectors=np.asarray(raw, dtype=np.float32), dimension=self.index.dimension
        )
        if result.vectors.shape[0] != 1:
            raise ValueError(f"Expected one embedding, got {result.vectors.shape[0]}")
        if not np.all(np.isfinite(result.vectors)):
            raise ValueError("Embedding contains non-finite values")

        query = result.normalized()[0]
        if not np.any(query):
            raise ValueError("Embedding has zero norm")

        sims = self.index.vectors @ query
        sims = np.clip(sims, 0.0, 1.0)

        scores = {intent: 0.0 for intent in IntentType}
        for seed, sim in zip(self.index.seeds, sims):
            if sim > scores[seed.intent]:
                scores[seed.intent] = float(sim)

        top = np.argsort(-sims)[: self.TOP_K]
        neighbors = [(self.index.seeds[i], float(sims[i])) for i in top]
        return SemanticEvidence(scores=scores, neighbors=neighbors, method="embedding")

    def evaluate_lexical(self, text: str) -> SemanticEvidence:
        """Score ``text`` by Jaccard word overlap against the seed corpus."""
        scores = {intent: 0.0 for intent in IntentType}
        ranked: list[tuple[SeedExample, float]] = []
        for seed in self.seeds:
            sim = jaccard(text, seed.text)
            ranked.append((seed, sim))
            if sim > scores[seed.intent]:
                scores[seed.intent] = sim

        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return SemanticEvidence(scores=scores, neighbors=ranked[: self.TOP_K], method="lexical")

    @staticmethod
    def shape_confidence(confidence: float, evidence: SemanticEvidence) -> float:
        """Adjust a semantic confidence using hints on the nearest seeds.

        A high-confidence nearest seed boosts, an ambiguous one damps, and
        agreement among the top neighbours adds a small consensus boost.

        Args:
            confidence: Raw semantic confidence
            evidence: Evidence the confidence came from

        Returns:
            Adjusted confidence clamped to [0, 1]
        """
        if not evidence.neighbors:
            return clamp(confidence)

        nearest, similarity = evidence.neighbors[0]
        if nearest.confidence_hint == "high" and similarity > 0.7:
            confidence *= 1.2
        if nearest.complexity_hint == "ambiguous":
            confidence *= 0.8

        intents = [seed.intent for seed, _ in evidence.neighbors]
        agreeing = max(intents.count(i) for i in set(intents))
        if len(intents) >= 3 and agreeing >= 2 and confidence > 0.6:
            confidence *= 1.1

        return clamp(confidence)


__all__ = ["SeedIndex", "SemanticEvidence", "SemanticMatcher", "jaccard", "word_set"]
