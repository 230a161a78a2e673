"""Statistical fallback classifier for recall.

A multinomial Naive Bayes model over word unigrams and bigrams, trained once
on the seed corpus when constructed. Training takes milliseconds and is
deterministic, so every process builds an identical model.
"""

from __future__ import annotations

import logging

from sklearn.feature_extraction.text import CountVectorizer
from sklearn.naive_bayes import MultinomialNB
from sklearn.pipeline import Pipeline

from .seeds import SEED_EXAMPLES, seeds_by_intent
from .taxonomy import IntentType, SeedExample

logger = logging.getLogger(__name__)


class StatisticalClassifier:
    """Naive Bayes intent classifier trained on seed examples.

    Attributes:
        alpha: Additive smoothing parameter
    """

    def __init__(self, seeds: tuple[SeedExample, ...] = SEED_EXAMPLES, alpha: float = 0.5) -> None:
        self.alpha = alpha
        self._model = Pipeline(
            [
                ("vectorizer", CountVectorizer(lowercase=True, ngram_range=(1, 2))),
                ("classifier", MultinomialNB(alpha=alpha)),
            ]
        )
        self._labels: list[IntentType] = []
        self.train(seeds)

    @property
    def is_trained(self) -> bool:
        return bool(self._labels)

    def train(self, seeds: tuple[SeedExample, ...]) -> None:
        """Fit the model on labelled examples.

        Args:
            seeds: Examples covering at least two intents

        Raises:
            ValueError: If fewer than two intents are represented
        """
        labels = [intent for intent, examples in seeds_by_intent(seeds).items() if examples]
        if len(labels) < 2:
            raise ValueError("Statistical classifier needs examples for at least two intents")

        self._model.fit([s.text for s in seeds], [s.intent.value for s in seeds])
        self._labels = [IntentType(c) for c in self._model.classes_]
        logger.debug("Trained Naive Bayes on %d examples, %d intents", len(seeds), len(labels))

    def score(self, text: str) -> dict[IntentType, float]:
        """Posterior probability per intent.

        Texts with no known vocabulary produce the class prior, which is
        close to uniform; callers should treat low maxima as no evidence.

        Args:
            text: Utterance to score

        Returns:
            Mapping of every intent to its probability (0 for unseen intents)
        """
        scores = {intent: 0.0 for intent in IntentType}
        if not text or not text.strip():
            return scores

        probabilities = self._model.predict_proba([text])[0]
        for intent, probability in zip(self._labels, probabilities):
            scores[intent] = float(probability)
        return scores

    def has_vocabulary(self, text: str) -> bool:
        """Check whether any word of ``text`` was seen during training."""
        vectorizer: CountVectorizer = self._model.named_steps["vectorizer"]
        return vectorizer.transform([text]).nnz > 0


__all__ = ["StatisticalClassifier"]
