"""Zero-shot classification backend (transformers NLI pipeline)."""

from __future__ import annotations

from .base import TransformersPipelineBackend

# Default entailment model for zero-shot classification
DEFAULT_ZERO_SHOT_MODEL = "facebook/bart-large-mnli"


class ZeroShotBackend(TransformersPipelineBackend):
    """Entailment-style classifier over arbitrary candidate labels."""

    task = "zero-shot-classification"

    def __init__(self, model_name: str = DEFAULT_ZERO_SHOT_MODEL, device: int = -1) -> None:
        super().__init__(model_name, device)

    async def classify(self, text: str, labels: list[str]) -> dict[str, float]:
        """Score each candidate label for ``text``.

        Args:
            text: Utterance to classify
            labels: Candidate label descriptions

        Returns:
            Mapping of label to probability (single-label softmax)
        """
        result = await self._run(text, candidate_labels=labels, multi_label=False)
        return {
            label: float(score)
            for label, score in zip(result["labels"], result["scores"])
        }


__all__ = ["DEFAULT_ZERO_SHOT_MODEL", "ZeroShotBackend"]
