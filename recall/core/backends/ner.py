"""Named-entity recognition backend (transformers token classification).

Usage:
    backend = NERBackend()
    await backend.load()

    tokens = await backend.tag("Meeting with John Smith in Paris")
    # [{"entity": "B-PER", "score": 0.99, "word": "John", ...}, ...]

    await backend.unload()
"""

from __future__ import annotations

from typing import Any

from .base import TransformersPipelineBackend

# Default NER model (CoNLL-03 tags: PER, LOC, ORG, MISC)
DEFAULT_NER_MODEL = "dslim/bert-base-NER"


class NERBackend(TransformersPipelineBackend):
    """Token-classification pipeline returning raw per-token tags.

    Tokens are not aggregated by the pipeline; grouping into spans happens in
    the entity extractor so the score floor applies per token.
    """

    task = "token-classification"

    def __init__(self, model_name: str = DEFAULT_NER_MODEL, device: int = -1) -> None:
        super().__init__(model_name, device)

    def _pipeline_kwargs(self) -> dict[str, Any]:
        return {"aggregation_strategy": "none"}

    async def tag(self, text: str) -> list[dict[str, Any]]:
        """Tag tokens in ``text``.

        Args:
            text: Utterance to tag

        Returns:
            List of token dicts with ``entity``, ``score`` and ``word`` keys
        """
        result = await self._run(text)
        return list(result or [])


__all__ = ["DEFAULT_NER_MODEL", "NERBackend"]
