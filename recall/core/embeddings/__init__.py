"""Text embedding backends for recall.

The semantic similarity layer embeds utterances and seed examples with a
sentence-transformers model.

Usage:
    from recall.core.embeddings import SentenceEmbeddingBackend

    backend = SentenceEmbeddingBackend()
    await backend.load()

    vectors = await backend.embed_texts(["Hello", "World"])
    # vectors.shape = (2, 384)

    await backend.unload()
"""

from __future__ import annotations

from .base import EmbeddingBackend, EmbeddingResult
from .sentence import DEFAULT_MODEL, SentenceEmbeddingBackend

__all__ = [
    "DEFAULT_MODEL",
    "EmbeddingBackend",
    "EmbeddingResult",
    "SentenceEmbeddingBackend",
]
