"""Model backends for the learned layers of recall.

This package provides adapters for the locally loaded models:
- SentenceEmbeddingBackend: utterance embeddings (sentence-transformers)
- NERBackend: token classification (transformers)
- ZeroShotBackend: entailment-based zero-shot classification (transformers)

Usage:
    from recall.core.backends import create_ner

    backend = create_ner(config)
    await backend.load()

    tokens = await backend.tag("Lunch with Maria on Friday")

    await backend.unload()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ModelBackend, TransformersPipelineBackend

if TYPE_CHECKING:
    from ...config import NLUConfig
    from ..embeddings import EmbeddingBackend
    from .ner import NERBackend
    from .zero_shot import ZeroShotBackend


# Exceptions
class BackendError(Exception):
    """Base exception for backend errors."""

    pass


class ModelUnavailable(BackendError):
    """Model failed to load or errored at inference time."""

    pass


class DependencyError(BackendError):
    """Required dependency not installed."""

    pass


def create_embedder(config: "NLUConfig") -> "EmbeddingBackend":
    """Create the embedding backend named in config (not yet loaded)."""
    from ..embeddings import SentenceEmbeddingBackend

    return SentenceEmbeddingBackend(config.embedding_model)


def create_ner(config: "NLUConfig") -> "NERBackend":
    """Create the NER backend named in config (not yet loaded)."""
    from .ner import NERBackend

    return NERBackend(config.ner_model)


def create_zero_shot(config: "NLUConfig") -> "ZeroShotBackend":
    """Create the zero-shot backend named in config (not yet loaded)."""
    from .zero_shot import ZeroShotBackend

    return ZeroShotBackend(config.zero_shot_model)


__all__ = [
    # Base classes
    "ModelBackend",
    "TransformersPipelineBackend",
    # Factories
    "create_embedder",
    "create_ner",
    "create_zero_shot",
    # Exceptions
    "BackendError",
    "ModelUnavailable",
    "DependencyError",
]
