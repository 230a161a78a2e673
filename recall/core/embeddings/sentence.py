"""sentence-transformers text embedding backend.

Loads the model in-process on the default thread-pool executor so the event
loop stays responsive while weights are read.

Requirements:
    - sentence-transformers
    - numpy

Usage:
    backend = SentenceEmbeddingBackend()
    await backend.load()

    embeddings = await backend.embed_texts(["Hello", "World"])
    # embeddings.shape = (2, 384)

    await backend.unload()
"""

from __future__ import annotations

import asyncio
import gc
import importlib.util
import logging
from typing import Any

import numpy as np

from ..backends import DependencyError, ModelUnavailable
from .base import EmbeddingBackend

logger = logging.getLogger(__name__)

# Default embedding model
DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceEmbeddingBackend(EmbeddingBackend):
    """Text embedding backend using sentence-transformers on the CPU.

    Embeddings are L2-normalized so dot products are cosine similarities.

    Attributes:
        model_name: HuggingFace model ID for the embedding model.
    """

    def __init__(self, model_name: str = DEFAULT_MODEL, device: str = "cpu") -> None:
        self._model_name = model_name
        self._device = device
        self._model: Any = None
        self._dimension = 0

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    async def load(self) -> None:
        """Load the sentence-transformers model.

        Raises:
            DependencyError: If sentence-transformers is not installed.
            ModelUnavailable: If the model fails to load.
        """
        if self._model is not None:
            return

        if importlib.util.find_spec("sentence_transformers") is None:
            raise DependencyError(
                "sentence-transformers is not installed. "
                "Install with: pip install 'recall-nlu[models]'"
            )

        logger.info("Loading embedding model %s", self._model_name)

        def _load_model() -> tuple[Any, int]:
            from sentence_transformers import SentenceTransformer

            model = SentenceTransformer(self._model_name, device=self._device)
            return model, int(model.get_sentence_embedding_dimension() or 0)

        loop = asyncio.get_running_loop()
        try:
            self._model, self._dimension = await loop.run_in_executor(None, _load_model)
            logger.info("Embedding model %s loaded (dim=%d)", self._model_name, self._dimension)
        except Exception as e:
            self._model = None
            self._dimension = 0
            raise ModelUnavailable(f"Failed to load embedding model {self._model_name}: {e}") from e

    async def embed_texts(self, texts: list[str]) -> np.ndarray:
        """Embed texts into unit-length vectors.

        Args:
            texts: List of strings to embed.

        Returns:
            float32 array with shape (len(texts), dimension)

        Raises:
            RuntimeError: If model not loaded.
            ModelUnavailable: If encoding fails.
        """
        if self._model is None:
            raise RuntimeError(f"Embedding model {self._model_name} not loaded. Call load() first.")

        if not texts:
            return np.zeros((0, self._dimension), dtype=np.float32)

        model = self._model

        def _encode() -> np.ndarray:
            vectors = model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)
            return np.asarray(vectors, dtype=np.float32)

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, _encode)
        except Exception as e:
            raise ModelUnavailable(f"Embedding failed with {self._model_name}: {e}") from e

    async def unload(self) -> None:
        """Release the model. Idempotent."""
        if self._model is not None:
            logger.info("Unloading embedding model: %s", self._model_name)
            self._model = None
            self._dimension = 0
            gc.collect()


__all__ = ["DEFAULT_MODEL", "SentenceEmbeddingBackend"]
