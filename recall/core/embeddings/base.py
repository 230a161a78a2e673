"""Abstract base class for text embedding backends.

Usage:
    from recall.core.embeddings import EmbeddingBackend

    backend: EmbeddingBackend = ...
    await backend.load()

    vectors = await backend.embed_texts(["Hello world", "How are you?"])  # Shape: (2, D)

    await backend.unload()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass
class EmbeddingResult:
    """Result from embedding generation.

    Attributes:
        vectors: Embedding vectors with shape (N, D) where N is number of texts
                 and D is the embedding dimension.
        dimension: The embedding dimension (D).
    """

    vectors: np.ndarray  # Shape: (N, D)
    dimension: int

    def __post_init__(self) -> None:
        """Validate shape against the declared dimension."""
        if len(self.vectors.shape) != 2:
            raise ValueError(
                f"Expected 2D array (N, D), got shape {self.vectors.shape}"
            )
        if self.dimension != self.vectors.shape[1]:
            raise ValueError(
                f"Dimension mismatch: {self.dimension} != {self.vectors.shape[1]}"
            )

    def normalized(self) -> np.ndarray:
        """Return the vectors scaled to unit L2 norm (zero rows stay zero)."""
        norms = np.linalg.norm(self.vectors, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return (self.vectors / norms).astype(np.float32)


class EmbeddingBackend(ABC):
    """Abstract base class for text embedding backends.

    Lifecycle:
        1. Create instance
        2. Call load() to initialize model
        3. Call embed_texts() as needed
        4. Call unload() when done
    """

    @abstractmethod
    async def load(self) -> None:
        """Load the embedding model.

        Raises:
            ModelUnavailable: If the model cannot be loaded.
            DependencyError: If the embedding library is not installed.
        """
        ...

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> np.ndarray:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed.

        Returns:
            np.ndarray with shape (len(texts), dimension)

        Raises:
            RuntimeError: If model not loaded.
        """
        ...

    @abstractmethod
    async def unload(self) -> None:
        """Unload the model and free resources.

        Safe to call multiple times.
        """
        ...

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Check if the model is currently loaded."""
        ...

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Get the embedding dimension (0 if not yet loaded)."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name/identifier."""
        ...


__all__ = ["EmbeddingBackend", "EmbeddingResult"]
