"""Core components for recall.

Model handles live in a ModelContext: built once by a ModelRegistry, then
immutable and shared by every classification and extraction call.
"""

from __future__ import annotations

import asyncio
import importlib.util
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from ..config import NLUConfig
from .backends import BackendError, create_embedder, create_ner, create_zero_shot
from .intent.semantic import SeedIndex
from .intent.statistical import StatisticalClassifier

if TYPE_CHECKING:
    from .backends.ner import NERBackend
    from .backends.zero_shot import ZeroShotBackend
    from .embeddings import EmbeddingBackend

logger = logging.getLogger(__name__)

B = TypeVar("B")


def embeddings_available() -> bool:
    """Check if text embedding dependencies are available.

    Returns:
        True if sentence-transformers is installed.
    """
    return importlib.util.find_spec("sentence_transformers") is not None


def transformers_available() -> bool:
    """Check if transformers (NER and zero-shot pipelines) is installed."""
    return importlib.util.find_spec("transformers") is not None


@dataclass(frozen=True)
class ModelContext:
    """Read-only handles to every loaded model.

    A slot is None when its model is disabled or failed to load; the
    pipeline then degrades that layer only.

    Attributes:
        embedder: Sentence embedding backend
        seed_index: Pre-computed seed embeddings (requires embedder)
        ner: Token-classification backend
        zero_shot: Zero-shot classification backend
        statistical: Naive Bayes fallback, always present
    """

    embedder: "EmbeddingBackend | None" = field(default=None, repr=False)
    seed_index: SeedIndex | None = field(default=None, repr=False)
    ner: "NERBackend | None" = field(default=None, repr=False)
    zero_shot: "ZeroShotBackend | None" = field(default=None, repr=False)
    statistical: StatisticalClassifier = field(default_factory=StatisticalClassifier, repr=False)

    @classmethod
    def degraded(cls) -> "ModelContext":
        """Context with no learned models, only regex and Naive Bayes layers."""
        return cls()

    @property
    def is_degraded(self) -> bool:
        return self.embedder is None and self.ner is None and self.zero_shot is None

    def describe(self) -> dict[str, str | None]:
        """Model name per slot (None when unavailable)."""
        return {
            "embedder": self.embedder.model_name if self.embedder else None,
            "ner": self.ner.model_name if self.ner else None,
            "zero_shot": self.zero_shot.model_name if self.zero_shot else None,
        }


class ModelRegistry:
    """Process-wide owner of the ModelContext.

    Lifecycle:
        unloaded -> initialize() -> ready -> teardown() -> unloaded

    initialize() is single-flight: concurrent callers wait on one lock and
    all observe the same context. A ready registry is never reloaded except
    by an explicit teardown() followed by initialize().
    """

    def __init__(
        self,
        config: NLUConfig | None = None,
        embedder_factory: Callable[[NLUConfig], Any] = create_embedder,
        ner_factory: Callable[[NLUConfig], Any] = create_ner,
        zero_shot_factory: Callable[[NLUConfig], Any] = create_zero_shot,
    ) -> None:
        self.config = config or NLUConfig()
        self._embedder_factory = embedder_factory
        self._ner_factory = ner_factory
        self._zero_shot_factory = zero_shot_factory
        self._context: ModelContext | None = None
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> ModelContext | None:
        return self._context

    async def initialize(self) -> ModelContext:
        """Load every enabled model once.

        Returns:
            The ready ModelContext (possibly degraded)
        """
        if self._context is not None:
            return self._context

        async with self._lock:
            if self._context is not None:
                return self._context

            logger.info("Initializing NLU models")
            embedder, ner, zero_shot = await asyncio.gather(
                self._load_optional("embedding", self.config.embeddings_enabled, self._embedder_factory),
                self._load_optional("NER", self.config.ner_enabled, self._ner_factory),
                self._load_optional("zero-shot", self.config.zero_shot_enabled, self._zero_shot_factory),
            )

            seed_index = None
            if embedder is not None:
                try:
                    seed_index = await SeedIndex.build(embedder)
                except (BackendError, RuntimeError, ValueError) as e:
                    logger.warning(f"Seed embeddings unavailable, semantic layer uses word overlap: {e}")
                    await embedder.unload()
                    embedder = None

            self._context = ModelContext(
                embedder=embedder,
                seed_index=seed_index,
                ner=ner,
                zero_shot=zero_shot,
                statistical=StatisticalClassifier(),
            )
            logger.info("NLU models ready: %s", self._context.describe())
            return self._context

    async def _load_optional(
        self,
        name: str,
        enabled: bool,
        factory: Callable[[NLUConfig], B],
    ) -> B | None:
        if not enabled:
            logger.info("%s model disabled", name)
            return None
        try:
            backend = factory(self.config)
            await backend.load()  # type: ignore[attr-defined]
            return backend
        except Exception as e:
            logger.warning(f"{name} model unavailable, layer degraded: {e}")
            return None

    async def teardown(self) -> None:
        """Unload every model. Safe to call multiple times."""
        async with self._lock:
            context, self._context = self._context, None
            if context is None:
                return
            for backend in (context.embedder, context.ner, context.zero_shot):
                if backend is None:
                    continue
                try:
                    await backend.unload()
                except Exception as e:
                    logger.warning(f"Error unloading {backend.model_name}: {e}")
            logger.info("NLU models unloaded")


_registry: ModelRegistry | None = None


def get_registry(config: NLUConfig | None = None) -> ModelRegistry:
    """Return the process-wide registry, creating it on first use.

    Args:
        config: Configuration for a newly created registry (ignored once
            the registry exists)
    """
    global _registry
    if _registry is None:
        _registry = ModelRegistry(config)
    return _registry


async def reset_registry() -> None:
    """Tear down and forget the process-wide registry."""
    global _registry
    registry, _registry = _registry, None
    if registry is not None:
        await registry.teardown()


__all__ = [
    "ModelContext",
    "ModelRegistry",
    "embeddings_available",
    "get_registry",
    "reset_registry",
    "transformers_available",
]
