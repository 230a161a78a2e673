"""Abstract base for model backends used by the learned layers."""

from __future__ import annotations

import asyncio
import gc
import importlib.util
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class ModelBackend(ABC):
    """Abstract base class for locally loaded inference models.

    Lifecycle:
        1. Create instance
        2. Call load() to read weights
        3. Run inference as needed
        4. Call unload() when done
    """

    @abstractmethod
    async def load(self) -> None:
        """Load the model.

        Raises:
            ModelUnavailable: If loading fails.
            DependencyError: If the required library is not installed.
        """
        ...

    @abstractmethod
    async def unload(self) -> None:
        """Unload the model. Safe to call multiple times."""
        ...

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Check if the model is ready for inference."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
        ...


class TransformersPipelineBackend(ModelBackend):
    """Shared loading for HuggingFace transformers pipelines.

    Subclasses set ``task`` and expose task-specific inference methods that
    call ``_run``.
    """

    task: str = ""

    def __init__(self, model_name: str, device: int = -1) -> None:
        self._model_name = model_name
        self._device = device
        self._pipeline: Any = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def is_loaded(self) -> bool:
        return self._pipeline is not None

    def _pipeline_kwargs(self) -> dict[str, Any]:
        return {}

    async def load(self) -> None:
        """Build the transformers pipeline on the thread-pool executor.

        Raises:
            DependencyError: If transformers is not installed.
            ModelUnavailable: If the pipeline cannot be built.
        """
        from . import DependencyError, ModelUnavailable

        if self._pipeline is not None:
            return

        if importlib.util.find_spec("transformers") is None:
            raise DependencyError(
                "transformers is not installed. Install with: pip install 'recall-nlu[models]'"
            )

        logger.info("Loading %s model: %s", self.task, self._model_name)

        def _load_pipeline() -> Any:
            from transformers import pipeline

            return pipeline(
                self.task,
                model=self._model_name,
                device=self._device,
                **self._pipeline_kwargs(),
            )

        loop = asyncio.get_running_loop()
        try:
            self._pipeline = await loop.run_in_executor(None, _load_pipeline)
            logger.info("Model %s loaded successfully", self._model_name)
        except Exception as e:
            self._pipeline = None
            raise ModelUnavailable(f"Failed to load model {self._model_name}: {e}") from e

    async def _run(self, *args: Any, **kwargs: Any) -> Any:
        """Run the pipeline off the event loop.

        Raises:
            RuntimeError: If the model is not loaded.
            ModelUnavailable: If inference fails.
        """
        from . import ModelUnavailable

        if self._pipeline is None:
            raise RuntimeError(f"Model {self._model_name} not loaded. Call load() first.")

        pipe = self._pipeline
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: pipe(*args, **kwargs))
        except Exception as e:
            raise ModelUnavailable(f"Inference failed with {self._model_name}: {e}") from e

    async def unload(self) -> None:
        """Release the pipeline. Idempotent."""
        if self._pipeline is not None:
            logger.info("Unloading model: %s", self._model_name)
            self._pipeline = None
            gc.collect()


__all__ = ["ModelBackend", "TransformersPipelineBackend"]
