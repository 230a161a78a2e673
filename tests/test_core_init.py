"""Tests for recall.core model lifecycle.

Tests cover:
- Dependency availability checks
- ModelContext defaults and description
- ModelRegistry single-flight initialization, degradation and teardown
- Process-wide registry helpers and the module-level classify/extract API
"""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from recall.config import NLUConfig
from recall.core import (
    ModelContext,
    ModelRegistry,
    embeddings_available,
    get_registry,
    reset_registry,
    transformers_available,
)
from recall.core.backends import DependencyError, ModelUnavailable
from recall.core.intent import EntityType, IntentParser, IntentType, classify, extract_entities

# =============================================================================
# Helpers
# =============================================================================


def make_backend(name: str) -> MagicMock:
    backend = MagicMock()
    backend.model_name = name
    backend.is_loaded = True
    backend.load = AsyncMock()
    backend.unload = AsyncMock()
    return backend


def make_embedder(dimension: int = 4) -> MagicMock:
    embedder = make_backend("mock-embedder")
    embedder.embed_texts = AsyncMock(
        side_effect=lambda texts: np.ones((len(texts), dimension), dtype=np.float32)
    )
    return embedder


def offline_config() -> NLUConfig:
    return NLUConfig(embeddings_enabled=False, ner_enabled=False, zero_shot_enabled=False)


@pytest.fixture
def backends():
    return {
        "embedder": make_embedder(),
        "ner": make_backend("mock-ner"),
        "zero_shot": make_backend("mock-nli"),
    }


@pytest.fixture
def registry(backends) -> ModelRegistry:
    return ModelRegistry(
        NLUConfig(),
        embedder_factory=MagicMock(return_value=backends["embedder"]),
        ner_factory=MagicMock(return_value=backends["ner"]),
        zero_shot_factory=MagicMock(return_value=backends["zero_shot"]),
    )


# =============================================================================
# Availability Tests
# =============================================================================


class TestAvailability:
    """Tests for optional dependency checks."""

    def test_embeddings_available(self):
        with patch("importlib.util.find_spec", return_value=MagicMock()):
            assert embeddings_available() is True
        with patch("importlib.util.find_spec", return_value=None):
            assert embeddings_available() is False

    def test_transformers_available(self):
        with patch("importlib.util.find_spec", return_value=None):
            assert transformers_available() is False


# =============================================================================
# ModelContext Tests
# =============================================================================


class TestModelContext:
    """Tests for the immutable model handle bundle."""

    def test_degraded(self):
        context = ModelContext.degraded()
        assert context.is_degraded
        assert context.statistical.is_trained
        assert context.describe() == {"embedder": None, "ner": None, "zero_shot": None}

    def test_frozen(self):
        context = ModelContext.degraded()
        with pytest.raises(AttributeError):
            context.ner = make_backend("other")  # type: ignore[misc]

    def test_describe(self):
        context = ModelContext(ner=make_backend("mock-ner"))
        assert not context.is_degraded
        assert context.describe()["ner"] == "mock-ner"


# =============================================================================
# ModelRegistry Tests
# =============================================================================


class TestModelRegistry:
    """Tests for registry initialization and teardown."""

    @pytest.mark.asyncio
    async def test_initialize_loads_all(self, registry, backends):
        context = await registry.initialize()

        assert registry.is_ready
        assert context.embedder is backends["embedder"]
        assert context.ner is backends["ner"]
        assert context.zero_shot is backends["zero_shot"]
        assert context.seed_index is not None
        assert context.seed_index.dimension == 4
        for backend in backends.values():
            backend.load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_single_flight(self, registry, backends):
        contexts = await asyncio.gather(*(registry.initialize() for _ in range(5)))

        assert all(c is contexts[0] for c in contexts)
        registry._ner_factory.assert_called_once()
        backends["ner"].load.assert_awaited_once()
        backends["embedder"].embed_texts.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ready_registry_not_reloaded(self, registry, backends):
        first = await registry.initialize()
        second = await registry.initialize()
        assert first is second
        backends["zero_shot"].load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disabled_models_not_created(self, backends):
        registry = ModelRegistry(
            NLUConfig(zero_shot_enabled=False, ner_enabled=False),
            embedder_factory=MagicMock(return_value=backends["embedder"]),
            ner_factory=MagicMock(return_value=backends["ner"]),
            zero_shot_factory=MagicMock(return_value=backends["zero_shot"]),
        )
        context = await registry.initialize()

        assert context.zero_shot is None
        assert context.ner is None
        registry._zero_shot_factory.assert_not_called()
        registry._ner_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_load_degrades_one_layer(self, registry, backends):
        backends["ner"].load = AsyncMock(side_effect=ModelUnavailable("corrupt weights"))

        context = await registry.initialize()

        assert context.ner is None
        assert context.embedder is backends["embedder"]
        assert context.zero_shot is backends["zero_shot"]

    @pytest.mark.asyncio
    async def test_missing_dependencies_degrade_everything(self):
        def missing(config):
            backend = make_backend("missing")
            backend.load = AsyncMock(side_effect=DependencyError("not installed"))
            return backend

        registry = ModelRegistry(
            NLUConfig(),
            embedder_factory=missing,
            ner_factory=missing,
            zero_shot_factory=missing,
        )
        context = await registry.initialize()

        assert context.is_degraded
        assert context.seed_index is None

    @pytest.mark.asyncio
    async def test_seed_index_failure_drops_embedder(self, registry, backends):
        backends["embedder"].embed_texts = AsyncMock(return_value=np.ones((1, 4)))

        context = await registry.initialize()

        assert context.embedder is None
        assert context.seed_index is None
        backends["embedder"].unload.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_teardown(self, registry, backends):
        await registry.initialize()

        await registry.teardown()
        await registry.teardown()

        assert not registry.is_ready
        assert registry.context is None
        for backend in backends.values():
            backend.unload.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_teardown_then_initialize_reloads(self, registry, backends):
        await registry.initialize()
        await registry.teardown()
        await registry.initialize()
        assert backends["ner"].load.await_count == 2

    @pytest.mark.asyncio
    async def test_teardown_survives_unload_errors(self, registry, backends):
        backends["ner"].unload = AsyncMock(side_effect=RuntimeError("stuck"))
        await registry.initialize()

        await registry.teardown()

        assert not registry.is_ready
        backends["zero_shot"].unload.assert_awaited_once()


# =============================================================================
# Process-wide API Tests
# =============================================================================


class TestProcessWideApi:
    """Tests for get_registry and the module-level helpers."""

    @pytest.mark.asyncio
    async def test_get_registry_singleton(self):
        await reset_registry()
        try:
            first = get_registry(offline_config())
            assert get_registry() is first

            await reset_registry()
            assert get_registry() is not first
        finally:
            await reset_registry()

    @pytest.mark.asyncio
    async def test_classify(self):
        registry = ModelRegistry(offline_config())
        with patch("recall.core.get_registry", return_value=registry):
            result = await classify("Take a screenshot")
        assert result.intent == IntentType.COMMAND
        assert registry.is_ready

    @pytest.mark.asyncio
    async def test_classify_never_raises(self):
        registry = ModelRegistry(offline_config())
        with patch("recall.core.get_registry", return_value=registry):
            result = await classify("")
        assert result.intent == IntentType.QUESTION
        assert result.needs_clarification()

    @pytest.mark.asyncio
    async def test_extract_entities(self):
        registry = ModelRegistry(offline_config())
        with patch("recall.core.get_registry", return_value=registry):
            entities = await extract_entities("meeting with John tomorrow", date(2024, 3, 15))
        assert {e.type for e in entities} == {
            EntityType.DATETIME,
            EntityType.PERSON,
            EntityType.EVENT,
        }

    @pytest.mark.asyncio
    async def test_parser_built_once_per_context(self):
        registry = ModelRegistry(offline_config())
        with patch("recall.core.get_registry", return_value=registry), patch(
            "recall.core.intent.IntentParser", wraps=IntentParser
        ) as parser_cls:
            await classify("Take a screenshot")
            await classify("Hi")
            await extract_entities("meeting with John tomorrow")

        assert parser_cls.call_count == 1

    @pytest.mark.asyncio
    async def test_new_context_rebuilds_parser(self):
        registry = ModelRegistry(offline_config())
        with patch("recall.core.get_registry", return_value=registry), patch(
            "recall.core.intent.IntentParser", wraps=IntentParser
        ) as parser_cls:
            await classify("Hi")
            await registry.teardown()
            await classify("Hi")

        assert parser_cls.call_count == 2

    @pytest.mark.asyncio
    async def test_invalid_tables_fall_back_to_defaults(self):
        config = offline_config()
        config.intent_patterns = {"bogus": ["x"]}
        config.entity_patterns = {"event": ["(unclosed"]}
        registry = ModelRegistry(config)

        with patch("recall.core.get_registry", return_value=registry):
            result = await classify("Take a screenshot")
            entities = await extract_entities("meeting with John tomorrow", date(2024, 3, 15))

        assert result.intent == IntentType.COMMAND
        assert EntityType.EVENT in {e.type for e in entities}
