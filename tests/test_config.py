"""Tests for recall.config.

Tests cover:
- Defaults and validation
- Environment variable overrides (flat and nested)
- Loading and saving .recall/config.yaml
- Precedence of environment over file values
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from recall.config import CONFIG_DIR, CONFIG_FILE, NLUConfig, ThresholdConfig


def write_config(project: Path, content: str) -> Path:
    config_dir = project / CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / CONFIG_FILE
    path.write_text(content)
    return path


# =============================================================================
# Defaults
# =============================================================================


class TestDefaults:
    """Tests for default values."""

    def test_layers_enabled(self):
        config = NLUConfig()
        assert config.zero_shot_enabled
        assert config.embeddings_enabled
        assert config.ner_enabled
        assert not config.confidence_shaping

    def test_models(self):
        config = NLUConfig()
        assert config.embedding_model == "sentence-transformers/all-MiniLM-L6-v2"
        assert config.ner_model == "dslim/bert-base-NER"
        assert config.zero_shot_model == "facebook/bart-large-mnli"

    def test_thresholds(self):
        thresholds = NLUConfig().thresholds
        assert thresholds.pattern_confidence == 0.9
        assert thresholds.semantic_confident == 0.7
        assert thresholds.semantic_ambiguity == 0.3
        assert thresholds.zero_shot_min_confidence == 0.6
        assert thresholds.fallback_scale == 0.6
        assert thresholds.fallback_ceiling == 0.7

    def test_pattern_tables_default_to_none(self):
        config = NLUConfig()
        assert config.intent_patterns is None
        assert config.entity_patterns is None

    def test_threshold_range_validated(self):
        with pytest.raises(ValidationError):
            ThresholdConfig(semantic_confident=1.5)

    def test_max_input_length_positive(self):
        with pytest.raises(ValidationError):
            NLUConfig(max_input_length=0)

    def test_unknown_intent_in_pattern_table_rejected(self):
        with pytest.raises(ValidationError, match="Unknown intent"):
            NLUConfig(intent_patterns={"bogus": ["x"]})

    def test_invalid_intent_regex_rejected(self):
        with pytest.raises(ValidationError, match="Invalid pattern"):
            NLUConfig(intent_patterns={"command": ["(unclosed"]})

    def test_invalid_entity_table_rejected(self):
        with pytest.raises(ValidationError, match="Unknown entity type"):
            NLUConfig(entity_patterns={"weather": ["rain"]})

    def test_valid_tables_accepted(self):
        config = NLUConfig(
            intent_patterns={"greeting": [r"^ahoy\b"]},
            entity_patterns={"event": [r"\bstandup\b"]},
        )
        assert config.intent_patterns == {"greeting": [r"^ahoy\b"]}


# =============================================================================
# Environment
# =============================================================================


class TestEnvironment:
    """Tests for RECALL_* environment variables."""

    def test_flag(self, monkeypatch):
        monkeypatch.setenv("RECALL_ZERO_SHOT_ENABLED", "false")
        assert NLUConfig().zero_shot_enabled is False

    def test_model_name(self, monkeypatch):
        monkeypatch.setenv("RECALL_NER_MODEL", "acme/ner")
        assert NLUConfig().ner_model == "acme/ner"

    def test_nested_threshold(self, monkeypatch):
        monkeypatch.setenv("RECALL_THRESHOLDS__SEMANTIC_CONFIDENT", "0.8")
        config = NLUConfig()
        assert config.thresholds.semantic_confident == 0.8
        assert config.thresholds.pattern_confidence == 0.9


# =============================================================================
# Load / Save
# =============================================================================


class TestLoadSave:
    """Tests for .recall/config.yaml handling."""

    def test_load_missing_file(self, tmp_path):
        config = NLUConfig.load(tmp_path)
        assert config.project_path == tmp_path
        assert config.zero_shot_enabled

    def test_load_values(self, tmp_path):
        write_config(
            tmp_path,
            "zero_shot_enabled: false\n"
            "ner_model: acme/ner\n"
            "thresholds:\n"
            "  semantic_confident: 0.75\n"
            "intent_patterns:\n"
            "  command:\n"
            "    - '\\bbeam me up\\b'\n"
            "unknown_key: ignored\n",
        )
        config = NLUConfig.load(tmp_path)

        assert config.zero_shot_enabled is False
        assert config.ner_model == "acme/ner"
        assert config.thresholds.semantic_confident == 0.75
        assert config.thresholds.pattern_confidence == 0.9
        assert config.intent_patterns == {"command": ["\\bbeam me up\\b"]}

    def test_empty_file(self, tmp_path):
        write_config(tmp_path, "")
        assert NLUConfig.load(tmp_path).ner_enabled

    def test_environment_beats_file(self, tmp_path, monkeypatch):
        write_config(tmp_path, "zero_shot_enabled: false\n")
        monkeypatch.setenv("RECALL_ZERO_SHOT_ENABLED", "true")
        assert NLUConfig.load(tmp_path).zero_shot_enabled is True

    def test_environment_threshold_beats_file(self, tmp_path, monkeypatch):
        write_config(
            tmp_path,
            "thresholds:\n  semantic_confident: 0.75\n  fallback_ceiling: 0.5\n",
        )
        monkeypatch.setenv("RECALL_THRESHOLDS__SEMANTIC_CONFIDENT", "0.85")

        thresholds = NLUConfig.load(tmp_path).thresholds

        assert thresholds.semantic_confident == 0.85
        assert thresholds.fallback_ceiling == 0.5

    def test_invalid_file_table_rejected(self, tmp_path):
        write_config(tmp_path, "intent_patterns:\n  weather:\n    - rain\n")
        with pytest.raises(ValidationError, match="Unknown intent"):
            NLUConfig.load(tmp_path)

    def test_save_round_trip(self, tmp_path):
        config = NLUConfig(
            project_path=tmp_path,
            ner_enabled=False,
            thresholds=ThresholdConfig(clarify_threshold=0.4),
        )
        config.save()

        saved = (tmp_path / CONFIG_DIR / CONFIG_FILE).read_text()
        assert "project_path" not in saved
        assert "intent_patterns" not in saved

        loaded = NLUConfig.load(tmp_path)
        assert loaded.ner_enabled is False
        assert loaded.thresholds.clarify_threshold == 0.4
