"""recall configuration.

Includes:
- NLUConfig: Pipeline settings with environment variable support
- ThresholdConfig: Calibration knobs for the classification layers

Environment Variables:
    RECALL_ZERO_SHOT_ENABLED: Enable the zero-shot layer (default true)
    RECALL_EMBEDDINGS_ENABLED: Enable the embedding model (default true)
    RECALL_NER_ENABLED: Enable the NER model (default true)
    RECALL_EMBEDDING_MODEL: sentence-transformers model ID
    RECALL_NER_MODEL: Token-classification model ID
    RECALL_ZERO_SHOT_MODEL: Zero-shot NLI model ID
    RECALL_THRESHOLDS__<NAME>: Override a single threshold
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = ".recall"
CONFIG_FILE = "config.yaml"


class ThresholdConfig(BaseModel):
    """Confidence thresholds used by the classification pipeline.

    Attributes:
        pattern_confidence: Confidence assigned when the pattern layer fires
        semantic_confident: Semantic score above which the layer resolves
        pattern_ambiguity: Pattern score below which evidence is inconclusive
        semantic_ambiguity: Semantic score below which evidence is inconclusive
        zero_shot_min_confidence: Minimum zero-shot score to accept its label
        fallback_scale: Multiplier applied to fallback evidence
        fallback_ceiling: Maximum confidence of a fallback result
        clarify_threshold: Below this, callers should ask for clarification
        zero_shot_clarify_threshold: Clarification threshold for zero-shot results
        ner_min_score: Per-token floor for NER tags
    """

    pattern_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    semantic_confident: float = Field(default=0.7, ge=0.0, le=1.0)
    pattern_ambiguity: float = Field(default=0.9, ge=0.0)
    semantic_ambiguity: float = Field(default=0.3, ge=0.0, le=1.0)
    zero_shot_min_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    fallback_scale: float = Field(default=0.6, ge=0.0, le=1.0)
    fallback_ceiling: float = Field(default=0.7, ge=0.0, le=1.0)
    clarify_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    zero_shot_clarify_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    ner_min_score: float = Field(default=0.7, ge=0.0, le=1.0)


class NLUConfig(BaseSettings):
    """Pipeline configuration with environment variable support.

    Configuration is loaded from environment variables with RECALL_ prefix.
    For example, RECALL_ZERO_SHOT_ENABLED=false disables the zero-shot layer.

    Precedence (highest to lowest):
        1. Environment variables (RECALL_*)
        2. Config file (.recall/config.yaml)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="RECALL_",
        env_nested_delimiter="__",
        extra="ignore",
        protected_namespaces=(),  # Allow *_model field names
    )

    project_path: Path = Field(default_factory=Path.cwd)

    # Optional layers
    zero_shot_enabled: bool = True
    embeddings_enabled: bool = True
    ner_enabled: bool = True
    confidence_shaping: bool = False

    # Model artifacts
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Embedding model for the semantic layer",
    )
    ner_model: str = "dslim/bert-base-NER"
    zero_shot_model: str = "facebook/bart-large-mnli"

    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)

    # Security: maximum utterance length before truncation
    max_input_length: int = Field(default=10_000, gt=0)

    # Declarative pattern tables; None means built-in defaults
    intent_patterns: Optional[dict[str, list[str]]] = None
    entity_patterns: Optional[dict[str, list[str]]] = None

    @field_validator("intent_patterns", mode="after")
    @classmethod
    def validate_intent_patterns(
        cls, v: Optional[dict[str, list[str]]]
    ) -> Optional[dict[str, list[str]]]:
        """Reject unknown intents and patterns that do not compile."""
        if v is not None:
            from .core.intent.patterns import IntentPatternMatcher

            IntentPatternMatcher(v)
        return v

    @field_validator("entity_patterns", mode="after")
    @classmethod
    def validate_entity_patterns(
        cls, v: Optional[dict[str, list[str]]]
    ) -> Optional[dict[str, list[str]]]:
        """Reject unknown entity types and patterns that do not compile."""
        if v is not None:
            from .core.intent.entities import EntityExtractor

            EntityExtractor(patterns=v)
        return v

    @classmethod
    def load(cls, path: Path) -> "NLUConfig":
        """Load configuration from .recall/config.yaml if it exists.

        Values set through RECALL_* environment variables are kept over
        values in the file.

        Args:
            path: Project path to load configuration for

        Returns:
            NLUConfig with file values applied (or defaults if no config exists)
        """
        from ruamel.yaml import YAML

        config_file = Path(path) / CONFIG_DIR / CONFIG_FILE
        data: dict = {}

        if config_file.exists():
            yaml = YAML(typ="safe")
            with config_file.open() as f:
                data = yaml.load(f) or {}

        overrides = {
            key: value
            for key, value in data.items()
            if key in cls.model_fields and not _env_sets(key)
        }
        if "thresholds" in overrides:
            # File thresholds replace the nested model; keep env-set ones
            from_env = cls().thresholds.model_dump()
            overrides["thresholds"] = {
                **(overrides["thresholds"] or {}),
                **{
                    name: value
                    for name, value in from_env.items()
                    if _env_sets(f"thresholds__{name}")
                },
            }

        return cls(project_path=path, **overrides)

    def save(self) -> None:
        """Save configuration to .recall/config.yaml in the project path."""
        from ruamel.yaml import YAML

        config_dir = self.project_path / CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)
        config_file = config_dir / CONFIG_FILE

        yaml = YAML()
        yaml.default_flow_style = False

        data = self.model_dump(mode="json", exclude={"project_path"}, exclude_none=True)

        with config_file.open("w") as f:
            yaml.dump(data, f)


def _env_sets(field_name: str) -> bool:
    """Check whether an environment variable sets a config field."""
    return f"RECALL_{field_name.upper()}" in {k.upper() for k in os.environ}


__all__ = ["NLUConfig", "ThresholdConfig"]
