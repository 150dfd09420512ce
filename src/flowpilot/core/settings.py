"""Settings management for flowpilot with environment variable override support."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class LLMSettings(BaseModel):
    """LLM configuration for plan generation and step configuration.

    The defaults favor consistent plans over creative variation: a low
    temperature and a bounded output size for every generation call.
    """

    model: Optional[str] = Field(
        default=None,
        description="Model used for plan generation and step configuration. Auto-detected when unset.",
    )
    embedding_model: str = Field(default="3-small", description="Embedding model used to rank pieces")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1000, gt=0)
    max_retries: int = Field(default=3, ge=1, description="Attempts per generation call on transient failures")
    retry_wait: float = Field(default=1.0, ge=0.0, description="Seconds to wait between attempts")


class RetrievalSettings(BaseModel):
    """Piece retrieval configuration."""

    catalog_path: Optional[Path] = Field(default=None, description="Piece catalog JSON file")
    relevance_threshold: float = Field(default=0.3, description="Minimum similarity for a piece to be relevant")
    top_k: int = Field(default=10, gt=0)

    @field_validator("relevance_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate threshold is a cosine similarity."""
        if not -1.0 <= v <= 1.0:
            raise ValueError(f"Invalid relevance_threshold: {v}. Must be between -1.0 and 1.0")
        return v


class FlowpilotSettings(BaseModel):
    """Main settings configuration."""

    version: str = Field(default="1.0.0")
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)


class SettingsManager:
    """Manages flowpilot settings with environment variable override support."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = settings_path or Path.home() / ".flowpilot" / "settings.json"
        self._settings: Optional[FlowpilotSettings] = None

    def load(self) -> FlowpilotSettings:
        """Load settings with environment variable overrides."""
        if self._settings is None:
            self._settings = self._load_from_file()
        settings = self._settings
        # Always (re)apply env overrides to handle toggling without restart
        self._apply_env_overrides(settings)
        return settings

    def reload(self) -> FlowpilotSettings:
        """Force reload settings from file."""
        self._settings = None
        return self.load()

    def _load_from_file(self) -> FlowpilotSettings:
        """Load settings from file or return defaults."""
        if self.settings_path.exists():
            try:
                with open(self.settings_path) as f:
                    data = json.load(f)
                return FlowpilotSettings(**data)
            except Exception as e:
                # If file is corrupted, use defaults
                logger.warning(f"Failed to load settings from {self.settings_path} ({e}); using defaults")
                return FlowpilotSettings()
        return FlowpilotSettings()

    def _apply_env_overrides(self, settings: FlowpilotSettings) -> None:
        """Apply environment variable overrides."""
        env_model = os.getenv("FLOWPILOT_MODEL")
        if env_model:
            settings.llm.model = env_model

        env_embedding = os.getenv("FLOWPILOT_EMBEDDING_MODEL")
        if env_embedding:
            settings.llm.embedding_model = env_embedding

        env_catalog = os.getenv("FLOWPILOT_CATALOG")
        if env_catalog:
            settings.retrieval.catalog_path = Path(env_catalog).expanduser()

        env_threshold = os.getenv("FLOWPILOT_RELEVANCE_THRESHOLD")
        if env_threshold is not None:
            try:
                threshold = float(env_threshold)
            except ValueError:
                threshold = None
            if threshold is not None and -1.0 <= threshold <= 1.0:
                settings.retrieval.relevance_threshold = threshold
            else:
                logger.warning(
                    f"Invalid FLOWPILOT_RELEVANCE_THRESHOLD: {env_threshold}. "
                    f"Using default: {settings.retrieval.relevance_threshold}"
                )
