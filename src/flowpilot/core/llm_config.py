"""LLM model configuration with automatic key detection.

This module picks a default generation model based on which provider API
keys are available, so callers never hardcode a model name.
"""

import logging
import os
from typing import Optional

from flowpilot.core.settings import FlowpilotSettings

logger = logging.getLogger(__name__)

# Cache the detected default model to avoid repeated key checks
_cached_default_model: Optional[str] = None
# Flag to track if detection has been completed (even if result is None)
_detection_complete: bool = False

# Provider to environment variable mapping, in priority order
PROVIDER_ENV_VARS: dict[str, list[str]] = {
    "openai": ["OPENAI_API_KEY"],
    "anthropic": ["ANTHROPIC_API_KEY"],
}

PROVIDER_DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "anthropic": "anthropic/claude-sonnet-4-5",
}

# Default fallback model when nothing else is configured
_DEFAULT_FALLBACK_MODEL = "gpt-4o"


def _has_provider_key(provider: str) -> bool:
    """Check if an API key for the provider is set in the environment."""
    for var in PROVIDER_ENV_VARS.get(provider, []):
        if os.environ.get(var, "").strip():
            logger.debug(f"Found {provider} key in environment variable {var}")
            return True
    return False


def _detect_default_model() -> Optional[str]:
    """Detect best available LLM model based on configured API keys.

    Returns:
        Model name string, or None if no keys configured
    """
    # Skip detection entirely in test environment
    if os.environ.get("PYTEST_CURRENT_TEST"):
        logger.debug("Skipping LLM detection in test environment")
        return None

    for provider, model in PROVIDER_DEFAULT_MODELS.items():
        if _has_provider_key(provider):
            logger.debug(f"Using {model} ({provider} key detected)")
            return model

    logger.debug("No LLM API keys detected")
    return None


def get_default_llm_model() -> Optional[str]:
    """Get default LLM model with caching.

    Returns:
        Model name string (e.g., "gpt-4o") or None if no API keys configured

    Note:
        This function only detects - it does NOT enforce.
        The caller (CLI) decides whether to error or proceed.
    """
    global _cached_default_model, _detection_complete

    if not _detection_complete:
        _cached_default_model = _detect_default_model()
        _detection_complete = True

    return _cached_default_model


def clear_model_cache() -> None:
    """Clear the cached default model.

    Useful for testing or when keys are added/removed at runtime.
    """
    global _cached_default_model, _detection_complete
    _cached_default_model = None
    _detection_complete = False


def resolve_planner_model(settings: FlowpilotSettings, override: Optional[str] = None) -> str:
    """Resolve the generation model.

    Resolution order:
    1. Explicit override (CLI --model)
    2. settings.llm.model (settings file or FLOWPILOT_MODEL)
    3. Auto-detected default (based on available API keys)
    4. Hardcoded fallback
    """
    if override:
        return override
    if settings.llm.model:
        logger.debug(f"Using configured model: {settings.llm.model}")
        return settings.llm.model

    detected = get_default_llm_model()
    if detected:
        return detected

    logger.debug(f"Using fallback model: {_DEFAULT_FALLBACK_MODEL}")
    return _DEFAULT_FALLBACK_MODEL


def get_llm_setup_help() -> str:
    """Get helpful error message for LLM setup."""
    return (
        "No LLM API keys configured. Please configure at least one:\n\n"
        "  OpenAI:\n"
        "    export OPENAI_API_KEY=your-key\n"
        "    OR: llm keys set openai\n\n"
        "  Anthropic (requires the llm-anthropic plugin):\n"
        "    export ANTHROPIC_API_KEY=your-key\n"
        "    OR: llm keys set anthropic\n\n"
        "See: https://llm.datasette.io/en/stable/setup.html"
    )
