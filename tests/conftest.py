"""Root-level test configuration and fixtures."""

import pytest

from tests.shared.llm_mock import MockEmbeddingModel, create_mock_get_model
from tests.shared.mocks import SAMPLE_CATALOG

EMBEDDING_VOCABULARY = ["spreadsheet", "row", "slack", "message", "schedule", "email"]


@pytest.fixture(autouse=True, scope="function")
def mock_llm_calls(monkeypatch, request):
    """Auto-applied fixture that mocks all LLM calls to prevent API usage."""
    mock_get_model = create_mock_get_model()
    monkeypatch.setattr("llm.get_model", mock_get_model)

    embedding_model = MockEmbeddingModel(EMBEDDING_VOCABULARY)
    monkeypatch.setattr("llm.get_embedding_model", lambda name=None: embedding_model)

    request.node.mock_llm = mock_get_model
    request.node.mock_embeddings = embedding_model

    yield mock_get_model

    mock_get_model.reset()


@pytest.fixture
def mock_llm_responses(request):
    """Configure LLM mock responses for a test.

    Usage:
        def test_something(mock_llm_responses):
            mock_llm_responses.set_response(CoarsePlan, {...})
    """
    return request.node.mock_llm


@pytest.fixture
def mock_embeddings(request):
    return request.node.mock_embeddings


@pytest.fixture(autouse=True)
def isolate_settings(monkeypatch, tmp_path):
    """Keep tests away from the user's settings file and environment."""
    from flowpilot.core import llm_config
    from flowpilot.core.settings import SettingsManager

    original_init = SettingsManager.__init__
    test_settings_path = tmp_path / "settings.json"

    def patched_settings_init(self, *args, **kwargs):
        if "settings_path" not in kwargs and (len(args) < 1 or args[0] is None):
            kwargs["settings_path"] = test_settings_path
        original_init(self, *args, **kwargs)

    monkeypatch.setattr(SettingsManager, "__init__", patched_settings_init)
    for var in (
        "FLOWPILOT_MODEL",
        "FLOWPILOT_EMBEDDING_MODEL",
        "FLOWPILOT_CATALOG",
        "FLOWPILOT_RELEVANCE_THRESHOLD",
    ):
        monkeypatch.delenv(var, raising=False)

    llm_config.clear_model_cache()
    yield
    llm_config.clear_model_cache()


@pytest.fixture
def catalog():
    from flowpilot.pieces.catalog import PieceCatalog

    return PieceCatalog.from_dict(SAMPLE_CATALOG)


@pytest.fixture
def catalog_file(tmp_path):
    import json

    path = tmp_path / "pieces.json"
    path.write_text(json.dumps(SAMPLE_CATALOG))
    return path
