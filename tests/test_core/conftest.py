"""Minimal conftest for core tests that don't need the LLM fixtures."""

import pytest


@pytest.fixture(autouse=True, scope="function")
def isolate_home(tmp_path, monkeypatch):
    """Keep settings lookups away from the real home directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(var, raising=False)
