"""Integration test configuration: auto-skip when a live Ollama is unavailable."""

import os

import pytest


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: marks tests requiring a live Ollama server"
        " (deselect with '-m \"not integration\"')",
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests unless NURSE_CALL_INTEGRATION=1."""
    if os.environ.get("NURSE_CALL_INTEGRATION") == "1":
        return
    skip_integration = pytest.mark.skip(
        reason="Set NURSE_CALL_INTEGRATION=1 to run integration tests"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
