"""
Global pytest configuration for the costume switch test suite.

Registers the markers used across tests/ and keeps the repository root
importable so that `config` and `costume_switch` resolve without install.
"""

import pytest


def pytest_configure(config):
    """Configure pytest settings and markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests across components"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end streaming tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
