"""
Shared pytest fixtures for econchat tests.

Import fixtures from here instead of defining them in individual test files.
"""
from __future__ import annotations

import os
from typing import Any, Dict

import pytest

# Set test environment before importing application modules
os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("DISABLE_BACKGROUND_JOBS", "1")
os.environ.setdefault("FRED_API_KEY", "test-fred-key")


@pytest.fixture(autouse=True)
def test_environment():
    """Ensure test environment is set for all tests."""
    old_env = os.environ.copy()
    os.environ["NODE_ENV"] = "test"
    os.environ["DISABLE_BACKGROUND_JOBS"] = "1"
    yield
    os.environ.clear()
    os.environ.update(old_env)


@pytest.fixture
def fred_series_info() -> Dict[str, Any]:
    """Sample FRED /series response."""
    return {
        "seriess": [
            {
                "id": "UNRATE",
                "title": "Unemployment Rate",
                "frequency": "Monthly",
                "frequency_short": "M",
                "units": "Percent",
                "units_short": "%",
                "last_updated": "2024-01-05 07:51:02-06",
            }
        ]
    }


@pytest.fixture
def fred_observations() -> Dict[str, Any]:
    """Sample FRED /series/observations response."""
    return {
        "observations": [
            {"date": "2023-12-01", "value": "3.7"},
            {"date": "2023-11-01", "value": "3.7"},
            {"date": "2023-10-01", "value": "."},
        ]
    }
