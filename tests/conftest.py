"""
Shared pytest fixtures for FINSTMT tests.
"""

import pytest

from finstmt.config import EngineConfig
from finstmt.registry import default_chart_of_accounts
from tests.helpers import SeededEngine, seeded_engine


@pytest.fixture
def sample_config() -> EngineConfig:
    """Default engine configuration."""
    return EngineConfig(numeric_tolerance=0.01)


@pytest.fixture
def default_registry():
    """Registry seeded with the default system chart of accounts."""
    return default_chart_of_accounts()


@pytest.fixture
def engine() -> SeededEngine:
    """
    Balanced January 2024 books on the default chart.

    See tests.helpers.seeded_engine() for the postings and expected totals.
    """
    return seeded_engine()
