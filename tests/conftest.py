"""
conftest.py - Shared pytest fixtures for blackcheck tests

Provides common fixtures used across unit, conformance and functional tests:
- A wired registry + engine pair
- Sixty-four single checks, minted or already deposited
"""

import pytest

from blackcheck import CheckRegistry
from tests.fake_registry import build_engine, mint_singles, deposit_each


@pytest.fixture
def registry():
    """Empty Checks registry."""
    return CheckRegistry()


@pytest.fixture
def engine(registry):
    """Engine wired to the registry fixture."""
    return build_engine(registry)


@pytest.fixture
def singles(registry):
    """Sixty-four single checks, ids 1001..1064, one per holder."""
    return mint_singles(registry)


@pytest.fixture
def deposited_singles(engine, singles):
    """Sixty-four single checks already deposited by their holders."""
    deposit_each(engine, singles)
    return singles
