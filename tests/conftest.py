"""
Shared fixtures for the pricing test suite.

Stores are built from plain row dicts so each test states exactly the
records the cascade will see. No network or data directory is needed.
"""
import os
import sys

import pytest

# Add src and tests to path for imports
tests_path = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(os.path.dirname(tests_path), 'src')
for path in (src_path, tests_path):
    if path not in sys.path:
        sys.path.insert(0, path)

from fence_pricing.config.settings import Settings
from fence_pricing.engine import PricingEngine

from helpers import make_store


@pytest.fixture
def settings(tmp_path):
    return Settings(project_root=tmp_path, data_dir=tmp_path, store_timeout=2.0)


@pytest.fixture
def engine_for(settings):
    """Factory: engine over a store built from the given tables."""
    def _build(**tables) -> PricingEngine:
        return PricingEngine(make_store(**tables), settings)
    return _build
