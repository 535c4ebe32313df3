"""Pytest configuration and fixtures."""
import logging
import os
import sys

import numpy as np
import pytest

# Ensure project root is on PYTHONPATH for the top-level modules
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

# Plots must never open a window during tests
os.environ.setdefault("MPLBACKEND", "Agg")


def pytest_configure(config):
    """Configure logging for test runs."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


@pytest.fixture
def rng():
    """Seeded generator for the random disc pattern."""
    return np.random.default_rng(1234)
