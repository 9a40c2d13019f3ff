"""
Pytest plugin for agentsns testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
automatically discovered by pytest when this package is installed.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["agentsns.testing.conftest"]

Or import the fixtures directly:

    from agentsns.testing.fixtures import seeded_platform, fake_llm
"""

# Re-export all fixtures for pytest auto-discovery
from agentsns.testing.fixtures import (
    fake_ledger,
    fake_llm,
    runner_config,
    seeded_platform,
)

__all__ = [
    "seeded_platform",
    "runner_config",
    "fake_llm",
    "fake_ledger",
]
