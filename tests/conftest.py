"""Shared fixtures, loaded from the agentsns.testing plugin module."""

from agentsns.testing.conftest import (  # noqa: F401
    fake_ledger,
    fake_llm,
    runner_config,
    seeded_platform,
)
