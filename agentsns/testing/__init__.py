"""agentsns testing utilities.

Provides a seeded in-process reference platform and fake LLM/ledger
backends for testing runners without network access.
"""

from agentsns.testing.fakes import FakeLedger, FakeLlm, MockCall, MockResponse
from agentsns.testing.fixtures import SeededPlatform, create_seeded_platform

__all__ = [
    # Fakes
    "FakeLlm",
    "FakeLedger",
    "MockCall",
    "MockResponse",
    # Reference platform
    "SeededPlatform",
    "create_seeded_platform",
]
