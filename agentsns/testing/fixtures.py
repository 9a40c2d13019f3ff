"""
Pytest fixtures for agentsns testing.

Provides a seeded reference platform (one agent, one community with a
contract, a runner credential) reachable in-process through
httpx.ASGITransport, plus fake LLM and ledger fixtures.
"""

from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
import pytest
from fastapi import FastAPI

from agentsns.client import PlatformClient
from agentsns.config import RunnerConfig
from agentsns.platform.app import Platform, create_platform_app
from agentsns.platform.board import BoardCommunity
from agentsns.platform.identities import AgentIdentity
from agentsns.platform.nonces import utc_now
from agentsns.signers import AgentKeySigner, RunnerTokenSigner
from agentsns.testing.fakes import FakeLedger, FakeLlm
from agentsns.transport import RetryConfig

PLATFORM_BASE_URL = "http://platform.test"
SAMPLE_AGENT_ID = "agent-0001"
SAMPLE_COMMUNITY_SLUG = "sandbox"
SAMPLE_CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

SAMPLE_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "count",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "increment",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "by", "type": "uint256"}],
        "outputs": [],
    },
]

NO_RETRY = RetryConfig(max_retries=0)


@dataclass
class SeededPlatform:
    """A reference platform with one registered agent and its community."""

    platform: Platform
    app: FastAPI
    agent: AgentIdentity
    community: BoardCommunity
    runner_token: str

    def http_transport(self) -> httpx.ASGITransport:
        return httpx.ASGITransport(app=self.app)

    def runner_config(self, **overrides: Any) -> dict[str, Any]:
        """Runner config dict for the seeded agent; top-level keys can be overridden."""
        config: dict[str, Any] = {
            "snsBaseUrl": PLATFORM_BASE_URL,
            "runnerToken": self.runner_token,
            "agentId": self.agent.agent_id,
            "securitySensitive": {"llmApiKey": "sk-test"},
            "runtime": {"intervalSec": 3600, "commentLimit": 20},
        }
        config.update(overrides)
        return config

    def client_factory(self) -> Callable[[RunnerConfig], PlatformClient]:
        """Client factory for RunnerEngine that talks to this platform in-process."""
        def factory(config: RunnerConfig) -> PlatformClient:
            return PlatformClient.from_runner_config(
                config,
                retry_config=NO_RETRY,
                http_transport=self.http_transport(),
            )
        return factory

    def runner_client(self) -> PlatformClient:
        return PlatformClient(
            RunnerTokenSigner(self.runner_token, self.agent.agent_id),
            base_url=PLATFORM_BASE_URL,
            retry_config=NO_RETRY,
            http_transport=self.http_transport(),
        )

    def agent_key_client(self) -> PlatformClient:
        return PlatformClient(
            AgentKeySigner(self.agent.agent_key, self.agent.account_secret),
            base_url=PLATFORM_BASE_URL,
            retry_config=NO_RETRY,
            http_transport=self.http_transport(),
        )


def create_seeded_platform(clock: Callable[[], datetime] = utc_now) -> SeededPlatform:
    """
    Build a reference platform with sample data.

    Example:
        ```python
        seeded = create_seeded_platform()
        engine = RunnerEngine(llm=FakeLlm(), client_factory=seeded.client_factory())
        result = await engine.run_once_with_config(seeded.runner_config())
        ```
    """
    platform = Platform(clock=clock)
    community = platform.board.add_community(
        SAMPLE_COMMUNITY_SLUG,
        "Sandbox",
        chain="sepolia",
        contracts=[{"address": SAMPLE_CONTRACT_ADDRESS, "name": "Counter", "abi": SAMPLE_ABI}],
    )
    agent = platform.directory.register(AgentIdentity(
        agent_id=SAMPLE_AGENT_ID,
        handle="sandbox-agent",
        agent_key="ak_sample_capability_key",
        account_secret="sample-account-secret",
        community_id=community.community_id,
        llm_provider="OPENAI",
        llm_model="gpt-4o-mini",
    ))
    runner_token = platform.directory.issue_runner_token(agent.agent_id)
    return SeededPlatform(
        platform=platform,
        app=create_platform_app(platform),
        agent=agent,
        community=community,
        runner_token=runner_token,
    )


# ============================================================================
# Platform Fixtures
# ============================================================================


@pytest.fixture
def seeded_platform() -> SeededPlatform:
    """
    Provide a reference platform with one agent and one community.

    Example:
        ```python
        def test_reads(seeded_platform):
            client = seeded_platform.runner_client()
            context = asyncio.run(client.context.fetch())
        ```
    """
    return create_seeded_platform()


@pytest.fixture
def runner_config(seeded_platform: SeededPlatform) -> dict[str, Any]:
    """Provide a runner config dict for the seeded agent."""
    return seeded_platform.runner_config()


# ============================================================================
# Fake Fixtures
# ============================================================================


@pytest.fixture
def fake_llm() -> Generator[FakeLlm, None, None]:
    """
    Provide a FakeLlm with no scripted outputs.

    Example:
        ```python
        def test_cycle(fake_llm):
            fake_llm.configure_output([{"action": "create_thread", ...}])
        ```
    """
    llm = FakeLlm()
    yield llm
    llm.calls.clear()


@pytest.fixture
def fake_ledger() -> FakeLedger:
    """Provide a FakeLedger returning successful outcomes."""
    return FakeLedger()
