"""
Tests for the multi-agent runner manager.

Feature: agentsns
"""

import asyncio
import json

import pytest

from agentsns.engine import RunnerEngine
from agentsns.exceptions import AlreadyRunningError, ConfigurationError, NotRunningError
from agentsns.manager import RunnerManager
from agentsns.platform.identities import AgentIdentity
from agentsns.testing import FakeLlm, SeededPlatform
from agentsns.testing.fixtures import SAMPLE_COMMUNITY_SLUG

SECOND_AGENT_ID = "agent-0002"

OUTPUT = json.dumps([
    {"action": "create_thread", "communitySlug": SAMPLE_COMMUNITY_SLUG, "title": "Tick", "body": "Cycle"},
])


def make_manager(seeded: SeededPlatform) -> RunnerManager:
    return RunnerManager(engine_factory=lambda: RunnerEngine(
        llm=FakeLlm(outputs=[OUTPUT]),
        client_factory=seeded.client_factory(),
    ))


def second_agent_config(seeded: SeededPlatform) -> dict:
    seeded.platform.directory.register(AgentIdentity(
        agent_id=SECOND_AGENT_ID,
        handle="second-agent",
        agent_key="ak_second",
        account_secret="second-secret",
        community_id=seeded.community.community_id,
    ))
    token = seeded.platform.directory.issue_runner_token(SECOND_AGENT_ID)
    return seeded.runner_config(agentId=SECOND_AGENT_ID, runnerToken=token)


def test_idle_status_shape() -> None:
    status = RunnerManager().status()

    assert status["running"] is False
    assert status["runningAny"] is False
    assert status["config"] is None
    assert status["cycleCount"] == 0
    assert status["selectedAgentId"] is None
    assert status["selectedAgentStatus"] is None
    assert status["agentCount"] == 0
    assert status["agents"] == []


def test_two_agents_lifecycle(seeded_platform: SeededPlatform) -> None:
    manager = make_manager(seeded_platform)
    first_id = seeded_platform.agent.agent_id
    first = seeded_platform.runner_config()
    second = second_agent_config(seeded_platform)

    async def scenario():
        started = await manager.start(first)
        await manager.start(second)
        with pytest.raises(AlreadyRunningError, match=first_id):
            await manager.start(first)
        both = manager.status()
        selected = manager.status(first_id)
        with pytest.raises(ConfigurationError, match="agentId is required"):
            manager.update_config({"runtime": {"intervalSec": 120}})
        updated = manager.update_config({"runtime": {"intervalSec": 120}}, SECOND_AGENT_ID)
        all_once = await manager.run_once()
        after_stop_one = manager.stop(first_id)
        only_remaining = manager.update_config({"runtime": {"commentLimit": 3}})
        after_stop_all = manager.stop()
        idle_once = await manager.run_once()
        return started, both, selected, updated, all_once, after_stop_one, only_remaining, after_stop_all, idle_once

    (started, both, selected, updated, all_once,
     after_stop_one, only_remaining, after_stop_all, idle_once) = asyncio.run(scenario())

    assert started["selectedAgentRunning"] is True
    assert started["cycleCount"] == 1

    assert both["running"] is True
    assert both["agentCount"] == 2
    assert both["config"] is None
    assert both["runningAgentIds"] == [first_id, SECOND_AGENT_ID]
    assert [a["agentId"] for a in both["agents"]] == [first_id, SECOND_AGENT_ID]

    assert selected["config"]["agentId"] == first_id
    assert selected["selectedAgentStatus"]["running"] is True

    assert updated["config"]["runtime"]["intervalSec"] == 120

    assert all_once["ok"] is True
    assert sorted(r["agentId"] for r in all_once["results"]) == [first_id, SECOND_AGENT_ID]
    assert all(r["result"]["cycleCount"] == 2 for r in all_once["results"])

    assert after_stop_one["running"] is False
    assert after_stop_one["runningAgentIds"] == [SECOND_AGENT_ID]
    assert only_remaining["config"]["runtime"]["commentLimit"] == 3

    assert after_stop_all["agentCount"] == 0
    assert idle_once == {"ok": True, "skipped": True, "reason": "No running agents", "results": []}


def test_start_requires_agent_id() -> None:
    with pytest.raises(ConfigurationError, match="agentId is required"):
        asyncio.run(RunnerManager().start({"runnerToken": "t"}))


def test_invalid_config_not_kept(seeded_platform: SeededPlatform) -> None:
    manager = make_manager(seeded_platform)
    config = seeded_platform.runner_config(securitySensitive={})

    with pytest.raises(ConfigurationError):
        asyncio.run(manager.start(config))
    assert manager.engine(seeded_platform.agent.agent_id) is None


def test_unknown_agent_operations(seeded_platform: SeededPlatform) -> None:
    manager = make_manager(seeded_platform)

    with pytest.raises(NotRunningError):
        asyncio.run(manager.run_once("nobody"))
    with pytest.raises(NotRunningError):
        manager.update_config({"agentId": "nobody", "runtime": {"intervalSec": 5}})
    assert manager.stop("nobody")["selectedAgentRunning"] is False


def test_run_once_with_config_leaves_manager_empty(seeded_platform: SeededPlatform) -> None:
    manager = make_manager(seeded_platform)

    result = asyncio.run(manager.run_once_with_config(seeded_platform.runner_config()))

    assert result["ok"] is True
    assert result["actionCount"] == 1
    assert manager.status()["agentCount"] == 0
