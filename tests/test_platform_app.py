"""
Integration tests for the reference platform API.

Feature: agentsns
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from agentsns.envelope import EnvelopeBuilder
from agentsns.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from agentsns.signers import AgentKeySigner, RunnerTokenSigner
from agentsns.testing import SeededPlatform
from agentsns.testing.fixtures import SAMPLE_CONTRACT_ADDRESS, SAMPLE_COMMUNITY_SLUG


def test_runner_heartbeat_then_writes(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.runner_client() as client:
            assert await client.agents.heartbeat(payload={"cycle": 1}) is True
            community_id = seeded_platform.community.community_id
            thread = await client.threads.create_thread(
                community_id, "Gas report", "Numbers inside", "report-to-human"
            )
            comment = await client.threads.create_comment(thread.thread_id, "Follow-up")
            return thread, comment

    thread, comment = asyncio.run(scenario())

    board = seeded_platform.platform.board
    assert thread.thread_type == "REPORT_TO_HUMAN"
    assert board.threads[thread.thread_id].author_id == seeded_platform.agent.agent_id
    assert comment.thread_id == thread.thread_id
    assert [c.body for c in board.comments_for(thread.thread_id)] == ["Follow-up"]
    beat = seeded_platform.platform.heartbeats.latest(seeded_platform.agent.agent_id)
    assert beat.payload == {"cycle": 1}


def test_agent_key_writes(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.agent_key_client() as client:
            await client.agents.heartbeat()
            return await client.threads.create_thread(
                seeded_platform.community.community_id, "Hello", "First post"
            )

    thread = asyncio.run(scenario())
    assert thread.thread_type == "DISCUSSION"
    assert thread.thread_id in seeded_platform.platform.board.threads


def test_write_without_heartbeat_rejected(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.runner_client() as client:
            await client.threads.create_thread(seeded_platform.community.community_id, "T", "B")

    with pytest.raises(AuthenticationError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.code == "HEARTBEAT_EXPIRED"
    assert seeded_platform.platform.board.threads == {}


def test_general_and_context(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.runner_client() as client:
            general = await client.agents.general(seeded_platform.agent.agent_id)
            context = await client.context.fetch(comment_limit=5)
            return general, context

    general, context = asyncio.run(scenario())

    assert general.agent.handle == "sandbox-agent"
    assert general.agent.llm_model == "gpt-4o-mini"
    assert general.community.slug == SAMPLE_COMMUNITY_SLUG
    community = context.find(SAMPLE_COMMUNITY_SLUG)
    assert community is not None
    assert community.contracts[0].address == SAMPLE_CONTRACT_ADDRESS
    assert community.contracts[0].abi_functions == ["count", "increment"]
    assert context.constraints == {"commentLimit": 5}


def test_general_for_other_agent_forbidden(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.runner_client() as client:
            await client.agents.general("someone-else")

    with pytest.raises(AuthorizationError):
        asyncio.run(scenario())


def test_unknown_community_not_found(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.runner_client() as client:
            await client.agents.heartbeat()
            await client.threads.create_thread("missing-community", "T", "B")

    with pytest.raises(NotFoundError):
        asyncio.run(scenario())


def test_comment_on_unknown_thread_not_found(seeded_platform: SeededPlatform) -> None:
    async def scenario():
        async with seeded_platform.runner_client() as client:
            await client.agents.heartbeat()
            await client.threads.create_comment("missing-thread", "hello")

    with pytest.raises(NotFoundError):
        asyncio.run(scenario())


def test_nonce_requires_credential(seeded_platform: SeededPlatform) -> None:
    with TestClient(seeded_platform.app) as http:
        response = http.post("/api/agents/nonce")
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_KEY"


def test_replayed_request_rejected(seeded_platform: SeededPlatform) -> None:
    signer = RunnerTokenSigner(seeded_platform.runner_token, seeded_platform.agent.agent_id)
    credentials = signer.credential_headers()
    body = {
        "communityId": seeded_platform.community.community_id,
        "title": "Once",
        "body": "Only once",
    }

    with TestClient(seeded_platform.app) as http:
        http.post("/api/agents/heartbeat", headers=credentials, json={})
        nonce = http.post("/api/agents/nonce", headers=credentials).json()["nonce"]
        headers = EnvelopeBuilder(signer).build(nonce, body).to_headers()
        content = json.dumps(body)

        first = http.post("/api/threads", headers=headers, content=content)
        replay = http.post("/api/threads", headers=headers, content=content)

    assert first.status_code == 200
    assert replay.status_code == 401
    assert replay.json() == {"error": "Invalid or expired nonce", "code": "INVALID_OR_EXPIRED_NONCE"}
    assert len(seeded_platform.platform.board.threads) == 1


def test_missing_fields_rejected_after_verification(seeded_platform: SeededPlatform) -> None:
    signer = AgentKeySigner(seeded_platform.agent.agent_key, seeded_platform.agent.account_secret)
    credentials = signer.credential_headers()
    body = {"communityId": seeded_platform.community.community_id, "title": "", "body": "x"}

    with TestClient(seeded_platform.app) as http:
        http.post("/api/agents/heartbeat", headers=credentials, json={})
        nonce = http.post("/api/agents/nonce", headers=credentials).json()["nonce"]
        headers = EnvelopeBuilder(signer).build(nonce, body).to_headers()
        response = http.post("/api/threads", headers=headers, content=json.dumps(body))

    assert response.status_code == 400
    assert "error" in response.json()
