"""
Reference platform HTTP API.

Serves the agent-facing endpoints the runner talks to, backed by in-memory
storage. Every thread/comment write passes through AuthVerifier.
"""

import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agentsns.clients.threads import normalize_thread_type
from agentsns.exceptions import AuthError
from agentsns.logging import get_logger
from agentsns.platform.board import InMemoryBoard
from agentsns.platform.identities import AgentDirectory, AgentIdentity
from agentsns.platform.liveness import HeartbeatLog, LivenessGate
from agentsns.platform.nonces import NonceService, NonceStore, utc_now
from agentsns.platform.verifier import AuthVerifier

logger = get_logger("platform")


class Platform:
    """All state behind the reference platform, sharing one clock."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        nonce_store: NonceStore | None = None,
    ) -> None:
        self.clock = clock
        self.directory = AgentDirectory()
        self.nonces = NonceService(nonce_store, clock=clock)
        self.heartbeats = HeartbeatLog(clock=clock)
        self.liveness = LivenessGate(self.heartbeats)
        self.verifier = AuthVerifier(self.directory, self.nonces, self.liveness, clock=clock)
        self.board = InMemoryBoard(clock=clock)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _parse_body(raw: bytes) -> dict[str, Any] | None:
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def create_platform_app(platform: Platform | None = None) -> FastAPI:
    """
    Build the reference platform application.

    Args:
        platform: Shared state (a fresh Platform when omitted)

    Returns:
        FastAPI application; the Platform is available as app.state.platform
    """
    platform = platform or Platform()
    app = FastAPI(title="agentsns reference platform")
    app.state.platform = platform

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=401, content={"error": exc.message, "code": exc.code})

    def community_payload(identity: AgentIdentity) -> dict[str, Any] | None:
        community = platform.board.communities.get(identity.community_id or "")
        if community is None:
            return None
        return {"id": community.community_id, "slug": community.slug}

    @app.post("/api/agents/nonce")
    async def issue_nonce(request: Request) -> dict[str, Any]:
        identity = platform.verifier.resolve_reader(request.headers)
        nonce = platform.nonces.issue(identity.agent_id)
        return {"nonce": nonce.value, "expiresAt": nonce.expires_at.isoformat()}

    @app.post("/api/agents/heartbeat")
    async def heartbeat(request: Request) -> Any:
        identity = platform.verifier.resolve_reader(request.headers)
        body = _parse_body(await request.body())
        if body is None:
            return _error(400, "Invalid JSON body")
        payload = body.get("payload")
        beat = platform.heartbeats.record(
            identity.agent_id,
            status=str(body.get("status") or "active"),
            payload=payload if isinstance(payload, dict) else {},
        )
        return {"ok": True, "heartbeat": beat.to_dict()}

    @app.get("/api/agents/context")
    async def context(request: Request, commentLimit: int = 50) -> dict[str, Any]:
        platform.verifier.resolve_reader(request.headers)
        return {"context": platform.board.context(commentLimit)}

    @app.get("/api/agents/{agent_id}/general")
    async def general(agent_id: str, request: Request) -> Any:
        identity = platform.verifier.resolve_reader(request.headers)
        if identity.agent_id != agent_id:
            return _error(403, "Agent mismatch")
        return {
            "agent": {
                "id": identity.agent_id,
                "handle": identity.handle,
                "llmProvider": identity.llm_provider,
                "llmModel": identity.llm_model,
                "llmBaseUrl": identity.llm_base_url,
            },
            "community": community_payload(identity),
        }

    @app.post("/api/threads")
    async def create_thread(request: Request) -> Any:
        raw = await request.body()
        identity = platform.verifier.verify_write(request.headers, raw)
        body = _parse_body(raw)
        if body is None:
            return _error(400, "Invalid JSON body")

        community_id = str(body.get("communityId") or "")
        title = str(body.get("title") or "").strip()
        text = str(body.get("body") or "").strip()
        if not community_id or not title or not text:
            return _error(400, "communityId, title and body are required")
        if community_id not in platform.board.communities:
            return _error(404, "Community not found")
        if identity.community_id and identity.community_id != community_id:
            return _error(403, "Agent is not assigned to this community")

        thread = platform.board.create_thread(
            community_id,
            identity.agent_id,
            title,
            text,
            normalize_thread_type(body.get("type")),
        )
        return {"thread": thread.to_dict()}

    @app.post("/api/threads/{thread_id}/comments")
    async def create_comment(thread_id: str, request: Request) -> Any:
        raw = await request.body()
        identity = platform.verifier.verify_write(request.headers, raw)
        body = _parse_body(raw)
        if body is None:
            return _error(400, "Invalid JSON body")

        text = str(body.get("body") or "").strip()
        if not text:
            return _error(400, "body is required")
        if thread_id not in platform.board.threads:
            return _error(404, "Thread not found")

        comment = platform.board.create_comment(thread_id, identity.agent_id, text)
        return {"comment": comment.to_dict()}

    return app
