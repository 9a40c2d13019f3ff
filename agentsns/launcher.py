"""
Runner launcher: local HTTP control surface for RunnerManager.

Routes:
    GET  /health
    GET  /runner/status[?agentId]
    POST /runner/start      {config} or a bare config
    POST /runner/stop       {agentId?, abortInFlight?}
    POST /runner/config     {config} or a bare patch
    POST /runner/run-once   {config?, agentId?}

When a secret is configured, /runner/* requires a matching x-runner-secret
header.
"""

import hmac
import json
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentsns.exceptions import AgentSnsError
from agentsns.logging import get_logger
from agentsns.manager import RunnerManager

SECRET_HEADER = "x-runner-secret"
SERVICE_NAME = "runner-launcher"

logger = get_logger("launcher")


async def _read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON body must be an object")
    return body


def _config_of(body: dict[str, Any]) -> dict[str, Any]:
    config = body.get("config")
    return config if isinstance(config, dict) else body


def _requested_agent_id(body: dict[str, Any], request: Request) -> str:
    config = body.get("config")
    nested = config.get("agentId") if isinstance(config, dict) else None
    value = body.get("agentId") or nested or request.query_params.get("agentId")
    return str(value or "").strip()


def create_launcher_app(
    manager: RunnerManager | None = None,
    secret: str | None = None,
) -> FastAPI:
    """
    Build the launcher application.

    Args:
        manager: Runner manager (a fresh one when omitted)
        secret: Shared secret for /runner/* routes; None disables the check

    Returns:
        FastAPI application; the manager is available as app.state.manager
    """
    manager = manager or RunnerManager()
    app = FastAPI(title="agentsns runner launcher")
    app.state.manager = manager
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["content-type", "authorization", SECRET_HEADER],
    )

    @app.exception_handler(AgentSnsError)
    async def agentsns_error_handler(request: Request, exc: AgentSnsError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    async def require_secret(request: Request) -> None:
        if secret is None:
            return
        incoming = request.headers.get(SECRET_HEADER, "")
        if not hmac.compare_digest(incoming.encode("utf-8"), secret.encode("utf-8")):
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "service": SERVICE_NAME}

    router = APIRouter(prefix="/runner", dependencies=[Depends(require_secret)])

    @router.get("/status")
    async def status(agentId: str | None = None) -> dict[str, Any]:
        return {"ok": True, "status": manager.status(agentId)}

    @router.post("/start")
    async def start(request: Request) -> dict[str, Any]:
        body = await _read_body(request)
        status = await manager.start(_config_of(body))
        logger.info("Launcher start request accepted")
        return {"ok": True, "message": "Runner started", "status": status}

    @router.post("/stop")
    async def stop(request: Request) -> dict[str, Any]:
        body = await _read_body(request)
        agent_id = _requested_agent_id(body, request)
        status = manager.stop(agent_id or None, abort_in_flight=bool(body.get("abortInFlight")))
        logger.info("Launcher stop request accepted")
        return {
            "ok": True,
            "message": "Runner stopped" if agent_id else "All runners stopped",
            "status": status,
        }

    @router.post("/config")
    async def update_config(request: Request) -> dict[str, Any]:
        body = await _read_body(request)
        agent_id = _requested_agent_id(body, request)
        status = manager.update_config(_config_of(body), agent_id or None)
        logger.info("Launcher config updated")
        return {"ok": True, "message": "Runner config updated", "status": status}

    @router.post("/run-once")
    async def run_once(request: Request) -> dict[str, Any]:
        body = await _read_body(request)
        agent_id = str(body.get("agentId") or request.query_params.get("agentId") or "").strip()
        if isinstance(body.get("config"), dict) or body.get("snsBaseUrl"):
            result = await manager.run_once_with_config(_config_of(body))
        else:
            result = await manager.run_once(agent_id or None)
        logger.info("Launcher run-once completed (ok=%s)", bool(result.get("ok")))
        return {"ok": True, "result": result, "status": manager.status(agent_id or None)}

    app.include_router(router)
    return app
