"""Multi-agent runner manager: one engine per agent id."""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from agentsns.config import RunnerConfig
from agentsns.engine import RunnerEngine
from agentsns.exceptions import (
    AgentSnsError,
    AlreadyRunningError,
    ConfigurationError,
    NotRunningError,
)
from agentsns.logging import get_logger
from agentsns.state import RunnerState

EngineFactory = Callable[[], RunnerEngine]

logger = get_logger("engine")


def _agent_id(value: Any) -> str:
    if isinstance(value, RunnerConfig):
        return value.agent_id
    if isinstance(value, Mapping):
        value = value.get("agentId")
    return str(value or "").strip()


class RunnerManager:
    """
    Keeps one RunnerEngine per agent id.

    Stopped engines are dropped, so the manager only ever holds running
    agents.
    """

    def __init__(self, engine_factory: EngineFactory = RunnerEngine) -> None:
        self._engine_factory = engine_factory
        self._engines: dict[str, RunnerEngine] = {}

    def engine(self, agent_id: str) -> RunnerEngine | None:
        return self._engines.get(agent_id)

    def _active(self) -> list[tuple[str, RunnerEngine]]:
        for agent_id, engine in list(self._engines.items()):
            if not engine.is_running:
                del self._engines[agent_id]
        return list(self._engines.items())

    def status(self, agent_id: str | None = None) -> dict[str, Any]:
        """
        Status snapshot.

        With an agent id, the top-level fields describe that agent. Without
        one, they describe the only running agent, or idle defaults when zero
        or several are running. The "agents" list always covers every
        running agent.
        """
        selected_id = _agent_id(agent_id)
        active = self._active()
        statuses = {aid: engine.status() for aid, engine in active}

        selected = statuses.get(selected_id) if selected_id else None
        if selected_id:
            primary = selected
        else:
            primary = next(iter(statuses.values())) if len(statuses) == 1 else None
        if primary is None:
            primary = {**RunnerState().to_dict(), "config": None}

        return {
            **primary,
            "running": selected is not None if selected_id else bool(statuses),
            "runningAny": bool(statuses),
            "selectedAgentId": selected_id or None,
            "selectedAgentRunning": selected is not None,
            "selectedAgentStatus": selected,
            "agentCount": len(statuses),
            "runningAgentIds": list(statuses),
            "agents": [{"agentId": aid, **status} for aid, status in statuses.items()],
        }

    async def start(self, config: Mapping[str, Any] | RunnerConfig) -> dict[str, Any]:
        """
        Start a runner for config["agentId"].

        Raises:
            ConfigurationError: If agentId is missing or the config is invalid
            AlreadyRunningError: If that agent already has a running engine
        """
        agent_id = _agent_id(config)
        if not agent_id:
            raise ConfigurationError("agentId is required")
        existing = self._engines.get(agent_id)
        if existing is not None and existing.is_running:
            raise AlreadyRunningError(f"Runner is already running for agent {agent_id}")

        engine = existing or self._engine_factory()
        self._engines[agent_id] = engine
        try:
            await engine.start(config)
        except AgentSnsError:
            if not engine.is_running:
                self._engines.pop(agent_id, None)
            raise
        return self.status(agent_id)

    def stop(self, agent_id: str | None = None, abort_in_flight: bool = False) -> dict[str, Any]:
        """Stop one agent, or every agent when agent_id is empty."""
        selected_id = _agent_id(agent_id)
        if selected_id:
            engine = self._engines.pop(selected_id, None)
            if engine is not None:
                engine.stop(abort_in_flight)
            return self.status(selected_id)

        for engine in self._engines.values():
            engine.stop(abort_in_flight)
        self._engines.clear()
        return self.status()

    def update_config(self, patch: Mapping[str, Any], agent_id: str | None = None) -> dict[str, Any]:
        """
        Patch a running agent's config.

        The agent id comes from the argument, then patch["agentId"], then the
        only running agent.

        Raises:
            ConfigurationError: If no agent id is given while several run
            NotRunningError: If the agent is not running
        """
        requested = _agent_id(agent_id) or _agent_id(patch)
        active = self._active()
        selected_id = requested or (active[0][0] if len(active) == 1 else "")
        if not selected_id:
            raise ConfigurationError(
                "agentId is required for /runner/config when multiple agents are running"
            )
        engine = self._engines.get(selected_id)
        if engine is None or not engine.is_running:
            raise NotRunningError(f"Runner is not running for agent {selected_id}")
        engine.update_config(patch)
        return self.status(selected_id)

    async def run_once(self, agent_id: str | None = None) -> dict[str, Any]:
        """
        Run one cycle for one agent, or for every running agent concurrently.

        Raises:
            NotRunningError: If agent_id is given and that agent is not running
        """
        selected_id = _agent_id(agent_id)
        if selected_id:
            engine = self._engines.get(selected_id)
            if engine is None or not engine.is_running:
                raise NotRunningError(f"Runner is not running for agent {selected_id}")
            return (await engine.run_once()).to_dict()

        active = self._active()
        if not active:
            return {"ok": True, "skipped": True, "reason": "No running agents", "results": []}

        async def run(aid: str, engine: RunnerEngine) -> dict[str, Any]:
            try:
                result = await engine.run_once()
            except AgentSnsError as e:
                return {"agentId": aid, "ok": False, "error": e.message}
            return {"agentId": aid, "ok": result.ok, "result": result.to_dict()}

        results = await asyncio.gather(*(run(aid, engine) for aid, engine in active))
        return {"ok": all(item["ok"] for item in results), "results": list(results)}

    async def run_once_with_config(self, config: Mapping[str, Any] | RunnerConfig) -> dict[str, Any]:
        """Run one cycle on a throwaway engine."""
        engine = self._engine_factory()
        return (await engine.run_once_with_config(config)).to_dict()

    async def wait_idle(self) -> None:
        for _, engine in list(self._engines.items()):
            await engine.wait_idle()
