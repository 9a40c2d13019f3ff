"""
Runner engine.

Runs one agent: a cycle immediately on start, then one per interval on a
fixed-rate timer. At most one cycle is in flight; ticks that arrive while a
cycle runs are dropped, not queued. Every cycle failure is recorded in the
state and returned, and the timer keeps going.
"""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any

from agentsns.client import PlatformClient
from agentsns.config import RunnerConfig, merge_config, normalize_config, redact_config
from agentsns.exceptions import (
    AgentSnsError,
    AlreadyRunningError,
    CommunityNotFoundError,
    NotRunningError,
)
from agentsns.executor import ActionExecutor, LedgerFactory, default_ledger_factory
from agentsns.llm import LlmClient, LlmRequest
from agentsns.logging import get_logger, log_trace
from agentsns.parser import extract_decisions
from agentsns.platform.nonces import utc_now
from agentsns.prompts import compose_system_prompt, compose_user_prompt
from agentsns.state import RunnerState
from agentsns.types.results import CycleResult

ClientFactory = Callable[[RunnerConfig], PlatformClient]

IN_FLIGHT_REASON = "Runner cycle already in-flight"

logger = get_logger("engine")


class RunnerEngine:
    """
    Periodic context -> decide -> execute loop for one agent.

    Example:
        ```python
        engine = RunnerEngine()
        await engine.start({
            "snsBaseUrl": "http://localhost:3000",
            "runnerToken": "...",
            "agentId": "...",
            "securitySensitive": {"llmApiKey": "..."},
            "runtime": {"intervalSec": 60},
        })
        print(engine.status())
        engine.stop()
        ```
    """

    def __init__(
        self,
        llm: LlmClient | None = None,
        client_factory: ClientFactory | None = None,
        ledger_factory: LedgerFactory = default_ledger_factory,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            llm: Language model client
            client_factory: Builds a platform client for a config snapshot
            ledger_factory: Builds the ledger backend for tx decisions
            clock: Source of timestamps for the state
        """
        self._llm = llm or LlmClient()
        self._client_factory = client_factory or PlatformClient.from_runner_config
        self._ledger_factory = ledger_factory
        self._clock = clock

        self._config: RunnerConfig | None = None
        self._state = RunnerState()
        self._cycle_lock = asyncio.Lock()
        self._cancel = asyncio.Event()
        self._ticker: asyncio.Task[None] | None = None
        self._cycle_tasks: set[asyncio.Task[CycleResult]] = set()

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def config(self) -> RunnerConfig | None:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def in_flight(self) -> bool:
        return self._cycle_lock.locked()

    def status(self) -> dict[str, Any]:
        """State snapshot plus the redacted config."""
        return {**self._state.to_dict(), "config": redact_config(self._config)}

    async def start(self, config: Mapping[str, Any] | RunnerConfig) -> dict[str, Any]:
        """
        Start the runner: one cycle now, then one per interval.

        Returns:
            Status after the first cycle

        Raises:
            AlreadyRunningError: If already running (state is left untouched)
            ConfigurationError: If the config is invalid
        """
        if self._state.running:
            raise AlreadyRunningError("Runner is already running")

        normalized = normalize_config(config)
        self._config = normalized
        self._cancel = asyncio.Event()
        self._state = replace(self._state, running=True, started_at=self._clock())
        logger.info(
            "Runner started for agent %s (interval=%ss)",
            normalized.agent_id,
            normalized.runtime.interval_sec,
        )

        await self._run_cycle(normalized, self._cancel)
        # stop() may have been called while the first cycle ran
        if self._state.running:
            self._arm_timer()
        return self.status()

    def stop(self, abort_in_flight: bool = False) -> dict[str, Any]:
        """
        Stop scheduling cycles. Idempotent.

        An in-flight cycle runs to completion unless abort_in_flight is set,
        in which case its remaining decisions are skipped.
        """
        self._cancel_timer()
        if abort_in_flight:
            self._cancel.set()
            # The aborted cycle holds the set event; later cycles get a clear one
            self._cancel = asyncio.Event()
        if self._state.running:
            self._state = replace(self._state, running=False)
            logger.info("Runner stopped")
        return self.status()

    def update_config(self, patch: Mapping[str, Any]) -> dict[str, Any]:
        """
        Merge a partial config and re-arm the timer if running.

        Cycles already in flight keep the config they started with.

        Raises:
            NotRunningError: If the runner was never configured
            ConfigurationError: If the merged config is invalid
        """
        if self._config is None:
            raise NotRunningError("Runner config is not initialized")
        self._config = merge_config(self._config, patch)
        if self._state.running:
            self._arm_timer()
        logger.info("Runner config updated")
        return self.status()

    async def run_once(self) -> CycleResult:
        """
        Run one cycle with the current config.

        Raises:
            NotRunningError: If the runner was never configured
        """
        if self._config is None:
            raise NotRunningError("Runner config is not initialized")
        return await self._run_cycle(self._config, self._cancel)

    async def run_once_with_config(self, config: Mapping[str, Any] | RunnerConfig) -> CycleResult:
        """Run one cycle with a one-off config, leaving the engine's config alone."""
        return await self._run_cycle(normalize_config(config), asyncio.Event())

    async def wait_idle(self) -> None:
        """Wait for cycles started by the timer to finish."""
        while self._cycle_tasks:
            await asyncio.gather(*list(self._cycle_tasks), return_exceptions=True)

    def _arm_timer(self) -> None:
        self._cancel_timer()
        assert self._config is not None
        interval = self._config.runtime.interval_sec
        self._ticker = asyncio.get_running_loop().create_task(self._tick_loop(interval))

    def _cancel_timer(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick_loop(self, interval: float) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += interval
            self._on_tick()

    def _on_tick(self) -> None:
        if self._config is None:
            return
        if self._cycle_lock.locked():
            logger.info("Tick dropped: %s", IN_FLIGHT_REASON)
            return
        task = asyncio.get_running_loop().create_task(self._run_cycle(self._config, self._cancel))
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)

    async def _run_cycle(self, config: RunnerConfig, cancel: asyncio.Event) -> CycleResult:
        if self._cycle_lock.locked():
            return CycleResult.skipped_cycle(IN_FLIGHT_REASON)

        async with self._cycle_lock:
            self._state = replace(self._state, last_run_at=self._clock())
            try:
                result = await self._cycle(config, cancel)
            except Exception as e:
                message = e.message if isinstance(e, AgentSnsError) else str(e) or type(e).__name__
                logger.error("Cycle failed for agent %s: %s", config.agent_id, message)
                self._state = replace(self._state, last_error=message)
                return CycleResult(ok=False, cycle_count=self._state.cycle_count, error=message)

            self._state = replace(
                self._state,
                cycle_count=self._state.cycle_count + 1,
                last_action_count=result.action_count,
                last_success_at=self._clock(),
                last_error=None,
            )
            result.cycle_count = self._state.cycle_count
            logger.info(
                "Cycle %d completed for agent %s: %d actions",
                result.cycle_count,
                config.agent_id,
                result.action_count,
            )
            return result

    async def _cycle(self, config: RunnerConfig, cancel: asyncio.Event) -> CycleResult:
        async with self._client_factory(config) as client:
            await client.agents.heartbeat(payload={"cycle": self._state.cycle_count + 1})

            general = await client.agents.general(config.agent_id)
            context = await client.context.fetch(config.runtime.comment_limit)

            scoped = context
            assignment = general.community
            if assignment is not None and (assignment.community_id or assignment.slug):
                restricted = context.restricted_to(assignment.community_id, assignment.slug)
                # An assignment missing from the context leaves the full context in scope
                if restricted.communities:
                    scoped = restricted
            if not scoped.communities:
                raise CommunityNotFoundError("No community assigned for this runner")

            request = LlmRequest(
                provider=general.agent.llm_provider,
                model=general.agent.llm_model,
                api_key=config.llm.api_key,
                base_url=config.llm.base_url or general.agent.llm_base_url,
                system=compose_system_prompt(
                    config.prompts.system, config.prompts.supplementary_profile
                ),
                user=compose_user_prompt(config.prompts.user, scoped.to_prompt_payload()),
                max_tokens=config.runtime.max_tokens,
            )
            output = await self._llm.complete(request)
            self._state = replace(self._state, last_llm_output=output)
            log_trace(logger, "llm_output", {"agentId": config.agent_id, "output": output})

            decisions = extract_decisions(output)
            executor = ActionExecutor(client, config.execution, self._ledger_factory)
            actions = await executor.execute_all(decisions, scoped, cancel)

        return CycleResult(ok=True, actions=actions)
