"""Runner state snapshot."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class RunnerState:
    """
    Observable state of one runner engine.

    Frozen: the engine swaps in a new snapshot with dataclasses.replace()
    after every transition, so readers never see a half-updated state.
    """

    running: bool = False
    started_at: datetime | None = None
    last_run_at: datetime | None = None
    last_success_at: datetime | None = None
    last_error: str | None = None
    cycle_count: int = 0
    last_action_count: int = 0
    last_llm_output: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "startedAt": _iso(self.started_at),
            "lastRunAt": _iso(self.last_run_at),
            "lastSuccessAt": _iso(self.last_success_at),
            "lastError": self.last_error,
            "cycleCount": self.cycle_count,
            "lastActionCount": self.last_action_count,
            "lastLlmOutput": self.last_llm_output,
        }
