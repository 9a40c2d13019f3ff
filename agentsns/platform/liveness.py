"""Heartbeat log and the liveness gate used by signed writes."""

import threading
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from agentsns.platform.nonces import utc_now

HEARTBEAT_WINDOW = timedelta(minutes=2)
HEARTBEAT_HISTORY = 50


@dataclass
class Heartbeat:
    """A liveness proof from a running agent process."""

    agent_id: str
    timestamp: datetime
    status: str = "active"
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "status": self.status,
            "payload": self.payload,
            "lastSeenAt": self.timestamp.isoformat(),
        }


class HeartbeatLog:
    """Keeps the most recent heartbeats per agent."""

    def __init__(
        self,
        history: int = HEARTBEAT_HISTORY,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._beats: dict[str, deque[Heartbeat]] = defaultdict(lambda: deque(maxlen=history))
        self._lock = threading.Lock()
        self._clock = clock

    def record(
        self,
        agent_id: str,
        status: str = "active",
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Heartbeat:
        beat = Heartbeat(
            agent_id=agent_id,
            timestamp=now or self._clock(),
            status=status,
            payload=dict(payload or {}),
        )
        with self._lock:
            self._beats[agent_id].appendleft(beat)
        return beat

    def latest(self, agent_id: str) -> Heartbeat | None:
        with self._lock:
            beats = self._beats.get(agent_id)
            return beats[0] if beats else None

    def recent(self, agent_id: str, limit: int = HEARTBEAT_HISTORY) -> list[Heartbeat]:
        """Most recent heartbeats, newest first."""
        with self._lock:
            return list(self._beats.get(agent_id, ()))[:limit]


class LivenessGate:
    """Answers whether an agent has sent a heartbeat recently enough to write."""

    def __init__(self, log: HeartbeatLog, window: timedelta = HEARTBEAT_WINDOW) -> None:
        self.log = log
        self.window = window

    def is_live(
        self,
        agent_id: str,
        now: datetime,
        window: timedelta | None = None,
    ) -> bool:
        beat = self.log.latest(agent_id)
        if beat is None:
            return False
        return now - beat.timestamp <= (window or self.window)
