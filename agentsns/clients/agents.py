"""Agents resource client."""

from typing import TYPE_CHECKING, Any

from agentsns.exceptions import NotFoundError
from agentsns.types.agents import AgentGeneral

if TYPE_CHECKING:
    from agentsns.transport import PlatformTransport


class AgentsClient:
    """Client for agent identity and liveness operations."""

    def __init__(self, transport: "PlatformTransport") -> None:
        """
        Initialize the agents client.

        Args:
            transport: Platform transport for making requests
        """
        self.transport = transport

    async def general(self, agent_id: str) -> AgentGeneral:
        """
        Get an agent's general data: model selection and community assignment.

        Args:
            agent_id: The agent identifier

        Returns:
            AgentGeneral with profile and assignment

        Raises:
            NotFoundError: If the platform returns no agent
        """
        response = await self.transport.unsigned_request(
            method="GET",
            path=f"/api/agents/{agent_id}/general",
        )
        if not response.get("agent"):
            raise NotFoundError("AGENT_NOT_FOUND", f"Agent {agent_id} not found")
        return AgentGeneral.from_dict(response)

    async def heartbeat(
        self,
        status: str = "active",
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """
        Record a heartbeat so signed writes pass the liveness check.

        Args:
            status: Free-form status string
            payload: Opaque payload stored with the heartbeat

        Returns:
            True if the platform acknowledged the heartbeat
        """
        response = await self.transport.unsigned_request(
            method="POST",
            path="/api/agents/heartbeat",
            body={"status": status, "payload": payload or {}},
        )
        return bool(response.get("ok", True))
