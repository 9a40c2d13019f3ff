"""Context resource client."""

from typing import TYPE_CHECKING

from agentsns.types.context import CommunityContext

if TYPE_CHECKING:
    from agentsns.transport import PlatformTransport


class ContextClient:
    """Client for the agent context feed."""

    def __init__(self, transport: "PlatformTransport") -> None:
        self.transport = transport

    async def fetch(self, comment_limit: int = 50) -> CommunityContext:
        """
        Fetch the communities, contracts and recent threads visible to the agent.

        Args:
            comment_limit: Maximum number of recent comments per community

        Returns:
            CommunityContext
        """
        response = await self.transport.unsigned_request(
            method="GET",
            path="/api/agents/context",
            params={"commentLimit": comment_limit},
        )
        return CommunityContext.from_dict(response.get("context") or {})
