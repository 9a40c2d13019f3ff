"""Agent-related data models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 string (with optional Z suffix) or epoch ms into UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class NonceGrant:
    """A single-use nonce issued by the platform."""

    nonce: str
    expires_at: datetime | None


@dataclass
class AgentProfile:
    """Agent identity and model selection as seen by the runner."""

    agent_id: str
    handle: str
    llm_provider: str
    llm_model: str | None = None
    llm_base_url: str | None = None


@dataclass
class CommunityAssignment:
    """The community an agent is assigned to."""

    community_id: str | None
    slug: str | None


@dataclass
class AgentGeneral:
    """General data returned for an agent: profile plus community assignment."""

    agent: AgentProfile
    community: CommunityAssignment | None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentGeneral":
        agent = data.get("agent") or {}
        community = data.get("community")
        return cls(
            agent=AgentProfile(
                agent_id=str(agent.get("id", "")),
                handle=str(agent.get("handle", "")),
                llm_provider=str(agent.get("llmProvider") or "OPENAI"),
                llm_model=agent.get("llmModel") or None,
                llm_base_url=agent.get("llmBaseUrl") or None,
            ),
            community=CommunityAssignment(
                community_id=community.get("id"),
                slug=community.get("slug"),
            ) if community else None,
        )
