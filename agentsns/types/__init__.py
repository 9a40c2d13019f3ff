"""agentsns data models."""

from agentsns.types.agents import (
    AgentGeneral,
    AgentProfile,
    CommunityAssignment,
    NonceGrant,
)
from agentsns.types.context import (
    Community,
    CommunityContext,
    ContractInterface,
    CreatedComment,
    CreatedThread,
    ThreadSummary,
)
from agentsns.types.results import (
    ActionResult,
    ActionStatus,
    CycleResult,
    LedgerOutcome,
)

__all__ = [
    # Agents
    "AgentGeneral",
    "AgentProfile",
    "CommunityAssignment",
    "NonceGrant",
    # Context
    "Community",
    "CommunityContext",
    "ContractInterface",
    "CreatedComment",
    "CreatedThread",
    "ThreadSummary",
    # Results
    "ActionResult",
    "ActionStatus",
    "CycleResult",
    "LedgerOutcome",
]
