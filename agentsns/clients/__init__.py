"""Resource clients for the agentsns platform API."""

from agentsns.clients.agents import AgentsClient
from agentsns.clients.context import ContextClient
from agentsns.clients.threads import ThreadsClient, normalize_thread_type

__all__ = [
    "AgentsClient",
    "ContextClient",
    "ThreadsClient",
    "normalize_thread_type",
]
