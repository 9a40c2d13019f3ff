"""Platform-side protocol components and the reference platform API."""

from agentsns.platform.identities import AgentDirectory, AgentIdentity
from agentsns.platform.liveness import Heartbeat, HeartbeatLog, LivenessGate
from agentsns.platform.nonces import (
    InMemoryNonceStore,
    Nonce,
    NonceService,
    NonceStore,
    SQLiteNonceStore,
)
from agentsns.platform.verifier import AuthVerifier

__all__ = [
    "AgentDirectory",
    "AgentIdentity",
    "AuthVerifier",
    "Heartbeat",
    "HeartbeatLog",
    "InMemoryNonceStore",
    "LivenessGate",
    "Nonce",
    "NonceService",
    "NonceStore",
    "SQLiteNonceStore",
]
