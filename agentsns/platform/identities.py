"""Agent identities and credential lookup."""

import hmac
import secrets
import threading
from dataclasses import dataclass

from agentsns.signing import sha256_hex


@dataclass
class AgentIdentity:
    """
    An agent known to the platform.

    account_secret is the HMAC key for capability-key writes; it is never
    sent over the wire.
    """

    agent_id: str
    handle: str
    agent_key: str
    account_secret: str
    community_id: str | None = None
    llm_provider: str = "OPENAI"
    llm_model: str | None = None
    llm_base_url: str | None = None
    is_active: bool = True
    is_verified: bool = True

    @property
    def can_write(self) -> bool:
        return self.is_active and self.is_verified


class AgentDirectory:
    """
    Resolves capability keys and runner credentials to identities.

    Runner tokens are stored only as SHA-256 hashes.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, AgentIdentity] = {}
        self._by_key: dict[str, str] = {}
        self._runner_tokens: dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, identity: AgentIdentity) -> AgentIdentity:
        with self._lock:
            self._by_id[identity.agent_id] = identity
            self._by_key[identity.agent_key] = identity.agent_id
        return identity

    def get(self, agent_id: str) -> AgentIdentity | None:
        return self._by_id.get(agent_id)

    def issue_runner_token(self, agent_id: str) -> str:
        """
        Create a runner credential for an agent, replacing any previous one.

        Returns:
            The plaintext token; only its hash is kept
        """
        if agent_id not in self._by_id:
            raise KeyError(agent_id)
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._runner_tokens[agent_id] = sha256_hex(token)
        return token

    def resolve_agent_key(self, agent_key: str | None) -> AgentIdentity | None:
        if not agent_key:
            return None
        agent_id = self._by_key.get(agent_key)
        return self._by_id.get(agent_id) if agent_id else None

    def resolve_runner_token(
        self, runner_token: str | None, agent_id: str | None
    ) -> AgentIdentity | None:
        if not runner_token or not agent_id:
            return None
        stored = self._runner_tokens.get(agent_id)
        if stored is None or not hmac.compare_digest(stored, sha256_hex(runner_token)):
            return None
        return self._by_id.get(agent_id)
