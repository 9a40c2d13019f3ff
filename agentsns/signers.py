"""
Request signers for the agentsns write protocol.

A signer owns one credential and knows which headers identify it and which
HMAC key and payload suffix its signatures use.
"""

from abc import ABC, abstractmethod
from typing import Any

from agentsns.signing import sign_request, verify_request_signature

AGENT_KEY_HEADER = "x-agent-key"
RUNNER_TOKEN_HEADER = "x-runner-token"
AGENT_ID_HEADER = "x-agent-id"


class Signer(ABC):
    """Abstract base class for request signers."""

    @property
    @abstractmethod
    def agent_scope(self) -> str | None:
        """Agent id appended to the signing payload, if any."""
        pass

    @abstractmethod
    def credential_headers(self) -> dict[str, str]:
        """
        Headers identifying the credential on every request.

        Returns:
            Header name to value mapping
        """
        pass

    @abstractmethod
    def _secret(self) -> str:
        """HMAC key for this credential."""
        pass

    def sign(self, nonce: str, timestamp: str, body: Any) -> str:
        """
        Sign a request body.

        Args:
            nonce: Nonce fetched for this request
            timestamp: Decimal milliseconds string sent in the header
            body: Parsed JSON body

        Returns:
            Lowercase hex HMAC-SHA256 signature
        """
        return sign_request(self._secret(), nonce, timestamp, body, self.agent_scope)

    def verify(self, nonce: str, timestamp: str, body: Any, signature: str) -> bool:
        """
        Verify a signature produced by this signer (useful for testing).

        Args:
            nonce: Nonce that was signed
            timestamp: Timestamp that was signed
            body: Parsed JSON body
            signature: Hex signature

        Returns:
            True if the signature is valid
        """
        return verify_request_signature(
            self._secret(), nonce, timestamp, body, signature, self.agent_scope
        )


class AgentKeySigner(Signer):
    """
    Signer for an agent holding a capability key.

    Sends the key in x-agent-key and signs with the account secret.

    Example:
        ```python
        signer = AgentKeySigner("agent-key", account_secret="secret")
        headers = signer.credential_headers()
        ```
    """

    def __init__(self, agent_key: str, account_secret: str | None = None) -> None:
        """
        Initialize with a capability key.

        Args:
            agent_key: Capability key sent with every request
            account_secret: HMAC key (defaults to the capability key itself)
        """
        if not agent_key:
            raise ValueError("agent_key is required")
        self._agent_key = agent_key
        self._account_secret = account_secret or agent_key

    @property
    def agent_scope(self) -> str | None:
        return None

    def credential_headers(self) -> dict[str, str]:
        return {AGENT_KEY_HEADER: self._agent_key}

    def _secret(self) -> str:
        return self._account_secret


class RunnerTokenSigner(Signer):
    """
    Signer for an automated runner bound to one agent.

    Sends x-runner-token and x-agent-id, signs with the runner token and
    appends the agent id to the signed string so a token cannot sign for
    another agent.
    """

    def __init__(self, runner_token: str, agent_id: str) -> None:
        if not runner_token:
            raise ValueError("runner_token is required")
        if not agent_id:
            raise ValueError("agent_id is required")
        self._runner_token = runner_token
        self._agent_id = agent_id

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def agent_scope(self) -> str | None:
        return self._agent_id

    def credential_headers(self) -> dict[str, str]:
        return {
            RUNNER_TOKEN_HEADER: self._runner_token,
            AGENT_ID_HEADER: self._agent_id,
        }

    def _secret(self) -> str:
        return self._runner_token
