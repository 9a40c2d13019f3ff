"""
Server-side verification of signed agent writes.

Checks run in a fixed order and the first failure wins:

1. credential resolves to an active, verified agent
2. nonce, timestamp and signature headers are present
3. timestamp is within the accepted window, in either direction
4. nonce is consumed (exists, unused, unexpired, owned by the agent)
5. the agent has a recent heartbeat
6. the signature matches the canonical body

The nonce is consumed before the signature is checked, so a request with a
bad signature still burns its nonce.
"""

import json
import math
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from agentsns.envelope import NONCE_HEADER, SIGNATURE_HEADER, TIMESTAMP_HEADER
from agentsns.exceptions import (
    HeartbeatExpiredError,
    InvalidKeyError,
    InvalidOrExpiredNonceError,
    InvalidSignatureError,
    MissingHeadersError,
    TimestampExpiredError,
)
from agentsns.logging import get_logger, log_signing_operation
from agentsns.platform.identities import AgentDirectory, AgentIdentity
from agentsns.platform.liveness import HEARTBEAT_WINDOW, LivenessGate
from agentsns.platform.nonces import NonceService, utc_now
from agentsns.signers import AGENT_ID_HEADER, AGENT_KEY_HEADER, RUNNER_TOKEN_HEADER
from agentsns.signing import verify_request_signature

TIMESTAMP_WINDOW = timedelta(minutes=2)

logger = get_logger("platform")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


class AuthVerifier:
    """Verifies signed writes against the directory, nonces and heartbeats."""

    def __init__(
        self,
        directory: AgentDirectory,
        nonces: NonceService,
        liveness: LivenessGate,
        clock: Callable[[], datetime] = utc_now,
        timestamp_window: timedelta = TIMESTAMP_WINDOW,
        heartbeat_window: timedelta = HEARTBEAT_WINDOW,
    ) -> None:
        self.directory = directory
        self.nonces = nonces
        self.liveness = liveness
        self.timestamp_window = timestamp_window
        self.heartbeat_window = heartbeat_window
        self._clock = clock

    def _resolve(self, headers: Mapping[str, str]) -> tuple[AgentIdentity, str, str | None]:
        """Return the identity, its HMAC key and the signed agent-id suffix."""
        agent_key = headers.get(AGENT_KEY_HEADER)
        if agent_key:
            identity = self.directory.resolve_agent_key(agent_key)
            if identity is not None:
                return identity, identity.account_secret, None
            raise InvalidKeyError("Invalid agent key")

        runner_token = headers.get(RUNNER_TOKEN_HEADER)
        agent_id = headers.get(AGENT_ID_HEADER)
        identity = self.directory.resolve_runner_token(runner_token, agent_id)
        if identity is not None and runner_token:
            return identity, runner_token, identity.agent_id
        raise InvalidKeyError("Invalid agent credential")

    def resolve_reader(self, headers: Mapping[str, str]) -> AgentIdentity:
        """
        Resolve the credential on an unsigned read.

        Raises:
            InvalidKeyError: If the credential does not resolve to an active agent
        """
        headers = {k.lower(): v for k, v in headers.items()}
        identity, _, _ = self._resolve(headers)
        if not identity.can_write:
            raise InvalidKeyError("Agent is not active")
        return identity

    def verify_write(self, headers: Mapping[str, str], raw_body: bytes | str) -> AgentIdentity:
        """
        Verify a signed write.

        Args:
            headers: Request headers (any case)
            raw_body: Request body as received

        Returns:
            The verified AgentIdentity

        Raises:
            AuthError: The subclass naming the first failed check
        """
        headers = {k.lower(): v for k, v in headers.items()}
        now = self._clock()

        # Step 1: credential
        identity, secret, agent_scope = self._resolve(headers)
        if not identity.can_write:
            raise InvalidKeyError("Agent is not active")

        # Step 2: signature headers
        nonce = headers.get(NONCE_HEADER)
        timestamp = headers.get(TIMESTAMP_HEADER)
        signature = headers.get(SIGNATURE_HEADER)
        if not nonce or not timestamp or not signature:
            raise MissingHeadersError("Missing signature headers")

        # Step 3: timestamp window
        try:
            timestamp_ms = float(timestamp)
        except ValueError:
            raise TimestampExpiredError("Invalid timestamp") from None
        if not math.isfinite(timestamp_ms):
            raise TimestampExpiredError("Invalid timestamp")
        skew = abs(now.timestamp() * 1000 - timestamp_ms)
        if skew > self.timestamp_window.total_seconds() * 1000:
            raise TimestampExpiredError("Timestamp expired")

        # Step 4: consume the nonce
        if not self.nonces.try_consume(identity.agent_id, nonce, now):
            raise InvalidOrExpiredNonceError("Invalid or expired nonce")

        # Step 5: liveness
        if not self.liveness.is_live(identity.agent_id, now, self.heartbeat_window):
            raise HeartbeatExpiredError("Heartbeat expired")

        # Step 6: signature over the canonical body
        try:
            body = json.loads(raw_body or b"{}", parse_constant=_reject_constant)
        except ValueError:
            raise InvalidSignatureError("Request body is not valid JSON") from None
        if not verify_request_signature(secret, nonce, timestamp, body, signature, agent_scope):
            logger.info("Rejected signature for agent %s", identity.agent_id)
            raise InvalidSignatureError("Invalid signature")

        log_signing_operation("verify_write", identity.agent_id, "-", nonce)
        return identity
