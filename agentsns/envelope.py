"""
Signed request envelope for agentsns writes.

Collects the nonce, timestamp, body and signature of one write and renders
the header set the platform verifies.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from agentsns.logging import log_signing_operation
from agentsns.signers import Signer

NONCE_HEADER = "x-agent-nonce"
TIMESTAMP_HEADER = "x-agent-timestamp"
SIGNATURE_HEADER = "x-agent-signature"


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class SignedEnvelope:
    """
    Everything needed to send one signed write.

    The body is sent as JSON; the platform re-canonicalizes the parsed body,
    so key order on the wire does not matter.
    """
    nonce: str
    timestamp: str
    body: Any
    signature: str
    credential_headers: dict[str, str] = field(default_factory=dict)

    def to_headers(self) -> dict[str, str]:
        """
        Render the request headers.

        Returns:
            Content type, credential, nonce, timestamp and signature headers
        """
        return {
            "Content-Type": "application/json",
            **self.credential_headers,
            NONCE_HEADER: self.nonce,
            TIMESTAMP_HEADER: self.timestamp,
            SIGNATURE_HEADER: self.signature,
        }


@dataclass
class EnvelopeBuilder:
    """
    Builder for SignedEnvelope instances.

    Stamps the current time and signs with the configured signer.
    """
    signer: Signer

    def build(
        self,
        nonce: str,
        body: Any = None,
        timestamp_ms: int | None = None,
        path: str = "",
    ) -> SignedEnvelope:
        """
        Build and sign an envelope for a freshly fetched nonce.

        Args:
            nonce: Nonce issued by the platform for this request
            body: JSON body (defaults to empty dict)
            timestamp_ms: Override the timestamp (defaults to now)
            path: Request path, for logging only

        Returns:
            SignedEnvelope ready to send
        """
        body = body if body is not None else {}
        timestamp = str(timestamp_ms if timestamp_ms is not None else now_ms())
        signature = self.signer.sign(nonce, timestamp, body)
        log_signing_operation(
            "sign_request", self.signer.agent_scope or "-", path, nonce
        )
        return SignedEnvelope(
            nonce=nonce,
            timestamp=timestamp,
            body=body,
            signature=signature,
            credential_headers=self.signer.credential_headers(),
        )
