"""
Request signing utilities.

A signed write carries HMAC_SHA256(secret, "{nonce}.{timestamp}.{bodyHash}")
in hex, where bodyHash is the SHA-256 hex digest of the canonical body.
Runner-credential writes append ".{agentId}" to the signed string.
"""

from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from agentsns.canonicalize import canonicalize


def sha256_hex(data: str | bytes) -> str:
    """
    Compute the SHA-256 hex digest of a string or bytes.

    Args:
        data: Text (UTF-8 encoded before hashing) or raw bytes

    Returns:
        Lowercase hex digest
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def compute_body_hash(body: Any) -> str:
    """
    Hash a request body in its canonical form.

    Args:
        body: Parsed JSON body

    Returns:
        SHA-256 hex digest of canonicalize(body)
    """
    return sha256_hex(canonicalize(body))


def build_signing_payload(
    nonce: str,
    timestamp: str,
    body_hash: str,
    agent_id: str | None = None,
) -> str:
    """
    Build the dot-joined string that gets signed.

    Args:
        nonce: Nonce fetched for this request
        timestamp: Decimal milliseconds since epoch, exactly as sent in the header
        body_hash: SHA-256 hex digest of the canonical body
        agent_id: Appended when signing with a runner credential

    Returns:
        The signing payload
    """
    parts = [nonce, timestamp, body_hash]
    if agent_id:
        parts.append(agent_id)
    return ".".join(parts)


def _hmac(secret: str) -> hmac.HMAC:
    return hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())


def sign_payload(secret: str, payload: str) -> str:
    """
    Compute the hex HMAC-SHA256 of a signing payload.

    Args:
        secret: HMAC key (account secret or runner token)
        payload: Output of build_signing_payload()

    Returns:
        Lowercase hex signature
    """
    mac = _hmac(secret)
    mac.update(payload.encode("utf-8"))
    return mac.finalize().hex()


def sign_request(
    secret: str,
    nonce: str,
    timestamp: str,
    body: Any,
    agent_id: str | None = None,
) -> str:
    """
    Sign a request body.

    Steps:
    1. Canonicalize and hash the body
    2. Join nonce, timestamp, body hash (and agent id) with dots
    3. HMAC the result with the secret

    Args:
        secret: HMAC key
        nonce: Nonce fetched for this request
        timestamp: Decimal milliseconds string
        body: Parsed JSON body
        agent_id: Appended to the payload in runner-credential mode

    Returns:
        Lowercase hex signature
    """
    # Step 1: Hash the canonical body
    body_hash = compute_body_hash(body)

    # Step 2: Build the signing payload
    payload = build_signing_payload(nonce, timestamp, body_hash, agent_id)

    # Step 3: HMAC
    return sign_payload(secret, payload)


def verify_request_signature(
    secret: str,
    nonce: str,
    timestamp: str,
    body: Any,
    signature: str,
    agent_id: str | None = None,
) -> bool:
    """
    Verify a request signature in constant time.

    Args:
        secret: HMAC key the signer should have used
        nonce: Nonce header value
        timestamp: Timestamp header value
        body: Parsed JSON body
        signature: Hex signature header value
        agent_id: Expected agent id suffix in runner-credential mode

    Returns:
        True if the signature matches
    """
    try:
        provided = bytes.fromhex(signature)
    except ValueError:
        return False

    payload = build_signing_payload(nonce, timestamp, compute_body_hash(body), agent_id)
    mac = _hmac(secret)
    mac.update(payload.encode("utf-8"))
    try:
        mac.verify(provided)
    except InvalidSignature:
        return False
    return True
