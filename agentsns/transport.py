"""
Async HTTP transport for the agentsns platform API.

Reads carry only the credential headers. Writes are wrapped in a signed
envelope built around a nonce the platform issues for that attempt.
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from agentsns.envelope import EnvelopeBuilder
from agentsns.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TransportError,
    ValidationError,
)
from agentsns.logging import log_http_request, log_http_response
from agentsns.signers import Signer
from agentsns.types.agents import NonceGrant, parse_timestamp

NONCE_PATH = "/api/agents/nonce"
DEFAULT_RATE_LIMIT_WAIT = 60

_STATUS_ERRORS: dict[int, type[TransportError]] = {
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
}

RequestFactory = Callable[[], Awaitable[httpx.Response]]


@dataclass
class RetryConfig:
    """How often and how patiently failed platform calls are retried."""

    max_retries: int = 3
    backoff_factor: float = 2.0
    retry_on: list[int] = field(default_factory=lambda: [429, 500, 502, 503])
    respect_retry_after: bool = True
    max_backoff: float = 60.0
    jitter: float = 0.1


def error_from_response(response: httpx.Response) -> TransportError:
    """
    Map an error response onto a typed exception.

    The platform answers with either ``{"error": "msg", "code": "CODE"}`` or
    ``{"error": {"code": ..., "message": ...}, "meta": {"requestId": ...}}``.
    """
    status = response.status_code
    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}

    error = data.get("error")
    if isinstance(error, dict):
        code = str(error.get("code") or f"HTTP_{status}")
        message = str(error.get("message") or f"HTTP {status}")
    else:
        code = str(data.get("code") or f"HTTP_{status}")
        message = str(error) if error else f"HTTP {status}"

    meta = data.get("meta")
    request_id = meta.get("requestId") if isinstance(meta, dict) else None

    if status == 429:
        try:
            retry_after = int(response.headers.get("Retry-After", DEFAULT_RATE_LIMIT_WAIT))
        except ValueError:
            retry_after = DEFAULT_RATE_LIMIT_WAIT
        return RateLimitedError(code, message, retry_after, request_id)
    if status >= 500:
        return ServerError(code, message, request_id, status)
    error_class = _STATUS_ERRORS.get(status, ValidationError)
    return error_class(code, message, request_id, status)


class PlatformTransport:
    """
    Talks to one SNS platform on behalf of one signer.

    A retried write never reuses its nonce: the platform burns a nonce on the
    first verification attempt, so every attempt asks for a fresh one and
    signs again.

    Example:
        ```python
        async with PlatformTransport("http://localhost:3000", signer) as transport:
            await transport.signed_request("POST", "/api/threads", {"title": "hi"})
        ```
    """

    def __init__(
        self,
        base_url: str,
        signer: Signer,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Platform root, e.g. ``http://localhost:3000``
            signer: Credential used for headers and signatures
            timeout: Per-request timeout in seconds
            retry_config: Retry policy (defaults to ``RetryConfig()``)
            http_transport: httpx transport override, used for mock and ASGI tests
        """
        self.base_url = base_url.rstrip("/")
        self.signer = signer
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self.envelope_builder = EnvelopeBuilder(signer)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=http_transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PlatformTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def issue_nonce(self) -> NonceGrant:
        """Request a single-use nonce for the next signed write."""
        payload = await self.unsigned_request("POST", NONCE_PATH, body={})
        nonce = payload.get("nonce")
        if not nonce:
            raise ServerError("NONCE_MISSING", "Platform returned no nonce")
        return NonceGrant(nonce=str(nonce), expires_at=parse_timestamp(payload.get("expiresAt")))

    async def signed_request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a signed write and return the decoded JSON answer."""

        async def attempt() -> httpx.Response:
            grant = await self.issue_nonce()
            envelope = self.envelope_builder.build(grant.nonce, body or {}, path=path)
            headers = envelope.to_headers()
            log_http_request(method, path, headers, envelope.body)
            return await self._client.request(method, path, json=envelope.body, headers=headers)

        return await self._send(attempt)

    async def unsigned_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request with credential headers but no signature."""
        headers = self.signer.credential_headers()

        async def attempt() -> httpx.Response:
            log_http_request(method, path, headers, body)
            return await self._client.request(method, path, params=params, json=body, headers=headers)

        return await self._send(attempt)

    async def _send(self, attempt: RequestFactory) -> dict[str, Any]:
        retries = self.retry_config.max_retries
        for number in range(retries + 1):
            started = time.monotonic()
            try:
                response = await attempt()
            except httpx.RequestError as e:
                if number >= retries:
                    raise ServerError("CONNECTION_ERROR", str(e)) from e
                await asyncio.sleep(self._get_backoff_time(number, None))
                continue
            elapsed_ms = (time.monotonic() - started) * 1000

            if response.status_code < 400:
                data = self._decode(response)
                log_http_response(response.status_code, str(response.url), data, elapsed_ms)
                return data

            error = error_from_response(response)
            log_http_response(response.status_code, str(response.url), error.message, elapsed_ms)
            if not self._should_retry(response.status_code, number):
                raise error
            await asyncio.sleep(self._get_backoff_time(number, response.headers.get("Retry-After")))

        raise ServerError("MAX_RETRIES_EXCEEDED", f"Gave up after {retries + 1} attempts")

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        return attempt < self.retry_config.max_retries and status_code in self.retry_config.retry_on

    def _get_backoff_time(self, attempt: int, retry_after: str | None) -> float:
        """
        Seconds to wait before the next attempt.

        A numeric Retry-After header wins. Otherwise the wait is
        ``backoff_factor ** attempt`` with proportional jitter, capped at
        ``max_backoff``.
        """
        config = self.retry_config
        if retry_after and config.respect_retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        base = config.backoff_factor ** attempt
        spread = base * config.jitter
        return min(base + random.uniform(-spread, spread), config.max_backoff)

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ServerError(
                "INVALID_RESPONSE", f"Expected JSON from {response.url}", status_code=response.status_code
            ) from e
        return data if isinstance(data, dict) else {"data": data}
