"""
Logging for agentsns.

Every module logs under the ``agentsns`` hierarchy:

- ``agentsns.http``: platform requests and responses (DEBUG only)
- ``agentsns.signing``: envelope signing and write verification
- ``agentsns.engine``: runner cycles, decisions and action results

Runner tokens, agent keys, LLM API keys, wallet keys and full signatures are
masked before anything reaches a handler.
"""

import json
import logging
import re
from typing import Any

ROOT_LOGGER_NAME = "agentsns"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REDACTED = "[REDACTED]"
SIGNATURE_REDACTED = "[SIGNATURE_REDACTED]"
PRIVATE_KEY_REDACTED = "[PRIVATE_KEY_REDACTED]"

# Characters kept at each end of a truncated signature
SIGNATURE_PREVIEW = 8
NONCE_PREVIEW = 8

# Order matters: PEM blocks and signatures go before the generic key=value rule.
_TEXT_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"-----BEGIN[^-]*PRIVATE KEY-----.*?-----END[^-]*PRIVATE KEY-----", re.DOTALL),
        PRIVATE_KEY_REDACTED,
    ),
    (
        re.compile(r"signature['\"]?\s*[:=]\s*['\"]?[a-fA-F0-9]{64}['\"]?", re.IGNORECASE),
        f"signature: {SIGNATURE_REDACTED}",
    ),
    (re.compile(r"\b0x[a-fA-F0-9]{64}\b"), PRIVATE_KEY_REDACTED),
    (
        re.compile(
            r"(secret|token|password|api_?key|private_?key)['\"]?\s*[:=]\s*['\"][^'\"]+['\"]",
            re.IGNORECASE,
        ),
        rf"\1: {REDACTED}",
    ),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"), rf"\1{REDACTED}"),
)

# Fragments of normalized dict keys whose values are never logged
SECRET_KEY_FRAGMENTS = frozenset({
    "agentkey",
    "apikey",
    "authorization",
    "encodedinput",
    "password",
    "privatekey",
    "secret",
    "signature",
    "token",
})

_CHILD_LOGGERS = ("http", "signing", "engine")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or the ``agentsns.<name>`` child."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    level: int = logging.INFO,
    http_level: int | None = None,
    signing_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Attach a handler to the ``agentsns`` logger and set child levels.

    Args:
        level: Level for the package logger and any child without an override
        http_level: Override for ``agentsns.http``
        signing_level: Override for ``agentsns.signing``
        handler: Handler to attach (a stderr StreamHandler when omitted)
        format_string: Log record format

    Example:
        ```python
        configure_logging(level=logging.INFO, http_level=logging.DEBUG)
        ```
    """
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))

    root = get_logger()
    root.setLevel(level)
    root.addHandler(handler)

    overrides = {"http": http_level, "signing": signing_level}
    for name in _CHILD_LOGGERS:
        override = overrides.get(name)
        get_logger(name).setLevel(level if override is None else override)


def mask_sensitive_data(text: str) -> str:
    """Replace credentials and signatures embedded in free text."""
    for pattern, replacement in _TEXT_RULES:
        text = pattern.sub(replacement, text)
    return text


def truncate_signature(signature: str) -> str:
    """Keep only both ends of a signature, e.g. ``abcdef01...89abcdef``."""
    if len(signature) <= SIGNATURE_PREVIEW * 2:
        return SIGNATURE_REDACTED
    return f"{signature[:SIGNATURE_PREVIEW]}...{signature[-SIGNATURE_PREVIEW:]}"


def _is_secret_key(key: Any, fragments: frozenset[str] | set[str]) -> bool:
    normalized = re.sub(r"[-_]", "", str(key).lower())
    return any(fragment in normalized for fragment in fragments)


def _redact_value(key: Any, value: Any) -> Any:
    if isinstance(value, str) and str(key).lower().endswith("signature"):
        return truncate_signature(value)
    return REDACTED


def _scrub(value: Any, fragments: frozenset[str] | set[str]) -> Any:
    if isinstance(value, dict):
        return safe_log_dict(value, fragments)
    if isinstance(value, list):
        return [safe_log_dict(item, fragments) if isinstance(item, dict) else item for item in value]
    return value


def safe_log_dict(data: dict[str, Any], sensitive_keys: frozenset[str] | set[str] | None = None) -> dict[str, Any]:
    """
    Copy a mapping with credential values masked, recursing into dicts and lists.

    Keys match ignoring case, dashes and underscores, so ``x-runner-token``,
    ``runnerToken`` and ``runner_token`` are all caught by ``token``.
    """
    fragments = SECRET_KEY_FRAGMENTS if sensitive_keys is None else sensitive_keys
    return {
        key: _redact_value(key, value) if _is_secret_key(key, fragments) else _scrub(value, fragments)
        for key, value in data.items()
    }


def _printable(body: Any) -> Any:
    return safe_log_dict(body) if isinstance(body, dict) else body


def log_http_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    body: Any = None,
) -> None:
    """Log an outgoing platform request at DEBUG with credentials masked."""
    http_logger = get_logger("http")
    if not http_logger.isEnabledFor(logging.DEBUG):
        return
    parts = [f"{method} {url}"]
    if headers:
        parts.append(f"headers={safe_log_dict(headers)}")
    if body:
        parts.append(f"body={_printable(body)}")
    http_logger.debug(" | ".join(parts))


def log_http_response(
    status_code: int,
    url: str,
    body: Any = None,
    elapsed_ms: float | None = None,
) -> None:
    """Log a platform response at DEBUG with credentials masked."""
    http_logger = get_logger("http")
    if not http_logger.isEnabledFor(logging.DEBUG):
        return
    parts = [f"<- {status_code} {url}"]
    if elapsed_ms is not None:
        parts.append(f"{elapsed_ms:.1f}ms")
    if body:
        parts.append(f"body={_printable(body)}")
    http_logger.debug(" | ".join(parts))


def log_signing_operation(
    operation: str,
    agent_id: str,
    path: str,
    nonce: str | None = None,
) -> None:
    """
    Record a signing or verification event.

    Only the first few characters of the nonce are written.
    """
    signing_logger = get_logger("signing")
    if not signing_logger.isEnabledFor(logging.DEBUG):
        return
    nonce_part = f" nonce={nonce[:NONCE_PREVIEW]}..." if nonce else ""
    signing_logger.debug("%s agent=%s path=%s%s", operation, agent_id, path, nonce_part)


def log_trace(logger: logging.Logger, label: str, payload: Any) -> None:
    """Write ``label`` followed by the masked JSON of ``payload`` at DEBUG."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    text = json.dumps(_printable(payload), default=str, ensure_ascii=False)
    logger.debug("%s %s", label, mask_sensitive_data(text))


__all__ = [
    "configure_logging",
    "get_logger",
    "log_http_request",
    "log_http_response",
    "log_signing_operation",
    "log_trace",
    "mask_sensitive_data",
    "safe_log_dict",
    "truncate_signature",
]
