"""
Property-based tests for agentsns logging.

Feature: agentsns
"""

import io
import logging

from hypothesis import given, settings
from hypothesis import strategies as st

from agentsns.logging import (
    configure_logging,
    get_logger,
    log_http_request,
    log_signing_operation,
    log_trace,
    mask_sensitive_data,
    safe_log_dict,
    truncate_signature,
)

hex_signature_strategy = st.text(alphabet="0123456789abcdef", min_size=64, max_size=64)

credential_strategy = st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", min_size=16, max_size=48)

wallet_key_strategy = st.text(alphabet="0123456789abcdef", min_size=64, max_size=64).map(lambda s: "0x" + s)


@given(signature=hex_signature_strategy)
@settings(max_examples=100)
def test_property_no_full_signature_in_masked_output(signature: str) -> None:
    """
    Property 1: No full signatures in logs

    Text carrying a hex HMAC signature SHALL NOT contain it after masking.
    """
    masked = mask_sensitive_data(f'{{"x-agent-signature": "{signature}"}}')
    assert signature not in masked, f"Full signature found in masked output: {masked}"


@given(private_key=wallet_key_strategy)
@settings(max_examples=100)
def test_property_no_wallet_key_in_masked_output(private_key: str) -> None:
    """
    Property 2: No wallet private keys in logs

    A 0x-prefixed 32-byte hex key SHALL be redacted wherever it appears.
    """
    masked = mask_sensitive_data(f"loaded wallet {private_key} for execution")
    assert private_key not in masked


@given(token=credential_strategy, api_key=credential_strategy, signature=hex_signature_strategy)
@settings(max_examples=100)
def test_property_safe_log_dict_masks_credentials(token: str, api_key: str, signature: str) -> None:
    """
    Property 3: Credential-bearing keys are masked

    safe_log_dict SHALL mask runner tokens, agent keys, LLM API keys and
    signatures under any casing or separator style, at any depth.
    """
    data = {
        "x-runner-token": token,
        "x-agent-key": token,
        "securitySensitive": {"llmApiKey": api_key, "executionWalletPrivateKey": api_key},
        "headers": [{"x-agent-signature": signature}],
        "agentId": "visible-agent",
    }

    safe = safe_log_dict(data)
    text = str(safe)

    assert token not in text
    assert api_key not in text
    assert signature not in text
    assert safe["agentId"] == "visible-agent"


@given(token=credential_strategy)
@settings(max_examples=50)
def test_property_log_http_request_no_credentials(token: str) -> None:
    """
    Property 4: HTTP request logs carry no credentials

    With DEBUG logging enabled, request logs SHALL NOT contain the runner
    token sent in the headers.
    """
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    http_logger = get_logger("http")
    http_logger.addHandler(handler)
    previous = http_logger.level
    http_logger.setLevel(logging.DEBUG)
    try:
        log_http_request(
            "POST",
            "/api/threads",
            {"x-runner-token": token, "x-agent-id": "agent-1"},
            {"title": "hello"},
        )
    finally:
        http_logger.removeHandler(handler)
        http_logger.setLevel(previous)

    output = stream.getvalue()
    assert "/api/threads" in output
    assert token not in output


def test_truncate_signature_hides_middle() -> None:
    signature = "a" * 8 + "b" * 48 + "c" * 8
    truncated = truncate_signature(signature)
    assert truncated == "aaaaaaaa...cccccccc"
    assert truncate_signature("short") == "[SIGNATURE_REDACTED]"


def test_log_trace_masks_payload() -> None:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    logger = get_logger("engine")
    logger.addHandler(handler)
    previous = logger.level
    logger.setLevel(logging.DEBUG)
    try:
        log_trace(logger, "llm_request", {"apiKey": "sk-live-123456", "model": "gpt-4o-mini"})
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)

    output = stream.getvalue()
    assert output.startswith("llm_request ")
    assert "sk-live-123456" not in output
    assert "gpt-4o-mini" in output


def test_log_signing_operation_truncates_nonce() -> None:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    logger = get_logger("signing")
    logger.addHandler(handler)
    previous = logger.level
    logger.setLevel(logging.DEBUG)
    try:
        log_signing_operation("sign_request", "agent-1", "/api/threads", "0123456789abcdef0123")
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)

    output = stream.getvalue()
    assert "01234567..." in output
    assert "0123456789abcdef0123" not in output


def test_bearer_tokens_masked() -> None:
    assert mask_sensitive_data("Authorization: Bearer sk-abc.def") == "Authorization: Bearer [REDACTED]"


def test_configure_logging_sets_levels() -> None:
    handler = logging.NullHandler()
    try:
        configure_logging(level=logging.WARNING, http_level=logging.DEBUG, signing_level=logging.ERROR, handler=handler)

        assert get_logger().level == logging.WARNING
        assert get_logger("http").level == logging.DEBUG
        assert get_logger("signing").level == logging.ERROR
        assert get_logger("engine").level == logging.WARNING
    finally:
        get_logger().removeHandler(handler)
        for name in (None, "http", "signing", "engine"):
            get_logger(name).setLevel(logging.NOTSET)


def test_get_logger_names() -> None:
    assert get_logger().name == "agentsns"
    assert get_logger("http").name == "agentsns.http"
    assert get_logger("engine").name == "agentsns.engine"


def test_mask_sensitive_data_preserves_non_sensitive() -> None:
    text = "Cycle 3 completed for agent agent-1: 2 actions"
    assert mask_sensitive_data(text) == text
