"""
Property-based tests for server-side verification of signed writes.

Feature: agentsns
"""

import json
import random
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from agentsns.envelope import NONCE_HEADER, SIGNATURE_HEADER, TIMESTAMP_HEADER, EnvelopeBuilder
from agentsns.exceptions import (
    HeartbeatExpiredError,
    InvalidKeyError,
    InvalidOrExpiredNonceError,
    InvalidSignatureError,
    MissingHeadersError,
    TimestampExpiredError,
)
from agentsns.platform.identities import AgentDirectory, AgentIdentity
from agentsns.platform.liveness import HeartbeatLog, LivenessGate
from agentsns.platform.nonces import NonceService
from agentsns.platform.verifier import AuthVerifier
from agentsns.signers import AgentKeySigner, RunnerTokenSigner, Signer

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

body_strategy = st.dictionaries(
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=8),
    st.one_of(st.integers(min_value=-10**6, max_value=10**6), st.text(max_size=20), st.booleans()),
    max_size=6,
)


class FixedClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def ms(self, offset: timedelta = timedelta(0)) -> int:
        return int((self.now + offset).timestamp() * 1000)


class Harness:
    """Verifier wired to one registered agent, with helpers to sign writes."""

    def __init__(self) -> None:
        self.clock = FixedClock()
        self.directory = AgentDirectory()
        self.agent = self.directory.register(AgentIdentity(
            agent_id="agent-1",
            handle="one",
            agent_key="ak_one",
            account_secret="secret-one",
        ))
        self.directory.register(AgentIdentity(
            agent_id="agent-2",
            handle="two",
            agent_key="ak_two",
            account_secret="secret-two",
        ))
        self.runner_token = self.directory.issue_runner_token("agent-1")
        self.nonces = NonceService(clock=self.clock)
        self.heartbeats = HeartbeatLog(clock=self.clock)
        self.verifier = AuthVerifier(
            self.directory,
            self.nonces,
            LivenessGate(self.heartbeats),
            clock=self.clock,
        )

    def beat(self, agent_id: str = "agent-1", age: timedelta = timedelta(0)) -> None:
        self.heartbeats.record(agent_id, now=self.clock.now - age)

    def key_signer(self) -> Signer:
        return AgentKeySigner("ak_one", "secret-one")

    def runner_signer(self) -> Signer:
        return RunnerTokenSigner(self.runner_token, "agent-1")

    def signed(
        self,
        signer: Signer,
        body: dict,
        nonce: str | None = None,
        offset: timedelta = timedelta(0),
    ) -> tuple[dict[str, str], bytes]:
        nonce = nonce or self.nonces.issue("agent-1").value
        envelope = EnvelopeBuilder(signer).build(nonce, body, timestamp_ms=self.clock.ms(offset))
        return envelope.to_headers(), json.dumps(body).encode("utf-8")


@pytest.fixture
def harness() -> Harness:
    h = Harness()
    h.beat()
    return h


@given(body=body_strategy, seed=st.integers(min_value=0, max_value=1000))
@settings(max_examples=100)
def test_key_order_on_the_wire_does_not_matter(body: dict, seed: int) -> None:
    """
    Property 1: Verification uses the canonical body

    For any body, a signed write SHALL verify no matter how the sender
    ordered the object keys when serializing.
    """
    harness = Harness()
    harness.beat()
    headers, _ = harness.signed(harness.runner_signer(), body)
    items = list(body.items())
    random.Random(seed).shuffle(items)
    raw = json.dumps(dict(items), ensure_ascii=False).encode("utf-8")

    assert harness.verifier.verify_write(headers, raw).agent_id == "agent-1"


@pytest.mark.parametrize("mode", ["key", "runner"])
def test_valid_write_accepted(harness: Harness, mode: str) -> None:
    signer = harness.key_signer() if mode == "key" else harness.runner_signer()
    headers, raw = harness.signed(signer, {"title": "t", "body": "b"})

    identity = harness.verifier.verify_write(headers, raw)

    assert identity.agent_id == "agent-1"


def test_header_names_are_case_insensitive(harness: Harness) -> None:
    headers, raw = harness.signed(harness.runner_signer(), {"a": 1})
    upper = {k.upper(): v for k, v in headers.items()}
    assert harness.verifier.verify_write(upper, raw).agent_id == "agent-1"


def test_unknown_credential_rejected(harness: Harness) -> None:
    headers, raw = harness.signed(AgentKeySigner("ak_nobody", "x"), {})
    with pytest.raises(InvalidKeyError):
        harness.verifier.verify_write(headers, raw)


def test_runner_token_for_other_agent_rejected(harness: Harness) -> None:
    headers, raw = harness.signed(RunnerTokenSigner(harness.runner_token, "agent-2"), {})
    with pytest.raises(InvalidKeyError):
        harness.verifier.verify_write(headers, raw)


def test_inactive_agent_rejected(harness: Harness) -> None:
    harness.agent.is_active = False
    headers, raw = harness.signed(harness.key_signer(), {})
    with pytest.raises(InvalidKeyError, match="not active"):
        harness.verifier.verify_write(headers, raw)


@pytest.mark.parametrize("header", [NONCE_HEADER, TIMESTAMP_HEADER, SIGNATURE_HEADER])
def test_missing_signature_header(harness: Harness, header: str) -> None:
    headers, raw = harness.signed(harness.key_signer(), {})
    del headers[header]
    with pytest.raises(MissingHeadersError):
        harness.verifier.verify_write(headers, raw)


@pytest.mark.parametrize("offset", [timedelta(minutes=-3), timedelta(minutes=3)])
def test_timestamp_outside_window_keeps_nonce(harness: Harness, offset: timedelta) -> None:
    nonce = harness.nonces.issue("agent-1").value
    headers, raw = harness.signed(harness.key_signer(), {}, nonce=nonce, offset=offset)

    with pytest.raises(TimestampExpiredError):
        harness.verifier.verify_write(headers, raw)
    assert harness.nonces.try_consume("agent-1", nonce) is True


def test_timestamp_inside_window_accepted(harness: Harness) -> None:
    headers, raw = harness.signed(harness.key_signer(), {}, offset=timedelta(seconds=-110))
    assert harness.verifier.verify_write(headers, raw).agent_id == "agent-1"


def test_non_numeric_timestamp_rejected(harness: Harness) -> None:
    headers, raw = harness.signed(harness.key_signer(), {})
    headers[TIMESTAMP_HEADER] = "yesterday"
    with pytest.raises(TimestampExpiredError):
        harness.verifier.verify_write(headers, raw)


def test_replayed_nonce_rejected(harness: Harness) -> None:
    nonce = harness.nonces.issue("agent-1").value
    headers, raw = harness.signed(harness.key_signer(), {"n": 1}, nonce=nonce)
    harness.verifier.verify_write(headers, raw)

    with pytest.raises(InvalidOrExpiredNonceError):
        harness.verifier.verify_write(headers, raw)


def test_nonce_of_other_agent_rejected(harness: Harness) -> None:
    foreign = harness.nonces.issue("agent-2").value
    headers, raw = harness.signed(harness.key_signer(), {}, nonce=foreign)
    with pytest.raises(InvalidOrExpiredNonceError):
        harness.verifier.verify_write(headers, raw)


def test_missing_heartbeat_rejected_after_nonce_consumed() -> None:
    harness = Harness()
    nonce = harness.nonces.issue("agent-1").value
    headers, raw = harness.signed(harness.key_signer(), {}, nonce=nonce)

    with pytest.raises(HeartbeatExpiredError):
        harness.verifier.verify_write(headers, raw)
    assert harness.nonces.try_consume("agent-1", nonce) is False


def test_stale_heartbeat_rejected() -> None:
    harness = Harness()
    harness.beat(age=timedelta(minutes=3))
    headers, raw = harness.signed(harness.key_signer(), {})
    with pytest.raises(HeartbeatExpiredError):
        harness.verifier.verify_write(headers, raw)


def test_bad_signature_still_burns_nonce(harness: Harness) -> None:
    nonce = harness.nonces.issue("agent-1").value
    headers, raw = harness.signed(harness.key_signer(), {"title": "original"}, nonce=nonce)
    tampered = json.dumps({"title": "tampered"}).encode("utf-8")

    with pytest.raises(InvalidSignatureError):
        harness.verifier.verify_write(headers, tampered)
    with pytest.raises(InvalidOrExpiredNonceError):
        harness.verifier.verify_write(headers, raw)


def test_runner_signature_without_agent_suffix_rejected(harness: Harness) -> None:
    # Signed with the runner token as a plain key, so no agent id is bound
    headers, raw = harness.signed(AgentKeySigner("unused", harness.runner_token), {"a": 1})
    headers.pop("x-agent-key")
    headers.update(harness.runner_signer().credential_headers())

    with pytest.raises(InvalidSignatureError):
        harness.verifier.verify_write(headers, raw)


def test_non_json_body_rejected(harness: Harness) -> None:
    headers, _ = harness.signed(harness.key_signer(), {})
    with pytest.raises(InvalidSignatureError):
        harness.verifier.verify_write(headers, b"not json")


def test_empty_body_verifies_as_empty_object(harness: Harness) -> None:
    headers, _ = harness.signed(harness.key_signer(), {})
    assert harness.verifier.verify_write(headers, b"").agent_id == "agent-1"


def test_resolve_reader(harness: Harness) -> None:
    assert harness.verifier.resolve_reader({"X-Agent-Key": "ak_one"}).agent_id == "agent-1"
    with pytest.raises(InvalidKeyError):
        harness.verifier.resolve_reader({})
