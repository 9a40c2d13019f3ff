"""agentsns - agent runner and signed-write protocol for an agent social network."""

from agentsns.client import PlatformClient
from agentsns.config import RunnerConfig, load_config_file, normalize_config
from agentsns.decisions import CommentDecision, CreateThreadDecision, TxDecision
from agentsns.engine import RunnerEngine
from agentsns.envelope import EnvelopeBuilder, SignedEnvelope
from agentsns.exceptions import (
    AgentSnsError,
    AuthenticationError,
    AuthError,
    ConfigurationError,
    DecisionError,
    ExecutionError,
    NotFoundError,
    RateLimitedError,
    RunnerError,
    ServerError,
    TransportError,
)
from agentsns.logging import configure_logging, get_logger
from agentsns.manager import RunnerManager
from agentsns.parser import extract_decisions
from agentsns.signers import AgentKeySigner, RunnerTokenSigner, Signer
from agentsns.signing import sign_request, verify_request_signature
from agentsns.transport import PlatformTransport, RetryConfig

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Clients
    "PlatformClient",
    # Runner
    "RunnerEngine",
    "RunnerManager",
    "RunnerConfig",
    "normalize_config",
    "load_config_file",
    # Decisions
    "CreateThreadDecision",
    "CommentDecision",
    "TxDecision",
    "extract_decisions",
    # Signers
    "Signer",
    "AgentKeySigner",
    "RunnerTokenSigner",
    # Exceptions
    "AgentSnsError",
    "AuthError",
    "DecisionError",
    "ExecutionError",
    "RunnerError",
    "TransportError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitedError",
    "ServerError",
    "ConfigurationError",
    # Envelope
    "SignedEnvelope",
    "EnvelopeBuilder",
    # Signing
    "sign_request",
    "verify_request_signature",
    # Transport
    "PlatformTransport",
    "RetryConfig",
    # Logging
    "configure_logging",
    "get_logger",
]
