"""agentsns exception classes."""


class AgentSnsError(Exception):
    """Base exception for all agentsns errors."""

    def __init__(
        self, code: str, message: str, request_id: str | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id
        super().__init__(f"[{code}] {message}")


class ConfigurationError(AgentSnsError):
    """Raised when runner or client configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


# ============================================================================
# Authentication (raised by the platform's write verifier)
# ============================================================================


class AuthError(AgentSnsError):
    """Raised when a signed write fails verification."""

    code = "AUTH_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(type(self).code, message)


class InvalidKeyError(AuthError):
    """Raised when the capability key or runner credential does not resolve."""

    code = "INVALID_KEY"


class MissingHeadersError(AuthError):
    """Raised when nonce, timestamp or signature headers are absent."""

    code = "MISSING_HEADERS"


class TimestampExpiredError(AuthError):
    """Raised when the request timestamp is outside the accepted window."""

    code = "TIMESTAMP_EXPIRED"


class InvalidOrExpiredNonceError(AuthError):
    """Raised when the nonce is unknown, consumed, expired or not owned."""

    code = "INVALID_OR_EXPIRED_NONCE"


class HeartbeatExpiredError(AuthError):
    """Raised when the agent has no recent heartbeat."""

    code = "HEARTBEAT_EXPIRED"


class InvalidSignatureError(AuthError):
    """Raised when the signature does not match the request."""

    code = "INVALID_SIGNATURE"


# ============================================================================
# Decision parsing
# ============================================================================


class DecisionError(AgentSnsError):
    """Raised when model output cannot be turned into decisions."""

    code = "DECISION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(type(self).code, message)


class NoJsonFoundError(DecisionError):
    """Raised when the model output contains no JSON at all."""

    code = "NO_JSON_FOUND"


class MalformedDecisionError(DecisionError):
    """Raised when JSON is present but cannot be parsed or validated."""

    code = "MALFORMED_DECISION"


class NoValidActionsError(DecisionError):
    """Raised when no element of the parsed output is a valid decision."""

    code = "NO_VALID_ACTIONS"


# ============================================================================
# Action execution (scoped to one decision)
# ============================================================================


class ExecutionError(AgentSnsError):
    """Raised when a single decision cannot be executed."""

    code = "EXECUTION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(type(self).code, message)


class CommunityNotFoundError(ExecutionError):
    """Raised when a community slug or assignment matches nothing."""

    code = "COMMUNITY_NOT_FOUND"


class UnknownFunctionError(ExecutionError):
    """Raised when a contract function is absent from the recorded ABI."""

    code = "UNKNOWN_FUNCTION"


class MissingExecutionCredentialsError(ExecutionError):
    """Raised when a tx decision arrives without wallet or RPC credentials."""

    code = "MISSING_EXECUTION_CREDENTIALS"


class LedgerCallRevertedError(ExecutionError):
    """Raised when a ledger call or transaction reverts."""

    code = "LEDGER_CALL_REVERTED"

    def __init__(self, message: str, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


# ============================================================================
# Transport (remote HTTP failures)
# ============================================================================


class TransportError(AgentSnsError):
    """Raised when a remote endpoint answers with an error or cannot be reached."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(code, message, request_id)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """Raised when the platform rejects credentials or a signature (401)."""

    pass


class AuthorizationError(TransportError):
    """Raised when access is denied (403)."""

    pass


class NotFoundError(TransportError):
    """Raised when a resource is not found (404)."""

    pass


class ConflictError(TransportError):
    """Raised on conflicts (409)."""

    pass


class RateLimitedError(TransportError):
    """Raised when rate limited (429)."""

    def __init__(
        self,
        code: str,
        message: str,
        retry_after: int,
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id, status_code=429)
        self.retry_after = retry_after


class ValidationError(TransportError):
    """Raised on other 4xx responses."""

    pass


class ServerError(TransportError):
    """Raised on server errors (5xx) and connection failures."""

    pass


class LlmError(TransportError):
    """Raised when a language model endpoint fails or returns no text."""

    pass


# ============================================================================
# Runner lifecycle
# ============================================================================


class RunnerError(AgentSnsError):
    """Raised on invalid runner lifecycle operations."""

    code = "RUNNER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(type(self).code, message)


class AlreadyRunningError(RunnerError):
    """Raised when starting a runner that is already running."""

    code = "ALREADY_RUNNING"


class NotRunningError(RunnerError):
    """Raised when an operation needs a running runner and there is none."""

    code = "NOT_RUNNING"
