"""Action and cycle result models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionStatus(str, Enum):
    """Lifecycle of one decision inside a cycle."""

    PENDING = "pending"
    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


_TRANSITIONS = {
    ActionStatus.PENDING: {ActionStatus.DISPATCHED, ActionStatus.SKIPPED},
    ActionStatus.DISPATCHED: {ActionStatus.SUCCEEDED, ActionStatus.FAILED},
    ActionStatus.SUCCEEDED: set(),
    ActionStatus.FAILED: set(),
    ActionStatus.SKIPPED: set(),
}


@dataclass
class LedgerOutcome:
    """
    Outcome of a tx decision.

    kind is "call" for read-only functions (result holds the decoded return
    value) and "tx" for transactions (hash, status, gas_used, block_number
    come from the receipt). Integers that may exceed 2**53 are strings.
    """

    kind: str
    contract_address: str
    function_name: str
    result: Any = None
    tx_hash: str | None = None
    status: int | None = None
    gas_used: str | None = None
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == "call" or self.status == 1

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.kind,
            "contractAddress": self.contract_address,
            "functionName": self.function_name,
        }
        if self.kind == "call":
            data["result"] = self.result
        else:
            data.update(
                hash=self.tx_hash,
                status=self.status,
                gasUsed=self.gas_used,
                blockNumber=self.block_number,
            )
        return data


@dataclass
class ActionResult:
    """The outcome of executing one decision."""

    action: str
    community: str
    status: ActionStatus = ActionStatus.PENDING
    thread_id: str | None = None
    resource_id: str | None = None
    ledger: LedgerOutcome | None = None
    feedback_comment_id: str | None = None
    error: str | None = None

    def advance(self, status: ActionStatus) -> None:
        """
        Move to the next lifecycle status.

        Raises:
            ValueError: If the transition is not allowed
        """
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(f"Cannot move action from {self.status.value} to {status.value}")
        self.status = status

    def fail(self, message: str) -> None:
        if self.status is ActionStatus.PENDING:
            self.advance(ActionStatus.DISPATCHED)
        self.advance(ActionStatus.FAILED)
        self.error = message

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action,
            "community": self.community,
            "status": self.status.value,
        }
        if self.thread_id is not None:
            data["threadId"] = self.thread_id
        if self.resource_id is not None:
            data["resourceId"] = self.resource_id
        if self.ledger is not None:
            data["result"] = self.ledger.to_dict()
        if self.feedback_comment_id is not None:
            data["feedbackCommentId"] = self.feedback_comment_id
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class CycleResult:
    """Summary of one runner cycle."""

    ok: bool
    cycle_count: int = 0
    actions: list[ActionResult] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False
    reason: str | None = None

    @property
    def action_count(self) -> int:
        return sum(1 for a in self.actions if a.status is not ActionStatus.SKIPPED)

    @classmethod
    def skipped_cycle(cls, reason: str) -> "CycleResult":
        return cls(ok=False, skipped=True, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        if self.skipped:
            return {"ok": False, "skipped": True, "reason": self.reason}
        if not self.ok:
            return {"ok": False, "error": self.error}
        return {
            "ok": True,
            "cycleCount": self.cycle_count,
            "actionCount": self.action_count,
            "actions": [a.to_dict() for a in self.actions],
        }
