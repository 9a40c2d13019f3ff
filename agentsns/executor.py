"""
Execution of parsed decisions.

Each decision moves pending -> dispatched -> succeeded/failed, or straight
to skipped when its community is unknown or the run was cancelled. A
failure is recorded on that decision's result and never stops the rest.
"""

import asyncio
import json
from collections.abc import Callable
from typing import TYPE_CHECKING

from agentsns.decisions import CommentDecision, CreateThreadDecision, Decision, TxDecision
from agentsns.exceptions import (
    AgentSnsError,
    ExecutionError,
    MissingExecutionCredentialsError,
    UnknownFunctionError,
)
from agentsns.ledger import Ledger, Web3Ledger, resolve_rpc_url
from agentsns.logging import get_logger, log_trace
from agentsns.types.context import Community, CommunityContext
from agentsns.types.results import ActionResult, ActionStatus, LedgerOutcome

if TYPE_CHECKING:
    from agentsns.client import PlatformClient
    from agentsns.config import ExecutionSettings

DEFAULT_THREAD_TITLE = "Agent update"

LedgerFactory = Callable[["ExecutionSettings"], Ledger]

logger = get_logger("engine")


def default_ledger_factory(execution: "ExecutionSettings") -> Ledger:
    return Web3Ledger(
        resolve_rpc_url(execution.rpc_url, execution.alchemy_api_key),
        execution.private_key,
    )


def format_tx_feedback(decision: TxDecision, outcome: LedgerOutcome) -> str:
    """Render a ledger outcome as a thread comment."""
    lines = [f"[tx feedback] {outcome.function_name} on {outcome.contract_address}"]
    if decision.args:
        lines.append(f"args: {json.dumps(list(decision.args), default=str)}")
    if decision.value is not None:
        lines.append(f"value: {decision.value}")
    if outcome.kind == "call":
        lines.append(f"result: {json.dumps(outcome.result, default=str)}")
    else:
        lines.append(f"hash: {outcome.tx_hash}")
        lines.append(f"status: {'success' if outcome.status == 1 else 'reverted'}")
        lines.append(f"gasUsed: {outcome.gas_used}")
        lines.append(f"blockNumber: {outcome.block_number}")
    return "\n".join(lines)


class ActionExecutor:
    """Runs decisions against the platform and the ledger."""

    def __init__(
        self,
        client: "PlatformClient",
        execution: "ExecutionSettings",
        ledger_factory: LedgerFactory = default_ledger_factory,
    ) -> None:
        """
        Args:
            client: Platform client signing with the runner credential
            execution: Wallet and RPC settings for tx decisions
            ledger_factory: Builds the ledger backend on first tx decision
        """
        self.client = client
        self.execution = execution
        self._ledger_factory = ledger_factory
        self._ledger: Ledger | None = None

    async def execute_all(
        self,
        decisions: list[Decision],
        context: CommunityContext,
        cancel: asyncio.Event | None = None,
    ) -> list[ActionResult]:
        """
        Execute decisions in order.

        Args:
            decisions: Parsed decisions
            context: Context the decisions were made against
            cancel: When set, remaining decisions are skipped

        Returns:
            One ActionResult per decision
        """
        results = []
        for decision in decisions:
            if cancel is not None and cancel.is_set():
                result = self._new_result(decision)
                result.advance(ActionStatus.SKIPPED)
                result.error = "Cancelled"
                results.append(result)
                continue
            results.append(await self.execute(decision, context))
        return results

    async def execute(self, decision: Decision, context: CommunityContext) -> ActionResult:
        """Execute one decision and return its result. Never raises."""
        result = self._new_result(decision)
        community = context.find(decision.community_slug)
        if community is None:
            result.advance(ActionStatus.SKIPPED)
            result.error = "Community not found"
            logger.info("Skipping %s: unknown community %s", result.action, decision.community_slug)
            return result

        result.advance(ActionStatus.DISPATCHED)
        try:
            if isinstance(decision, CreateThreadDecision):
                await self._create_thread(decision, community, result)
            elif isinstance(decision, CommentDecision):
                await self._comment(decision, result)
            else:
                await self._tx(decision, community, result)
        except Exception as e:
            message = e.message if isinstance(e, AgentSnsError) else str(e) or type(e).__name__
            logger.warning("Action %s in %s failed: %s", result.action, result.community, message)
            if result.status is ActionStatus.DISPATCHED:
                result.advance(ActionStatus.FAILED)
                result.error = message

        log_trace(logger, "action_result", result.to_dict())
        return result

    @staticmethod
    def _new_result(decision: Decision) -> ActionResult:
        return ActionResult(
            action=decision.action.value,
            community=decision.community_slug,
            thread_id=getattr(decision, "thread_id", None),
        )

    async def _create_thread(
        self, decision: CreateThreadDecision, community: Community, result: ActionResult
    ) -> None:
        thread = await self.client.threads.create_thread(
            community.community_id,
            decision.title or DEFAULT_THREAD_TITLE,
            decision.body,
            decision.thread_type,
        )
        result.thread_id = thread.thread_id
        result.resource_id = thread.thread_id
        result.advance(ActionStatus.SUCCEEDED)

    async def _comment(self, decision: CommentDecision, result: ActionResult) -> None:
        comment = await self.client.threads.create_comment(decision.thread_id, decision.body)
        result.resource_id = comment.comment_id
        result.advance(ActionStatus.SUCCEEDED)

    async def _tx(self, decision: TxDecision, community: Community, result: ActionResult) -> None:
        if not self.execution.has_credentials:
            raise MissingExecutionCredentialsError("Execution wallet or ledger RPC credentials missing")

        contract = community.select_contract(decision.contract_address)
        if contract is None:
            if decision.contract_address:
                raise ExecutionError("Contract address not allowed")
            raise ExecutionError("Contract address not available")
        if not contract.abi:
            raise UnknownFunctionError("Contract ABI not available")
        if not contract.allows(decision.function_name):
            raise UnknownFunctionError(f"Function {decision.function_name} not allowed")

        if self._ledger is None:
            self._ledger = self._ledger_factory(self.execution)
        outcome = await self._ledger.execute(contract, decision)
        result.ledger = outcome

        if not outcome.succeeded:
            result.advance(ActionStatus.FAILED)
            result.error = "Transaction reverted"
            return
        result.advance(ActionStatus.SUCCEEDED)

        if decision.thread_id:
            try:
                comment = await self.client.threads.create_comment(
                    decision.thread_id, format_tx_feedback(decision, outcome)
                )
            except AgentSnsError as e:
                logger.warning("Posting tx feedback to thread %s failed: %s", decision.thread_id, e.message)
            else:
                result.feedback_comment_id = comment.comment_id
