"""
Ledger execution for tx decisions.

Read-only functions (view/pure) are called; everything else is sent as a
locally signed transaction and awaited for one confirmation. web3 is
synchronous, so every call runs in a worker thread.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

from web3 import Web3
from web3.exceptions import ContractLogicError

from agentsns.decisions import TxDecision
from agentsns.exceptions import (
    LedgerCallRevertedError,
    MissingExecutionCredentialsError,
    UnknownFunctionError,
)
from agentsns.logging import get_logger
from agentsns.types.context import ContractInterface
from agentsns.types.results import LedgerOutcome

ALCHEMY_SEPOLIA_URL = "https://eth-sepolia.g.alchemy.com/v2/{key}"
RECEIPT_TIMEOUT = 180
READ_ONLY_MUTABILITY = ("view", "pure")

logger = get_logger("engine")


def to_json_safe(value: Any) -> Any:
    """
    Convert ledger return values into JSON-safe data.

    Integers become decimal strings (they routinely exceed 2**53), bytes
    become 0x-prefixed hex, tuples become lists.
    """
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Mapping):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    return str(value)


def find_function_abi(
    abi: list[dict[str, Any]], function_name: str, arg_count: int | None = None
) -> dict[str, Any]:
    """
    Find a function fragment by name, preferring the overload matching arg_count.

    Raises:
        UnknownFunctionError: If the ABI has no such function
    """
    matches = [
        entry for entry in abi
        if isinstance(entry, dict) and entry.get("type", "function") == "function"
        and entry.get("name") == function_name
    ]
    if not matches:
        raise UnknownFunctionError(f"Function {function_name} not found in ABI")
    if arg_count is not None:
        for entry in matches:
            if len(entry.get("inputs") or []) == arg_count:
                return entry
    return matches[0]


def is_read_only(fragment: dict[str, Any]) -> bool:
    mutability = fragment.get("stateMutability")
    if mutability:
        return mutability in READ_ONLY_MUTABILITY
    return bool(fragment.get("constant"))


def _coerce_arg(abi_type: str, value: Any) -> Any:
    if abi_type == "address" and isinstance(value, str):
        return Web3.to_checksum_address(value)
    if abi_type.startswith(("uint", "int")) and "[" not in abi_type and isinstance(value, str):
        return int(value.strip(), 0)
    if abi_type == "bool" and isinstance(value, str):
        return value.strip().lower() == "true"
    return value


def coerce_args(fragment: dict[str, Any], args: tuple[Any, ...]) -> list[Any]:
    """Convert JSON-ish arguments (string numbers, lowercase addresses) to ABI types."""
    inputs = fragment.get("inputs") or []
    return [
        _coerce_arg(str(inputs[i].get("type", "")), arg) if i < len(inputs) else arg
        for i, arg in enumerate(args)
    ]


def resolve_rpc_url(rpc_url: str, alchemy_api_key: str) -> str:
    """
    Raises:
        MissingExecutionCredentialsError: If neither an RPC URL nor an Alchemy key is set
    """
    if rpc_url:
        return rpc_url
    if alchemy_api_key:
        return ALCHEMY_SEPOLIA_URL.format(key=alchemy_api_key)
    raise MissingExecutionCredentialsError("Ledger RPC credentials missing")


class Ledger(Protocol):
    """Anything that can execute a tx decision against a contract."""

    async def execute(self, contract: ContractInterface, decision: TxDecision) -> LedgerOutcome:
        ...


class Web3Ledger:
    """
    Ledger backed by a JSON-RPC endpoint and a local signing key.

    Example:
        ```python
        ledger = Web3Ledger("https://eth-sepolia.g.alchemy.com/v2/KEY", private_key)
        outcome = await ledger.execute(contract, decision)
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ) -> None:
        if not private_key:
            raise MissingExecutionCredentialsError("Execution wallet private key missing")
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
        self.account = self.w3.eth.account.from_key(private_key)
        self.receipt_timeout = receipt_timeout

    async def execute(self, contract: ContractInterface, decision: TxDecision) -> LedgerOutcome:
        return await asyncio.to_thread(self._execute_sync, contract, decision)

    def _execute_sync(self, contract: ContractInterface, decision: TxDecision) -> LedgerOutcome:
        fragment = find_function_abi(contract.abi, decision.function_name, len(decision.args))
        address = Web3.to_checksum_address(contract.address)
        instance = self.w3.eth.contract(address=address, abi=[fragment])
        function = instance.functions[decision.function_name](*coerce_args(fragment, decision.args))

        if is_read_only(fragment):
            try:
                result = function.call({"from": self.account.address})
            except ContractLogicError as e:
                raise LedgerCallRevertedError(f"Call reverted: {e}") from e
            return LedgerOutcome(
                kind="call",
                contract_address=address,
                function_name=decision.function_name,
                result=to_json_safe(result),
            )

        sender = self.account.address
        try:
            tx = function.build_transaction({
                "from": sender,
                "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
                "value": decision.value or 0,
            })
        except ContractLogicError as e:
            raise LedgerCallRevertedError(f"Transaction would revert: {e}") from e

        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info("Sent %s to %s: %s", decision.function_name, address, Web3.to_hex(tx_hash))
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)

        return LedgerOutcome(
            kind="tx",
            contract_address=address,
            function_name=decision.function_name,
            tx_hash=Web3.to_hex(tx_hash),
            status=int(receipt["status"]),
            gas_used=str(receipt["gasUsed"]),
            block_number=int(receipt["blockNumber"]),
        )
