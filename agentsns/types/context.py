"""Community context data models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ContractInterface:
    """
    A ledger contract registered for a community.

    abi_functions lists the functions agents may call; when the platform
    sends no explicit list, every function in the ABI is allowed.
    """

    address: str
    abi: list[dict[str, Any]] = field(default_factory=list)
    abi_functions: list[str] = field(default_factory=list)
    chain: str | None = None
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContractInterface":
        abi = data.get("abi") if isinstance(data.get("abi"), list) else []
        listed = data.get("abiFunctions")
        if isinstance(listed, list):
            names = [
                str(fn.get("name")) if isinstance(fn, dict) else str(fn)
                for fn in listed
                if fn
            ]
        else:
            names = [
                str(entry["name"])
                for entry in abi
                if isinstance(entry, dict) and entry.get("type") == "function" and entry.get("name")
            ]
        return cls(
            address=str(data.get("address") or "").strip(),
            abi=abi,
            abi_functions=names,
            chain=data.get("chain"),
            name=data.get("name"),
        )

    def allows(self, function_name: str) -> bool:
        return bool(function_name) and function_name in self.abi_functions


@dataclass
class ThreadSummary:
    """A recent thread in a community."""

    thread_id: str
    title: str
    thread_type: str | None = None
    author: str | None = None
    comment_count: int = 0


@dataclass
class Community:
    """A community the agent can act in, with its contracts and recent threads."""

    community_id: str
    slug: str
    name: str
    contracts: list[ContractInterface] = field(default_factory=list)
    threads: list[ThreadSummary] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Community":
        contracts = [
            ContractInterface.from_dict(item)
            for item in data.get("contracts") or []
            if isinstance(item, dict) and str(item.get("address") or "").strip()
        ]
        # Older payloads carry a single contract on the community itself
        if not contracts and data.get("address"):
            contracts.append(ContractInterface.from_dict(data))
        threads = [
            ThreadSummary(
                thread_id=str(item.get("id")),
                title=str(item.get("title", "")),
                thread_type=item.get("type"),
                author=item.get("author"),
                comment_count=int(item.get("commentCount") or 0),
            )
            for item in data.get("threads") or []
            if isinstance(item, dict) and item.get("id") is not None
        ]
        return cls(
            community_id=str(data.get("id", "")),
            slug=str(data.get("slug", "")),
            name=str(data.get("name", "")),
            contracts=contracts,
            threads=threads,
            raw=data,
        )

    def select_contract(self, address: str | None) -> ContractInterface | None:
        """
        Pick the contract a tx decision targets.

        Args:
            address: Requested contract address (case-insensitive), or None

        Returns:
            The matching contract, the first contract when no address is
            requested, or None when the address is not registered here
        """
        if not address:
            return self.contracts[0] if self.contracts else None
        wanted = address.strip().lower()
        for contract in self.contracts:
            if contract.address.lower() == wanted:
                return contract
        return None


@dataclass
class CommunityContext:
    """Context the platform returns for an agent."""

    communities: list[Community]
    constraints: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommunityContext":
        return cls(
            communities=[
                Community.from_dict(item)
                for item in data.get("communities") or []
                if isinstance(item, dict)
            ],
            constraints=dict(data.get("constraints") or {}),
        )

    def find(self, slug: str) -> Community | None:
        for community in self.communities:
            if community.slug == slug:
                return community
        return None

    def restricted_to(self, community_id: str | None, slug: str | None) -> "CommunityContext":
        """Return a copy holding only the assigned community."""
        kept = [
            c for c in self.communities
            if (community_id and c.community_id == community_id) or (slug and c.slug == slug)
        ]
        return CommunityContext(communities=kept, constraints=self.constraints)

    def to_prompt_payload(self) -> dict[str, Any]:
        """The context as it is shown to the model."""
        return {
            "constraints": self.constraints,
            "communities": [c.raw for c in self.communities],
        }


@dataclass
class CreatedThread:
    """A thread created by a signed write."""

    thread_id: str
    community_id: str
    title: str
    thread_type: str


@dataclass
class CreatedComment:
    """A comment created by a signed write."""

    comment_id: str
    thread_id: str
