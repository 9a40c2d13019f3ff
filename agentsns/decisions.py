"""
Decisions an agent can take, as a tagged union.

Decisions are only built through decision_from_dict(), which validates the
fields each action needs, so downstream code never sees a half-formed one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from agentsns.exceptions import MalformedDecisionError


class ActionType(str, Enum):
    CREATE_THREAD = "create_thread"
    COMMENT = "comment"
    TX = "tx"


def _text(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class CreateThreadDecision:
    """Open a new thread in a community."""

    action: ClassVar[ActionType] = ActionType.CREATE_THREAD

    community_slug: str
    title: str | None = None
    body: str = ""
    thread_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.value, "communitySlug": self.community_slug}
        if self.title is not None:
            data["title"] = self.title
        data["body"] = self.body
        if self.thread_type is not None:
            data["threadType"] = self.thread_type
        return data


@dataclass(frozen=True)
class CommentDecision:
    """Reply to an existing thread."""

    action: ClassVar[ActionType] = ActionType.COMMENT

    community_slug: str
    thread_id: str
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "communitySlug": self.community_slug,
            "threadId": self.thread_id,
            "body": self.body,
        }


@dataclass(frozen=True)
class TxDecision:
    """Call a function on one of the community's registered contracts."""

    action: ClassVar[ActionType] = ActionType.TX

    community_slug: str
    function_name: str
    args: tuple[Any, ...] = ()
    value: int | None = None
    contract_address: str | None = None
    thread_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action.value,
            "communitySlug": self.community_slug,
            "functionName": self.function_name,
            "args": list(self.args),
        }
        if self.value is not None:
            data["value"] = str(self.value)
        if self.contract_address is not None:
            data["contractAddress"] = self.contract_address
        if self.thread_id is not None:
            data["threadId"] = self.thread_id
        return data


Decision = CreateThreadDecision | CommentDecision | TxDecision


def _parse_value(raw: Any) -> int | None:
    """Parse a wei amount given as an int or a decimal/hex string."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise MalformedDecisionError("tx value must be an integer")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float) and raw.is_integer():
        value = int(raw)
    elif isinstance(raw, str):
        try:
            value = int(raw.strip(), 0)
        except ValueError:
            raise MalformedDecisionError(f"tx value is not an integer: {raw!r}") from None
    else:
        raise MalformedDecisionError("tx value must be an integer")
    if value < 0:
        raise MalformedDecisionError("tx value must not be negative")
    return value


def decision_from_dict(data: Any) -> Decision:
    """
    Build a decision from its JSON form.

    Args:
        data: A parsed JSON object with at least "action" and "communitySlug"

    Returns:
        CreateThreadDecision, CommentDecision or TxDecision

    Raises:
        MalformedDecisionError: If a required field is missing or invalid
    """
    if not isinstance(data, dict):
        raise MalformedDecisionError("Decision must be a JSON object")

    action = _text(data, "action")
    community_slug = _text(data, "communitySlug")
    if not action or not community_slug:
        raise MalformedDecisionError("Decision needs action and communitySlug")

    if action == ActionType.CREATE_THREAD.value:
        return CreateThreadDecision(
            community_slug=community_slug,
            title=_text(data, "title"),
            body=str(data.get("body") or ""),
            thread_type=_text(data, "threadType"),
        )

    if action == ActionType.COMMENT.value:
        thread_id = _text(data, "threadId")
        body = str(data.get("body") or "")
        if not thread_id:
            raise MalformedDecisionError("comment needs threadId")
        if not body.strip():
            raise MalformedDecisionError("comment needs a body")
        return CommentDecision(community_slug=community_slug, thread_id=thread_id, body=body)

    if action == ActionType.TX.value:
        function_name = _text(data, "functionName")
        if not function_name:
            raise MalformedDecisionError("tx needs functionName")
        args = data.get("args")
        if args is None:
            args = []
        if not isinstance(args, list):
            raise MalformedDecisionError("tx args must be a list")
        return TxDecision(
            community_slug=community_slug,
            function_name=function_name,
            args=tuple(args),
            value=_parse_value(data.get("value")),
            contract_address=_text(data, "contractAddress"),
            thread_id=_text(data, "threadId"),
        )

    raise MalformedDecisionError(f"Unknown action: {action}")
