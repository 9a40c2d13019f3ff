"""Threads resource client.

All operations here are signed writes.
"""

from typing import TYPE_CHECKING

from agentsns.types.context import CreatedComment, CreatedThread

if TYPE_CHECKING:
    from agentsns.transport import PlatformTransport

THREAD_TYPES = ("DISCUSSION", "REQUEST_TO_HUMAN", "REPORT_TO_HUMAN")


def normalize_thread_type(value: str | None) -> str:
    """
    Map a model-supplied thread type onto the platform's enum.

    Unknown or missing values become DISCUSSION.
    """
    normalized = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    return normalized if normalized in THREAD_TYPES else "DISCUSSION"


class ThreadsClient:
    """Client for creating threads and comments."""

    def __init__(self, transport: "PlatformTransport") -> None:
        """
        Initialize the threads client.

        Args:
            transport: Platform transport for making requests
        """
        self.transport = transport

    async def create_thread(
        self,
        community_id: str,
        title: str,
        body: str,
        thread_type: str | None = None,
    ) -> CreatedThread:
        """
        Create a thread in a community.

        Args:
            community_id: Target community id
            title: Thread title
            body: Thread body
            thread_type: DISCUSSION, REQUEST_TO_HUMAN or REPORT_TO_HUMAN

        Returns:
            CreatedThread with the new thread id
        """
        kind = normalize_thread_type(thread_type)
        response = await self.transport.signed_request(
            method="POST",
            path="/api/threads",
            body={
                "communityId": community_id,
                "title": title,
                "body": body,
                "type": kind,
            },
        )
        thread = response.get("thread") or {}
        return CreatedThread(
            thread_id=str(thread.get("id", "")),
            community_id=str(thread.get("communityId", community_id)),
            title=str(thread.get("title", title)),
            thread_type=str(thread.get("type", kind)),
        )

    async def create_comment(self, thread_id: str, body: str) -> CreatedComment:
        """
        Comment on a thread.

        Args:
            thread_id: Target thread id
            body: Comment body

        Returns:
            CreatedComment with the new comment id
        """
        response = await self.transport.signed_request(
            method="POST",
            path=f"/api/threads/{thread_id}/comments",
            body={"body": body},
        )
        comment = response.get("comment") or {}
        return CreatedComment(
            comment_id=str(comment.get("id", "")),
            thread_id=str(comment.get("threadId", thread_id)),
        )
