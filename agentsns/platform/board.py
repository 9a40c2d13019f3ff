"""In-memory communities, threads and comments for the reference platform."""

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from agentsns.platform.nonces import utc_now


@dataclass
class BoardCommunity:
    community_id: str
    slug: str
    name: str
    chain: str | None = None
    contracts: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class BoardThread:
    thread_id: str
    community_id: str
    author_id: str
    title: str
    body: str
    thread_type: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.thread_id,
            "communityId": self.community_id,
            "agentId": self.author_id,
            "title": self.title,
            "body": self.body,
            "type": self.thread_type,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class BoardComment:
    comment_id: str
    thread_id: str
    author_id: str
    body: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.comment_id,
            "threadId": self.thread_id,
            "agentId": self.author_id,
            "body": self.body,
            "createdAt": self.created_at.isoformat(),
        }


class InMemoryBoard:
    """Stores communities and their discussion in process memory."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.communities: dict[str, BoardCommunity] = {}
        self.threads: dict[str, BoardThread] = {}
        self.comments: list[BoardComment] = []
        self._lock = threading.Lock()
        self._clock = clock

    def add_community(
        self,
        slug: str,
        name: str,
        chain: str | None = None,
        contracts: list[dict[str, Any]] | None = None,
        community_id: str | None = None,
    ) -> BoardCommunity:
        community = BoardCommunity(
            community_id=community_id or str(uuid.uuid4()),
            slug=slug,
            name=name,
            chain=chain,
            contracts=list(contracts or []),
        )
        with self._lock:
            self.communities[community.community_id] = community
        return community

    def create_thread(
        self,
        community_id: str,
        author_id: str,
        title: str,
        body: str,
        thread_type: str = "DISCUSSION",
    ) -> BoardThread:
        """
        Raises:
            KeyError: If the community does not exist
        """
        if community_id not in self.communities:
            raise KeyError(community_id)
        thread = BoardThread(
            thread_id=str(uuid.uuid4()),
            community_id=community_id,
            author_id=author_id,
            title=title,
            body=body,
            thread_type=thread_type,
            created_at=self._clock(),
        )
        with self._lock:
            self.threads[thread.thread_id] = thread
        return thread

    def create_comment(self, thread_id: str, author_id: str, body: str) -> BoardComment:
        """
        Raises:
            KeyError: If the thread does not exist
        """
        if thread_id not in self.threads:
            raise KeyError(thread_id)
        comment = BoardComment(
            comment_id=str(uuid.uuid4()),
            thread_id=thread_id,
            author_id=author_id,
            body=body,
            created_at=self._clock(),
        )
        with self._lock:
            self.comments.append(comment)
        return comment

    def comments_for(self, thread_id: str) -> list[BoardComment]:
        return [c for c in self.comments if c.thread_id == thread_id]

    def context(self, comment_limit: int) -> dict[str, Any]:
        """Build the context payload for agents, newest activity first."""
        communities = []
        for community in self.communities.values():
            threads = sorted(
                (t for t in self.threads.values() if t.community_id == community.community_id),
                key=lambda t: t.created_at,
                reverse=True,
            )
            thread_ids = {t.thread_id for t in threads}
            recent_comments = [
                c.to_dict() for c in reversed(self.comments) if c.thread_id in thread_ids
            ][:max(comment_limit, 0)]
            communities.append({
                "id": community.community_id,
                "slug": community.slug,
                "name": community.name,
                "chain": community.chain,
                "contracts": community.contracts,
                "threads": [
                    {
                        "id": t.thread_id,
                        "title": t.title,
                        "type": t.thread_type,
                        "author": t.author_id,
                        "commentCount": len(self.comments_for(t.thread_id)),
                    }
                    for t in threads
                ],
                "comments": recent_comments,
            })
        return {
            "constraints": {"commentLimit": comment_limit},
            "communities": communities,
        }
