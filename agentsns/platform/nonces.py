"""
Single-use nonce issuance and consumption.

A nonce is usable iff it exists, belongs to the presenting agent, has not
been consumed and has not expired. Consumption is an atomic check-and-set
so two concurrent requests presenting the same nonce cannot both succeed.
"""

import secrets
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

NONCE_TTL = timedelta(minutes=2)
NONCE_BYTES = 16


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Nonce:
    """A nonce issued to one agent."""

    value: str
    agent_id: str
    issued_at: datetime
    expires_at: datetime
    consumed_at: datetime | None = None

    def is_usable(self, now: datetime) -> bool:
        return self.consumed_at is None and now < self.expires_at


class NonceStore(Protocol):
    """Protocol for nonce storage."""

    def add(self, nonce: Nonce) -> None:
        """Persist a freshly issued nonce."""
        ...

    def try_consume(self, agent_id: str, value: str, now: datetime) -> bool:
        """Atomically mark a usable nonce consumed; False if it was not usable."""
        ...

    def get(self, value: str) -> Nonce | None:
        """Look up a nonce by value."""
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete expired nonces, returning how many were removed."""
        ...


class InMemoryNonceStore:
    """In-process nonce storage guarded by a lock."""

    def __init__(self) -> None:
        self._nonces: dict[str, Nonce] = {}
        self._lock = threading.Lock()

    def add(self, nonce: Nonce) -> None:
        with self._lock:
            self._nonces[nonce.value] = nonce

    def try_consume(self, agent_id: str, value: str, now: datetime) -> bool:
        with self._lock:
            nonce = self._nonces.get(value)
            if nonce is None or nonce.agent_id != agent_id or not nonce.is_usable(now):
                return False
            nonce.consumed_at = now
            return True

    def get(self, value: str) -> Nonce | None:
        with self._lock:
            return self._nonces.get(value)

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [v for v, n in self._nonces.items() if n.expires_at <= now]
            for value in expired:
                del self._nonces[value]
            return len(expired)


class SQLiteNonceStore:
    """
    SQLite nonce storage.

    Consumption is a single conditional UPDATE, so processes sharing the
    database file cannot double-spend a nonce.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_db() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agent_nonces (
                    value TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL,
                    issued_at REAL NOT NULL,
                    expires_at REAL NOT NULL,
                    consumed_at REAL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_agent_nonces_expires ON agent_nonces (expires_at)"
            )
            conn.commit()

    @contextmanager
    def _get_db(self) -> Iterator[sqlite3.Connection]:
        """Get database connection."""
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def add(self, nonce: Nonce) -> None:
        with self._get_db() as conn:
            conn.execute(
                "INSERT INTO agent_nonces (value, agent_id, issued_at, expires_at, consumed_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    nonce.value,
                    nonce.agent_id,
                    nonce.issued_at.timestamp(),
                    nonce.expires_at.timestamp(),
                    nonce.consumed_at.timestamp() if nonce.consumed_at else None,
                ),
            )
            conn.commit()

    def try_consume(self, agent_id: str, value: str, now: datetime) -> bool:
        with self._get_db() as conn:
            cursor = conn.execute(
                """
                UPDATE agent_nonces SET consumed_at = ?
                WHERE value = ? AND agent_id = ? AND consumed_at IS NULL AND expires_at > ?
                """,
                (now.timestamp(), value, agent_id, now.timestamp()),
            )
            conn.commit()
            return cursor.rowcount == 1

    def get(self, value: str) -> Nonce | None:
        with self._get_db() as conn:
            row = conn.execute(
                "SELECT * FROM agent_nonces WHERE value = ?", (value,)
            ).fetchone()
        if row is None:
            return None
        return Nonce(
            value=row["value"],
            agent_id=row["agent_id"],
            issued_at=datetime.fromtimestamp(row["issued_at"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(row["expires_at"], tz=timezone.utc),
            consumed_at=(
                datetime.fromtimestamp(row["consumed_at"], tz=timezone.utc)
                if row["consumed_at"] is not None
                else None
            ),
        )

    def purge_expired(self, now: datetime) -> int:
        with self._get_db() as conn:
            cursor = conn.execute(
                "DELETE FROM agent_nonces WHERE expires_at <= ?", (now.timestamp(),)
            )
            conn.commit()
            return cursor.rowcount


class NonceService:
    """Issues and consumes per-agent nonces."""

    def __init__(
        self,
        store: NonceStore | None = None,
        ttl: timedelta = NONCE_TTL,
        clock: Callable[[], datetime] = utc_now,
        purge_interval: timedelta = NONCE_TTL,
    ) -> None:
        self.store = store if store is not None else InMemoryNonceStore()
        self.ttl = ttl
        self.purge_interval = purge_interval
        self._clock = clock
        self._next_purge: datetime | None = None

    def issue(self, agent_id: str) -> Nonce:
        """
        Issue a nonce for an agent.

        Args:
            agent_id: Owner of the nonce

        Returns:
            The new Nonce (16 random bytes, hex)
        """
        now = self._clock()
        # Expired nonces are swept at most once per purge_interval
        if self._next_purge is None or now >= self._next_purge:
            self.store.purge_expired(now)
            self._next_purge = now + self.purge_interval
        nonce = Nonce(
            value=secrets.token_hex(NONCE_BYTES),
            agent_id=agent_id,
            issued_at=now,
            expires_at=now + self.ttl,
        )
        self.store.add(nonce)
        return nonce

    def try_consume(self, agent_id: str, value: str, now: datetime | None = None) -> bool:
        """
        Consume a nonce exactly once.

        Args:
            agent_id: Agent presenting the nonce
            value: Nonce value
            now: Override the current time

        Returns:
            True if the nonce was usable and is now consumed
        """
        if not value:
            return False
        return self.store.try_consume(agent_id, value, now or self._clock())

    def purge_expired(self) -> int:
        return self.store.purge_expired(self._clock())
