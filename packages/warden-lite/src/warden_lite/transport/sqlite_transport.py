"""InvalidationTransport backed by a local SQLite database shared between processes."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from warden_core.interfaces.transport import TransportError

if TYPE_CHECKING:
    from warden_core.config.models import BroadcastConfig

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS invalidations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    channel TEXT NOT NULL,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_invalidations_channel ON invalidations(channel, id);
"""


class SQLiteTransport:
    """InvalidationTransport using an append-only SQLite table in WAL mode.

    Every process on the machine that opens the same database file and
    channel sees every message. Each endpoint remembers the highest row id
    it has read, starting from the end of the table, so only messages sent
    after it connected are received. Its own messages are returned too; the
    broadcaster drops them by origin.
    """

    def __init__(self, db_path: str = ".warden/invalidations.db", channel: str = "warden-permissions") -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(path)
        self.channel = channel
        self._lock = threading.Lock()
        # Autocommit; the listener thread and callers share this connection under _lock.
        self._conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=5, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        row = self._conn.execute(
            "SELECT COALESCE(MAX(id), 0) FROM invalidations WHERE channel = ?", (channel,)
        ).fetchone()
        self._last_seen: int = row[0]
        self._closed = False

    @classmethod
    def from_config(cls, config: BroadcastConfig) -> SQLiteTransport:
        return cls(db_path=config.sqlite_path, channel=config.channel)

    # -- helpers ---------------------------------------------------------------

    def _now_iso(self) -> str:
        return datetime.now(UTC).isoformat()

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise TransportError("sqlite", operation, RuntimeError("transport is closed"))

    # -- InvalidationTransport protocol ----------------------------------------

    def send(self, message: str) -> None:
        """Append a message to the channel."""
        with self._lock:
            self._check_open("send")
            try:
                self._conn.execute(
                    "INSERT INTO invalidations (channel, message, created_at) VALUES (?, ?, ?)",
                    (self.channel, message, self._now_iso()),
                )
            except sqlite3.Error as e:
                raise TransportError("sqlite", "send", e) from e

    def receive(self) -> list[str]:
        """Return messages appended since the last call, oldest first."""
        with self._lock:
            self._check_open("receive")
            try:
                rows = self._conn.execute(
                    "SELECT id, message FROM invalidations WHERE channel = ? AND id > ? ORDER BY id ASC",
                    (self.channel, self._last_seen),
                ).fetchall()
            except sqlite3.Error as e:
                raise TransportError("sqlite", "receive", e) from e
            if rows:
                self._last_seen = rows[-1][0]
            return [message for _, message in rows]

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._conn.close()

    # -- extras ----------------------------------------------------------------

    def prune(self, older_than: timedelta = timedelta(hours=1)) -> int:
        """Delete messages older than ``older_than``. Returns the number removed."""
        cutoff = (datetime.now(UTC) - older_than).isoformat()
        with self._lock:
            self._check_open("prune")
            cursor = self._conn.execute(
                "DELETE FROM invalidations WHERE channel = ? AND created_at < ?",
                (self.channel, cutoff),
            )
        if cursor.rowcount:
            logger.debug("Pruned %d old invalidation messages from %s", cursor.rowcount, self.db_path)
        return cursor.rowcount

    def stats(self) -> dict[str, int]:
        with self._lock:
            self._check_open("stats")
            total = self._conn.execute(
                "SELECT COUNT(*) FROM invalidations WHERE channel = ?", (self.channel,)
            ).fetchone()[0]
        return {"messages": total, "last_seen": self._last_seen}
