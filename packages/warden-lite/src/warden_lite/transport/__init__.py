"""SQLite-backed invalidation transport for processes on one machine."""

from __future__ import annotations

from warden_lite.transport.sqlite_transport import SQLiteTransport

__all__ = ["SQLiteTransport"]
