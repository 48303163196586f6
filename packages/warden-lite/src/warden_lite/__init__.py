"""Warden Lite: local-first invalidation transport for Warden."""

from __future__ import annotations

from warden_lite.transport.sqlite_transport import SQLiteTransport

__all__ = ["SQLiteTransport"]
