"""User-profile store: the source of delegated credentials.

The store is an external collaborator with a deliberately narrow interface:
``get(user_id)`` returns the profile document (or ``None``) and
``update(user_id, fields)`` merges fields into it. Token fields are named by
the ``OAuthProvider`` that reads them (e.g. ``googleToken`` /
``googleRefreshToken``).
"""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ProfileStore(Protocol):
    """Protocol for user-profile backends."""

    def get(self, user_id: str) -> dict[str, Any] | None:
        """Return the profile document for *user_id*, or ``None``."""
        ...

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        """Merge *fields* into the profile of *user_id*, creating it if needed."""
        ...


class InMemoryProfileStore:
    """Dict-backed store for tests and embedding."""

    def __init__(self, profiles: dict[str, dict[str, Any]] | None = None) -> None:
        self._profiles: dict[str, dict[str, Any]] = {
            uid: dict(doc) for uid, doc in (profiles or {}).items()
        }
        self._lock = threading.Lock()

    def get(self, user_id: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._profiles.get(user_id)
            return dict(doc) if doc is not None else None

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            self._profiles.setdefault(user_id, {}).update(fields)


_CREATE_PROFILES = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id   TEXT PRIMARY KEY,
    doc_json  TEXT NOT NULL DEFAULT '{}'
);
"""


class SqliteProfileStore:
    """One JSON document per user in a SQLite table.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(_CREATE_PROFILES)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def get(self, user_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT doc_json FROM profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        with self._connect() as conn:
            # Read-modify-write inside one transaction.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT doc_json FROM profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
            doc = json.loads(row[0]) if row else {}
            doc.update(fields)
            conn.execute(
                "INSERT INTO profiles (user_id, doc_json) VALUES (?, ?) "
                "ON CONFLICT(user_id) DO UPDATE SET doc_json = excluded.doc_json",
                (user_id, json.dumps(doc, sort_keys=True)),
            )
            conn.commit()
