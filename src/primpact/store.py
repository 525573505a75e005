"""Persistent storage for codebase-index caches and impact-map overrides.

Both are opaque JSON blobs keyed by (user, repository); the store never
interprets them beyond validating on read.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from primpact.codebase.models import CodebaseIndex
from primpact.config import ImpactMapConfig
from primpact.exceptions import ConfigError


class PrimpactStore:
    """SQLite-backed key/value store."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        return self._conn

    def _create_tables(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS codebase_index (
                user_id TEXT NOT NULL,
                repo TEXT NOT NULL,
                commit_sha TEXT NOT NULL,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (user_id, repo)
            );

            CREATE TABLE IF NOT EXISTS impact_map (
                user_id TEXT NOT NULL,
                repo TEXT NOT NULL,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (user_id, repo)
            );
        """)
        conn.commit()

    # ------------------------------------------------------------------
    # Codebase index cache
    # ------------------------------------------------------------------

    def get_index(self, user_id: str, repo: str) -> CodebaseIndex | None:
        """Return the cached index, or None when absent or unreadable."""
        row = self._get_conn().execute(
            "SELECT data FROM codebase_index WHERE user_id = ? AND repo = ?",
            (user_id, repo),
        ).fetchone()
        if row is None:
            return None
        try:
            return CodebaseIndex.model_validate_json(row["data"])
        except ValidationError:
            return None

    def save_index(self, user_id: str, index: CodebaseIndex) -> None:
        """Overwrite the cached index for ``index.repo_full_name``."""
        conn = self._get_conn()
        conn.execute(
            """INSERT OR REPLACE INTO codebase_index
               (user_id, repo, commit_sha, data, updated_at) VALUES (?, ?, ?, ?, ?)""",
            (
                user_id,
                index.repo_full_name,
                index.commit_sha,
                index.model_dump_json(by_alias=True),
                _now(),
            ),
        )
        conn.commit()

    def delete_index(self, user_id: str, repo: str) -> bool:
        conn = self._get_conn()
        cursor = conn.execute(
            "DELETE FROM codebase_index WHERE user_id = ? AND repo = ?", (user_id, repo)
        )
        conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Impact-map overrides
    # ------------------------------------------------------------------

    def get_impact_map(self, user_id: str, repo: str) -> ImpactMapConfig | None:
        row = self._get_conn().execute(
            "SELECT data FROM impact_map WHERE user_id = ? AND repo = ?",
            (user_id, repo),
        ).fetchone()
        if row is None:
            return None
        try:
            return ImpactMapConfig.model_validate_json(row["data"])
        except ValidationError as e:
            raise ConfigError(f"Stored impact map for {repo} is invalid") from e

    def save_impact_map(self, user_id: str, repo: str, config: ImpactMapConfig) -> None:
        conn = self._get_conn()
        conn.execute(
            """INSERT OR REPLACE INTO impact_map
               (user_id, repo, data, updated_at) VALUES (?, ?, ?, ?)""",
            (user_id, repo, config.to_json(), _now()),
        )
        conn.commit()

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
