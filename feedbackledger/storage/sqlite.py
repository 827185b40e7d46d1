# feedbackledger/storage/sqlite.py
import os
import sqlite3
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from feedbackledger.core.canon import value_hash
from feedbackledger.core.types import Commit, Proof
from . import StorageBackend, StorageClosedError


class SQLiteStorage(StorageBackend):
    """
    SQLite-backed ledger for local deployments and tests.
    ``entries`` holds the current value per key; ``commits`` is the
    append-only log of every write and the proof that authorised it.
    """

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("FEEDBACK_LEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "feedback-ledger.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                key         TEXT    PRIMARY KEY,
                value       BLOB    NOT NULL,
                updated_at  TEXT    NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS commits (
                sequence      INTEGER PRIMARY KEY AUTOINCREMENT,
                key           TEXT    NOT NULL,
                value_hash    TEXT    NOT NULL,
                account       TEXT    NOT NULL,
                proof_json    TEXT    NOT NULL,
                committed_at  TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_commit_key ON commits(key)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageClosedError("Storage connection is closed")
        return self._conn

    async def read(self, key: str) -> bytes:
        row = self.conn.execute("SELECT value FROM entries WHERE key = ?", (key,)).fetchone()
        return bytes(row[0]) if row else b""

    async def write(self, key: str, value: bytes, proof: Optional[Proof] = None) -> Commit:
        now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        digest = value_hash(value)
        proof_str = json.dumps(proof.__dict__, sort_keys=True, separators=(",", ":")) if proof else "{}"
        account = proof.account if proof else ""

        conn = self.conn
        conn.execute("BEGIN IMMEDIATE")
        try:
            conn.execute("""
                INSERT INTO entries (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """, (key, sqlite3.Binary(value), now))
            cursor = conn.execute("""
                INSERT INTO commits (key, value_hash, account, proof_json, committed_at)
                VALUES (?, ?, ?, ?, ?)
            """, (key, digest, account, proof_str, now))
            sequence = cursor.lastrowid
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

        return Commit(key=key, sequence=sequence, value_hash=digest, proof=proof)

    async def keys(self, prefix: str = "") -> List[str]:
        cursor = self.conn.execute(
            "SELECT key FROM entries WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        )
        return [row[0] for row in cursor.fetchall()]

    async def is_available(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def commit_log(self, key: Optional[str] = None, limit: int = 50) -> List[Commit]:
        """Most recent commits, newest last."""
        if key is None:
            cursor = self.conn.execute("""
                SELECT sequence, key, value_hash, proof_json FROM commits
                ORDER BY sequence DESC LIMIT ?
            """, (limit,))
        else:
            cursor = self.conn.execute("""
                SELECT sequence, key, value_hash, proof_json FROM commits
                WHERE key = ? ORDER BY sequence DESC LIMIT ?
            """, (key, limit))

        loaded = []
        for seq, k, digest, pjson in cursor:
            proof_fields = json.loads(pjson)
            loaded.append(Commit(
                key=k,
                sequence=seq,
                value_hash=digest,
                proof=Proof(**proof_fields) if proof_fields else None,
            ))
        loaded.reverse()
        return loaded
