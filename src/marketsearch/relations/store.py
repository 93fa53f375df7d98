"""SQLite store for subscription and rating relationships."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List


class SQLiteRelationStore:
    """Persistence layer for user/dataset relationships.

    Subscriptions and ratings are keyed by ``(dataset_id, index_name)`` since
    dataset ids are only unique within a partition. The connection is shared
    between threads and every statement runs under a lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _fetchall(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    dataset_id TEXT NOT NULL,
                    index_name TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(user_id, dataset_id, index_name)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ratings (
                    id INTEGER PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    dataset_id TEXT NOT NULL,
                    index_name TEXT NOT NULL,
                    score REAL NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(user_id, dataset_id, index_name)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_subscriptions_dataset
                    ON subscriptions(dataset_id, index_name)
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_ratings_dataset
                    ON ratings(dataset_id, index_name)
                """
            )

    def subscribe(self, user_id: str, dataset_id: str, index_name: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO subscriptions(user_id, dataset_id, index_name)
                VALUES (?, ?, ?)
                """,
                (str(user_id), str(dataset_id), index_name),
            )

    def rate(self, user_id: str, dataset_id: str, index_name: str, score: float) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO ratings(user_id, dataset_id, index_name, score)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, dataset_id, index_name) DO UPDATE SET score = excluded.score
                """,
                (str(user_id), str(dataset_id), index_name, float(score)),
            )

    def dataset_users(self, index_name: str, dataset_id: str) -> List[str]:
        rows = self._fetchall(
            """
            SELECT DISTINCT user_id FROM subscriptions
            WHERE dataset_id = ? AND index_name = ?
            """,
            (str(dataset_id), index_name),
        )
        return [row["user_id"] for row in rows]

    def is_subscribed(self, dataset_id: str, index_name: str, user_id: str) -> bool:
        rows = self._fetchall(
            """
            SELECT 1 FROM subscriptions
            WHERE dataset_id = ? AND index_name = ? AND user_id = ?
            LIMIT 1
            """,
            (str(dataset_id), index_name, str(user_id)),
        )
        return bool(rows)

    def user_datasets(self, user_id: str) -> List[Dict[str, str]]:
        rows = self._fetchall(
            "SELECT dataset_id, index_name FROM subscriptions WHERE user_id = ? ORDER BY id",
            (str(user_id),),
        )
        return [{"id": row["dataset_id"], "index": row["index_name"]} for row in rows]

    def avg_rating(self, dataset_id: str, index_name: str) -> Dict[str, Any]:
        rows = self._fetchall(
            """
            SELECT AVG(score) AS average, COUNT(*) AS total FROM ratings
            WHERE dataset_id = ? AND index_name = ?
            """,
            (str(dataset_id), index_name),
        )
        row = rows[0]
        average = row["average"]
        return {
            "avgRating": round(float(average), 2) if average is not None else None,
            "ratingCount": int(row["total"]),
        }
