"""SQLite-backed pipeline state: checkpoint, delivery ledger, chapters, pending retries, sealed credentials."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Sequence

from ...application.ports.state_store import StateStorePort
from ...domain.errors import StateStoreError
from ...domain.models.chapter import Chapter
from ...domain.models.cycle import PendingRetry
from ...domain.models.delivery import DeliveryRecord
from ...domain.types import Checkpoint, StoryRef

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS checkpoint (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS deliveries (
    story_key TEXT PRIMARY KEY,
    content_fingerprint TEXT NOT NULL,
    remote_document_id TEXT NOT NULL,
    delivered_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS chapters (
    story_key TEXT NOT NULL,
    chapter_index INTEGER NOT NULL,
    story_id TEXT NOT NULL,
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    story_title TEXT NOT NULL,
    author TEXT NOT NULL,
    total_chapters INTEGER NOT NULL,
    PRIMARY KEY (story_key, chapter_index)
);
CREATE TABLE IF NOT EXISTS pending_retries (
    story_key TEXT PRIMARY KEY,
    payload TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS credentials (
    name TEXT PRIMARY KEY,
    blob TEXT NOT NULL
);
"""


class SqliteStateStore(StateStorePort):
    """
    State store on a single SQLite file.

    Every write is one upsert in its own transaction. `advance_checkpoint`
    compares and writes inside a single IMMEDIATE transaction so concurrent
    writers can never move the checkpoint backwards.
    """

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        try:
            # Autocommit mode; transactions are opened explicitly in _transaction()
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StateStoreError(
                f"Cannot open state database at {self.db_path}: {e}",
                "Check that the [state] path (or FICSYNC_STATE_DB) points to a writable location",
            ) from e

        logger.info("Opened state database", extra={"db_path": self.db_path})

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self._conn
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StateStoreError(f"State database write failed: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StateStoreError(f"State database read failed: {e}") from e

    # Checkpoint

    def get_checkpoint(self) -> Checkpoint | None:
        rows = self._query("SELECT value FROM checkpoint WHERE id = 1")
        return Checkpoint(rows[0]["value"]) if rows else None

    def advance_checkpoint(self, checkpoint: Checkpoint) -> bool:
        with self._transaction() as conn:
            row = conn.execute("SELECT value FROM checkpoint WHERE id = 1").fetchone()
            current = Checkpoint(row["value"]) if row else None
            if not checkpoint.is_after(current):
                return False
            conn.execute(
                "INSERT INTO checkpoint (id, value, updated_at) VALUES (1, ?, CURRENT_TIMESTAMP) "
                "ON CONFLICT(id) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (checkpoint.value,),
            )
        logger.debug(f"Checkpoint advanced to {checkpoint}")
        return True

    def reset_checkpoint(self, checkpoint: Checkpoint | None) -> None:
        with self._transaction() as conn:
            if checkpoint is None:
                conn.execute("DELETE FROM checkpoint")
            else:
                conn.execute(
                    "INSERT INTO checkpoint (id, value, updated_at) VALUES (1, ?, CURRENT_TIMESTAMP) "
                    "ON CONFLICT(id) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                    (checkpoint.value,),
                )

    # Delivery ledger

    def get_delivery(self, story: StoryRef) -> DeliveryRecord | None:
        rows = self._query("SELECT * FROM deliveries WHERE story_key = ?", (story.key,))
        return self._row_to_record(rows[0]) if rows else None

    def upsert_delivery(self, record: DeliveryRecord) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO deliveries (story_key, content_fingerprint, remote_document_id, delivered_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(story_key) DO UPDATE SET content_fingerprint = excluded.content_fingerprint, "
                "remote_document_id = excluded.remote_document_id, delivered_at = excluded.delivered_at",
                (
                    record.story.key,
                    record.content_fingerprint,
                    record.remote_document_id,
                    record.delivered_at.isoformat(),
                ),
            )

    def delete_delivery(self, story: StoryRef) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM deliveries WHERE story_key = ?", (story.key,))

    def list_deliveries(self) -> list[DeliveryRecord]:
        return [self._row_to_record(row) for row in self._query("SELECT * FROM deliveries ORDER BY story_key")]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> DeliveryRecord:
        return DeliveryRecord(
            story=StoryRef.from_key(row["story_key"]),
            content_fingerprint=row["content_fingerprint"],
            remote_document_id=row["remote_document_id"],
            delivered_at=datetime.fromisoformat(row["delivered_at"]),
        )

    # Chapters

    def upsert_chapters(self, story: StoryRef, chapters: Sequence[Chapter]) -> None:
        with self._transaction() as conn:
            conn.executemany(
                "INSERT INTO chapters (story_key, chapter_index, story_id, title, body, fetched_at, "
                "story_title, author, total_chapters) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(story_key, chapter_index) DO UPDATE SET story_id = excluded.story_id, "
                "title = excluded.title, body = excluded.body, fetched_at = excluded.fetched_at, "
                "story_title = excluded.story_title, author = excluded.author, "
                "total_chapters = excluded.total_chapters",
                [
                    (
                        story.key,
                        chapter.index,
                        chapter.story_id,
                        chapter.title,
                        chapter.body,
                        chapter.fetched_at.isoformat(),
                        chapter.story_title,
                        chapter.author,
                        chapter.total_chapters,
                    )
                    for chapter in chapters
                ],
            )

    def list_chapters(self, story: StoryRef) -> list[Chapter]:
        rows = self._query("SELECT * FROM chapters WHERE story_key = ? ORDER BY chapter_index", (story.key,))
        return [
            Chapter(
                story_id=row["story_id"],
                index=row["chapter_index"],
                title=row["title"],
                body=row["body"],
                fetched_at=datetime.fromisoformat(row["fetched_at"]),
                story_title=row["story_title"],
                author=row["author"],
                total_chapters=row["total_chapters"],
            )
            for row in rows
        ]

    # Pending retries

    def get_pending_retry(self, story: StoryRef) -> PendingRetry | None:
        rows = self._query("SELECT payload FROM pending_retries WHERE story_key = ?", (story.key,))
        return PendingRetry.from_dict(json.loads(rows[0]["payload"])) if rows else None

    def upsert_pending_retry(self, pending: PendingRetry) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO pending_retries (story_key, payload) VALUES (?, ?) "
                "ON CONFLICT(story_key) DO UPDATE SET payload = excluded.payload",
                (pending.story.key, json.dumps(pending.to_dict(), sort_keys=True)),
            )

    def clear_pending_retry(self, story: StoryRef) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM pending_retries WHERE story_key = ?", (story.key,))

    def list_pending_retries(self) -> list[PendingRetry]:
        rows = self._query("SELECT payload FROM pending_retries ORDER BY story_key")
        return [PendingRetry.from_dict(json.loads(row["payload"])) for row in rows]

    # Sealed credentials

    def get_sealed_credential(self, name: str) -> str | None:
        rows = self._query("SELECT blob FROM credentials WHERE name = ?", (name,))
        return rows[0]["blob"] if rows else None

    def put_sealed_credential(self, name: str, blob: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO credentials (name, blob) VALUES (?, ?) "
                "ON CONFLICT(name) DO UPDATE SET blob = excluded.blob",
                (name, blob),
            )
