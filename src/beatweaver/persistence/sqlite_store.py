"""SQLite-backed chapter store.

Stores chapter-linked events and chapter final states as JSON payloads in
two tables. Uses stdlib sqlite3 in autocommit mode with WAL journaling.

The async methods run their queries on a worker thread so a slow disk
never stalls the event loop. One connection is shared between threads and
guarded by a lock.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from pathlib import Path

from pydantic import ValidationError

from beatweaver.models import ChapterFinalState, StoryEvent
from beatweaver.observability.logging import get_logger
from beatweaver.persistence.base import PersistenceError

log = get_logger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS chapter_events (
    chapter_number INTEGER NOT NULL,
    position       INTEGER NOT NULL,
    data           JSON NOT NULL,
    PRIMARY KEY (chapter_number, position)
);

CREATE TABLE IF NOT EXISTS chapter_states (
    chapter_number INTEGER PRIMARY KEY,
    data           JSON NOT NULL,
    updated_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class SqliteChapterStore:
    """PersistenceService backed by a SQLite database file."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        """Open or create a chapter database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
        """
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            self._db_path, isolation_level=None, check_same_thread=False
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> SqliteChapterStore:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    # -- Linked events ---------------------------------------------------------

    def set_linked_events(self, chapter_number: int, events: list[StoryEvent]) -> None:
        """Replace the events linked to a chapter."""
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                self._conn.execute(
                    "DELETE FROM chapter_events WHERE chapter_number = ?", (chapter_number,)
                )
                self._conn.executemany(
                    "INSERT INTO chapter_events (chapter_number, position, data) "
                    "VALUES (?, ?, ?)",
                    [
                        (chapter_number, position, event.model_dump_json())
                        for position, event in enumerate(events)
                    ],
                )
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def _fetch_linked_events(self, chapter_number: int) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(
                "SELECT data FROM chapter_events WHERE chapter_number = ? ORDER BY position",
                (chapter_number,),
            ).fetchall()

    async def load_linked_events(self, chapter_number: int) -> list[StoryEvent]:
        rows = await asyncio.to_thread(self._fetch_linked_events, chapter_number)
        try:
            return [StoryEvent.model_validate_json(row["data"]) for row in rows]
        except ValidationError as e:
            raise PersistenceError(f"Corrupt linked event: {e}", chapter_number) from e

    # -- Chapter state ---------------------------------------------------------

    def _fetch_chapter_state(self, chapter_number: int) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(
                "SELECT data FROM chapter_states WHERE chapter_number = ?", (chapter_number,)
            ).fetchone()

    def _upsert_chapter_state(self, chapter_number: int, payload: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO chapter_states (chapter_number, data) VALUES (?, ?) "
                "ON CONFLICT(chapter_number) DO UPDATE SET "
                "data = excluded.data, updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
                (chapter_number, payload),
            )

    async def load_chapter_final_state(self, chapter_number: int) -> ChapterFinalState | None:
        row = await asyncio.to_thread(self._fetch_chapter_state, chapter_number)
        if row is None:
            return None
        try:
            return ChapterFinalState.model_validate_json(row["data"])
        except ValidationError as e:
            raise PersistenceError(f"Corrupt chapter state: {e}", chapter_number) from e

    async def store_chapter_final_state(
        self,
        chapter_number: int,
        state: ChapterFinalState,
    ) -> None:
        payload = json.dumps(state.to_storage())
        await asyncio.to_thread(self._upsert_chapter_state, chapter_number, payload)
        log.debug("chapter_state_stored", chapter=chapter_number)

    def list_chapter_states(self) -> list[int]:
        """Chapter numbers with a stored state, ascending."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT chapter_number FROM chapter_states ORDER BY chapter_number"
            ).fetchall()
        return [row["chapter_number"] for row in rows]
