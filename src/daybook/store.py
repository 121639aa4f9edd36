"""SQLite-backed conversation store: one conversation per calendar day."""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from datetime import date, datetime, timedelta, timezone, tzinfo
from pathlib import Path

from daybook.exceptions import ConversationNotFoundError, StoreError
from daybook.models import STATUS_COMPLETED, STATUS_IN_PROGRESS, Conversation, Message

logger = logging.getLogger(__name__)

# Day numbers count from the journal's launch date.
DAY_NUMBER_EPOCH = date(2025, 10, 1)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversation (
    id TEXT PRIMARY KEY,
    day TEXT NOT NULL UNIQUE,
    date TEXT NOT NULL,
    day_number INTEGER NOT NULL,
    summary TEXT,
    status TEXT NOT NULL DEFAULT 'inProgress',
    timestamp TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS message (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversation(id) ON DELETE CASCADE,
    content TEXT NOT NULL,
    role TEXT NOT NULL,
    ord INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    UNIQUE (conversation_id, ord)
);
CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


def start_of_day(value: date | datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Normalize a date or instant to midnight in ``tz``.

    Naive datetimes are read as wall-clock time in ``tz``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        else:
            value = value.astimezone(tz)
        value = value.date()
    return datetime(value.year, value.month, value.day, tzinfo=tz)


def compute_day_number(day: date | datetime, tz: tzinfo = timezone.utc) -> int:
    return (start_of_day(day, tz).date() - DAY_NUMBER_EPOCH).days


class ConversationStore:
    """Thread-safe store for daily conversations and their messages.

    A single connection is shared and every read and write goes through one
    re-entrant lock, so a read issued after a write always sees it.

    Args:
        db_path: SQLite file path, or ``":memory:"``.
        tz: Reference timezone used to decide which calendar day an instant belongs to.
    """

    def __init__(self, db_path: str | Path = ":memory:", tz: tzinfo = timezone.utc):
        self.db_path = db_path
        self.tz = tz
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open conversation store at {db_path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def save(self) -> None:
        """Commit pending changes."""
        with self._lock:
            try:
                self._conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to save: {e}") from e

    def _now(self) -> datetime:
        return datetime.now(self.tz)

    def _day_key(self, value: date | datetime) -> str:
        return start_of_day(value, self.tz).date().isoformat()

    # ---- Row mapping ----

    def _load_messages(self, conversation_id: str) -> list[Message]:
        rows = self._conn.execute(
            "SELECT * FROM message WHERE conversation_id = ? ORDER BY ord ASC",
            (conversation_id,),
        ).fetchall()
        return [
            Message(
                id=row["id"],
                conversation_id=row["conversation_id"],
                content=row["content"],
                role=row["role"],
                order=row["ord"],
                timestamp=datetime.fromisoformat(row["timestamp"]),
            )
            for row in rows
        ]

    def _to_conversation(self, row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            date=datetime.fromisoformat(row["date"]),
            day_number=row["day_number"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            summary=row["summary"],
            status=row["status"],
            messages=self._load_messages(row["id"]),
        )

    # ---- Conversations ----

    def fetch(self, day: date | datetime) -> Conversation | None:
        """Return the conversation for ``day``'s calendar day, if any."""
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT * FROM conversation WHERE day = ? LIMIT 1",
                    (self._day_key(day),),
                ).fetchone()
                return self._to_conversation(row) if row else None
            except sqlite3.Error as e:
                raise StoreError(f"Failed to fetch conversation: {e}") from e

    def fetch_for_date(self, day: date | datetime) -> list[Conversation]:
        """All conversations whose date falls within ``day``."""
        conversation = self.fetch(day)
        return [conversation] if conversation else []

    def fetch_all(self) -> list[Conversation]:
        """Every conversation, oldest first."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT * FROM conversation ORDER BY day ASC"
                ).fetchall()
                return [self._to_conversation(row) for row in rows]
            except sqlite3.Error as e:
                raise StoreError(f"Failed to fetch conversations: {e}") from e

    def get(self, conversation_id: str) -> Conversation:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM conversation WHERE id = ?", (conversation_id,)
            ).fetchone()
            if row is None:
                raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
            return self._to_conversation(row)

    def exists(self, conversation_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM conversation WHERE id = ?", (conversation_id,)
            ).fetchone()
            return row is not None

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM conversation").fetchone()[0]

    def create(self, day: date | datetime) -> Conversation:
        start = start_of_day(day, self.tz)
        conversation_id = str(uuid.uuid4())
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO conversation (id, day, date, day_number, status, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        conversation_id,
                        start.date().isoformat(),
                        start.isoformat(),
                        compute_day_number(start, self.tz),
                        STATUS_IN_PROGRESS,
                        self._now().isoformat(),
                    ),
                )
                self.save()
            except sqlite3.IntegrityError as e:
                raise StoreError(f"A conversation already exists for {start.date()}") from e
            except sqlite3.Error as e:
                raise StoreError(f"Failed to create conversation: {e}") from e
            logger.info(f"Created conversation for {start.date()}")
            return self.get(conversation_id)

    def get_or_create(self, day: date | datetime) -> Conversation:
        """Return the conversation for ``day``, creating it on first access."""
        with self._lock:
            existing = self.fetch(day)
            if existing is not None:
                return existing
            return self.create(day)

    def set_summary(self, conversation: Conversation | str, summary: str | None) -> None:
        """Store ``summary``; a summarized day is ``completed``, clearing it reopens the day."""
        conversation_id = _conversation_id(conversation)
        status = STATUS_COMPLETED if summary else STATUS_IN_PROGRESS
        with self._lock:
            try:
                cursor = self._conn.execute(
                    "UPDATE conversation SET summary = ?, status = ? WHERE id = ?",
                    (summary, status, conversation_id),
                )
                if cursor.rowcount == 0:
                    raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to update summary: {e}") from e

    def delete_conversation(self, conversation: Conversation | str) -> None:
        """Delete a conversation and, by cascade, its messages."""
        with self._lock:
            try:
                self._conn.execute(
                    "DELETE FROM conversation WHERE id = ?",
                    (_conversation_id(conversation),),
                )
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to delete conversation: {e}") from e

    def clear_all(self) -> int:
        """Delete every conversation. Returns how many were removed."""
        with self._lock:
            try:
                removed = self._conn.execute("DELETE FROM conversation").rowcount
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to clear conversations: {e}") from e
            return removed

    def earliest_date(self) -> datetime | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT date FROM conversation ORDER BY day ASC LIMIT 1"
            ).fetchone()
            return datetime.fromisoformat(row["date"]) if row else None

    def fix_day_numbers(self) -> int:
        """Recompute ``day_number`` from each conversation's date. Returns how many changed."""
        fixed = 0
        with self._lock:
            rows = self._conn.execute("SELECT id, date, day_number FROM conversation").fetchall()
            for row in rows:
                correct = compute_day_number(datetime.fromisoformat(row["date"]), self.tz)
                if row["day_number"] != correct:
                    self._conn.execute(
                        "UPDATE conversation SET day_number = ? WHERE id = ?",
                        (correct, row["id"]),
                    )
                    fixed += 1
            if fixed:
                self.save()
        return fixed

    # ---- Messages ----

    def append(self, conversation: Conversation | str, content: str, role: str) -> Message:
        """Append a message after the highest ``order`` in the conversation."""
        conversation_id = _conversation_id(conversation)
        message_id = str(uuid.uuid4())
        timestamp = self._now()
        with self._lock:
            if not self.exists(conversation_id):
                raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
            try:
                order = self._conn.execute(
                    "SELECT COALESCE(MAX(ord), -1) + 1 FROM message WHERE conversation_id = ?",
                    (conversation_id,),
                ).fetchone()[0]
                self._conn.execute(
                    """
                    INSERT INTO message (id, conversation_id, content, role, ord, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (message_id, conversation_id, content or "", role, order, timestamp.isoformat()),
                )
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to append message: {e}") from e
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            content=content or "",
            role=role,
            order=order,
            timestamp=timestamp,
        )

    def delete_message(self, message: Message | str) -> None:
        message_id = message if isinstance(message, str) else message.id
        with self._lock:
            try:
                self._conn.execute("DELETE FROM message WHERE id = ?", (message_id,))
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to delete message: {e}") from e

    def clear_messages(self, conversation: Conversation | str) -> int:
        with self._lock:
            try:
                removed = self._conn.execute(
                    "DELETE FROM message WHERE conversation_id = ?",
                    (_conversation_id(conversation),),
                ).rowcount
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to clear messages: {e}") from e
            return removed

    # ---- Key/value state ----

    def get_state(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM app_state WHERE key = ?", (key,)
            ).fetchone()
            return row["value"] if row else None

    def set_state(self, key: str, value: str | None) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO app_state (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
                self.save()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to save state {key}: {e}") from e


def previous_day(value: date | datetime, tz: tzinfo = timezone.utc) -> datetime:
    return start_of_day(start_of_day(value, tz).date() - timedelta(days=1), tz)


def _conversation_id(conversation: Conversation | str) -> str:
    return conversation if isinstance(conversation, str) else conversation.id
