"""Adapter for the Skype desktop client's main.db (SQLite).

Polls the Conversations and Messages tables for rows with an id above the
last one seen. Conversation and message rows carry dozens of mostly-empty
columns; the ones worth archiving are listed in CONVERSATION_COLUMNS and
MESSAGE_COLUMNS and exported in that order.
"""

import os
import sqlite3
from collections.abc import Iterator
from contextlib import closing
from dataclasses import dataclass, fields
from typing import Literal

from rtbackup.adapters.sdk import PollingFeed, csv_line, unix_to_iso
from rtbackup.streams import ChangeStream

ADAPTER_INTERFACE_VERSION = 1
NAME = "skype"
DESCRIPTION = "Skype desktop main.db (Conversations and Messages tables)"

BATCH_SIZE = 500

StartAt = Literal["beginning", "end"]

_TIMESTAMP_COLUMNS = {
    "creation_timestamp",
    "inbox_timestamp",
    "last_activity_timestamp",
    "timestamp",
    "edited_timestamp",
}


@dataclass
class Conversation:
    id: int
    identity: str | None = None
    type: int | None = None
    displayname: str | None = None
    given_displayname: str | None = None
    creator: str | None = None
    creation_timestamp: int | None = None
    inbox_timestamp: int | None = None
    last_activity_timestamp: int | None = None
    is_permanent: int | None = None
    is_bookmarked: int | None = None
    is_blocked: int | None = None
    my_status: int | None = None
    meta_name: str | None = None
    meta_topic: str | None = None
    meta_description: str | None = None
    dialog_partner: str | None = None
    alt_identity: str | None = None
    last_message_id: int | None = None

    def to_csv_line(self) -> str:
        return csv_line(_export_values(self))


@dataclass
class ChatMessage:
    id: int
    convo_id: int | None = None
    conversation_display_name: str | None = None
    chatname: str | None = None
    author: str | None = None
    from_dispname: str | None = None
    dialog_partner: str | None = None
    timestamp: int | None = None
    edited_by: str | None = None
    edited_timestamp: int | None = None
    type: int | None = None
    chatmsg_type: int | None = None
    chatmsg_status: int | None = None
    sending_status: int | None = None
    body_xml: str | None = None
    identities: str | None = None

    def to_csv_line(self) -> str:
        return csv_line(_export_values(self))


CONVERSATION_COLUMNS = [f.name for f in fields(Conversation)]
MESSAGE_COLUMNS = [f.name for f in fields(ChatMessage)]


def _export_values(record) -> list:
    values = []
    for f in fields(record):
        value = getattr(record, f.name)
        if f.name in _TIMESTAMP_COLUMNS:
            value = unix_to_iso(value)
        values.append(value)
    return values


def _from_row(cls, row: sqlite3.Row):
    """Build a record from a row, tolerating columns missing in older schemas."""
    available = set(row.keys())
    return cls(**{f.name: row[f.name] for f in fields(cls) if f.name in available})


def _decode_text(value: bytes) -> str:
    return value.decode("utf-8", "replace")


def open_database(path: str) -> sqlite3.Connection:
    """Open main.db for reading; the client keeps writing to it.

    Raises FileNotFoundError rather than letting sqlite create an empty file.
    Text that is not valid UTF-8 is decoded with replacement characters so
    one corrupt value cannot stop the rows after it.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"database not found: {path}")
    conn = sqlite3.connect(path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.text_factory = _decode_text
    conn.execute("PRAGMA query_only = ON")
    return conn


def fetch_conversations(conn: sqlite3.Connection, after: int) -> Iterator[Conversation]:
    rows = conn.execute(
        "SELECT * FROM Conversations WHERE id > ? ORDER BY id LIMIT ?",
        (after, BATCH_SIZE),
    ).fetchall()
    for row in rows:
        yield _from_row(Conversation, row)


def fetch_messages(conn: sqlite3.Connection, after: int) -> Iterator[ChatMessage]:
    rows = conn.execute(
        """
        SELECT m.*, COALESCE(c.given_displayname, c.displayname) AS conversation_display_name
        FROM Messages m
        LEFT JOIN Conversations c ON c.id = m.convo_id
        WHERE m.id > ?
        ORDER BY m.id
        LIMIT ?
        """,
        (after, BATCH_SIZE),
    ).fetchall()
    for row in rows:
        yield _from_row(ChatMessage, row)


def max_id(conn: sqlite3.Connection, table: str) -> int:
    return conn.execute(f"SELECT COALESCE(MAX(id), 0) FROM {table}").fetchone()[0]


class SkypeDbAdapter:
    """Streams new conversations and messages from a Skype main.db.

    Args:
        poll_interval: Seconds between polls of each table.
        start_at: "beginning" exports every existing row first; "end"
            skips rows present when the first poll begins.
    """

    def __init__(self, poll_interval: float = 2.0, start_at: StartAt = "beginning"):
        if start_at not in ("beginning", "end"):
            raise ValueError(f"start_at must be 'beginning' or 'end', got {start_at!r}")
        self.start_at = start_at
        self.path: str | None = None
        self._conversations = PollingFeed(
            "conversations",
            fetch_conversations,
            key=lambda r: r.id,
            interval=poll_interval,
            batch_size=BATCH_SIZE,
            open_session=lambda: self._session("Conversations", self._conversations),
        )
        self._messages = PollingFeed(
            "messages",
            fetch_messages,
            key=lambda r: r.id,
            interval=poll_interval,
            batch_size=BATCH_SIZE,
            open_session=lambda: self._session("Messages", self._messages),
        )
        self._positioned: set[str] = set()

    def set_connection(self, path: str) -> None:
        self.path = path

    def conversations(self) -> ChangeStream[Conversation]:
        return self._conversations.stream

    def messages(self) -> ChangeStream[ChatMessage]:
        return self._messages.stream

    def _session(self, table: str, feed: PollingFeed):
        if self.path is None:
            raise RuntimeError("set_connection() must be called before subscribing")
        conn = open_database(self.path)
        if self.start_at == "end" and table not in self._positioned:
            try:
                feed.high_water = max_id(conn, table)
            except sqlite3.Error:
                conn.close()
                raise
            self._positioned.add(table)
        return closing(conn)


def create_adapter(**options) -> SkypeDbAdapter:
    return SkypeDbAdapter(**options)
