"""SQLite persistence for chat analyses.

One row per chat in ``chat_analysis`` (upserted by chat id) and one row
per month in ``monthly_stats``.  Keyword maps and the formatted
name/value lists are stored as JSON text.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from analytics import InvalidChatExport, sort_monthly_stats

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS chat_analysis (
    chat_id INTEGER PRIMARY KEY,
    chat_name TEXT,
    total_messages INTEGER NOT NULL DEFAULT 0,
    last_updated TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS monthly_stats (
    chat_id INTEGER NOT NULL,
    month TEXT NOT NULL,
    message_count INTEGER NOT NULL DEFAULT 0,
    photo_count INTEGER NOT NULL DEFAULT 0,
    keywords TEXT NOT NULL,
    keywords_formatted TEXT NOT NULL,
    emojis_formatted TEXT NOT NULL,
    PRIMARY KEY (chat_id, month),
    FOREIGN KEY (chat_id) REFERENCES chat_analysis (chat_id) ON DELETE CASCADE
);
"""


@contextmanager
def _connect(db_path: str | Path) -> Iterator[sqlite3.Connection]:
    """Open a connection with the schema in place; commit on success."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(SCHEMA)
        with conn:
            yield conn
    finally:
        conn.close()


def init_db(db_path: str | Path) -> None:
    """Create the database file and tables if they do not exist yet."""
    with _connect(db_path):
        pass


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def save_analysis(
    analysis: dict[str, Any],
    db_path: str | Path,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Upsert a chat analysis and replace its monthly rows.

    Args:
        analysis: Result of ``analytics.analyze_chat``.
        db_path: SQLite database file.
        now: Timestamp recorded as last_updated.  Defaults to the
            current UTC time.

    Returns:
        The stored analysis as returned by ``load_analysis``.

    Raises:
        InvalidChatExport: If the analysis carries no integer chat id.
    """
    chat_id = analysis.get("chat_id")
    if not isinstance(chat_id, int) or isinstance(chat_id, bool):
        raise InvalidChatExport(f"Chat export has no usable 'id': {chat_id!r}")

    last_updated = (now or datetime.now(timezone.utc)).isoformat()
    monthly = analysis.get("monthly_stats", [])

    with _connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO chat_analysis (chat_id, chat_name, total_messages, last_updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (chat_id) DO UPDATE SET
                chat_name = excluded.chat_name,
                total_messages = excluded.total_messages,
                last_updated = excluded.last_updated
            """,
            (chat_id, analysis.get("chat_name"), analysis.get("total_messages", 0), last_updated),
        )
        conn.execute("DELETE FROM monthly_stats WHERE chat_id = ?", (chat_id,))
        conn.executemany(
            """
            INSERT INTO monthly_stats (
                chat_id, month, message_count, photo_count,
                keywords, keywords_formatted, emojis_formatted
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    chat_id,
                    record["month"],
                    record["message_count"],
                    record["photo_count"],
                    _dumps(record["keywords"]),
                    _dumps(record["keywords_formatted"]),
                    _dumps(record["emojis_formatted"]),
                )
                for record in monthly
            ],
        )

    logger.info(
        "Stored analysis for chat %s (%d months) in %s", chat_id, len(monthly), db_path,
    )
    return load_analysis(db_path, chat_id)


def _monthly_record_from_row(row: sqlite3.Row) -> dict:
    return {
        "month": row["month"],
        "message_count": row["message_count"],
        "photo_count": row["photo_count"],
        "keywords": json.loads(row["keywords"]),
        "keywords_formatted": json.loads(row["keywords_formatted"]),
        "emojis_formatted": json.loads(row["emojis_formatted"]),
    }


def load_analysis(db_path: str | Path, chat_id: int | None = None) -> dict[str, Any] | None:
    """Load a stored analysis.

    Args:
        db_path: SQLite database file.
        chat_id: Chat to load.  None loads the most recently updated one.

    Returns:
        Dict with keys chat_id, chat_name, total_messages, last_updated
        and monthly_stats (ordered by month), or None if nothing matches.
    """
    with _connect(db_path) as conn:
        if chat_id is None:
            head = conn.execute(
                "SELECT * FROM chat_analysis ORDER BY last_updated DESC, chat_id LIMIT 1"
            ).fetchone()
        else:
            head = conn.execute(
                "SELECT * FROM chat_analysis WHERE chat_id = ?", (chat_id,)
            ).fetchone()
        if head is None:
            return None

        rows = conn.execute(
            "SELECT * FROM monthly_stats WHERE chat_id = ? ORDER BY month",
            (head["chat_id"],),
        ).fetchall()

    return {
        "chat_id": head["chat_id"],
        "chat_name": head["chat_name"],
        "total_messages": head["total_messages"],
        "last_updated": head["last_updated"],
        "monthly_stats": sort_monthly_stats([_monthly_record_from_row(row) for row in rows]),
    }


def list_analyses(db_path: str | Path) -> list[dict[str, Any]]:
    """Return one summary dict per stored chat, most recently updated first."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT a.chat_id, a.chat_name, a.total_messages, a.last_updated,
                   COUNT(m.month) AS months
            FROM chat_analysis AS a
            LEFT JOIN monthly_stats AS m ON m.chat_id = a.chat_id
            GROUP BY a.chat_id
            ORDER BY a.last_updated DESC, a.chat_id
            """
        ).fetchall()
    return [dict(row) for row in rows]
