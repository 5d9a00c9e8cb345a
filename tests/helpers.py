"""Shared test helpers for chat statistics tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

import json
from pathlib import Path


def make_message(
    date: str | None = "2024-01-05T10:00:00",
    text: object = None,
    msg_type: str = "message",
    **fields: object,
) -> dict:
    """Build a single Telegram export message entry.

    Args:
        date: Value for the "date" field.  None omits the field.
        text: Value for the "text" field.  None omits the field.
        msg_type: Value for the "type" field ("message" or "service").
        **fields: Extra fields such as photo, media_type or photo_id.

    Returns:
        A dict matching one entry of the export's "messages" list.
    """
    message: dict = {"id": fields.pop("id", 1), "type": msg_type}
    if date is not None:
        message["date"] = date
    if text is not None:
        message["text"] = text
    message.update(fields)
    return message


def make_export(messages: list[dict], name: str | None = "Test Chat", chat_id: int = 4242) -> dict:
    """Build a minimal chat export dict around *messages*."""
    return {"name": name, "type": "personal_chat", "id": chat_id, "messages": messages}


def make_monthly_record(
    month: str,
    message_count: int = 0,
    photo_count: int = 0,
    keywords: dict[str, int] | None = None,
    emojis: list[tuple[str, int]] | None = None,
) -> dict:
    """Build a monthly record shaped like ``analytics.analyze_chat`` output."""
    keywords = keywords if keywords is not None else {"добраніч": 0, "скучив": 0}
    return {
        "month": month,
        "message_count": message_count,
        "photo_count": photo_count,
        "keywords": dict(keywords),
        "keywords_formatted": [{"name": k, "value": v} for k, v in keywords.items()],
        "emojis_formatted": [{"name": e, "value": c} for e, c in (emojis or [])],
    }


def write_json(path: Path, data: object) -> str:
    """Write *data* as JSON and return the string path."""
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)
