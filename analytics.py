"""Core data processing for Telegram chat export statistics.

Turns an exported chat (an ordered list of timestamped messages) into
per-month rollups: message and photo counts, keyword occurrence counts,
and a top-4 emoji ranking.
Used by both the CLI (chat_stats_summary.py) and the web service (app.py).
"""

from __future__ import annotations

import csv
import functools
import json
import logging
import os
import re
from datetime import datetime, tzinfo
from typing import Any, Iterable, Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import emoji

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS: tuple[str, ...] = ("Добраніч", "Солодких", "Доброго ранку", "Скучив")
TOP_EMOJI_LIMIT = 4
LOCAL_TIMEZONE_NAMES = ("", "local")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ChatStatsError(Exception):
    """Base class for every error raised by the chat statistics modules."""


class InvalidChatExport(ChatStatsError):
    """The export is structurally unusable (no message list at the top level)."""


class InvalidTimestamp(ChatStatsError):
    """A message date cannot be turned into a calendar month."""


class ScanFailure(ChatStatsError):
    """A message's text could not be scanned for keywords or emoji."""


# ---------------------------------------------------------------------------
# Loading and configuration helpers
# ---------------------------------------------------------------------------

def load_chat_export(path: str = "result.json") -> Any:
    """Load a Telegram chat export from a JSON file.

    Args:
        path: Filesystem path to the export (Telegram Desktop writes it
            as result.json).  Defaults to "result.json" in the current
            directory.

    Returns:
        The parsed JSON document.  A usable export is a dict with
        "name", "id" and "messages" keys; the shape is checked by
        ``analyze_chat``, not here.

    Raises:
        FileNotFoundError: If the file at *path* does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Map a configured time zone name to a tzinfo.

    Args:
        name: An IANA zone name such as "Europe/Kyiv" or "UTC".  None,
            "" and "local" select the time zone of the running process.

    Returns:
        A ZoneInfo instance, or None for the process local zone.

    Raises:
        ValueError: If *name* is not a known zone.
    """
    if name is None or name.strip().lower() in LOCAL_TIMEZONE_NAMES:
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name!r}") from exc


def parse_keywords(raw: str | None) -> tuple[str, ...]:
    """Parse a comma-separated keyword override.

    Returns ``DEFAULT_KEYWORDS`` when *raw* is empty or holds only
    separators.
    """
    if not raw:
        return DEFAULT_KEYWORDS
    keywords = tuple(part.strip() for part in raw.split(",") if part.strip())
    return keywords or DEFAULT_KEYWORDS


def normalize_keywords(keywords: Iterable[str]) -> list[str]:
    """Lowercase keywords and drop duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for keyword in keywords:
        seen.setdefault(keyword.lower(), None)
    return list(seen)


# ---------------------------------------------------------------------------
# Text scanning
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=64)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(re.escape(keyword), re.IGNORECASE)


def _is_set(value: Any) -> bool:
    """Return True if an optional export field carries a value.

    None, False, 0 and "" count as unset.  Anything else, including an
    empty list or dict, counts as set.
    """
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and value == value
    return True


def _text_to_string(text: Any) -> str:
    """Render message text as a single string for scanning.

    Telegram stores formatted messages as a list mixing plain strings
    and entity dicts ({"type": "bold", "text": ...}).  Those are scanned
    in their compact JSON form, so entity type names and link targets
    are scanned along with the visible text.
    """
    if isinstance(text, str):
        return text
    return json.dumps(text, ensure_ascii=False, separators=(",", ":"))


def iter_emojis(text: str) -> Iterator[str]:
    """Yield every emoji in *text*, in order of appearance.

    Multi-codepoint sequences (ZWJ families, skin tone modifiers, flags,
    keycaps) are yielded as one string each.
    """
    for match in emoji.emoji_list(text):
        yield match["emoji"]


def scan_text(text: Any, keywords: Iterable[str]) -> tuple[dict[str, int], list[str]]:
    """Count keyword occurrences and collect emoji in one message text.

    Keyword matching is literal, case-insensitive and substring-based: a
    keyword inside a longer word still counts.  Matches do not overlap;
    scanning resumes after each match.

    Args:
        text: The message's "text" field, either a plain string or
            Telegram's structured list of strings and entity dicts.
        keywords: Keywords to count.  Result keys are lowercased.

    Returns:
        A tuple of (keyword_hits, emojis) where keyword_hits maps every
        lowercased keyword to its count (zero included) and emojis is
        the list of emoji graphemes in order of appearance.

    Raises:
        ScanFailure: If the text cannot be serialized or scanned.
    """
    try:
        content = _text_to_string(text)
        keyword_hits = {
            keyword: len(_keyword_pattern(keyword).findall(content))
            for keyword in normalize_keywords(keywords)
        }
        emojis = list(iter_emojis(content))
    except (TypeError, ValueError, RecursionError, re.error) as exc:
        raise ScanFailure(f"Cannot scan message text: {exc}") from exc
    return keyword_hits, emojis


# ---------------------------------------------------------------------------
# Month bucketing
# ---------------------------------------------------------------------------

def _parse_timestamp(timestamp: Any) -> datetime:
    if isinstance(timestamp, datetime):
        return timestamp
    if not isinstance(timestamp, str) or not timestamp.strip():
        raise InvalidTimestamp(f"Not a timestamp: {timestamp!r}")
    value = timestamp.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise InvalidTimestamp(f"Unparseable timestamp: {timestamp!r}") from exc


def month_key(timestamp: Any, tz: tzinfo | None = None) -> str:
    """Map a message timestamp to its "YYYY-MM" bucket key.

    Naive timestamps are wall-clock times in *tz* and keep their written
    month.  Offset-aware timestamps are converted to *tz* first, so a
    message sent at 23:30 UTC on the last day of a month may land in the
    next month for zones east of UTC.  A date-only string such as
    "2024-01-05" is read as a naive local midnight, not as UTC.

    Args:
        timestamp: ISO-8601 string (as in Telegram's "date" field) or a
            datetime.
        tz: Zone used to read the calendar month.  None means the time
            zone of the running process.

    Returns:
        Four-digit year, hyphen, two-digit month.

    Raises:
        InvalidTimestamp: If *timestamp* cannot be parsed, or falls outside
            the datetime range once converted to *tz*.
    """
    parsed = _parse_timestamp(timestamp)
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(tz)
        except (OverflowError, ValueError) as exc:
            raise InvalidTimestamp(f"Timestamp out of range: {timestamp!r}") from exc
    return f"{parsed.year:04d}-{parsed.month:02d}"


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def has_photo(message: dict) -> bool:
    """Return True if a message carries a photo.

    Any of three fields marks a photo: "photo" set, "media_type" equal
    to "photo", or "photo_id" set.  See ``_is_set`` for what "set" means.
    """
    return (
        _is_set(message.get("photo"))
        or message.get("media_type") == "photo"
        or _is_set(message.get("photo_id"))
    )


def _init_month_bucket(key: str, keywords: list[str]) -> dict:
    """Create a fresh monthly stats accumulator dict.

    Returns:
        Dict with zeroed message/photo counters, every keyword at 0 and
        an empty emoji table.
    """
    return {
        "month": key,
        "message_count": 0,
        "photo_count": 0,
        "keywords": {keyword: 0 for keyword in keywords},
        "emojis": {},
    }


def aggregate_messages(
    messages: Any,
    keywords: Iterable[str] = DEFAULT_KEYWORDS,
    tz: tzinfo | None = None,
) -> dict[str, dict]:
    """Accumulate per-month counters in a single pass over *messages*.

    Only entries with ``type == "message"`` are counted.  A message with
    an unusable date is skipped without touching any bucket.  A message
    whose text fails to scan is still counted, with no keyword or emoji
    contribution.  Everything a message contributes is computed before
    any counter changes.

    Args:
        messages: The export's "messages" list.
        keywords: Keywords to count.  Lowercased and de-duplicated.
        tz: Zone used for month bucketing (see ``month_key``).

    Returns:
        Dict mapping "YYYY-MM" keys to bucket dicts with keys month,
        message_count, photo_count, keywords (lowercased keyword -> count)
        and emojis (emoji -> count, in first-seen order).

    Raises:
        InvalidChatExport: If *messages* is not a list.
    """
    if not isinstance(messages, (list, tuple)):
        raise InvalidChatExport(
            f"Expected a list of messages, got {type(messages).__name__}"
        )

    normalized = normalize_keywords(keywords)
    buckets: dict[str, dict] = {}
    skipped = 0
    scan_failures = 0

    for index, message in enumerate(messages):
        if not isinstance(message, dict) or message.get("type") != "message":
            continue

        try:
            key = month_key(message.get("date"), tz)
        except InvalidTimestamp as exc:
            skipped += 1
            logger.debug("Skipping message %s: %s", message.get("id", index), exc)
            continue

        photo = has_photo(message)
        keyword_hits: dict[str, int] = {}
        emojis: list[str] = []
        text = message.get("text")
        if _is_set(text):
            try:
                keyword_hits, emojis = scan_text(text, normalized)
            except ScanFailure as exc:
                scan_failures += 1
                logger.warning("Message %s: %s", message.get("id", index), exc)

        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = _init_month_bucket(key, normalized)
        bucket["message_count"] += 1
        if photo:
            bucket["photo_count"] += 1
        for keyword, hits in keyword_hits.items():
            bucket["keywords"][keyword] += hits
        for grapheme in emojis:
            bucket["emojis"][grapheme] = bucket["emojis"].get(grapheme, 0) + 1

    if skipped:
        logger.warning("Skipped %d messages with unparseable dates", skipped)
    if scan_failures:
        logger.warning("%d messages had text that could not be scanned", scan_failures)

    return buckets


def rank_emojis(
    emoji_counts: dict[str, int], limit: int = TOP_EMOJI_LIMIT,
) -> list[tuple[str, int]]:
    """Return the *limit* most used emoji, highest count first.

    The sort is stable, so emoji with equal counts keep the order in
    which they were first seen during aggregation (dict insertion order).
    """
    ranked = sorted(emoji_counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def format_month(bucket: dict, keywords: Iterable[str]) -> dict[str, list[dict]]:
    """Build the name/value pair lists stored and served for a month.

    Args:
        bucket: A bucket dict from ``aggregate_messages``.
        keywords: The keyword set used for aggregation.  Fixes the order
            of keywords_formatted.

    Returns:
        Dict with keys keywords_formatted (one {name, value} per keyword,
        in keyword order) and emojis_formatted (up to four {name, value}
        pairs from ``rank_emojis``).
    """
    return {
        "keywords_formatted": [
            {"name": keyword, "value": bucket["keywords"].get(keyword, 0)}
            for keyword in normalize_keywords(keywords)
        ],
        "emojis_formatted": [
            {"name": grapheme, "value": count}
            for grapheme, count in rank_emojis(bucket["emojis"])
        ],
    }


def _build_monthly_record(bucket: dict, keywords: Iterable[str]) -> dict:
    """Convert a finished bucket into the record handed to storage."""
    return {
        "month": bucket["month"],
        "message_count": bucket["message_count"],
        "photo_count": bucket["photo_count"],
        "keywords": dict(bucket["keywords"]),
        **format_month(bucket, keywords),
    }


def analyze_chat(
    chat_data: Any,
    keywords: Iterable[str] = DEFAULT_KEYWORDS,
    tz: tzinfo | None = None,
) -> dict[str, Any]:
    """Compute monthly statistics for a parsed chat export.

    Args:
        chat_data: The parsed export from ``load_chat_export``.  Must be a
            dict whose "messages" key holds a list.
        keywords: Keywords to count in message text.
        tz: Zone used for month bucketing.  None means process local.

    Returns:
        Dict with keys chat_name, chat_id, total_messages (length of the
        raw message list, service entries included) and monthly_stats
        (one record per month, in first-seen order).

    Raises:
        InvalidChatExport: If the export has no usable message list.
    """
    if not isinstance(chat_data, dict):
        raise InvalidChatExport("Chat export must be a JSON object")
    messages = chat_data.get("messages")
    if not isinstance(messages, list):
        raise InvalidChatExport("Chat export has no 'messages' list")

    keywords = tuple(keywords)
    logger.info("Analyzing chat %r with %d messages", chat_data.get("name"), len(messages))
    buckets = aggregate_messages(messages, keywords, tz)

    return {
        "chat_name": chat_data.get("name"),
        "chat_id": chat_data.get("id"),
        "total_messages": len(messages),
        "monthly_stats": [
            _build_monthly_record(bucket, keywords) for bucket in buckets.values()
        ],
    }


def analyze_chat_file(
    path: str = "result.json",
    keywords: Iterable[str] = DEFAULT_KEYWORDS,
    tz: tzinfo | None = None,
) -> dict[str, Any]:
    """One-call entry point: load an export file and analyze it.

    Raises:
        FileNotFoundError: If the export does not exist.
        json.JSONDecodeError: If the export contains invalid JSON.
        InvalidChatExport: If the export has no usable message list.
    """
    return analyze_chat(load_chat_export(path), keywords, tz)


def sort_monthly_stats(monthly_stats: list[dict]) -> list[dict]:
    """Return monthly records ordered by month key."""
    return sorted(monthly_stats, key=lambda record: record["month"])


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------

def save_analytics_files(analysis: dict[str, Any], output_dir: str = "chat_analytics") -> None:
    """Write monthly_stats.json and monthly_stats.csv to *output_dir*.

    The CSV has one row per month with a column per keyword and the
    top emoji joined as "emoji:count" pairs.

    Args:
        analysis: Result of ``analyze_chat``.
        output_dir: Directory path for output files.  Created if it
            doesn't exist.  Defaults to "chat_analytics".
    """
    os.makedirs(output_dir, exist_ok=True)
    monthly = sort_monthly_stats(analysis["monthly_stats"])

    with open(f"{output_dir}/monthly_stats.json", "w", encoding="utf-8") as f:
        json.dump({**analysis, "monthly_stats": monthly}, f, indent=2, ensure_ascii=False)

    keyword_names = [item["name"] for item in monthly[0]["keywords_formatted"]] if monthly else []
    with open(f"{output_dir}/monthly_stats.csv", "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(
            f,
            fieldnames=["month", "message_count", "photo_count", *keyword_names, "top_emojis"],
        )
        writer.writeheader()
        for record in monthly:
            row = {
                "month": record["month"],
                "message_count": record["message_count"],
                "photo_count": record["photo_count"],
                "top_emojis": " ".join(
                    f"{item['name']}:{item['value']}" for item in record["emojis_formatted"]
                ),
            }
            row.update({item["name"]: item["value"] for item in record["keywords_formatted"]})
            writer.writerow(row)


def print_summary_report(analysis: dict[str, Any]) -> None:
    """Print the CLI summary report to stdout.

    Args:
        analysis: Result of ``analyze_chat`` (or a stored analysis with
            the same keys).
    """
    monthly = sort_monthly_stats(analysis["monthly_stats"])
    counted = sum(record["message_count"] for record in monthly)

    print(f"\n{'=' * 60}")
    print(f"Chat Summary: {analysis.get('chat_name') or 'Unnamed chat'}")
    print(f"{'=' * 60}")
    print(f"Chat ID: {analysis.get('chat_id')}")
    print(f"Total Entries: {analysis['total_messages']:,}")
    print(f"Messages Counted: {counted:,}")
    print(f"Photos: {sum(record['photo_count'] for record in monthly):,}")

    if monthly:
        print(f"First Month: {monthly[0]['month']}")
        print(f"Last Month: {monthly[-1]['month']}")
        busiest = max(monthly, key=lambda record: record["message_count"])
        print(f"Busiest Month: {busiest['month']} ({busiest['message_count']:,} messages)")

        print(f"\n{'Month':<9} {'Messages':>9} {'Photos':>7}  Top Emoji")
        print(f"{'-' * 60}")
        for record in monthly:
            top = " ".join(
                f"{item['name']}{item['value']}" for item in record["emojis_formatted"]
            )
            print(
                f"{record['month']:<9} {record['message_count']:>9,} "
                f"{record['photo_count']:>7,}  {top}"
            )

        print("\nKeyword Totals:")
        totals: dict[str, int] = {}
        for record in monthly:
            for item in record["keywords_formatted"]:
                totals[item["name"]] = totals.get(item["name"], 0) + item["value"]
        for name, value in totals.items():
            print(f"  {name}: {value:,}")

    print(f"{'=' * 60}")
