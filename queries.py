"""Read queries over a stored chat analysis.

Pure filtering and presentation: year listings, a single month's
details, and placeholder photo galleries.  Response dicts use the
camelCase field names the dashboard frontend reads.
"""

from __future__ import annotations

import re
from typing import Any

from analytics import ChatStatsError, sort_monthly_stats

YEAR_PATTERN = re.compile(r"\d{4}", re.ASCII)
MONTH_PATTERN = re.compile(r"\d{4}-\d{2}", re.ASCII)
GALLERY_LIMIT = 10
FEATURED_COUNT = 2
PLACEHOLDER_URL = "/api/placeholder/400/300"


class InvalidFormat(ChatStatsError):
    """A query parameter does not have the expected shape."""


class NotFound(ChatStatsError):
    """No stored analysis, or no month matching the query."""


def validate_year(year: str) -> str:
    if not isinstance(year, str) or not YEAR_PATTERN.fullmatch(year):
        raise InvalidFormat("Invalid year format")
    return year


def validate_month_key(month_key: str) -> str:
    if not isinstance(month_key, str) or not MONTH_PATTERN.fullmatch(month_key):
        raise InvalidFormat("Invalid month format. Use YYYY-MM")
    return month_key


def _require_analysis(analysis: dict[str, Any] | None) -> dict[str, Any]:
    if analysis is None:
        raise NotFound("No chat analysis data found")
    return analysis


def find_month(analysis: dict[str, Any] | None, month_key: str) -> dict:
    """Return the monthly record for *month_key*.

    Raises:
        InvalidFormat: If *month_key* is not "YYYY-MM".
        NotFound: If there is no analysis or no record for the month.
    """
    validate_month_key(month_key)
    for record in _require_analysis(analysis)["monthly_stats"]:
        if record["month"] == month_key:
            return record
    raise NotFound("No data found for the specified month")


def year_statistics(analysis: dict[str, Any] | None, year: str) -> list[dict]:
    """List message counts for every stored month of *year*.

    Returns:
        List of {month, messageCount} dicts sorted by month.

    Raises:
        InvalidFormat: If *year* is not four digits.
        NotFound: If there is no analysis or no month in that year.
    """
    validate_year(year)
    prefix = f"{year}-"
    months = [
        {"month": record["month"], "messageCount": record["message_count"]}
        for record in sort_monthly_stats(_require_analysis(analysis)["monthly_stats"])
        if record["month"].startswith(prefix)
    ]
    if not months:
        raise NotFound(f"No data found for year {year}")
    return months


def month_statistics(analysis: dict[str, Any] | None, month_key: str) -> dict[str, Any]:
    """Detailed statistics for one month.

    Returns:
        Dict with keys month, totalMessages, keywords (name -> count in
        keyword order), emojis (top emoji -> count, highest first) and
        memeCount (photo count).
    """
    record = find_month(analysis, month_key)
    return {
        "month": record["month"],
        "totalMessages": record["message_count"],
        "keywords": {item["name"]: item["value"] for item in record["keywords_formatted"]},
        "emojis": {item["name"]: item["value"] for item in record["emojis_formatted"]},
        "memeCount": record["photo_count"] or 0,
    }


def month_gallery(analysis: dict[str, Any] | None, month_key: str) -> dict[str, Any]:
    """Placeholder photo gallery for one month.

    Photos are only counted during analysis, never stored, so the
    gallery holds up to ``GALLERY_LIMIT`` placeholder items.  The first
    ``FEATURED_COUNT`` of them are also returned as featured.
    """
    record = find_month(analysis, month_key)
    photo_count = record["photo_count"] or 0
    gallery = [
        {
            "id": f"{month_key}-photo-{i}",
            "url": PLACEHOLDER_URL,
            "caption": f"Photo {i} of {photo_count}",
        }
        for i in range(1, min(photo_count, GALLERY_LIMIT) + 1)
    ]
    return {
        "month": month_key,
        "totalPhotos": photo_count,
        "featuredPhotos": gallery[:FEATURED_COUNT],
        "gallery": gallery,
    }
