"""FastAPI service for Telegram chat statistics.

Serves monthly statistics, photo galleries and a reanalysis trigger over
analyses stored in SQLite, with cached reads (1-hour TTL since data only
changes when an export is reanalyzed).

Deployment: uvicorn app:app --host 127.0.0.1 --port 5050
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from analytics import ChatStatsError, analyze_chat_file, parse_keywords, resolve_timezone
from queries import InvalidFormat, NotFound, month_gallery, month_statistics, year_statistics
from storage import list_analyses, load_analysis, save_analysis

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
DB_PATH = Path(os.environ.get("CHAT_STATS_DB", Path(__file__).parent / "chat_stats.db"))
EXPORT_PATH = Path(os.environ.get("CHAT_EXPORT_PATH", Path(__file__).parent / "result.json"))
TIMEZONE = resolve_timezone(os.environ.get("CHAT_STATS_TZ"))
KEYWORDS = parse_keywords(os.environ.get("CHAT_STATS_KEYWORDS"))
CACHE_TTL_SECONDS = 3600  # 1 hour
VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Chat Statistics API", version=VERSION)


class AnalyzeFileRequest(BaseModel):
    filePath: str | None = None


# ---------------------------------------------------------------------------
# Thread-safe cache
# ---------------------------------------------------------------------------
_cache_lock = threading.Lock()
_cache: dict[str, Any] = {
    "data": {},
    "built_at": {},
}


def _get_cached_analysis(
    chat_id: int | None = None, force_refresh: bool = False,
) -> dict[str, Any] | None:
    """Return the stored analysis for *chat_id*, reloading if stale or forced.

    None selects the most recently updated chat.  A missing analysis is
    not cached, so one stored by the CLI shows up on the next request.
    """
    now = time.monotonic()
    with _cache_lock:
        if (
            not force_refresh
            and _cache["data"].get(chat_id) is not None
            and (now - _cache["built_at"].get(chat_id, 0.0)) < CACHE_TTL_SECONDS
        ):
            return _cache["data"][chat_id]

    data = load_analysis(DB_PATH, chat_id)

    with _cache_lock:
        if data is None:
            _cache["data"].pop(chat_id, None)
            _cache["built_at"].pop(chat_id, None)
        else:
            _cache["data"][chat_id] = data
            _cache["built_at"][chat_id] = time.monotonic()

    return data


def _clear_cache() -> None:
    with _cache_lock:
        _cache["data"].clear()
        _cache["built_at"].clear()


def _run_query(query, chat_id: int | None, key: str) -> Any:
    """Run a query against the cached analysis, mapping errors to HTTP codes."""
    try:
        return query(_get_cached_analysis(chat_id), key)
    except InvalidFormat as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
@app.get("/api/health")
def healthz():
    return {"status": "ok", "version": VERSION}


@app.get("/api/statistics/year/{year}")
def api_year_statistics(year: str, chat_id: int | None = None):
    """Message counts for all months in a specific year."""
    return _run_query(year_statistics, chat_id, year)


@app.get("/api/statistics/{month_key}")
def api_month_statistics(month_key: str, chat_id: int | None = None):
    """Detailed statistics for a specific month."""
    return _run_query(month_statistics, chat_id, month_key)


@app.get("/api/gallery/{month_key}")
def api_gallery(month_key: str, chat_id: int | None = None):
    """Placeholder photo gallery for a specific month."""
    return _run_query(month_gallery, chat_id, month_key)


@app.get("/api/chats")
def api_chats():
    """Summary of every stored chat analysis."""
    return list_analyses(DB_PATH)


@app.post("/api/analyze/file")
def api_analyze_file(body: AnalyzeFileRequest | None = None):
    """Analyze a chat export file and store the result."""
    file_path = Path(body.filePath) if body and body.filePath else EXPORT_PATH
    if not file_path.is_file():
        raise HTTPException(status_code=400, detail="File not found at specified path")

    try:
        analysis = analyze_chat_file(str(file_path), KEYWORDS, TIMEZONE)
        stored = save_analysis(analysis, DB_PATH)
    except (ChatStatsError, ValueError, OSError) as exc:
        logger.exception("Error analyzing chat file %s", file_path)
        raise HTTPException(
            status_code=500,
            detail={"error": "Analysis failed", "details": str(exc)},
        )

    _clear_cache()
    _get_cached_analysis(stored["chat_id"], force_refresh=True)
    return {
        "success": True,
        "message": "Chat analysis completed",
        "chatId": stored["chat_id"],
        "totalMessages": stored["total_messages"],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "5050")))
