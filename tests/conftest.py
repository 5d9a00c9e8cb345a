"""Shared fixtures for chat statistics tests."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import make_monthly_record
from storage import save_analysis


# ── Stored analysis for app.py tests ──


def _sample_analysis() -> dict:
    """Return an analysis dict matching analytics.analyze_chat() shape."""
    return {
        "chat_name": "Kyiv Nights",
        "chat_id": 4242,
        "total_messages": 9,
        "monthly_stats": [
            make_monthly_record(
                "2024-02",
                message_count=3,
                photo_count=12,
                keywords={"добраніч": 2, "скучив": 1},
                emojis=[("❤️", 4), ("😀", 1)],
            ),
            make_monthly_record("2023-12", message_count=2, photo_count=0),
            make_monthly_record(
                "2024-01",
                message_count=4,
                photo_count=1,
                keywords={"добраніч": 5, "скучив": 0},
                emojis=[("🎉", 3)],
            ),
        ],
    }


@pytest.fixture()
def sample_analysis():
    """Return the sample analysis dict."""
    return _sample_analysis()


@pytest.fixture()
def db_path(tmp_path):
    """Path to an empty SQLite file inside tmp_path."""
    return tmp_path / "chat_stats.db"


@pytest.fixture()
def seeded_db(db_path, sample_analysis):
    """A database holding the sample analysis."""
    save_analysis(
        sample_analysis, db_path, now=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
    )
    return db_path


@pytest.fixture()
def client(seeded_db):
    """TestClient for app.py backed by the seeded database.

    Patches DB_PATH so no real database is touched and resets the
    module-level cache between tests.
    """
    import app as app_module

    with patch.object(app_module, "_cache", {"data": {}, "built_at": {}}):
        with patch.object(app_module, "DB_PATH", seeded_db):
            with TestClient(app_module.app) as tc:
                yield tc


@pytest.fixture()
def empty_client(db_path):
    """TestClient for app.py with an empty database."""
    import app as app_module

    with patch.object(app_module, "_cache", {"data": {}, "built_at": {}}):
        with patch.object(app_module, "DB_PATH", db_path):
            with TestClient(app_module.app) as tc:
                yield tc
