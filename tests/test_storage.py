"""Tests for storage.py against temporary SQLite files."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

import pytest

from analytics import InvalidChatExport, analyze_chat
from helpers import make_export, make_message, make_monthly_record
from storage import init_db, list_analyses, load_analysis, save_analysis


def _at(day: int) -> datetime:
    return datetime(2024, 3, day, 12, 0, tzinfo=timezone.utc)


class TestInitDb:
    def test_creates_tables(self, db_path):
        init_db(db_path)
        with sqlite3.connect(db_path) as conn:
            tables = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert {"chat_analysis", "monthly_stats"} <= tables

    def test_load_from_empty_db(self, db_path):
        assert load_analysis(db_path) is None
        assert list_analyses(db_path) == []


class TestSaveAnalysis:
    def test_round_trip_keeps_structure(self, db_path, sample_analysis):
        stored = save_analysis(sample_analysis, db_path, now=_at(1))
        assert stored["chat_id"] == 4242
        assert stored["chat_name"] == "Kyiv Nights"
        assert stored["total_messages"] == 9
        assert stored["last_updated"] == _at(1).isoformat()
        assert [r["month"] for r in stored["monthly_stats"]] == ["2023-12", "2024-01", "2024-02"]

        february = stored["monthly_stats"][2]
        assert february["keywords"] == {"добраніч": 2, "скучив": 1}
        assert list(february["keywords"]) == ["добраніч", "скучив"]
        assert february["emojis_formatted"] == [
            {"name": "❤️", "value": 4},
            {"name": "😀", "value": 1},
        ]

    def test_upsert_replaces_months(self, db_path, sample_analysis):
        save_analysis(sample_analysis, db_path, now=_at(1))
        updated = {
            **sample_analysis,
            "chat_name": "Renamed",
            "total_messages": 1,
            "monthly_stats": [make_monthly_record("2025-05", message_count=1)],
        }
        stored = save_analysis(updated, db_path, now=_at(2))
        assert stored["chat_name"] == "Renamed"
        assert stored["last_updated"] == _at(2).isoformat()
        assert [r["month"] for r in stored["monthly_stats"]] == ["2025-05"]
        assert len(list_analyses(db_path)) == 1

    def test_stores_real_analysis(self, db_path):
        export = make_export([
            make_message("2024-01-05T10:00:00", "Добраніч 😀 Добраніч"),
            make_message("2024-01-06T10:00:00", photo=True),
        ])
        analysis = analyze_chat(export)
        stored = save_analysis(analysis, db_path)
        assert stored["monthly_stats"] == analysis["monthly_stats"]

    @pytest.mark.parametrize("chat_id", [None, "4242", True])
    def test_requires_integer_chat_id(self, db_path, sample_analysis, chat_id):
        with pytest.raises(InvalidChatExport):
            save_analysis({**sample_analysis, "chat_id": chat_id}, db_path)


class TestLoadAnalysis:
    def test_default_is_most_recent(self, db_path, sample_analysis):
        save_analysis(sample_analysis, db_path, now=_at(5))
        save_analysis({**sample_analysis, "chat_id": 7, "chat_name": "Older"}, db_path, now=_at(1))
        assert load_analysis(db_path)["chat_id"] == 4242

    def test_by_chat_id(self, db_path, sample_analysis):
        save_analysis(sample_analysis, db_path, now=_at(5))
        save_analysis({**sample_analysis, "chat_id": 7, "chat_name": "Older"}, db_path, now=_at(1))
        assert load_analysis(db_path, 7)["chat_name"] == "Older"

    def test_unknown_chat_id(self, seeded_db):
        assert load_analysis(seeded_db, 999) is None


class TestListAnalyses:
    def test_summary_rows(self, db_path, sample_analysis):
        save_analysis(sample_analysis, db_path, now=_at(1))
        save_analysis(
            {**sample_analysis, "chat_id": 7, "chat_name": "Newer", "monthly_stats": []},
            db_path,
            now=_at(2),
        )
        rows = list_analyses(db_path)
        assert [r["chat_id"] for r in rows] == [7, 4242]
        assert rows[0]["months"] == 0
        assert rows[1]["months"] == 3
        assert rows[1]["chat_name"] == "Kyiv Nights"
