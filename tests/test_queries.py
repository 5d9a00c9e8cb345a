"""Tests for queries.py (year, month and gallery queries)."""

from __future__ import annotations

import pytest

from helpers import make_monthly_record
from queries import (
    InvalidFormat,
    NotFound,
    find_month,
    month_gallery,
    month_statistics,
    year_statistics,
)


class TestYearStatistics:
    def test_filters_and_sorts(self, sample_analysis):
        assert year_statistics(sample_analysis, "2024") == [
            {"month": "2024-01", "messageCount": 4},
            {"month": "2024-02", "messageCount": 3},
        ]

    def test_other_year(self, sample_analysis):
        assert year_statistics(sample_analysis, "2023") == [
            {"month": "2023-12", "messageCount": 2},
        ]

    @pytest.mark.parametrize("year", ["24", "20245", "2024-01", "abcd", "2024\n", "٢٠٢٤", ""])
    def test_invalid_format(self, sample_analysis, year):
        with pytest.raises(InvalidFormat):
            year_statistics(sample_analysis, year)

    def test_no_analysis(self):
        with pytest.raises(NotFound):
            year_statistics(None, "2024")

    def test_year_without_months(self, sample_analysis):
        with pytest.raises(NotFound):
            year_statistics(sample_analysis, "1999")


class TestMonthStatistics:
    def test_response_shape(self, sample_analysis):
        assert month_statistics(sample_analysis, "2024-02") == {
            "month": "2024-02",
            "totalMessages": 3,
            "keywords": {"добраніч": 2, "скучив": 1},
            "emojis": {"❤️": 4, "😀": 1},
            "memeCount": 12,
        }

    def test_keyword_order_preserved(self, sample_analysis):
        result = month_statistics(sample_analysis, "2024-01")
        assert list(result["keywords"]) == ["добраніч", "скучив"]

    @pytest.mark.parametrize("key", ["2024-1", "2024/01", "202401", "2024-01-01", "2024-01\n"])
    def test_invalid_format(self, sample_analysis, key):
        with pytest.raises(InvalidFormat):
            month_statistics(sample_analysis, key)

    def test_missing_month(self, sample_analysis):
        with pytest.raises(NotFound, match="specified month"):
            month_statistics(sample_analysis, "2024-05")

    def test_no_analysis(self):
        with pytest.raises(NotFound, match="No chat analysis"):
            month_statistics(None, "2024-01")

    def test_format_checked_before_lookup(self):
        with pytest.raises(InvalidFormat):
            find_month(None, "January")


class TestMonthGallery:
    def test_caps_at_ten_items(self, sample_analysis):
        result = month_gallery(sample_analysis, "2024-02")
        assert result["totalPhotos"] == 12
        assert len(result["gallery"]) == 10
        assert result["gallery"][0] == {
            "id": "2024-02-photo-1",
            "url": "/api/placeholder/400/300",
            "caption": "Photo 1 of 12",
        }
        assert result["gallery"][-1]["id"] == "2024-02-photo-10"

    def test_first_two_featured(self, sample_analysis):
        result = month_gallery(sample_analysis, "2024-02")
        assert result["featuredPhotos"] == result["gallery"][:2]

    def test_single_photo(self, sample_analysis):
        result = month_gallery(sample_analysis, "2024-01")
        assert len(result["gallery"]) == 1
        assert len(result["featuredPhotos"]) == 1

    def test_no_photos(self, sample_analysis):
        result = month_gallery(sample_analysis, "2023-12")
        assert result == {
            "month": "2023-12",
            "totalPhotos": 0,
            "featuredPhotos": [],
            "gallery": [],
        }

    def test_missing_month(self):
        analysis = {"monthly_stats": [make_monthly_record("2024-01", photo_count=3)]}
        with pytest.raises(NotFound):
            month_gallery(analysis, "2024-02")
