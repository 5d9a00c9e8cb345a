"""Analyze a Telegram chat export and store its monthly statistics.

Usage: python chat_stats_summary.py [result.json] [--db chat_stats.db]
       [--tz Europe/Kyiv] [--keywords "Добраніч,Скучив"] [--output-dir DIR]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from analytics import (
    InvalidChatExport,
    analyze_chat,
    load_chat_export,
    parse_keywords,
    print_summary_report,
    resolve_timezone,
    save_analytics_files,
)
from storage import save_analysis

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "chat_stats.db"


def main(
    path: str = "result.json",
    db_path: str = DEFAULT_DB_PATH,
    tz_name: str | None = None,
    keywords: str | None = None,
    output_dir: str | None = None,
) -> None:
    """Run the analysis pipeline and print the summary report.

    Exits with status 1 when the export is missing, is not valid JSON,
    or has no message list, or when *tz_name* is not a known zone.
    """
    try:
        tz = resolve_timezone(tz_name)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        chat_data = load_chat_export(path)
    except FileNotFoundError:
        print(f"Error: {path} not found.", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: {path} contains invalid JSON: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        analysis = analyze_chat(chat_data, parse_keywords(keywords), tz)
        save_analysis(analysis, db_path)
    except InvalidChatExport as e:
        print(f"Error: {path} is not a usable chat export: {e}", file=sys.stderr)
        sys.exit(1)

    if output_dir:
        save_analytics_files(analysis, output_dir)
    print_summary_report(analysis)
    if output_dir:
        print(f"\nMonthly statistics saved to '{output_dir}' (monthly_stats.json/csv)")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze a Telegram chat export JSON")
    parser.add_argument("export", nargs="?", default="result.json",
                        help="Path to the chat export (default: result.json)")
    parser.add_argument("--db", default=DEFAULT_DB_PATH,
                        help=f"SQLite database to store the analysis in (default: {DEFAULT_DB_PATH})")
    parser.add_argument("--tz", help="Time zone for month bucketing (default: local time)")
    parser.add_argument("--keywords", help="Comma-separated keywords to count")
    parser.add_argument("--output-dir", "-o", help="Also write monthly_stats.json/csv here")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log skipped messages")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    main(args.export, args.db, args.tz, args.keywords, args.output_dir)
