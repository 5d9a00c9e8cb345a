"""Charts of stored monthly chat statistics.

Writes monthly_activity.png (messages and photos per month) and
keyword_trends.png (keyword counts per month).
"""

from __future__ import annotations

import argparse
import os

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from storage import load_analysis


def monthly_frame(monthly_stats: list[dict]) -> pd.DataFrame:
    """One row per month with message, photo and per-keyword columns."""
    rows = []
    for record in monthly_stats:
        row = {
            "month": record["month"],
            "messages": record["message_count"],
            "photos": record["photo_count"],
        }
        row.update({item["name"]: item["value"] for item in record["keywords_formatted"]})
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["month", "messages", "photos"])
    return pd.DataFrame(rows).sort_values("month").reset_index(drop=True)


def plot_monthly_stats(monthly_stats: list[dict], output_dir: str = "chat_analytics") -> list[str]:
    """Write the monthly charts and return the paths written."""
    os.makedirs(output_dir, exist_ok=True)
    df = monthly_frame(monthly_stats)
    paths = []

    # Messages and photos per month
    plt.figure(figsize=(15, 8))
    plt.bar(df["month"], df["messages"], alpha=0.5, color="skyblue", label="Messages")
    plt.plot(df["month"], df["photos"], color="red", linewidth=2, marker="o", label="Photos")
    plt.title("Monthly Messages and Photos", fontsize=14, pad=20)
    plt.xlabel("Month", fontsize=12)
    plt.ylabel("Count", fontsize=12)
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.xticks(rotation=45)
    plt.tight_layout()
    path = os.path.join(output_dir, "monthly_activity.png")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    paths.append(path)

    # Keyword counts per month
    keyword_columns = [c for c in df.columns if c not in ("month", "messages", "photos")]
    plt.figure(figsize=(15, 8))
    if keyword_columns and not df.empty:
        long_df = df.melt(
            id_vars="month", value_vars=keyword_columns, var_name="keyword", value_name="count",
        )
        sns.lineplot(data=long_df, x="month", y="count", hue="keyword", marker="o")
    plt.title("Keyword Mentions per Month", fontsize=14, pad=20)
    plt.xlabel("Month", fontsize=12)
    plt.ylabel("Mentions", fontsize=12)
    plt.grid(True, alpha=0.3)
    plt.xticks(rotation=45)
    plt.tight_layout()
    path = os.path.join(output_dir, "keyword_trends.png")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    paths.append(path)

    return paths


def main() -> None:
    parser = argparse.ArgumentParser(description="Plot stored monthly chat statistics")
    parser.add_argument("--db", default="chat_stats.db", help="SQLite database (default: chat_stats.db)")
    parser.add_argument("--chat-id", type=int, help="Chat to plot (default: most recently analyzed)")
    parser.add_argument("--output-dir", "-o", default="chat_analytics",
                        help="Directory for PNG files (default: chat_analytics)")
    args = parser.parse_args()

    analysis = load_analysis(args.db, args.chat_id)
    if analysis is None:
        parser.error(f"No stored analysis in {args.db}. Run chat_stats_summary.py first.")

    for path in plot_monthly_stats(analysis["monthly_stats"], args.output_dir):
        print(f"Saved {path}")


if __name__ == "__main__":
    main()
