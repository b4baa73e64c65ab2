#!/usr/bin/env python3
"""
Print a short summary of the most recent crawl reports.

Usage:
    scripts/report_summary.py [LIMIT] [REPORT_DIR]

LIMIT defaults to 3 reports; REPORT_DIR defaults to $REPORT_DIR or
<project>/local/reports.
"""

import glob
import json
import os
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_REPORT_DIR = PROJECT_ROOT / "local" / "reports"


def get_report_files(report_dir: str) -> list[str]:
    """Newest first; file names carry a sortable UTC stamp."""
    return sorted(glob.glob(os.path.join(report_dir, "crawl-*.json")), reverse=True)


def load_report(path: str) -> dict | None:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error reading {path}: {e}", file=sys.stderr)
        return None
    return data if isinstance(data, dict) else None


def format_timestamp(iso_str: str) -> str:
    """Convert ISO timestamp to readable local format."""
    try:
        dt = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
        return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    except ValueError:
        return iso_str


def summarize(report: dict) -> list[str]:
    lines = []
    for term in report.get("terms", []):
        jobs = term.get("jobs") or {}
        total = sum(len(v) for v in jobs.values())
        top = sorted(jobs.items(), key=lambda kv: len(kv[1]), reverse=True)[:3]
        cats = ", ".join(f"{k} ({len(v)})" for k, v in top) or "-"
        flags = []
        if term.get("failed"):
            flags.append(f"{len(term['failed'])} failed")
        if term.get("error"):
            flags.append("ended early")
        suffix = f"  [{'; '.join(flags)}]" if flags else ""
        lines.append(f"  {term.get('term', '?'):<28} {total:>4}  {cats}{suffix}")
    return lines


def main():
    limit = 3
    if len(sys.argv) > 1:
        try:
            limit = int(sys.argv[1])
            if limit <= 0:
                raise ValueError
        except ValueError:
            print(f"Invalid limit: {sys.argv[1]}. Using default (3).", file=sys.stderr)
            limit = 3

    report_dir = sys.argv[2] if len(sys.argv) > 2 else os.getenv("REPORT_DIR", str(DEFAULT_REPORT_DIR))
    if not os.path.isdir(report_dir):
        print(f"Directory not found: {report_dir}")
        sys.exit(1)

    files = get_report_files(report_dir)[:limit]
    if not files:
        print(f"No crawl reports found in {report_dir}")
        return

    for path in files:
        report = load_report(path)
        if report is None:
            continue
        print(f"\n{os.path.basename(path)}  (started {format_timestamp(report.get('started_at', ''))})")
        print("-" * 72)
        for line in summarize(report):
            print(line)


if __name__ == "__main__":
    main()
