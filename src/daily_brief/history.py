"""Read back recent published runs as a plain-text digest.

The digest is passed to the model as advisory context so it steers away from
repeating recent stories. It is never used for programmatic deduplication.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

RUN_DIR_FORMAT = "%Y-%m-%dT%H-%M"
INDEX_FILENAME = "index.html"


@dataclass(frozen=True)
class HistoryEntry:
    date: date
    group: str
    title: str
    summary: str


def run_dir_name(moment: datetime) -> str:
    """Sortable directory name for a run started at `moment`, e.g. 2025-10-17T14-30."""
    return moment.strftime(RUN_DIR_FORMAT)


def parse_run_dir(name: str) -> Optional[datetime]:
    try:
        return datetime.strptime(name, RUN_DIR_FORMAT)
    except ValueError:
        return None


def list_runs(output_root: Path) -> List[tuple[datetime, Path]]:
    """Return (started_at, directory) for every run folder, oldest first."""
    if not output_root.is_dir():
        return []
    runs = []
    for path in output_root.iterdir():
        started = parse_run_dir(path.name) if path.is_dir() else None
        if started is not None:
            runs.append((started, path))
    return sorted(runs)


def latest_run_per_day(output_root: Path) -> Dict[date, Path]:
    """Map each calendar day to its most recent run directory."""
    latest: Dict[date, Path] = {}
    for started, path in list_runs(output_root):
        latest[started.date()] = path  # sorted ascending, so later runs overwrite
    return latest


def _text(node) -> str:
    return " ".join(node.get_text(" ", strip=True).split()) if node is not None else ""


def parse_index(html: str, day: date) -> List[HistoryEntry]:
    """
    Extract (group, title, summary) entries from a rendered index page.

    Each group is an <h2> heading followed by a list whose items hold a bold
    title and a secondary-styled summary.
    """
    soup = BeautifulSoup(html, "html.parser")
    entries: List[HistoryEntry] = []
    for heading in soup.find_all("h2"):
        group = _text(heading)
        listing = heading.find_next_sibling(["ul", "ol"])
        if not group or listing is None:
            continue
        for item in listing.find_all("li"):
            title = _text(item.find(["strong", "b"]))
            summary = _text(
                item.find(class_="story-summary") or item.find(["small", "em", "span"])
            )
            if title and summary:
                entries.append(HistoryEntry(date=day, group=group, title=title, summary=summary))
    return entries


def read_history(
    output_root: Path, as_of: date, lookback_days: int = 14
) -> List[HistoryEntry]:
    """Return entries from the latest run of each of the `lookback_days` days before `as_of`."""
    runs = latest_run_per_day(output_root)
    entries: List[HistoryEntry] = []
    for offset in range(lookback_days, 0, -1):
        day = as_of - timedelta(days=offset)
        run_dir = runs.get(day)
        if run_dir is None:
            continue
        index_path = run_dir / INDEX_FILENAME
        try:
            html = index_path.read_text(encoding="utf-8")
            day_entries = parse_index(html, day)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            logger.warning("Skipping history for %s: cannot read %s (%s)", day, index_path, exc)
            continue
        if not day_entries:
            logger.warning("Skipping history for %s: no stories found in %s", day, index_path)
            continue
        entries.extend(day_entries)
    return entries


def format_digest(entries: List[HistoryEntry]) -> str:
    return "\n".join(
        f"Day {entry.date.isoformat()}: Group: {entry.group} - "
        f"Title: {entry.title}, Summary: {entry.summary}"
        for entry in entries
    )


def load_history(output_root: Path | str, as_of: date, lookback_days: int = 14) -> str:
    """Digest of stories published in the prior `lookback_days` days; empty when none."""
    entries = read_history(Path(output_root), as_of, lookback_days)
    logger.info("Loaded %d history entries from the last %d days.", len(entries), lookback_days)
    return format_digest(entries)
