"""
History Builder
===============
Orders snapshots chronologically from their period labels ("2024",
"2024-Q3", "Q1 2023"...) and computes period-over-period change.
"""

import re
import sys
from typing import Iterable, Optional

from db.models import Snapshot, TimelineEntry
from utils.helpers import PERCENT_PRECISION, round_value

_YEAR = re.compile(r"(19\d{2}|20\d{2})")
_QUARTER = re.compile(r"Q([1-4])", re.IGNORECASE)

UNPARSEABLE = sys.maxsize


def parse_period_year(period: Optional[str]) -> Optional[int]:
    if not period:
        return None
    match = _YEAR.search(period)
    return int(match.group(1)) if match else None


def period_sort_key(period: Optional[str]) -> int:
    """``year * 10 + quarter``; periods without a year sort last."""
    year = parse_period_year(period)
    if year is None:
        return UNPARSEABLE
    quarter = _QUARTER.search(period)
    return year * 10 + (int(quarter.group(1)) if quarter else 0)


def build_timeline(snapshots: Iterable[Snapshot]) -> list[TimelineEntry]:
    """Oldest period first; change is None for the first entry."""
    ordered = sorted(snapshots, key=lambda s: period_sort_key(s.period))
    timeline: list[TimelineEntry] = []
    previous: Optional[TimelineEntry] = None
    for snapshot in ordered:
        entry = TimelineEntry(
            period=snapshot.period,
            scope1=round_value(snapshot.scope1),
            scope2=round_value(snapshot.scope2),
            scope3=round_value(snapshot.scope3),
            total=round_value(snapshot.total),
        )
        if previous is not None:
            entry.change = round_value(entry.total - previous.total)
            if previous.total:
                entry.change_percent = round_value(
                    entry.change / previous.total * 100, PERCENT_PRECISION
                )
        timeline.append(entry)
        previous = entry
    return timeline
