"""
dnsentinel/aggregators/window_aggregator.py
Groups DNS events into one-minute windows.

A window holds every event whose timestamp truncates to the same minute,
across all devices. Keys are rendered "YYYY-MM-DD HH:MM" in the events'
own timezone (UTC after parsing).
"""

from collections import Counter, OrderedDict
from datetime import datetime
from typing import Dict, List, Sequence

from dnsentinel.models.record import LogEvent, WindowStats

WINDOW_KEY_FORMAT = '%Y-%m-%d %H:%M'


def window_start(ts: datetime) -> datetime:
    return ts.replace(second=0, microsecond=0)


def window_key(ts: datetime) -> str:
    return window_start(ts).strftime(WINDOW_KEY_FORMAT)


def group_by_window(events: Sequence[LogEvent]) -> "OrderedDict[str, List[LogEvent]]":
    """
    Bucket events by window key. Windows come out in chronological order
    and the events inside each window are sorted by timestamp.
    """
    buckets: Dict[datetime, List[LogEvent]] = {}
    for e in events:
        buckets.setdefault(window_start(e.timestamp), []).append(e)

    grouped: "OrderedDict[str, List[LogEvent]]" = OrderedDict()
    for start in sorted(buckets):
        grouped[start.strftime(WINDOW_KEY_FORMAT)] = sorted(
            buckets[start], key=lambda e: e.timestamp
        )
    return grouped


def build_window_stats(events: Sequence[LogEvent]) -> WindowStats:
    """Request counts for one window. Events without a device name are counted under 'unknown'."""
    blocked = sum(1 for e in events if e.blocked)
    devices = Counter(e.device_name or 'unknown' for e in events)
    return WindowStats(
        total_requests   = len(events),
        blocked_requests = blocked,
        allowed_requests = len(events) - blocked,
        unique_domains   = len({e.domain for e in events}),
        devices          = dict(devices),
    )
