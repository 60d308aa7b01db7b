"""
dnsentinel/detectors/correlator.py
Temporal correlation helpers: which events fall near an anchor event.
Offsets are in seconds and may be asymmetric.
"""

from datetime import datetime
from typing import List, Sequence

from dnsentinel.models.record import LogEvent


def seconds_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds()


def find_in_window(
    events:          Sequence[LogEvent],
    anchor_time:     datetime,
    before_seconds:  float,
    after_seconds:   float,
) -> List[LogEvent]:
    """Events with timestamp in [anchor - before, anchor + after], bounds inclusive."""
    out = []
    for e in events:
        offset = seconds_between(anchor_time, e.timestamp)
        if -before_seconds <= offset <= after_seconds:
            out.append(e)
    return out


def find_after(
    events:          Sequence[LogEvent],
    anchor_time:     datetime,
    within_seconds:  float,
) -> List[LogEvent]:
    """Events strictly after the anchor and at most within_seconds later."""
    out = []
    for e in events:
        offset = seconds_between(anchor_time, e.timestamp)
        if 0 < offset <= within_seconds:
            out.append(e)
    return out
