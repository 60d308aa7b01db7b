"""
dnsentinel/aggregators/trend_aggregator.py
Day-level trends over classified windows, day-over-day comparisons and
simple anomaly flags (spikes relative to the period average).

Input: List[WindowResult] from run_full_analysis.
Days with no windows inside the covered range are reported with zeros.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from dnsentinel.models.record import WindowResult

STABLE_BAND_PERCENT        = 10
SPIKE_FACTOR               = 2.5
HIGH_SPIKE_FACTOR          = 4.0
DEVICE_ANOMALY_FACTOR      = 1.5
DEVICE_ANOMALY_MIN_DEVICES = 3


@dataclass
class DailyTrend:
    date:                  str
    whatsapp_windows:      int  = 0
    facebook_windows:      int  = 0
    communication_windows: int  = 0
    concern_windows:       int  = 0
    masking_windows:       int  = 0
    device_count:          int  = 0
    total_requests:        int  = 0
    peak_window:           str  = ''    # HH:MM with the most requests


@dataclass
class TrendChange:
    value:       int        # current minus previous; a missing previous day counts as 0
    percentage:  int
    trend:       str        # up / down / stable


@dataclass
class TrendComparison:
    current:   DailyTrend
    previous:  Optional[DailyTrend]
    changes:   Dict[str, TrendChange] = field(default_factory=dict)


@dataclass
class Anomaly:
    date:         str
    type:         str       # communication_spike / concern_spike / device_anomaly
    description:  str
    severity:     str       # MEDIUM / HIGH
    value:        int


COMPARED_METRICS = (
    'whatsapp_windows',
    'facebook_windows',
    'communication_windows',
    'concern_windows',
    'masking_windows',
)


def is_communication_window(r: WindowResult) -> bool:
    wa, fb = r.whatsapp, r.facebook
    return (
        wa.is_text_message or wa.is_media_transfer or wa.is_voice_call
        or fb.is_messaging or fb.is_call
    )


def calculate_daily_trends(results: List[WindowResult]) -> List[DailyTrend]:
    if not results:
        return []

    by_day: Dict[date, List[WindowResult]] = {}
    for r in results:
        by_day.setdefault(r.window_start.date(), []).append(r)

    first, last = min(by_day), max(by_day)
    trends: List[DailyTrend] = []
    day = first
    while day <= last:
        trends.append(_trend_for_day(day, by_day.get(day, [])))
        day += timedelta(days=1)
    return trends


def _trend_for_day(day: date, windows: List[WindowResult]) -> DailyTrend:
    devices = set()
    for w in windows:
        devices.update(d for d in w.stats.devices if d != 'unknown')

    peak = max(windows, key=lambda w: w.stats.total_requests, default=None)
    return DailyTrend(
        date                  = day.isoformat(),
        whatsapp_windows      = sum(1 for w in windows if w.whatsapp.score > 0),
        facebook_windows      = sum(1 for w in windows if w.facebook.score > 0),
        communication_windows = sum(1 for w in windows if is_communication_window(w)),
        concern_windows       = sum(1 for w in windows if w.relationship.concern_score > 0),
        masking_windows       = sum(1 for w in windows if w.masking.is_masking),
        device_count          = len(devices),
        total_requests        = sum(w.stats.total_requests for w in windows),
        peak_window           = peak.window_start.strftime('%H:%M') if peak else '',
    )


def calculate_trend_comparisons(trends: List[DailyTrend]) -> List[TrendComparison]:
    out: List[TrendComparison] = []
    for i, current in enumerate(trends):
        previous = trends[i - 1] if i > 0 else None
        changes = {
            m: _change(getattr(current, m), getattr(previous, m) if previous else None)
            for m in COMPARED_METRICS
        }
        out.append(TrendComparison(current=current, previous=previous, changes=changes))
    return out


def _change(current: int, previous: Optional[int]) -> TrendChange:
    if not previous:
        return TrendChange(value=current - (previous or 0), percentage=0, trend='stable')
    delta = current - previous
    pct = delta / previous * 100
    if abs(pct) < STABLE_BAND_PERCENT:
        trend = 'stable'
    else:
        trend = 'up' if pct > 0 else 'down'
    return TrendChange(value=delta, percentage=round(pct), trend=trend)


def detect_anomalies(trends: List[DailyTrend]) -> List[Anomaly]:
    """Needs at least two days for a baseline."""
    if len(trends) < 2:
        return []

    n = len(trends)
    avg_comm    = sum(t.communication_windows for t in trends) / n
    avg_concern = sum(t.concern_windows for t in trends) / n
    avg_devices = sum(t.device_count for t in trends) / n

    anomalies: List[Anomaly] = []
    for t in trends:
        if avg_comm and t.communication_windows > avg_comm * SPIKE_FACTOR:
            anomalies.append(Anomaly(
                date        = t.date,
                type        = 'communication_spike',
                description = (f"Unusually high communication activity "
                               f"({t.communication_windows} vs avg {round(avg_comm)})"),
                severity    = 'HIGH' if t.communication_windows > avg_comm * HIGH_SPIKE_FACTOR else 'MEDIUM',
                value       = t.communication_windows,
            ))
        if avg_concern and t.concern_windows > avg_concern * SPIKE_FACTOR:
            anomalies.append(Anomaly(
                date        = t.date,
                type        = 'concern_spike',
                description = (f"Unusually many relationship-concern windows "
                               f"({t.concern_windows} vs avg {round(avg_concern)})"),
                severity    = 'HIGH' if t.concern_windows > avg_concern * HIGH_SPIKE_FACTOR else 'MEDIUM',
                value       = t.concern_windows,
            ))
        if t.device_count > avg_devices * DEVICE_ANOMALY_FACTOR and t.device_count > DEVICE_ANOMALY_MIN_DEVICES:
            anomalies.append(Anomaly(
                date        = t.date,
                type        = 'device_anomaly',
                description = (f"More devices than usual "
                               f"({t.device_count} vs avg {round(avg_devices)})"),
                severity    = 'MEDIUM',
                value       = t.device_count,
            ))
    return anomalies
