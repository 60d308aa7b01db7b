"""
tests/test_trends.py
Daily trend rollups, day-over-day comparison and anomaly detection.
"""

from datetime import datetime, timedelta, timezone

from dnsentinel.aggregators.trend_aggregator import (
    DailyTrend,
    calculate_daily_trends,
    calculate_trend_comparisons,
    detect_anomalies,
)
from dnsentinel.aggregators.window_aggregator import window_key
from dnsentinel.models.record import (
    FacebookActivity,
    RelationshipConcern,
    WhatsAppActivity,
    WindowResult,
    WindowStats,
)

DAY0 = datetime(2025, 9, 13, 0, 0, tzinfo=timezone.utc)


def _window(day: int, minute: int, *, wa_text=False, fb_msg=False, concern=0, requests=1, devices=None):
    start = DAY0 + timedelta(days=day, minutes=minute)
    return WindowResult(
        time_window  = window_key(start),
        window_start = start,
        stats        = WindowStats(total_requests=requests, devices=devices or {"iPhone": requests}),
        whatsapp     = WhatsAppActivity(is_text_message=wa_text, score=4 if wa_text else 0),
        facebook     = FacebookActivity(is_messaging=fb_msg, score=6 if fb_msg else 0),
        relationship = RelationshipConcern(concern_score=concern),
    )


def _trend(date: str, comm: int = 0, concern: int = 0, devices: int = 1) -> DailyTrend:
    return DailyTrend(date=date, communication_windows=comm, concern_windows=concern, device_count=devices)


class TestDailyTrends:
    def test_empty(self):
        assert calculate_daily_trends([]) == []

    def test_rollup(self):
        trends = calculate_daily_trends([
            _window(0, 10, wa_text=True, requests=3),
            _window(0, 11, fb_msg=True, requests=9, devices={"iPhone": 5, "iPad": 4}),
            _window(0, 12, concern=10),
        ])
        assert len(trends) == 1
        t = trends[0]
        assert t.date == "2025-09-13"
        assert t.whatsapp_windows == 1
        assert t.facebook_windows == 1
        assert t.communication_windows == 2
        assert t.concern_windows == 1
        assert t.device_count == 2
        assert t.total_requests == 13
        assert t.peak_window == "00:11"

    def test_gap_days_filled(self):
        trends = calculate_daily_trends([_window(0, 0), _window(2, 0)])
        assert [t.date for t in trends] == ["2025-09-13", "2025-09-14", "2025-09-15"]
        assert trends[1].total_requests == 0
        assert trends[1].peak_window == ""


class TestComparisons:
    def test_first_day_is_stable(self):
        comps = calculate_trend_comparisons([_trend("2025-09-13", comm=5)])
        assert comps[0].previous is None
        assert comps[0].changes["communication_windows"].trend == "stable"

    def test_up_down_stable(self):
        comps = calculate_trend_comparisons([
            _trend("2025-09-13", comm=10, concern=10),
            _trend("2025-09-14", comm=20, concern=5),
            _trend("2025-09-15", comm=21, concern=5),
        ])
        assert comps[1].changes["communication_windows"].trend == "up"
        assert comps[1].changes["communication_windows"].percentage == 100
        assert comps[1].changes["concern_windows"].trend == "down"
        assert comps[2].changes["communication_windows"].trend == "stable"

    def test_value_is_always_the_delta(self):
        comps = calculate_trend_comparisons([
            _trend("2025-09-13", comm=5),
            _trend("2025-09-14", comm=0),
            _trend("2025-09-15", comm=4),
            _trend("2025-09-16", comm=6),
        ])
        values = [c.changes["communication_windows"].value for c in comps]
        assert values == [5, -5, 4, 2]


class TestAnomalies:
    def test_needs_two_days(self):
        assert detect_anomalies([_trend("2025-09-13", comm=100)]) == []

    def test_communication_spike(self):
        trends = [_trend(f"2025-09-{d:02d}", comm=1) for d in range(1, 10)]
        trends.append(_trend("2025-09-10", comm=30))
        anomalies = detect_anomalies(trends)
        assert [(a.date, a.type, a.severity) for a in anomalies] == [
            ("2025-09-10", "communication_spike", "HIGH"),
        ]

    def test_device_anomaly(self):
        trends = [_trend(f"2025-09-{d:02d}", devices=1) for d in range(1, 5)]
        trends.append(_trend("2025-09-05", devices=6))
        anomalies = detect_anomalies(trends)
        assert [a.type for a in anomalies] == ["device_anomaly"]

    def test_quiet_data(self):
        trends = [_trend(f"2025-09-{d:02d}", comm=3, concern=1, devices=2) for d in range(1, 8)]
        assert detect_anomalies(trends) == []
