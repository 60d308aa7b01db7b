"""
tests/test_report.py
Report generation: severity, tags, descriptions and summary counts.
Only matched concern patterns may appear in the report, never raw lookups.
"""

import json
from datetime import datetime, timedelta, timezone

from dnsentinel.aggregators.window_aggregator import window_key
from dnsentinel.models.record import (
    DIRECTION_INCOMING,
    FacebookActivity,
    MaskingFlag,
    RelationshipConcern,
    SecretBehavior,
    VpnAttempt,
    WhatsAppActivity,
    WindowResult,
    WindowStats,
)
from dnsentinel.report import (
    DISCLAIMER,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    build_report,
    describe_activity,
    report_to_dict,
    severity_for,
    tags_for,
    window_result_to_dict,
)

BASE = datetime(2025, 9, 13, 10, 0, tzinfo=timezone.utc)


def _result(minute: int = 0, **parts) -> WindowResult:
    start = BASE + timedelta(minutes=minute)
    return WindowResult(
        time_window  = window_key(start),
        window_start = start,
        stats        = WindowStats(total_requests=4, devices={"iPhone": 4}),
        **parts,
    )


class TestSeverity:
    def test_dating_is_critical(self):
        r = _result(relationship=RelationshipConcern(dating_apps=("tinder.com",), concern_score=10))
        assert severity_for(r) == SEVERITY_CRITICAL

    def test_anonymous_is_critical(self):
        r = _result(relationship=RelationshipConcern(anonymous_platforms=("ngl.link",), concern_score=8))
        assert severity_for(r) == SEVERITY_CRITICAL

    def test_alternative_messaging_is_high(self):
        r = _result(relationship=RelationshipConcern(alternative_messaging=("signal.org",), concern_score=6))
        assert severity_for(r) == SEVERITY_HIGH

    def test_concern_score_above_ten_is_high(self):
        r = _result(relationship=RelationshipConcern(
            video_calling=("zoom.us", "skype.com"), social_messaging=("reddit.com", "x.com"),
            concern_score=12,
        ))
        assert severity_for(r) == SEVERITY_HIGH

    def test_platform_score_is_medium(self):
        assert severity_for(_result(whatsapp=WhatsAppActivity(score=7))) == SEVERITY_MEDIUM
        assert severity_for(_result(facebook=FacebookActivity(score=6))) is None

    def test_quiet_window(self):
        assert severity_for(_result()) is None


class TestDescriptions:
    def test_whatsapp_call(self):
        r = _result(whatsapp=WhatsAppActivity(is_voice_call=True, direction=DIRECTION_INCOMING, score=8))
        assert describe_activity(r).title == "WhatsApp Voice Call (incoming)"
        assert "Voice Call" in tags_for(r)
        assert "Incoming" in tags_for(r)

    def test_dating_takes_priority(self):
        r = _result(
            relationship = RelationshipConcern(dating_apps=("bumble.com",), concern_score=10),
            facebook     = FacebookActivity(is_messaging=True, score=6),
        )
        assert describe_activity(r).title == "BUMBLE.COM Dating App Activity"
        assert "BUMBLE.COM" in tags_for(r)

    def test_facebook_media_message(self):
        r = _result(facebook=FacebookActivity(is_messaging=True, is_media_transfer=True, score=12))
        assert describe_activity(r).title == "Facebook Message with Possible Media Exchange"

    def test_background(self):
        assert describe_activity(_result()).title == "Background Activity"

    def test_behaviour_tags(self):
        r = _result(
            vpn    = VpnAttempt(is_possible_vpn=True, score=10),
            secret = SecretBehavior(is_acting_secret=True, score=9),
        )
        tags = tags_for(r)
        assert "Possible VPN" in tags
        assert "Secretive Behavior" in tags
        assert severity_for(r) is None


class TestBuildReport:
    def _results(self):
        return [
            _result(0, facebook=FacebookActivity(is_reels_scrolling=True, score=3)),
            _result(4, facebook=FacebookActivity(is_messaging=True, is_media_transfer=True, score=12),
                    masking=MaskingFlag(True, "Suspicious: strong messaging activity 4min after Reels stopped at 2025-09-13 10:00")),
            _result(6, relationship=RelationshipConcern(dating_apps=("tinder.com",), concern_score=10)),
            _result(8, whatsapp=WhatsAppActivity(is_media_transfer=True, score=4),
                    masking=MaskingFlag(True, "Suspicious: Reels resumed")),
        ]

    def test_summary(self):
        report = build_report(self._results(), event_count=42)
        assert report.summary.event_count == 42
        assert report.summary.window_count == 4
        assert report.summary.masking_windows == 2
        assert report.summary.date_range_start == "2025-09-13 10:00"
        assert report.summary.date_range_end == "2025-09-13 10:08"
        assert report.disclaimer == DISCLAIMER

    def test_behaviour_counts(self):
        results = self._results() + [_result(10, vpn=VpnAttempt(is_possible_vpn=True, score=4))]
        report = build_report(results)
        assert report.summary.vpn_windows == 1
        assert report.summary.secret_windows == 0

    def test_event_count_defaults_to_requests(self):
        assert build_report(self._results()).summary.event_count == 16

    def test_flagged_windows_most_severe_first(self):
        report = build_report(self._results())
        assert [(f.time_window, f.severity) for f in report.flagged_windows] == [
            ("2025-09-13 10:06", SEVERITY_CRITICAL),
            ("2025-09-13 10:04", SEVERITY_MEDIUM),
            ("2025-09-13 10:08", SEVERITY_MEDIUM),
        ]
        assert report.severity_distribution.critical_count == 1
        assert report.severity_distribution.medium_count == 1
        assert len(report.masking_incidents) == 2

    def test_empty(self):
        report = build_report([])
        assert report.flagged_windows == []
        assert report.daily_trends == []
        assert report.summary.date_range_start is None

    def test_serialisable(self):
        d = report_to_dict(build_report(self._results()))
        json.dumps(d)
        assert d["flagged_windows"][0]["tags"] == ["TINDER.COM"]

    def test_window_dict_has_severity(self):
        d = window_result_to_dict(self._results()[2])
        assert d["severity"] == SEVERITY_CRITICAL
        assert d["window_start"] == "2025-09-13T10:06:00+00:00"
        json.dumps(d)
