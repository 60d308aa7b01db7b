"""
tests/test_patterns.py
Domain matching and correlation helpers.
"""

from datetime import datetime, timedelta, timezone

from dnsentinel.detectors.correlator import find_after, find_in_window, seconds_between
from dnsentinel.detectors.patterns import (
    FB_MEDIA_UPLOAD,
    FB_VIDEO_STATIC,
    WA_SIGNALING,
    contains_service,
    count_pattern,
    domain_matches,
    domain_matches_all,
    has_pattern,
    is_push_anchor,
    is_whatsapp_media_cdn,
    matching_events,
)
from dnsentinel.models.record import LogEvent

BASE = datetime(2025, 9, 13, 10, 8, 0, tzinfo=timezone.utc)


def _ev(offset_s: float, domain: str) -> LogEvent:
    return LogEvent(timestamp=BASE + timedelta(seconds=offset_s), domain=domain)


class TestDomainMatching:
    def test_substring_match(self):
        assert domain_matches("g.whatsapp.net", WA_SIGNALING)
        assert domain_matches("rupload.facebook.com", FB_MEDIA_UPLOAD)

    def test_case_insensitive(self):
        assert domain_matches("G.WhatsApp.NET", WA_SIGNALING)

    def test_no_match(self):
        assert not domain_matches("example.com", WA_SIGNALING)

    def test_empty_patterns_never_match(self):
        assert not domain_matches("g.whatsapp.net", ())

    def test_match_all_needs_every_pattern(self):
        assert domain_matches_all("static-1.xx.fbcdn.net", FB_VIDEO_STATIC)
        assert not domain_matches_all("static.xx.fbcdn.net", FB_VIDEO_STATIC)

    def test_event_helpers(self):
        events = [_ev(0, "g.whatsapp.net"), _ev(1, "example.com"), _ev(2, "dit.whatsapp.net")]
        assert has_pattern(events, WA_SIGNALING)
        assert count_pattern(events, WA_SIGNALING) == 2
        assert [e.domain for e in matching_events(events, WA_SIGNALING)] == [
            "g.whatsapp.net", "dit.whatsapp.net",
        ]

    def test_has_pattern_empty_events(self):
        assert not has_pattern([], WA_SIGNALING)


class TestSpecialDomains:
    def test_push_anchor(self):
        assert is_push_anchor(_ev(0, "12-courier.push.apple.com"))
        assert not is_push_anchor(_ev(0, "api.push.apple.com"))
        assert not is_push_anchor(_ev(0, "courier.example.com"))

    def test_whatsapp_media_cdn(self):
        assert is_whatsapp_media_cdn(_ev(0, "media-lhr8-1.cdn.whatsapp.net"))
        assert not is_whatsapp_media_cdn(_ev(0, "mmg.whatsapp.net"))

    def test_contains_service_is_substring(self):
        assert contains_service("tinder.com", "tinder.com")
        assert contains_service("api.gotinder.com", "tinder.com")
        assert contains_service("WEB.Telegram.ORG.", "telegram.org")
        assert not contains_service("tinder.co", "tinder.com")

    def test_short_names_need_a_label_start(self):
        assert contains_service("x.com", "x.com")
        assert contains_service("api.x.com", "x.com")
        assert contains_service("cdn-x.com", "x.com")
        assert not contains_service("netflix.com", "x.com")
        assert not contains_service("box.com", "x.com")
        assert not contains_service("tqq.com", "qq.com")


class TestCorrelator:
    def test_seconds_between(self):
        assert seconds_between(BASE, BASE + timedelta(seconds=7)) == 7

    def test_find_in_window_bounds_inclusive(self):
        events = [_ev(-10, "a"), _ev(-11, "b"), _ev(5, "c"), _ev(6, "d")]
        hits = find_in_window(events, BASE, 10, 5)
        assert {e.domain for e in hits} == {"a", "c"}

    def test_find_in_window_asymmetric(self):
        events = [_ev(-3, "a"), _ev(3, "b")]
        assert [e.domain for e in find_in_window(events, BASE, 0, 5)] == ["b"]

    def test_find_after_excludes_anchor_instant(self):
        events = [_ev(0, "a"), _ev(1, "b"), _ev(120, "c"), _ev(121, "d")]
        assert [e.domain for e in find_after(events, BASE, 120)] == ["b", "c"]
