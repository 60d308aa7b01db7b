"""
tests/test_facebook_detector.py
Facebook / Messenger classifier: Reels and app-launch overrides, calls,
media exchange, text and API messaging.
"""

from datetime import datetime, timedelta, timezone

from dnsentinel.detectors.facebook_detector import WEIGHTS, detect_facebook_activity
from dnsentinel.models.record import LogEvent

BASE = datetime(2025, 9, 13, 10, 8, 0, tzinfo=timezone.utc)

PUSH = "3-courier.push.apple.com"


def _ev(offset_s: float, domain: str) -> LogEvent:
    return LogEvent(timestamp=BASE + timedelta(seconds=offset_s), domain=domain)


def _window(*domains: str, step: float = 1.0):
    return [_ev(i * step, d) for i, d in enumerate(domains)]


def _labels(result):
    return [c.label for c in result.contributions]


class TestGates:
    def test_no_facebook(self):
        result = detect_facebook_activity(_window("example.com", "g.whatsapp.net"))
        assert result.score == 0
        assert result.contributions == ()

    def test_reels_marker_overrides_everything(self):
        result = detect_facebook_activity(_window(
            "rupload.facebook.com", "edge-mqtt.facebook.com",
            "a-netseer-ipaddr-assoc.xy.fbcdn.net",
        ))
        assert result.is_reels_scrolling
        assert result.is_background_refresh
        assert not result.is_messaging
        assert result.score == WEIGHTS['reels']

    def test_video_static_assets_are_reels(self):
        result = detect_facebook_activity(_window("edge-mqtt.facebook.com", "static-2.xx.fbcdn.net"))
        assert result.is_reels_scrolling
        assert not result.is_background_refresh
        assert result.score == WEIGHTS['reels']


class TestAppLaunch:
    def test_quartet(self):
        result = detect_facebook_activity(_window(
            "gateway.facebook.com", "graph.facebook.com",
            "edge-mqtt.facebook.com", "www.facebook.com",
        ))
        assert result.is_background_refresh
        assert not result.is_messaging
        assert result.score == WEIGHTS['app_launch']

    def test_large_burst(self):
        domains = [
            "www.facebook.com", "m.facebook.com", "api.facebook.com",
            "lookaside.facebook.com", "b-api.facebook.com", "z-p3-www.facebook.com",
            "connect.facebook.net", "upload.facebook.com",
        ]
        result = detect_facebook_activity(_window(*domains, *domains[:2], step=0.5))
        assert result.score == WEIGHTS['app_launch']

    def test_pm_with_realtime_is_not_a_launch(self):
        result = detect_facebook_activity(_window(
            "gateway.facebook.com", "graph.facebook.com", "edge-mqtt.facebook.com",
            "www.facebook.com", "pm.facebook.com",
        ))
        assert result.is_messaging
        assert 'app launch burst' not in _labels(result)


class TestCall:
    def test_stun_with_messenger(self):
        result = detect_facebook_activity(_window("external.xx.fbcdn.net", "edge-mqtt.facebook.com"))
        assert result.is_call
        assert result.score == WEIGHTS['call']

    def test_whatsapp_media_suppresses_call(self):
        result = detect_facebook_activity(_window(
            "external.xx.fbcdn.net", "edge-mqtt.facebook.com", "mmg.whatsapp.net",
        ))
        assert not result.is_call


class TestMediaExchange:
    def test_upload_and_download(self):
        result = detect_facebook_activity(_window(
            "edge-mqtt.facebook.com", "rupload.facebook.com", "scontent.xx.fbcdn.net",
        ))
        assert result.is_messaging
        assert result.is_media_transfer
        assert result.score == WEIGHTS['exchange'] + WEIGHTS['upload_annotation']

    def test_upload_only(self):
        result = detect_facebook_activity(_window("gateway.facebook.com", "rupload.facebook.com"))
        assert _labels(result)[0] == 'message with media sent'
        assert result.score == WEIGHTS['media_sent'] + WEIGHTS['upload_annotation']

    def test_isolated_e2ee_upload_window(self):
        domains = [
            "rupload.facebook.com", "chat-e2ee.facebook.com",
            "graph.facebook.com", "gateway.facebook.com",
        ]
        for ordering in (domains, list(reversed(domains))):
            result = detect_facebook_activity(_window(*ordering))
            assert result.is_messaging
            assert result.is_media_transfer
            assert not result.is_background_refresh
            assert result.score > 6
            assert result.score == WEIGHTS['media_sent'] + WEIGHTS['upload_annotation']

    def test_isolated_e2ee_upload_window_shuffled_timestamps(self):
        events = [
            _ev(3, "gateway.facebook.com"), _ev(0, "rupload.facebook.com"),
            _ev(2, "graph.facebook.com"), _ev(1, "chat-e2ee.facebook.com"),
        ]
        assert detect_facebook_activity(events) == detect_facebook_activity(list(reversed(events)))

    def test_upload_in_launch_burst_is_downweighted(self):
        burst = [
            "www.facebook.com", "m.facebook.com", "graph.facebook.com",
            "lookaside.facebook.com", "api.facebook.com", "connect.facebook.net",
        ]
        events = [_ev(0, "rupload.facebook.com"), _ev(0.5, "scontent.xx.fbcdn.net"),
                  _ev(1, "edge-mqtt.facebook.com")]
        events += [_ev(1 + i * 0.5, d) for i, d in enumerate(burst)]
        result = detect_facebook_activity(events)
        assert result.score == WEIGHTS['exchange_in_burst'] + WEIGHTS['upload_annotation']

    def test_download_needs_e2ee_and_realtime(self):
        result = detect_facebook_activity(_window(
            "chat-e2ee.facebook.com", "edge-mqtt.facebook.com", "scontent-lhr8-1.xx.fbcdn.net",
        ))
        assert _labels(result)[0] == 'message with media received (E2EE + realtime)'
        assert result.score == WEIGHTS['media_received'] + WEIGHTS['download_annotation']

    def test_push_followed_by_facebook_media(self):
        result = detect_facebook_activity(_window(PUSH, "www.facebook.com", "scontent.xx.fbcdn.net"))
        assert 'push followed by Facebook media activity' in _labels(result)
        assert result.is_messaging

    def test_media_without_context_is_not_messaging(self):
        result = detect_facebook_activity(_window("www.facebook.com", "scontent.xx.fbcdn.net"))
        assert not result.is_messaging
        assert not result.is_media_transfer


class TestText:
    def test_pm_with_realtime(self):
        result = detect_facebook_activity(_window("pm.facebook.com", "edge-mqtt.facebook.com"))
        assert result.is_messaging
        assert not result.is_media_transfer
        assert result.score == WEIGHTS['text_sent']

    def test_web_with_too_many_hosts(self):
        result = detect_facebook_activity(_window(
            "web.facebook.com", "edge-mqtt.facebook.com", "www.facebook.com",
            "lookaside.facebook.com", "m.facebook.com",
        ))
        assert 'text sent: send host + realtime channel' not in _labels(result)


class TestApiMessaging:
    def test_e2ee_with_fallback(self):
        result = detect_facebook_activity(_window(
            "chat-e2ee.facebook.com", "star.fallback.c10r.facebook.com",
        ))
        assert result.is_messaging
        assert result.score == WEIGHTS['api_e2ee_fallback']

    def test_fallback_after_push(self):
        result = detect_facebook_activity(_window(PUSH, "star.fallback.c10r.facebook.com"))
        assert result.score == WEIGHTS['api_with_push']

    def test_isolated_realtime_after_push(self):
        result = detect_facebook_activity(_window(PUSH, "edge-mqtt.facebook.com"))
        assert result.is_messaging
        assert result.score == WEIGHTS['isolated_mqtt']


class TestFallbacks:
    def test_instagram(self):
        result = detect_facebook_activity(_window("i.instagram.com"))
        assert result.is_instagram_activity
        assert result.score == WEIGHTS['instagram']

    def test_background(self):
        result = detect_facebook_activity(_window("www.facebook.com"))
        assert result.is_background_refresh
        assert result.score == WEIGHTS['background']

    def test_score_is_sum_of_contributions(self):
        windows = [
            _window("edge-mqtt.facebook.com", "rupload.facebook.com", "scontent.xx.fbcdn.net"),
            _window("pm.facebook.com", "edge-mqtt.facebook.com", "i.instagram.com"),
            _window("www.facebook.com"),
            _window("a-netseer-ipaddr-assoc.xy.fbcdn.net", "www.facebook.com"),
        ]
        for events in windows:
            result = detect_facebook_activity(events)
            assert result.score == sum(c.weight for c in result.contributions)
