"""
dnsentinel/detectors/facebook_detector.py
Facebook / Messenger / Instagram activity classifier for one time window.

The hard part is telling real messaging apart from two noisy look-alikes:
  - Reels scrolling, which touches the same CDN and realtime hosts
  - App launch, which resolves a dozen Facebook hosts in a few seconds
Both are checked before any messaging rule and end the classification.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from dnsentinel.config import DEFAULT_THRESHOLDS, Thresholds
from dnsentinel.detectors.correlator import find_in_window
from dnsentinel.detectors.patterns import (
    FB_API,
    FB_APP_LAUNCH,
    FB_BACKGROUND,
    FB_CALLS,
    FB_CORE,
    FB_E2EE,
    FB_FAMILY,
    FB_GATEWAY,
    FB_GRAPH,
    FB_INSTAGRAM,
    FB_MEDIA_DOWNLOAD,
    FB_MEDIA_UPLOAD,
    FB_MESSAGING,
    FB_MQTT,
    FB_PM,
    FB_STAR_FALLBACK,
    FB_TEXT_SEND,
    FB_VIDEO_STATIC,
    FB_WEB,
    FB_WWW,
    REELS_CDN_MARKER,
    WA_MEDIA_UPLOAD,
    count_pattern,
    domain_matches,
    domain_matches_all,
    has_pattern,
    is_whatsapp_media_cdn,
    matching_events,
    push_anchors,
)
from dnsentinel.detectors.scoring import ScoreSheet
from dnsentinel.models.record import Contribution, FacebookActivity, LogEvent

logger = logging.getLogger(__name__)

# ── WEIGHTS ──────────────────────────────────────────────────

WEIGHTS = {
    'reels':                    3,
    'app_launch':               1,
    'call':                     7,
    'exchange':                 9,
    'exchange_in_burst':        7,
    'media_sent':               8,
    'media_sent_in_burst':      6,
    'media_received':           7,
    'push_with_media':          6,
    'text_sent':                6,
    'api_e2ee_fallback':        6,
    'api_with_push':            5,
    'isolated_mqtt':            4,
    'upload_annotation':        3,
    'download_annotation':      2,
    'instagram':                3,
    'background':               1,
}


@dataclass(frozen=True)
class _Signals:
    """Pattern hits for one window, computed once."""
    core:        bool
    messaging:   bool     # edge-mqtt / gateway / chat-e2ee
    text_send:   bool
    upload:      bool
    download:    bool
    pm:          bool
    web:         bool
    e2ee:        bool
    api:         bool
    star:        bool
    background:  bool
    push:        bool
    fb_total:    int
    fb_unique:   int

    @property
    def media(self) -> bool:
        return self.upload or self.download


def detect_facebook_activity(
    events:     Sequence[LogEvent],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> FacebookActivity:
    """Classify one window's events. Input order does not matter."""
    ordered = sorted(events, key=lambda e: e.timestamp)

    # ── 0. REELS OVERRIDE ────────────────────────────────────
    if has_pattern(ordered, REELS_CDN_MARKER):
        logger.debug("Facebook: Reels CDN marker — ongoing Reels, messaging rules skipped")
        return _reels(background=True, label='Reels CDN optimisation marker')

    s = _signals(ordered)
    if not (s.core or s.messaging or s.text_send or s.upload):
        return FacebookActivity()

    if any(domain_matches_all(e.domain, FB_VIDEO_STATIC) for e in ordered):
        logger.debug("Facebook: video static assets — Reels scrolling")
        return _reels(background=False, label='Reels video static assets')

    # ── 1. APP LAUNCH ────────────────────────────────────────
    if _is_app_launch(ordered, s, thresholds):
        logger.debug(f"Facebook: app launch burst ({s.fb_unique} unique / {s.fb_total} total)")
        return FacebookActivity(
            is_background_refresh = True,
            score                 = WEIGHTS['app_launch'],
            contributions         = (Contribution('app launch burst', WEIGHTS['app_launch']),),
        )

    sheet        = ScoreSheet()
    is_call      = False
    is_messaging = False
    is_media     = False

    # ── 2. CALL ──────────────────────────────────────────────
    if has_pattern(ordered, FB_CALLS) and (s.messaging or s.core):
        wa_media = any(
            domain_matches(e.domain, WA_MEDIA_UPLOAD) or is_whatsapp_media_cdn(e)
            for e in ordered
        )
        if not wa_media:
            is_call = True
            sheet.add('call: STUN relay + Messenger', WEIGHTS['call'])

    # ── 3. MESSAGE + MEDIA EXCHANGE ──────────────────────────
    if s.media:
        # An upload embedded in a launch burst earns less
        is_burst = _upload_in_burst(ordered, thresholds)
        context  = s.messaging or s.e2ee or has_pattern(ordered, FB_GATEWAY + FB_GRAPH)
        if context:
            if s.upload and s.download:
                key = 'exchange_in_burst' if is_burst else 'exchange'
                is_messaging = is_media = True
                sheet.add('message with media sent and received', WEIGHTS[key])
            elif s.upload:
                key = 'media_sent_in_burst' if is_burst else 'media_sent'
                is_messaging = is_media = True
                sheet.add('message with media sent', WEIGHTS[key])
            elif s.download and s.e2ee and has_pattern(ordered, FB_MQTT):
                is_messaging = is_media = True
                sheet.add('message with media received (E2EE + realtime)', WEIGHTS['media_received'])

        if not is_messaging and s.push and _push_followed_by_facebook(ordered, thresholds):
            is_messaging = is_media = True
            sheet.add('push followed by Facebook media activity', WEIGHTS['push_with_media'])

    # ── 4. TEXT SENT ─────────────────────────────────────────
    weak_web_ok = s.web and s.fb_unique <= thresholds.fb_web_text_max_unique
    if not is_call and (s.pm or weak_web_ok) and s.messaging and not s.media:
        is_messaging = True
        sheet.add('text sent: send host + realtime channel', WEIGHTS['text_sent'])

    # ── 5. API-BASED MESSAGING ───────────────────────────────
    if not is_call and not is_messaging and (s.messaging or s.api):
        if s.e2ee and s.star:
            is_messaging = True
            sheet.add('E2EE chat + backend fallback', WEIGHTS['api_e2ee_fallback'])
        elif (s.e2ee or s.star) and s.push:
            is_messaging = True
            sheet.add('E2EE or backend fallback after push', WEIGHTS['api_with_push'])

    # ── 6. ISOLATED REALTIME NOTIFICATION ────────────────────
    if not is_call and not is_messaging and has_pattern(ordered, FB_MQTT) \
            and not s.text_send and not s.media and s.push:
        others = {
            e.domain for e in matching_events(ordered, FB_FAMILY)
            if not domain_matches(e.domain, FB_MQTT)
        }
        if len(others) <= thresholds.fb_isolated_mqtt_max_others:
            is_messaging = True
            sheet.add('isolated realtime notification after push', WEIGHTS['isolated_mqtt'])

    # ── 7. MEDIA ANNOTATIONS ─────────────────────────────────
    # rupload / scontent only count once messaging is established
    if s.upload and is_messaging:
        is_media = True
        sheet.add('upload within messaging', WEIGHTS['upload_annotation'])
    elif s.download and is_messaging:
        is_media = True
        sheet.add('download within messaging', WEIGHTS['download_annotation'])

    # ── 8. INSTAGRAM ─────────────────────────────────────────
    is_instagram = has_pattern(ordered, FB_INSTAGRAM)
    if is_instagram:
        sheet.add('Instagram activity', WEIGHTS['instagram'])

    # ── 9. BACKGROUND FALLBACK ───────────────────────────────
    is_background = False
    nothing_found = not (is_messaging or is_media or is_call or is_instagram)
    if nothing_found and (s.background or (s.core and count_pattern(ordered, FB_CORE) <= 2)):
        is_background = True
        sheet.add('background refresh', WEIGHTS['background'])
    elif sheet.total == 0 and s.core:
        sheet.add('Facebook contacted', WEIGHTS['background'])

    result = FacebookActivity(
        is_messaging          = is_messaging,
        is_media_transfer     = is_media,
        is_background_refresh = is_background,
        is_reels_scrolling    = False,
        is_call               = is_call,
        is_instagram_activity = is_instagram,
        score                 = sheet.total,
        contributions         = sheet.contributions(),
    )
    logger.debug(
        f"Facebook: score={result.score} messaging={is_messaging} "
        f"media={is_media} call={is_call} background={is_background}"
    )
    return result


# ── SIGNALS ──────────────────────────────────────────────────

def _signals(ordered: List[LogEvent]) -> _Signals:
    fb_events = matching_events(ordered, FB_FAMILY)
    return _Signals(
        core       = has_pattern(ordered, FB_CORE),
        messaging  = has_pattern(ordered, FB_MESSAGING),
        text_send  = has_pattern(ordered, FB_TEXT_SEND),
        upload     = has_pattern(ordered, FB_MEDIA_UPLOAD),
        download   = has_pattern(ordered, FB_MEDIA_DOWNLOAD),
        pm         = has_pattern(ordered, FB_PM),
        web        = has_pattern(ordered, FB_WEB),
        e2ee       = has_pattern(ordered, FB_E2EE),
        api        = has_pattern(ordered, FB_API),
        star       = has_pattern(ordered, FB_STAR_FALLBACK),
        background = has_pattern(ordered, FB_BACKGROUND),
        push       = bool(push_anchors(ordered)),
        fb_total   = len(fb_events),
        fb_unique  = len({e.domain for e in fb_events}),
    )


def _reels(background: bool, label: str) -> FacebookActivity:
    return FacebookActivity(
        is_reels_scrolling    = True,
        is_background_refresh = background,
        score                 = WEIGHTS['reels'],
        contributions         = (Contribution(label, WEIGHTS['reels']),),
    )


# ── APP LAUNCH ───────────────────────────────────────────────

def _upload_in_burst(ordered: List[LogEvent], thresholds: Thresholds) -> bool:
    """
    True when the first rupload lookup is surrounded by many other Facebook
    lookups, i.e. it looks like part of an app-launch burst.
    """
    uploads = matching_events(ordered, FB_MEDIA_UPLOAD)
    if not uploads:
        return False
    radius = thresholds.fb_burst_radius_s
    nearby = [
        e for e in find_in_window(ordered, uploads[0].timestamp, radius, radius)
        if domain_matches(e.domain, FB_FAMILY) and not domain_matches(e.domain, FB_MEDIA_UPLOAD)
    ]
    return len(nearby) >= thresholds.fb_burst_min_neighbors


def _has_specific_messaging_evidence(s: _Signals, thresholds: Thresholds) -> bool:
    """Media-free evidence that a Facebook burst is a conversation, not a launch."""
    if s.pm and s.messaging:
        return True
    return (
        s.web
        and s.fb_unique <= thresholds.fb_web_context_max_unique
        and s.fb_total <= thresholds.fb_web_context_max_total
    )


def _is_app_launch(ordered: List[LogEvent], s: _Signals, thresholds: Thresholds) -> bool:
    if s.media:
        return False
    if _has_specific_messaging_evidence(s, thresholds):
        return False
    large_burst = (
        s.fb_unique >= thresholds.fb_launch_min_unique
        and s.fb_total >= thresholds.fb_launch_min_total
        and has_pattern(ordered, FB_APP_LAUNCH)
    )
    quartet = all(
        has_pattern(ordered, p) for p in (FB_GATEWAY, FB_GRAPH, FB_MQTT, FB_WWW)
    )
    return large_burst or quartet


def _push_followed_by_facebook(ordered: List[LogEvent], thresholds: Thresholds) -> bool:
    for anchor in push_anchors(ordered):
        after = find_in_window(ordered, anchor.timestamp, 0, thresholds.fb_push_activity_window_s)
        if any(domain_matches(e.domain, FB_FAMILY) for e in after):
            return True
    return False
