"""
dnsentinel/detectors/whatsapp_detector.py
WhatsApp activity classifier for one time window.

Rules run in fixed priority order. Call vs. voice note is decided first
and the first match wins; when the evidence is ambiguous the window is
classified as a media transfer, never as a call. Text and media flags may
both end up set.

Results are indicators only: DNS shows which services were contacted,
not what was said or to whom.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from dnsentinel.config import DEFAULT_THRESHOLDS, Thresholds
from dnsentinel.detectors.correlator import find_after, find_in_window
from dnsentinel.detectors.patterns import (
    APPLE_SYSTEM,
    REELS_CDN_MARKER,
    WA_CALL_INTERFERENCE,
    WA_CORE,
    WA_DIT,
    WA_GRAPH,
    WA_MEDIA_DOWNLOAD,
    WA_MEDIA_UPLOAD,
    WA_SIGNALING,
    WA_STATIC,
    domain_matches,
    has_pattern,
    is_push_anchor,
    is_whatsapp_media_cdn,
    matching_events,
    push_anchors,
)
from dnsentinel.detectors.scoring import ScoreSheet
from dnsentinel.models.record import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    LogEvent,
    WhatsAppActivity,
)

logger = logging.getLogger(__name__)

# ── WEIGHTS ──────────────────────────────────────────────────

WEIGHTS = {
    'incoming_call':             8,
    'voice_note_received':       8,
    'voice_note_sent':           6,
    'text_push_signaling':       7,
    'text_active_conversation':  5,
    'text_outgoing':             4,
    'text_upload_gateway':       4,
    'media_upload':              6,
    'media_upload_quartet':      3,
    'media_received_after_push': 6,
    'media_cdn_fetch':           4,
    'persistence':               2,
    'core_presence':             1,
}


def detect_whatsapp_activity(
    events:     Sequence[LogEvent],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> WhatsAppActivity:
    """
    Classify one window's events. Input order does not matter.
    Returns an all-false, zero-score result when WhatsApp was not contacted.
    """
    ordered   = sorted(events, key=lambda e: e.timestamp)
    signaling = matching_events(ordered, WA_SIGNALING)

    if not signaling and not has_pattern(ordered, WA_CORE):
        return WhatsAppActivity()

    anchors      = push_anchors(ordered)
    has_upload   = has_pattern(ordered, WA_MEDIA_UPLOAD)
    has_download = has_pattern(ordered, WA_MEDIA_DOWNLOAD)

    # Reels playback touches shared CDN hosts; without a push or an upload
    # there is nothing WhatsApp-specific left in the window.
    if has_pattern(ordered, REELS_CDN_MARKER) and not anchors and not has_upload:
        logger.debug("WhatsApp: Reels CDN marker with no push/upload — not classified")
        return WhatsAppActivity()

    sheet     = ScoreSheet()
    is_text   = False
    is_media  = False
    is_call   = False
    direction: Optional[str] = None

    # ── 1. INCOMING CALL ─────────────────────────────────────
    call_anchor = _find_incoming_call(ordered, signaling, anchors, thresholds)
    if call_anchor is not None:
        is_call   = True
        direction = DIRECTION_INCOMING
        sheet.add('incoming call: push + signaling, no Messenger traffic', WEIGHTS['incoming_call'])

    # ── 2. VOICE NOTE (signaling then media CDN) ─────────────
    if not is_call and signaling:
        note_direction = _find_voice_note(ordered, signaling, anchors, thresholds)
        if note_direction is not None:
            is_media  = True
            direction = note_direction
            if note_direction == DIRECTION_INCOMING:
                sheet.add('voice note received: push, signaling, CDN fetch', WEIGHTS['voice_note_received'])
            else:
                sheet.add('voice note sent: signaling, CDN fetch', WEIGHTS['voice_note_sent'])

    # ── 3. TEXT SIGNATURES ───────────────────────────────────
    if not is_call and not is_media:
        signature = _text_signature(ordered, signaling, anchors, has_upload)
        if signature is not None:
            label, weight, text_direction = signature
            is_text = True
            if text_direction:
                direction = text_direction
            sheet.add(label, weight)

    # ── 4. MEDIA UPLOAD ──────────────────────────────────────
    if has_upload:
        is_media = True
        sheet.add('media upload gateway', WEIGHTS['media_upload'])
        if has_download and has_pattern(ordered, WA_STATIC) and has_pattern(ordered, WA_DIT):
            sheet.add('upload, static, dit and CDN together', WEIGHTS['media_upload_quartet'])

    # ── 5. MEDIA RECEIVED AFTER PUSH ─────────────────────────
    if not is_call and not is_media and _received_media_after_push(ordered, anchors, thresholds):
        is_media = True
        direction = direction or DIRECTION_INCOMING
        sheet.add('media received after push', WEIGHTS['media_received_after_push'])

    # ── 6. CDN FETCH ─────────────────────────────────────────
    if has_download and not has_upload and not is_call:
        is_media = True
        sheet.add('media CDN fetch', WEIGHTS['media_cdn_fetch'])

    # ── 7. PERSISTENCE ───────────────────────────────────────
    # Media exchange of this strength implies an open conversation.
    if is_media and not is_text and sheet.total >= 4:
        is_text = True
        sheet.add('conversation implied by media exchange', WEIGHTS['persistence'])

    # ── 8. FLOOR ─────────────────────────────────────────────
    if sheet.total == 0:
        sheet.add('WhatsApp contacted', WEIGHTS['core_presence'])

    result = WhatsAppActivity(
        is_text_message   = is_text,
        is_media_transfer = is_media,
        is_voice_call     = is_call,
        is_video_call     = False,
        score             = sheet.total,
        direction         = direction,
        contributions     = sheet.contributions(),
    )
    logger.debug(f"WhatsApp: score={result.score} text={is_text} media={is_media} call={is_call}")
    return result


# ── RULE HELPERS ─────────────────────────────────────────────

def _find_incoming_call(
    ordered:    List[LogEvent],
    signaling:  List[LogEvent],
    anchors:    List[LogEvent],
    thresholds: Thresholds,
) -> Optional[LogEvent]:
    """First push anchor that correlates with signaling and has no Messenger traffic around it."""
    if not anchors:
        return None
    for sig in signaling:
        near = find_in_window(
            anchors, sig.timestamp,
            thresholds.call_push_before_s, thresholds.call_push_after_s,
        )
        for anchor in near:
            around = find_in_window(
                ordered, anchor.timestamp,
                thresholds.call_interference_before_s, thresholds.call_interference_after_s,
            )
            if not any(domain_matches(e.domain, WA_CALL_INTERFERENCE) for e in around):
                return anchor
    return None


def _find_voice_note(
    ordered:    List[LogEvent],
    signaling:  List[LogEvent],
    anchors:    List[LogEvent],
    thresholds: Thresholds,
) -> Optional[str]:
    """Direction of the first signaling lookup followed by a media CDN fetch, else None."""
    for sig in signaling:
        later = find_after(ordered, sig.timestamp, thresholds.voice_note_cdn_lag_s)
        if not any(is_whatsapp_media_cdn(e) for e in later):
            continue
        preceding_push = find_in_window(
            anchors, sig.timestamp, thresholds.voice_note_push_lookback_s, 0,
        )
        return DIRECTION_INCOMING if preceding_push else DIRECTION_OUTGOING
    return None


def _text_signature(
    ordered:    List[LogEvent],
    signaling:  List[LogEvent],
    anchors:    List[LogEvent],
    has_upload: bool,
) -> Optional[Tuple[str, int, Optional[str]]]:
    """Strongest matching text signature as (label, weight, direction)."""
    if anchors and signaling:
        return 'text: push + signaling', WEIGHTS['text_push_signaling'], DIRECTION_INCOMING
    has_graph = has_pattern(ordered, WA_GRAPH)
    if signaling and has_graph and has_pattern(ordered, WA_DIT):
        return 'text: active conversation (dit + graph)', WEIGHTS['text_active_conversation'], None
    if signaling and has_graph:
        return 'text: outgoing (graph + signaling)', WEIGHTS['text_outgoing'], DIRECTION_OUTGOING
    if has_upload:
        return 'text: upload gateway', WEIGHTS['text_upload_gateway'], None
    return None


def _received_media_after_push(
    ordered:    List[LogEvent],
    anchors:    List[LogEvent],
    thresholds: Thresholds,
) -> bool:
    """Push followed by signaling and a CDN fetch, without an iOS system-sync burst around it."""
    for anchor in anchors:
        following = find_in_window(ordered, anchor.timestamp, 0, thresholds.received_media_window_s)
        if not any(domain_matches(e.domain, WA_SIGNALING) for e in following):
            continue
        if not any(is_whatsapp_media_cdn(e) for e in following):
            continue
        nearby = find_in_window(
            ordered, anchor.timestamp,
            thresholds.received_media_system_window_s, thresholds.received_media_system_window_s,
        )
        system = [
            e for e in nearby
            if domain_matches(e.domain, APPLE_SYSTEM) and not is_push_anchor(e)
        ]
        if len(system) < thresholds.received_media_max_system:
            return True
    return False
