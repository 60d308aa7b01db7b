"""
dnsentinel/detectors/activity_detector.py
Pipeline orchestration: window grouping → per-window classification →
masking post-pass.

The per-window classifiers (WhatsApp, Facebook, relationship, behaviour)
only see one window; secret behaviour reuses that window's chat and VPN
flags. Masking needs every window, so it runs last. Nothing here performs
I/O.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from dnsentinel.aggregators.window_aggregator import (
    WINDOW_KEY_FORMAT,
    build_window_stats,
    group_by_window,
    window_start,
)
from dnsentinel.config import DEFAULT_THRESHOLDS, Thresholds
from dnsentinel.detectors.behavior_detector import (
    count_domain_categories,
    detect_real_chat,
    detect_secret_behavior,
    detect_vpn_attempt,
)
from dnsentinel.detectors.facebook_detector import detect_facebook_activity
from dnsentinel.detectors.masking_detector import detect_reels_masking
from dnsentinel.detectors.relationship_detector import detect_relationship_concerns
from dnsentinel.detectors.whatsapp_detector import detect_whatsapp_activity
from dnsentinel.models.record import LogEvent, WindowResult

logger = logging.getLogger(__name__)


def classify_window(
    key:        str,
    events:     Sequence[LogEvent],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> WindowResult:
    """
    Classify a single window. The masking flag is left unset.
    An empty window yields all-zero results.
    """
    if events:
        start = window_start(events[0].timestamp)
    else:
        start = datetime.strptime(key, WINDOW_KEY_FORMAT).replace(tzinfo=timezone.utc)
    real_chat = detect_real_chat(events, thresholds)
    vpn       = detect_vpn_attempt(events, thresholds)
    return WindowResult(
        time_window  = key,
        window_start = start,
        stats        = build_window_stats(events),
        whatsapp     = detect_whatsapp_activity(events, thresholds),
        facebook     = detect_facebook_activity(events, thresholds),
        relationship = detect_relationship_concerns(events),
        real_chat    = real_chat,
        vpn          = vpn,
        secret       = detect_secret_behavior(events, real_chat, vpn, thresholds),
        categories   = count_domain_categories(events),
    )


def run_full_analysis(
    events:      Sequence[LogEvent],
    thresholds:  Thresholds         = DEFAULT_THRESHOLDS,
    progress_cb: Optional[Callable] = None,
) -> List[WindowResult]:
    """
    Full analysis pipeline.

    Phase 1: group events into one-minute windows
    Phase 2: classify every window (WhatsApp, Facebook, relationship concern,
             chat, VPN and secret flags, domain categories)
    Phase 3: Reels masking post-pass over the whole timeline

    progress_cb: optional callable(current, total, message) for CLI progress bar.
    Returns one WindowResult per window, sorted chronologically.
    """
    if not events:
        logger.info("No events — nothing to analyze.")
        return []

    # ── PHASE 1 ──────────────────────────────────────────────
    windows = group_by_window(events)
    logger.info(f"Phase 1: {len(events)} events grouped into {len(windows)} windows")

    # ── PHASE 2 ──────────────────────────────────────────────
    results: List[WindowResult] = []
    total = len(windows)
    for i, (key, window_events) in enumerate(windows.items()):
        if progress_cb:
            progress_cb(i + 1, total, f"Window {key}")
        results.append(classify_window(key, window_events, thresholds))

    wa_active = sum(1 for r in results if r.whatsapp.score > 1)
    fb_active = sum(1 for r in results if r.facebook.score > 1)
    concerns  = sum(1 for r in results if r.relationship.concern_score > 0)
    vpn       = sum(1 for r in results if r.vpn.is_possible_vpn)
    secret    = sum(1 for r in results if r.secret.is_acting_secret)
    logger.info(
        f"Phase 2 complete: WhatsApp {wa_active} | Facebook {fb_active} | "
        f"concern {concerns} | VPN {vpn} | secret {secret} windows"
    )

    # ── PHASE 3 ──────────────────────────────────────────────
    results = detect_reels_masking(results, thresholds)
    logger.info(f"Phase 3 complete: {sum(1 for r in results if r.masking.is_masking)} masking flags")

    return results
