"""
dnsentinel/detectors/masking_detector.py
Post-pass over all classified windows: flags strong messaging evidence that
is bracketed by Reels scrolling a few minutes before and/or after, the
pattern of someone switching out of Reels to reply and switching back.

Runs only after every window has been classified.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from dnsentinel.config import DEFAULT_THRESHOLDS, Thresholds
from dnsentinel.models.record import DIRECTION_INCOMING, MaskingFlag, WindowResult

logger = logging.getLogger(__name__)


def has_strong_messaging_evidence(
    result:     WindowResult,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> bool:
    fb = result.facebook
    wa = result.whatsapp
    return (
        (fb.is_messaging and fb.is_media_transfer)
        or (wa.is_voice_call and wa.direction == DIRECTION_INCOMING)
        or wa.is_media_transfer
        or fb.score > thresholds.strong_evidence_score
        or wa.score > thresholds.strong_evidence_score
    )


def detect_reels_masking(
    results:    Sequence[WindowResult],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[WindowResult]:
    """
    Return the results sorted by window, with MaskingFlag set on every strong
    messaging window that has a Reels window within the masking range
    (gap strictly above the minimum gap, at most the window size) on
    either side. Unflagged results are returned unchanged.
    """
    ordered = sorted(results, key=lambda r: r.window_start)
    out: List[WindowResult] = []
    flagged = 0

    for i, current in enumerate(ordered):
        if not has_strong_messaging_evidence(current, thresholds):
            out.append(current)
            continue

        before = _nearest_reels(ordered, i, -1, thresholds)
        after  = _nearest_reels(ordered, i, +1, thresholds)
        if before is None and after is None:
            out.append(current)
            continue

        evidence = _evidence(current, before, after)
        out.append(replace(current, masking=MaskingFlag(is_masking=True, evidence=evidence)))
        flagged += 1
        logger.debug(f"Masking at {current.time_window}: {evidence}")

    if flagged:
        logger.info(f"Reels masking: {flagged} window(s) flagged")
    return out


def _gap_minutes(a: WindowResult, b: WindowResult) -> float:
    return abs((b.window_start - a.window_start).total_seconds()) / 60.0


def _nearest_reels(
    ordered:    List[WindowResult],
    index:      int,
    step:       int,
    thresholds: Thresholds,
) -> Optional[WindowResult]:
    """Closest Reels window walking from index in direction step, inside the masking range."""
    current = ordered[index]
    j = index + step
    while 0 <= j < len(ordered):
        candidate = ordered[j]
        gap = _gap_minutes(current, candidate)
        if gap > thresholds.masking_window_minutes:
            break
        if candidate.facebook.is_reels_scrolling and gap > thresholds.masking_min_gap_minutes:
            return candidate
        j += step
    return None


def _evidence(
    current: WindowResult,
    before:  Optional[WindowResult],
    after:   Optional[WindowResult],
) -> str:
    if before is not None and after is not None:
        return (
            f"Suspicious: Reels stopped at {before.time_window}, "
            f"strong messaging at {current.time_window}, "
            f"Reels resumed at {after.time_window}"
        )
    if before is not None:
        gap = int(round(_gap_minutes(before, current)))
        return (
            f"Suspicious: strong messaging activity {gap}min after "
            f"Reels stopped at {before.time_window}"
        )
    gap = int(round(_gap_minutes(current, after)))
    return (
        f"Suspicious: Reels resumed at {after.time_window}, "
        f"{gap}min after messaging at {current.time_window}"
    )
