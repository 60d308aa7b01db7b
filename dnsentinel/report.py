"""
dnsentinel/report.py
Structured report over classified windows.

Input: List[WindowResult] (run_full_analysis).
Output: Report dataclass, suitable for JSON export.
Only domains that matched a concern category appear in the report;
no raw query log lines, no device identifiers beyond per-day counts.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from dnsentinel.aggregators.trend_aggregator import (
    Anomaly,
    DailyTrend,
    calculate_daily_trends,
    detect_anomalies,
)
from dnsentinel.models.record import WindowResult

SEVERITY_CRITICAL = 'CRITICAL'
SEVERITY_HIGH     = 'HIGH'
SEVERITY_MEDIUM   = 'MEDIUM'

SEVERITY_RANK = {
    SEVERITY_CRITICAL: 3,
    SEVERITY_HIGH:     2,
    SEVERITY_MEDIUM:   1,
}

HIGH_CONCERN_SCORE  = 10
HIGH_ACTIVITY_SCORE = 6

DISCLAIMER = (
    "Activity labels are probabilistic inferences from DNS lookup timing. "
    "DNS metadata does not reveal message content, counterparties or intent, "
    "and cannot establish that any communication took place."
)


# ── REPORT SCHEMA ────────────────────────────────────────────

@dataclass
class SummaryStats:
    event_count: int = 0
    window_count: int = 0
    whatsapp_windows: int = 0
    facebook_windows: int = 0
    concern_windows: int = 0
    masking_windows: int = 0
    vpn_windows: int = 0
    secret_windows: int = 0
    date_range_start: Optional[str] = None
    date_range_end: Optional[str] = None


@dataclass
class SeverityDistribution:
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0


@dataclass
class ActivityDescription:
    title: str
    description: str
    method: str


@dataclass
class FlaggedWindow:
    time_window: str
    severity: str
    title: str
    description: str
    method: str
    tags: List[str] = field(default_factory=list)
    whatsapp_score: int = 0
    facebook_score: int = 0
    concern_score: int = 0
    masking_evidence: str = ''
    evidence: List[str] = field(default_factory=list)


@dataclass
class MaskingIncident:
    time_window: str
    evidence: str


@dataclass
class Report:
    summary: SummaryStats
    severity_distribution: SeverityDistribution
    flagged_windows: List[FlaggedWindow]
    masking_incidents: List[MaskingIncident]
    daily_trends: List[DailyTrend]
    anomalies: List[Anomaly]
    generated_at: str
    disclaimer: str = DISCLAIMER


# ── CLASSIFICATION HELPERS ───────────────────────────────────

def severity_for(result: WindowResult) -> Optional[str]:
    """CRITICAL / HIGH / MEDIUM, or None when the window is not worth reporting."""
    rel = result.relationship
    if rel.dating_apps or rel.anonymous_platforms:
        return SEVERITY_CRITICAL
    if rel.alternative_messaging or rel.concern_score > HIGH_CONCERN_SCORE:
        return SEVERITY_HIGH
    if (rel.video_calling
            or result.facebook.score > HIGH_ACTIVITY_SCORE
            or result.whatsapp.score > HIGH_ACTIVITY_SCORE):
        return SEVERITY_MEDIUM
    return None


def tags_for(result: WindowResult) -> List[str]:
    wa, fb, rel = result.whatsapp, result.facebook, result.relationship
    tags: List[str] = []
    if wa.score > 0:
        tags.append('WhatsApp')
    if fb.score > 0:
        tags.append('Facebook')
    if fb.is_instagram_activity:
        tags.append('Instagram')
    if fb.is_reels_scrolling:
        tags.append('Reels')
    if wa.is_voice_call:
        tags.append('Voice Call')
    if wa.is_media_transfer or fb.is_media_transfer:
        tags.append('Media Transfer')
    if fb.is_messaging or wa.is_text_message:
        tags.append('Messaging')
    if fb.is_call:
        tags.append('Messenger Call')
    for app in rel.dating_apps + rel.anonymous_platforms + rel.alternative_messaging + rel.video_calling:
        tags.append(app.upper())
    if result.masking.is_masking:
        tags.append('Potential Masking')
    if result.vpn.is_possible_vpn:
        tags.append('Possible VPN')
    if result.secret.is_acting_secret:
        tags.append('Secretive Behavior')
    if wa.direction:
        tags.append(wa.direction.capitalize())
    return tags


def describe_activity(result: WindowResult) -> ActivityDescription:
    """Headline for the window, most serious finding first."""
    wa, fb, rel = result.whatsapp, result.facebook, result.relationship

    if rel.dating_apps:
        app = rel.dating_apps[0]
        return ActivityDescription(
            f"{app.upper()} Dating App Activity",
            f"Lookups of {app} indicate the dating app or site was opened in this minute.",
            'Dating app domain matching',
        )
    if rel.anonymous_platforms:
        app = rel.anonymous_platforms[0]
        return ActivityDescription(
            f"{app.upper()} Anonymous Platform Activity",
            f"Lookups of {app}, a platform for anonymous messages or questions.",
            'Anonymous platform domain matching',
        )
    if rel.alternative_messaging:
        app = rel.alternative_messaging[0]
        return ActivityDescription(
            f"{app.upper()} Alternative Messaging",
            f"Lookups of {app}, a messaging service outside WhatsApp and Messenger.",
            'Alternative messaging domain matching',
        )
    if rel.video_calling:
        app = rel.video_calling[0]
        return ActivityDescription(
            f"{app.upper()} Video Call Service",
            f"Lookups of {app}. Often work or family use; listed for completeness.",
            'Video calling domain matching',
        )
    if fb.is_reels_scrolling:
        return ActivityDescription(
            'Facebook/Instagram Reels Scrolling',
            'Short-video CDN patterns consistent with scrolling Reels or Stories.',
            'Reels CDN marker / video static assets',
        )
    if fb.is_call:
        return ActivityDescription(
            'Facebook/Messenger Call',
            'STUN relay lookups together with Messenger signaling.',
            'STUN relay + Messenger markers',
        )
    if fb.is_messaging and fb.is_media_transfer:
        return ActivityDescription(
            'Facebook Message with Possible Media Exchange',
            'Upload or CDN download lookups alongside Messenger messaging hosts.',
            'Media upload/download + messaging context correlation',
        )
    if fb.is_messaging:
        return ActivityDescription(
            'Facebook/Messenger Text Activity',
            'Realtime messaging channel lookups with send or push evidence.',
            'Realtime channel + send host / push correlation',
        )
    if wa.is_voice_call:
        direction = wa.direction or 'unknown direction'
        return ActivityDescription(
            f"WhatsApp Voice Call ({direction})",
            'A push notification closely followed by WhatsApp signaling, '
            'with no Messenger traffic around the push.',
            'Push anchor + signaling correlation',
        )
    if wa.is_text_message and wa.is_media_transfer:
        direction = wa.direction or 'bidirectional'
        confidence = 'High' if wa.score > HIGH_ACTIVITY_SCORE else 'Medium'
        return ActivityDescription(
            f"WhatsApp Conversation with Media ({direction})",
            f"Text and media transfer lookups in the same minute. {confidence} confidence.",
            'WhatsApp signaling + media transfer correlation',
        )
    if wa.is_media_transfer:
        return ActivityDescription(
            'WhatsApp Media Transfer',
            'Media gateway or media CDN lookups: photos, video or voice notes.',
            'WhatsApp media gateway + CDN detection',
        )
    if wa.is_text_message:
        direction = wa.direction or 'bidirectional'
        confidence = 'High' if wa.score > HIGH_ACTIVITY_SCORE else 'Medium'
        return ActivityDescription(
            f"WhatsApp Text Message ({direction})",
            f"WhatsApp signaling host pattern. {confidence} confidence.",
            'WhatsApp signaling pattern analysis',
        )
    if fb.is_instagram_activity:
        return ActivityDescription(
            'Instagram Activity',
            'Instagram API or messaging host lookups.',
            'Instagram domain detection',
        )
    return ActivityDescription(
        'Background Activity',
        'App maintenance or background refresh lookups only.',
        'Background pattern classification',
    )


# ── BUILD ────────────────────────────────────────────────────

def build_report(
    results:     List[WindowResult],
    event_count: Optional[int] = None,
) -> Report:
    """
    Build a structured report from run_full_analysis output.
    Flagged windows are those with a severity or a masking flag, most
    severe first, then chronological.
    """
    ordered = sorted(results, key=lambda r: r.window_start)

    summary = SummaryStats(
        event_count      = event_count if event_count is not None
                           else sum(r.stats.total_requests for r in ordered),
        window_count     = len(ordered),
        whatsapp_windows = sum(1 for r in ordered if r.whatsapp.score > 0),
        facebook_windows = sum(1 for r in ordered if r.facebook.score > 0),
        concern_windows  = sum(1 for r in ordered if r.relationship.concern_score > 0),
        masking_windows  = sum(1 for r in ordered if r.masking.is_masking),
        vpn_windows      = sum(1 for r in ordered if r.vpn.is_possible_vpn),
        secret_windows   = sum(1 for r in ordered if r.secret.is_acting_secret),
        date_range_start = ordered[0].time_window if ordered else None,
        date_range_end   = ordered[-1].time_window if ordered else None,
    )

    severities: Dict[str, Optional[str]] = {r.time_window: severity_for(r) for r in ordered}
    distribution = SeverityDistribution(
        critical_count = sum(1 for s in severities.values() if s == SEVERITY_CRITICAL),
        high_count     = sum(1 for s in severities.values() if s == SEVERITY_HIGH),
        medium_count   = sum(1 for s in severities.values() if s == SEVERITY_MEDIUM),
    )

    flagged: List[FlaggedWindow] = []
    for r in ordered:
        severity = severities[r.time_window]
        if severity is None and not r.masking.is_masking:
            continue
        desc = describe_activity(r)
        flagged.append(FlaggedWindow(
            time_window      = r.time_window,
            severity         = severity or SEVERITY_MEDIUM,
            title            = desc.title,
            description      = desc.description,
            method           = desc.method,
            tags             = tags_for(r),
            whatsapp_score   = r.whatsapp.score,
            facebook_score   = r.facebook.score,
            concern_score    = r.relationship.concern_score,
            masking_evidence = r.masking.evidence,
            evidence         = [c.label for c in r.whatsapp.contributions + r.facebook.contributions],
        ))
    flagged.sort(key=lambda f: -SEVERITY_RANK[f.severity])

    masking = [
        MaskingIncident(time_window=r.time_window, evidence=r.masking.evidence)
        for r in ordered if r.masking.is_masking
    ]

    trends = calculate_daily_trends(ordered)

    return Report(
        summary               = summary,
        severity_distribution = distribution,
        flagged_windows       = flagged,
        masking_incidents     = masking,
        daily_trends          = trends,
        anomalies             = detect_anomalies(trends),
        generated_at          = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    )


def _dataclass_to_dict(obj):
    if hasattr(obj, "__dataclass_fields__"):
        return {k: _dataclass_to_dict(getattr(obj, k)) for k in obj.__dataclass_fields__}
    if isinstance(obj, (list, tuple)):
        return [_dataclass_to_dict(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _dataclass_to_dict(v) for k, v in obj.items()}
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj


def report_to_dict(report: Report) -> Dict:
    """Convert Report to a JSON-serializable dict (for export)."""
    return _dataclass_to_dict(report)


def window_result_to_dict(result: WindowResult) -> Dict:
    """JSON-serializable view of one window, with its severity added."""
    d = _dataclass_to_dict(result)
    d["severity"] = severity_for(result)
    return d
