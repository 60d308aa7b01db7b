"""
dnsentinel/detectors — per-window classifiers and the analysis pipeline.

All detectors are pure: events in, frozen result dataclasses out.
"""

from dnsentinel.detectors.activity_detector import classify_window, run_full_analysis
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

__all__ = [
    "classify_window",
    "count_domain_categories",
    "detect_facebook_activity",
    "detect_real_chat",
    "detect_reels_masking",
    "detect_relationship_concerns",
    "detect_secret_behavior",
    "detect_vpn_attempt",
    "detect_whatsapp_activity",
    "run_full_analysis",
]
