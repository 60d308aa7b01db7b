"""
dnsentinel/detectors/relationship_detector.py
Relationship-concern scoring: dating, anonymous, alternative messaging,
video calling and social platforms contacted within a window.

Pure function of the window's distinct domains. Blocked lookups count:
a blocked attempt to reach a dating site is still an attempt.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from dnsentinel.detectors.patterns import (
    ALTERNATIVE_MESSAGING,
    ANONYMOUS_PLATFORMS,
    CONCERN_EXCLUSIONS,
    DATING_APPS,
    SOCIAL_MESSAGING,
    VIDEO_CALLING,
    contains_service,
)
from dnsentinel.models.record import LogEvent, RelationshipConcern

logger = logging.getLogger(__name__)

# (field name, patterns, weight), checked in this order
CONCERN_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...], int], ...] = (
    ('dating_apps',           DATING_APPS,           10),
    ('anonymous_platforms',   ANONYMOUS_PLATFORMS,    8),
    ('alternative_messaging', ALTERNATIVE_MESSAGING,  6),
    ('video_calling',         VIDEO_CALLING,          4),
    ('social_messaging',      SOCIAL_MESSAGING,       2),
)

CONCERN_WEIGHTS: Dict[str, int] = {name: weight for name, _, weight in CONCERN_CATEGORIES}


def detect_relationship_concerns(events: Sequence[LogEvent]) -> RelationshipConcern:
    """
    Match each distinct domain against the concern categories.
    Patterns are matched as substrings (api.gotinder.com hits tinder.com);
    very short names such as x.com must start a label. Matches are kept
    per category without duplicates, in domain order.
    """
    matches: Dict[str, List[str]] = {name: [] for name, _, _ in CONCERN_CATEGORIES}

    for domain in sorted({e.domain.lower() for e in events}):
        if any(contains_service(domain, ex) for ex in CONCERN_EXCLUSIONS):
            continue
        for name, patterns, _ in CONCERN_CATEGORIES:
            for pattern in patterns:
                if contains_service(domain, pattern) and pattern not in matches[name]:
                    matches[name].append(pattern)

    score = sum(len(found) * CONCERN_WEIGHTS[name] for name, found in matches.items())
    if score:
        hits = {k: v for k, v in matches.items() if v}
        logger.debug(f"Relationship concern score {score}: {hits}")

    return RelationshipConcern(
        dating_apps           = tuple(matches['dating_apps']),
        anonymous_platforms   = tuple(matches['anonymous_platforms']),
        alternative_messaging = tuple(matches['alternative_messaging']),
        video_calling         = tuple(matches['video_calling']),
        social_messaging      = tuple(matches['social_messaging']),
        concern_score         = score,
    )
