"""
dnsentinel/models/record.py
Shared dataclass schema. Parsers, detectors, aggregators and exporters
all use these types. Do not add logic here — data only.

Everything below is frozen: a window result is built once and never
mutated. The masking pass derives new WindowResult instances with
dataclasses.replace().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple


# Activity direction labels (WhatsAppActivity.direction)
DIRECTION_INCOMING = 'incoming'
DIRECTION_OUTGOING = 'outgoing'
DIRECTION_UNKNOWN  = 'unknown'


@dataclass(frozen=True)
class LogEvent:
    """One normalized DNS query."""
    timestamp:    datetime               # timezone-aware, UTC
    domain:       str                    # lower-cased
    query_type:   str   = 'A'            # A / AAAA / HTTPS, or merged "A,AAAA"
    device_id:    str   = ''
    device_name:  str   = ''
    blocked:      bool  = False
    source_file:  str   = ''


@dataclass(frozen=True)
class Contribution:
    """One scoring step: the condition that fired and the weight it added."""
    label:   str
    weight:  int


@dataclass(frozen=True)
class WhatsAppActivity:
    is_text_message:    bool                      = False
    is_media_transfer:  bool                      = False
    is_voice_call:      bool                      = False
    is_video_call:      bool                      = False   # DNS cannot tell voice from video
    score:              int                       = 0
    direction:          Optional[str]             = None    # incoming / outgoing / unknown
    contributions:      Tuple[Contribution, ...]  = ()


@dataclass(frozen=True)
class FacebookActivity:
    is_messaging:           bool                      = False
    is_media_transfer:      bool                      = False
    is_background_refresh:  bool                      = False
    is_reels_scrolling:     bool                      = False
    is_call:                bool                      = False
    is_instagram_activity:  bool                      = False
    score:                  int                       = 0
    contributions:          Tuple[Contribution, ...]  = ()


@dataclass(frozen=True)
class RelationshipConcern:
    """Matched category patterns (deduplicated) and the weighted total."""
    dating_apps:            Tuple[str, ...]  = ()
    anonymous_platforms:    Tuple[str, ...]  = ()
    alternative_messaging:  Tuple[str, ...]  = ()
    video_calling:          Tuple[str, ...]  = ()
    social_messaging:       Tuple[str, ...]  = ()
    concern_score:          int              = 0


@dataclass(frozen=True)
class RealChatSignal:
    """Coarse app presence: messaging hosts seen, regardless of timing."""
    is_real_chat:       bool                      = False
    has_whatsapp_chat:  bool                      = False
    has_facebook_chat:  bool                      = False
    score:              int                       = 0
    contributions:      Tuple[Contribution, ...]  = ()


@dataclass(frozen=True)
class VpnAttempt:
    is_possible_vpn:  bool                      = False
    score:            int                       = 0
    contributions:    Tuple[Contribution, ...]  = ()


@dataclass(frozen=True)
class SecretBehavior:
    is_acting_secret:  bool                      = False
    score:             int                       = 0
    contributions:     Tuple[Contribution, ...]  = ()


@dataclass(frozen=True)
class MaskingFlag:
    is_masking:  bool  = False
    evidence:    str   = ''


@dataclass(frozen=True)
class WindowStats:
    total_requests:    int             = 0
    blocked_requests:  int             = 0
    allowed_requests:  int             = 0
    unique_domains:    int             = 0
    devices:           Dict[str, int]  = field(default_factory=dict)


@dataclass(frozen=True)
class WindowResult:
    """Full classification of one one-minute window."""
    time_window:   str                   # "YYYY-MM-DD HH:MM"
    window_start:  datetime
    stats:         WindowStats           = field(default_factory=WindowStats)
    whatsapp:      WhatsAppActivity      = field(default_factory=WhatsAppActivity)
    facebook:      FacebookActivity      = field(default_factory=FacebookActivity)
    relationship:  RelationshipConcern   = field(default_factory=RelationshipConcern)
    masking:       MaskingFlag           = field(default_factory=MaskingFlag)
    real_chat:     RealChatSignal        = field(default_factory=RealChatSignal)
    vpn:           VpnAttempt            = field(default_factory=VpnAttempt)
    secret:        SecretBehavior        = field(default_factory=SecretBehavior)
    categories:    Dict[str, int]        = field(default_factory=dict)   # category → lookups
