"""
dnsentinel/detectors/behavior_detector.py
Coarse per-window behaviour flags: real chat, possible VPN, secretive
behaviour, and domain-category counts.

Unlike the WhatsApp and Facebook classifiers these look only at which
hosts were contacted, never at timing. They are pure functions of the
window's distinct domain set (category counts excepted, which count
every lookup).
"""

import logging
import re
from collections import Counter
from typing import Dict, List, Sequence

from dnsentinel.config import DEFAULT_THRESHOLDS, Thresholds
from dnsentinel.detectors.patterns import (
    ALT_SOCIAL,
    ANONYMITY_NETWORKS,
    ANONYMOUS_STORAGE,
    CHAT_FB_CORE,
    CHAT_FB_MESSAGING,
    CHAT_FB_REALTIME,
    CHAT_WA_API,
    CHAT_WA_CORE,
    CHAT_WA_MESSAGING,
    CRYPTO_PRIVACY,
    ENCRYPTED_MESSAGING,
    OBFUSCATION_MARKERS,
    PRIVACY_TOOLS,
    PRIVATE_DNS,
    PRIVATE_SEARCH,
    PROXY_SERVICES,
    TEMP_EMAIL,
    TUNNEL_MARKERS,
    VPN_SERVICES,
    categorize_domain,
    contains_service,
    domain_matches,
)
from dnsentinel.detectors.scoring import ScoreSheet
from dnsentinel.models.record import LogEvent, RealChatSignal, SecretBehavior, VpnAttempt

logger = logging.getLogger(__name__)

# ── WEIGHTS ──────────────────────────────────────────────────

CHAT_WEIGHTS = {
    'core':       1,
    'messaging':  4,
    'api':        3,
}

VPN_WEIGHTS = {
    'vpn_service':     10,
    'anonymity':        8,
    'proxy':            6,
    'private_dns':      3,
    'privacy_tools':    2,
    'tld_spread':       2,
    'tunnel_hosts':     3,
}

SECRET_WEIGHTS = {
    'real_chat':            2,
    'possible_vpn':         4,
    'temp_email':           6,
    'encrypted_messaging':  4,
    'anonymous_storage':    5,
    'crypto_privacy':       7,
    'alt_social':           3,
    'private_search':       2,
    'privacy_stack':        5,
    'obfuscated_hosts':     3,
}

# Tables counted towards "several privacy tools in one window"
PRIVACY_STACK = (
    TEMP_EMAIL, ENCRYPTED_MESSAGING, ANONYMOUS_STORAGE, CRYPTO_PRIVACY,
    VPN_SERVICES, ANONYMITY_NETWORKS,
)

_LONG_DIGIT_RUN = re.compile(r'[0-9]{4,}')


def _distinct_domains(events: Sequence[LogEvent]) -> List[str]:
    return sorted({e.domain.lower() for e in events})


def _any_service(domains: Sequence[str], patterns: Sequence[str]) -> bool:
    return any(contains_service(d, p) for d in domains for p in patterns)


# ── REAL CHAT ────────────────────────────────────────────────

def detect_real_chat(
    events:     Sequence[LogEvent],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> RealChatSignal:
    """
    Messaging hosts of either platform, or both platforms' core domains,
    mark the window as a real chat. Messaging and API hosts only score
    once the platform's core domain is present.
    """
    domains = _distinct_domains(events)
    sheet   = ScoreSheet()

    wa_core = any(domain_matches(d, CHAT_WA_CORE) for d in domains)
    wa_chat = wa_core and any(domain_matches(d, CHAT_WA_MESSAGING) for d in domains)
    if wa_core:
        sheet.add('WhatsApp core domain', CHAT_WEIGHTS['core'])
        if wa_chat:
            sheet.add('WhatsApp messaging host', CHAT_WEIGHTS['messaging'])
        if any(domain_matches(d, CHAT_WA_API) for d in domains):
            sheet.add('WhatsApp API host', CHAT_WEIGHTS['api'])

    fb_core = any(domain_matches(d, CHAT_FB_CORE) for d in domains)
    fb_chat = fb_core and any(domain_matches(d, CHAT_FB_MESSAGING) for d in domains)
    if fb_core:
        sheet.add('Facebook core domain', CHAT_WEIGHTS['core'])
        if fb_chat:
            sheet.add('Facebook messaging host', CHAT_WEIGHTS['messaging'])
        if any(domain_matches(d, CHAT_FB_REALTIME) for d in domains):
            sheet.add('Facebook realtime host', CHAT_WEIGHTS['api'])

    is_real_chat = (
        sheet.total >= thresholds.real_chat_min_score
        or wa_chat or fb_chat
        or (wa_core and fb_core)
    )
    return RealChatSignal(
        is_real_chat      = is_real_chat,
        has_whatsapp_chat = wa_chat,
        has_facebook_chat = fb_chat,
        score             = sheet.total,
        contributions     = sheet.contributions(),
    )


# ── VPN ──────────────────────────────────────────────────────

def detect_vpn_attempt(
    events:     Sequence[LogEvent],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> VpnAttempt:
    domains = _distinct_domains(events)
    sheet   = ScoreSheet()

    if _any_service(domains, VPN_SERVICES):
        sheet.add('VPN provider', VPN_WEIGHTS['vpn_service'])
    if _any_service(domains, ANONYMITY_NETWORKS):
        sheet.add('anonymity network', VPN_WEIGHTS['anonymity'])
    if _any_service(domains, PRIVATE_DNS):
        sheet.add('private DNS resolver', VPN_WEIGHTS['private_dns'])
    if _any_service(domains, PROXY_SERVICES):
        sheet.add('proxy or tunnel service', VPN_WEIGHTS['proxy'])
    if _any_service(domains, PRIVACY_TOOLS):
        sheet.add('privacy tool', VPN_WEIGHTS['privacy_tools'])

    tlds = {d.rsplit('.', 1)[-1] for d in domains}
    if len(tlds) > thresholds.vpn_min_tlds:
        sheet.add(f'{len(tlds)} distinct top-level domains', VPN_WEIGHTS['tld_spread'])

    tunnel_hosts = sum(1 for d in domains if any(m in d for m in TUNNEL_MARKERS))
    if tunnel_hosts > thresholds.vpn_min_tunnel_hosts:
        sheet.add(f'{tunnel_hosts} cdn/proxy/tunnel/vpn hosts', VPN_WEIGHTS['tunnel_hosts'])

    result = VpnAttempt(
        is_possible_vpn = sheet.total >= thresholds.vpn_min_score,
        score           = sheet.total,
        contributions   = sheet.contributions(),
    )
    if result.is_possible_vpn:
        logger.debug(f"VPN: score={result.score}")
    return result


# ── SECRET BEHAVIOUR ─────────────────────────────────────────

def detect_secret_behavior(
    events:     Sequence[LogEvent],
    real_chat:  RealChatSignal,
    vpn:        VpnAttempt,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> SecretBehavior:
    """
    Builds on the chat and VPN flags of the same window, then adds
    privacy-service hits and obfuscated-looking host names.
    """
    domains = _distinct_domains(events)
    sheet   = ScoreSheet()

    if real_chat.is_real_chat:
        sheet.add('real chat in window', SECRET_WEIGHTS['real_chat'])
    if vpn.is_possible_vpn:
        sheet.add('possible VPN in window', SECRET_WEIGHTS['possible_vpn'])

    for label, key, patterns in (
        ('temporary email',         'temp_email',          TEMP_EMAIL),
        ('encrypted messenger',     'encrypted_messaging', ENCRYPTED_MESSAGING),
        ('anonymous file sharing',  'anonymous_storage',   ANONYMOUS_STORAGE),
        ('crypto privacy service',  'crypto_privacy',      CRYPTO_PRIVACY),
        ('alternative social',      'alt_social',          ALT_SOCIAL),
        ('private search',          'private_search',      PRIVATE_SEARCH),
    ):
        if _any_service(domains, patterns):
            sheet.add(label, SECRET_WEIGHTS[key])

    stack = sum(1 for table in PRIVACY_STACK if _any_service(domains, table))
    if stack >= thresholds.secret_min_privacy_tools:
        sheet.add(f'{stack} privacy tools together', SECRET_WEIGHTS['privacy_stack'])

    obfuscated = sum(1 for d in domains if _looks_obfuscated(d))
    if obfuscated > thresholds.secret_min_obfuscated:
        sheet.add(f'{obfuscated} obfuscated host names', SECRET_WEIGHTS['obfuscated_hosts'])

    result = SecretBehavior(
        is_acting_secret = sheet.total >= thresholds.secret_min_score,
        score            = sheet.total,
        contributions    = sheet.contributions(),
    )
    if result.is_acting_secret:
        logger.debug(f"Secret behaviour: score={result.score}")
    return result


def _looks_obfuscated(domain: str) -> bool:
    return any(m in domain for m in OBFUSCATION_MARKERS) or bool(_LONG_DIGIT_RUN.search(domain))


# ── CATEGORIES ───────────────────────────────────────────────

def count_domain_categories(events: Sequence[LogEvent]) -> Dict[str, int]:
    """Lookups per category, counting every event (repeats included)."""
    return dict(Counter(categorize_domain(e.domain) for e in events))
