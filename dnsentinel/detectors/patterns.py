"""
dnsentinel/detectors/patterns.py
Domain pattern tables and the substring matchers the classifiers use.

Matching is case-insensitive substring containment: one hit is enough,
nothing fuzzy. Service tables (concern, VPN, secret, categories) go through
contains_service, which also keeps very short names to a label start.
Tables are tuples so nobody mutates them at runtime.
Extend them freely; the classifiers only depend on the names.
"""

from typing import Iterable, List, Sequence

from dnsentinel.models.record import LogEvent


# ── WHATSAPP ─────────────────────────────────────────────────

WA_SIGNALING = (
    'g.whatsapp.net', 'graph.whatsapp.com', 'dit.whatsapp.net',
)
WA_GRAPH            = ('graph.whatsapp.com',)
WA_DIT              = ('dit.whatsapp.net',)
WA_MEDIA_UPLOAD     = ('mmg.whatsapp.net',)
WA_MEDIA_DOWNLOAD   = ('media-', '.cdn.whatsapp.net', 'mmx-ds.cdn.whatsapp.net')
WA_STATIC           = ('static.whatsapp.net',)
WA_CALLS            = ('dit.whatsapp.net', 'dyn.whatsapp.net', 'relay.whatsapp.net')
WA_CORE             = ('whatsapp.net', 'whatsapp.com')
WA_BACKGROUND = (
    'static.whatsapp.net', 'edge-mqtt.whatsapp.net', 'edge-mqtt.facebook.com',
)

# Facebook lookups that mean the push belonged to Messenger, not a WhatsApp call
WA_CALL_INTERFERENCE = ('rupload.facebook.com', 'edge-mqtt.facebook.com')


# ── APPLE PUSH ───────────────────────────────────────────────

APNS_COURIER   = 'courier'
APNS_PUSH      = 'push.apple.com'
APPLE_SYSTEM   = ('apple.com', 'icloud.com')


# ── FACEBOOK / MESSENGER / INSTAGRAM ─────────────────────────

FB_CALLS         = ('external.xx.fbcdn.net',)       # STUN / TURN relay
FB_TEXT_SEND     = ('pm.facebook.com', 'web.facebook.com')
FB_PM            = ('pm.facebook.com',)
FB_WEB           = ('web.facebook.com',)
FB_MESSAGING = (
    'edge-mqtt.facebook.com', 'gateway.facebook.com', 'chat-e2ee.facebook.com',
)
FB_MQTT          = ('edge-mqtt.facebook.com',)
FB_GATEWAY       = ('gateway.facebook.com',)
FB_E2EE          = ('chat-e2ee.facebook.com',)
FB_MEDIA_UPLOAD  = ('rupload.facebook.com',)
FB_MEDIA_DOWNLOAD = ('scontent.', 'scontent-', '.fbsbx.com')
FB_API = (
    'star.c10r.facebook.com', 'star.fallback.c10r.facebook.com',
    'graph.facebook.com', 'graph.instagram.com',
)
FB_STAR_FALLBACK = ('star.fallback.c10r.facebook.com',)
FB_GRAPH         = ('graph.facebook.com',)
FB_WWW           = ('www.facebook.com',)
FB_CORE          = ('facebook.com', 'messenger.com', 'instagram.com')
FB_BACKGROUND = (
    'www.facebook.com', 'static.xx.fbcdn.net', 'connect.facebook.net',
)
FB_INSTAGRAM     = ('instagram',)
FB_FAMILY        = ('facebook',)     # what counts as "a Facebook lookup"

FB_APP_LAUNCH = (
    'www.facebook.com', 'web.facebook.com', 'm.facebook.com',
    'gateway.facebook.com', 'graph.facebook.com', 'api.facebook.com',
    'star.fallback.c10r.facebook.com', 'lookaside.facebook.com',
)

# Video static assets served while scrolling Reels
FB_VIDEO_STATIC = ('static-', '.xx.fbcdn.net')

# CDN optimisation marker only seen during Reels / short-video playback
REELS_CDN_MARKER = ('-netseer-ipaddr-assoc.',)


# ── RELATIONSHIP CONCERN CATEGORIES ──────────────────────────

DATING_APPS = (
    'tinder.com', 'bumble.com', 'hinge.co', 'match.com', 'eharmony.com',
    'okcupid.com', 'pof.com', 'zoosk.com', 'badoo.com', 'happn.com',
    'grindr.com', 'scruff.com', 'jackd.com', 'hornet.com',
    'adultfriendfinder.com', 'ashley-madison.com', 'seeking.com', 'raya.co',
    'coffeemeetsbagel.com', 'theinner-circle.com', 'elitesingles.com',
    'silversingles.com', 'ourtime.com', 'christianmingle.com', 'jdate.com',
    'blackpeoplemeet.com', 'loveandseek.com', 'farmersonly.com',
    'militarycupid.com',
)

ANONYMOUS_PLATFORMS = (
    'yolo.live', 'sarahah.com', 'tellonym.me', 'curiouscat.me', 'ask.fm',
    'lipsi.co', 'sendit.gg', 'ngl.link', 'whisper.sh', 'anonymous.com',
    'confession.co', 'secrets.co',
)

ALTERNATIVE_MESSAGING = (
    'telegram.org', 'signal.org', 'discord.com', 'slack.com', 'snapchat.com',
    'kik.com', 'viber.com', 'line.me', 'wechat.com', 'qq.com',
    'kakaotalk.com', 'threema.ch', 'wickr.com', 'element.io', 'session.im',
    'briar.app', 'jami.net', 'riot.im', 'matrix.org', 'keybase.io',
    'dust.com', 'confide.com', 'coverme.ws', 'silent-phone.com',
)

VIDEO_CALLING = (
    'zoom.us', 'skype.com', 'teams.microsoft.com', 'meet.google.com',
    'webex.com', 'gotomeeting.com', 'bluejeans.com', 'jitsi.org',
    'whereby.com', 'appear.in', 'bigbluebutton.org', 'jami.net',
    'facetime.apple.com', 'duo.google.com', 'allo.google.com',
)

SOCIAL_MESSAGING = (
    'twitter.com', 'x.com', 'linkedin.com', 'reddit.com', 'pinterest.com',
    'tumblr.com', 'twitch.tv', 'onlyfans.com', 'chaturbate.com', 'cam4.com',
    'myfreecams.com', 'streamate.com', 'flirt4free.com', 'camsoda.com',
    'bongacams.com', 'stripchat.com',
)

# Google properties that share hostnames with chat/meet but are not messaging
CONCERN_EXCLUSIONS = (
    'chat.google.com', 'hangouts.google.com', 'mail.google.com',
    'accounts.google.com', 'apis.google.com', 'fonts.google.com',
    'maps.google.com',
)


# ── REAL CHAT ────────────────────────────────────────────────
# Coarse app-presence tables; the temporal WhatsApp/Facebook rules live
# in their own detectors.

CHAT_WA_CORE       = WA_CORE
CHAT_WA_MESSAGING = (
    'g.whatsapp.net', 'mmg.whatsapp.net', 'media-', '.cdn.whatsapp.net',
    'dit.whatsapp.net', 'static.whatsapp.net',
)
CHAT_WA_API        = ('graph.whatsapp.com',)
CHAT_FB_CORE       = ('facebook.com', 'instagram.com')
CHAT_FB_MESSAGING = (
    'graph.facebook.com', 'edge-mqtt.facebook.com', 'gateway.facebook.com',
    'ep2.facebook.com', 'star.fallback.c10r.facebook.com',
    'gateway.instagram.com', 'graph.instagram.com',
)
CHAT_FB_REALTIME = (
    'meta-ai-realtime.facebook.com', 'wearable-ai-realtime.facebook.com',
)


# ── VPN / ANONYMITY ──────────────────────────────────────────

VPN_SERVICES = (
    'nordvpn.com', 'expressvpn.com', 'surfshark.com', 'protonvpn.com',
    'cyberghost.com', 'ipvanish.com', 'purevpn.com', 'tunnelbear.com',
    'windscribe.com', 'hotspotshield.com', 'privatevpn.com', 'vyprvpn.com',
)
ANONYMITY_NETWORKS = ('torproject.org', 'onion', 'tor.', 'i2p.', 'freenet.')
PRIVATE_DNS = (
    'cloudflare-dns.com', 'dns.google', 'quad9.net', 'opendns.com',
    '1.1.1.1', '8.8.8.8', '9.9.9.9', 'adguard-dns.io',
)
PROXY_SERVICES = ('proxy.', 'tunnel.', 'socks.', 'shadowsocks', 'v2ray', 'trojan')
PRIVACY_TOOLS = (
    'duckduckgo.com', 'startpage.com', 'searx.', 'brave.com',
    'ghostery.com', 'ublock.', 'adblock.', 'disconnect.me',
)

# Host fragments that hint at tunnelling when many show up together
TUNNEL_MARKERS = ('cdn', 'proxy', 'tunnel', 'vpn')


# ── SECRET BEHAVIOUR ─────────────────────────────────────────

TEMP_EMAIL = (
    '10minutemail.com', 'guerrillamail.com', 'temp-mail.org', 'mailinator.com',
    'throwaway.email', 'getnada.com', 'tempail.com', 'mohmal.com',
)
ENCRYPTED_MESSAGING = (
    'signal.org', 'telegram.org', 'wickr.com', 'threema.ch',
    'wire.com', 'element.io', 'matrix.org', 'session.loki-project.org',
)
ANONYMOUS_STORAGE = (
    'mega.nz', 'anonfiles.com', 'file.io', 'transfer.sh',
    'wetransfer.com', 'send.firefox.com', 'onionshare.org',
)
CRYPTO_PRIVACY = (
    'monero.org', 'zcash.com', 'dash.org', 'coinmixer.', 'bitcoin-mixer.',
    'localbitcoins.com', 'bisq.network', 'wasabiwallet.io',
)
ALT_SOCIAL = (
    'minds.com', 'gab.com', 'parler.com', 'mastodon.', 'diaspora.',
    'friendica.', 'peertube.', 'bitchute.com',
)
PRIVATE_SEARCH = (
    'duckduckgo.com', 'startpage.com', 'searx.', 'yandex.com',
    'brave.com', 'tor.', 'tails.',
)

# Name fragments typical of throwaway or generated hosts
OBFUSCATION_MARKERS = ('--', 'temp', 'anon')


# ── DOMAIN CATEGORIES ────────────────────────────────────────
# First matching category wins; anything else is CATEGORY_OTHER.

CATEGORY_OTHER = 'Other'

DOMAIN_CATEGORIES = (
    ('WhatsApp Domain Access', (
        'whatsapp.com', 'whatsapp.net', 'wa.me',
    )),
    ('Facebook Domain Access', (
        'facebook.com', 'messenger.com', 'fb.com', 'fbcdn.net', 'facebook.net',
    )),
    ('Other Messaging', (
        'telegram.org', 'discord.com', 'discordapp.com', 'signal.org',
        'slack.com', 'teams.microsoft.com', 'zoom.us',
    )),
    ('Social Media', (
        'twitter.com', 'instagram.com', 'linkedin.com', 'tiktok.com',
        'snapchat.com', 'reddit.com', 'pinterest.com',
    )),
    ('Streaming & Entertainment', (
        'youtube.com', 'netflix.com', 'spotify.com', 'soundcloud.com',
        'twitch.tv', 'hulu.com', 'disney.com', 'primevideo.com',
    )),
    ('Google Services', (
        'google.com', 'googleapis.com', 'googleusercontent.com',
        'gstatic.com', 'gmail.com', 'google-analytics.com',
    )),
    ('Cloud & CDN', (
        'cloudfront.net', 'amazonaws.com', 'cloudflare.com', 'fastly.com',
        'akamai.net', 'azure.com',
    )),
    ('Advertising & Analytics', (
        'doubleclick.net', 'googleadservices.com', 'googlesyndication.com',
        'adsystem.com', 'analytics.google.com', 'quantserve.com',
        'scorecardresearch.com',
    )),
    ('Security & Monitoring', (
        'sentry.io', 'bugsnag.com', 'newrelic.com', 'datadog.com',
    )),
)


# ── MATCHING ─────────────────────────────────────────────────

# Service patterns with a first label this short only match at a label start
SHORT_LABEL_MAX  = 3
LABEL_BOUNDARIES = ('.', '-')


def domain_matches(domain: str, patterns: Iterable[str]) -> bool:
    d = domain.lower()
    return any(p.lower() in d for p in patterns)


def domain_matches_all(domain: str, patterns: Iterable[str]) -> bool:
    """True only when every pattern occurs in the domain (e.g. 'static-' + '.xx.fbcdn.net')."""
    d = domain.lower()
    return all(p.lower() in d for p in patterns)


def has_pattern(events: Sequence[LogEvent], patterns: Iterable[str]) -> bool:
    """True if any event's domain contains any of the patterns."""
    patterns = tuple(patterns)
    return any(domain_matches(e.domain, patterns) for e in events)


def count_pattern(events: Sequence[LogEvent], patterns: Iterable[str]) -> int:
    patterns = tuple(patterns)
    return sum(1 for e in events if domain_matches(e.domain, patterns))


def matching_events(events: Sequence[LogEvent], patterns: Iterable[str]) -> List[LogEvent]:
    patterns = tuple(patterns)
    return [e for e in events if domain_matches(e.domain, patterns)]


def is_push_anchor(event: LogEvent) -> bool:
    """Apple push courier lookup, e.g. 12-courier.push.apple.com."""
    d = event.domain.lower()
    return APNS_COURIER in d and APNS_PUSH in d


def push_anchors(events: Sequence[LogEvent]) -> List[LogEvent]:
    return [e for e in events if is_push_anchor(e)]


def is_whatsapp_media_cdn(event: LogEvent) -> bool:
    """media-xxx.cdn.whatsapp.net style download host."""
    d = event.domain.lower()
    return 'media-' in d and 'cdn.whatsapp.net' in d


def contains_service(domain: str, pattern: str) -> bool:
    """
    Substring containment for the service tables (api.gotinder.com hits
    tinder.com). A pattern whose first label is very short ('x.com',
    'qq.com') must start a label, so netflix.com is not x.com.
    """
    d = domain.lower().rstrip('.')
    p = pattern.lower()
    if len(p.split('.', 1)[0]) > SHORT_LABEL_MAX:
        return p in d
    start = d.find(p)
    while start != -1:
        if start == 0 or d[start - 1] in LABEL_BOUNDARIES:
            return True
        start = d.find(p, start + 1)
    return False


def categorize_domain(domain: str) -> str:
    """Name of the first DOMAIN_CATEGORIES entry the domain belongs to."""
    for name, patterns in DOMAIN_CATEGORIES:
        if any(contains_service(domain, p) for p in patterns):
            return name
    return CATEGORY_OTHER
