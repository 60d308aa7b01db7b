"""
dnsentinel/exporters/sqlite_exporter.py
Exports events and window classifications to SQLite for the API layer.

SCHEMA DESIGN NOTES:
- events is the raw import layer (deduplicated lookups)
- window_results is the analysis layer, one row per minute window
- dnsentinel_meta stores run metadata and schema version
- Timestamps stored as ISO-8601 UTC TEXT; window keys as "YYYY-MM-DD HH:MM"
- Tuples (contributions, matched concern patterns) stored as JSON arrays
- Category counts and device counts stored as JSON objects
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dnsentinel.models.record import LogEvent, WindowResult
from dnsentinel.report import severity_for

logger = logging.getLogger(__name__)

SCHEMA_VERSION = '1.1'


def export(
    db_path:    Path,
    events:     Optional[List[LogEvent]]     = None,
    results:    Optional[List[WindowResult]] = None,
    run_label:  str                          = '',
) -> Path:
    """
    Write events and window results to the SQLite database.
    Safe to call multiple times: events use INSERT OR IGNORE on their dedup
    key, window rows are replaced by the latest run.
    Returns db_path.
    """
    events  = events  or []
    results = results or []

    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")

    try:
        _create_schema(conn)
        _add_missing_columns(conn)
        _write_events(conn, events)
        _write_results(conn, results)
        _write_meta(conn, events, results, run_label)
        conn.commit()
        logger.info(
            f"SQLite export complete → {db_path}\n"
            f"  Events: {len(events)} | Windows: {len(results)}"
        )
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"SQLite export failed: {e}")
        raise
    finally:
        conn.close()

    return Path(db_path)


# ── SCHEMA ───────────────────────────────────────────────────

def _create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS dnsentinel_meta (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            run_at          TEXT    NOT NULL,
            run_label       TEXT,
            schema_version  TEXT    NOT NULL,
            event_count     INTEGER DEFAULT 0,
            window_count    INTEGER DEFAULT 0,
            flagged_count   INTEGER DEFAULT 0,
            masking_count   INTEGER DEFAULT 0,
            notes           TEXT
        );

        CREATE TABLE IF NOT EXISTS events (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp       TEXT    NOT NULL,
            domain          TEXT    NOT NULL,
            query_type      TEXT,
            device_id       TEXT,
            device_name     TEXT,
            blocked         INTEGER DEFAULT 0,
            source_file     TEXT,
            UNIQUE(timestamp, domain, device_id)
        );

        CREATE TABLE IF NOT EXISTS window_results (
            time_window            TEXT PRIMARY KEY,
            window_start           TEXT NOT NULL,
            severity               TEXT,

            total_requests         INTEGER DEFAULT 0,
            blocked_requests       INTEGER DEFAULT 0,
            unique_domains         INTEGER DEFAULT 0,
            devices                TEXT,    -- JSON object

            wa_text_message        INTEGER DEFAULT 0,
            wa_media_transfer      INTEGER DEFAULT 0,
            wa_voice_call          INTEGER DEFAULT 0,
            wa_video_call          INTEGER DEFAULT 0,
            wa_direction           TEXT,
            wa_score               INTEGER DEFAULT 0,
            wa_contributions       TEXT,    -- JSON array

            fb_messaging           INTEGER DEFAULT 0,
            fb_media_transfer      INTEGER DEFAULT 0,
            fb_background_refresh  INTEGER DEFAULT 0,
            fb_reels_scrolling     INTEGER DEFAULT 0,
            fb_call                INTEGER DEFAULT 0,
            fb_instagram           INTEGER DEFAULT 0,
            fb_score               INTEGER DEFAULT 0,
            fb_contributions       TEXT,    -- JSON array

            dating_apps            TEXT,    -- JSON array
            anonymous_platforms    TEXT,    -- JSON array
            alternative_messaging  TEXT,    -- JSON array
            video_calling          TEXT,    -- JSON array
            social_messaging       TEXT,    -- JSON array
            concern_score          INTEGER DEFAULT 0,

            is_real_chat           INTEGER DEFAULT 0,
            chat_score             INTEGER DEFAULT 0,
            is_possible_vpn        INTEGER DEFAULT 0,
            vpn_score              INTEGER DEFAULT 0,
            is_acting_secret       INTEGER DEFAULT 0,
            secret_score           INTEGER DEFAULT 0,
            categories             TEXT,    -- JSON object

            is_masking             INTEGER DEFAULT 0,
            masking_evidence       TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_event_ts     ON events(timestamp);
        CREATE INDEX IF NOT EXISTS idx_event_domain ON events(domain);
        CREATE INDEX IF NOT EXISTS idx_window_start ON window_results(window_start);
        CREATE INDEX IF NOT EXISTS idx_window_sev   ON window_results(severity);
    """)


# Columns added after the first schema; older databases get them on export
ADDED_WINDOW_COLUMNS = (
    ('is_real_chat',     'INTEGER DEFAULT 0'),
    ('chat_score',       'INTEGER DEFAULT 0'),
    ('is_possible_vpn',  'INTEGER DEFAULT 0'),
    ('vpn_score',        'INTEGER DEFAULT 0'),
    ('is_acting_secret', 'INTEGER DEFAULT 0'),
    ('secret_score',     'INTEGER DEFAULT 0'),
    ('categories',       'TEXT'),
)


def _add_missing_columns(conn: sqlite3.Connection) -> None:
    cols = {row[1] for row in conn.execute('PRAGMA table_info(window_results)').fetchall()}
    for name, decl in ADDED_WINDOW_COLUMNS:
        if name not in cols:
            conn.execute(f"ALTER TABLE window_results ADD COLUMN {name} {decl}")
            logger.info(f"Added column window_results.{name}")


# ── WRITERS ──────────────────────────────────────────────────

def _write_events(conn: sqlite3.Connection, events: List[LogEvent]) -> None:
    if not events:
        return
    rows = [
        (
            e.timestamp.isoformat(), e.domain, e.query_type,
            e.device_id, e.device_name, int(e.blocked), e.source_file,
        )
        for e in events
    ]
    conn.executemany("""
        INSERT OR IGNORE INTO events
        (timestamp, domain, query_type, device_id, device_name, blocked, source_file)
        VALUES (?,?,?,?,?,?,?)
    """, rows)
    logger.debug(f"Wrote {len(rows)} event rows")


def _contributions_json(contributions) -> str:
    return json.dumps([{"label": c.label, "weight": c.weight} for c in contributions])


def _write_results(conn: sqlite3.Connection, results: List[WindowResult]) -> None:
    if not results:
        return
    rows = []
    for r in results:
        wa, fb, rel = r.whatsapp, r.facebook, r.relationship
        rows.append((
            r.time_window,
            r.window_start.isoformat(),
            severity_for(r),
            r.stats.total_requests,
            r.stats.blocked_requests,
            r.stats.unique_domains,
            json.dumps(r.stats.devices),
            int(wa.is_text_message),
            int(wa.is_media_transfer),
            int(wa.is_voice_call),
            int(wa.is_video_call),
            wa.direction,
            wa.score,
            _contributions_json(wa.contributions),
            int(fb.is_messaging),
            int(fb.is_media_transfer),
            int(fb.is_background_refresh),
            int(fb.is_reels_scrolling),
            int(fb.is_call),
            int(fb.is_instagram_activity),
            fb.score,
            _contributions_json(fb.contributions),
            json.dumps(list(rel.dating_apps)),
            json.dumps(list(rel.anonymous_platforms)),
            json.dumps(list(rel.alternative_messaging)),
            json.dumps(list(rel.video_calling)),
            json.dumps(list(rel.social_messaging)),
            rel.concern_score,
            int(r.real_chat.is_real_chat),
            r.real_chat.score,
            int(r.vpn.is_possible_vpn),
            r.vpn.score,
            int(r.secret.is_acting_secret),
            r.secret.score,
            json.dumps(r.categories),
            int(r.masking.is_masking),
            r.masking.evidence,
        ))
    conn.executemany("""
        INSERT OR REPLACE INTO window_results
        (time_window, window_start, severity,
         total_requests, blocked_requests, unique_domains, devices,
         wa_text_message, wa_media_transfer, wa_voice_call, wa_video_call,
         wa_direction, wa_score, wa_contributions,
         fb_messaging, fb_media_transfer, fb_background_refresh,
         fb_reels_scrolling, fb_call, fb_instagram, fb_score, fb_contributions,
         dating_apps, anonymous_platforms, alternative_messaging,
         video_calling, social_messaging, concern_score,
         is_real_chat, chat_score, is_possible_vpn, vpn_score,
         is_acting_secret, secret_score, categories,
         is_masking, masking_evidence)
        VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
    """, rows)
    logger.debug(f"Wrote {len(rows)} window rows")


def _write_meta(
    conn:      sqlite3.Connection,
    events:    List[LogEvent],
    results:   List[WindowResult],
    run_label: str,
) -> None:
    conn.execute("""
        INSERT INTO dnsentinel_meta
        (run_at, run_label, schema_version, event_count, window_count,
         flagged_count, masking_count)
        VALUES (?,?,?,?,?,?,?)
    """, (
        datetime.now(timezone.utc).isoformat(),
        run_label or 'dnsentinel-run',
        SCHEMA_VERSION,
        len(events),
        len(results),
        sum(1 for r in results if severity_for(r) is not None),
        sum(1 for r in results if r.masking.is_masking),
    ))
