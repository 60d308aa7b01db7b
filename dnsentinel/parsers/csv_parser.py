"""
dnsentinel/parsers/csv_parser.py
Parses NextDNS-style DNS query log exports (CSV).

Expected columns (extra columns are ignored):
  timestamp, domain, query_type, status, device_id, device_name

Timestamps are ISO-8601; a trailing 'Z' and explicit offsets are both
accepted and normalised to UTC. Naive timestamps are taken as UTC.
JSON rows may also give epoch numbers and a boolean "blocked" key.
Rows without a timestamp or domain are skipped. No domain lists or device
names are written to INFO logs, counts only.
"""

import csv
import io
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from dnsentinel.models.record import LogEvent

logger = logging.getLogger(__name__)

DEDUP_BUCKET_SECONDS = 30

# Lower wins when the same lookup is logged once per record type
QUERY_TYPE_PRIORITY = {
    'A':     1,
    'AAAA':  2,
    'HTTPS': 3,
}

# Numeric timestamps at or above this are epoch milliseconds
EPOCH_MS_THRESHOLD = 10 ** 12

BLOCKED_FLAG_VALUES = ('true', '1', 'yes', 'blocked')


def _text(value) -> str:
    return '' if value is None else str(value).strip()


def parse_timestamp(value) -> Optional[datetime]:
    """
    ISO-8601 string → aware UTC datetime, or None if unparseable.
    JSON rows may carry a number instead: epoch seconds, or milliseconds
    when it is too large to be seconds.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value >= EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = _text(value)
    if not text:
        return None
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _is_blocked(row: Mapping[str, Any]) -> bool:
    """CSV exports carry status=blocked; JSON rows may carry blocked=true instead."""
    if _text(row.get('status')).lower() == 'blocked':
        return True
    flag = row.get('blocked')
    if isinstance(flag, bool):
        return flag
    return _text(flag).lower() in BLOCKED_FLAG_VALUES


def row_to_event(row: Mapping[str, Any], source_file: str = '') -> Optional[LogEvent]:
    """One CSV/JSON row → LogEvent. Returns None when the row is unusable."""
    domain = _text(row.get('domain')).lower().rstrip('.')
    raw_ts = row.get('timestamp')
    if not domain or raw_ts is None or raw_ts == '':
        return None
    ts = parse_timestamp(raw_ts)
    if ts is None:
        return None
    return LogEvent(
        timestamp   = ts,
        domain      = domain,
        query_type  = (_text(row.get('query_type')) or 'A').upper(),
        device_id   = _text(row.get('device_id')),
        device_name = _text(row.get('device_name')),
        blocked     = _is_blocked(row),
        source_file = source_file,
    )


def rows_to_events(rows: Iterable[Mapping[str, Any]], source_file: str = '') -> List[LogEvent]:
    events: List[LogEvent] = []
    skipped = 0
    for row in rows:
        event = row_to_event(row, source_file)
        if event is None:
            skipped += 1
            continue
        events.append(event)
    if skipped:
        logger.debug(f"Skipped {skipped} unusable row(s) in {source_file or 'input'}")
    return events


def parse_csv_file(path: Path) -> List[LogEvent]:
    """
    Parse a single CSV export. BOM-tolerant.
    I/O and CSV errors are logged and yield an empty list for this file.
    """
    path = Path(path)
    try:
        text = path.read_bytes().decode('utf-8-sig', errors='replace')
        reader = csv.DictReader(io.StringIO(text))
        events = rows_to_events(reader, source_file=path.name)
    except (OSError, csv.Error) as e:
        logger.error(f"Failed to parse {path.name}: {e}")
        return []

    events.sort(key=lambda e: e.timestamp)
    logger.info(f"{path.name}: {len(events)} events")
    return events


def parse_csv_directory(directory: Path) -> List[LogEvent]:
    """Parse every *.csv file in a directory, merged and time-sorted."""
    directory = Path(directory)
    files = sorted(directory.glob('*.csv'))
    if not files:
        logger.warning(f"No CSV files found in {directory}")
        return []

    all_events: List[LogEvent] = []
    for f in files:
        all_events.extend(parse_csv_file(f))

    all_events.sort(key=lambda e: e.timestamp)
    logger.info(f"Total events parsed: {len(all_events)} from {len(files)} file(s)")
    return all_events


def deduplicate_events(events: Iterable[LogEvent]) -> List[LogEvent]:
    """
    Collapse repeat lookups of the same domain inside one 30-second bucket.
    The kept event is the highest-priority record type (A, then AAAA, then
    HTTPS, then anything else; earliest on ties) and its query_type lists
    every type seen, e.g. "A,AAAA,HTTPS".
    """
    events = list(events)
    kept:  Dict[Tuple[str, int], LogEvent] = {}
    types: Dict[Tuple[str, int], List[str]] = {}

    for e in sorted(events, key=lambda x: x.timestamp):
        key = (e.domain, int(e.timestamp.timestamp() // DEDUP_BUCKET_SECONDS))
        if key not in kept:
            kept[key]  = e
            types[key] = [e.query_type]
            continue
        if _type_priority(e.query_type) < _type_priority(kept[key].query_type):
            kept[key] = e
        if e.query_type not in types[key]:
            types[key].append(e.query_type)

    out = [replace(kept[k], query_type=','.join(types[k])) for k in kept]
    out.sort(key=lambda e: e.timestamp)
    if len(out) != len(events):
        logger.info(f"Deduplicated {len(events)} DNS records → {len(out)} events")
    return out


def drop_future_events(events: Iterable[LogEvent], now: Optional[datetime] = None) -> List[LogEvent]:
    """Remove events timestamped after now (clock-skewed or corrupt rows)."""
    now = now or datetime.now(timezone.utc)
    events = list(events)
    valid = [e for e in events if e.timestamp <= now]
    if len(valid) != len(events):
        logger.warning(f"Removed {len(events) - len(valid)} event(s) with future timestamps")
    return valid


def _type_priority(query_type: str) -> int:
    return QUERY_TYPE_PRIORITY.get(query_type, 99)
