"""
dnsentinel/config.py
Config persistence and classifier thresholds. Persists to dnsentinel_config.json.

Every numeric cutoff used by the detectors lives in Thresholds so that a
run can be retuned from the config file without touching detector code.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Thresholds:
    # WhatsApp call: push anchor within [-before, +after] of a signaling lookup
    call_push_before_s:              int = 10
    call_push_after_s:               int = 5
    # Facebook upload/messaging lookups around the push anchor cancel a call
    call_interference_before_s:      int = 10
    call_interference_after_s:       int = 15
    # Signaling followed by a media CDN fetch (voice note)
    voice_note_cdn_lag_s:            int = 120
    voice_note_push_lookback_s:      int = 15
    # Received media after a push anchor
    received_media_window_s:         int = 300
    received_media_system_window_s:  int = 30
    received_media_max_system:       int = 2     # exclusive
    # Facebook app-launch burst
    fb_launch_min_unique:            int = 8
    fb_launch_min_total:             int = 10
    fb_burst_radius_s:               int = 5
    fb_burst_min_neighbors:          int = 6
    # Facebook text evidence
    fb_web_text_max_unique:          int = 4
    fb_web_context_max_unique:       int = 5
    fb_web_context_max_total:        int = 8
    fb_isolated_mqtt_max_others:     int = 1
    fb_push_activity_window_s:       int = 300
    # Masking
    masking_window_minutes:          int = 10
    masking_min_gap_minutes:         int = 1     # exclusive
    strong_evidence_score:           int = 6     # exclusive
    # Coarse behaviour flags (scores are inclusive minimums)
    real_chat_min_score:             int = 3
    vpn_min_score:                   int = 4
    vpn_min_tlds:                    int = 5     # exclusive
    vpn_min_tunnel_hosts:            int = 3     # exclusive
    secret_min_score:                int = 7
    secret_min_privacy_tools:        int = 3
    secret_min_obfuscated:           int = 2     # exclusive


DEFAULT_THRESHOLDS = Thresholds()

DEFAULT_CONFIG = {
    "csv_dir": None,
    "db_path": "dnsentinel.db",
    "report_path": "dnsentinel_report.json",
    "deduplicate": True,
    "thresholds": {},
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / "dnsentinel_config.json"


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from dnsentinel_config.json. Returns defaults if missing."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load an explicit config file (CLI --config). Missing or broken files fall back to defaults."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Config file not found: {path} — using defaults")
        return dict(DEFAULT_CONFIG)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return {**DEFAULT_CONFIG, **data}
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Config load failed: {e}")
        return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to dnsentinel_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path


def thresholds_from_config(config: Optional[Dict[str, Any]]) -> Thresholds:
    """
    Build Thresholds from the config's "thresholds" block.
    Unknown keys and non-integer values are logged and ignored.
    """
    overrides = (config or {}).get("thresholds") or {}
    known = {f.name for f in fields(Thresholds)}
    accepted: Dict[str, int] = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Unknown threshold '{key}' ignored")
            continue
        try:
            accepted[key] = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Threshold '{key}' must be an integer, got {value!r}")
    if accepted:
        logger.debug(f"Threshold overrides: {accepted}")
    return replace(DEFAULT_THRESHOLDS, **accepted)
