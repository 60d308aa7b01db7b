"""
dnsentinel/report_export.py
JSON export of a Report with an integrity hash.

Every export includes: format version, report metadata (generated_at,
package version, scan parameters) and a SHA-256 of the canonical JSON
payload, so later edits to the file are detectable.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Optional

from dnsentinel import __version__
from dnsentinel.report import Report, report_to_dict


EXPORT_FORMAT_VERSION = "1.0"


def _build_export_payload(
    report: Report,
    scan_parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build export payload (no hash yet)."""
    report_metadata = {
        "generated_at": report.generated_at,
        "dnsentinel_version": __version__,
        "scan_parameters": dict(scan_parameters) if scan_parameters else {},
    }
    return {
        "export_format_version": EXPORT_FORMAT_VERSION,
        "report_metadata": report_metadata,
        "report": report_to_dict(report),
    }


def content_hash(payload: Dict[str, Any]) -> str:
    """SHA-256 of canonical JSON serialization of payload (no hash field)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def export_to_dict(
    report: Report,
    scan_parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload = _build_export_payload(report, scan_parameters)
    return {**payload, "content_hash_sha256": content_hash(payload)}


def export_to_json(
    report: Report,
    scan_parameters: Optional[Dict[str, Any]] = None,
    indent: Optional[int] = 2,
) -> str:
    """Export report to a JSON string with metadata, format version and hash."""
    return json.dumps(export_to_dict(report, scan_parameters), indent=indent, sort_keys=False)


def write_report(
    report: Report,
    path: Path,
    scan_parameters: Optional[Dict[str, Any]] = None,
) -> Path:
    path = Path(path)
    path.write_text(export_to_json(report, scan_parameters), encoding="utf-8")
    return path


def verify_export(export_obj: Dict[str, Any]) -> bool:
    """True if the stored hash matches the payload."""
    stored = export_obj.get("content_hash_sha256")
    payload = {k: v for k, v in export_obj.items() if k != "content_hash_sha256"}
    return stored is not None and stored == content_hash(payload)
