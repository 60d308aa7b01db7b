"""
tests/test_report_export.py
Export format: version, metadata, content hash and tamper detection.
"""

import json
from datetime import datetime, timezone

from dnsentinel import __version__
from dnsentinel.models.record import RelationshipConcern, WindowResult
from dnsentinel.report import build_report
from dnsentinel.report_export import (
    EXPORT_FORMAT_VERSION,
    export_to_dict,
    export_to_json,
    verify_export,
    write_report,
)


def _minimal_report():
    start = datetime(2025, 9, 13, 22, 41, tzinfo=timezone.utc)
    result = WindowResult(
        time_window  = "2025-09-13 22:41",
        window_start = start,
        relationship = RelationshipConcern(dating_apps=("tinder.com",), concern_score=10),
    )
    return build_report([result], event_count=2)


class TestReportExport:
    def test_export_has_format_version(self):
        d = export_to_dict(_minimal_report())
        assert d["export_format_version"] == EXPORT_FORMAT_VERSION

    def test_metadata(self):
        d = export_to_dict(_minimal_report(), scan_parameters={"deduplicate": True})
        meta = d["report_metadata"]
        assert meta["dnsentinel_version"] == __version__
        assert meta["scan_parameters"] == {"deduplicate": True}
        assert meta["generated_at"].endswith("Z")

    def test_hash_verifies(self):
        assert verify_export(export_to_dict(_minimal_report()))

    def test_tampering_detected(self):
        d = export_to_dict(_minimal_report())
        d["report"]["flagged_windows"][0]["severity"] = "MEDIUM"
        assert not verify_export(d)

    def test_missing_hash(self):
        d = export_to_dict(_minimal_report())
        del d["content_hash_sha256"]
        assert not verify_export(d)

    def test_json_round_trip_verifies(self):
        text = export_to_json(_minimal_report())
        assert verify_export(json.loads(text))

    def test_write_report(self, tmp_path):
        path = write_report(_minimal_report(), tmp_path / "report.json", {"records": 2})
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["report"]["summary"]["event_count"] == 2
        assert verify_export(data)
