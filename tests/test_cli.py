"""
tests/test_cli.py
CLI end-to-end on a synthetic CSV: database and JSON report are written.
"""

import json
import sqlite3

from dnsentinel.cli import main
from dnsentinel.report_export import verify_export

CSV = (
    "timestamp,domain,query_type,status,device_id,device_name\n"
    "2025-09-13T10:00:00Z,12-courier.push.apple.com,A,default,d1,iPhone\n"
    "2025-09-13T10:00:07Z,g.whatsapp.net,A,default,d1,iPhone\n"
    "2025-09-13T10:00:08Z,g.whatsapp.net,AAAA,default,d1,iPhone\n"
    "2025-09-13T10:03:00Z,api.tinder.com,A,blocked,d1,iPhone\n"
)


def _args(tmp_path, *extra):
    config = tmp_path / "config.json"
    config.write_text("{}")
    return [
        "--csv", str(tmp_path / "log.csv"),
        "--output", str(tmp_path / "out.db"),
        "--report", str(tmp_path / "report.json"),
        "--config", str(config),
        *extra,
    ]


class TestCli:
    def test_full_run(self, tmp_path, capsys):
        (tmp_path / "log.csv").write_text(CSV)
        assert main(_args(tmp_path)) == 0

        report = json.loads((tmp_path / "report.json").read_text())
        assert verify_export(report)
        assert report["report"]["summary"]["event_count"] == 3
        assert report["report"]["severity_distribution"]["critical_count"] == 1
        assert report["report_metadata"]["scan_parameters"]["records"] == 4

        conn = sqlite3.connect(str(tmp_path / "out.db"))
        try:
            assert conn.execute("SELECT COUNT(*) FROM window_results").fetchone()[0] == 2
        finally:
            conn.close()
        assert "Complete" in capsys.readouterr().out

    def test_no_dedup_keeps_records(self, tmp_path):
        (tmp_path / "log.csv").write_text(CSV)
        assert main(_args(tmp_path, "--no-dedup")) == 0
        report = json.loads((tmp_path / "report.json").read_text())
        assert report["report"]["summary"]["event_count"] == 4

    def test_missing_file(self, tmp_path):
        assert main(_args(tmp_path)) == 1

    def test_no_input(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text("{}")
        assert main(["--config", str(config)]) == 2

    def test_empty_csv(self, tmp_path):
        (tmp_path / "log.csv").write_text("timestamp,domain\n")
        assert main(_args(tmp_path)) == 1
