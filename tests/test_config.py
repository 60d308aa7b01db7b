"""
tests/test_config.py
Config file loading and threshold overrides.
"""

import json

from dnsentinel.config import (
    DEFAULT_CONFIG,
    DEFAULT_THRESHOLDS,
    load_config,
    load_config_file,
    save_config,
    thresholds_from_config,
)


class TestConfigFile:
    def test_defaults_when_missing(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_save_and_load(self, tmp_path):
        save_config({**DEFAULT_CONFIG, "csv_dir": "/logs"}, tmp_path)
        assert load_config(tmp_path)["csv_dir"] == "/logs"

    def test_partial_file_merged_with_defaults(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"db_path": "other.db"}))
        config = load_config_file(path)
        assert config["db_path"] == "other.db"
        assert config["report_path"] == DEFAULT_CONFIG["report_path"]

    def test_broken_file_falls_back(self, tmp_path):
        (tmp_path / "dnsentinel_config.json").write_text("{not json")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_explicit_missing_file(self, tmp_path):
        assert load_config_file(tmp_path / "nope.json") == DEFAULT_CONFIG


class TestThresholds:
    def test_no_overrides(self):
        assert thresholds_from_config(None) == DEFAULT_THRESHOLDS
        assert thresholds_from_config(DEFAULT_CONFIG) == DEFAULT_THRESHOLDS

    def test_override(self):
        t = thresholds_from_config({"thresholds": {"masking_window_minutes": 5, "voice_note_cdn_lag_s": "90"}})
        assert t.masking_window_minutes == 5
        assert t.voice_note_cdn_lag_s == 90
        assert t.call_push_before_s == DEFAULT_THRESHOLDS.call_push_before_s

    def test_unknown_and_invalid_ignored(self):
        t = thresholds_from_config({"thresholds": {"no_such_knob": 3, "fb_burst_radius_s": "wide"}})
        assert t == DEFAULT_THRESHOLDS
