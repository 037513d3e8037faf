"""
Unit tests for ``ReportSettings`` defaults and JSON settings files.
"""

from pathlib import Path

import pytest

from k6report.errors import ConfigError
from k6report.model import UnitCategory
from k6report.settings import DEFAULT_UNITS, ReportSettings, load_settings

FIXTURES = Path(__file__).parent / "fixtures"


def test_defaults_match_plain_k6_run():
    s = ReportSettings()
    assert s.input_path == Path("k6-output.json")
    assert s.output_path == Path("load-test-report.html")
    policy = s.success_policy()
    assert policy.admits("http_req_duration", {"status": "200"})
    assert not policy.admits("http_req_duration", {"status": "404"})


def test_load_settings_file():
    s = load_settings(FIXTURES / "settings.json")
    assert s.title == "Nightly API Load Test"
    assert s.success_statuses == ["200", "204"]
    assert s.latency_bucket_width == 50
    # partial unit tables extend the defaults
    assert s.units["custom_trend"] is UnitCategory.TIME
    assert s.units["data_received"] is DEFAULT_UNITS["data_received"]
    policy = s.success_policy()
    assert policy.admits("http_req_waiting", {"status": "204"})
    assert not policy.admits("http_req_waiting", {"status": "500"})


def test_unknown_keys_are_rejected(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text('{"sucess_statuses": ["200"]}')
    with pytest.raises(ConfigError):
        load_settings(cfg)


def test_bad_bucket_width(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text('{"latency_bucket_width": 0}')
    with pytest.raises(ConfigError):
        load_settings(cfg)


def test_missing_settings_file(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "absent.json")
