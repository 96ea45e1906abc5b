"""
CONFIG TESTS - Fast, Deterministic, No Network

Run: pytest tests/test_config.py
"""

import json
from pathlib import Path

import pytest

from sitemap_suite.config import DEFAULT_CONFIG, load_config, validate_config


def write(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return str(path)


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.json"))
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_file_merged_over_defaults(tmp_path):
    config = load_config(write(tmp_path, {"timeout": 30, "max_workers": 4}))
    assert config["timeout"] == 30
    assert config["max_workers"] == 4
    assert config["max_redirects"] == DEFAULT_CONFIG["max_redirects"]


def test_invalid_json(tmp_path):
    assert load_config(write(tmp_path, "{not json")) is None


@pytest.mark.parametrize("data", [
    {"timeout": "fast"},
    {"timeout": 0},
    {"max_redirects": -1},
    {"max_bytes": True},
    {"port": 1.5},
    {"user_agent": "  "},
    {"log_level": "LOUD"},
    {"log_file": 3},
    ["not", "a", "dict"],
])
def test_invalid_values(tmp_path, data):
    assert load_config(write(tmp_path, data)) is None


def test_unknown_keys_are_not_fatal():
    assert validate_config({"colour": "blue"}) is True


def test_shipped_config_is_valid():
    with open(Path(__file__).parent.parent / "config.json", encoding="utf-8") as f:
        assert validate_config(json.load(f))
