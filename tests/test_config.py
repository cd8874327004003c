"""Tests for configuration loading and validation."""

import pytest

from pairbracket.config_loader import (
    DEFAULTS,
    ConfigError,
    load_and_validate_config,
    load_config,
    validate_config,
)


def write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults_without_file():
    config = load_and_validate_config()
    assert config == DEFAULTS
    assert config is not DEFAULTS


def test_full_config(tmp_path):
    path = write(
        tmp_path,
        "classified_per_group: 1\n"
        "draw_seed: 7\n"
        "database: data/club.sqlite\n"
        "log_level: debug\n"
        "log_file: logs/pairbracket.log\n",
    )
    config = load_and_validate_config(path)
    assert config == {
        "classified_per_group": 1,
        "draw_seed": 7,
        "database": "data/club.sqlite",
        "log_level": "DEBUG",
        "log_file": "logs/pairbracket.log",
    }


def test_partial_config_keeps_defaults(tmp_path):
    config = load_and_validate_config(write(tmp_path, "draw_seed: 3\n"))
    assert config["draw_seed"] == 3
    assert config["classified_per_group"] == 2
    assert config["log_file"] is None


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "nope.yaml"))


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(write(tmp_path, "draw_seed: [1, 2\n"))


def test_empty_file(tmp_path):
    with pytest.raises(ConfigError, match="empty"):
        load_config(write(tmp_path, ""))


def test_not_a_mapping(tmp_path):
    with pytest.raises(ConfigError, match="mapping"):
        load_config(write(tmp_path, "- 1\n- 2\n"))


@pytest.mark.parametrize(
    "config, message",
    [
        ({"classified_per_group": 0}, "classified_per_group"),
        ({"classified_per_group": 5}, "classified_per_group"),
        ({"classified_per_group": "2"}, "classified_per_group"),
        ({"classified_per_group": True}, "classified_per_group"),
        ({"draw_seed": 1.5}, "draw_seed"),
        ({"database": ""}, "database"),
        ({"log_level": "LOUD"}, "log_level"),
        ({"log_file": 3}, "log_file"),
        ({"seeds": [1, 2]}, "Unknown config field"),
    ],
)
def test_validation_errors(config, message):
    with pytest.raises(ConfigError, match=message):
        validate_config(config)
