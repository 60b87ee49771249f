import importlib
import logging
import os

import pytest

import config

ENV_VARS = ("LOGS_DIR", "EXPANDED_DIR", "MANIFEST_PATTERN", "LOG_LEVEL", "SCAN_STRICT")


@pytest.fixture
def reload_config(monkeypatch):
    """
    Re-source config module against a controlled environment
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    def _reload(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def test_defaults(reload_config):
    cfg = reload_config()
    inputs = cfg.source_external_config()

    assert inputs == {
        "LOG_LEVEL": "DEBUG",
        "LOGS_DIR": os.path.join("data", "logs"),
        "EXPANDED_DIR": os.path.join("data", "logs", "expanded"),
        "MANIFEST_PATTERN": "manifest_*.json",
        "SCAN_STRICT": True,
    }
    assert cfg.get_log_level() == logging.DEBUG


def test_expanded_dir_follows_logs_dir(reload_config, tmp_path):
    cfg = reload_config(LOGS_DIR=str(tmp_path))
    assert cfg.EXPANDED_DIR == os.path.join(str(tmp_path), "expanded")


def test_inputs_cached(reload_config):
    cfg = reload_config()
    assert cfg.source_external_config() is cfg.source_external_config()


@pytest.mark.parametrize("value, expected", [("off", False), ("0", False), ("YES", True)])
def test_scan_strict(reload_config, value, expected):
    cfg = reload_config(SCAN_STRICT=value)
    assert cfg.source_external_config()["SCAN_STRICT"] is expected


def test_log_level(reload_config):
    cfg = reload_config(LOG_LEVEL="warning")
    assert cfg.source_external_config()["LOG_LEVEL"] == "WARNING"
    assert cfg.get_log_level() == logging.WARNING


def test_invalid_log_level(reload_config):
    cfg = reload_config(LOG_LEVEL="chatty")
    assert cfg.get_log_level() == logging.DEBUG
    with pytest.raises(EnvironmentError):
        cfg.source_external_config()
    assert cfg.inputs is None


def test_invalid_scan_strict(reload_config):
    cfg = reload_config(SCAN_STRICT="maybe")
    with pytest.raises(EnvironmentError):
        cfg.source_external_config()


def test_logs_dir_not_directory(reload_config, tmp_path):
    path = tmp_path / "file"
    path.write_text("")
    cfg = reload_config(LOGS_DIR=str(path))
    with pytest.raises(EnvironmentError):
        cfg.source_external_config()


def test_expanded_dir_not_directory(reload_config, tmp_path):
    path = tmp_path / "file"
    path.write_text("")
    cfg = reload_config(LOGS_DIR=str(tmp_path), EXPANDED_DIR=str(path))
    with pytest.raises(EnvironmentError):
        cfg.source_external_config()


def test_pattern_with_separator(reload_config):
    cfg = reload_config(MANIFEST_PATTERN=os.path.join("sub", "manifest_*.json"))
    with pytest.raises(EnvironmentError):
        cfg.source_external_config()
