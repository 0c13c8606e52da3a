import pytest

from remote_mouse.config import Config, DEFAULT_CONFIG, deep_merge, get_config_paths, load_config


def test_defaults(config):
    assert config.port == 3000
    assert config.ws_port == 3001
    assert config.max_delta == 100
    assert config.smoothing == 0.3
    assert config.min_move == 1
    assert config.reset_gap_ms == 100
    assert config.backend == "auto"
    assert config.sampler["sensitivity_step"] == 1.2
    assert config.client_timeout == 5


def test_yaml_overrides_are_merged(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mouse:\n  smoothing: 0.5\nserver:\n  port: 9000\n")
    
    config = Config(path)
    assert config.smoothing == 0.5
    assert config.max_delta == 100
    assert config.port == 9000
    assert config.ws_port == 9001


def test_load_does_not_mutate_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mouse:\n  max_delta: 7\n")
    load_config(path)
    assert DEFAULT_CONFIG["mouse"]["max_delta"] == 100


def test_broken_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mouse: [unclosed\n")
    assert load_config(path)["mouse"]["smoothing"] == 0.3


def test_set_override(config):
    config.set("mouse", "max_delta", 40)
    assert config.max_delta == 40
    assert config.to_dict()["mouse"]["max_delta"] == 40


def test_deep_merge():
    merged = deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"b": 5}, "e": 6})
    assert merged == {"a": {"b": 5, "c": 2}, "d": 3, "e": 6}


def test_config_paths_respect_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert tmp_path / "remote-mouse" / "config.yaml" in get_config_paths()
