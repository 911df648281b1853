from __future__ import annotations

import json
from pathlib import Path

import pytest

from minimago.config import DEFAULT_CONFIG, ProcessorConfig, config_from_mapping, load_config


def test_defaults_match_documented_limits():
    assert DEFAULT_CONFIG.max_pixels == 100_000_000
    assert DEFAULT_CONFIG.max_file_bytes == 100 * 1024 * 1024
    assert DEFAULT_CONFIG.max_dimension == 20_000
    assert DEFAULT_CONFIG.default_quality == 80
    assert DEFAULT_CONFIG.default_bg_color == "#ffffff"
    assert DEFAULT_CONFIG.default_bg_tolerance == 20
    assert DEFAULT_CONFIG.allowed_formats == ("png", "jpg", "jpeg", "webp", "avif", "svg")
    assert DEFAULT_CONFIG.output_policy == "generate"


def test_config_is_immutable():
    with pytest.raises(AttributeError):
        DEFAULT_CONFIG.max_pixels = 1  # type: ignore[misc]


def test_default_output_dir_is_downloads():
    assert ProcessorConfig().resolved_output_dir() == str(Path.home() / "Downloads")
    assert ProcessorConfig(output_dir="/tmp/x").resolved_output_dir() == "/tmp/x"


def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError, match="output_policy"):
        ProcessorConfig(output_policy="anywhere")


def test_mapping_overlay_ignores_unknown_keys():
    cfg = config_from_mapping({"max_pixels": 10, "allowed_formats": ["PNG", "webp"], "colour": "blue"})
    assert cfg.max_pixels == 10
    assert cfg.allowed_formats == ("png", "webp")
    assert not hasattr(cfg, "colour")


def test_load_config_from_file(tmp_path: Path):
    path = tmp_path / "minimago.json"
    path.write_text(json.dumps({"output_policy": "sandbox", "atomic_write": False}), encoding="utf-8")
    cfg = load_config(path)
    assert cfg.output_policy == "sandbox"
    assert cfg.atomic_write is False
    assert cfg.max_pixels == DEFAULT_CONFIG.max_pixels


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"output_policy": "nowhere"}'])
def test_broken_config_falls_back_to_defaults(tmp_path: Path, content: str):
    path = tmp_path / "minimago.json"
    path.write_text(content, encoding="utf-8")
    assert load_config(path) is DEFAULT_CONFIG


def test_missing_config_file(tmp_path: Path):
    assert load_config(tmp_path / "absent.json") is DEFAULT_CONFIG


def test_env_var_names_config(tmp_path: Path, monkeypatch):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"strict_crop": True}), encoding="utf-8")
    monkeypatch.setenv("MINIMAGO_CONFIG", str(path))
    assert load_config().strict_crop is True

    monkeypatch.delenv("MINIMAGO_CONFIG")
    assert load_config() is DEFAULT_CONFIG
