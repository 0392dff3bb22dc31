"""Tests for YAML config loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from regionmap.config import AppConfig, load_config


class TestDefaults:
    def test_builtin_defaults(self) -> None:
        cfg = load_config(None)
        assert cfg.source_path is None
        assert cfg.data.dataset_url == "http://localhost:3000/data/RegionsMap.geojson"
        assert cfg.data.default_region_name == "Unknown"
        palette = cfg.map.palette
        assert (palette.inactive_color, palette.active_color) == ("#1e293b", "#3b82f6")
        assert (palette.weight, palette.fill_opacity) == (2.0, 0.8)
        assert (palette.hover_weight, palette.hover_fill_opacity) == (3.0, 0.9)
        assert palette.edge_color == "#ffffff"
        assert cfg.map.labels.background_alpha == 0.6
        assert cfg.map.background.media_path is None
        assert cfg.map.viewport.max_zoom == 12.0
        assert cfg.logging.log_file is None

    def test_dataset_url_joins_slashes(self) -> None:
        cfg = AppConfig.from_mapping(
            {"data": {"base_url": "https://example.org/", "dataset_path": "data/RegionsMap.geojson"}}
        )
        assert cfg.data.dataset_url == "https://example.org/data/RegionsMap.geojson"


class TestLoadConfig:
    def test_relative_paths_resolve_against_config_dir(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "map:\n"
            "  palette:\n"
            "    active_color: '#ff0000'\n"
            "  background:\n"
            "    media_path: assets/bg.gif\n"
            "logging:\n"
            "  log_file: logs/run.log\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.source_path == path.resolve()
        assert cfg.map.palette.active_color == "#ff0000"
        assert cfg.map.palette.inactive_color == "#1e293b"
        assert cfg.map.background.media_path == tmp_path.resolve() / "assets" / "bg.gif"
        assert cfg.logging.log_file == tmp_path.resolve() / "logs" / "run.log"

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).map == AppConfig.default().map

    def test_sample_config_loads(self) -> None:
        cfg = load_config(Path(__file__).resolve().parents[1] / "config.yaml")
        assert cfg.window.title == "Regions"
        assert cfg.map.background.media_path is not None

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestValidation:
    @pytest.mark.parametrize(
        "raw",
        [
            {"map": {"palette": {"fill_opacity": 1.5}}},
            {"map": {"labels": {"background_alpha": -0.1}}},
            {"map": {"palette": {"active_color": ""}}},
            {"map": {"viewport": {"padding_px": -1}}},
            {"data": {"request_timeout_s": 0}},
            {"window": {"dpi": True}},
            {"map": "blue"},
        ],
    )
    def test_invalid_values_are_rejected(self, raw: dict) -> None:
        with pytest.raises(ValueError):
            AppConfig.from_mapping(raw)
