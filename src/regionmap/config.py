"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _opacity(value: Any, field_name: str) -> float:
    out = _float(value, field_name)
    if out < 0.0 or out > 1.0:
        raise ValueError(f"{field_name} must be between 0 and 1")
    return out


def _optional_path(value: Any, field_name: str, root_dir: Path) -> Path | None:
    if value is None:
        return None
    p = Path(_str(value, field_name))
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class DataConfig:
    base_url: str
    dataset_path: str
    request_timeout_s: float
    user_agent: str
    default_region_name: str

    @property
    def dataset_url(self) -> str:
        return self.base_url.rstrip("/") + "/" + self.dataset_path.lstrip("/")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> DataConfig:
        timeout = _float(raw.get("request_timeout_s", 10.0), "data.request_timeout_s")
        if timeout <= 0:
            raise ValueError("data.request_timeout_s must be > 0")
        return cls(
            base_url=_str(raw.get("base_url", "http://localhost:3000"), "data.base_url"),
            dataset_path=_str(
                raw.get("dataset_path", "/data/RegionsMap.geojson"), "data.dataset_path"
            ),
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent", "regionmap/0.1"), "data.user_agent"),
            default_region_name=_str(
                raw.get("default_region_name", "Unknown"), "data.default_region_name"
            ),
        )


@dataclass(frozen=True, slots=True)
class PaletteConfig:
    inactive_color: str
    active_color: str
    hover_inactive_color: str
    hover_active_color: str
    edge_color: str
    edge_opacity: float
    weight: float
    hover_weight: float
    fill_opacity: float
    hover_fill_opacity: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> PaletteConfig:
        weight = _float(raw.get("weight", 2.0), "map.palette.weight")
        hover_weight = _float(raw.get("hover_weight", 3.0), "map.palette.hover_weight")
        if weight < 0 or hover_weight < 0:
            raise ValueError("map.palette weights must be >= 0")
        return cls(
            inactive_color=_str(raw.get("inactive_color", "#1e293b"), "map.palette.inactive_color"),
            active_color=_str(raw.get("active_color", "#3b82f6"), "map.palette.active_color"),
            hover_inactive_color=_str(
                raw.get("hover_inactive_color", "#334155"), "map.palette.hover_inactive_color"
            ),
            hover_active_color=_str(
                raw.get("hover_active_color", "#2563eb"), "map.palette.hover_active_color"
            ),
            edge_color=_str(raw.get("edge_color", "#ffffff"), "map.palette.edge_color"),
            edge_opacity=_opacity(raw.get("edge_opacity", 1.0), "map.palette.edge_opacity"),
            weight=weight,
            hover_weight=hover_weight,
            fill_opacity=_opacity(raw.get("fill_opacity", 0.8), "map.palette.fill_opacity"),
            hover_fill_opacity=_opacity(
                raw.get("hover_fill_opacity", 0.9), "map.palette.hover_fill_opacity"
            ),
        )


@dataclass(frozen=True, slots=True)
class LabelsConfig:
    color: str
    font_size: float
    font_weight: str
    background: str
    background_alpha: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LabelsConfig:
        font_size = _float(raw.get("font_size", 12), "map.labels.font_size")
        if font_size <= 0:
            raise ValueError("map.labels.font_size must be > 0")
        return cls(
            color=_str(raw.get("color", "white"), "map.labels.color"),
            font_size=font_size,
            font_weight=_str(raw.get("font_weight", "bold"), "map.labels.font_weight"),
            background=_str(raw.get("background", "black"), "map.labels.background"),
            background_alpha=_opacity(
                raw.get("background_alpha", 0.6), "map.labels.background_alpha"
            ),
        )


@dataclass(frozen=True, slots=True)
class ViewportConfig:
    padding_px: int
    max_zoom: float
    tile_size_px: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewportConfig:
        padding_px = _int(raw.get("padding_px", 0), "map.viewport.padding_px")
        tile_size_px = _int(raw.get("tile_size_px", 256), "map.viewport.tile_size_px")
        if padding_px < 0:
            raise ValueError("map.viewport.padding_px must be >= 0")
        if tile_size_px <= 0:
            raise ValueError("map.viewport.tile_size_px must be > 0")
        return cls(
            padding_px=padding_px,
            max_zoom=_float(raw.get("max_zoom", 12), "map.viewport.max_zoom"),
            tile_size_px=tile_size_px,
        )


@dataclass(frozen=True, slots=True)
class BackgroundConfig:
    media_path: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> BackgroundConfig:
        return cls(
            media_path=_optional_path(raw.get("media_path"), "map.background.media_path", root_dir)
        )


@dataclass(frozen=True, slots=True)
class MapConfig:
    palette: PaletteConfig
    labels: LabelsConfig
    viewport: ViewportConfig
    background: BackgroundConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> MapConfig:
        return cls(
            palette=PaletteConfig.from_mapping(_mapping(raw.get("palette"), "map.palette")),
            labels=LabelsConfig.from_mapping(_mapping(raw.get("labels"), "map.labels")),
            viewport=ViewportConfig.from_mapping(_mapping(raw.get("viewport"), "map.viewport")),
            background=BackgroundConfig.from_mapping(
                _mapping(raw.get("background"), "map.background"), root_dir
            ),
        )


@dataclass(frozen=True, slots=True)
class WindowConfig:
    width_px: int
    height_px: int
    dpi: int
    title: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> WindowConfig:
        width_px = _int(raw.get("width_px", 960), "window.width_px")
        height_px = _int(raw.get("height_px", 768), "window.height_px")
        dpi = _int(raw.get("dpi", 100), "window.dpi")
        if width_px <= 0 or height_px <= 0 or dpi <= 0:
            raise ValueError("window.width_px, window.height_px and window.dpi must be > 0")
        return cls(
            width_px=width_px,
            height_px=height_px,
            dpi=dpi,
            title=_str(raw.get("title", "Regions"), "window.title"),
        )


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    log_file: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> LoggingConfig:
        return cls(log_file=_optional_path(raw.get("log_file"), "logging.log_file", root_dir))


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    data: DataConfig
    map: MapConfig
    window: WindowConfig
    logging: LoggingConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None = None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            data=DataConfig.from_mapping(_mapping(raw.get("data"), "data")),
            map=MapConfig.from_mapping(_mapping(raw.get("map"), "map"), root_dir),
            window=WindowConfig.from_mapping(_mapping(raw.get("window"), "window")),
            logging=LoggingConfig.from_mapping(_mapping(raw.get("logging"), "logging"), root_dir),
        )

    @classmethod
    def default(cls) -> AppConfig:
        return cls.from_mapping({})


def load_config(path: str | Path | None) -> AppConfig:
    """Load and validate the YAML config file into typed settings.

    ``None`` yields the built-in defaults.
    """
    if path is None:
        return AppConfig.default()
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
