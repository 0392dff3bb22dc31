"""Shared fixtures for regionmap tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import matplotlib

matplotlib.use("Agg")

import pytest
import requests
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from regionmap.config import AppConfig, MapConfig
from regionmap.loader import parse_dataset
from regionmap.models import BoundaryDataset

SQUARE = [[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0]]
TRIANGLE = [[0.0, 0.0], [4.0, 0.0], [0.0, 4.0]]


def make_feature(code: str, geometry: dict[str, Any] | None, name: str | None = None) -> dict[str, Any]:
    properties: dict[str, Any] = {"code": code}
    if name is not None:
        properties["nom"] = name
    return {"type": "Feature", "properties": properties, "geometry": geometry}


def polygon(*rings: list[list[float]]) -> dict[str, Any]:
    return {"type": "Polygon", "coordinates": [list(ring) for ring in rings]}


def multipolygon(*parts: list[list[list[float]]]) -> dict[str, Any]:
    return {"type": "MultiPolygon", "coordinates": [list(part) for part in parts]}


def feature_collection(*features: dict[str, Any]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def make_response(status: int, body: bytes, url: str = "http://test/data/RegionsMap.geojson") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body
    response._content_consumed = True
    response.encoding = "utf-8"
    response.url = url
    return response


class FakeSession(requests.Session):
    """Session returning a canned response (or raising) without network access."""

    def __init__(self, response: requests.Response | None = None, exc: Exception | None = None) -> None:
        super().__init__()
        self.response = response
        self.exc = exc
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        assert self.response is not None
        return self.response

    def close(self) -> None:
        self.closed = True
        super().close()


class StaticLoader:
    def __init__(self, dataset: BoundaryDataset | None = None, exc: Exception | None = None) -> None:
        self.dataset = dataset
        self.exc = exc
        self.calls = 0

    def load(self) -> BoundaryDataset:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        assert self.dataset is not None
        return self.dataset


@pytest.fixture()
def two_region_payload() -> dict[str, Any]:
    """Region A is the 2x2 square, region B the right triangle with 4-unit legs."""
    return feature_collection(
        make_feature("A", polygon(SQUARE), name="Alpha"),
        make_feature("B", polygon(TRIANGLE), name="Beta"),
    )


@pytest.fixture()
def two_region_dataset(two_region_payload: dict[str, Any]) -> BoundaryDataset:
    return parse_dataset(two_region_payload)


@pytest.fixture()
def separated_dataset() -> BoundaryDataset:
    """Two squares that do not overlap, for pointer hit-testing."""
    return parse_dataset(
        feature_collection(
            make_feature("A", polygon(SQUARE), name="Alpha"),
            make_feature(
                "C",
                polygon([[10.0, 0.0], [12.0, 0.0], [12.0, 2.0], [10.0, 2.0]]),
                name="Gamma",
            ),
        )
    )


@pytest.fixture()
def map_config() -> MapConfig:
    return AppConfig.default().map


@pytest.fixture()
def axes() -> Any:
    """Full-figure Axes on a 400x400 px Agg canvas."""
    fig = Figure(figsize=(4, 4), dpi=100)
    FigureCanvasAgg(fig)
    return fig.add_axes((0.0, 0.0, 1.0, 1.0))


@pytest.fixture()
def geojson_file(tmp_path: Path, two_region_payload: dict[str, Any]) -> Path:
    path = tmp_path / "RegionsMap.geojson"
    path.write_text(json.dumps(two_region_payload), encoding="utf-8")
    return path
