"""Boundary dataset loading from HTTP or a local GeoJSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

import requests

from .models import BoundaryDataset, Coordinate, Geometry, MultiPolygon, Polygon, Region, Ring

_SUPPORTED_GEOMETRY_TYPES = {"Polygon", "MultiPolygon"}
DEFAULT_REGION_NAME = "Unknown"

_LOGGER = logging.getLogger("regionmap.loader")


class LoadError(Exception):
    """Dataset could not be loaded."""


class HttpLoadError(LoadError):
    """Non-success response, or no response at all (``status`` is None)."""

    def __init__(self, status: int | None, url: str, detail: str | None = None) -> None:
        self.status = status
        self.url = url
        if status is None:
            message = f"Request to {url} failed: {detail or 'no response'}"
        else:
            message = f"HTTP error! status: {status} ({url})"
        super().__init__(message)


class ParseLoadError(LoadError):
    """Body is not a well-formed boundary feature collection."""


def _parse_coordinate(raw: Any, where: str) -> Coordinate:
    if not isinstance(raw, Sequence) or isinstance(raw, str) or len(raw) < 2:
        raise ParseLoadError(f"Expected [x, y] position at {where}")
    x, y = raw[0], raw[1]
    for value in (x, y):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParseLoadError(f"Expected numeric position at {where}")
    return (float(x), float(y))


def _parse_ring(raw: Any, where: str) -> Ring:
    if not isinstance(raw, list):
        raise ParseLoadError(f"Expected list of positions at {where}")
    return tuple(_parse_coordinate(item, f"{where}[{idx}]") for idx, item in enumerate(raw))


def _parse_polygon(raw: Any, where: str) -> Polygon:
    if not isinstance(raw, list):
        raise ParseLoadError(f"Expected list of rings at {where}")
    return Polygon(rings=tuple(_parse_ring(ring, f"{where}[{idx}]") for idx, ring in enumerate(raw)))


def _parse_geometry(raw: Mapping[str, Any], where: str) -> Geometry:
    geom_type = raw.get("type")
    coordinates = raw.get("coordinates")
    if geom_type == "Polygon":
        return _parse_polygon(coordinates, f"{where}.coordinates")
    if not isinstance(coordinates, list):
        raise ParseLoadError(f"Expected list of polygons at {where}.coordinates")
    return MultiPolygon(
        parts=tuple(
            _parse_polygon(part, f"{where}.coordinates[{idx}]")
            for idx, part in enumerate(coordinates)
        )
    )


def _parse_name(properties: Mapping[str, Any], default_name: str) -> str:
    raw = properties.get("nom")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return default_name


def parse_dataset(payload: Any, *, default_name: str = DEFAULT_REGION_NAME) -> BoundaryDataset:
    """Validate a decoded GeoJSON FeatureCollection into a ``BoundaryDataset``."""
    if not isinstance(payload, Mapping):
        raise ParseLoadError("Expected a GeoJSON object at top level")
    features = payload.get("features")
    if not isinstance(features, list):
        raise ParseLoadError("Expected list for 'features'")

    regions: list[Region] = []
    seen: set[str] = set()
    skipped: list[str] = []
    for idx, feature in enumerate(features):
        where = f"features[{idx}]"
        if not isinstance(feature, Mapping):
            raise ParseLoadError(f"Expected mapping at {where}")
        properties = feature.get("properties")
        if not isinstance(properties, Mapping):
            raise ParseLoadError(f"Expected mapping for {where}.properties")
        code = properties.get("code")
        if not isinstance(code, str) or not code.strip():
            raise ParseLoadError(f"Expected non-empty string for {where}.properties.code")
        code = code.strip()
        if code in seen:
            raise ParseLoadError(f"Duplicate region code '{code}' at {where}")
        seen.add(code)

        geometry = feature.get("geometry")
        geom_type = geometry.get("type") if isinstance(geometry, Mapping) else None
        if geom_type not in _SUPPORTED_GEOMETRY_TYPES:
            skipped.append(code)
            _LOGGER.warning(
                "Skipping region %s: unsupported geometry type %r", code, geom_type
            )
            continue
        regions.append(
            Region(
                code=code,
                name=_parse_name(properties, default_name),
                geometry=_parse_geometry(geometry, f"{where}.geometry"),
            )
        )

    if skipped:
        _LOGGER.info("Skipped %d feature(s) without polygon geometry", len(skipped))
    return BoundaryDataset(regions=tuple(regions))


class DataLoader:
    """Single-shot HTTP fetch of the boundary dataset. No retries."""

    def __init__(
        self,
        url: str,
        *,
        timeout_s: float = 10.0,
        user_agent: str = "regionmap/0.1",
        default_name: str = DEFAULT_REGION_NAME,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.default_name = default_name
        self._session = session
        if session is not None:
            session.headers.update({"User-Agent": user_agent})

    def load(self) -> BoundaryDataset:
        if self._session is not None:
            return self._fetch(self._session)
        # Owned sessions live for a single load.
        with requests.Session() as session:
            session.headers.update({"User-Agent": self.user_agent})
            return self._fetch(session)

    def _fetch(self, session: requests.Session) -> BoundaryDataset:
        _LOGGER.info("Fetching boundary dataset from %s", self.url)
        try:
            response = session.get(self.url, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise HttpLoadError(None, self.url, detail=str(exc)) from exc
        try:
            if not response.ok:
                raise HttpLoadError(response.status_code, self.url)
            try:
                payload = response.json()
            except ValueError as exc:
                raise ParseLoadError(f"Response from {self.url} is not valid JSON: {exc}") from exc
        finally:
            response.close()
        dataset = parse_dataset(payload, default_name=self.default_name)
        _LOGGER.info("Loaded %d region(s) from %s", len(dataset), self.url)
        return dataset


class FileDataLoader:
    """Reads the boundary dataset from a local GeoJSON file."""

    def __init__(self, path: Path, *, default_name: str = DEFAULT_REGION_NAME) -> None:
        self.path = path
        self.default_name = default_name

    def load(self) -> BoundaryDataset:
        _LOGGER.info("Reading boundary dataset from %s", self.path)
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except OSError as exc:
            raise LoadError(f"Cannot read dataset file {self.path}: {exc}") from exc
        except ValueError as exc:
            raise ParseLoadError(f"Dataset file {self.path} is not valid JSON: {exc}") from exc
        dataset = parse_dataset(payload, default_name=self.default_name)
        _LOGGER.info("Loaded %d region(s) from %s", len(dataset), self.path)
        return dataset
