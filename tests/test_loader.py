"""Tests for dataset parsing and loading."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import requests

from conftest import FakeSession, feature_collection, make_feature, make_response, multipolygon, polygon
from regionmap.loader import (
    DataLoader,
    FileDataLoader,
    HttpLoadError,
    LoadError,
    ParseLoadError,
    parse_dataset,
)
from regionmap.models import MultiPolygon, Polygon

URL = "http://test/data/RegionsMap.geojson"
SQUARE = [[0, 0], [2, 0], [2, 2], [0, 2]]


class TestParseDataset:
    def test_regions_keep_order_and_fields(self, two_region_payload: dict[str, Any]) -> None:
        dataset = parse_dataset(two_region_payload)
        assert dataset.codes == ("A", "B")
        assert dataset.get("A").name == "Alpha"
        assert isinstance(dataset.get("B").geometry, Polygon)
        assert dataset.get("A").geometry.rings[0][1] == (2.0, 0.0)

    def test_multipolygon_parts(self) -> None:
        payload = feature_collection(
            make_feature("M", multipolygon([SQUARE], [[[5, 5], [6, 5], [6, 6]]]), name="Multi")
        )
        geometry = parse_dataset(payload).get("M").geometry
        assert isinstance(geometry, MultiPolygon)
        assert len(geometry.parts) == 2

    def test_missing_name_uses_placeholder(self) -> None:
        payload = feature_collection(make_feature("A", polygon(SQUARE)))
        assert parse_dataset(payload).get("A").name == "Unknown"
        assert parse_dataset(payload, default_name="N/A").get("A").name == "N/A"

    def test_altitude_is_dropped(self) -> None:
        payload = feature_collection(
            make_feature("A", polygon([[0, 0, 10], [2, 0, 10], [2, 2, 10]]), name="A")
        )
        assert parse_dataset(payload).get("A").geometry.rings[0][0] == (0.0, 0.0)

    def test_unsupported_geometry_is_skipped(self) -> None:
        payload = feature_collection(
            make_feature("P", {"type": "Point", "coordinates": [1, 1]}, name="Point"),
            make_feature("N", None, name="Null"),
            make_feature("A", polygon(SQUARE), name="Alpha"),
        )
        assert parse_dataset(payload).codes == ("A",)

    def test_degenerate_ring_is_kept(self) -> None:
        payload = feature_collection(make_feature("D", polygon([[0, 0], [1, 1]]), name="Thin"))
        assert len(parse_dataset(payload)) == 1

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"type": "FeatureCollection"},
            feature_collection({"type": "Feature", "properties": {}, "geometry": None}),
            feature_collection(make_feature("A", polygon([[0, "x"], [1, 1], [2, 2]]))),
            feature_collection(make_feature("A", {"type": "Polygon", "coordinates": "bad"})),
        ],
    )
    def test_malformed_payloads(self, payload: Any) -> None:
        with pytest.raises(ParseLoadError):
            parse_dataset(payload)

    def test_duplicate_code(self) -> None:
        payload = feature_collection(
            make_feature("A", polygon(SQUARE)),
            make_feature("A", polygon(SQUARE)),
        )
        with pytest.raises(ParseLoadError, match="Duplicate"):
            parse_dataset(payload)


class TestDataLoader:
    def test_success(self, two_region_payload: dict[str, Any]) -> None:
        session = FakeSession(make_response(200, json.dumps(two_region_payload).encode("utf-8")))
        loader = DataLoader(URL, timeout_s=3.0, session=session)
        dataset = loader.load()
        assert dataset.codes == ("A", "B")
        assert session.calls == [(URL, {"timeout": 3.0})]
        assert session.headers["User-Agent"] == "regionmap/0.1"

    def test_http_404(self) -> None:
        session = FakeSession(make_response(404, b"not found"))
        with pytest.raises(HttpLoadError) as excinfo:
            DataLoader(URL, session=session).load()
        assert excinfo.value.status == 404
        assert "404" in str(excinfo.value)

    def test_single_request_no_retry(self) -> None:
        session = FakeSession(make_response(503, b""))
        with pytest.raises(HttpLoadError):
            DataLoader(URL, session=session).load()
        assert len(session.calls) == 1

    def test_invalid_json(self) -> None:
        session = FakeSession(make_response(200, b"{not json"))
        with pytest.raises(ParseLoadError):
            DataLoader(URL, session=session).load()

    def test_connection_error(self) -> None:
        session = FakeSession(exc=requests.ConnectionError("refused"))
        with pytest.raises(HttpLoadError) as excinfo:
            DataLoader(URL, session=session).load()
        assert excinfo.value.status is None

    def test_owned_session_is_closed_after_load(
        self, two_region_payload: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        created: list[FakeSession] = []

        def new_session() -> FakeSession:
            session = FakeSession(make_response(200, json.dumps(two_region_payload).encode("utf-8")))
            created.append(session)
            return session

        monkeypatch.setattr(requests, "Session", new_session)
        loader = DataLoader(URL, user_agent="regionmap-test")
        assert loader.load().codes == ("A", "B")
        assert loader.load().codes == ("A", "B")

        assert len(created) == 2
        assert all(session.closed for session in created)
        assert created[0].headers["User-Agent"] == "regionmap-test"

    def test_owned_session_is_closed_on_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        session = FakeSession(make_response(500, b""))
        monkeypatch.setattr(requests, "Session", lambda: session)
        with pytest.raises(HttpLoadError):
            DataLoader(URL).load()
        assert session.closed

    def test_injected_session_stays_open(self) -> None:
        session = FakeSession(make_response(404, b""))
        with pytest.raises(HttpLoadError):
            DataLoader(URL, session=session).load()
        assert not session.closed


class TestFileDataLoader:
    def test_reads_file(self, geojson_file: Path) -> None:
        assert FileDataLoader(geojson_file).load().codes == ("A", "B")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError) as excinfo:
            FileDataLoader(tmp_path / "missing.geojson").load()
        assert not isinstance(excinfo.value, ParseLoadError)

    def test_invalid_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.geojson"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ParseLoadError):
            FileDataLoader(path).load()
