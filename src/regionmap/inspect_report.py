"""Per-region inspection report for a loaded boundary dataset."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .geometry import Bounds, GeometryError, dataset_bounds, label_anchor
from .models import BoundaryDataset, Coordinate, MultiPolygon, Region


@dataclass(frozen=True, slots=True)
class RegionSummary:
    code: str
    name: str
    geometry_type: str
    part_count: int
    ring_count: int
    vertex_count: int
    anchor: Coordinate | None
    issue: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "geometry_type": self.geometry_type,
            "part_count": self.part_count,
            "ring_count": self.ring_count,
            "vertex_count": self.vertex_count,
            "anchor": list(self.anchor) if self.anchor is not None else None,
            "issue": self.issue,
        }


@dataclass(slots=True)
class DatasetReport:
    regions: list[RegionSummary] = field(default_factory=list)
    bounds: Bounds | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def labelled_count(self) -> int:
        return sum(1 for item in self.regions if item.anchor is not None)

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "regions": len(self.regions),
                "labelled": self.labelled_count,
                "bounds": list(self.bounds) if self.bounds is not None else None,
            },
            "regions": [item.to_dict() for item in self.regions],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _summarize_region(region: Region) -> RegionSummary:
    geometry = region.geometry
    part_count = len(geometry.parts) if isinstance(geometry, MultiPolygon) else 1
    rings = list(geometry.iter_rings())
    anchor: Coordinate | None
    issue: str | None = None
    try:
        anchor = label_anchor(geometry)
    except GeometryError as exc:
        anchor = None
        issue = str(exc)
    return RegionSummary(
        code=region.code,
        name=region.name,
        geometry_type=geometry.geom_type,
        part_count=part_count,
        ring_count=len(rings),
        vertex_count=sum(len(ring) for ring in rings),
        anchor=anchor,
        issue=issue,
    )


def build_dataset_report(dataset: BoundaryDataset) -> DatasetReport:
    report = DatasetReport()
    for region in dataset:
        summary = _summarize_region(region)
        report.regions.append(summary)
        if summary.issue is not None:
            report.add_warning(f"{region.code} ({region.name}) has no label: {summary.issue}")
    if not len(dataset):
        report.add_error("Dataset contains no polygon regions.")
    else:
        try:
            report.bounds = dataset_bounds(dataset)
        except GeometryError as exc:
            report.add_error(f"Dataset has no usable coordinates: {exc}")
    report.add_info(f"Regions: {len(report.regions)}, labelled: {report.labelled_count}")
    return report


def format_report_lines(report: DatasetReport) -> Sequence[str]:
    lines: list[str] = []
    for item in report.regions:
        if item.anchor is not None:
            anchor_text = f"anchor=({item.anchor[0]:.5f}, {item.anchor[1]:.5f})"
        else:
            anchor_text = "anchor=-"
        lines.append(
            f"{item.code:<8} {item.name:<32} {item.geometry_type:<12} "
            f"parts={item.part_count} rings={item.ring_count} vertices={item.vertex_count} {anchor_text}"
        )
    if report.bounds is not None:
        min_x, min_y, max_x, max_y = report.bounds
        lines.append(f"[INFO] Bounds: ({min_x:.5f}, {min_y:.5f}) - ({max_x:.5f}, {max_y:.5f})")
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Dataset inspection completed with no errors.")
    return lines
