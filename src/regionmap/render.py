"""Interactive region map rendering on a matplotlib Axes."""

from __future__ import annotations

import enum
import logging
import math
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from matplotlib.backend_bases import MouseButton
from matplotlib.backend_tools import Cursors
from matplotlib.colors import to_rgba
from matplotlib.patches import PathPatch
from matplotlib.path import Path as MplPath
from PIL import Image, ImageSequence
from shapely.errors import ShapelyError
from shapely.geometry import Point
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.prepared import prep

from .config import MapConfig, PaletteConfig
from .geometry import Bounds, GeometryError, dataset_bounds, label_anchor
from .models import BoundaryDataset, Geometry, MultiPolygon, Region
from .selection import SelectionStore

_BACKGROUND_ZORDER = 0
_SHAPE_ZORDER = 2
_LABEL_ZORDER = 3

_DEFAULT_FRAME_MS = 100
_MAX_BACKGROUND_FRAMES = 600

_LOGGER = logging.getLogger("regionmap.render")

# Axes currently owned by a live renderer.
_CLAIMED_CONTAINERS: "weakref.WeakSet[Any]" = weakref.WeakSet()

Extent = tuple[float, float, float, float]


class ContainerInUseError(RuntimeError):
    """Another live renderer already draws into this Axes."""


class RendererState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DESTROYED = "destroyed"


@dataclass(frozen=True, slots=True)
class ShapeStyle:
    fill_color: str
    fill_opacity: float
    weight: float
    edge_color: str
    edge_opacity: float


def derive_style(palette: PaletteConfig, *, selected: bool, hovered: bool) -> ShapeStyle:
    """Resolve the style of one shape from its selection and hover flags.

    Selection picks the base fill. Hover layers heavier weight, higher fill
    opacity and a lighter variant of the base fill on top of it.
    """
    if hovered:
        fill = palette.hover_active_color if selected else palette.hover_inactive_color
        return ShapeStyle(
            fill_color=fill,
            fill_opacity=palette.hover_fill_opacity,
            weight=palette.hover_weight,
            edge_color=palette.edge_color,
            edge_opacity=palette.edge_opacity,
        )
    fill = palette.active_color if selected else palette.inactive_color
    return ShapeStyle(
        fill_color=fill,
        fill_opacity=palette.fill_opacity,
        weight=palette.weight,
        edge_color=palette.edge_color,
        edge_opacity=palette.edge_opacity,
    )


def fit_bounds(
    bounds: Bounds,
    *,
    width_px: float,
    height_px: float,
    padding_px: float = 0.0,
    max_zoom: float = 12.0,
    tile_size_px: int = 256,
) -> Extent:
    """Return the ``(x0, x1, y0, y1)`` view that fits ``bounds`` into the container.

    Uses web-map zoom levels over planar coordinates: zoom ``z`` maps 360 units
    onto ``tile_size_px * 2**z`` pixels. The largest zoom that still shows the
    whole of ``bounds`` inside the padded container is used, capped at
    ``max_zoom``.
    """
    min_x, min_y, max_x, max_y = bounds
    avail_w = max(width_px - 2.0 * padding_px, 1.0)
    avail_h = max(height_px - 2.0 * padding_px, 1.0)
    px_per_unit_z0 = tile_size_px / 360.0

    zoom = max_zoom
    span_x = max_x - min_x
    span_y = max_y - min_y
    if span_x > 0:
        zoom = min(zoom, math.log2(avail_w / (span_x * px_per_unit_z0)))
    if span_y > 0:
        zoom = min(zoom, math.log2(avail_h / (span_y * px_per_unit_z0)))

    units_per_px = 1.0 / (px_per_unit_z0 * 2.0**zoom)
    center_x = (min_x + max_x) / 2.0
    center_y = (min_y + max_y) / 2.0
    half_w = max(width_px, 1.0) * units_per_px / 2.0
    half_h = max(height_px, 1.0) * units_per_px / 2.0
    return (center_x - half_w, center_x + half_w, center_y - half_h, center_y + half_h)


@dataclass(slots=True)
class _ShapeLayer:
    region: Region
    patch: PathPatch
    hit_areas: tuple[Any, ...]
    style: ShapeStyle | None = None


class MapRenderer:
    """Owns the region layers drawn into one matplotlib Axes.

    Lifecycle: UNINITIALIZED -> INITIALIZING -> READY -> DESTROYED. Selection
    changes re-style existing shapes; layers are only created in
    ``initialize`` and only removed in ``destroy``.
    """

    def __init__(self, axes: Any, store: SelectionStore, cfg: MapConfig) -> None:
        if axes in _CLAIMED_CONTAINERS:
            raise ContainerInUseError("Axes is already owned by another map renderer")
        _CLAIMED_CONTAINERS.add(axes)
        self._ax = axes
        self._store = store
        self.cfg = cfg
        self._state = RendererState.UNINITIALIZED
        self._shapes: dict[str, _ShapeLayer] = {}
        self._labels: dict[str, Any] = {}
        self._background: Any | None = None
        self._background_frames: list[Image.Image] = []
        self._background_durations: list[int] = []
        self._background_index = 0
        self._background_timer: Any | None = None
        self._hovered: str | None = None
        self._cursor = Cursors.POINTER
        self._canvas: Any | None = None
        self._cids: list[int] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._view: Extent | None = None

    def __enter__(self) -> MapRenderer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    @property
    def state(self) -> RendererState:
        return self._state

    @property
    def shape_layers(self) -> Mapping[str, PathPatch]:
        return {code: layer.patch for code, layer in self._shapes.items()}

    @property
    def label_layers(self) -> Mapping[str, Any]:
        return dict(self._labels)

    @property
    def hovered(self) -> str | None:
        return self._hovered

    @property
    def cursor(self) -> Cursors:
        return self._cursor

    @property
    def view_limits(self) -> Extent | None:
        return self._view

    @property
    def connection_ids(self) -> tuple[int, ...]:
        return tuple(self._cids)

    @property
    def background_frame_count(self) -> int:
        return len(self._background_frames)

    def style_of(self, code: str) -> ShapeStyle | None:
        return self._layer(code).style

    def initialize(self, dataset: BoundaryDataset) -> None:
        if self._state is not RendererState.UNINITIALIZED:
            raise RuntimeError(f"Cannot initialize a renderer in state '{self._state.value}'")
        self._state = RendererState.INITIALIZING
        self._prepare_container()

        selected = self._store.current()
        for region in dataset:
            patch = PathPatch(_region_path(region.geometry), zorder=_SHAPE_ZORDER)
            self._ax.add_patch(patch)
            layer = _ShapeLayer(region=region, patch=patch, hit_areas=_hit_areas(region))
            self._shapes[region.code] = layer
            self._apply_style(
                layer,
                derive_style(self.cfg.palette, selected=region.code == selected, hovered=False),
            )
        for region in dataset:
            self._add_label(region)

        self._fit_viewport(dataset)
        self._draw_background()

        self._unsubscribe = self._store.subscribe(self._on_selection_changed)
        self._connect_events()
        self._state = RendererState.READY
        _LOGGER.info(
            "Map ready: %d shape layer(s), %d label layer(s)",
            len(self._shapes),
            len(self._labels),
        )
        self.redraw()

    def destroy(self) -> None:
        """Detach handlers and remove every artist. Safe to call repeatedly."""
        if self._state is RendererState.DESTROYED:
            return
        self._state = RendererState.DESTROYED
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._canvas is not None:
            for cid in self._cids:
                self._canvas.mpl_disconnect(cid)
            if self._hovered is not None:
                self._canvas.set_cursor(Cursors.POINTER)
        self._cids = []
        self._canvas = None
        self._hovered = None
        self._cursor = Cursors.POINTER

        for layer in self._shapes.values():
            self._detach(layer.patch)
        for label in self._labels.values():
            self._detach(label)
        if self._background_timer is not None:
            self._background_timer.stop()
            self._background_timer = None
        if self._background is not None:
            self._detach(self._background)
            self._background = None
        self._background_frames = []
        self._background_durations = []
        self._shapes.clear()
        self._labels.clear()
        _CLAIMED_CONTAINERS.discard(self._ax)
        _LOGGER.debug("Map renderer destroyed")

    def redraw(self) -> None:
        figure = self._ax.figure
        if figure is not None and figure.canvas is not None:
            figure.canvas.draw_idle()

    def region_at(self, x: float, y: float) -> str | None:
        """Code of the topmost region covering data point ``(x, y)``."""
        point = Point(x, y)
        for code in reversed(list(self._shapes)):
            layer = self._shapes[code]
            if any(area.covers(point) for area in layer.hit_areas):
                return code
        return None

    def pointer_enter(self, code: str) -> None:
        if not self._accepting_input():
            return
        layer = self._layer(code)
        if self._hovered is not None and self._hovered != code:
            self.pointer_leave(self._hovered)
        self._hovered = code
        self._apply_style(layer, self._style_for(code))
        self._set_cursor(Cursors.HAND)
        self.redraw()

    def pointer_leave(self, code: str) -> None:
        if not self._accepting_input():
            return
        layer = self._layer(code)
        if self._hovered == code:
            self._hovered = None
        self._apply_style(layer, self._style_for(code))
        self._set_cursor(Cursors.POINTER)
        self.redraw()

    def click(self, code: str) -> None:
        if not self._accepting_input():
            return
        self._layer(code)
        self._store.toggle(code)

    def _accepting_input(self) -> bool:
        if self._state is not RendererState.READY:
            _LOGGER.debug("Ignoring interaction in state %s", self._state.value)
            return False
        return True

    def _layer(self, code: str) -> _ShapeLayer:
        try:
            return self._shapes[code]
        except KeyError:
            raise KeyError(f"No shape layer for region '{code}'") from None

    def _style_for(self, code: str) -> ShapeStyle:
        return derive_style(
            self.cfg.palette,
            selected=self._store.current() == code,
            hovered=self._hovered == code,
        )

    def _apply_style(self, layer: _ShapeLayer, style: ShapeStyle) -> None:
        patch = layer.patch
        patch.set_facecolor(to_rgba(style.fill_color, style.fill_opacity))
        patch.set_edgecolor(to_rgba(style.edge_color, style.edge_opacity))
        patch.set_linewidth(style.weight)
        layer.style = style

    def _on_selection_changed(self, selected: str | None) -> None:
        if self._state is not RendererState.READY:
            return
        _LOGGER.debug("Re-styling %d shape(s) for selection %s", len(self._shapes), selected)
        for code, layer in self._shapes.items():
            self._apply_style(layer, self._style_for(code))
        self.redraw()

    def _set_cursor(self, cursor: Cursors) -> None:
        self._cursor = cursor
        if self._canvas is not None:
            self._canvas.set_cursor(cursor)

    def _prepare_container(self) -> None:
        ax = self._ax
        ax.set_axis_off()
        ax.set_facecolor((1.0, 1.0, 1.0, 0.0))
        ax.set_navigate(False)

    def _add_label(self, region: Region) -> None:
        try:
            x, y = label_anchor(region.geometry)
        except GeometryError as exc:
            _LOGGER.warning("No label for region %s (%s): %s", region.code, region.name, exc)
            return
        labels = self.cfg.labels
        self._labels[region.code] = self._ax.text(
            x,
            y,
            region.name,
            color=labels.color,
            fontsize=labels.font_size,
            fontweight=labels.font_weight,
            ha="center",
            va="center",
            zorder=_LABEL_ZORDER,
            clip_on=True,
            bbox={
                "boxstyle": "round,pad=0.3",
                "facecolor": to_rgba(labels.background, labels.background_alpha),
                "edgecolor": "none",
            },
        )

    def _fit_viewport(self, dataset: BoundaryDataset) -> None:
        if not len(dataset):
            _LOGGER.warning("Dataset has no regions; keeping current view")
            return
        try:
            bounds = dataset_bounds(dataset)
        except GeometryError as exc:
            _LOGGER.warning("Cannot fit view to dataset, keeping current view: %s", exc)
            return
        bbox = self._ax.get_window_extent()
        viewport = self.cfg.viewport
        x0, x1, y0, y1 = fit_bounds(
            bounds,
            width_px=float(bbox.width),
            height_px=float(bbox.height),
            padding_px=viewport.padding_px,
            max_zoom=viewport.max_zoom,
            tile_size_px=viewport.tile_size_px,
        )
        self._ax.set_xlim(x0, x1)
        self._ax.set_ylim(y0, y1)
        self._view = (x0, x1, y0, y1)

    def _draw_background(self) -> None:
        media_path = self.cfg.background.media_path
        if media_path is None:
            return
        if not media_path.exists():
            _LOGGER.warning("Background media not found, drawing map without it: %s", media_path)
            return
        try:
            frames, durations = _read_media_frames(media_path)
        except OSError as exc:
            _LOGGER.warning("Background media unreadable, drawing map without it: %s", exc)
            return
        x0, x1 = self._ax.get_xlim()
        y0, y1 = self._ax.get_ylim()
        self._background = self._ax.imshow(
            frames[0],
            extent=(x0, x1, y0, y1),
            aspect="auto",
            zorder=_BACKGROUND_ZORDER,
        )
        self._background_frames = frames
        self._background_durations = durations
        self._background_index = 0
        if len(frames) > 1:
            timer = self._ax.figure.canvas.new_timer(interval=durations[0])
            timer.add_callback(self.advance_background)
            timer.start()
            self._background_timer = timer
            _LOGGER.debug("Looping %d background frame(s) from %s", len(frames), media_path)

    def advance_background(self) -> int:
        """Show the next background frame, wrapping to the first. Returns its index."""
        if self._background is None or len(self._background_frames) < 2:
            return self._background_index
        self._background_index = (self._background_index + 1) % len(self._background_frames)
        self._background.set_data(self._background_frames[self._background_index])
        if self._background_timer is not None:
            self._background_timer.interval = self._background_durations[self._background_index]
        self.redraw()
        return self._background_index

    def _connect_events(self) -> None:
        canvas = self._ax.figure.canvas
        self._canvas = canvas
        self._cids = [
            canvas.mpl_connect("motion_notify_event", self._on_motion),
            canvas.mpl_connect("button_press_event", self._on_press),
            canvas.mpl_connect("axes_leave_event", self._on_pointer_exit),
            canvas.mpl_connect("figure_leave_event", self._on_pointer_exit),
        ]

    def _event_region(self, event: Any) -> str | None:
        if event.inaxes is not self._ax or event.xdata is None or event.ydata is None:
            return None
        return self.region_at(float(event.xdata), float(event.ydata))

    def _on_motion(self, event: Any) -> None:
        if self._state is not RendererState.READY:
            return
        code = self._event_region(event)
        if code == self._hovered:
            return
        if self._hovered is not None:
            self.pointer_leave(self._hovered)
        if code is not None:
            self.pointer_enter(code)

    def _on_press(self, event: Any) -> None:
        if self._state is not RendererState.READY or event.button != MouseButton.LEFT:
            return
        code = self._event_region(event)
        if code is not None:
            self.click(code)

    def _on_pointer_exit(self, event: Any) -> None:
        if self._state is RendererState.READY and self._hovered is not None:
            self.pointer_leave(self._hovered)

    def _detach(self, artist: Any) -> None:
        # The host may already have cleared the axes.
        if artist in self._ax.get_children():
            artist.remove()


def _read_media_frames(path: Path) -> tuple[list[Image.Image], list[int]]:
    frames: list[Image.Image] = []
    durations: list[int] = []
    with Image.open(path) as media:
        for frame in ImageSequence.Iterator(media):
            frames.append(frame.convert("RGBA"))
            durations.append(int(frame.info.get("duration") or _DEFAULT_FRAME_MS))
            if len(frames) >= _MAX_BACKGROUND_FRAMES:
                _LOGGER.warning(
                    "Background media %s truncated to %d frame(s)", path, _MAX_BACKGROUND_FRAMES
                )
                break
    return frames, durations


def _region_path(geometry: Geometry) -> MplPath:
    paths = [
        MplPath([*ring, ring[0]], closed=True)
        for ring in geometry.iter_rings()
        if ring
    ]
    return MplPath.make_compound_path(*paths)


def _hit_areas(region: Region) -> tuple[Any, ...]:
    geometry = region.geometry
    parts = geometry.parts if isinstance(geometry, MultiPolygon) else (geometry,)
    areas: list[Any] = []
    for part in parts:
        if not part.rings:
            continue
        try:
            polygon = ShapelyPolygon(part.rings[0], part.rings[1:])
        except (ValueError, ShapelyError) as exc:
            _LOGGER.debug("Region %s has a part without hit area: %s", region.code, exc)
            continue
        if not polygon.is_empty:
            areas.append(prep(polygon))
    return tuple(areas)
