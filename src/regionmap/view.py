"""Top-level map view: load once, then hand the dataset to a renderer."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Protocol

from .config import MapConfig
from .loader import LoadError
from .models import BoundaryDataset
from .render import MapRenderer
from .selection import SelectionStore

LOADING_MESSAGE = "Loading regions..."
_LOADING_COLOR = "#6b7280"
_ERROR_COLOR = "#ef4444"

_LOGGER = logging.getLogger("regionmap.view")


class DatasetLoader(Protocol):
    def load(self) -> BoundaryDataset: ...


class ViewState(enum.Enum):
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


class ViewController:
    """Wires a loader, a selection store and a map renderer to one Axes.

    ``mount`` runs the load off the event loop and only builds the renderer
    if the view is still mounted when the result arrives; a result that
    arrives after ``unmount`` is dropped.
    """

    def __init__(
        self,
        axes: Any,
        loader: DatasetLoader,
        cfg: MapConfig,
        *,
        store: SelectionStore | None = None,
    ) -> None:
        self._ax = axes
        self._loader = loader
        self.cfg = cfg
        self.store = store or SelectionStore()
        self._state = ViewState.LOADING
        self._error_message: str | None = None
        self._renderer: MapRenderer | None = None
        self._dataset: BoundaryDataset | None = None
        self._mounted = False
        self._generation = 0
        self._status_text: Any | None = None
        self._close_cid: int | None = None
        self._listeners: list[Callable[[ViewState], None]] = []

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def renderer(self) -> MapRenderer | None:
        return self._renderer

    @property
    def dataset(self) -> BoundaryDataset | None:
        return self._dataset

    @property
    def mounted(self) -> bool:
        return self._mounted

    def subscribe(self, listener: Callable[[ViewState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def mount(self) -> ViewState:
        if self._mounted:
            raise RuntimeError("View is already mounted")
        self._mounted = True
        self._generation += 1
        generation = self._generation
        self._error_message = None
        self._close_cid = self._ax.figure.canvas.mpl_connect("close_event", self._on_close)
        self._ax.set_axis_off()
        self._set_state(ViewState.LOADING)
        self._show_status(LOADING_MESSAGE, _LOADING_COLOR)

        try:
            dataset = await asyncio.to_thread(self._loader.load)
        except LoadError as exc:
            if self._is_stale(generation):
                _LOGGER.info("Discarding load failure for an unmounted view: %s", exc)
                return self._state
            _LOGGER.error("Failed to load region data: %s", exc)
            self._error_message = f"Failed to load region data: {exc}"
            self._show_status(self._error_message, _ERROR_COLOR)
            self._set_state(ViewState.ERROR)
            return self._state

        if self._is_stale(generation):
            _LOGGER.info("Discarding %d loaded region(s) for an unmounted view", len(dataset))
            return self._state

        renderer = MapRenderer(self._ax, self.store, self.cfg)
        try:
            renderer.initialize(dataset)
        except BaseException:
            renderer.destroy()
            raise
        self._dataset = dataset
        self._renderer = renderer
        self._clear_status()
        self._set_state(ViewState.READY)
        return self._state

    def unmount(self) -> None:
        """Tear down the renderer and drop the dataset. Safe to call repeatedly."""
        if not self._mounted:
            return
        self._mounted = False
        self._generation += 1
        if self._close_cid is not None:
            self._ax.figure.canvas.mpl_disconnect(self._close_cid)
            self._close_cid = None
        if self._renderer is not None:
            self._renderer.destroy()
            self._renderer = None
        self._dataset = None
        self._clear_status()
        _LOGGER.debug("Map view unmounted")

    def _is_stale(self, generation: int) -> bool:
        return not self._mounted or generation != self._generation

    def _on_close(self, event: Any) -> None:
        self.unmount()

    def _set_state(self, state: ViewState) -> None:
        self._state = state
        for listener in tuple(self._listeners):
            listener(state)

    def _show_status(self, message: str, color: str) -> None:
        self._clear_status()
        self._status_text = self._ax.text(
            0.5,
            0.5,
            message,
            transform=self._ax.transAxes,
            ha="center",
            va="center",
            color=color,
            fontsize=12,
            fontweight="medium",
        )
        self._ax.figure.canvas.draw_idle()

    def _clear_status(self) -> None:
        if self._status_text is None:
            return
        if self._status_text in self._ax.get_children():
            self._status_text.remove()
        self._status_text = None
