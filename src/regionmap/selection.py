"""Single-region selection state with ordered change notifications."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

SelectionListener = Callable[[Optional[str]], None]

_LOGGER = logging.getLogger("regionmap.selection")


class SelectionStore:
    """Holds zero or one selected region code.

    ``toggle`` is the only mutation. Every transition reaches every subscriber
    exactly once and in order; toggles issued from inside a listener are queued
    until the current transition has been delivered to all listeners.
    """

    def __init__(self) -> None:
        self._current: str | None = None
        self._listeners: list[SelectionListener] = []
        self._pending: deque[str | None] = deque()
        self._dispatching = False

    def current(self) -> str | None:
        return self._current

    def toggle(self, code: str) -> str | None:
        if self._current == code:
            self._current = None
        else:
            self._current = code
        _LOGGER.debug("Selection changed to %s", self._current)
        self._pending.append(self._current)
        self._drain()
        return self._current

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def _drain(self) -> None:
        # A failing listener does not stop delivery; the first error is re-raised
        # once the queue is empty.
        if self._dispatching:
            return
        self._dispatching = True
        errors: list[Exception] = []
        try:
            while self._pending:
                value = self._pending.popleft()
                for listener in tuple(self._listeners):
                    try:
                        listener(value)
                    except Exception as exc:
                        _LOGGER.error("Selection listener failed for %s: %s", value, exc)
                        errors.append(exc)
        finally:
            self._dispatching = False
        if errors:
            raise errors[0]
