"""
Multi-touch gesture recognizers - pinch zoom and double tap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from ..geometry import distance
from ..types import Point, PointerEvent


@dataclass
class PinchState:
    """Pointers currently down and the reference pinch distance."""

    pointers: Dict[int, Point] = field(default_factory=dict)
    active: bool = False
    start_distance: float = 0.0
    # Swallow the remaining pointer's events once a pinch has started
    suppressing: bool = False


class PinchTracker:
    """Turns two-pointer distance changes into discrete zoom steps.

    Runs beside the single-pointer state machine. While a pinch is active
    (and until every pointer is lifted afterwards) it reports events as
    consumed so the state machine ignores them.
    """

    def __init__(
        self,
        threshold: float = 30.0,
        on_zoom_in: Optional[Callable[[], None]] = None,
        on_zoom_out: Optional[Callable[[], None]] = None,
    ):
        self._state = PinchState()
        self.threshold = threshold
        self.on_zoom_in = on_zoom_in
        self.on_zoom_out = on_zoom_out

    @property
    def active(self) -> bool:
        """Whether a two-pointer pinch is in progress."""
        return self._state.active

    @property
    def consuming(self) -> bool:
        return self._state.active or self._state.suppressing

    def _spread(self) -> float:
        a, b = list(self._state.pointers.values())[:2]
        return distance(a, b)

    def pointer_down(self, event: PointerEvent) -> bool:
        """Track a pointer. Returns True if the event belongs to a pinch."""
        state = self._state
        state.pointers[event.pointer_id] = (event.client_x, event.client_y)
        if len(state.pointers) == 2:
            state.active = True
            state.suppressing = True
            state.start_distance = self._spread()
        return self.consuming

    def pointer_move(self, event: PointerEvent) -> bool:
        """Update a pointer; fires a zoom step past the threshold."""
        state = self._state
        if event.pointer_id in state.pointers:
            state.pointers[event.pointer_id] = (event.client_x, event.client_y)
        if not state.active or len(state.pointers) < 2:
            return self.consuming

        current = self._spread()
        delta = current - state.start_distance
        if abs(delta) > self.threshold:
            callback = self.on_zoom_in if delta > 0 else self.on_zoom_out
            if callback is not None:
                callback()
            state.start_distance = current
        return True

    def pointer_up(self, event: PointerEvent) -> bool:
        state = self._state
        consumed = self.consuming
        state.pointers.pop(event.pointer_id, None)
        if len(state.pointers) < 2:
            state.active = False
        if not state.pointers:
            state.suppressing = False
        return consumed

    def reset(self) -> None:
        self._state = PinchState()


@dataclass
class DoubleTapState:
    last_time: Optional[float] = None
    last_point: Optional[Point] = None


class DoubleTapDetector:
    """Recognizes two taps close together in time and space."""

    def __init__(self, delay: float = 0.3, max_distance: float = 30.0):
        self._state = DoubleTapState()
        self.delay = delay
        self.max_distance = max_distance

    def tap(self, x: float, y: float, timestamp: float) -> bool:
        """Register a tap. Returns True if it completes a double tap."""
        state = self._state
        if (
            state.last_time is not None
            and timestamp - state.last_time < self.delay
            and distance(state.last_point, (x, y)) < self.max_distance
        ):
            # A third tap starts over instead of chaining
            self.reset()
            return True
        state.last_time = timestamp
        state.last_point = (x, y)
        return False

    def reset(self) -> None:
        self._state = DoubleTapState()
