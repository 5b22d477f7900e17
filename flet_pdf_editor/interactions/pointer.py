"""
Pointer interaction state machine.

Turns raw pointer events on a page surface into selection, drag, resize,
whiteout drawing, text placement and signature placement. Every change to
annotation content is preceded by an annotation history snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..geometry import (
    ResizeStart,
    hit_test_resize_handle,
    normalize_rect,
    resize_signature,
    resize_start,
    resize_text,
    to_surface_coords,
)
from ..history import AnnotationSnapshot, copy_annotation
from ..types import (
    Annotation,
    AnnotationKind,
    AnnotationRef,
    Bounds,
    Corner,
    InteractionMode,
    NoticeLevel,
    Point,
    PointerEvent,
    SurfaceMetrics,
    Tool,
    WhiteoutAnnotation,
)
from .gestures import DoubleTapDetector, PinchTracker

if TYPE_CHECKING:
    from ..session import EditorSession

logger = logging.getLogger(__name__)

DEFAULT_CURSOR = "default"
MOVE_CURSOR = "move"
CROSSHAIR_CURSOR = "crosshair"


@dataclass
class InteractionState:
    """Where the state machine is and what the current gesture touches."""

    mode: InteractionMode = InteractionMode.IDLE
    page_index: int = -1
    start: Optional[Point] = None
    current: Optional[Point] = None

    # Dragging / resizing
    target: Optional[AnnotationRef] = None
    drag_offset: Point = (0.0, 0.0)
    corner: Optional[Corner] = None
    resize_from: Optional[ResizeStart] = None
    before: Optional[AnnotationSnapshot] = None
    original: Optional[Annotation] = None

    # Pending signature following the pointer: (page_index, x, y)
    preview: Optional[Tuple[int, float, float]] = None
    cursor: str = DEFAULT_CURSOR
    # Locked signatures already announced, by identity; cleared on a miss
    locked_notified: List[Annotation] = field(default_factory=list)


class InteractionHandler:
    """Handles pointer down/move/up, double click and pointer leave."""

    def __init__(self, session: "EditorSession"):
        self._session = session
        self._state = InteractionState()
        config = session.config
        self.pinch = PinchTracker(
            threshold=config.pinch_threshold,
            on_zoom_in=session.zoom_in,
            on_zoom_out=session.zoom_out,
        )
        self.double_tap = DoubleTapDetector(
            delay=config.double_tap_delay, max_distance=config.double_tap_distance
        )

    @property
    def mode(self) -> InteractionMode:
        """Current state, with a pending signature counting as placement."""
        if (
            self._state.mode is InteractionMode.IDLE
            and self._session.pending_signature is not None
        ):
            return InteractionMode.PLACING_SIGNATURE
        return self._state.mode

    @property
    def cursor(self) -> str:
        """Cursor the view should show over the page surface."""
        return self._state.cursor

    @property
    def page_index(self) -> int:
        return self._state.page_index

    def _set_mode(self, mode: InteractionMode) -> None:
        if mode is not self._state.mode:
            logger.debug("Interaction %s -> %s", self._state.mode.value, mode.value)
            self._state.mode = mode

    def draft_bounds(self, page_index: int) -> Optional[Bounds]:
        """Whiteout rectangle being drawn on ``page_index``, if any."""
        state = self._state
        if (
            state.mode is InteractionMode.DRAWING
            and state.page_index == page_index
            and state.start is not None
            and state.current is not None
        ):
            return normalize_rect(*state.start, *state.current)
        return None

    def preview_bounds(self, page_index: int) -> Optional[Bounds]:
        """Box of the pending signature under the pointer on ``page_index``."""
        pending = self._session.pending_signature
        preview = self._state.preview
        if pending is None or preview is None or preview[0] != page_index:
            return None
        _, x, y = preview
        return Bounds(
            x - pending.width / 2, y - pending.height / 2, pending.width, pending.height
        )

    def reset(self) -> None:
        self._state = InteractionState()
        self.pinch.reset()
        self.double_tap.reset()

    # ==========================================================================
    # Pointer events
    # ==========================================================================

    def pointer_down(
        self, page_index: int, event: PointerEvent, surface: SurfaceMetrics
    ) -> None:
        if self.pinch.pointer_down(event):
            # A second finger turns whatever the first one started into a pinch
            self._finish_gesture()
            return

        x, y = to_surface_coords(event, surface)
        session = self._session

        if event.pointer_type == "touch" and self.double_tap.tap(x, y, event.timestamp):
            self.double_click(page_index, x, y)
            return

        if self._state.mode is InteractionMode.EDITING_TEXT:
            session.cancel_text_edit()

        if session.pending_signature is not None:
            self._state.preview = None
            session.place_signature(x, y, page_index)
            return

        state = self._state
        state.page_index = page_index
        state.start = (x, y)
        state.current = (x, y)

        if session.tool is Tool.SELECT:
            self._select_down(page_index, x, y)
        elif session.tool is Tool.WHITEOUT:
            self._set_mode(InteractionMode.DRAWING)

    def _select_down(self, page_index: int, x: float, y: float) -> None:
        session = self._session
        doc = session.document
        config = session.config

        # Handles of the current selection take precedence over hit testing
        selected_ref = doc.selected_annotation
        selected = doc.get_annotation(selected_ref)
        if selected is not None and selected_ref.page_index == page_index:
            corner = hit_test_resize_handle(
                selected,
                x,
                y,
                session.metrics,
                config.handle_tolerance,
                config.line_height,
            )
            if corner is not None:
                self._begin_edit(selected_ref, selected)
                self._state.corner = corner
                self._state.resize_from = resize_start(
                    selected, session.metrics, config.line_height
                )
                self._set_mode(InteractionMode.RESIZING)
                return

        ref = session.hit_test(page_index, x, y)
        if ref is None:
            self._state.locked_notified.clear()
            if doc.selected_annotation is not None:
                doc.selected_annotation = None
                session.request_redraw(page_index)
            return

        anno = doc.get_annotation(ref)
        doc.selected_annotation = ref
        if getattr(anno, "locked", False):
            if not self._was_notified(anno):
                self._state.locked_notified.append(anno)
                session.notify(
                    "Signature is locked. Double-click to unlock it.",
                    NoticeLevel.INFO,
                )
            session.request_redraw(page_index)
            return

        self._begin_edit(ref, anno)
        self._state.drag_offset = (x - anno.x, y - anno.y)
        self._set_mode(InteractionMode.DRAGGING)
        session.request_redraw(page_index)

    def _was_notified(self, anno: Annotation) -> bool:
        return any(seen is anno for seen in self._state.locked_notified)

    def _begin_edit(self, ref: AnnotationRef, anno: Annotation) -> None:
        """Capture the pre-change snapshot for a drag or resize."""
        self._state.target = ref
        self._state.before = self._session.snapshot_annotations()
        self._state.original = copy_annotation(anno)

    def pointer_move(
        self, page_index: int, event: PointerEvent, surface: SurfaceMetrics
    ) -> None:
        if self.pinch.pointer_move(event):
            return

        x, y = to_surface_coords(event, surface)
        session = self._session
        state = self._state

        if state.mode is InteractionMode.IDLE:
            self._hover(page_index, x, y)
            return
        if page_index != state.page_index:
            return

        state.current = (x, y)

        if state.mode is InteractionMode.RESIZING:
            anno = session.document.get_annotation(state.target)
            if anno is None:
                self._abort_gesture()
                return
            if anno.kind is AnnotationKind.SIGNATURE:
                resize_signature(
                    anno,
                    state.resize_from,
                    state.corner,
                    x,
                    y,
                    session.config.signature_min_width,
                )
            else:
                resize_text(
                    anno,
                    state.resize_from,
                    state.corner,
                    x,
                    y,
                    session.metrics,
                    session.config,
                )
            session.request_redraw(page_index)

        elif state.mode is InteractionMode.DRAGGING:
            anno = session.document.get_annotation(state.target)
            if anno is None:
                self._abort_gesture()
                return
            ox, oy = state.drag_offset
            anno.x, anno.y = x - ox, y - oy
            session.request_redraw(page_index)

        elif state.mode is InteractionMode.DRAWING:
            session.request_redraw(page_index)

    def _hover(self, page_index: int, x: float, y: float) -> None:
        session = self._session
        state = self._state

        if session.pending_signature is not None:
            previous = state.preview
            state.preview = (page_index, x, y)
            if previous is not None and previous[0] != page_index:
                session.request_redraw(previous[0])
            session.request_redraw(page_index)
            state.cursor = CROSSHAIR_CURSOR
            return

        if session.tool is not Tool.SELECT:
            state.cursor = CROSSHAIR_CURSOR
            return

        cursor = DEFAULT_CURSOR
        doc = session.document
        ref = doc.selected_annotation
        selected = doc.get_annotation(ref)
        if selected is not None and ref.page_index == page_index:
            corner = hit_test_resize_handle(
                selected,
                x,
                y,
                session.metrics,
                session.config.handle_tolerance,
                session.config.line_height,
            )
            if corner is not None:
                cursor = corner.cursor
        if cursor == DEFAULT_CURSOR and session.hit_test(page_index, x, y) is not None:
            cursor = MOVE_CURSOR
        state.cursor = cursor

    def pointer_up(
        self, page_index: int, event: PointerEvent, surface: SurfaceMetrics
    ) -> None:
        if self.pinch.pointer_up(event):
            return

        x, y = to_surface_coords(event, surface)
        session = self._session
        state = self._state

        if state.mode is InteractionMode.IDLE:
            # A click with the text tool asks for text at that point
            if (
                session.tool is Tool.TEXT
                and state.start is not None
                and state.page_index == page_index
            ):
                session.request_text(page_index, *state.start)
            state.start = state.current = None
            return

        if page_index == state.page_index:
            state.current = (x, y)
        self._finish_gesture()

    def pointer_leave(self) -> None:
        """Pointer left the surface: drop drafts, keep drags and resizes."""
        self.pinch.reset()
        state = self._state
        if state.preview is not None:
            page = state.preview[0]
            state.preview = None
            self._session.request_redraw(page)
        if state.mode is InteractionMode.DRAWING:
            page = state.page_index
            self._reset_gesture()
            self._session.request_redraw(page)
        else:
            self._finish_gesture()
        state.cursor = DEFAULT_CURSOR

    def _finish_gesture(self) -> None:
        state = self._state
        session = self._session
        page = state.page_index

        if state.mode is InteractionMode.DRAWING:
            bounds = self.draft_bounds(page)
            minimum = session.config.whiteout_min_size
            self._reset_gesture()
            if bounds is not None and bounds.width > minimum and bounds.height > minimum:
                session.push_annotation_state()
                session.document.add_annotation(
                    page,
                    WhiteoutAnnotation(
                        x=bounds.x, y=bounds.y, width=bounds.width, height=bounds.height
                    ),
                )
                logger.debug("Whiteout added on page %d: %s", page, bounds)
            session.request_redraw(page)

        elif state.mode in (InteractionMode.DRAGGING, InteractionMode.RESIZING):
            anno = session.document.get_annotation(state.target)
            before, original = state.before, state.original
            self._reset_gesture()
            # Only a net change is worth an undo step
            if anno is not None and anno != original:
                session.push_annotation_state(before)
            session.request_redraw(page)

        elif state.mode is not InteractionMode.EDITING_TEXT:
            self._reset_gesture()

    def _abort_gesture(self) -> None:
        logger.debug("Gesture target vanished, aborting")
        self._reset_gesture()

    def _reset_gesture(self) -> None:
        state = self._state
        state.start = state.current = None
        state.target = None
        state.corner = None
        state.resize_from = None
        state.before = None
        state.original = None
        self._set_mode(InteractionMode.IDLE)

    # ==========================================================================
    # Double click / inline editing
    # ==========================================================================

    def double_click(self, page_index: int, x: float, y: float) -> None:
        """Unlock a locked signature, or open the inline editor on text."""
        session = self._session
        if session.tool is not Tool.SELECT:
            return

        # The first click of the pair may have started a drag
        self._finish_gesture()

        ref = session.hit_test(page_index, x, y)
        anno = session.document.get_annotation(ref)
        if anno is None:
            return

        if anno.kind is AnnotationKind.SIGNATURE and anno.locked:
            session.push_annotation_state()
            anno.locked = False
            session.document.selected_annotation = ref
            self._state.locked_notified = [
                seen for seen in self._state.locked_notified if seen is not anno
            ]
            session.notify("Signature unlocked", NoticeLevel.INFO)
            session.request_redraw(page_index)
        elif anno.kind is AnnotationKind.TEXT:
            if session.begin_text_edit(ref):
                self._state.page_index = page_index
                self._set_mode(InteractionMode.EDITING_TEXT)

    def end_text_edit(self) -> None:
        if self._state.mode is InteractionMode.EDITING_TEXT:
            self._set_mode(InteractionMode.IDLE)

