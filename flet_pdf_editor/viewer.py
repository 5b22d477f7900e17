"""
PDF Editor View - Flet control for an EditorSession.

Lays out every page as a raster image under an annotation canvas and feeds
gestures to the session's interaction handler. The view keeps no editor
state of its own.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import flet as ft
import flet.canvas as cv

from .interactions.pointer import CROSSHAIR_CURSOR, DEFAULT_CURSOR, MOVE_CURSOR
from .session import EditorSession
from .types import PointerEvent, RenderResult, SurfaceMetrics

_CURSORS = {
    DEFAULT_CURSOR: ft.MouseCursor.BASIC,
    MOVE_CURSOR: ft.MouseCursor.MOVE,
    CROSSHAIR_CURSOR: ft.MouseCursor.PRECISE,
    "nwse-resize": ft.MouseCursor.RESIZE_UP_LEFT_DOWN_RIGHT,
    "nesw-resize": ft.MouseCursor.RESIZE_UP_RIGHT_DOWN_LEFT,
}


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass
class _PageControls:
    """Controls of one page that are refreshed on redraw."""

    detector: ft.GestureDetector
    surface: ft.Stack
    canvas: cv.Canvas
    width: float
    height: float
    last_point: Tuple[float, float] = (0.0, 0.0)


class PdfEditorView:
    """
    Editor view component.

    Usage:
        session = EditorSession()
        view = PdfEditorView(session)
        page.add(view.control)
        await session.add_files(["/path/to/file.pdf"])
    """

    def __init__(
        self,
        session: EditorSession,
        page_width: float = 800.0,
        page_gap: int = 16,
        bgcolor: str = "#ffffff",
    ):
        self._session = session
        self._page_width = page_width
        self._page_gap = page_gap
        self._bgcolor = bgcolor

        self._pages: Dict[int, _PageControls] = {}
        self._wrapper: Optional[ft.Container] = None

        session.on_redraw = self.redraw
        session.on_pages_changed = self.rebuild
        session.on_zoom = lambda _zoom: self.rebuild()

        self._build()

    @property
    def control(self) -> ft.Control:
        """The Flet control to add to a page."""
        return self._wrapper

    @property
    def session(self) -> EditorSession:
        return self._session

    # Building

    def _build(self):
        self._wrapper = ft.Container(content=self._build_content())

    def _build_content(self) -> ft.Control:
        self._pages = {}
        if not self._session.document.pages:
            return ft.Container()

        containers = [
            self._create_page_container(i)
            for i in range(self._session.document.page_count)
        ]
        return ft.Column(
            controls=containers,
            spacing=self._page_gap,
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
            scroll=ft.ScrollMode.AUTO,
        )

    def _create_page_container(self, index: int) -> ft.Control:
        session = self._session
        # Fit pages on first display only; after that the recorded scale holds
        if session.document.page_scale(index) is None:
            session.render_page(index, self._page_width)
        result = session.redraw_page(index)
        zoom = session.zoom

        canvas = cv.Canvas(shapes=result.shapes, width=result.width, height=result.height)
        surface = ft.Stack(
            controls=self._surface_controls(result, canvas),
            width=result.width,
            height=result.height,
        )
        scaled = ft.Container(
            content=surface,
            width=result.width,
            height=result.height,
            left=0,
            top=0,
            scale=ft.Scale(zoom, alignment=ft.alignment.top_left),
        )
        detector = ft.GestureDetector(
            content=ft.Stack(
                controls=[scaled],
                width=result.width * zoom,
                height=result.height * zoom,
            ),
            mouse_cursor=ft.MouseCursor.BASIC,
            on_tap_down=lambda e: self._on_tap_down(index, e),
            on_tap_up=lambda e: self._on_tap_up(index, e),
            on_double_tap_down=lambda e: self._on_double_tap(index, e),
            on_pan_start=lambda e: self._on_pan_start(index, e),
            on_pan_update=lambda e: self._on_pan_update(index, e),
            on_pan_end=lambda e: self._on_pan_end(index, e),
            on_hover=lambda e: self._on_hover(index, e),
            on_exit=lambda e: self._on_exit(index),
            drag_interval=10,
        )
        self._pages[index] = _PageControls(
            detector, surface, canvas, result.width, result.height
        )

        return ft.Container(
            content=detector,
            bgcolor=self._bgcolor,
            border_radius=2,
            shadow=ft.BoxShadow(
                spread_radius=0,
                blur_radius=20,
                color=ft.Colors.with_opacity(0.3, "#000000"),
            ),
        )

    def _surface_controls(
        self, result: RenderResult, canvas: cv.Canvas
    ) -> List[ft.Control]:
        controls: List[ft.Control] = []
        if result.base_image:
            controls.append(
                ft.Image(
                    src_base64=_b64(result.base_image),
                    width=result.width,
                    height=result.height,
                    fit=ft.ImageFit.FILL,
                )
            )
        controls.append(canvas)
        for data, x, y, w, h in result.images:
            controls.append(
                ft.Container(
                    content=ft.Image(
                        src_base64=_b64(data), width=w, height=h, fit=ft.ImageFit.FILL
                    ),
                    left=x,
                    top=y,
                )
            )
        return controls

    # Public

    def rebuild(self):
        """Rebuild every page, e.g. after a structural change or zoom."""
        if not self._wrapper:
            return
        self._wrapper.content = self._build_content()
        if self._wrapper.page:
            self._wrapper.update()

    def redraw(self, page_index: int):
        """Refresh the annotation layer of one page."""
        controls = self._pages.get(page_index)
        if controls is None:
            return
        result = self._session.redraw_page(page_index)
        controls.canvas.shapes = result.shapes
        controls.surface.controls = self._surface_controls(result, controls.canvas)
        if controls.surface.page:
            controls.surface.update()

    # Event handlers

    def _metrics(self, index: int) -> SurfaceMetrics:
        controls = self._pages[index]
        zoom = self._session.zoom
        return SurfaceMetrics(
            left=0,
            top=0,
            client_width=controls.width * zoom,
            client_height=controls.height * zoom,
            pixel_width=controls.width,
            pixel_height=controls.height,
        )

    def _event(self, index: int, x: float, y: float) -> PointerEvent:
        self._pages[index].last_point = (x, y)
        return PointerEvent(x, y, timestamp=time.monotonic())

    def _on_tap_down(self, index: int, e: ft.TapEvent):
        self._session.select_page(index)

    def _on_tap_up(self, index: int, e: ft.TapEvent):
        handler = self._session.interactions
        event = self._event(index, e.local_x, e.local_y)
        handler.pointer_down(index, event, self._metrics(index))
        handler.pointer_up(index, event, self._metrics(index))

    def _on_double_tap(self, index: int, e: ft.TapEvent):
        metrics = self._metrics(index)
        ratio = metrics.pixel_width / metrics.client_width
        self._session.interactions.double_click(
            index, e.local_x * ratio, e.local_y * ratio
        )

    def _on_pan_start(self, index: int, e: ft.DragStartEvent):
        self._session.select_page(index)
        event = self._event(index, e.local_x, e.local_y)
        self._session.interactions.pointer_down(index, event, self._metrics(index))

    def _on_pan_update(self, index: int, e: ft.DragUpdateEvent):
        event = self._event(index, e.local_x, e.local_y)
        self._session.interactions.pointer_move(index, event, self._metrics(index))

    def _on_pan_end(self, index: int, e: ft.DragEndEvent):
        # Drag end events carry no position
        x, y = self._pages[index].last_point
        event = PointerEvent(x, y, timestamp=time.monotonic())
        self._session.interactions.pointer_up(index, event, self._metrics(index))

    def _on_hover(self, index: int, e: ft.HoverEvent):
        event = self._event(index, e.local_x, e.local_y)
        handler = self._session.interactions
        handler.pointer_move(index, event, self._metrics(index))
        self._set_cursor(index, handler.cursor)

    def _on_exit(self, index: int):
        handler = self._session.interactions
        handler.pointer_leave()
        self._set_cursor(index, handler.cursor)

    def _set_cursor(self, index: int, cursor: str):
        detector = self._pages[index].detector
        mouse_cursor = _CURSORS.get(cursor, ft.MouseCursor.BASIC)
        if detector.mouse_cursor != mouse_cursor:
            detector.mouse_cursor = mouse_cursor
            if detector.page:
                detector.update()
