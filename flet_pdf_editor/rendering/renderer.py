"""
Annotation renderer - converts annotations to Flet canvas shapes.
"""

from __future__ import annotations

import math
from typing import Any, List, Optional, Sequence, Tuple

import flet as ft
import flet.canvas as cv

from ..config import EditorConfig
from ..fonts import DEFAULT_FAMILY, FontMetrics, display_family
from ..geometry import annotation_bounds, measure_text_bounds
from ..history import ImageRegistry
from ..types import (
    Annotation,
    AnnotationKind,
    AnnotationRef,
    Bounds,
    RenderResult,
)

PlacedImage = Tuple[bytes, float, float, float, float]


def hit_test(
    annotations: Sequence[Annotation],
    page_index: int,
    x: float,
    y: float,
    metrics: FontMetrics,
    line_height: float = 1.2,
) -> Optional[AnnotationRef]:
    """Topmost annotation containing (x, y).

    Later annotations draw on top, so the list is searched from the end.
    Watermarks and page numbers are not interactive.
    """
    for index in range(len(annotations) - 1, -1, -1):
        anno = annotations[index]
        if not anno.interactive:
            continue
        bounds = annotation_bounds(anno, metrics, line_height)
        if bounds is not None and bounds.contains(x, y):
            return AnnotationRef(page_index, index)
    return None


class PageRenderer:
    """Renders one page's annotations on top of its cached raster."""

    def __init__(
        self,
        metrics: FontMetrics,
        images: ImageRegistry,
        config: Optional[EditorConfig] = None,
    ):
        self.metrics = metrics
        self.images = images
        self.config = config or EditorConfig()

    def render(
        self,
        base_image: Optional[bytes],
        width: float,
        height: float,
        annotations: Sequence[Annotation],
        selected_index: Optional[int] = None,
    ) -> RenderResult:
        """Draw every annotation in list order over the pristine raster."""
        result = RenderResult(base_image=base_image, width=width, height=height)
        for index, anno in enumerate(annotations):
            self.render_annotation(
                anno, index == selected_index, result.shapes, result.images
            )
        return result

    def render_annotation(
        self,
        anno: Annotation,
        is_selected: bool,
        shapes: List[Any],
        images: List[PlacedImage],
    ) -> None:
        if anno.kind is AnnotationKind.WHITEOUT:
            shapes.append(
                cv.Rect(
                    x=anno.x,
                    y=anno.y,
                    width=anno.width,
                    height=anno.height,
                    paint=ft.Paint(color=ft.Colors.WHITE, style=ft.PaintingStyle.FILL),
                )
            )
            if is_selected:
                self._render_selection_handles(
                    Bounds(anno.x, anno.y, anno.width, anno.height), shapes
                )

        elif anno.kind is AnnotationKind.TEXT:
            # The inline editor covers it while editing
            if anno.editing:
                return
            self._render_text(anno, shapes)
            if is_selected:
                bounds = measure_text_bounds(anno, self.metrics, self.config.line_height)
                self._render_selection_handles(
                    Bounds(
                        bounds.x - 2, bounds.y - 2, bounds.width + 4, bounds.height + 4
                    ),
                    shapes,
                )

        elif anno.kind is AnnotationKind.SIGNATURE:
            if anno.image_id in self.images:
                images.append(
                    (
                        self.images.get(anno.image_id),
                        anno.x,
                        anno.y,
                        anno.width,
                        anno.height,
                    )
                )
            bounds = Bounds(anno.x, anno.y, anno.width, anno.height)
            if is_selected and anno.locked:
                self._render_locked_outline(bounds, shapes)
            elif is_selected:
                self._render_selection_handles(bounds, shapes)

        elif anno.kind is AnnotationKind.WATERMARK:
            shapes.append(
                cv.Text(
                    x=anno.x,
                    y=anno.y,
                    text=anno.text,
                    style=ft.TextStyle(
                        size=anno.font_size,
                        font_family=display_family(DEFAULT_FAMILY),
                        color=ft.Colors.with_opacity(anno.opacity, anno.color),
                    ),
                    alignment=ft.alignment.center,
                    rotate=math.radians(anno.rotation),
                )
            )

        elif anno.kind is AnnotationKind.PAGE_NUMBER:
            shapes.append(
                cv.Text(
                    x=anno.x,
                    y=anno.y - anno.font_size,
                    text=anno.text,
                    style=ft.TextStyle(
                        size=anno.font_size,
                        font_family=display_family(DEFAULT_FAMILY),
                        color=anno.color,
                    ),
                )
            )

    def _render_text(self, anno: Annotation, shapes: List[Any]) -> None:
        style = ft.TextStyle(
            size=anno.font_size,
            font_family=display_family(anno.font_family),
            color=anno.color,
        )
        if anno.bold:
            style.weight = ft.FontWeight.BOLD
        if anno.italic:
            style.italic = True

        line_step = anno.font_size * self.config.line_height
        for i, line in enumerate(anno.lines):
            # Canvas text is positioned by its top; y is the baseline
            shapes.append(
                cv.Text(
                    x=anno.x,
                    y=anno.y - anno.font_size + i * line_step,
                    text=line,
                    style=style,
                )
            )

    def _render_selection_handles(self, bounds: Bounds, shapes: List[Any]) -> None:
        """Dashed outline plus four corner squares."""
        color = self.config.selection_color
        size = self.config.handle_size
        x, y, w, h = bounds.x, bounds.y, bounds.width, bounds.height

        shapes.append(
            cv.Rect(
                x=x - 2,
                y=y - 2,
                width=w + 4,
                height=h + 4,
                paint=ft.Paint(
                    color=color,
                    stroke_width=2,
                    style=ft.PaintingStyle.STROKE,
                    stroke_dash_pattern=[5, 3],
                ),
            )
        )
        for hx, hy in (
            (x - size / 2 - 2, y - size / 2 - 2),
            (x + w - size / 2 + 2, y - size / 2 - 2),
            (x - size / 2 - 2, y + h - size / 2 + 2),
            (x + w - size / 2 + 2, y + h - size / 2 + 2),
        ):
            shapes.append(
                cv.Rect(
                    x=hx,
                    y=hy,
                    width=size,
                    height=size,
                    paint=ft.Paint(color=color, style=ft.PaintingStyle.FILL),
                )
            )

    def _render_locked_outline(self, bounds: Bounds, shapes: List[Any]) -> None:
        shapes.append(
            cv.Rect(
                x=bounds.x - 2,
                y=bounds.y - 2,
                width=bounds.width + 4,
                height=bounds.height + 4,
                paint=ft.Paint(
                    color=self.config.locked_color,
                    stroke_width=2,
                    style=ft.PaintingStyle.STROKE,
                ),
            )
        )

    # Transient overlays

    def render_draft(self, bounds: Bounds, shapes: List[Any]) -> None:
        """Whiteout rectangle being dragged out."""
        shapes.append(
            cv.Rect(
                x=bounds.x,
                y=bounds.y,
                width=bounds.width,
                height=bounds.height,
                paint=ft.Paint(
                    color=ft.Colors.with_opacity(0.8, ft.Colors.WHITE),
                    style=ft.PaintingStyle.FILL,
                ),
            )
        )
        shapes.append(
            cv.Rect(
                x=bounds.x,
                y=bounds.y,
                width=bounds.width,
                height=bounds.height,
                paint=ft.Paint(
                    color=self.config.selection_color,
                    stroke_width=2,
                    style=ft.PaintingStyle.STROKE,
                    stroke_dash_pattern=[5, 3],
                ),
            )
        )

    def render_signature_preview(
        self,
        image_id: str,
        bounds: Bounds,
        shapes: List[Any],
        images: List[PlacedImage],
    ) -> None:
        """Pending signature following the pointer."""
        if image_id in self.images:
            images.append(
                (
                    self.images.get(image_id),
                    bounds.x,
                    bounds.y,
                    bounds.width,
                    bounds.height,
                )
            )
        shapes.append(
            cv.Rect(
                x=bounds.x,
                y=bounds.y,
                width=bounds.width,
                height=bounds.height,
                paint=ft.Paint(
                    color=self.config.selection_color,
                    stroke_width=1,
                    style=ft.PaintingStyle.STROKE,
                    stroke_dash_pattern=[5, 3],
                ),
            )
        )
