"""
Coordinate conversion, annotation bounds and resize math.

Three spaces are involved: client (pointer) coordinates, raster-surface
pixels (where annotations live) and document units (used only at export).
Everything here works in raster pixels.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .config import EditorConfig
from .fonts import FontMetrics
from .types import (
    Annotation,
    AnnotationKind,
    Bounds,
    Corner,
    Point,
    PointerEvent,
    SignatureAnnotation,
    SurfaceMetrics,
    TextAnnotation,
)


def to_surface_coords(event: PointerEvent, surface: SurfaceMetrics) -> Point:
    """Convert a client-space pointer position to raster-surface pixels.

    Accounts for the displayed size of the surface differing from its backing
    pixel size, and for the device pixel ratio of that backing store.
    """
    ratio = surface.device_pixel_ratio or 1.0
    x = (event.client_x - surface.left) * (
        surface.pixel_width / surface.client_width / ratio
    )
    y = (event.client_y - surface.top) * (
        surface.pixel_height / surface.client_height / ratio
    )
    return x, y


def measure_text_bounds(
    anno: TextAnnotation, metrics: FontMetrics, line_height: float = 1.2
) -> Bounds:
    """Bounding box of a (possibly multi-line) text annotation.

    The box starts one font size above the first baseline.
    """
    lines = anno.lines
    width = max(
        metrics.text_width(
            line, anno.font_size, anno.font_family, anno.bold, anno.italic
        )
        for line in lines
    )
    height = anno.font_size * len(lines) * line_height
    return Bounds(anno.x, anno.y - anno.font_size, width, height)


def annotation_bounds(
    anno: Annotation, metrics: FontMetrics, line_height: float = 1.2
) -> Optional[Bounds]:
    """Hit-testable box of an annotation, or None when it has none."""
    if anno.kind in (AnnotationKind.WHITEOUT, AnnotationKind.SIGNATURE):
        return Bounds(anno.x, anno.y, anno.width, anno.height)
    if anno.kind is AnnotationKind.TEXT:
        return measure_text_bounds(anno, metrics, line_height)
    return None


def hit_test_resize_handle(
    anno: Annotation,
    x: float,
    y: float,
    metrics: FontMetrics,
    tolerance: float = 12.0,
    line_height: float = 1.2,
) -> Optional[Corner]:
    """Return the corner handle under (x, y), if any.

    Only text and signature annotations can be resized, and locked
    signatures never expose handles.
    """
    if getattr(anno, "locked", False):
        return None
    if anno.kind not in (AnnotationKind.TEXT, AnnotationKind.SIGNATURE):
        return None

    bounds = annotation_bounds(anno, metrics, line_height)
    best = None
    best_dist = None
    for corner, (hx, hy) in bounds.corners().items():
        if abs(x - hx) < tolerance and abs(y - hy) < tolerance:
            dist = math.hypot(x - hx, y - hy)
            if best_dist is None or dist < best_dist:
                best, best_dist = corner, dist
    return best


def normalize_rect(x0: float, y0: float, x1: float, y1: float) -> Bounds:
    """Box spanned by two drag points, in any direction."""
    return Bounds(min(x0, x1), min(y0, y1), abs(x1 - x0), abs(y1 - y0))


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


# ==============================================================================
# Resizing
# ==============================================================================


@dataclass(frozen=True)
class ResizeStart:
    """Geometry of the annotation when the resize began."""

    x: float
    y: float
    width: float
    height: float
    font_size: float = 0.0

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


def resize_start(
    anno: Annotation, metrics: FontMetrics, line_height: float = 1.2
) -> ResizeStart:
    if anno.kind is AnnotationKind.TEXT:
        bounds = measure_text_bounds(anno, metrics, line_height)
        return ResizeStart(anno.x, anno.y, bounds.width, bounds.height, anno.font_size)
    return ResizeStart(anno.x, anno.y, anno.width, anno.height)


def resize_signature(
    anno: SignatureAnnotation,
    start: ResizeStart,
    corner: Corner,
    x: float,
    y: float,
    min_width: float = 50.0,
) -> None:
    """Resize a signature keeping its aspect ratio and the opposite corner."""
    if corner.is_left:
        width = max(min_width, start.x + start.width - x)
        new_x = start.x + start.width - width
    else:
        width = max(min_width, x - start.x)
        new_x = start.x
    height = width / start.aspect_ratio
    new_y = start.y + start.height - height if corner.is_top else start.y

    anno.x, anno.y = new_x, new_y
    anno.width, anno.height = width, height


def resize_text(
    anno: TextAnnotation,
    start: ResizeStart,
    corner: Corner,
    x: float,
    y: float,
    metrics: FontMetrics,
    config: EditorConfig,
) -> None:
    """Scale a text annotation's font size from the dragged width.

    The font size scales linearly with the width ratio, then the anchor is
    moved so the corner opposite the dragged one stays put. Bounds are
    re-measured after the size change since text width does not scale
    exactly linearly.
    """
    if corner.is_left:
        new_width = max(config.text_min_width, start.x + start.width - x)
    else:
        new_width = max(config.text_min_width, x - start.x)

    anno.font_size = config.clamp_font_size(start.font_size * new_width / start.width)
    bounds = measure_text_bounds(anno, metrics, config.line_height)
    baseline_shift = anno.font_size - start.font_size

    anno.x = start.x + start.width - bounds.width if corner.is_left else start.x
    if corner.is_top:
        anno.y = start.y + start.height - bounds.height + baseline_shift
    else:
        anno.y = start.y + baseline_shift
