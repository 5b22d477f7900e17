"""
Export projection.

Reads the finished model once and replays it onto an output document:
pages are copied from their sources in display order, then every annotation
is scaled from raster pixels to document units and drawn. Raster space has
its origin at the top-left with y pointing down; document space has its
origin at the bottom-left with y pointing up.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Dict, Optional, Sequence, Tuple

from .backends.base import OutputBackend, OutputDocument, OutputPage
from .document import EditorDocument
from .errors import ExportError
from .fonts import DEFAULT_FAMILY, FontMetrics, ResolvedFont
from .history import ImageRegistry
from .types import (
    Annotation,
    AnnotationKind,
    Color,
    PageEntry,
    PageScale,
    SourceDocument,
)

logger = logging.getLogger(__name__)

WHITE: Color = (1.0, 1.0, 1.0)

# Offset from a "middle" text baseline to the alphabetic one, in font sizes
MIDDLE_BASELINE_SHIFT = 0.35

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_color(color: str) -> Color:
    """'#rrggbb' (or '#rgb') to an RGB tuple in [0, 1]."""
    match = _HEX_COLOR.match(color or "")
    if not match:
        raise ExportError(f"Malformed color {color!r}")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return tuple(int(digits[i : i + 2], 16) / 255 for i in (0, 2, 4))


def is_unmodified(document: EditorDocument) -> Optional[SourceDocument]:
    """The single source, if the document is exactly that source untouched."""
    if len(document.sources) != 1:
        return None
    (source,) = document.sources.values()
    if len(document.pages) != source.page_count:
        return None
    for i, page in enumerate(document.pages):
        if (
            page.source_id != source.source_id
            or page.source_page_index != i
            or page.rotation != 0
        ):
            return None
        if document.annotations.get(i):
            return None
    return source


class _FontCache:
    """Embeds each font once, falling back when a font file is unusable."""

    def __init__(self, output: OutputDocument, metrics: FontMetrics):
        self._output = output
        self._metrics = metrics
        self._handles: Dict[str, str] = {}

    def handle(self, family: Optional[str], bold: bool = False, italic: bool = False) -> str:
        font = self._metrics.resolve(family, bold, italic)
        if font.name not in self._handles:
            try:
                handle = self._output.embed_font(font)
            except ExportError:
                if font.file is None:
                    raise
                logger.warning(
                    "Font %s failed to embed, using %s", font.name, font.fallback
                )
                handle = self._output.embed_font(ResolvedFont(font.fallback))
            self._handles[font.name] = handle
        return self._handles[font.name]


def _page_scale(page: OutputPage, scale: Optional[PageScale]) -> Tuple[float, float]:
    # A page never rendered is assumed to be drawn at document size
    if scale is None:
        return 1.0, 1.0
    return page.width / scale.raster_width, page.height / scale.raster_height


def draw_annotations(
    page: OutputPage,
    annotations: Sequence[Annotation],
    scale: Optional[PageScale],
    fonts: _FontCache,
    images: ImageRegistry,
    metrics: FontMetrics,
    line_height: float = 1.2,
) -> None:
    """Project one page's annotations onto an output page."""
    sx, sy = _page_scale(page, scale)
    height = page.height

    for anno in annotations:
        if anno.kind is AnnotationKind.WHITEOUT:
            page.draw_rectangle(
                anno.x * sx,
                height - (anno.y + anno.height) * sy,
                anno.width * sx,
                anno.height * sy,
                WHITE,
            )

        elif anno.kind is AnnotationKind.TEXT:
            font = fonts.handle(anno.font_family, anno.bold, anno.italic)
            color = parse_color(anno.color)
            for i, line in enumerate(anno.lines):
                if not line:
                    continue
                page.draw_text(
                    line,
                    anno.x * sx,
                    height - (anno.y + i * anno.font_size * line_height) * sy,
                    anno.font_size * sy,
                    font,
                    color,
                )

        elif anno.kind is AnnotationKind.SIGNATURE:
            try:
                data = images.get(anno.image_id)
            except KeyError:
                raise ExportError(f"Missing signature image {anno.image_id}") from None
            page.draw_image(
                data,
                anno.x * sx,
                height - (anno.y + anno.height) * sy,
                anno.width * sx,
                anno.height * sy,
            )

        elif anno.kind is AnnotationKind.WATERMARK:
            font = fonts.handle(DEFAULT_FAMILY)
            # (x, y) is the visual center; find the baseline origin of the
            # rotated text in raster space first
            width = metrics.text_width(anno.text, anno.font_size, DEFAULT_FAMILY)
            theta = math.radians(anno.rotation)
            dx, dy = -width / 2, anno.font_size * MIDDLE_BASELINE_SHIFT
            ox = anno.x + dx * math.cos(theta) - dy * math.sin(theta)
            oy = anno.y + dx * math.sin(theta) + dy * math.cos(theta)
            page.draw_text(
                anno.text,
                ox * sx,
                height - oy * sy,
                anno.font_size * sy,
                font,
                parse_color(anno.color),
                opacity=anno.opacity,
                # Raster angles turn clockwise on screen, document angles the other way
                rotate=-anno.rotation,
            )

        elif anno.kind is AnnotationKind.PAGE_NUMBER:
            page.draw_text(
                anno.text,
                anno.x * sx,
                height - anno.y * sy,
                anno.font_size * sy,
                fonts.handle(DEFAULT_FAMILY),
                parse_color(anno.color),
            )


def _copy_page(
    output: OutputDocument, document: EditorDocument, entry: PageEntry
) -> OutputPage:
    source = document.sources.get(entry.source_id)
    if source is None:
        raise ExportError(f"Source {entry.source_id} is no longer loaded")
    (copied,) = output.copy_pages(source.raw_bytes, [entry.source_page_index])
    page = output.add_page(copied)
    if entry.rotation:
        page.set_rotation((page.rotation + entry.rotation) % 360)
    return page


def build_output(
    document: EditorDocument,
    backend: OutputBackend,
    images: ImageRegistry,
    metrics: FontMetrics,
    line_height: float = 1.2,
    password: Optional[str] = None,
) -> bytes:
    """Materialize the working document, annotations included.

    With a ``password`` the result is encrypted, and an unmodified
    document is rebuilt rather than returned as is.
    """
    if not document.pages:
        raise ExportError("No pages to export")

    untouched = is_unmodified(document) if password is None else None
    if untouched is not None:
        logger.info("Document unmodified, returning original bytes")
        return untouched.raw_bytes

    with backend.create_document() as output:
        fonts = _FontCache(output, metrics)
        for i, entry in enumerate(document.pages):
            page = _copy_page(output, document, entry)
            annotations = document.annotations.get(i, [])
            if annotations:
                draw_annotations(
                    page,
                    annotations,
                    document.page_scale(i),
                    fonts,
                    images,
                    metrics,
                    line_height,
                )
        data = output.save(password=password)

    logger.info("Exported %d pages (%d bytes)", len(document.pages), len(data))
    return data


def extract_pages(
    document: EditorDocument, pages: Sequence[PageEntry], backend: OutputBackend
) -> bytes:
    """A new document holding only ``pages``, rotated, without annotations."""
    if not pages:
        raise ExportError("No pages selected")
    with backend.create_document() as output:
        for entry in pages:
            _copy_page(output, document, entry)
        data = output.save()
    logger.info("Extracted %d pages", len(pages))
    return data
