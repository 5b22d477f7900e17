"""
PyMuPDF implementations of the rendering, image and output collaborators.
"""

from __future__ import annotations

import warnings
from typing import Dict, List, Optional, Tuple

warnings.filterwarnings("ignore", message="builtin type Swig")

import pymupdf

from ..errors import DecodeError, ExportError  # noqa: E402
from ..fonts import ResolvedFont  # noqa: E402
from ..types import Color  # noqa: E402
from .base import (  # noqa: E402
    ImageCodec,
    OutputBackend,
    OutputDocument,
    OutputPage,
    Raster,
    RenderBackend,
    RenderDocument,
)


def _open_pdf(data: bytes) -> pymupdf.Document:
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise DecodeError(f"Not a readable PDF: {exc}") from exc
    if doc.needs_pass:
        doc.close()
        raise DecodeError("Document is encrypted and requires a password")
    return doc


def _open_pixmap(data: bytes) -> pymupdf.Pixmap:
    try:
        return pymupdf.Pixmap(data)
    except (RuntimeError, ValueError, TypeError) as exc:
        raise DecodeError(f"Not a readable image: {exc}") from exc


# ==============================================================================
# Rendering
# ==============================================================================


class PyMuPDFRenderDocument(RenderDocument):
    """Rasterizes pages of one source document."""

    def __init__(self, data: bytes):
        self._doc = _open_pdf(data)

    @property
    def page_count(self) -> int:
        return len(self._doc)

    def _page(self, index: int) -> pymupdf.Page:
        if index < 0 or index >= len(self._doc):
            raise IndexError(f"Page index {index} out of range")
        return self._doc[index]

    def page_size(self, index: int, rotation: int = 0) -> Tuple[float, float]:
        rect = self._page(index).rect
        if rotation % 180:
            return rect.height, rect.width
        return rect.width, rect.height

    def render(self, index: int, scale: float, rotation: int = 0) -> Raster:
        page = self._page(index)
        matrix = pymupdf.Matrix(scale, scale).prerotate(rotation)
        pix = page.get_pixmap(matrix=matrix, alpha=False)
        return Raster(pix.tobytes("png"), pix.width, pix.height)

    def close(self) -> None:
        if self._doc:
            self._doc.close()


class PyMuPDFRenderBackend(RenderBackend):
    def decode(self, data: bytes) -> PyMuPDFRenderDocument:
        return PyMuPDFRenderDocument(data)


# ==============================================================================
# Images
# ==============================================================================


class PyMuPDFImageCodec(ImageCodec):
    def image_size(self, data: bytes) -> Tuple[int, int]:
        pix = _open_pixmap(data)
        return pix.width, pix.height

    def encode(self, data: bytes) -> bytes:
        pix = _open_pixmap(data)
        if pix.alpha:
            return pix.tobytes("png")
        if pix.n > 3:
            pix = pymupdf.Pixmap(pymupdf.csRGB, pix)
        return pix.tobytes("jpeg")

    def image_to_pdf(self, data: bytes) -> bytes:
        pix = _open_pixmap(data)
        doc = pymupdf.open()
        try:
            page = doc.new_page(width=pix.width, height=pix.height)
            page.insert_image(page.rect, stream=data)
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()


# ==============================================================================
# Output
# ==============================================================================


class PyMuPDFOutputPage(OutputPage):
    """A copied page. Drawing is only possible once it has been added."""

    def __init__(self, owner: "PyMuPDFOutputDocument", source: bytes, index: int):
        self._owner = owner
        self._source = source
        self._index = index
        self._rotation: Optional[int] = None
        self._page: Optional[pymupdf.Page] = None
        self._fonts: set = set()

    def _attach(self, page: pymupdf.Page) -> None:
        self._page = page
        if self._rotation is not None:
            page.set_rotation(self._rotation)

    def _placed(self) -> pymupdf.Page:
        if self._page is None:
            raise ExportError("Page has not been added to the document")
        return self._page

    @property
    def width(self) -> float:
        return self._placed().rect.width

    @property
    def height(self) -> float:
        return self._placed().rect.height

    @property
    def rotation(self) -> int:
        if self._page is not None:
            return self._page.rotation
        return self._rotation or 0

    def set_rotation(self, degrees: int) -> None:
        self._rotation = degrees % 360
        if self._page is not None:
            self._page.set_rotation(self._rotation)

    def _display_rect(
        self, x: float, y: float, width: float, height: float
    ) -> pymupdf.Rect:
        """Bottom-left-origin box to a rect in unrotated page space."""
        page = self._placed()
        top = page.rect.height - y - height
        rect = pymupdf.Rect(x, top, x + width, top + height)
        return rect * page.derotation_matrix

    def _font_name(self, font: str) -> str:
        buffer = self._owner.font_buffer(font)
        if buffer is not None and font not in self._fonts:
            self._placed().insert_font(fontname=font, fontbuffer=buffer)
            self._fonts.add(font)
        return font

    def draw_rectangle(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        color: Color = (1.0, 1.0, 1.0),
        opacity: float = 1.0,
    ) -> None:
        self._placed().draw_rect(
            self._display_rect(x, y, width, height),
            color=None,
            fill=color,
            width=0,
            fill_opacity=opacity,
            overlay=True,
        )

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        size: float,
        font: str,
        color: Color = (0.0, 0.0, 0.0),
        opacity: float = 1.0,
        rotate: float = 0.0,
    ) -> None:
        page = self._placed()
        derotate = page.derotation_matrix
        origin = pymupdf.Point(x, page.rect.height - y) * derotate
        # Morph matrices act in y-up space: rotate as displayed, then undo
        # the page rotation (its y-down linear part, flipped to y-up).
        linear = pymupdf.Matrix(derotate.a, -derotate.b, -derotate.c, derotate.d, 0, 0)
        morph = pymupdf.Matrix(rotate) * linear
        page.insert_text(
            origin,
            text,
            fontsize=size,
            fontname=self._font_name(font),
            color=color,
            fill_opacity=opacity,
            morph=(origin, morph),
            overlay=True,
        )

    def draw_image(
        self, data: bytes, x: float, y: float, width: float, height: float
    ) -> None:
        page = self._placed()
        page.insert_image(
            self._display_rect(x, y, width, height),
            stream=data,
            rotate=page.rotation,
            keep_proportion=False,
            overlay=True,
        )


class PyMuPDFOutputDocument(OutputDocument):
    def __init__(self):
        self._doc = pymupdf.open()
        self._sources: Dict[int, pymupdf.Document] = {}
        self._font_buffers: Dict[str, Optional[bytes]] = {}

    def _source(self, data: bytes) -> pymupdf.Document:
        key = id(data)
        if key not in self._sources:
            try:
                self._sources[key] = _open_pdf(data)
            except DecodeError as exc:
                raise ExportError(str(exc)) from exc
        return self._sources[key]

    def copy_pages(self, source: bytes, indices: List[int]) -> List[PyMuPDFOutputPage]:
        src = self._source(source)
        for index in indices:
            if index < 0 or index >= len(src):
                raise ExportError(f"Source page {index} out of range")
        return [PyMuPDFOutputPage(self, source, index) for index in indices]

    def add_page(self, page: PyMuPDFOutputPage) -> PyMuPDFOutputPage:
        src = self._source(page._source)
        self._doc.insert_pdf(src, from_page=page._index, to_page=page._index)
        page._attach(self._doc[len(self._doc) - 1])
        return page

    def embed_font(self, font: ResolvedFont) -> str:
        if font.file is None:
            self._font_buffers.setdefault(font.name, None)
            return font.name

        handle = "F" + "".join(ch for ch in font.name if ch.isalnum())
        if handle not in self._font_buffers:
            try:
                buffer = font.file.read_bytes()
                # Validate before any page refers to it
                pymupdf.Font(fontbuffer=buffer)
            except (OSError, RuntimeError) as exc:
                raise ExportError(f"Cannot embed font {font.name}: {exc}") from exc
            self._font_buffers[handle] = buffer
        return handle

    def font_buffer(self, handle: str) -> Optional[bytes]:
        return self._font_buffers.get(handle)

    def save(self, password: Optional[str] = None) -> bytes:
        if not password:
            return self._doc.tobytes(garbage=3, deflate=True)
        return self._doc.tobytes(
            garbage=3,
            deflate=True,
            encryption=pymupdf.PDF_ENCRYPT_AES_256,
            user_pw=password,
            owner_pw=password,
        )

    def close(self) -> None:
        for src in self._sources.values():
            src.close()
        self._sources.clear()
        self._doc.close()


class PyMuPDFOutputBackend(OutputBackend):
    def create_document(self) -> PyMuPDFOutputDocument:
        return PyMuPDFOutputDocument()
