import asyncio
from typing import List

import pymupdf
import pytest

from flet_pdf_editor.backends.base import (
    ImageCodec,
    OutputBackend,
    OutputDocument,
    OutputPage,
    Raster,
    RenderBackend,
    RenderDocument,
)
from flet_pdf_editor.config import EditorConfig
from flet_pdf_editor.errors import DecodeError, ExportError
from flet_pdf_editor.session import EditorSession
from flet_pdf_editor.types import PointerEvent, SurfaceMetrics

PAGE_WIDTH = 600.0
PAGE_HEIGHT = 800.0

# Raster surface shown at its backing size
SURFACE = SurfaceMetrics(
    left=0,
    top=0,
    client_width=PAGE_WIDTH,
    client_height=PAGE_HEIGHT,
    pixel_width=PAGE_WIDTH,
    pixel_height=PAGE_HEIGHT,
)


def fake_pdf(pages: int) -> bytes:
    """Bytes FakeRenderBackend decodes as a document with ``pages`` pages."""
    return f"FAKE:{pages}".encode()


def make_pdf(pages: int = 2, width: float = 612, height: float = 792) -> bytes:
    doc = pymupdf.open()
    for i in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"Source page {i + 1}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width: int = 30, height: int = 10, alpha: bool = False) -> bytes:
    pix = pymupdf.Pixmap(pymupdf.csRGB, pymupdf.IRect(0, 0, width, height), alpha)
    pix.clear_with(200)
    return pix.tobytes("png")


def event(x: float, y: float, **kwargs) -> PointerEvent:
    return PointerEvent(x, y, **kwargs)


class FakeRenderDocument(RenderDocument):
    def __init__(self, backend: "FakeRenderBackend", pages: int):
        self._backend = backend
        self._pages = pages
        self.closed = False

    @property
    def page_count(self) -> int:
        return self._pages

    def page_size(self, index, rotation=0):
        if index < 0 or index >= self._pages:
            raise IndexError(index)
        if rotation % 180:
            return PAGE_HEIGHT, PAGE_WIDTH
        return PAGE_WIDTH, PAGE_HEIGHT

    def render(self, index, scale, rotation=0):
        width, height = self.page_size(index, rotation)
        self._backend.renders.append((index, scale, rotation))
        return Raster(b"raster", int(width * scale), int(height * scale))

    def close(self):
        self.closed = True


class FakeRenderBackend(RenderBackend):
    """Decodes b"FAKE:<n>" into an n-page document of 600x800 pages."""

    def __init__(self):
        self.decoded: List[bytes] = []
        self.renders: List[tuple] = []
        self.fail = False

    def decode(self, data):
        if self.fail or not data.startswith(b"FAKE:"):
            raise DecodeError("not a fake document")
        self.decoded.append(data)
        return FakeRenderDocument(self, int(data[5:]))


class FakeImageCodec(ImageCodec):
    """Every b"IMG" payload is a 300x100 image."""

    def image_size(self, data):
        if not data.startswith(b"IMG"):
            raise DecodeError("not an image")
        return 300, 100

    def encode(self, data):
        self.image_size(data)
        return data

    def image_to_pdf(self, data):
        self.image_size(data)
        return fake_pdf(1)


class RecordingOutputPage(OutputPage):
    def __init__(self, source: bytes, index: int):
        self.source = source
        self.index = index
        self._rotation = 0
        self.calls: List[tuple] = []

    @property
    def width(self):
        return PAGE_HEIGHT if self._rotation % 180 else PAGE_WIDTH

    @property
    def height(self):
        return PAGE_WIDTH if self._rotation % 180 else PAGE_HEIGHT

    @property
    def rotation(self):
        return self._rotation

    def set_rotation(self, degrees):
        self._rotation = degrees

    def draw_rectangle(self, x, y, width, height, color=(1.0, 1.0, 1.0), opacity=1.0):
        self.calls.append(("rect", x, y, width, height, color))

    def draw_text(
        self, text, x, y, size, font, color=(0.0, 0.0, 0.0), opacity=1.0, rotate=0.0
    ):
        self.calls.append(("text", text, x, y, size, font, color, opacity, rotate))

    def draw_image(self, data, x, y, width, height):
        self.calls.append(("image", data, x, y, width, height))


class RecordingOutputDocument(OutputDocument):
    def __init__(self):
        self.pages: List[RecordingOutputPage] = []
        self.fonts: List[str] = []
        self.closed = False
        self.password = None

    def copy_pages(self, source, indices):
        return [RecordingOutputPage(source, i) for i in indices]

    def add_page(self, page):
        self.pages.append(page)
        return page

    def embed_font(self, font):
        if font.file is not None and not font.file.exists():
            raise ExportError(f"missing {font.file}")
        self.fonts.append(font.name)
        return font.name

    def save(self, password=None):
        self.password = password
        return b"%PDF-recorded " + str(len(self.pages)).encode()

    def close(self):
        self.closed = True


class RecordingOutputBackend(OutputBackend):
    def __init__(self):
        self.documents: List[RecordingOutputDocument] = []

    def create_document(self):
        doc = RecordingOutputDocument()
        self.documents.append(doc)
        return doc

    @property
    def last(self) -> RecordingOutputDocument:
        return self.documents[-1]


@pytest.fixture
def config():
    return EditorConfig()


@pytest.fixture
def render_backend():
    return FakeRenderBackend()


@pytest.fixture
def output_backend():
    return RecordingOutputBackend()


@pytest.fixture
def make_session(config, render_backend, output_backend):
    def factory(pages: int = 3) -> EditorSession:
        session = EditorSession(
            config, render_backend, output_backend, FakeImageCodec()
        )
        if pages:
            asyncio.run(session.add_files([("doc.pdf", fake_pdf(pages))]))
            for i in range(pages):
                session.render_page(i, PAGE_WIDTH)
        return session

    return factory


@pytest.fixture
def session(make_session):
    """Three 600x800 pages rendered at scale 1, history cleared."""
    session = make_session(3)
    session.history.structure.clear()
    session.notices.clear()
    return session
