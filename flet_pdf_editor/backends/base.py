"""
Abstract collaborator protocols.

The editor core never touches a PDF library directly. Rendering, image
decoding and output-document construction go through these interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..fonts import ResolvedFont
from ..types import Color


@dataclass(frozen=True)
class Raster:
    """An encoded raster image and its pixel size."""

    data: bytes
    width: int
    height: int


class RenderDocument(ABC):
    """A decoded source document that can be rasterized page by page."""

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages in the document."""
        ...

    @abstractmethod
    def page_size(self, index: int, rotation: int = 0) -> Tuple[float, float]:
        """Displayed page size in document units, including ``rotation``."""
        ...

    @abstractmethod
    def render(self, index: int, scale: float, rotation: int = 0) -> Raster:
        """Rasterize a page.

        Args:
            index: Page index (0-based)
            scale: Pixels per document unit
            rotation: Extra clockwise rotation in degrees (multiple of 90)

        Returns:
            The encoded page image
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release resources."""
        ...

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class RenderBackend(ABC):
    """Document rendering collaborator."""

    @abstractmethod
    def decode(self, data: bytes) -> RenderDocument:
        """Open document bytes. Raises DecodeError if they are not a document."""
        ...


class ImageCodec(ABC):
    """Image decoding and encoding collaborator."""

    @abstractmethod
    def image_size(self, data: bytes) -> Tuple[int, int]:
        """Pixel size of an encoded image. Raises DecodeError."""
        ...

    @abstractmethod
    def encode(self, data: bytes) -> bytes:
        """Re-encode an image: PNG if it has transparency, JPEG otherwise."""
        ...

    @abstractmethod
    def image_to_pdf(self, data: bytes) -> bytes:
        """Wrap an image in a one-page document the size of the image."""
        ...


class OutputPage(ABC):
    """A page of the document being built.

    Drawing coordinates are document units with the origin at the bottom-left
    of the page as displayed (after rotation).
    """

    @property
    @abstractmethod
    def width(self) -> float:
        """Displayed page width."""
        ...

    @property
    @abstractmethod
    def height(self) -> float:
        """Displayed page height."""
        ...

    @property
    @abstractmethod
    def rotation(self) -> int:
        ...

    @abstractmethod
    def set_rotation(self, degrees: int) -> None:
        ...

    @abstractmethod
    def draw_rectangle(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        color: Color = (1.0, 1.0, 1.0),
        opacity: float = 1.0,
    ) -> None:
        """Fill a rectangle whose bottom-left corner is (x, y)."""
        ...

    @abstractmethod
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
        """Draw one line of text.

        Args:
            text: The line to draw
            x: Baseline origin, horizontal
            y: Baseline origin, vertical
            size: Font size in document units
            font: Handle returned by OutputDocument.embed_font
            color: RGB fill color
            opacity: Fill opacity
            rotate: Counter-clockwise rotation about the origin, in degrees
        """
        ...

    @abstractmethod
    def draw_image(
        self, data: bytes, x: float, y: float, width: float, height: float
    ) -> None:
        """Draw an encoded image into the box whose bottom-left is (x, y)."""
        ...


class OutputDocument(ABC):
    """Document output collaborator."""

    @abstractmethod
    def copy_pages(self, source: bytes, indices: List[int]) -> List[OutputPage]:
        """Copy pages of a source document. They are not placed until add_page."""
        ...

    @abstractmethod
    def add_page(self, page: OutputPage) -> OutputPage:
        """Append a copied page to the end of the document."""
        ...

    @abstractmethod
    def embed_font(self, font: ResolvedFont) -> str:
        """Make a font available for drawing and return its handle.

        Raises ExportError when a font file cannot be read.
        """
        ...

    @abstractmethod
    def save(self, password: Optional[str] = None) -> bytes:
        """Serialize the document, encrypted when a password is given."""
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class OutputBackend(ABC):
    """Factory for output documents."""

    @abstractmethod
    def create_document(self) -> OutputDocument:
        ...
