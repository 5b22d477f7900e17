"""
Shared data types for the PDF editor.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple


class Tool(Enum):
    """Active editing tool."""

    SELECT = "select"
    WHITEOUT = "whiteout"
    TEXT = "text"
    SIGNATURE = "signature"
    PARAF = "paraf"


class Corner(Enum):
    """Resize handle position."""

    TOP_LEFT = "tl"
    TOP_RIGHT = "tr"
    BOTTOM_LEFT = "bl"
    BOTTOM_RIGHT = "br"

    @property
    def is_left(self) -> bool:
        return self in (Corner.TOP_LEFT, Corner.BOTTOM_LEFT)

    @property
    def is_top(self) -> bool:
        return self in (Corner.TOP_LEFT, Corner.TOP_RIGHT)

    @property
    def cursor(self) -> str:
        """Resize cursor name for this corner."""
        if self in (Corner.TOP_LEFT, Corner.BOTTOM_RIGHT):
            return "nwse-resize"
        return "nesw-resize"


class InteractionMode(Enum):
    """States of the pointer interaction state machine."""

    IDLE = "idle"
    DRAWING = "drawing"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    PLACING_SIGNATURE = "placing_signature"
    EDITING_TEXT = "editing_text"


class AnnotationKind(Enum):
    """Annotation variant tag."""

    WHITEOUT = "whiteout"
    TEXT = "text"
    SIGNATURE = "signature"
    WATERMARK = "watermark"
    PAGE_NUMBER = "pageNumber"


class NoticeLevel(Enum):
    """Severity of a user-visible notice."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def _new_uid() -> str:
    return uuid.uuid4().hex


# ==============================================================================
# Documents and pages
# ==============================================================================


@dataclass(frozen=True)
class SourceDocument:
    """An ingested file. Never mutated after ingestion."""

    source_id: str
    name: str
    raw_bytes: bytes = field(repr=False)
    page_count: int
    is_image: bool = False


@dataclass(frozen=True)
class PageDescriptor:
    """Lightweight page description stored in structural history."""

    source_id: str
    source_page_index: int
    rotation: int
    is_single_image_page: bool
    uid: str


@dataclass(eq=False)
class PageEntry:
    """A page currently in the working document.

    Compared by identity: two entries pointing at the same source page are
    still different pages.
    """

    source_id: str
    source_page_index: int
    source_label: str
    rotation: int = 0
    is_single_image_page: bool = False
    raster_size: Tuple[float, float] = (0.0, 0.0)
    thumbnail: Optional[bytes] = field(default=None, repr=False)
    uid: str = field(default_factory=_new_uid)

    def descriptor(self) -> PageDescriptor:
        return PageDescriptor(
            source_id=self.source_id,
            source_page_index=self.source_page_index,
            rotation=self.rotation,
            is_single_image_page=self.is_single_image_page,
            uid=self.uid,
        )


@dataclass
class PageScale:
    """Raster size a page was last rendered at, versus its document size."""

    scale: float
    document_width: float
    document_height: float
    raster_width: float
    raster_height: float

    @property
    def scale_x(self) -> float:
        """Document units per raster pixel, horizontally."""
        return self.document_width / self.raster_width

    @property
    def scale_y(self) -> float:
        """Document units per raster pixel, vertically."""
        return self.document_height / self.raster_height


# ==============================================================================
# Annotations
# ==============================================================================


@dataclass
class Annotation:
    """Base for all annotation variants. Coordinates are raster pixels."""

    kind: ClassVar[AnnotationKind]
    interactive: ClassVar[bool] = True

    x: float
    y: float


@dataclass
class WhiteoutAnnotation(Annotation):
    """Opaque white rectangle."""

    kind: ClassVar[AnnotationKind] = AnnotationKind.WHITEOUT

    width: float = 0.0
    height: float = 0.0


@dataclass
class TextAnnotation(Annotation):
    """Text block. ``y`` is the baseline of the first line."""

    kind: ClassVar[AnnotationKind] = AnnotationKind.TEXT

    text: str = ""
    font_size: float = 16.0
    font_family: str = "Helvetica"
    bold: bool = False
    italic: bool = False
    color: str = "#000000"
    # Set while the inline editor covers the annotation; never snapshotted
    editing: bool = field(default=False, compare=False)

    @property
    def lines(self) -> List[str]:
        return self.text.split("\n")


@dataclass
class SignatureAnnotation(Annotation):
    """Signature image placed on a page."""

    kind: ClassVar[AnnotationKind] = AnnotationKind.SIGNATURE

    width: float = 0.0
    height: float = 0.0
    image_id: str = ""
    locked: bool = False
    subtype: Optional[str] = None

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass
class WatermarkAnnotation(Annotation):
    """Rotated, translucent text. ``x``/``y`` is the center."""

    kind: ClassVar[AnnotationKind] = AnnotationKind.WATERMARK
    interactive: ClassVar[bool] = False

    text: str = "WATERMARK"
    font_size: float = 48.0
    color: str = "#808080"
    opacity: float = 0.3
    rotation: float = -45.0


@dataclass
class PageNumberAnnotation(Annotation):
    """Page number label. ``x``/``y`` is the text origin."""

    kind: ClassVar[AnnotationKind] = AnnotationKind.PAGE_NUMBER
    interactive: ClassVar[bool] = False

    text: str = ""
    font_size: float = 12.0
    color: str = "#000000"
    position: str = "bottom-center"


@dataclass(frozen=True)
class AnnotationRef:
    """Weak reference to an annotation by position. Revalidate before use."""

    page_index: int
    annotation_index: int


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned box in raster pixels."""

    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return (
            self.x <= px <= self.x + self.width
            and self.y <= py <= self.y + self.height
        )

    def corners(self) -> Dict[Corner, Tuple[float, float]]:
        return {
            Corner.TOP_LEFT: (self.x, self.y),
            Corner.TOP_RIGHT: (self.x + self.width, self.y),
            Corner.BOTTOM_LEFT: (self.x, self.y + self.height),
            Corner.BOTTOM_RIGHT: (self.x + self.width, self.y + self.height),
        }


# ==============================================================================
# Input and settings
# ==============================================================================


@dataclass(frozen=True)
class PointerEvent:
    """A pointer position in client (screen) coordinates."""

    client_x: float
    client_y: float
    pointer_id: int = 0
    pointer_type: str = "mouse"  # "mouse", "touch" or "pen"
    timestamp: float = 0.0  # seconds


@dataclass(frozen=True)
class SurfaceMetrics:
    """Where a raster surface is displayed and how large its backing store is."""

    left: float
    top: float
    client_width: float
    client_height: float
    pixel_width: float
    pixel_height: float
    device_pixel_ratio: float = 1.0


@dataclass
class TextSettings:
    """Values collected by the text dialog."""

    text: str
    font_size: float = 16.0
    font_family: str = "Helvetica"
    bold: bool = False
    italic: bool = False
    color: str = "#000000"


@dataclass
class WatermarkSettings:
    """Values collected by the watermark dialog."""

    text: str = "WATERMARK"
    font_size: float = 48.0
    color: str = "#808080"
    opacity: float = 0.3
    rotation: float = -45.0


@dataclass(frozen=True)
class Notice:
    """A toast-style message for the user."""

    message: str
    level: NoticeLevel = NoticeLevel.INFO


@dataclass
class RenderResult:
    """Everything needed to paint one page."""

    base_image: Optional[bytes]
    width: float
    height: float
    shapes: List = field(default_factory=list)
    images: List[Tuple[bytes, float, float, float, float]] = field(
        default_factory=list
    )


# Type aliases for clarity
Color = Tuple[float, float, float]
Point = Tuple[float, float]
AnnotationMap = Dict[int, List[Annotation]]
