"""
Editor session - owns the document, history and collaborators.

All entry points used by UI chrome live here: file ingestion, tool
selection, annotation confirm/delete, undo/redo for both history stacks,
page operations and export. Failures are reported as notices through
``on_notice`` rather than raised.

Usage:
    session = EditorSession()
    await session.add_files(["contract.pdf"])
    session.render_page(0, max_width=800)
    ...
    data = await session.build_output()
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Callable,
    Deque,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from . import export
from .backends.base import ImageCodec, OutputBackend, Raster, RenderBackend, RenderDocument
from .backends.pymupdf import (
    PyMuPDFImageCodec,
    PyMuPDFOutputBackend,
    PyMuPDFRenderBackend,
)
from .config import MB, EditorConfig
from .document import EditorDocument
from .errors import BusyError, DecodeError, ExportError, IngestionError, RestoreError
from .fonts import FontMetrics
from .history import (
    AnnotationSnapshot,
    EditHistory,
    StructureSnapshot,
    restore_annotations,
    snapshot_annotations,
    snapshot_structure,
)
from .interactions.pointer import InteractionHandler
from .pages import PageManager
from .rendering.renderer import PageRenderer, hit_test
from .types import (
    AnnotationKind,
    AnnotationRef,
    Notice,
    NoticeLevel,
    PageEntry,
    PageNumberAnnotation,
    PageScale,
    RenderResult,
    SignatureAnnotation,
    SourceDocument,
    TextAnnotation,
    TextSettings,
    Tool,
    WatermarkAnnotation,
    WatermarkSettings,
)

logger = logging.getLogger(__name__)

FileInput = Union[str, Path, Tuple[str, bytes]]

PDF_EXTENSIONS = {".pdf"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}

DEFAULT_PAGE_WIDTH = 800.0

PAGE_NUMBER_FORMATS = ("number", "page-of", "dash")
PAGE_NUMBER_POSITIONS = (
    "bottom-center",
    "bottom-left",
    "bottom-right",
    "top-center",
    "top-left",
    "top-right",
)


@dataclass(frozen=True)
class PendingSignature:
    """A decoded signature waiting for a placement click."""

    image_id: str
    width: float
    height: float


class EditorSession:
    """One editing session: a working document and everything that edits it."""

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        render_backend: Optional[RenderBackend] = None,
        output_backend: Optional[OutputBackend] = None,
        image_codec: Optional[ImageCodec] = None,
    ):
        self.config = config or EditorConfig()
        self.render_backend = render_backend or PyMuPDFRenderBackend()
        self.output_backend = output_backend or PyMuPDFOutputBackend()
        self.image_codec = image_codec or PyMuPDFImageCodec()

        self.document = EditorDocument()
        self.history = EditHistory(self.config.undo_limit)
        self.metrics = FontMetrics(self.config.font_files)
        self.renderer = PageRenderer(self.metrics, self.history.images, self.config)
        self.pages = PageManager(self.document, self.history.structure, self.notify)

        self.tool = Tool.SELECT
        self.zoom = self.config.clamp_zoom(self.config.zoom)
        self.signature_image_id: Optional[str] = None
        self.signature_size: Tuple[float, float] = (0.0, 0.0)
        self.pending_signature: Optional[PendingSignature] = None
        # Resolved by page uid and annotation identity, not by position
        self.pending_text_position: Optional[Tuple[PageEntry, float, float]] = None
        self.editing_text: Optional[TextAnnotation] = None

        # Busy flags guarding the asynchronous operations
        self.is_loading_files = False
        self.is_restoring = False
        self.is_exporting = False
        # Bumped by reset(); results of older operations are discarded
        self.generation = 0

        self.notices: Deque[Notice] = deque(maxlen=self.config.notice_history)
        self.on_notice: Optional[Callable[[Notice], None]] = None
        self.on_redraw: Optional[Callable[[int], None]] = None
        self.on_pages_changed: Optional[Callable[[], None]] = None
        self.on_zoom: Optional[Callable[[float], None]] = None
        self.on_text_requested: Optional[Callable[[int, float, float], None]] = None

        self._render_docs: Dict[str, RenderDocument] = {}
        # Pristine rasters keyed by (page uid, rotation)
        self._rasters: Dict[Tuple[str, int], Raster] = {}

        self.interactions = InteractionHandler(self)

    # ==========================================================================
    # Notices and redraw requests
    # ==========================================================================

    def notify(self, message: str, level: NoticeLevel = NoticeLevel.INFO) -> None:
        """Post a toast-style notice."""
        notice = Notice(message, level)
        self.notices.append(notice)
        logger.debug("Notice [%s] %s", level.value, message)
        if self.on_notice is not None:
            self.on_notice(notice)

    def request_redraw(self, page_index: int) -> None:
        if self.on_redraw is not None and 0 <= page_index < self.document.page_count:
            self.on_redraw(page_index)

    def _redraw_all(self) -> None:
        for index in range(self.document.page_count):
            self.request_redraw(index)

    def _pages_changed(self) -> None:
        if self.on_pages_changed is not None:
            self.on_pages_changed()

    @contextmanager
    def _busy(self, flag: str, message: str):
        """Hold one of the busy flags for the duration of an operation."""
        if getattr(self, flag):
            raise BusyError(message)
        generation = self.generation
        setattr(self, flag, True)
        try:
            yield
        finally:
            # A reset in between already cleared the flag for its own generation
            if generation == self.generation:
                setattr(self, flag, False)

    # ==========================================================================
    # Ingestion
    # ==========================================================================

    async def add_files(self, files: Iterable[FileInput]) -> int:
        """Add PDFs and images to the end of the document.

        Each file is validated on its own; a bad file is reported and skipped
        while the rest of the batch continues. Returns the number of pages
        added.
        """
        try:
            with self._busy("is_loading_files", "Files are still loading"):
                return await self._add_files(files)
        except BusyError as exc:
            logger.warning("Ignored add_files: %s", exc)
            self.notify(str(exc), NoticeLevel.WARNING)
            return 0

    async def _add_files(self, files: Iterable[FileInput]) -> int:
        generation = self.generation
        loaded: List[Tuple[SourceDocument, List[PageEntry], RenderDocument]] = []

        for item in files:
            try:
                name, data = _read_input(item)
                loaded.append(self._ingest(name, data))
            except IngestionError as exc:
                logger.warning("Skipped %s: %s", exc.name, exc.reason)
                self.notify(str(exc), NoticeLevel.ERROR)
            # Let the UI breathe between files
            await asyncio.sleep(0)

        if generation != self.generation:
            logger.info("Session was reset during loading, discarding files")
            for _, _, render_doc in loaded:
                render_doc.close()
            return 0
        if not loaded:
            return 0

        self.pages.save_undo_state()
        added = 0
        for source, entries, render_doc in loaded:
            self.document.add_source(source)
            self._render_docs[source.source_id] = render_doc
            self.document.append_pages(entries)
            added += len(entries)

        logger.info("Loaded %d file(s), %d page(s)", len(loaded), added)
        self.notify(f"Added {added} page(s)", NoticeLevel.SUCCESS)
        self._pages_changed()
        return added

    def _ingest(
        self, name: str, data: bytes
    ) -> Tuple[SourceDocument, List[PageEntry], RenderDocument]:
        suffix = Path(name).suffix.lower()
        is_image = suffix in IMAGE_EXTENSIONS
        if suffix not in PDF_EXTENSIONS and not is_image:
            raise IngestionError(name, "unsupported file type")

        size = len(data)
        if size > self.config.file_size_limit:
            raise IngestionError(
                name, f"file is larger than {self.config.file_size_limit // MB} MB"
            )
        if size > self.config.file_size_warning:
            self.notify(
                f"{name} is {size / MB:.1f} MB and may be slow to process",
                NoticeLevel.INFO,
            )

        try:
            pdf_bytes = self.image_codec.image_to_pdf(data) if is_image else data
            render_doc = self.render_backend.decode(pdf_bytes)
        except DecodeError as exc:
            raise IngestionError(name, str(exc)) from exc

        try:
            page_count = render_doc.page_count
            if page_count == 0:
                raise IngestionError(name, "document has no pages")

            source = SourceDocument(
                source_id=uuid.uuid4().hex,
                name=name,
                raw_bytes=pdf_bytes,
                page_count=page_count,
                is_image=is_image,
            )
            entries = []
            for i in range(page_count):
                entry = PageEntry(
                    source_id=source.source_id,
                    source_page_index=i,
                    source_label=name if is_image else f"{name} - page {i + 1}",
                    is_single_image_page=is_image,
                )
                thumb = render_doc.render(i, self.config.thumbnail_scale)
                entry.thumbnail = thumb.data
                entries.append(entry)
        except IngestionError:
            render_doc.close()
            raise
        except (DecodeError, RuntimeError) as exc:
            render_doc.close()
            raise IngestionError(name, f"could not render: {exc}") from exc

        return source, entries, render_doc

    # ==========================================================================
    # Rendering
    # ==========================================================================

    def _render_document(self, source_id: str) -> RenderDocument:
        render_doc = self._render_docs.get(source_id)
        if render_doc is None:
            source = self.document.sources.get(source_id)
            if source is None:
                raise KeyError(source_id)
            render_doc = self.render_backend.decode(source.raw_bytes)
            self._render_docs[source_id] = render_doc
        return render_doc

    def render_page(self, index: int, max_width: Optional[float] = None) -> Raster:
        """Rasterize a page and record the scale export will use.

        A page keeps the scale it was first rendered at so that annotation
        coordinates stay valid; pass ``max_width`` to fit it again. Zoom is
        applied by the view when displaying the raster.
        """
        entry = self.document.page(index)
        render_doc = self._render_document(entry.source_id)
        width, height = render_doc.page_size(entry.source_page_index, entry.rotation)

        recorded = self.document.page_scale(index)
        if recorded is not None and max_width is None:
            scale = recorded.scale
        else:
            scale = (max_width or DEFAULT_PAGE_WIDTH) / width
            scale = max(
                self.config.min_render_scale, min(self.config.max_render_scale, scale)
            )

        raster = render_doc.render(entry.source_page_index, scale, entry.rotation)
        entry.raster_size = (raster.width, raster.height)
        self.document.set_page_scale(
            index, PageScale(scale, width, height, raster.width, raster.height)
        )
        self._rasters[(entry.uid, entry.rotation)] = raster
        logger.debug(
            "Rendered page %d at %.2f (%dx%d)", index, scale, raster.width, raster.height
        )
        return raster

    def render_thumbnail(self, index: int) -> bytes:
        entry = self.document.page(index)
        render_doc = self._render_document(entry.source_id)
        raster = render_doc.render(
            entry.source_page_index, self.config.thumbnail_scale, entry.rotation
        )
        entry.thumbnail = raster.data
        return raster.data

    def redraw_page(self, index: int) -> RenderResult:
        """Pristine raster plus every annotation of the page, in list order."""
        entry = self.document.page(index)
        raster = self._rasters.get((entry.uid, entry.rotation))
        if raster is None:
            raster = self.render_page(index)

        selected = self.document.selected_annotation
        selected_index = (
            selected.annotation_index
            if selected is not None and selected.page_index == index
            else None
        )
        result = self.renderer.render(
            raster.data,
            raster.width,
            raster.height,
            self.document.annotations.get(index, []),
            selected_index,
        )

        draft = self.interactions.draft_bounds(index)
        if draft is not None:
            self.renderer.render_draft(draft, result.shapes)
        preview = self.interactions.preview_bounds(index)
        if preview is not None:
            self.renderer.render_signature_preview(
                self.pending_signature.image_id, preview, result.shapes, result.images
            )
        return result

    def raster_size(self, index: int) -> Tuple[float, float]:
        scale = self.document.page_scale(index)
        if scale is None:
            # Unrendered pages export at scale 1.0, so report the document size
            entry = self.document.page(index)
            render_doc = self._render_document(entry.source_id)
            return render_doc.page_size(entry.source_page_index, entry.rotation)
        return scale.raster_width, scale.raster_height

    # ==========================================================================
    # Zoom
    # ==========================================================================

    def _set_zoom(self, zoom: float) -> float:
        self.zoom = self.config.clamp_zoom(zoom)
        logger.debug("Zoom %.2f", self.zoom)
        if self.on_zoom is not None:
            self.on_zoom(self.zoom)
        return self.zoom

    def zoom_in(self) -> float:
        return self._set_zoom(self.zoom + self.config.zoom_step)

    def zoom_out(self) -> float:
        return self._set_zoom(self.zoom - self.config.zoom_step)

    def zoom_reset(self) -> float:
        return self._set_zoom(1.0)

    # ==========================================================================
    # Tools and selection
    # ==========================================================================

    def set_tool(self, tool: Tool) -> None:
        previous = self.tool
        self.tool = tool
        logger.debug("Tool %s -> %s", previous.value, tool.value)

        if tool is not Tool.SELECT and self.document.selected_annotation is not None:
            page = self.document.selected_annotation.page_index
            self.document.selected_annotation = None
            self.request_redraw(page)

        if tool in (Tool.SIGNATURE, Tool.PARAF):
            if self.signature_image_id is not None:
                width, height = self.signature_size
                self.pending_signature = PendingSignature(
                    self.signature_image_id, width, height
                )
        else:
            self.pending_signature = None

        if tool is not Tool.TEXT:
            self.pending_text_position = None

    def select_page(self, index: int) -> None:
        self.document.page(index)
        self.document.selected_page = index

    def hit_test(self, page_index: int, x: float, y: float) -> Optional[AnnotationRef]:
        return hit_test(
            self.document.annotations.get(page_index, []),
            page_index,
            x,
            y,
            self.metrics,
            self.config.line_height,
        )

    @property
    def has_signatures(self) -> bool:
        return any(
            anno.kind is AnnotationKind.SIGNATURE
            for annotations in self.document.annotations.values()
            for anno in annotations
        )

    # ==========================================================================
    # Annotation history
    # ==========================================================================

    def snapshot_annotations(self) -> AnnotationSnapshot:
        return snapshot_annotations(self.document.pages, self.document.annotations)

    def push_annotation_state(self, snapshot: Optional[AnnotationSnapshot] = None) -> None:
        """Record annotation content before a mutation."""
        if snapshot is None:
            snapshot = self.snapshot_annotations()
        self.history.annotations.push_state(snapshot)

    def _apply_annotations(self, snapshot: AnnotationSnapshot) -> None:
        self.editing_text = None
        self.interactions.end_text_edit()
        self.document.replace_annotations(
            restore_annotations(snapshot, self.document.pages)
        )
        self.document.selected_annotation = None
        self._redraw_all()

    def undo(self) -> bool:
        """Undo the last annotation change."""
        state = self.history.annotations.undo(self.snapshot_annotations())
        if state is None:
            return False
        self._apply_annotations(state)
        return True

    def redo(self) -> bool:
        """Redo the last undone annotation change."""
        state = self.history.annotations.redo(self.snapshot_annotations())
        if state is None:
            return False
        self._apply_annotations(state)
        return True

    # ==========================================================================
    # Signatures
    # ==========================================================================

    async def set_signature_image(self, data: bytes) -> Optional[str]:
        """Decode and register a signature image, then arm placement."""
        generation = self.generation
        try:
            width, height = self.image_codec.image_size(data)
            encoded = self.image_codec.encode(data)
        except DecodeError:
            logger.exception("Signature image could not be decoded")
            self.notify("Could not load the signature image", NoticeLevel.ERROR)
            return None
        await asyncio.sleep(0)
        if generation != self.generation or width <= 0 or height <= 0:
            return None

        image_id = self.history.images.intern(encoded)
        default_width = self.config.signature_default_width
        self.signature_image_id = image_id
        self.signature_size = (default_width, default_width * height / width)
        if self.tool in (Tool.SIGNATURE, Tool.PARAF):
            self.pending_signature = PendingSignature(image_id, *self.signature_size)
        logger.info("Signature image registered (%dx%d)", width, height)
        return image_id

    def place_signature(
        self, x: float, y: float, page_index: Optional[int] = None
    ) -> Optional[AnnotationRef]:
        """Place the current signature centered on (x, y).

        With the paraf tool the signature goes on every page at the same
        position, as a single undo step.
        """
        if self.signature_image_id is None:
            self.notify("Add a signature image first", NoticeLevel.WARNING)
            return None
        if page_index is None:
            page_index = self.document.selected_page
        self.document.page(page_index)

        width, height = self.signature_size
        paraf = self.tool is Tool.PARAF
        targets = range(self.document.page_count) if paraf else [page_index]

        self.push_annotation_state()
        ref = None
        for target in targets:
            placed = self.document.add_annotation(
                target,
                SignatureAnnotation(
                    x=x - width / 2,
                    y=y - height / 2,
                    width=width,
                    height=height,
                    image_id=self.signature_image_id,
                    subtype="paraf" if paraf else None,
                ),
            )
            if target == page_index:
                ref = placed

        self.set_tool(Tool.SELECT)
        self.document.selected_annotation = ref
        if paraf:
            self._redraw_all()
            self.notify(
                f"Paraf added to {self.document.page_count} page(s)", NoticeLevel.SUCCESS
            )
        else:
            self.request_redraw(page_index)
        return ref

    def confirm_signature(self, ref: Optional[AnnotationRef] = None) -> bool:
        """Lock a signature in place."""
        ref = ref or self.document.selected_annotation
        anno = self.document.get_annotation(ref)
        if anno is None or anno.kind is not AnnotationKind.SIGNATURE or anno.locked:
            return False
        self.push_annotation_state()
        anno.locked = True
        self.document.selected_annotation = None
        self.request_redraw(ref.page_index)
        self.notify("Signature confirmed", NoticeLevel.SUCCESS)
        return True

    def delete_annotation(self, ref: Optional[AnnotationRef] = None) -> bool:
        ref = ref or self.document.selected_annotation
        if self.document.get_annotation(ref) is None:
            return False
        if self.editing_text is not None:
            self._end_text_edit()
        self.push_annotation_state()
        self.document.remove_annotation(ref)
        self.request_redraw(ref.page_index)
        return True

    # ==========================================================================
    # Text
    # ==========================================================================

    def request_text(self, page_index: int, x: float, y: float) -> None:
        """Remember where new text goes and ask the UI for its content."""
        self.pending_text_position = (self.document.page(page_index), x, y)
        if self.on_text_requested is not None:
            self.on_text_requested(page_index, x, y)

    def confirm_text(self, settings: TextSettings) -> Optional[AnnotationRef]:
        if not settings.text.strip():
            self.notify("Text cannot be empty", NoticeLevel.ERROR)
            return None
        if self.pending_text_position is None:
            self.notify("Click on the page where the text should go", NoticeLevel.WARNING)
            return None

        page, x, y = self.pending_text_position
        page_index = self.document.index_of_page(page)
        if page_index is None:
            self.pending_text_position = None
            self.notify("That page was removed; click on a page again", NoticeLevel.WARNING)
            return None
        self.push_annotation_state()
        ref = self.document.add_annotation(
            page_index,
            TextAnnotation(
                x=x,
                y=y,
                text=settings.text,
                font_size=self.config.clamp_font_size(settings.font_size),
                font_family=settings.font_family,
                bold=settings.bold,
                italic=settings.italic,
                color=settings.color,
            ),
        )
        self.set_tool(Tool.SELECT)
        self.document.selected_annotation = ref
        self.request_redraw(page_index)
        return ref

    def begin_text_edit(self, ref: AnnotationRef) -> bool:
        """Hide a text annotation behind the inline editor."""
        anno = self.document.get_annotation(ref)
        if anno is None or anno.kind is not AnnotationKind.TEXT:
            return False
        if self.editing_text is not None:
            self.cancel_text_edit()
        anno.editing = True
        self.editing_text = anno
        self.document.selected_annotation = ref
        self.request_redraw(ref.page_index)
        return True

    def _end_text_edit(self) -> Optional[TextAnnotation]:
        """Close the inline editor. Returns the annotation if it still exists."""
        anno = self.editing_text
        self.editing_text = None
        self.interactions.end_text_edit()
        if anno is None:
            return None
        anno.editing = False
        ref = self.document.locate(anno)
        if ref is None:
            return None
        self.request_redraw(ref.page_index)
        return anno

    def commit_text_edit(self, new_text: str) -> bool:
        """Save inline edits. Blank or unchanged text records nothing."""
        anno = self._end_text_edit()
        if anno is None:
            return False
        text = new_text.strip()
        if not text or text == anno.text:
            return False
        self.push_annotation_state()
        anno.text = text
        self.request_redraw(self.document.locate(anno).page_index)
        return True

    def cancel_text_edit(self) -> None:
        self._end_text_edit()

    def _drop_detached_edit(self) -> None:
        """Close the inline editor if its annotation left the page sequence."""
        if self.editing_text is not None and self.document.locate(self.editing_text) is None:
            self._end_text_edit()

    # ==========================================================================
    # Watermark, page numbers, clearing
    # ==========================================================================

    def apply_watermark(
        self, settings: Optional[WatermarkSettings] = None, apply_to: str = "current"
    ) -> int:
        """Center a watermark on the current page or on all pages."""
        if apply_to not in ("current", "all"):
            raise ValueError(f"apply_to must be 'current' or 'all', got {apply_to!r}")
        if not self.document.pages:
            self.notify("No pages loaded", NoticeLevel.WARNING)
            return 0
        if settings is None:
            config = self.config
            settings = WatermarkSettings(
                config.watermark_text,
                config.watermark_font_size,
                config.watermark_color,
                config.watermark_opacity,
                config.watermark_rotation,
            )
        if not settings.text.strip():
            self.notify("Watermark text cannot be empty", NoticeLevel.ERROR)
            return 0

        current = max(0, self.document.selected_page)
        targets = range(self.document.page_count) if apply_to == "all" else [current]

        self.push_annotation_state()
        for index in targets:
            width, height = self.raster_size(index)
            self.document.add_annotation(
                index,
                WatermarkAnnotation(
                    x=width / 2,
                    y=height / 2,
                    text=settings.text,
                    font_size=settings.font_size,
                    color=settings.color,
                    opacity=settings.opacity,
                    rotation=settings.rotation,
                ),
            )
            self.request_redraw(index)

        self.notify("Watermark added", NoticeLevel.SUCCESS)
        return len(targets)

    def apply_page_numbers(
        self,
        position: str = "bottom-center",
        fmt: str = "number",
        font_size: Optional[float] = None,
        start: int = 1,
    ) -> int:
        """Number every page. Returns the number of labels added."""
        if position not in PAGE_NUMBER_POSITIONS:
            raise ValueError(f"Unknown page number position {position!r}")
        if fmt not in PAGE_NUMBER_FORMATS:
            raise ValueError(f"Unknown page number format {fmt!r}")
        count = self.document.page_count
        if not count:
            self.notify("No pages loaded", NoticeLevel.WARNING)
            return 0

        font_size = font_size or self.config.page_number_font_size
        margin = self.config.page_number_margin
        last = count + start - 1

        self.push_annotation_state()
        for index in range(count):
            number = index + start
            if fmt == "page-of":
                text = f"Page {number} of {last}"
            elif fmt == "dash":
                text = f"- {number} -"
            else:
                text = str(number)

            width, height = self.raster_size(index)
            text_width = self.metrics.text_width(text, font_size)
            vertical, horizontal = position.split("-")
            if horizontal == "left":
                x = margin
            elif horizontal == "right":
                x = width - margin - text_width
            else:
                x = width / 2 - text_width / 2
            y = margin + font_size if vertical == "top" else height - margin

            self.document.add_annotation(
                index,
                PageNumberAnnotation(
                    x=x, y=y, text=text, font_size=font_size, position=position
                ),
            )
            self.request_redraw(index)

        self.notify(f"Page numbers added to {count} page(s)", NoticeLevel.SUCCESS)
        return count

    def clear_page_annotations(self, index: Optional[int] = None) -> bool:
        if index is None:
            index = self.document.selected_page
        self.document.page(index)
        if not self.document.annotations.get(index):
            return False
        self.push_annotation_state()
        annotations = dict(self.document.annotations)
        annotations[index] = []
        self.document.replace_annotations(annotations)
        self.document.selected_annotation = None
        self.request_redraw(index)
        self.notify("Page annotations cleared", NoticeLevel.SUCCESS)
        return True

    # ==========================================================================
    # Page operations
    # ==========================================================================

    def move_page(self, from_index: int, to_index: int) -> bool:
        moved = self.pages.move_page(from_index, to_index)
        if moved:
            self._pages_changed()
        return moved

    def rotate_page(self, index: int, degrees: int = 90) -> int:
        rotation = self.pages.rotate_page(index, degrees)
        self.render_thumbnail(index)
        self._pages_changed()
        return rotation

    def delete_page(self, index: int) -> bool:
        deleted = self.pages.delete_page(index)
        if deleted:
            self._drop_detached_edit()
            self._pages_changed()
        return deleted

    def toggle_extract_mode(self) -> bool:
        enabled = self.pages.toggle_extract_mode()
        self._pages_changed()
        return enabled

    def toggle_extract_selection(self, index: int) -> bool:
        return self.pages.toggle_extract_selection(index)

    async def undo_pages(self) -> bool:
        """Undo the last structural change. Re-renders restored pages."""
        return await self._restore_structure(redo=False)

    async def redo_pages(self) -> bool:
        return await self._restore_structure(redo=True)

    async def _restore_structure(self, redo: bool) -> bool:
        stack = self.history.structure
        if not (stack.can_redo() if redo else stack.can_undo()):
            return False
        try:
            with self._busy("is_restoring", "A restore is already in progress"):
                generation = self.generation
                current = snapshot_structure(self.document.pages)
                state = stack.redo(current) if redo else stack.undo(current)
                try:
                    pages = await self._rebuild_pages(state)
                except RestoreError:
                    logger.exception("Structural %s failed", "redo" if redo else "undo")
                    if redo:
                        stack.revert_redo(state)
                    else:
                        stack.revert_undo(state)
                    self.notify("Could not restore pages", NoticeLevel.ERROR)
                    return False
        except BusyError as exc:
            logger.warning("Ignored structural %s: %s", "redo" if redo else "undo", exc)
            self.notify(str(exc), NoticeLevel.WARNING)
            return False

        if generation != self.generation:
            return False
        self.pages.apply_structure(pages)
        self._drop_detached_edit()
        self._pages_changed()
        self._redraw_all()
        return True

    async def _rebuild_pages(self, state: StructureSnapshot) -> List[PageEntry]:
        """Re-derive page entries (and thumbnails) from descriptors."""
        current = {page.uid: page for page in self.document.pages}
        pages = []
        for descriptor in state:
            source = self.document.sources.get(descriptor.source_id)
            if source is None:
                raise RestoreError(f"Source {descriptor.source_id} is not loaded")
            try:
                render_doc = self._render_document(descriptor.source_id)
                thumb = render_doc.render(
                    descriptor.source_page_index,
                    self.config.thumbnail_scale,
                    descriptor.rotation,
                )
            except (DecodeError, IndexError, RuntimeError) as exc:
                raise RestoreError(
                    f"Cannot render {source.name} page {descriptor.source_page_index}"
                ) from exc

            previous = current.get(descriptor.uid)
            pages.append(
                PageEntry(
                    source_id=descriptor.source_id,
                    source_page_index=descriptor.source_page_index,
                    source_label=previous.source_label
                    if previous is not None
                    else f"{source.name} - page {descriptor.source_page_index + 1}",
                    rotation=descriptor.rotation,
                    is_single_image_page=descriptor.is_single_image_page,
                    raster_size=previous.raster_size if previous else (0.0, 0.0),
                    thumbnail=thumb.data,
                    uid=descriptor.uid,
                )
            )
            await asyncio.sleep(0)
        return pages

    # ==========================================================================
    # Output
    # ==========================================================================

    async def build_output(self) -> Optional[bytes]:
        """Materialize the document. Returns None and posts a notice on failure."""
        data = await self._export("Could not build the document")
        if data is None:
            return None
        self.notify("Document ready", NoticeLevel.SUCCESS)
        return data

    async def build_protected_output(self, password: str, confirm: str) -> Optional[bytes]:
        """Materialize the document encrypted with ``password``.

        The same password opens the file and unlocks its permissions.
        """
        if not password:
            self.notify("Enter a password", NoticeLevel.ERROR)
            return None
        if password != confirm:
            self.notify("Passwords do not match", NoticeLevel.ERROR)
            return None
        data = await self._export("Could not protect the document", password)
        if data is None:
            return None
        self.notify("Document protected", NoticeLevel.SUCCESS)
        return data

    async def _export(
        self, failure: str, password: Optional[str] = None
    ) -> Optional[bytes]:
        if self.editing_text is not None:
            self.cancel_text_edit()
        try:
            with self._busy("is_exporting", "An export is already running"):
                generation = self.generation
                await asyncio.sleep(0)
                data = export.build_output(
                    self.document,
                    self.output_backend,
                    self.history.images,
                    self.metrics,
                    self.config.line_height,
                    password=password,
                )
        except BusyError as exc:
            self.notify(str(exc), NoticeLevel.WARNING)
            return None
        except ExportError:
            logger.exception("Export failed")
            self.notify(failure, NoticeLevel.ERROR)
            return None

        if generation != self.generation:
            return None
        return data

    async def extract_selected(self) -> Optional[bytes]:
        """New document from the pages checked in extract mode."""
        pages: Sequence[PageEntry] = self.pages.extract_pages()
        if not pages:
            self.notify("No pages selected", NoticeLevel.ERROR)
            return None
        try:
            with self._busy("is_exporting", "An export is already running"):
                generation = self.generation
                await asyncio.sleep(0)
                data = export.extract_pages(self.document, pages, self.output_backend)
        except BusyError as exc:
            self.notify(str(exc), NoticeLevel.WARNING)
            return None
        except ExportError:
            logger.exception("Extraction failed")
            self.notify("Could not extract pages", NoticeLevel.ERROR)
            return None

        if generation != self.generation:
            return None
        if self.pages.extract_mode:
            self.toggle_extract_mode()
        self.notify(f"Extracted {len(pages)} page(s)", NoticeLevel.SUCCESS)
        return data

    # ==========================================================================
    # Reset
    # ==========================================================================

    def reset(self) -> None:
        """Drop everything and start over."""
        self.generation += 1
        for render_doc in self._render_docs.values():
            render_doc.close()
        self._render_docs.clear()
        self._rasters.clear()

        self.document.clear()
        self.history.clear()
        self.pages.extract_mode = False
        self.pages.selected_for_extract = []
        self.interactions.reset()

        self.tool = Tool.SELECT
        self.zoom = self.config.clamp_zoom(self.config.zoom)
        self.signature_image_id = None
        self.signature_size = (0.0, 0.0)
        self.pending_signature = None
        self.pending_text_position = None
        self.editing_text = None
        self.is_loading_files = False
        self.is_restoring = False
        self.is_exporting = False

        logger.info("Session reset")
        self._pages_changed()


def _read_input(item: FileInput) -> Tuple[str, bytes]:
    if isinstance(item, tuple):
        return item
    path = Path(item)
    try:
        return path.name, path.read_bytes()
    except OSError as exc:
        raise IngestionError(path.name, f"cannot read file: {exc.strerror}") from exc
