"""
Flet PDF Editor

Annotation and page editing for PDF documents, built with Flet Canvas and
PyMuPDF. Whiteout, text, signatures, watermarks and page numbers are drawn
on page rasters and projected into the document on export.

Usage:
    import flet as ft
    from flet_pdf_editor import EditorSession, PdfEditorView, Tool

    async def main(page: ft.Page):
        session = EditorSession()
        view = PdfEditorView(session)
        page.add(view.control)
        await session.add_files(["/path/to/file.pdf"])
        session.set_tool(Tool.WHITEOUT)

    ft.app(main)
"""

from __future__ import annotations

from .config import EditorConfig
from .errors import (
    BusyError,
    DecodeError,
    EditorError,
    ExportError,
    IngestionError,
    RestoreError,
)
from .session import EditorSession
from .types import (
    AnnotationKind,
    AnnotationRef,
    Notice,
    NoticeLevel,
    PageNumberAnnotation,
    SignatureAnnotation,
    TextAnnotation,
    TextSettings,
    Tool,
    WatermarkAnnotation,
    WatermarkSettings,
    WhiteoutAnnotation,
)
from .viewer import PdfEditorView

__version__ = "0.1.0"

__all__ = [
    "EditorSession",
    "PdfEditorView",
    "EditorConfig",
    "Tool",
    "AnnotationKind",
    "AnnotationRef",
    "WhiteoutAnnotation",
    "TextAnnotation",
    "SignatureAnnotation",
    "WatermarkAnnotation",
    "PageNumberAnnotation",
    "TextSettings",
    "WatermarkSettings",
    "Notice",
    "NoticeLevel",
    "EditorError",
    "IngestionError",
    "DecodeError",
    "RestoreError",
    "ExportError",
    "BusyError",
    "__version__",
]
