"""
Collaborator backends - rendering, image codec and output document.
"""

from .base import (
    ImageCodec,
    OutputBackend,
    OutputDocument,
    OutputPage,
    Raster,
    RenderBackend,
    RenderDocument,
)
from .pymupdf import (
    PyMuPDFImageCodec,
    PyMuPDFOutputBackend,
    PyMuPDFRenderBackend,
)

__all__ = [
    "ImageCodec",
    "OutputBackend",
    "OutputDocument",
    "OutputPage",
    "Raster",
    "RenderBackend",
    "RenderDocument",
    "PyMuPDFImageCodec",
    "PyMuPDFOutputBackend",
    "PyMuPDFRenderBackend",
]
