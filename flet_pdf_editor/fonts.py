"""
Font family resolution and text metrics.

The same metrics are used for hit testing, selection handles and export so
that what the user grabs on screen is what ends up in the document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import pymupdf

from .config import CUSTOM_FONT_FILES

logger = logging.getLogger(__name__)

DEFAULT_FAMILY = "Helvetica"

# Base-14 font codes understood by PyMuPDF, keyed by (bold, italic)
STANDARD_FONTS: Dict[str, Dict[Tuple[bool, bool], str]] = {
    "Helvetica": {
        (False, False): "helv",
        (True, False): "hebo",
        (False, True): "heit",
        (True, True): "hebi",
    },
    "Times-Roman": {
        (False, False): "tiro",
        (True, False): "tibo",
        (False, True): "tiit",
        (True, True): "tibi",
    },
    "Courier": {
        (False, False): "cour",
        (True, False): "cobo",
        (False, True): "coit",
        (True, True): "cobi",
    },
}

# Family names used for on-screen text
DISPLAY_FAMILIES = {
    "Helvetica": "Helvetica",
    "Times-Roman": "Times New Roman",
    "Courier": "Courier New",
    "Montserrat": "Montserrat",
    "Carlito": "Carlito",
}

_STYLE_SUFFIX = {
    (False, False): "Regular",
    (True, False): "Bold",
    (False, True): "Italic",
    (True, True): "BoldItalic",
}

_warned_families: set = set()


@dataclass(frozen=True)
class ResolvedFont:
    """A concrete font for one family/style combination."""

    name: str  # base-14 code, or "<Family>-<Style>" for file fonts
    file: Optional[Path] = None
    fallback: str = "helv"


def _fallback_code(bold: bool) -> str:
    return "hebo" if bold else "helv"


def resolve_font(
    family: Optional[str],
    bold: bool = False,
    italic: bool = False,
    font_files: Optional[Dict[str, Dict[Tuple[bool, bool], Path]]] = None,
) -> ResolvedFont:
    """Map a family name and style to a concrete font.

    Unknown families fall back to Helvetica in the requested style. Custom
    families without a configured file fall back to Helvetica (bold kept).
    """
    family = family or DEFAULT_FAMILY
    style = (bool(bold), bool(italic))

    if family in STANDARD_FONTS:
        return ResolvedFont(STANDARD_FONTS[family][style])

    if family in CUSTOM_FONT_FILES:
        name = f"{family}-{_STYLE_SUFFIX[style]}"
        path = (font_files or {}).get(family, {}).get(style)
        if path is None:
            return ResolvedFont(_fallback_code(style[0]))
        return ResolvedFont(name, Path(path), _fallback_code(style[0]))

    if family not in _warned_families:
        _warned_families.add(family)
        logger.warning("Unknown font family %r, falling back to Helvetica", family)
    return ResolvedFont(STANDARD_FONTS[DEFAULT_FAMILY][style])


def display_family(family: Optional[str]) -> str:
    return DISPLAY_FAMILIES.get(family or DEFAULT_FAMILY, DISPLAY_FAMILIES[DEFAULT_FAMILY])


class FontMetrics:
    """Measures text widths with PyMuPDF fonts.

    Font objects are loaded lazily and cached. A custom font whose file is
    missing or unreadable is measured with its fallback instead.
    """

    def __init__(
        self, font_files: Optional[Dict[str, Dict[Tuple[bool, bool], Path]]] = None
    ):
        self._font_files = font_files or {}
        self._fonts: Dict[str, pymupdf.Font] = {}
        self._failed: set = set()

    def resolve(self, family: Optional[str], bold: bool, italic: bool) -> ResolvedFont:
        return resolve_font(family, bold, italic, self._font_files)

    def _load(self, font: ResolvedFont) -> pymupdf.Font:
        if font.name in self._fonts:
            return self._fonts[font.name]

        if font.file is not None and font.name not in self._failed:
            try:
                loaded = pymupdf.Font(fontfile=str(font.file))
            except (RuntimeError, OSError):
                logger.warning(
                    "Could not load font %s from %s, using %s",
                    font.name,
                    font.file,
                    font.fallback,
                )
                self._failed.add(font.name)
            else:
                self._fonts[font.name] = loaded
                return loaded

        code = font.fallback if font.file is not None else font.name
        if code not in self._fonts:
            self._fonts[code] = pymupdf.Font(fontname=code)
        return self._fonts[code]

    def text_width(
        self,
        text: str,
        font_size: float,
        family: Optional[str] = DEFAULT_FAMILY,
        bold: bool = False,
        italic: bool = False,
    ) -> float:
        """Width of a single line of text in the same units as ``font_size``."""
        if not text:
            return 0.0
        font = self._load(self.resolve(family, bold, italic))
        return font.text_length(text, fontsize=font_size)
