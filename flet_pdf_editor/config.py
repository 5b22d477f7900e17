"""
Editor configuration.

All tunable constants live here so a session can be built with different
limits (tests use small ones).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

# Custom font families shipped as files: family -> {(bold, italic): filename}
CUSTOM_FONT_FILES: Dict[str, Dict[Tuple[bool, bool], str]] = {
    "Montserrat": {
        (False, False): "Montserrat-Regular.ttf",
        (True, False): "Montserrat-Bold.ttf",
        (False, True): "Montserrat-Italic.ttf",
        (True, True): "Montserrat-BoldItalic.ttf",
    },
    "Carlito": {
        (False, False): "Carlito-Regular.ttf",
        (True, False): "Carlito-Bold.ttf",
        (False, True): "Carlito-Italic.ttf",
        (True, True): "Carlito-BoldItalic.ttf",
    },
}

MB = 1024 * 1024


@dataclass
class EditorConfig:
    """Limits and defaults used by an editor session."""

    # History
    undo_limit: int = 50

    # Signatures
    signature_default_width: float = 150.0
    signature_min_width: float = 50.0

    # Drawing and handles
    whiteout_min_size: float = 5.0
    handle_tolerance: float = 12.0
    handle_size: float = 8.0
    selection_color: str = "#3B82F6"
    locked_color: str = "#10B981"

    # Text
    min_font_size: float = 6.0
    max_font_size: float = 120.0
    text_min_width: float = 20.0
    line_height: float = 1.2

    # Touch
    double_tap_delay: float = 0.3  # seconds
    double_tap_distance: float = 30.0
    pinch_threshold: float = 30.0

    # Zoom and rendering
    zoom: float = 1.0
    min_zoom: float = 0.5
    max_zoom: float = 3.0
    zoom_step: float = 0.25
    min_render_scale: float = 0.25
    max_render_scale: float = 4.0
    thumbnail_scale: float = 0.5

    # Ingestion
    file_size_warning: int = 20 * MB
    file_size_limit: int = 100 * MB

    # Page numbers
    page_number_margin: float = 30.0
    page_number_font_size: float = 12.0

    # Watermark defaults
    watermark_text: str = "WATERMARK"
    watermark_font_size: float = 48.0
    watermark_color: str = "#808080"
    watermark_opacity: float = 0.3
    watermark_rotation: float = -45.0

    # Notices kept in EditorSession.notices
    notice_history: int = 100

    fonts_dir: Optional[Union[str, Path]] = None
    font_files: Dict[str, Dict[Tuple[bool, bool], Path]] = field(
        default_factory=dict
    )

    def __post_init__(self):
        if self.fonts_dir is not None and not self.font_files:
            base = Path(self.fonts_dir)
            self.font_files = {
                family: {style: base / name for style, name in files.items()}
                for family, files in CUSTOM_FONT_FILES.items()
            }

    def clamp_zoom(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, zoom))

    def clamp_font_size(self, size: float) -> float:
        return max(self.min_font_size, min(self.max_font_size, size))
