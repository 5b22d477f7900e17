"""
Annotation rendering - flet canvas shapes for page overlays.
"""

from .renderer import PageRenderer, hit_test

__all__ = ["PageRenderer", "hit_test"]
