"""
User interaction handlers - pointer state machine and gestures.
"""

from .gestures import DoubleTapDetector, PinchTracker
from .pointer import InteractionHandler

__all__ = ["InteractionHandler", "PinchTracker", "DoubleTapDetector"]
