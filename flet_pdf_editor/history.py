"""
Undo/redo history for page structure and annotation content.

Two independent stacks are kept: one of page-descriptor sequences and one of
annotation snapshots. Signature images never live in a snapshot; they are
interned once in an ImageRegistry and annotations refer to them by id.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import uuid
from typing import Dict, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .types import Annotation, AnnotationMap, PageDescriptor, PageEntry, TextAnnotation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Annotations keyed by page uid, so a snapshot survives page reordering
AnnotationSnapshot = Dict[str, Tuple[Annotation, ...]]
StructureSnapshot = Tuple[PageDescriptor, ...]


class UndoRedoStack(Generic[T]):
    """Bounded linear undo/redo history."""

    def __init__(self, max_size: int = 50, name: str = "history"):
        """
        Initialize the undo/redo stack.

        Args:
            max_size: Maximum number of states to keep in history
            name: Label used in log messages
        """
        self.undo_stack: List[T] = []
        self.redo_stack: List[T] = []
        self.max_size = max_size
        self.name = name

    def push_state(self, state: T) -> None:
        """Record the state as it was before a mutation."""
        self.undo_stack.append(state)

        # A new action invalidates anything that was undone
        self.redo_stack.clear()

        if len(self.undo_stack) > self.max_size:
            self.undo_stack.pop(0)
        logger.debug("%s push (depth %d)", self.name, len(self.undo_stack))

    def can_undo(self) -> bool:
        return len(self.undo_stack) > 0

    def can_redo(self) -> bool:
        return len(self.redo_stack) > 0

    def undo(self, current_state: T) -> Optional[T]:
        """
        Pop the previous state, parking the current one for redo.

        Args:
            current_state: State of the model before undo

        Returns:
            State to restore, or None if there is nothing to undo
        """
        if not self.can_undo():
            return None
        self.redo_stack.append(current_state)
        logger.debug("%s undo (depth %d)", self.name, len(self.undo_stack) - 1)
        return self.undo_stack.pop()

    def redo(self, current_state: T) -> Optional[T]:
        """
        Pop the next state, parking the current one for undo.

        Args:
            current_state: State of the model before redo

        Returns:
            State to restore, or None if there is nothing to redo
        """
        if not self.can_redo():
            return None
        self.undo_stack.append(current_state)
        logger.debug("%s redo (depth %d)", self.name, len(self.redo_stack) - 1)
        return self.redo_stack.pop()

    def revert_undo(self, state: T) -> None:
        """Put back a state returned by undo() that could not be applied."""
        self.redo_stack.pop()
        self.undo_stack.append(state)

    def revert_redo(self, state: T) -> None:
        """Put back a state returned by redo() that could not be applied."""
        self.undo_stack.pop()
        self.redo_stack.append(state)

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()


class ImageRegistry:
    """Content-addressed store for image payloads.

    Interning the same bytes twice returns the same id, so any number of
    annotations and history snapshots share a single copy.
    """

    def __init__(self):
        self._images: Dict[str, bytes] = {}
        self._ids_by_digest: Dict[str, str] = {}

    def intern(self, data: bytes) -> str:
        digest = hashlib.sha256(data).hexdigest()
        image_id = self._ids_by_digest.get(digest)
        if image_id is None:
            image_id = uuid.uuid4().hex
            self._ids_by_digest[digest] = image_id
            self._images[image_id] = data
        return image_id

    def get(self, image_id: str) -> bytes:
        return self._images[image_id]

    def __contains__(self, image_id: str) -> bool:
        return image_id in self._images

    def __len__(self) -> int:
        return len(self._images)

    def clear(self) -> None:
        self._images.clear()
        self._ids_by_digest.clear()


def copy_annotation(anno: Annotation) -> Annotation:
    """Deep copy with transient editing state dropped."""
    clone = copy.deepcopy(anno)
    if isinstance(clone, TextAnnotation):
        clone.editing = False
    return clone


def snapshot_annotations(
    pages: Sequence[PageEntry], annotations: Mapping[int, List[Annotation]]
) -> AnnotationSnapshot:
    return {
        page.uid: tuple(copy_annotation(a) for a in annotations.get(i, ()))
        for i, page in enumerate(pages)
    }


def restore_annotations(
    snapshot: AnnotationSnapshot, pages: Sequence[PageEntry]
) -> AnnotationMap:
    """Materialize a snapshot against the current page order.

    Pages the snapshot does not know about come back empty.
    """
    return {
        i: [copy_annotation(a) for a in snapshot.get(page.uid, ())]
        for i, page in enumerate(pages)
    }


def snapshot_structure(pages: Sequence[PageEntry]) -> StructureSnapshot:
    return tuple(page.descriptor() for page in pages)


class EditHistory:
    """Both history stacks plus the image registry they share."""

    def __init__(self, max_size: int = 50):
        self.structure: UndoRedoStack[StructureSnapshot] = UndoRedoStack(
            max_size, "structure"
        )
        self.annotations: UndoRedoStack[AnnotationSnapshot] = UndoRedoStack(
            max_size, "annotations"
        )
        self.images = ImageRegistry()

    def clear(self) -> None:
        self.structure.clear()
        self.annotations.clear()
        self.images.clear()
