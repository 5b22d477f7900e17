"""
Page manager: reorder, rotate, delete and extract-mode selection.

The annotation map is keyed by page position, so every move or delete is
followed by a reindex that rebuilds the whole map before swapping it in.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Sequence

from .document import EditorDocument
from .history import StructureSnapshot, UndoRedoStack, snapshot_structure
from .types import Annotation, AnnotationMap, NoticeLevel, PageEntry

logger = logging.getLogger(__name__)

Notify = Callable[[str, NoticeLevel], None]


def normalize_rotation(degrees: int) -> int:
    """Fold any multiple of 90 into 0, 90, 180 or 270."""
    if degrees % 90:
        raise ValueError(f"Rotation must be a multiple of 90, got {degrees}")
    return ((degrees % 360) + 360) % 360


def move_index_map(from_index: int, to_index: int, page_count: int) -> Dict[int, int]:
    """Old position -> new position after moving one page.

    ``to_index`` is the insertion index once the page has been removed.
    """
    index_map = {i: i for i in range(page_count)}
    if from_index < to_index:
        for i in range(from_index + 1, to_index + 1):
            index_map[i] = i - 1
    elif from_index > to_index:
        for i in range(to_index, from_index):
            index_map[i] = i + 1
    index_map[from_index] = to_index
    return index_map


def reindex_after_move(
    annotations: Mapping[int, List[Annotation]],
    from_index: int,
    to_index: int,
    page_count: int,
) -> AnnotationMap:
    index_map = move_index_map(from_index, to_index, page_count)
    logger.debug("Reindex move %d -> %d: %s", from_index, to_index, index_map)
    # Every old entry is read before any new key is written
    old = dict(annotations)
    return {index_map[i]: old.get(i, []) for i in range(page_count)}


def reindex_after_delete(
    annotations: Mapping[int, List[Annotation]], deleted_index: int, page_count: int
) -> AnnotationMap:
    """Drop the deleted key and shift every later key down by one.

    ``page_count`` is the count before the delete.
    """
    old = dict(annotations)
    return {
        (i - 1 if i > deleted_index else i): old.get(i, [])
        for i in range(page_count)
        if i != deleted_index
    }


class PageManager:
    """Structural operations on an EditorDocument."""

    def __init__(
        self,
        document: EditorDocument,
        history: UndoRedoStack[StructureSnapshot],
        notify: Notify,
    ):
        self._document = document
        self._history = history
        self._notify = notify

        self.extract_mode = False
        self.selected_for_extract: List[int] = []

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= self._document.page_count:
            raise IndexError(f"Page index {index} out of range")

    def save_undo_state(self) -> None:
        self._history.push_state(snapshot_structure(self._document.pages))

    # Reorder

    def move_page(self, from_index: int, to_index: int) -> bool:
        """Move a page so it ends up at ``to_index``."""
        doc = self._document
        self._check_index(from_index)
        self._check_index(to_index)
        if self.extract_mode:
            self._notify("Leave extract mode to reorder pages", NoticeLevel.WARNING)
            return False
        if from_index == to_index:
            return False

        self.save_undo_state()
        viewed = doc.viewed_page

        pages = list(doc.pages)
        moved = pages.pop(from_index)
        pages.insert(to_index, moved)
        annotations = reindex_after_move(
            doc.annotations, from_index, to_index, len(pages)
        )
        doc.replace_pages(pages, annotations)
        doc.follow_viewed_page(viewed)

        logger.info("Moved page %d to %d", from_index, to_index)
        return True

    # Rotate

    def rotate_page(self, index: int, degrees: int = 90) -> int:
        """Rotate a page by a multiple of 90 degrees. Returns the new rotation."""
        self._check_index(index)
        page = self._document.pages[index]
        new_rotation = normalize_rotation(page.rotation + degrees)

        self.save_undo_state()
        page.rotation = new_rotation
        logger.info("Rotated page %d to %d", index, new_rotation)
        self._notify("Page rotated", NoticeLevel.SUCCESS)
        return new_rotation

    # Delete

    def delete_page(self, index: int) -> bool:
        doc = self._document
        self._check_index(index)
        if doc.page_count <= 1:
            self._notify("Cannot delete the last page", NoticeLevel.ERROR)
            return False

        self.save_undo_state()
        was_viewing = doc.selected_page == index
        viewed = doc.viewed_page
        deleted = doc.pages[index]

        pages = doc.pages[:index] + doc.pages[index + 1 :]
        annotations = reindex_after_delete(doc.annotations, index, doc.page_count)
        doc.detach_annotations(deleted, doc.annotations.get(index, []))
        doc.replace_pages(pages, annotations)

        if was_viewing:
            doc.selected_page = min(index, len(pages) - 1)
        elif not doc.follow_viewed_page(viewed):
            doc.selected_page = max(0, doc.selected_page - 1)

        self.selected_for_extract = [
            i - 1 if i > index else i for i in self.selected_for_extract if i != index
        ]

        logger.info("Deleted page %d (%d left)", index, len(pages))
        self._notify("Page deleted", NoticeLevel.SUCCESS)
        return True

    # Structural restore

    def apply_structure(self, pages: List[PageEntry]) -> None:
        """Replace the page sequence with pages rebuilt from history.

        Annotations follow their page by uid. Pages that drop out of the
        sequence keep their annotations aside in case they come back.
        """
        doc = self._document
        viewed = doc.viewed_page
        by_uid = doc.annotations_by_uid()

        annotations = {i: by_uid.pop(page.uid, []) for i, page in enumerate(pages)}
        detached = {uid: annos for uid, annos in by_uid.items() if annos}
        doc.replace_pages(pages, annotations, detached)

        uids = [page.uid for page in pages]
        if viewed is not None and viewed.uid in uids:
            doc.selected_page = uids.index(viewed.uid)
        elif doc.selected_page >= len(pages):
            doc.selected_page = len(pages) - 1
        self.selected_for_extract = [
            i for i in self.selected_for_extract if i < len(pages)
        ]

    # Extract mode

    def toggle_extract_mode(self) -> bool:
        self.extract_mode = not self.extract_mode
        self.selected_for_extract = []
        logger.debug("Extract mode %s", "on" if self.extract_mode else "off")
        return self.extract_mode

    def toggle_extract_selection(self, index: int) -> bool:
        """Flip a page's extract checkbox. Returns whether it is now selected."""
        self._check_index(index)
        if not self.extract_mode:
            return False
        if index in self.selected_for_extract:
            self.selected_for_extract.remove(index)
            return False
        self.selected_for_extract.append(index)
        return True

    def select_all(self) -> None:
        if self.extract_mode:
            self.selected_for_extract = list(range(self._document.page_count))

    def deselect_all(self) -> None:
        self.selected_for_extract = []

    def extract_indices(self) -> List[int]:
        return sorted(self.selected_for_extract)

    def extract_pages(self) -> Sequence[PageEntry]:
        return [self._document.pages[i] for i in self.extract_indices()]
