"""
The in-memory working document.

Pages are kept in display order. Annotations are keyed by the current page
position, so every structural change goes through one of the replace_*
methods, which swap in a fully built new state in a single assignment.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .types import (
    Annotation,
    AnnotationMap,
    AnnotationRef,
    PageEntry,
    PageScale,
    SourceDocument,
)


class EditorDocument:
    """Sources, page sequence and per-page annotations for one session."""

    def __init__(self):
        self.sources: Dict[str, SourceDocument] = {}
        self.pages: List[PageEntry] = []
        self.annotations: AnnotationMap = {}
        # Keyed by page uid; a page keeps its scale when it moves
        self.page_scales: Dict[str, PageScale] = {}
        # Annotations of deleted pages, so structural undo can bring them back
        self._detached: Dict[str, List[Annotation]] = {}

        self.selected_page: int = -1
        self.selected_annotation: Optional[AnnotationRef] = None

    # Pages

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page(self, index: int) -> PageEntry:
        if index < 0 or index >= len(self.pages):
            raise IndexError(f"Page index {index} out of range")
        return self.pages[index]

    def add_source(self, source: SourceDocument) -> None:
        self.sources[source.source_id] = source

    def append_pages(self, entries: Sequence[PageEntry]) -> None:
        """Append pages, each with an empty annotation list."""
        start = len(self.pages)
        self.pages.extend(entries)
        for offset in range(len(entries)):
            self.annotations[start + offset] = []
        if self.selected_page < 0 and self.pages:
            self.selected_page = 0

    def page_scale(self, index: int) -> Optional[PageScale]:
        return self.page_scales.get(self.page(index).uid)

    def set_page_scale(self, index: int, scale: PageScale) -> None:
        self.page_scales[self.page(index).uid] = scale

    @property
    def viewed_page(self) -> Optional[PageEntry]:
        if 0 <= self.selected_page < len(self.pages):
            return self.pages[self.selected_page]
        return None

    def follow_viewed_page(self, viewed: Optional[PageEntry]) -> bool:
        """Point selected_page at ``viewed`` again after a reorder.

        Returns False when the page is no longer in the sequence.
        """
        index = self.index_of_page(viewed)
        if index is None:
            return False
        self.selected_page = index
        return True

    # Annotations

    def annotations_for(self, page_index: int) -> List[Annotation]:
        return self.annotations.setdefault(page_index, [])

    def add_annotation(self, page_index: int, anno: Annotation) -> AnnotationRef:
        self.page(page_index)
        annotations = self.annotations_for(page_index)
        annotations.append(anno)
        return AnnotationRef(page_index, len(annotations) - 1)

    def get_annotation(self, ref: Optional[AnnotationRef]) -> Optional[Annotation]:
        """Resolve a reference, or None if it no longer points anywhere."""
        if ref is None:
            return None
        annotations = self.annotations.get(ref.page_index)
        if annotations is None or not 0 <= ref.annotation_index < len(annotations):
            return None
        return annotations[ref.annotation_index]

    def locate(self, anno: Optional[Annotation]) -> Optional[AnnotationRef]:
        """Current position of an annotation object, or None if it is gone."""
        if anno is None:
            return None
        for page_index, annotations in self.annotations.items():
            for annotation_index, candidate in enumerate(annotations):
                if candidate is anno:
                    return AnnotationRef(page_index, annotation_index)
        return None

    def index_of_page(self, page: Optional[PageEntry]) -> Optional[int]:
        """Current position of a page, matched by uid."""
        if page is None:
            return None
        for index, candidate in enumerate(self.pages):
            if candidate.uid == page.uid:
                return index
        return None

    def remove_annotation(self, ref: AnnotationRef) -> Annotation:
        if self.get_annotation(ref) is None:
            raise IndexError(f"No annotation at {ref}")
        removed = self.annotations[ref.page_index].pop(ref.annotation_index)
        # Any reference into a spliced list is stale
        if (
            self.selected_annotation is not None
            and self.selected_annotation.page_index == ref.page_index
        ):
            self.selected_annotation = None
        return removed

    @property
    def selected(self) -> Optional[Annotation]:
        return self.get_annotation(self.selected_annotation)

    def revalidate_selection(self) -> None:
        if self.get_annotation(self.selected_annotation) is None:
            self.selected_annotation = None

    def annotation_count(self) -> int:
        return sum(len(annotations) for annotations in self.annotations.values())

    # Atomic replacement

    def replace_annotations(self, annotations: AnnotationMap) -> None:
        """Swap in a complete annotation map for the current page sequence."""
        expected = set(range(len(self.pages)))
        if set(annotations) != expected:
            raise ValueError(
                f"Annotation keys {sorted(annotations)} do not match "
                f"{len(self.pages)} pages"
            )
        self.annotations = annotations
        self.revalidate_selection()

    def replace_pages(
        self,
        pages: List[PageEntry],
        annotations: AnnotationMap,
        detached: Optional[Dict[str, List[Annotation]]] = None,
    ) -> None:
        """Swap in a new page sequence together with its annotation map."""
        if set(annotations) != set(range(len(pages))):
            raise ValueError("Annotation keys do not match the new page sequence")
        self.pages = pages
        self.annotations = annotations
        if detached is not None:
            self._detached = detached
        self.selected_annotation = None

    def detach_annotations(self, page: PageEntry, annotations: List[Annotation]) -> None:
        if annotations:
            self._detached[page.uid] = annotations

    def annotations_by_uid(self) -> Dict[str, List[Annotation]]:
        """Current and detached annotations, keyed by page uid."""
        by_uid = dict(self._detached)
        for index, page in enumerate(self.pages):
            by_uid[page.uid] = self.annotations.get(index, [])
        return by_uid

    def is_consistent(self) -> bool:
        return set(self.annotations) == set(range(len(self.pages)))

    def clear(self) -> None:
        self.sources.clear()
        self.pages = []
        self.annotations = {}
        self.page_scales.clear()
        self._detached.clear()
        self.selected_page = -1
        self.selected_annotation = None
