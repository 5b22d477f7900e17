import asyncio

from flet_pdf_editor.history import (
    ImageRegistry,
    UndoRedoStack,
    restore_annotations,
    snapshot_annotations,
)
from flet_pdf_editor.types import (
    PageEntry,
    SignatureAnnotation,
    TextAnnotation,
    Tool,
    WhiteoutAnnotation,
)


class TestUndoRedoStack:
    def test_undo_and_redo_swap_states(self):
        stack = UndoRedoStack(max_size=5)
        stack.push_state("a")
        assert stack.undo("b") == "a"
        assert stack.redo("a") == "b"
        assert stack.can_undo()
        assert not stack.can_redo()

    def test_empty_stack_returns_none(self):
        stack = UndoRedoStack()
        assert stack.undo("x") is None
        assert stack.redo("x") is None

    def test_push_clears_redo(self):
        stack = UndoRedoStack()
        stack.push_state(1)
        stack.undo(2)
        assert stack.can_redo()
        stack.push_state(3)
        assert not stack.can_redo()

    def test_oldest_entry_is_evicted(self):
        stack = UndoRedoStack(max_size=3)
        for state in range(5):
            stack.push_state(state)
        assert stack.undo_stack == [2, 3, 4]

    def test_revert_undo_restores_both_stacks(self):
        stack = UndoRedoStack()
        stack.push_state("old")
        state = stack.undo("current")
        stack.revert_undo(state)
        assert stack.undo_stack == ["old"]
        assert stack.redo_stack == []


def test_image_registry_interns_by_content():
    registry = ImageRegistry()
    first = registry.intern(b"signature")
    second = registry.intern(b"signature")
    other = registry.intern(b"paraf")

    assert first == second
    assert first != other
    assert len(registry) == 2
    assert registry.get(first) == b"signature"


def test_snapshot_is_isolated_from_live_model():
    page = PageEntry(source_id="s", source_page_index=0, source_label="p1")
    live = {0: [WhiteoutAnnotation(x=1, y=2, width=3, height=4)]}
    snapshot = snapshot_annotations([page], live)

    live[0][0].x = 99
    live[0].append(WhiteoutAnnotation(x=0, y=0, width=1, height=1))

    restored = restore_annotations(snapshot, [page])
    assert restored == {0: [WhiteoutAnnotation(x=1, y=2, width=3, height=4)]}


def test_snapshot_follows_page_identity_not_position():
    first = PageEntry(source_id="s", source_page_index=0, source_label="p1")
    second = PageEntry(source_id="s", source_page_index=1, source_label="p2")
    snapshot = snapshot_annotations(
        [first, second], {0: [TextAnnotation(x=0, y=0, text="first")], 1: []}
    )

    restored = restore_annotations(snapshot, [second, first])
    assert restored[0] == []
    assert restored[1][0].text == "first"


def test_snapshot_drops_editing_flag():
    page = PageEntry(source_id="s", source_page_index=0, source_label="p1")
    text = TextAnnotation(x=0, y=0, text="t", editing=True)
    snapshot = snapshot_annotations([page], {0: [text]})
    assert snapshot[page.uid][0].editing is False


def test_undo_redo_inverse_with_signatures(session):
    image_id = asyncio.run(session.set_signature_image(b"IMG-1"))
    session.set_tool(Tool.SIGNATURE)
    session.place_signature(200, 200, 0)
    session.push_annotation_state()
    session.document.annotations[0][0].x = 10

    state = session.snapshot_annotations()
    assert session.undo()
    assert session.redo()
    assert session.snapshot_annotations() == state

    assert session.undo()
    undone = session.snapshot_annotations()
    assert session.redo()
    assert session.undo()
    assert session.snapshot_annotations() == undone

    # The image payload is never copied
    assert len(session.history.images) == 1
    for snapshot in session.history.annotations.undo_stack:
        for annotations in snapshot.values():
            for anno in annotations:
                assert anno.image_id == image_id


def test_annotation_snapshot_holds_only_image_ids(session):
    asyncio.run(session.set_signature_image(b"IMG-2"))
    session.set_tool(Tool.SIGNATURE)
    session.place_signature(100, 100, 1)
    snapshot = session.snapshot_annotations()
    (sig,) = snapshot[session.document.pages[1].uid]
    assert isinstance(sig, SignatureAnnotation)
    assert not hasattr(sig, "data")
    assert sig.image_id in session.history.images
