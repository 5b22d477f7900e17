import asyncio

import pytest

from conftest import SURFACE, event
from flet_pdf_editor.types import (
    AnnotationRef,
    InteractionMode,
    NoticeLevel,
    SignatureAnnotation,
    TextAnnotation,
    TextSettings,
    Tool,
    WhiteoutAnnotation,
)


def click(handler, page, x, y, **kwargs):
    handler.pointer_down(page, event(x, y, **kwargs), SURFACE)
    handler.pointer_up(page, event(x, y, **kwargs), SURFACE)


def drag(handler, page, start, end):
    handler.pointer_down(page, event(*start), SURFACE)
    handler.pointer_move(page, event(*end), SURFACE)
    handler.pointer_up(page, event(*end), SURFACE)


def add_signature(session, page=0, x=100, y=100, locked=False):
    image_id = session.history.images.intern(b"IMG")
    ref = session.document.add_annotation(
        page,
        SignatureAnnotation(
            x=x, y=y, width=150, height=50, image_id=image_id, locked=locked
        ),
    )
    return ref


@pytest.fixture
def handler(session):
    return session.interactions


class TestWhiteout:
    def test_draw_then_undo_redo(self, session, handler):
        session.set_tool(Tool.WHITEOUT)
        handler.pointer_down(1, event(10, 10), SURFACE)
        assert handler.mode is InteractionMode.DRAWING
        handler.pointer_move(1, event(60, 30), SURFACE)
        handler.pointer_up(1, event(60, 30), SURFACE)

        expected = WhiteoutAnnotation(x=10, y=10, width=50, height=20)
        assert session.document.annotations[1] == [expected]
        assert handler.mode is InteractionMode.IDLE

        assert session.undo()
        assert session.document.annotations[1] == []
        assert session.redo()
        assert session.document.annotations[1] == [expected]

    def test_drawing_backwards_normalizes(self, session, handler):
        session.set_tool(Tool.WHITEOUT)
        drag(handler, 0, (60, 30), (10, 10))
        assert session.document.annotations[0] == [
            WhiteoutAnnotation(x=10, y=10, width=50, height=20)
        ]

    def test_small_draft_is_discarded(self, session, handler):
        session.set_tool(Tool.WHITEOUT)
        drag(handler, 0, (10, 10), (14, 40))
        assert session.document.annotations[0] == []
        assert not session.history.annotations.can_undo()

    def test_draft_is_rendered_while_drawing(self, session, handler):
        session.set_tool(Tool.WHITEOUT)
        handler.pointer_down(0, event(10, 10), SURFACE)
        handler.pointer_move(0, event(50, 50), SURFACE)
        assert handler.draft_bounds(0) is not None
        assert handler.draft_bounds(1) is None
        assert len(session.redraw_page(0).shapes) == 2

    def test_leaving_cancels_draft(self, session, handler):
        session.set_tool(Tool.WHITEOUT)
        handler.pointer_down(0, event(10, 10), SURFACE)
        handler.pointer_move(0, event(80, 80), SURFACE)
        handler.pointer_leave()
        assert handler.mode is InteractionMode.IDLE
        assert session.document.annotations[0] == []


class TestSelectAndDrag:
    def test_drag_moves_and_records_once(self, session, handler):
        session.document.add_annotation(0, WhiteoutAnnotation(x=10, y=10, width=50, height=50))

        handler.pointer_down(0, event(20, 20), SURFACE)
        assert handler.mode is InteractionMode.DRAGGING
        handler.pointer_move(0, event(30, 25), SURFACE)
        handler.pointer_move(0, event(70, 40), SURFACE)
        handler.pointer_up(0, event(70, 40), SURFACE)

        moved = session.document.annotations[0][0]
        assert (moved.x, moved.y) == (60, 30)
        assert len(session.history.annotations.undo_stack) == 1

        session.undo()
        restored = session.document.annotations[0][0]
        assert (restored.x, restored.y) == (10, 10)

    def test_click_without_movement_records_nothing(self, session, handler):
        session.document.add_annotation(0, WhiteoutAnnotation(x=10, y=10, width=50, height=50))
        click(handler, 0, 20, 20)

        assert session.document.selected_annotation == AnnotationRef(0, 0)
        assert not session.history.annotations.can_undo()

    def test_topmost_is_selected(self, session, handler):
        session.document.add_annotation(0, WhiteoutAnnotation(x=0, y=0, width=100, height=100))
        session.document.add_annotation(0, WhiteoutAnnotation(x=50, y=50, width=100, height=100))
        click(handler, 0, 75, 75)
        assert session.document.selected_annotation == AnnotationRef(0, 1)

    def test_click_on_empty_space_clears_selection(self, session, handler):
        session.document.add_annotation(0, WhiteoutAnnotation(x=10, y=10, width=50, height=50))
        click(handler, 0, 20, 20)
        click(handler, 0, 400, 400)
        assert session.document.selected_annotation is None

    def test_text_drag_keeps_grab_offset(self, session, handler):
        session.document.add_annotation(0, TextAnnotation(x=100, y=100, text="Hello", font_size=20))
        drag(handler, 0, (105, 95), (205, 145))
        text = session.document.annotations[0][0]
        assert (text.x, text.y) == (200, 150)

    def test_leaving_commits_drag(self, session, handler):
        session.document.add_annotation(0, WhiteoutAnnotation(x=10, y=10, width=50, height=50))
        handler.pointer_down(0, event(20, 20), SURFACE)
        handler.pointer_move(0, event(40, 20), SURFACE)
        handler.pointer_leave()

        assert session.document.annotations[0][0].x == 30
        assert session.history.annotations.can_undo()
        assert handler.mode is InteractionMode.IDLE


class TestLockedSignature:
    def test_locked_signature_does_not_move(self, session, handler):
        add_signature(session, locked=True)
        drag(handler, 0, (120, 120), (300, 300))

        sig = session.document.annotations[0][0]
        assert (sig.x, sig.y) == (100, 100)
        assert session.document.selected_annotation == AnnotationRef(0, 0)
        assert not session.history.annotations.can_undo()

    def test_locked_notice_is_shown_once(self, session, handler):
        add_signature(session, locked=True)
        click(handler, 0, 120, 120)
        click(handler, 0, 120, 120)

        locked = [n for n in session.notices if "locked" in n.message]
        assert len(locked) == 1
        assert locked[0].level is NoticeLevel.INFO

    def test_locked_notice_returns_after_clicking_elsewhere(self, session, handler):
        add_signature(session, locked=True)
        click(handler, 0, 120, 120)
        click(handler, 0, 500, 700)
        click(handler, 0, 120, 120)

        locked = [n for n in session.notices if "locked" in n.message]
        assert len(locked) == 2

    def test_locked_notice_tracks_the_signature_not_its_slot(self, session, handler):
        add_signature(session, locked=True)
        click(handler, 0, 120, 120)
        session.delete_annotation(AnnotationRef(0, 0))
        add_signature(session, x=300, y=300, locked=True)
        click(handler, 0, 320, 320)

        locked = [n for n in session.notices if "locked" in n.message]
        assert len(locked) == 2

    def test_double_click_unlocks(self, session, handler):
        add_signature(session, locked=True)
        handler.double_click(0, 120, 120)

        assert session.document.annotations[0][0].locked is False
        assert session.history.annotations.can_undo()
        drag(handler, 0, (120, 120), (130, 120))
        assert session.document.annotations[0][0].x == 110

    def test_double_tap_unlocks(self, session, handler):
        add_signature(session, locked=True)
        click(handler, 0, 120, 120, pointer_type="touch", timestamp=10.0)
        click(handler, 0, 122, 121, pointer_type="touch", timestamp=10.2)
        assert session.document.annotations[0][0].locked is False

    def test_confirm_locks_and_deselects(self, session):
        ref = add_signature(session)
        session.document.selected_annotation = ref
        assert session.confirm_signature()
        assert session.document.annotations[0][0].locked
        assert session.document.selected_annotation is None
        assert session.confirm_signature(ref) is False


class TestResize:
    def test_signature_resize_from_corner(self, session, handler):
        add_signature(session)
        click(handler, 0, 150, 120)  # select

        handler.pointer_down(0, event(250, 150), SURFACE)
        assert handler.mode is InteractionMode.RESIZING
        handler.pointer_move(0, event(400, 200), SURFACE)
        handler.pointer_up(0, event(400, 200), SURFACE)

        sig = session.document.annotations[0][0]
        assert sig.width == 300
        assert sig.width / sig.height == pytest.approx(3.0)
        assert (sig.x, sig.y) == (100, 100)
        assert len(session.history.annotations.undo_stack) == 1

    def test_hover_shows_resize_cursor(self, session, handler):
        add_signature(session)
        click(handler, 0, 150, 120)

        handler.pointer_move(0, event(251, 151), SURFACE)
        assert handler.cursor == "nwse-resize"
        handler.pointer_move(0, event(250, 100), SURFACE)
        assert handler.cursor == "nesw-resize"
        handler.pointer_move(0, event(150, 120), SURFACE)
        assert handler.cursor == "move"
        handler.pointer_move(0, event(500, 500), SURFACE)
        assert handler.cursor == "default"


class TestSignaturePlacement:
    def test_pending_signature_is_placed_on_down(self, session, handler):
        asyncio.run(session.set_signature_image(b"IMG-sig"))
        session.set_tool(Tool.SIGNATURE)
        assert handler.mode is InteractionMode.PLACING_SIGNATURE

        handler.pointer_move(2, event(200, 200), SURFACE)
        assert handler.preview_bounds(2) is not None

        handler.pointer_down(2, event(200, 200), SURFACE)

        (sig,) = session.document.annotations[2]
        assert (sig.x, sig.y, sig.width, sig.height) == (125, 175, 150, 50)
        assert sig.subtype is None
        assert session.tool is Tool.SELECT
        assert session.pending_signature is None
        assert session.document.selected_annotation == AnnotationRef(2, 0)
        assert handler.preview_bounds(2) is None

    def test_paraf_goes_on_every_page_in_one_step(self, session, handler):
        asyncio.run(session.set_signature_image(b"IMG-paraf"))
        session.set_tool(Tool.PARAF)
        handler.pointer_down(1, event(300, 700), SURFACE)

        for i in range(3):
            (sig,) = session.document.annotations[i]
            assert sig.subtype == "paraf"
            assert (sig.x, sig.y) == (225, 675)
        assert len(session.history.annotations.undo_stack) == 1

        session.undo()
        assert all(not annos for annos in session.document.annotations.values())

    def test_bad_signature_image(self, session):
        assert asyncio.run(session.set_signature_image(b"garbage")) is None
        assert session.notices[-1].level is NoticeLevel.ERROR
        assert session.signature_image_id is None

    def test_switching_tool_cancels_placement(self, session):
        asyncio.run(session.set_signature_image(b"IMG-sig"))
        session.set_tool(Tool.SIGNATURE)
        session.set_tool(Tool.WHITEOUT)
        assert session.pending_signature is None


class TestText:
    def test_click_with_text_tool_requests_text(self, session, handler):
        requested = []
        session.on_text_requested = lambda *args: requested.append(args)
        session.set_tool(Tool.TEXT)
        click(handler, 1, 40, 60)

        assert requested == [(1, 40, 60)]
        ref = session.confirm_text(TextSettings(text="Hi", font_size=500))

        text = session.document.get_annotation(ref)
        assert (text.x, text.y, text.text) == (40, 60, "Hi")
        assert text.font_size == 120
        assert session.tool is Tool.SELECT

    def test_empty_text_is_rejected(self, session, handler):
        session.set_tool(Tool.TEXT)
        click(handler, 0, 40, 60)
        assert session.confirm_text(TextSettings(text="   ")) is None
        assert session.notices[-1].level is NoticeLevel.ERROR
        assert session.document.annotations[0] == []

    def test_double_click_opens_inline_editor(self, session, handler):
        session.document.add_annotation(0, TextAnnotation(x=100, y=100, text="Hello", font_size=20))
        handler.double_click(0, 105, 95)

        text = session.document.annotations[0][0]
        assert handler.mode is InteractionMode.EDITING_TEXT
        assert text.editing
        assert session.redraw_page(0).shapes == []

        assert session.commit_text_edit("  Changed  ")
        assert text.text == "Changed"
        assert not text.editing
        assert handler.mode is InteractionMode.IDLE

        session.undo()
        assert session.document.annotations[0][0].text == "Hello"

    def test_unchanged_inline_edit_records_nothing(self, session, handler):
        session.document.add_annotation(0, TextAnnotation(x=100, y=100, text="Hello", font_size=20))
        handler.double_click(0, 105, 95)
        assert session.commit_text_edit("Hello ") is False
        assert not session.history.annotations.can_undo()

    def test_inline_edit_follows_moved_page(self, session, handler):
        text = TextAnnotation(x=100, y=100, text="Hello", font_size=20)
        whiteout = WhiteoutAnnotation(x=0, y=0, width=50, height=50)
        session.document.add_annotation(0, text)
        session.document.add_annotation(1, whiteout)
        handler.double_click(0, 105, 95)

        assert session.move_page(0, 2)
        assert session.commit_text_edit("Changed")

        assert session.document.annotations[2] == [text]
        assert text.text == "Changed"
        assert not text.editing
        assert session.document.annotations[0] == [whiteout]

    def test_inline_edit_survives_structural_undo(self, session, handler):
        text = TextAnnotation(x=100, y=100, text="Hello", font_size=20)
        session.document.add_annotation(0, text)
        handler.double_click(0, 105, 95)

        session.move_page(0, 2)
        assert asyncio.run(session.undo_pages())
        assert session.editing_text is text
        assert session.commit_text_edit("Changed")
        assert session.document.annotations[0][0].text == "Changed"

    def test_deleting_edited_page_closes_inline_editor(self, session, handler):
        text = TextAnnotation(x=100, y=100, text="Hello", font_size=20)
        session.document.add_annotation(0, text)
        handler.double_click(0, 105, 95)

        assert session.delete_page(0)
        assert session.editing_text is None
        assert handler.mode is InteractionMode.IDLE
        assert not text.editing
        assert session.commit_text_edit("Changed") is False

        asyncio.run(session.undo_pages())
        assert session.document.annotations[0] == [text]
        assert session.redraw_page(0).shapes != []

    def test_deleting_neighbour_keeps_edited_text_visible(self, session, handler):
        whiteout = WhiteoutAnnotation(x=300, y=300, width=50, height=50)
        text = TextAnnotation(x=100, y=100, text="Hello", font_size=20)
        session.document.add_annotation(0, whiteout)
        session.document.add_annotation(0, text)
        handler.double_click(0, 105, 95)

        assert session.delete_annotation(AnnotationRef(0, 0))
        assert not text.editing
        assert session.editing_text is None
        assert session.document.annotations[0] == [text]
        assert session.redraw_page(0).shapes != []

    def test_pointer_down_closes_inline_editor(self, session, handler):
        text = TextAnnotation(x=100, y=100, text="Hello", font_size=20)
        session.document.add_annotation(0, text)
        handler.double_click(0, 105, 95)

        handler.pointer_down(0, event(105, 95), SURFACE)
        assert handler.mode is not InteractionMode.EDITING_TEXT
        assert not text.editing
        assert session.editing_text is None
        handler.pointer_up(0, event(105, 95), SURFACE)
        assert text.text == "Hello"

    def test_pending_text_on_deleted_page_is_dropped(self, session, handler):
        session.set_tool(Tool.TEXT)
        click(handler, 2, 40, 60)
        session.delete_page(2)

        assert session.confirm_text(TextSettings(text="hi")) is None
        assert session.notices[-1].level is NoticeLevel.WARNING
        assert session.pending_text_position is None
        assert session.document.annotation_count() == 0

    def test_pending_text_follows_moved_page(self, session, handler):
        session.set_tool(Tool.TEXT)
        click(handler, 0, 40, 60)
        session.move_page(0, 2)

        ref = session.confirm_text(TextSettings(text="hi"))
        assert ref == AnnotationRef(2, 0)
        assert session.document.annotations[2][0].text == "hi"
        assert session.document.annotations[0] == []


class TestPinch:
    def test_pinch_zooms_and_suppresses_drag(self, session, handler):
        session.document.add_annotation(0, WhiteoutAnnotation(x=0, y=0, width=300, height=300))
        start_zoom = session.zoom

        handler.pointer_down(0, event(100, 100, pointer_id=1, pointer_type="touch"), SURFACE)
        handler.pointer_down(0, event(150, 100, pointer_id=2, pointer_type="touch"), SURFACE)
        handler.pointer_move(0, event(200, 100, pointer_id=2, pointer_type="touch"), SURFACE)
        handler.pointer_move(0, event(20, 100, pointer_id=1, pointer_type="touch"), SURFACE)
        handler.pointer_up(0, event(200, 100, pointer_id=2, pointer_type="touch"), SURFACE)
        handler.pointer_up(0, event(20, 100, pointer_id=1, pointer_type="touch"), SURFACE)

        assert session.zoom > start_zoom
        box = session.document.annotations[0][0]
        assert (box.x, box.y) == (0, 0)
        assert not session.history.annotations.can_undo()
