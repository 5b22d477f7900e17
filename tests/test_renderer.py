import flet.canvas as cv
import pytest

from flet_pdf_editor.config import EditorConfig
from flet_pdf_editor.fonts import FontMetrics
from flet_pdf_editor.history import ImageRegistry
from flet_pdf_editor.rendering.renderer import PageRenderer, hit_test
from flet_pdf_editor.types import (
    AnnotationRef,
    Bounds,
    PageNumberAnnotation,
    SignatureAnnotation,
    TextAnnotation,
    WatermarkAnnotation,
    WhiteoutAnnotation,
)


@pytest.fixture
def metrics():
    return FontMetrics()


@pytest.fixture
def renderer(metrics):
    images = ImageRegistry()
    return PageRenderer(metrics, images, EditorConfig())


def test_topmost_annotation_wins(metrics):
    annotations = [
        WhiteoutAnnotation(x=0, y=0, width=100, height=100),
        WhiteoutAnnotation(x=50, y=50, width=100, height=100),
    ]
    assert hit_test(annotations, 2, 75, 75, metrics) == AnnotationRef(2, 1)
    assert hit_test(annotations, 2, 25, 25, metrics) == AnnotationRef(2, 0)
    assert hit_test(annotations, 2, 300, 300, metrics) is None


def test_watermarks_and_page_numbers_are_not_hit(metrics):
    annotations = [
        WhiteoutAnnotation(x=0, y=0, width=100, height=100),
        WatermarkAnnotation(x=50, y=50),
        PageNumberAnnotation(x=40, y=60, text="1"),
    ]
    assert hit_test(annotations, 0, 50, 50, metrics) == AnnotationRef(0, 0)


def test_text_hit_uses_measured_bounds(metrics):
    text = TextAnnotation(x=10, y=40, text="Hello", font_size=20)
    assert hit_test([text], 0, 15, 30, metrics) == AnnotationRef(0, 0)
    # Below the single line's box
    assert hit_test([text], 0, 15, 70, metrics) is None


def test_whiteout_renders_one_rect(renderer):
    result = renderer.render(b"png", 600, 800, [WhiteoutAnnotation(x=1, y=2, width=3, height=4)])
    assert len(result.shapes) == 1
    assert isinstance(result.shapes[0], cv.Rect)
    assert result.base_image == b"png"


def test_selected_annotation_gets_outline_and_handles(renderer):
    annotations = [WhiteoutAnnotation(x=1, y=2, width=30, height=40)]
    result = renderer.render(None, 600, 800, annotations, selected_index=0)
    # fill + dashed outline + four handles
    assert len(result.shapes) == 6


def test_locked_signature_has_outline_but_no_handles(renderer):
    image_id = renderer.images.intern(b"IMG")
    sig = SignatureAnnotation(x=0, y=0, width=150, height=50, image_id=image_id, locked=True)
    result = renderer.render(None, 600, 800, [sig], selected_index=0)

    assert len(result.shapes) == 1
    assert result.images == [(b"IMG", 0, 0, 150, 50)]


def test_text_renders_one_shape_per_line(renderer):
    text = TextAnnotation(x=10, y=40, text="one\ntwo\nthree", font_size=10)
    result = renderer.render(None, 600, 800, [text])

    assert [shape.text for shape in result.shapes] == ["one", "two", "three"]
    # Positioned by the top of each line
    assert [shape.y for shape in result.shapes] == pytest.approx([30, 42, 54])


def test_text_being_edited_is_hidden(renderer):
    text = TextAnnotation(x=10, y=40, text="Hello", editing=True)
    assert renderer.render(None, 600, 800, [text], selected_index=0).shapes == []


def test_draft_and_preview_overlays(renderer):
    shapes, images = [], []
    renderer.render_draft(Bounds(0, 0, 10, 10), shapes)
    image_id = renderer.images.intern(b"IMG")
    renderer.render_signature_preview(image_id, Bounds(5, 5, 30, 10), shapes, images)

    assert len(shapes) == 3
    assert images == [(b"IMG", 5, 5, 30, 10)]
