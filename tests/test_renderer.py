"""Tests for the QPainter renderer."""

import pytest
from PyQt6.QtCore import QPointF, QSizeF
from PyQt6.QtGui import QColor, QImage, QPainter

from review_markup.core.coordinates import CoordinateMapper
from review_markup.core.models import AnnotationKind, Style
from review_markup.core.scene import Scene
from review_markup.ui.renderer import Renderer

from conftest import make_arrow, make_freehand, make_rectangle, make_text


@pytest.fixture
def renderer(qapp):
    return Renderer()


@pytest.fixture
def white_image():
    image = QImage(100, 100, QImage.Format.Format_ARGB32)
    image.fill(QColor("white"))
    return image


def paint_scene(renderer, scene, natural=QSizeF(800, 600), container=QSizeF(400, 300), draft=None):
    """Paint a scene onto a fresh surface-sized image."""
    mapper = CoordinateMapper(natural, container)
    size = mapper.surface_size
    target = QImage(int(size.width()), int(size.height()), QImage.Format.Format_ARGB32)
    painter = QPainter(target)
    renderer.paint(painter, mapper, scene, draft=draft)
    painter.end()
    return target


class TestRenderImage:
    """Tests for burning annotations into an image."""

    def test_keeps_natural_size(self, renderer, white_image):
        result = renderer.render_image(white_image, [])

        assert (result.width(), result.height()) == (100, 100)

    def test_rectangle_stroke(self, renderer, white_image):
        """Test the rectangle outline is drawn and the interior left alone."""
        rect = make_rectangle(x=10, y=10, width=50, height=40)

        result = renderer.render_image(white_image, [rect])

        edge = result.pixelColor(10, 30)
        assert edge.red() > 200 and edge.green() < 80
        assert result.pixelColor(30, 30) == QColor("white")

    def test_source_untouched(self, renderer, white_image):
        renderer.render_image(white_image, [make_rectangle(x=10, y=10, width=50, height=40)])

        assert white_image.pixelColor(10, 30) == QColor("white")

    def test_highlight_is_translucent(self, renderer, white_image):
        """Test a highlight tints without hiding what is below."""
        highlight = make_rectangle(x=0, y=0, width=50, height=50, kind=AnnotationKind.HIGHLIGHT)
        highlight.style = Style(color="#ffff00", fill_color="#ffff00", opacity=0.35)

        pixel = renderer.render_image(white_image, [highlight]).pixelColor(25, 25)

        assert pixel.red() > 240
        assert pixel.blue() < 200
        assert pixel.blue() > 100

    def test_filled_rectangle(self, renderer, white_image):
        rect = make_rectangle(x=10, y=10, width=50, height=40)
        rect.style = Style(fill_color="#0000ff")

        pixel = renderer.render_image(white_image, [rect]).pixelColor(30, 30)

        assert pixel.blue() > 200 and pixel.red() < 50

    def test_all_kinds_paint(self, renderer, white_image):
        """Test every kind paints without error and changes the image."""
        annotations = [
            make_arrow(5, 90, 90, 90),
            make_freehand((5, 5), (50, 5)),
            make_freehand((70, 70)),
            make_rectangle(x=20, y=20, width=30, height=30, kind=AnnotationKind.CIRCLE),
            make_text(5, 60, "Hi"),
        ]

        result = renderer.render_image(white_image, annotations)

        assert result != white_image.convertToFormat(QImage.Format.Format_ARGB32)
        assert result.pixelColor(50, 90).red() > 200
        assert result.pixelColor(50, 90).green() < 80


class TestPaint:
    """Tests for painting the live surface."""

    def test_scaled_stroke(self, renderer):
        """Test natural geometry lands at half size on a half-size surface."""
        rect = make_rectangle(x=20, y=20, width=200, height=100)
        rect.style = Style(stroke_width=6)
        scene = Scene([rect])

        surface = paint_scene(renderer, scene)

        assert surface.pixelColor(10, 30).red() > 150
        assert surface.pixelColor(20, 30).red() < 100

    def test_background_fill(self, renderer):
        surface = paint_scene(renderer, Scene())

        assert surface.pixelColor(200, 150) == QColor("#2a2a2a")

    def test_selection_glow(self, renderer):
        """Test the selected annotation gets a glow in the selection color."""
        rect = make_rectangle(x=20, y=20, width=200, height=100)
        scene = Scene([rect])
        before = paint_scene(renderer, scene).pixelColor(8, 30)

        scene.select(rect)
        after = paint_scene(renderer, scene).pixelColor(8, 30)

        assert before == QColor("#2a2a2a")
        assert after.green() > after.red() + 50

    def test_draft_painted(self, renderer):
        """Test the draft is painted even though it is not in the scene."""
        draft = make_rectangle(x=20, y=20, width=200, height=100)
        draft.style = Style(stroke_width=6)

        surface = paint_scene(renderer, Scene(), draft=draft)

        assert surface.pixelColor(10, 30).red() > 150

    def test_invalidate_updates_surface(self, renderer):
        class Surface:
            updates = 0

            def update(self):
                self.updates += 1

        surface = Surface()
        renderer.attach(surface)

        renderer.invalidate()

        assert surface.updates == 1

    def test_invalidate_without_surface(self, renderer):
        renderer.invalidate()


class TestGeometryHelpers:
    """Tests for text bounds and outlines."""

    def test_text_bounds_sit_on_baseline(self, renderer):
        mapper = CoordinateMapper(QSizeF(800, 600), QSizeF(800, 600))
        label = make_text(100, 100, "Hello")

        bounds = renderer.text_bounds(label, mapper)

        assert bounds.left() >= 95
        assert bounds.bottom() <= 100 + label.style.font_size

    def test_text_bounds_of_shape(self, renderer):
        mapper = CoordinateMapper(QSizeF(800, 600), QSizeF(800, 600))

        assert renderer.text_bounds(make_rectangle(), mapper).isNull()

    def test_rectangle_outline(self, renderer):
        """Test the outline follows the scaled, normalized box."""
        mapper = CoordinateMapper(QSizeF(800, 600), QSizeF(400, 300))
        rect = make_rectangle(x=280, y=180, width=-200, height=-100)

        bounds = renderer.outline_path(rect, mapper).boundingRect()

        assert (bounds.x(), bounds.y(), bounds.width(), bounds.height()) == (40, 40, 100, 50)

    def test_freehand_outline(self, renderer):
        mapper = CoordinateMapper(QSizeF(800, 600), QSizeF(800, 600))
        stroke = make_freehand((0, 0), (10, 0), (10, 10))

        path = renderer.outline_path(stroke, mapper)

        assert path.elementCount() == 3
        assert path.currentPosition() == QPointF(10, 10)
