"""Tests for the scene model."""

from PyQt6.QtCore import QPointF

from review_markup.core.hit_testing import HitTester
from review_markup.core.models import AnnotationKind
from review_markup.core.scene import Scene

from conftest import make_arrow, make_freehand, make_rectangle


class TestScene:
    """Tests for Scene."""

    def test_empty(self):
        scene = Scene()

        assert len(scene) == 0
        assert scene.selected is None
        assert scene.annotation_at(QPointF(0, 0)) is None

    def test_append_keeps_paint_order(self):
        """Test later annotations come last."""
        first, second = make_rectangle(), make_arrow(0, 0, 10, 10)
        scene = Scene([first])

        scene.append(second)

        assert scene.annotations == [first, second]
        assert scene.index_of(second) == 1

    def test_annotations_is_a_copy(self):
        """Test mutating the returned list leaves the scene alone."""
        scene = Scene([make_rectangle()])

        scene.annotations.clear()

        assert len(scene) == 1

    def test_topmost_wins(self):
        """Test overlapping annotations resolve to the last drawn."""
        below = make_rectangle(x=0, y=0, width=100, height=100)
        above = make_rectangle(x=50, y=50, width=100, height=100)
        scene = Scene([below, above])

        assert scene.select_at(QPointF(75, 75)) is above
        assert scene.select_at(QPointF(10, 10)) is below

    def test_miss_clears_selection(self):
        """Test clicking empty space deselects."""
        scene = Scene([make_rectangle()])
        scene.select_at(QPointF(100, 100))

        assert scene.select_at(QPointF(500, 500)) is None
        assert scene.selected is None

    def test_remove_clears_selection(self):
        """Test removing the selected annotation clears the selection."""
        rect = make_rectangle()
        scene = Scene([rect])
        scene.select(rect)

        assert scene.remove(rect) is True
        assert scene.selected is None
        assert rect not in scene

    def test_remove_is_by_identity(self):
        """Test an equal but distinct annotation is not removed."""
        scene = Scene([make_rectangle()])

        assert scene.remove(make_rectangle()) is False
        assert len(scene) == 1

    def test_select_non_member(self):
        """Test selecting an annotation outside the scene is refused."""
        scene = Scene([make_rectangle()])

        assert scene.select(make_rectangle()) is False
        assert scene.selected is None

    def test_select_none_clears(self):
        rect = make_rectangle()
        scene = Scene([rect])
        scene.select(rect)

        assert scene.select(None) is True
        assert scene.selected is None

    def test_replace_drops_selection(self):
        """Test replacing contents drops the old selection."""
        rect = make_rectangle()
        scene = Scene([rect])
        scene.select(rect)

        scene.replace([make_arrow(0, 0, 5, 5)])

        assert scene.selected is None
        assert [a.kind for a in scene] == [AnnotationKind.ARROW]

    def test_clear(self):
        rect = make_rectangle()
        scene = Scene([rect, make_freehand((0, 0), (1, 1))])
        scene.select(rect)

        scene.clear()

        assert len(scene) == 0
        assert scene.selected is None

    def test_find_by_local_id(self):
        rect = make_rectangle()
        scene = Scene([make_arrow(0, 0, 1, 1), rect])

        assert scene.find_by_local_id(rect.local_id) is rect
        assert scene.find_by_local_id("missing") is None

    def test_custom_hit_tester(self):
        """Test the scene uses its configured margin."""
        scene = Scene([make_rectangle()], hit_tester=HitTester(margin=20.0))

        assert scene.select_at(QPointF(65, 100)) is not None
