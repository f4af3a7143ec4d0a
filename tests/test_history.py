"""Tests for snapshot-based undo/redo history."""

import pytest

from review_markup.core.history import HistoryManager, Snapshot
from review_markup.core.models import AnnotationKind
from review_markup.core.scene import Scene

from conftest import make_arrow, make_rectangle, make_text


@pytest.fixture
def scene():
    return Scene()


@pytest.fixture
def history(qapp, scene):
    manager = HistoryManager()
    manager.reset(scene)
    return manager


def add(scene, history, annotation, description="Add"):
    scene.append(annotation)
    history.record(scene, description)


class TestSnapshot:
    """Tests for Snapshot."""

    def test_restore_builds_new_objects(self):
        """Test restored annotations are equal but not identical."""
        rect = make_rectangle()
        snapshot = Snapshot.capture(Scene([rect]))

        restored = snapshot.restore()

        assert restored == [rect]
        assert restored[0] is not rect
        assert restored[0].local_id == rect.local_id

    def test_isolated_from_later_mutation(self):
        """Test mutating the live annotation leaves the snapshot untouched."""
        rect = make_rectangle()
        snapshot = Snapshot.capture(Scene([rect]))

        rect.geometry.width = 999

        assert snapshot.restore()[0].geometry.width == 200

    def test_keeps_server_fields(self):
        rect = make_rectangle()
        rect.id = "abc"
        rect.author = "u1"

        restored = Snapshot.capture(Scene([rect])).restore()[0]

        assert restored.id == "abc"
        assert restored.author == "u1"


class TestHistoryManager:
    """Tests for HistoryManager."""

    def test_reset(self, history):
        """Test a fresh history has nothing to undo or redo."""
        assert not history.can_undo()
        assert not history.can_redo()
        assert history.undo_description() == ""
        assert history.redo_description() == ""

    def test_record_enables_undo(self, scene, history):
        add(scene, history, make_rectangle(), "Add rectangle")

        assert history.can_undo()
        assert history.undo_description() == "Add rectangle"
        assert not history.can_redo()

    def test_undo_then_redo(self, scene, history):
        """Test undo restores the previous scene and redo reapplies."""
        rect = make_rectangle()
        add(scene, history, rect)

        assert history.undo(scene) is True
        assert len(scene) == 0

        assert history.redo(scene) is True
        assert scene.annotations == [rect]
        assert not history.can_redo()

    def test_no_op_at_ends(self, scene, history):
        """Test undo and redo past the ends change nothing."""
        assert history.undo(scene) is False
        assert history.redo(scene) is False
        assert len(scene) == 0

    def test_record_after_undo_truncates_redo(self, scene, history):
        """Test a new mutation discards the redo entries."""
        add(scene, history, make_rectangle(), "first")
        add(scene, history, make_arrow(0, 0, 9, 9), "second")
        history.undo(scene)

        add(scene, history, make_text(0, 0, "note"), "third")

        assert not history.can_redo()
        assert history.undo_description() == "third"
        history.undo(scene)
        assert history.undo_description() == "first"
        assert [a.kind for a in scene] == [AnnotationKind.RECTANGLE]

    def test_undo_all_then_redo_all(self, scene, history):
        """Test N undos then N redos restore the same scene."""
        items = [make_rectangle(x=i * 10) for i in range(5)]
        for item in items:
            add(scene, history, item)
        final = scene.annotations

        for _ in items:
            assert history.undo(scene)
        assert len(scene) == 0

        for _ in items:
            assert history.redo(scene)
        assert scene.annotations == final

    def test_descriptions_follow_cursor(self, scene, history):
        add(scene, history, make_rectangle(), "Add Rectangle")
        add(scene, history, make_arrow(0, 0, 9, 9), "Add Arrow")
        history.undo(scene)

        assert history.undo_description() == "Add Rectangle"
        assert history.redo_description() == "Add Arrow"

    def test_max_history(self, qapp, scene):
        """Test the oldest snapshots are dropped beyond the limit."""
        history = HistoryManager(max_history=3)
        history.reset(scene)
        for i in range(5):
            add(scene, history, make_rectangle(x=i), f"step {i}")

        assert history.undo(scene)
        assert history.undo(scene)
        assert not history.undo(scene)
        assert len(scene) == 3

    def test_state_changed_emitted(self, scene, history):
        """Test availability changes are signalled."""
        calls = []
        history.state_changed.connect(lambda: calls.append(True))

        add(scene, history, make_rectangle())
        history.undo(scene)
        history.redo(scene)
        history.undo(scene)
        history.undo(scene)

        assert len(calls) == 4
