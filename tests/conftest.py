"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest
from PyQt6.QtCore import QPointF, QSizeF

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Widgets and fonts need a platform plugin; never open real windows in tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from review_markup.core.models import (  # noqa: E402
    Annotation, AnnotationKind, ArrowGeometry, BoxGeometry,
    FreehandGeometry, TextGeometry
)


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


def make_rectangle(x=80.0, y=80.0, width=200.0, height=100.0, kind=AnnotationKind.RECTANGLE):
    """Build a box annotation in natural coordinates."""
    return Annotation(kind=kind, geometry=BoxGeometry(QPointF(x, y), width, height))


def make_arrow(x1, y1, x2, y2):
    return Annotation(kind=AnnotationKind.ARROW, geometry=ArrowGeometry(QPointF(x1, y1), QPointF(x2, y2)))


def make_freehand(*points):
    return Annotation(
        kind=AnnotationKind.FREEHAND,
        geometry=FreehandGeometry([QPointF(x, y) for x, y in points]),
    )


def make_text(x, y, text):
    return Annotation(kind=AnnotationKind.TEXT, geometry=TextGeometry(QPointF(x, y), text))


@pytest.fixture
def rectangle():
    """The 200x100 rectangle at (80, 80) used across scenarios."""
    return make_rectangle()


@pytest.fixture
def natural_800x600():
    return QSizeF(800, 600)


@pytest.fixture
def sample_file_response():
    """A file lookup body as returned by the review server."""
    return {
        "file": {
            "_id": "file-1",
            "originalName": "level3_boss.png",
            "annotations": [
                {
                    "_id": "a1",
                    "type": "rectangle",
                    "coordinates": {"x": 10, "y": 20, "width": 30, "height": 40},
                    "style": {"color": "#00ff00", "strokeWidth": 3, "fontSize": 14, "opacity": 1},
                    "text": "",
                    "author": {"_id": "u1", "username": "reviewer"},
                    "createdAt": "2024-05-01T12:00:00.000Z",
                },
                {
                    "_id": "a2",
                    "type": "freehand",
                    "coordinates": {"x": 0, "y": 0, "points": [{"x": 0, "y": 0}, {"x": 5, "y": 5}]},
                    "style": {},
                    "author": "u2",
                },
            ],
        }
    }
