"""Core markup logic for Review Markup."""

from .models import Annotation, AnnotationKind, Style
from .config import EditorConfig, ConfigManager
from .coordinates import CoordinateMapper
from .hit_testing import HitTester
from .scene import Scene
from .history import HistoryManager, Snapshot
from .persistence import (
    PersistenceGateway,
    HttpPersistenceGateway,
    InMemoryPersistenceGateway,
)
from .controller import DrawingController, Tool

__all__ = [
    "Annotation",
    "AnnotationKind",
    "Style",
    "EditorConfig",
    "ConfigManager",
    "CoordinateMapper",
    "HitTester",
    "Scene",
    "HistoryManager",
    "Snapshot",
    "PersistenceGateway",
    "HttpPersistenceGateway",
    "InMemoryPersistenceGateway",
    "DrawingController",
    "Tool",
]
