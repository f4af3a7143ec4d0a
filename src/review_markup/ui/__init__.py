"""UI components for Review Markup."""

from .renderer import Renderer
from .canvas import AnnotationCanvas
from .editor_window import AnnotationEditor

__all__ = [
    "Renderer",
    "AnnotationCanvas",
    "AnnotationEditor",
]
