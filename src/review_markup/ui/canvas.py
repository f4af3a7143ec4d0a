"""Canvas widget hosting the markup drawing surface."""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QPointF, QSizeF, Qt
from PyQt6.QtGui import QImage, QKeyEvent, QMouseEvent, QPainter, QResizeEvent
from PyQt6.QtWidgets import QSizePolicy, QWidget

from ..core.controller import DrawingController, Tool
from .renderer import Renderer

logger = logging.getLogger(__name__)

# Press/release closer than this (in pixels) counts as a click
CLICK_TOLERANCE = 4

_TOOL_CURSORS = {
    Tool.SELECT: Qt.CursorShape.ArrowCursor,
    Tool.TEXT: Qt.CursorShape.IBeamCursor,
}


class AnnotationCanvas(QWidget):
    """
    Widget that paints the scene and forwards input to the controller.

    Mouse positions are converted from widget coordinates to surface-local
    display coordinates before reaching the controller. Key presses are
    handled here, so shortcuts only apply while the editor has focus.
    """

    MIN_SIZE = 200

    def __init__(
        self,
        controller: DrawingController,
        renderer: Renderer,
        parent: Optional[QWidget] = None
    ) -> None:
        super().__init__(parent)
        self.controller = controller
        self.renderer = renderer
        self._image: Optional[QImage] = None
        self._press_pos: Optional[QPointF] = None
        self._press_tool: Optional[Tool] = None
        self._pending_resize = False

        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMinimumSize(self.MIN_SIZE, self.MIN_SIZE)

        self.renderer.attach(self)
        self.controller.tool_changed.connect(self._update_cursor)
        self._update_cursor(self.controller.tool.value)

    @property
    def image(self) -> Optional[QImage]:
        return self._image

    def set_image(self, image: Optional[QImage]) -> None:
        """Show a new base image and refit the surface."""
        self._image = image
        natural = QSizeF(image.width(), image.height()) if image is not None else QSizeF()
        self.controller.mapper.update(natural_size=natural, container_size=QSizeF(self.size()))
        self.update()

    def _surface_point(self, event: QMouseEvent) -> QPointF:
        return self.controller.mapper.container_to_display(event.position())

    # === Events ===

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Start a gesture with the left button."""
        self.setFocus()
        if event.button() != Qt.MouseButton.LeftButton:
            return
        self._press_pos = event.position()
        self._press_tool = self.controller.tool
        self.controller.pointer_down(self._surface_point(event))

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """Extend the draft while the left button is held."""
        if event.buttons() & Qt.MouseButton.LeftButton:
            self.controller.pointer_move(self._surface_point(event))

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """Finish the gesture; a short press-release with the text tool is also a click."""
        if event.button() != Qt.MouseButton.LeftButton:
            return
        point = self._surface_point(event)
        self.controller.pointer_up(point)

        press_tool = self._press_tool
        self._press_tool = None
        if self._press_pos is not None:
            moved = (event.position() - self._press_pos).manhattanLength()
            self._press_pos = None
            # Only the tool active at press time decides whether this is a click
            if moved <= CLICK_TOLERANCE and press_tool == Tool.TEXT:
                self.controller.click(point)

        if self._pending_resize:
            self._refit()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Route shortcuts to the controller."""
        if not self.controller.handle_key(event.key(), event.modifiers()):
            super().keyPressEvent(event)

    def resizeEvent(self, event: QResizeEvent) -> None:
        """Refit the surface, deferring while a gesture is in progress."""
        super().resizeEvent(event)
        if self.controller.is_drafting:
            self._pending_resize = True
            return
        self._refit()

    def _refit(self) -> None:
        self._pending_resize = False
        self.controller.mapper.update(container_size=QSizeF(self.size()))
        self.update()

    def paintEvent(self, event) -> None:
        """Paint the surface centered in the widget."""
        painter = QPainter(self)
        painter.fillRect(self.rect(), self.palette().window())
        painter.translate(self.controller.mapper.offset)
        self.renderer.paint(
            painter,
            self.controller.mapper,
            self.controller.scene,
            draft=self.controller.draft,
            image=self._image,
        )
        painter.end()

    def _update_cursor(self, tool: str) -> None:
        self.setCursor(_TOOL_CURSORS.get(Tool(tool), Qt.CursorShape.CrossCursor))
