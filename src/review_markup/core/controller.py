"""Drawing controller: turns pointer and keyboard input into scene changes."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from PyQt6.QtCore import QObject, QPointF, Qt, pyqtSignal

from .config import EditorConfig
from .coordinates import CoordinateMapper
from .history import HistoryManager
from .models import (
    Annotation, AnnotationKind, ArrowGeometry, BoxGeometry,
    FreehandGeometry, Geometry, Style, TextGeometry
)
from .persistence import PersistenceGateway
from .scene import Scene

if TYPE_CHECKING:
    from datetime import datetime

    from ..ui.renderer import Renderer

logger = logging.getLogger(__name__)


class Tool(str, Enum):
    """Editor tools. Drawing tools share their value with AnnotationKind."""

    SELECT = "select"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    ARROW = "arrow"
    FREEHAND = "freehand"
    TEXT = "text"
    HIGHLIGHT = "highlight"


class ControllerState(str, Enum):
    IDLE = "idle"
    DRAFTING = "drafting"


# Digit shortcuts, in toolbar order
DIGIT_TOOLS: Dict[int, Tool] = {
    Qt.Key.Key_1.value: Tool.SELECT,
    Qt.Key.Key_2.value: Tool.RECTANGLE,
    Qt.Key.Key_3.value: Tool.CIRCLE,
    Qt.Key.Key_4.value: Tool.ARROW,
    Qt.Key.Key_5.value: Tool.FREEHAND,
    Qt.Key.Key_6.value: Tool.TEXT,
}

_DELETE_KEYS = (Qt.Key.Key_Delete.value, Qt.Key.Key_Backspace.value)


def _key_value(key: object) -> int:
    return getattr(key, "value", key)


class DrawingController(QObject):
    """
    State machine for the markup editor.

    Idle accepts a pointer-down to start drafting (shape tools), to select
    (select tool), or a click to place text. Drafting updates the draft on
    every move and finalizes it on pointer-up. Finalized annotations are
    appended to the scene, recorded in history and submitted to the
    persistence gateway without waiting for the result.
    """

    scene_changed = pyqtSignal()
    selection_changed = pyqtSignal(object)  # Annotation or None
    tool_changed = pyqtSignal(str)
    history_changed = pyqtSignal(bool, bool)  # can_undo, can_redo
    status_reported = pyqtSignal(str, str)  # level ("info", "success", "error"), message
    close_requested = pyqtSignal()

    def __init__(
        self,
        scene: Scene,
        mapper: CoordinateMapper,
        history: HistoryManager,
        gateway: PersistenceGateway,
        renderer: Renderer,
        config: Optional[EditorConfig] = None,
        target_id: str = "",
        text_prompt: Optional[Callable[[], Optional[str]]] = None,
        author: Optional[str] = None,
        parent: Optional[QObject] = None
    ) -> None:
        """
        Initialize the controller.

        Args:
            scene: Scene the controller edits
            mapper: Mapper shared with the canvas, used to convert input points
            history: Undo/redo history for the scene
            gateway: Storage for loading and saving annotations
            renderer: Renderer asked to repaint after every change
            config: Editor settings (defaults if None)
            target_id: Identifier of the image being annotated
            text_prompt: Asks the user for text content; None or "" cancels
            author: Host session's user id, stamped on new annotations
        """
        super().__init__(parent)
        self.scene = scene
        self.mapper = mapper
        self.history = history
        self.gateway = gateway
        self.renderer = renderer
        self.config = config or EditorConfig()
        self.target_id = target_id
        self.text_prompt = text_prompt
        self.author = author

        self._tool = Tool.SELECT
        self._queued_tool: Optional[Tool] = None
        self._state = ControllerState.IDLE
        self._draft: Optional[Annotation] = None
        self._closed = False
        # Server identity of saved annotations, reapplied after undo/redo
        self._server_fields: Dict[str, Tuple[Optional[str], Optional[str], Optional[datetime]]] = {}

        self.current_style = Style(
            color=self.config.default_color,
            stroke_width=self.config.stroke_width,
            fill_color=self.config.fill_color or None,
            font_size=self.config.font_size,
            opacity=self.config.opacity,
        )

        self.history.state_changed.connect(self._on_history_state_changed)
        self.gateway.annotations_loaded.connect(self._on_annotations_loaded)
        self.gateway.annotation_saved.connect(self._on_annotation_saved)
        self.gateway.save_failed.connect(self._on_save_failed)

    # === State ===

    @property
    def tool(self) -> Tool:
        return self._tool

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_drafting(self) -> bool:
        return self._state == ControllerState.DRAFTING

    @property
    def draft(self) -> Optional[Annotation]:
        """Annotation under construction, never part of the scene."""
        return self._draft

    @property
    def queued_tool(self) -> Optional[Tool]:
        return self._queued_tool

    # === Loading ===

    def load(self) -> None:
        """Ask the gateway for existing annotations, or start empty."""
        if not self.target_id:
            self.scene.clear()
            self.history.reset(self.scene)
            self._changed()
            return
        self.gateway.load_annotations(self.target_id)

    def _on_annotations_loaded(self, target_id: str, annotations: list) -> None:
        if self._closed or target_id != self.target_id:
            return
        self.scene.replace(annotations)
        self.history.reset(self.scene)
        logger.info(f"Scene seeded with {len(annotations)} annotation(s)")
        self.selection_changed.emit(None)
        self._changed()

    # === Tools and style ===

    def set_tool(self, tool: Tool | str) -> bool:
        """
        Switch the active tool.

        Unknown identifiers are ignored. A switch during drafting is
        applied when the current gesture completes.

        Returns:
            True if the tool was accepted (applied or queued)
        """
        try:
            tool = Tool(tool)
        except ValueError:
            logger.warning(f"Ignoring unknown tool: {tool!r}")
            return False

        if self.is_drafting:
            self._queued_tool = tool
            logger.debug(f"Tool change to {tool.value} queued until gesture ends")
            return True

        self._apply_tool(tool)
        return True

    def _apply_tool(self, tool: Tool) -> None:
        self._queued_tool = None
        if tool == self._tool:
            return
        self._tool = tool
        logger.debug(f"Tool: {tool.value}")
        self.tool_changed.emit(tool.value)

    def set_color(self, color: str) -> None:
        self.current_style.color = color

    def set_stroke_width(self, width: float) -> None:
        self.current_style.stroke_width = max(1, width)

    def set_font_size(self, size: float) -> None:
        self.current_style.font_size = max(1, size)

    def _style_for(self, kind: AnnotationKind) -> Style:
        style = Style(**vars(self.current_style))
        if kind == AnnotationKind.HIGHLIGHT:
            style.color = self.config.highlight_color
            style.fill_color = self.config.highlight_color
            style.opacity = self.config.highlight_opacity
        return style

    # === Pointer input ===

    def pointer_down(self, point: QPointF) -> None:
        """
        Handle a pointer press at a display-space point.

        Args:
            point: Position relative to the drawing surface
        """
        if self._closed or self.is_drafting:
            return

        natural = self.mapper.to_natural(point)

        if self._tool == Tool.SELECT:
            previous = self.scene.selected
            selected = self.scene.select_at(natural)
            if selected is not previous:
                self.selection_changed.emit(selected)
            self.renderer.invalidate()
            return

        if self._tool == Tool.TEXT:
            return

        kind = AnnotationKind(self._tool.value)
        self._draft = Annotation(
            kind=kind,
            geometry=self._seed_geometry(kind, natural),
            style=self._style_for(kind),
            author=self.author,
        )
        self._state = ControllerState.DRAFTING
        logger.debug(f"Drafting {kind.value} at ({natural.x():.1f}, {natural.y():.1f})")
        self.renderer.invalidate()

    def pointer_move(self, point: QPointF) -> None:
        """Extend the draft to a display-space point."""
        if not self.is_drafting or self._draft is None:
            return
        self._update_draft(self.mapper.to_natural(point))
        self.renderer.invalidate()

    def pointer_up(self, point: Optional[QPointF] = None) -> None:
        """
        Finish the current gesture.

        Args:
            point: Release position, applied to the draft before finalizing
        """
        if not self.is_drafting or self._draft is None:
            return

        if point is not None:
            natural = self.mapper.to_natural(point)
            geometry = self._draft.geometry
            # Avoid a duplicate trailing point when release matches the last move
            if not (isinstance(geometry, FreehandGeometry) and geometry.points and geometry.points[-1] == natural):
                self._update_draft(natural)

        draft = self._draft
        self._draft = None
        self._state = ControllerState.IDLE

        self._finalize(draft)

        if self._queued_tool is not None:
            self._apply_tool(self._queued_tool)
        self.renderer.invalidate()

    def click(self, point: QPointF) -> None:
        """
        Handle a click; places a text annotation when the text tool is active.

        The prompt runs synchronously. Empty input cancels.
        """
        if self._closed or self.is_drafting or self._tool != Tool.TEXT:
            return
        if self.text_prompt is None:
            logger.warning("Text tool used without a text prompt")
            return

        text = self.text_prompt()
        if not text or not text.strip():
            logger.debug("Text annotation cancelled")
            return

        natural = self.mapper.to_natural(point)
        annotation = Annotation(
            kind=AnnotationKind.TEXT,
            geometry=TextGeometry(natural, text),
            style=self._style_for(AnnotationKind.TEXT),
            author=self.author,
        )
        self._finalize(annotation)
        self.renderer.invalidate()

    def _seed_geometry(self, kind: AnnotationKind, point: QPointF) -> Geometry:
        if kind.is_box:
            return BoxGeometry(QPointF(point), 0.0, 0.0)
        if kind == AnnotationKind.ARROW:
            return ArrowGeometry(QPointF(point), QPointF(point))
        if kind == AnnotationKind.FREEHAND:
            return FreehandGeometry([QPointF(point)])
        raise ValueError(f"{kind.value} annotations are not drafted by dragging")

    def _update_draft(self, point: QPointF) -> None:
        geometry = self._draft.geometry
        if isinstance(geometry, BoxGeometry):
            geometry.width = point.x() - geometry.origin.x()
            geometry.height = point.y() - geometry.origin.y()
        elif isinstance(geometry, ArrowGeometry):
            geometry.end = QPointF(point)
        elif isinstance(geometry, FreehandGeometry):
            geometry.points.append(QPointF(point))

    def _finalize(self, annotation: Annotation) -> bool:
        """
        Commit an annotation: scene, history, then persistence.

        Returns:
            False if the annotation was degenerate and discarded
        """
        if annotation.is_degenerate():
            logger.debug(f"Discarded degenerate {annotation.kind.value} draft")
            return False

        self.scene.append(annotation)
        self.history.record(self.scene, f"Add {annotation.kind.value.capitalize()}")
        self._changed()
        self._submit(annotation)
        return True

    def _submit(self, annotation: Annotation) -> None:
        if not self.target_id:
            return
        # The gateway gets its own copy so later local edits cannot leak into the request
        self.gateway.save_annotation(self.target_id, annotation.copy())

    # === Persistence results ===

    def _on_annotation_saved(self, local_id: str, saved: Annotation) -> None:
        if self._closed:
            return
        self._server_fields[local_id] = (saved.id, saved.author, saved.created_at)
        live = self.scene.find_by_local_id(local_id)
        if live is not None:
            self._apply_server_fields(live)
        self.status_reported.emit("success", "Annotation saved")

    def _on_save_failed(self, local_id: str, message: str) -> None:
        if self._closed:
            return
        logger.error(f"Annotation {local_id} was not saved: {message}")
        self.status_reported.emit("error", f"Error saving annotation: {message}")

    def _apply_server_fields(self, annotation: Annotation) -> None:
        fields = self._server_fields.get(annotation.local_id)
        if fields is not None:
            annotation.id, annotation.author, annotation.created_at = fields

    # === Editing commands ===

    def delete_selected(self) -> bool:
        """
        Remove the selected annotation from the scene.

        The storage service has no delete endpoint, so the removal is local.

        Returns:
            True if an annotation was deleted
        """
        selected = self.scene.selected
        if self._closed or self.is_drafting or selected is None:
            return False

        self.scene.remove(selected)
        self.history.record(self.scene, f"Delete {selected.kind.value.capitalize()}")
        if selected.is_saved:
            logger.info(f"Annotation {selected.id} removed locally; server copy is kept")
        self.selection_changed.emit(None)
        self._changed()
        return True

    def clear_all(self) -> bool:
        """
        Remove every annotation from the scene.

        Returns:
            True if anything was removed
        """
        if self._closed or self.is_drafting or not len(self.scene):
            return False

        had_selection = self.scene.selected is not None
        self.scene.clear()
        self.history.record(self.scene, "Clear All")
        if had_selection:
            self.selection_changed.emit(None)
        self._changed()
        return True

    def undo(self) -> bool:
        """Restore the previous scene snapshot."""
        if self._closed or self.is_drafting:
            return False
        return self._after_history_move(self.history.undo(self.scene))

    def redo(self) -> bool:
        """Restore the next scene snapshot."""
        if self._closed or self.is_drafting:
            return False
        return self._after_history_move(self.history.redo(self.scene))

    def _after_history_move(self, moved: bool) -> bool:
        if not moved:
            return False
        for annotation in self.scene:
            self._apply_server_fields(annotation)
        self.selection_changed.emit(None)
        self._changed()
        return True

    # === Keyboard ===

    def handle_key(
        self,
        key: int,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier
    ) -> bool:
        """
        Route a key press to a shortcut.

        Returns:
            True if the key was handled
        """
        key = _key_value(key)
        ctrl = bool(modifiers & Qt.KeyboardModifier.ControlModifier)
        shift = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)

        if key == Qt.Key.Key_Escape.value:
            self.close_requested.emit()
            return True

        if ctrl:
            if key == Qt.Key.Key_Z.value:
                return self.redo() if shift else self.undo()
            if key == Qt.Key.Key_Y.value:
                return self.redo()
            return False

        if key in _DELETE_KEYS:
            return self.delete_selected()

        tool = DIGIT_TOOLS.get(key)
        if tool is not None:
            return self.set_tool(tool)
        return False

    # === Lifecycle ===

    def close(self) -> None:
        """
        Detach from the editor session.

        Discards any draft. In-flight saves finish but their results are
        no longer applied.
        """
        if self._closed:
            return
        self._closed = True
        self._draft = None
        self._state = ControllerState.IDLE
        self._queued_tool = None

        self.gateway.annotations_loaded.disconnect(self._on_annotations_loaded)
        self.gateway.annotation_saved.disconnect(self._on_annotation_saved)
        self.gateway.save_failed.disconnect(self._on_save_failed)
        self.history.state_changed.disconnect(self._on_history_state_changed)
        logger.debug("Controller closed")

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _on_history_state_changed(self) -> None:
        self.history_changed.emit(self.history.can_undo(), self.history.can_redo())

    def _changed(self) -> None:
        self.scene_changed.emit()
        self.renderer.invalidate()
