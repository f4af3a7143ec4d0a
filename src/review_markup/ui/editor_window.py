"""Markup editor window: canvas, toolbar and status bar."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from PyQt6.QtGui import QAction, QActionGroup, QCloseEvent, QColor, QImage, QKeySequence
from PyQt6.QtWidgets import (
    QColorDialog, QFileDialog, QInputDialog, QLabel, QMainWindow,
    QSpinBox, QToolBar, QToolButton, QWidget
)

from ..core.config import ConfigManager, EditorConfig
from ..core.controller import DrawingController, Tool
from ..core.coordinates import CoordinateMapper
from ..core.hit_testing import HitTester
from ..core.history import HistoryManager
from ..core.persistence import (
    HttpPersistenceGateway, InMemoryPersistenceGateway, PersistenceGateway
)
from ..core.scene import Scene
from .canvas import AnnotationCanvas
from .renderer import Renderer

logger = logging.getLogger(__name__)

# Toolbar entries: tool, label, shortcut hint
TOOL_ACTIONS = [
    (Tool.SELECT, "Select", "1"),
    (Tool.RECTANGLE, "Rectangle", "2"),
    (Tool.CIRCLE, "Circle", "3"),
    (Tool.ARROW, "Arrow", "4"),
    (Tool.FREEHAND, "Freehand", "5"),
    (Tool.TEXT, "Text", "6"),
    (Tool.HIGHLIGHT, "Highlight", ""),
]

STATUS_TIMEOUT_MS = 4000


def create_gateway(
    config: EditorConfig,
    server_url: Optional[str] = None,
    token: Optional[str] = None
) -> PersistenceGateway:
    """
    Pick the HTTP gateway when a server is configured, else in-memory.

    Args:
        config: Editor settings
        server_url: Overrides config.server_url for this session only
        token: Overrides config.auth_token for this session only
    """
    server_url = config.server_url if server_url is None else server_url
    token = config.auth_token if token is None else token
    if server_url:
        return HttpPersistenceGateway(
            server_url,
            token=token,
            timeout_ms=config.request_timeout_ms,
            load_path=config.load_path,
            save_path=config.save_path,
        )
    logger.info("No server configured; annotations are kept in memory")
    return InMemoryPersistenceGateway()


class AnnotationEditor(QMainWindow):
    """
    Editor session for one target image.

    Owns the scene, history, renderer and controller for the session and
    wires them together. Closing the window closes the controller.
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        gateway: Optional[PersistenceGateway] = None,
        author: Optional[str] = None,
        parent: Optional[QWidget] = None
    ) -> None:
        super().__init__(parent)
        self.config_manager = config_manager or ConfigManager()
        config = self.config_manager.config

        self.gateway = gateway or create_gateway(config)
        self.scene = Scene(hit_tester=HitTester(config.hit_margin, config.text_char_width))
        self.history = HistoryManager(config.max_history_entries)
        self.renderer = Renderer(config)
        self.mapper = CoordinateMapper()
        self.controller = DrawingController(
            self.scene,
            self.mapper,
            self.history,
            self.gateway,
            self.renderer,
            config=config,
            text_prompt=self._prompt_text,
            author=author,
            parent=self,
        )
        self.canvas = AnnotationCanvas(self.controller, self.renderer, self)
        self.setCentralWidget(self.canvas)

        self._tool_actions: Dict[Tool, QAction] = {}
        self._image_path: Optional[Path] = None
        self._count_label = QLabel()

        self._init_toolbar()
        self.statusBar().addPermanentWidget(self._count_label)
        self.setWindowTitle("Review Markup")
        self.resize(1000, 750)

        self.controller.tool_changed.connect(self._on_tool_changed)
        self.controller.history_changed.connect(self._on_history_changed)
        self.controller.scene_changed.connect(self._update_count)
        self.controller.status_reported.connect(self._show_status)
        self.controller.close_requested.connect(self.close)
        self._on_history_changed(False, False)
        self._update_count()

    def _init_toolbar(self) -> None:
        toolbar = QToolBar("Markup", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        group = QActionGroup(self)
        group.setExclusive(True)
        for tool, label, shortcut in TOOL_ACTIONS:
            action = QAction(label, self)
            action.setCheckable(True)
            action.setToolTip(f"{label} ({shortcut})" if shortcut else label)
            action.triggered.connect(lambda checked, t=tool: self.controller.set_tool(t))
            group.addAction(action)
            toolbar.addAction(action)
            self._tool_actions[tool] = action
        self._tool_actions[self.controller.tool].setChecked(True)

        toolbar.addSeparator()

        self._color_button = QToolButton(self)
        self._color_button.setToolTip("Annotation color")
        self._color_button.clicked.connect(self._pick_color)
        self._update_color_button()
        toolbar.addWidget(self._color_button)

        self._width_spin = QSpinBox(self)
        self._width_spin.setRange(1, 50)
        self._width_spin.setValue(int(self.controller.current_style.stroke_width))
        self._width_spin.setToolTip("Stroke width")
        self._width_spin.valueChanged.connect(self.controller.set_stroke_width)
        toolbar.addWidget(self._width_spin)

        toolbar.addSeparator()

        self._undo_action = QAction("Undo", self)
        self._undo_action.setShortcut(QKeySequence.StandardKey.Undo)
        self._undo_action.triggered.connect(self.controller.undo)
        toolbar.addAction(self._undo_action)

        self._redo_action = QAction("Redo", self)
        self._redo_action.setShortcut(QKeySequence.StandardKey.Redo)
        self._redo_action.triggered.connect(self.controller.redo)
        toolbar.addAction(self._redo_action)

        delete_action = QAction("Delete", self)
        delete_action.setToolTip("Delete selected (Delete)")
        delete_action.triggered.connect(self.controller.delete_selected)
        toolbar.addAction(delete_action)

        clear_action = QAction("Clear All", self)
        clear_action.triggered.connect(self.controller.clear_all)
        toolbar.addAction(clear_action)

        toolbar.addSeparator()

        export_action = QAction("Export...", self)
        export_action.setShortcut(QKeySequence.StandardKey.Save)
        export_action.triggered.connect(self._export_dialog)
        toolbar.addAction(export_action)

    # === Session ===

    def open(self, image_path: str | Path, target_id: str = "") -> bool:
        """
        Load an image and its stored annotations.

        Args:
            image_path: Local path of the image to annotate
            target_id: Storage identifier of the image; empty for local-only markup

        Returns:
            True if the image loaded
        """
        self._image_path = Path(image_path)
        image = QImage(str(self._image_path))
        if image.isNull():
            logger.error(f"Could not load image: {self._image_path}")
            self._show_status("error", f"Could not load image: {self._image_path.name}")
            self.canvas.set_image(None)
            return False

        self.canvas.set_image(image)
        self.controller.target_id = target_id
        self.controller.load()
        self.setWindowTitle(f"Review Markup - {self._image_path.name}")

        config = self.config_manager.config
        config.add_recent_image(str(self._image_path))
        self.config_manager.save()
        logger.info(f"Opened {self._image_path} (target {target_id or 'local'})")
        return True

    def closeEvent(self, event: QCloseEvent) -> None:
        """Discard the draft and detach from the gateway."""
        self.controller.close()
        super().closeEvent(event)

    def export_image(self, path: str | Path) -> bool:
        """
        Save the image with all annotations burned in at natural size.

        Returns:
            True if the file was written
        """
        image = self.canvas.image
        if image is None:
            self._show_status("error", "No image to export")
            return False

        rendered = self.renderer.render_image(image, self.scene.annotations)
        if not rendered.save(str(path)):
            logger.error(f"Failed to export annotated image to {path}")
            self._show_status("error", "Error exporting annotated image")
            return False

        logger.info(f"Exported annotated image to {path}")
        self._show_status("success", f"Exported {Path(path).name}")
        return True

    # === Slots ===

    def _prompt_text(self) -> Optional[str]:
        text, ok = QInputDialog.getText(self, "Text Annotation", "Enter text for annotation:")
        return text if ok else None

    def _pick_color(self) -> None:
        color = QColorDialog.getColor(QColor(self.controller.current_style.color), self, "Annotation Color")
        if color.isValid():
            self.controller.set_color(color.name())
            self._update_color_button()

    def _update_color_button(self) -> None:
        color = self.controller.current_style.color
        self._color_button.setStyleSheet(f"background-color: {color}; min-width: 24px;")

    def _export_dialog(self) -> None:
        default = ""
        if self._image_path is not None:
            default = str(self._image_path.with_name(f"{self._image_path.stem}-annotated.png"))
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Annotated Image", default, "Images (*.png *.jpg *.jpeg)"
        )
        if path:
            self.export_image(path)

    def _on_tool_changed(self, tool: str) -> None:
        action = self._tool_actions.get(Tool(tool))
        if action is not None:
            action.setChecked(True)

    def _on_history_changed(self, can_undo: bool, can_redo: bool) -> None:
        self._undo_action.setEnabled(can_undo)
        self._redo_action.setEnabled(can_redo)
        undo_text = self.history.undo_description()
        redo_text = self.history.redo_description()
        self._undo_action.setToolTip(f"Undo {undo_text}" if undo_text else "Undo")
        self._redo_action.setToolTip(f"Redo {redo_text}" if redo_text else "Redo")

    def _update_count(self) -> None:
        count = len(self.scene)
        self._count_label.setText(f"{count} annotation{'s' if count != 1 else ''}")

    def _show_status(self, level: str, message: str) -> None:
        if level == "error":
            logger.warning(message)
        self.statusBar().showMessage(message, STATUS_TIMEOUT_MS)
