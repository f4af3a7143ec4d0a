"""QPainter renderer for the base image and its annotations."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from PyQt6.QtCore import QPointF, QRectF, QSizeF, Qt
from PyQt6.QtGui import (
    QBrush, QColor, QFont, QFontMetricsF, QImage, QPainter, QPainterPath,
    QPen, QPolygonF
)
from PyQt6.QtWidgets import QWidget

from ..core.config import EditorConfig
from ..core.coordinates import CoordinateMapper
from ..core.models import (
    Annotation, AnnotationKind, ArrowGeometry, BoxGeometry,
    FreehandGeometry, TextGeometry
)
from ..core.scene import Scene

logger = logging.getLogger(__name__)

ARROW_HEAD_SPREAD = math.pi / 6
SELECTION_GLOW_ALPHA = 110


def _color(value: Optional[str], opacity: float = 1.0) -> QColor:
    color = QColor(value or "#ff0000")
    if not color.isValid():
        color = QColor("#ff0000")
    color.setAlphaF(max(0.0, min(1.0, color.alphaF() * opacity)))
    return color


class Renderer:
    """
    Paints the image, the finalized annotations and the draft.

    All annotation geometry is natural-space; every point goes through the
    coordinate mapper before a primitive is drawn, and stroke widths and
    font sizes scale with it. Painting has no effect beyond the target
    painter.
    """

    def __init__(self, config: Optional[EditorConfig] = None) -> None:
        self.config = config or EditorConfig()
        self.background = QColor("#2a2a2a")
        self._surface: Optional[QWidget] = None

    def attach(self, surface: Optional[QWidget]) -> None:
        """Set the widget that invalidate() repaints."""
        self._surface = surface

    def invalidate(self) -> None:
        """Request a repaint of the attached surface."""
        if self._surface is not None:
            self._surface.update()

    # === Scene painting ===

    def paint(
        self,
        painter: QPainter,
        mapper: CoordinateMapper,
        scene: Scene,
        draft: Optional[Annotation] = None,
        image: Optional[QImage] = None
    ) -> None:
        """
        Repaint the whole surface.

        The painter's origin must be the top-left of the scaled surface.
        """
        painter.save()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        surface_rect = QRectF(QPointF(0, 0), mapper.surface_size)
        painter.fillRect(surface_rect, self.background)
        if image is not None and not image.isNull():
            painter.drawImage(surface_rect, image)

        selected = scene.selected
        for annotation in scene:
            self.paint_annotation(painter, annotation, mapper, selected=annotation is selected)

        if draft is not None:
            self.paint_annotation(painter, draft, mapper)

        painter.restore()

    def render_image(self, image: QImage, annotations: Iterable[Annotation]) -> QImage:
        """
        Burn annotations into a copy of the image at natural resolution.

        Returns:
            New ARGB32 image
        """
        result = image.convertToFormat(QImage.Format.Format_ARGB32)
        size = QSizeF(result.width(), result.height())
        mapper = CoordinateMapper(size, size)

        painter = QPainter(result)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        for annotation in annotations:
            self.paint_annotation(painter, annotation, mapper)
        painter.end()
        return result

    def paint_annotation(
        self,
        painter: QPainter,
        annotation: Annotation,
        mapper: CoordinateMapper,
        selected: bool = False
    ) -> None:
        """Paint one annotation, with a glow beneath it when selected."""
        painter.save()
        if selected:
            self._paint_selection(painter, annotation, mapper)

        geometry = annotation.geometry
        if isinstance(geometry, BoxGeometry):
            if annotation.kind == AnnotationKind.HIGHLIGHT:
                self._paint_highlight(painter, annotation, geometry, mapper)
            elif annotation.kind == AnnotationKind.CIRCLE:
                self._paint_circle(painter, annotation, geometry, mapper)
            else:
                self._paint_rectangle(painter, annotation, geometry, mapper)
        elif isinstance(geometry, ArrowGeometry):
            self._paint_arrow(painter, annotation, geometry, mapper)
        elif isinstance(geometry, FreehandGeometry):
            self._paint_freehand(painter, annotation, geometry, mapper)
        elif isinstance(geometry, TextGeometry):
            self._paint_text(painter, annotation, geometry, mapper)
        painter.restore()

    def _pen(self, annotation: Annotation, mapper: CoordinateMapper) -> QPen:
        style = annotation.style
        width = max(1.0, mapper.to_display_length(style.stroke_width))
        return QPen(
            _color(style.color, style.opacity), width, Qt.PenStyle.SolidLine,
            Qt.PenCapStyle.RoundCap, Qt.PenJoinStyle.RoundJoin
        )

    def _fill(self, annotation: Annotation) -> QBrush:
        style = annotation.style
        if style.fill_color:
            return QBrush(_color(style.fill_color, style.opacity))
        return QBrush(Qt.BrushStyle.NoBrush)

    def _display_rect(self, geometry: BoxGeometry, mapper: CoordinateMapper) -> QRectF:
        x, y, w, h = geometry.normalized()
        top_left = mapper.to_display(QPointF(x, y))
        return QRectF(top_left, QSizeF(mapper.to_display_length(w), mapper.to_display_length(h)))

    def _paint_rectangle(self, painter, annotation, geometry: BoxGeometry, mapper) -> None:
        painter.setPen(self._pen(annotation, mapper))
        painter.setBrush(self._fill(annotation))
        painter.drawRect(self._display_rect(geometry, mapper))

    def _paint_highlight(self, painter, annotation, geometry: BoxGeometry, mapper) -> None:
        style = annotation.style
        color = _color(style.fill_color or style.color, style.opacity)
        painter.fillRect(self._display_rect(geometry, mapper), color)

    def _paint_circle(self, painter, annotation, geometry: BoxGeometry, mapper) -> None:
        center = mapper.to_display(geometry.center)
        radius = mapper.to_display_length(geometry.radius)
        painter.setPen(self._pen(annotation, mapper))
        painter.setBrush(self._fill(annotation))
        painter.drawEllipse(center, radius, radius)

    def _paint_arrow(self, painter, annotation, geometry: ArrowGeometry, mapper) -> None:
        start = mapper.to_display(geometry.start)
        end = mapper.to_display(geometry.end)
        pen = self._pen(annotation, mapper)
        painter.setPen(pen)
        painter.drawLine(start, end)

        if start == end:
            return
        angle = math.atan2(end.y() - start.y(), end.x() - start.x())
        head = mapper.to_display_length(self.config.arrow_head_length)
        painter.setBrush(QBrush(pen.color()))
        painter.drawPolygon(QPolygonF([
            end,
            QPointF(end.x() - head * math.cos(angle - ARROW_HEAD_SPREAD),
                    end.y() - head * math.sin(angle - ARROW_HEAD_SPREAD)),
            QPointF(end.x() - head * math.cos(angle + ARROW_HEAD_SPREAD),
                    end.y() - head * math.sin(angle + ARROW_HEAD_SPREAD)),
        ]))

    def _paint_freehand(self, painter, annotation, geometry: FreehandGeometry, mapper) -> None:
        if not geometry.points:
            return
        pen = self._pen(annotation, mapper)
        if len(geometry.points) == 1:
            # A single point renders as a dot the size of the stroke
            radius = pen.widthF() / 2
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(pen.color()))
            painter.drawEllipse(mapper.to_display(geometry.points[0]), radius, radius)
            return

        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawPolyline(QPolygonF([mapper.to_display(p) for p in geometry.points]))

    def _font(self, annotation: Annotation, mapper: CoordinateMapper) -> QFont:
        font = QFont("Arial")
        font.setPixelSize(max(1, round(mapper.to_display_length(annotation.style.font_size))))
        return font

    def _paint_text(self, painter, annotation, geometry: TextGeometry, mapper) -> None:
        painter.setFont(self._font(annotation, mapper))
        painter.setPen(_color(annotation.style.color, annotation.style.opacity))
        painter.drawText(mapper.to_display(geometry.anchor), geometry.text)

    # === Selection ===

    def text_bounds(self, annotation: Annotation, mapper: CoordinateMapper) -> QRectF:
        """Display-space bounds of a text annotation, from real font metrics."""
        geometry = annotation.geometry
        if not isinstance(geometry, TextGeometry):
            return QRectF()
        metrics = QFontMetricsF(self._font(annotation, mapper))
        bounds = metrics.boundingRect(geometry.text)
        return bounds.translated(mapper.to_display(geometry.anchor))

    def outline_path(self, annotation: Annotation, mapper: CoordinateMapper) -> QPainterPath:
        """Display-space outline of an annotation, used for the selection glow."""
        path = QPainterPath()
        geometry = annotation.geometry
        if isinstance(geometry, BoxGeometry):
            if annotation.kind == AnnotationKind.CIRCLE:
                radius = mapper.to_display_length(geometry.radius)
                path.addEllipse(mapper.to_display(geometry.center), radius, radius)
            else:
                path.addRect(self._display_rect(geometry, mapper))
        elif isinstance(geometry, ArrowGeometry):
            path.moveTo(mapper.to_display(geometry.start))
            path.lineTo(mapper.to_display(geometry.end))
        elif isinstance(geometry, FreehandGeometry) and geometry.points:
            path.moveTo(mapper.to_display(geometry.points[0]))
            for point in geometry.points[1:]:
                path.lineTo(mapper.to_display(point))
        elif isinstance(geometry, TextGeometry):
            path.addRect(self.text_bounds(annotation, mapper))
        return path

    def _paint_selection(self, painter: QPainter, annotation: Annotation, mapper: CoordinateMapper) -> None:
        glow = QColor(self.config.selection_color)
        glow.setAlpha(SELECTION_GLOW_ALPHA)
        width = mapper.to_display_length(annotation.style.stroke_width + self.config.selection_glow_width)
        pen = QPen(glow, max(2.0, width), Qt.PenStyle.SolidLine, Qt.PenCapStyle.RoundCap, Qt.PenJoinStyle.RoundJoin)
        painter.save()
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        path = self.outline_path(annotation, mapper)
        if path.elementCount() == 1:
            # Single-point freehand: glow around the dot
            painter.drawPoint(path.currentPosition())
        else:
            painter.drawPath(path)
        painter.restore()
