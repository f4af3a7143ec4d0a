"""Geometric hit-testing for annotations."""

from __future__ import annotations

import logging
import math
from typing import Optional

from PyQt6.QtCore import QPointF, QRectF

from .models import (
    Annotation, AnnotationKind, ArrowGeometry, BoxGeometry,
    FreehandGeometry, TextGeometry
)

logger = logging.getLogger(__name__)

DEFAULT_MARGIN = 5.0
DEFAULT_CHAR_WIDTH = 8.0


def distance_to_segment(p: QPointF, a: QPointF, b: QPointF) -> float:
    """
    Calculate distance from point p to line segment a-b.

    The projection of p onto a-b is clamped to the segment, so points
    beyond either end measure to the nearest endpoint.
    """
    ax, ay = a.x(), a.y()
    dx, dy = b.x() - ax, b.y() - ay
    px, py = p.x() - ax, p.y() - ay

    length_squared = dx * dx + dy * dy
    if length_squared == 0:
        return math.hypot(px, py)

    t = (px * dx + py * dy) / length_squared
    t = max(0.0, min(1.0, t))

    return math.hypot(px - t * dx, py - t * dy)


def _finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


class HitTester:
    """
    Decides whether a natural-space point falls on or near an annotation.

    Pure and side-effect free. Annotations with malformed geometry are
    treated as misses rather than raising.
    """

    def __init__(
        self,
        margin: float = DEFAULT_MARGIN,
        text_char_width: float = DEFAULT_CHAR_WIDTH,
        text_line_height: Optional[float] = None
    ) -> None:
        """
        Initialize the hit tester.

        Args:
            margin: Tolerance around shapes, in natural units
            text_char_width: Estimated advance per character for text bounds
            text_line_height: Text box height; defaults to the style's font size
        """
        self.margin = margin
        self.text_char_width = text_char_width
        self.text_line_height = text_line_height

    def hits(self, annotation: Annotation, point: QPointF) -> bool:
        """
        Check if a point is on an annotation.

        Args:
            annotation: Annotation to test
            point: Query point in natural coordinates

        Returns:
            True if the point hits the annotation
        """
        try:
            return self._hits(annotation, point)
        except (AttributeError, TypeError, ValueError, ZeroDivisionError) as e:
            logger.debug(f"Hit test skipped malformed annotation {annotation!r}: {e}")
            return False

    def _hits(self, annotation: Annotation, point: QPointF) -> bool:
        kind = annotation.kind
        geometry = annotation.geometry
        m = self.margin

        if kind in (AnnotationKind.RECTANGLE, AnnotationKind.HIGHLIGHT):
            if not isinstance(geometry, BoxGeometry):
                return False
            x, y, w, h = geometry.normalized()
            if not _finite(x, y, w, h):
                return False
            return (x - m <= point.x() <= x + w + m) and (y - m <= point.y() <= y + h + m)

        if kind == AnnotationKind.CIRCLE:
            if not isinstance(geometry, BoxGeometry):
                return False
            center = geometry.center
            radius = geometry.radius
            if not _finite(center.x(), center.y(), radius):
                return False
            return math.hypot(point.x() - center.x(), point.y() - center.y()) <= radius + m

        if kind == AnnotationKind.ARROW:
            if not isinstance(geometry, ArrowGeometry):
                return False
            if not _finite(geometry.start.x(), geometry.start.y(), geometry.end.x(), geometry.end.y()):
                return False
            return distance_to_segment(point, geometry.start, geometry.end) <= m

        if kind == AnnotationKind.FREEHAND:
            if not isinstance(geometry, FreehandGeometry) or not geometry.points:
                return False
            distance = self._freehand_distance(geometry, point)
            return distance is not None and distance <= m

        if kind == AnnotationKind.TEXT:
            if not isinstance(geometry, TextGeometry):
                return False
            rect = self.text_bounds(annotation)
            if rect is None:
                return False
            return rect.adjusted(-m, -m, m, m).contains(point)

        return False

    def _freehand_distance(self, geometry: FreehandGeometry, point: QPointF) -> Optional[float]:
        points = geometry.points
        if not all(_finite(p.x(), p.y()) for p in points):
            return None
        if len(points) == 1:
            return math.hypot(point.x() - points[0].x(), point.y() - points[0].y())
        return min(distance_to_segment(point, a, b) for a, b in zip(points, points[1:]))

    def text_bounds(self, annotation: Annotation) -> Optional[QRectF]:
        """
        Approximate bounding box of a text annotation.

        Text is painted on its baseline at the anchor, so the box extends
        upward by one line height.
        """
        geometry = annotation.geometry
        if not isinstance(geometry, TextGeometry):
            return None
        anchor = geometry.anchor
        height = self.text_line_height or annotation.style.font_size
        width = len(geometry.text) * self.text_char_width
        if not _finite(anchor.x(), anchor.y(), height, width):
            return None
        return QRectF(anchor.x(), anchor.y() - height, width, height)

    def distance(self, annotation: Annotation, point: QPointF) -> Optional[float]:
        """
        Distance from a point to the stroke of a line-like annotation.

        Returns:
            Distance for arrows and freehand strokes, None for other kinds
        """
        geometry = annotation.geometry
        if isinstance(geometry, ArrowGeometry):
            return distance_to_segment(point, geometry.start, geometry.end)
        if isinstance(geometry, FreehandGeometry) and geometry.points:
            return self._freehand_distance(geometry, point)
        return None
