"""Data models for review markup annotations."""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from PyQt6.QtCore import QPointF

logger = logging.getLogger(__name__)


class AnnotationKind(str, Enum):
    """Kind of annotation. Fixed at creation."""

    TEXT = "text"
    ARROW = "arrow"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    FREEHAND = "freehand"
    HIGHLIGHT = "highlight"

    @property
    def is_box(self) -> bool:
        """True for kinds whose geometry is an origin plus width/height."""
        return self in (AnnotationKind.RECTANGLE, AnnotationKind.CIRCLE, AnnotationKind.HIGHLIGHT)


@dataclass
class Style:
    """
    Visual style of an annotation.

    Defaults mirror the storage service's schema defaults.
    """

    color: str = "#ff0000"
    stroke_width: float = 2
    fill_color: Optional[str] = None
    font_size: float = 14
    opacity: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert style to its wire representation."""
        data: Dict[str, Any] = {
            "color": self.color,
            "strokeWidth": self.stroke_width,
            "fontSize": self.font_size,
            "opacity": self.opacity,
        }
        if self.fill_color:
            data["fillColor"] = self.fill_color
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Style:
        """Create style from wire data, filling in defaults."""
        data = data or {}
        return cls(
            color=data.get("color") or "#ff0000",
            stroke_width=data.get("strokeWidth", 2),
            fill_color=data.get("fillColor") or None,
            font_size=data.get("fontSize", 14),
            opacity=data.get("opacity", 1.0),
        )


@dataclass
class TextGeometry:
    """Text label anchored at its baseline-left point."""

    anchor: QPointF
    text: str = ""


@dataclass
class BoxGeometry:
    """
    Origin plus signed extent.

    Used by rectangles, highlights and circles (as the bounding box).
    Width and height may be negative while drafting.
    """

    origin: QPointF
    width: float = 0.0
    height: float = 0.0

    def normalized(self) -> tuple[float, float, float, float]:
        """
        Get the box with non-negative extent.

        Returns:
            Tuple of (x, y, width, height)
        """
        x, y = self.origin.x(), self.origin.y()
        w, h = self.width, self.height
        if w < 0:
            x, w = x + w, -w
        if h < 0:
            y, h = y + h, -h
        return (x, y, w, h)

    @property
    def center(self) -> QPointF:
        x, y, w, h = self.normalized()
        return QPointF(x + w / 2, y + h / 2)

    @property
    def radius(self) -> float:
        return abs(self.width) / 2


@dataclass
class ArrowGeometry:
    """Arrow from start to end; the head sits at the end point."""

    start: QPointF
    end: QPointF

    @property
    def length(self) -> float:
        return math.hypot(self.end.x() - self.start.x(), self.end.y() - self.start.y())


@dataclass
class FreehandGeometry:
    """Ordered stroke points."""

    points: List[QPointF] = field(default_factory=list)

    @property
    def length(self) -> float:
        return sum(
            math.hypot(b.x() - a.x(), b.y() - a.y())
            for a, b in zip(self.points, self.points[1:])
        )


Geometry = Union[TextGeometry, BoxGeometry, ArrowGeometry, FreehandGeometry]

_GEOMETRY_TYPES = {
    AnnotationKind.TEXT: TextGeometry,
    AnnotationKind.ARROW: ArrowGeometry,
    AnnotationKind.RECTANGLE: BoxGeometry,
    AnnotationKind.CIRCLE: BoxGeometry,
    AnnotationKind.HIGHLIGHT: BoxGeometry,
    AnnotationKind.FREEHAND: FreehandGeometry,
}


def geometry_type_for(kind: AnnotationKind) -> type:
    """Get the geometry class a given kind carries."""
    return _GEOMETRY_TYPES[AnnotationKind(kind)]


def _new_local_id() -> str:
    return uuid.uuid4().hex


def _number(data: Dict[str, Any], key: str) -> float:
    """Read a required numeric field from wire coordinates."""
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Coordinate '{key}' must be a number, got {value!r}")
    return float(value)


def _point(data: Any) -> QPointF:
    if not isinstance(data, dict):
        raise ValueError(f"Point must be an object, got {data!r}")
    return QPointF(_number(data, "x"), _number(data, "y"))


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value!r}")
        return None


@dataclass
class Annotation:
    """
    A single markup object on a target image.

    Geometry is kept in natural (unscaled image) coordinates. The geometry
    class always matches the kind; see geometry_type_for().
    """

    kind: AnnotationKind
    geometry: Geometry
    style: Style = field(default_factory=Style)
    id: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[datetime] = None
    local_id: str = field(default_factory=_new_local_id, compare=False)

    def __post_init__(self) -> None:
        """Validate that the geometry payload matches the kind."""
        self.kind = AnnotationKind(self.kind)
        expected = geometry_type_for(self.kind)
        if not isinstance(self.geometry, expected):
            raise ValueError(
                f"{self.kind.value} annotation needs {expected.__name__}, "
                f"got {type(self.geometry).__name__}"
            )

    @property
    def text(self) -> str:
        """Text content (empty for non-text kinds)."""
        if isinstance(self.geometry, TextGeometry):
            return self.geometry.text
        return ""

    @property
    def is_saved(self) -> bool:
        return self.id is not None

    def is_degenerate(self) -> bool:
        """
        Check whether the geometry is too small to keep.

        Zero-area boxes, zero-radius circles, zero-length arrows, freehand
        strokes whose points all coincide and blank text are degenerate.
        """
        geometry = self.geometry
        if isinstance(geometry, BoxGeometry):
            if self.kind == AnnotationKind.CIRCLE:
                # Radius comes from the width alone
                return geometry.width == 0
            return geometry.width == 0 or geometry.height == 0
        if isinstance(geometry, ArrowGeometry):
            return geometry.start == geometry.end
        if isinstance(geometry, FreehandGeometry):
            return not geometry.points or geometry.length == 0
        if isinstance(geometry, TextGeometry):
            return not geometry.text.strip()
        return True

    def copy(self) -> Annotation:
        """Deep copy that shares no mutable state, keeping the local id."""
        return Annotation.from_dict(self.to_dict(include_server_fields=True), local_id=self.local_id)

    def to_dict(self, include_server_fields: bool = False) -> Dict[str, Any]:
        """
        Convert to the storage service's wire format.

        Args:
            include_server_fields: Also emit _id, author and createdAt

        Returns:
            JSON-serializable dictionary
        """
        geometry = self.geometry
        if isinstance(geometry, TextGeometry):
            coordinates: Dict[str, Any] = {"x": geometry.anchor.x(), "y": geometry.anchor.y()}
        elif isinstance(geometry, BoxGeometry):
            coordinates = {
                "x": geometry.origin.x(),
                "y": geometry.origin.y(),
                "width": geometry.width,
                "height": geometry.height,
            }
        elif isinstance(geometry, ArrowGeometry):
            coordinates = {
                "x": geometry.start.x(),
                "y": geometry.start.y(),
                "endX": geometry.end.x(),
                "endY": geometry.end.y(),
            }
        else:
            # The service requires x/y on every record; use the first point
            first = geometry.points[0] if geometry.points else QPointF()
            coordinates = {
                "x": first.x(),
                "y": first.y(),
                "points": [{"x": p.x(), "y": p.y()} for p in geometry.points],
            }

        data: Dict[str, Any] = {
            "type": self.kind.value,
            "coordinates": coordinates,
            "style": self.style.to_dict(),
        }
        if self.kind == AnnotationKind.TEXT:
            data["text"] = self.text

        if include_server_fields:
            if self.id is not None:
                data["_id"] = self.id
            if self.author is not None:
                data["author"] = self.author
            if self.created_at is not None:
                data["createdAt"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], local_id: Optional[str] = None) -> Annotation:
        """
        Create an annotation from a wire record.

        Args:
            data: Record as returned by the storage service
            local_id: Keep this client-side key instead of generating one

        Returns:
            New Annotation instance

        Raises:
            ValueError: If the record is missing fields its kind requires
        """
        if not isinstance(data, dict):
            raise ValueError(f"Annotation record must be an object, got {type(data).__name__}")

        try:
            kind = AnnotationKind(data.get("type", data.get("kind")))
        except ValueError:
            raise ValueError(f"Unknown annotation type: {data.get('type')!r}") from None

        coords = data.get("coordinates", data.get("geometry"))
        if not isinstance(coords, dict):
            raise ValueError(f"{kind.value} annotation has no coordinates")

        if kind == AnnotationKind.TEXT:
            geometry: Geometry = TextGeometry(_point(coords), str(data.get("text") or ""))
        elif kind.is_box:
            geometry = BoxGeometry(_point(coords), _number(coords, "width"), _number(coords, "height"))
        elif kind == AnnotationKind.ARROW:
            geometry = ArrowGeometry(
                _point(coords),
                QPointF(_number(coords, "endX"), _number(coords, "endY")),
            )
        else:
            points = coords.get("points")
            if not isinstance(points, list) or not points:
                raise ValueError("freehand annotation needs at least one point")
            geometry = FreehandGeometry([_point(p) for p in points])

        author = data.get("author")
        if isinstance(author, dict):
            author = author.get("_id") or author.get("id")

        record_id = data.get("_id", data.get("id"))
        return cls(
            kind=kind,
            geometry=geometry,
            style=Style.from_dict(data.get("style")),
            id=str(record_id) if record_id is not None else None,
            author=str(author) if author is not None else None,
            created_at=_parse_timestamp(data.get("createdAt")),
            local_id=local_id or _new_local_id(),
        )


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
