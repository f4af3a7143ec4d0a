"""Mapping between natural image pixels and the scaled display surface."""

from __future__ import annotations

import logging

from PyQt6.QtCore import QPointF, QSizeF

logger = logging.getLogger(__name__)


class CoordinateMapper:
    """
    Uniform scale between natural image space and display space.

    The image is fit inside its container without ever upscaling past its
    natural resolution, and the scaled surface is centered in the container.
    Display coordinates are local to the scaled surface; use
    container_to_natural() for points relative to the container.
    """

    def __init__(self, natural_size: QSizeF = QSizeF(), container_size: QSizeF = QSizeF()) -> None:
        """
        Initialize the mapper.

        Args:
            natural_size: Size of the original, unscaled image
            container_size: Size of the widget hosting the surface
        """
        self._natural_size = QSizeF(natural_size)
        self._container_size = QSizeF(container_size)
        self._scale = 1.0
        self._offset = QPointF()
        self._recompute()

    def _recompute(self) -> None:
        nw, nh = self._natural_size.width(), self._natural_size.height()
        cw, ch = self._container_size.width(), self._container_size.height()

        if nw <= 0 or nh <= 0 or cw <= 0 or ch <= 0:
            self._scale = 1.0
        else:
            self._scale = min(cw / nw, ch / nh, 1.0)

        surface = self.surface_size
        self._offset = QPointF(
            max(0.0, (cw - surface.width()) / 2),
            max(0.0, (ch - surface.height()) / 2),
        )
        logger.debug(f"Mapper scale={self._scale:.4f} offset=({self._offset.x():.1f}, {self._offset.y():.1f})")

    def update(self, natural_size: QSizeF | None = None, container_size: QSizeF | None = None) -> None:
        """
        Recompute after the image or container changed.

        Args:
            natural_size: New image size, or None to keep the current one
            container_size: New container size, or None to keep the current one
        """
        if natural_size is not None:
            self._natural_size = QSizeF(natural_size)
        if container_size is not None:
            self._container_size = QSizeF(container_size)
        self._recompute()

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def offset(self) -> QPointF:
        """Top-left of the scaled surface inside the container."""
        return QPointF(self._offset)

    @property
    def natural_size(self) -> QSizeF:
        return QSizeF(self._natural_size)

    @property
    def container_size(self) -> QSizeF:
        return QSizeF(self._container_size)

    @property
    def surface_size(self) -> QSizeF:
        """Size of the scaled drawing surface."""
        return QSizeF(self._natural_size.width() * self._scale, self._natural_size.height() * self._scale)

    def to_natural(self, point: QPointF) -> QPointF:
        """Convert a surface-local display point to natural coordinates."""
        return QPointF(point.x() / self._scale, point.y() / self._scale)

    def to_display(self, point: QPointF) -> QPointF:
        """Convert a natural point to surface-local display coordinates."""
        return QPointF(point.x() * self._scale, point.y() * self._scale)

    def to_natural_length(self, length: float) -> float:
        return length / self._scale

    def to_display_length(self, length: float) -> float:
        return length * self._scale

    def container_to_natural(self, point: QPointF) -> QPointF:
        """Convert a container-local point to natural coordinates."""
        return self.to_natural(point - self._offset)

    def container_to_display(self, point: QPointF) -> QPointF:
        """Convert a container-local point to surface-local coordinates."""
        return point - self._offset
