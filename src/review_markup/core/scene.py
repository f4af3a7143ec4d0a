"""In-memory scene of finalized annotations."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional

from PyQt6.QtCore import QPointF

from .hit_testing import HitTester
from .models import Annotation

logger = logging.getLogger(__name__)


class Scene:
    """
    Ordered collection of finalized annotations for one target image.

    List order is paint order: later annotations are drawn on top. The
    selection is an identity reference to an annotation that is currently
    in the scene, or None.
    """

    def __init__(
        self,
        annotations: Optional[Iterable[Annotation]] = None,
        hit_tester: Optional[HitTester] = None
    ) -> None:
        self._annotations: List[Annotation] = list(annotations or [])
        self._selected: Optional[Annotation] = None
        self.hit_tester = hit_tester or HitTester()

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations))

    def __contains__(self, annotation: object) -> bool:
        return any(a is annotation for a in self._annotations)

    @property
    def annotations(self) -> List[Annotation]:
        """Copy of the annotation list in paint order."""
        return list(self._annotations)

    @property
    def selected(self) -> Optional[Annotation]:
        return self._selected

    def append(self, annotation: Annotation) -> None:
        """Add an annotation on top of the others."""
        self._annotations.append(annotation)

    def remove(self, annotation: Annotation) -> bool:
        """
        Remove an annotation from the scene.

        Returns:
            True if the annotation was in the scene
        """
        for index, existing in enumerate(self._annotations):
            if existing is annotation:
                del self._annotations[index]
                if self._selected is annotation:
                    self._selected = None
                return True
        return False

    def index_of(self, annotation: Annotation) -> int:
        """Index of an annotation by identity, or -1."""
        for index, existing in enumerate(self._annotations):
            if existing is annotation:
                return index
        return -1

    def find_by_local_id(self, local_id: str) -> Optional[Annotation]:
        for annotation in self._annotations:
            if annotation.local_id == local_id:
                return annotation
        return None

    def annotation_at(self, point: QPointF) -> Optional[Annotation]:
        """
        Find the topmost annotation under a natural-space point.

        Iterates from last-drawn to first so the visually front object wins.
        """
        for annotation in reversed(self._annotations):
            if self.hit_tester.hits(annotation, point):
                return annotation
        return None

    def select_at(self, point: QPointF) -> Optional[Annotation]:
        """
        Select the topmost annotation under a point.

        Clears the selection when nothing is hit.

        Returns:
            The newly selected annotation or None
        """
        self._selected = self.annotation_at(point)
        if self._selected is not None:
            logger.debug(f"Selected {self._selected.kind.value} at index {self.index_of(self._selected)}")
        return self._selected

    def select(self, annotation: Optional[Annotation]) -> bool:
        """
        Select a specific annotation, or clear with None.

        Returns:
            False if the annotation is not part of the scene
        """
        if annotation is not None and annotation not in self:
            return False
        self._selected = annotation
        return True

    def clear_selection(self) -> None:
        self._selected = None

    def clear(self) -> None:
        """Remove all annotations and the selection."""
        self._annotations.clear()
        self._selected = None

    def replace(self, annotations: Iterable[Annotation]) -> None:
        """Replace the scene contents, dropping the selection."""
        self._annotations = list(annotations)
        self._selected = None
