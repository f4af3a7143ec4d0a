"""Undo/Redo history built on full scene snapshots."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from .models import Annotation

if TYPE_CHECKING:
    from .scene import Scene

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable serialized copy of a scene.

    Each record is a (local_id, json) pair so restored annotations own
    fresh data and keep their client-side identity.
    """

    records: Tuple[Tuple[str, str], ...]
    description: str = ""

    @classmethod
    def capture(cls, scene: Scene, description: str = "") -> Snapshot:
        """Serialize the current contents of a scene."""
        return cls(
            records=tuple(
                (a.local_id, json.dumps(a.to_dict(include_server_fields=True), sort_keys=True))
                for a in scene.annotations
            ),
            description=description,
        )

    def restore(self) -> List[Annotation]:
        """Build new annotation objects from the snapshot."""
        return [
            Annotation.from_dict(json.loads(payload), local_id=local_id)
            for local_id, payload in self.records
        ]


class HistoryManager(QObject):
    """
    Linear undo/redo stack of scene snapshots with a cursor.

    The snapshot under the cursor always matches the live scene. Recording
    after an undo discards the redo entries; there is no branching.
    """

    state_changed = pyqtSignal()  # Emitted when undo/redo availability changes

    def __init__(self, max_history: int = 100) -> None:
        """
        Initialize the history manager.

        Args:
            max_history: Maximum number of snapshots to keep
        """
        super().__init__()
        self._snapshots: List[Snapshot] = []
        self._cursor = -1
        self._max_history = max(1, max_history)

    def reset(self, scene: Scene) -> None:
        """Drop all history and record the scene as the starting point."""
        self._snapshots = [Snapshot.capture(scene, "Open")]
        self._cursor = 0
        logger.debug(f"History reset with {len(scene)} annotation(s)")
        self.state_changed.emit()

    def record(self, scene: Scene, description: str = "") -> None:
        """
        Capture the scene after a mutation.

        Args:
            scene: Scene in its post-mutation state
            description: Human-readable label for the change
        """
        del self._snapshots[self._cursor + 1:]
        self._snapshots.append(Snapshot.capture(scene, description))

        while len(self._snapshots) > self._max_history:
            self._snapshots.pop(0)
        self._cursor = len(self._snapshots) - 1

        logger.debug(f"Recorded: {description or 'change'}")
        self.state_changed.emit()

    def undo(self, scene: Scene) -> bool:
        """
        Step back one snapshot and restore it into the scene.

        Returns:
            True if a step was undone
        """
        if not self.can_undo():
            return False

        undone = self._snapshots[self._cursor].description
        self._cursor -= 1
        scene.replace(self._snapshots[self._cursor].restore())

        logger.debug(f"Undone: {undone}")
        self.state_changed.emit()
        return True

    def redo(self, scene: Scene) -> bool:
        """
        Step forward one snapshot and restore it into the scene.

        Returns:
            True if a step was redone
        """
        if not self.can_redo():
            return False

        self._cursor += 1
        scene.replace(self._snapshots[self._cursor].restore())

        logger.debug(f"Redone: {self._snapshots[self._cursor].description}")
        self.state_changed.emit()
        return True

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return self._cursor > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return 0 <= self._cursor < len(self._snapshots) - 1

    def undo_description(self) -> str:
        """Get description of the change that would be undone."""
        if self.can_undo():
            return self._snapshots[self._cursor].description
        return ""

    def redo_description(self) -> str:
        """Get description of the change that would be redone."""
        if self.can_redo():
            return self._snapshots[self._cursor + 1].description
        return ""
