"""
history.py

Snapshot-based undo/redo for the scene.

Callers mutate the scene first and then call ``snapshot()`` once, so the
newest undo entry is normally the current state and the first undo after an
edit restores that same state. Snapshots are structural copies: device and
annotation records are cloned, while immutable ``DeviceInfo`` and
never-mutated ``QImage`` payloads are shared.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from debug_trace import trace
from models import Annotation, Device, Scene, Viewport
from settings import get_settings


@dataclass
class Snapshot:
    """Captured scene state. ``annotations`` is None when not tracked."""
    devices: List[Device]
    viewport: Viewport
    annotations: Optional[List[Annotation]] = None


class HistoryManager:
    """
    Bounded undo and redo stacks of scene snapshots.

    Args:
        scene: The live scene to capture and restore.
        max_depth: Entries kept per stack (default from settings, 50).
        include_annotations: Capture annotations too (default from settings).
        on_change: Called after every push, undo, redo or clear.
    """

    def __init__(
        self,
        scene: Scene,
        max_depth: Optional[int] = None,
        include_annotations: Optional[bool] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        h = get_settings().settings.history
        self.scene = scene
        self.max_depth = max(1, max_depth if max_depth is not None else h.max_depth)
        self.include_annotations = (
            include_annotations if include_annotations is not None else h.include_annotations
        )
        self.on_change = on_change
        self.undo_stack: Deque[Snapshot] = deque(maxlen=self.max_depth)
        self.redo_stack: Deque[Snapshot] = deque(maxlen=self.max_depth)

    # -------------------------------------------------------------------------
    # Capture / restore
    # -------------------------------------------------------------------------

    def capture(self) -> Snapshot:
        s = self.scene
        return Snapshot(
            devices=[d.clone() for d in s.devices],
            viewport=s.viewport.clone(),
            annotations=[a.clone() for a in s.annotations] if self.include_annotations else None,
        )

    def _restore(self, snap: Snapshot) -> None:
        s = self.scene
        # Clone again so the stacks never share records with the live scene
        s.devices = [d.clone() for d in snap.devices]
        s.viewport = snap.viewport.clone()
        if snap.annotations is not None:
            s.annotations = [a.clone() for a in snap.annotations]
        s.clear_selection()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def snapshot(self) -> None:
        """Push the current state. Evicts the oldest entry when full and clears redo."""
        self.undo_stack.append(self.capture())
        self.redo_stack.clear()
        trace(f"snapshot: undo={len(self.undo_stack)}", "HISTORY")
        self._notify()

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def undo(self) -> bool:
        """Restore the newest undo entry. Returns False if the undo stack is empty."""
        if not self.undo_stack:
            return False
        self.redo_stack.append(self.capture())
        self._restore(self.undo_stack.pop())
        trace(f"undo: undo={len(self.undo_stack)} redo={len(self.redo_stack)}", "HISTORY")
        self._notify()
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone state. Returns False if there is none."""
        if not self.redo_stack:
            return False
        self.undo_stack.append(self.capture())
        self._restore(self.redo_stack.pop())
        trace(f"redo: undo={len(self.undo_stack)} redo={len(self.redo_stack)}", "HISTORY")
        self._notify()
        return True

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()
        self._notify()
