"""
Reversible history records and the linear undo log.

Every entry is one of four record types. Each non-compound record carries
both the before and after data it needs, so undo and redo replay the record
directly instead of re-running the edit that produced it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from pixel_editor.core.color import Color, Coordinate
from pixel_editor.core.layer import Layer


@dataclass
class PixelDelta:
    previous: Color
    current: Color


@dataclass
class PixelEdit:
    layer_index: int
    deltas: dict[Coordinate, PixelDelta] = field(default_factory=dict)

    def record(self, coord: Coordinate, previous: Color, current: Color):
        """First touch keeps `previous`; later touches only move `current`."""
        delta = self.deltas.get(coord)
        if delta is None:
            self.deltas[coord] = PixelDelta(previous, current)
        else:
            delta.current = current


class LayerAction(Enum):
    CREATE = "create"
    DELETE = "delete"
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"


@dataclass
class LayerOp:
    """`layer` is the exact layer that was created or deleted; undo and redo reinsert it."""
    kind: LayerAction
    layer_index: int
    layer: Optional[Layer] = field(default=None, compare=False, repr=False)


@dataclass
class ResizeOp:
    prev_pixel_snapshots: list[dict[Coordinate, Color]]
    next_pixel_snapshots: list[dict[Coordinate, Color]]
    prev_width: int
    prev_height: int
    next_width: int
    next_height: int


@dataclass
class Compound:
    """Applied in order on redo, in reverse order on undo."""
    actions: list = field(default_factory=list)


Action = Union[PixelEdit, LayerOp, ResizeOp, Compound]


@dataclass
class HistoryLog:
    max_entries: int = 500
    # called as on_discard(action, undone) for entries dropped by truncation or eviction
    on_discard: Optional[Callable[[Action, bool], None]] = field(default=None, repr=False)

    def __post_init__(self):
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.entries: list[Action] = []
        # number of entries currently undone, counted from the end
        self.undo_offset: int = 0

    def __len__(self):
        return len(self.entries)

    def append(self, action: Action):
        if self.undo_offset:
            cut = len(self.entries) - self.undo_offset
            dropped = self.entries[cut:]
            del self.entries[cut:]
            self.undo_offset = 0
            for old in dropped:
                self._discard(old, undone=True)
        while len(self.entries) >= self.max_entries:
            self._discard(self.entries.pop(0), undone=False)
        self.entries.append(action)

    def _discard(self, action: Action, undone: bool):
        if self.on_discard is not None:
            self.on_discard(action, undone)

    def undo(self) -> Optional[Action]:
        if self.undo_offset >= len(self.entries):
            return None
        self.undo_offset += 1
        return self.entries[len(self.entries) - self.undo_offset]

    def redo(self) -> Optional[Action]:
        if self.undo_offset == 0:
            return None
        action = self.entries[len(self.entries) - self.undo_offset]
        self.undo_offset -= 1
        return action

    def latest(self) -> Optional[Action]:
        """Newest entry, or None when there is none or it has been undone."""
        if not self.entries or self.undo_offset:
            return None
        return self.entries[-1]

    def prune_empty_tail(self) -> bool:
        latest = self.latest()
        if isinstance(latest, PixelEdit) and not latest.deltas:
            self.entries.pop()
            return True
        return False

    def can_undo(self) -> bool:
        return self.undo_offset < len(self.entries)

    def can_redo(self) -> bool:
        return self.undo_offset > 0

    def clear(self):
        cut = len(self.entries) - self.undo_offset
        dropped = list(enumerate(self.entries))
        self.entries.clear()
        self.undo_offset = 0
        for i, old in dropped:
            self._discard(old, undone=i >= cut)

    def get_stats(self) -> dict:
        return {
            "entries": len(self.entries),
            "undo_offset": self.undo_offset,
            "limit": self.max_entries,
            "full": len(self.entries) >= self.max_entries,
        }
