"""Bounded undo history of engine snapshots."""

from __future__ import annotations

import copy
from collections import deque
from dataclasses import dataclass
from typing import Deque, Tuple

from benchsim.constants import MAX_HISTORY_ENTRIES
from benchsim.errors import EmptyHistory
from benchsim.observations import Observations
from benchsim.world import WorldState


@dataclass(frozen=True)
class Snapshot:
    world: WorldState
    observations: Observations
    step_index: int

    @classmethod
    def capture(cls, world: WorldState, observations: Observations, step_index: int) -> "Snapshot":
        return cls(world.copy(), copy.deepcopy(observations), step_index)

    def restore(self) -> Tuple[WorldState, Observations, int]:
        """Fresh copies, so the stored snapshot never aliases live state."""
        return self.world.copy(), copy.deepcopy(self.observations), self.step_index


class HistoryManager:
    """Undo stack that forgets its oldest entry once full."""

    def __init__(self, max_entries: int = MAX_HISTORY_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("History must hold at least one entry")
        self._entries: Deque[Snapshot] = deque(maxlen=max_entries)

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def push(self, snapshot: Snapshot) -> None:
        self._entries.append(snapshot)

    def undo(self) -> Snapshot:
        if not self._entries:
            raise EmptyHistory()
        return self._entries.pop()

    def clear(self) -> None:
        self._entries.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
