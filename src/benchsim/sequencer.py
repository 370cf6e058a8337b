"""Linear guided-step state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Union

from benchsim.errors import StepNotAdvanceable, StepNotReversible
from benchsim.observations import Observations
from benchsim.predicates import Predicate, always
from benchsim.world import WorldState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """One guided step.

    Attributes:
        id: Identifier shown by the rendering layer.
        title: Short heading.
        description: Instructions for the learner.
        advance_when: Condition that lets the sequencer move past this step.
        reversible: Whether "previous step" may return to this step once left.
        equipment: Equipment allowed on the bench during this step in guided
            mode; empty means anything goes.
    """

    id: Union[int, str]
    title: str
    description: str = ""
    advance_when: Predicate = field(default_factory=always)
    reversible: bool = False
    equipment: Tuple[str, ...] = ()


class StepSequencer:
    def __init__(self, steps: Sequence[Step], allow_previous: bool = False) -> None:
        if not steps:
            raise ValueError("An experiment needs at least one step")
        self.steps = tuple(steps)
        self.allow_previous = allow_previous
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    @property
    def step(self) -> Step:
        return self.steps[self._current]

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def is_terminal(self) -> bool:
        return self._current == len(self.steps) - 1

    def can_advance(self, world: WorldState, observations: Optional[Observations] = None) -> bool:
        return self.step.advance_when(world, observations)

    def advance_if_ready(self, world: WorldState, observations: Optional[Observations] = None) -> bool:
        """Move forward one step when the current step's condition holds.

        Not being ready, or already sitting on the last step, is a no-op.
        """
        if self.is_terminal or not self.can_advance(world, observations):
            return False
        self._current += 1
        logger.info("Advanced to step %d/%d: %s", self._current + 1, self.total, self.step.title)
        return True

    def advance(self, world: WorldState, observations: Optional[Observations] = None) -> None:
        if self.is_terminal:
            raise StepNotAdvanceable(self._current, self.step.title, "already on the last step")
        if not self.can_advance(world, observations):
            raise StepNotAdvanceable(self._current, self.step.title)
        self.advance_if_ready(world, observations)

    def go_back(self) -> None:
        if not self.allow_previous:
            raise StepNotReversible(self._current, "this experiment only moves forward")
        if self._current == 0:
            raise StepNotReversible(self._current, "already on the first step")
        if not self.steps[self._current - 1].reversible:
            raise StepNotReversible(self._current, f"step {self._current} cannot be revisited")
        self._current -= 1
        logger.info("Went back to step %d/%d", self._current + 1, self.total)

    def is_complete(self, world: WorldState, observations: Optional[Observations] = None) -> bool:
        return self.is_terminal and self.can_advance(world, observations)

    def completed_steps(self, world: WorldState, observations: Optional[Observations] = None) -> Tuple[int, ...]:
        done = tuple(range(self._current))
        if self.is_complete(world, observations):
            done += (self._current,)
        return done

    def jump_to_first(self) -> None:
        self._current = 0

    def restore(self, index: int) -> None:
        if not 0 <= index < len(self.steps):
            raise IndexError(f"Step index {index} out of range")
        self._current = index
