"""Engine facade consumed by the rendering layer.

Every mutating operation follows the same cycle:

1. capture a snapshot of the current state,
2. apply the mutation to the world,
3. re-run the reaction rules and apply their queued flags,
4. let the step sequencer advance if the current step is now satisfied,
5. push the snapshot onto the undo history,
6. return an ``EngineResult`` describing the fresh state.

Recoverable errors (a double-clicked remove, an empty undo stack, ...) come
back in ``EngineResult.error`` with the state untouched; they are never
raised. Only a broken experiment definition raises ``ConfigurationError``:
from the constructor, or from a mutation whose rule evaluation fails, in
which case the state is rolled back to the snapshot first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from benchsim.config import ExperimentConfig
from benchsim.constants import HEATING_PULSE, OBSERVE_TRIGGER, PULSE_COUNT_SUFFIX
from benchsim.errors import BenchError, ConfigurationError, EquipmentNotAllowed
from benchsim.history import HistoryManager, Snapshot
from benchsim.models import Position
from benchsim.observations import Observations
from benchsim.rules import RuleEngine
from benchsim.sequencer import Step, StepSequencer
from benchsim.world import FlagValue, WorldState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    """State handed back after every engine call.

    Attributes:
        world: Copy of the world; mutating it does not affect the engine.
        observations: Current observations.
        step_index: Zero-based index of the current step.
        step: The current step.
        step_ready: The current step's advance condition holds.
        step_complete: The last step is reached and satisfied.
        can_undo: History holds at least one snapshot.
        value: Operation-specific result (new instance id, new amount, ...).
        error: The typed error when the operation was rejected.
    """

    world: WorldState
    observations: Observations
    step_index: int
    step: Step
    step_ready: bool
    step_complete: bool
    can_undo: bool
    value: Any = None
    error: Optional[BenchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "error": None if self.error is None else {
                "type": type(self.error).__name__,
                "message": str(self.error),
            },
            "value": self.value,
            "step": {
                "index": self.step_index,
                "id": self.step.id,
                "title": self.step.title,
                "ready": self.step_ready,
                "complete": self.step_complete,
            },
            "can_undo": self.can_undo,
            "observations": self.observations.to_dict(),
            "world": self.world.to_dict(),
        }


class ExperimentEngine:
    """One guided experiment session."""

    def __init__(self, config: ExperimentConfig) -> None:
        config.validate()
        self.config = config
        self._world = WorldState(config.chemical_table, config.equipment_table)
        self._rules = RuleEngine(config.rules, config.observation_slots)
        self._observations = self._rules.initial()
        self._sequencer = StepSequencer(config.steps, allow_previous=config.allow_previous_step)
        self._history = HistoryManager(config.max_history)
        logger.debug("Started experiment %s with %d steps", config.name, len(config.steps))

    # -- read side --------------------------------------------------------

    @property
    def step_index(self) -> int:
        return self._sequencer.current

    @property
    def observations(self) -> Observations:
        return self._observations

    @property
    def history_depth(self) -> int:
        return len(self._history)

    def snapshot_view(self) -> EngineResult:
        return self._result()

    def _result(self, value: Any = None, error: Optional[BenchError] = None) -> EngineResult:
        return EngineResult(
            world=self._world.copy(),
            observations=self._observations,
            step_index=self._sequencer.current,
            step=self._sequencer.step,
            step_ready=self._sequencer.can_advance(self._world, self._observations),
            step_complete=self._sequencer.is_complete(self._world, self._observations),
            can_undo=self._history.can_undo,
            value=value,
            error=error,
        )

    # -- the mutation cycle -----------------------------------------------

    def _mutate(
        self,
        operation: str,
        mutation: Callable[[], Any],
        transient: Sequence[str] = (),
    ) -> EngineResult:
        snapshot = Snapshot.capture(self._world, self._observations, self._sequencer.current)
        try:
            value = mutation()
        except BenchError as exc:
            logger.info("%s rejected: %s", operation, exc)
            return self._result(error=exc)

        try:
            self._refresh(transient)
        except (BenchError, ArithmeticError, LookupError, TypeError, ValueError) as exc:
            self._restore(snapshot)
            logger.exception("%s rolled back: rule evaluation failed", operation)
            raise ConfigurationError(f"{operation}: rule evaluation failed: {exc}") from exc

        self._history.push(snapshot)
        logger.debug("%s -> %r (step %d)", operation, value, self._sequencer.current + 1)
        return self._result(value=value)

    def _restore(self, snapshot: Snapshot) -> None:
        self._world, self._observations, index = snapshot.restore()
        self._sequencer.restore(index)

    def _refresh(self, transient: Sequence[str] = ()) -> None:
        evaluation = self._rules.evaluate(self._world, self._observations)
        evaluation.apply_flags(self._world)
        self._observations = evaluation.observations
        for name in transient:
            self._world.clear_flag(name)
        self._sequencer.advance_if_ready(self._world, self._observations)

    # -- mutating operations ----------------------------------------------

    def place_equipment(self, definition_id: str, position: Optional[Position] = None) -> EngineResult:
        def mutation() -> str:
            step = self._sequencer.step
            if self.config.guided and step.equipment and definition_id not in step.equipment:
                raise EquipmentNotAllowed(definition_id, step.title)
            return self._world.place_equipment(definition_id, position)

        return self._mutate("place_equipment", mutation)

    def remove_equipment(self, instance_id: str) -> EngineResult:
        return self._mutate("remove_equipment", lambda: self._world.remove_equipment(instance_id))

    def move_equipment(self, instance_id: str, x: float, y: float) -> EngineResult:
        return self._mutate("move_equipment", lambda: self._world.set_position(instance_id, x, y))

    def add_chemical(self, instance_id: str, chemical_id: str, amount: float) -> EngineResult:
        return self._mutate(
            "add_chemical",
            lambda: self._world.add_chemical(instance_id, chemical_id, amount),
        )

    def consume_chemical(self, instance_id: str, chemical_id: str, amount: float) -> EngineResult:
        return self._mutate(
            "consume_chemical",
            lambda: self._world.consume_chemical(instance_id, chemical_id, amount),
        )

    def transfer(self, source_id: str, target_id: str, chemical_id: Optional[str] = None) -> EngineResult:
        return self._mutate(
            "transfer",
            lambda: self._world.transfer(source_id, target_id, chemical_id),
        )

    def set_flag(self, name: str, value: FlagValue = True) -> EngineResult:
        return self._mutate("set_flag", lambda: self._world.set_flag(name, value))

    def toggle_flag(self, name: str, value: Optional[bool] = None) -> EngineResult:
        def mutation() -> bool:
            new_value = (not self._world.get_flag(name)) if value is None else bool(value)
            self._world.set_flag(name, new_value)
            return new_value

        return self._mutate("toggle_flag", mutation)

    def _pulse(self, operation: str, name: str) -> EngineResult:
        def mutation() -> float:
            self._world.set_flag(name, True)
            return self._world.increment(name + PULSE_COUNT_SUFFIX)

        return self._mutate(operation, mutation, transient=(name,))

    def observe(self, trigger: str = OBSERVE_TRIGGER) -> EngineResult:
        """Learner pressed an observe/measure control.

        ``trigger`` is set for exactly one rule pass and its counter
        ``<trigger>.count`` goes up by one.
        """
        return self._pulse("observe", trigger)

    def complete_pulse(self, name: str = HEATING_PULSE) -> EngineResult:
        """The animation layer reports that a timed visual effect has finished."""
        return self._pulse("complete_pulse", name)

    # -- history and steps ------------------------------------------------

    def undo(self) -> EngineResult:
        try:
            snapshot = self._history.undo()
        except BenchError as exc:
            logger.info("undo rejected: %s", exc)
            return self._result(error=exc)
        self._restore(snapshot)
        logger.debug(
            "Undo restored step %d, %d entries left", snapshot.step_index + 1, len(self._history)
        )
        return self._result()

    def reset(self) -> EngineResult:
        self._world.clear()
        self._observations = self._rules.initial()
        self._history.clear()
        self._sequencer.jump_to_first()
        logger.info("Experiment %s reset", self.config.name)
        return self._result()

    def advance_if_ready(self) -> EngineResult:
        moved = self._sequencer.advance_if_ready(self._world, self._observations)
        return self._result(value=moved)

    def advance(self) -> EngineResult:
        try:
            self._sequencer.advance(self._world, self._observations)
        except BenchError as exc:
            logger.info("advance rejected: %s", exc)
            return self._result(error=exc)
        return self._result(value=True)

    def previous_step(self) -> EngineResult:
        try:
            self._sequencer.go_back()
        except BenchError as exc:
            logger.info("previous step rejected: %s", exc)
            return self._result(error=exc)
        return self._result(value=True)

    def completed_steps(self) -> Tuple[int, ...]:
        return self._sequencer.completed_steps(self._world, self._observations)
