"""Ordered reaction rules and the engine that evaluates them.

Rules run in declared order on every evaluation. A rule whose condition holds
applies its effects; later rules may overwrite slots written by earlier ones,
so a specific rule ("dichromate and heating") is declared after the generic
one it refines ("heating"). A rule whose condition is false leaves its slots
alone, which is how an observation stays latched after its trigger is gone.

Flag effects are queued on the returned ``Evaluation`` and applied by the
caller once the pass is over, so no rule sees a flag written in the same pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from benchsim.chemistry import diluted_concentration, indicator_colour, strong_acid_ph, weak_acid_ph
from benchsim.constants import NEUTRAL_PH, RULE_FIRED_TEMPLATE
from benchsim.observations import UNOBSERVED, Observations
from benchsim.predicates import Predicate
from benchsim.world import FlagValue, WorldState

logger = logging.getLogger(__name__)


class _Pass:
    """Scratch state for one evaluation pass."""

    def __init__(self, observations: Observations) -> None:
        self.values: Dict[str, Any] = observations.as_dict()
        self.flags: List[Tuple[str, FlagValue]] = []


@dataclass(frozen=True)
class SetObservation:
    slot: str
    value: Any

    @property
    def slots(self) -> FrozenSet[str]:
        return frozenset([self.slot])

    def apply(self, world: WorldState, scratch: _Pass) -> None:
        scratch.values[self.slot] = self.value


@dataclass(frozen=True)
class ClearObservation:
    slot: str

    @property
    def slots(self) -> FrozenSet[str]:
        return frozenset([self.slot])

    def apply(self, world: WorldState, scratch: _Pass) -> None:
        scratch.values[self.slot] = UNOBSERVED


@dataclass(frozen=True)
class SetFlag:
    name: str
    value: FlagValue = True

    @property
    def slots(self) -> FrozenSet[str]:
        return frozenset()

    def apply(self, world: WorldState, scratch: _Pass) -> None:
        scratch.flags.append((self.name, self.value))


@dataclass(frozen=True)
class DeriveObservation:
    """Write ``derive(world)`` into ``slot``; a ``None`` result writes nothing."""

    slot: str
    derive: Callable[[WorldState], Any]
    description: str = ""

    @property
    def slots(self) -> FrozenSet[str]:
        return frozenset([self.slot])

    def apply(self, world: WorldState, scratch: _Pass) -> None:
        value = self.derive(world)
        if value is not None:
            scratch.values[self.slot] = value


@dataclass(frozen=True)
class MeasurePH:
    """Read the pH of the first container holding an indicator and an acid.

    Containers are scanned in instance-id order. The solution volume is the
    container's contents less the indicators, so water dilutes the reading.
    Strong acids pool their H+ and use ``-log10([H+])``; otherwise the first
    listed acid with a pKa present uses the weak-acid approximation. With
    ``neutral`` set, a container holding an indicator and some solution but
    none of the acids reads ``NEUTRAL_PH``.
    """

    slot: str
    acids: Tuple[str, ...]
    indicators: Tuple[str, ...]
    neutral: bool = False

    @property
    def slots(self) -> FrozenSet[str]:
        return frozenset([self.slot])

    def measure(self, world: WorldState) -> Optional[float]:
        for instance in sorted(world.list_instances(), key=lambda item: item.instance_id):
            if not any(instance.contains(indicator) for indicator in self.indicators):
                continue
            volume = instance.total_amount - sum(instance.amount_of(i) for i in self.indicators)
            if volume <= 0.0:
                continue
            present = [acid for acid in self.acids if instance.contains(acid)]
            if not present:
                if self.neutral:
                    return NEUTRAL_PH
                continue

            definitions = [world.chemical(acid) for acid in present]
            strong = sum(
                instance.amount_of(d.id) * d.concentration for d in definitions if d.pka is None
            )
            if strong > 0.0:
                return strong_acid_ph(strong / volume)
            weak = definitions[0]
            concentration = diluted_concentration(weak.concentration, instance.amount_of(weak.id), volume)
            return weak_acid_ph(concentration, weak.pka)
        return None

    def apply(self, world: WorldState, scratch: _Pass) -> None:
        value = self.measure(world)
        if value is not None:
            scratch.values[self.slot] = value


@dataclass(frozen=True)
class IndicatorColour:
    """Write the universal-indicator colour for the pH ``MeasurePH`` would read."""

    slot: str
    acids: Tuple[str, ...]
    indicators: Tuple[str, ...]

    @property
    def slots(self) -> FrozenSet[str]:
        return frozenset([self.slot])

    def apply(self, world: WorldState, scratch: _Pass) -> None:
        ph = MeasurePH(self.slot, self.acids, self.indicators, neutral=True).measure(world)
        if ph is not None:
            scratch.values[self.slot] = indicator_colour(ph)


@dataclass(frozen=True)
class Rule:
    """A condition and the effects applied while it holds.

    Attributes:
        name: Unique name; also used for the one-shot flag.
        when: Condition evaluated against the world and the previous observations.
        effects: Applied in order when ``when`` holds.
        repeatable: When False the rule fires at most once per session. Firing
            sets the persistent flag ``rule.<name>.fired``, so undo and reset
            restore the ability to fire again.
        description: Free text for the rendering layer.
    """

    name: str
    when: Predicate
    effects: Tuple[Any, ...]
    repeatable: bool = True
    description: str = ""

    @property
    def fired_flag(self) -> str:
        return RULE_FIRED_TEMPLATE.format(name=self.name)

    @property
    def slots(self) -> FrozenSet[str]:
        written: FrozenSet[str] = frozenset()
        for effect in self.effects:
            written = written | effect.slots
        return written


@dataclass(frozen=True)
class Evaluation:
    observations: Observations
    flag_updates: Tuple[Tuple[str, FlagValue], ...] = ()
    fired: Tuple[str, ...] = field(default_factory=tuple)

    def apply_flags(self, world: WorldState) -> None:
        for name, value in self.flag_updates:
            world.set_flag(name, value)


class RuleEngine:
    def __init__(self, rules: Sequence[Rule], slots: Sequence[str]) -> None:
        self.rules = tuple(rules)
        self.slots = tuple(slots)

    def initial(self) -> Observations:
        return Observations(self.slots)

    def evaluate(self, world: WorldState, previous: Optional[Observations] = None) -> Evaluation:
        """Run every rule once against ``world``; never mutates it."""
        if previous is None:
            previous = self.initial()
        scratch = _Pass(previous)
        fired: List[str] = []

        for rule in self.rules:
            if not rule.repeatable and world.get_flag(rule.fired_flag):
                continue
            if not rule.when(world, previous):
                continue
            for effect in rule.effects:
                effect.apply(world, scratch)
            if not rule.repeatable:
                scratch.flags.append((rule.fired_flag, True))
            fired.append(rule.name)

        if fired:
            logger.debug("Rules fired: %s", ", ".join(fired))
        return Evaluation(
            observations=Observations((), scratch.values),
            flag_updates=tuple(scratch.flags),
            fired=tuple(fired),
        )
