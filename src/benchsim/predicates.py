"""Composable boolean tests over the workbench.

A predicate is called as ``predicate(world, observations)`` and must not
mutate either argument. Predicates combine with ``&``, ``|`` and ``~``::

    ready = has_equipment("test_tube") & equipment_has_chemical("test_tube", "salt_sample")

Each predicate also records the chemical, equipment and observation ids it
mentions so an experiment definition can be checked when it is loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, Optional

import numpy as np

from benchsim.observations import Observations
from benchsim.world import WorldState

TestFunction = Callable[[WorldState, Observations], bool]


@dataclass(frozen=True)
class References:
    chemicals: FrozenSet[str] = frozenset()
    equipment: FrozenSet[str] = frozenset()
    slots: FrozenSet[str] = frozenset()

    def __or__(self, other: "References") -> "References":
        return References(
            chemicals=self.chemicals | other.chemicals,
            equipment=self.equipment | other.equipment,
            slots=self.slots | other.slots,
        )


@dataclass(frozen=True)
class Predicate:
    test: TestFunction
    description: str = ""
    references: References = field(default_factory=References)

    def __call__(self, world: WorldState, observations: Optional[Observations] = None) -> bool:
        if observations is None:
            observations = Observations()
        return bool(self.test(world, observations))

    def __and__(self, other: "Predicate") -> "Predicate":
        return all_of(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return any_of(self, other)

    def __invert__(self) -> "Predicate":
        return not_(self)

    def __str__(self) -> str:
        return self.description or "<predicate>"


def _refs(chemicals: Iterable[str] = (), equipment: Iterable[str] = (), slots: Iterable[str] = ()) -> References:
    return References(frozenset(chemicals), frozenset(equipment), frozenset(slots))


def all_of(*predicates: Predicate) -> Predicate:
    def test(world: WorldState, observations: Observations) -> bool:
        return all(predicate(world, observations) for predicate in predicates)

    return Predicate(
        test,
        "(" + " and ".join(str(p) for p in predicates) + ")",
        _merge(predicates),
    )


def any_of(*predicates: Predicate) -> Predicate:
    def test(world: WorldState, observations: Observations) -> bool:
        return any(predicate(world, observations) for predicate in predicates)

    return Predicate(
        test,
        "(" + " or ".join(str(p) for p in predicates) + ")",
        _merge(predicates),
    )


def not_(predicate: Predicate) -> Predicate:
    return Predicate(
        lambda world, observations: not predicate(world, observations),
        f"not {predicate}",
        predicate.references,
    )


def _merge(predicates: Iterable[Predicate]) -> References:
    merged = References()
    for predicate in predicates:
        merged = merged | predicate.references
    return merged


def always() -> Predicate:
    return Predicate(lambda world, observations: True, "always")


def has_equipment(definition_id: str) -> Predicate:
    return Predicate(
        lambda world, observations: bool(world.instances_of(definition_id)),
        f"{definition_id} placed",
        _refs(equipment=[definition_id]),
    )


def both_present(first: str, second: str) -> Predicate:
    return has_equipment(first) & has_equipment(second)


def equipment_has_chemical(target: str, chemical_id: str, min_amount: float = 0.0) -> Predicate:
    """``target`` holds ``chemical_id``.

    ``target`` goes through ``WorldState.resolve``: a definition id matches
    every instance of that definition, including the first one, whose
    instance id is the definition id itself. So "test_tube" always means any
    test tube. Use ``contains_all`` when several chemicals must share one
    container.

    A chemical counts as present only while it has an entry, so the default
    ``min_amount`` of zero means "any amount at all".
    """

    def test(world: WorldState, observations: Observations) -> bool:
        return any(
            instance.contains(chemical_id) and instance.amount_of(chemical_id) >= min_amount
            for instance in world.resolve(target)
        )

    return Predicate(
        test,
        f"{target} has {chemical_id} >= {min_amount:g}",
        _refs(chemicals=[chemical_id], equipment=[target]),
    )


def any_equipment_has_chemical(chemical_id: str, min_amount: float = 0.0) -> Predicate:
    def test(world: WorldState, observations: Observations) -> bool:
        return any(
            instance.contains(chemical_id) and instance.amount_of(chemical_id) >= min_amount
            for instance in world.list_instances()
        )

    return Predicate(
        test,
        f"any equipment has {chemical_id} >= {min_amount:g}",
        _refs(chemicals=[chemical_id]),
    )


def total_at_least(target: str, amount: float) -> Predicate:
    """Combined contents of some ``target`` instance reach ``amount`` (e.g. a flask's mark)."""

    def test(world: WorldState, observations: Observations) -> bool:
        return any(instance.total_amount >= amount for instance in world.resolve(target))

    return Predicate(
        test,
        f"{target} filled to {amount:g}",
        _refs(equipment=[target]),
    )


def contains_together(chemical_ids: Iterable[str], partners: Iterable[str]) -> Predicate:
    """Some single instance holds one of ``chemical_ids`` and one of ``partners``."""
    firsts = tuple(chemical_ids)
    seconds = tuple(partners)

    def test(world: WorldState, observations: Observations) -> bool:
        for instance in world.list_instances():
            if any(instance.contains(c) for c in firsts) and any(instance.contains(c) for c in seconds):
                return True
        return False

    return Predicate(
        test,
        f"one of {list(firsts)} with one of {list(seconds)}",
        _refs(chemicals=firsts + seconds),
    )


def contains_all(chemical_ids: Iterable[str], target: Optional[str] = None) -> Predicate:
    """A single instance (of ``target`` when given) holds every one of ``chemical_ids``."""
    wanted = tuple(chemical_ids)

    def test(world: WorldState, observations: Observations) -> bool:
        candidates = world.list_instances() if target is None else world.resolve(target)
        return any(all(instance.contains(c) for c in wanted) for instance in candidates)

    where = "one container" if target is None else f"one {target}"
    return Predicate(
        test,
        f"{list(wanted)} together in {where}",
        _refs(chemicals=wanted, equipment=[] if target is None else [target]),
    )


def flag_is_set(name: str) -> Predicate:
    return Predicate(lambda world, observations: world.get_flag(name), f"flag {name}")


def value_at_least(name: str, threshold: float) -> Predicate:
    return Predicate(
        lambda world, observations: float(world.get_value(name, 0.0)) >= threshold,
        f"{name} >= {threshold:g}",
    )


def within_proximity(first: str, second: str, threshold: float) -> Predicate:
    """Some instance of ``first`` sits strictly closer than ``threshold`` to one of ``second``.

    Both names resolve like ``equipment_has_chemical`` targets. Positions are
    opaque coordinates reported by the rendering layer; only the Euclidean
    distance between them is ever used. Unpositioned instances never match.
    """

    def test(world: WorldState, observations: Observations) -> bool:
        for a in world.resolve(first):
            for b in world.resolve(second):
                if a.instance_id == b.instance_id or a.position is None or b.position is None:
                    continue
                distance = np.hypot(a.position[0] - b.position[0], a.position[1] - b.position[1])
                if distance < threshold:
                    return True
        return False

    return Predicate(
        test,
        f"{first} within {threshold:g} of {second}",
        _refs(equipment=[first, second]),
    )


def observed(slot: str) -> Predicate:
    return Predicate(
        lambda world, observations: observations.is_observed(slot),
        f"{slot} observed",
        _refs(slots=[slot]),
    )


def observation_equals(slot: str, value: Any) -> Predicate:
    return Predicate(
        lambda world, observations: observations.get(slot) == value,
        f"{slot} == {value!r}",
        _refs(slots=[slot]),
    )
