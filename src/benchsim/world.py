"""Mutable model of the workbench: placed equipment, their contents and flags."""

from __future__ import annotations

import copy
import logging
import math
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from benchsim.errors import (
    CapacityExceeded,
    ChemicalNotPresent,
    DuplicateEquipment,
    EquipmentNotFound,
    InvalidAmount,
    UnknownChemical,
    UnknownEquipment,
)
from benchsim.models import (
    ChemicalDefinition,
    ChemicalQuantity,
    EquipmentDefinition,
    EquipmentInstance,
    Position,
)

logger = logging.getLogger(__name__)

FlagValue = Union[bool, float]


def _check_amount(amount: float) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidAmount(amount) from None
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidAmount(amount)
    return value


class WorldState:
    """Authoritative store of equipment instances and named flags.

    Every mutating method validates its preconditions before touching any
    state, so a call that raises leaves the world exactly as it was.
    Read accessors hand out copies; the store cannot be modified through them.
    """

    def __init__(
        self,
        chemicals: Mapping[str, ChemicalDefinition],
        equipment: Mapping[str, EquipmentDefinition],
    ) -> None:
        self._chemicals = dict(chemicals)
        self._equipment = dict(equipment)
        self._instances: Dict[str, EquipmentInstance] = {}
        self._flags: Dict[str, FlagValue] = {}

    # -- static tables ----------------------------------------------------

    @property
    def chemical_definitions(self) -> Mapping[str, ChemicalDefinition]:
        return dict(self._chemicals)

    @property
    def equipment_definitions(self) -> Mapping[str, EquipmentDefinition]:
        return dict(self._equipment)

    def chemical(self, chemical_id: str) -> ChemicalDefinition:
        try:
            return self._chemicals[chemical_id]
        except KeyError:
            raise UnknownChemical(chemical_id) from None

    # -- equipment --------------------------------------------------------

    def _next_instance_id(self, definition_id: str) -> str:
        if definition_id not in self._instances:
            return definition_id
        suffix = 2
        while f"{definition_id}-{suffix}" in self._instances:
            suffix += 1
        return f"{definition_id}-{suffix}"

    def place_equipment(self, definition_id: str, position: Optional[Position] = None) -> str:
        definition = self._equipment.get(definition_id)
        if definition is None:
            raise UnknownEquipment(definition_id)
        if not definition.allow_multiple and any(
            instance.definition_id == definition_id for instance in self._instances.values()
        ):
            raise DuplicateEquipment(definition_id)

        instance_id = self._next_instance_id(definition_id)
        if position is None:
            position = definition.slot
        self._instances[instance_id] = EquipmentInstance(
            instance_id=instance_id,
            definition_id=definition_id,
            position=tuple(position) if position is not None else None,
        )
        logger.debug("Placed %s as %s", definition_id, instance_id)
        return instance_id

    def remove_equipment(self, instance_id: str) -> None:
        if instance_id not in self._instances:
            raise EquipmentNotFound(instance_id)
        del self._instances[instance_id]
        logger.debug("Removed %s", instance_id)

    def _live(self, instance_id: str) -> EquipmentInstance:
        try:
            return self._instances[instance_id]
        except KeyError:
            raise EquipmentNotFound(instance_id) from None

    def get_instance(self, instance_id: str) -> EquipmentInstance:
        return copy.deepcopy(self._live(instance_id))

    def has_instance(self, instance_id: str) -> bool:
        return instance_id in self._instances

    def list_instances(self) -> Tuple[EquipmentInstance, ...]:
        return tuple(copy.deepcopy(instance) for instance in self._instances.values())

    def instances_of(self, definition_id: str) -> List[EquipmentInstance]:
        return [
            copy.deepcopy(instance)
            for instance in self._instances.values()
            if instance.definition_id == definition_id
        ]

    def resolve(self, target: str) -> List[EquipmentInstance]:
        """Every instance of ``target`` as a definition id, else the instance with that id.

        The first instance of a definition carries the definition id, so a
        definition id always wins: "test_tube" means every test tube and can
        never single out the first one. Later instances ("test_tube-2") are
        addressed individually.
        """
        if target in self._equipment:
            return self.instances_of(target)
        if target in self._instances:
            return [self.get_instance(target)]
        return []

    def __iter__(self) -> Iterator[EquipmentInstance]:
        return iter(self.list_instances())

    def __len__(self) -> int:
        return len(self._instances)

    def set_position(self, instance_id: str, x: float, y: float) -> None:
        self._live(instance_id).position = (float(x), float(y))

    # -- chemicals --------------------------------------------------------

    def add_chemical(self, instance_id: str, chemical_id: str, amount: float) -> float:
        instance = self._live(instance_id)
        definition = self.chemical(chemical_id)
        value = _check_amount(amount)

        capacity = self._equipment[instance.definition_id].capacity
        if capacity is not None and instance.total_amount + value > capacity:
            raise CapacityExceeded(instance_id, capacity, instance.total_amount + value)

        existing = instance.chemicals.get(chemical_id)
        if existing is None:
            existing = ChemicalQuantity(
                chemical_id=chemical_id,
                amount=0.0,
                concentration_label=definition.concentration_label,
            )
        updated = existing.plus(value)
        instance.chemicals[chemical_id] = updated
        logger.debug("Added %g of %s to %s (now %g)", value, chemical_id, instance_id, updated.amount)
        return updated.amount

    def consume_chemical(self, instance_id: str, chemical_id: str, amount: float) -> float:
        """Remove up to ``amount`` of a chemical; returns what is left."""
        instance = self._live(instance_id)
        self.chemical(chemical_id)
        value = _check_amount(amount)
        existing = instance.chemicals.get(chemical_id)
        if existing is None:
            raise ChemicalNotPresent(instance_id, chemical_id)

        remaining = max(0.0, existing.amount - value)
        if remaining == 0.0:
            del instance.chemicals[chemical_id]
        else:
            instance.chemicals[chemical_id] = existing.plus(-value)
        return remaining

    def transfer(self, source_id: str, target_id: str, chemical_id: Optional[str] = None) -> float:
        """Move one chemical, or everything, from ``source_id`` into ``target_id``."""
        source = self._live(source_id)
        target = self._live(target_id)
        if chemical_id is not None:
            self.chemical(chemical_id)
            if chemical_id not in source.chemicals:
                raise ChemicalNotPresent(source_id, chemical_id)
            moving = {chemical_id: source.chemicals[chemical_id]}
        else:
            moving = dict(source.chemicals)
        if not moving:
            raise InvalidAmount(0.0)

        moved = sum(quantity.amount for quantity in moving.values())
        capacity = self._equipment[target.definition_id].capacity
        if capacity is not None and target.total_amount + moved > capacity:
            raise CapacityExceeded(target_id, capacity, target.total_amount + moved)

        for key, quantity in moving.items():
            existing = target.chemicals.get(key)
            target.chemicals[key] = existing.plus(quantity.amount) if existing else quantity
            del source.chemicals[key]
        logger.debug("Transferred %g from %s to %s", moved, source_id, target_id)
        return moved

    # -- flags ------------------------------------------------------------

    def set_flag(self, name: str, value: FlagValue = True) -> None:
        self._flags[name] = value

    def get_flag(self, name: str) -> bool:
        return bool(self._flags.get(name, False))

    def get_value(self, name: str, default: FlagValue = 0.0) -> FlagValue:
        return self._flags.get(name, default)

    def increment(self, name: str, step: float = 1.0) -> float:
        value = float(self._flags.get(name, 0.0)) + step
        self._flags[name] = value
        return value

    def clear_flag(self, name: str) -> None:
        self._flags.pop(name, None)

    def flags(self) -> Dict[str, FlagValue]:
        return dict(self._flags)

    # -- whole-state helpers ----------------------------------------------

    def clear(self) -> None:
        self._instances.clear()
        self._flags.clear()

    def copy(self) -> "WorldState":
        clone = WorldState.__new__(WorldState)
        clone._chemicals = self._chemicals
        clone._equipment = self._equipment
        clone._instances = copy.deepcopy(self._instances)
        clone._flags = dict(self._flags)
        return clone

    def __deepcopy__(self, memo) -> "WorldState":
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorldState):
            return NotImplemented
        return self._instances == other._instances and self._flags == other._flags

    def __repr__(self) -> str:
        return f"WorldState(instances={list(self._instances)}, flags={self._flags})"

    def to_dict(self) -> Dict[str, object]:
        return {
            "equipment": [instance.to_dict() for instance in self._instances.values()],
            "flags": dict(self._flags),
        }
