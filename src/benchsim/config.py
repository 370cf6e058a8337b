"""Experiment definitions: declarative configuration, validation and JSON loading."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from benchsim import predicates as p
from benchsim.constants import MAX_HISTORY_ENTRIES
from benchsim.errors import ConfigurationError
from benchsim.models import ChemicalDefinition, EquipmentDefinition
from benchsim.predicates import Predicate
from benchsim.rules import ClearObservation, IndicatorColour, MeasurePH, Rule, SetFlag, SetObservation
from benchsim.sequencer import Step


@dataclass(frozen=True)
class ExperimentConfig:
    """Everything that distinguishes one experiment from another.

    Attributes:
        name: Machine name, e.g. "ph_comparison".
        title: Display title.
        chemicals: Reagents offered on the shelf.
        equipment: Apparatus offered on the shelf.
        steps: Guided steps in order.
        rules: Reaction rules in evaluation order.
        observation_slots: Slots the rules may write.
        allow_previous_step: Whether "previous step" is available at all.
        guided: Reject equipment that the current step does not list.
        max_history: Undo depth.
    """

    name: str
    title: str
    chemicals: Tuple[ChemicalDefinition, ...]
    equipment: Tuple[EquipmentDefinition, ...]
    steps: Tuple[Step, ...]
    rules: Tuple[Rule, ...] = ()
    observation_slots: Tuple[str, ...] = ()
    allow_previous_step: bool = False
    guided: bool = False
    max_history: int = MAX_HISTORY_ENTRIES

    @property
    def chemical_table(self) -> Dict[str, ChemicalDefinition]:
        return {chemical.id: chemical for chemical in self.chemicals}

    @property
    def equipment_table(self) -> Dict[str, EquipmentDefinition]:
        return {item.id: item for item in self.equipment}

    def validate(self) -> None:
        """Raise ``ConfigurationError`` listing every problem found."""
        problems: List[str] = []
        chemical_ids = [chemical.id for chemical in self.chemicals]
        equipment_ids = [item.id for item in self.equipment]
        slots = set(self.observation_slots)

        problems += _duplicates("chemical", chemical_ids)
        problems += _duplicates("equipment", equipment_ids)
        problems += _duplicates("observation slot", list(self.observation_slots))
        problems += _duplicates("rule", [rule.name for rule in self.rules])
        if not self.steps:
            problems.append("at least one step is required")
        if self.max_history < 1:
            problems.append("max_history must be at least 1")

        for chemical in self.chemicals:
            for field_name in ("concentration", "molecular_weight"):
                value = getattr(chemical, field_name)
                if value is not None and not _is_positive(value):
                    problems.append(f"chemical {chemical.id!r}: {field_name} must be a positive number, got {value!r}")
            if chemical.pka is not None and not _is_number(chemical.pka):
                problems.append(f"chemical {chemical.id!r}: pka must be a number, got {chemical.pka!r}")
        for item in self.equipment:
            if item.capacity is not None and not _is_positive(item.capacity):
                problems.append(f"equipment {item.id!r}: capacity must be a positive number, got {item.capacity!r}")

        def check(owner: str, predicate: Predicate) -> None:
            refs = predicate.references
            for chemical_id in sorted(refs.chemicals - set(chemical_ids)):
                problems.append(f"{owner} references unknown chemical {chemical_id!r}")
            for target in sorted(refs.equipment):
                if _definition_of(target, equipment_ids) is None:
                    problems.append(f"{owner} references unknown equipment {target!r}")
            for slot in sorted(refs.slots - slots):
                problems.append(f"{owner} references unknown observation slot {slot!r}")

        for step in self.steps:
            check(f"step {step.id!r}", step.advance_when)
            for equipment_id in step.equipment:
                if equipment_id not in equipment_ids:
                    problems.append(f"step {step.id!r} allows unknown equipment {equipment_id!r}")

        table = self.chemical_table
        for rule in self.rules:
            check(f"rule {rule.name!r}", rule.when)
            for slot in sorted(rule.slots - slots):
                problems.append(f"rule {rule.name!r} writes unknown observation slot {slot!r}")
            for effect in rule.effects:
                if isinstance(effect, (MeasurePH, IndicatorColour)):
                    for chemical_id in effect.acids + effect.indicators:
                        if chemical_id not in table:
                            problems.append(f"rule {rule.name!r} measures unknown chemical {chemical_id!r}")
                    for acid in effect.acids:
                        if acid in table and table[acid].concentration is None:
                            problems.append(f"rule {rule.name!r}: acid {acid!r} has no concentration")

        if problems:
            raise ConfigurationError(problems)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_positive(value: Any) -> bool:
    return _is_number(value) and value > 0


def _duplicates(kind: str, ids: Sequence[str]) -> List[str]:
    seen = set()
    repeated = []
    for item in ids:
        if item in seen and item not in repeated:
            repeated.append(item)
        seen.add(item)
    return [f"duplicate {kind} id {item!r}" for item in repeated]


def _definition_of(target: str, equipment_ids: Sequence[str]) -> Optional[str]:
    """Map an instance id such as "beaker-2" back to its definition id."""
    if target in equipment_ids:
        return target
    base, _, suffix = target.rpartition("-")
    if base in equipment_ids and suffix.isdigit():
        return base
    return None


# -- JSON form ------------------------------------------------------------


def _parse_predicate(raw: Any) -> Predicate:
    if raw is True or raw is None:
        return p.always()
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise ConfigurationError(f"predicate must be an object with one key, got {raw!r}")
    (kind, arg), = raw.items()

    if kind == "all":
        return p.all_of(*(_parse_predicate(item) for item in arg))
    if kind == "any":
        return p.any_of(*(_parse_predicate(item) for item in arg))
    if kind == "not":
        return p.not_(_parse_predicate(arg))
    if kind == "has_equipment":
        return p.has_equipment(arg)
    if kind == "both_present":
        return p.both_present(arg[0], arg[1])
    if kind == "has_chemical":
        if "equipment" in arg:
            return p.equipment_has_chemical(
                arg["equipment"], arg["chemical"], float(arg.get("min_amount", 0.0))
            )
        return p.any_equipment_has_chemical(arg["chemical"], float(arg.get("min_amount", 0.0)))
    if kind == "filled":
        return p.total_at_least(arg["equipment"], float(arg["amount"]))
    if kind == "together":
        return p.contains_together(arg["chemicals"], arg["with"])
    if kind == "all_in":
        return p.contains_all(arg["chemicals"], arg.get("equipment"))
    if kind == "flag":
        return p.flag_is_set(arg)
    if kind == "at_least":
        return p.value_at_least(arg["name"], float(arg["value"]))
    if kind == "within":
        return p.within_proximity(arg["a"], arg["b"], float(arg["threshold"]))
    if kind == "observed":
        return p.observed(arg)
    if kind == "equals":
        return p.observation_equals(arg["slot"], arg["value"])
    raise ConfigurationError(f"unknown predicate kind {kind!r}")


def _parse_effect(raw: Mapping[str, Any]):
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise ConfigurationError(f"effect must be an object with one key, got {raw!r}")
    (kind, arg), = raw.items()
    if kind == "set":
        return SetObservation(arg["slot"], arg["value"])
    if kind == "clear":
        return ClearObservation(arg)
    if kind == "flag":
        return SetFlag(arg["name"], arg.get("value", True))
    if kind == "measure_ph":
        return MeasurePH(
            arg["slot"], tuple(arg["acids"]), tuple(arg["indicators"]), bool(arg.get("neutral", False))
        )
    if kind == "indicator_colour":
        return IndicatorColour(arg["slot"], tuple(arg["acids"]), tuple(arg["indicators"]))
    raise ConfigurationError(f"unknown effect kind {kind!r}")


def _optional_float(item: Mapping[str, Any], key: str) -> Optional[float]:
    value = item.get(key)
    return None if value is None else float(value)


def parse_config(data: Mapping[str, Any]) -> ExperimentConfig:
    """Build and validate an ``ExperimentConfig`` from its JSON form."""
    try:
        chemicals = tuple(
            ChemicalDefinition(
                id=item["id"],
                name=item.get("name", item["id"]),
                formula=item.get("formula", ""),
                color=item.get("color", "#FFFFFF"),
                concentration_label=item.get("concentration_label", ""),
                concentration=_optional_float(item, "concentration"),
                molecular_weight=_optional_float(item, "molecular_weight"),
                pka=_optional_float(item, "pka"),
            )
            for item in data.get("chemicals", [])
        )
        equipment = tuple(
            EquipmentDefinition(
                id=item["id"],
                name=item.get("name", item["id"]),
                slot=tuple(float(v) for v in item["slot"]) if item.get("slot") is not None else None,
                allow_multiple=bool(item.get("allow_multiple", False)),
                capacity=_optional_float(item, "capacity"),
            )
            for item in data.get("equipment", [])
        )
        steps = tuple(
            Step(
                id=item.get("id", index + 1),
                title=item["title"],
                description=item.get("description", ""),
                advance_when=_parse_predicate(item.get("advance_when")),
                reversible=bool(item.get("reversible", False)),
                equipment=tuple(item.get("equipment", ())),
            )
            for index, item in enumerate(data.get("steps", []))
        )
        rules = tuple(
            Rule(
                name=item["name"],
                when=_parse_predicate(item.get("when")),
                effects=tuple(_parse_effect(effect) for effect in item.get("effects", [])),
                repeatable=bool(item.get("repeatable", True)),
                description=item.get("description", ""),
            )
            for item in data.get("rules", [])
        )
        config = ExperimentConfig(
            name=data["name"],
            title=data.get("title", data["name"]),
            chemicals=chemicals,
            equipment=equipment,
            steps=steps,
            rules=rules,
            observation_slots=tuple(data.get("observation_slots", ())),
            allow_previous_step=bool(data.get("allow_previous_step", False)),
            guided=bool(data.get("guided", False)),
            max_history=int(data.get("max_history", MAX_HISTORY_ENTRIES)),
        )
    except (KeyError, TypeError, IndexError, ValueError) as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(f"malformed experiment definition: {exc!r}") from exc

    config.validate()
    return config


def load_config(path: str | Path) -> ExperimentConfig:
    with open(path, "r", encoding="utf-8") as f:
        return parse_config(json.load(f))
