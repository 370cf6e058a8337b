"""Data structures for chemicals, equipment and their placed instances."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

Position = Tuple[float, float]


@dataclass(frozen=True)
class ChemicalDefinition:
    """Static description of a reagent offered by an experiment.

    Attributes:
        id: Stable identifier referenced by rules and steps.
        name: Display name.
        formula: Display formula, e.g. "H₂SO₄".
        color: Display color as a hex string.
        concentration_label: Free-form label shown next to the bottle ("0.1 M", "Solid").
        concentration: Molar concentration (mol/L) when it is meaningful.
        molecular_weight: Molar mass (g/mol) for weighed solids.
        pka: Acid dissociation constant (as pKa) for weak acids.
    """

    id: str
    name: str
    formula: str = ""
    color: str = "#FFFFFF"
    concentration_label: str = ""
    concentration: Optional[float] = None
    molecular_weight: Optional[float] = None
    pka: Optional[float] = None


@dataclass(frozen=True)
class EquipmentDefinition:
    id: str
    name: str
    slot: Optional[Position] = None
    allow_multiple: bool = False
    capacity: Optional[float] = None


@dataclass(frozen=True)
class ChemicalQuantity:
    chemical_id: str
    amount: float
    concentration_label: str = ""

    def plus(self, amount: float) -> "ChemicalQuantity":
        return replace(self, amount=self.amount + amount)


@dataclass
class EquipmentInstance:
    instance_id: str
    definition_id: str
    chemicals: Dict[str, ChemicalQuantity] = field(default_factory=dict)
    position: Optional[Position] = None

    def amount_of(self, chemical_id: str) -> float:
        quantity = self.chemicals.get(chemical_id)
        return quantity.amount if quantity is not None else 0.0

    def contains(self, chemical_id: str) -> bool:
        return chemical_id in self.chemicals

    @property
    def total_amount(self) -> float:
        return sum(quantity.amount for quantity in self.chemicals.values())

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.instance_id,
            "definition": self.definition_id,
            "position": list(self.position) if self.position is not None else None,
            "chemicals": {
                chemical_id: {
                    "amount": quantity.amount,
                    "concentration": quantity.concentration_label,
                }
                for chemical_id, quantity in self.chemicals.items()
            },
        }
