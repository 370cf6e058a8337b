"""Error taxonomy for the simulation engine.

Every runtime error is recoverable: components raise them and the engine
facade hands them back inside an ``EngineResult`` instead of propagating.
``ConfigurationError`` is the exception, raised once when an experiment
definition is loaded.
"""

from __future__ import annotations

from typing import Sequence, Union


class BenchError(Exception):
    """Base class for all engine errors."""


class EquipmentNotFound(BenchError, KeyError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"No equipment instance {instance_id!r} on the workbench")
        self.instance_id = instance_id

    def __str__(self) -> str:
        return self.args[0]


class UnknownEquipment(BenchError, KeyError):
    def __init__(self, definition_id: str) -> None:
        super().__init__(f"Unknown equipment definition {definition_id!r}")
        self.definition_id = definition_id

    def __str__(self) -> str:
        return self.args[0]


class DuplicateEquipment(BenchError):
    def __init__(self, definition_id: str) -> None:
        super().__init__(f"{definition_id!r} is already on the workbench")
        self.definition_id = definition_id


class EquipmentNotAllowed(BenchError):
    def __init__(self, definition_id: str, step_title: str) -> None:
        super().__init__(f"{definition_id!r} is not needed in step {step_title!r}")
        self.definition_id = definition_id
        self.step_title = step_title


class UnknownChemical(BenchError, KeyError):
    def __init__(self, chemical_id: str) -> None:
        super().__init__(f"Unknown chemical {chemical_id!r}")
        self.chemical_id = chemical_id

    def __str__(self) -> str:
        return self.args[0]


class ChemicalNotPresent(BenchError):
    def __init__(self, instance_id: str, chemical_id: str) -> None:
        super().__init__(f"{instance_id!r} does not contain {chemical_id!r}")
        self.instance_id = instance_id
        self.chemical_id = chemical_id


class InvalidAmount(BenchError, ValueError):
    def __init__(self, amount: object) -> None:
        super().__init__(f"Amount must be a positive finite number, got {amount!r}")
        self.amount = amount


class CapacityExceeded(BenchError):
    def __init__(self, instance_id: str, capacity: float, requested: float) -> None:
        super().__init__(
            f"{instance_id!r} holds at most {capacity:g}, requested total {requested:g}"
        )
        self.instance_id = instance_id
        self.capacity = capacity
        self.requested = requested


class EmptyHistory(BenchError):
    def __init__(self) -> None:
        super().__init__("Nothing to undo")


class StepNotAdvanceable(BenchError):
    def __init__(self, index: int, title: str, reason: str = "advance condition not met") -> None:
        super().__init__(f"Cannot leave step {index + 1} ({title}): {reason}")
        self.index = index
        self.title = title


class StepNotReversible(BenchError):
    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"Cannot go back from step {index + 1}: {reason}")
        self.index = index


class ConfigurationError(BenchError, ValueError):
    """Broken experiment definition, detected at load time."""

    def __init__(self, problems: Union[str, Sequence[str]]) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("Invalid experiment configuration:\n  " + "\n  ".join(self.problems))
