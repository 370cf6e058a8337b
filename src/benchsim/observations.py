"""Derived observation slots produced by the rule engine."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Mapping, Optional


class _Unobserved:
    """Value of a slot no rule has written yet."""

    _instance: Optional["_Unobserved"] = None

    def __new__(cls) -> "_Unobserved":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNOBSERVED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Unobserved, ())

    def __copy__(self) -> "_Unobserved":
        return self

    def __deepcopy__(self, memo) -> "_Unobserved":
        return self


UNOBSERVED = _Unobserved()


class Observations(Mapping[str, Any]):
    """Immutable mapping of slot name to observed value.

    Slots are declared up front by the experiment; each one holds either a
    value written by a rule or ``UNOBSERVED``. Slots can be read as items or
    as attributes (``observations["ph"]`` or ``observations.ph``).
    """

    __slots__ = ("_values",)

    def __init__(
        self,
        slots: Iterable[str] = (),
        values: Optional[Mapping[str, Any]] = None,
    ) -> None:
        merged: Dict[str, Any] = {slot: UNOBSERVED for slot in slots}
        if values:
            merged.update(values)
        object.__setattr__(self, "_values", merged)

    def __getitem__(self, slot: str) -> Any:
        return self._values[slot]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"No observation slot named {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Observations are read-only")

    def __reduce__(self):
        return (Observations, ((), dict(self._values)))

    def get(self, slot: str, default: Any = UNOBSERVED) -> Any:
        return self._values.get(slot, default)

    def is_observed(self, slot: str) -> bool:
        return self._values.get(slot, UNOBSERVED) is not UNOBSERVED

    def updated(self, values: Mapping[str, Any]) -> "Observations":
        merged = dict(self._values)
        merged.update(values)
        return Observations((), merged)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form; unobserved slots become ``None``."""
        return {
            slot: (None if value is UNOBSERVED else value)
            for slot, value in self._values.items()
        }

    def __repr__(self) -> str:
        return f"Observations({self._values!r})"
