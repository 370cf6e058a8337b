"""Fixed numeric formulas used by derived observations."""

from __future__ import annotations

import numpy as np

from benchsim.constants import MASS_PRECISION, MOLARITY_PRECISION, PH_MAX, PH_MIN, PH_PRECISION


def _clamp_ph(value: float, precision: int) -> float:
    return float(np.clip(np.round(value, precision), PH_MIN, PH_MAX))


def strong_acid_ph(concentration: float, precision: int = PH_PRECISION) -> float:
    """pH of a fully dissociated monoprotic acid: -log10(c), clamped to the 0-14 scale."""
    if concentration <= 0.0:
        raise ValueError(f"Concentration must be positive, got {concentration!r}")
    return _clamp_ph(-np.log10(concentration), precision)


def weak_acid_ph(concentration: float, pka: float, precision: int = PH_PRECISION) -> float:
    """pH of a weak monoprotic acid.

    Uses the usual approximation for small dissociation:

        pH = (pKa - log10(c)) / 2
    """
    if concentration <= 0.0:
        raise ValueError(f"Concentration must be positive, got {concentration!r}")
    return _clamp_ph(0.5 * (pka - np.log10(concentration)), precision)


def diluted_concentration(stock: float, amount: float, volume: float) -> float:
    """Concentration after ``amount`` of a ``stock`` solution is made up to ``volume``."""
    if volume <= 0.0:
        raise ValueError(f"Volume must be positive, got {volume!r}")
    return stock * amount / volume


# Universal indicator bands, lowest first: (upper pH bound, colour).
INDICATOR_BANDS = (
    (2.0, "red"),
    (4.0, "orange"),
    (7.0, "yellow"),
    (8.0, "green"),
)
INDICATOR_ALKALINE = "blue"


def indicator_colour(ph: float) -> str:
    for upper, colour in INDICATOR_BANDS:
        if ph < upper:
            return colour
    return INDICATOR_ALKALINE


def required_mass(molarity: float, molecular_weight: float, volume_l: float) -> float:
    """Mass (g) of solute needed for ``volume_l`` litres at ``molarity``."""
    return float(np.round(molarity * molecular_weight * volume_l, MASS_PRECISION))


def molarity_from_mass(mass: float, molecular_weight: float, volume_l: float) -> float:
    if molecular_weight <= 0.0 or volume_l <= 0.0:
        raise ValueError("Molecular weight and volume must be positive")
    return float(np.round(mass / (molecular_weight * volume_l), MOLARITY_PRECISION))


def percent_error(actual: float, target: float) -> float:
    return float(np.round(abs((actual - target) / target) * 100.0, 3))
