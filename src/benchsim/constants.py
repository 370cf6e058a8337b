"""Engine-wide constants."""

MAX_HISTORY_ENTRIES = 25

# Decimal places kept for derived pH values.
PH_PRECISION = 2

# Readings are clamped to the usual scale; a solution with no acid reads neutral.
PH_MIN = 0.0
PH_MAX = 14.0
NEUTRAL_PH = 7.0

# Decimal places kept for masses (g) and molarities (mol/L).
MASS_PRECISION = 4
MOLARITY_PRECISION = 4

OBSERVE_TRIGGER = "observe"
HEATING_PULSE = "heating_pulse"

PULSE_COUNT_SUFFIX = ".count"
RULE_FIRED_TEMPLATE = "rule.{name}.fired"
