"""benchsim core package."""

from benchsim.config import ExperimentConfig, load_config, parse_config
from benchsim.constants import MAX_HISTORY_ENTRIES
from benchsim.engine import EngineResult, ExperimentEngine
from benchsim.experiments import EXPERIMENTS, build_experiment
from benchsim.models import (
    ChemicalDefinition,
    ChemicalQuantity,
    EquipmentDefinition,
    EquipmentInstance,
)
from benchsim.observations import UNOBSERVED, Observations
from benchsim.rules import Rule, RuleEngine
from benchsim.sequencer import Step, StepSequencer
from benchsim.world import WorldState

__all__ = [
    "ChemicalDefinition",
    "ChemicalQuantity",
    "EquipmentDefinition",
    "EquipmentInstance",
    "EngineResult",
    "ExperimentConfig",
    "ExperimentEngine",
    "EXPERIMENTS",
    "MAX_HISTORY_ENTRIES",
    "Observations",
    "Rule",
    "RuleEngine",
    "Step",
    "StepSequencer",
    "UNOBSERVED",
    "WorldState",
    "build_experiment",
    "load_config",
    "parse_config",
]
