"""Built-in experiment definitions.

Each experiment is only configuration: chemicals, equipment, guided steps and
an ordered rule table, all run by the same ``ExperimentEngine``.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from benchsim.chemistry import molarity_from_mass, percent_error, required_mass
from benchsim.config import ExperimentConfig
from benchsim.constants import MASS_PRECISION, OBSERVE_TRIGGER
from benchsim.errors import ConfigurationError
from benchsim.models import ChemicalDefinition, EquipmentDefinition
from benchsim.predicates import (
    all_of,
    any_equipment_has_chemical,
    any_of,
    both_present,
    contains_all,
    contains_together,
    equipment_has_chemical,
    flag_is_set,
    has_equipment,
    observed,
    total_at_least,
    value_at_least,
    within_proximity,
)
from benchsim.rules import DeriveObservation, IndicatorColour, MeasurePH, Rule, SetFlag, SetObservation
from benchsim.sequencer import Step
from benchsim.world import WorldState

# ---------------------------------------------------------------------------
# Salt analysis: dry test for the chloride radical
# ---------------------------------------------------------------------------

HEATING_FLAG = "heating"

SALT_COLOR = "#FFFFFF"
HEATED_SALT_COLOR = "#8B6939"
DICHROMATE_HEATED_COLOR = "#C2410C"

CASE1_CONCLUSION = (
    "Colourless pungent gas (HCl) evolved with conc. H₂SO₄: chloride (Cl⁻) indicated"
)
AMMONIA_CONCLUSION = (
    "Dense white fumes of NH₄Cl around the NH₄OH rod: the gas is HCl"
)
CHLORINE_CONCLUSION = (
    "Greenish-yellow chlorine gas evolved on heating: chloride (Cl⁻) confirmed"
)
MNO2_CONCLUSION = (
    "Heavier greenish-yellow chlorine with MnO₂, bleaching moist litmus: chloride (Cl⁻) confirmed"
)
CHROMYL_CONCLUSION = (
    "Orange-red chromyl chloride vapours with acidified K₂Cr₂O₇: chloride (Cl⁻) confirmed"
)

# How close the NH₄OH rod must be held to the mouth of the tube.
ROD_REACH = 60.0


def salt_analysis() -> ExperimentConfig:
    chemicals = (
        ChemicalDefinition("salt_sample", "Salt Sample", "NaCl", "#FBBF24", "Dry"),
        ChemicalDefinition(
            "conc_h2so4", "Concentrated H₂SO₄", "H₂SO₄", "#F5F5DC", "18 M", concentration=18.0
        ),
        ChemicalDefinition("mno2", "Manganese Dioxide", "MnO₂", "#3B2F2F", "Solid"),
        ChemicalDefinition(
            "k2cr2o7",
            "Acidified Potassium Dichromate",
            "K₂Cr₂O₇",
            "#FF8C00",
            "0.1 M",
            concentration=0.1,
        ),
        ChemicalDefinition("nh4oh", "Ammonium Hydroxide", "NH₄OH", "#E0F2FE", "Dilute"),
    )
    equipment = (
        EquipmentDefinition("test_tube", "25 mL Test Tube", allow_multiple=True, capacity=25.0),
        EquipmentDefinition("bunsen_burner", "Bunsen Burner", slot=(420.0, 380.0)),
        EquipmentDefinition("glass_rod", "Glass Rod", capacity=1.0),
    )

    heating = flag_is_set(HEATING_FLAG)
    salt_with_acid = contains_all(["salt_sample", "conc_h2so4"], "test_tube")

    rules = (
        Rule(
            "salt-colour",
            equipment_has_chemical("test_tube", "salt_sample"),
            (SetObservation("tube_color", SALT_COLOR),),
        ),
        Rule(
            "heating-colour",
            equipment_has_chemical("test_tube", "salt_sample") & heating,
            (SetObservation("tube_color", HEATED_SALT_COLOR),),
        ),
        # Declared after the generic heating colour so it wins when both hold.
        Rule(
            "dichromate-heating-colour",
            equipment_has_chemical("test_tube", "k2cr2o7") & heating,
            (SetObservation("tube_color", DICHROMATE_HEATED_COLOR),),
        ),
        Rule(
            "hydrogen-chloride-fumes",
            salt_with_acid,
            (SetObservation("case1", CASE1_CONCLUSION), SetObservation("gas", "HCl")),
        ),
        Rule(
            "ammonium-chloride-fumes",
            salt_with_acid
            & equipment_has_chemical("glass_rod", "nh4oh")
            & within_proximity("glass_rod", "test_tube", ROD_REACH),
            (SetObservation("ammonia_test", AMMONIA_CONCLUSION),),
        ),
        Rule(
            "chlorine-on-heating",
            salt_with_acid & heating,
            (
                SetObservation("case2", CHLORINE_CONCLUSION),
                SetObservation("gas", "Cl₂"),
                SetFlag("chlorine_evolved"),
            ),
        ),
        Rule(
            "manganese-dioxide-chlorine",
            contains_all(["salt_sample", "mno2", "conc_h2so4"], "test_tube") & heating,
            (SetObservation("mno2_test", MNO2_CONCLUSION), SetObservation("gas", "Cl₂")),
        ),
        Rule(
            "chromyl-chloride",
            contains_all(["salt_sample", "k2cr2o7", "conc_h2so4"], "test_tube") & heating,
            (SetObservation("case3", CHROMYL_CONCLUSION), SetObservation("gas", "CrO₂Cl₂")),
            repeatable=False,
        ),
    )
    steps = (
        Step(
            1,
            "Set up the test tube",
            "Place a clean test tube and the Bunsen burner on the bench.",
            has_equipment("test_tube"),
            equipment=("test_tube", "bunsen_burner"),
        ),
        Step(
            2,
            "Add the salt sample",
            "Add a small amount of the salt to the test tube.",
            equipment_has_chemical("test_tube", "salt_sample"),
        ),
        Step(
            3,
            "Add concentrated H₂SO₄",
            "Add a few drops of concentrated sulphuric acid and note any fumes.",
            observed("case1"),
        ),
        Step(
            4,
            "Test the gas with NH₄OH",
            "Dip a glass rod in ammonium hydroxide and hold it near the mouth of the tube.",
            observed("ammonia_test"),
            equipment=("test_tube", "bunsen_burner", "glass_rod"),
        ),
        Step(
            5,
            "Heat the mixture",
            "Heat the test tube gently over the flame and observe the gas evolved.",
            observed("case2"),
        ),
        Step(
            6,
            "Heat with MnO₂",
            "Add a pinch of manganese dioxide and keep heating.",
            observed("mno2_test"),
        ),
        Step(
            7,
            "Confirm with acidified dichromate",
            "Add acidified potassium dichromate and heat again.",
            observed("case3"),
        ),
    )
    return ExperimentConfig(
        name="salt_analysis",
        title="Salt Analysis: Dry Tests for Acid Radicals",
        chemicals=chemicals,
        equipment=equipment,
        steps=steps,
        rules=rules,
        observation_slots=(
            "tube_color", "gas", "case1", "ammonia_test", "case2", "mno2_test", "case3",
        ),
    )


# ---------------------------------------------------------------------------
# Acid standardization: 0.1 M oxalic acid in a 250 mL volumetric flask
# ---------------------------------------------------------------------------

OXALIC_ACID_MW = 126.07
TARGET_MOLARITY = 0.1
FLASK_VOLUME_L = 0.25
FLASK_MARK = 250.0
TARGET_MASS = required_mass(TARGET_MOLARITY, OXALIC_ACID_MW, FLASK_VOLUME_L)

STIRRING_FLAG = "stirring"
MIX_PULSE = "invert_flask"


def _weighed_mass(world: WorldState) -> Optional[float]:
    for boat in world.instances_of("weighing_boat"):
        if boat.contains("oxalic_acid"):
            return round(boat.amount_of("oxalic_acid"), MASS_PRECISION)
    return None


def _flask_molarity(world: WorldState) -> Optional[float]:
    for flask in world.instances_of("volumetric_flask"):
        if flask.contains("oxalic_acid"):
            return molarity_from_mass(flask.amount_of("oxalic_acid"), OXALIC_ACID_MW, FLASK_VOLUME_L)
    return None


def _flask_percent_error(world: WorldState) -> Optional[float]:
    molarity = _flask_molarity(world)
    if molarity is None:
        return None
    return percent_error(molarity, TARGET_MOLARITY)


def acid_standardization() -> ExperimentConfig:
    chemicals = (
        ChemicalDefinition(
            "oxalic_acid",
            "Oxalic Acid Dihydrate",
            "H₂C₂O₄·2H₂O",
            "#FFFFFF",
            "Solid",
            molecular_weight=OXALIC_ACID_MW,
        ),
        ChemicalDefinition("distilled_water", "Distilled Water", "H₂O", "#87CEEB", "Pure"),
    )
    equipment = (
        EquipmentDefinition("analytical_balance", "Analytical Balance", slot=(160.0, 300.0)),
        EquipmentDefinition("weighing_boat", "Weighing Boat"),
        EquipmentDefinition("beaker", "Beaker (100 mL)", capacity=100.0),
        EquipmentDefinition("funnel", "Funnel"),
        EquipmentDefinition("volumetric_flask", "Volumetric Flask (250 mL)", capacity=260.0),
        EquipmentDefinition("stirring_rod", "Stirring Rod"),
        EquipmentDefinition("dropper", "Dropper"),
    )

    flask_at_mark = equipment_has_chemical("volumetric_flask", "oxalic_acid") & total_at_least(
        "volumetric_flask", FLASK_MARK
    )

    rules = (
        Rule(
            "required-mass",
            both_present("analytical_balance", "weighing_boat"),
            (SetObservation("required_mass", TARGET_MASS),),
        ),
        Rule(
            "weighing",
            has_equipment("analytical_balance") & equipment_has_chemical("weighing_boat", "oxalic_acid"),
            (DeriveObservation("mass_weighed", _weighed_mass, "mass of oxalic acid on the balance"),),
        ),
        Rule(
            "dissolving",
            equipment_has_chemical("beaker", "oxalic_acid")
            & equipment_has_chemical("beaker", "distilled_water")
            & flag_is_set(STIRRING_FLAG),
            (SetObservation("dissolved", "Clear colourless solution"),),
        ),
        Rule(
            "final-molarity",
            flask_at_mark & value_at_least(MIX_PULSE + ".count", 1),
            (
                DeriveObservation("molarity", _flask_molarity, "molarity of the standard solution"),
                DeriveObservation("percent_error", _flask_percent_error),
            ),
        ),
    )
    steps = (
        Step(
            1,
            "Calculate the required mass",
            f"Mass = M × MW × V = {TARGET_MOLARITY} × {OXALIC_ACID_MW} × {FLASK_VOLUME_L}. "
            "Place the balance and a weighing boat.",
            observed("required_mass"),
        ),
        Step(2, "Weigh the oxalic acid", "Weigh the calculated mass into the boat.", observed("mass_weighed")),
        Step(
            3,
            "Dissolve in a beaker",
            "Transfer the solid to a beaker, add distilled water and stir.",
            observed("dissolved"),
        ),
        Step(
            4,
            "Transfer to the volumetric flask",
            "Pour the solution into the flask through a funnel.",
            has_equipment("funnel") & equipment_has_chemical("volumetric_flask", "oxalic_acid"),
        ),
        Step(
            5,
            "Make up to the mark",
            "Add distilled water until the meniscus reaches the 250 mL mark.",
            flask_at_mark,
        ),
        Step(
            6,
            "Mix and calculate",
            "Stopper and invert the flask, then calculate the molarity.",
            observed("molarity"),
        ),
    )
    return ExperimentConfig(
        name="acid_standardization",
        title="Preparation of a 0.1 M Standard Solution of Oxalic Acid",
        chemicals=chemicals,
        equipment=equipment,
        steps=steps,
        rules=rules,
        observation_slots=("required_mass", "mass_weighed", "dissolved", "molarity", "percent_error"),
    )


# ---------------------------------------------------------------------------
# pH comparison: hydrochloric acid of three strengths against acetic acid
# ---------------------------------------------------------------------------

STRONG_ACIDS = ("hcl_0_1", "hcl_0_01", "hcl_0_001")
WEAK_ACIDS = ("acetic_acid_0_1",)
INDICATORS = ("ph_paper", "universal_indicator")


def ph_comparison() -> ExperimentConfig:
    chemicals = (
        ChemicalDefinition("hcl_0_1", "Hydrochloric Acid 0.1 M", "HCl", "#FFD2D2", "0.1 M", concentration=0.1),
        ChemicalDefinition("hcl_0_01", "Hydrochloric Acid 0.01 M", "HCl", "#FFEBEB", "0.01 M", concentration=0.01),
        ChemicalDefinition(
            "hcl_0_001", "Hydrochloric Acid 0.001 M", "HCl", "#FFF5F5", "0.001 M", concentration=0.001
        ),
        ChemicalDefinition(
            "acetic_acid_0_1",
            "0.1 M Ethanoic (Acetic) Acid",
            "CH₃COOH",
            "#FDE68A",
            "0.1 M",
            concentration=0.1,
            molecular_weight=60.05,
            pka=4.76,
        ),
        ChemicalDefinition("universal_indicator", "Universal Indicator Solution", "mixture", "#A7F3D0", "Indicator"),
        ChemicalDefinition("ph_paper", "pH Paper", "", "#FFD27A", "Strip"),
        ChemicalDefinition("distilled_water", "Distilled Water", "H₂O", "#87CEEB", "Pure"),
    )
    equipment = (
        EquipmentDefinition("beaker", "Beaker (50 mL)", allow_multiple=True, capacity=100.0),
        EquipmentDefinition("test_tube", "Test Tube", allow_multiple=True, capacity=20.0),
        EquipmentDefinition("dropper", "Dropper/Pipette"),
        EquipmentDefinition("wash_bottle", "Wash Bottle"),
    )

    any_strong_acid = any_of(*(any_equipment_has_chemical(acid) for acid in STRONG_ACIDS))
    measuring = flag_is_set(OBSERVE_TRIGGER)
    bench = ("beaker", "test_tube", "dropper")

    rules = (
        Rule(
            "read-ph",
            contains_together(STRONG_ACIDS + WEAK_ACIDS, INDICATORS),
            (MeasurePH("ph", STRONG_ACIDS + WEAK_ACIDS, INDICATORS),),
        ),
        Rule(
            "indicator-colour",
            any_equipment_has_chemical("universal_indicator"),
            (IndicatorColour("indicator_color", STRONG_ACIDS + WEAK_ACIDS, ("universal_indicator",)),),
        ),
        Rule(
            "record-strong-acid",
            measuring & contains_together(STRONG_ACIDS, INDICATORS),
            (MeasurePH("case1", STRONG_ACIDS, INDICATORS),),
        ),
        Rule(
            "record-weak-acid",
            measuring & contains_together(WEAK_ACIDS, INDICATORS),
            (MeasurePH("case2", WEAK_ACIDS, INDICATORS),),
        ),
    )
    steps = (
        Step(1, "Place a beaker", "Put a clean, labelled beaker on the bench.", has_equipment("beaker"),
             equipment=("beaker",)),
        Step(2, "Add hydrochloric acid", "Pipette one of the HCl solutions into the beaker.", any_strong_acid,
             equipment=bench),
        Step(
            3,
            "Test with pH paper or indicator",
            "Dip a pH strip or add a few drops of universal indicator and compare with the chart.",
            observed("ph"),
            equipment=bench,
        ),
        Step(4, "Record the strong acid reading", "Press MEASURE to record the HCl reading.", observed("case1"),
             equipment=bench),
        Step(
            5,
            "Test 0.1 M acetic acid",
            "Repeat the test with ethanoic acid in a second beaker and press MEASURE.",
            observed("case2"),
            equipment=bench,
        ),
        Step(
            6,
            "Compare the readings",
            "Explain why the weak acid reads a higher pH than the strong acid.",
            all_of(observed("case1"), observed("case2")),
            equipment=bench + ("wash_bottle",),
        ),
    )
    return ExperimentConfig(
        name="ph_comparison",
        title="pH of Hydrochloric Acid of Different Strengths and Acetic Acid",
        chemicals=chemicals,
        equipment=equipment,
        steps=steps,
        rules=rules,
        observation_slots=("ph", "indicator_color", "case1", "case2"),
        guided=True,
    )


EXPERIMENTS: Dict[str, Callable[[], ExperimentConfig]] = {
    "salt_analysis": salt_analysis,
    "acid_standardization": acid_standardization,
    "ph_comparison": ph_comparison,
}


def build_experiment(name: str) -> ExperimentConfig:
    try:
        builder = EXPERIMENTS[name]
    except KeyError:
        raise ConfigurationError(
            f"unknown experiment {name!r}; choose from {', '.join(sorted(EXPERIMENTS))}"
        ) from None
    config = builder()
    config.validate()
    return config
