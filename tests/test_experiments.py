import unittest

from benchsim.engine import ExperimentEngine
from benchsim.experiments import (
    AMMONIA_CONCLUSION,
    CASE1_CONCLUSION,
    CHLORINE_CONCLUSION,
    CHROMYL_CONCLUSION,
    FLASK_MARK,
    HEATING_FLAG,
    MIX_PULSE,
    MNO2_CONCLUSION,
    ROD_REACH,
    STIRRING_FLAG,
    TARGET_MASS,
    acid_standardization,
    ph_comparison,
    salt_analysis,
)


class TestAcidStandardization(unittest.TestCase):
    def setUp(self):
        self.engine = ExperimentEngine(acid_standardization())

    def test_target_mass(self):
        self.assertAlmostEqual(TARGET_MASS, 3.1518, places=3)

    def test_full_preparation(self):
        self.assertEqual(self.engine.place_equipment("analytical_balance").step_index, 0)
        result = self.engine.place_equipment("weighing_boat")
        self.assertAlmostEqual(result.observations.required_mass, TARGET_MASS)
        self.assertEqual(result.step_index, 1)

        result = self.engine.add_chemical("weighing_boat", "oxalic_acid", TARGET_MASS)
        self.assertAlmostEqual(result.observations.mass_weighed, TARGET_MASS)
        self.assertEqual(result.step_index, 2)

        self.engine.place_equipment("beaker")
        self.engine.transfer("weighing_boat", "beaker")
        self.engine.add_chemical("beaker", "distilled_water", 50.0)
        result = self.engine.toggle_flag(STIRRING_FLAG)
        self.assertTrue(result.observations.is_observed("dissolved"))
        self.assertEqual(result.step_index, 3)

        self.engine.place_equipment("funnel")
        self.engine.place_equipment("volumetric_flask")
        result = self.engine.transfer("beaker", "volumetric_flask")
        self.assertEqual(result.step_index, 4)

        result = self.engine.add_chemical("volumetric_flask", "distilled_water", 197.0)
        self.assertGreaterEqual(result.world.get_instance("volumetric_flask").total_amount, FLASK_MARK)
        self.assertEqual(result.step_index, 5)
        self.assertFalse(result.step_complete)

        result = self.engine.complete_pulse(MIX_PULSE)
        self.assertAlmostEqual(result.observations.molarity, 0.1, places=4)
        self.assertLess(result.observations.percent_error, 0.1)
        self.assertTrue(result.step_complete)
        self.assertEqual(self.engine.completed_steps(), (0, 1, 2, 3, 4, 5))

    def test_mixing_before_the_mark_records_nothing(self):
        self.engine.place_equipment("volumetric_flask")
        self.engine.place_equipment("weighing_boat")
        self.engine.add_chemical("weighing_boat", "oxalic_acid", 3.0)
        self.engine.transfer("weighing_boat", "volumetric_flask")
        result = self.engine.complete_pulse(MIX_PULSE)
        self.assertFalse(result.observations.is_observed("molarity"))


class TestPhComparisonWalkthrough(unittest.TestCase):
    def test_strong_and_weak_acid(self):
        engine = ExperimentEngine(ph_comparison())
        engine.place_equipment("beaker")
        engine.add_chemical("beaker", "hcl_0_1", 50.0)
        engine.add_chemical("beaker", "ph_paper", 1.0)

        result = engine.observe()
        self.assertEqual(result.observations.case1, 1.0)
        self.assertEqual(result.step_index, 4)

        second = engine.place_equipment("beaker").value
        self.assertEqual(second, "beaker-2")
        engine.add_chemical(second, "acetic_acid_0_1", 10.0)
        result = engine.add_chemical(second, "universal_indicator", 1.0)
        self.assertEqual(result.observations.indicator_color, "orange")

        result = engine.observe()
        self.assertEqual(result.observations.case2, 2.88)
        self.assertEqual(result.observations.case1, 1.0)
        self.assertEqual(result.step_index, 5)
        self.assertTrue(result.step_complete)


class TestSaltAnalysisWalkthrough(unittest.TestCase):
    def test_every_case(self):
        engine = ExperimentEngine(salt_analysis())
        engine.place_equipment("bunsen_burner")
        self.assertEqual(engine.place_equipment("test_tube", (200.0, 300.0)).step_index, 1)
        self.assertEqual(engine.add_chemical("test_tube", "salt_sample", 2.0).step_index, 2)

        result = engine.add_chemical("test_tube", "conc_h2so4", 2.0)
        self.assertEqual(result.observations.case1, CASE1_CONCLUSION)
        self.assertEqual(result.step_index, 3)

        engine.place_equipment("glass_rod", (500.0, 300.0))
        engine.add_chemical("glass_rod", "nh4oh", 0.5)
        result = engine.move_equipment("glass_rod", 200.0 + ROD_REACH / 2, 300.0)
        self.assertEqual(result.observations.ammonia_test, AMMONIA_CONCLUSION)
        self.assertEqual(result.step_index, 4)

        result = engine.toggle_flag(HEATING_FLAG, True)
        self.assertEqual(result.observations.case2, CHLORINE_CONCLUSION)
        self.assertEqual(result.step_index, 5)

        result = engine.add_chemical("test_tube", "mno2", 1.0)
        self.assertEqual(result.observations.mno2_test, MNO2_CONCLUSION)
        self.assertEqual(result.step_index, 6)
        self.assertFalse(result.step_complete)

        engine.toggle_flag(HEATING_FLAG, False)
        engine.add_chemical("test_tube", "k2cr2o7", 1.0)
        result = engine.toggle_flag(HEATING_FLAG, True)

        self.assertEqual(result.observations.case3, CHROMYL_CONCLUSION)
        self.assertEqual(result.step_index, 6)
        self.assertTrue(result.step_complete)
        self.assertEqual(engine.completed_steps(), (0, 1, 2, 3, 4, 5, 6))
        self.assertEqual(result.world.get_instance("bunsen_burner").position, (420.0, 380.0))


if __name__ == '__main__':
    unittest.main()
