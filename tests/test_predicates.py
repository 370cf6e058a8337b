import unittest

from benchsim import predicates as p
from benchsim.models import ChemicalDefinition, EquipmentDefinition
from benchsim.observations import Observations
from benchsim.world import WorldState


def make_world():
    chemicals = {
        "hcl": ChemicalDefinition("hcl", "Hydrochloric Acid", concentration=0.1),
        "indicator": ChemicalDefinition("indicator", "Universal Indicator"),
    }
    equipment = {
        "beaker": EquipmentDefinition("beaker", "Beaker", allow_multiple=True),
        "dropper": EquipmentDefinition("dropper", "Dropper"),
    }
    return WorldState(chemicals, equipment)


class TestEquipmentPredicates(unittest.TestCase):
    def setUp(self):
        self.world = make_world()

    def test_has_equipment(self):
        placed = p.has_equipment("beaker")
        self.assertFalse(placed(self.world))
        self.world.place_equipment("beaker")
        self.assertTrue(placed(self.world))

    def test_both_present(self):
        both = p.both_present("beaker", "dropper")
        self.world.place_equipment("beaker")
        self.assertFalse(both(self.world))
        self.world.place_equipment("dropper")
        self.assertTrue(both(self.world))

    def test_definition_id_matches_any_instance(self):
        self.world.place_equipment("beaker")
        second = self.world.place_equipment("beaker")
        self.world.add_chemical(second, "hcl", 2.0)

        self.assertTrue(p.equipment_has_chemical("beaker", "hcl")(self.world))
        self.assertTrue(p.equipment_has_chemical("beaker-2", "hcl")(self.world))
        self.assertFalse(p.equipment_has_chemical("beaker-3", "hcl")(self.world))

    def test_minimum_amount(self):
        self.world.place_equipment("beaker")
        self.world.add_chemical("beaker", "hcl", 2.0)
        self.assertTrue(p.equipment_has_chemical("beaker", "hcl", 2.0)(self.world))
        self.assertFalse(p.equipment_has_chemical("beaker", "hcl", 2.5)(self.world))
        self.assertTrue(p.any_equipment_has_chemical("hcl", 1.0)(self.world))
        self.assertFalse(p.any_equipment_has_chemical("indicator")(self.world))

    def test_total_at_least(self):
        self.world.place_equipment("beaker")
        self.world.add_chemical("beaker", "hcl", 2.0)
        self.world.add_chemical("beaker", "indicator", 1.0)
        self.assertTrue(p.total_at_least("beaker", 3.0)(self.world))
        self.assertFalse(p.total_at_least("beaker", 3.5)(self.world))

    def test_contains_together_needs_one_container(self):
        together = p.contains_together(["hcl"], ["indicator"])
        self.world.place_equipment("beaker")
        other = self.world.place_equipment("beaker")
        self.world.add_chemical("beaker", "hcl", 1.0)
        self.world.add_chemical(other, "indicator", 1.0)
        self.assertFalse(together(self.world))

        self.world.add_chemical("beaker", "indicator", 1.0)
        self.assertTrue(together(self.world))

    def test_contains_all_needs_one_container(self):
        self.world.place_equipment("beaker")
        other = self.world.place_equipment("beaker")
        self.world.add_chemical("beaker", "hcl", 1.0)
        self.world.add_chemical(other, "indicator", 1.0)

        anywhere = p.contains_all(["hcl", "indicator"])
        in_beaker = p.contains_all(["hcl", "indicator"], "beaker")
        self.assertTrue(p.equipment_has_chemical("beaker", "hcl")(self.world))
        self.assertTrue(p.equipment_has_chemical("beaker", "indicator")(self.world))
        self.assertFalse(anywhere(self.world))
        self.assertFalse(in_beaker(self.world))

        self.world.add_chemical(other, "hcl", 1.0)
        self.assertTrue(anywhere(self.world))
        self.assertTrue(in_beaker(self.world))
        self.assertTrue(p.contains_all(["hcl", "indicator"], other)(self.world))
        self.assertFalse(p.contains_all(["hcl", "indicator"], "dropper")(self.world))

    def test_contains_all_references(self):
        predicate = p.contains_all(["hcl", "indicator"], "beaker")
        self.assertEqual(predicate.references.chemicals, {"hcl", "indicator"})
        self.assertEqual(predicate.references.equipment, {"beaker"})
        self.assertEqual(p.contains_all(["hcl"]).references.equipment, frozenset())


class TestProximity(unittest.TestCase):
    def setUp(self):
        self.world = make_world()
        self.world.place_equipment("beaker", (0.0, 0.0))
        self.world.place_equipment("dropper", (3.0, 4.0))

    def test_threshold_is_strict(self):
        self.assertTrue(p.within_proximity("beaker", "dropper", 6.0)(self.world))
        self.assertFalse(p.within_proximity("beaker", "dropper", 5.0)(self.world))

    def test_missing_position_or_instance(self):
        self.world.place_equipment("beaker")
        self.assertFalse(p.within_proximity("beaker-2", "dropper", 100.0)(self.world))
        self.assertFalse(p.within_proximity("beaker-9", "dropper", 100.0)(self.world))

    def test_definition_id_checks_every_instance(self):
        self.world.set_position("beaker", 100.0, 100.0)
        self.world.place_equipment("beaker", (4.0, 4.0))
        self.assertTrue(p.within_proximity("beaker", "dropper", 2.0)(self.world))
        self.assertTrue(p.within_proximity("dropper", "beaker", 2.0)(self.world))
        self.assertFalse(p.within_proximity("beaker", "dropper", 1.0)(self.world))

    def test_instance_is_never_near_itself(self):
        self.assertFalse(p.within_proximity("beaker", "beaker", 1.0)(self.world))
        self.world.place_equipment("beaker", (0.5, 0.0))
        self.assertTrue(p.within_proximity("beaker", "beaker", 1.0)(self.world))


class TestComposition(unittest.TestCase):
    def setUp(self):
        self.world = make_world()

    def test_operators(self):
        beaker = p.has_equipment("beaker")
        heating = p.flag_is_set("heating")
        self.world.place_equipment("beaker")

        self.assertFalse((beaker & heating)(self.world))
        self.assertTrue((beaker | heating)(self.world))
        self.assertTrue((~heating)(self.world))
        self.assertTrue(p.all_of()(self.world))
        self.assertFalse(p.any_of()(self.world))

    def test_references_are_merged(self):
        combined = p.has_equipment("beaker") & (
            p.equipment_has_chemical("dropper", "hcl") | ~p.observed("ph")
        )
        self.assertEqual(combined.references.equipment, {"beaker", "dropper"})
        self.assertEqual(combined.references.chemicals, {"hcl"})
        self.assertEqual(combined.references.slots, {"ph"})

    def test_evaluation_is_idempotent_and_pure(self):
        self.world.place_equipment("beaker")
        self.world.add_chemical("beaker", "hcl", 1.0)
        predicate = p.contains_together(["hcl"], ["indicator"]) | p.equipment_has_chemical("beaker", "hcl")
        before = self.world.copy()

        first = predicate(self.world)
        second = predicate(self.world)
        self.assertEqual(first, second)
        self.assertEqual(self.world, before)


class TestFlagAndObservationPredicates(unittest.TestCase):
    def setUp(self):
        self.world = make_world()

    def test_flags(self):
        self.assertFalse(p.flag_is_set("stirring")(self.world))
        self.world.set_flag("stirring")
        self.assertTrue(p.flag_is_set("stirring")(self.world))

        self.assertFalse(p.value_at_least("invert.count", 1)(self.world))
        self.world.increment("invert.count")
        self.assertTrue(p.value_at_least("invert.count", 1)(self.world))

    def test_observations(self):
        empty = Observations(("ph",))
        measured = empty.updated({"ph": 1.0})

        self.assertFalse(p.observed("ph")(self.world, empty))
        self.assertTrue(p.observed("ph")(self.world, measured))
        self.assertTrue(p.observation_equals("ph", 1.0)(self.world, measured))
        self.assertFalse(p.observation_equals("ph", 2.0)(self.world, measured))
        # No observations given means nothing is observed
        self.assertFalse(p.observed("ph")(self.world))


if __name__ == '__main__':
    unittest.main()
