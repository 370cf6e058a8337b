import json
import os
import tempfile
import unittest

from typer.testing import CliRunner

from benchsim.cli import app
from benchsim.experiments import CHLORINE_CONCLUSION

SALT_SCRIPT = {
    "experiment": "salt_analysis",
    "actions": [
        {"op": "place", "equipment": "test_tube"},
        {"op": "add", "equipment": "test_tube", "chemical": "salt_sample", "amount": 4.0},
        {"op": "add", "equipment": "test_tube", "chemical": "conc_h2so4", "amount": 3.0},
        {"op": "remove", "equipment": "test_tube-9"},
        {"op": "toggle", "name": "heating"},
    ],
}


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write_script(self, script, name="session.json"):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(script, f)
        return path

    def test_list(self):
        result = self.runner.invoke(app, ["list"])
        self.assertEqual(result.exit_code, 0)
        for name in ("salt_analysis", "acid_standardization", "ph_comparison"):
            self.assertIn(name, result.stdout)

    def test_describe(self):
        result = self.runner.invoke(app, ["describe", "ph_comparison"])
        self.assertEqual(result.exit_code, 0)
        payload = json.loads(result.stdout)
        self.assertEqual(len(payload["steps"]), 6)
        self.assertIn("ph", payload["observation_slots"])

    def test_describe_unknown(self):
        result = self.runner.invoke(app, ["describe", "alchemy"])
        self.assertEqual(result.exit_code, 1)

    def test_run_script(self):
        output = os.path.join(self.tmp.name, "out.json")
        result = self.runner.invoke(
            app, ["run", self.write_script(SALT_SCRIPT), "--trace", "--output", output]
        )
        self.assertEqual(result.exit_code, 0)
        data = json.loads(result.stdout)

        self.assertEqual(data["experiment"], "salt_analysis")
        self.assertEqual(data["final"]["observations"]["case2"], CHLORINE_CONCLUSION)
        self.assertEqual(data["completed_steps"], [0, 1, 2])
        self.assertEqual(len(data["trace"]), 5)
        self.assertEqual(data["trace"][3]["result"]["error"]["type"], "EquipmentNotFound")

        with open(output, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f), data)

    def test_run_with_config_file(self):
        config = {
            "name": "rinse",
            "chemicals": [{"id": "water"}],
            "equipment": [{"id": "beaker"}],
            "steps": [
                {"title": "Fill", "advance_when": {"has_chemical": {"equipment": "beaker", "chemical": "water"}}},
            ],
        }
        self.write_script(config, "rinse.json")
        script = {
            "config": "rinse.json",
            "actions": [
                {"op": "place", "equipment": "beaker"},
                {"op": "add", "equipment": "beaker", "chemical": "water", "amount": 5},
            ],
        }
        result = self.runner.invoke(app, ["run", self.write_script(script)])
        self.assertEqual(result.exit_code, 0)
        data = json.loads(result.stdout)
        self.assertTrue(data["final"]["step"]["complete"])
        self.assertNotIn("trace", data)

    def write_ph_config(self, concentration):
        config = {
            "name": "acid_check",
            "chemicals": [{"id": "hcl", "concentration": concentration}, {"id": "paper"}],
            "equipment": [{"id": "beaker"}],
            "observation_slots": ["ph"],
            "steps": [{"title": "Read", "advance_when": {"observed": "ph"}}],
            "rules": [
                {
                    "name": "read-ph",
                    "when": {"together": {"chemicals": ["hcl"], "with": ["paper"]}},
                    "effects": [{"measure_ph": {"slot": "ph", "acids": ["hcl"], "indicators": ["paper"]}}],
                }
            ],
        }
        self.write_script(config, "acid_check.json")
        return self.write_script(
            {
                "config": "acid_check.json",
                "actions": [
                    {"op": "place", "equipment": "beaker"},
                    {"op": "add", "equipment": "beaker", "chemical": "hcl", "amount": 5},
                    {"op": "add", "equipment": "beaker", "chemical": "paper", "amount": 1},
                ],
            }
        )

    def test_run_with_numeric_strings_in_config(self):
        result = self.runner.invoke(app, ["run", self.write_ph_config("0.1")])
        self.assertEqual(result.exit_code, 0)
        data = json.loads(result.stdout)
        self.assertEqual(data["final"]["observations"]["ph"], 1.0)
        self.assertTrue(data["final"]["step"]["complete"])

    def test_run_rejects_bad_concentration_before_any_action(self):
        result = self.runner.invoke(app, ["run", self.write_ph_config(-0.1)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("concentration", result.output)
        self.assertNotIn("Bad action", result.output)

        result = self.runner.invoke(app, ["run", self.write_ph_config("strong")])
        self.assertEqual(result.exit_code, 1)
        self.assertNotIn("Bad action", result.output)

    def test_run_bad_action(self):
        script = {"experiment": "salt_analysis", "actions": [{"op": "dance"}]}
        result = self.runner.invoke(app, ["run", self.write_script(script)])
        self.assertEqual(result.exit_code, 2)

        script = {"experiment": "salt_analysis", "actions": [{"op": "place"}]}
        result = self.runner.invoke(app, ["run", self.write_script(script)])
        self.assertEqual(result.exit_code, 2)

    def test_run_unknown_experiment(self):
        result = self.runner.invoke(app, ["run", self.write_script({"experiment": "alchemy"})])
        self.assertEqual(result.exit_code, 1)


if __name__ == '__main__':
    unittest.main()
