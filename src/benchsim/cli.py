"""Command-line entrypoints for benchsim."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, List

import typer

from benchsim.config import ExperimentConfig, load_config
from benchsim.engine import EngineResult, ExperimentEngine
from benchsim.errors import ConfigurationError
from benchsim.experiments import EXPERIMENTS, build_experiment

app = typer.Typer(add_completion=False)


def _load_experiment(script: Dict[str, Any], base_dir: Path) -> ExperimentConfig:
    if "config" in script:
        return load_config(base_dir / script["config"])
    return build_experiment(script.get("experiment", ""))


def _dispatch(engine: ExperimentEngine, action: Dict[str, Any]) -> EngineResult:
    op = action.get("op", "").lower()

    if op == "place":
        position = action.get("position")
        return engine.place_equipment(action["equipment"], tuple(position) if position else None)
    elif op == "remove":
        return engine.remove_equipment(action["equipment"])
    elif op == "move":
        return engine.move_equipment(action["equipment"], float(action["x"]), float(action["y"]))
    elif op == "add":
        return engine.add_chemical(action["equipment"], action["chemical"], float(action["amount"]))
    elif op == "consume":
        return engine.consume_chemical(action["equipment"], action["chemical"], float(action["amount"]))
    elif op == "transfer":
        return engine.transfer(action["source"], action["target"], action.get("chemical"))
    elif op == "flag":
        return engine.set_flag(action["name"], action.get("value", True))
    elif op == "toggle":
        return engine.toggle_flag(action["name"], action.get("value"))
    elif op == "observe":
        return engine.observe(action.get("trigger", "observe"))
    elif op == "pulse":
        return engine.complete_pulse(action["name"])
    elif op == "undo":
        return engine.undo()
    elif op == "reset":
        return engine.reset()
    elif op == "advance":
        return engine.advance()
    elif op == "previous":
        return engine.previous_step()
    else:
        raise ValueError(f"Unknown action: {op!r}")


@app.command("list")
def list_experiments() -> None:
    """List the built-in experiments."""
    for name in sorted(EXPERIMENTS):
        config = EXPERIMENTS[name]()
        typer.echo(f"{name}: {config.title} ({len(config.steps)} steps)")


@app.command()
def describe(
    name: Annotated[str, typer.Argument(help="Built-in experiment name.")],
) -> None:
    """Print the shelf, steps and rules of an experiment as JSON."""
    try:
        config = build_experiment(name)
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    payload = {
        "name": config.name,
        "title": config.title,
        "chemicals": [
            {
                "id": chemical.id,
                "name": chemical.name,
                "formula": chemical.formula,
                "concentration": chemical.concentration_label,
            }
            for chemical in config.chemicals
        ],
        "equipment": [{"id": item.id, "name": item.name} for item in config.equipment],
        "steps": [
            {"id": step.id, "title": step.title, "advance_when": str(step.advance_when)}
            for step in config.steps
        ],
        "rules": [
            {"name": rule.name, "when": str(rule.when), "repeatable": rule.repeatable}
            for rule in config.rules
        ],
        "observation_slots": list(config.observation_slots),
    }
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def run(
    script_file: Annotated[
        Path, typer.Argument(help="Path to a JSON session script.")
    ],
    output: Annotated[
        Path | None, typer.Option(help="Path to save output JSON.")
    ] = None,
    trace: Annotated[
        bool, typer.Option(help="Include the state after every action.")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log engine activity to stderr.")
    ] = False,
) -> None:
    """Replay a scripted session against an experiment and print the final state."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    with open(script_file, "r", encoding="utf-8") as f:
        script = json.load(f)

    try:
        config = _load_experiment(script, script_file.parent)
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    engine = ExperimentEngine(config)
    steps: List[Dict[str, Any]] = []
    for action in script.get("actions", []):
        try:
            result = _dispatch(engine, action)
        except ConfigurationError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)
        except (KeyError, ValueError) as exc:
            typer.echo(f"Bad action {action!r}: {exc}", err=True)
            raise typer.Exit(code=2)
        if trace:
            steps.append({"action": action, "result": result.to_dict()})

    data: Dict[str, Any] = {
        "experiment": config.name,
        "final": engine.snapshot_view().to_dict(),
        "completed_steps": list(engine.completed_steps()),
    }
    if trace:
        data["trace"] = steps

    json_output = json.dumps(data, indent=2, ensure_ascii=False)
    typer.echo(json_output)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(json_output)
