#!/usr/bin/env python3
"""Evaluate a form definition against a set of answers and print the result.

Loads a form from ``forms/`` (or any YAML file), applies answers from a
YAML/JSON file and optional URL query parameters, then prints visibility,
skip targets, calculated / recalled / prefilled values and the simulated
flow through the form.

Usage::

    # Evaluate the sample form with no answers
    python scripts/simulate_form.py -f order-form

    # Answers from a file, prefill from a share link
    python scripts/simulate_form.py -f order-form -a answers.yaml \\
        --url "https://forms.example.com/f/1?name=Ada&mode=Delivery"

    # Author-time validation report only
    python scripts/simulate_form.py -f forms/order_form.yaml --validate

    # List the forms in forms/
    python scripts/simulate_form.py --list-forms
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

# Ensure src/ is importable when run from a checkout without installing.
_SCRIPT_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _SCRIPT_DIR.parent
sys.path.insert(0, str(_REPO_ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from formlogic.config import configure_logging, load_settings  # noqa: E402
from formlogic.definitions import FormDefinition, FormStore, load_form, load_yaml  # noqa: E402
from formlogic.engine import FormEvaluator, parse_prefill_url  # noqa: E402
from formlogic.models import EvaluationResult, FlowSimulation, ValidationResult  # noqa: E402

console = Console()


def resolve_form(ref: str, store: FormStore) -> FormDefinition:
    """A path to a YAML file, or the id of a form in the store."""
    path = Path(ref)
    if path.suffix in (".yaml", ".yml") or path.exists():
        return load_form(path)
    store.load()
    return store.get_form(ref)


def load_answers(path: str | None) -> dict[str, Any]:
    if path is None:
        return {}
    raw = load_yaml(path)  # JSON is a subset of YAML
    if not isinstance(raw, dict):
        raise ValueError(f"Answers file {path} must contain a mapping of field id to answer")
    return raw


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------

def print_evaluation(form: FormDefinition, result: EvaluationResult, flow: FlowSimulation) -> None:
    console.print(f"\n[bold cyan]{form.title or form.id}[/] ({len(form.fields)} fields)")

    table = Table(title="Field states", show_lines=False)
    table.add_column("Field", min_width=12)
    table.add_column("Type", style="dim", width=11)
    table.add_column("Visible", width=7)
    table.add_column("Reason", min_width=20)
    table.add_column("Value", min_width=16)

    for field in form.fields:
        state = result.field_states.get(field.id)
        visible = "[green]yes[/]" if field.id in result.visible_fields else "[red]no[/]"
        value = ""
        if field.id in result.calculated_values:
            value = f"[magenta]= {result.calculated_values[field.id]}[/]"
        elif field.id in result.recalled_values:
            value = f"[blue]{result.recalled_values[field.id]}[/]"
        elif field.id in result.prefilled_values:
            value = f"[dim]prefill:[/] {result.prefilled_values[field.id]}"
        table.add_row(field.id, field.type, visible, state.reason if state else "", value)
    console.print(table)

    if result.skip_targets:
        console.print("\n[bold]Skip targets[/]")
        for source, target in result.skip_targets.items():
            console.print(f"  {source} [dim]→[/] {target}")

    console.print("\n[bold]Flow[/]")
    console.print("  " + " → ".join(flow.flow_path) if flow.flow_path else "  (empty)")
    for action in flow.skip_actions:
        console.print(f"  [yellow]skip[/] {action.from_field} → {action.to_field}: {action.reason}")

    for warning in result.warnings:
        console.print(f"  [yellow]![/] {warning}")


def print_validation(form: FormDefinition, report: ValidationResult) -> None:
    status = "[green]VALID[/]" if report.is_valid else "[red]INVALID[/]"
    console.print(f"\n[bold cyan]{form.title or form.id}[/] — {status}")
    for error in report.errors:
        console.print(f"  [red]ERROR[/] {error}")
    for warning in report.warnings:
        console.print(f"  [yellow]![/] {warning}")
    if not report.errors and not report.warnings:
        console.print("  No issues found.")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Evaluate a form definition against a set of answers.",
    )
    parser.add_argument(
        "-f", "--form",
        help="Form id from the forms directory, or a path to a YAML form file",
    )
    parser.add_argument(
        "-a", "--answers",
        help="YAML or JSON file mapping field id to answer",
    )
    parser.add_argument(
        "--url",
        help="Share link whose query parameters feed the prefill pass",
    )
    parser.add_argument(
        "--forms-dir",
        help="Directory of form files (default: forms/ at the repo root)",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Print the author-time validation report and exit",
    )
    parser.add_argument(
        "--list-forms",
        action="store_true",
        help="List the forms in the forms directory and exit",
    )
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings)
    store = FormStore(args.forms_dir)

    if args.list_forms:
        store.load()
        for form_id in store.form_ids():
            console.print(f"  {form_id}: {store.get_form(form_id).title}")
        sys.exit(0)

    if not args.form:
        parser.error("--form is required unless --list-forms is given")

    form = resolve_form(args.form, store)
    evaluator = FormEvaluator(settings)

    if args.validate:
        report = evaluator.validate(form.fields)
        print_validation(form, report)
        sys.exit(0 if report.is_valid else 1)

    answers = load_answers(args.answers)
    url_params = parse_prefill_url(args.url) if args.url else {}
    result = evaluator.evaluate(form.fields, answers, url_params)
    flow = evaluator.visibility.simulate_flow(form.fields, {**result.prefilled_values, **answers})
    print_evaluation(form, result, flow)


if __name__ == "__main__":
    main()
