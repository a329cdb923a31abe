"""FormEvaluator — the orchestrator for one form evaluation.

Stateless: every call takes the field list and the answers so far, runs the
sub-evaluators in a fixed order and returns a fresh, immutable result.  No
state is kept between calls, so one evaluator can serve any number of
concurrent sessions.

Pass order:
    1  Prefill       — URL parameters / defaults (independent of answers)
    2  Visibility    — show conditions and skip targets
    3  Calculation   — formula fixed point over the numeric context
    4  Recall        — direct and template recall; reads calculated values

Prefilled values sit *under* the respondent's answers: an answered field
always keeps its answer.

The module-level functions at the bottom are the plain-data interface used
by callers that hold form definitions as dicts (JSON from the form builder).
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from formlogic.calculation import CalculationEngine
from formlogic.config import EngineSettings, load_settings
from formlogic.models.field import FormField
from formlogic.models.response import ResponseMap, is_empty
from formlogic.models.result import (
    EvaluationResult,
    FlowSimulation,
    PrefillParam,
    ValidationResult,
    VisibilityResult,
    freeze,
)
from formlogic.prefill import PrefillResolver
from formlogic.recall import TemplateEngine
from formlogic.visibility import VisibilityResolver

logger = logging.getLogger(__name__)

FieldInput = Union[FormField, Mapping[str, Any]]


def as_fields(fields: Iterable[FieldInput]) -> list[FormField]:
    """Accept ``FormField`` models or plain dicts (camelCase or snake_case).

    Raises:
        pydantic.ValidationError: if a dict is not a field definition.
    """
    return [f if isinstance(f, FormField) else FormField.model_validate(f) for f in fields]


class FormEvaluator:
    """Runs visibility, calculation, recall and prefill for a form."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or load_settings()
        self.visibility = VisibilityResolver()
        self.calculations = CalculationEngine(self.settings)
        self.templates = TemplateEngine()
        self.prefill = PrefillResolver(self.settings)

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------

    def evaluate(
        self,
        fields: Sequence[FieldInput],
        responses: ResponseMap,
        url_params: Optional[Mapping[str, Any]] = None,
    ) -> EvaluationResult:
        """Evaluate the whole form for the current answers.

        Args:
            fields: the form's field definitions
            responses: field id -> current answer
            url_params: query parameters of the page the form is shown on

        Returns:
            EvaluationResult with visibility, skip targets, calculated,
            recalled and prefilled values plus collected warnings.
        """
        fields = as_fields(fields)
        diagnostics: list[str] = []

        prefilled = self.prefill.resolve(fields, url_params or {})
        answers: dict[str, Any] = {**prefilled, **responses}

        visibility = self.visibility.resolve(fields, answers)
        calculation = self.calculations.run(fields, answers)

        # Unanswered calculated fields expose their display value to recall.
        recall_view = dict(answers)
        for field_id, value in calculation.values.items():
            if is_empty(recall_view.get(field_id)):
                recall_view[field_id] = value
        recalled = self.templates.resolve(fields, recall_view, diagnostics)

        warnings = visibility.warnings + calculation.warnings + tuple(diagnostics)
        logger.debug(
            "Evaluated %d fields: %d visible, %d calculated, %d recalled, %d prefilled",
            len(fields),
            len(visibility.visible_fields),
            len(calculation.values),
            len(recalled),
            len(prefilled),
        )
        return EvaluationResult(
            visible_fields=frozenset(visibility.visible_fields),
            hidden_fields=frozenset(visibility.hidden_fields),
            skip_targets=visibility.skip_targets,
            field_states=visibility.field_states,
            calculated_values=calculation.values,
            recalled_values=freeze(recalled),
            prefilled_values=freeze(prefilled),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Author time
    # ------------------------------------------------------------------

    def validate(self, fields: Sequence[FieldInput]) -> ValidationResult:
        """Run all four validators and check that field ids are unique."""
        fields = as_fields(fields)

        seen: set[str] = set()
        duplicates: list[str] = []
        for field in fields:
            if field.id in seen and field.id not in duplicates:
                duplicates.append(field.id)
            seen.add(field.id)
        ids = ValidationResult.build([f"Duplicate field id {d}" for d in duplicates], [])

        return ValidationResult.merge(
            ids,
            self.visibility.validate(fields),
            self.calculations.validate(fields),
            self.templates.validate(fields),
            self.prefill.validate(fields),
        )


# ---------------------------------------------------------------------------
# Functional interface
# ---------------------------------------------------------------------------

def evaluate(
    fields: Sequence[FieldInput],
    responses: ResponseMap,
    url_params: Optional[Mapping[str, Any]] = None,
) -> EvaluationResult:
    return FormEvaluator().evaluate(fields, responses, url_params)


def evaluate_visibility(fields: Sequence[FieldInput], responses: ResponseMap) -> VisibilityResult:
    return VisibilityResolver().resolve(as_fields(fields), responses)


def evaluate_calculations(fields: Sequence[FieldInput], responses: ResponseMap) -> dict[str, Any]:
    return CalculationEngine().resolve(as_fields(fields), responses)


def evaluate_recall(fields: Sequence[FieldInput], responses: ResponseMap) -> dict[str, Any]:
    return TemplateEngine().resolve(as_fields(fields), responses)


def evaluate_prefill(fields: Sequence[FieldInput], url_params: Mapping[str, Any]) -> dict[str, Any]:
    return PrefillResolver().resolve(as_fields(fields), url_params)


def validate_conditional_logic(fields: Sequence[FieldInput]) -> ValidationResult:
    return VisibilityResolver().validate(as_fields(fields))


def validate_calculations(fields: Sequence[FieldInput]) -> ValidationResult:
    return CalculationEngine().validate(as_fields(fields))


def validate_answer_recall(fields: Sequence[FieldInput]) -> ValidationResult:
    return TemplateEngine().validate(as_fields(fields))


def validate_prefill_config(fields: Sequence[FieldInput]) -> ValidationResult:
    return PrefillResolver().validate(as_fields(fields))


def validate_form(fields: Sequence[FieldInput]) -> ValidationResult:
    return FormEvaluator().validate(fields)


def detect_circular_dependencies(fields: Sequence[FieldInput]) -> list[str]:
    return CalculationEngine().detect_circular_dependencies(as_fields(fields))


def next_visible_fields(
    fields: Sequence[FieldInput], responses: ResponseMap, current_field_id: str,
) -> list[str]:
    return VisibilityResolver().next_visible_fields(as_fields(fields), responses, current_field_id)


def simulate_form_flow(fields: Sequence[FieldInput], responses: ResponseMap) -> FlowSimulation:
    return VisibilityResolver().simulate_flow(as_fields(fields), responses)


def generate_prefill_url(
    base_url: str, fields: Sequence[FieldInput], values: Mapping[str, Any],
) -> str:
    return PrefillResolver().generate_url(base_url, as_fields(fields), values)


def parse_prefill_url(url: str) -> dict[str, str]:
    """Raw query parameters of a share link, ready for :func:`evaluate_prefill`."""
    return PrefillResolver.parse_query(url)


def extract_prefill_params(fields: Sequence[FieldInput]) -> list[PrefillParam]:
    return PrefillResolver.extract_params(as_fields(fields))
