"""formlogic — dynamic form evaluation engine.

Given a form's fields and the answers so far, derives which fields are
visible, where the flow jumps next, computed values, recalled text and
URL-prefilled values.

Public API:
    FormEvaluator       — orchestrator: evaluate() and validate() for a form
    VisibilityResolver  — show conditions, skip targets, next field, flow simulation
    CalculationEngine   — formula fixed point and cycle detection
    TemplateEngine      — answer recall (direct and template)
    PrefillResolver     — URL parameters / defaults into typed values
    ConditionComparator — the condition primitive
    FormStore           — loads YAML form definitions with lookup by id

Functional interface (accepts FormField models or plain dicts):
    evaluate, evaluate_visibility, evaluate_calculations, evaluate_recall,
    evaluate_prefill, validate_form, validate_conditional_logic,
    validate_calculations, validate_answer_recall, validate_prefill_config,
    detect_circular_dependencies, next_visible_fields, simulate_form_flow,
    generate_prefill_url, parse_prefill_url, extract_prefill_params
"""

from formlogic.arithmetic import FormulaError
from formlogic.calculation import CalculationEngine
from formlogic.comparator import ConditionComparator
from formlogic.config import EngineSettings, configure_logging, load_settings
from formlogic.definitions import FormDefinition, FormStore, load_form
from formlogic.engine import (
    FormEvaluator,
    detect_circular_dependencies,
    evaluate,
    evaluate_calculations,
    evaluate_prefill,
    evaluate_recall,
    evaluate_visibility,
    extract_prefill_params,
    generate_prefill_url,
    next_visible_fields,
    parse_prefill_url,
    simulate_form_flow,
    validate_answer_recall,
    validate_calculations,
    validate_conditional_logic,
    validate_form,
    validate_prefill_config,
)
from formlogic.models import (
    EvaluationResult,
    FlowSimulation,
    FormField,
    ValidationResult,
    VisibilityResult,
)
from formlogic.prefill import PrefillResolver
from formlogic.recall import TemplateEngine
from formlogic.visibility import VisibilityResolver

__all__ = [
    # Evaluators
    "FormEvaluator",
    "VisibilityResolver",
    "CalculationEngine",
    "TemplateEngine",
    "PrefillResolver",
    "ConditionComparator",
    "FormulaError",
    # Definitions & config
    "FormDefinition",
    "FormStore",
    "load_form",
    "EngineSettings",
    "configure_logging",
    "load_settings",
    # Models
    "FormField",
    "EvaluationResult",
    "FlowSimulation",
    "ValidationResult",
    "VisibilityResult",
    # Functional interface
    "evaluate",
    "evaluate_visibility",
    "evaluate_calculations",
    "evaluate_recall",
    "evaluate_prefill",
    "validate_form",
    "validate_conditional_logic",
    "validate_calculations",
    "validate_answer_recall",
    "validate_prefill_config",
    "detect_circular_dependencies",
    "next_visible_fields",
    "simulate_form_flow",
    "generate_prefill_url",
    "parse_prefill_url",
    "extract_prefill_params",
]
