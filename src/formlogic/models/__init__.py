"""Public model re-exports for formlogic.

Consumers should import from ``formlogic.models`` rather than reaching into
sub-modules directly.
"""

# --- Field definitions ---
from formlogic.models.field import (
    AnswerRecall,
    Calculation,
    Condition,
    ConditionalLogic,
    FieldProperties,
    FormField,
    PrefillSettings,
    RangeScale,
    ShowLogic,
    SkipLogic,
    index_fields,
    ordered_fields,
)

# --- Responses ---
from formlogic.models.response import ResponseMap, ResponseValue, is_empty

# --- Results ---
from formlogic.models.result import (
    CalculationRun,
    EvaluationResult,
    FieldState,
    FlowSimulation,
    PrefillParam,
    SkipAction,
    ValidationResult,
    VisibilityResult,
)

__all__ = [
    # Fields
    "AnswerRecall",
    "Calculation",
    "Condition",
    "ConditionalLogic",
    "FieldProperties",
    "FormField",
    "PrefillSettings",
    "RangeScale",
    "ShowLogic",
    "SkipLogic",
    "index_fields",
    "ordered_fields",
    # Responses
    "ResponseMap",
    "ResponseValue",
    "is_empty",
    # Results
    "CalculationRun",
    "EvaluationResult",
    "FieldState",
    "FlowSimulation",
    "PrefillParam",
    "SkipAction",
    "ValidationResult",
    "VisibilityResult",
]
