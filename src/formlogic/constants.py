"""Form-logic constants shared across the SDK.

These values are referenced by the comparator, the resolvers, and the
validators.  They mirror the vocabulary of the form definitions stored by
the surrounding form builder (operators, field types, display types).

The safety limits can be overridden via environment variables so that
deployments can tighten them without code changes.
"""

import os

# Condition operators understood by the comparator.  Anything else evaluates
# to False at runtime and is reported as an error by validation.
CONDITION_OPERATORS: frozenset[str] = frozenset({
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "greater_than",
    "less_than",
    "is_empty",
    "is_not_empty",
})

LOGICAL_OPERATORS: frozenset[str] = frozenset({"and", "or"})

# Closed set of field types.  ``calculated`` is the read-only type the form
# builder assigns to formula fields.
FIELD_TYPES: tuple[str, ...] = (
    "text", "textarea", "email", "dropdown", "radio", "checkbox", "date",
    "file", "number", "phone", "url", "rating", "scale", "matrix",
    "signature", "payment", "address", "name", "password", "hidden",
    "divider", "heading", "paragraph", "image", "video", "audio", "calendar",
    "calculated",
)

# Field types whose answer is a single choice among ``options``.
SINGLE_CHOICE_TYPES: frozenset[str] = frozenset({"dropdown", "radio"})

# Field types whose answer is a number on a bounded scale.
RANGE_TYPES: frozenset[str] = frozenset({"rating", "scale"})

# Free-text types: numeric coercion falls back to character length.
FREE_TEXT_TYPES: frozenset[str] = frozenset({"text", "textarea"})

DISPLAY_TYPES: frozenset[str] = frozenset({"currency", "percentage", "number", "decimal"})

# Built-in calculation functions (matched case-insensitively).
AGGREGATE_FUNCTIONS: frozenset[str] = frozenset({"SUM", "AVG", "MIN", "MAX", "COUNT"})
CALCULATION_FUNCTIONS: frozenset[str] = AGGREGATE_FUNCTIONS | {"IF", "SQRT", "ABS", "ROUND"}

# Built-in template functions (matched case-sensitively, lowercase only).
TEMPLATE_FUNCTIONS: tuple[str, ...] = (
    "uppercase", "lowercase", "capitalize", "date_format", "join", "count", "sum",
)

# Fixed-point bound: a calculation run makes at most this many passes per field.
PASSES_PER_FIELD = 2

# Hostile-input limits for the arithmetic parser.
# Overridable via FORMLOGIC_MAX_FORMULA_LENGTH / FORMLOGIC_MAX_FORMULA_DEPTH.
MAX_FORMULA_LENGTH = int(os.getenv("FORMLOGIC_MAX_FORMULA_LENGTH", "2000"))
MAX_FORMULA_DEPTH = int(os.getenv("FORMLOGIC_MAX_FORMULA_DEPTH", "64"))

# URL parameter names that validation accepts without a warning.
URL_PARAMETER_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_-]*$"
