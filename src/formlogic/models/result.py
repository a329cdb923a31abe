"""Result models — the contract between the engine and its callers.

Runtime results (``VisibilityResult``, ``CalculationRun``,
``EvaluationResult``, ``FlowSimulation``) are frozen dataclasses whose
mappings are read-only views.  Each evaluation call builds fresh instances,
so a result handed to one rendering context can never be changed by another.

Author-time results (``ValidationResult``, ``PrefillParam``) are pydantic
models so the surrounding API can serialise them directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel


def freeze(mapping: Mapping | None = None) -> Mapping:
    """Wrap a dict in a read-only view (copying it first)."""
    return MappingProxyType(dict(mapping or {}))


# ---------------------------------------------------------------------------
# Runtime results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldState:
    """Per-field visibility decision with a human-readable reason."""

    visible: bool
    skip_to: Optional[str] = None
    reason: str = ""


@dataclass(frozen=True)
class VisibilityResult:
    """Output of the visibility pass.

    ``visible_fields`` and ``hidden_fields`` are in form order.
    """

    visible_fields: tuple[str, ...] = ()
    hidden_fields: tuple[str, ...] = ()
    skip_targets: Mapping[str, str] = field(default_factory=freeze)
    field_states: Mapping[str, FieldState] = field(default_factory=freeze)
    warnings: tuple[str, ...] = ()

    def is_visible(self, field_id: str) -> bool:
        return field_id in self.visible_fields


@dataclass(frozen=True)
class SkipAction:
    from_field: str
    to_field: str
    reason: str


@dataclass(frozen=True)
class FlowSimulation:
    """Path a respondent would take through the form for a given answer set."""

    flow_path: tuple[str, ...] = ()
    visible_fields: tuple[str, ...] = ()
    hidden_fields: tuple[str, ...] = ()
    skip_actions: tuple[SkipAction, ...] = ()


@dataclass(frozen=True)
class CalculationRun:
    """Output of one calculation fixed-point run.

    ``values`` holds display-formatted results, ``raw_values`` the unformatted
    numbers.  ``passes`` is the number of passes actually made (never more
    than ``2 x len(fields)``); ``unresolved`` lists calculation fields whose
    dependencies never became available.
    """

    values: Mapping[str, Any] = field(default_factory=freeze)
    raw_values: Mapping[str, float] = field(default_factory=freeze)
    passes: int = 0
    unresolved: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class EvaluationResult:
    """Combined output of one ``FormEvaluator.evaluate`` call."""

    visible_fields: frozenset[str] = frozenset()
    hidden_fields: frozenset[str] = frozenset()
    skip_targets: Mapping[str, str] = field(default_factory=freeze)
    field_states: Mapping[str, FieldState] = field(default_factory=freeze)
    calculated_values: Mapping[str, Any] = field(default_factory=freeze)
    recalled_values: Mapping[str, Any] = field(default_factory=freeze)
    prefilled_values: Mapping[str, Any] = field(default_factory=freeze)
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Author-time results
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Outcome of an author-time validator.

    Errors block saving the form; warnings are advisory.
    """

    is_valid: bool = True
    errors: List[str] = []
    warnings: List[str] = []

    @classmethod
    def build(cls, errors: List[str], warnings: List[str]) -> ValidationResult:
        return cls(is_valid=not errors, errors=list(errors), warnings=list(warnings))

    @classmethod
    def merge(cls, *results: ValidationResult) -> ValidationResult:
        """Concatenate the errors and warnings of several results."""
        errors: List[str] = []
        warnings: List[str] = []
        for r in results:
            errors.extend(r.errors)
            warnings.extend(r.warnings)
        return cls.build(errors, warnings)


class PrefillParam(BaseModel):
    """One URL parameter a form accepts, for sharing pre-filled links."""

    field_id: str
    field_label: str
    field_type: str
    url_parameter: str
    required: bool
    has_default: bool
