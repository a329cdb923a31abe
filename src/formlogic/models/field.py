"""Field definition models for dynamic form logic.

Each field carries up to four optional logic blocks, one per sub-evaluator:

  - conditional: show / skip condition lists (VisibilityResolver)
  - calculation: formula + dependencies + display type (CalculationEngine)
  - answer_recall: source field or template (TemplateEngine)
  - prefill: URL parameter or default value (PrefillResolver)

Every block has an ``enabled`` flag.  A block present without the flag is
treated as enabled; a block with ``enabled: false`` is ignored entirely.

The models accept both the camelCase keys produced by the form builder's JSON
API (``targetFieldId``, ``answerRecall``) and snake_case keys (YAML files).
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _FormModel(BaseModel):
    """Base for all form-definition models: camelCase aliases, snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Conditions ---

class Condition(_FormModel):
    """A single comparison against another field's answer.

    ``operator`` is deliberately a plain string: an unknown operator must
    reach the comparator (where it evaluates to False) instead of failing
    model construction while the respondent is typing.

    ``logical_operator`` joins this condition to the running result of the
    conditions before it.  It is ignored on the first condition.
    """

    field_id: str
    operator: str
    value: Any = None
    logical_operator: Literal["and", "or"] = "and"


class ShowLogic(_FormModel):
    """Visibility rule: the field is shown only when the conditions hold."""

    enabled: bool = True
    conditions: List[Condition] = []


class SkipLogic(_FormModel):
    """Skip rule: when the conditions hold, flow jumps to ``target_field_id``."""

    enabled: bool = True
    target_field_id: Optional[str] = None
    conditions: List[Condition] = []


class ConditionalLogic(_FormModel):
    show: Optional[ShowLogic] = None
    skip: Optional[SkipLogic] = None


# --- Calculation / recall / prefill ---

class Calculation(_FormModel):
    """Formula configuration.

    ``dependencies`` gates evaluation: the formula runs only once every
    listed field has a numeric value.  ``display_type`` stays a plain string
    so that an unknown value is a validation warning rather than a crash.
    """

    enabled: bool = True
    formula: Optional[str] = None
    dependencies: List[str] = []
    display_type: str = "number"


class AnswerRecall(_FormModel):
    enabled: bool = True
    source_field_id: Optional[str] = None
    template: Optional[str] = None


class PrefillSettings(_FormModel):
    enabled: bool = True
    url_parameter: Optional[str] = None
    default_value: Any = None


# --- Type-specific properties ---

class RangeScale(_FormModel):
    """Bounds of a rating or scale field."""

    min: Optional[float] = None
    max: Optional[float] = None
    step: float = 1


class FieldProperties(_FormModel):
    rating_scale: Optional[RangeScale] = None
    scale: Optional[RangeScale] = None

    def range_for(self, field_type: str) -> Optional[RangeScale]:
        """Return the configured bounds for a rating/scale field, if any."""
        if field_type == "rating":
            return self.rating_scale or self.scale
        if field_type == "scale":
            return self.scale or self.rating_scale
        return None


# --- The field itself ---

class FormField(_FormModel):
    """One form question or element."""

    id: str
    type: Literal[
        "text", "textarea", "email", "dropdown", "radio", "checkbox", "date",
        "file", "number", "phone", "url", "rating", "scale", "matrix",
        "signature", "payment", "address", "name", "password", "hidden",
        "divider", "heading", "paragraph", "image", "video", "audio",
        "calendar", "calculated",
    ] = "text"
    label: str = ""
    required: bool = False
    # Explicit position in the form.  Resolvers sort by this, not by list
    # position; see :func:`ordered_fields`.
    order: Optional[int] = None
    options: List[str] = []
    conditional: Optional[ConditionalLogic] = None
    calculation: Optional[Calculation] = None
    answer_recall: Optional[AnswerRecall] = None
    prefill: Optional[PrefillSettings] = None
    properties: FieldProperties = Field(default_factory=FieldProperties)

    # --- Convenience accessors for the enabled logic blocks ---

    @property
    def show_logic(self) -> Optional[ShowLogic]:
        """The show block, only if it is enabled and has at least one condition."""
        show = self.conditional.show if self.conditional else None
        if show is None or not show.enabled or not show.conditions:
            return None
        return show

    @property
    def skip_logic(self) -> Optional[SkipLogic]:
        """The skip block, only if it is enabled and has at least one condition."""
        skip = self.conditional.skip if self.conditional else None
        if skip is None or not skip.enabled or not skip.conditions:
            return None
        return skip

    @property
    def has_calculation(self) -> bool:
        return self.calculation is not None and self.calculation.enabled

    @property
    def has_recall(self) -> bool:
        return self.answer_recall is not None and self.answer_recall.enabled

    @property
    def has_prefill(self) -> bool:
        return self.prefill is not None and self.prefill.enabled


def ordered_fields(fields: Sequence[FormField]) -> list[FormField]:
    """Return *fields* sorted by their explicit ``order`` attribute.

    A field without ``order`` takes its list index as its order; ties keep
    list order.  Forward-reference warnings and "next field" navigation read
    this ordering, so re-sorting the input list elsewhere cannot change them.
    """
    keyed = [
        (f.order if f.order is not None else idx, idx, f)
        for idx, f in enumerate(fields)
    ]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [f for _, _, f in keyed]


def index_fields(fields: Sequence[FormField]) -> dict[str, FormField]:
    """Map field id to field.  With duplicate ids the first definition wins."""
    index: dict[str, FormField] = {}
    for f in fields:
        index.setdefault(f.id, f)
    return index
