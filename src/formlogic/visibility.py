"""VisibilityResolver — show/hide decisions and skip jumps.

For every field the resolver decides:

  - **visibility**: a field with an enabled ``show`` block is visible only
    when its conditions hold; every other field is visible.
  - **skip target**: when an enabled ``skip`` block's conditions hold, the
    flow jumps from this field to ``target_field_id``.  Skip is evaluated
    independently of visibility.

Condition lists are folded strictly left to right: the first condition's
result seeds the fold and each later condition joins it with its *own*
``logical_operator``, i.e. ``((c0 op1 c1) op2 c2) ...``.  There is no
and-before-or precedence.

A condition that names an unknown field evaluates to False and records a
warning, so the rest of the form still renders.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from formlogic.comparator import ConditionComparator
from formlogic.constants import CONDITION_OPERATORS
from formlogic.models.field import Condition, FormField, index_fields, ordered_fields
from formlogic.models.response import ResponseMap
from formlogic.models.result import (
    FieldState,
    FlowSimulation,
    SkipAction,
    ValidationResult,
    VisibilityResult,
    freeze,
)

logger = logging.getLogger(__name__)


class VisibilityResolver:
    """Evaluates show and skip logic for a list of fields."""

    def __init__(self, comparator: ConditionComparator | None = None) -> None:
        self._comparator = comparator or ConditionComparator()

    # ==================================================================
    # Runtime evaluation
    # ==================================================================

    def resolve(self, fields: Sequence[FormField], responses: ResponseMap) -> VisibilityResult:
        """Evaluate visibility and skip logic for every field, in form order."""
        index = index_fields(fields)
        diagnostics: list[str] = []
        visible: list[str] = []
        hidden: list[str] = []
        skip_targets: dict[str, str] = {}
        states: dict[str, FieldState] = {}

        for field in ordered_fields(fields):
            is_visible = self.is_visible(field, responses, index, diagnostics)
            skip_to = self.skip_target(field, responses, index, diagnostics)

            (visible if is_visible else hidden).append(field.id)
            if skip_to:
                skip_targets[field.id] = skip_to
            states[field.id] = FieldState(
                visible=is_visible,
                skip_to=skip_to,
                reason=self._reason(field, is_visible, skip_to),
            )

        return VisibilityResult(
            visible_fields=tuple(visible),
            hidden_fields=tuple(hidden),
            skip_targets=freeze(skip_targets),
            field_states=freeze(states),
            warnings=tuple(diagnostics),
        )

    def is_visible(
        self,
        field: FormField,
        responses: ResponseMap,
        index: dict[str, FormField],
        diagnostics: Optional[list[str]] = None,
    ) -> bool:
        """True unless the field's enabled show conditions evaluate to False."""
        show = field.show_logic
        if show is None:
            return True
        return self.evaluate_conditions(show.conditions, responses, index, diagnostics)

    def skip_target(
        self,
        field: FormField,
        responses: ResponseMap,
        index: dict[str, FormField],
        diagnostics: Optional[list[str]] = None,
    ) -> Optional[str]:
        """Return the field id to jump to, or None if no skip applies."""
        skip = field.skip_logic
        if skip is None:
            return None
        if not self.evaluate_conditions(skip.conditions, responses, index, diagnostics):
            return None
        return skip.target_field_id or None

    def evaluate_conditions(
        self,
        conditions: Sequence[Condition],
        responses: ResponseMap,
        index: dict[str, FormField],
        diagnostics: Optional[list[str]] = None,
    ) -> bool:
        """Fold a condition list left to right using each condition's own operator.

        An empty list is True.
        """
        if not conditions:
            return True

        result = self.evaluate_condition(conditions[0], responses, index, diagnostics)
        for condition in conditions[1:]:
            outcome = self.evaluate_condition(condition, responses, index, diagnostics)
            if condition.logical_operator == "or":
                result = result or outcome
            else:
                result = result and outcome
        return result

    def evaluate_condition(
        self,
        condition: Condition,
        responses: ResponseMap,
        index: dict[str, FormField],
        diagnostics: Optional[list[str]] = None,
    ) -> bool:
        """Evaluate one condition; an unknown field id is False plus a warning."""
        source = index.get(condition.field_id)
        if source is None:
            message = f"Field {condition.field_id} not found for condition evaluation"
            logger.warning(message)
            if diagnostics is not None:
                diagnostics.append(message)
            return False
        return self._comparator.compare(
            responses.get(condition.field_id),
            condition.operator,
            condition.value,
            source.type,
            diagnostics,
        )

    @staticmethod
    def _reason(field: FormField, is_visible: bool, skip_to: Optional[str]) -> str:
        reasons: list[str] = []
        if not is_visible and field.show_logic is not None:
            reasons.append("Hidden by show conditions")
        if skip_to:
            reasons.append(f"Skip to field {skip_to}")
        if not reasons:
            return "Visible by default" if is_visible else "Hidden by default"
        return ", ".join(reasons)

    # ==================================================================
    # Navigation
    # ==================================================================

    def next_visible_fields(
        self,
        fields: Sequence[FormField],
        responses: ResponseMap,
        current_field_id: str,
    ) -> list[str]:
        """Return the id of the field to show after *current_field_id*.

        If the current field's skip applies, the target is used when visible;
        a hidden target continues the search from the target itself.  A skip
        chain that returns to a field already visited falls back to plain
        order.  Returns an empty list at the end of the form or for an
        unknown current field.
        """
        ordered = ordered_fields(fields)
        position = {f.id: i for i, f in enumerate(ordered)}
        index = index_fields(fields)
        visited: set[str] = set()

        current_id = current_field_id
        while current_id in position:
            visited.add(current_id)
            current = ordered[position[current_id]]
            target = self.skip_target(current, responses, index)

            if target is not None and target in position and target not in visited:
                if self.is_visible(ordered[position[target]], responses, index):
                    return [target]
                current_id = target
                continue

            for candidate in ordered[position[current_id] + 1:]:
                if self.is_visible(candidate, responses, index):
                    return [candidate.id]
            return []

        return []

    def simulate_flow(self, fields: Sequence[FormField], responses: ResponseMap) -> FlowSimulation:
        """Walk the form in order, following skip jumps, for a hypothetical answer set.

        A skip target that is unknown or already on the path is ignored and
        the walk continues in order, so backward jumps cannot loop.
        """
        result = self.resolve(fields, responses)
        ordered = ordered_fields(fields)
        position = {f.id: i for i, f in enumerate(ordered)}
        visible = set(result.visible_fields)

        flow_path: list[str] = []
        skip_actions: list[SkipAction] = []
        i = 0
        while i < len(ordered):
            current = ordered[i]
            if current.id in visible and current.id not in flow_path:
                flow_path.append(current.id)
                target = result.skip_targets.get(current.id)
                if target in position and target not in flow_path:
                    skip_actions.append(
                        SkipAction(from_field=current.id, to_field=target, reason="Skip condition met")
                    )
                    i = position[target]
                    continue
            i += 1

        return FlowSimulation(
            flow_path=tuple(flow_path),
            visible_fields=result.visible_fields,
            hidden_fields=result.hidden_fields,
            skip_actions=tuple(skip_actions),
        )

    # ==================================================================
    # Author-time validation
    # ==================================================================

    def validate(self, fields: Sequence[FormField]) -> ValidationResult:
        """Check show/skip configuration for broken references.

        Errors: conditions on nonexistent fields, show conditions on the
        field itself, unknown operators, skip without a target, nonexistent
        or self skip targets.  Warnings: show conditions on fields that come
        later in the form.
        """
        errors: list[str] = []
        warnings: list[str] = []
        ordered = ordered_fields(fields)
        position = {f.id: i for i, f in enumerate(ordered)}

        for i, field in enumerate(ordered):
            if field.conditional is None:
                continue
            show = field.conditional.show
            skip = field.conditional.skip

            if show is not None and show.enabled:
                for n, condition in enumerate(show.conditions, 1):
                    if condition.field_id not in position:
                        errors.append(
                            f"Field {field.id}: Show condition {n} references "
                            f"non-existent field {condition.field_id}"
                        )
                    if condition.field_id == field.id:
                        errors.append(f"Field {field.id}: Show condition {n} cannot reference itself")
                    if position.get(condition.field_id, -1) > i:
                        warnings.append(
                            f"Field {field.id}: Show condition {n} references a field that "
                            f"comes later in the form ({condition.field_id})"
                        )
                    if condition.operator not in CONDITION_OPERATORS:
                        errors.append(
                            f"Field {field.id}: Show condition {n} uses unknown operator "
                            f"{condition.operator}"
                        )

            if skip is not None and skip.enabled:
                for n, condition in enumerate(skip.conditions, 1):
                    if condition.field_id not in position:
                        errors.append(
                            f"Field {field.id}: Skip condition {n} references "
                            f"non-existent field {condition.field_id}"
                        )
                    if condition.operator not in CONDITION_OPERATORS:
                        errors.append(
                            f"Field {field.id}: Skip condition {n} uses unknown operator "
                            f"{condition.operator}"
                        )

                target = skip.target_field_id
                if not target:
                    if skip.conditions:
                        errors.append(f"Field {field.id}: Skip logic is enabled but has no target field")
                elif target not in position:
                    errors.append(f"Field {field.id}: Skip target {target} does not exist")
                elif target == field.id:
                    errors.append(f"Field {field.id}: Skip target cannot be the field itself")

        return ValidationResult.build(errors, warnings)
