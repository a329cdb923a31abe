"""TemplateEngine — answer recall into other fields.

Two modes, configured per field in ``answer_recall``:

  - **template** (wins when both are configured): ``{{id}}`` tokens are
    replaced by the referenced answer, formatted per the *source* field's
    type.  Built-in calls wrap tokens::

        uppercase({{name}})  lowercase({{name}})  capitalize({{name}})
        date_format({{dob}}, 'DD/MM/YYYY')
        join({{toppings}}, ' & ')  count({{toppings}})
        sum({{a}}, {{b}}, {{c}})

  - **direct**: the answer of ``source_field_id`` is coerced into the shape
    the *target* field expects (see ``coercion.TARGET_COERCERS``).

Calls and plain tokens are matched in one left-to-right scan, so the text of
a substituted answer is never scanned again: an answer that happens to read
``uppercase({{x}})`` stays literal.  Unknown ids and empty answers render
as ``''``; the output is not trimmed.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional, Sequence

from formlogic.coercion import (
    coerce_to_target,
    parse_date,
    parse_number,
    plain_number_text,
    stringify,
    template_text,
)
from formlogic.models.field import FormField, index_fields, ordered_fields
from formlogic.models.response import ResponseMap, is_empty
from formlogic.models.result import ValidationResult

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")

_TEMPLATE = re.compile(
    r"\b(?P<unary>uppercase|lowercase|capitalize|count)\(\s*\{\{\s*(?P<unary_id>[^}]+?)\s*\}\}\s*\)"
    r"|\b(?P<binary>date_format|join)\(\s*\{\{\s*(?P<binary_id>[^}]+?)\s*\}\}\s*,\s*"
    r"(?P<quote>['\"])(?P<param>.*?)(?P=quote)\s*\)"
    r"|\bsum\((?P<sum_args>\s*\{\{[^}]+\}\}(?:\s*,\s*\{\{[^}]+\}\})*\s*)\)"
    r"|\{\{\s*(?P<token>[^}]+?)\s*\}\}"
)

# date_format placeholders, applied in this order.
_DATE_PARTS = (
    ("YYYY", lambda d: f"{d.year:04d}"),
    ("MM", lambda d: f"{d.month:02d}"),
    ("DD", lambda d: f"{d.day:02d}"),
    ("HH", lambda d: f"{d.hour:02d}"),
    ("mm", lambda d: f"{d.minute:02d}"),
    ("ss", lambda d: f"{d.second:02d}"),
)


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:].lower()


def format_date(value: Any, fmt: str) -> str:
    """Render a date-like answer with ``YYYY MM DD HH mm ss`` placeholders."""
    parsed = parse_date(value)
    if parsed is None:
        return stringify(value)
    out = fmt
    for placeholder, render in _DATE_PARTS:
        out = out.replace(placeholder, render(parsed))
    return out


class TemplateEngine:
    """Resolves answer recall for the fields of one form."""

    # ==================================================================
    # Runtime evaluation
    # ==================================================================

    def resolve(
        self,
        fields: Sequence[FormField],
        responses: ResponseMap,
        diagnostics: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Recalled value of every recall-enabled field that produces one."""
        recalled: dict[str, Any] = {}
        for field in ordered_fields(fields):
            if field.id in recalled:
                continue
            value = self.render(field, responses, fields, diagnostics)
            if value is not None:
                recalled[field.id] = value
        return recalled

    def render(
        self,
        field: FormField,
        responses: ResponseMap,
        all_fields: Sequence[FormField],
        diagnostics: Optional[list[str]] = None,
    ) -> Any:
        """Recall value for one field, or None when nothing is recalled."""
        if not field.has_recall:
            return None
        recall = field.answer_recall
        index = index_fields(all_fields)

        if recall.template:
            return self.render_template(recall.template, responses, index, diagnostics)

        source_id = recall.source_field_id
        if source_id:
            if source_id not in index:
                self._note(diagnostics, f"Field {field.id}: recall source {source_id} not found")
                return None
            value = responses.get(source_id)
            if is_empty(value):
                return None
            return coerce_to_target(value, field.type)
        return None

    def render_template(
        self,
        template: str,
        responses: ResponseMap,
        index: Mapping[str, FormField],
        diagnostics: Optional[list[str]] = None,
    ) -> str:
        """Substitute tokens and built-in calls in a single scan."""

        def answer(field_id: str) -> Any:
            field_id = field_id.strip()
            if field_id not in index:
                self._note(diagnostics, f"Template references unknown field {field_id}")
                return None
            return responses.get(field_id)

        def substitute(match: re.Match) -> str:
            if match.group("token") is not None:
                field_id = match.group("token")
                return template_text(answer(field_id), index.get(field_id.strip()))

            if match.group("unary") is not None:
                name = match.group("unary")
                value = answer(match.group("unary_id"))
                if name == "count":
                    if isinstance(value, (list, tuple)):
                        return str(len(value))
                    return "1" if value else "0"
                if not value:
                    return ""
                text = stringify(value)
                if name == "uppercase":
                    return text.upper()
                if name == "lowercase":
                    return text.lower()
                return _capitalize(text)

            if match.group("binary") is not None:
                value = answer(match.group("binary_id"))
                param = match.group("param")
                if match.group("binary") == "date_format":
                    return format_date(value, param) if value else ""
                if isinstance(value, (list, tuple)):
                    return param.join(stringify(v) for v in value)
                return stringify(value) if value else ""

            total = 0.0
            for field_id in _TOKEN.findall(match.group("sum_args")):
                number = parse_number(answer(field_id))
                if number is not None:
                    total += number
            return plain_number_text(total)

        return _TEMPLATE.sub(substitute, template)

    @staticmethod
    def _note(diagnostics: Optional[list[str]], message: str) -> None:
        logger.warning(message)
        if diagnostics is not None:
            diagnostics.append(message)

    # ==================================================================
    # Dependency lookup
    # ==================================================================

    @staticmethod
    def referenced_fields(field: FormField) -> list[str]:
        """Field ids a recall block reads (source first, then template tokens)."""
        if not field.has_recall:
            return []
        recall = field.answer_recall
        refs: dict[str, None] = {}
        if recall.source_field_id:
            refs[recall.source_field_id] = None
        if recall.template:
            for field_id in _TOKEN.findall(recall.template):
                refs[field_id.strip()] = None
        return list(refs)

    def dependents_of(self, field_id: str, fields: Sequence[FormField]) -> list[str]:
        """Ids of recall fields that read *field_id*, in form order."""
        return [
            f.id for f in ordered_fields(fields)
            if field_id in self.referenced_fields(f)
        ]

    # ==================================================================
    # Author-time validation
    # ==================================================================

    def validate(self, fields: Sequence[FormField]) -> ValidationResult:
        """Check recall sources and template tokens.

        Errors: nonexistent or self references, neither source nor template.
        Warnings: sources later in the form, both source and template set.
        """
        errors: list[str] = []
        warnings: list[str] = []
        ordered = ordered_fields(fields)
        position = {f.id: i for i, f in enumerate(ordered)}

        for i, field in enumerate(ordered):
            if not field.has_recall:
                continue
            recall = field.answer_recall
            source = recall.source_field_id

            if source:
                if source not in position:
                    errors.append(f"Field {field.id}: Answer recall references non-existent field {source}")
                if source == field.id:
                    errors.append(f"Field {field.id}: Answer recall cannot reference itself")
                if position.get(source, -1) > i:
                    warnings.append(
                        f"Field {field.id}: Answer recall references a field that comes later "
                        f"in the form ({source})"
                    )

            if recall.template:
                for ref in _TOKEN.findall(recall.template):
                    ref = ref.strip()
                    if ref not in position:
                        errors.append(f"Field {field.id}: Template references non-existent field {ref}")
                    if ref == field.id:
                        errors.append(f"Field {field.id}: Template cannot reference itself")
                    if position.get(ref, -1) > i:
                        warnings.append(
                            f"Field {field.id}: Template references a field that comes later "
                            f"in the form ({ref})"
                        )

            if source and recall.template:
                warnings.append(
                    f"Field {field.id}: Has both source field and template configured. "
                    "Template will take precedence."
                )
            if not source and not recall.template:
                errors.append(
                    f"Field {field.id}: Answer recall is enabled but no source field or template is configured"
                )

        return ValidationResult.build(errors, warnings)
