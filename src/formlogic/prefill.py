"""PrefillResolver — initial field values from URL parameters or defaults.

For every prefill-enabled field a non-empty URL parameter wins over the
configured ``default_value``.  URL values are decoded (``+`` -> space,
``%XX`` escapes) before coercion; defaults are used as configured.

Coercion follows the recall rules for text-like types (``TARGET_COERCERS``)
with three extra checks:

  - dropdown / radio: a value not in ``options`` becomes ``''``
  - checkbox: a ``,``-separated list, filtered against ``options``
  - rating / scale: a number outside the field's range becomes ``None`` and
    is left out of the result

The resolver also builds share links: :meth:`PrefillResolver.generate_url`
encodes values into a query string that :meth:`PrefillResolver.parse_query`
and :meth:`PrefillResolver.resolve` read back.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Sequence
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from formlogic.coercion import (
    TARGET_COERCERS,
    URI_COMPONENT_SAFE,
    coerce_to_target,
    decode_url_value,
    encode_url_value,
    narrow_number,
    parse_number,
    stringify,
    url_value_text,
)
from formlogic.config import EngineSettings, load_settings
from formlogic.constants import RANGE_TYPES, SINGLE_CHOICE_TYPES, URL_PARAMETER_PATTERN
from formlogic.models.field import FormField, ordered_fields
from formlogic.models.result import PrefillParam, ValidationResult

logger = logging.getLogger(__name__)

_PARAMETER_NAME = re.compile(URL_PARAMETER_PATTERN)


class PrefillResolver:
    """Maps URL query parameters and defaults onto typed field values."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self._settings = settings or load_settings()

    # ==================================================================
    # Runtime evaluation
    # ==================================================================

    def resolve(self, fields: Sequence[FormField], url_params: Mapping[str, Any]) -> dict[str, Any]:
        """Prefilled value of every prefill-enabled field that has one."""
        prefilled: dict[str, Any] = {}
        for field in ordered_fields(fields):
            if field.id in prefilled:
                continue
            value = self.value_for(field, url_params)
            if value is not None:
                prefilled[field.id] = value
        return prefilled

    def value_for(self, field: FormField, url_params: Mapping[str, Any]) -> Any:
        """URL parameter (when non-empty) else default, coerced; None if neither."""
        if not field.has_prefill:
            return None
        prefill = field.prefill

        if prefill.url_parameter:
            raw = url_params.get(prefill.url_parameter)
            if isinstance(raw, (list, tuple)):
                raw = raw[0] if raw else None
            if raw is not None and raw != "":
                return self.coerce(raw, field, from_url=True)

        if prefill.default_value is not None:
            return self.coerce(prefill.default_value, field)
        return None

    def coerce(self, value: Any, field: FormField, *, from_url: bool = False) -> Any:
        """Coerce a raw prefill value into the shape *field* expects.

        Args:
            value: URL parameter text or configured default
            field: the target field (type, options and range are read)
            from_url: decode the value as a URL query component first
        """
        if from_url:
            value = decode_url_value(stringify(value))

        if field.type in SINGLE_CHOICE_TYPES:
            text = stringify(value)
            if field.options and text not in field.options:
                return ""
            return text

        if field.type == "checkbox":
            if isinstance(value, (list, tuple)):
                items = [stringify(v) for v in value]
            elif isinstance(value, str):
                items = [v.strip() for v in value.split(",")]
            else:
                return []
            items = [v for v in items if v]
            if field.options:
                items = [v for v in items if v in field.options]
            return items

        if field.type in RANGE_TYPES:
            number = parse_number(value)
            if number is None or not self._in_range(number, field):
                return None
            return narrow_number(number)

        if field.type in TARGET_COERCERS:
            return coerce_to_target(value, field.type)
        return stringify(value)

    def _in_range(self, number: float, field: FormField) -> bool:
        scale = field.properties.range_for(field.type)
        low = self._settings.default_range_min
        high = self._settings.default_range_max
        if scale is not None:
            low = scale.min if scale.min is not None else low
            high = scale.max if scale.max is not None else high
        return low <= number <= high

    # ==================================================================
    # Share links
    # ==================================================================

    def generate_url(self, base_url: str, fields: Sequence[FormField], values: Mapping[str, Any]) -> str:
        """Append one query parameter per prefill-enabled field with a value.

        Existing parameters of *base_url* are kept unless a field sets the
        same name.  Empty values are skipped.  Names and values are encoded
        the way a browser's ``encodeURIComponent`` does.
        """
        params: dict[str, str] = {}
        for field in ordered_fields(fields):
            if not field.has_prefill or not field.prefill.url_parameter:
                continue
            if field.id not in values:
                continue
            text = url_value_text(values[field.id], field.type)
            if text:
                params[field.prefill.url_parameter] = text

        parts = urlsplit(base_url)
        kept = [
            (name, value)
            for name, value in parse_qsl(parts.query, keep_blank_values=True)
            if name not in params
        ]
        query = urlencode(kept + list(params.items()), quote_via=quote, safe=URI_COMPONENT_SAFE)
        return urlunsplit(parts._replace(query=query))

    @staticmethod
    def parse_query(url: str) -> dict[str, str]:
        """Query parameters of *url*, ready for :meth:`resolve`.

        The query is split and decoded once by ``parse_qsl``; each value is
        then re-encoded in ``encodeURIComponent`` form because
        :meth:`resolve` decodes URL values itself.  The first occurrence of
        a repeated name wins.
        """
        params: dict[str, str] = {}
        for name, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
            params.setdefault(name, encode_url_value(value, "text"))
        return params

    @staticmethod
    def extract_params(fields: Sequence[FormField]) -> list[PrefillParam]:
        """Describe every URL parameter the form accepts, in form order."""
        return [
            PrefillParam(
                field_id=f.id,
                field_label=f.label,
                field_type=f.type,
                url_parameter=f.prefill.url_parameter,
                required=f.required,
                has_default=f.prefill.default_value is not None,
            )
            for f in ordered_fields(fields)
            if f.has_prefill and f.prefill.url_parameter
        ]

    # ==================================================================
    # Author-time validation
    # ==================================================================

    def validate(self, fields: Sequence[FormField]) -> ValidationResult:
        """Check parameter names, duplicates and defaults.

        Errors: neither parameter nor default configured.  Warnings:
        malformed parameter names, a parameter shared by several fields, a
        default that the field type rejects.
        """
        errors: list[str] = []
        warnings: list[str] = []
        used: set[str] = set()

        for field in ordered_fields(fields):
            if not field.has_prefill:
                continue
            prefill = field.prefill
            param = prefill.url_parameter

            if param:
                if not _PARAMETER_NAME.match(param):
                    warnings.append(
                        f"Field {field.id}: URL parameter '{param}' should start with a letter and "
                        "contain only letters, numbers, underscores, and hyphens"
                    )
                if param in used:
                    warnings.append(f"URL parameter '{param}' is used by multiple fields")
                used.add(param)

            default = prefill.default_value
            if not param and default is None:
                errors.append(
                    f"Field {field.id}: Prefill is enabled but no URL parameter or default value is configured"
                )

            if default is not None and self._rejects(default, field):
                warnings.append(
                    f"Field {field.id}: Default value may not be compatible with field type {field.type}"
                )

        return ValidationResult.build(errors, warnings)

    def _rejects(self, default: Any, field: FormField) -> bool:
        coerced = self.coerce(default, field)
        if coerced is None:
            return True
        blank_default = default == "" or default == []
        return not blank_default and (coerced == "" or coerced == [])
