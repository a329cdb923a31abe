"""ConditionComparator — the boolean primitive behind show and skip logic.

A condition compares one field's current answer against an expected value:

  - is_empty, is_not_empty: answer is ``None`` or ``""``
  - equals, not_equals: trimmed, case-insensitive equality; set membership
    for checkbox answers
  - contains, not_contains: trimmed, case-insensitive substring
  - greater_than, less_than: numeric comparison of both parsed operands

The comparator never raises.  Unparseable numbers make the comparison
False, and an unknown operator evaluates to False with a warning.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from formlogic.coercion import parse_number
from formlogic.models.response import ResponseValue, is_empty

logger = logging.getLogger(__name__)


class ConditionComparator:
    """Compares field answers against condition values."""

    def compare(
        self,
        field_value: ResponseValue,
        operator: str,
        expected_value: Any,
        field_type: Optional[str] = None,
        diagnostics: Optional[list[str]] = None,
    ) -> bool:
        """Apply *operator* to an answer and an expected value.

        Args:
            field_value: the respondent's current answer (may be missing)
            operator: one of the condition operators in ``constants``
            expected_value: the value configured on the condition
            field_type: type of the field the answer belongs to; checkbox
                answers switch equals/not_equals to membership tests
            diagnostics: optional list that receives a message for an
                unknown operator

        Returns:
            The boolean result; False for anything that cannot be compared.
        """
        empty = is_empty(field_value)

        if operator == "is_empty":
            return empty

        if operator == "is_not_empty":
            return not empty

        if operator == "equals":
            if field_type == "checkbox" and isinstance(field_value, list):
                return self._contains_member(field_value, expected_value)
            return self.normalize(field_value) == self.normalize(expected_value)

        if operator == "not_equals":
            if field_type == "checkbox" and isinstance(field_value, list):
                return not self._contains_member(field_value, expected_value)
            return self.normalize(field_value) != self.normalize(expected_value)

        if operator == "contains":
            if empty:
                return False
            return self._text(expected_value) in self._text(field_value)

        if operator == "not_contains":
            if empty:
                return True
            return self._text(expected_value) not in self._text(field_value)

        # --- Numeric comparisons ---
        if operator in ("greater_than", "less_than"):
            if empty:
                return False
            actual = parse_number(field_value)
            expected = parse_number(expected_value)
            if actual is None or expected is None:
                return False
            if operator == "greater_than":
                return actual > expected
            return actual < expected

        message = f"Unknown condition operator: {operator}"
        logger.warning(message)
        if diagnostics is not None:
            diagnostics.append(message)
        return False

    # ------------------------------------------------------------------
    # Normalization helpers
    # ------------------------------------------------------------------

    @staticmethod
    def normalize(value: Any) -> Any:
        """Normalize a value for equality: missing -> ``""``, strings trimmed + lowercased.

        Non-string values are returned unchanged, so ``5`` and ``"5"`` are
        not equal.
        """
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @staticmethod
    def _text(value: Any) -> str:
        """Substring form of a value: lists joined with ``,``, trimmed + lowercased."""
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        return str(value).strip().lower()

    @classmethod
    def _contains_member(cls, selected: list, expected: Any) -> bool:
        target = cls.normalize(expected)
        return any(cls.normalize(item) == target for item in selected)
