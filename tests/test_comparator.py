"""ConditionComparator unit tests — every condition operator.

Each operator has at least one positive and one negative case.

Operator reference (from comparator.compare):
    is_empty, is_not_empty   — None or "" counts as empty
    equals, not_equals       — trimmed, case-insensitive; membership for checkbox
    contains, not_contains   — trimmed, case-insensitive substring
    greater_than, less_than  — numeric, unparseable operands are False
"""

import pytest

from formlogic.comparator import ConditionComparator


@pytest.fixture
def comparator():
    """Fresh ConditionComparator for each test."""
    return ConditionComparator()


# =====================================================================
# Emptiness
# =====================================================================


class TestEmptiness:
    """is_empty / is_not_empty treat only None and "" as empty."""

    @pytest.mark.parametrize("value", [None, ""])
    def test_is_empty_true(self, comparator, value):
        assert comparator.compare(value, "is_empty", None) is True
        assert comparator.compare(value, "is_not_empty", None) is False

    @pytest.mark.parametrize("value", ["x", 0, False, []])
    def test_is_empty_false(self, comparator, value):
        """0, False and an empty selection are answers, not empty."""
        assert comparator.compare(value, "is_empty", None) is False
        assert comparator.compare(value, "is_not_empty", None) is True


# =====================================================================
# Equality
# =====================================================================


class TestEquality:

    def test_equals_normalizes_case_and_whitespace(self, comparator):
        assert comparator.compare("  Yes ", "equals", "yes") is True
        assert comparator.compare("No", "equals", "yes") is False

    def test_not_equals(self, comparator):
        assert comparator.compare("No", "not_equals", "yes") is True
        assert comparator.compare("YES", "not_equals", "yes") is False

    def test_missing_value_equals_empty_string(self, comparator):
        assert comparator.compare(None, "equals", "") is True

    def test_number_and_string_are_not_equal(self, comparator):
        assert comparator.compare(5, "equals", "5") is False

    def test_checkbox_equals_is_membership(self, comparator):
        """A checkbox answer equals any one of its selected options."""
        assert comparator.compare(["A", "B"], "equals", "A", "checkbox") is True
        assert comparator.compare(["A", "B"], "equals", "C", "checkbox") is False

    def test_checkbox_membership_is_normalized(self, comparator):
        assert comparator.compare([" Cheese "], "equals", "cheese", "checkbox") is True

    def test_checkbox_not_equals_is_non_membership(self, comparator):
        assert comparator.compare(["A", "B"], "not_equals", "C", "checkbox") is True
        assert comparator.compare(["A", "B"], "not_equals", "B", "checkbox") is False

    def test_list_on_non_checkbox_field_compares_whole_value(self, comparator):
        assert comparator.compare(["A"], "equals", "A", "text") is False


# =====================================================================
# Substring
# =====================================================================


class TestContains:

    def test_contains(self, comparator):
        assert comparator.compare("Hello World", "contains", "world") is True
        assert comparator.compare("Hello", "contains", "bye") is False

    def test_contains_on_empty_is_false(self, comparator):
        assert comparator.compare("", "contains", "") is False
        assert comparator.compare(None, "contains", "a") is False

    def test_not_contains(self, comparator):
        assert comparator.compare("Hello", "not_contains", "bye") is True
        assert comparator.compare("Hello", "not_contains", "ELL") is False

    def test_not_contains_on_empty_is_true(self, comparator):
        assert comparator.compare(None, "not_contains", "a") is True

    def test_contains_on_list_joins_items(self, comparator):
        assert comparator.compare(["Red", "Blue"], "contains", "blue") is True


# =====================================================================
# Numeric comparisons
# =====================================================================


class TestNumeric:

    def test_greater_than(self, comparator):
        assert comparator.compare("10", "greater_than", 9) is True
        assert comparator.compare(9, "greater_than", "9") is False

    def test_less_than(self, comparator):
        assert comparator.compare(2.5, "less_than", "3") is True
        assert comparator.compare(3, "less_than", 3) is False

    def test_numeric_prefix_is_parsed(self, comparator):
        assert comparator.compare("12abc", "greater_than", 10) is True

    @pytest.mark.parametrize("value", ["abc", None, "", True, ["1"]])
    def test_unparseable_value_is_false(self, comparator, value):
        assert comparator.compare(value, "greater_than", 0) is False
        assert comparator.compare(value, "less_than", 100) is False

    def test_unparseable_expected_is_false(self, comparator):
        assert comparator.compare(5, "greater_than", "lots") is False

    def test_non_finite_is_false(self, comparator):
        assert comparator.compare(float("inf"), "greater_than", 1) is False
        assert comparator.compare(float("nan"), "less_than", 1) is False


# =====================================================================
# Unknown operators
# =====================================================================


class TestUnknownOperator:

    def test_unknown_operator_is_false_with_diagnostic(self, comparator):
        diagnostics = []
        assert comparator.compare("x", "starts_with", "x", diagnostics=diagnostics) is False
        assert diagnostics == ["Unknown condition operator: starts_with"]

    def test_unknown_operator_never_raises_without_diagnostics(self, comparator):
        assert comparator.compare("x", "bogus", "x") is False
