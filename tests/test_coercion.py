"""Coercion table tests — numbers, dates, URL values, per-type rules."""

from datetime import date, datetime

import pytest

from formlogic.coercion import (
    coerce_to_target,
    decode_url_value,
    encode_url_value,
    format_phone,
    grouped_number_text,
    iso_date_text,
    locale_date_text,
    numeric_value,
    parse_loose_number,
    parse_number,
    stringify,
    template_text,
)


# =====================================================================
# Primitive parsers
# =====================================================================


class TestNumbers:

    @pytest.mark.parametrize("value, expected", [
        (5, 5.0),
        (2.5, 2.5),
        ("12abc", 12.0),
        ("  3e2 ", 300.0),
        ("-.5", -0.5),
        ("abc", None),
        ("", None),
        (True, None),
        (["1"], None),
        (float("inf"), None),
        ("1e999", None),
    ])
    def test_parse_number(self, value, expected):
        assert parse_number(value) == expected

    @pytest.mark.parametrize("value, expected", [
        ("$1,200", 1200.0),
        ("-$5.50", -5.5),
        ("12 kg", 12.0),
        (7, 7.0),
    ])
    def test_parse_loose_number(self, value, expected):
        assert parse_loose_number(value) == expected

    @pytest.mark.parametrize("value, expected", [
        (1000.0, "1,000"),
        (1234.5678, "1,234.568"),
        (0.5, "0.5"),
        (-2500.25, "-2,500.25"),
    ])
    def test_grouped_number_text(self, value, expected):
        assert grouped_number_text(value) == expected


class TestStringify:

    @pytest.mark.parametrize("value, expected", [
        (None, ""),
        (True, "true"),
        (False, "false"),
        (3.0, "3"),
        (2.5, "2.5"),
        ([1, 2.0, "x"], "1, 2, x"),
        (date(2024, 1, 2), "2024-01-02"),
    ])
    def test_stringify(self, value, expected):
        assert stringify(value) == expected


class TestDates:

    def test_iso_date_converts_aware_to_utc(self):
        assert iso_date_text("2024-03-05T23:30:00-05:00") == "2024-03-06"

    def test_iso_date_naive_datetime(self):
        assert iso_date_text(datetime(2024, 3, 5, 23, 30)) == "2024-03-05"

    def test_iso_date_unparseable_unchanged(self):
        assert iso_date_text("next week") == "next week"

    def test_locale_date(self):
        assert locale_date_text("2024-11-09") == "11/9/2024"
        assert locale_date_text(date(2023, 2, 1)) == "2/1/2023"


class TestPhone:

    @pytest.mark.parametrize("text, expected", [
        ("5551234567", "(555) 123-4567"),
        ("555.123.4567", "(555) 123-4567"),
        ("+1 555 123 4567", "+1 555 123 4567"),
        ("911", "911"),
    ])
    def test_format_phone(self, text, expected):
        assert format_phone(text) == expected


# =====================================================================
# URL values
# =====================================================================


class TestUrlValues:

    def test_decode_plus_and_escapes(self):
        assert decode_url_value("a+b%26c") == "a b&c"

    def test_decode_malformed_returns_input(self):
        assert decode_url_value("%E9") == "%E9"

    def test_encode_like_uri_component(self):
        assert encode_url_value("a b/c&d", "text") == "a%20b%2Fc%26d"
        assert encode_url_value("it's (ok)!", "text") == "it's%20(ok)!"

    def test_encode_checkbox_joins_with_comma(self):
        assert encode_url_value(["x", "y"], "checkbox") == "x%2Cy"

    def test_encode_none(self):
        assert encode_url_value(None, "text") == ""


# =====================================================================
# Per-type tables
# =====================================================================


class TestNumericValue:

    @pytest.mark.parametrize("value, field_type, expected", [
        (["a", "b"], "checkbox", 2.0),
        ([], "checkbox", 0.0),
        ("Yes", "dropdown", 1.0),
        ("3", "radio", 3.0),
        ("hello", "text", 5.0),
        ("12", "textarea", 12.0),
        ("$40", "number", 40.0),
        ("4", "rating", 4.0),
        ("abc", "number", None),
        ("", "number", None),
        (None, "text", None),
    ])
    def test_numeric_value(self, value, field_type, expected):
        assert numeric_value(value, field_type) == expected


class TestTargets:

    def test_untyped_target_passes_through(self):
        assert coerce_to_target({"x": 1}, "signature") == {"x": 1}

    def test_checkbox_wraps_scalar(self):
        assert coerce_to_target("only", "checkbox") == ["only"]


class TestTemplateText:

    def test_empty_is_blank(self, field):
        assert template_text(None, field("a")) == ""
        assert template_text("", field("a", "number")) == ""

    def test_no_field_uses_plain_text(self):
        assert template_text(1234.0, None) == "1234"

    def test_number_text_answer_unchanged(self, field):
        assert template_text("about 5", field("n", "number")) == "about 5"

    def test_scale_bounds(self, field):
        f = field("s", "scale", properties={"scale": {"min": 0, "max": 7}})
        assert template_text(3, f) == "3/7"
