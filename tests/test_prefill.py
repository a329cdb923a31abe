"""PrefillResolver tests — URL parameters, defaults, coercion, share links, validation."""

import pytest

from formlogic.config import EngineSettings
from formlogic.engine import evaluate_prefill, generate_prefill_url, parse_prefill_url
from formlogic.prefill import PrefillResolver


def _prefill(param=None, default=None, enabled=True):
    return {"enabled": enabled, "url_parameter": param, "default_value": default}


@pytest.fixture
def resolver(settings):
    return PrefillResolver(settings)


# =====================================================================
# Source selection
# =====================================================================


class TestSource:

    def test_url_parameter_wins_over_default(self, resolver, field):
        fields = [field("name", prefill=_prefill("n", "Anon"))]
        assert resolver.resolve(fields, {"n": "Ada"}) == {"name": "Ada"}

    def test_empty_parameter_falls_back_to_default(self, resolver, field):
        fields = [field("name", prefill=_prefill("n", "Anon"))]
        assert resolver.resolve(fields, {"n": ""}) == {"name": "Anon"}
        assert resolver.resolve(fields, {}) == {"name": "Anon"}

    def test_nothing_configured_or_supplied(self, resolver, field):
        fields = [field("name", prefill=_prefill("n"))]
        assert resolver.resolve(fields, {}) == {}

    def test_disabled_prefill(self, resolver, field):
        fields = [field("name", prefill=_prefill("n", enabled=False))]
        assert resolver.resolve(fields, {"n": "Ada"}) == {}

    def test_list_parameter_uses_first_value(self, resolver, field):
        fields = [field("name", prefill=_prefill("n"))]
        assert resolver.resolve(fields, {"n": ["Ada", "Bob"]}) == {"name": "Ada"}


# =====================================================================
# Coercion
# =====================================================================


class TestCoercion:

    @pytest.mark.parametrize("field_type, raw, expected", [
        ("text", "Hello+World", "Hello World"),
        ("text", "caf%C3%A9", "café"),
        ("text", "100%", "100%"),
        ("email", "Ada%40Example.com", "ada@example.com"),
        ("email", "nope", ""),
        ("number", "42", 42),
        ("number", "3.5", 3.5),
        ("number", "many", ""),
        ("phone", "5551234567", "(555) 123-4567"),
        ("url", "https%3A%2F%2Fexample.com", "https://example.com"),
        ("url", "not a url", ""),
        ("date", "2024-02-29", "2024-02-29"),
        ("hidden", "a+b", "a b"),
    ])
    def test_url_values(self, resolver, field, field_type, raw, expected):
        fields = [field("f", field_type, prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": raw}) == {"f": expected}

    def test_dropdown_rejects_unknown_option(self, resolver, field):
        fields = [field("d", "dropdown", options=["X", "Y"], prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "Z"}) == {"d": ""}
        assert resolver.resolve(fields, {"p": "Y"}) == {"d": "Y"}

    def test_radio_without_options_accepts_anything(self, resolver, field):
        fields = [field("r", "radio", prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "Z"}) == {"r": "Z"}

    def test_checkbox_split_and_filtered(self, resolver, field):
        fields = [field("c", "checkbox", options=["A", "B", "C"], prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "A, C,Z"}) == {"c": ["A", "C"]}

    def test_checkbox_encoded_comma(self, resolver, field):
        fields = [field("c", "checkbox", prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "A%2CB"}) == {"c": ["A", "B"]}

    def test_checkbox_list_default(self, resolver, field):
        fields = [field("c", "checkbox", options=["A", "B"], prefill=_prefill(default=["B", "Q"]))]
        assert resolver.resolve(fields, {}) == {"c": ["B"]}

    def test_rating_in_default_range(self, resolver, field):
        fields = [field("r", "rating", prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "7"}) == {"r": 7}

    def test_rating_out_of_range_is_omitted(self, resolver, field):
        fields = [field("r", "rating", prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "11"}) == {}
        assert resolver.resolve(fields, {"p": "abc"}) == {}

    def test_rating_uses_configured_scale(self, resolver, field):
        fields = [field("s", "scale", properties={"scale": {"min": 0, "max": 5}}, prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "0"}) == {"s": 0}
        assert resolver.resolve(fields, {"p": "6"}) == {}

    def test_default_range_from_settings(self, field):
        resolver = PrefillResolver(EngineSettings(default_range_min=1, default_range_max=100))
        fields = [field("r", "rating", prefill=_prefill("p"))]
        assert resolver.resolve(fields, {"p": "55"}) == {"r": 55}

    def test_defaults_are_not_url_decoded(self, resolver, field):
        fields = [field("t", prefill=_prefill(default="50%2B"))]
        assert resolver.resolve(fields, {}) == {"t": "50%2B"}

    def test_numeric_default_kept_as_number(self, resolver, field):
        fields = [field("n", "number", prefill=_prefill(default=12.5))]
        assert resolver.resolve(fields, {}) == {"n": 12.5}


# =====================================================================
# Share links
# =====================================================================


class TestShareLinks:

    @pytest.fixture
    def fields(self, field):
        return [
            field("name", "text", prefill=_prefill("name")),
            field("age", "number", prefill=_prefill("age")),
            field("email", "email", prefill=_prefill("email")),
            field("plain", "text"),
        ]

    def test_round_trip(self, fields):
        values = {"name": "Ada Lovelace & Co + 100%", "age": 36, "email": "ada@example.com"}
        url = generate_prefill_url("https://forms.example.com/f/1", fields, values)
        assert evaluate_prefill(fields, parse_prefill_url(url)) == values

    def test_generated_url_shape(self, fields):
        url = generate_prefill_url("https://x.test/f", fields, {"name": "A B", "age": 3, "plain": "z"})
        assert url == "https://x.test/f?name=A%20B&age=3"

    def test_existing_query_preserved_and_replaced(self, fields):
        url = generate_prefill_url("https://x.test/f?ref=mail&name=old#top", fields, {"name": "new"})
        assert url == "https://x.test/f?ref=mail&name=new#top"

    def test_empty_values_skipped(self, fields):
        url = generate_prefill_url("https://x.test/f", fields, {"name": "", "age": None})
        assert url == "https://x.test/f"

    def test_checkbox_values_joined(self, field):
        fields = [field("c", "checkbox", prefill=_prefill("c"))]
        url = generate_prefill_url("https://x.test/f", fields, {"c": ["A", "B C"]})
        assert url == "https://x.test/f?c=A%2CB%20C"
        assert evaluate_prefill(fields, parse_prefill_url(url)) == {"c": ["A", "B C"]}

    def test_parse_query_keeps_first_occurrence(self):
        params = PrefillResolver.parse_query("https://x.test/f?a=1%2B1&a=2&b=&c")
        assert params == {"a": "1%2B1", "b": "", "c": ""}

    def test_parse_query_decodes_once(self, field):
        """Plus signs and escapes survive exactly one decode into the field value."""
        params = PrefillResolver.parse_query("https://x.test/f?n=Ada+Lovelace&p=50%252B&m=a%2Bb")
        assert params == {"n": "Ada%20Lovelace", "p": "50%252B", "m": "a%2Bb"}
        fields = [
            field("name", prefill=_prefill("n")),
            field("promo", prefill=_prefill("p")),
            field("math", prefill=_prefill("m")),
        ]
        assert evaluate_prefill(fields, params) == {"name": "Ada Lovelace", "promo": "50%2B", "math": "a+b"}

    def test_existing_blank_and_plus_parameters(self, fields):
        url = generate_prefill_url("https://x.test/f?flag=&q=a+b", fields, {"age": 7})
        assert url == "https://x.test/f?flag=&q=a%20b&age=7"

    def test_extract_params(self, resolver, field):
        fields = [
            field("name", label="Name", required=True, prefill=_prefill("n", "Anon")),
            field("note", prefill=_prefill(default="x")),
            field("age", "number", label="Age", prefill=_prefill("age")),
        ]
        params = resolver.extract_params(fields)
        assert [p.url_parameter for p in params] == ["n", "age"]
        first = params[0]
        assert (first.field_id, first.field_label, first.field_type) == ("name", "Name", "text")
        assert first.required is True and first.has_default is True
        assert params[1].has_default is False


# =====================================================================
# Validation
# =====================================================================


class TestValidate:

    def test_valid(self, resolver, field):
        report = resolver.validate([field("a", prefill=_prefill("a_param"))])
        assert report.is_valid and report.warnings == []

    def test_malformed_parameter_name(self, resolver, field):
        report = resolver.validate([field("a", prefill=_prefill("1bad name"))])
        assert report.warnings == [
            "Field a: URL parameter '1bad name' should start with a letter and contain only "
            "letters, numbers, underscores, and hyphens"
        ]

    def test_duplicate_parameter(self, resolver, field):
        report = resolver.validate([field("a", prefill=_prefill("p")), field("b", prefill=_prefill("p"))])
        assert report.warnings == ["URL parameter 'p' is used by multiple fields"]

    def test_neither_parameter_nor_default(self, resolver, field):
        report = resolver.validate([field("a", prefill=_prefill())])
        assert report.errors == [
            "Field a: Prefill is enabled but no URL parameter or default value is configured"
        ]

    @pytest.mark.parametrize("field_type, kwargs, default", [
        ("number", {}, "lots"),
        ("email", {}, "nobody"),
        ("dropdown", {"options": ["A"]}, "B"),
        ("rating", {}, 50),
    ])
    def test_incompatible_default(self, resolver, field, field_type, kwargs, default):
        report = resolver.validate([field("a", field_type, prefill=_prefill(default=default), **kwargs)])
        assert report.is_valid
        assert report.warnings == [f"Field a: Default value may not be compatible with field type {field_type}"]
