"""Tests for placeholder rendering."""

import pytest

from docflow.pipeline.templating import (
    QUERY_VARIABLE,
    SINGLE_BRACE,
    encode_json_string,
    encode_url_component,
    escape_filter,
    escape_odata,
    extract_placeholders,
    render,
    stringify,
)

VALUES = {
    "invoiceNumber": "INV-42",
    "customer.name": "O'Brien & Sons",
    "total": 12.0,
    "paid": False,
    "items": [1, 2],
}


def resolve(path):
    return VALUES.get(path)


@pytest.mark.unit
class TestRender:
    def test_double_brace(self):
        outcome = render("Invoice {{invoiceNumber}} total {{ total }}", resolve)
        assert outcome.result == "Invoice INV-42 total 12"
        assert outcome.resolved_paths == {"invoiceNumber": "INV-42", "total": 12.0}
        assert outcome.missing_paths == []

    def test_unresolved_placeholder_is_kept(self):
        outcome = render("Hello {{missing.value}}", resolve)
        assert outcome.result == "Hello {{missing.value}}"
        assert outcome.missing_paths == ["missing.value"]
        assert outcome.field_mappings == {"missing.value": None}

    def test_none_template(self):
        assert render(None, resolve).result == ""

    def test_escape_then_encode(self):
        outcome = render("name={{customer.name}}", resolve, escape=escape_odata, encode=encode_url_component)
        assert outcome.result == "name=O''Brien%20%26%20Sons"

    def test_json_string_encoding(self):
        values = {"note": 'say "hi"\nbye'}
        outcome = render('{"note": "{{note}}"}', values.get, encode=encode_json_string)
        assert outcome.result == '{"note": "say \\"hi\\"\\nbye"}'

    def test_passthrough_left_untouched(self):
        outcome = render('{"data": {{items}}, "n": "{{invoiceNumber}}"}', resolve, passthrough=("items",))
        assert outcome.result == '{"data": {{items}}, "n": "INV-42"}'
        assert "items" not in outcome.resolved_paths

    def test_query_variable_syntax(self):
        outcome = render("{{invoiceNumber}}-${paid}", resolve, pattern=QUERY_VARIABLE)
        assert outcome.result == "INV-42-false"

    def test_single_brace(self):
        outcome = render("Created {invoiceNumber}", resolve, pattern=SINGLE_BRACE)
        assert outcome.result == "Created INV-42"

    def test_extract_placeholders(self):
        assert extract_placeholders("{{ a }} and {{b.c}}") == ["a", "b.c"]


@pytest.mark.unit
class TestFormatting:
    @pytest.mark.parametrize("value, expected", [
        ("text", "text"),
        (True, "true"),
        (3.0, "3"),
        (3.5, "3.5"),
        ({"a": 1}, '{"a": 1}'),
        ([1, "x"], '[1, "x"]'),
    ])
    def test_stringify(self, value, expected):
        assert stringify(value) == expected

    def test_escape_filter_splits_groups(self):
        assert escape_filter("(a)(b) it's") == "(a)-(b) it''s"

    def test_url_component_keeps_unreserved(self):
        assert encode_url_component("a b/c!~*'()") == "a%20b%2Fc!~*'()"
