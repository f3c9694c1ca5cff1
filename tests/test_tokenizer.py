"""Tests for the JSON tokenizer.

Covers token kinds, spans and child counts, preorder layout checked against a
reference built from json.loads, subtree completion, string materialization,
and the invalid / truncated error split.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from jobtagger.errors import InvalidJSONError, ParseError, TruncatedJSONError
from jobtagger.tokenizer import Document, Token, TokenKind, tokenize

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reference_layout(value: Any) -> list[tuple[TokenKind, int]]:
    """Preorder (kind, child_count) pairs derived from a decoded JSON value."""
    if isinstance(value, dict):
        layout = [(TokenKind.OBJECT, len(value))]
        for key, item in value.items():
            layout.append((TokenKind.STRING, 0))
            layout.extend(_reference_layout(item))
        return layout
    if isinstance(value, list):
        layout = [(TokenKind.ARRAY, len(value))]
        for item in value:
            layout.extend(_reference_layout(item))
        return layout
    if isinstance(value, str):
        return [(TokenKind.STRING, 0)]
    return [(TokenKind.PRIMITIVE, 0)]


def _layout(doc: Document) -> list[tuple[TokenKind, int]]:
    return [(t.kind, t.child_count) for t in doc]


VALID_DOCUMENTS = [
    b"{}",
    b"[]",
    b'"plain"',
    b"-12.5e+3",
    b"null",
    b'{"a": [1, {"b": null}], "c": "x"}',
    b'[[], [[]], {"k": {}}, true, false, 0, "s"]',
    b'{"flops":{"series":[{"nodeId":1,"data":[1,2,3]}]}}',
    b' \n\t{ "unit" : "GF/s" , "series" : [ { "data" : "n/a" } ] } ',
]


# ---------------------------------------------------------------------------
# Token kinds, spans, child counts
# ---------------------------------------------------------------------------


class TestTokenLayout:
    def test_simple_object_spans(self) -> None:
        doc = tokenize(b'{"a": 1}')
        assert list(doc) == [
            Token(TokenKind.OBJECT, 0, 8, 1),
            Token(TokenKind.STRING, 2, 3, 0),
            Token(TokenKind.PRIMITIVE, 6, 7, 0),
        ]

    def test_nested_preorder(self) -> None:
        doc = tokenize(b'{"a": [1, {"b": null}], "c": "x"}')
        assert [t.kind for t in doc] == [
            TokenKind.OBJECT,
            TokenKind.STRING,
            TokenKind.ARRAY,
            TokenKind.PRIMITIVE,
            TokenKind.OBJECT,
            TokenKind.STRING,
            TokenKind.PRIMITIVE,
            TokenKind.STRING,
            TokenKind.STRING,
        ]
        assert doc[0].child_count == 2
        assert doc[2].child_count == 2
        assert doc[4].child_count == 1

    def test_container_span_includes_brackets(self) -> None:
        data = b'  [1, [2, 3]]  '
        doc = tokenize(data)
        assert doc.raw(doc[0]) == b"[1, [2, 3]]"
        assert doc.raw(doc[2]) == b"[2, 3]"

    def test_primitive_spans(self) -> None:
        doc = tokenize(b"[true, false, null, -0.5, 12e3]")
        assert [doc.raw(t) for t in list(doc)[1:]] == [b"true", b"false", b"null", b"-0.5", b"12e3"]

    def test_str_input_is_encoded(self) -> None:
        doc = tokenize('{"x": "ü"}')
        assert doc.text(doc[2]) == "ü"

    @pytest.mark.parametrize("data", VALID_DOCUMENTS)
    def test_layout_matches_json_loads(self, data: bytes) -> None:
        doc = tokenize(data)
        assert _layout(doc) == _reference_layout(json.loads(data))

    def test_trailing_data_is_ignored(self) -> None:
        doc = tokenize(b'{"a": 1} trailing garbage ]')
        assert len(doc) == 3
        assert doc.root.end == 8

    def test_deep_nesting_does_not_recurse(self) -> None:
        depth = 5000
        doc = tokenize(b"[" * depth + b"]" * depth)
        assert len(doc) == depth
        assert all(t.child_count == 1 for t in list(doc)[:-1])
        assert doc[depth - 1].child_count == 0

    def test_document_is_immutable_sequence(self) -> None:
        doc = tokenize(b"[1]")
        assert isinstance(doc.tokens, tuple)
        with pytest.raises(AttributeError):
            doc[0].child_count = 5  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Completion counting
# ---------------------------------------------------------------------------


class TestCompletionCounting:
    @pytest.mark.parametrize("data", VALID_DOCUMENTS)
    def test_counter_reaches_zero_at_document_end(self, data: bytes) -> None:
        doc = tokenize(data)
        remaining = 1
        consumed = 0
        for token in doc:
            assert remaining > 0
            remaining += token.child_slots - 1
            consumed += 1
        assert remaining == 0
        assert consumed == len(doc)

    def test_subtree_end(self) -> None:
        doc = tokenize(b'{"a": [1, {"b": null}], "c": "x"}')
        assert doc.subtree_end(0) == 9
        assert doc.subtree_end(1) == 2
        assert doc.subtree_end(2) == 7
        assert doc.subtree_end(4) == 7
        assert doc.subtree_end(8) == 9

    def test_child_slots(self) -> None:
        assert Token(TokenKind.OBJECT, 0, 0, 3).child_slots == 6
        assert Token(TokenKind.ARRAY, 0, 0, 3).child_slots == 3
        assert Token(TokenKind.STRING, 0, 0).child_slots == 0

    def test_subtree_end_on_short_document(self) -> None:
        doc = Document([Token(TokenKind.ARRAY, 0, 0, 2), Token(TokenKind.PRIMITIVE, 0, 0)])
        with pytest.raises(TruncatedJSONError):
            doc.subtree_end(0)


# ---------------------------------------------------------------------------
# String materialization
# ---------------------------------------------------------------------------


class TestStrings:
    def test_text_without_escapes(self) -> None:
        doc = tokenize(b'"GF/s"')
        assert doc.text(doc.root) == "GF/s"

    def test_text_decodes_escapes(self) -> None:
        doc = tokenize(rb'"caf\u00e9 \"x\"\n"')
        assert doc.text(doc.root) == 'café "x"\n'

    def test_text_is_repeatable(self) -> None:
        doc = tokenize(b'"n/a"')
        assert doc.text(doc.root) == doc.text(doc.root) == "n/a"

    def test_text_rejects_non_string(self) -> None:
        doc = tokenize(b"[1]")
        with pytest.raises(TypeError):
            doc.text(doc[0])

    def test_equals(self) -> None:
        doc = tokenize(rb'["series", "ser\u0069es", "series2", 5]')
        assert doc.equals(doc[1], "series")
        assert doc.equals(doc[2], "series")
        assert not doc.equals(doc[3], "series")
        assert not doc.equals(doc[4], "series")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestInvalid:
    @pytest.mark.parametrize(
        "data",
        [
            b'{"a" 1}',
            b"[1,]",
            b"{,}",
            b"[1 2]",
            b"{1: 2}",
            b"[1}",
            b'{"a": 1]',
            b"]",
            b"trux",
            b"-a",
            b"[1.]",
            b"[1e]",
            b"[01]",
            rb'"\x"',
            b'"a\nb"',
            rb'"\u12G4"',
            b"@",
        ],
    )
    def test_invalid(self, data: bytes) -> None:
        with pytest.raises(InvalidJSONError):
            tokenize(data)

    def test_offset_points_at_problem(self) -> None:
        with pytest.raises(InvalidJSONError) as excinfo:
            tokenize(b'{"a" 1}')
        assert excinfo.value.offset == 5
        assert excinfo.value.code == "syntax.invalid"

    @pytest.mark.parametrize(
        "data, offset",
        [
            (b'{"fl\xffops":{"series":[]}}', 4),
            (b'{"m":{"series":[{"data":"\xc3"}]}}', 25),
            (b'["ok", "\xed\xa0\x80"]', 8),
        ],
    )
    def test_invalid_utf8_is_invalid_json(self, data: bytes, offset: int) -> None:
        with pytest.raises(InvalidJSONError) as excinfo:
            tokenize(data)
        assert excinfo.value.offset == offset
        assert isinstance(excinfo.value, ParseError)

    def test_multibyte_utf8_is_accepted(self) -> None:
        doc = tokenize('{"temp_\u00b0C": "\u2014"}'.encode("utf-8"))
        assert doc.text(doc[1]) == "temp_\u00b0C"
        assert doc.text(doc[2]) == "\u2014"

    def test_text_of_hand_built_undecodable_string(self) -> None:
        doc = Document([Token(TokenKind.STRING, 0, 2)], b"\xc3\x28")
        with pytest.raises(InvalidJSONError) as excinfo:
            doc.text(doc.root)
        assert excinfo.value.offset == 0


class TestTruncated:
    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"   ",
            b'{"flops":{"series":[',
            b"[1, 2",
            b'{"a"',
            b'{"a":',
            b'"abc',
            rb'"abc\\',
            rb'"\u12',
            b"tru",
            b"-",
            b"1.",
            b"1e+",
        ],
    )
    def test_truncated(self, data: bytes) -> None:
        with pytest.raises(TruncatedJSONError):
            tokenize(data)

    def test_truncated_is_a_parse_error(self) -> None:
        with pytest.raises(ParseError) as excinfo:
            tokenize(b"[")
        assert excinfo.value.code == "syntax.truncated"
        assert isinstance(excinfo.value, ValueError)
