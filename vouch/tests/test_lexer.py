"""
Tests for annotation tokenizing
"""

import pytest
from vouch.core.errors import SpecError
from vouch.core.models import Span
from vouch.grammar.lexer import TokenStream, tokenize_annotation


def test_simple_tokens():
    """Test names, operators and numbers with their offsets"""
    tokens = tokenize_annotation("x > 0")

    assert [t.kind for t in tokens] == ["name", "op", "number"]
    assert [t.text for t in tokens] == ["x", ">", "0"]
    assert [t.span for t in tokens] == [Span(0, 1), Span(2, 3), Span(4, 5)]


def test_arrow_is_one_token():
    """Test adjacent = and > merge into =>"""
    tokens = tokenize_annotation("val => val % 2 == 0")

    assert tokens[1].text == "=>"
    assert tokens[1].span == Span(4, 6)
    assert [t.text for t in tokens].count("==") == 1


def test_comparison_operators_untouched():
    """Test >= and <= are not mistaken for arrows"""
    tokens = tokenize_annotation("a >= b <= c")
    assert [t.text for t in tokens] == ["a", ">=", "b", "<=", "c"]


def test_string_with_comma_is_one_token():
    """Test string literals stay whole"""
    tokens = tokenize_annotation('name != "a, b"')
    assert tokens[-1].kind == "string"
    assert tokens[-1].text == '"a, b"'


def test_attribute_token():
    """Test #[...] becomes a single attr token and lexing resumes after it"""
    text = "#[cfg(debug)] requires: x"
    tokens = tokenize_annotation(text)

    assert tokens[0].kind == "attr"
    assert tokens[0].text == "#[cfg(debug)]"
    assert tokens[0].span == Span(0, 13)
    assert tokens[1].text == "requires"
    assert text[tokens[1].span.start:tokens[1].span.end] == "requires"


def test_plain_comment_ignored():
    """Test ordinary comments are dropped"""
    tokens = tokenize_annotation("x > 0  # must be positive")
    assert [t.text for t in tokens] == ["x", ">", "0"]


def test_multiline_offsets():
    """Test offsets stay absolute across lines"""
    text = "requires: a,\n    ensures: b"
    tokens = tokenize_annotation(text)

    ensures = tokens[4]
    assert ensures.text == "ensures"
    assert text[ensures.span.start:ensures.span.end] == "ensures"


def test_attribute_inside_brackets_rejected():
    """Test attributes may only start a parameter"""
    with pytest.raises(SpecError) as exc:
        tokenize_annotation("requires: [x, #[cfg(a)] y]")
    assert "start of a parameter" in exc.value.message


def test_unclosed_bracket():
    """Test unbalanced brackets are reported"""
    with pytest.raises(SpecError) as exc:
        tokenize_annotation("requires: (x > 0")
    assert "could not tokenize" in exc.value.message


def test_unterminated_attribute():
    """Test an attribute without its closing bracket"""
    with pytest.raises(SpecError):
        tokenize_annotation("#[cfg(debug) requires: x")


def test_fork_does_not_move_original():
    """Test speculative cursors"""
    stream = TokenStream(tokenize_annotation("a b c"), 5)
    fork = stream.fork()
    fork.next()
    fork.next()

    assert stream.peek().text == "a"

    stream.advance_to(fork)
    assert stream.peek().text == "c"


def test_next_at_end():
    """Test running off the end raises"""
    stream = TokenStream(tokenize_annotation("a"), 1)
    stream.next()

    assert stream.at_end()
    assert stream.here() == Span(1, 1)
    with pytest.raises(SpecError) as exc:
        stream.next()
    assert exc.value.message == "unexpected end of annotation"
