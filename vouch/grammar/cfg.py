"""
Build predicates: the `cfg(...)` settings language.

    predicate := name
               | name "=" string
               | "all" "(" [predicate {"," predicate} [","]] ")"
               | "any" "(" [predicate {"," predicate} [","]] ")"
               | "not" "(" predicate ")"

`all()` is true and `any()` is false, as with Python's builtins.
"""

import ast
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Set, Tuple

from ..core.errors import SpecError
from ..core.models import BuildPredicate, Span
from .lexer import Token, TokenStream, tokenize_annotation


class CfgPredicate:
    """Base class for parsed predicates"""

    def evaluate(self, config) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class CfgFlag(CfgPredicate):
    name: str

    def evaluate(self, config) -> bool:
        return config.is_set(self.name)


@dataclass(frozen=True)
class CfgValue(CfgPredicate):
    key: str
    value: str

    def evaluate(self, config) -> bool:
        return config.has_value(self.key, self.value)


@dataclass(frozen=True)
class CfgAll(CfgPredicate):
    items: Tuple[CfgPredicate, ...]

    def evaluate(self, config) -> bool:
        return all(item.evaluate(config) for item in self.items)


@dataclass(frozen=True)
class CfgAny(CfgPredicate):
    items: Tuple[CfgPredicate, ...]

    def evaluate(self, config) -> bool:
        return any(item.evaluate(config) for item in self.items)


@dataclass(frozen=True)
class CfgNot(CfgPredicate):
    item: CfgPredicate

    def evaluate(self, config) -> bool:
        return not self.item.evaluate(config)


def parse_attribute(attr: Token) -> BuildPredicate:
    """
    Parse a `#[cfg(...)]` attribute token into a BuildPredicate.

    Raises:
        SpecError: Not a `cfg` attribute, or malformed predicate
    """
    inner_start = attr.span.start + 2
    inner = attr.text[2:-1]
    stream = TokenStream(tokenize_annotation(inner, base=inner_start), attr.span.end - 1)

    head = stream.peek()
    if head is None or not head.is_name("cfg"):
        raise SpecError("unsupported attribute; only `cfg` is allowed", attr.span)
    stream.next()

    open_paren = stream.expect_op("(", "expected `(` after `cfg`")
    predicate = parse_predicate(stream)
    close_paren = stream.expect_op(")", "expected `)` to close `cfg(...)`")
    if not stream.at_end():
        raise SpecError("unexpected tokens after `cfg(...)`", stream.here())

    source_span = Span(open_paren.span.end, close_paren.span.start)
    source = attr.text[source_span.start - attr.span.start:source_span.end - attr.span.start].strip()
    return BuildPredicate(source=source, span=attr.span, predicate=predicate)


def parse_predicate(stream: TokenStream) -> CfgPredicate:
    tok = stream.next()
    if tok.kind != "name":
        raise SpecError("expected a configuration name", tok.span)

    if tok.text in ("all", "any", "not") and stream.peek_op("("):
        stream.next()
        items: List[CfgPredicate] = []
        while not stream.peek_op(")"):
            items.append(parse_predicate(stream))
            if not stream.eat_op(","):
                break
        close = stream.expect_op(")", f"expected `)` to close `{tok.text}(...)`")
        if tok.text == "not":
            if len(items) != 1:
                raise SpecError("`not(...)` takes exactly one predicate", tok.span.join(close.span))
            return CfgNot(items[0])
        if tok.text == "all":
            return CfgAll(tuple(items))
        return CfgAny(tuple(items))

    if stream.eat_op("="):
        value = stream.next()
        return CfgValue(tok.text, _string_value(value))

    return CfgFlag(tok.text)


def _string_value(tok: Token) -> str:
    if tok.kind == "string":
        try:
            value = ast.literal_eval(tok.text)
        except (ValueError, SyntaxError):
            value = None
        if isinstance(value, str):
            return value
    raise SpecError("expected a string literal value", tok.span)


def parse_settings(text: str) -> Tuple[Set[str], Dict[str, FrozenSet[str]]]:
    """
    Parse a comma-separated list of settings such as `debug, feature = "x"`.

    Returns:
        (flags, values)
    """
    flags: Set[str] = set()
    values: Dict[str, Set[str]] = {}
    try:
        stream = TokenStream(tokenize_annotation(text), len(text))
        while not stream.at_end():
            start = stream.here()
            setting = parse_predicate(stream)
            if isinstance(setting, CfgFlag):
                flags.add(setting.name)
            elif isinstance(setting, CfgValue):
                values.setdefault(setting.key, set()).add(setting.value)
            else:
                raise SpecError("settings must be names or `key = \"value\"` pairs", start)
            if not stream.at_end():
                stream.expect_op(",", "expected `,` between settings")
    except SpecError as e:
        raise e.with_annotation(text)
    return flags, {key: frozenset(items) for key, items in values.items()}
