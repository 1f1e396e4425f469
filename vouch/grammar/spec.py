"""
Annotation grammar parser.

    params          = requires* maintains* captures? binds? ensures*
    requires        = [cfg] "requires" ":" conditions
    maintains       = [cfg] "maintains" ":" conditions
    captures        = "captures" ":" capture_list
    binds           = "binds" ":" pattern
    ensures         = [cfg] "ensures" ":" post_conditions

    conditions      = expr | "[" expr {"," expr} [","] "]"
    capture_list    = capture | "[" capture {"," capture} [","] "]"
    capture         = expr | expr "as" identifier
    post_conditions = post | "[" post {"," post} [","] "]"
    post            = expr | pattern "=>" expr
    cfg             = "#[cfg(" predicate ")]"

Parameters are separated by commas; the last one may be followed by one.

Expressions are not parsed here. They are runs of tokens delimited by a
top-level `,` (or `as` / `]` where those end an element), and are handed to
the Python compiler by the instrumentation step.
"""

import keyword
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Tuple

from ..core.config import CAPTURE_ALIAS_PREFIX, GENERATED_PREFIX, KEYWORD_RANK
from ..core.errors import SpecError
from ..core.models import (
    BuildPredicate,
    CaptureBinding,
    Condition,
    Expr,
    Pattern,
    PostCondition,
    Span,
    Specification,
)
from .cfg import parse_attribute
from .lexer import CLOSERS, OPENERS, Token, TokenStream, tokenize_annotation

ORDER_MESSAGE = (
    "parameters are out of order: their order must be "
    "`requires`, `maintains`, `captures`, `binds`, `ensures`"
)
KEYWORD_MESSAGE = "expected one of `requires`, `maintains`, `captures`, `binds`, `ensures`"

_PARAM_STOPS = frozenset({","})
_CAPTURE_STOPS = frozenset({",", "as"})


@dataclass
class _Param:
    keyword: str
    keyword_span: Span
    predicate: Optional[BuildPredicate]
    value: object


class SpecParser:
    """Parse one annotation into a Specification"""

    def __init__(self, annotation: str):
        self.annotation = annotation

    def parse(self) -> Specification:
        """
        Returns:
            The Specification

        Raises:
            SpecError: With the offending span; the annotation is rejected whole
        """
        try:
            return self._parse()
        except SpecError as e:
            raise e.with_annotation(self.annotation)

    def _parse(self) -> Specification:
        stream = TokenStream(tokenize_annotation(self.annotation), len(self.annotation))

        preconditions: List[Condition] = []
        invariants: List[Condition] = []
        captures: List[CaptureBinding] = []
        postconditions: List[PostCondition] = []
        binder: Optional[Pattern] = None
        seen_captures = False
        last_rank = None

        while not stream.at_end():
            param = self._parse_param(stream)

            rank = KEYWORD_RANK[param.keyword]
            if last_rank is not None and rank < last_rank:
                raise SpecError(ORDER_MESSAGE, param.keyword_span)
            last_rank = rank

            if param.keyword == "requires":
                preconditions.extend(Condition(expr, param.predicate) for expr in param.value)
            elif param.keyword == "maintains":
                invariants.extend(Condition(expr, param.predicate) for expr in param.value)
            elif param.keyword == "captures":
                if seen_captures:
                    raise SpecError(
                        "at most one `captures` parameter is allowed; to capture multiple "
                        "values, use a list: `captures: [expr1, expr2, ...]`",
                        param.keyword_span,
                    )
                seen_captures = True
                captures.extend(self._validate_captures(param.value))
            elif param.keyword == "binds":
                if binder is not None:
                    raise SpecError("multiple `binds` parameters are not allowed", param.keyword_span)
                binder = param.value
            else:
                postconditions.extend(
                    PostCondition(expr, pattern, param.predicate)
                    for pattern, expr in param.value
                )

            if not stream.at_end():
                stream.expect_op(",", "expected `,` after parameter value")

        return Specification(
            preconditions=tuple(preconditions),
            invariants=tuple(invariants),
            captures=tuple(captures),
            binder=binder,
            postconditions=tuple(postconditions),
            source=self.annotation,
        )

    def _parse_param(self, stream: TokenStream) -> _Param:
        attrs: List[Token] = []
        while stream.peek() is not None and stream.peek().kind == "attr":
            attrs.append(stream.next())

        predicates = [parse_attribute(attr) for attr in attrs]
        if len(predicates) > 1:
            raise SpecError("multiple `cfg` attributes are not supported", attrs[1].span)
        predicate = predicates[0] if predicates else None

        tok = stream.peek()
        if tok is None:
            raise SpecError("expected a parameter after the attribute", stream.here())
        if tok.kind != "name" or tok.text not in KEYWORD_RANK:
            raise SpecError(KEYWORD_MESSAGE, tok.span)
        keyword = stream.next()

        if predicate is not None and keyword.text in ("captures", "binds"):
            raise SpecError(f"`cfg` attribute is not supported on `{keyword.text}`", attrs[0].span)

        stream.expect_op(":", f"expected `:` after `{keyword.text}`")

        if keyword.text in ("requires", "maintains"):
            value = self._parse_sequence(stream, self._parse_expr)
        elif keyword.text == "captures":
            value = self._parse_sequence(stream, self._parse_capture)
        elif keyword.text == "binds":
            value = self._parse_binds(stream)
        else:
            value = self._parse_sequence(stream, self._parse_post)

        return _Param(keyword.text, keyword.span, predicate, value)

    def _parse_sequence(self, stream: TokenStream, parse_element: Callable) -> list:
        """
        A bracketed list of elements, or a single element.

        `[...]` is first tried as a list on a forked cursor. The list reading
        wins only if the closing bracket ends the parameter value and every
        element parses; otherwise the bracket is one (array-valued) element.
        """
        if stream.peek_op("["):
            fork = stream.fork()
            try:
                elements = self._parse_list(fork, parse_element)
            except SpecError:
                elements = None
            if elements is not None:
                stream.advance_to(fork)
                return elements
        return [parse_element(stream, _PARAM_STOPS, False)]

    def _parse_list(self, stream: TokenStream, parse_element: Callable) -> list:
        stream.expect_op("[")
        elements = []
        while not stream.peek_op("]"):
            elements.append(parse_element(stream, _PARAM_STOPS, True))
            if not stream.eat_op(","):
                break
        stream.expect_op("]")
        if not (stream.at_end() or stream.peek_op(",")):
            raise SpecError("the bracket is not the whole parameter value", stream.here())
        return elements

    def _parse_expr(self, stream: TokenStream, stops: FrozenSet[str], in_list: bool) -> Expr:
        """Consume tokens up to a top-level stop token or unmatched closer"""
        tokens: List[Token] = []
        depth = 0
        while not stream.at_end():
            tok = stream.peek()
            if depth == 0:
                if tok.kind in ("op", "name") and tok.text in stops:
                    break
                if tok.kind == "attr" or (tok.kind == "op" and tok.text in CLOSERS):
                    break
                if in_list and tok.is_name("for"):
                    raise SpecError("a comprehension is not a list of elements", tok.span)
            if tok.is_op("=>"):
                raise SpecError(
                    "unexpected `=>`; bind the return value with a name or a "
                    "parenthesized pattern, e.g. `(a, b) => a < b`",
                    tok.span,
                )
            if tok.kind == "op" and tok.text in OPENERS:
                depth += 1
            elif tok.kind == "op" and tok.text in CLOSERS:
                depth -= 1
            tokens.append(stream.next())

        if not tokens:
            raise SpecError("expected an expression", stream.here())
        span = tokens[0].span.join(tokens[-1].span)
        return Expr(self.annotation[span.start:span.end], span)

    def _parse_capture(self, stream: TokenStream, stops: FrozenSet[str],
                       in_list: bool) -> Tuple[Expr, Optional[Token]]:
        expr = self._parse_expr(stream, stops | _CAPTURE_STOPS, in_list)
        if not stream.peek_name("as"):
            return expr, None

        as_token = stream.next()
        alias = stream.peek()
        if alias is None or alias.kind != "name":
            raise SpecError("alias must be a simple identifier", alias.span if alias else as_token.span)
        stream.next()

        following = stream.peek()
        if not (following is None or following.is_op(",") or (in_list and following.is_op("]"))):
            raise SpecError("alias must be a simple identifier", alias.span.join(following.span))
        return expr, alias

    def _validate_captures(self, raw: List[Tuple[Expr, Optional[Token]]]) -> List[CaptureBinding]:
        captures = []
        seen = set()
        for expr, alias_token in raw:
            if alias_token is None:
                if not _is_identifier(expr.source):
                    raise SpecError("complex expressions require an explicit alias using `as`", expr.span)
                alias, alias_span, explicit = CAPTURE_ALIAS_PREFIX + expr.source, expr.span, False
            else:
                if not alias_token.is_identifier:
                    raise SpecError("alias must be a simple identifier", alias_token.span)
                alias, alias_span, explicit = alias_token.text, alias_token.span, True

            _check_reserved(alias, alias_span)
            if alias in seen:
                raise SpecError(f"duplicate capture alias `{alias}`", alias_span)
            seen.add(alias)
            captures.append(CaptureBinding(expr=expr, alias=alias, alias_span=alias_span, explicit=explicit))
        return captures

    def _parse_binds(self, stream: TokenStream) -> Pattern:
        pattern = self._parse_pattern(stream)
        if not (stream.at_end() or stream.peek_op(",")):
            raise SpecError("`binds` takes a name or a parenthesized pattern", pattern.span.join(stream.here()))
        for name in pattern.names:
            _check_reserved(name, pattern.span)
        return pattern

    def _parse_post(self, stream: TokenStream, stops: FrozenSet[str],
                    in_list: bool) -> Tuple[Optional[Pattern], Expr]:
        """`pattern => expr` if a pattern followed by `=>` leads, else a plain expression"""
        fork = stream.fork()
        try:
            pattern = self._parse_pattern(fork)
            bound = fork.peek_op("=>")
        except SpecError:
            pattern, bound = None, False

        if not bound:
            return None, self._parse_expr(stream, stops, in_list)

        fork.next()
        stream.advance_to(fork)
        for name in pattern.names:
            _check_reserved(name, pattern.span)
        return pattern, self._parse_expr(stream, stops, in_list)

    def _parse_pattern(self, stream: TokenStream) -> Pattern:
        start = stream.here()
        names, _ = self._pattern_names(stream, nested=False)
        last = stream.tokens[stream.index - 1]
        span = Span(start.start, last.span.end)
        return Pattern(self.annotation[span.start:span.end], span, tuple(names))

    def _pattern_names(self, stream: TokenStream, nested: bool) -> Tuple[List[str], bool]:
        """Names bound by the pattern at the cursor, and whether it is starred"""
        tok = stream.next()

        if tok.is_op("*"):
            if not nested:
                raise SpecError("a starred name is only allowed inside a tuple or list pattern", tok.span)
            name = stream.next()
            if not name.is_identifier:
                raise SpecError("expected a name after `*`", name.span)
            return [name.text], True

        if tok.is_op("(") or tok.is_op("["):
            closer = OPENERS[tok.text]
            names: List[str] = []
            starred = 0
            elements = 0
            trailing_comma = False
            while not stream.peek_op(closer):
                element_names, is_starred = self._pattern_names(stream, nested=True)
                names.extend(element_names)
                starred += is_starred
                elements += 1
                trailing_comma = bool(stream.eat_op(","))
                if not trailing_comma:
                    break
            close = stream.expect_op(closer, f"expected `{closer}` to close the pattern")
            span = tok.span.join(close.span)
            if starred > 1:
                raise SpecError("multiple starred names in one pattern", span)
            if tok.is_op("(") and elements == 1 and not trailing_comma and starred:
                raise SpecError("a starred name needs a tuple: write `(*rest,)`", span)
            return names, False

        if tok.is_identifier:
            return [tok.text], False

        raise SpecError("expected a pattern", tok.span)


def _is_identifier(text: str) -> bool:
    return text.isidentifier() and not keyword.iskeyword(text)


def _check_reserved(name: str, span: Span) -> None:
    if name.startswith(GENERATED_PREFIX):
        raise SpecError(f"`{name}` is reserved for generated code", span)


def parse_spec(annotation: str) -> Specification:
    """Parse annotation text into a Specification"""
    return SpecParser(annotation).parse()
