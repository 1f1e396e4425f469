"""
Tokenizer and token cursor for annotation text.

Tokens come from the stdlib `tokenize` module so that string literals,
numbers and operators are split exactly as Python splits them. Two things
are added on top:

- `#[...]` attributes, which Python would read as comments, become single
  `attr` tokens;
- adjacent `=` and `>` become one `=>` token.
"""

import io
import keyword
import tokenize
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..core.errors import SpecError
from ..core.models import Span

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")", "]", "}"}

_SKIPPED = {
    tokenize.NL,
    tokenize.NEWLINE,
    tokenize.INDENT,
    tokenize.DEDENT,
    tokenize.ENDMARKER,
    tokenize.ENCODING,
}

# Python 3.12 splits f-strings into several tokens
_STRING_TYPES = {tokenize.STRING} | {
    getattr(tokenize, name)
    for name in ("FSTRING_START", "FSTRING_MIDDLE", "FSTRING_END")
    if hasattr(tokenize, name)
}


@dataclass(frozen=True)
class Token:
    kind: str  # name | op | number | string | attr | other
    text: str
    span: Span

    def is_op(self, text: str) -> bool:
        return self.kind == "op" and self.text == text

    def is_name(self, text: str) -> bool:
        return self.kind == "name" and self.text == text

    @property
    def is_identifier(self) -> bool:
        return self.kind == "name" and self.text.isidentifier() and not keyword.iskeyword(self.text)


def tokenize_annotation(text: str, base: int = 0) -> List[Token]:
    """
    Split annotation text into tokens.

    Args:
        text: Annotation source
        base: Offset added to every span (for text cut out of a larger annotation)

    Raises:
        SpecError: Unterminated strings or brackets, misplaced attributes
    """
    tokens: List[Token] = []
    depth = 0
    pos: Optional[int] = 0
    while pos is not None:
        pos, depth = _lex_chunk(text, pos, base, tokens, depth)
    return _merge_arrows(tokens)


def _lex_chunk(text: str, pos: int, base: int, tokens: List[Token], depth: int) -> Tuple[Optional[int], int]:
    # Parenthesized so that newlines and indentation inside the annotation
    # are insignificant, as they are inside a call's argument list.
    chunk = "(" + text[pos:] + "\n)"
    starts = _line_starts(chunk)
    limit = len(chunk) - 2

    def offset(row: int, col: int) -> int:
        return starts[row - 1] + col

    try:
        for tok in tokenize.generate_tokens(io.StringIO(chunk).readline):
            if tok.type in _SKIPPED:
                continue
            begin = offset(*tok.start)
            if begin == 0 or begin >= limit:
                continue
            start = begin - 1 + pos
            end = offset(*tok.end) - 1 + pos

            if tok.type == tokenize.COMMENT:
                if not tok.string.startswith("#["):
                    continue
                if depth > 0:
                    raise SpecError(
                        "attributes are only allowed at the start of a parameter",
                        Span(base + start, base + end),
                    )
                attr_end = _attribute_end(text, start, base)
                tokens.append(Token("attr", text[start:attr_end], Span(base + start, base + attr_end)))
                return attr_end, depth

            kind = _kind(tok)
            if kind is None:
                continue
            if kind == "op" and tok.string in OPENERS:
                depth += 1
            elif kind == "op" and tok.string in CLOSERS:
                depth -= 1
            tokens.append(Token(kind, tok.string, Span(base + start, base + end)))
    except tokenize.TokenError as e:
        message = e.args[0] if e.args else "invalid token"
        where = _clamp(_error_offset(e.args[1] if len(e.args) > 1 else None, starts, pos), text)
        raise SpecError(f"could not tokenize annotation: {message}", Span(base + where, base + where)) from None
    except SyntaxError as e:
        where = pos
        if e.lineno:
            where = _error_offset((e.lineno, (e.offset or 1) - 1), starts, pos)
        where = _clamp(where, text)
        raise SpecError(f"could not tokenize annotation: {e.msg}", Span(base + where, base + where)) from None

    return None, depth


def _kind(tok: tokenize.TokenInfo) -> Optional[str]:
    if tok.type == tokenize.NAME:
        return "name"
    if tok.type == tokenize.OP:
        return "op"
    if tok.type == tokenize.NUMBER:
        return "number"
    if tok.type in _STRING_TYPES:
        return "string"
    if tok.type == tokenize.ERRORTOKEN and not tok.string.strip():
        return None
    return "other"


def _attribute_end(text: str, start: int, base: int) -> int:
    """Offset just past the `]` closing the attribute that starts at `start`"""
    depth = 0
    quote = None
    i = start + 1
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "\n":
            break
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise SpecError("unterminated attribute; expected `]`", Span(base + start, base + i))


def _merge_arrows(tokens: List[Token]) -> List[Token]:
    merged: List[Token] = []
    for tok in tokens:
        if (tok.is_op(">") and merged and merged[-1].is_op("=")
                and merged[-1].span.end == tok.span.start):
            previous = merged.pop()
            merged.append(Token("op", "=>", previous.span.join(tok.span)))
        else:
            merged.append(tok)
    return merged


def _line_starts(source: str) -> List[int]:
    starts = [0]
    for i, ch in enumerate(source):
        if ch == "\n":
            starts.append(i + 1)
    return starts


def _error_offset(position, starts: List[int], pos: int) -> int:
    if not position:
        return pos
    row, col = position
    row = max(1, min(row, len(starts)))
    return starts[row - 1] + col - 1 + pos


def _clamp(offset: int, text: str) -> int:
    return max(0, min(offset, len(text)))


class TokenStream:
    """
    Cursor over a token list.

    `fork()` gives an independent cursor at the same position; a speculative
    parse runs on the fork and `advance_to()` commits it. A failed
    speculation simply drops the fork, leaving this cursor untouched.
    """

    def __init__(self, tokens: List[Token], end: int):
        self.tokens = tokens
        self.end = end
        self.index = 0

    def fork(self) -> "TokenStream":
        stream = TokenStream(self.tokens, self.end)
        stream.index = self.index
        return stream

    def advance_to(self, fork: "TokenStream") -> None:
        self.index = fork.index

    def at_end(self) -> bool:
        return self.index >= len(self.tokens)

    def peek(self, ahead: int = 0) -> Optional[Token]:
        i = self.index + ahead
        return self.tokens[i] if i < len(self.tokens) else None

    def peek_op(self, text: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.is_op(text)

    def peek_name(self, text: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.is_name(text)

    def next(self) -> Token:
        if self.at_end():
            raise SpecError("unexpected end of annotation", self.here())
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def eat_op(self, text: str) -> Optional[Token]:
        if self.peek_op(text):
            return self.next()
        return None

    def expect_op(self, text: str, message: Optional[str] = None) -> Token:
        if not self.peek_op(text):
            raise SpecError(message or f"expected `{text}`", self.here())
        return self.next()

    def here(self) -> Span:
        """Span of the next token, or an empty span at the end of input"""
        tok = self.peek()
        if tok is None:
            return Span(self.end, self.end)
        return tok.span
