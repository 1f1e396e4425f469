"""
Data models for parsed specifications
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .config import DEFAULT_BINDER


@dataclass(frozen=True)
class Span:
    """Character offsets [start, end) into the annotation text"""
    start: int
    end: int

    def line_column(self, text: str) -> Tuple[int, int]:
        """1-based (line, column) of the span start within text"""
        before = text[:self.start]
        line = before.count("\n") + 1
        column = self.start - (before.rfind("\n") + 1) + 1
        return line, column

    def join(self, other: "Span") -> "Span":
        return Span(min(self.start, other.start), max(self.end, other.end))

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Expr:
    """An opaque boolean-valued (or capture) expression, kept as source text"""
    source: str
    span: Span


@dataclass(frozen=True)
class Pattern:
    """A binder pattern: a name, or a (nested) tuple/list of names"""
    source: str
    span: Span
    names: Tuple[str, ...]

    @classmethod
    def default(cls) -> "Pattern":
        return cls(source=DEFAULT_BINDER, span=Span(0, 0), names=(DEFAULT_BINDER,))


@dataclass(frozen=True)
class BuildPredicate:
    """Contents of a `#[cfg(...)]` attribute"""
    source: str
    span: Span
    predicate: Any = field(compare=False)  # vouch.grammar.cfg.CfgPredicate

    def evaluate(self, config) -> bool:
        return self.predicate.evaluate(config)


@dataclass(frozen=True)
class Condition:
    """A precondition or invariant"""
    expr: Expr
    predicate: Optional[BuildPredicate] = None


@dataclass(frozen=True)
class CaptureBinding:
    """A value snapshotted on entry, visible to postconditions as `alias`"""
    expr: Expr
    alias: str
    alias_span: Span
    explicit: bool


@dataclass(frozen=True)
class PostCondition:
    """
    A postcondition. `pattern` is set only for the `pattern => expr` form;
    plain postconditions use the specification's shared binder.
    """
    expr: Expr
    pattern: Optional[Pattern] = None
    predicate: Optional[BuildPredicate] = None


@dataclass(frozen=True)
class Specification:
    """Complete parsed annotation of one function"""
    preconditions: Tuple[Condition, ...] = ()
    invariants: Tuple[Condition, ...] = ()
    captures: Tuple[CaptureBinding, ...] = ()
    binder: Optional[Pattern] = None
    postconditions: Tuple[PostCondition, ...] = ()
    source: str = field(default="", compare=False)  # annotation text

    def is_empty(self) -> bool:
        return not (self.preconditions or self.invariants or self.captures
                    or self.binder or self.postconditions)

    @property
    def aliases(self) -> Tuple[str, ...]:
        return tuple(capture.alias for capture in self.captures)

    def binder_for(self, post: PostCondition) -> Pattern:
        """Pattern a postcondition sees the return value through"""
        if post.pattern is not None:
            return post.pattern
        if self.binder is not None:
            return self.binder
        return Pattern.default()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preconditions": [_condition_dict(c) for c in self.preconditions],
            "invariants": [_condition_dict(c) for c in self.invariants],
            "captures": [
                {
                    "expr": c.expr.source,
                    "alias": c.alias,
                    "explicit": c.explicit,
                    "span": c.expr.span.to_dict()
                }
                for c in self.captures
            ],
            "binder": self.binder.source if self.binder else None,
            "postconditions": [
                {
                    "expr": p.expr.source,
                    "pattern": p.pattern.source if p.pattern else None,
                    "cfg": p.predicate.source if p.predicate else None,
                    "span": p.expr.span.to_dict()
                }
                for p in self.postconditions
            ]
        }


def _condition_dict(condition: Condition) -> Dict[str, Any]:
    return {
        "expr": condition.expr.source,
        "cfg": condition.predicate.source if condition.predicate else None,
        "span": condition.expr.span.to_dict()
    }
