"""
Instrumented wrapper source generation.

For a function `withdraw(self, amount)` the generated module looks like:

    def __vouch_factory__(__vouch_body__, __vouch_fail__, __vouch_defaults__):
        def __vouch_wrapper__(self, amount):
            if not (amount > 0):
                __vouch_fail__('Precondition', 'amount > 0')
            __vouch_captures__, __vouch_output__ = ((self.balance),), __vouch_body__(self, amount)
            def __vouch_ensures_0__(old_balance, __vouch_output__):
                output = __vouch_output__
                return self.balance == old_balance - amount
            if not __vouch_ensures_0__(*__vouch_captures__, __vouch_output__):
                __vouch_fail__('Postcondition', 'self.balance == old_balance - amount')
            return __vouch_output__
        return __vouch_wrapper__

The original function is called as `__vouch_body__`, so its body keeps its
own scope. The wrapper never takes the function's own name, which would
shadow a builtin or global of that name inside the conditions. Capture
aliases exist only as parameters of the postcondition functions. Disabled
checks sit under `if False:`, where they are compiled but never executed.
"""

import ast
import inspect
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..core.behavior import CheckKind
from ..core.config import GENERATED_PREFIX
from ..core.models import Expr

FACTORY = f"{GENERATED_PREFIX}factory__"
BODY = f"{GENERATED_PREFIX}body__"
FAIL = f"{GENERATED_PREFIX}fail__"
DEFAULTS = f"{GENERATED_PREFIX}defaults__"
CAPTURES = f"{GENERATED_PREFIX}captures__"
OUTPUT = f"{GENERATED_PREFIX}output__"
WRAPPER = f"{GENERATED_PREFIX}wrapper__"

_P = inspect.Parameter

@dataclass(frozen=True)
class Param:
    name: str
    kind: inspect._ParameterKind
    default: Optional[str] = None  # source text of the default value

    def render(self) -> str:
        if self.default is None:
            return self.name
        return f"{self.name}={self.default}"


@dataclass(frozen=True)
class FunctionShape:
    """What the wrapper needs to know about the function it replaces"""
    name: str
    parameters: Tuple[Param, ...]
    is_async: bool = False
    owner: Optional[str] = None  # enclosing class, for private name mangling
    free_vars: Tuple[str, ...] = ()

    @classmethod
    def from_function(cls, func, free_vars: Tuple[str, ...] = ()) -> "FunctionShape":
        """Shape of a live function; defaults are read from `__vouch_defaults__`"""
        parameters = []
        for p in inspect.signature(func).parameters.values():
            default = None
            if p.default is not _P.empty:
                default = f"{DEFAULTS}[{p.name!r}]"
            parameters.append(Param(p.name, p.kind, default))

        name = func.__name__ if func.__name__.isidentifier() else "wrapper"
        return cls(
            name=name,
            parameters=tuple(parameters),
            is_async=inspect.iscoroutinefunction(func),
            owner=_owner_from_qualname(func.__qualname__),
            free_vars=free_vars,
        )

    @classmethod
    def from_node(cls, node: ast.AST, owner: Optional[str] = None) -> "FunctionShape":
        """Shape of a `def` parsed from source; defaults keep their source text"""
        args = node.args
        parameters: List[Param] = []

        positional = list(args.posonlyargs) + list(args.args)
        first_default = len(positional) - len(args.defaults)
        for i, arg in enumerate(positional):
            kind = _P.POSITIONAL_ONLY if i < len(args.posonlyargs) else _P.POSITIONAL_OR_KEYWORD
            default = ast.unparse(args.defaults[i - first_default]) if i >= first_default else None
            parameters.append(Param(arg.arg, kind, default))
        if args.vararg:
            parameters.append(Param(args.vararg.arg, _P.VAR_POSITIONAL))
        for arg, default in zip(args.kwonlyargs, args.kw_defaults):
            parameters.append(Param(arg.arg, _P.KEYWORD_ONLY, ast.unparse(default) if default else None))
        if args.kwarg:
            parameters.append(Param(args.kwarg.arg, _P.VAR_KEYWORD))

        return cls(
            name=node.name,
            parameters=tuple(parameters),
            is_async=isinstance(node, ast.AsyncFunctionDef),
            owner=owner,
        )

    def parameter_list(self) -> str:
        parts = []
        has_positional_only = any(p.kind == _P.POSITIONAL_ONLY for p in self.parameters)
        slash_written = False
        star_written = False
        for p in self.parameters:
            if has_positional_only and not slash_written and p.kind != _P.POSITIONAL_ONLY:
                parts.append("/")
                slash_written = True
            if p.kind == _P.VAR_POSITIONAL:
                parts.append(f"*{p.name}")
                star_written = True
            elif p.kind == _P.KEYWORD_ONLY:
                if not star_written:
                    parts.append("*")
                    star_written = True
                parts.append(p.render())
            elif p.kind == _P.VAR_KEYWORD:
                parts.append(f"**{p.name}")
            else:
                parts.append(p.render())
        if has_positional_only and not slash_written:
            parts.append("/")
        return ", ".join(parts)

    def call_arguments(self) -> str:
        parts = []
        for p in self.parameters:
            if p.kind == _P.VAR_POSITIONAL:
                parts.append(f"*{p.name}")
            elif p.kind == _P.KEYWORD_ONLY:
                parts.append(f"{p.name}={p.name}")
            elif p.kind == _P.VAR_KEYWORD:
                parts.append(f"**{p.name}")
            else:
                parts.append(p.name)
        return ", ".join(parts)


@dataclass(frozen=True)
class Check:
    """One emitted check, with everything resolved at build time"""
    kind: CheckKind
    expr: str  # canonical expression source
    diagnostic: str  # text after "<Kind> failed: "
    origin: Expr
    enabled: bool = True
    reason: str = ""  # why a disabled check is disabled
    pattern: Optional[str] = None  # postconditions only


@dataclass(frozen=True)
class CaptureSource:
    alias: str
    expr: str
    origin: Expr


class WrapperSource:
    """Generated module text plus the condition each line came from"""

    def __init__(self):
        self.lines: List[str] = []
        self.origins: Dict[int, Expr] = {}

    def emit(self, depth: int, text: str, origin: Optional[Expr] = None) -> None:
        self.lines.append(" " * (4 * depth) + text)
        if origin is not None:
            self.origins[len(self.lines)] = origin

    @property
    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


def generate_wrapper(shape: FunctionShape,
                     entry_checks: List[Check],
                     captures: List[CaptureSource],
                     exit_checks: List[Check]) -> WrapperSource:
    """
    Generate the factory module for an instrumented function.

    Args:
        shape: Signature of the original function
        entry_checks: Preconditions then entry invariants
        captures: Values to snapshot before the body runs
        exit_checks: Exit invariants then postconditions

    Returns:
        WrapperSource whose text defines `__vouch_factory__`
    """
    out = WrapperSource()
    depth = 0

    if shape.owner:
        out.emit(depth, f"class {shape.owner}:")
        depth += 1

    factory_params = [BODY, FAIL, DEFAULTS] + list(shape.free_vars)
    out.emit(depth, f"def {FACTORY}({', '.join(factory_params)}):")
    depth += 1

    prefix = "async " if shape.is_async else ""
    out.emit(depth, f"{prefix}def {WRAPPER}({shape.parameter_list()}):")
    depth += 1

    for check in entry_checks:
        _emit_check(out, depth, check, shape, [])

    aliases = [c.alias for c in captures]
    capture_tuple = "(" + "".join(f"({c.expr}), " for c in captures).rstrip(" ") + ")"
    call = f"{BODY}({shape.call_arguments()})"
    if shape.is_async:
        call = f"await {call}"
    out.emit(depth, f"{CAPTURES}, {OUTPUT} = {capture_tuple}, {call}")
    for capture in captures:
        out.origins.setdefault(len(out.lines), capture.origin)

    post_index = 0
    for check in exit_checks:
        if check.kind == CheckKind.POSTCONDITION:
            _emit_check(out, depth, check, shape, aliases, post_index)
            post_index += 1
        else:
            _emit_check(out, depth, check, shape, [])

    out.emit(depth, f"return {OUTPUT}")
    depth -= 1
    out.emit(depth, f"return {WRAPPER}")
    return out


def _emit_check(out: WrapperSource, depth: int, check: Check, shape: FunctionShape,
                aliases: List[str], post_index: int = 0) -> None:
    if not check.enabled:
        out.emit(depth, f"if False:  # {check.reason}")
        depth += 1

    fail = f"{FAIL}({check.kind.value!r}, {check.diagnostic!r})"

    if check.kind != CheckKind.POSTCONDITION:
        out.emit(depth, f"if not ({check.expr}):", check.origin)
        out.emit(depth + 1, fail)
        return

    name = f"{GENERATED_PREFIX}ensures_{post_index}__"
    prefix, call_prefix = ("async ", "await ") if shape.is_async else ("", "")
    params = ", ".join(aliases + [OUTPUT])
    out.emit(depth, f"{prefix}def {name}({params}):")
    out.emit(depth + 1, f"{check.pattern} = {OUTPUT}", check.origin)
    out.emit(depth + 1, f"return {check.expr}", check.origin)
    out.emit(depth, f"if not {call_prefix}{name}(*{CAPTURES}, {OUTPUT}):")
    out.emit(depth + 1, fail)


def _owner_from_qualname(qualname: str) -> Optional[str]:
    parts = qualname.split(".")
    if len(parts) >= 2 and parts[-2] != "<locals>" and parts[-2].isidentifier():
        return parts[-2]
    return None
