"""
Instrumentation pipeline: Specification + function -> checked function
"""

import ast
import functools
import inspect
import linecache
import types
from types import CodeType
from typing import Callable, List, Optional, Tuple

from .behavior import CheckKind, RuntimeBehavior, make_failure_handler
from .config import BuildConfig, active_config
from .errors import SpecError
from .models import BuildPredicate, Condition, Expr, Pattern, Specification
from ..generators.wrapper import (
    FACTORY,
    CaptureSource,
    Check,
    FunctionShape,
    WrapperSource,
    generate_wrapper,
)

# Attributes set on every instrumented function
SPEC_ATTRIBUTE = "__vouch_spec__"
SOURCE_ATTRIBUTE = "__vouch_source__"


class Instrumenter:
    """
    Turns a Specification into checks around a function.

    Which checks are live is decided here, once, from the BuildConfig: a
    check whose `cfg` predicate is false, or any check when the behavior is
    `none`, is still compiled but never runs.
    """

    def __init__(self, config: Optional[BuildConfig] = None):
        self.config = config or active_config()

    def generate(self, specification: Specification, shape: FunctionShape) -> WrapperSource:
        try:
            entry = [self._check(CheckKind.PRECONDITION, c) for c in specification.preconditions]
            entry += [self._check(CheckKind.PRE_INVARIANT, c) for c in specification.invariants]

            captures = [
                CaptureSource(alias=c.alias, expr=canonical_expression(c.expr), origin=c.expr)
                for c in specification.captures
            ]

            exit_checks = [self._check(CheckKind.POST_INVARIANT, c) for c in specification.invariants]
            for post in specification.postconditions:
                pattern = specification.binder_for(post)
                expr = canonical_expression(post.expr)
                pattern_source = canonical_pattern(pattern)
                diagnostic = f"{pattern_source} => {expr}" if post.pattern is not None else expr
                enabled, reason = self._gate(post.predicate)
                exit_checks.append(Check(
                    kind=CheckKind.POSTCONDITION,
                    expr=expr,
                    diagnostic=diagnostic,
                    origin=post.expr,
                    enabled=enabled,
                    reason=reason,
                    pattern=pattern_source,
                ))
        except SpecError as e:
            raise e.with_annotation(specification.source)

        return generate_wrapper(shape, entry, captures, exit_checks)

    def render(self, specification: Specification, shape: FunctionShape) -> str:
        """Source text of the wrapper factory, without compiling it"""
        return self.generate(specification, shape).text

    def compile(self, specification: Specification, shape: FunctionShape,
                filename: str = "<vouch>") -> Tuple[CodeType, str]:
        """
        Generate and compile the wrapper factory.

        Returns:
            (code object, generated source)

        Raises:
            SpecError: A condition the compiler rejects in this function,
                such as `await` in a non-async function
        """
        generated = self.generate(specification, shape)
        source = generated.text
        try:
            return compile(source, filename, "exec"), source
        except SyntaxError as e:
            origin = generated.origins.get(e.lineno or 0)
            span = origin.span if origin else None
            raise SpecError(f"invalid condition: {e.msg}", span, specification.source) from None

    def instrument(self, func: Callable, specification: Specification) -> Callable:
        """
        Wrap func with the checks its specification describes.

        Raises:
            SpecError: A condition that is not a valid expression in this function
            NotImplementedError: Generators, or objects that are not plain functions
        """
        _check_supported(func)

        free_vars, cells = _closure_of(inspect.unwrap(func))
        shape = FunctionShape.from_function(func, free_vars)
        filename = f"<vouch {func.__module__}.{func.__qualname__}>"
        code, source = self.compile(specification, shape, filename)

        linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)

        namespace = {}
        exec(code, func.__globals__, namespace)
        if shape.owner:
            factory = getattr(namespace[shape.owner], FACTORY)
        else:
            factory = namespace[FACTORY]

        handler = make_failure_handler(self.config.behavior, func.__qualname__)
        wrapper = factory(func, handler, _defaults_of(func), *[None] * len(cells))
        wrapper = _share_cells(wrapper, dict(zip(free_vars, cells)))

        functools.update_wrapper(wrapper, func)
        setattr(wrapper, SPEC_ATTRIBUTE, specification)
        setattr(wrapper, SOURCE_ATTRIBUTE, source)
        return wrapper

    def _check(self, kind: CheckKind, condition: Condition) -> Check:
        expr = canonical_expression(condition.expr)
        enabled, reason = self._gate(condition.predicate)
        return Check(kind=kind, expr=expr, diagnostic=expr, origin=condition.expr,
                     enabled=enabled, reason=reason)

    def _gate(self, predicate: Optional[BuildPredicate]) -> Tuple[bool, str]:
        if self.config.behavior == RuntimeBehavior.NO_CHECK:
            return False, "runtime checks disabled"
        if predicate is not None and not predicate.evaluate(self.config):
            return False, f"cfg({predicate.source}) is not set"
        return True, ""


def canonical_expression(expr: Expr) -> str:
    """
    Compile-check an expression and return its normalized source.

    Raises:
        SpecError: Not a Python expression, or one that would change the
            wrapper itself (`yield`, `:=`, zero-argument `super()`)
    """
    try:
        tree = ast.parse("(" + expr.source + "\n)", mode="eval")
    except SyntaxError as e:
        raise SpecError(f"invalid expression: {e.msg}", expr.span) from None

    for node in ast.walk(tree):
        if isinstance(node, (ast.Yield, ast.YieldFrom)):
            raise SpecError("`yield` is not allowed in a condition", expr.span)
        if isinstance(node, ast.NamedExpr):
            raise SpecError("`:=` is not allowed in a condition", expr.span)
        if _is_bare_super(node):
            raise SpecError("zero-argument `super()` is not available in a condition; "
                            "name the class and instance", expr.span)
    return ast.unparse(tree.body)


def canonical_pattern(pattern: Pattern) -> str:
    tree = ast.parse("(" + pattern.source + "\n) = None")
    return ast.unparse(tree.body[0].targets[0])


def instrument_function(func: Callable, specification: Specification,
                        config: Optional[BuildConfig] = None) -> Callable:
    """Instrument func using config, or the active configuration"""
    return Instrumenter(config).instrument(func, specification)


def render_wrapper(specification: Specification, shape: FunctionShape,
                   config: Optional[BuildConfig] = None) -> str:
    return Instrumenter(config).render(specification, shape)


def _check_supported(func) -> None:
    if isinstance(func, (staticmethod, classmethod)):
        raise NotImplementedError(
            f"@spec must be applied below @{type(func).__name__}, directly on the function"
        )
    if not inspect.isfunction(func):
        raise NotImplementedError(f"@spec supports functions, not {type(func).__name__} objects")
    if inspect.isgeneratorfunction(func) or inspect.isasyncgenfunction(func):
        raise NotImplementedError(f"@spec does not support generator functions: {func.__qualname__}")


def _is_bare_super(node: ast.AST) -> bool:
    return (isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
            and node.func.id == "super" and not node.args and not node.keywords)


def _closure_of(func) -> Tuple[Tuple[str, ...], List]:
    """Names and cells of the closure of func, except `__class__`"""
    names, cells = [], []
    for name, cell in zip(func.__code__.co_freevars, func.__closure__ or ()):
        if name != "__class__":
            names.append(name)
            cells.append(cell)
    return tuple(names), cells


def _share_cells(wrapper, cells: dict):
    """
    Rebuild wrapper so the named free variables use the given cells.

    Conditions then read the same variables as the body, including
    ones the enclosing scope rebinds after decoration.
    """
    code = wrapper.__code__
    own = dict(zip(code.co_freevars, wrapper.__closure__ or ()))
    closure = tuple(cells.get(name, own[name]) for name in code.co_freevars)
    shared = types.FunctionType(code, wrapper.__globals__, wrapper.__name__,
                                wrapper.__defaults__, closure)
    shared.__kwdefaults__ = wrapper.__kwdefaults__
    return shared


def _defaults_of(func) -> dict:
    return {
        name: p.default
        for name, p in inspect.signature(func).parameters.items()
        if p.default is not inspect.Parameter.empty
    }
