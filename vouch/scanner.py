"""
Scanner to find @spec annotated functions in Python files.

The file is never imported: functions are found in its syntax tree and each
annotation is parsed, and its expressions compiled, on its own.
"""

import ast
import inspect
from typing import List, Optional

from .api_models import AnnotatedFunction, ErrorLocation, ScanReport
from .core.config import BuildConfig
from .core.errors import SpecError
from .core.instrument import SPEC_ATTRIBUTE, Instrumenter
from .generators.wrapper import FunctionShape
from .grammar.spec import parse_spec

_STRING_PREFIXES = "rRuU"


class SpecFunctionScanner:
    """Parse Python source to find @spec decorated functions"""

    def __init__(self, config: Optional[BuildConfig] = None, check_expressions: bool = True):
        self.config = config or BuildConfig.defaults()
        self.check_expressions = check_expressions

    def parse_file(self, file_path: str) -> ScanReport:
        """
        Scan a Python file for annotated functions.

        Args:
            file_path: Path to Python file

        Returns:
            ScanReport with one entry per annotated function, in file order
        """
        with open(file_path, 'r') as f:
            source = f.read()
        return self.parse_source(source, file_path)

    def parse_source(self, source: str, filename: str = "<source>") -> ScanReport:
        tree = ast.parse(source, filename=filename)
        report = ScanReport(filename=filename)
        self._visit(tree.body, source, [], report.functions)
        return report

    def _visit(self, body: List[ast.stmt], source: str, scope: List[str],
               found: List[AnnotatedFunction]) -> None:
        for node in body:
            if isinstance(node, ast.ClassDef):
                self._visit(node.body, source, scope + [node.name], found)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                owner = scope[-1] if scope and scope[-1] != "<locals>" else None
                info = self._extract_spec_function(node, source, scope, owner)
                if info:
                    found.append(info)
                self._visit(node.body, source, scope + [node.name, "<locals>"], found)
            else:
                # if/try/with blocks at module or class level
                nested = [child for child in ast.iter_child_nodes(node) if isinstance(child, ast.stmt)]
                self._visit(nested, source, scope, found)

    def _extract_spec_function(self, node, source: str, scope: List[str],
                               owner: Optional[str]) -> Optional[AnnotatedFunction]:
        """
        Extract function info if it has a @spec decorator.

        Returns:
            AnnotatedFunction, or None if not decorated
        """
        call = None
        for decorator in node.decorator_list:
            if isinstance(decorator, ast.Call) and _is_spec_name(decorator.func):
                call = decorator
                break
        if call is None:
            return None

        info = AnnotatedFunction(
            name=node.name,
            qualname=".".join(scope + [node.name]),
            line_number=node.lineno,
            annotation="",
            is_async=isinstance(node, ast.AsyncFunctionDef)
        )

        literal = call.args[0] if call.args else None
        if not (isinstance(literal, ast.Constant) and isinstance(literal.value, str)):
            info.error = ErrorLocation(
                message="annotation is not a string literal",
                line=call.lineno,
                column=call.col_offset + 1,
                in_file=True
            )
            return info
        info.annotation = literal.value

        try:
            specification = parse_spec(literal.value)
            if self.check_expressions:
                shape = FunctionShape.from_node(node, owner)
                Instrumenter(self.config).compile(specification, shape, f"<vouch {info.qualname}>")
            info.specification = specification
        except SpecError as e:
            info.error = self._locate(e, literal, source)

        return info

    def _locate(self, error: SpecError, literal: ast.Constant, source: str) -> ErrorLocation:
        """Move an annotation-relative location into the file when the literal allows it"""
        location = ErrorLocation.from_error(error)
        if location.line is None:
            return location

        segment = ast.get_source_segment(source, literal)
        if segment is None:
            return location

        prefix = len(segment) - len(segment.lstrip(_STRING_PREFIXES))
        quote = segment[prefix:prefix + 3] if segment[prefix:prefix + 3] in ('"""', "'''") else segment[prefix]
        body = segment[prefix + len(quote):len(segment) - len(quote)]
        if body != literal.value:
            # escapes, implicit concatenation: offsets no longer line up
            return location

        if location.line == 1:
            location.column = literal.col_offset + prefix + len(quote) + location.column
        location.line = literal.lineno + location.line - 1
        location.in_file = True
        return location

    def parse_module(self, module) -> List[AnnotatedFunction]:
        """
        Collect instrumented functions from a loaded module.

        Args:
            module: Loaded Python module

        Returns:
            List of AnnotatedFunction, including methods of module-level classes
        """
        functions = []

        candidates = list(inspect.getmembers(module, inspect.isfunction))
        for _, cls in inspect.getmembers(module, inspect.isclass):
            if cls.__module__ != module.__name__:
                continue
            for name, attr in vars(cls).items():
                func = getattr(attr, "__func__", attr)
                if inspect.isfunction(func):
                    candidates.append((name, func))

        for _, obj in candidates:
            specification = getattr(obj, SPEC_ATTRIBUTE, None)
            if specification is None:
                continue
            functions.append(AnnotatedFunction(
                name=obj.__name__,
                qualname=obj.__qualname__,
                line_number=inspect.unwrap(obj).__code__.co_firstlineno,
                annotation=specification.source,
                is_async=inspect.iscoroutinefunction(obj),
                specification=specification
            ))

        return functions


def _is_spec_name(func: ast.expr) -> bool:
    if isinstance(func, ast.Name):
        return func.id == "spec"
    if isinstance(func, ast.Attribute):
        return func.attr == "spec"
    return False


def scan_file(file_path: str, config: Optional[BuildConfig] = None) -> ScanReport:
    return SpecFunctionScanner(config).parse_file(file_path)
