"""
Errors raised while reading annotations
"""

from typing import Optional, Tuple

from .models import Span


class SpecError(ValueError):
    """
    An annotation that cannot be turned into a Specification.

    Carries the offending span so callers can point at the exact tokens.
    The whole annotation is rejected; no partial model exists.
    """

    def __init__(self, message: str, span: Optional[Span] = None, annotation: Optional[str] = None):
        self.message = message
        self.span = span
        self.annotation = annotation
        super().__init__(message)

    def with_annotation(self, annotation: str) -> "SpecError":
        if self.annotation is None:
            self.annotation = annotation
        return self

    @property
    def location(self) -> Optional[Tuple[int, int]]:
        """1-based (line, column) of the span start, if known"""
        if self.span is None or self.annotation is None:
            return None
        return self.span.line_column(self.annotation)

    @property
    def lineno(self) -> Optional[int]:
        location = self.location
        return location[0] if location else None

    @property
    def column(self) -> Optional[int]:
        location = self.location
        return location[1] if location else None

    def format(self) -> str:
        """Render the message with the annotation line and a caret marker"""
        location = self.location
        if location is None:
            return self.message

        line_no, column = location
        lines = self.annotation.splitlines()
        line = lines[line_no - 1] if line_no <= len(lines) else ""
        width = max(1, min(self.span.end - self.span.start, len(line) - column + 1))
        marker = " " * (column - 1) + "^" * width
        return f"line {line_no}, column {column}: {self.message}\n  {line}\n  {marker}"

    def __str__(self) -> str:
        location = self.location
        if location is None:
            return self.message
        return f"{self.message} (line {location[0]}, column {location[1]})"
