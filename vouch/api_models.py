"""
Data models for scan results and API responses
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

from .core.errors import SpecError
from .core.models import Specification


@dataclass
class ErrorLocation:
    """Where an annotation error points"""
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    in_file: bool = False  # line/column are file positions, not annotation positions
    rendered: str = ""

    @classmethod
    def from_error(cls, error: SpecError) -> "ErrorLocation":
        return cls(
            message=error.message,
            line=error.lineno,
            column=error.column,
            rendered=error.format()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "in_file": self.in_file,
            "rendered": self.rendered
        }


@dataclass
class AnnotatedFunction:
    """A function carrying an @spec annotation"""
    name: str
    qualname: str
    line_number: int
    annotation: str
    is_async: bool = False
    specification: Optional[Specification] = None
    error: Optional[ErrorLocation] = None

    @property
    def valid(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "qualname": self.qualname,
            "line_number": self.line_number,
            "annotation": self.annotation,
            "is_async": self.is_async,
            "valid": self.valid,
            "specification": self.specification.to_dict() if self.specification else None,
            "error": self.error.to_dict() if self.error else None
        }


@dataclass
class ScanReport:
    """All annotated functions found in one source file"""
    filename: str
    functions: List[AnnotatedFunction] = field(default_factory=list)

    @property
    def errors(self) -> List[AnnotatedFunction]:
        return [f for f in self.functions if not f.valid]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "total": len(self.functions),
            "invalid": len(self.errors),
            "functions": [f.to_dict() for f in self.functions]
        }
