"""
What a failing check does at runtime
"""

import sys
from enum import Enum
from typing import Callable


class RuntimeBehavior(str, Enum):
    """Build-wide policy for failing checks"""
    ABORT = "abort"
    REPORT = "report"
    NO_CHECK = "none"

    @classmethod
    def parse(cls, value) -> "RuntimeBehavior":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(b.value for b in cls)
            raise ValueError(f"Unknown runtime behavior {value!r}; expected one of: {choices}") from None


class CheckKind(str, Enum):
    """Which phase a check belongs to"""
    PRECONDITION = "Precondition"
    PRE_INVARIANT = "Pre-invariant"
    POST_INVARIANT = "Post-invariant"
    POSTCONDITION = "Postcondition"


def diagnostic(kind: str, source: str) -> str:
    return f"{kind} failed: {source}"


class ContractViolation(AssertionError):
    """Raised by the abort behavior when a check fails"""

    def __init__(self, kind: str, source: str, function: str = ""):
        self.kind = kind
        self.source = source
        self.function = function
        super().__init__(diagnostic(kind, source))


FailureHandler = Callable[[str, str], None]


def make_failure_handler(behavior: RuntimeBehavior, function: str = "") -> FailureHandler:
    """
    Handler the generated code calls with (kind, source) when a check fails.

    NO_CHECK still gets a handler: its checks are compiled but never run.
    """
    behavior = RuntimeBehavior.parse(behavior)

    if behavior == RuntimeBehavior.REPORT:
        def report(kind: str, source: str) -> None:
            print(diagnostic(kind, source), file=sys.stderr)
        return report

    def abort(kind: str, source: str) -> None:
        raise ContractViolation(kind, source, function)
    return abort
