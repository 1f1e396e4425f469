"""
Decorator for attaching a specification to a function.

Usage:
    @spec(\"\"\"
        requires: amount > 0,
        maintains: self.balance >= 0,
        captures: self.balance as before,
        ensures: self.balance == before - amount,
    \"\"\")
    def withdraw(self, amount):
        self.balance -= amount

Checks can be limited to some configurations:
    @spec(\"\"\"
        #[cfg(debug)]
        requires: is_sorted(items),
        ensures: output is None or items[output] == target,
    \"\"\")
    def search(items, target):
        ...

The annotation is parsed and the checks are compiled when the decorator
runs; a malformed annotation raises SpecError right there.
"""

from typing import Callable, Optional

from .core.config import BuildConfig
from .core.instrument import SPEC_ATTRIBUTE, instrument_function
from .grammar.spec import parse_spec


def spec(annotation: str, config: Optional[BuildConfig] = None) -> Callable:
    """
    Attach a specification to a function.

    Args:
        annotation: Comma-separated `requires`, `maintains`, `captures`,
            `binds` and `ensures` parameters, in that order
        config: Build configuration; the active one when omitted

    Raises:
        SpecError: Malformed annotation
    """
    if not isinstance(annotation, str):
        raise TypeError("@spec takes the annotation text, e.g. @spec(\"requires: x > 0\")")

    specification = parse_spec(annotation)

    def decorator(func: Callable) -> Callable:
        return instrument_function(func, specification, config)
    return decorator


def specification_of(func: Callable):
    """The Specification attached by @spec, or None"""
    return getattr(func, SPEC_ATTRIBUTE, None)
