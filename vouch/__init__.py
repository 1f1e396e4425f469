"""
Vouch: function contracts for Python
"""

from .core.behavior import ContractViolation, RuntimeBehavior
from .core.config import BuildConfig, active_config, configure
from .core.errors import SpecError
from .core.models import Specification
from .decorators import spec, specification_of
from .grammar.spec import parse_spec
from .interface import Specified

__version__ = "0.1.0"
__all__ = [
    "spec",
    "specification_of",
    "parse_spec",
    "Specified",
    "Specification",
    "SpecError",
    "ContractViolation",
    "RuntimeBehavior",
    "BuildConfig",
    "active_config",
    "configure"
]
