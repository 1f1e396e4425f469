"""
Grammar constants and build configuration
"""

import os
import sys
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Optional

from .behavior import RuntimeBehavior

# Parameter keywords in the only order they may appear
PARAMETER_ORDER = ("requires", "maintains", "captures", "binds", "ensures")
KEYWORD_RANK = {keyword: rank for rank, keyword in enumerate(PARAMETER_ORDER)}

# Return value name when no `binds` is given
DEFAULT_BINDER = "output"

# `captures: count` is visible to postconditions as `old_count`
CAPTURE_ALIAS_PREFIX = "old_"

# Identifiers with this prefix belong to generated code
GENERATED_PREFIX = "__vouch_"

# Environment variables read by BuildConfig.from_env
BEHAVIOR_ENV = "VOUCH_BEHAVIOR"
CFG_ENV = "VOUCH_CFG"


@dataclass(frozen=True)
class BuildConfig:
    """
    Settings in force when a decorator runs.

    `flags` and `values` answer `cfg(name)` and `cfg(key = "value")`
    predicates; `behavior` decides what a failing check does.
    """
    flags: FrozenSet[str] = frozenset()
    values: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    behavior: RuntimeBehavior = RuntimeBehavior.ABORT

    def is_set(self, name: str) -> bool:
        return name in self.flags

    def has_value(self, key: str, value: str) -> bool:
        return value in self.values.get(key, frozenset())

    def with_flags(self, *names: str) -> "BuildConfig":
        return replace(self, flags=self.flags | frozenset(names))

    def without_flags(self, *names: str) -> "BuildConfig":
        return replace(self, flags=self.flags - frozenset(names))

    def with_value(self, key: str, value: str) -> "BuildConfig":
        values = dict(self.values)
        values[key] = values.get(key, frozenset()) | {value}
        return replace(self, values=values)

    def with_settings(self, text: str) -> "BuildConfig":
        """
        Add comma-separated settings such as `test, feature = "fast"`.

        Raises:
            SpecError: Malformed settings
        """
        from ..grammar.cfg import parse_settings

        flags, values = parse_settings(text)
        config = self.with_flags(*flags)
        for key, items in values.items():
            for value in items:
                config = config.with_value(key, value)
        return config

    def with_behavior(self, behavior) -> "BuildConfig":
        return replace(self, behavior=RuntimeBehavior.parse(behavior))

    @classmethod
    def defaults(cls) -> "BuildConfig":
        """`debug` unless running under `python -O`, plus `platform`"""
        flags = frozenset({"debug"}) if __debug__ else frozenset()
        return cls(flags=flags, values={"platform": frozenset({sys.platform})})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BuildConfig":
        """
        Build the configuration from environment variables.

        VOUCH_BEHAVIOR: abort | report | none
        VOUCH_CFG: comma-separated settings, e.g. `test, feature = "fast"`
        """
        environ = os.environ if environ is None else environ
        config = cls.defaults()

        behavior = environ.get(BEHAVIOR_ENV)
        if behavior:
            config = config.with_behavior(behavior)

        settings = environ.get(CFG_ENV)
        if settings:
            config = config.with_settings(settings)

        return config

    def to_dict(self) -> Dict:
        return {
            "flags": sorted(self.flags),
            "values": {key: sorted(items) for key, items in sorted(self.values.items())},
            "behavior": self.behavior.value
        }


_active_config: Optional[BuildConfig] = None


def active_config() -> BuildConfig:
    """Process-wide configuration, read from the environment on first use"""
    global _active_config
    if _active_config is None:
        _active_config = BuildConfig.from_env()
    return _active_config


def configure(config: Optional[BuildConfig]) -> Optional[BuildConfig]:
    """
    Replace the process-wide configuration.

    Only functions decorated afterwards are affected. Passing None makes the
    next decoration re-read the environment. Returns the previous value.
    """
    global _active_config
    previous = _active_config
    _active_config = config
    return previous
