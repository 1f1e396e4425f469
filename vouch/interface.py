"""
Specified interfaces.

A method specified on a base class keeps its contract in subclasses:

    class Stack(Specified):
        @spec("captures: len(self) as len_before, ensures: len(self) == len_before + 1")
        def push(self, item):
            raise NotImplementedError

    class ListStack(Stack):
        def push(self, item):          # checked against Stack.push's spec
            self.items.append(item)

An override may not bring a @spec of its own.
"""

import inspect

from .core.instrument import SPEC_ATTRIBUTE, instrument_function


class Specified:
    """Base class whose specified methods pass their specification to overrides"""

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        for name, attr in list(vars(cls).items()):
            if name.startswith("__") and name.endswith("__"):
                continue

            inherited = _inherited_spec(cls, name)
            if inherited is None:
                continue

            func, wrap = _unwrap_method(attr)
            if func is None:
                continue

            if getattr(func, SPEC_ATTRIBUTE, None) is not None:
                raise TypeError(
                    f"{cls.__qualname__}.{name} overrides a specified method and cannot "
                    f"add its own @spec; the specification is inherited"
                )

            setattr(cls, name, wrap(instrument_function(func, inherited)))


def _inherited_spec(cls, name: str):
    for base in cls.__mro__[1:]:
        if name not in vars(base):
            continue
        func, _ = _unwrap_method(vars(base)[name])
        if func is None:
            return None
        return getattr(func, SPEC_ATTRIBUTE, None)
    return None


def _unwrap_method(attr):
    """(function, rewrap) for plain, static and class methods; (None, None) otherwise"""
    if isinstance(attr, staticmethod):
        return attr.__func__, staticmethod
    if isinstance(attr, classmethod):
        return attr.__func__, classmethod
    if inspect.isfunction(attr):
        return attr, lambda f: f
    return None, None
