"""Provider records produced by container registration."""

from __future__ import annotations

import enum
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, get_origin

from ._types import NOT_SET, Scope


class ProviderKind(str, enum.Enum):
    """How a provider callable produces its instance."""

    CLASS = "class"
    FUNCTION = "function"
    COROUTINE = "coroutine"
    GENERATOR = "generator"
    ASYNC_GENERATOR = "async_generator"

    @classmethod
    def from_call(cls, call: Callable[..., Any]) -> ProviderKind:
        # Generic aliases such as `Box[int]` are built like their origin class
        if inspect.isclass(get_origin(call) or call):
            return cls.CLASS
        for kind, check in _KIND_CHECKS:
            if check(call):
                return kind
        raise TypeError(
            f"The provider `{call}` is invalid because it is not a callable object."
        )

    @property
    def is_async(self) -> bool:
        return self in (ProviderKind.COROUTINE, ProviderKind.ASYNC_GENERATOR)

    @property
    def is_resource(self) -> bool:
        """Whether the provider yields its instance and must be closed."""
        return self in (ProviderKind.GENERATOR, ProviderKind.ASYNC_GENERATOR)


_KIND_CHECKS: tuple[tuple[ProviderKind, Callable[[Any], bool]], ...] = (
    (ProviderKind.COROUTINE, inspect.iscoroutinefunction),
    (ProviderKind.ASYNC_GENERATOR, inspect.isasyncgenfunction),
    (ProviderKind.GENERATOR, inspect.isgeneratorfunction),
    (ProviderKind.FUNCTION, inspect.isfunction),
    (ProviderKind.FUNCTION, inspect.ismethod),
)


@dataclass(frozen=True, slots=True)
class ProviderParameter:
    """A provider argument filled from the container.

    `default` is `NOT_SET` unless the signature declares one.
    """

    name: str
    annotation: Any
    default: Any
    has_default: bool


@dataclass(frozen=True, slots=True)
class Provider:
    """A registered provider of `interface`."""

    call: Callable[..., Any]
    scope: Scope
    interface: Any
    name: str
    parameters: tuple[ProviderParameter, ...]
    kind: ProviderKind

    @property
    def is_class(self) -> bool:
        return self.kind is ProviderKind.CLASS

    @property
    def is_coroutine(self) -> bool:
        return self.kind is ProviderKind.COROUTINE

    @property
    def is_generator(self) -> bool:
        return self.kind is ProviderKind.GENERATOR

    @property
    def is_async_generator(self) -> bool:
        return self.kind is ProviderKind.ASYNC_GENERATOR

    @property
    def is_async(self) -> bool:
        return self.kind.is_async

    @property
    def is_resource(self) -> bool:
        return self.kind.is_resource


@dataclass(frozen=True, slots=True)
class ProviderDef:
    """A provider declared up front and registered by the container.

    Without `interface`, a class stands for itself and a function is
    registered under its return annotation.
    """

    call: Callable[..., Any]
    scope: Scope
    interface: Any = NOT_SET
