"""Markers read by the container when registering classes and module methods."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypedDict, TypeVar

from ._types import Scope

T = TypeVar("T")
ClassT = TypeVar("ClassT", bound=type)

PROVIDED_ATTR = "__provided__"
PROVIDER_ATTR = "__provider__"


def provided(*, scope: Scope) -> Callable[[ClassT], ClassT]:
    """Mark a class to be registered with `scope` the first time it is needed.

    The mark is read from the class itself, so subclasses are not provided
    unless decorated too.
    """

    def decorator(cls: ClassT) -> ClassT:
        setattr(cls, PROVIDED_ATTR, scope)
        return cls

    return decorator


transient = provided(scope="transient")
request = provided(scope="request")
singleton = provided(scope="singleton")


def get_provided_scope(cls: Any) -> Scope | None:
    if not isinstance(cls, type):
        return None
    return cls.__dict__.get(PROVIDED_ATTR)  # type: ignore[no-any-return]


def is_provided(cls: Any) -> bool:
    return get_provided_scope(cls) is not None


class ProviderMetadata(TypedDict):
    scope: Scope
    override: bool


def provider(
    *, scope: Scope, override: bool = False
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Mark a `Module` method whose return type is registered on configure."""

    def decorator(method: Callable[..., T]) -> Callable[..., T]:
        setattr(method, PROVIDER_ATTR, ProviderMetadata(scope=scope, override=override))
        return method

    return decorator


def get_provider_metadata(obj: Any) -> ProviderMetadata | None:
    return getattr(obj, PROVIDER_ATTR, None)
