"""Shared mockdi types and predicates."""

from __future__ import annotations

import abc
import inspect
from collections.abc import AsyncIterator, Iterator
from types import NoneType
from typing import Any, Literal, get_origin

from typing_extensions import Sentinel, is_protocol

Scope = Literal["transient", "singleton", "request"]

NOT_SET = Sentinel("NOT_SET")


class Event:
    """Represents an event object."""

    __slots__ = ()


def is_event_type(obj: Any) -> bool:
    """Checks if an object is an event type."""
    return inspect.isclass(obj) and issubclass(obj, Event)


def is_context_manager(obj: Any) -> bool:
    """Check if the given object is a context manager."""
    return hasattr(obj, "__enter__") and hasattr(obj, "__exit__")


def is_async_context_manager(obj: Any) -> bool:
    """Check if the given object is an async context manager."""
    return hasattr(obj, "__aenter__") and hasattr(obj, "__aexit__")


def is_none_type(tp: Any) -> bool:
    """Check if the given object is a None type."""
    return tp in (None, NoneType)


def is_iterator_type(tp: Any) -> bool:
    """Check if the given object is an iterator type."""
    return tp in (Iterator, AsyncIterator)


def is_interface(tp: Any) -> bool:
    """Check if the given type can only be satisfied by a stand-in.

    Abstract classes with unimplemented members, protocol classes and their
    parameterized aliases are interfaces. So is a class that derives from
    `abc.ABC` (or uses `ABCMeta`) directly without implementing another
    abstract base, even when it declares no abstract members.
    """
    cls = get_origin(tp) or tp
    if not inspect.isclass(cls):
        return False
    if inspect.isabstract(cls) or is_protocol(cls):
        return True
    return isinstance(cls, abc.ABCMeta) and not any(
        isinstance(base, abc.ABCMeta) and base is not abc.ABC
        for base in cls.__bases__
    )


def is_concrete_class(tp: Any) -> bool:
    """Check if the given type is a user class that may be built directly."""
    cls = get_origin(tp) or tp
    if not inspect.isclass(cls):
        return False
    if getattr(cls, "__module__", None) in _STANDARD_MODULES:
        return False
    return not is_interface(cls)


_STANDARD_MODULES = frozenset(
    {
        "abc",
        "builtins",
        "collections.abc",
        "types",
        "typing",
        "typing_extensions",
    }
)
