"""mockdi public objects and functions."""

from ._automock import AutoMock
from ._container import Container
from ._decorators import provided, provider, request, singleton, transient
from ._mock import Mock, MockBehavior, MockError, MockRepository, Setup
from ._module import Module
from ._provider import ProviderDef as Provider
from ._types import Scope

__all__ = [
    "AutoMock",
    "Container",
    "Mock",
    "MockBehavior",
    "MockError",
    "MockRepository",
    "Module",
    "Provider",
    "Scope",
    "Setup",
    "provided",
    "provider",
    "request",
    "singleton",
    "transient",
]
