"""Dynamic mock objects built on `unittest.mock` autospecs.

A `Mock` wraps an autospecced stand-in for a class and records the setups
configured on it, so that unmet expectations can be verified later. A
`MockRepository` creates mocks with a shared behavior and verifies all of
them at once.
"""

from __future__ import annotations

import enum
import inspect
import logging
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar
from unittest import mock

from typing_extensions import Self, type_repr

from ._types import NOT_SET

T = TypeVar("T")

logger = logging.getLogger(__name__)


class MockBehavior(str, enum.Enum):
    """How a mock answers calls to members without a setup."""

    LOOSE = "loose"
    STRICT = "strict"


class MockError(AssertionError):
    """Raised on unexpected strict calls and on failed verification."""


def _public_callables(spec: type[Any]) -> Iterator[str]:
    for name, value in inspect.getmembers(spec):
        if name.startswith("_") or inspect.isclass(value) or not callable(value):
            continue
        yield name


def _is_method(spec: type[Any], member: str) -> bool:
    value = inspect.getattr_static(spec, member, None)
    if isinstance(value, (staticmethod, classmethod)):
        return True
    return callable(value) and not inspect.isdatadescriptor(value)


def _format_arguments(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    parts = [repr(arg) for arg in args]
    parts.extend(f"{key}={value!r}" for key, value in kwargs.items())
    return ", ".join(parts)


class Setup:
    """An expectation configured on a single mock member."""

    __slots__ = ("_mock", "_member", "_target", "_baseline", "_verifiable")

    def __init__(self, owner: Mock[Any], member: str, target: Any) -> None:
        self._mock = owner
        self._member = member
        self._target = target
        self._baseline = target.call_count
        self._verifiable = False

    @property
    def mock(self) -> Mock[Any]:
        return self._mock

    @property
    def member(self) -> str:
        return self._member

    @property
    def is_verifiable(self) -> bool:
        return self._verifiable

    @property
    def invoked(self) -> int:
        """Number of calls the member received since the setup."""
        return max(self._target.call_count - self._baseline, 0)

    def verifiable(self) -> Self:
        """Mark the setup to be checked by `verify`."""
        self._verifiable = True
        return self

    def returns(self, value: Any) -> Self:
        self._target.side_effect = None
        self._target.return_value = value
        return self

    def raises(self, exc: BaseException | type[BaseException]) -> Self:
        self._target.side_effect = exc
        return self

    def __repr__(self) -> str:
        return f"{self._mock.name}.{self._member}()"


class Mock(Generic[T]):
    """A dynamic stand-in for `spec` with configurable expectations.

    The stand-in itself is available as `object`; it passes `isinstance`
    checks against `spec` and rejects calls that do not match the spec
    signatures. With strict behavior, calling a public method that has no
    setup raises `MockError`; with loose behavior it returns a default
    `MagicMock`.
    """

    def __init__(
        self,
        spec: type[T],
        *,
        behavior: MockBehavior | str = MockBehavior.LOOSE,
        name: str | None = None,
    ) -> None:
        self._spec = spec
        self._behavior = MockBehavior(behavior)
        self._name = name or getattr(spec, "__qualname__", type_repr(spec))
        self._object: Any = mock.create_autospec(spec, instance=True)
        self._setups: list[Setup] = []
        self._apply_behavior()

    @property
    def object(self) -> T:
        """The stand-in instance handed to consumers."""
        return self._object  # type: ignore[no-any-return]

    @property
    def spec(self) -> type[T]:
        return self._spec

    @property
    def behavior(self) -> MockBehavior:
        return self._behavior

    @property
    def name(self) -> str:
        return self._name

    @property
    def setups(self) -> tuple[Setup, ...]:
        return tuple(self._setups)

    def setup(
        self,
        member: str,
        *,
        return_value: Any = NOT_SET,
        side_effect: Any = NOT_SET,
    ) -> Setup:
        """Configure a method of the stand-in and record the expectation."""
        target = self._get_member(member)
        if not _is_method(self._spec, member):
            raise TypeError(
                f"The member `{self._name}.{member}` is not callable. "
                "Use `setup_property` for attributes and properties."
            )
        target.side_effect = None
        if return_value is not NOT_SET:
            target.return_value = return_value
        if side_effect is not NOT_SET:
            target.side_effect = side_effect
        setup = Setup(self, member, target)
        self._setups.append(setup)
        return setup

    def setup_property(self, name: str, value: Any) -> None:
        """Set an attribute or property value on the stand-in."""
        setattr(self._object, name, value)

    def unmet_setups(self, *, verifiable_only: bool = False) -> list[Setup]:
        return [
            setup
            for setup in self._setups
            if (setup.is_verifiable or not verifiable_only) and not setup.invoked
        ]

    def verify(self) -> None:
        """Check that every verifiable setup was invoked."""
        _raise_for_unmet(self.unmet_setups(verifiable_only=True))

    def verify_all(self) -> None:
        """Check that every setup was invoked."""
        _raise_for_unmet(self.unmet_setups())

    def reset(self) -> None:
        """Forget recorded calls and setups."""
        self._object.reset_mock(return_value=True, side_effect=True)
        self._setups.clear()
        self._apply_behavior()

    def _get_member(self, member: str) -> Any:
        try:
            return getattr(self._object, member)
        except AttributeError as exc:
            raise AttributeError(
                f"The mocked type `{self._name}` has no member `{member}`."
            ) from exc

    def _apply_behavior(self) -> None:
        if self._behavior is not MockBehavior.STRICT:
            return
        for member in _public_callables(self._spec):
            getattr(self._object, member).side_effect = self._strict_handler(member)

    def _strict_handler(self, member: str) -> Callable[..., Any]:
        def handler(*args: Any, **kwargs: Any) -> Any:
            raise MockError(
                f"{self._name}.{member}({_format_arguments(args, kwargs)}) "
                "invocation failed with strict mock behavior. All invocations "
                "on the mock must have a corresponding setup."
            )

        return handler

    def __repr__(self) -> str:
        return f"Mock[{self._name}](behavior={self._behavior.value})"


def _raise_for_unmet(unmet: list[Setup]) -> None:
    if not unmet:
        return
    details = "\n".join(f"  {setup!r}" for setup in unmet)
    raise MockError(f"The following setups were not matched:\n{details}")


class MockRepository:
    """Creates mocks with a shared behavior and verifies them together."""

    def __init__(self, behavior: MockBehavior | str = MockBehavior.LOOSE) -> None:
        self._behavior = MockBehavior(behavior)
        self._mocks: list[Mock[Any]] = []

    @property
    def behavior(self) -> MockBehavior:
        return self._behavior

    @property
    def mocks(self) -> tuple[Mock[Any], ...]:
        return tuple(self._mocks)

    def create(
        self,
        spec: type[T],
        *,
        behavior: MockBehavior | str | None = None,
        name: str | None = None,
    ) -> Mock[T]:
        """Create a tracked mock, using the repository behavior by default."""
        created = Mock(spec, behavior=behavior or self._behavior, name=name)
        self._mocks.append(created)
        logger.debug("Created %r.", created)
        return created

    def verify(self) -> None:
        """Check the verifiable setups of every tracked mock."""
        _raise_for_unmet(
            [
                setup
                for created in self._mocks
                for setup in created.unmet_setups(verifiable_only=True)
            ]
        )

    def verify_all(self) -> None:
        """Check every setup of every tracked mock."""
        _raise_for_unmet(
            [setup for created in self._mocks for setup in created.unmet_setups()]
        )
