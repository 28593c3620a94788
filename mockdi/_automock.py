"""Auto-mocking container for unit tests."""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar, get_origin

from typing_extensions import Self, type_repr

from ._container import Container
from ._mock import Mock, MockBehavior, MockRepository
from ._module import ModuleDef
from ._provider import ProviderDef
from ._types import NOT_SET, Scope, is_interface

T = TypeVar("T")


class AutoMock:
    """A container that fills unregistered interfaces with mocks.

    Components are built by the underlying container. Registered and concrete
    dependencies are resolved normally; every abstract class or protocol
    without a registration is replaced by a mock from the repository. The
    mock is cached per interface, so the instance injected into components
    is the one returned by `mock(interface).object`.

    Usage::

        with AutoMock.get_strict() as auto:
            auto.mock(Clock).setup("now", return_value=NOON)
            service = auto.create(Scheduler)
            service.run()

    Leaving the block verifies the mocks and closes the container.
    """

    def __init__(
        self,
        *,
        repository: MockRepository | None = None,
        behavior: MockBehavior | str = MockBehavior.LOOSE,
        verify_all: bool = False,
        providers: Iterable[ProviderDef] | None = None,
        modules: Iterable[ModuleDef] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._repository = repository or MockRepository(behavior)
        self._verify_all = verify_all
        self._logger = logger or logging.getLogger(__name__)
        self._mocks: dict[Any, Mock[Any]] = {}
        self._factories: dict[Any, Callable[[], Any]] = {}

        self._container = Container(
            providers=[
                ProviderDef(call=lambda: self, scope="singleton", interface=AutoMock),
                *(providers or []),
            ],
            modules=modules,
            sources=[self._mock_source],
            logger=self._logger,
        )

    @classmethod
    def get_loose(cls, *modules: ModuleDef, **kwargs: Any) -> Self:
        """Create an auto-mock whose mocks answer any call."""
        return cls(behavior=MockBehavior.LOOSE, modules=modules, **kwargs)

    @classmethod
    def get_strict(cls, *modules: ModuleDef, **kwargs: Any) -> Self:
        """Create an auto-mock whose mocks reject calls without a setup."""
        return cls(behavior=MockBehavior.STRICT, modules=modules, **kwargs)

    @classmethod
    def get_from_repository(
        cls, repository: MockRepository, *modules: ModuleDef, **kwargs: Any
    ) -> Self:
        """Create an auto-mock that builds its mocks with `repository`."""
        return cls(repository=repository, modules=modules, **kwargs)

    # == Properties ==

    @property
    def container(self) -> Container:
        return self._container

    @property
    def repository(self) -> MockRepository:
        return self._repository

    @property
    def behavior(self) -> MockBehavior:
        return self._repository.behavior

    @property
    def verify_all(self) -> bool:
        """Whether closing checks every setup instead of verifiable ones only."""
        return self._verify_all

    @verify_all.setter
    def verify_all(self, value: bool) -> None:
        self._verify_all = value

    @property
    def mocks(self) -> Mapping[Any, Mock[Any]]:
        """The mocks synthesized so far, by interface."""
        return types.MappingProxyType(self._mocks)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    # == Components ==

    def create(self, interface: type[T], /, **defaults: Any) -> T:
        """Build `interface` with its dependencies filled in.

        Keyword arguments replace the matching constructor parameters and
        force a new instance to be built.
        """
        if defaults:
            return self._container.create(interface, **defaults)
        return self._container.resolve(interface)

    async def acreate(self, interface: type[T], /, **defaults: Any) -> T:
        """Build `interface` asynchronously."""
        if defaults:
            return await self._container.acreate(interface, **defaults)
        return await self._container.aresolve(interface)

    def mock(self, interface: type[T]) -> Mock[T]:
        """Get the mock for `interface`, creating it on first use.

        The interface is bound to the returned mock, replacing any registration
        it already had, so consumers built afterwards receive the mock.
        Instances cached before the call are not rebuilt.
        """
        mocked = self._mocks.get(interface)
        if mocked is None:
            mocked = self._create_mock(interface)
        if not self.is_mocked(interface):
            if self._container.is_registered(interface):
                self._logger.debug(
                    "Replacing the registration of `%s` with its mock.",
                    type_repr(interface),
                )
            self._container.register(
                interface,
                self._mock_factory(interface, mocked),
                scope="singleton",
                override=True,
            )
        return mocked

    def provide(self, interface: type[T], instance: T) -> T:
        """Bind `interface` to an existing instance."""
        self._container.register(
            interface, lambda: instance, scope="singleton", override=True
        )
        return instance

    def provide_type(
        self,
        interface: type[T],
        implementation: Callable[..., T] = NOT_SET,
        *,
        scope: Scope = "singleton",
    ) -> T:
        """Bind `interface` to an implementation type and return its instance."""
        if implementation is NOT_SET:
            implementation = interface
        self._container.register(
            interface, implementation, scope=scope, override=True
        )
        return self._container.resolve(interface)

    def _create_mock(self, interface: Any) -> Mock[Any]:
        spec = get_origin(interface) or interface
        if not inspect.isclass(spec):
            raise TypeError(
                f"Cannot mock `{type_repr(interface)}`: only classes can be mocked."
            )
        mocked = self._repository.create(spec)
        self._mocks[interface] = mocked
        self._logger.debug(
            "Synthesized %s mock for `%s`.",
            mocked.behavior.value,
            type_repr(interface),
        )
        return mocked

    def _mock_source(self, interface: Any) -> ProviderDef | None:
        if not is_interface(interface):
            return None
        mocked = self._mocks.get(interface) or self._create_mock(interface)
        factory = self._mock_factory(interface, mocked)
        return ProviderDef(call=factory, scope="singleton")

    def _mock_factory(self, interface: Any, mocked: Mock[Any]) -> Callable[[], Any]:
        def provide_mock() -> Any:
            return mocked.object

        self._factories[interface] = provide_mock
        return provide_mock

    def is_mocked(self, interface: Any) -> bool:
        """Check whether `interface` is currently bound to its mock."""
        provider = self._container.providers.get(interface)
        return provider is not None and provider.call is self._factories.get(interface)

    # == Verification & Lifecycle ==

    def verify(self) -> None:
        """Verify the repository mocks according to `verify_all`."""
        self._logger.debug("Verifying %d mock(s).", len(self._repository.mocks))
        if self._verify_all:
            self._repository.verify_all()
        else:
            self._repository.verify()

    def close(self) -> None:
        """Verify the mocks, then close the container."""
        try:
            self.verify()
        finally:
            self._container.close()

    async def aclose(self) -> None:
        """Verify the mocks, then close the container asynchronously."""
        try:
            self.verify()
        finally:
            await self._container.aclose()

    def __enter__(self) -> Self:
        self._container.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> bool:
        if exc_type is None:
            self.close()
            return False
        return self._container.__exit__(exc_type, exc_val, exc_tb)

    async def __aenter__(self) -> Self:
        await self._container.astart()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> bool:
        if exc_type is None:
            await self.aclose()
            return False
        return await self._container.__aexit__(exc_type, exc_val, exc_tb)
