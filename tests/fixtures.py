import abc
import uuid
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field
from typing import Annotated, Generic, Protocol, TypeVar

from mockdi import Container, Module, provider

T = TypeVar("T")


def func() -> str:
    return "func"


class Class:
    pass


def generator() -> Iterator[str]:
    yield "generator"


async def async_generator() -> AsyncIterator[str]:
    yield "async_generator"


async def coro() -> str:
    return "coro"


def event() -> Iterator[None]:
    yield


async def async_event() -> AsyncIterator[None]:
    yield


@dataclass(frozen=True)
class UniqueId:
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class Service:
    def __init__(self, ident: str) -> None:
        self.ident = ident
        self.events: list[str] = []


class Resource:
    def __init__(self) -> None:
        self.entered = False
        self.exited = False

    def __enter__(self) -> "Resource":
        self.entered = True
        return self

    def __exit__(self, *args: object) -> None:
        self.exited = True


class AsyncResource:
    def __init__(self) -> None:
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> "AsyncResource":
        self.entered = True
        return self

    async def __aexit__(self, *args: object) -> None:
        self.exited = True


class MessagesModule(Module):
    def configure(self, container: Container) -> None:
        container.register(
            Annotated[str, "msg1"], lambda: "Message 1", scope="singleton"
        )

    @provider(scope="singleton")
    def provide_msg2(self) -> Annotated[str, "msg2"]:
        return "Message 2"


# Collaborators for auto-mocking


class ServiceA(abc.ABC):
    @abc.abstractmethod
    def run_a(self) -> None: ...


class ServiceB(abc.ABC):
    @abc.abstractmethod
    def run_b(self) -> None: ...


class Clock(Protocol):
    def now(self) -> float: ...


class Repository(abc.ABC):
    @abc.abstractmethod
    def get(self, key: str) -> str: ...

    @abc.abstractmethod
    async def fetch(self, key: str) -> str: ...

    @property
    def name(self) -> str:
        return "repository"


class Disposable(abc.ABC):
    @abc.abstractmethod
    def close(self) -> None: ...


class ServiceAImpl(ServiceA):
    def __init__(self) -> None:
        self.calls = 0

    def run_a(self) -> None:
        self.calls += 1


class AbstractClassA(abc.ABC):
    @abc.abstractmethod
    def value(self) -> int: ...


class ClassA(AbstractClassA):
    def value(self) -> int:
        return 1


class Component:
    def __init__(self, service_a: ServiceA, service_b: ServiceB) -> None:
        self.service_a = service_a
        self.service_b = service_b

    def run_all(self) -> None:
        self.service_a.run_a()
        self.service_b.run_b()


class ComponentRequiringAbstractClassA:
    def __init__(self, instance: AbstractClassA) -> None:
        self.instance = instance


class ComponentRequiringClassA:
    def __init__(self, instance: ClassA) -> None:
        self.instance = instance


class ConcreteWithoutDefaultConstructor:
    def __init__(self, dependency: ClassA) -> None:
        self.dependency = dependency


class ConsumesConcreteWithoutDefaultConstructor:
    def __init__(self, dependency: ConcreteWithoutDefaultConstructor) -> None:
        self.dependency = dependency


class ConsumesDisposable:
    def __init__(self, disposable: Disposable) -> None:
        self.disposable = disposable


class GenericClassA(Generic[T]):
    def __init__(self, dependency: ClassA) -> None:
        self.dependency = dependency


class Scheduler:
    def __init__(self, clock: Clock, repository: Repository) -> None:
        self.clock = clock
        self.repository = repository

    def describe(self, key: str) -> str:
        return f"{self.repository.get(key)}@{self.clock.now()}"

    async def adescribe(self, key: str) -> str:
        return f"{await self.repository.fetch(key)}@{self.clock.now()}"


class Store(Protocol[T]):
    def get(self) -> T: ...


class AbstractStore(abc.ABC, Generic[T]):
    @abc.abstractmethod
    def get(self) -> T: ...


class UsesStore:
    def __init__(self, store: Store[int]) -> None:
        self.store = store


class UsesAbstractStore:
    def __init__(self, store: AbstractStore[int]) -> None:
        self.store = store


class Marker(abc.ABC):
    pass


class MarkerImpl(Marker):
    pass


class UsesMarker:
    def __init__(self, marker: Marker) -> None:
        self.marker = marker
