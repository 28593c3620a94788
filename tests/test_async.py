from collections.abc import AsyncIterator, Iterator

import pytest

from mockdi import Container

from tests.fixtures import AsyncResource, Resource, Service, UniqueId, coro

pytestmark = pytest.mark.anyio


@pytest.fixture
def container() -> Container:
    return Container()


async def test_aresolve_coroutine(container: Container) -> None:
    container.register(str, coro, scope="singleton")

    assert await container.aresolve(str) == "coro"


async def test_aresolve_sync_provider(container: Container) -> None:
    container.register(str, lambda: "ident", scope="singleton")
    container.register(Service, scope="transient")

    service = await container.aresolve(Service)

    assert service.ident == "ident"


async def test_aresolve_singleton(container: Container) -> None:
    container.register(UniqueId, scope="singleton")

    assert await container.aresolve(UniqueId) is await container.aresolve(UniqueId)


async def test_async_singleton_resource(container: Container) -> None:
    events: list[str] = []

    @container.provider(scope="singleton")
    async def message() -> AsyncIterator[str]:
        events.append("enter")
        yield "message"
        events.append("exit")

    async with container:
        assert events == ["enter"]
        assert await container.aresolve(str) == "message"

    assert events == ["enter", "exit"]


async def test_sync_resource_in_async_mode(container: Container) -> None:
    events: list[str] = []

    @container.provider(scope="singleton")
    def message() -> Iterator[str]:
        yield "message"
        events.append("exit")

    assert await container.aresolve(str) == "message"

    await container.aclose()

    assert events == ["exit"]


async def test_async_resource_in_sync_mode(container: Container) -> None:
    @container.provider(scope="singleton")
    async def message() -> AsyncIterator[str]:
        yield "message"

    with pytest.raises(TypeError, match="synchronous mode"):
        container.resolve(str)


async def test_async_context_manager_class(container: Container) -> None:
    container.register(AsyncResource, scope="singleton")
    container.register(Resource, scope="singleton")

    async_resource = await container.aresolve(AsyncResource)
    resource = await container.aresolve(Resource)

    assert async_resource.entered
    assert resource.entered

    await container.aclose()

    assert async_resource.exited
    assert resource.exited


async def test_arequest_context(container: Container) -> None:
    events: list[str] = []

    @container.provider(scope="request")
    async def lifespan() -> AsyncIterator[None]:
        events.append("start")
        yield
        events.append("stop")

    container.register(UniqueId, scope="request")

    async with container.arequest_context():
        assert events == ["start"]
        first = await container.aresolve(UniqueId)
        assert await container.aresolve(UniqueId) is first

    assert events == ["start", "stop"]


async def test_acreate_with_defaults(container: Container) -> None:
    service = await container.acreate(Service, ident="created")

    assert service.ident == "created"
