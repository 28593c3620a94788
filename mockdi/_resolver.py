"""Instance creation for registered providers."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

from ._context import ScopeContext
from ._provider import Provider
from ._types import NOT_SET, is_async_context_manager, is_context_manager

if TYPE_CHECKING:
    from ._container import Container


class Resolver:
    """Builds instances for providers and caches them by scope."""

    def __init__(self, container: Container) -> None:
        self._container = container
        self._override_instances: dict[Any, Any] = {}

    # == Overrides ==

    def add_override(self, interface: Any, instance: Any) -> None:
        """Add an override instance for an interface."""
        self._override_instances[interface] = instance

    def remove_override(self, interface: Any) -> None:
        """Remove an override instance for an interface."""
        self._override_instances.pop(interface, None)

    def get_override(self, interface: Any) -> Any:
        return self._override_instances.get(interface, NOT_SET)

    # == Sync Resolution ==

    def resolve(self, provider: Provider) -> Any:
        """Get the instance for the provider, creating it if necessary."""
        override = self.get_override(provider.interface)
        if override is not NOT_SET:
            return override

        if provider.scope == "transient":
            return self._create_instance(provider, None, None)

        context = self._container._get_instance_context(provider.scope)
        instance = context.get(provider.interface)
        if instance is not NOT_SET:
            return instance

        with context.lock():
            instance = context.get(provider.interface)
            if instance is NOT_SET:
                instance = self._create_instance(provider, context, None)
                context.set(provider.interface, instance)
        return instance

    def create(self, provider: Provider, defaults: dict[str, Any] | None) -> Any:
        """Create a new instance for the provider without caching it."""
        context = None
        if provider.scope != "transient":
            context = self._container._get_instance_context(provider.scope)
        return self._create_instance(provider, context, defaults)

    def _create_instance(
        self,
        provider: Provider,
        context: ScopeContext | None,
        defaults: dict[str, Any] | None,
    ) -> Any:
        if provider.is_async:
            raise TypeError(
                f"The instance for the provider `{provider.name}` cannot be "
                "created in synchronous mode."
            )

        kwargs = self._get_arguments(provider, defaults)

        if provider.is_generator:
            if context is None:
                raise TypeError(
                    f"The resource provider `{provider.name}` requires "
                    "a scoped context."
                )
            cm = contextlib.contextmanager(provider.call)(**kwargs)
            return context.enter(cm)

        instance = provider.call(**kwargs)
        if context is not None and provider.is_class and is_context_manager(instance):
            context.enter(instance)
        return instance

    def _get_arguments(
        self, provider: Provider, defaults: dict[str, Any] | None
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = dict(defaults or {})
        for parameter in provider.parameters:
            if parameter.name in kwargs:
                continue
            sub_provider = self._container._get_or_register_provider(
                parameter.annotation
            )
            kwargs[parameter.name] = self.resolve(sub_provider)
        return kwargs

    # == Async Resolution ==

    async def aresolve(self, provider: Provider) -> Any:
        """Get the instance for the provider asynchronously."""
        override = self.get_override(provider.interface)
        if override is not NOT_SET:
            return override

        if provider.scope == "transient":
            return await self._acreate_instance(provider, None, None)

        context = self._container._get_instance_context(provider.scope)
        instance = context.get(provider.interface)
        if instance is not NOT_SET:
            return instance

        async with context.alock():
            instance = context.get(provider.interface)
            if instance is NOT_SET:
                instance = await self._acreate_instance(provider, context, None)
                context.set(provider.interface, instance)
        return instance

    async def acreate(
        self, provider: Provider, defaults: dict[str, Any] | None
    ) -> Any:
        """Create a new instance for the provider asynchronously."""
        context = None
        if provider.scope != "transient":
            context = self._container._get_instance_context(provider.scope)
        return await self._acreate_instance(provider, context, defaults)

    async def _acreate_instance(
        self,
        provider: Provider,
        context: ScopeContext | None,
        defaults: dict[str, Any] | None,
    ) -> Any:
        kwargs = await self._aget_arguments(provider, defaults)

        if provider.is_coroutine:
            return await provider.call(**kwargs)

        if provider.is_resource:
            if context is None:
                raise TypeError(
                    f"The resource provider `{provider.name}` requires "
                    "a scoped context."
                )
            if provider.is_async_generator:
                acm = contextlib.asynccontextmanager(provider.call)(**kwargs)
                return await context.aenter(acm)
            cm = contextlib.contextmanager(provider.call)(**kwargs)
            return context.enter(cm)

        instance = provider.call(**kwargs)
        if context is not None and provider.is_class:
            if is_async_context_manager(instance):
                await context.aenter(instance)
            elif is_context_manager(instance):
                context.enter(instance)
        return instance

    async def _aget_arguments(
        self, provider: Provider, defaults: dict[str, Any] | None
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = dict(defaults or {})
        for parameter in provider.parameters:
            if parameter.name in kwargs:
                continue
            sub_provider = self._container._get_or_register_provider(
                parameter.annotation
            )
            kwargs[parameter.name] = await self.aresolve(sub_provider)
        return kwargs
