"""The dependency injection container behind `AutoMock`."""

from __future__ import annotations

import contextlib
import inspect
import logging
import types
import uuid
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Iterable, Iterator
from contextvars import ContextVar
from typing import Any, TypeVar, get_args, get_origin, overload

from typing_extensions import ParamSpec, Self, type_repr

from ._context import ScopeContext
from ._decorators import get_provided_scope, is_provided
from ._module import ModuleDef, ModuleRegistrar
from ._provider import Provider, ProviderDef, ProviderKind, ProviderParameter
from ._resolver import Resolver
from ._types import (
    NOT_SET,
    Event,
    Scope,
    is_concrete_class,
    is_event_type,
    is_iterator_type,
    is_none_type,
)

T = TypeVar("T", bound=Any)
P = ParamSpec("P")

RegistrationSource = Callable[[Any], "ProviderDef | None"]

# Scopes a provider of each scope may depend on
ALLOWED_SCOPES: dict[str, tuple[str, ...]] = {
    "singleton": ("singleton",),
    "request": ("request", "singleton"),
    "transient": ("transient", "request", "singleton"),
}


class Container:
    """A dependency injection container.

    An interface is looked up in this order:

    1. an explicit registration;
    2. a class marked with `provided`, registered with its scope;
    3. the registration sources, in the order they were added;
    4. unless the container is strict, a concrete class, registered with the
       scope of the provider that needs it (or `default_scope`).

    Anything else raises `LookupError`.
    """

    def __init__(
        self,
        *,
        providers: Iterable[ProviderDef] | None = None,
        modules: Iterable[ModuleDef] | None = None,
        sources: Iterable[RegistrationSource] | None = None,
        strict: bool = False,
        default_scope: Scope = "transient",
        logger: logging.Logger | None = None,
    ) -> None:
        _check_scope(default_scope, "default_scope")

        self._providers: dict[Any, Provider] = {}
        self._resources: dict[Scope, list[Any]] = defaultdict(list)
        self._sources = list(sources or ())
        self._strict = strict
        self._default_scope = default_scope
        self._logger = logger or logging.getLogger(__name__)
        self._singleton_context = ScopeContext("singleton")
        self._request_context_var: ContextVar[ScopeContext | None] = ContextVar(
            f"mockdi_request_context_{id(self)}", default=None
        )
        # Interfaces whose registration is in progress, outermost first
        self._registering: list[Any] = []

        self._resolver = Resolver(self)
        self._modules = ModuleRegistrar(self)

        self._register_provider(lambda: self, "singleton", Container)
        for definition in providers or ():
            self._register_provider(
                definition.call, definition.scope, definition.interface
            )
        for module in modules or ():
            self.register_module(module)

    @property
    def providers(self) -> dict[Any, Provider]:
        return self._providers

    @property
    def strict(self) -> bool:
        """Whether unregistered concrete classes are refused."""
        return self._strict

    @property
    def default_scope(self) -> Scope:
        """Scope of concrete classes registered for a top-level request."""
        return self._default_scope

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    # == Lifecycle ==

    def start(self) -> None:
        """Open the singleton resources."""
        for interface in self._resources["singleton"]:
            self.resolve(interface)

    def close(self) -> None:
        """Release the singletons and close their resources."""
        self.__exit__(None, None, None)

    async def astart(self) -> None:
        for interface in self._resources["singleton"]:
            await self.aresolve(interface)

    async def aclose(self) -> None:
        await self.__aexit__(None, None, None)

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> bool:
        self._logger.debug("Closing the singleton scope.")
        return self._singleton_context.__exit__(exc_type, exc_val, exc_tb)

    async def __aenter__(self) -> Self:
        await self.astart()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> bool:
        self._logger.debug("Closing the singleton scope.")
        return await self._singleton_context.__aexit__(exc_type, exc_val, exc_tb)

    @contextlib.contextmanager
    def request_context(self) -> Iterator[ScopeContext]:
        """Open a request scope, or join the one already open."""
        current = self._request_context_var.get()
        if current is not None:
            yield current
            return

        context = ScopeContext("request")
        token = self._request_context_var.set(context)
        try:
            with context:
                for interface in self._resources["request"]:
                    if is_event_type(interface):
                        self.resolve(interface)
                yield context
        finally:
            self._request_context_var.reset(token)

    @contextlib.asynccontextmanager
    async def arequest_context(self) -> AsyncIterator[ScopeContext]:
        """Open a request scope asynchronously, or join the one already open."""
        current = self._request_context_var.get()
        if current is not None:
            yield current
            return

        context = ScopeContext("request")
        token = self._request_context_var.set(context)
        try:
            async with context:
                for interface in self._resources["request"]:
                    if is_event_type(interface):
                        await self.aresolve(interface)
                yield context
        finally:
            self._request_context_var.reset(token)

    def _get_instance_context(self, scope: Scope) -> ScopeContext:
        if scope == "singleton":
            return self._singleton_context
        context = self._request_context_var.get()
        if context is None:
            raise LookupError(
                f"The {scope} context has not been started. Resolve `{scope}` "
                f"providers inside `{scope}_context()`."
            )
        return context

    # == Registration ==

    def register(
        self,
        interface: Any,
        call: Callable[..., Any] = NOT_SET,
        *,
        scope: Scope = "singleton",
        override: bool = False,
    ) -> Provider:
        """Register `call` as the provider of `interface`.

        Without `call`, the interface itself is built.
        """
        if call is NOT_SET:
            call = interface
        return self._register_provider(call, scope, interface, override)

    def provider(
        self, *, scope: Scope, override: bool = False
    ) -> Callable[[Callable[P, T]], Callable[P, T]]:
        """Register the decorated function under its return annotation."""

        def decorator(call: Callable[P, T]) -> Callable[P, T]:
            self._register_provider(call, scope, NOT_SET, override)
            return call

        return decorator

    def register_source(self, source: RegistrationSource) -> None:
        """Add a registration source consulted for unregistered interfaces.

        The source receives the requested interface and returns a provider
        definition for it, or ``None`` to let the next source decide.
        """
        self._sources.append(source)

    def register_module(self, module: ModuleDef) -> None:
        self._modules.register(module)

    def is_registered(self, interface: Any) -> bool:
        return interface in self._providers

    def has_provider_for(self, interface: Any) -> bool:
        """Check whether `interface` is registered or marked with `provided`."""
        return self.is_registered(interface) or is_provided(interface)

    def unregister(self, interface: Any) -> None:
        provider = self._get_registered(interface)
        self._forget_instance(provider)
        self._delete_provider(provider)

    def _register_provider(
        self,
        call: Callable[..., Any],
        scope: Scope,
        interface: Any = NOT_SET,
        override: bool = False,
        defaults: dict[str, Any] | None = None,
    ) -> Provider:
        name = type_repr(call)
        kind = ProviderKind.from_call(call)
        _check_scope(scope, name)
        if scope == "transient" and kind.is_resource:
            raise TypeError(
                f"The resource provider `{name}` cannot use the transient scope."
            )

        # Generic aliases are built through the alias but inspected via the origin
        target = (get_origin(call) or call) if kind is ProviderKind.CLASS else call
        signature = inspect.signature(target, eval_str=True)

        if interface is NOT_SET:
            interface = call if kind is ProviderKind.CLASS else _return_type(signature)
        interface = _unwrap_resource_type(interface, name)

        if interface in self._providers and not override:
            raise LookupError(
                f"The provider interface `{type_repr(interface)}` "
                "is already registered."
            )

        self._registering.append(interface)
        try:
            parameters = self._collect_parameters(
                name, scope, signature, defaults or {}
            )
        finally:
            self._registering.pop()

        provider = Provider(
            call=call,
            scope=scope,
            interface=interface,
            name=name,
            parameters=parameters,
            kind=kind,
        )
        self._set_provider(provider)
        self._logger.debug(
            "Registered `%s` for `%s` with `%s` scope.",
            name,
            type_repr(interface),
            scope,
        )
        return provider

    def _collect_parameters(
        self,
        name: str,
        scope: Scope,
        signature: inspect.Signature,
        defaults: dict[str, Any],
    ) -> tuple[ProviderParameter, ...]:
        """Check the parameters of a provider and register their types."""
        parameters: list[ProviderParameter] = []
        for parameter in signature.parameters.values():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue
            if parameter.kind is parameter.POSITIONAL_ONLY:
                raise TypeError(
                    f"The provider `{name}` has positional-only parameter "
                    f"`{parameter.name}`."
                )

            annotation = parameter.annotation
            has_default = parameter.default is not parameter.empty
            supplied = parameter.name in defaults
            entry = ProviderParameter(
                name=parameter.name,
                annotation=annotation,
                default=parameter.default if has_default else NOT_SET,
                has_default=has_default,
            )

            if annotation is parameter.empty:
                if has_default or supplied:
                    continue
                raise TypeError(
                    f"The provider `{name}` parameter `{parameter.name}` "
                    "has no annotation."
                )

            # Defaults win over anything that is not registered explicitly
            if (has_default or supplied) and not self.has_provider_for(annotation):
                if supplied and not has_default:
                    parameters.append(entry)
                continue

            try:
                dependency = self._get_or_register_provider(annotation, scope)
            except LookupError as exc:
                raise LookupError(
                    f"The provider `{name}` depends on `{parameter.name}` of type "
                    f"`{type_repr(annotation)}`, which cannot be provided."
                ) from exc

            if dependency.scope not in ALLOWED_SCOPES[scope]:
                raise ValueError(
                    f"The provider `{name}` with `{scope}` scope cannot depend on "
                    f"`{dependency.name}` with `{dependency.scope}` scope."
                )
            parameters.append(entry)
        return tuple(parameters)

    def _get_or_register_provider(
        self,
        interface: Any,
        parent_scope: Scope | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> Provider:
        """Get the provider of `interface`, registering one if a rule applies."""
        provider = self._providers.get(interface)
        if provider is not None:
            return provider

        if interface in self._registering:
            chain = " -> ".join(map(type_repr, [*self._registering, interface]))
            raise LookupError(
                f"Circular dependency detected while registering "
                f"`{type_repr(interface)}`: {chain}."
            )

        scope = get_provided_scope(interface)
        if scope is not None:
            return self._register_provider(interface, scope, NOT_SET, False, defaults)

        for source in self._sources:
            definition = source(interface)
            if definition is None:
                continue
            self._logger.debug(
                "Registration source `%s` supplied `%s`.",
                type_repr(source),
                type_repr(interface),
            )
            if definition.interface is not NOT_SET:
                interface = definition.interface
            return self._register_provider(
                definition.call, definition.scope, interface, False, defaults
            )

        if not self._strict and is_concrete_class(interface):
            scope = parent_scope or self._default_scope
            self._logger.debug(
                "Registering `%s` automatically with `%s` scope.",
                type_repr(interface),
                scope,
            )
            return self._register_provider(interface, scope, interface, False, defaults)

        raise LookupError(
            f"No provider for `{type_repr(interface)}`: it is not registered and "
            "no registration rule applies to it."
        )

    def _get_registered(self, interface: Any) -> Provider:
        try:
            return self._providers[interface]
        except KeyError:
            raise LookupError(
                f"The provider interface `{type_repr(interface)}` is not registered."
            ) from None

    def _set_provider(self, provider: Provider) -> None:
        replaced = self._providers.get(provider.interface)
        if replaced is not None:
            self._forget_instance(replaced)
            self._delete_provider(replaced)
        self._providers[provider.interface] = provider
        if provider.is_resource:
            self._resources[provider.scope].append(provider.interface)

    def _delete_provider(self, provider: Provider) -> None:
        del self._providers[provider.interface]
        if provider.is_resource:
            self._resources[provider.scope].remove(provider.interface)

    def _forget_instance(self, provider: Provider) -> None:
        if provider.scope == "transient":
            return
        with contextlib.suppress(LookupError):
            self._get_instance_context(provider.scope).forget(provider.interface)

    # == Resolution ==

    @overload
    def resolve(self, interface: type[T]) -> T: ...

    @overload
    def resolve(self, interface: T) -> T: ...  # type: ignore

    def resolve(self, interface: type[T]) -> T:
        """Get the instance of `interface`, reusing the one cached in its scope."""
        provider = self._get_or_register_provider(interface)
        return self._resolver.resolve(provider)  # type: ignore[no-any-return]

    @overload
    async def aresolve(self, interface: type[T]) -> T: ...

    @overload
    async def aresolve(self, interface: T) -> T: ...

    async def aresolve(self, interface: type[T]) -> T:
        provider = self._get_or_register_provider(interface)
        return await self._resolver.aresolve(provider)  # type: ignore[no-any-return]

    def create(self, interface: type[T], /, **defaults: Any) -> T:
        """Build a new instance of `interface` without caching it.

        Keyword arguments are passed to the provider in place of resolved
        dependencies.
        """
        provider = self._get_or_register_provider(interface, None, defaults)
        return self._resolver.create(provider, defaults)  # type: ignore[no-any-return]

    async def acreate(self, interface: type[T], /, **defaults: Any) -> T:
        provider = self._get_or_register_provider(interface, None, defaults)
        instance = await self._resolver.acreate(provider, defaults)
        return instance  # type: ignore[no-any-return]

    def is_resolved(self, interface: Any) -> bool:
        """Check whether an instance of `interface` is cached in its scope."""
        provider = self._providers.get(interface)
        if provider is None or provider.scope == "transient":
            return False
        try:
            return interface in self._get_instance_context(provider.scope)
        except LookupError:
            return False

    def release(self, interface: Any) -> None:
        """Drop the cached instance of `interface`."""
        self._forget_instance(self._get_registered(interface))

    def reset(self) -> None:
        """Drop every cached instance."""
        for provider in self._providers.values():
            self._forget_instance(provider)

    @contextlib.contextmanager
    def override(self, interface: Any, instance: Any) -> Iterator[None]:
        """Resolve `interface` to `instance` inside the block."""
        if not self.has_provider_for(interface):
            raise LookupError(
                f"The provider interface `{type_repr(interface)}` is not registered."
            )
        self._resolver.add_override(interface, instance)
        try:
            yield
        finally:
            self._resolver.remove_override(interface)


def _check_scope(scope: Any, name: str) -> None:
    if scope not in ALLOWED_SCOPES:
        raise ValueError(
            f"Unsupported scope `{scope}` for `{name}`; "
            f"expected one of: {', '.join(ALLOWED_SCOPES)}."
        )


def _return_type(signature: inspect.Signature) -> Any:
    if signature.return_annotation is inspect.Signature.empty:
        return None
    return signature.return_annotation


def _unwrap_resource_type(interface: Any, name: str) -> Any:
    """Get the type a resource provider yields; `None` yields become events."""
    if is_iterator_type(interface) or is_iterator_type(get_origin(interface)):
        args = get_args(interface)
        if not args:
            raise TypeError(
                f"The resource provider `{name}` return annotation "
                "needs a type argument."
            )
        interface = args[0]
        if is_none_type(interface):
            return type(f"Event_{uuid.uuid4().hex}", (Event,), {})
    if is_none_type(interface):
        raise TypeError(f"The provider `{name}` has no return annotation.")
    return interface
