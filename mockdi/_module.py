from __future__ import annotations

import importlib
import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ._decorators import ProviderMetadata, get_provider_metadata

if TYPE_CHECKING:
    from ._container import Container


class ModuleMeta(type):
    """Collects `provider` methods, including those of base modules."""

    def __new__(mcs, name: str, bases: tuple[type, ...], attrs: dict[str, Any]) -> Any:
        providers: dict[str, ProviderMetadata] = {}
        for base in reversed(bases):
            providers.update(getattr(base, "providers", ()))
        for attr_name, value in attrs.items():
            metadata = get_provider_metadata(value)
            if metadata is not None:
                providers[attr_name] = metadata
        attrs["providers"] = list(providers.items())
        return super().__new__(mcs, name, bases, attrs)


class Module(metaclass=ModuleMeta):
    """Groups registrations applied to a container together.

    Override `configure` for imperative registrations, or decorate methods
    with `provider` to register their return types.
    """

    providers: list[tuple[str, ProviderMetadata]]

    def configure(self, container: Container) -> None:
        pass


ModuleDef = Module | type[Module] | Callable[["Container"], None] | str


class ModuleRegistrar:
    def __init__(self, container: Container) -> None:
        self._container = container

    def register(self, module: ModuleDef) -> None:
        """Apply a module given as a callable, a module type, an instance,
        or a dotted import path to any of these."""
        if isinstance(module, str):
            module = self.import_from_string(module)

        if inspect.isclass(module) and issubclass(module, Module):
            module = module()

        if isinstance(module, Module):
            self._apply(module)
        elif callable(module):
            module(self._container)
        else:
            raise TypeError(
                "The module must be a callable, a module type, or a module instance."
            )

    def _apply(self, module: Module) -> None:
        module.configure(self._container)
        for method_name, metadata in module.providers:
            self._container.provider(**metadata)(getattr(module, method_name))

    @staticmethod
    def import_from_string(dotted_path: str) -> Any:
        """Import the attribute a `package.module.attribute` path points to."""
        module_path, _, attribute_name = dotted_path.rpartition(".")
        try:
            return getattr(importlib.import_module(module_path), attribute_name)
        except (ImportError, AttributeError, ValueError) as exc:
            raise ImportError(f"Cannot import '{dotted_path}': {exc}") from exc
