# registry.py
# Namespace registry: namespace name -> zero-argument factory.
#
# Built once at process start and passed explicitly to State. Factories
# produce a fresh Namespace on every call so runs never share action
# instances or storage descriptors.

from typing import Callable, Iterator

from task_engine.errors import NamespaceNotFoundError
from task_engine.namespaces.base import Namespace

NamespaceFactory = Callable[[], Namespace]


class NamespaceRegistry:
    """Ordered, name-keyed catalog of namespace factories."""

    def __init__(self, factories: dict[str, NamespaceFactory] | None = None) -> None:
        self._factories: dict[str, NamespaceFactory] = {}
        for name, factory in (factories or {}).items():
            self.register(name, factory)

    def register(self, name: str, factory: NamespaceFactory) -> None:
        if name in self._factories:
            raise ValueError(f"namespace '{name}' already registered")
        self._factories[name] = factory

    def build(self, name: str) -> Namespace:
        factory = self._factories.get(name)
        if factory is None:
            raise NamespaceNotFoundError(name)
        return factory()

    def defaults(self) -> list[Namespace]:
        """Fresh instances of every namespace flagged default, in registration order."""
        namespaces = []
        for factory in self._factories.values():
            namespace = factory()
            if namespace.default:
                namespaces.append(namespace)
        return namespaces

    def names(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._factories))

    def __len__(self) -> int:
        return len(self._factories)
