# namespaces
# Built-in namespaces and the registry that exposes them.

from task_engine.namespaces import clock, goal, http, memory, planning, rag, task
from task_engine.namespaces.base import Action, Namespace
from task_engine.namespaces.registry import NamespaceFactory, NamespaceRegistry

RAG_NAMESPACE = "rag"

BUILTIN_NAMESPACES: dict[str, NamespaceFactory] = {
    "memory": memory.get_namespace,
    "goal": goal.get_namespace,
    "planning": planning.get_namespace,
    "task": task.get_namespace,
    "time": clock.get_namespace,
    "http": http.get_namespace,
    RAG_NAMESPACE: rag.get_namespace,
}


def default_registry() -> NamespaceRegistry:
    """A registry holding every built-in namespace."""
    return NamespaceRegistry(BUILTIN_NAMESPACES)


__all__ = [
    "Action",
    "BUILTIN_NAMESPACES",
    "Namespace",
    "NamespaceFactory",
    "NamespaceRegistry",
    "RAG_NAMESPACE",
    "default_registry",
]
