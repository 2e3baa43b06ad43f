# state.py
# The execution context of one run.
#
# State holds no lock of its own: every reader and writer goes through
# SharedState.lock(), which serialises access across the step loop and the
# actions it runs. One lock scope bounds exactly one critical section, so
# never await a slow call that does not need the state while holding it.

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from task_engine.errors import MaxStepsReachedError, NoRagEngineError, StorageNotFoundError
from task_engine.events import Event, EventChannel, TaskComplete
from task_engine.generator.base import Embedder
from task_engine.history import Execution, History
from task_engine.models import Invocation, Metrics
from task_engine.namespaces import RAG_NAMESPACE, Action, Namespace, NamespaceRegistry, default_registry
from task_engine.rag import Document, VectorStore
from task_engine.storage import Storage
from task_engine.task import WILDCARD, Task

logger = structlog.get_logger()

GOAL_STORAGE = "goal"


def resolve_namespaces(task: Task, registry: NamespaceRegistry) -> list[Namespace]:
    """
    Build the namespaces requested by the task.

    "*" expands to every default namespace. Explicit names are appended after
    the expansion, so naming a default namespace next to "*" adds it twice.
    """
    using = task.namespaces()
    if using is None:
        return registry.defaults()

    using = list(using)
    namespaces: list[Namespace] = []

    if WILDCARD in using:
        using.remove(WILDCARD)
        namespaces.extend(registry.defaults())

    for name in using:
        namespaces.append(registry.build(name))

    return namespaces


class State:
    """Single source of truth for one agent run."""

    def __init__(
        self,
        events: EventChannel,
        task: Task,
        namespaces: list[Namespace],
        storages: dict[str, Storage],
        metrics: Metrics,
        rag: VectorStore | None = None,
        variables: dict[str, str] | None = None,
    ) -> None:
        self._events = events
        self._task = task
        self._namespaces = namespaces
        self._storages = storages
        self._history = History()
        self._rag = rag
        self._complete = False
        self._variables = dict(variables or {})
        self.metrics = metrics

    @classmethod
    async def create(
        cls,
        events: EventChannel,
        task: Task,
        embedder: Embedder | None,
        max_iterations: int,
        registry: NamespaceRegistry | None = None,
        variables: dict[str, str] | None = None,
    ) -> "State":
        registry = registry if registry is not None else default_registry()

        namespaces = resolve_namespaces(task, registry)

        rag = None
        rag_config = task.get_rag_config()
        if rag_config is not None:
            if embedder is None:
                raise ValueError("the task requires RAG but no embedder was provided")
            rag = VectorStore(embedder, rag_config)
            await rag.import_new_documents()
            namespaces.append(registry.build(RAG_NAMESPACE))

        namespaces.extend(task.get_functions())

        storages: dict[str, Storage] = {}
        for namespace in namespaces:
            for descriptor in namespace.storages or []:
                if descriptor.name not in storages:
                    storages[descriptor.name] = Storage(
                        descriptor.name,
                        descriptor.type,
                        events,
                        descriptor.predefined,
                    )

        if (goal := storages.get(GOAL_STORAGE)) is not None:
            goal.set_current(task.to_prompt())

        state = cls(
            events,
            task,
            namespaces,
            storages,
            Metrics(max_steps=max_iterations),
            rag=rag,
            variables=variables,
        )
        logger.debug(
            "state_created",
            namespaces=state.used_namespaces(),
            storages=list(storages),
            max_steps=max_iterations,
        )
        return state

    # ------------------------------------------------------------------
    # Step accounting
    # ------------------------------------------------------------------

    def on_step(self) -> None:
        """Advance the step counter. Raises once a positive budget is reached."""
        self.metrics.current_step += 1
        if self.metrics.max_steps > 0 and self.metrics.current_step >= self.metrics.max_steps:
            raise MaxStepsReachedError()

    def is_complete(self) -> bool:
        return self._complete

    def on_complete(self, impossible: bool, reason: str | None) -> None:
        self._complete = True
        self.on_event(TaskComplete(impossible=impossible, reason=reason))

    def on_event(self, event: Event) -> None:
        self._events.send(event)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def get_rag(self) -> VectorStore:
        """The task's vector store. Query it after releasing the lock."""
        if self._rag is None:
            raise NoRagEngineError()
        return self._rag

    async def rag_query(self, query: str, top_k: int) -> list[tuple[Document, float]]:
        return await self.get_rag().retrieve(query, top_k)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def to_chat_history(self, max: int) -> list[dict[str, str]]:
        return self._history.to_chat_history(max)

    def get_history(self) -> History:
        return self._history

    def add_success_to_history(self, invocation: Invocation, result: str | None) -> None:
        self._history.push(Execution.with_result(invocation, result))

    def add_error_to_history(self, invocation: Invocation, error: str) -> None:
        self._history.push(Execution.with_error(invocation, error))

    def add_unparsed_response_to_history(self, response: str, error: str) -> None:
        self._history.push(Execution.with_unparsed_response(response, error))

    # ------------------------------------------------------------------
    # Task, namespaces, storages
    # ------------------------------------------------------------------

    def get_task(self) -> Task:
        return self._task

    def to_prompt(self) -> str:
        return self._task.to_prompt()

    def get_variable(self, name: str) -> str | None:
        return self._variables.get(name)

    def get_namespaces(self) -> list[Namespace]:
        return self._namespaces

    def used_namespaces(self) -> list[str]:
        return [namespace.name for namespace in self._namespaces]

    def get_action(self, name: str) -> Action | None:
        """First action with this name, scanning namespaces in order."""
        for namespace in self._namespaces:
            for action in namespace.actions:
                if action.name == name:
                    return action
        return None

    def get_storages(self) -> list[Storage]:
        return list(self._storages.values())

    def get_storage(self, name: str) -> Storage:
        storage = self._storages.get(name)
        if storage is None:
            raise StorageNotFoundError(name)
        return storage

    def get_storage_mut(self, name: str) -> Storage:
        # Same object as get_storage; kept separate so call sites state intent.
        return self.get_storage(name)


class SharedState:
    """A State shared between the step loop and actions, behind one asyncio.Lock."""

    def __init__(self, state: State) -> None:
        self._state = state
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def lock(self) -> AsyncIterator[State]:
        async with self._lock:
            yield self._state

    def locked(self) -> bool:
        return self._lock.locked()
