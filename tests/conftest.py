import pytest

from task_engine.events import EventChannel
from task_engine.generator.base import Embedder
from task_engine.namespaces import Namespace, NamespaceRegistry, default_registry
from task_engine.state import SharedState, State
from task_engine.task import PromptTask


@pytest.fixture
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture
def registry() -> NamespaceRegistry:
    return default_registry()


@pytest.fixture
def make_state(channel, registry):
    async def _make(
        prompt: str = "find the flag",
        using: list[str] | None = None,
        functions: list[Namespace] | None = None,
        max_iterations: int = 0,
        variables: dict[str, str] | None = None,
        rag=None,
        embedder: Embedder | None = None,
    ) -> State:
        task = PromptTask(prompt, using=using, functions=functions, rag=rag)
        return await State.create(
            channel,
            task,
            embedder,
            max_iterations,
            registry=registry,
            variables=variables,
        )

    return _make


@pytest.fixture
def make_shared(make_state):
    async def _make(**kwargs) -> SharedState:
        return SharedState(await make_state(**kwargs))

    return _make
