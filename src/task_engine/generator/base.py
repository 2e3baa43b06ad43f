# base.py
# Backend-independent contract for chat and embedding generators.

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from task_engine.models import Invocation

if TYPE_CHECKING:
    from task_engine.state import SharedState


class ChatOptions(BaseModel):
    system_prompt: str
    prompt: str
    history: list[dict[str, str]] = Field(default_factory=list)
    native_tools: bool = Field(
        default=False,
        description="Expose the state actions as native tools instead of the textual format.",
    )


class ChatResponse(BaseModel):
    content: str = ""
    invocations: list[Invocation] = Field(default_factory=list)
    usage: dict[str, int] | None = None


class Embedder(ABC):
    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector of `text`."""


class Client(ABC):
    """
    A chat backend reachable at url:port serving `model_name`.

    Adapters compose by delegation: a thin adapter wraps a fuller client and
    forwards every call to it.
    """

    @abstractmethod
    def __init__(self, url: str, port: int, model_name: str, context_window: int) -> None: ...

    @abstractmethod
    async def check_native_tools_support(self) -> bool:
        """Whether the backend can return structured tool calls."""

    @abstractmethod
    async def chat(self, state: "SharedState", options: ChatOptions) -> ChatResponse:
        """Send the assembled conversation and return the model reply."""
