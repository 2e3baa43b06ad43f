# task.py
# The task collaborator: what the agent is asked to do and with which
# namespaces. State owns the task and never mutates it.

from abc import ABC, abstractmethod

from task_engine.namespaces import Namespace
from task_engine.rag import RagConfig

WILDCARD = "*"


class Task(ABC):
    @abstractmethod
    def to_prompt(self) -> str:
        """The initial prompt describing the task."""

    def namespaces(self) -> list[str] | None:
        """
        Namespace names to enable, or None for every default namespace.

        The "*" entry stands for every default namespace.
        """
        return None

    def get_functions(self) -> list[Namespace]:
        """Extra task specific namespaces."""
        return []

    def get_rag_config(self) -> RagConfig | None:
        return None

    def guidance(self) -> list[str]:
        return []


class PromptTask(Task):
    """A task defined directly from a prompt string."""

    def __init__(
        self,
        prompt: str,
        using: list[str] | None = None,
        functions: list[Namespace] | None = None,
        rag: RagConfig | None = None,
        guidance: list[str] | None = None,
    ) -> None:
        if not prompt or not prompt.strip():
            raise ValueError("task prompt can't be empty")
        self._prompt = prompt
        self._using = using
        self._functions = functions or []
        self._rag = rag
        self._guidance = guidance or []

    def to_prompt(self) -> str:
        return self._prompt

    def namespaces(self) -> list[str] | None:
        return list(self._using) if self._using is not None else None

    def get_functions(self) -> list[Namespace]:
        return list(self._functions)

    def get_rag_config(self) -> RagConfig | None:
        return self._rag

    def guidance(self) -> list[str]:
        return list(self._guidance)
