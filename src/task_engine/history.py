# history.py
# Append-only log of executed steps and its conversion to chat messages.

from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict

from task_engine.models import Invocation


class Execution(BaseModel):
    """
    Immutable record of one step.

    Exactly one of these shapes is produced:
      - invocation + result   (action succeeded, result may be None)
      - invocation + error    (action failed)
      - response + error      (reply could not be parsed)
    """

    model_config = ConfigDict(frozen=True)

    invocation: Invocation | None = None
    response: str | None = None
    result: str | None = None
    error: str | None = None

    @classmethod
    def with_result(cls, invocation: Invocation, result: str | None) -> "Execution":
        return cls(invocation=invocation, result=result)

    @classmethod
    def with_error(cls, invocation: Invocation, error: str) -> "Execution":
        return cls(invocation=invocation, error=error)

    @classmethod
    def with_unparsed_response(cls, response: str, error: str) -> "Execution":
        return cls(response=response, error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_messages(self) -> list[dict[str, str]]:
        """Assistant turn followed by the feedback the model gets for it."""
        if self.invocation is not None:
            agent = self.invocation.to_xml()
        else:
            agent = self.response or ""

        if self.error is not None:
            feedback = f"ERROR: {self.error}"
        elif self.result is not None:
            feedback = self.result
        else:
            feedback = "executed"

        return [
            {"role": "assistant", "content": agent},
            {"role": "user", "content": feedback},
        ]


class History:
    """Ordered sequence of executions. Insertion order is execution order."""

    def __init__(self) -> None:
        self._executions: list[Execution] = []

    def push(self, execution: Execution) -> None:
        self._executions.append(execution)

    def __len__(self) -> int:
        return len(self._executions)

    def __iter__(self) -> Iterator[Execution]:
        return iter(list(self._executions))

    def last(self) -> Execution | None:
        return self._executions[-1] if self._executions else None

    def to_chat_history(self, max: int) -> list[dict[str, str]]:
        """
        Render the most recent `max` executions, oldest of the window first.

        Pure: the history itself is never modified.
        """
        if max <= 0:
            return []

        messages: list[dict[str, str]] = []
        for execution in self._executions[-max:]:
            messages.extend(execution.to_messages())
        return messages

    def to_records(self) -> list[dict[str, Any]]:
        return [execution.model_dump(mode="json") for execution in self._executions]
