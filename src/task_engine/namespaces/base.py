# base.py
# Action and Namespace contracts.
#
# Actions are stateless: all mutable effects go through the SharedState they
# receive in run(). Optional metadata lives in class attributes so a concrete
# action only overrides what it needs.

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from task_engine.errors import ActionError
from task_engine.storage import StorageDescriptor

if TYPE_CHECKING:
    from task_engine.state import SharedState


class Action(ABC):
    """A single invocable capability."""

    name: str = ""
    description: str = ""

    # Shown to the model as an example invocation.
    example_attributes: dict[str, str] | None = None
    example_payload: str | None = None

    # Task variables that must be defined before run() is called.
    required_variables: list[str] | None = None

    # Seconds. None means run to completion.
    timeout: float | None = None

    @abstractmethod
    async def run(
        self,
        state: "SharedState",
        attributes: dict[str, str] | None,
        payload: str | None,
    ) -> str | None:
        """Execute the action. Raise ActionError (or anything) on failure."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


@dataclass
class Namespace:
    """A named group of actions plus the storages they need."""

    name: str
    description: str
    actions: list[Action]
    storages: list[StorageDescriptor] | None = None
    default: bool = False

    @classmethod
    def non_default(
        cls,
        name: str,
        description: str,
        actions: list[Action],
        storages: list[StorageDescriptor] | None = None,
    ) -> "Namespace":
        return cls(name, description, actions, storages, default=False)

    def action_names(self) -> list[str]:
        return [action.name for action in self.actions]


# ---------------------------------------------------------------------------
# Argument helpers shared by the built-in actions
# ---------------------------------------------------------------------------


def require_payload(payload: str | None) -> str:
    if payload is None or not payload.strip():
        raise ActionError("no payload provided")
    return payload.strip()


def require_attribute(attributes: dict[str, str] | None, name: str) -> str:
    value = (attributes or {}).get(name)
    if value is None:
        raise ActionError(f"missing attribute '{name}'")
    return value


def parse_position(payload: str | None) -> int:
    """Parse a 1-based step position into a 0-based index."""
    raw = require_payload(payload)
    try:
        pos = int(raw)
    except ValueError as exc:
        raise ActionError(f"'{raw}' is not a valid step number") from exc
    if pos < 1:
        raise ActionError(f"step number must be positive, got {pos}")
    return pos - 1

