# errors.py
# Exception hierarchy for the task engine.
#
# Only configuration errors and MaxStepsReachedError are allowed to escape
# Agent.step(). Everything raised by an action or by reply parsing is caught
# by the dispatcher and recorded into the history instead.


class TaskEngineError(Exception):
    """Base class for every error raised by the engine."""


# ---------------------------------------------------------------------------
# Configuration time
# ---------------------------------------------------------------------------


class NamespaceNotFoundError(TaskEngineError):
    """Raised when a task requests a namespace the registry does not define."""

    def __init__(self, name: str) -> None:
        super().__init__(f"no namespace '{name}' defined")
        self.name = name


class GeneratorNotFoundError(TaskEngineError):
    """Raised by the generator factory for an unknown backend type."""

    def __init__(self, name: str) -> None:
        super().__init__(f"generator '{name}' not supported")
        self.name = name


# ---------------------------------------------------------------------------
# State access
# ---------------------------------------------------------------------------


class StorageNotFoundError(TaskEngineError):
    """Raised when a storage is read before any namespace declared it."""

    def __init__(self, name: str) -> None:
        super().__init__(f"storage {name} not found")
        self.name = name


class NoRagEngineError(TaskEngineError):
    """Raised on a retrieval query when the task supplied no RAG config."""

    def __init__(self) -> None:
        super().__init__("no RAG engine has been configured")


class MaxStepsReachedError(TaskEngineError):
    """Step budget exhausted. Always fatal to the run."""

    def __init__(self) -> None:
        super().__init__("maximum number of steps reached")


class EventChannelClosedError(TaskEngineError):
    """Raised when an event is sent after the receiver went away."""

    def __init__(self) -> None:
        super().__init__("event channel closed")


# ---------------------------------------------------------------------------
# Per step (recorded, never fatal)
# ---------------------------------------------------------------------------


class ActionError(TaskEngineError):
    """Raised by an action to report a failed execution."""


class MissingVariableError(ActionError):
    """A required variable is not defined for the running task."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} not defined")
        self.name = name


class ActionTimeoutError(ActionError):
    """An action exceeded its declared timeout."""

    def __init__(self, action: str, timeout: float) -> None:
        super().__init__(f"action '{action}' timed out after {timeout}s")
        self.action = action
        self.timeout = timeout


class ResponseParseError(TaskEngineError):
    """The model reply could not be turned into an invocation."""

    def __init__(self, message: str, response: str | None = None) -> None:
        super().__init__(message)
        self.response = response
