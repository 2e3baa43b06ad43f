# events.py
# Outbound events emitted during a run, and the channel that carries them.
#
# The channel is fire-and-forget: send() never blocks and never needs the state
# lock. A single consumer (usually display.consume) drains it.

import asyncio
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from task_engine.errors import EventChannelClosedError
from task_engine.models import Invocation, Metrics


class EventType(str, Enum):
    METRICS_UPDATE = "metrics_update"
    STORAGE_UPDATE = "storage_update"
    STATE_UPDATE = "state_update"
    THINKING = "thinking"
    SLEEPING = "sleeping"
    EMPTY_RESPONSE = "empty_response"
    INVALID_RESPONSE = "invalid_response"
    INVALID_ACTION = "invalid_action"
    ACTION_TIMEOUT = "action_timeout"
    ACTION_EXECUTING = "action_executing"
    ACTION_EXECUTED = "action_executed"
    TASK_COMPLETE = "task_complete"


class Event(BaseModel):
    type: EventType


class MetricsUpdate(Event):
    type: Literal[EventType.METRICS_UPDATE] = EventType.METRICS_UPDATE
    metrics: Metrics


class StorageUpdate(Event):
    type: Literal[EventType.STORAGE_UPDATE] = EventType.STORAGE_UPDATE
    storage: str
    storage_type: str
    key: str
    prev: str | None = None
    new: str | None = None


class StateUpdate(Event):
    type: Literal[EventType.STATE_UPDATE] = EventType.STATE_UPDATE
    step: int


class Thinking(Event):
    type: Literal[EventType.THINKING] = EventType.THINKING
    thought: str


class Sleeping(Event):
    type: Literal[EventType.SLEEPING] = EventType.SLEEPING
    seconds: float


class EmptyResponse(Event):
    type: Literal[EventType.EMPTY_RESPONSE] = EventType.EMPTY_RESPONSE


class InvalidResponse(Event):
    type: Literal[EventType.INVALID_RESPONSE] = EventType.INVALID_RESPONSE
    response: str
    error: str


class InvalidAction(Event):
    type: Literal[EventType.INVALID_ACTION] = EventType.INVALID_ACTION
    invocation: Invocation
    error: str | None = None


class ActionTimeout(Event):
    type: Literal[EventType.ACTION_TIMEOUT] = EventType.ACTION_TIMEOUT
    invocation: Invocation
    elapsed: float


class ActionExecuting(Event):
    type: Literal[EventType.ACTION_EXECUTING] = EventType.ACTION_EXECUTING
    invocation: Invocation


class ActionExecuted(Event):
    type: Literal[EventType.ACTION_EXECUTED] = EventType.ACTION_EXECUTED
    invocation: Invocation
    result: str | None = None
    error: str | None = None
    elapsed: float = Field(default=0.0, description="Seconds spent in Action.run.")


class TaskComplete(Event):
    type: Literal[EventType.TASK_COMPLETE] = EventType.TASK_COMPLETE
    impossible: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


class EventChannel:
    """
    Unbounded single-consumer event queue.

    Once the receiving side is closed every send() raises
    EventChannelClosedError, which callers propagate as a run error.
    Events queued before close() are still delivered, then iteration stops.
    """

    def __init__(self) -> None:
        # None marks the end of the stream.
        self._queue: asyncio.Queue[Event | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: Event) -> None:
        if self._closed:
            raise EventChannelClosedError()
        self._queue.put_nowait(event)

    async def recv(self) -> Event:
        event = await self._queue.get()
        if event is None:
            self._queue.put_nowait(None)
            raise EventChannelClosedError()
        return event

    def try_recv(self) -> Event | None:
        try:
            event = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if event is None:
            self._queue.put_nowait(None)
        return event

    def close(self) -> None:
        """Drop the receiver. Already queued events stay readable."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def __aiter__(self) -> "EventChannel":
        return self

    async def __anext__(self) -> Event:
        try:
            return await self.recv()
        except EventChannelClosedError:
            raise StopAsyncIteration from None


def create_channel() -> EventChannel:
    return EventChannel()
