# agent.py
# Step loop and invocation dispatch.
#
# The agent owns control flow; the model only ever answers. One call to
# step() advances the run by exactly one action:
#
#   on_step (budget check, fatal) → build bounded context → generator.chat
#   → parse reply → dispatch or record unparsed reply → metrics
#
# Action failures never escape step(): they become error executions the
# model sees on the next turn. Only MaxStepsReachedError, configuration
# errors and a dead event channel terminate the run.

import asyncio
import json
import os
import time

import structlog

from task_engine.config import AgentOptions
from task_engine.errors import (
    ActionTimeoutError,
    EventChannelClosedError,
    MaxStepsReachedError,
    MissingVariableError,
    ResponseParseError,
)
from task_engine.events import (
    ActionExecuted,
    ActionExecuting,
    ActionTimeout,
    EmptyResponse,
    EventChannel,
    InvalidAction,
    InvalidResponse,
    MetricsUpdate,
    StateUpdate,
    Thinking,
    create_channel,
)
from task_engine.generator import ChatOptions, Client, Embedder
from task_engine.models import Invocation
from task_engine.namespaces import NamespaceRegistry
from task_engine.serialization import state_to_system_prompt, try_parse
from task_engine.state import SharedState, State
from task_engine.task import Task

logger = structlog.get_logger()


class Agent:
    """
    Drives one run over a SharedState.

    Example:
        agent = await Agent.create(generator, PromptTask("..."), AgentOptions())
        while not await agent.is_state_complete():
            await agent.step()
    """

    def __init__(
        self,
        generator: Client,
        state: SharedState,
        options: AgentOptions,
        events: EventChannel,
        native_tools: bool = False,
    ) -> None:
        self._generator = generator
        self._state = state
        self._options = options
        self._events = events
        self._native_tools = native_tools

    @classmethod
    async def create(
        cls,
        generator: Client,
        task: Task,
        options: AgentOptions,
        events: EventChannel | None = None,
        registry: NamespaceRegistry | None = None,
        embedder: Embedder | None = None,
    ) -> "Agent":
        events = events if events is not None else create_channel()
        if embedder is None and isinstance(generator, Embedder):
            embedder = generator

        state = await State.create(
            events,
            task,
            embedder,
            options.max_iterations,
            registry=registry,
            variables=options.variables,
        )

        native_tools = False
        if not options.force_format:
            native_tools = await generator.check_native_tools_support()
        logger.info("agent_created", native_tools=native_tools, namespaces=state.used_namespaces())

        return cls(generator, SharedState(state), options, events, native_tools)

    @property
    def state(self) -> SharedState:
        return self._state

    @property
    def events(self) -> EventChannel:
        return self._events

    @property
    def native_tools(self) -> bool:
        return self._native_tools

    async def is_state_complete(self) -> bool:
        async with self._state.lock() as state:
            return state.is_complete()

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    async def _prepare_step(self) -> ChatOptions:
        async with self._state.lock() as state:
            state.on_step()
            state.on_event(StateUpdate(step=state.metrics.current_step))
            return ChatOptions(
                system_prompt=state_to_system_prompt(state, include_actions=not self._native_tools),
                prompt=state.to_prompt(),
                history=state.to_chat_history(self._options.max_history),
                native_tools=self._native_tools,
            )

    async def _parse_response(self, content: str, invocations: list[Invocation]) -> Invocation | None:
        """Pick the invocation for this step, recording the reply if there is none."""
        async with self._state.lock() as state:
            if invocations:
                if content:
                    state.on_event(Thinking(thought=content))
            elif not content:
                state.metrics.empty_responses += 1
                state.add_unparsed_response_to_history(content, "empty response")
                state.on_event(EmptyResponse())
                return None
            else:
                try:
                    invocations = try_parse(content)
                except ResponseParseError as exc:
                    self._record_unparsed(state, content, str(exc))
                    return None

            state.metrics.valid_responses += 1

        if len(invocations) > 1:
            logger.warning(
                "extra_invocations_ignored",
                used=invocations[0].action,
                ignored=[invocation.action for invocation in invocations[1:]],
            )
        return invocations[0]

    @staticmethod
    def _record_unparsed(state: State, response: str, error: str) -> None:
        state.metrics.unparsed_responses += 1
        state.add_unparsed_response_to_history(response, error)
        state.on_event(InvalidResponse(response=response, error=error))

    async def step(self) -> None:
        """
        Run one iteration of the loop.

        Raises MaxStepsReachedError when the budget is exhausted.
        """
        options = await self._prepare_step()

        try:
            response = await self._generator.chat(self._state, options)
        except ResponseParseError as exc:
            # Native tool calls are decoded by the backend, so a malformed
            # call surfaces here rather than in _parse_response.
            async with self._state.lock() as state:
                self._record_unparsed(state, exc.response or "", str(exc))
            invocation = None
        else:
            invocation = await self._parse_response(response.content, response.invocations)

        if invocation is not None:
            await self.execute(invocation)

        async with self._state.lock() as state:
            state.on_event(MetricsUpdate(metrics=state.metrics.model_copy()))

        if self._options.save_to:
            await self.save_execution_record(self._options.save_to)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def execute(self, invocation: Invocation) -> None:
        """
        Validate and run one invocation, recording exactly one execution.

        Required variables are checked before the action runs. The lock is
        released while the action runs so the action can acquire it.
        """
        async with self._state.lock() as state:
            action = state.get_action(invocation.action)
            if action is None:
                error = f"action '{invocation.action}' not found"
                state.metrics.unknown_actions += 1
                state.add_error_to_history(invocation, error)
                state.on_event(InvalidAction(invocation=invocation, error=error))
                return

            for name in action.required_variables or []:
                if state.get_variable(name) is None:
                    error = str(MissingVariableError(name))
                    state.metrics.errored_actions += 1
                    state.add_error_to_history(invocation, error)
                    state.on_event(InvalidAction(invocation=invocation, error=error))
                    return

            state.on_event(ActionExecuting(invocation=invocation))

        start = time.monotonic()
        try:
            coro = action.run(self._state, invocation.attributes, invocation.payload)
            if action.timeout is not None:
                result = await asyncio.wait_for(coro, timeout=action.timeout)
            else:
                result = await coro
        except asyncio.TimeoutError as exc:
            if action.timeout is None:
                await self._record_failure(invocation, action.name, exc, start)
                return
            elapsed = time.monotonic() - start
            error = str(ActionTimeoutError(action.name, action.timeout))
            logger.warning("action_timeout", action=action.name, elapsed=round(elapsed, 3))
            async with self._state.lock() as state:
                state.metrics.timedout_actions += 1
                state.add_error_to_history(invocation, error)
                state.on_event(ActionTimeout(invocation=invocation, elapsed=elapsed))
            return
        except (MaxStepsReachedError, EventChannelClosedError):
            raise
        except Exception as exc:
            await self._record_failure(invocation, action.name, exc, start)
            return

        elapsed = time.monotonic() - start
        logger.info("action_executed", action=action.name, elapsed=round(elapsed, 3))
        async with self._state.lock() as state:
            state.metrics.valid_actions += 1
            state.add_success_to_history(invocation, result)
            state.on_event(ActionExecuted(invocation=invocation, result=result, elapsed=elapsed))

    async def _record_failure(self, invocation: Invocation, name: str, exc: Exception, start: float) -> None:
        elapsed = time.monotonic() - start
        error = str(exc) or type(exc).__name__
        logger.info("action_failed", action=name, error=error)
        async with self._state.lock() as state:
            state.metrics.errored_actions += 1
            state.add_error_to_history(invocation, error)
            state.on_event(ActionExecuted(invocation=invocation, error=error, elapsed=elapsed))

    # ------------------------------------------------------------------
    # Execution record
    # ------------------------------------------------------------------

    async def save_execution_record(self, path: str) -> None:
        """Dump the task, metrics and full history as JSON."""
        async with self._state.lock() as state:
            record = {
                "task": state.to_prompt(),
                "namespaces": state.used_namespaces(),
                "complete": state.is_complete(),
                "metrics": state.metrics.model_dump(),
                "history": state.get_history().to_records(),
            }

        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(record, fh, indent=2)
