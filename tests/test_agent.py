import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from fakes import EchoAction, FakeGenerator, drain
from task_engine.agent import Agent
from task_engine.config import AgentOptions
from task_engine.errors import ActionError, MaxStepsReachedError
from task_engine.events import ActionTimeout, EmptyResponse, InvalidAction, InvalidResponse, TaskComplete
from task_engine.generator import ChatResponse
from task_engine.generator.openai_client import OpenAIClient
from task_engine.models import Invocation
from task_engine.namespaces import Action, Namespace
from task_engine.task import PromptTask


class NeedsTarget(EchoAction):
    name = "needs-target"
    required_variables = ["HTTP_TARGET"]


class Slow(Action):
    name = "slow"
    description = "Takes too long."
    timeout = 0.05

    async def run(self, state, attributes, payload):
        await asyncio.sleep(5)
        return "done"


class Broken(Action):
    name = "broken"
    description = "Always fails."

    async def run(self, state, attributes, payload):
        raise ActionError("something broke")


class UpstreamTimeout(Action):
    name = "upstream"
    description = "Fails with its own TimeoutError."

    async def run(self, state, attributes, payload):
        raise TimeoutError("upstream took too long")


def _custom(*actions) -> Namespace:
    return Namespace("Custom", "test actions", list(actions))


async def _agent(replies, channel, registry, functions=None, native=False, **options) -> tuple[Agent, FakeGenerator]:
    generator = FakeGenerator(replies, native_tools=native)
    task = PromptTask("find the flag", using=["task"], functions=functions)
    agent = await Agent.create(
        generator,
        task,
        AgentOptions(**options),
        events=channel,
        registry=registry,
    )
    return agent, generator


async def _history(agent: Agent):
    async with agent.state.lock() as state:
        return list(state.get_history())


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_step_parses_and_executes(channel, registry):
    echo = EchoAction()
    agent, generator = await _agent(["<echo>hi there</echo>"], channel, registry, [_custom(echo)])

    await agent.step()

    assert echo.calls == 1
    history = await _history(agent)
    assert len(history) == 1
    assert history[0].invocation == Invocation(action="echo", payload="hi there")
    assert history[0].result == "hi there"

    async with agent.state.lock() as state:
        assert state.metrics.current_step == 1
        assert state.metrics.valid_responses == 1
        assert state.metrics.valid_actions == 1


@pytest.mark.asyncio
async def test_history_is_fed_back_to_the_model(channel, registry):
    agent, generator = await _agent(
        ["<echo>one</echo>", "<echo>two</echo>"],
        channel,
        registry,
        [_custom(EchoAction())],
        max_history=1,
    )

    await agent.step()
    await agent.step()

    first, second = generator.calls
    assert first.history == []
    assert second.history == [
        {"role": "assistant", "content": "<echo>one</echo>"},
        {"role": "user", "content": "one"},
    ]
    assert "<echo>hello</echo>" in second.system_prompt
    assert second.prompt == "find the flag"


@pytest.mark.asyncio
async def test_only_first_invocation_runs(channel, registry):
    echo = EchoAction()
    agent, _ = await _agent(["<echo>a</echo><echo>b</echo>"], channel, registry, [_custom(echo)])

    await agent.step()

    assert echo.calls == 1
    assert len(await _history(agent)) == 1


@pytest.mark.asyncio
async def test_task_complete_ends_the_loop(channel, registry):
    agent, _ = await _agent(
        ["<task-complete>flag found</task-complete>"],
        channel,
        registry,
    )

    steps = 0
    while not await agent.is_state_complete():
        await agent.step()
        steps += 1

    assert steps == 1
    events = [event for event in drain(channel) if isinstance(event, TaskComplete)]
    assert events == [TaskComplete(impossible=False, reason="flag found")]


# ---------------------------------------------------------------------------
# Recorded failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unparsed_response_is_recorded_and_run_continues(channel, registry):
    echo = EchoAction()
    agent, _ = await _agent(
        ["I am not sure what to do", "<echo>ok</echo>"],
        channel,
        registry,
        [_custom(echo)],
    )

    await agent.step()
    history = await _history(agent)
    assert len(history) == 1
    assert history[0].response == "I am not sure what to do"
    assert history[0].error == "no valid action found in the response"
    assert any(isinstance(event, InvalidResponse) for event in drain(channel))

    await agent.step()
    assert echo.calls == 1
    assert len(await _history(agent)) == 2


@pytest.mark.asyncio
async def test_empty_response_is_recorded(channel, registry):
    agent, _ = await _agent([""], channel, registry)

    await agent.step()

    history = await _history(agent)
    assert history[0].error == "empty response"
    assert any(isinstance(event, EmptyResponse) for event in drain(channel))
    async with agent.state.lock() as state:
        assert state.metrics.empty_responses == 1


@pytest.mark.asyncio
async def test_missing_required_variable_blocks_run(channel, registry):
    action = NeedsTarget()
    agent, _ = await _agent(["<needs-target>go</needs-target>"], channel, registry, [_custom(action)])

    await agent.step()

    assert action.calls == 0
    history = await _history(agent)
    assert len(history) == 1
    assert history[0].error == "HTTP_TARGET not defined"
    assert any(isinstance(event, InvalidAction) for event in drain(channel))


@pytest.mark.asyncio
async def test_defined_required_variable_allows_run(channel, registry):
    action = NeedsTarget()
    agent, _ = await _agent(
        ["<needs-target>go</needs-target>"],
        channel,
        registry,
        [_custom(action)],
        variables={"HTTP_TARGET": "localhost"},
    )

    await agent.step()

    assert action.calls == 1
    assert (await _history(agent))[0].result == "go"


@pytest.mark.asyncio
async def test_action_timeout_is_recorded(channel, registry):
    agent, _ = await _agent(["<slow/>"], channel, registry, [_custom(Slow())])

    await agent.step()

    history = await _history(agent)
    assert history[0].error == "action 'slow' timed out after 0.05s"
    assert any(isinstance(event, ActionTimeout) for event in drain(channel))
    async with agent.state.lock() as state:
        assert state.metrics.timedout_actions == 1


@pytest.mark.asyncio
async def test_action_error_is_recorded(channel, registry):
    agent, _ = await _agent(["<broken/>"], channel, registry, [_custom(Broken())])

    await agent.step()

    assert (await _history(agent))[0].error == "something broke"
    async with agent.state.lock() as state:
        assert state.metrics.errored_actions == 1


@pytest.mark.asyncio
async def test_unknown_action_is_recorded(channel, registry):
    agent, _ = await _agent(['<launch-missiles target="moon"/>'], channel, registry)

    await agent.step()

    history = await _history(agent)
    assert history[0].error == "action 'launch-missiles' not found"
    async with agent.state.lock() as state:
        assert state.metrics.unknown_actions == 1


@pytest.mark.asyncio
async def test_timeout_error_without_action_timeout_is_an_error(channel, registry):
    agent, _ = await _agent(["<upstream/>"], channel, registry, [_custom(UpstreamTimeout())])

    await agent.step()

    assert (await _history(agent))[0].error == "upstream took too long"
    assert not any(isinstance(event, ActionTimeout) for event in drain(channel))
    async with agent.state.lock() as state:
        assert state.metrics.errored_actions == 1
        assert state.metrics.timedout_actions == 0


# ---------------------------------------------------------------------------
# Backend replies
# ---------------------------------------------------------------------------


def _tool_completion(name, arguments):
    call = SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))
    message = SimpleNamespace(content="", tool_calls=[call])
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


@pytest.mark.asyncio
async def test_malformed_native_tool_call_is_recorded_and_run_continues(channel, registry):
    echo = EchoAction()
    client = OpenAIClient.custom_no_auth("llama3", "http://localhost:11434/v1/")
    client._client = MagicMock()
    client._client.chat.completions.create = AsyncMock(
        side_effect=[
            _tool_completion("get_time", "{}"),
            _tool_completion("echo", '{"payload": '),
            _tool_completion("echo", '{"payload": "second try"}'),
        ]
    )
    task = PromptTask("find the flag", using=["task"], functions=[_custom(echo)])
    agent = await Agent.create(client, task, AgentOptions(), events=channel, registry=registry)
    assert agent.native_tools is True

    await agent.step()

    history = await _history(agent)
    assert len(history) == 1
    assert history[0].invocation is None
    assert history[0].response == 'echo({"payload": )'
    assert "tool call arguments are malformed" in history[0].error
    assert any(isinstance(event, InvalidResponse) for event in drain(channel))
    async with agent.state.lock() as state:
        assert state.metrics.unparsed_responses == 1

    await agent.step()
    assert echo.calls == 1
    assert (await _history(agent))[1].result == "second try"


@pytest.mark.asyncio
async def test_backend_failure_during_step_propagates(channel, registry):
    client = OpenAIClient.custom_no_auth("llama3", "http://localhost:11434/v1/")
    client._client = MagicMock()
    client._client.chat.completions.create = AsyncMock(
        side_effect=openai.APIConnectionError(request=httpx.Request("POST", "http://localhost:11434/v1/chat/completions"))
    )
    task = PromptTask("find the flag", using=["task"])
    agent = await Agent.create(client, task, AgentOptions(force_format=True), events=channel, registry=registry)

    with pytest.raises(openai.APIConnectionError):
        await agent.step()

    assert await _history(agent) == []


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_budget_exhaustion_is_fatal(channel, registry):
    agent, generator = await _agent(
        ["<echo>1</echo>", "<echo>2</echo>"],
        channel,
        registry,
        [_custom(EchoAction())],
        max_iterations=2,
    )

    await agent.step()
    with pytest.raises(MaxStepsReachedError):
        await agent.step()

    assert len(generator.calls) == 1


# ---------------------------------------------------------------------------
# Native tools
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_native_tool_calls_are_executed(channel, registry):
    echo = EchoAction()
    reply = ChatResponse(
        content="let me echo",
        invocations=[Invocation(action="echo", payload="native")],
    )
    agent, generator = await _agent([reply], channel, registry, [_custom(echo)], native=True)

    await agent.step()

    assert agent.native_tools is True
    assert generator.calls[0].native_tools is True
    assert "## Actions" not in generator.calls[0].system_prompt
    assert echo.calls == 1
    assert (await _history(agent))[0].result == "native"


@pytest.mark.asyncio
async def test_force_format_disables_native_tools(channel, registry):
    agent, generator = await _agent(
        ["<echo>x</echo>"],
        channel,
        registry,
        [_custom(EchoAction())],
        native=True,
        force_format=True,
    )

    await agent.step()

    assert agent.native_tools is False
    assert generator.calls[0].native_tools is False
    assert "## Actions" in generator.calls[0].system_prompt


# ---------------------------------------------------------------------------
# Execution record
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_execution_record_is_saved(channel, registry, tmp_path):
    path = tmp_path / "out" / "record.json"
    agent, _ = await _agent(
        ["<echo>saved</echo>"],
        channel,
        registry,
        [_custom(EchoAction())],
        save_to=str(path),
    )

    await agent.step()

    record = json.loads(path.read_text())
    assert record["task"] == "find the flag"
    assert record["metrics"]["current_step"] == 1
    assert record["history"][0]["result"] == "saved"
    assert record["namespaces"] == ["Task", "Custom"]
