# run.py
# Entry point. Config and wiring only, no logic lives here.
#
# Configure through the environment (or a .env file):
#   TASK_ENGINE_GENERATOR=ollama://llama3@localhost:11434
#   TASK_ENGINE_MAX_ITERATIONS=50
#   TASK_ENGINE_NAMESPACES=*,http
#   TASK_ENGINE_VAR_HTTP_TARGET=localhost:8080
# and pass the task prompt as the first argument (or TASK_ENGINE_PROMPT).

import asyncio
import os
import sys

import httpx
import openai

from task_engine import display, generator
from task_engine.agent import Agent
from task_engine.config import ENV_PREFIX, AgentOptions
from task_engine.errors import TaskEngineError
from task_engine.log import configure_logging
from task_engine.task import PromptTask

# Anything that ends a run: engine conditions and backend failures.
RUN_ERRORS = (TaskEngineError, openai.APIError, httpx.HTTPError)


def _namespaces_from_env() -> list[str] | None:
    raw = os.getenv(f"{ENV_PREFIX}NAMESPACES")
    if not raw:
        return None
    return [name.strip() for name in raw.split(",") if name.strip()]


async def run(prompt: str, options: AgentOptions) -> int:
    client = generator.from_string(options.generator, options.context_window)
    task = PromptTask(prompt, using=_namespaces_from_env())

    try:
        agent = await Agent.create(client, task, options)
    except RUN_ERRORS as exc:
        display.halt(str(exc))
        return 1

    display.banner(options.generator, agent.native_tools)
    async with agent.state.lock() as state:
        display.task_received(state.to_prompt(), state.used_namespaces())

    consumer = asyncio.create_task(display.consume(agent.events))
    exit_code = 0
    try:
        while not await agent.is_state_complete():
            try:
                await agent.step()
            except RUN_ERRORS as exc:
                display.halt(str(exc))
                exit_code = 1
                break
    finally:
        agent.events.close()
        await consumer

    async with agent.state.lock() as state:
        display.metrics_summary(state.metrics)

    return exit_code


def main() -> None:
    options = AgentOptions.from_env()
    configure_logging(options.log_level)

    prompt = sys.argv[1] if len(sys.argv) > 1 else os.getenv(f"{ENV_PREFIX}PROMPT")
    if not prompt:
        prompt = display.console.input("enter task> ")

    sys.exit(asyncio.run(run(prompt, options)))


if __name__ == "__main__":
    main()
