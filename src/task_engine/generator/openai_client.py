# openai_client.py
# OpenAI chat/embedding client. Also the target every OpenAI-compatible
# adapter delegates to.

import os

import openai
import structlog
from openai import AsyncOpenAI

from task_engine.errors import ResponseParseError
from task_engine.generator.base import ChatOptions, ChatResponse, Client, Embedder
from task_engine.serialization import actions_for_state, tool_call_to_invocation

logger = structlog.get_logger()

NO_AUTH_KEY = "no-auth"

_PROBE_TOOL = {
    "type": "function",
    "function": {
        "name": "get_time",
        "description": "Return the current time.",
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
}


class OpenAIClient(Client, Embedder):
    """
    Client for the OpenAI API.

    The direct constructor talks to api.openai.com with OPENAI_API_KEY; use
    custom_no_auth() for any other OpenAI-compatible server.
    """

    def __init__(
        self,
        url: str,
        port: int,
        model_name: str,
        context_window: int,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        send_context_window: bool = False,
    ) -> None:
        self._model = model_name
        self._context_window = context_window
        self._send_context_window = send_context_window
        self._embedding_model = os.getenv("OPENAI_EMBEDDING_MODEL", model_name)
        self._client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
        )

    @classmethod
    def custom_no_auth(
        cls,
        model_name: str,
        base_url: str,
        context_window: int = 0,
    ) -> "OpenAIClient":
        return cls(
            "",
            0,
            model_name,
            context_window,
            base_url=base_url,
            api_key=NO_AUTH_KEY,
            send_context_window=True,
        )

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    # ------------------------------------------------------------------
    # Client
    # ------------------------------------------------------------------

    async def check_native_tools_support(self) -> bool:
        """A backend without tool support rejects a tool-bearing request."""
        try:
            await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": "What time is it?"}],
                tools=[_PROBE_TOOL],
                max_tokens=1,
            )
        except openai.BadRequestError as exc:
            logger.info("native_tools_unsupported", model=self._model, error=str(exc))
            return False
        return True

    async def chat(self, state, options: ChatOptions) -> ChatResponse:
        messages = [
            {"role": "system", "content": options.system_prompt},
            {"role": "user", "content": options.prompt},
        ]
        messages.extend(options.history)

        kwargs = {}
        if self._send_context_window and self._context_window > 0:
            # Ollama reads the context size from its own options block.
            kwargs["extra_body"] = {"options": {"num_ctx": self._context_window}}
        if options.native_tools:
            async with state.lock() as s:
                tools = actions_for_state(s)
            if tools:
                kwargs["tools"] = tools

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            **kwargs,
        )

        message = response.choices[0].message
        invocations = []
        for call in message.tool_calls or []:
            try:
                invocations.append(tool_call_to_invocation(call.function.name, call.function.arguments))
            except ResponseParseError as exc:
                raise ResponseParseError(
                    str(exc),
                    response=f"{call.function.name}({call.function.arguments or ''})",
                ) from exc

        usage = None
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
            }

        return ChatResponse(
            content=(message.content or "").strip(),
            invocations=invocations,
            usage=usage,
        )

    # ------------------------------------------------------------------
    # Embedder
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(model=self._embedding_model, input=text)
        return list(response.data[0].embedding)
