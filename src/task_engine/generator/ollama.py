# ollama.py
# Ollama through its OpenAI-compatible endpoint at http://host:port/v1/.

from task_engine.generator.base import ChatOptions, ChatResponse, Client, Embedder
from task_engine.generator.openai_client import OpenAIClient
from task_engine.generator.openai_compatible import to_base_url

DEFAULT_PORT = 11434


class OllamaClient(Client, Embedder):
    def __init__(self, url: str, port: int, model_name: str, context_window: int) -> None:
        self._client = OpenAIClient.custom_no_auth(
            model_name,
            to_base_url(url, port or DEFAULT_PORT, "v1"),
            context_window,
        )

    @property
    def base_url(self) -> str:
        return self._client.base_url

    async def check_native_tools_support(self) -> bool:
        return await self._client.check_native_tools_support()

    async def chat(self, state, options: ChatOptions) -> ChatResponse:
        return await self._client.chat(state, options)

    async def embed(self, text: str) -> list[float]:
        return await self._client.embed(text)
