# openai_compatible.py
# Any server speaking the OpenAI chat API (vLLM, llama.cpp, LM Studio...).
# Rewrites a bare host[:port] into a base URL and forwards everything to an
# unauthenticated OpenAIClient.

from task_engine.generator.base import ChatOptions, ChatResponse, Client, Embedder
from task_engine.generator.openai_client import OpenAIClient


def to_base_url(url: str, port: int | None = None, suffix: str = "") -> str:
    if "://" not in url:
        url = f"http://{url}"
    url = url.rstrip("/")
    if port and url.count(":") < 2:
        url = f"{url}:{port}"
    if suffix:
        url = f"{url}/{suffix.strip('/')}"
    return f"{url}/"


class OpenAICompatibleClient(Client, Embedder):
    def __init__(self, url: str, port: int, model_name: str, context_window: int) -> None:
        self._client = OpenAIClient.custom_no_auth(
            model_name,
            to_base_url(url, port),
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
