# generator
# Chat/embedding backends behind a single Client contract.

from pydantic import BaseModel

from task_engine.errors import GeneratorNotFoundError
from task_engine.generator.base import ChatOptions, ChatResponse, Client, Embedder
from task_engine.generator.ollama import OllamaClient
from task_engine.generator.openai_client import OpenAIClient
from task_engine.generator.openai_compatible import OpenAICompatibleClient

GENERATORS: dict[str, type[Client]] = {
    "ollama": OllamaClient,
    "openai": OpenAIClient,
    "openai-compatible": OpenAICompatibleClient,
}

DEFAULT_PORTS = {
    "ollama": 11434,
    "openai": 443,
    "openai-compatible": 8000,
}


class GeneratorConfig(BaseModel):
    type: str
    model_name: str
    host: str = "localhost"
    port: int = 0


def parse_generator_string(generator: str) -> GeneratorConfig:
    """
    Parse a generator string of the form type://model[@host[:port]].

    Raises ValueError when the string is malformed.
    """
    type_, sep, rest = generator.partition("://")
    if not sep or not type_ or not rest:
        raise ValueError(f"invalid generator string '{generator}', expected type://model@host:port")

    model_name, at, address = rest.rpartition("@")
    if not at:
        model_name, address = rest, ""
    if not model_name:
        raise ValueError(f"no model name in generator string '{generator}'")

    host, colon, port = address.partition(":")
    if colon:
        if not port.isdigit():
            raise ValueError(f"invalid port '{port}' in generator string '{generator}'")
        port_number = int(port)
    else:
        port_number = DEFAULT_PORTS.get(type_, 0)

    return GeneratorConfig(
        type=type_,
        model_name=model_name,
        host=host or "localhost",
        port=port_number,
    )


def factory(name: str, url: str, port: int, model_name: str, context_window: int = 8000) -> Client:
    generator_cls = GENERATORS.get(name)
    if generator_cls is None:
        raise GeneratorNotFoundError(name)
    return generator_cls(url, port, model_name, context_window)


def from_string(generator: str, context_window: int = 8000) -> Client:
    config = parse_generator_string(generator)
    return factory(config.type, config.host, config.port, config.model_name, context_window)


__all__ = [
    "ChatOptions",
    "ChatResponse",
    "Client",
    "Embedder",
    "GENERATORS",
    "GeneratorConfig",
    "OllamaClient",
    "OpenAIClient",
    "OpenAICompatibleClient",
    "factory",
    "from_string",
    "parse_generator_string",
]
