# config.py
# Run options. Values come from the environment (a local .env is loaded on
# import) and can be overridden by the caller.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

ENV_PREFIX = "TASK_ENGINE_"
VAR_PREFIX = f"{ENV_PREFIX}VAR_"

DEFAULT_GENERATOR = "ollama://llama3@localhost:11434"


class AgentOptions(BaseModel):
    """Options for a single agent run."""

    generator: str = Field(
        default=DEFAULT_GENERATOR,
        description="Generator string in the form type://model@host:port.",
    )
    context_window: int = Field(default=8000, ge=0)
    max_iterations: int = Field(default=0, ge=0, description="0 means no step budget.")
    max_history: int = Field(default=50, ge=0, description="Executions kept in the prompt.")
    save_to: str | None = Field(default=None, description="Where to dump the execution record.")
    force_format: bool = Field(
        default=False,
        description="Always use the textual invocation format, even if tools are native.",
    )
    variables: dict[str, str] = Field(default_factory=dict)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "AgentOptions":
        values: dict = {}

        if generator := os.getenv(f"{ENV_PREFIX}GENERATOR"):
            values["generator"] = generator
        if context_window := os.getenv(f"{ENV_PREFIX}CONTEXT_WINDOW"):
            values["context_window"] = int(context_window)
        if max_iterations := os.getenv(f"{ENV_PREFIX}MAX_ITERATIONS"):
            values["max_iterations"] = int(max_iterations)
        if max_history := os.getenv(f"{ENV_PREFIX}MAX_HISTORY"):
            values["max_history"] = int(max_history)
        if save_to := os.getenv(f"{ENV_PREFIX}SAVE_TO"):
            values["save_to"] = save_to
        if force_format := os.getenv(f"{ENV_PREFIX}FORCE_FORMAT"):
            values["force_format"] = force_format.strip().lower() in ("1", "true", "yes")
        if log_level := os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
            values["log_level"] = log_level

        values["variables"] = {
            key[len(VAR_PREFIX):]: value
            for key, value in os.environ.items()
            if key.startswith(VAR_PREFIX) and len(key) > len(VAR_PREFIX)
        }

        return cls.model_validate(values)


def parse_defines(defines: list[str]) -> dict[str, str]:
    """
    Parse KEY=VALUE definitions into a variables mapping.

    Raises ValueError on an entry without '=' or with an empty key.
    """
    variables: dict[str, str] = {}
    for define in defines:
        key, sep, value = define.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"invalid variable definition '{define}', expected KEY=VALUE")
        variables[key] = value
    return variables
