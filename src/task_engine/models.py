# models.py
# Data contracts shared across the engine.
# No business logic lives here, only schema and validation.

from pydantic import BaseModel, Field


class Invocation(BaseModel):
    """A parsed request to run one named action."""

    action: str = Field(..., description="Name of the action to run.")
    attributes: dict[str, str] | None = Field(default=None, description="Action attributes.")
    payload: str | None = Field(default=None, description="Free text payload.")

    def to_xml(self) -> str:
        """Render in the same textual form the model is asked to write."""
        xml = f"<{self.action}"
        for key, value in (self.attributes or {}).items():
            xml += f' {key}="{value}"'
        if self.payload is None:
            return xml + "/>"
        return f"{xml}>{self.payload}</{self.action}>"


class Metrics(BaseModel):
    """Runtime counters. Mutated only by State and the dispatcher."""

    max_steps: int = Field(default=0, description="Step budget, 0 means unbounded.")
    current_step: int = 0
    valid_responses: int = 0
    empty_responses: int = 0
    unparsed_responses: int = 0
    valid_actions: int = 0
    errored_actions: int = 0
    unknown_actions: int = 0
    timedout_actions: int = 0
