# serialization.py
# Everything the model sees (system prompt, action catalog, tool schemas) and
# the parser that turns its reply back into invocations.

import json
import re
from typing import TYPE_CHECKING, Any

from task_engine.errors import ResponseParseError
from task_engine.models import Invocation

if TYPE_CHECKING:
    from task_engine.namespaces import Action
    from task_engine.state import State


PAYLOAD_PARAMETER = "payload"

SYSTEM_PROMPT = """\
You are an autonomous agent. Work towards the task below one action at a time.
After every action you will receive its result, use it to decide the next one.

## Task

{task}
{guidance}{storages}{actions}\
"""

ACTIONS_PROMPT = """
## Actions

Reply with exactly one action per message, using the format shown in the examples.
Do not write anything outside the action.
{namespaces}"""

ELEMENT = re.compile(
    r"<(?P<name>[a-zA-Z][\w-]*)"
    r"(?P<attrs>(?:\s+[\w-]+\s*=\s*\"[^\"]*\")*)\s*"
    r"(?:/>|>(?P<payload>.*?)</(?P=name)\s*>)",
    re.DOTALL,
)
ATTRIBUTE = re.compile(r"([\w-]+)\s*=\s*\"([^\"]*)\"")


# ---------------------------------------------------------------------------
# Prompt rendering
# ---------------------------------------------------------------------------


def action_to_prompt(action: "Action") -> str:
    example = Invocation(
        action=action.name,
        attributes=action.example_attributes,
        payload=action.example_payload,
    )
    return f"{action.description}\n\n{example.to_xml()}\n"


def _storages_to_prompt(state: "State") -> str:
    sections = []
    for storage in state.get_storages():
        if storage.is_empty():
            continue
        sections.append(f"\n## {storage.name}\n\n{storage.to_prompt()}\n")
    return "".join(sections)


def _guidance_to_prompt(state: "State") -> str:
    guidance = state.get_task().guidance()
    if not guidance:
        return ""
    lines = "\n".join(f"- {item}" for item in guidance)
    return f"\n## Guidance\n\n{lines}\n"


def _actions_to_prompt(state: "State") -> str:
    namespaces = []
    for namespace in state.get_namespaces():
        actions = "\n".join(action_to_prompt(action) for action in namespace.actions)
        namespaces.append(f"\n### {namespace.name}\n\n{namespace.description}\n\n{actions}")
    return ACTIONS_PROMPT.format(namespaces="".join(namespaces))


def state_to_system_prompt(state: "State", include_actions: bool = True) -> str:
    """Render the system prompt. Native tool backends get the actions as tools instead."""
    return SYSTEM_PROMPT.format(
        task=state.to_prompt().strip(),
        guidance=_guidance_to_prompt(state),
        storages=_storages_to_prompt(state),
        actions=_actions_to_prompt(state) if include_actions else "",
    )


# ---------------------------------------------------------------------------
# Native tools
# ---------------------------------------------------------------------------


def action_to_tool(action: "Action") -> dict[str, Any]:
    """OpenAI function schema for an action."""
    properties: dict[str, Any] = {}
    required: list[str] = []

    for key in action.example_attributes or {}:
        properties[key] = {"type": "string"}
        required.append(key)

    if action.example_payload is not None:
        properties[PAYLOAD_PARAMETER] = {
            "type": "string",
            "description": f"for example: {action.example_payload}",
        }
        required.append(PAYLOAD_PARAMETER)

    return {
        "type": "function",
        "function": {
            "name": action.name,
            "description": action.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


def actions_for_state(state: "State") -> list[dict[str, Any]]:
    return [
        action_to_tool(action)
        for namespace in state.get_namespaces()
        for action in namespace.actions
    ]


def tool_call_to_invocation(name: str, arguments: str | None) -> Invocation:
    """Map a native tool call back to an invocation."""
    try:
        args = json.loads(arguments or "{}", strict=False)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"tool call arguments are malformed: {exc}") from exc
    if not isinstance(args, dict):
        raise ResponseParseError("tool call arguments must be a JSON object")

    payload = args.pop(PAYLOAD_PARAMETER, None)
    attributes = {key: str(value) for key, value in args.items()}
    return Invocation(
        action=name,
        attributes=attributes or None,
        payload=None if payload is None else str(payload),
    )


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------


def try_parse(reply: str) -> list[Invocation]:
    """
    Extract every action element from a model reply, in order.

    Raises ResponseParseError when the reply holds no well formed element.
    """
    if not reply or not reply.strip():
        raise ResponseParseError("empty response")

    invocations = []
    for match in ELEMENT.finditer(reply):
        attributes = dict(ATTRIBUTE.findall(match.group("attrs") or ""))
        payload = match.group("payload")
        if payload is not None:
            payload = payload.strip() or None

        invocations.append(
            Invocation(
                action=match.group("name"),
                attributes=attributes or None,
                payload=payload,
            )
        )

    if not invocations:
        raise ResponseParseError("no valid action found in the response")

    return invocations
