# clock.py
# Lets the model pause between steps. The state lock is only held to emit
# the event, never while sleeping.

import asyncio

from task_engine.errors import ActionError
from task_engine.events import Sleeping
from task_engine.namespaces.base import Action, Namespace, require_payload


class Wait(Action):
    name = "wait"
    description = "To pause for a given amount of seconds before continuing:"
    example_payload = "5"

    async def run(self, state, attributes, payload):
        raw = require_payload(payload)
        try:
            seconds = float(raw)
        except ValueError as exc:
            raise ActionError(f"'{raw}' is not a valid number of seconds") from exc
        if seconds < 0:
            raise ActionError("can't wait a negative amount of time")

        async with state.lock() as s:
            s.on_event(Sleeping(seconds=seconds))

        await asyncio.sleep(seconds)
        return f"waited for {raw} seconds"


def get_namespace() -> Namespace:
    return Namespace(
        "Time",
        "Use these actions to deal with time.",
        [Wait()],
        default=True,
    )
