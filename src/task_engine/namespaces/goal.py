# goal.py
# The current goal, seeded from the task prompt when the run starts.

from task_engine.namespaces.base import Action, Namespace, require_payload
from task_engine.storage import StorageDescriptor

STORAGE = "goal"


class UpdateGoal(Action):
    name = "update-goal"
    description = "When you need to update your current goal:"
    example_payload = "your new goal"

    async def run(self, state, attributes, payload):
        goal = require_payload(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).set_current(goal)
        return "goal updated"


def get_namespace() -> Namespace:
    return Namespace(
        "Goal",
        "You can use the goal actions to keep track of what you are trying to achieve.",
        [UpdateGoal()],
        [StorageDescriptor.previous_current(STORAGE)],
        default=True,
    )
