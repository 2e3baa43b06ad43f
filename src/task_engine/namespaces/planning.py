# planning.py
# An ordered plan of steps, each one completed or not.
# Steps are addressed by their 1-based position as shown in the prompt.

from task_engine.namespaces.base import Action, Namespace, parse_position, require_payload
from task_engine.storage import StorageDescriptor

STORAGE = "plan"


class AddStep(Action):
    name = "add-plan-step"
    description = "To add a step to your plan:"
    example_payload = "complete the task"

    async def run(self, state, attributes, payload):
        step = require_payload(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).add_completion(step)
        return "step added to the plan"


class DeleteStep(Action):
    name = "delete-plan-step"
    description = "To remove a step from your plan given its number:"
    example_payload = "2"

    async def run(self, state, attributes, payload):
        pos = parse_position(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).del_completion(pos)
        return "step removed from the plan"


class SetComplete(Action):
    name = "set-step-completed"
    description = "To mark a step of your plan as completed given its number:"
    example_payload = "2"

    async def run(self, state, attributes, payload):
        pos = parse_position(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).set_complete(pos)
        return "step marked as completed"


class SetIncomplete(Action):
    name = "set-step-incomplete"
    description = "To mark a step of your plan as not completed given its number:"
    example_payload = "2"

    async def run(self, state, attributes, payload):
        pos = parse_position(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).set_not_complete(pos)
        return "step marked as not completed"


class ClearPlan(Action):
    name = "clear-plan"
    description = "To remove all the steps of your plan:"

    async def run(self, state, attributes, payload):
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).clear()
        return "plan cleared"


def get_namespace() -> Namespace:
    return Namespace(
        "Planning",
        "You can use the planning actions to break the task into steps and track their progress.",
        [AddStep(), DeleteStep(), SetComplete(), SetIncomplete(), ClearPlan()],
        [StorageDescriptor.completion(STORAGE)],
        default=True,
    )
