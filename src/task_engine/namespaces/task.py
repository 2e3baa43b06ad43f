# task.py
# Terminal actions. Either one sets the completion flag for the rest of the run.

from task_engine.namespaces.base import Action, Namespace


class Complete(Action):
    name = "task-complete"
    description = "When you are sure that your current task has been completed, use this action:"
    example_payload = "a short explanation of why the task is complete"

    async def run(self, state, attributes, payload):
        async with state.lock() as s:
            s.on_complete(False, payload.strip() if payload else None)
        return None


class Impossible(Action):
    name = "task-impossible"
    description = "When you are sure that the task can not be completed, use this action:"
    example_payload = "a short explanation of why the task is impossible"

    async def run(self, state, attributes, payload):
        async with state.lock() as s:
            s.on_complete(True, payload.strip() if payload else None)
        return None


def get_namespace() -> Namespace:
    return Namespace(
        "Task",
        "Use these actions to signal that the task is over.",
        [Complete(), Impossible()],
        default=True,
    )
