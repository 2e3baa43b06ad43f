# memory.py
# Long lived key/value memories the model can write and forget.

from task_engine.errors import ActionError
from task_engine.namespaces.base import Action, Namespace, require_attribute, require_payload
from task_engine.storage import StorageDescriptor

STORAGE = "memories"


class SaveMemory(Action):
    name = "save-memory"
    description = "To store a memory for later use, identified by a unique key:"
    example_attributes = {"key": "my-note"}
    example_payload = "put here the custom data you want to keep for later"

    async def run(self, state, attributes, payload):
        key = require_attribute(attributes, "key")
        data = require_payload(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).add_tagged(key, data)
        return "memory saved"


class DeleteMemory(Action):
    name = "delete-memory"
    description = "To delete a memory you previously stored, given its key:"
    example_attributes = {"key": "my-note"}

    async def run(self, state, attributes, payload):
        key = require_attribute(attributes, "key")
        async with state.lock() as s:
            if s.get_storage_mut(STORAGE).del_tagged(key) is None:
                raise ActionError(f"memory '{key}' not found")
        return "memory deleted"


def get_namespace() -> Namespace:
    return Namespace(
        "Memory",
        "You can use the memory actions to store and retrieve long term information as you work.",
        [SaveMemory(), DeleteMemory()],
        [StorageDescriptor.tagged(STORAGE)],
        default=True,
    )
