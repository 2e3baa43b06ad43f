import pytest

from fakes import drain
from task_engine.errors import ActionError
from task_engine.events import StorageUpdate
from task_engine.storage import Storage, StorageDescriptor, StorageType


def _storage(channel, type_: StorageType, predefined=None) -> Storage:
    return Storage("test", type_, channel, predefined)


def test_descriptor_constructors():
    assert StorageDescriptor.tagged("a").type == StorageType.TAGGED
    assert StorageDescriptor.untagged("a").type == StorageType.UNTAGGED
    assert StorageDescriptor.completion("a").type == StorageType.COMPLETION
    assert StorageDescriptor.previous_current("a").type == StorageType.CURRENT_PREVIOUS
    assert StorageDescriptor.tagged("a").predefine({"k": "v"}).predefined == {"k": "v"}


def test_tagged_set_replace_delete(channel):
    storage = _storage(channel, StorageType.TAGGED)

    storage.add_tagged("user", "admin")
    storage.add_tagged("user", "root")
    assert storage.get_tagged("user") == "root"
    assert len(storage) == 1

    assert storage.del_tagged("user") == "root"
    assert storage.del_tagged("user") is None
    assert storage.is_empty()

    updates = [(e.prev, e.new) for e in drain(channel) if isinstance(e, StorageUpdate)]
    assert updates == [(None, "admin"), ("admin", "root"), ("root", None)]


def test_predefined_entries_do_not_emit(channel):
    storage = _storage(channel, StorageType.TAGGED, {"Accept": "*/*"})
    assert storage.get_tagged("Accept") == "*/*"
    assert drain(channel) == []


def test_untagged_keeps_order(channel):
    storage = _storage(channel, StorageType.UNTAGGED)
    storage.add_untagged("first")
    storage.add_untagged("second")
    assert storage.to_prompt() == "- first\n- second"


def test_completion_positions_after_delete(channel):
    storage = _storage(channel, StorageType.COMPLETION)
    for step in ("a", "b", "c"):
        storage.add_completion(step)

    assert storage.del_completion(0) == "a"
    storage.set_complete(1)

    assert storage.to_prompt() == "1. b (not completed)\n2. c (COMPLETED)"
    with pytest.raises(ActionError):
        storage.set_not_complete(2)


def test_current_previous(channel):
    storage = _storage(channel, StorageType.CURRENT_PREVIOUS)
    assert storage.get_current() is None

    storage.set_current("one")
    storage.set_current("two")
    storage.set_current("three")

    assert storage.get_current() == "three"
    assert storage.get_previous() == "two"
    assert storage.to_prompt() == "* current: three\n* previous: two"


@pytest.mark.parametrize(
    "type_, operation",
    [
        (StorageType.UNTAGGED, lambda s: s.add_tagged("k", "v")),
        (StorageType.TAGGED, lambda s: s.add_completion("x")),
        (StorageType.TAGGED, lambda s: s.set_current("x")),
        (StorageType.COMPLETION, lambda s: s.add_untagged("x")),
    ],
)
def test_wrong_type_operation(channel, type_, operation):
    with pytest.raises(ActionError, match="operation not supported"):
        operation(_storage(channel, type_))


def test_clear(channel):
    storage = _storage(channel, StorageType.TAGGED, {"a": "1", "b": "2"})
    storage.clear()
    assert storage.is_empty()
    assert storage.to_prompt() == ""
